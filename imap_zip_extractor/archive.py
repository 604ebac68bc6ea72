"""Unpack zip attachments into the output directory.

Every entry is written to ``<output_dir>/<digest>_<name>`` where *digest*
identifies the message and *name* is the entry path inside the archive.  The
attachment itself is staged as a hidden ``.<digest>_...`` temp file, so no
entry name can land on it.
"""

from __future__ import annotations

import shutil
import tempfile
import zipfile
import zlib
from pathlib import Path, PurePosixPath

import structlog

from .errors import ExtractionError
from .models import ExtractedFile

ZIP_EXTENSION = ".zip"
COPY_BUFFER_SIZE = 64 * 1024


def is_zip_filename(filename: str | None) -> bool:
    return bool(filename) and filename.lower().endswith(ZIP_EXTENSION)


class ZipAttachmentWriter:
    """Writes zip attachments to disk and unpacks their entries beside them."""

    def __init__(self, output_dir: Path, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._output_dir = Path(output_dir)
        self._log = logger or structlog.get_logger()

    def extract(self, digest: str, filename: str | None, payload: bytes) -> list[ExtractedFile]:
        """Unpack one attachment; non-zip attachments are logged and skipped."""
        if not is_zip_filename(filename):
            self._log.info("attachment_ignored", filename=filename, digest=digest)
            return []

        # attachment names are user supplied; keep only the final component
        basename = PurePosixPath(filename.replace("\\", "/")).name
        archive_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                dir=self._output_dir,
                prefix=f".{digest}_",
                suffix=f"_{basename}",
                delete=False,
            ) as fh:
                archive_path = Path(fh.name)
                fh.write(payload)
            with zipfile.ZipFile(archive_path) as archive:
                return self._extract_entries(digest, archive)
        except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError) as exc:
            raise ExtractionError(f"{filename!r} cannot be unpacked: {exc}") from exc
        except OSError as exc:
            raise ExtractionError(f"cannot extract {filename!r}: {exc}") from exc
        finally:
            if archive_path is not None:
                _remove_quietly(archive_path)

    def _extract_entries(self, digest: str, archive: zipfile.ZipFile) -> list[ExtractedFile]:
        extracted: list[ExtractedFile] = []
        root = self._output_dir.resolve()

        for info in archive.infolist():
            name = info.filename
            self._log.info(
                "zip_entry",
                name=name,
                size=info.file_size,
                compressed_size=info.compress_size,
                digest=digest,
            )

            target = self._output_dir / f"{digest}_{name}"
            if not target.resolve().is_relative_to(root):
                self._log.warning("zip_entry_rejected", name=name, digest=digest)
                continue

            if name.endswith("/"):
                target.mkdir(parents=True, exist_ok=True)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            with archive.open(info) as src, target.open("wb") as dst:
                shutil.copyfileobj(src, dst, COPY_BUFFER_SIZE)

            extracted.append(
                ExtractedFile(
                    path=target,
                    message_digest=digest,
                    entry_name=name,
                    size=info.file_size,
                    compressed_size=info.compress_size,
                )
            )

        return extracted


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except OSError:
        pass
