"""ImapZipExtractor: scan unread mail and unpack zip attachments to disk."""

from __future__ import annotations

import asyncio
import email.utils
from collections.abc import Iterator
from contextlib import contextmanager
from email.message import EmailMessage

import structlog

from .archive import ZipAttachmentWriter
from .config import ExtractorConfig
from .errors import ConfigurationError, ExtractorError, NotInitializedError
from .imap_client import AsyncImapClient
from .models import ExtractedFile, message_digest, new_digest


class ImapZipExtractor:
    """Owns one mailbox session and one output directory.

    Lifecycle::

        extractor = ImapZipExtractor(config)
        extractor.cleanup_working_directory()   # optional pre-run reset
        await extractor.init()                  # exactly once
        await extractor.process()               # any number of times
        extractor.unzipped_attachments          # everything extracted so far
        await extractor.close()

    Entry points of one instance must not overlap; an overlapping call
    raises :class:`ExtractorError` instead of waiting.  Separate instances
    share nothing and can run side by side.
    """

    def __init__(
        self,
        config: ExtractorConfig,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        new_digest()
        if config.imap.use_ntlm and not config.imap.ntlm_domain:
            raise ConfigurationError("ntlm_flags is set but ntlm_domain is empty")

        self._config = config
        self._output_dir = config.output_dir
        self._log = logger or structlog.get_logger().bind(
            host=config.imap.host,
            mailbox=config.imap.mailbox,
        )
        self._imap = AsyncImapClient(config.imap)
        self._writer = ZipAttachmentWriter(config.output_dir, self._log)
        self._unzipped: list[ExtractedFile] = []
        self._initialized = False
        self._closed = False
        self._busy: str | None = None

    @property
    def unzipped_attachments(self) -> list[ExtractedFile]:
        """Every file extracted by this instance, in extraction order."""
        return list(self._unzipped)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self, debug: bool | None = None) -> None:
        """Open the mailbox read-write.  Must be called exactly once."""
        with self._exclusive("init"):
            if self._initialized or self._closed:
                raise ExtractorError("init() may only be called once per extractor")
            if debug is None:
                debug = self._config.imap.debug
            await self._imap.connect(debug=debug)
            try:
                await asyncio.to_thread(self._output_dir.mkdir, parents=True, exist_ok=True)
            except OSError as exc:
                await self._imap.disconnect()
                raise ConfigurationError(
                    f"cannot create output directory {self._output_dir}: {exc}"
                ) from exc
            self._initialized = True

    async def close(self) -> None:
        with self._exclusive("close"):
            await self._imap.disconnect()
            self._initialized = False
            self._closed = True

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def process(self) -> list[ExtractedFile]:
        """Extract zip attachments of every unread message, then mark it seen.

        Returns the files extracted by this call.  The first error aborts the
        run; messages handled before it stay marked as seen.
        """
        if not self._initialized:
            raise NotInitializedError("process")

        with self._exclusive("process"):
            uids = await self._imap.search_unseen()
            self._log.info("unseen_messages_found", count=len(uids))

            extracted: list[ExtractedFile] = []
            for uid in uids:
                extracted.extend(await self._process_message(uid))
            return extracted

    async def _process_message(self, uid: str) -> list[ExtractedFile]:
        fetched = await self._imap.fetch(uid)
        digest = message_digest(fetched.received)
        msg = fetched.parse()

        self._log.info(
            "message_processing",
            uid=uid,
            senders=_sender_addresses(msg),
            sent_date=str(msg.get("Date", "")),
            subject=str(msg.get("Subject", "")),
            digest=digest,
        )

        extracted: list[ExtractedFile] = []
        for part in _attachment_parts(msg):
            payload = part.get_payload(decode=True) or b""
            files = await asyncio.to_thread(
                self._writer.extract, digest, part.get_filename(), payload
            )
            self._unzipped.extend(files)
            extracted.extend(files)

        await self._imap.mark_seen(uid)
        self._log.info("message_marked_seen", uid=uid, digest=digest, extracted=len(extracted))
        return extracted

    # ------------------------------------------------------------------
    # Working directory
    # ------------------------------------------------------------------

    def cleanup_working_directory(self) -> int:
        """Delete the regular files directly inside the output directory.

        Subdirectories left by earlier extractions, and their contents, are
        not touched.  Returns the number of files removed.
        """
        with self._exclusive("cleanup_working_directory"):
            if not self._output_dir.is_dir():
                return 0

            removed = 0
            for entry in self._output_dir.iterdir():
                if not entry.is_file():
                    continue
                try:
                    entry.unlink()
                except OSError as exc:
                    self._log.warning("cleanup_failed", path=str(entry), error=str(exc))
                    continue
                removed += 1

            self._log.info(
                "working_directory_cleaned",
                output_dir=str(self._output_dir),
                removed=removed,
            )
            return removed

    @contextmanager
    def _exclusive(self, operation: str) -> Iterator[None]:
        if self._busy is not None:
            raise ExtractorError(f"{operation}() called while {self._busy}() is running")
        self._busy = operation
        try:
            yield
        finally:
            self._busy = None


def _attachment_parts(msg: EmailMessage) -> Iterator[EmailMessage]:
    """Yield parts with an attachment disposition or a filename."""
    for part in msg.walk():
        if part.get_content_maintype() == "multipart":
            continue
        if part.get_content_disposition() == "attachment" or part.get_filename():
            yield part


def _sender_addresses(msg: EmailMessage) -> list[str]:
    header_value = msg.get("From")
    if not header_value:
        return []
    return [addr for _, addr in email.utils.getaddresses([str(header_value)]) if addr]
