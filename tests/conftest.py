"""Shared test fixtures for the extractor test suite."""

from __future__ import annotations

import io
import zipfile
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path

import pytest

from imap_zip_extractor.config import ExtractorConfig, ImapConfig

RECEIVED = "01-Jun-2025 12:00:00 +0000"


@pytest.fixture
def imap_config() -> ImapConfig:
    return ImapConfig(
        host="imap.test.com",
        port=993,
        use_ssl=True,
        username="testuser",
        password="testpass",
        mailbox="INBOX",
    )


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    path = tmp_path / "mail"
    path.mkdir()
    return path


@pytest.fixture
def extractor_config(imap_config: ImapConfig, output_dir: Path) -> ExtractorConfig:
    return ExtractorConfig(output_dir=output_dir, imap=imap_config)


# ------------------------------------------------------------------
# Sample archive and EML builders
# ------------------------------------------------------------------


def build_zip(entries: dict[str, bytes]) -> bytes:
    """Build a zip archive in memory; names ending in ``/`` become directories."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buf.getvalue()


def build_email(
    *,
    subject: str = "Daily export",
    from_addr: str = "Reports <reports@example.com>",
    attachments: list[tuple[str, str, bytes]] | None = None,
    inline_named: list[tuple[str, bytes]] | None = None,
) -> bytes:
    """Build a multipart/mixed message with a text body and attachments."""
    msg = MIMEMultipart("mixed")
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = "inbox@example.com"
    msg["Message-ID"] = "<export-001@example.com>"
    msg["Date"] = "Sun, 01 Jun 2025 12:00:00 +0000"
    msg.attach(MIMEText("See attached.", "plain"))

    for filename, content_type, payload in attachments or []:
        maintype, subtype = content_type.split("/", 1)
        part = MIMEBase(maintype, subtype)
        part.set_payload(payload)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=filename)
        msg.attach(part)

    # parts with a filename but an inline disposition
    for filename, payload in inline_named or []:
        part = MIMEBase("application", "octet-stream")
        part.set_payload(payload)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "inline", filename=filename)
        msg.attach(part)

    return msg.as_bytes()


@pytest.fixture
def sample_zip() -> bytes:
    return build_zip({"a.txt": b"hello", "sub/": b""})


@pytest.fixture
def zip_eml_bytes(sample_zip: bytes) -> bytes:
    return build_email(attachments=[("archive.zip", "application/zip", sample_zip)])


@pytest.fixture
def plain_eml_bytes() -> bytes:
    return build_email(attachments=[("notes.txt", "text/plain", b"just text")])
