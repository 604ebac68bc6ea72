"""Data carried between the IMAP client, the archive writer and callers."""

from __future__ import annotations

import email
import email.policy
import hashlib
from dataclasses import dataclass
from email.message import EmailMessage
from pathlib import Path

from .errors import ConfigurationError

DIGEST_ALGORITHM = "sha1"


@dataclass
class FetchedMessage:
    """An unread message as fetched from IMAP, with its received date text."""

    uid: str
    received: str
    raw_bytes: bytes

    def parse(self) -> EmailMessage:
        return email.message_from_bytes(self.raw_bytes, policy=email.policy.default)


@dataclass(frozen=True)
class ExtractedFile:
    """One regular file written out of a zip attachment."""

    path: Path
    message_digest: str
    entry_name: str
    size: int
    compressed_size: int


def new_digest() -> "hashlib._Hash":
    """Return a fresh hash object, or raise if the runtime lacks the algorithm."""
    try:
        return hashlib.new(DIGEST_ALGORITHM)
    except ValueError as exc:
        raise ConfigurationError(
            f"hash algorithm {DIGEST_ALGORITHM!r} is not available"
        ) from exc


def message_digest(received: str) -> str:
    """Hex digest of a message's received date, used to prefix its files.

    It only keeps attachments of different messages apart on disk; it is not
    meant to identify or authenticate anything.
    """
    digest = new_digest()
    digest.update(received.encode("utf-8"))
    return digest.hexdigest()
