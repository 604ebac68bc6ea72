"""IMAP zip extractor: unpack zip attachments of unread mail into a directory."""

from .archive import ZipAttachmentWriter
from .config import ExtractorConfig, ImapConfig
from .errors import (
    ConfigurationError,
    ExtractionError,
    ExtractorError,
    MailboxConnectionError,
    NotInitializedError,
)
from .extractor import ImapZipExtractor
from .imap_client import AsyncImapClient
from .logging import setup_logging
from .models import ExtractedFile, FetchedMessage, message_digest
from .ntlm import NTLM_DEFAULT_FLAGS, NTLMFlags

__all__ = [
    "AsyncImapClient",
    "ConfigurationError",
    "ExtractedFile",
    "ExtractionError",
    "ExtractorConfig",
    "ExtractorError",
    "FetchedMessage",
    "ImapConfig",
    "ImapZipExtractor",
    "MailboxConnectionError",
    "NTLMFlags",
    "NTLM_DEFAULT_FLAGS",
    "NotInitializedError",
    "ZipAttachmentWriter",
    "message_digest",
    "setup_logging",
]
