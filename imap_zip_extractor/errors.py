"""Error kinds raised by the extractor."""

from __future__ import annotations


class ExtractorError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(ExtractorError):
    """The runtime environment or configuration cannot support the extractor."""


class MailboxConnectionError(ExtractorError):
    """Connecting to, authenticating against, or talking to the mailbox failed."""


class NotInitializedError(ExtractorError):
    """An operation needing the mailbox was called before ``init()``."""

    def __init__(self, operation: str = "process") -> None:
        super().__init__(
            f"{operation}() requires an open mailbox; call init() exactly once first"
        )
        self.operation = operation


class ExtractionError(ExtractorError):
    """An attachment could not be written or unpacked."""
