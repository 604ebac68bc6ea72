"""Extractor configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings


class ImapConfig(BaseSettings):
    """IMAP server connection and authentication settings."""

    model_config = {"env_prefix": "IMAP_"}

    host: str = Field(description="IMAP server hostname")
    port: int = Field(default=993, description="IMAP server port")
    use_ssl: bool = Field(default=True, description="Use SSL/TLS connection")
    username: str = Field(description="IMAP login username")
    password: SecretStr = Field(description="IMAP login password")
    mailbox: str = Field(default="INBOX", description="IMAP folder to scan for unread mail")
    ntlm_domain: str | None = Field(
        default=None,
        description="Windows domain used for NTLM authentication",
    )
    ntlm_flags: int = Field(
        default=0,
        ge=0,
        description="NTLM negotiate flags; non-zero switches from LOGIN to AUTHENTICATE NTLM",
    )
    debug: bool = Field(default=False, description="Trace the IMAP protocol exchange")

    @property
    def use_ntlm(self) -> bool:
        return self.ntlm_flags != 0


class ExtractorConfig(BaseSettings):
    """Root configuration: mailbox plus the local extraction target."""

    model_config = {"env_prefix": "EXTRACTOR_"}

    output_dir: Path = Field(description="Directory that receives extracted zip entries")
    cleanup_before_run: bool = Field(
        default=False,
        description="Delete top-level files in output_dir before processing",
    )
    log_json: bool = Field(default=True, description="Emit JSON log lines")
    log_level: str = Field(default="INFO", description="Root log level name")

    imap: ImapConfig = Field(default_factory=ImapConfig)
