"""Async IMAP client wrapping stdlib imaplib with asyncio.to_thread."""

from __future__ import annotations

import asyncio
import imaplib
import re

import structlog

from .config import ImapConfig
from .errors import ExtractorError, MailboxConnectionError, NotInitializedError
from .models import FetchedMessage
from .ntlm import NtlmAuthenticator

logger = structlog.get_logger()

_INTERNALDATE_RE = re.compile(rb'INTERNALDATE "([^"]+)"')

# imaplib prints every command and response at debug level >= 4
_PROTOCOL_TRACE_LEVEL = 4


class AsyncImapClient:
    """Async-friendly IMAP client bound to a single read-write folder.

    All blocking ``imaplib`` operations are wrapped with
    ``asyncio.to_thread()`` to avoid blocking the event loop.  Messages are
    fetched with ``BODY.PEEK[]`` so reading never sets ``\\Seen``; callers
    flag messages explicitly with :meth:`mark_seen`.
    """

    def __init__(self, config: ImapConfig) -> None:
        self._config = config
        self._conn: imaplib.IMAP4_SSL | imaplib.IMAP4 | None = None

    @property
    def connected(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, *, debug: bool = False) -> None:
        """Connect, authenticate, and select the configured folder read-write."""
        await asyncio.to_thread(self._connect_sync, debug)
        logger.info(
            "imap_connected",
            host=self._config.host,
            mailbox=self._config.mailbox,
            auth="ntlm" if self._config.use_ntlm else "login",
        )

    def _connect_sync(self, debug: bool) -> None:
        conn: imaplib.IMAP4 | None = None
        try:
            if self._config.use_ssl:
                conn = imaplib.IMAP4_SSL(self._config.host, self._config.port)
            else:
                conn = imaplib.IMAP4(self._config.host, self._config.port)
            if debug:
                conn.debug = _PROTOCOL_TRACE_LEVEL
            self._authenticate(conn)
            status, data = conn.select(self._config.mailbox, readonly=False)
            if status != "OK":
                raise MailboxConnectionError(
                    f"cannot open folder {self._config.mailbox!r}: {_describe(data)}"
                )
        except (imaplib.IMAP4.error, OSError) as exc:
            _shutdown_quietly(conn)
            raise MailboxConnectionError(
                f"cannot connect to {self._config.host}:{self._config.port}: {exc}"
            ) from exc
        except ExtractorError:
            _shutdown_quietly(conn)
            raise
        self._conn = conn

    def _authenticate(self, conn: imaplib.IMAP4) -> None:
        password = self._config.password.get_secret_value()
        if not self._config.use_ntlm:
            conn.login(self._config.username, password)
            return
        authenticator = NtlmAuthenticator(
            username=self._config.username,
            password=password,
            domain=self._config.ntlm_domain,
            flags=self._config.ntlm_flags,
            hostname=self._config.host,
        )
        conn.authenticate("NTLM", authenticator)

    async def disconnect(self) -> None:
        """Close the folder and logout."""
        if self._conn is not None:
            await asyncio.to_thread(self._disconnect_sync)
            self._conn = None
            logger.info("imap_disconnected")

    def _disconnect_sync(self) -> None:
        assert self._conn is not None
        try:
            self._conn.close()
        except imaplib.IMAP4.error:
            pass
        try:
            self._conn.logout()
        except imaplib.IMAP4.error:
            pass

    # ------------------------------------------------------------------
    # Message operations
    # ------------------------------------------------------------------

    async def search_unseen(self) -> list[str]:
        """Return UIDs of messages without ``\\Seen``, in server order."""
        self._require("search_unseen")
        return await asyncio.to_thread(self._search_unseen_sync)

    async def fetch(self, uid: str) -> FetchedMessage:
        """Fetch the full message and its INTERNALDATE without marking it seen."""
        self._require("fetch")
        return await asyncio.to_thread(self._fetch_sync, uid)

    async def mark_seen(self, uid: str) -> None:
        self._require("mark_seen")
        await asyncio.to_thread(self._uid, "STORE", uid, "+FLAGS", r"(\Seen)")

    # ------------------------------------------------------------------
    # Synchronous helpers (run in thread)
    # ------------------------------------------------------------------

    def _require(self, operation: str) -> None:
        if self._conn is None:
            raise NotInitializedError(operation)

    def _uid(self, command: str, *args: str | None) -> list:
        assert self._conn is not None
        try:
            status, data = self._conn.uid(command, *args)
        except (imaplib.IMAP4.error, OSError) as exc:
            raise MailboxConnectionError(f"IMAP UID {command} failed: {exc}") from exc
        if status != "OK":
            raise MailboxConnectionError(f"IMAP UID {command} failed: {_describe(data)}")
        return data

    def _search_unseen_sync(self) -> list[str]:
        data = self._uid("SEARCH", None, "UNSEEN")
        if not data or not data[0]:
            return []
        return [uid.decode() for uid in data[0].split()]

    def _fetch_sync(self, uid: str) -> FetchedMessage:
        data = self._uid("FETCH", uid, "(INTERNALDATE BODY.PEEK[])")

        raw_bytes: bytes | None = None
        metadata: list[bytes] = []
        for item in data:
            if isinstance(item, tuple):
                metadata.append(item[0])
                if raw_bytes is None:
                    raw_bytes = item[1]
            elif isinstance(item, bytes):
                metadata.append(item)

        if raw_bytes is None:
            raise MailboxConnectionError(f"IMAP FETCH returned no body for UID {uid}")

        match = _INTERNALDATE_RE.search(b" ".join(metadata))
        if match is None:
            raise MailboxConnectionError(f"IMAP FETCH returned no INTERNALDATE for UID {uid}")

        return FetchedMessage(uid=uid, received=match.group(1).decode(), raw_bytes=raw_bytes)


def _describe(data: list) -> str:
    parts = [d.decode(errors="replace") if isinstance(d, bytes) else str(d) for d in data or []]
    return " ".join(parts) or "no response text"


def _shutdown_quietly(conn: imaplib.IMAP4 | None) -> None:
    if conn is None:
        return
    try:
        conn.shutdown()
    except OSError:
        pass
