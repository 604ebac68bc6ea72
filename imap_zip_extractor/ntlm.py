"""NTLM support for ``IMAP4.authenticate("NTLM", ...)``.

The handshake itself is produced by pyspnego; this module only carries the
negotiate flag constants and adapts a pyspnego client context to the
challenge/response callback that :mod:`imaplib` expects.
"""

from __future__ import annotations

import enum

import spnego
import structlog

from .errors import ConfigurationError

logger = structlog.get_logger()


class NTLMFlags(enum.IntFlag):
    """Subset of NTLM negotiate flags (MS-NLMP 2.2.2.5)."""

    NEGOTIATE_UNICODE = 0x00000001
    NEGOTIATE_OEM = 0x00000002
    REQUEST_TARGET = 0x00000004
    NEGOTIATE_SIGN = 0x00000010
    NEGOTIATE_SEAL = 0x00000020
    NEGOTIATE_NTLM = 0x00000200
    NEGOTIATE_ALWAYS_SIGN = 0x00008000


NTLM_DEFAULT_FLAGS = int(
    NTLMFlags.NEGOTIATE_UNICODE
    | NTLMFlags.REQUEST_TARGET
    | NTLMFlags.NEGOTIATE_NTLM
    | NTLMFlags.NEGOTIATE_ALWAYS_SIGN
)

_UNDERSTOOD_FLAGS = NTLM_DEFAULT_FLAGS | int(NTLMFlags.NEGOTIATE_SIGN | NTLMFlags.NEGOTIATE_SEAL)


def context_requirements(flags: int) -> spnego.ContextReq:
    """Translate NTLM negotiate flags into pyspnego context requirements.

    Only signing and sealing have a pyspnego counterpart; the remaining bits
    (unicode, request target, NTLM, always sign) are what pyspnego sends for
    every NTLM negotiate message anyway.
    """
    ignored = int(flags) & ~_UNDERSTOOD_FLAGS
    if ignored:
        logger.debug("ntlm_flags_ignored", flags=hex(flags), ignored=hex(ignored))

    req = spnego.ContextReq.none
    if flags & NTLMFlags.NEGOTIATE_SIGN:
        req |= spnego.ContextReq.integrity
    if flags & NTLMFlags.NEGOTIATE_SEAL:
        req |= spnego.ContextReq.confidentiality
    return req


class NtlmAuthenticator:
    """Challenge/response callback for ``imaplib.IMAP4.authenticate``.

    ``imaplib`` calls the object with each decoded server continuation and
    base64-encodes whatever bytes it returns.  The first continuation is
    empty and is answered with the NEGOTIATE message, the second carries the
    CHALLENGE and is answered with the AUTHENTICATE message.
    """

    def __init__(
        self,
        username: str,
        password: str,
        domain: str | None,
        flags: int,
        hostname: str,
    ) -> None:
        if not domain:
            raise ConfigurationError("NTLM authentication requires ntlm_domain")
        self.flags = flags
        self._context = spnego.client(
            username=f"{domain}\\{username}",
            password=password,
            hostname=hostname,
            service="imap",
            context_req=context_requirements(flags),
            protocol="ntlm",
        )
        self._rounds = 0

    def __call__(self, challenge: bytes) -> bytes:
        self._rounds += 1
        token = self._context.step(challenge or None)
        logger.debug("ntlm_step", round=self._rounds, flags=hex(self.flags))
        return token or b""
