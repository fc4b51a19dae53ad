"""Typed failures raised by the POP3 engine.

What:
  Define the error hierarchy shared by the codec, authenticator, connection
  manager, synchroniser, and mailbox facade.

Why:
  Callers must tell "the server said no" apart from "the connection is dead"
  and from "credentials are wrong". Each kind implies a different recovery
  policy (reconnect once, give up, or fix configuration).

How:
  Every class derives from :class:`Pop3Error`, which stores the host, port,
  masked command, and raw server text so a log line or traceback is enough to
  diagnose the failure without replaying the session.

Interfaces:
  :class:`Pop3Error`, :class:`ConfigError`, :class:`TransportError`,
  :class:`ProtocolMismatch`, :class:`AuthFailure`,
  :class:`DegradedResumeRefused`, :class:`NotFound`, :class:`ServerNegative`.
"""
from __future__ import annotations

from typing import Optional


class Pop3Error(Exception):
    """Base class for every failure surfaced by :mod:`mailpop.pop3`.

    Attributes:
      host: Remote host the engine talks to.
      port: Remote port.
      command: Command being exchanged, with credentials masked.
      server_text: Raw status line returned by the server, when any.
    """

    def __init__(
        self,
        message: str,
        *,
        host: Optional[str] = None,
        port: Optional[int] = None,
        command: Optional[str] = None,
        server_text: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.host = host
        self.port = port
        self.command = command
        self.server_text = server_text

    def __str__(self) -> str:
        parts = [self.message]
        if self.host is not None:
            parts.append(f"[{self.host}:{self.port}]")
        if self.command:
            parts.append(f"command={self.command!r}")
        if self.server_text:
            parts.append(f"server={self.server_text!r}")
        return " ".join(parts)


class ConfigError(Pop3Error):
    """Settings are unusable (e.g. missing credentials); nothing was sent."""


class TransportError(Pop3Error):
    """Socket could not be opened, written, or read.

    The connection manager drops the cached socket when this is raised, so the
    next call performs one reconnect attempt.
    """


class ProtocolMismatch(Pop3Error):
    """The peer does not behave like a POP3 server."""


class AuthFailure(Pop3Error):
    """Every applicable authentication method was rejected."""


class DegradedResumeRefused(Pop3Error):
    """Connection lost after a session without UIDL support.

    Synthesised identifiers cannot be re-mapped onto a new session, so the
    engine refuses to reconnect.
    """


class NotFound(Pop3Error):
    """Identifier is not part of the current session's index."""


class ServerNegative(Pop3Error):
    """Server answered a well-formed command with a non ``+OK`` status."""
