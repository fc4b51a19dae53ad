"""Facade for the POP3 engine.

What:
  Surface the :class:`~mailpop.pop3.connection.Pop3Config` dataclass, the
  :class:`~mailpop.pop3.client.Pop3Mailbox` context manager, the
  :class:`~mailpop.pop3.auth.AuthMethod` tags, and the error hierarchy.

Why:
  Call sites should not depend on the internal split between codec,
  authenticator, connection manager, and synchroniser.

Interfaces:
  ``Pop3Config``, ``Pop3Mailbox``, ``AuthMethod`` and the ``*Error`` classes.

Invariants & Safety:
  - All mailbox access goes through :class:`Pop3Mailbox`, which owns the only
    socket and the only session of an engine instance.
"""

from .auth import AuthMethod
from .client import Pop3Mailbox
from .connection import Pop3Config
from .errors import (
    AuthFailure,
    ConfigError,
    DegradedResumeRefused,
    NotFound,
    Pop3Error,
    ProtocolMismatch,
    ServerNegative,
    TransportError,
)

__all__ = [
    "AuthMethod",
    "Pop3Config",
    "Pop3Mailbox",
    "Pop3Error",
    "ConfigError",
    "TransportError",
    "ProtocolMismatch",
    "AuthFailure",
    "DegradedResumeRefused",
    "NotFound",
    "ServerNegative",
]
