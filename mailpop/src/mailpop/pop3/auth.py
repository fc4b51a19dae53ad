"""Authentication strategies for an open, unauthenticated POP3 connection.

What:
  Implement APOP (digest challenge), USER/PASS (plaintext), AUTO (APOP then
  USER/PASS) and the two XOAUTH2 bearer-token variants.

Why:
  Providers disagree on how to log in: classic servers offer APOP, most accept
  USER/PASS over TLS, Gmail accepts ``AUTH XOAUTH2 <token>`` in one line and
  Office365 insists on a two-step exchange with a bare ``+`` continuation.
  Selecting the behaviour from configuration keeps the connection manager free
  of provider quirks.

How:
  :class:`AuthMethod` tags the configured method; :func:`authenticate` looks up
  the strategies for that tag and runs them in order against the codec. A
  strategy returns ``None`` when it does not apply (APOP without a greeting
  challenge), ``True`` on success and ``False`` on a negative reply.

Interfaces:
  :class:`AuthMethod`, :func:`authenticate`, :func:`find_challenge`,
  :func:`apop_digest`, :func:`xoauth2_token`.

Invariants & Safety:
  - No strategy reconnects or retries; transport errors propagate unchanged.
  - Passwords and tokens are only sent through the codec's masked paths.
"""
from __future__ import annotations

import base64
import hashlib
import re
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from ..utils.logging import JsonLogger, get_logger
from .codec import WireCodec

_CHALLENGE = re.compile(rb"^\+OK .*(<\d+\.\d+@[^>]+>)")


class AuthMethod(str, Enum):
    """Configured authentication method."""

    AUTO = "auto"
    APOP = "apop"
    LOGIN = "login"
    OAUTH2 = "oauth2"
    OAUTH2_SEP = "oauth2_sep"

    @classmethod
    def parse(cls, value: "str | AuthMethod") -> "AuthMethod":
        """Accept enum members, values, and the descriptive aliases.

        Raises:
          ValueError: If ``value`` names no known method.
        """

        if isinstance(value, AuthMethod):
            return value
        key = str(value).strip().lower().replace("-", "_")
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"unknown authentication method '{value}'") from None


_ALIASES = {
    "digest_challenge": "apop",
    "plaintext": "login",
    "bearer_token": "oauth2",
    "bearer_token_separated": "oauth2_sep",
    "xoauth2": "oauth2",
}


def find_challenge(greeting: bytes) -> Optional[bytes]:
    """Return the ``<timestamp@host>`` challenge embedded in ``greeting``."""

    match = _CHALLENGE.match(greeting)
    return match.group(1) if match else None


def apop_digest(challenge: bytes, password: str) -> str:
    """MD5 hex digest of ``challenge`` immediately followed by ``password``."""

    return hashlib.md5(challenge + password.encode("utf-8")).hexdigest()


def xoauth2_token(username: str, token: str) -> str:
    """Base64 SASL XOAUTH2 initial response, without any line breaks."""

    raw = f"user={username}\x01auth=Bearer {token}\x01\x01".encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def _apop(codec: WireCodec, greeting: bytes, username: str, password: str) -> Optional[bool]:
    challenge = find_challenge(greeting)
    if challenge is None:
        return None
    digest = apop_digest(challenge, password)
    return codec.exchange(f"APOP {username} {digest}").ok


def _login(codec: WireCodec, greeting: bytes, username: str, password: str) -> Optional[bool]:
    if not codec.exchange(f"USER {username}").ok:
        return False
    return codec.exchange(f"PASS {password}").ok


def _oauth2(codec: WireCodec, greeting: bytes, username: str, password: str) -> Optional[bool]:
    token = xoauth2_token(username, password)
    return codec.exchange(f"AUTH XOAUTH2 {token}").ok


def _oauth2_separated(
    codec: WireCodec, greeting: bytes, username: str, password: str
) -> Optional[bool]:
    reply = codec.exchange("AUTH XOAUTH2")
    # Office365 answers a bare "+" here rather than "+OK".
    if not (reply.continuation or reply.ok):
        return False
    token = xoauth2_token(username, password)
    return codec.exchange(token, sensitive=True).ok


Strategy = Callable[[WireCodec, bytes, str, str], Optional[bool]]

_STRATEGIES: Dict[AuthMethod, Tuple[Tuple[AuthMethod, Strategy], ...]] = {
    AuthMethod.AUTO: ((AuthMethod.APOP, _apop), (AuthMethod.LOGIN, _login)),
    AuthMethod.APOP: ((AuthMethod.APOP, _apop),),
    AuthMethod.LOGIN: ((AuthMethod.LOGIN, _login),),
    AuthMethod.OAUTH2: ((AuthMethod.OAUTH2, _oauth2),),
    AuthMethod.OAUTH2_SEP: ((AuthMethod.OAUTH2_SEP, _oauth2_separated),),
}


def authenticate(
    codec: WireCodec,
    greeting: bytes,
    method: AuthMethod,
    username: str,
    password: str,
    *,
    logger: Optional[JsonLogger] = None,
) -> Optional[AuthMethod]:
    """Run the strategies for ``method`` and report which one succeeded.

    What:
      Tries each applicable strategy for the configured method in order and
      stops at the first success.

    Why:
      The connection manager needs to know whether login worked and, for the
      session record, how. Deciding what to do on failure (raise
      :class:`~mailpop.pop3.errors.AuthFailure`) is left to the caller.

    How:
      Looks the method up in the dispatch table; strategies returning ``None``
      are recorded as skipped rather than failed.

    Args:
      codec: Codec bound to a freshly greeted connection.
      greeting: Raw greeting line (without line ending).
      method: Configured :class:`AuthMethod`.
      username: Account name.
      password: Password, or the OAuth bearer token for ``oauth2*``.
      logger: Optional structured logger.

    Returns:
      The method that succeeded, or ``None`` when all applicable ones failed.

    Raises:
      TransportError: When the connection breaks during the exchange.
    """

    log = logger or get_logger("mailpop.pop3")
    for name, strategy in _STRATEGIES[method]:
        outcome = strategy(codec, greeting, username, password)
        if outcome is None:
            log.debug("pop3_auth_skipped", host=codec.host, method=name.value)
            continue
        if outcome:
            return name
        log.debug("pop3_auth_rejected", host=codec.host, method=name.value)
    return None
