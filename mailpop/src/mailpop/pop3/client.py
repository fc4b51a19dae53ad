"""Identifier-based mailbox facade over the POP3 engine.

What:
  Expose the operations mailbox consumers need (list identifiers, fetch a
  message or its header, fetch its size, mark and unmark for deletion) in
  terms of durable identifiers only.

Why:
  Ordinals are meaningless outside one connected session. Consumers that
  browse or synchronise a mailbox must be able to hold on to identifiers
  across reconnects and let the engine worry about translation, reconnection,
  and deferred deletion.

How:
  Every call goes through :meth:`ConnectionManager.using`, which yields a live
  codec (reconnecting at most once), then resolves the identifier against the
  current :class:`~mailpop.pop3.session.Session` before touching the wire.
  Deletions are only recorded locally until :meth:`Pop3Mailbox.disconnect`.

Interfaces:
  :class:`Pop3Mailbox` and its public methods.

Invariants & Safety:
  - Unknown identifiers raise :class:`~mailpop.pop3.errors.NotFound` against
    the cached index, before any probe or reconnect touches the wire.
  - The Fetched Set is unavailable (``None``) for degraded sessions, whose
    synthesised identifiers are session-scoped.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import FrozenSet, List, Optional, Set, Tuple

from ..utils.logging import JsonLogger, get_logger
from .connection import ConnectionManager, Opener, Pop3Config
from .errors import NotFound
from .session import Session, parse_sizes


class Pop3Mailbox:
    """Context manager exposing a single-user POP3 mailbox.

    What:
      Owns one :class:`ConnectionManager` plus the Pending Deletion Set and
      mediates every identifier-based operation.

    Why:
      Callers should work with identifiers and plain Python values; socket
      lifetime, authentication, and ordinal drift are engine concerns.

    How:
      Connects lazily on first use (or in :meth:`__enter__`) and commits
      pending deletions in :meth:`disconnect` / :meth:`__exit__`.
    """

    def __init__(
        self,
        config: Pop3Config,
        *,
        opener: Optional[Opener] = None,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        self._config = config
        self.logger = logger or get_logger("mailpop.pop3")
        self._manager = ConnectionManager(config, opener=opener, logger=self.logger)
        self._pending: Set[str] = set()

    def __enter__(self) -> "Pop3Mailbox":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    @property
    def config(self) -> Pop3Config:
        return self._config

    def connect(self) -> None:
        """Establish (or verify) the session without doing anything else."""

        self._manager.acquire()

    def url(self) -> str:
        """Describe the account as ``pop3[s]://user@host:port`` (no password)."""

        config = self._config
        user = f"{config.username}@" if config.username else ""
        return f"{config.scheme}://{user}{config.host}:{config.port}"

    @property
    def degraded(self) -> bool:
        """``True`` when identifiers are synthesised and must not be persisted."""

        return self._manager.degraded

    @property
    def message_count(self) -> int:
        return self._current_session().message_count

    @property
    def folder_size(self) -> int:
        """Total mailbox size in octets as reported by ``STAT``."""

        return self._current_session().folder_size

    def list_identifiers(self) -> List[str]:
        """Return the identifiers of all messages, in server order."""

        return list(self._current_session().index.identifiers)

    def fetch_size(self, identifier: str) -> int:
        """Return the size of a message in octets.

        The per-message sizes are read with a single ``LIST`` the first time
        they are needed in a session; degraded sessions already have them.

        Raises:
          NotFound: Unknown identifier, or the server lists no size for it.
        """

        self._reject_unknown(identifier)
        with self._manager.using() as codec:
            session, ordinal = self._locate(identifier)
            if session.sizes is None:
                sizes = parse_sizes(codec.exchange_list("LIST"), session.message_count)
                session.sizes = MappingProxyType(sizes)
        size = session.sizes.get(ordinal)
        if size is None:
            raise NotFound(
                f"No size known for message {identifier!r}",
                host=session.host,
                port=session.port,
                command="LIST",
            )
        return size

    def fetch(self, identifier: str) -> List[bytes]:
        """Retrieve a whole message as a list of lines without line endings.

        What:
          Issues ``RETR`` for the message and returns its unstuffed body lines.

        Why:
          Consumers hand the lines to their own parser; the engine does no MIME
          handling.

        How:
          Resolves the identifier, runs the exchange, drops one trailing empty
          line that some servers append, and records the identifier in the
          Fetched Set unless the session is degraded.

        Raises:
          NotFound: Unknown identifier.
          ServerNegative: ``RETR`` was rejected (e.g. message deleted elsewhere).
          TransportError: The connection broke; the next call reconnects.
        """

        self._reject_unknown(identifier)
        with self._manager.using() as codec:
            session, ordinal = self._locate(identifier)
            lines = codec.exchange_list(f"RETR {ordinal}")
        if lines and not lines[-1]:
            lines.pop()
        if not session.degraded:
            session.fetched.add(identifier)
        return lines

    def fetch_header(self, identifier: str, body_lines: int = 0) -> List[bytes]:
        """Retrieve the header plus ``body_lines`` lines of the body via ``TOP``."""

        if body_lines < 0:
            raise ValueError("body_lines must be >= 0")
        self._reject_unknown(identifier)
        with self._manager.using() as codec:
            _, ordinal = self._locate(identifier)
            return codec.exchange_list(f"TOP {ordinal} {body_lines}")

    def mark_deleted(self, *identifiers: str) -> None:
        """Schedule messages for deletion at :meth:`disconnect`."""

        self._pending.update(identifiers)

    def unmark_deleted(self, *identifiers: str) -> None:
        self._pending.difference_update(identifiers)

    @property
    def pending_deletions(self) -> FrozenSet[str]:
        return frozenset(self._pending)

    def fetched(self) -> Optional[FrozenSet[str]]:
        """Identifiers fully fetched in the current session.

        Returns ``None`` for degraded sessions: synthesised identifiers cannot
        be matched against anything outside this session.
        """

        if self._manager.degraded:
            return None
        session = self._manager.session
        if session is None:
            return frozenset()
        return frozenset(session.fetched)

    def delete_all_fetched(self) -> None:
        """Mark every message fetched in this session for deletion."""

        fetched = self.fetched()
        if fetched:
            self.mark_deleted(*fetched)

    def disconnect(self) -> bool:
        """Commit pending deletions, quit, and forget all session state.

        Returns:
          ``True`` when the server acknowledged ``QUIT``.
        """

        try:
            return self._manager.disconnect(self._pending)
        finally:
            self._pending.clear()

    def _current_session(self) -> Session:
        with self._manager.using():
            session = self._manager.session
        if session is None:
            raise RuntimeError("POP3 session not established")
        return session

    def _reject_unknown(self, identifier: str) -> None:
        """Fail locally when the cached index already rules ``identifier`` out."""

        session = self._manager.session
        if identifier and (session is None or session.index.ordinal(identifier) is not None):
            return
        raise NotFound(
            f"No such message {identifier!r}",
            host=self._config.host,
            port=self._config.port,
        )

    def _locate(self, identifier: str) -> Tuple[Session, int]:
        session = self._manager.session
        if session is None:
            raise RuntimeError("POP3 session not established")
        ordinal = session.index.ordinal(identifier)
        if ordinal is None:
            raise NotFound(
                f"No such message {identifier!r}",
                host=session.host,
                port=session.port,
            )
        return session, ordinal
