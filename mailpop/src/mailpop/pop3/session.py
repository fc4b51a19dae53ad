"""Session state and the ordinal/identifier synchroniser.

What:
  Describe one authenticated POP3 session (:class:`Session`), the bijection
  between server ordinals and durable identifiers (:class:`MessageIndex`), and
  the :func:`synchronize` routine that builds both after every (re)connect.

Why:
  POP3 numbers messages per session only; callers need names that survive a
  reconnect. UIDL gives us those names, but not every server implements it,
  and identifiers synthesised from ordinals must never be mistaken for durable
  ones. Keeping the mapping in a separate, immutable object makes the "rebuild
  in full, never patch" rule structural.

How:
  :func:`synchronize` sends ``STAT`` then ``UIDL``; on a negative ``UIDL`` it
  falls back to ``LIST`` and synthesises ``host:port:ordinal`` identifiers,
  marking the session degraded. The listing is validated against the STAT
  count before a new :class:`Session` is returned.

Interfaces:
  :class:`MessageIndex`, :class:`Session`, :func:`synchronize`,
  :func:`parse_listing`.

Invariants & Safety:
  - ``MessageIndex`` is a bijection over exactly ``1..message_count``.
  - A new :class:`Session` shares no mutable state with its predecessor.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from ..utils.logging import JsonLogger, get_logger
from .auth import AuthMethod
from .codec import WireCodec
from .errors import ProtocolMismatch, ServerNegative

_STAT = re.compile(rb"^\+OK (\d+) (\d+)")
_LISTING = re.compile(rb"^(\d+) (\S+)")


@dataclass(frozen=True)
class MessageIndex:
    """Immutable ordinal ↔ identifier bijection for one session."""

    identifiers: Tuple[str, ...]
    ordinals: Mapping[str, int]

    @classmethod
    def build(cls, by_ordinal: Mapping[int, str], count: int) -> "MessageIndex":
        """Create an index from ``{ordinal: identifier}`` covering ``1..count``.

        Raises:
          ProtocolMismatch: If an ordinal is missing or an identifier repeats.
        """

        missing = [n for n in range(1, count + 1) if n not in by_ordinal]
        if missing:
            raise ProtocolMismatch(f"Listing lacks ordinal(s) {missing[:5]} of {count}")
        identifiers = tuple(by_ordinal[n] for n in range(1, count + 1))
        ordinals = {ident: n for n, ident in enumerate(identifiers, start=1)}
        if len(ordinals) != len(identifiers):
            raise ProtocolMismatch("Listing repeats a message identifier")
        return cls(identifiers=identifiers, ordinals=MappingProxyType(ordinals))

    def ordinal(self, identifier: str) -> Optional[int]:
        return self.ordinals.get(identifier)

    def identifier(self, ordinal: int) -> Optional[str]:
        if 1 <= ordinal <= len(self.identifiers):
            return self.identifiers[ordinal - 1]
        return None

    def __len__(self) -> int:
        return len(self.identifiers)


@dataclass
class Session:
    """Live state of one authenticated connection.

    Attributes:
      host: Server host.
      port: Server port.
      auth_method: Method that authenticated this session.
      message_count: Number of messages reported by ``STAT``.
      folder_size: Mailbox size in octets reported by ``STAT``.
      index: Ordinal ↔ identifier bijection.
      degraded: ``True`` when identifiers were synthesised (no UIDL).
      sizes: Per-ordinal sizes, ``None`` until a ``LIST`` has been read.
      fetched: Identifiers fully retrieved in this session.
    """

    host: str
    port: int
    auth_method: AuthMethod
    message_count: int
    folder_size: int
    index: MessageIndex
    degraded: bool = False
    sizes: Optional[Mapping[int, int]] = None
    fetched: Set[str] = field(default_factory=set)


def parse_listing(lines: Iterable[bytes], count: int, *, command: str) -> Dict[int, str]:
    """Parse ``<ordinal> <value>`` lines into a dictionary.

    Lines that do not match are skipped; ordinals outside ``1..count`` are a
    protocol error.
    """

    result: Dict[int, str] = {}
    for line in lines:
        match = _LISTING.match(line)
        if match is None:
            continue
        ordinal = int(match.group(1))
        if not 1 <= ordinal <= count:
            raise ProtocolMismatch(
                f"{command} lists ordinal {ordinal} outside 1..{count}",
                command=command,
            )
        result[ordinal] = match.group(2).decode("utf-8", "replace")
    return result


def parse_sizes(lines: Iterable[bytes], count: int) -> Dict[int, int]:
    sizes: Dict[int, int] = {}
    for ordinal, value in parse_listing(lines, count, command="LIST").items():
        if value.isdigit():
            sizes[ordinal] = int(value)
    return sizes


def _stat(codec: WireCodec) -> Tuple[int, int]:
    reply = codec.exchange("STAT")
    match = _STAT.match(reply.line)
    if match is None:
        raise ServerNegative(
            "POP3 could not do a STAT",
            host=codec.host,
            port=codec.port,
            command="STAT",
            server_text=reply.text,
        )
    return int(match.group(1)), int(match.group(2))


def synchronize(
    codec: WireCodec,
    auth_method: AuthMethod,
    *,
    logger: Optional[JsonLogger] = None,
) -> Session:
    """Build a fresh :class:`Session` from the server's current mailbox state.

    What:
      Queries ``STAT`` and ``UIDL`` (or ``LIST`` as a fallback) and returns a
      new session with a complete identifier index.

    Why:
      Ordinals drift between sessions as messages are deleted elsewhere; the
      only safe way to resolve identifiers after a reconnect is to rebuild the
      whole table from the server's answer.

    How:
      A negative ``STAT`` is fatal. A positive ``UIDL`` body is parsed
      directly. A negative ``UIDL`` triggers ``LIST``, whose sizes are kept and
      whose ordinals become ``host:port:ordinal`` identifiers with
      ``degraded=True``.

    Args:
      codec: Codec bound to an authenticated connection.
      auth_method: Method that authenticated the connection.
      logger: Optional structured logger.

    Returns:
      A new :class:`Session`.

    Raises:
      ServerNegative: If ``STAT`` or the ``LIST`` fallback is rejected.
      ProtocolMismatch: If the listing does not cover ``1..count`` exactly.
      TransportError: If the connection breaks.
    """

    log = logger or get_logger("mailpop.pop3")
    try:
        session = _build_session(codec, auth_method, log)
    except ProtocolMismatch as exc:
        if exc.host is not None:
            raise
        raise ProtocolMismatch(
            exc.message, host=codec.host, port=codec.port, command=exc.command
        ) from exc

    log.info(
        "pop3_sync",
        host=codec.host,
        port=codec.port,
        messages=session.message_count,
        octets=session.folder_size,
        degraded=session.degraded,
    )
    return session


def _build_session(codec: WireCodec, auth_method: AuthMethod, log: JsonLogger) -> Session:
    count, size = _stat(codec)

    uidl = codec.exchange("UIDL")
    if uidl.ok:
        body = codec.read_body(command="UIDL")
        by_ordinal = parse_listing(body, count, command="UIDL")
        index = MessageIndex.build(by_ordinal, count)
        session = Session(
            host=codec.host,
            port=codec.port,
            auth_method=auth_method,
            message_count=count,
            folder_size=size,
            index=index,
        )
    else:
        sizes = parse_sizes(codec.exchange_list("LIST"), count)
        synthesised: Dict[int, str] = {
            ordinal: f"{codec.host}:{codec.port}:{ordinal}" for ordinal in sizes
        }
        index = MessageIndex.build(synthesised, count)
        session = Session(
            host=codec.host,
            port=codec.port,
            auth_method=auth_method,
            message_count=count,
            folder_size=size,
            index=index,
            degraded=True,
            sizes=MappingProxyType(sizes),
        )
        log.warning(
            "pop3_degraded",
            host=codec.host,
            port=codec.port,
            server_text=uidl.text,
        )
    return session


def resolve(session: Session, identifiers: Iterable[str]) -> List[int]:
    """Translate identifiers to current ordinals, skipping unknown ones."""

    ordinals: List[int] = []
    for identifier in identifiers:
        ordinal = session.index.ordinal(identifier)
        if ordinal is not None:
            ordinals.append(ordinal)
    return ordinals
