"""Line framing for the POP3 wire protocol.

What:
  Write CRLF-terminated commands, read single-line status replies, and read
  dot-terminated multi-line bodies while undoing dot-stuffing.

Why:
  Every other engine component speaks to the server through this module, so
  the distinction between a negative reply (:class:`ServerNegative`) and a
  dead connection (:class:`TransportError`) is decided in exactly one place.

How:
  :class:`WireCodec` wraps a connected socket (anything exposing ``sendall``,
  ``makefile`` and ``close``), reads through a buffered binary file object, and
  converts ``OSError``/EOF into :class:`TransportError`.

Interfaces:
  :class:`Reply`, :class:`WireCodec`, :func:`mask_command`.

Invariants & Safety:
  - Nothing but socket I/O happens here; no retries and no reconnects.
  - Credentials never appear in logs or error messages, see
    :func:`mask_command`.
"""
from __future__ import annotations

import contextlib
from dataclasses import dataclass
from typing import Any, List, Optional

from ..utils.logging import JsonLogger, get_logger
from .errors import ConfigError, ServerNegative, TransportError

CRLF = b"\r\n"
OK = b"+OK"
TERMINATOR = b"."

# Content octets per line, excluding CRLF. RFC 1939 caps status lines at 512;
# message bodies routinely exceed that.
_MAX_LINE = 65536

_MASK = "****"


def mask_command(command: str, *, sensitive: bool = False) -> str:
    """Return ``command`` with credential arguments replaced by ``****``."""

    if sensitive:
        return _MASK
    verb, _, rest = command.partition(" ")
    name = verb.upper()
    if name == "PASS":
        return f"{verb} {_MASK}"
    if name == "APOP":
        user = rest.split(" ", 1)[0]
        return f"{verb} {user} {_MASK}"
    if name == "AUTH":
        mechanism, _, token = rest.partition(" ")
        return f"{verb} {mechanism} {_MASK}" if token else command
    return command


def _strip_eol(line: bytes) -> bytes:
    if line.endswith(CRLF):
        return line[:-2]
    if line.endswith(b"\n") or line.endswith(b"\r"):
        return line[:-1]
    return line


@dataclass(frozen=True)
class Reply:
    """A single status line returned by the server, without its line ending."""

    line: bytes

    @property
    def ok(self) -> bool:
        return self.line[:3] == OK

    @property
    def continuation(self) -> bool:
        """``True`` for SASL continuations, which may be a bare ``+``."""

        return self.line[:1] == b"+" and not self.ok

    @property
    def text(self) -> str:
        return self.line.decode("utf-8", "replace")


class WireCodec:
    """Request/reply framing over one connected socket.

    What:
      Sends commands and parses the replies of a single POP3 connection.

    Why:
      Callers higher up (authenticator, synchroniser, facade) should reason in
      terms of replies and body lines, not sockets and byte buffers.

    How:
      Commands are encoded as UTF-8 and written with ``sendall``; replies are
      read through ``sock.makefile("rb")``. Failures are raised as
      :class:`TransportError` with host/port/command context.
    """

    def __init__(
        self,
        sock: Any,
        *,
        host: str,
        port: int,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        self._sock = sock
        self._file = sock.makefile("rb")
        self.host = host
        self.port = port
        self.logger = logger or get_logger("mailpop.pop3")
        self.closed = False

    def send(self, command: str, *, sensitive: bool = False) -> None:
        """Write ``command`` followed by CRLF."""

        shown = mask_command(command, sensitive=sensitive)
        if "\r" in command or "\n" in command:
            raise ConfigError(
                "POP3 command must be a single line",
                host=self.host,
                port=self.port,
                command=shown,
            )
        self.logger.debug("pop3_send", host=self.host, command=shown)
        try:
            self._sock.sendall(command.encode("utf-8") + CRLF)
        except (OSError, ValueError) as exc:
            raise TransportError(
                f"Cannot write POP3 to socket: {exc}",
                host=self.host,
                port=self.port,
                command=shown,
            ) from exc

    def read_line(self, *, command: Optional[str] = None) -> bytes:
        """Read one line and return it without the line ending.

        Raises:
          TransportError: On socket errors, EOF, or an overlong line.
        """

        try:
            line = self._file.readline(_MAX_LINE + len(CRLF))
        except (OSError, ValueError) as exc:
            raise TransportError(
                f"Cannot read POP3 from socket: {exc}",
                host=self.host,
                port=self.port,
                command=command,
            ) from exc
        if not line:
            raise TransportError(
                "Connection closed by server",
                host=self.host,
                port=self.port,
                command=command,
            )
        stripped = _strip_eol(line)
        if len(stripped) > _MAX_LINE:
            raise TransportError(
                "Line exceeds maximum length",
                host=self.host,
                port=self.port,
                command=command,
            )
        return stripped

    def read_reply(self, *, command: Optional[str] = None) -> Reply:
        return Reply(self.read_line(command=command))

    def exchange(self, command: str, *, sensitive: bool = False) -> Reply:
        """Send ``command`` and return the first reply line."""

        self.send(command, sensitive=sensitive)
        return self.read_reply(command=mask_command(command, sensitive=sensitive))

    def expect_ok(self, command: str, *, sensitive: bool = False) -> Reply:
        """Like :meth:`exchange` but raise :class:`ServerNegative` unless ``+OK``."""

        reply = self.exchange(command, sensitive=sensitive)
        if not reply.ok:
            raise ServerNegative(
                "Server rejected command",
                host=self.host,
                port=self.port,
                command=mask_command(command, sensitive=sensitive),
                server_text=reply.text,
            )
        return reply

    def exchange_list(self, command: str) -> List[bytes]:
        """Send ``command`` and return the dot-terminated body that follows.

        The body is only read when the status reply is ``+OK``.

        Raises:
          ServerNegative: When the status reply is negative.
          TransportError: When the connection breaks mid-body.
        """

        self.expect_ok(command)
        return self.read_body(command=command)

    def read_body(self, *, command: Optional[str] = None) -> List[bytes]:
        """Read lines up to the lone ``.`` terminator, undoing dot-stuffing."""

        lines: List[bytes] = []
        while True:
            line = self.read_line(command=command)
            if line == TERMINATOR:
                return lines
            if line[:1] == TERMINATOR:
                line = line[1:]
            lines.append(line)

    def close(self) -> None:
        """Close the file object and the socket; errors on close are ignored."""

        self.closed = True
        with contextlib.suppress(OSError):
            self._file.close()
        with contextlib.suppress(OSError):
            self._sock.close()
