"""Socket ownership, login, liveness probing, and lazy reconnection.

What:
  Own the single socket of a POP3 engine instance and hand out a live,
  authenticated, synchronised connection through :meth:`ConnectionManager.acquire`.

Why:
  POP3 servers drop idle clients aggressively. Callers should not care whether
  the socket they used a minute ago is still there; they should get a working
  one or a precise error. At the same time reconnect loops must be bounded
  because POP3 has no back-off protocol of its own.

How:
  :meth:`ConnectionManager.acquire` probes the cached connection with ``NOOP``.
  When it is gone, a new socket is opened, the greeting checked, the
  configured :class:`~mailpop.pop3.auth.AuthMethod` run, and the mailbox
  synchronised. Exactly one connection attempt happens per call.

Interfaces:
  :class:`Pop3Config`, :class:`ConnectionManager`, :func:`open_socket`.

Invariants & Safety:
  - Sessions without UIDL are never resumed after a lost connection
    (:class:`~mailpop.pop3.errors.DegradedResumeRefused`).
  - :meth:`ConnectionManager.disconnect` always returns the manager to its
    pre-connection state, whatever the server does.
"""
from __future__ import annotations

import contextlib
import socket
import ssl
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Optional

from ..utils.logging import JsonLogger, get_logger
from .auth import AuthMethod, authenticate
from .codec import WireCodec
from .errors import (
    AuthFailure,
    ConfigError,
    DegradedResumeRefused,
    Pop3Error,
    ProtocolMismatch,
    TransportError,
)
from .session import Session, resolve, synchronize

POP3_PORT = 110
POP3S_PORT = 995

_VERIFY_MODES = {
    "none": ssl.CERT_NONE,
    "optional": ssl.CERT_OPTIONAL,
    "required": ssl.CERT_REQUIRED,
}


@dataclass
class Pop3Config:
    """Connection parameters for one POP3 account.

    What:
      Captures the server address, credentials, authentication method, and TLS
      options consumed by :class:`ConnectionManager`.

    Why:
      Host, port and credentials are fixed for the lifetime of an engine; a
      plain dataclass makes that contract explicit and cheap to build in tests.

    How:
      :meth:`__post_init__` normalises the authentication method and picks the
      default port (995 with TLS, 110 otherwise). :meth:`from_settings` maps
      the validated runtime configuration onto the dataclass.

    Attributes:
      host: Server hostname.
      username: Account name.
      password: Password, or OAuth bearer token for ``oauth2*`` methods.
      port: Server port, defaulted from ``use_ssl``.
      use_ssl: Wrap the socket in TLS.
      authenticate: Authentication method.
      ssl_verify_hostname: Check the certificate hostname.
      ssl_verify_mode: ``none``, ``optional`` or ``required``.
      ssl_ca_file: Optional CA bundle.
      timeout: Socket timeout in seconds.
    """

    host: str
    username: Optional[str] = None
    password: Optional[str] = None
    port: Optional[int] = None
    use_ssl: bool = False
    authenticate: AuthMethod = AuthMethod.AUTO
    ssl_verify_hostname: bool = False
    ssl_verify_mode: str = "none"
    ssl_ca_file: Optional[str] = None
    timeout: Optional[float] = 60.0

    def __post_init__(self) -> None:
        self.authenticate = AuthMethod.parse(self.authenticate)
        if self.port is None:
            self.port = POP3S_PORT if self.use_ssl else POP3_PORT
        if self.ssl_verify_mode not in _VERIFY_MODES:
            raise ConfigError(f"unknown ssl verify mode '{self.ssl_verify_mode}'")
        if self.ssl_verify_hostname and self.ssl_verify_mode == "none":
            raise ConfigError(
                "ssl hostname verification requires verify mode 'optional' or 'required'",
                host=self.host,
                port=self.port,
            )

    @classmethod
    def from_settings(cls, settings: Any) -> "Pop3Config":
        """Build a config from a :class:`~mailpop.config.schema.Pop3Settings`."""

        return cls(
            host=settings.host,
            username=settings.username,
            password=settings.password,
            port=settings.port,
            use_ssl=settings.use_ssl,
            authenticate=settings.authenticate,
            ssl_verify_hostname=settings.ssl_options.verify_hostname,
            ssl_verify_mode=settings.ssl_options.verify_mode,
            ssl_ca_file=settings.ssl_options.ca_file,
            timeout=settings.timeout,
        )

    @classmethod
    def from_runtime(cls) -> "Pop3Config":
        """Build a config from the cached runtime configuration file."""

        from ..config.loader import get_runtime_config

        return cls.from_settings(get_runtime_config().pop3)

    def ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context(cafile=self.ssl_ca_file)
        context.check_hostname = self.ssl_verify_hostname
        context.verify_mode = _VERIFY_MODES[self.ssl_verify_mode]
        return context

    @property
    def scheme(self) -> str:
        return "pop3s" if self.use_ssl else "pop3"


def open_socket(config: Pop3Config) -> socket.socket:
    """Open a TCP connection to the configured server, wrapped in TLS if asked."""

    sock = socket.create_connection((config.host, config.port), config.timeout)
    if not config.use_ssl:
        return sock
    try:
        return config.ssl_context().wrap_socket(sock, server_hostname=config.host)
    except BaseException:
        sock.close()
        raise


Opener = Callable[[Pop3Config], Any]


class ConnectionManager:
    """Owner of the socket and the current :class:`Session`.

    What:
      Supplies live authenticated connections, reconnecting lazily, and tears
      everything down on :meth:`disconnect`.

    Why:
      Keeping the socket private to one object guarantees the facade never
      holds a stale handle and that reconnection policy lives in one place.

    How:
      The cached :class:`WireCodec` is probed with ``NOOP`` on every
      :meth:`acquire`. A failed probe or a :class:`TransportError` raised
      inside :meth:`using` drops the codec and the session; the next call
      performs a single fresh login.
    """

    def __init__(
        self,
        config: Pop3Config,
        *,
        opener: Optional[Opener] = None,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        self.config = config
        self._opener = opener or open_socket
        self.logger = logger or get_logger("mailpop.pop3")
        self._codec: Optional[WireCodec] = None
        self._session: Optional[Session] = None
        self._lost_degraded = False
        self._opened = False

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def connected(self) -> bool:
        return self._codec is not None

    @property
    def degraded(self) -> bool:
        """Whether the current (or last lost) session lacks durable identifiers."""

        if self._session is not None:
            return self._session.degraded
        return self._lost_degraded

    def acquire(self) -> WireCodec:
        """Return a live, authenticated codec, reconnecting at most once.

        Raises:
          ConfigError: Username or password missing.
          DegradedResumeRefused: The lost session had no UIDL support.
          TransportError: The socket could not be opened or broke during login.
          ProtocolMismatch: The greeting was not ``+OK``.
          AuthFailure: All applicable authentication methods failed.
          ServerNegative: ``STAT`` or the ``LIST`` fallback was rejected.
        """

        codec = self._live_connection()
        if codec is not None:
            return codec

        if self._lost_degraded:
            self.logger.error(
                "pop3_resume_refused", host=self.config.host, port=self.config.port
            )
            raise DegradedResumeRefused(
                "Cannot re-connect reliably to server which doesn't support UIDL",
                host=self.config.host,
                port=self.config.port,
            )

        codec, method = self._login()
        try:
            session = synchronize(codec, method, logger=self.logger)
        except Pop3Error:
            codec.close()
            raise
        self._codec = codec
        self._session = session
        self._opened = True
        return codec

    @contextlib.contextmanager
    def using(self) -> Iterator[WireCodec]:
        """Yield :meth:`acquire`'s codec; drop it if a transport error escapes."""

        codec = self.acquire()
        try:
            yield codec
        except TransportError as exc:
            self.logger.warning(
                "pop3_transport_error",
                host=self.config.host,
                port=self.config.port,
                command=exc.command,
                error=exc.message,
            )
            self.invalidate()
            raise

    def invalidate(self) -> None:
        """Forget the current socket and session, remembering degradation."""

        if self._codec is not None:
            self._codec.close()
        self._codec = None
        if self._session is not None:
            self._lost_degraded = self._session.degraded
            self._session = None

    def disconnect(self, pending: Iterable[str] = ()) -> bool:
        """Apply pending deletions, quit, and reset all state.

        What:
          Sends ``DELE`` for each pending identifier still present on the
          server, then ``QUIT``, then closes the socket.

        Why:
          POP3 only commits deletions when the session ends cleanly, and
          ordinals may have drifted since the caller marked the messages, so
          translation must happen now, against the current index.

        How:
          Acquires a connection (one reconnect allowed), stops sending at the
          first transport error, logs negative ``DELE`` replies and carries on,
          and always clears the session, codec, and degradation marker.

        Args:
          pending: Identifiers to delete.

        Returns:
          ``True`` when ``QUIT`` was acknowledged with ``+OK``.
        """

        quit_ok = False
        if self._opened:
            codec: Optional[WireCodec] = None
            try:
                codec = self.acquire()
            except Pop3Error as exc:
                self.logger.warning(
                    "pop3_disconnect_unreachable",
                    host=self.config.host,
                    port=self.config.port,
                    error=str(exc),
                )
            if codec is not None and self._session is not None:
                try:
                    for ordinal in resolve(self._session, pending):
                        reply = codec.exchange(f"DELE {ordinal}")
                        if not reply.ok:
                            self.logger.warning(
                                "pop3_dele_failed",
                                host=self.config.host,
                                ordinal=ordinal,
                                server_text=reply.text,
                            )
                    quit_ok = codec.exchange("QUIT").ok
                except TransportError as exc:
                    self.logger.warning(
                        "pop3_transport_error",
                        host=self.config.host,
                        port=self.config.port,
                        command=exc.command,
                        error=exc.message,
                    )
        if self._codec is not None:
            self._codec.close()
        self._codec = None
        self._session = None
        self._lost_degraded = False
        self._opened = False
        self.logger.info(
            "pop3_disconnect", host=self.config.host, port=self.config.port, quit_ok=quit_ok
        )
        return quit_ok

    def _live_connection(self) -> Optional[WireCodec]:
        codec = self._codec
        if codec is None:
            return None
        try:
            codec.exchange("NOOP")
        except TransportError as exc:
            self.logger.warning(
                "pop3_connection_lost",
                host=self.config.host,
                port=self.config.port,
                error=exc.message,
            )
            self.invalidate()
            return None
        return codec

    def _login(self) -> "tuple[WireCodec, AuthMethod]":
        config = self.config
        if not config.username or not config.password:
            raise ConfigError(
                "POP3 requires a username and password", host=config.host, port=config.port
            )
        if any(ch in value for value in (config.username, config.password) for ch in "\r\n"):
            raise ConfigError(
                "POP3 username and password must not contain line breaks",
                host=config.host,
                port=config.port,
            )

        self.logger.info(
            "pop3_connect", host=config.host, port=config.port, ssl=config.use_ssl
        )
        try:
            sock = self._opener(config)
        except OSError as exc:
            raise TransportError(
                f"Cannot connect to {config.host}:{config.port} for POP3: {exc}",
                host=config.host,
                port=config.port,
            ) from exc

        codec = WireCodec(sock, host=config.host, port=config.port, logger=self.logger)
        try:
            greeting = codec.read_reply(command="<greeting>")
            if not greeting.ok:
                raise ProtocolMismatch(
                    f"Server at {config.host}:{config.port} does not seem to be talking POP3",
                    host=config.host,
                    port=config.port,
                    server_text=greeting.text,
                )
            self.logger.debug("pop3_greeting", host=config.host, server_text=greeting.text)

            method = authenticate(
                codec,
                greeting.line,
                config.authenticate,
                config.username,
                config.password,
                logger=self.logger,
            )
            if method is None:
                self.logger.error(
                    "pop3_auth_failed", host=config.host, method=config.authenticate.value
                )
                if config.authenticate is AuthMethod.AUTO:
                    message = "Could not authenticate using any login method"
                else:
                    message = f"Could not authenticate using '{config.authenticate.value}' method"
                raise AuthFailure(message, host=config.host, port=config.port)
        except Pop3Error:
            codec.close()
            raise
        self.logger.info("pop3_authenticated", host=config.host, method=method.value)
        return codec, method
