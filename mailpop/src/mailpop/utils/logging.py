"""mailpop logging helpers with JSON emission and credential redaction.

What:
  Offer a tiny facade over Python streams so every mailpop component emits
  single-line JSON log records with consistent fields and automatic masking of
  credentials and message payloads.

Why:
  POP3 sessions move passwords, OAuth bearer tokens, and message bodies over
  the wire. Operators grep logs when a mailbox stops syncing; a structured
  layout keeps that trivial while guaranteeing none of those secrets leak into
  the log stream.

How:
  :class:`JsonLogger` stores a target stream, a component label and a minimum
  severity. ``extra`` keywords are copied and scrubbed recursively before
  being serialised with ``json.dump``.

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`.

Invariants & Safety:
  - Every record carries ``ts`` (ISO8601 UTC), ``lvl``, ``msg`` and
    ``component``.
  - Keys listed in :data:`SENSITIVE_KEYS` are replaced with ``[redacted]``
    even inside nested dictionaries.
  - Streams are flushed after every write.
"""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


REDACTED = "[redacted]"

SENSITIVE_KEYS = frozenset({"password", "token", "digest", "body", "lines"})

LEVELS: Dict[str, int] = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}


@dataclass
class JsonLogger:
    """Structured JSON logger with automatic redaction.

    What:
      Emits one JSON document per line including timestamp, severity, a
      component tag, and optional structured fields.

    Why:
      A uniform schema lets tests and log shippers parse engine events (such as
      ``pop3_connection_lost``) without ad-hoc string matching.

    How:
      Merges the canonical payload with a redacted copy of the caller's
      keywords and writes it to :attr:`stream` when the level passes
      :attr:`min_level`.
    """

    stream: Any = field(default_factory=lambda: sys.stdout)
    component: str = "mailpop"
    min_level: str = "INFO"

    def log(self, level: str, message: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
        """Emit a structured JSON log entry.

        Args:
          level: Severity name (``debug``, ``info``, ``warn``, ``error``).
          message: Event name or short description.
          extra: Optional context dictionary, redacted recursively.
        """

        lvl = level.upper()
        if LEVELS.get(lvl, 0) < LEVELS.get(self.min_level.upper(), 0):
            return
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": lvl,
            "msg": message,
            "component": self.component,
        }
        if extra:
            payload.update(self._redact(extra))
        json.dump(payload, self.stream, separators=(",", ":"), default=str)
        self.stream.write("\n")
        self.stream.flush()

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log("DEBUG", message, extra=kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log("INFO", message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log("WARN", message, extra=kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self.log("ERROR", message, extra=kwargs)

    @staticmethod
    def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``data`` with sensitive values masked.

        What:
          Replaces values under :data:`SENSITIVE_KEYS` with ``[redacted]``.

        Why:
          Engine call sites log whole context dictionaries; masking at the sink
          means a forgotten ``password=`` keyword can never reach disk.

        How:
          Walks the mapping and recurses into nested dictionaries, keeping the
          structure intact for downstream parsing.
        """

        result: Dict[str, Any] = {}
        for key, value in data.items():
            if key in SENSITIVE_KEYS:
                result[key] = REDACTED
            elif isinstance(value, dict):
                result[key] = JsonLogger._redact(value)
            else:
                result[key] = value
        return result


def get_logger(component: str, *, min_level: str = "INFO") -> JsonLogger:
    """Construct a :class:`JsonLogger` bound to ``component`` on ``stdout``."""

    return JsonLogger(component=component, min_level=min_level)
