"""Pytest fixtures for unit tests requiring POP3 fakes.

What:
  Expose a :class:`FakePop3Server` seeded with three messages, a matching
  :class:`Pop3Config`, a structured logger writing to memory, and a
  :class:`Pop3Mailbox` wired to the fake server.

Why:
  Most engine tests need the same account and mailbox; sharing the setup keeps
  each test focused on the behaviour it asserts.

How:
  The mailbox receives ``server.connect`` as its socket opener, so every
  (re)connection lands on the in-memory server.

Interfaces:
  ``server``, ``config``, ``log_stream``, ``logger``, ``mailbox`` fixtures.

Invariants & Safety:
  - Each test receives a fresh server; no state leaks between tests.
"""

import io

import pytest

from fakes import FakeMessage, FakePop3Server
from mailpop.pop3 import Pop3Config, Pop3Mailbox
from mailpop.utils.logging import JsonLogger

MESSAGES = {
    "uid-a": "Subject: first\n\nHello A",
    "uid-b": "Subject: second\n\nHello B\n.hidden dot",
    "uid-c": "Subject: third\n\nHello C\nline two\nline three",
}


@pytest.fixture
def server() -> FakePop3Server:
    return FakePop3Server(
        [FakeMessage.from_text(uid, text) for uid, text in MESSAGES.items()]
    )


@pytest.fixture
def config() -> Pop3Config:
    return Pop3Config(host="pop.example.test", username="user", password="secret")


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(log_stream: io.StringIO) -> JsonLogger:
    return JsonLogger(stream=log_stream, component="test", min_level="debug")


@pytest.fixture
def mailbox(server: FakePop3Server, config: Pop3Config, logger: JsonLogger):
    """Yield a mailbox talking to ``server`` and disconnect it afterwards."""

    box = Pop3Mailbox(config, opener=server.connect, logger=logger)
    try:
        yield box
    finally:
        box.disconnect()
