"""Fixtures routing CLI connections to the in-memory POP3 server.

What:
  Replace :func:`mailpop.pop3.connection.open_socket` with a
  :class:`FakePop3Server` whose account matches ``tests/data/config.yaml``.

Why:
  CLI tests exercise configuration loading and command wiring exactly as an
  operator would, but must never open a network connection.
"""

import pytest

from fakes import FakeMessage, FakePop3Server

MESSAGES = {
    "uid-1": "Subject: hello\nFrom: a@example.test\n\nfirst body",
    "uid-2": "Subject: again\n\n..dotted\nsecond body",
}


@pytest.fixture
def pop3_server(monkeypatch: pytest.MonkeyPatch) -> FakePop3Server:
    server = FakePop3Server(
        [FakeMessage.from_text(uid, text) for uid, text in MESSAGES.items()]
    )
    monkeypatch.setattr("mailpop.pop3.connection.open_socket", server.connect)
    return server
