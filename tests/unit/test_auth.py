"""
Module: tests/unit/test_auth.py

What:
    Validate each authentication strategy and the AUTO negotiation order
    against the in-memory POP3 server.

Why:
    Logging in is where provider quirks live (APOP challenges, Office365's bare
    ``+`` continuation). The engine must send exactly the expected commands and
    never leak a second credential after a rejected first step.

How:
    Open a raw connection to :class:`FakePop3Server`, read the greeting with a
    :class:`WireCodec`, run :func:`authenticate`, and inspect the commands the
    server recorded.
"""

import base64
import hashlib

import pytest

from fakes import FakePop3Server
from mailpop.pop3.auth import (
    AuthMethod,
    apop_digest,
    authenticate,
    find_challenge,
    xoauth2_token,
)
from mailpop.pop3.codec import WireCodec

CHALLENGE = b"<123.456@host>"


def _login(server: FakePop3Server, method: AuthMethod, password: str = "secret"):
    codec = WireCodec(server.connect(), host="pop.example.test", port=110)
    greeting = codec.read_reply()
    return authenticate(codec, greeting.line, method, "user", password)


def test_apop_digest_matches_md5_of_challenge_and_password():
    expected = hashlib.md5(b"<123.456@host>secret").hexdigest()

    assert apop_digest(CHALLENGE, "secret") == expected


def test_find_challenge():
    assert find_challenge(b"+OK POP3 ready <123.456@host>") == CHALLENGE
    assert find_challenge(b"+OK POP3 ready") is None
    assert find_challenge(b"-ERR <123.456@host>") is None


def test_xoauth2_token_payload():
    token = xoauth2_token("user@example.com", "ya29.token")

    assert "\n" not in token
    assert base64.b64decode(token) == b"user=user@example.com\x01auth=Bearer ya29.token\x01\x01"


def test_auto_prefers_apop_when_challenge_present():
    server = FakePop3Server(challenge=CHALLENGE)

    assert _login(server, AuthMethod.AUTO) is AuthMethod.APOP
    assert server.commands == [f"APOP user {apop_digest(CHALLENGE, 'secret')}"]


def test_auto_falls_back_to_login_without_challenge():
    server = FakePop3Server()

    assert _login(server, AuthMethod.AUTO) is AuthMethod.LOGIN
    assert server.commands == ["USER user", "PASS secret"]


def test_auto_tries_login_after_rejected_apop():
    server = FakePop3Server(challenge=CHALLENGE)
    server.apop_ok = False

    assert _login(server, AuthMethod.AUTO) is AuthMethod.LOGIN
    assert [c.split(" ")[0] for c in server.commands] == ["APOP", "USER", "PASS"]


def test_apop_without_challenge_is_not_attempted():
    server = FakePop3Server()

    assert _login(server, AuthMethod.APOP) is None
    assert server.commands == []


def test_login_stops_after_rejected_user():
    server = FakePop3Server()
    server.reject_user = True

    assert _login(server, AuthMethod.LOGIN) is None
    assert server.commands == ["USER user"]


def test_login_wrong_password_fails():
    server = FakePop3Server()

    assert _login(server, AuthMethod.AUTO, password="wrong") is None


def test_oauth2_sends_single_command():
    server = FakePop3Server(xoauth2=True)

    assert _login(server, AuthMethod.OAUTH2) is AuthMethod.OAUTH2
    assert server.commands == [f"AUTH XOAUTH2 {xoauth2_token('user', 'secret')}"]


@pytest.mark.parametrize("continuation", [b"+", b"+ ", b"+OK go ahead"])
def test_oauth2_separated_waits_for_continuation(continuation):
    server = FakePop3Server(xoauth2=True, continuation=continuation)

    assert _login(server, AuthMethod.OAUTH2_SEP) is AuthMethod.OAUTH2_SEP
    assert server.commands == ["AUTH XOAUTH2", xoauth2_token("user", "secret")]


def test_oauth2_separated_does_not_send_token_after_refusal():
    server = FakePop3Server(xoauth2=False)

    assert _login(server, AuthMethod.OAUTH2_SEP) is None
    assert server.commands == ["AUTH XOAUTH2"]


@pytest.mark.parametrize(
    "value, expected",
    [
        ("AUTO", AuthMethod.AUTO),
        ("APOP", AuthMethod.APOP),
        ("login", AuthMethod.LOGIN),
        ("OAUTH2_SEP", AuthMethod.OAUTH2_SEP),
        ("digest-challenge", AuthMethod.APOP),
        ("plaintext", AuthMethod.LOGIN),
        ("bearer-token", AuthMethod.OAUTH2),
        ("bearer-token-separated", AuthMethod.OAUTH2_SEP),
    ],
)
def test_auth_method_parse(value, expected):
    assert AuthMethod.parse(value) is expected


def test_auth_method_parse_rejects_unknown():
    with pytest.raises(ValueError):
        AuthMethod.parse("kerberos")
