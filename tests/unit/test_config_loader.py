"""
Module: tests/unit/test_config_loader.py

What:
    Validate discovery, parsing, environment overrides and schema enforcement
    of the runtime configuration, and its mapping onto :class:`Pop3Config`.

Why:
    A typo in ``config.yaml`` must fail loudly at load time rather than as an
    obscure login failure against the server.

How:
    Write small YAML documents to ``tmp_path`` and load them through
    :func:`load_runtime_config`.
"""

from pathlib import Path

import pytest

from mailpop.config import (
    RuntimeConfigError,
    get_runtime_config,
    load_runtime_config,
    reset_runtime_config,
)
from mailpop.pop3 import Pop3Config
from mailpop.pop3.auth import AuthMethod


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return path


def test_loads_repository_fixture_from_environment():
    config = get_runtime_config()

    assert config.pop3.host == "pop.example.test"
    assert config.pop3.authenticate is AuthMethod.AUTO
    assert config.logging.component == "mailpop-tests"


def test_cache_is_reused_until_reload(tmp_path):
    first = get_runtime_config()
    path = _write(tmp_path, "pop3:\n  host: other.example.test\n")

    assert load_runtime_config() is first
    assert load_runtime_config(path).pop3.host == "other.example.test"


def test_password_override_from_environment(monkeypatch):
    monkeypatch.setenv("MAILPOP_PASSWORD", "from-env")
    reset_runtime_config()

    assert get_runtime_config().pop3.password == "from-env"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("digest-challenge", AuthMethod.APOP),
        ("PLAINTEXT", AuthMethod.LOGIN),
        ("oauth2_sep", AuthMethod.OAUTH2_SEP),
    ],
)
def test_authenticate_aliases(tmp_path, value, expected):
    path = _write(tmp_path, f"pop3:\n  host: h\n  authenticate: {value}\n")

    assert load_runtime_config(path, reload=True).pop3.authenticate is expected


def test_unknown_method_is_rejected(tmp_path):
    path = _write(tmp_path, "pop3:\n  host: h\n  authenticate: kerberos\n")

    with pytest.raises(RuntimeConfigError, match="Invalid configuration"):
        load_runtime_config(path, reload=True)


def test_unknown_keys_are_rejected(tmp_path):
    path = _write(tmp_path, "pop3:\n  host: h\n  hostname: typo\n")

    with pytest.raises(RuntimeConfigError):
        load_runtime_config(path, reload=True)


def test_hostname_check_requires_certificate_verification(tmp_path):
    path = _write(
        tmp_path,
        "pop3:\n"
        "  host: h\n"
        "  use_ssl: true\n"
        "  ssl_options:\n"
        "    verify_hostname: true\n"
        "    verify_mode: none\n",
    )

    with pytest.raises(RuntimeConfigError, match="verify_hostname requires"):
        load_runtime_config(path, reload=True)


def test_invalid_yaml_is_reported(tmp_path):
    path = _write(tmp_path, "pop3: [unclosed\n")

    with pytest.raises(RuntimeConfigError, match="Invalid YAML"):
        load_runtime_config(path, reload=True)


def test_missing_configuration(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("MAILPOP_CONFIG_PATH", str(tmp_path / "absent.yaml"))
    if Path("/etc/mailpop/config.yaml").exists():
        pytest.skip("system-wide configuration present")

    with pytest.raises(RuntimeConfigError, match="Unable to locate"):
        load_runtime_config(reload=True)


def test_pop3_config_from_settings_defaults_ssl_port(tmp_path):
    path = _write(
        tmp_path,
        "pop3:\n"
        "  host: pop.example.test\n"
        "  username: user\n"
        "  password: secret\n"
        "  use_ssl: true\n"
        "  ssl_options:\n"
        "    verify_mode: required\n"
        "    verify_hostname: true\n",
    )
    settings = load_runtime_config(path, reload=True).pop3

    config = Pop3Config.from_settings(settings)

    assert config.port == 995
    assert config.scheme == "pop3s"
    assert config.ssl_verify_mode == "required"
    assert config.ssl_verify_hostname is True


def test_pop3_config_from_runtime():
    config = Pop3Config.from_runtime()

    assert config.host == "pop.example.test"
    assert config.port == 110
    assert config.timeout == 30
