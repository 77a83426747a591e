"""Tests for stackboot.redact: secret redaction in text and log records."""

import logging

import pytest

import stackboot.redact as redact_module
from stackboot.logging_setup import setup_cli_logging
from stackboot.redact import SecretRedactingFilter, redact_secrets, register_secret


@pytest.fixture(autouse=True)
def _reset_cache():
    """Reset the module-level caches so env changes take effect."""
    redact_module._patterns = None
    redact_module._registered.clear()
    yield
    redact_module._patterns = None
    redact_module._registered.clear()


# ── redact_secrets ──────────────────────────────────────────────


def test_redact_secrets_replaces_value(monkeypatch):
    monkeypatch.setenv("OS_PASSWORD", "keystone-SuperSecret123")

    text = "Authenticating with password keystone-SuperSecret123"
    assert redact_secrets(text) == "Authenticating with password ***"


def test_redact_secrets_short_values_ignored(monkeypatch):
    monkeypatch.setenv("OS_PASSWORD", "short")

    text = "Password is short and should not be redacted"
    assert redact_secrets(text) == text


def test_redact_secrets_no_env_vars(monkeypatch):
    for var in redact_module._SECRET_ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    text = "Nothing secret here"
    assert redact_secrets(text) == text


def test_redact_secrets_multiple_values(monkeypatch):
    monkeypatch.setenv("OS_PASSWORD", "os_PassAAAA")
    monkeypatch.setenv("STACKBOOT_SSH_PASSWORD", "ssh_pass_BBBB_long_enough")

    text = "OS=os_PassAAAA SSH=ssh_pass_BBBB_long_enough done"
    assert redact_secrets(text) == "OS=*** SSH=*** done"


def test_register_secret(monkeypatch):
    for var in redact_module._SECRET_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    assert redact_secrets("secret is Runtime-Secret-42") == "secret is Runtime-Secret-42"

    register_secret("Runtime-Secret-42")

    assert redact_secrets("secret is Runtime-Secret-42") == "secret is ***"


def test_register_secret_ignores_short_values():
    register_secret("abc")
    assert redact_secrets("abc") == "abc"


# ── SecretRedactingFilter ───────────────────────────────────────


def test_secret_redacting_filter(monkeypatch):
    monkeypatch.setenv("OS_TOKEN", "gAAAAA_FilterTestToken99")

    filt = SecretRedactingFilter()
    record = logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg="Using token gAAAAA_FilterTestToken99",
        args=None,
        exc_info=None,
    )
    filt.filter(record)
    assert record.msg == "Using token ***"


def test_secret_redacting_filter_with_args(monkeypatch):
    monkeypatch.setenv("OS_TOKEN", "gAAAAA_ArgsTestToken88")

    filt = SecretRedactingFilter()
    record = logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg="Token: %s",
        args=("gAAAAA_ArgsTestToken88",),
        exc_info=None,
    )
    filt.filter(record)
    assert record.args == ("***",)


def test_cli_logging_redacts_child_loggers(monkeypatch, capsys):
    monkeypatch.setenv("STACKBOOT_WINRM_PASSWORD", "W1nrm-Password-77")
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_cli_logging()
        logging.getLogger("stackboot.bootstrap.winrm").info("password W1nrm-Password-77")
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    assert capsys.readouterr().out == "password ***\n"
