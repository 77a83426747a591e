"""CLI tests: argument handling via subprocess, and the 'server create' handler in-process."""

import argparse
import logging
import os
from unittest.mock import AsyncMock, patch

import pytest

from stackboot.commands.server import register_server_command
from stackboot.provisioning.errors import ImageNotFound
from stackboot.provisioning.types import AddressRecord, BootstrapTarget, Instance, ProvisioningResult


@pytest.fixture
def clean_env(tmp_path):
    """Environment without OpenStack credentials or a user config file."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("OS_")}
    env["HOME"] = str(tmp_path)
    return env


# ── Subprocess ──────────────────────────────────────────────────────


def test_help(run_cli):
    rc, stdout, _ = run_cli("server", "create", "--help")
    assert rc == 0
    assert "--floating-ip" in stdout
    assert "--bootstrap-protocol" in stdout


def test_no_command(run_cli):
    rc, _, stderr = run_cli()
    assert rc == 2
    assert "required" in stderr


def test_invalid_protocol(run_cli):
    rc, _, stderr = run_cli("server", "create", "--bootstrap-protocol", "telnet")
    assert rc == 2
    assert "invalid choice" in stderr


def test_delete_requires_instance_id(run_cli):
    rc, _, stderr = run_cli("server", "delete")
    assert rc == 2
    assert "--instance-id" in stderr


def test_create_missing_flavor_and_image(run_cli, clean_env):
    rc, stdout, _ = run_cli("server", "create", env=clean_env)
    assert rc == 1
    assert "--flavor, --image" in stdout


def test_create_missing_credentials(run_cli, clean_env):
    rc, stdout, _ = run_cli("server", "create", "--flavor", "m1.small", "--image", "ubuntu", env=clean_env)
    assert rc == 1
    assert "Missing OpenStack credentials" in stdout


def test_create_explicit_config_not_found(run_cli, clean_env, tmp_path):
    rc, stdout, _ = run_cli("server", "create", "--config", str(tmp_path / "absent.yaml"), env=clean_env)
    assert rc == 1
    assert "not found" in stdout


def test_create_flavor_from_config_file(run_cli, clean_env, tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text("server:\n  flavor: m1.small\n")

    rc, stdout, _ = run_cli("server", "create", "--config", str(config), env=clean_env)

    assert rc == 1
    assert "--image." in stdout
    assert "--flavor" not in stdout


# ── In-process handler ──────────────────────────────────────────────


def _parse(*argv):
    parser = argparse.ArgumentParser()
    subparsers = parser.add_subparsers(dest="command", required=True)
    register_server_command(subparsers)
    return parser.parse_args(list(argv))


def _result(exit_status=0):
    instance = Instance(
        id="srv-1",
        name="os-1234567890123456",
        flavor_id="1",
        image_id="img-2",
        addresses={"private": [AddressRecord("10.0.0.5")], "public": [AddressRecord("203.0.113.5", fixed=False)]},
        password="Gen3rated-pass",
    )
    return ProvisioningResult(
        instance=instance,
        target=BootstrapTarget("203.0.113.5", 22),
        exit_status=exit_status,
        node_name=instance.name,
        run_list=["role[web]", "recipe[app]"],
    )


@pytest.fixture
def os_env(monkeypatch, tmp_path):
    monkeypatch.setattr("stackboot.config.DEFAULT_CONFIG_PATH", str(tmp_path / "absent.yaml"))
    monkeypatch.setenv("OS_AUTH_URL", "https://keystone.example.com:5000/v3")
    monkeypatch.setenv("OS_USERNAME", "demo")
    monkeypatch.setenv("OS_PASSWORD", "demo-password-123")
    monkeypatch.setenv("OS_PROJECT_NAME", "demo-project")


def test_handle_create_summary(os_env, caplog):
    args = _parse("server", "create", "-f", "m1.small", "-I", "ubuntu.*", "-a", "-r", "role[web],recipe[app]")
    provision = AsyncMock(return_value=_result())

    with patch("stackboot.commands.server.create.provision", provision), caplog.at_level(logging.INFO):
        args.func(args)

    config = provision.await_args.args[0]
    assert config.floating_ip == "auto"
    assert config.run_list == ["role[web]", "recipe[app]"]
    assert "Instance ID: srv-1" in caplog.text
    assert "SSH Password: Gen3rated-pass" in caplog.text
    assert "  IP Address: 203.0.113.5" in caplog.text
    assert "Environment: _default" in caplog.text
    assert "Run List: role[web], recipe[app]" in caplog.text


def test_handle_create_bootstrap_failure_exit_status(os_env):
    args = _parse("server", "create", "-f", "m1.small", "-I", "ubuntu.*")

    with patch("stackboot.commands.server.create.provision", AsyncMock(return_value=_result(exit_status=3))):
        with pytest.raises(SystemExit) as exc_info:
            args.func(args)

    assert exc_info.value.code == 3


def test_handle_create_provisioning_error(os_env, caplog):
    args = _parse("server", "create", "-f", "m1.small", "-I", "windows")

    with patch("stackboot.commands.server.create.provision", AsyncMock(side_effect=ImageNotFound("windows"))):
        with pytest.raises(SystemExit) as exc_info:
            args.func(args)

    assert exc_info.value.code == 1
    assert "No image matches 'windows'" in caplog.text


def test_handle_create_password_env_fallback(os_env, monkeypatch):
    monkeypatch.setenv("STACKBOOT_SSH_PASSWORD", "Env-ssh-pass-1")
    args = _parse("server", "create", "-f", "m1.small", "-I", "ubuntu.*", "--no-network", "--no-host-key-verify")
    provision = AsyncMock(return_value=_result())

    with patch("stackboot.commands.server.create.provision", provision):
        args.func(args)

    config = provision.await_args.args[0]
    assert config.ssh_password == "Env-ssh-pass-1"
    assert config.network is False
    assert config.host_key_verify is False
