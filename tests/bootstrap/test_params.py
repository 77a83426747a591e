"""Tests for deriving bootstrap parameters from the run config."""

from stackboot.bootstrap.params import BootstrapConfig, build_bootstrap_config
from stackboot.config import ServerCreateConfig
from stackboot.provisioning.types import Instance


def _instance(password="Gen3rated-pass"):
    return Instance(id="srv-1", name="os-1234567890123456", password=password)


def test_node_name_defaults_to_instance_name():
    params = build_bootstrap_config(ServerCreateConfig(), _instance())
    assert params.node_name == "os-1234567890123456"


def test_node_name_explicit():
    params = build_bootstrap_config(ServerCreateConfig(chef_node_name="web-1"), _instance())
    assert params.node_name == "web-1"


def test_ssh_uses_generated_password():
    params = build_bootstrap_config(ServerCreateConfig(), _instance())
    assert params.ssh_password == "Gen3rated-pass"
    assert params.use_sudo is False
    assert params.port == 22


def test_ssh_explicit_password_wins():
    params = build_bootstrap_config(ServerCreateConfig(ssh_password="Typed-pass-1"), _instance())
    assert params.ssh_password == "Typed-pass-1"


def test_ssh_key_pair_means_no_password():
    params = build_bootstrap_config(ServerCreateConfig(ssh_key_name="ops", identity_file="~/.ssh/ops"), _instance())
    assert params.ssh_password is None
    assert params.identity_file == "~/.ssh/ops"


def test_non_root_user_uses_sudo():
    params = build_bootstrap_config(ServerCreateConfig(ssh_user="ubuntu", ssh_port=2200), _instance())
    assert params.use_sudo is True
    assert params.port == 2200


def test_winrm_fields():
    config = ServerCreateConfig(
        bootstrap_protocol="winrm",
        winrm_user="admin",
        winrm_password="W1nrm-password",
        winrm_port=5986,
        winrm_transport="ssl",
    )

    params = build_bootstrap_config(config, _instance())

    assert params.protocol == "winrm"
    assert params.winrm_user == "admin"
    assert params.winrm_password == "W1nrm-password"
    assert params.winrm_transport == "ssl"
    assert params.port == 5986
    assert params.ssh_password is None


def test_chef_fields_copied():
    config = ServerCreateConfig(
        run_list=["role[web]"],
        environment="production",
        first_boot_attributes={"app": {"port": 8080}},
        bootstrap_version="18.2.7",
        prerelease=True,
        chef_server_url="https://chef.example.com/organizations/acme",
        validation_client_name="acme-validator",
    )

    params = build_bootstrap_config(config, _instance(), dry_run=True)

    assert params.run_list == ["role[web]"]
    assert params.environment == "production"
    assert params.first_boot_attributes == {"app": {"port": 8080}}
    assert params.bootstrap_version == "18.2.7"
    assert params.prerelease is True
    assert params.chef_server_url == "https://chef.example.com/organizations/acme"
    assert params.validation_client_name == "acme-validator"
    assert params.dry_run is True


def test_openstack_hint_by_default():
    assert BootstrapConfig().hints == {"openstack": {}}
