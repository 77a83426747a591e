"""Bootstrap parameters dataclass and its construction from the run config."""

from dataclasses import dataclass, field


@dataclass
class BootstrapConfig:
    """All parameters needed to bootstrap one server with chef."""

    protocol: str = "ssh"
    node_name: str = ""
    run_list: list[str] = field(default_factory=list)
    environment: str | None = None
    first_boot_attributes: dict = field(default_factory=dict)
    prerelease: bool = False
    bootstrap_version: str | None = None
    distro: str = "chef-full"
    template_file: str | None = None
    bootstrap_proxy: str | None = None
    chef_server_url: str | None = None
    validation_client_name: str = "chef-validator"
    validation_key: str | None = None
    secret: str | None = None
    secret_file: str | None = None
    encrypted_data_bag_secret: str | None = None
    encrypted_data_bag_secret_file: str | None = None
    # ohai hints written to /etc/chef/ohai/hints/<name>.json
    hints: dict = field(default_factory=lambda: {"openstack": {}})

    ssh_user: str = "root"
    ssh_password: str | None = None
    ssh_port: int = 22
    identity_file: str | None = None
    host_key_verify: bool = True
    use_sudo: bool = False

    winrm_user: str = "Administrator"
    winrm_password: str | None = None
    winrm_transport: str = "plaintext"
    winrm_port: int = 5985

    dry_run: bool = False

    @property
    def port(self) -> int:
        """Port the bootstrap protocol connects to."""
        return self.winrm_port if self.protocol == "winrm" else self.ssh_port


def build_bootstrap_config(config, instance, dry_run=False):
    """Derive BootstrapConfig from a ServerCreateConfig and the created instance.

    The instance's generated password is used for SSH unless a key pair was
    requested; sudo is used unless logging in as root.
    """
    params = BootstrapConfig(
        protocol=config.bootstrap_protocol,
        node_name=config.chef_node_name or instance.name,
        run_list=list(config.run_list),
        environment=config.environment,
        first_boot_attributes=dict(config.first_boot_attributes),
        prerelease=config.prerelease,
        bootstrap_version=config.bootstrap_version,
        distro=config.distro,
        template_file=config.template_file,
        bootstrap_proxy=config.bootstrap_proxy,
        chef_server_url=config.chef_server_url,
        validation_client_name=config.validation_client_name,
        validation_key=config.validation_key,
        secret=config.secret,
        secret_file=config.secret_file,
        encrypted_data_bag_secret=config.encrypted_data_bag_secret,
        encrypted_data_bag_secret_file=config.encrypted_data_bag_secret_file,
        dry_run=dry_run,
    )

    if config.bootstrap_protocol == "winrm":
        params.winrm_user = config.winrm_user or "Administrator"
        params.winrm_password = config.winrm_password
        params.winrm_transport = config.winrm_transport
        params.winrm_port = config.winrm_port
    else:
        params.ssh_user = config.ssh_user
        if not config.ssh_key_name:
            params.ssh_password = config.ssh_password or instance.password
        params.ssh_port = config.ssh_port
        params.identity_file = config.identity_file
        params.host_key_verify = config.host_key_verify
        params.use_sudo = config.ssh_user != "root"
    return params
