"""Server-create configuration: recognized options, config file, precedence.

Every option is a field of ServerCreateConfig with its default. Values come
from the command line first, then the ``server:`` section of the YAML config
file, then the field default. String values are run through the option's
parser in PARSERS; values already typed by YAML are taken as-is.
"""

import json
import logging
import os
import random
import re
import sys
from dataclasses import dataclass, field, fields, replace

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.stackboot/config.yaml"


@dataclass(frozen=True)
class ServerCreateConfig:
    """All options for one 'server create' run. Built once, never mutated."""

    # Server definition
    flavor: str | None = None
    image: str | None = None
    security_groups: list[str] = field(default_factory=lambda: ["default"])
    availability_zone: str | None = None
    metadata: dict = field(default_factory=dict)
    chef_node_name: str | None = None
    network_ids: list[str] | None = None
    ssh_key_name: str | None = None
    user_data: str | None = None
    server_create_timeout: int = 600

    # Networking
    floating_ip: str = "none"
    bootstrap_network: str = "public"
    network: bool = True
    private_network: bool = False
    ready_timeout: int | None = None

    # Bootstrap transport
    bootstrap_protocol: str = "ssh"
    ssh_user: str = "root"
    ssh_password: str | None = None
    ssh_port: int = 22
    identity_file: str | None = None
    host_key_verify: bool = True
    winrm_user: str = "Administrator"
    winrm_password: str | None = None
    winrm_port: int = 5985
    winrm_transport: str = "plaintext"
    kerberos_keytab_file: str | None = None

    # Chef bootstrap
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


# ── Parsers ───────────────────────────────────────────────────────


def parse_list(value):
    """'a,b,c' -> ['a', 'b', 'c']"""
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_run_list(value):
    """Split a run list on commas and/or whitespace."""
    return [item for item in re.split(r"[\s,]+", value) if item]


def parse_metadata(value):
    """Parse 'K=V' (or a list of them, as given by repeated --metadata) into a dict."""
    if isinstance(value, dict):
        return dict(value)
    items = [value] if isinstance(value, str) else value
    metadata = {}
    for item in items:
        key, _, val = item.partition("=")
        metadata[key] = val
    return metadata


def parse_json_attributes(value):
    return json.loads(value)


def read_user_data(path):
    """Read the user data file at *path*."""
    with open(os.path.expanduser(path)) as f:
        return f.read()


def parse_bool(value):
    return value.strip().lower() in ("1", "true", "yes", "on")


PARSERS = {
    "security_groups": parse_list,
    "network_ids": parse_list,
    "metadata": parse_metadata,
    "run_list": parse_run_list,
    "first_boot_attributes": parse_json_attributes,
    "user_data": read_user_data,
    "server_create_timeout": int,
    "ready_timeout": int,
    "ssh_port": int,
    "winrm_port": int,
    "network": parse_bool,
    "private_network": parse_bool,
    "host_key_verify": parse_bool,
    "prerelease": parse_bool,
}

# user_data is a file path in both sources; metadata arrives as a list from the CLI
_ALWAYS_PARSE = {"user_data", "metadata"}


def _parse(name, value):
    parser = PARSERS.get(name)
    if parser is None:
        return value
    if isinstance(value, str) or name in _ALWAYS_PARSE:
        return parser(value)
    return value


# ── Building ──────────────────────────────────────────────────────


def build_config(cli_values, file_values=None):
    """Build a ServerCreateConfig: CLI value, else config-file value, else default.

    Args:
        cli_values: option name -> value; None means "not given".
        file_values: the ``server:`` section of the config file.
    """
    file_values = file_values or {}
    known = {f.name for f in fields(ServerCreateConfig)}

    unknown = sorted(set(file_values) - known)
    if unknown:
        logger.warning(f"Ignoring unknown server options in config file: {', '.join(unknown)}")

    values = {}
    for name in known:
        for source in (cli_values, file_values):
            value = source.get(name)
            if value is not None:
                values[name] = _parse(name, value)
                break
    return ServerCreateConfig(**values)


def missing_required(config):
    """Names of required options that are unset."""
    return [name for name in ("flavor", "image") if getattr(config, name) is None]


def merge_winrm_credentials(config):
    """Adopt WinRM credentials into untouched SSH settings.

    Only applies when not bootstrapping over WinRM: an ssh field still at its
    default (or unset) takes the value of its explicitly set winrm sibling.

    Returns:
        A new ServerCreateConfig (the input is not modified).
    """
    if config.bootstrap_protocol == "winrm":
        return config

    defaults = ServerCreateConfig()
    changes = {}
    if config.ssh_user == defaults.ssh_user and config.winrm_user != defaults.winrm_user:
        changes["ssh_user"] = config.winrm_user
    if config.ssh_port == defaults.ssh_port and config.winrm_port != defaults.winrm_port:
        changes["ssh_port"] = config.winrm_port
    if config.ssh_password is None and config.winrm_password is not None:
        changes["ssh_password"] = config.winrm_password
    if config.identity_file is None and config.kerberos_keytab_file is not None:
        changes["identity_file"] = config.kerberos_keytab_file

    if changes:
        logger.debug(f"Using winrm values for ssh settings: {', '.join(sorted(changes))}")
    return replace(config, **changes)


def get_node_name(chef_node_name):
    """Return *chef_node_name*, or generate an 'os-<digits>' name if unset."""
    if chef_node_name is not None:
        return chef_node_name
    return f"os-{random.randrange(10**15, 10**16)}"


# ── Config file ───────────────────────────────────────────────────


def load_config_file(config_path=None):
    """Load the YAML config file.

    A missing file at the default location is not an error; a missing file
    that was asked for explicitly is.

    Returns:
        The parsed config dict ({} when there is no file).
    """
    explicit = config_path is not None
    path = os.path.expanduser(config_path or DEFAULT_CONFIG_PATH)
    if not explicit and not os.path.exists(path):
        return {}

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        logger.error(f"Error: Config file '{path}' not found.")
        sys.exit(1)
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML config: {e}")
        sys.exit(1)

    if config is None:
        return {}
    if not isinstance(config, dict):
        logger.error(f"Error: Config file '{path}' must contain a mapping.")
        sys.exit(1)
    return config


def warn_config_secret_key(file_values):
    """Warn when the data bag secret is set in the config file rather than per run."""
    if file_values.get("encrypted_data_bag_secret") is None:
        return
    logger.warning("* " * 40)
    logger.warning(
        "Specifying the encrypted data bag secret key using an 'encrypted_data_bag_secret'\n"
        "entry in the config file is deprecated. To distribute the secret key to all\n"
        "bootstrapped machines, set 'secret_file: /path/to/your/secret' instead, or pass\n"
        "'--secret' or '--secret-file' to select it per run."
    )
    logger.warning("* " * 40)
