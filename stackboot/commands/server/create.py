"""'server create' CLI handler: provision an OpenStack server and bootstrap it with chef."""

import argparse
import asyncio
import logging
import os
import sys

import httpx

from stackboot.config import build_config, load_config_file, missing_required, warn_config_secret_key
from stackboot.provisioning.errors import StackbootError
from stackboot.provisioning.openstack import OpenStackCredentials, OpenStackProvider
from stackboot.provisioning.provisioner import msg_pair, provision
from stackboot.redact import register_secret

logger = logging.getLogger(__name__)

# option name -> environment variable used when the flag is not given
_ENV_FALLBACKS = {
    "ssh_password": "STACKBOOT_SSH_PASSWORD",
    "winrm_password": "STACKBOOT_WINRM_PASSWORD",
}


def _cli_values(args):
    values = dict(vars(args))
    for name, env_var in _ENV_FALLBACKS.items():
        if values.get(name) is None and os.environ.get(env_var):
            values[name] = os.environ[env_var]
    return values


def _log_summary(result):
    instance = result.instance
    logger.info("")
    msg_pair("Instance Name", instance.name)
    msg_pair("Instance ID", instance.id)
    msg_pair("Flavor", instance.flavor_id)
    msg_pair("Image", instance.image_id)
    if instance.key_name:
        msg_pair("SSH Keypair", instance.key_name)
    elif instance.password:
        msg_pair("SSH Password", instance.password)
    for network, records in instance.addresses.items():
        if records:
            msg_pair("Network", network)
            msg_pair("  IP Address", records[0].addr)
    msg_pair("Environment", result.environment or "_default")
    msg_pair("Run List", ", ".join(result.run_list))


# ── CLI handler ────────────────────────────────────────────────────


def handle_create(args):
    """CLI handler for 'server create'."""
    asyncio.run(_handle_create(args))


async def _handle_create(args):
    file_config = load_config_file(args.config)
    server_defaults = file_config.get("server") or {}
    warn_config_secret_key(server_defaults)

    try:
        config = build_config(_cli_values(args), server_defaults)
    except (ValueError, OSError) as e:
        logger.error(f"Error: invalid option value: {e}")
        sys.exit(1)

    missing = missing_required(config)
    if missing:
        flags = ", ".join(f"--{name}" for name in missing)
        logger.error(f"Error: you have not provided {flags}.")
        sys.exit(1)

    try:
        credentials = OpenStackCredentials.from_dict(file_config.get("openstack") or {})
    except ValueError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)

    for secret in (credentials.password, config.ssh_password, config.winrm_password, config.secret):
        if secret:
            register_secret(secret)

    provider = OpenStackProvider(credentials)
    try:
        result = await provision(config, provider, dry_run_bootstrap=args.dry_run_bootstrap)
    except StackbootError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
    except httpx.HTTPError as e:
        logger.error(f"Error: request to OpenStack failed: {e}")
        sys.exit(1)

    _log_summary(result)
    if result.exit_status != 0:
        sys.exit(result.exit_status)


# ── Registration ───────────────────────────────────────────────────


def register_create_target(subparsers):
    """Register 'server create'.

    Every option defaults to None so that config-file values apply when a
    flag is not given.
    """
    parser = subparsers.add_parser("create", help="Create an OpenStack server and bootstrap it with chef")
    parser.add_argument("--config", default=None, help="YAML config file (default: ~/.stackboot/config.yaml)")

    server = parser.add_argument_group("server")
    server.add_argument("-f", "--flavor", help="Flavor name or ID of the server (m1.small, m1.medium, etc)")
    server.add_argument("-I", "--image", help="A regexp matching an image name, or an image ID")
    server.add_argument("-G", "--groups", dest="security_groups", help="Comma-separated security groups (default: default)")
    server.add_argument("-Z", "--availability-zone", help="Availability zone for the server")
    server.add_argument("-M", "--metadata", action="append", help="Metadata K=V for the server (repeatable)")
    server.add_argument("-N", "--node-name", dest="chef_node_name", help="Chef node name (default: generated os-<digits>)")
    server.add_argument("--network-ids", help="Comma-separated UUIDs of networks to attach")
    server.add_argument("-S", "--ssh-key", dest="ssh_key_name", help="OpenStack SSH key pair name")
    server.add_argument("--user-data", help="File containing user data for the server")
    server.add_argument("--server-create-timeout", type=int, help="Seconds to wait for ACTIVE status (default: 600)")

    network = parser.add_argument_group("network")
    network.add_argument(
        "-a",
        "--floating-ip",
        nargs="?",
        const="auto",
        help="Associate a floating IP allocated to the project; a specific IP is optional",
    )
    network.add_argument("--bootstrap-network", help="Network to bootstrap over (default: public)")
    network.add_argument(
        "--no-network",
        dest="network",
        action="store_false",
        default=None,
        help="Bootstrap over the first available address: public, private, then any network",
    )
    network.add_argument(
        "--private-network",
        action="store_true",
        default=None,
        help="Bootstrap over the private IP rather than the public IP",
    )
    network.add_argument("--ready-timeout", type=int, help="Give up waiting for sshd/winrm after this many seconds (default: wait forever)")

    transport = parser.add_argument_group("bootstrap transport")
    transport.add_argument("--bootstrap-protocol", choices=["ssh", "winrm"], help="Bootstrap protocol (default: ssh)")
    transport.add_argument("-x", "--ssh-user", help="SSH user (default: root)")
    transport.add_argument("-P", "--ssh-password", help="SSH password (fallback: STACKBOOT_SSH_PASSWORD env var)")
    transport.add_argument("-p", "--ssh-port", type=int, help="SSH port (default: 22)")
    transport.add_argument("-i", "--identity-file", help="SSH identity file used for authentication")
    transport.add_argument(
        "--host-key-verify",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Verify the server's host key (default: verify)",
    )
    transport.add_argument("--winrm-user", help="WinRM user (default: Administrator)")
    transport.add_argument("--winrm-password", help="WinRM password (fallback: STACKBOOT_WINRM_PASSWORD env var)")
    transport.add_argument("--winrm-port", type=int, help="WinRM port (default: 5985)")
    transport.add_argument("--winrm-transport", help="WinRM transport (default: plaintext)")
    transport.add_argument("--kerberos-keytab-file", help="Kerberos keytab file")

    chef = parser.add_argument_group("chef")
    chef.add_argument("-r", "--run-list", help="Comma-separated list of roles/recipes to apply")
    chef.add_argument("-E", "--environment", help="Chef environment for the node")
    chef.add_argument("-j", "--json-attributes", dest="first_boot_attributes", help="JSON attributes for the first chef-client run")
    chef.add_argument("--server-url", dest="chef_server_url", help="Chef server URL")
    chef.add_argument("--validation-key", help="Path to the chef validation key")
    chef.add_argument("--validation-client-name", help="Chef validation client name (default: chef-validator)")
    chef.add_argument("--prerelease", action="store_true", default=None, help="Install pre-release chef")
    chef.add_argument("--bootstrap-version", help="Version of chef to install")
    chef.add_argument("-d", "--distro", help="Bootstrap distro (default: chef-full)")
    chef.add_argument("--template-file", help="Bootstrap script to run instead of the built-in one")
    chef.add_argument("--bootstrap-proxy", help="Proxy server for the node being bootstrapped")
    chef.add_argument("--secret", help="Secret key used to encrypt data bag item values")
    chef.add_argument("--secret-file", help="File containing the data bag secret key")

    parser.add_argument("--dry-run-bootstrap", action="store_true", help="Create the server but only log the bootstrap commands")
    parser.set_defaults(func=handle_create)
