"""Chef bootstrap over SSH.

Stages client.rb, first-boot.json, keys, ohai hints and an install script in
a temporary directory on the server, then runs the script (with sudo unless
logged in as root). The script installs chef-client if it is missing, moves
the staged files into /etc/chef and runs the first chef-client converge.
"""

import json
import logging
import os
import shlex

from stackboot.bootstrap.ssh_transport import SSHConnection, make_run_cmd, make_write_file

logger = logging.getLogger(__name__)

REMOTE_STAGING_DIR = "/tmp/stackboot-bootstrap"
CHEF_INSTALL_URL = "https://omnitruck.chef.io/install.sh"
BOOTSTRAP_TIMEOUT = 3600


def _read(path):
    with open(os.path.expanduser(path)) as f:
        return f.read()


def load_secret(params):
    """Resolve the data bag secret: --secret, --secret-file, then the config-file values."""
    if params.secret:
        return params.secret
    if params.secret_file:
        return _read(params.secret_file).strip()
    if params.encrypted_data_bag_secret:
        return params.encrypted_data_bag_secret
    if params.encrypted_data_bag_secret_file:
        return _read(params.encrypted_data_bag_secret_file).strip()
    return None


def render_client_rb(params, has_secret=False):
    lines = ["log_location     STDOUT"]
    if params.chef_server_url:
        lines.append(f'chef_server_url  "{params.chef_server_url}"')
    lines.append(f'validation_client_name "{params.validation_client_name}"')
    lines.append(f'node_name "{params.node_name}"')
    if params.bootstrap_proxy:
        lines.append(f'http_proxy "{params.bootstrap_proxy}"')
        lines.append(f'https_proxy "{params.bootstrap_proxy}"')
    if has_secret:
        lines.append('encrypted_data_bag_secret "/etc/chef/encrypted_data_bag_secret"')
    return "\n".join(lines) + "\n"


def render_first_boot(params):
    """first-boot.json: the first-boot attributes plus the run list."""
    attributes = dict(params.first_boot_attributes)
    attributes["run_list"] = list(params.run_list)
    return json.dumps(attributes, indent=2) + "\n"


def _install_args(params):
    args = []
    if params.bootstrap_version:
        args += ["-v", params.bootstrap_version]
    if params.prerelease:
        args += ["-p"]
    return " ".join(shlex.quote(a) for a in args)


def render_bootstrap_script(params):
    """The chef-full install-and-converge script."""
    staging = REMOTE_STAGING_DIR
    chef_client = "chef-client -j /etc/chef/first-boot.json"
    if params.environment:
        chef_client += f" -E {shlex.quote(params.environment)}"

    lines = ["#!/bin/bash", "set -e", ""]
    if params.bootstrap_proxy:
        proxy = shlex.quote(params.bootstrap_proxy)
        lines += [f"export http_proxy={proxy}", f"export https_proxy={proxy}", ""]
    lines += [
        "if ! command -v chef-client >/dev/null 2>&1; then",
        f"  curl -fsSL {CHEF_INSTALL_URL} | bash -s -- {_install_args(params)}".rstrip(),
        "fi",
        "",
        "mkdir -p /etc/chef/ohai/hints",
        f"cp {staging}/client.rb /etc/chef/client.rb",
        f"cp {staging}/first-boot.json /etc/chef/first-boot.json",
        f"if [ -f {staging}/validation.pem ]; then",
        f"  install -m 0600 {staging}/validation.pem /etc/chef/validation.pem",
        "fi",
        f"if [ -f {staging}/encrypted_data_bag_secret ]; then",
        f"  install -m 0600 {staging}/encrypted_data_bag_secret /etc/chef/encrypted_data_bag_secret",
        "fi",
        f"for hint in {staging}/hints/*.json; do",
        '  [ -e "$hint" ] && cp "$hint" /etc/chef/ohai/hints/',
        "done",
        "",
        chef_client,
    ]
    return "\n".join(lines) + "\n"


def bootstrap_files(params):
    """Map of staging-relative path -> content for everything the script needs."""
    secret = load_secret(params)
    files = {
        "client.rb": render_client_rb(params, has_secret=secret is not None),
        "first-boot.json": render_first_boot(params),
    }
    if params.validation_key:
        files["validation.pem"] = _read(params.validation_key)
    if secret is not None:
        files["encrypted_data_bag_secret"] = secret
    for name, hint in params.hints.items():
        files[f"hints/{name}.json"] = json.dumps(hint)
    if params.template_file:
        files["bootstrap.sh"] = _read(params.template_file)
    else:
        files["bootstrap.sh"] = render_bootstrap_script(params)
    return files


async def _stage_and_run(params, run_cmd, write_file, sudo):
    try:
        files = bootstrap_files(params)
    except OSError as e:
        logger.error(f"Cannot read bootstrap input {e.filename}: {e.strerror}")
        return 1

    for path, content in files.items():
        if not await write_file(path, content):
            return 1

    rc, _, _ = await run_cmd(
        f"{sudo}bash {REMOTE_STAGING_DIR}/bootstrap.sh",
        timeout=BOOTSTRAP_TIMEOUT,
        log_output=True,
    )
    return rc


async def bootstrap_over_ssh(address, params):
    """Bootstrap the server at *address* with chef over SSH.

    Returns:
        Exit status of the bootstrap script (the chef-client run).
    """
    conn = SSHConnection(
        host=address,
        username=params.ssh_user,
        port=params.ssh_port,
        identity_file=params.identity_file,
        password=params.ssh_password,
        host_key_verify=params.host_key_verify,
    )
    logger.info(f"Bootstrapping {params.node_name} at {conn.address} (distro: {params.distro})...")

    run_cmd = make_run_cmd(conn, dry_run=params.dry_run)
    write_file = make_write_file(conn, REMOTE_STAGING_DIR, dry_run=params.dry_run)

    rc, _, _ = await run_cmd(f"umask 077 && mkdir -p {REMOTE_STAGING_DIR}/hints", stream=False)
    if rc != 0:
        logger.error(f"Failed to create {REMOTE_STAGING_DIR} on {conn.address}")
        return rc

    sudo = "sudo " if params.use_sudo else ""
    try:
        rc = await _stage_and_run(params, run_cmd, write_file, sudo)
    finally:
        # Staging holds the validation key and data bag secret
        await run_cmd(f"{sudo}rm -rf {REMOTE_STAGING_DIR}", stream=False)

    if rc != 0:
        logger.error(f"Bootstrap of {params.node_name} failed (exit status {rc})")
    return rc
