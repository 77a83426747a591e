"""Chef bootstrap for Windows servers over WinRM, via knife-windows."""

import json
import logging

from stackboot.bootstrap.shell import run_shell_cmd

logger = logging.getLogger(__name__)


def _secret_option(params):
    """Data bag secret flag: --secret, --secret-file, then the config-file values, first set wins."""
    for flag, value in (
        ("--secret", params.secret),
        ("--secret-file", params.secret_file),
        ("--secret", params.encrypted_data_bag_secret),
        ("--secret-file", params.encrypted_data_bag_secret_file),
    ):
        if value:
            return [flag, value]
    return []


def knife_winrm_cmd(address, params):
    """Build the ``knife bootstrap windows winrm`` command for *address*."""
    cmd = [
        "knife",
        "bootstrap",
        "windows",
        "winrm",
        address,
        "--winrm-user",
        params.winrm_user,
        "--winrm-port",
        str(params.winrm_port),
        "--winrm-transport",
        params.winrm_transport,
        "--node-name",
        params.node_name,
        "--distro",
        params.distro,
    ]
    if params.winrm_password:
        cmd.extend(["--winrm-password", params.winrm_password])
    if params.run_list:
        cmd.extend(["--run-list", ",".join(params.run_list)])
    if params.environment:
        cmd.extend(["--environment", params.environment])
    if params.first_boot_attributes:
        cmd.extend(["--json-attributes", json.dumps(params.first_boot_attributes)])
    if params.bootstrap_version:
        cmd.extend(["--bootstrap-version", params.bootstrap_version])
    if params.prerelease:
        cmd.append("--prerelease")
    if params.template_file:
        cmd.extend(["--template-file", params.template_file])
    if params.bootstrap_proxy:
        cmd.extend(["--bootstrap-proxy", params.bootstrap_proxy])
    if params.chef_server_url:
        cmd.extend(["--server-url", params.chef_server_url])
    cmd.extend(_secret_option(params))
    for hint in params.hints:
        cmd.extend(["--hint", hint])
    return cmd


async def bootstrap_over_winrm(address, params):
    """Bootstrap the Windows server at *address*.

    Returns:
        Exit status of knife.
    """
    logger.info(f"Bootstrapping {params.node_name} at {address} over WinRM...")
    rc, stdout, stderr = await run_shell_cmd(knife_winrm_cmd(address, params), dry_run=params.dry_run)
    for line in stdout.splitlines():
        logger.info(f"{address} {line}")
    if rc != 0:
        logger.error(f"knife bootstrap windows winrm failed (exit status {rc}): {stderr.strip()}")
    return rc
