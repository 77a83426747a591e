"""Configuration-management bootstrap: hand a ready server over to chef."""

from stackboot.bootstrap.params import BootstrapConfig, build_bootstrap_config
from stackboot.bootstrap.ssh import bootstrap_over_ssh
from stackboot.bootstrap.winrm import bootstrap_over_winrm


async def run_bootstrap(address, params):
    """Bootstrap the server at *address*; returns the bootstrap exit status."""
    if params.protocol == "winrm":
        return await bootstrap_over_winrm(address, params)
    return await bootstrap_over_ssh(address, params)


__all__ = [
    "BootstrapConfig",
    "build_bootstrap_config",
    "bootstrap_over_ssh",
    "bootstrap_over_winrm",
    "run_bootstrap",
]
