"""Server provisioning: validate, create, wait for ACTIVE, attach a floating IP,
wait for the bootstrap port, then hand the server to chef.

Nothing is rolled back on failure. A server that was created stays running
and the caller decides whether to delete it.
"""

import asyncio
import logging
import re
import time

from stackboot.bootstrap import build_bootstrap_config, run_bootstrap
from stackboot.config import get_node_name, merge_winrm_credentials
from stackboot.provisioning.addresses import (
    PRIVATE_NETWORK,
    PUBLIC_NETWORK,
    first_available_address,
    primary_network_ip_address,
    primary_private_ip_address,
    primary_public_ip_address,
)
from stackboot.provisioning.errors import FlavorNotFound, InvalidRequest, NoBootstrapAddress, ProviderError, ProvisionTimeout
from stackboot.provisioning.floating import AUTO_FLOATING_IP, NO_FLOATING_IP, allocate_floating_address
from stackboot.provisioning.probe import wait_until_ready
from stackboot.provisioning.types import (
    AddressRecord,
    BootstrapTarget,
    InstanceStatus,
    ProvisioningResult,
    ServerSpec,
)
from stackboot.provisioning.validation import check_local_files, validate

logger = logging.getLogger(__name__)

STATUS_POLL_INTERVAL = 5
INITIAL_SLEEP_DELAY = 10

_INVALID_FLAVOR = re.compile(r"Invalid flavorRef")


def msg_pair(label, value):
    logger.info(f"{label}: {value}")


def build_server_spec(config, flavor, image, name):
    """Server definition from the run config and the validated flavor and image."""
    return ServerSpec(
        name=name,
        image_ref=image.id,
        flavor_ref=flavor.id,
        security_groups=tuple(config.security_groups),
        availability_zone=config.availability_zone,
        metadata=dict(config.metadata),
        key_name=config.ssh_key_name,
        user_data=config.user_data,
        network_ids=tuple(config.network_ids) if config.network_ids else None,
    )


async def create_server(provider, spec):
    """Submit *spec*, classifying 400 responses.

    Raises:
        FlavorNotFound: the provider rejected the flavor reference.
        InvalidRequest: any other 400.
        ProviderError: any other error code, unmodified.
    """
    try:
        return await provider.create_instance(spec)
    except ProviderError as e:
        if e.code != 400:
            raise
        if _INVALID_FLAVOR.search(e.message or ""):
            raise FlavorNotFound(spec.flavor_ref) from e
        raise InvalidRequest(e.message) from e


async def wait_for_active(provider, instance_id, timeout=600, interval=STATUS_POLL_INTERVAL):
    """Poll the instance every *interval* seconds until it is ACTIVE.

    Gives up once the summed poll intervals or the wall-clock time spent
    (slow API responses included) reach *timeout*.

    Returns:
        The ACTIVE Instance snapshot.

    Raises:
        ProvisionTimeout: with the last observed status, after *timeout* seconds.
    """
    started = time.monotonic()
    elapsed = 0
    status = None
    while elapsed < timeout and time.monotonic() - started < timeout:
        instance = await provider.get_instance(instance_id)
        status = instance.status
        if status is InstanceStatus.ACTIVE:
            return instance
        if status is InstanceStatus.ERROR:
            logger.warning(f"Instance {instance_id} reports status '{status.value}', still waiting...")
        else:
            logger.debug(f"Instance {instance_id} status: {status.value}")
        await asyncio.sleep(interval)
        elapsed += interval

    raise ProvisionTimeout(timeout, status)


def attach_floating_address(instance, ip):
    """Record *ip* on the local snapshot's public network without reloading from the provider."""
    instance.addresses.setdefault(PUBLIC_NETWORK, []).append(AddressRecord(addr=ip, version=4, fixed=False))


def select_bootstrap_address(instance, config):
    """Pick the address to bootstrap over.

    Raises:
        NoBootstrapAddress: if the chosen network has no address.
    """
    network = PRIVATE_NETWORK if config.private_network else config.bootstrap_network

    if not config.network:
        address = first_available_address(instance.addresses)
        logger.debug(f"No bootstrap network, using first available address: {address}")
    else:
        address = primary_network_ip_address(instance.addresses, network)
        logger.debug(f"Bootstrap network: {network}")

    if address is None:
        raise NoBootstrapAddress(network)
    return address


def _log_instance(instance, config):
    msg_pair("Flavor", instance.flavor_id)
    msg_pair("Image", instance.image_id)
    if config.identity_file:
        msg_pair("SSH Identity File", config.identity_file)
    if instance.key_name:
        msg_pair("SSH Keypair", instance.key_name)
    elif instance.password:
        msg_pair("SSH Password", instance.password)

    public_ip = primary_public_ip_address(instance.addresses)
    if public_ip:
        msg_pair("Public IP Address", public_ip)
    private_ip = primary_private_ip_address(instance.addresses)
    if private_ip:
        msg_pair("Private IP Address", private_ip)


async def provision(
    config,
    provider,
    bootstrap=run_bootstrap,
    status_interval=STATUS_POLL_INTERVAL,
    initial_sleep_delay=INITIAL_SLEEP_DELAY,
    dry_run_bootstrap=False,
):
    """Create a server and bootstrap it.

    Args:
        config: ServerCreateConfig for this run.
        provider: Provider to create the server with.
        bootstrap: async callable(address, BootstrapConfig) -> exit status.
        status_interval: seconds between status polls.
        initial_sleep_delay: seconds to wait after sshd first answers.
        dry_run_bootstrap: log the bootstrap commands instead of running them.

    Returns:
        ProvisioningResult; its exit_status is the bootstrap's, unmodified.

    Raises:
        ValidationError before anything is created; ProvisionError,
        AllocationError, NoBootstrapAddress or ReadinessTimeout after.
    """
    config = merge_winrm_credentials(config)

    check_local_files(config)
    flavor, image = await validate(config, provider)

    node_name = get_node_name(config.chef_node_name)
    spec = build_server_spec(config, flavor, image, node_name)
    logger.debug(f"Creating server {spec.name} (image={spec.image_ref} flavor={spec.flavor_ref})")

    created = await create_server(provider, spec)
    msg_pair("Instance Name", created.name)
    msg_pair("Instance ID", created.id)
    if spec.availability_zone:
        msg_pair("Availability zone", spec.availability_zone)

    logger.info(f"Waiting for server (timeout: {config.server_create_timeout}s)...")
    instance = await wait_for_active(provider, created.id, config.server_create_timeout, status_interval)
    if instance.password is None:
        # Only the create response carries the generated admin password
        instance.password = created.password
    _log_instance(instance, config)

    floating = None
    if config.floating_ip != NO_FLOATING_IP:
        requested = None if config.floating_ip == AUTO_FLOATING_IP else config.floating_ip
        floating = await allocate_floating_address(provider, instance.id, requested)
        attach_floating_address(instance, floating.ip)
        msg_pair("Floating IP Address", floating.ip)

    address = select_bootstrap_address(instance, config)
    logger.debug(f"Bootstrap IP Address: {address}")

    params = build_bootstrap_config(config, instance, dry_run=dry_run_bootstrap)
    target = BootstrapTarget(address=address, port=params.port, protocol=params.protocol)

    await wait_until_ready(
        target.address,
        target.port,
        target.protocol,
        timeout=config.ready_timeout,
        initial_sleep_delay=initial_sleep_delay,
    )

    exit_status = await bootstrap(target.address, params)

    return ProvisioningResult(
        instance=instance,
        target=target,
        exit_status=exit_status,
        node_name=params.node_name,
        run_list=list(params.run_list),
        environment=params.environment,
        floating_address=floating,
    )
