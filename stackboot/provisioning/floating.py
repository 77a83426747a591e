"""Floating IP selection and association."""

import logging

from stackboot.provisioning.errors import AddressNotFound, NoFreeAddress

logger = logging.getLogger(__name__)

NO_FLOATING_IP = "none"
AUTO_FLOATING_IP = "auto"


def find_free_address(addresses):
    """Return the first unbound FloatingAddress in provider order, or None."""
    for address in addresses:
        if address.is_free:
            return address
    return None


def find_address(addresses, ip):
    for address in addresses:
        if address.ip == ip:
            return address
    return None


async def allocate_floating_address(provider, instance_id, requested=None):
    """Pick a floating IP and associate it with *instance_id*.

    The provider's list is queried fresh on every call: the address checked
    during validation may have been taken since.

    Args:
        requested: a specific IP, or None to use the first free one.

    Returns:
        The FloatingAddress that was associated.

    Raises:
        NoFreeAddress, AddressNotFound, or the provider's ProviderError.
    """
    addresses = await provider.list_floating_addresses()

    if requested is None:
        address = find_free_address(addresses)
        if address is None:
            raise NoFreeAddress()
    else:
        address = find_address(addresses, requested)
        if address is None:
            raise AddressNotFound(requested)

    logger.debug(f"Associating floating IP {address.ip} with instance {instance_id}")
    await provider.associate_floating_address(instance_id, address.ip)
    return address
