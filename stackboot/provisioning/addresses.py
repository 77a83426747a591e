"""Bootstrap address selection from an instance's network address mapping.

The mapping is network name -> ordered list of AddressRecord, in the order the
provider returned it. Nothing here sorts; "first" always means provider order.
"""

from dataclasses import dataclass

PUBLIC_NETWORK = "public"
PRIVATE_NETWORK = "private"


@dataclass(frozen=True)
class Named:
    """Select the first address of the network with this exact name."""

    name: str


class _Any:
    def __repr__(self):
        return "ANY"


PUBLIC = Named(PUBLIC_NETWORK)
PRIVATE = Named(PRIVATE_NETWORK)
ANY = _Any()


def resolve(addresses, selector):
    """Return the first address of the network picked by *selector*, or None.

    Args:
        addresses: mapping of network name to list of AddressRecord.
        selector: PUBLIC, PRIVATE, ANY or Named(name).
    """
    if not addresses:
        return None

    if selector is ANY:
        records = next(iter(addresses.values()))
    else:
        records = addresses.get(selector.name)

    if not records:
        return None
    return records[0].addr


def primary_public_ip_address(addresses):
    return resolve(addresses, PUBLIC)


def primary_private_ip_address(addresses):
    return resolve(addresses, PRIVATE)


def primary_network_ip_address(addresses, network_name):
    return resolve(addresses, Named(network_name))


def first_available_address(addresses):
    """Public, then private, then the first address of the first network."""
    return primary_public_ip_address(addresses) or primary_private_ip_address(addresses) or resolve(addresses, ANY)
