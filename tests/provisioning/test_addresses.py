"""Unit tests for bootstrap address selection."""

from stackboot.provisioning.addresses import (
    ANY,
    PRIVATE,
    PUBLIC,
    Named,
    first_available_address,
    primary_network_ip_address,
    primary_private_ip_address,
    primary_public_ip_address,
    resolve,
)
from stackboot.provisioning.types import AddressRecord


def _addresses(**networks):
    return {name: [AddressRecord(ip) for ip in ips] for name, ips in networks.items()}


# ── resolve ─────────────────────────────────────────────────────────


def test_resolve_public_first_address():
    addresses = _addresses(public=["198.51.100.7", "198.51.100.8"], private=["10.0.0.2"])
    assert resolve(addresses, PUBLIC) == "198.51.100.7"


def test_resolve_private():
    addresses = _addresses(public=["198.51.100.7"], private=["10.0.0.2"])
    assert resolve(addresses, PRIVATE) == "10.0.0.2"


def test_resolve_named_network():
    addresses = _addresses(tenant_net=["192.168.5.10"])
    assert resolve(addresses, Named("tenant_net")) == "192.168.5.10"
    assert primary_network_ip_address(addresses, "tenant_net") == "192.168.5.10"


def test_resolve_missing_network_is_none():
    addresses = _addresses(private=["10.0.0.2"])
    assert resolve(addresses, PUBLIC) is None
    assert primary_public_ip_address(addresses) is None


def test_resolve_empty_list_is_none():
    assert resolve({"public": []}, PUBLIC) is None


def test_resolve_empty_mapping():
    assert resolve({}, ANY) is None
    assert resolve({}, PUBLIC) is None


def test_resolve_any_uses_provider_order():
    """ANY is the first address of the first network, without sorting."""
    addresses = _addresses(zeta=["172.16.0.9"], alpha=["172.16.0.1"])
    assert resolve(addresses, ANY) == "172.16.0.9"


def test_resolve_does_not_sort_addresses():
    addresses = _addresses(private=["10.0.0.9", "10.0.0.1"])
    assert primary_private_ip_address(addresses) == "10.0.0.9"


# ── first_available_address ─────────────────────────────────────────


def test_first_available_prefers_public():
    addresses = _addresses(private=["10.0.0.2"], public=["198.51.100.7"])
    assert first_available_address(addresses) == "198.51.100.7"


def test_first_available_falls_back_to_private():
    addresses = _addresses(other=["172.16.0.9"], private=["10.0.0.2"])
    assert first_available_address(addresses) == "10.0.0.2"


def test_first_available_falls_back_to_any():
    addresses = _addresses(other=["172.16.0.9"])
    assert first_available_address(addresses) == "172.16.0.9"


def test_first_available_nothing():
    assert first_available_address({}) is None
