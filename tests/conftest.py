"""Shared pytest fixtures for all test modules."""

import os
import subprocess
import sys

import pytest

from stackboot.provisioning.provider import Provider
from stackboot.provisioning.types import AddressRecord, FloatingAddress, Flavor, Image, Instance, InstanceStatus

PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))


@pytest.fixture(scope="session")
def project_root():
    """Absolute path to the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def run_cli(project_root):
    """Return a callable that invokes the stackboot CLI as a subprocess."""

    def _run(*args, env=None):
        result = subprocess.run(
            [sys.executable, "-m", "stackboot.stackboot", *args],
            capture_output=True,
            text=True,
            cwd=project_root,
            env=env,
        )
        return result.returncode, result.stdout, result.stderr

    return _run


# ── Fake provider ───────────────────────────────────────────────────


class FakeProvider(Provider):
    """In-memory Provider that records every call.

    get_instance() walks through *statuses*, repeating the last one.
    """

    def __init__(
        self,
        flavors=None,
        images=None,
        floating=None,
        statuses=None,
        addresses=None,
        password="generated-pass-1234",
        create_error=None,
    ):
        self.flavors = flavors if flavors is not None else [Flavor("1", "m1.small"), Flavor("2", "m1.medium")]
        self.images = images if images is not None else [Image("img-1", "centos-7"), Image("img-2", "ubuntu-22.04")]
        self.floating = floating if floating is not None else []
        self.statuses = list(statuses or [InstanceStatus.ACTIVE])
        self.addresses = addresses if addresses is not None else {"private": [AddressRecord("10.0.0.5")]}
        self.password = password
        self.create_error = create_error
        self.calls = []
        self.created = []
        self.associated = []

    async def create_instance(self, spec):
        self.calls.append("create_instance")
        if self.create_error is not None:
            raise self.create_error
        self.created.append(spec)
        return Instance(
            id="srv-1",
            name=spec.name,
            status=InstanceStatus.BUILDING,
            password=self.password,
            key_name=spec.key_name,
        )

    async def get_instance(self, instance_id):
        self.calls.append("get_instance")
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return Instance(
            id=instance_id,
            name=self.created[-1].name if self.created else "srv",
            status=status,
            flavor_id="1",
            image_id="img-2",
            addresses={network: list(records) for network, records in self.addresses.items()},
        )

    async def list_flavors(self):
        self.calls.append("list_flavors")
        return list(self.flavors)

    async def list_images(self):
        self.calls.append("list_images")
        return list(self.images)

    async def list_floating_addresses(self):
        self.calls.append("list_floating_addresses")
        return list(self.floating)

    async def associate_floating_address(self, instance_id, ip):
        self.calls.append("associate_floating_address")
        self.associated.append((instance_id, ip))

    async def delete_instance(self, instance_id):
        self.calls.append("delete_instance")


@pytest.fixture
def fake_provider():
    """Return a factory for FakeProvider instances."""
    return FakeProvider


@pytest.fixture
def free_floating():
    """One bound and one free floating address, in that order."""
    return [
        FloatingAddress("fip-1", "203.0.113.4", fixed_ip="10.0.0.9"),
        FloatingAddress("fip-2", "203.0.113.5"),
    ]
