"""Server provisioning: types, validation, floating IPs, readiness probing, providers."""

from stackboot.provisioning.addresses import ANY, PRIVATE, PUBLIC, Named, resolve
from stackboot.provisioning.floating import allocate_floating_address
from stackboot.provisioning.openstack import OpenStackCredentials, OpenStackProvider
from stackboot.provisioning.probe import probe, wait_until_ready
from stackboot.provisioning.provider import Provider
from stackboot.provisioning.provisioner import provision, wait_for_active
from stackboot.provisioning.types import (
    AddressRecord,
    BootstrapTarget,
    FloatingAddress,
    Instance,
    InstanceStatus,
    ProvisioningResult,
    ServerSpec,
)
from stackboot.provisioning.validation import validate

__all__ = [
    "ANY",
    "PRIVATE",
    "PUBLIC",
    "Named",
    "resolve",
    "allocate_floating_address",
    "OpenStackCredentials",
    "OpenStackProvider",
    "probe",
    "wait_until_ready",
    "Provider",
    "provision",
    "wait_for_active",
    "AddressRecord",
    "BootstrapTarget",
    "FloatingAddress",
    "Instance",
    "InstanceStatus",
    "ProvisioningResult",
    "ServerSpec",
    "validate",
]
