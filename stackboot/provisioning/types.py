"""Shared data types for the provisioning workflow."""

import enum
from dataclasses import dataclass, field


class InstanceStatus(enum.Enum):
    """Lifecycle status of a provider-side instance."""

    BUILDING = "building"
    ACTIVE = "active"
    ERROR = "error"
    UNKNOWN = "unknown"

    @classmethod
    def from_provider(cls, status: str | None) -> "InstanceStatus":
        """Map an OpenStack server status (BUILD, ACTIVE, ERROR, ...) to an InstanceStatus."""
        mapping = {
            "BUILD": cls.BUILDING,
            "ACTIVE": cls.ACTIVE,
            "ERROR": cls.ERROR,
        }
        return mapping.get((status or "").upper(), cls.UNKNOWN)


@dataclass(frozen=True)
class ServerSpec:
    """Immutable create request for a single server."""

    name: str
    image_ref: str
    flavor_ref: str
    security_groups: tuple[str, ...] = ("default",)
    availability_zone: str | None = None
    metadata: dict = field(default_factory=dict)
    key_name: str | None = None
    user_data: str | None = None
    network_ids: tuple[str, ...] | None = None


@dataclass
class AddressRecord:
    """One address attached to an instance network."""

    addr: str
    version: int = 4
    fixed: bool = True


@dataclass
class Instance:
    """Local snapshot of a provider-side server.

    Only refreshed by an explicit Provider.get_instance() call.
    """

    id: str
    name: str
    status: InstanceStatus = InstanceStatus.UNKNOWN
    flavor_id: str | None = None
    image_id: str | None = None
    addresses: dict[str, list[AddressRecord]] = field(default_factory=dict)
    password: str | None = None
    key_name: str | None = None
    availability_zone: str | None = None


@dataclass(frozen=True)
class FloatingAddress:
    """A floating IP allocated to the project."""

    id: str
    ip: str
    fixed_ip: str | None = None

    @property
    def is_free(self) -> bool:
        """True if the address is not bound to any fixed address."""
        return self.fixed_ip is None


@dataclass(frozen=True)
class Flavor:
    id: str
    name: str


@dataclass(frozen=True)
class Image:
    id: str
    name: str


@dataclass(frozen=True)
class BootstrapTarget:
    """Address, port and protocol chosen for the bootstrap hand-off."""

    address: str
    port: int
    protocol: str = "ssh"


@dataclass
class ProvisioningResult:
    """Terminal outcome of a successful provisioning run."""

    instance: Instance
    target: BootstrapTarget
    exit_status: int
    node_name: str
    run_list: list[str] = field(default_factory=list)
    environment: str | None = None
    floating_address: FloatingAddress | None = None
