"""Abstract cloud provider interface consumed by the provisioning workflow."""

from abc import ABC, abstractmethod

from stackboot.provisioning.types import FloatingAddress, Flavor, Image, Instance, ServerSpec


class Provider(ABC):
    """Cloud API operations the provisioner needs.

    Every method returns plain value snapshots. Implementations raise
    ProviderError for API failures and must tolerate concurrent use by
    independent provisioning runs.
    """

    @abstractmethod
    async def create_instance(self, spec: ServerSpec) -> Instance: ...

    @abstractmethod
    async def get_instance(self, instance_id: str) -> Instance: ...

    @abstractmethod
    async def list_flavors(self) -> list[Flavor]: ...

    @abstractmethod
    async def list_images(self) -> list[Image]: ...

    @abstractmethod
    async def list_floating_addresses(self) -> list[FloatingAddress]: ...

    @abstractmethod
    async def associate_floating_address(self, instance_id: str, ip: str) -> None: ...

    @abstractmethod
    async def delete_instance(self, instance_id: str) -> None: ...
