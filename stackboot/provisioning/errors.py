"""Exceptions raised by the provisioning workflow.

ValidationError covers pre-flight failures, ProvisionError covers the create
and status-poll steps, AllocationError covers floating address association.
FlavorNotFound and ProviderError belong to more than one family.
"""


class StackbootError(Exception):
    """Base class for all provisioning failures."""


class ValidationError(StackbootError):
    """A pre-flight check failed; nothing was created."""


class ProvisionError(StackbootError):
    """Creating the server or waiting for it failed."""


class AllocationError(StackbootError):
    """Associating a floating address failed."""


class FlavorNotFound(ValidationError, ProvisionError):
    def __init__(self, flavor):
        self.flavor = flavor
        super().__init__(f"Invalid flavor specified: {flavor}")


class ImageNotFound(ValidationError):
    def __init__(self, image):
        self.image = image
        super().__init__(f"No image matches '{image}'")


class FloatingAddressUnavailable(ValidationError):
    def __init__(self, requested):
        self.requested = requested
        super().__init__(f"Floating IP '{requested}' is invalid or none are available")


class InvalidRequest(ProvisionError):
    def __init__(self, message):
        self.message = message
        super().__init__(f"Bad request (400): {message}")


class ProviderError(ProvisionError, AllocationError):
    """Non-2xx response from the cloud API, surfaced unmodified."""

    def __init__(self, code, message):
        self.code = code
        self.message = message
        super().__init__(f"Provider error ({code}): {message}")


class ProvisionTimeout(ProvisionError):
    def __init__(self, timeout, last_status):
        self.timeout = timeout
        self.last_status = last_status
        last = getattr(last_status, "value", last_status)
        super().__init__(f"Timeout after {timeout}s waiting for server to become active (last: '{last}')")


class NoFreeAddress(AllocationError):
    def __init__(self):
        super().__init__("Unable to assign a floating IP from allocated IPs")


class AddressNotFound(AllocationError):
    def __init__(self, address):
        self.address = address
        super().__init__(f"Floating IP {address} is not allocated to this project")


class NoBootstrapAddress(StackbootError):
    def __init__(self, network=None):
        self.network = network
        super().__init__("No IP address available for bootstrapping")


class ReadinessTimeout(StackbootError):
    def __init__(self, host, port, timeout):
        self.host = host
        self.port = port
        self.timeout = timeout
        super().__init__(f"Timeout after {timeout}s waiting for {host}:{port} to accept connections")


class LocalFileError(ValidationError):
    """A file named by an option (validation key, secret, template) cannot be read."""

    def __init__(self, option, path, reason):
        self.option = option
        self.path = path
        super().__init__(f"Cannot read {option} '{path}': {reason}")
