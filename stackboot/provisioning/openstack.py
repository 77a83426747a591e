"""OpenStack provider: servers, flavors, images and floating IPs via the REST APIs.

Authenticates against Keystone v3 with a password, then talks to Nova
(compute), Glance (image) and Neutron (network) at the endpoints from the
token's service catalog.
"""

import asyncio
import base64
import logging
import os
from dataclasses import dataclass

import httpx

from stackboot.provisioning.errors import ProviderError
from stackboot.provisioning.provider import Provider
from stackboot.provisioning.types import AddressRecord, FloatingAddress, Flavor, Image, Instance, InstanceStatus

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 60

# config key -> environment variable fallback
_CREDENTIAL_ENV_VARS = {
    "auth_url": "OS_AUTH_URL",
    "username": "OS_USERNAME",
    "password": "OS_PASSWORD",
    "project_name": "OS_PROJECT_NAME",
    "user_domain_name": "OS_USER_DOMAIN_NAME",
    "project_domain_name": "OS_PROJECT_DOMAIN_NAME",
    "region": "OS_REGION_NAME",
    "endpoint_type": "OS_INTERFACE",
}


@dataclass
class OpenStackCredentials:
    """Keystone v3 password credentials."""

    auth_url: str
    username: str
    password: str
    project_name: str
    user_domain_name: str = "Default"
    project_domain_name: str = "Default"
    region: str | None = None
    endpoint_type: str = "public"

    @classmethod
    def from_dict(cls, d: dict) -> "OpenStackCredentials":
        """Build credentials from an ``openstack:`` config section.

        Missing keys fall back to the usual OS_* environment variables
        (OS_TENANT_NAME is accepted for project_name).

        Raises:
            ValueError: if auth_url, username, password or project_name is missing.
        """
        values = {}
        for key, env_var in _CREDENTIAL_ENV_VARS.items():
            value = d.get(key) or os.environ.get(env_var)
            if value:
                values[key] = value
        if "project_name" not in values and os.environ.get("OS_TENANT_NAME"):
            values["project_name"] = os.environ["OS_TENANT_NAME"]

        missing = [key for key in ("auth_url", "username", "password", "project_name") if key not in values]
        if missing:
            raise ValueError(f"Missing OpenStack credentials: {', '.join(missing)} (set in config or OS_* env vars)")
        return cls(**values)

    @property
    def token_url(self) -> str:
        base = self.auth_url.rstrip("/")
        if not base.endswith("/v3"):
            base = f"{base}/v3"
        return f"{base}/auth/tokens"


# ── Response helpers ──────────────────────────────────────────────


def _error_details(resp):
    """Extract (code, message) from an OpenStack error response.

    Handles the service envelopes: ``{"badRequest": {"code": 400, "message": ...}}``
    (Nova), ``{"NeutronError": {"message": ...}}`` and ``{"error": {...}}`` (Keystone).
    """
    try:
        body = resp.json()
    except ValueError:
        return resp.status_code, resp.text.strip() or resp.reason_phrase

    if isinstance(body, dict):
        for value in body.values():
            if isinstance(value, dict) and "message" in value:
                return value.get("code", resp.status_code), value["message"]
        if "message" in body:
            return resp.status_code, body["message"]
    return resp.status_code, resp.text.strip()


def _raise_for_status(resp):
    if resp.is_success:
        return
    code, message = _error_details(resp)
    raise ProviderError(code, message)


def _join(base, path):
    """Join an endpoint URL and an API path, dropping a duplicated version segment."""
    base = base.rstrip("/")
    version = path.split("/")[1]
    if base.endswith(f"/{version}"):
        base = base[: -len(version) - 1]
    return f"{base}{path}"


def _endpoints_from_catalog(catalog, interface="public", region=None):
    """Map service type (compute, image, network) to its endpoint URL."""
    endpoints = {}
    for service in catalog:
        for endpoint in service.get("endpoints", []):
            if endpoint.get("interface") != interface:
                continue
            if region and endpoint.get("region_id", endpoint.get("region")) != region:
                continue
            endpoints.setdefault(service["type"], endpoint["url"])
    return endpoints


def _parse_instance(server, password=None):
    addresses = {}
    for network, records in (server.get("addresses") or {}).items():
        addresses[network] = [
            AddressRecord(
                addr=r["addr"],
                version=r.get("version", 4),
                fixed=r.get("OS-EXT-IPS:type", "fixed") == "fixed",
            )
            for r in records
        ]

    flavor = server.get("flavor") or {}
    # Boot-from-volume servers report image as ""
    image = server.get("image") or {}

    return Instance(
        id=server["id"],
        name=server.get("name", ""),
        status=InstanceStatus.from_provider(server.get("status")),
        flavor_id=flavor.get("id"),
        image_id=image.get("id"),
        addresses=addresses,
        password=server.get("adminPass", password),
        key_name=server.get("key_name"),
        availability_zone=server.get("OS-EXT-AZ:availability_zone"),
    )


def _server_body(spec):
    server = {
        "name": spec.name,
        "imageRef": spec.image_ref,
        "flavorRef": spec.flavor_ref,
        "security_groups": [{"name": group} for group in spec.security_groups],
    }
    if spec.availability_zone:
        server["availability_zone"] = spec.availability_zone
    if spec.metadata:
        server["metadata"] = dict(spec.metadata)
    if spec.key_name:
        server["key_name"] = spec.key_name
    if spec.user_data is not None:
        server["user_data"] = base64.b64encode(spec.user_data.encode()).decode()
    if spec.network_ids:
        server["networks"] = [{"uuid": net_id} for net_id in spec.network_ids]
    return {"server": server}


# ── Provider ──────────────────────────────────────────────────────


class OpenStackProvider(Provider):
    """Provider backed by an OpenStack cloud."""

    def __init__(self, credentials: OpenStackCredentials):
        self.credentials = credentials
        self._token = None
        self._endpoints = {}
        self._lock = asyncio.Lock()

    async def authenticate(self):
        """Request a project-scoped token and load endpoints from its catalog."""
        creds = self.credentials
        body = {
            "auth": {
                "identity": {
                    "methods": ["password"],
                    "password": {
                        "user": {
                            "name": creds.username,
                            "domain": {"name": creds.user_domain_name},
                            "password": creds.password,
                        }
                    },
                },
                "scope": {
                    "project": {
                        "name": creds.project_name,
                        "domain": {"name": creds.project_domain_name},
                    }
                },
            }
        }
        logger.debug(f"Authenticating as {creds.username} at {creds.token_url}")
        async with httpx.AsyncClient() as client:
            resp = await client.post(creds.token_url, json=body, timeout=REQUEST_TIMEOUT)
        _raise_for_status(resp)

        self._token = resp.headers["X-Subject-Token"]
        catalog = resp.json().get("token", {}).get("catalog", [])
        self._endpoints = _endpoints_from_catalog(catalog, creds.endpoint_type, creds.region)

    async def _ensure_token(self):
        async with self._lock:
            if self._token is None:
                await self.authenticate()

    async def _request(self, method, service, path, json=None, params=None):
        """Make an authenticated request to *service* and return the parsed JSON body."""
        await self._ensure_token()
        if service not in self._endpoints:
            raise ProviderError(None, f"No '{service}' endpoint in the service catalog")

        url = _join(self._endpoints[service], path)
        headers = {"X-Auth-Token": self._token, "Accept": "application/json"}
        async with httpx.AsyncClient() as client:
            resp = await client.request(method, url, json=json, params=params, headers=headers, timeout=REQUEST_TIMEOUT)
        _raise_for_status(resp)
        if not resp.content:
            return {}
        return resp.json()

    # ── Servers ──

    async def create_instance(self, spec):
        result = await self._request("POST", "compute", "/servers", json=_server_body(spec))
        server = result["server"]
        return Instance(
            id=server["id"],
            name=spec.name,
            status=InstanceStatus.BUILDING,
            password=server.get("adminPass"),
            key_name=spec.key_name,
            availability_zone=spec.availability_zone,
        )

    async def get_instance(self, instance_id):
        result = await self._request("GET", "compute", f"/servers/{instance_id}")
        return _parse_instance(result["server"])

    async def delete_instance(self, instance_id):
        await self._request("DELETE", "compute", f"/servers/{instance_id}")

    # ── Catalogs ──

    async def list_flavors(self):
        result = await self._request("GET", "compute", "/flavors/detail")
        return [Flavor(id=f["id"], name=f["name"]) for f in result.get("flavors", [])]

    async def list_images(self):
        images = []
        path = "/v2/images"
        while path:
            result = await self._request("GET", "image", path)
            images.extend(Image(id=i["id"], name=i.get("name") or "") for i in result.get("images", []))
            path = result.get("next")
        return images

    # ── Floating IPs ──

    async def _list_floatingips(self):
        result = await self._request("GET", "network", "/v2.0/floatingips")
        return result.get("floatingips", [])

    async def list_floating_addresses(self):
        return [
            FloatingAddress(id=f["id"], ip=f["floating_ip_address"], fixed_ip=f.get("fixed_ip_address"))
            for f in await self._list_floatingips()
        ]

    async def associate_floating_address(self, instance_id, ip):
        """Bind floating IP *ip* to the first port of *instance_id*."""
        floating = next((f for f in await self._list_floatingips() if f["floating_ip_address"] == ip), None)
        if floating is None:
            raise ProviderError(404, f"Floating IP {ip} not found")

        result = await self._request("GET", "network", "/v2.0/ports", params={"device_id": instance_id})
        ports = result.get("ports", [])
        if not ports:
            raise ProviderError(404, f"No network port found for instance {instance_id}")

        data = {"floatingip": {"port_id": ports[0]["id"]}}
        await self._request("PUT", "network", f"/v2.0/floatingips/{floating['id']}", json=data)
