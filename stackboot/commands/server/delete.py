"""'server delete' CLI handler: clean up a server left behind by a failed run."""

import asyncio
import logging
import sys

import httpx

from stackboot.config import load_config_file
from stackboot.provisioning.errors import ProviderError
from stackboot.provisioning.openstack import OpenStackCredentials, OpenStackProvider

logger = logging.getLogger(__name__)


def handle_delete(args):
    """CLI handler for 'server delete'."""
    asyncio.run(_handle_delete(args))


async def _handle_delete(args):
    file_config = load_config_file(args.config)
    try:
        credentials = OpenStackCredentials.from_dict(file_config.get("openstack") or {})
    except ValueError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)

    provider = OpenStackProvider(credentials)
    logger.info(f"Deleting server '{args.instance_id}'...")
    try:
        await provider.delete_instance(args.instance_id)
    except (ProviderError, httpx.HTTPError) as e:
        logger.error(f"Failed to delete server: {e}")
        sys.exit(1)
    logger.info("Server deleted.")


def register_delete_target(subparsers):
    """Register 'server delete'."""
    parser = subparsers.add_parser("delete", help="Delete an OpenStack server")
    parser.add_argument("--instance-id", required=True, help="Server ID")
    parser.add_argument("--config", default=None, help="YAML config file (default: ~/.stackboot/config.yaml)")
    parser.set_defaults(func=handle_delete)
