"""Pre-flight checks run before any mutating cloud call."""

import logging
import os
import re

from stackboot.provisioning.errors import FlavorNotFound, FloatingAddressUnavailable, ImageNotFound, LocalFileError
from stackboot.provisioning.floating import AUTO_FLOATING_IP, NO_FLOATING_IP, find_address, find_free_address

logger = logging.getLogger(__name__)


def match_flavor(flavors, wanted):
    """First flavor whose name or id equals *wanted*."""
    for flavor in flavors:
        if flavor.name == wanted or flavor.id == wanted:
            return flavor
    return None


def match_image(images, pattern):
    """First image whose id equals *pattern* or whose name matches it as a regexp.

    A pattern that is not a valid regexp can still match an image id.
    """
    try:
        regex = re.compile(pattern)
    except re.error as e:
        logger.debug(f"Image '{pattern}' is not a valid regexp ({e}), matching by id only")
        regex = None
    for image in images:
        if image.id == pattern or (regex is not None and regex.search(image.name or "")):
            return image
    return None


# options naming local files that are only read at bootstrap time
LOCAL_FILE_OPTIONS = ("validation_key", "secret_file", "encrypted_data_bag_secret_file", "template_file")


def check_local_files(config):
    """Fail before anything is created if a bootstrap input file cannot be read.

    Raises:
        LocalFileError: naming the first unreadable option.
    """
    for option in LOCAL_FILE_OPTIONS:
        path = getattr(config, option)
        if path is None:
            continue
        try:
            with open(os.path.expanduser(path)):
                pass
        except OSError as e:
            raise LocalFileError(option, path, e.strerror or str(e)) from e


async def floating_ip_is_valid(provider, requested):
    if requested == NO_FLOATING_IP:
        return True
    addresses = await provider.list_floating_addresses()
    if not addresses:
        return False
    if requested == AUTO_FLOATING_IP:
        return find_free_address(addresses) is not None
    return find_address(addresses, requested) is not None


async def validate(config, provider):
    """Check flavor, image and floating IP in that order, stopping at the first failure.

    Returns:
        (flavor, image) resolved from the provider catalogs.

    Raises:
        FlavorNotFound, ImageNotFound, FloatingAddressUnavailable.
    """
    flavor = match_flavor(await provider.list_flavors(), config.flavor)
    if flavor is None:
        raise FlavorNotFound(config.flavor)

    image = match_image(await provider.list_images(), config.image)
    if image is None:
        raise ImageNotFound(config.image)

    if not await floating_ip_is_valid(provider, config.floating_ip):
        raise FloatingAddressUnavailable(config.floating_ip)

    logger.debug(f"Validated flavor {flavor.name} ({flavor.id}) and image {image.name} ({image.id})")
    return flavor, image
