"""Readiness probing: is the bootstrap port accepting connections yet?

probe() makes one bounded connection attempt and never raises for the
transport failures a booting server produces; they degrade to "not ready".
wait_until_ready() is the caller-side loop around it.
"""

import asyncio
import errno
import logging
import socket
import time

from stackboot.provisioning.errors import ReadinessTimeout

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10
BANNER_TIMEOUT = 5
RETRY_BACKOFF = 2

_RETRYABLE_ERRNOS = {errno.ECONNREFUSED, errno.EHOSTUNREACH, errno.ENETUNREACH}
_NOT_READY_ERRNOS = {errno.ETIMEDOUT, errno.EPERM, errno.EACCES}


def _backoff_for(exc, protocol):
    """Seconds to back off after a failed connect, 0 for no backoff.

    Returns None for failures that are not recognized transport errors.
    """
    if isinstance(exc, socket.gaierror):
        # Name resolution only counts as transient for winrm
        return RETRY_BACKOFF if protocol == "winrm" else None
    if isinstance(exc, TimeoutError | PermissionError):
        return 0
    if exc.errno in _RETRYABLE_ERRNOS:
        return RETRY_BACKOFF
    if exc.errno in _NOT_READY_ERRNOS:
        return 0
    return None


async def _read_banner(reader, host, port):
    try:
        banner = await asyncio.wait_for(reader.readline(), timeout=BANNER_TIMEOUT)
    except TimeoutError:
        return False
    logger.debug(f"sshd accepting connections on {host} port {port}, banner is {banner.decode(errors='replace').strip()}")
    return True


async def probe(host, port, protocol="ssh", connect_timeout=CONNECT_TIMEOUT):
    """Make one connection attempt to host:port.

    For ssh the port must also become readable within BANNER_TIMEOUT seconds;
    for winrm a successful connect is enough.

    Returns:
        True if ready, False if not ready yet. Retryable failures (refused,
        host/network unreachable, and name resolution for winrm) sleep
        RETRY_BACKOFF seconds before returning.
    """
    writer = None
    try:
        reader, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=connect_timeout)
        if protocol == "winrm":
            return True
        return await _read_banner(reader, host, port)
    except OSError as e:
        backoff = _backoff_for(e, protocol)
        if backoff is None:
            raise
        logger.debug(f"{host}:{port} not ready: {e!r}")
        if backoff:
            await asyncio.sleep(backoff)
        return False
    finally:
        if writer is not None:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.debug(f"Error closing probe connection to {host}:{port}: {e!r}")


async def wait_until_ready(host, port, protocol="ssh", timeout=None, interval=1, initial_sleep_delay=10):
    """Probe host:port until it accepts connections.

    There is no timeout unless one is given: cancel the awaiting task to stop
    waiting. Once sshd answers, sleeps *initial_sleep_delay* seconds so the
    daemon can finish starting up.

    Raises:
        ReadinessTimeout: only when *timeout* is set and expires.
    """
    label = "winrm" if protocol == "winrm" else "sshd"
    logger.info(f"Waiting for {label} on {host}:{port}...")

    started = time.monotonic()
    attempts = 0
    while not await probe(host, port, protocol):
        attempts += 1
        if timeout is not None and time.monotonic() - started >= timeout:
            raise ReadinessTimeout(host, port, timeout)
        if attempts % 10 == 0:
            logger.info(f"Still waiting for {label} on {host}:{port} ({attempts} attempts)")
        await asyncio.sleep(interval)

    if protocol == "ssh" and initial_sleep_delay:
        await asyncio.sleep(initial_sleep_delay)
    logger.info(f"{label} is ready on {host}:{port}.")
