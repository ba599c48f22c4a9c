"""Readiness probes: bounded TCP reachability checks against published ports."""

import asyncio
import logging

from devup.settings import get_settings
from devup.templates.services import SERVICE_PORTS

logger = logging.getLogger(__name__)

APP_SERVICE = "app"


def service_port(service: str, app_port: int) -> int | None:
    """Resolve a logical service name to its published port, or None if unknown."""
    if service == APP_SERVICE:
        return app_port
    return SERVICE_PORTS.get(service)


async def check_port(port: int, host: str | None = None, timeout: float | None = None) -> bool:
    """Try one TCP connection. Never raises.

    Returns:
        True if a connection was established (it's closed immediately),
        False on any error or timeout.
    """
    settings = get_settings()
    host = host or settings.probe_host
    timeout = settings.probe_timeout if timeout is None else timeout

    try:
        _reader, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
    except (OSError, OverflowError, ValueError, asyncio.TimeoutError) as e:
        logger.debug("%s:%s not reachable: %s", host, port, e or type(e).__name__)
        return False

    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


async def probe(service: str, host: str | None = None, app_port: int = 3000) -> bool:
    """Check whether a logical service is accepting connections.

    Unknown service names report False.
    """
    port = service_port(service, app_port)
    if port is None:
        return False
    return await check_port(port, host)


async def check_all(services: list[str], app_port: int = 3000) -> dict[str, bool]:
    """Probe every known service concurrently.

    Unknown names are skipped and absent from the result.
    """
    targets = {s: port for s in services if (port := service_port(s, app_port)) is not None}
    results = await asyncio.gather(*(check_port(port) for port in targets.values()))
    return dict(zip(targets, results))
