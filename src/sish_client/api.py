"""High-level API for sish client.

This module provides simple, user-friendly functions for common tunneling tasks.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from .common.logging import get_logger
from .session import TunnelSession

logger = get_logger(__name__)


async def open_tunnel(
    local_port: int,
    sish_host: str,
    *,
    subdomain: str | None = None,
    remote_port: int = 80,
    timeout: float | None = None,
    **options: Any,
) -> TunnelSession:
    """Open a tunnel and wait until the relay publishes its address.

    The caller owns the returned session and must close it.

    Args:
        local_port: Local port to expose
        sish_host: Relay host to connect to
        subdomain: Optional named alias on the relay
        remote_port: Port requested on the relay (80 for HTTP tunnels)
        timeout: Seconds to wait for readiness, None to wait indefinitely
        **options: Additional session configuration options

    Returns:
        TunnelSession: A ready session

    Example:
        >>> session = await open_tunnel(3000, "tuns.sh", subdomain="myapp")
        >>> print(f"Your app is live at: {session.tunnel_url}")
        https://myapp.tuns.sh
    """
    session = await TunnelSession.open(
        local_port=local_port,
        sish_host=sish_host,
        subdomain=subdomain,
        remote_port=remote_port,
        **options,
    )
    try:
        url = await session.wait_ready(timeout=timeout)
    except BaseException:
        await session.aclose()
        raise

    logger.info("Tunnel opened", url=url, local_port=local_port)
    return session


@asynccontextmanager
async def managed_tunnel(
    local_port: int,
    sish_host: str,
    *,
    subdomain: str | None = None,
    remote_port: int = 80,
    timeout: float | None = None,
    **options: Any,
) -> AsyncIterator[TunnelSession]:
    """Open a tunnel that is closed automatically on exit.

    Args:
        local_port: Local port to expose
        sish_host: Relay host to connect to
        subdomain: Optional named alias on the relay
        remote_port: Port requested on the relay (80 for HTTP tunnels)
        timeout: Seconds to wait for readiness, None to wait indefinitely
        **options: Additional session configuration options

    Yields:
        TunnelSession: A ready session

    Example:
        >>> async with managed_tunnel(5432, "tuns.sh", remote_port=5432) as session:
        ...     print(f"Database available at: {session.tunnel_url}")
        tuns.sh:5432
        # Tunnel is automatically closed here
    """
    session = await open_tunnel(
        local_port,
        sish_host,
        subdomain=subdomain,
        remote_port=remote_port,
        timeout=timeout,
        **options,
    )
    url = session.tunnel_url
    try:
        yield session
    finally:
        await session.aclose()
        logger.info("Managed tunnel closed", url=url, exit_code=session.exit_code)
