"""Async HTTP client helpers for the CLI."""

from __future__ import annotations

import logging

import httpx

from petwatch.api.client import PetHubClient
from petwatch.cli.config import get_config_value

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 5.0


def get_server_url() -> str:
    """Return the configured API base URL."""
    return str(get_config_value("api_url"))


def get_token() -> str | None:
    """Return the configured bearer token, if any."""
    token = get_config_value("token")
    if token is None:
        return None
    return str(token)


def create_client() -> PetHubClient:
    """Create a remote client from the configured URLs and timeout."""
    return PetHubClient(
        base_url=get_server_url(),
        dashboard_url=str(get_config_value("dashboard_url")),
        timeout=float(get_config_value("request_timeout")),
    )


async def is_reachable(base_url: str, timeout: float = PROBE_TIMEOUT) -> bool:
    """Check whether the remote service answers at all.

    Sends a single HEAD request. Any success or client-error status counts as
    reachable, since a 4xx still proves the server is up. There is no retry.

    Args:
        base_url: URL to probe.
        timeout: Seconds to wait before giving up.

    Returns:
        True if the server answered, False on timeout, refusal or DNS failure.
    """
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.head(base_url)
    except httpx.HTTPError as exc:
        logger.debug("Probe of %s failed: %s", base_url, exc)
        return False

    reachable = response.is_success or response.is_client_error
    logger.debug("Probe of %s -> %s", base_url, response.status_code)
    return reachable
