"""
Outbound requests to the content platform.

Translates httpx failures into the relay's failure taxonomy so callers only
ever see KnownError subclasses.
"""

from typing import Any

import httpx

from ddbrelay.config import USER_AGENT
from ddbrelay.models.failure import (
    CredentialInvalidError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)


def base_headers() -> dict[str, str]:
    """Headers sent on every outbound call."""
    return {
        "User-Agent": USER_AGENT,
        "Accept": "application/json",
    }


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    headers: dict[str, str],
    timeout: float | None = None,
) -> Any:
    """
    GET a JSON document from the platform.

    Args:
        client: Shared async client
        url: Absolute platform URL
        headers: Request headers (auth headers for authenticated calls)
        timeout: Override for the client's default timeout

    Returns:
        Decoded JSON payload

    Raises:
        UpstreamTimeoutError: If the platform does not answer in time
        CredentialInvalidError: If the platform answers 401/403
        UpstreamUnavailableError: On transport errors, other non-2xx, or invalid JSON
    """
    kwargs: dict[str, Any] = {"headers": headers}
    if timeout is not None:
        kwargs["timeout"] = timeout

    try:
        response = await client.get(url, **kwargs)
    except httpx.TimeoutException:
        raise UpstreamTimeoutError() from None
    except httpx.HTTPError as e:
        raise UpstreamUnavailableError(f"Failed to connect to D&D Beyond: {e}") from None

    if response.status_code in (401, 403):
        raise CredentialInvalidError()
    if response.is_error:
        raise UpstreamUnavailableError(
            f"D&D Beyond API error: {response.status_code} {response.reason_phrase}"
        )

    try:
        return response.json()
    except ValueError:
        raise UpstreamUnavailableError("Invalid JSON received from D&D Beyond") from None
