"""
Session credential -> bearer token exchange.

Bearer tokens are short-lived on the platform side; caching them for a few
minutes amortizes the exchange across a burst of catalog requests.

INVARIANTS:
- The cache key is a SHA-256 digest of the credential, never the credential
- Tokens are cached only after a successful exchange
- Authenticated data calls carry the bearer token, never the raw credential
"""

import hashlib
import logging
from dataclasses import dataclass

import httpx

from ddbrelay.config import token_exchange_url
from ddbrelay.models.failure import (
    CredentialInvalidError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from ddbrelay.services.ttl_cache import TTLCache
from ddbrelay.services.upstream import base_headers

logger = logging.getLogger(__name__)


def credential_cache_key(credential: str) -> str:
    """Collision-resistant, one-way cache key for a session credential."""
    return hashlib.sha256(credential.encode()).hexdigest()


@dataclass(frozen=True)
class CredentialCheck:
    """Outcome of an explicit credential validation."""

    valid: bool
    message: str | None = None
    token: str | None = None


class TokenExchange:
    """Exchanges session credentials for cached bearer tokens."""

    def __init__(self, client: httpx.AsyncClient, cache: TTLCache) -> None:
        self.client = client
        self.cache = cache

    async def get_bearer_token(self, credential: str) -> str:
        """
        Resolve a bearer token for the credential.

        Returns the cached token when one exists, otherwise performs the
        exchange and caches the result.

        Raises:
            CredentialInvalidError: If the platform rejects the credential
            UpstreamTimeoutError: If the auth service does not answer in time
            UpstreamUnavailableError: If the auth service is unreachable or errors
        """
        cache_key = credential_cache_key(credential)

        cached = self.cache.exists(cache_key)
        if cached.exists:
            return str(cached.data)

        logger.info("[AUTH] Exchanging session credential for bearer token")

        headers = {
            **base_headers(),
            "Content-Type": "application/json",
            "Cookie": f"CobaltSession={credential}",
        }

        try:
            response = await self.client.post(token_exchange_url(), headers=headers)
        except httpx.TimeoutException:
            logger.error("[AUTH] Token exchange timed out")
            raise UpstreamTimeoutError() from None
        except httpx.HTTPError as e:
            logger.error("[AUTH] Token exchange failed: %s", type(e).__name__)
            raise UpstreamUnavailableError("Auth service unreachable") from None

        if response.status_code in (401, 403):
            logger.warning("[AUTH] Credential rejected (%d)", response.status_code)
            raise CredentialInvalidError()
        if response.is_error:
            logger.error("[AUTH] Auth service error: %d", response.status_code)
            raise UpstreamUnavailableError(
                f"Auth service error: {response.status_code} {response.reason_phrase}"
            )

        try:
            token = response.json().get("token")
        except (ValueError, AttributeError):
            token = None

        if not token or not isinstance(token, str):
            logger.warning("[AUTH] Exchange returned no bearer token")
            raise CredentialInvalidError("No bearer token received from D&D Beyond")

        self.cache.add(cache_key, token)
        logger.info("[AUTH] Token obtained and cached")
        return token

    async def validate_credential(self, credential: str) -> CredentialCheck:
        """
        Check a credential without forcing a downstream fetch.

        Rejection by the platform is reported as valid=False. Outages still
        raise so the caller can tell "bad cookie" from "platform down".
        """
        try:
            token = await self.get_bearer_token(credential)
        except CredentialInvalidError as e:
            return CredentialCheck(valid=False, message=e.message)
        return CredentialCheck(valid=True, token=token)

    async def auth_headers(self, credential: str) -> dict[str, str]:
        """Headers for an authenticated GET against the platform."""
        token = await self.get_bearer_token(credential)
        return {**base_headers(), "Authorization": f"Bearer {token}"}
