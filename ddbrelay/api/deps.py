"""
Composition root and shared request dependencies.

All mutable state (caches, rate limiter, report tracker) lives on one
RelayServices instance built at startup. Tests build their own instance and
install it through app.dependency_overrides[get_relay].
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Annotated, Any

import httpx
from fastapi import Depends, Request

from ddbrelay.config import MAX_CREDENTIAL_LENGTH, MIN_CREDENTIAL_LENGTH, Settings
from ddbrelay.logging_config import register_secret
from ddbrelay.models.failure import CredentialValidationError, RateLimitExceededError
from ddbrelay.services.auth import TokenExchange
from ddbrelay.services.items import ItemFetcher
from ddbrelay.services.rate_limit import RateLimitStatus, SlidingWindowRateLimiter
from ddbrelay.services.reports import ReportTracker
from ddbrelay.services.sources import SourceRegistry
from ddbrelay.services.spells import SpellFetcher
from ddbrelay.services.ttl_cache import TTLCache


@dataclass
class RelayServices:
    """Everything a request handler needs, wired once."""

    client: httpx.AsyncClient
    auth_cache: TTLCache
    config_cache: TTLCache
    items_cache: TTLCache
    spells_cache: TTLCache
    token_exchange: TokenExchange
    registry: SourceRegistry
    item_fetcher: ItemFetcher
    spell_fetcher: SpellFetcher
    rate_limiter: SlidingWindowRateLimiter
    report_tracker: ReportTracker
    clock: Callable[[], float] = time.monotonic
    started_at: float = field(default_factory=time.monotonic)

    def uptime(self) -> float:
        return self.clock() - self.started_at

    @property
    def caches(self) -> dict[str, TTLCache]:
        return {
            "auth": self.auth_cache,
            "config": self.config_cache,
            "items": self.items_cache,
            "spells": self.spells_cache,
        }


def build_services(
    settings: Settings,
    client: httpx.AsyncClient,
    clock: Callable[[], float] = time.monotonic,
) -> RelayServices:
    """Wire a fresh service graph around an HTTP client."""
    auth_cache = TTLCache("AUTH", settings.auth_ttl_seconds, clock=clock)
    config_cache = TTLCache("DDB_CONFIG", settings.config_ttl_seconds, clock=clock)
    items_cache = TTLCache("ITEMS", settings.items_ttl_seconds, clock=clock)
    spells_cache = TTLCache("SPELLS", settings.spells_ttl_seconds, clock=clock)

    token_exchange = TokenExchange(client, auth_cache)
    registry = SourceRegistry(client, config_cache, timeout=settings.config_timeout)

    return RelayServices(
        client=client,
        auth_cache=auth_cache,
        config_cache=config_cache,
        items_cache=items_cache,
        spells_cache=spells_cache,
        token_exchange=token_exchange,
        registry=registry,
        item_fetcher=ItemFetcher(client, token_exchange, registry),
        spell_fetcher=SpellFetcher(client, token_exchange, registry),
        rate_limiter=SlidingWindowRateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
            clock=clock,
        ),
        report_tracker=ReportTracker(settings.report_window_seconds, clock=clock),
        clock=clock,
        started_at=clock(),
    )


def get_relay(request: Request) -> RelayServices:
    """Get the service graph built by the lifespan handler."""
    relay: RelayServices = request.app.state.relay
    return relay


RelayDep = Annotated[RelayServices, Depends(get_relay)]


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def enforce_rate_limit(request: Request, relay: RelayDep) -> None:
    """
    Router-level dependency for every /api/ route.

    The quota left is kept on request.state for the RateLimit-* headers.
    """
    try:
        request.state.rate_limit = relay.rate_limiter.check(client_address(request))
    except RateLimitExceededError as e:
        request.state.rate_limit = RateLimitStatus(
            limit=e.limit, remaining=0, reset_seconds=e.reset_seconds
        )
        raise


def require_credential(credential: Any) -> str:
    """
    Validate the session credential before any network work.

    The credential is registered with the log redaction filter for the
    remainder of the request.

    Raises:
        CredentialValidationError: If missing, not a string, or out of bounds
    """
    if not credential:
        raise CredentialValidationError(
            error="Invalid request",
            message="Cobalt cookie is required",
            missing=True,
        )

    if isinstance(credential, str):
        register_secret(credential)

    if (
        not isinstance(credential, str)
        or not MIN_CREDENTIAL_LENGTH <= len(credential) <= MAX_CREDENTIAL_LENGTH
    ):
        raise CredentialValidationError(
            error="Invalid cookie",
            message="Cobalt cookie format is invalid",
        )

    return credential
