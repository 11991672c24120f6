"""
Health and status endpoints.

Liveness, a quick ping, and cache/limiter diagnostics. None of these touch
the platform.
"""

import resource
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from typing import Annotated, Any

from fastapi import APIRouter, Header, HTTPException, status
from pydantic import BaseModel

from ddbrelay.api.deps import RelayDep
from ddbrelay.config import settings

router = APIRouter(tags=["health"])


def service_version() -> str:
    try:
        return pkg_version("ddbrelay")
    except PackageNotFoundError:
        return "0.0.0"


def memory_usage() -> dict[str, int]:
    """Peak resident set size in bytes (ru_maxrss is KiB on Linux, bytes on macOS)."""
    max_rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    if sys.platform != "darwin":
        max_rss *= 1024
    return {"maxRss": max_rss}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    uptime: float
    environment: str
    memory: dict[str, int]
    caches: dict[str, dict[str, Any]]
    rateLimiter: dict[str, Any]


class PingResponse(BaseModel):
    pong: bool = True


class StatsResponse(BaseModel):
    cacheSizes: dict[str, int]
    uptime: float
    memory: dict[str, int]
    version: str


@router.get("/health", response_model=HealthResponse)
async def health(relay: RelayDep) -> HealthResponse:
    """
    Liveness probe.

    Reports uptime, memory and per-domain cache statistics.
    """
    return HealthResponse(
        status="ok",
        version=service_version(),
        uptime=relay.uptime(),
        environment=settings.environment,
        memory=memory_usage(),
        caches={name: cache.stats() for name, cache in relay.caches.items()},
        rateLimiter=relay.rate_limiter.stats(),
    )


@router.get("/ping", response_model=PingResponse)
async def ping() -> PingResponse:
    """Quick availability check."""
    return PingResponse()


@router.get("/stats", response_model=StatsResponse)
async def stats(
    relay: RelayDep,
    x_admin_key: Annotated[str | None, Header()] = None,
) -> StatsResponse:
    """Cache sizes and process info. Admin-only in production."""
    if settings.environment == "production" and (
        not settings.admin_key or x_admin_key != settings.admin_key
    ):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    return StatsResponse(
        cacheSizes={name: cache.size for name, cache in relay.caches.items()},
        uptime=relay.uptime(),
        memory=memory_usage(),
        version=service_version(),
    )
