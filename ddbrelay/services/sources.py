"""
Source registry.

Fetches the platform's public config (the catalog of source books) and
resolves source ids to human-readable names. The config changes rarely, so it
is cached with a long TTL and independently of the per-user catalogs.

A failed config fetch degrades to an empty source list: entries then carry
"Source {id}" labels instead of the whole catalog fetch failing.
"""

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from ddbrelay.config import PLATFORM_CONFIG_URL, settings
from ddbrelay.models.catalog import UNKNOWN_SOURCE, CatalogEntry, Source, SourceRef
from ddbrelay.models.failure import KnownError
from ddbrelay.services.ttl_cache import TTLCache
from ddbrelay.services.upstream import base_headers, get_json

logger = logging.getLogger(__name__)

CONFIG_CACHE_KEY = "config"


class SourceRegistry:
    """Cached view of the platform's source book definitions."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: TTLCache,
        timeout: float | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.timeout = timeout if timeout is not None else settings.config_timeout

    async def fetch_config(self) -> dict[str, Any]:
        """
        Get the platform config.

        Returns:
            Config dict with a "sources" list. {"sources": []} on any failure.
        """
        cached = self.cache.exists(CONFIG_CACHE_KEY)
        if cached.exists:
            return dict(cached.data)

        logger.info("[SOURCES] Fetching platform config...")
        try:
            config = await get_json(
                self.client,
                PLATFORM_CONFIG_URL,
                headers=base_headers(),
                timeout=self.timeout,
            )
        except KnownError as e:
            logger.error("[SOURCES] Failed to fetch platform config: %s", e.message)
            return {"sources": []}

        if not isinstance(config, dict) or not isinstance(config.get("sources"), list):
            logger.warning("[SOURCES] Platform config has no sources list")
            return {"sources": []}

        self.cache.add(CONFIG_CACHE_KEY, config)
        logger.info("[SOURCES] Fetched platform config (%d sources)", len(config["sources"]))
        return config

    async def get_all_sources(self) -> list[Source]:
        config = await self.fetch_config()
        sources: list[Source] = []
        for raw in config.get("sources", []):
            if not isinstance(raw, dict):
                continue
            source = Source.from_payload(raw)
            if source is not None:
                sources.append(source)
        return sources

    async def build_source_map(self) -> dict[int, str]:
        """Build a sourceId -> name lookup."""
        return {source.id: source.name for source in await self.get_all_sources()}

    async def get_source_name(self, source_id: int) -> str | None:
        return (await self.build_source_map()).get(source_id)


def extract_source_name(ref: SourceRef, source_map: dict[int, str] | None = None) -> str:
    """
    Resolve a display name for a source reference.

    Resolution order:
    1. Inline sourceBook name on the reference
    2. Lookup in the source map
    3. "Source {id}" so the fallback stays traceable
    """
    if ref.source_book:
        return ref.source_book

    if source_map and ref.source_id is not None:
        name = source_map.get(ref.source_id)
        if name:
            return name

    if ref.source_id is not None:
        logger.debug("[SOURCES] Unknown sourceId %s, using ID as fallback", ref.source_id)
        return f"Source {ref.source_id}"

    return UNKNOWN_SOURCE


def source_names(refs: list[SourceRef], source_map: dict[int, str]) -> list[str]:
    """Every distinct source name an entry is attributed to, in order."""
    names: list[str] = []
    for ref in refs:
        if ref.source_id is None and not ref.source_book:
            continue
        name = extract_source_name(ref, source_map)
        if name not in names:
            names.append(name)
    return names


def join_source_names(refs: list[SourceRef], source_map: dict[int, str]) -> str:
    """Comma-join all source names. Multi-source entries keep every name."""
    names = source_names(refs, source_map)
    return ", ".join(names) if names else UNKNOWN_SOURCE


def count_by_source(entries: Sequence[CatalogEntry], source_map: dict[int, str]) -> dict[str, int]:
    """Entry count per source name. A multi-source entry counts once for each."""
    stats: dict[str, int] = {}
    for entry in entries:
        for name in source_names(entry.sources, source_map) or [UNKNOWN_SOURCE]:
            stats[name] = stats.get(name, 0) + 1
    return stats
