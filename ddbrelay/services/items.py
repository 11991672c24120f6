"""
Item catalog fetcher.

One authenticated request returns the full shared-item catalog. Each entry is
normalized, attributed to its source books, given a rarity label, and
filtered.

ORDER OF OPERATIONS:
1. Ownership is computed from the raw, unfiltered response
2. The optional user source filter is applied
3. Entries are enhanced
4. Playtest content is dropped, unconditionally

Network and auth failures propagate; the API layer decides on fallback.
"""

import logging
from typing import Any

import httpx

from ddbrelay.config import items_url
from ddbrelay.models.catalog import CatalogResult, ItemEntry, compute_ownership
from ddbrelay.models.failure import UpstreamUnavailableError
from ddbrelay.services.auth import TokenExchange
from ddbrelay.services.sources import SourceRegistry, count_by_source, join_source_names
from ddbrelay.services.upstream import get_json

logger = logging.getLogger(__name__)


def _unwrap_items(payload: Any) -> list[Any]:
    """Accept a bare array or a {"data": [...]} envelope."""
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return list(payload["data"])
    if isinstance(payload, list):
        return payload
    raise UpstreamUnavailableError("Unexpected response format from D&D Beyond")


class ItemFetcher:
    """Fetches and enhances the item catalog for one credential."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token_exchange: TokenExchange,
        registry: SourceRegistry,
    ) -> None:
        self.client = client
        self.token_exchange = token_exchange
        self.registry = registry

    async def fetch_all_items(
        self,
        credential: str,
        source_filter_ids: set[int] | None = None,
    ) -> CatalogResult:
        """
        Fetch every item the credential can see.

        Args:
            credential: Session credential
            source_filter_ids: Keep only items citing at least one of these sources

        Returns:
            CatalogResult with enhanced item records

        Raises:
            CredentialInvalidError: If the credential is rejected
            UpstreamUnavailableError: If the catalog cannot be fetched
        """
        all_sources = await self.registry.get_all_sources()
        source_map = {source.id: source.name for source in all_sources}

        headers = await self.token_exchange.auth_headers(credential)

        logger.info("[ITEMS] Fetching items from D&D Beyond...")
        payload = await get_json(self.client, items_url(), headers=headers)
        raw_items = _unwrap_items(payload)
        logger.info("[ITEMS] Fetched %d items", len(raw_items))

        entries = [ItemEntry.from_payload(raw) for raw in raw_items if isinstance(raw, dict)]

        ownership = compute_ownership(entries, all_sources)

        if source_filter_ids:
            entries = [e for e in entries if e.matches_source_filter(source_filter_ids)]

        kept = [e for e in entries if not e.is_excluded()]
        excluded = len(entries) - len(kept)

        records = [e.to_record(join_source_names(e.sources, source_map)) for e in kept]
        source_stats = count_by_source(kept, source_map)

        logger.info("[ITEMS] Total: %d items (%d playtest filtered)", len(records), excluded)
        logger.debug("[ITEMS] Source distribution: %s", source_stats)

        return CatalogResult(
            entries=records,
            source_stats=source_stats,
            ownership_by_source_id=ownership,
            all_sources=all_sources,
        )
