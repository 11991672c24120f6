"""
Spell catalog fetcher.

The platform has no "all spells" endpoint: spells are enumerated per class,
at max class level. One request is issued per spellcasting class, all
concurrently.

MERGE CONTRACT:
- Identity is the spell NAME. The platform mints a different id for the same
  spell under each class context, so merging by id would duplicate spells.
- Results are merged in SPELLCASTING_CLASSES order, regardless of which
  request finished first. The first class to yield a spell supplies its
  scalar fields; later occurrences only contribute their class name.
- availableToClasses is the sorted, deduplicated union of class names.

FAILURE POLICY:
- Token resolution failure propagates (nothing can be fetched)
- One class failing logs a warning and contributes nothing
- Every class failing is a total failure and raises
"""

import asyncio
import logging
from typing import Any

import httpx

from ddbrelay.config import MAX_CLASS_LEVEL, SPELLCASTING_CLASSES, spells_url
from ddbrelay.models.catalog import CatalogResult, SpellEntry, compute_ownership
from ddbrelay.models.failure import KnownError, UpstreamUnavailableError
from ddbrelay.services.auth import TokenExchange
from ddbrelay.services.sources import SourceRegistry, count_by_source, join_source_names
from ddbrelay.services.upstream import get_json

logger = logging.getLogger(__name__)


class _ClassFetchFailed(Exception):
    """One class's spell list could not be retrieved."""


def merge_spells_by_name(
    class_results: list[list[SpellEntry]],
) -> tuple[list[SpellEntry], int]:
    """
    Merge per-class spell lists into one list keyed by spell name.

    Args:
        class_results: Per-class entries, in a fixed class order

    Returns:
        (merged entries in first-seen order, number of nameless entries skipped)
    """
    merged: dict[str, SpellEntry] = {}
    skipped = 0

    for spells in class_results:
        for spell in spells:
            if not spell.name:
                skipped += 1
                continue

            existing = merged.get(spell.name)
            if existing is None:
                merged[spell.name] = spell
            else:
                existing.merge_classes(spell)

    return list(merged.values()), skipped


class SpellFetcher:
    """Fetches, merges and enhances the spell catalog for one credential."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token_exchange: TokenExchange,
        registry: SourceRegistry,
        classes: tuple[tuple[int, str], ...] = SPELLCASTING_CLASSES,
    ) -> None:
        self.client = client
        self.token_exchange = token_exchange
        self.registry = registry
        self.classes = classes

    async def _fetch_class(
        self,
        class_id: int,
        class_name: str,
        headers: dict[str, str],
    ) -> list[SpellEntry]:
        url = spells_url(class_id, MAX_CLASS_LEVEL)
        logger.debug("[SPELLS] Fetching spells for %s (classId: %d)...", class_name, class_id)

        try:
            payload: Any = await get_json(self.client, url, headers=headers)
        except (KnownError, httpx.HTTPError) as e:
            raise _ClassFetchFailed(str(e)) from None

        # Platform envelope is {"success": true, "data": [...]}
        if not isinstance(payload, dict) or not payload.get("success"):
            raise _ClassFetchFailed("invalid response envelope")
        data = payload.get("data")
        if not isinstance(data, list):
            raise _ClassFetchFailed("non-array data")

        logger.debug("[SPELLS] %s: Fetched %d spells", class_name, len(data))
        return [SpellEntry.from_payload(raw, class_name) for raw in data if isinstance(raw, dict)]

    async def _fetch_class_or_empty(
        self,
        class_id: int,
        class_name: str,
        headers: dict[str, str],
    ) -> list[SpellEntry] | None:
        """Returns None when this class failed, so siblings can still succeed."""
        try:
            return await self._fetch_class(class_id, class_name, headers)
        except _ClassFetchFailed as e:
            logger.warning(
                "[SPELLS] %s fetch failed: %s",
                class_name,
                e,
                extra={"class_name": class_name, "class_id": class_id},
            )
            return None

    async def fetch_all_spells(
        self,
        credential: str,
        source_filter_ids: set[int] | None = None,
    ) -> CatalogResult:
        """
        Fetch every spell the credential can see, across all classes.

        Args:
            credential: Session credential
            source_filter_ids: Keep only spells citing at least one of these sources

        Returns:
            CatalogResult with merged, enhanced spell records

        Raises:
            CredentialInvalidError: If the credential is rejected
            UpstreamUnavailableError: If no class could be fetched
        """
        all_sources = await self.registry.get_all_sources()
        source_map = {source.id: source.name for source in all_sources}

        headers = await self.token_exchange.auth_headers(credential)

        logger.info("[SPELLS] Fetching spells for %d classes...", len(self.classes))

        # gather() returns results in argument order, not completion order
        results = await asyncio.gather(
            *(
                self._fetch_class_or_empty(class_id, class_name, headers)
                for class_id, class_name in self.classes
            )
        )

        failed = [name for (_, name), result in zip(self.classes, results) if result is None]
        if self.classes and len(failed) == len(self.classes):
            raise UpstreamUnavailableError("Spell fetch failed for every class")

        class_results = [result for result in results if result is not None]
        merged, skipped = merge_spells_by_name(class_results)
        if skipped:
            logger.info("[SPELLS] Skipped %d spells without a name", skipped)

        ownership = compute_ownership(merged, all_sources)

        kept = [s for s in merged if not s.is_excluded()]
        excluded = len(merged) - len(kept)

        if source_filter_ids:
            kept = [s for s in kept if s.matches_source_filter(source_filter_ids)]

        records = [s.to_record(join_source_names(s.sources, source_map)) for s in kept]
        source_stats = count_by_source(kept, source_map)

        logger.info(
            "[SPELLS] Total: %d spells (%d playtest filtered, %d classes failed)",
            len(records),
            excluded,
            len(failed),
        )

        return CatalogResult(
            entries=records,
            source_stats=source_stats,
            ownership_by_source_id=ownership,
            all_sources=all_sources,
        )
