"""
Content endpoints.

Items and spells are fetched, enhanced and cached per credential (and per
source filter). Anything else under /api/content is relayed to game-data
as-is.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import Field

from ddbrelay.api.credentials import CredentialRequest
from ddbrelay.api.deps import RelayDep, RelayServices, enforce_rate_limit, require_credential
from ddbrelay.config import GAME_DATA_URL
from ddbrelay.models.catalog import CatalogResult
from ddbrelay.models.failure import UnsupportedEndpointError
from ddbrelay.services.auth import credential_cache_key
from ddbrelay.services.reports import CatalogKind
from ddbrelay.services.ttl_cache import TTLCache
from ddbrelay.services.upstream import get_json

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/content",
    tags=["content"],
    dependencies=[Depends(enforce_rate_limit)],
)


class ContentRequest(CredentialRequest):
    """Body for every /api/content call."""

    bust_cache: bool = Field(default=False, alias="bustCache")
    source_book_ids: list[int] | None = Field(default=None, alias="sourceBookIds")


def catalog_cache_key(credential: str, source_filter_ids: set[int] | None) -> str:
    """
    Cache key for a catalog: credential hash, plus the sorted filter if any.

    Filtered and unfiltered results never share a slot.
    """
    key = credential_cache_key(credential)
    if source_filter_ids:
        key += ":" + ",".join(str(i) for i in sorted(source_filter_ids))
    return key


async def _cached_catalog(
    relay: RelayServices,
    kind: CatalogKind,
    cache: TTLCache,
    credential: str,
    request: ContentRequest,
) -> list[dict[str, Any]]:
    source_filter_ids = set(request.source_book_ids) if request.source_book_ids else None
    key = catalog_cache_key(credential, source_filter_ids)

    if not request.bust_cache:
        cached = cache.exists(key)
        if cached.exists:
            logger.info("[%s] Serving %d cached entries", kind.upper(), len(cached.data))
            return list(cached.data)

    result: CatalogResult
    if kind == "items":
        result = await relay.item_fetcher.fetch_all_items(credential, source_filter_ids)
    else:
        result = await relay.spell_fetcher.fetch_all_spells(credential, source_filter_ids)

    cache.add(key, result.entries)
    relay.report_tracker.record(kind, credential_cache_key(credential), result)
    return result.entries


@router.post("/{endpoint:path}")
async def content(endpoint: str, request: ContentRequest, relay: RelayDep) -> Any:
    """
    Dispatch a content request.

    - items: full enhanced item catalog
    - spells: merged spell catalog across every spellcasting class
    - sources: not served here; callers fall back to bundled data
    - anything else: authenticated passthrough to game-data
    """
    endpoint = endpoint.strip("/")

    if endpoint == "sources":
        raise UnsupportedEndpointError(endpoint)

    credential = require_credential(request.cobalt_cookie)

    if endpoint == "items":
        return await _cached_catalog(relay, "items", relay.items_cache, credential, request)
    if endpoint == "spells":
        return await _cached_catalog(relay, "spells", relay.spells_cache, credential, request)

    headers = await relay.token_exchange.auth_headers(credential)
    logger.info("[CONTENT] Proxying /%s", endpoint)
    return await get_json(relay.client, f"{GAME_DATA_URL}/{endpoint}", headers=headers)
