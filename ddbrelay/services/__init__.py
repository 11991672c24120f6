"""
DDB Relay services.

Authentication, catalog fetching and enhancement, caching and rate limiting.
"""

from ddbrelay.services.auth import CredentialCheck, TokenExchange, credential_cache_key
from ddbrelay.services.items import ItemFetcher
from ddbrelay.services.rate_limit import RateLimitStatus, SlidingWindowRateLimiter, hash_address
from ddbrelay.services.reports import (
    CombinedReport,
    ReportTracker,
    SourceReportRow,
    format_report,
    generate_combined_report,
)
from ddbrelay.services.sources import (
    SourceRegistry,
    count_by_source,
    extract_source_name,
    join_source_names,
)
from ddbrelay.services.spells import SpellFetcher, merge_spells_by_name
from ddbrelay.services.ttl_cache import CacheLookup, TTLCache
from ddbrelay.services.upstream import base_headers, get_json

__all__ = [
    # Auth
    "CredentialCheck",
    "TokenExchange",
    "credential_cache_key",
    # Catalogs
    "ItemFetcher",
    "SpellFetcher",
    "merge_spells_by_name",
    "SourceRegistry",
    "count_by_source",
    "extract_source_name",
    "join_source_names",
    # Reports
    "CombinedReport",
    "ReportTracker",
    "SourceReportRow",
    "format_report",
    "generate_combined_report",
    # Infrastructure
    "CacheLookup",
    "TTLCache",
    "RateLimitStatus",
    "SlidingWindowRateLimiter",
    "hash_address",
    "base_headers",
    "get_json",
]
