from ddbrelay.models.catalog import (
    CatalogEntry,
    CatalogResult,
    ItemEntry,
    Source,
    SourceRef,
    SpellComponents,
    SpellEntry,
    compute_ownership,
    resolve_rarity_name,
)
from ddbrelay.models.failure import (
    CredentialInvalidError,
    CredentialValidationError,
    ErrorResponse,
    FailureKind,
    KnownError,
    RateLimitExceededError,
    UnsupportedEndpointError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)

__all__ = [
    "CatalogEntry",
    "CatalogResult",
    "CredentialInvalidError",
    "CredentialValidationError",
    "ErrorResponse",
    "FailureKind",
    "ItemEntry",
    "KnownError",
    "RateLimitExceededError",
    "Source",
    "SourceRef",
    "SpellComponents",
    "SpellEntry",
    "UnsupportedEndpointError",
    "UpstreamTimeoutError",
    "UpstreamUnavailableError",
    "compute_ownership",
    "resolve_rarity_name",
]
