"""
Typed catalog records.

The platform's JSON is loosely shaped: spells nest their data under
`definition`, flags appear under more than one name, rarity shows up as an
id or as a label. Each entity type gets exactly one normalization function
that runs on receipt; everything downstream works with these records.

Enhancement is additive. `to_record()` always starts from the untouched raw
payload and only adds computed fields.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ddbrelay.config import (
    DEFAULT_RARITY,
    EXCLUDED_SOURCE_ID,
    RARITY_MAP,
    SPELL_SCHOOL_MAP,
)

UNKNOWN_SOURCE = "Unknown Source"


@dataclass(frozen=True)
class Source:
    """A source book from the platform config."""

    id: int
    name: str
    description: str | None = None
    category: str | None = None

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> "Source | None":
        source_id = raw.get("id")
        name = raw.get("name")
        if not isinstance(source_id, int) or not name:
            return None
        category = raw.get("sourceCategory", raw.get("category"))
        return cls(
            id=source_id,
            name=str(name),
            description=raw.get("description") or None,
            category=str(category) if category is not None else None,
        )


@dataclass(frozen=True)
class SourceRef:
    """A catalog entry's reference to a source book."""

    source_id: int | None
    source_book: str | None = None

    @classmethod
    def from_payload(cls, raw: Any) -> "SourceRef":
        if not isinstance(raw, dict):
            return cls(source_id=None)
        source_id = raw.get("sourceId")
        source_book = raw.get("sourceBook")
        return cls(
            source_id=source_id if isinstance(source_id, int) else None,
            source_book=source_book if isinstance(source_book, str) and source_book else None,
        )


def _parse_source_refs(raw_sources: Any) -> list[SourceRef]:
    if not isinstance(raw_sources, list):
        return []
    return [SourceRef.from_payload(s) for s in raw_sources]


def resolve_rarity_name(rarity_id: int | None) -> str:
    """Map a numeric rarity to its label. Unmapped ids are Mundane, never Unknown."""
    if rarity_id is None:
        return DEFAULT_RARITY
    return RARITY_MAP.get(rarity_id, DEFAULT_RARITY)


@dataclass
class CatalogEntry:
    """Fields shared by items and spells."""

    raw: dict[str, Any]
    name: str | None
    sources: list[SourceRef]

    @property
    def source_ids(self) -> set[int]:
        return {ref.source_id for ref in self.sources if ref.source_id is not None}

    def is_excluded(self) -> bool:
        """True if the entry cites the playtest source."""
        return EXCLUDED_SOURCE_ID in self.source_ids

    def matches_source_filter(self, source_ids: set[int]) -> bool:
        """True if the entry cites at least one of the requested sources."""
        return not self.source_ids.isdisjoint(source_ids)


@dataclass
class ItemEntry(CatalogEntry):
    """A normalized item."""

    id: Any = None
    description: str = ""
    rarity_id: int | None = None
    rarity_label: str | None = None

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> "ItemEntry":
        definition = raw.get("definition") if isinstance(raw.get("definition"), dict) else {}

        rarity_id: int | None = None
        rarity_label: str | None = None
        for key in ("rarityId", "rarity"):
            value = raw.get(key, definition.get(key))
            if isinstance(value, bool):
                continue
            if isinstance(value, int):
                rarity_id = value
                break
            if isinstance(value, str) and value and rarity_label is None:
                rarity_label = value

        name = raw.get("name") or definition.get("name")
        description = (
            raw.get("description")
            or raw.get("snippet")
            or definition.get("description")
            or definition.get("snippet")
            or ""
        )
        raw_sources = raw.get("sources")
        if raw_sources is None:
            raw_sources = definition.get("sources")

        return cls(
            raw=raw,
            name=str(name) if name else None,
            sources=_parse_source_refs(raw_sources),
            id=raw.get("id", definition.get("id")),
            description=str(description),
            rarity_id=rarity_id,
            rarity_label=rarity_label,
        )

    @property
    def rarity_name(self) -> str:
        if self.rarity_id is not None:
            return resolve_rarity_name(self.rarity_id)
        return self.rarity_label or DEFAULT_RARITY

    def to_record(self, source_book: str) -> dict[str, Any]:
        return {
            **self.raw,
            "id": self.id,
            "name": self.name or "Unknown Item",
            "description": self.description,
            "sourceBook": source_book,
            "rarityName": self.rarity_name,
        }


@dataclass(frozen=True)
class SpellComponents:
    verbal: bool = False
    somatic: bool = False
    material: bool = False
    material_description: str | None = None

    @classmethod
    def from_definition(cls, definition: dict[str, Any]) -> "SpellComponents":
        components = definition.get("componentsArray")
        if not isinstance(components, list):
            components = []
        return cls(
            verbal=1 in components,
            somatic=2 in components,
            material=3 in components,
            material_description=definition.get("componentsDescription") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "verbal": self.verbal,
            "somatic": self.somatic,
            "material": self.material,
            "materialDescription": self.material_description,
        }


def _resolve_school(definition: dict[str, Any]) -> str:
    school = definition.get("school")
    if isinstance(school, dict) and school.get("name"):
        return str(school["name"])
    school_id = definition.get("schoolId")
    if isinstance(school_id, int) and school_id in SPELL_SCHOOL_MAP:
        return SPELL_SCHOOL_MAP[school_id]
    if isinstance(school, str) and school:
        return school
    return "Unknown"


@dataclass
class SpellEntry(CatalogEntry):
    """
    A normalized spell.

    Identity is the name: the platform mints a different id for the same
    spell under each class context.
    """

    classes: list[str] = field(default_factory=list)
    level: Any = None
    is_ritual: bool = False
    requires_concentration: bool = False
    components: SpellComponents = field(default_factory=SpellComponents)
    school: str = "Unknown"

    @classmethod
    def from_payload(cls, raw: dict[str, Any], class_name: str) -> "SpellEntry":
        definition = raw.get("definition")
        if not isinstance(definition, dict):
            definition = raw

        name = definition.get("name") or raw.get("name")
        raw_sources = definition.get("sources")
        if raw_sources is None:
            raw_sources = raw.get("sources")

        level = definition.get("level")
        if level is None:
            level = raw.get("level")

        return cls(
            raw=raw,
            name=str(name).strip() if name else None,
            sources=_parse_source_refs(raw_sources),
            classes=[class_name],
            level=level,
            is_ritual=definition.get("ritual") is True or definition.get("isRitual") is True,
            requires_concentration=(
                definition.get("concentration") is True
                or definition.get("requiresConcentration") is True
            ),
            components=SpellComponents.from_definition(definition),
            school=_resolve_school(definition),
        )

    def merge_classes(self, other: "SpellEntry") -> None:
        """Union another occurrence's classes into this one. Scalar fields are kept."""
        self.classes = sorted(set(self.classes) | set(other.classes))

    def to_record(self, source_book: str) -> dict[str, Any]:
        return {
            **self.raw,
            "sourceBook": source_book,
            "availableToClasses": sorted(set(self.classes)),
            "availableToSubclasses": [],
            "isRitual": self.is_ritual,
            "requiresConcentration": self.requires_concentration,
            "components": self.components.to_dict(),
            "school": self.school,
            "level": self.level,
        }


@dataclass
class CatalogResult:
    """
    Bundle returned by the item and spell fetchers.

    `ownership_by_source_id` is computed from the unfiltered response; the
    entries are what survived exclusion and the optional source filter.
    """

    entries: list[dict[str, Any]]
    source_stats: dict[str, int]
    ownership_by_source_id: dict[int, bool]
    all_sources: list[Source]


def compute_ownership(
    entries: Sequence[CatalogEntry],
    all_sources: list[Source],
) -> dict[int, bool]:
    """
    Derive sourceId -> owned from an unfiltered set of entries.

    Every known source defaults to not owned; any cited source is owned.
    """
    ownership = {source.id: False for source in all_sources}
    for entry in entries:
        for source_id in entry.source_ids:
            ownership[source_id] = True
    return ownership
