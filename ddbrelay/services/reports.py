"""
Combined import report.

Cross-references item and spell results per source book: how much content
each book contributes and whether the account owns it. Diagnostic only; it
is never on the critical path of a response.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from ddbrelay.models.catalog import CatalogResult

logger = logging.getLogger(__name__)

CatalogKind = Literal["items", "spells"]


@dataclass(frozen=True)
class SourceReportRow:
    source_id: int
    name: str
    item_count: int
    spell_count: int
    owned: bool

    @property
    def total(self) -> int:
        return self.item_count + self.spell_count


@dataclass(frozen=True)
class CombinedReport:
    rows: list[SourceReportRow]
    total_items: int
    total_spells: int

    @property
    def total_sources(self) -> int:
        return len(self.rows)

    @property
    def owned_sources(self) -> int:
        return sum(1 for row in self.rows if row.owned)


def generate_combined_report(items: CatalogResult, spells: CatalogResult) -> CombinedReport:
    """
    Build a per-source breakdown from item and spell results.

    A source is owned if either result marks it owned. Rows are sorted by
    total content descending, then by name.
    """
    ownership: dict[int, bool] = dict(items.ownership_by_source_id)
    for source_id, owned in spells.ownership_by_source_id.items():
        ownership[source_id] = ownership.get(source_id, False) or owned

    sources = {source.id: source for source in items.all_sources}
    for source in spells.all_sources:
        sources.setdefault(source.id, source)

    rows = [
        SourceReportRow(
            source_id=source.id,
            name=source.name,
            item_count=items.source_stats.get(source.name, 0),
            spell_count=spells.source_stats.get(source.name, 0),
            owned=ownership.get(source.id, False),
        )
        for source in sources.values()
    ]
    rows.sort(key=lambda row: (-row.total, row.name))

    return CombinedReport(
        rows=rows,
        total_items=len(items.entries),
        total_spells=len(spells.entries),
    )


def format_report(report: CombinedReport) -> list[str]:
    """Render the report as fixed-width text lines."""
    lines = ["COMBINED IMPORT REPORT"]
    for row in report.rows:
        ownership = "(Owned)    " if row.owned else "(Not Owned)"
        lines.append(
            f"{row.name:<50} {ownership} {row.item_count:>4} Items {row.spell_count:>4} Spells"
        )
    lines.append(f"Total Sources: {report.total_sources}")
    lines.append(f"Owned Sources: {report.owned_sources}")
    lines.append(f"Total Items: {report.total_items}")
    lines.append(f"Total Spells: {report.total_spells}")
    return lines


@dataclass
class _Recorded:
    result: CatalogResult
    at: float


class ReportTracker:
    """
    Produces a combined report once items and spells for the same key
    were both fetched within the window.

    The two catalogs are fetched by independent requests, so a report only
    becomes meaningful once both exist.
    """

    def __init__(
        self,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._latest: dict[tuple[str, CatalogKind], _Recorded] = {}

    def _prune(self, now: float) -> None:
        stale = [k for k, rec in self._latest.items() if now - rec.at > self.window_seconds]
        for k in stale:
            del self._latest[k]

    def record(self, kind: CatalogKind, key: str, result: CatalogResult) -> CombinedReport | None:
        """
        Remember a fresh result and emit a report if its counterpart is recent.

        Never raises: a reporting bug must not fail the response.
        """
        try:
            now = self._clock()
            self._prune(now)
            self._latest[(key, kind)] = _Recorded(result=result, at=now)

            other_kind: CatalogKind = "spells" if kind == "items" else "items"
            other = self._latest.get((key, other_kind))
            if other is None or now - other.at > self.window_seconds:
                return None

            items = result if kind == "items" else other.result
            spells = other.result if kind == "items" else result
            report = generate_combined_report(items, spells)

            for line in format_report(report):
                logger.info("%s", line)

            # Consumed: the next report needs a fresh pair
            self._latest.pop((key, "items"), None)
            self._latest.pop((key, "spells"), None)
            return report
        except Exception:
            logger.exception("[REPORT] Failed to generate combined report")
            return None
