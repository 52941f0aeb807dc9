"""Aggregations over a loaded NPPES dataset."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date

from .codes import EntityType
from .dataset import NppesDataset
from .models import NppesRecord, TaxonomyReference

logger = logging.getLogger(__name__)


class NppesAnalytics:
    """Counting and filtering helpers built on a dataset.

    Example:
        analytics = NppesAnalytics(dataset)
        for state, count in analytics.top_states(5):
            print(state, count)
    """

    def __init__(self, dataset: NppesDataset) -> None:
        self.dataset = dataset

    def provider_count_by_state(self) -> dict[str, int]:
        """Providers per mailing state; records without a state are omitted."""
        counts: Counter = Counter(
            r.mailing_address.state.as_code()
            for r in self.dataset.providers
            if r.mailing_address.state is not None
        )
        return dict(counts)

    def provider_count_by_taxonomy(self) -> dict[str, int]:
        """Providers per taxonomy code (each provider counted once per code)."""
        counts: Counter = Counter()
        for record in self.dataset.providers:
            counts.update({t.code for t in record.taxonomy_codes})
        return dict(counts)

    def provider_count_by_entity_type(self) -> dict[EntityType | None, int]:
        return dict(Counter(r.entity_type for r in self.dataset.providers))

    def top_states(self, limit: int = 10) -> list[tuple[str, int]]:
        return Counter(self.provider_count_by_state()).most_common(limit)

    def top_taxonomy_codes(self, limit: int = 10) -> list[tuple[str, int]]:
        return Counter(self.provider_count_by_taxonomy()).most_common(limit)

    def enumerated_between(self, start: date, end: date) -> list[NppesRecord]:
        return self.dataset.query().enumerated_between(start, end).execute()

    def updated_between(self, start: date, end: date) -> list[NppesRecord]:
        return [
            r
            for r in self.dataset.providers
            if r.last_update_date is not None and start <= r.last_update_date <= end
        ]

    def find_by_name(self, name: str) -> list[NppesRecord]:
        """Case-insensitive substring match on the full display name."""
        needle = name.strip().lower()
        if not needle:
            return []
        return [
            r for r in self.dataset.providers if needle in r.full_display_name().lower()
        ]

    def providers_with_primary_taxonomy(self) -> list[NppesRecord]:
        return [r for r in self.dataset.providers if r.primary_taxonomy() is not None]

    def enrich_with_taxonomy(self) -> list[tuple[NppesRecord, TaxonomyReference | None]]:
        """Pair each provider with the reference entry for its primary taxonomy."""
        if not self.dataset.taxonomy_reference:
            logger.warning("No taxonomy reference loaded; descriptions will be empty")

        enriched = []
        for record in self.dataset.providers:
            primary = record.primary_taxonomy()
            reference = (
                self.dataset.get_taxonomy_description(primary.code) if primary else None
            )
            enriched.append((record, reference))
        return enriched
