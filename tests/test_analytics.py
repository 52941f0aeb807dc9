"""Tests for dataset aggregations."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from nppes.analytics import NppesAnalytics
from nppes.codes import EntityType
from nppes.dataset import NppesDataset, load_directory

from factories import make_record


@pytest.fixture
def analytics(dataset_dir: Path) -> NppesAnalytics:
    return NppesAnalytics(load_directory(dataset_dir))


class TestCounts:
    def test_by_state(self, analytics):
        assert analytics.provider_count_by_state() == {"CA": 2, "NY": 1}

    def test_by_taxonomy(self, analytics):
        assert analytics.provider_count_by_taxonomy() == {
            "207Q00000X": 2,
            "207R00000X": 1,
            "261QP2300X": 1,
        }

    def test_by_entity_type(self, analytics):
        assert analytics.provider_count_by_entity_type() == {
            EntityType.INDIVIDUAL: 2,
            EntityType.ORGANIZATION: 1,
        }

    def test_top_states(self, analytics):
        assert analytics.top_states(1) == [("CA", 2)]

    def test_top_taxonomy_codes(self, analytics):
        assert analytics.top_taxonomy_codes(1) == [("207Q00000X", 2)]


class TestFilters:
    def test_enumerated_between(self, analytics):
        results = analytics.enumerated_between(date(2009, 1, 1), date(2010, 12, 31))

        assert [str(r.npi) for r in results] == ["1003000126"]

    def test_updated_between(self, analytics):
        results = analytics.updated_between(date(2007, 7, 8), date(2007, 7, 8))

        assert len(results) == 2

    def test_find_by_name(self, analytics):
        assert [str(r.npi) for r in analytics.find_by_name("doe")] == ["1245319599"]
        assert analytics.find_by_name("  ") == []

    def test_providers_with_primary_taxonomy(self):
        records = [make_record("1234567893"), make_record("1245319599", taxonomy=())]
        analytics = NppesAnalytics(NppesDataset.from_records(records))

        assert analytics.providers_with_primary_taxonomy() == [records[0]]


class TestEnrichment:
    def test_enrich_with_taxonomy(self, analytics):
        enriched = analytics.enrich_with_taxonomy()

        assert len(enriched) == 3
        record, reference = enriched[2]
        assert record.is_organization()
        assert reference.display_name == "Primary Care Clinic/Center"

    def test_enrich_without_reference(self):
        analytics = NppesAnalytics(NppesDataset.from_records([make_record("1234567893")]))

        assert analytics.enrich_with_taxonomy()[0][1] is None
