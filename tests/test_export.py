"""Tests for dataset exporters."""

from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest

from nppes.dataset import NppesDataset, load_directory
from nppes.errors import ErrorKind, ExportError
from nppes.export import (
    ExportFormat,
    SqlDialect,
    SqlExporter,
    export_dataset,
    export_subset,
    get_exporter,
    record_to_row,
)
from nppes.models import Name, NppesRecord, Npi
from nppes.parsers import NppesReader
from nppes.schema import MAIN_HEADERS, MainColumns

from factories import make_record


@pytest.fixture
def dataset(dataset_dir: Path) -> NppesDataset:
    return load_directory(dataset_dir)


class TestDenormalizedCsv:
    """Denormalized CSV reproduces the main file layout."""

    def test_row_width(self, dataset):
        row = record_to_row(dataset.providers[0])

        assert len(row) == len(MAIN_HEADERS)
        assert row[MainColumns.NPI] == "1234567893"
        assert row[MainColumns.ENUMERATION_DATE] == "05/23/2005"

    def test_reparses_to_equal_records(self, dataset, tmp_path: Path):
        path = tmp_path / "npidata_pfile_export.csv"

        count = export_dataset(dataset, path, ExportFormat.CSV)
        records, report = NppesReader().read_all(path, "main")

        assert count == 3
        assert report.records_skipped == 0
        assert tuple(records) == dataset.providers


class TestNormalizedCsv:
    def test_writes_three_tables(self, dataset, tmp_path: Path):
        export_dataset(dataset, tmp_path / "out.csv", "csv-normalized")

        with open(tmp_path / "out_providers.csv", newline="") as f:
            providers = list(csv.DictReader(f))
        with open(tmp_path / "out_taxonomies.csv", newline="") as f:
            taxonomies = list(csv.DictReader(f))

        assert (tmp_path / "out_identifiers.csv").exists()
        assert [p["npi"] for p in providers] == ["1234567893", "1245319599", "1003000126"]
        assert providers[2]["is_active"] == "N"
        assert providers[0]["enumeration_date"] == "2005-05-23"
        assert len(taxonomies) == 4
        assert taxonomies[0]["is_primary"] == "Y"


class TestJson:
    def test_json_array(self, dataset, tmp_path: Path):
        path = tmp_path / "providers.json"

        export_dataset(dataset, path, "json")
        data = json.loads(path.read_text())

        assert len(data) == 3
        assert data[0]["npi"] == "1234567893"
        assert data[2]["deactivation_reason"] == "DB"

    def test_json_lines(self, dataset, tmp_path: Path):
        path = tmp_path / "providers.jsonl"

        export_dataset(dataset, path, ExportFormat.JSON_LINES)
        lines = path.read_text().splitlines()

        assert len(lines) == 3
        assert json.loads(lines[1])["display_name"] == "JOHN DOE"

    def test_compact_without_empty_fields(self, dataset, tmp_path: Path):
        path = tmp_path / "providers.json"

        export_dataset(dataset, path, "json", pretty=False, include_empty=False)
        data = json.loads(path.read_text())

        assert "replacement_npi" not in data[0]
        assert data[0]["npi"] == "1234567893"

    def test_empty_dataset(self, tmp_path: Path):
        path = tmp_path / "empty.json"

        count = export_dataset(NppesDataset.from_records([]), path, "json")

        assert count == 0
        assert json.loads(path.read_text()) == []


class TestSql:
    def test_schema_and_inserts(self, dataset, tmp_path: Path):
        path = tmp_path / "providers.sql"

        export_dataset(dataset, path, "sql")
        sql = path.read_text()

        assert "CREATE TABLE IF NOT EXISTS nppes_providers" in sql
        assert "SERIAL PRIMARY KEY" in sql
        assert "INSERT INTO nppes_providers" in sql
        assert "'2005-05-23'" in sql
        assert "TRUE" in sql

    def test_quotes_escaped(self, tmp_path: Path):
        record = make_record("1234567893", last_name="O'BRIEN")
        path = tmp_path / "providers.sql"

        SqlExporter().export([record], path)

        assert "'O''BRIEN'" in path.read_text()

    def test_sqlite_dialect(self, dataset, tmp_path: Path):
        path = tmp_path / "providers.sql"

        export_dataset(dataset, path, "sql", dialect=SqlDialect.SQLITE, table_prefix="npi")
        sql = path.read_text()

        assert "CREATE TABLE IF NOT EXISTS npi_providers" in sql
        assert "AUTOINCREMENT" in sql
        assert "TRUE" not in sql

    def test_batches(self, dataset, tmp_path: Path):
        path = tmp_path / "providers.sql"

        export_dataset(dataset, path, "sql", batch_size=2, include_schema=False)
        sql = path.read_text()

        assert sql.count("INSERT INTO nppes_providers") == 2
        assert "CREATE TABLE" not in sql


class TestExportSelection:
    def test_export_subset(self, dataset, tmp_path: Path):
        path = tmp_path / "active.jsonl"

        count = export_subset(dataset, path, lambda r: r.is_active(), "jsonl")

        assert count == 2
        assert len(path.read_text().splitlines()) == 2

    def test_unknown_format(self):
        with pytest.raises(ExportError) as exc_info:
            get_exporter("xlsx")

        assert exc_info.value.kind == ErrorKind.EXPORT

    def test_unwritable_path(self, dataset, tmp_path: Path):
        with pytest.raises(ExportError):
            export_dataset(dataset, tmp_path / "missing" / "out.json", "json")

    def test_record_to_row_blank_name(self):
        record = NppesRecord(npi=Npi("1234567893"), provider_name=Name())

        row = record_to_row(record)

        assert row[MainColumns.LAST_NAME] == ""
        assert row[MainColumns.ENTITY_TYPE] == ""
