"""Tests for parquet export and loading."""

from __future__ import annotations

from pathlib import Path

import pytest

pa = pytest.importorskip("pyarrow")
pq = pytest.importorskip("pyarrow.parquet")

from nppes.cli import EXIT_OK, main
from nppes.config import LoadOptions
from nppes.dataset import NppesDataset, load_directory, open_parquet_dataset
from nppes.errors import (
    CsvParseError,
    DataFileNotFoundError,
    DataValidationError,
    ErrorKind,
    ExportError,
    SchemaMismatchError,
)
from nppes.export import ParquetExporter, export_dataset, export_records, get_exporter
from nppes.parsers import (
    ParquetReader,
    load_endpoints_parquet,
    load_other_names_parquet,
    load_practice_locations_parquet,
    load_providers_parquet,
    load_taxonomy_parquet,
)
from nppes.parsers.parquet_reader import reference_paths
from nppes.schema import MAIN_HEADERS, TAXONOMY_HEADERS, FileKind, MainColumns

from factories import make_record


@pytest.fixture
def dataset(dataset_dir: Path) -> NppesDataset:
    return load_directory(dataset_dir)


@pytest.fixture
def exported(dataset, tmp_path: Path) -> Path:
    path = tmp_path / "providers.parquet"
    export_dataset(dataset, path, "parquet")
    return path


class TestParquetExport:
    """Test the layout of written parquet files."""

    def test_selected_by_format_name(self):
        assert isinstance(get_exporter("parquet"), ParquetExporter)

    def test_columns_named_after_csv_headers(self, exported):
        table = pq.read_table(exported)

        assert table.column_names == list(MAIN_HEADERS)
        assert table.num_rows == 3
        assert table.column(MainColumns.NPI).to_pylist() == [
            "1234567893", "1245319599", "1003000126",
        ]

    def test_empty_cells_written_as_null(self, exported):
        table = pq.read_table(exported)

        assert table.column(MainColumns.REPLACEMENT_NPI).null_count == 3

    def test_reference_tables_written_beside_providers(self, exported):
        paths = reference_paths(exported)

        assert paths[FileKind.OTHER_NAME].name == "providers_other_names.parquet"
        assert all(p.is_file() for p in paths.values())
        assert pq.read_table(paths[FileKind.TAXONOMY]).column_names == list(TAXONOMY_HEADERS)

    def test_empty_reference_tables_skipped(self, tmp_path: Path):
        """A dataset without reference data writes only the provider file."""
        dataset = NppesDataset.from_records([make_record("1234567893")])
        path = tmp_path / "providers.parquet"

        count = export_dataset(dataset, path, "parquet")

        assert count == 1
        assert not any(p.exists() for p in reference_paths(path).values())

    def test_batches_become_row_groups(self, dataset, tmp_path: Path):
        path = tmp_path / "providers.parquet"

        export_records(dataset.providers, path, "parquet", batch_size=1)

        assert pq.ParquetFile(path).num_row_groups == 3
        assert tuple(load_providers_parquet(path)) == dataset.providers

    def test_invalid_batch_size(self):
        with pytest.raises(ExportError):
            ParquetExporter(batch_size=0)

    def test_unwritable_path(self, dataset, tmp_path: Path):
        with pytest.raises(ExportError) as exc_info:
            export_dataset(dataset, tmp_path / "missing" / "out.parquet", "parquet")

        assert exc_info.value.kind == ErrorKind.EXPORT


class TestParquetLoading:
    """Test reading parquet files back into records."""

    def test_dataset_round_trip(self, dataset, exported):
        """Providers and every reference table survive a write and read."""
        loaded = open_parquet_dataset(exported)

        assert loaded.providers == dataset.providers
        assert loaded.other_names == dataset.other_names
        assert loaded.practice_locations == dataset.practice_locations
        assert loaded.endpoints == dataset.endpoints
        assert loaded.taxonomy_reference == dataset.taxonomy_reference
        assert loaded.is_indexed
        assert loaded.get_by_state("NY")[0].is_organization()
        assert len(loaded.load_reports) == 5

    def test_reference_loaders(self, exported):
        paths = reference_paths(exported)

        other_names = load_other_names_parquet(paths[FileKind.OTHER_NAME])
        locations = load_practice_locations_parquet(paths[FileKind.PRACTICE_LOCATION])
        endpoints = load_endpoints_parquet(paths[FileKind.ENDPOINT])
        taxonomy = load_taxonomy_parquet(paths[FileKind.TAXONOMY])

        assert other_names[0].name == "VALLEY FAMILY CARE"
        assert locations[0].address.city == "DAVIS"
        assert locations[0].telephone_extension == "101"
        assert endpoints[0].endpoint == "jane@direct.example.org"
        assert endpoints[0].affiliation is False
        assert [t.code for t in taxonomy] == ["207Q00000X", "207R00000X", "261QP2300X"]

    def test_provider_file_without_references(self, dataset, tmp_path: Path):
        path = tmp_path / "ca.parquet"
        export_records(dataset.get_by_state("CA"), path, "parquet")

        loaded = open_parquet_dataset(path, options=LoadOptions(build_indexes=False))

        assert [str(r.npi) for r in loaded.providers] == ["1234567893", "1245319599"]
        assert loaded.taxonomy_reference == {}
        assert not loaded.is_indexed

    def test_report_counts_rows_and_bytes(self, exported):
        reader = ParquetReader()

        records, report = reader.read_all(exported, FileKind.MAIN)

        assert len(records) == report.records_loaded == report.rows_read == 3
        assert report.bytes_read > 0

    def test_invalid_rows_skipped_in_lenient_mode(self, tmp_path: Path):
        path = tmp_path / "taxonomy.parquet"
        columns = {h: [None, None] for h in TAXONOMY_HEADERS}
        columns["Code"] = [None, "207Q00000X"]
        pq.write_table(pa.table(columns, schema=_string_schema(TAXONOMY_HEADERS)), path)

        records, report = ParquetReader(LoadOptions(skip_invalid_records=True)).read_all(
            path, FileKind.TAXONOMY
        )

        assert [t.code for t in records] == ["207Q00000X"]
        assert dict(report.error_counts) == {ErrorKind.DATA_VALIDATION.value: 1}

    def test_invalid_row_aborts_strict_load(self, tmp_path: Path):
        path = tmp_path / "taxonomy.parquet"
        columns = {h: [None] for h in TAXONOMY_HEADERS}
        pq.write_table(pa.table(columns, schema=_string_schema(TAXONOMY_HEADERS)), path)

        with pytest.raises(DataValidationError) as exc_info:
            load_taxonomy_parquet(path)

        assert exc_info.value.line == 1

    def test_wrong_table_rejected(self, exported):
        """Loading a taxonomy table as other names fails header validation."""
        with pytest.raises(SchemaMismatchError):
            load_other_names_parquet(reference_paths(exported)[FileKind.TAXONOMY])

    def test_not_a_parquet_file(self, tmp_path: Path):
        path = tmp_path / "providers.parquet"
        path.write_text("NPI\n1234567893\n")

        with pytest.raises(CsvParseError):
            load_providers_parquet(path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(DataFileNotFoundError):
            load_providers_parquet(tmp_path / "missing.parquet")


class TestParquetCli:
    def test_export_command(self, dataset_dir: Path, tmp_path: Path, capsys):
        output = tmp_path / "ca.parquet"
        argv = ["export", "-d", str(dataset_dir), "-o", str(output), "--format", "parquet", "--state", "CA"]

        assert main(argv) == EXIT_OK

        assert [str(r.npi) for r in load_providers_parquet(output)] == ["1234567893", "1245319599"]
        assert "Exported 2 providers" in capsys.readouterr().out


def _string_schema(headers):
    return pa.schema([pa.field(h, pa.string()) for h in headers])
