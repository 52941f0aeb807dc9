"""Tests for file layouts and header validation."""

import pytest

from nppes.errors import ErrorKind, SchemaMismatchError
from nppes.schema import (
    CONDENSED_TAXONOMY_WIDTH,
    MAIN_HEADERS,
    MAIN_SCHEMA,
    TAXONOMY_SCHEMA,
    FileKind,
    MainColumns,
    detect_file_kind,
)


class TestMainLayout:
    """Test the 330-column main file layout."""

    def test_width(self):
        assert len(MAIN_HEADERS) == 330
        assert len(set(MAIN_HEADERS)) == 330

    def test_fixed_positions(self):
        assert MainColumns.NPI == 0
        assert MainColumns.ENTITY_TYPE == 1
        assert MainColumns.MAILING.state == 23
        assert MainColumns.PRACTICE.state == 31
        assert MainColumns.ENUMERATION_DATE == 36
        assert MainColumns.SEX == 41

    def test_slot_positions(self):
        """Slots follow the fixed head in concatenation order."""
        assert MainColumns.TAXONOMY[0].code == 47
        assert MainColumns.TAXONOMY[14].primary_switch == 106
        assert MainColumns.OTHER_IDENTIFIERS[0].identifier == 107
        assert MainColumns.OTHER_IDENTIFIERS[49].issuer == 306

    def test_trailing_positions(self):
        assert MainColumns.SOLE_PROPRIETOR == 307
        assert MainColumns.PARENT_ORGANIZATION_TIN == 310
        assert MainColumns.AO_NAME_PREFIX == 311
        assert MainColumns.AO_CREDENTIAL == 313
        assert MainColumns.TAXONOMY[0].group == 314
        assert MainColumns.TAXONOMY[14].group == 328
        assert MainColumns.CERTIFICATION_DATE == 329


class TestHeaderValidation:
    """Test header comparison against a schema."""

    def test_exact_header_passes(self):
        MAIN_SCHEMA.validate_headers(list(MAIN_HEADERS))

    def test_whitespace_and_bom_ignored(self):
        headers = [f" {h} " for h in MAIN_HEADERS]
        headers[0] = "\ufeffNPI"

        MAIN_SCHEMA.validate_headers(headers)

    def test_renamed_column(self):
        """Should report the first differing column."""
        headers = list(MAIN_HEADERS)
        headers[1] = "Entity Type"

        with pytest.raises(SchemaMismatchError) as exc_info:
            MAIN_SCHEMA.validate_headers(headers, "npidata_pfile.csv")

        error = exc_info.value
        assert error.kind == ErrorKind.SCHEMA_MISMATCH
        assert error.expected_columns == 330
        assert error.found_columns == 330
        assert error.first_mismatch == (1, "Entity Type Code", "Entity Type")

    def test_width_mismatch(self):
        with pytest.raises(SchemaMismatchError) as exc_info:
            MAIN_SCHEMA.validate_headers(list(MAIN_HEADERS[:-1]))

        assert exc_info.value.found_columns == 329
        assert exc_info.value.first_mismatch is None

    def test_condensed_taxonomy_rejected(self):
        headers = ["Code", "Grouping", "Classification", "Specialization", "Definition", "Notes"]
        assert len(headers) == CONDENSED_TAXONOMY_WIDTH

        with pytest.raises(SchemaMismatchError) as exc_info:
            TAXONOMY_SCHEMA.validate_headers(headers)

        assert "condensed" in exc_info.value.message


class TestDetectFileKind:
    """Test recognizing distribution files by name."""

    @pytest.mark.parametrize(
        "filename,kind",
        [
            ("npidata_pfile_20050523-20240107.csv", FileKind.MAIN),
            ("othername_pfile_20050523-20240107.csv", FileKind.OTHER_NAME),
            ("pl_pfile_20050523-20240107.csv", FileKind.PRACTICE_LOCATION),
            ("endpoint_pfile_20050523-20240107.csv", FileKind.ENDPOINT),
            ("nucc_taxonomy_241.csv", FileKind.TAXONOMY),
        ],
    )
    def test_recognized(self, filename, kind):
        assert detect_file_kind(filename) == kind

    def test_header_only_files_ignored(self):
        assert detect_file_kind("npidata_pfile_20050523-20240107_fileheader.csv") is None

    def test_unrelated_file(self):
        assert detect_file_kind("readme.pdf") is None
