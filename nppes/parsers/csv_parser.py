"""Streaming reader for NPPES CSV files.

Reads a header row, validates it against the file's schema, then turns each
data row into a typed record. Row errors either abort the load (strict mode)
or are counted and skipped (lenient mode, ``skip_invalid_records=True``).
"""

from __future__ import annotations

import codecs
import csv
import logging
import os
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator

from ..codes import (
    CodeEnum,
    CountryCode,
    DeactivationReason,
    EntityType,
    GroupTaxonomy,
    NamePrefix,
    NameSuffix,
    OrganizationSubpart,
    OtherIdentifierIssuer,
    OtherNameType,
    PrimaryTaxonomySwitch,
    Sex,
    SoleProprietor,
    StateCode,
)
from ..config import LoadOptions
from ..errors import (
    CsvParseError,
    DataFileNotFoundError,
    DataValidationError,
    DateParseError,
    InsufficientMemoryError,
    NppesError,
)
from ..models import (
    Address,
    AuthorizedOfficial,
    Endpoint,
    Name,
    NppesRecord,
    Npi,
    OrganizationName,
    OtherIdentifier,
    OtherName,
    PracticeLocation,
    TaxonomyAssignment,
    TaxonomyReference,
)
from ..schema import AddressColumns, FileKind, FileSchema, MainColumns, schema_for
from ..utils.date_parser import NPPES_DATE_PATTERN, parse_nppes_date
from ..utils.sanitization import format_bytes

logger = logging.getLogger(__name__)

# Sizing heuristics for the main provider file
AVERAGE_ROW_BYTES = 2000
AVERAGE_RECORD_BYTES = 500

# Warnings logged per file for authorized official data on individual rows
MAX_LOGGED_SUPPRESSIONS = 10


@dataclass
class MemoryEstimate:
    """Estimated footprint of loading a main provider file."""

    file_size: int
    estimated_records: int
    estimated_bytes: int

    @property
    def human(self) -> str:
        return format_bytes(self.estimated_bytes)


def estimate_memory(path: str | Path) -> MemoryEstimate:
    """Estimate record count and memory needed to load ``path``.

    Raises:
        DataFileNotFoundError: If the file does not exist
    """
    try:
        size = os.path.getsize(path)
    except FileNotFoundError as e:
        raise DataFileNotFoundError(path) from e
    records = size // AVERAGE_ROW_BYTES
    return MemoryEstimate(
        file_size=size,
        estimated_records=records,
        estimated_bytes=records * AVERAGE_RECORD_BYTES,
    )


@dataclass
class LoadReport:
    """Outcome of reading one file."""

    path: str
    file_kind: str
    rows_read: int = 0
    records_loaded: int = 0
    records_skipped: int = 0
    bytes_read: int = 0
    elapsed_seconds: float = 0.0
    error_counts: Counter = field(default_factory=Counter)
    unrecognized_codes: Counter = field(default_factory=Counter)
    suppressed_authorized_officials: int = 0

    def record_error(self, error: NppesError) -> None:
        self.records_skipped += 1
        self.error_counts[error.kind.value] += 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "path": self.path,
            "file_kind": self.file_kind,
            "rows_read": self.rows_read,
            "records_loaded": self.records_loaded,
            "records_skipped": self.records_skipped,
            "bytes_read": self.bytes_read,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "error_counts": dict(self.error_counts),
            "unrecognized_codes": dict(self.unrecognized_codes),
            "suppressed_authorized_officials": self.suppressed_authorized_officials,
        }


class _Row:
    """Trimmed view of one CSV row with typed accessors."""

    __slots__ = ("cells", "schema", "report")

    def __init__(self, cells: list[str], schema: FileSchema, report: LoadReport) -> None:
        self.cells = cells
        self.schema = schema
        self.report = report

    def text(self, index: int) -> str | None:
        value = self.cells[index].strip()
        return value or None

    def any_text(self, indexes: Iterable[int]) -> bool:
        return any(self.text(i) for i in indexes)

    def code(self, index: int, enum_cls: type[CodeEnum]) -> Any:
        raw = self.text(index)
        if raw is None:
            return None
        value = enum_cls.from_code(raw)
        if value is None:
            self.report.unrecognized_codes[self.schema.headers[index]] += 1
        return value

    def date(self, index: int) -> date | None:
        raw = self.text(index)
        try:
            return parse_nppes_date(raw)
        except ValueError:
            raise DateParseError(
                raw, NPPES_DATE_PATTERN, column=self.schema.headers[index]
            ) from None

    def npi(self, index: int = 0) -> Npi:
        value = self.text(index) or ""
        try:
            return Npi(value)
        except NppesError as e:
            e.locate(column=self.schema.headers[index])
            raise

    def address(self, cols: AddressColumns) -> Address:
        return Address(
            line_1=self.text(cols.line_1),
            line_2=self.text(cols.line_2),
            city=self.text(cols.city),
            state=self.code(cols.state, StateCode),
            postal_code=self.text(cols.postal_code),
            country=self.code(cols.country, CountryCode),
            telephone=self.text(cols.telephone),
            fax=self.text(cols.fax),
        )


def _build_provider(row: _Row) -> NppesRecord:
    c = MainColumns
    npi = row.npi(c.NPI)

    try:
        entity_type = EntityType.from_code(row.text(c.ENTITY_TYPE))
    except NppesError as e:
        e.locate(column=row.schema.headers[c.ENTITY_TYPE])
        raise

    provider_other_name = None
    if row.any_text(c.OTHER_NAME):
        provider_other_name = Name(
            prefix=row.code(c.OTHER_NAME_PREFIX, NamePrefix),
            first=row.text(c.OTHER_FIRST_NAME),
            middle=row.text(c.OTHER_MIDDLE_NAME),
            last=row.text(c.OTHER_LAST_NAME),
            suffix=row.code(c.OTHER_NAME_SUFFIX, NameSuffix),
            credential=row.text(c.OTHER_CREDENTIAL),
        )

    authorized_official = None
    if entity_type == EntityType.ORGANIZATION:
        authorized_official = AuthorizedOfficial(
            prefix=row.code(c.AO_NAME_PREFIX, NamePrefix),
            first=row.text(c.AO_FIRST_NAME),
            middle=row.text(c.AO_MIDDLE_NAME),
            last=row.text(c.AO_LAST_NAME),
            suffix=row.code(c.AO_NAME_SUFFIX, NameSuffix),
            credential=row.text(c.AO_CREDENTIAL),
            title=row.text(c.AO_TITLE),
            telephone=row.text(c.AO_TELEPHONE),
        )
    elif row.any_text(c.AUTHORIZED_OFFICIAL):
        row.report.suppressed_authorized_officials += 1
        if row.report.suppressed_authorized_officials <= MAX_LOGGED_SUPPRESSIONS:
            logger.warning(
                f"Ignoring authorized official columns for individual provider {npi}"
            )

    taxonomy_codes = []
    for slot in c.TAXONOMY:
        code = row.text(slot.code)
        if not code:
            continue
        switch = row.code(slot.primary_switch, PrimaryTaxonomySwitch)
        group = row.text(slot.group)
        group_code = None
        if group:
            group_code = GroupTaxonomy.from_code(group.split()[0])
            if group_code is None:
                row.report.unrecognized_codes[row.schema.headers[slot.group]] += 1
        taxonomy_codes.append(
            TaxonomyAssignment(
                code=code,
                license_number=row.text(slot.license_number),
                license_state=row.text(slot.license_state),
                is_primary=switch == PrimaryTaxonomySwitch.YES,
                taxonomy_group=group,
                group_taxonomy_code=group_code,
                primary_switch=switch,
            )
        )

    other_identifiers = []
    for slot in c.OTHER_IDENTIFIERS:
        identifier = row.text(slot.identifier)
        if not identifier:
            continue
        other_identifiers.append(
            OtherIdentifier(
                identifier=identifier,
                type_code=row.text(slot.type_code),
                issuer=row.code(slot.issuer, OtherIdentifierIssuer),
                state=row.text(slot.state),
            )
        )

    return NppesRecord(
        npi=npi,
        entity_type=entity_type,
        replacement_npi=row.text(c.REPLACEMENT_NPI),
        ein=row.text(c.EIN),
        provider_name=Name(
            prefix=row.code(c.NAME_PREFIX, NamePrefix),
            first=row.text(c.FIRST_NAME),
            middle=row.text(c.MIDDLE_NAME),
            last=row.text(c.LAST_NAME),
            suffix=row.code(c.NAME_SUFFIX, NameSuffix),
            credential=row.text(c.CREDENTIAL),
        ),
        provider_other_name=provider_other_name,
        provider_other_name_type=row.code(c.OTHER_LAST_NAME_TYPE, OtherNameType),
        organization_name=OrganizationName(
            legal_business_name=row.text(c.ORGANIZATION_NAME),
            other_name=row.text(c.OTHER_ORGANIZATION_NAME),
            other_name_type=row.code(c.OTHER_ORGANIZATION_NAME_TYPE, OtherNameType),
        ),
        mailing_address=row.address(c.MAILING),
        practice_address=row.address(c.PRACTICE),
        enumeration_date=row.date(c.ENUMERATION_DATE),
        last_update_date=row.date(c.LAST_UPDATE_DATE),
        deactivation_reason=row.code(c.DEACTIVATION_REASON, DeactivationReason),
        deactivation_date=row.date(c.DEACTIVATION_DATE),
        reactivation_date=row.date(c.REACTIVATION_DATE),
        certification_date=row.date(c.CERTIFICATION_DATE),
        provider_sex=row.code(c.SEX, Sex),
        authorized_official=authorized_official,
        taxonomy_codes=tuple(taxonomy_codes),
        other_identifiers=tuple(other_identifiers),
        sole_proprietor=row.code(c.SOLE_PROPRIETOR, SoleProprietor),
        organization_subpart=row.code(c.ORGANIZATION_SUBPART, OrganizationSubpart),
        parent_organization_lbn=row.text(c.PARENT_ORGANIZATION_LBN),
        parent_organization_tin=row.text(c.PARENT_ORGANIZATION_TIN),
    )


def _build_other_name(row: _Row) -> OtherName:
    return OtherName(
        npi=row.npi(),
        name=row.text(1),
        type_code=row.code(2, OtherNameType),
    )


def _build_practice_location(row: _Row) -> PracticeLocation:
    return PracticeLocation(
        npi=row.npi(),
        address=row.address(
            AddressColumns(
                line_1=1, line_2=2, city=3, state=4, postal_code=5,
                country=6, telephone=7, fax=9,
            )
        ),
        telephone_extension=row.text(8),
    )


def _build_endpoint(row: _Row) -> Endpoint:
    affiliation_address = None
    if row.text(13) or row.text(14):
        affiliation_address = Address(
            line_1=row.text(13),
            line_2=row.text(14),
            city=row.text(15),
            state=row.code(16, StateCode),
            country=row.code(17, CountryCode),
            postal_code=row.text(18),
        )

    return Endpoint(
        npi=row.npi(),
        endpoint_type=row.text(1),
        endpoint_type_description=row.text(2),
        endpoint=row.text(3),
        affiliation=(row.text(4) or "").upper() == "Y",
        endpoint_description=row.text(5),
        affiliation_legal_business_name=row.text(6),
        use_code=row.text(7),
        use_description=row.text(8),
        other_use_description=row.text(9),
        content_type=row.text(10),
        content_description=row.text(11),
        other_content_description=row.text(12),
        affiliation_address=affiliation_address,
    )


def _build_taxonomy(row: _Row) -> TaxonomyReference:
    code = row.text(0)
    if not code:
        raise DataValidationError("Code", code, "Taxonomy code is required")
    return TaxonomyReference(
        code=code,
        grouping=row.text(1),
        classification=row.text(2),
        specialization=row.text(3),
        definition=row.text(4),
        notes=row.text(5),
        display_name=row.text(6),
        section=row.text(7),
    )


ROW_BUILDERS: dict[FileKind, Callable[[_Row], Any]] = {
    FileKind.MAIN: _build_provider,
    FileKind.OTHER_NAME: _build_other_name,
    FileKind.PRACTICE_LOCATION: _build_practice_location,
    FileKind.ENDPOINT: _build_endpoint,
    FileKind.TAXONOMY: _build_taxonomy,
}


class NppesReader:
    """Schema-bound streaming reader for NPPES CSV files.

    Handles:
    - Header validation against the file type's schema
    - Typed record construction, one row at a time
    - Strict or lenient per-row error policy
    - Progress callbacks and a memory estimate for the main file
    """

    def __init__(self, options: LoadOptions | None = None) -> None:
        """Initialize the reader.

        Args:
            options: Load options (defaults to strict, validated loading)
        """
        self.options = options or LoadOptions()
        self.report: LoadReport | None = None

    def parse(self, file_path: str | Path, kind: FileKind | str) -> Iterator[Any]:
        """Stream typed records from a file.

        ``self.report`` is replaced with a fresh LoadReport when parsing
        starts and updated as rows are consumed.

        Args:
            file_path: Path to the CSV file
            kind: File type, selecting schema and record type

        Yields:
            One record per valid data row

        Raises:
            DataFileNotFoundError: If the file does not exist
            SchemaMismatchError: If header validation is enabled and fails
            InsufficientMemoryError: If the estimate exceeds memory_limit_bytes
            NppesError: On the first row error in strict mode
        """
        kind = FileKind(kind)
        schema = schema_for(kind)
        build = ROW_BUILDERS[kind]
        path = Path(file_path)

        if not path.is_file():
            raise DataFileNotFoundError(path)

        if kind == FileKind.MAIN:
            self.check_memory(path)

        report = LoadReport(path=str(path), file_kind=kind.value)
        self.report = report
        started = time.monotonic()
        logger.info(f"Reading {kind.value} file {path.name}")

        try:
            with open(path, "rb") as f:
                decode_errors: list[str] = []
                reader = csv.reader(self._decode_lines(f, report, decode_errors))
                header = self._read_header(reader, path)
                if decode_errors:
                    raise CsvParseError(
                        f"Unreadable header row: {decode_errors[0]}", path=path, line=1
                    )
                if self.options.validate_headers:
                    schema.validate_headers(header, path)
                width = len(header)

                while True:
                    try:
                        cells = next(reader)
                    except StopIteration:
                        break
                    except csv.Error as e:
                        decode_errors.clear()
                        report.rows_read += 1
                        self._handle_error(CsvParseError(str(e)), report, path, reader.line_num)
                        continue

                    if decode_errors:
                        error = CsvParseError(decode_errors[0])
                        decode_errors.clear()
                        report.rows_read += 1
                        self._handle_error(error, report, path, reader.line_num)
                        continue

                    if not cells:
                        continue
                    report.rows_read += 1

                    if len(cells) != width:
                        error = CsvParseError(
                            f"Expected {width} fields, found {len(cells)}"
                        )
                        self._handle_error(error, report, path, reader.line_num)
                        continue

                    if len(cells) < schema.width:
                        cells = cells + [""] * (schema.width - len(cells))

                    try:
                        record = build(_Row(cells, schema, report))
                    except NppesError as e:
                        self._handle_error(e, report, path, reader.line_num)
                        continue

                    report.records_loaded += 1
                    if report.rows_read % self.options.progress_interval == 0:
                        self._report_progress(report, started)
                    yield record
        except OSError as e:
            raise CsvParseError(f"Could not read file: {e}", path=path) from e
        finally:
            report.elapsed_seconds = time.monotonic() - started

        self._log_summary(report, started, path, kind)

    def read_all(self, file_path: str | Path, kind: FileKind | str) -> tuple[list[Any], LoadReport]:
        """Parse a whole file into a list.

        Returns:
            Tuple of (records, report)
        """
        records = list(self.parse(file_path, kind))
        return records, self.report

    def parse_main(self, file_path: str | Path) -> Iterator[NppesRecord]:
        return self.parse(file_path, FileKind.MAIN)

    def parse_other_names(self, file_path: str | Path) -> Iterator[OtherName]:
        return self.parse(file_path, FileKind.OTHER_NAME)

    def parse_practice_locations(self, file_path: str | Path) -> Iterator[PracticeLocation]:
        return self.parse(file_path, FileKind.PRACTICE_LOCATION)

    def parse_endpoints(self, file_path: str | Path) -> Iterator[Endpoint]:
        return self.parse(file_path, FileKind.ENDPOINT)

    def parse_taxonomy(self, file_path: str | Path) -> Iterator[TaxonomyReference]:
        return self.parse(file_path, FileKind.TAXONOMY)

    def check_memory(self, path: Path) -> MemoryEstimate:
        """Compare the load estimate with ``memory_limit_bytes``.

        Raises:
            InsufficientMemoryError: If a limit is set and the estimate exceeds it
        """
        estimate = estimate_memory(path)
        logger.info(
            f"Estimated {estimate.estimated_records:,} records, "
            f"{estimate.human} in memory for {path.name}"
        )
        limit = self.options.memory_limit_bytes
        if limit is not None and estimate.estimated_bytes > limit:
            raise InsufficientMemoryError(estimate.estimated_bytes, limit, path=path)
        return estimate

    def _decode_lines(
        self, lines: Iterable[bytes], report: LoadReport, errors: list[str]
    ) -> Iterator[str]:
        """Decode raw lines, counting bytes and collecting decode failures.

        A UTF-8 byte order mark on the first line is dropped. Lines that fail
        to decode are yielded with replacement characters and a message is
        appended to ``errors`` for the caller to report against the row.
        """
        encoding = self.options.encoding
        strip_bom = codecs.lookup(encoding).name == "utf-8"
        for raw in lines:
            report.bytes_read += len(raw)
            if strip_bom:
                strip_bom = False
                if raw.startswith(codecs.BOM_UTF8):
                    raw = raw[len(codecs.BOM_UTF8):]
            try:
                yield raw.decode(encoding)
            except UnicodeDecodeError as e:
                errors.append(
                    f"Invalid {encoding} byte sequence at offset {e.start}: {e.reason}"
                )
                yield raw.decode(encoding, errors="replace")

    @staticmethod
    def _read_header(reader: Any, path: Path) -> list[str]:
        try:
            return next(reader)
        except StopIteration:
            raise CsvParseError(
                "File is empty; expected a header row", path=path, line=1
            ) from None
        except csv.Error as e:
            raise CsvParseError(f"Unreadable header row: {e}", path=path, line=1) from e

    def _handle_error(
        self, error: NppesError, report: LoadReport, path: Path, line: int
    ) -> None:
        error.locate(path=path, line=line)
        if not self.options.skip_invalid_records:
            raise error

        report.record_error(error)
        if report.records_skipped <= self.options.max_logged_errors:
            logger.warning(f"Skipping invalid row: {error}")
        elif report.records_skipped == self.options.max_logged_errors + 1:
            logger.warning("Further row errors will be counted but not logged")

    def _log_summary(
        self, report: LoadReport, started: float, path: Path, kind: FileKind
    ) -> None:
        self._report_progress(report, started)
        message = (
            f"Loaded {report.records_loaded} {kind.value} records from {path.name} "
            f"in {report.elapsed_seconds:.1f}s ({report.records_skipped} skipped)"
        )
        if report.suppressed_authorized_officials:
            message += (
                f"; ignored authorized official data on "
                f"{report.suppressed_authorized_officials} individual rows"
            )
        logger.info(message)

    def _report_progress(self, report: LoadReport, started: float) -> None:
        elapsed = time.monotonic() - started
        if self.options.progress_callback is not None:
            self.options.progress_callback(report.rows_read, report.bytes_read, elapsed)
        rate = report.rows_read / elapsed if elapsed > 0 else 0.0
        logger.debug(
            f"Processed {report.rows_read:,} rows ({format_bytes(report.bytes_read)}) "
            f"at {rate:,.0f} rows/s"
        )
