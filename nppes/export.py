"""Exporters for NPPES datasets.

Supported formats:
- JSON (array) and JSON Lines
- CSV, either denormalized in the original 330-column NPPES layout or
  normalized into provider, taxonomy and identifier tables
- SQL (CREATE TABLE plus batched INSERTs) for PostgreSQL, MySQL and SQLite
- Parquet, one string column per CSV header, for providers and the four
  reference tables (requires pyarrow)
"""

from __future__ import annotations

import csv
import json
import logging
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable

from .dataset import NppesDataset
from .errors import ExportError
from .models import (
    Address,
    Endpoint,
    NppesRecord,
    OtherName,
    PracticeLocation,
    TaxonomyReference,
)
from .parsers.parquet_reader import reference_paths, require_pyarrow
from .schema import MAIN_HEADERS, AddressColumns, FileKind, MainColumns, schema_for
from .utils.date_parser import format_nppes_date

logger = logging.getLogger(__name__)


class ExportFormat(str, Enum):
    JSON = "json"
    JSON_LINES = "jsonl"
    CSV = "csv"
    CSV_NORMALIZED = "csv-normalized"
    SQL = "sql"
    PARQUET = "parquet"


class SqlDialect(str, Enum):
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    SQLITE = "sqlite"


def _code(value: Any) -> str:
    return value.as_code() if value is not None else ""


def _text(value: str | None) -> str:
    return value or ""


def _put_address(row: list[str], cols: AddressColumns, address: Address) -> None:
    row[cols.line_1] = _text(address.line_1)
    row[cols.line_2] = _text(address.line_2)
    row[cols.city] = _text(address.city)
    row[cols.state] = _code(address.state)
    row[cols.postal_code] = _text(address.postal_code)
    row[cols.country] = _code(address.country)
    row[cols.telephone] = _text(address.telephone)
    row[cols.fax] = _text(address.fax)


def record_to_row(record: NppesRecord) -> list[str]:
    """Render a record as a row in the main provider file layout."""
    c = MainColumns
    row = [""] * len(MAIN_HEADERS)

    row[c.NPI] = str(record.npi)
    row[c.ENTITY_TYPE] = _code(record.entity_type)
    row[c.REPLACEMENT_NPI] = _text(record.replacement_npi)
    row[c.EIN] = _text(record.ein)

    name = record.provider_name
    row[c.LAST_NAME] = _text(name.last)
    row[c.FIRST_NAME] = _text(name.first)
    row[c.MIDDLE_NAME] = _text(name.middle)
    row[c.NAME_PREFIX] = _code(name.prefix)
    row[c.NAME_SUFFIX] = _code(name.suffix)
    row[c.CREDENTIAL] = _text(name.credential)

    org = record.organization_name
    row[c.ORGANIZATION_NAME] = _text(org.legal_business_name)
    row[c.OTHER_ORGANIZATION_NAME] = _text(org.other_name)
    row[c.OTHER_ORGANIZATION_NAME_TYPE] = _code(org.other_name_type)

    other = record.provider_other_name
    if other is not None:
        row[c.OTHER_LAST_NAME] = _text(other.last)
        row[c.OTHER_FIRST_NAME] = _text(other.first)
        row[c.OTHER_MIDDLE_NAME] = _text(other.middle)
        row[c.OTHER_NAME_PREFIX] = _code(other.prefix)
        row[c.OTHER_NAME_SUFFIX] = _code(other.suffix)
        row[c.OTHER_CREDENTIAL] = _text(other.credential)
    row[c.OTHER_LAST_NAME_TYPE] = _code(record.provider_other_name_type)

    _put_address(row, c.MAILING, record.mailing_address)
    _put_address(row, c.PRACTICE, record.practice_address)

    row[c.ENUMERATION_DATE] = format_nppes_date(record.enumeration_date)
    row[c.LAST_UPDATE_DATE] = format_nppes_date(record.last_update_date)
    row[c.DEACTIVATION_REASON] = _code(record.deactivation_reason)
    row[c.DEACTIVATION_DATE] = format_nppes_date(record.deactivation_date)
    row[c.REACTIVATION_DATE] = format_nppes_date(record.reactivation_date)
    row[c.CERTIFICATION_DATE] = format_nppes_date(record.certification_date)
    row[c.SEX] = _code(record.provider_sex)

    official = record.authorized_official
    if official is not None:
        row[c.AO_LAST_NAME] = _text(official.last)
        row[c.AO_FIRST_NAME] = _text(official.first)
        row[c.AO_MIDDLE_NAME] = _text(official.middle)
        row[c.AO_TITLE] = _text(official.title)
        row[c.AO_TELEPHONE] = _text(official.telephone)
        row[c.AO_NAME_PREFIX] = _code(official.prefix)
        row[c.AO_NAME_SUFFIX] = _code(official.suffix)
        row[c.AO_CREDENTIAL] = _text(official.credential)

    for slot, assignment in zip(c.TAXONOMY, record.taxonomy_codes):
        row[slot.code] = assignment.code
        row[slot.license_number] = _text(assignment.license_number)
        row[slot.license_state] = _text(assignment.license_state)
        row[slot.primary_switch] = _code(assignment.primary_switch)
        row[slot.group] = _text(assignment.taxonomy_group)

    for slot, identifier in zip(c.OTHER_IDENTIFIERS, record.other_identifiers):
        row[slot.identifier] = identifier.identifier
        row[slot.type_code] = _text(identifier.type_code)
        row[slot.state] = _text(identifier.state)
        row[slot.issuer] = _code(identifier.issuer)

    row[c.SOLE_PROPRIETOR] = _code(record.sole_proprietor)
    row[c.ORGANIZATION_SUBPART] = _code(record.organization_subpart)
    row[c.PARENT_ORGANIZATION_LBN] = _text(record.parent_organization_lbn)
    row[c.PARENT_ORGANIZATION_TIN] = _text(record.parent_organization_tin)
    return row


def other_name_to_row(other: OtherName) -> list[str]:
    return [str(other.npi), _text(other.name), _code(other.type_code)]


def practice_location_to_row(location: PracticeLocation) -> list[str]:
    a = location.address
    return [
        str(location.npi),
        _text(a.line_1),
        _text(a.line_2),
        _text(a.city),
        _code(a.state),
        _text(a.postal_code),
        _code(a.country),
        _text(a.telephone),
        _text(location.telephone_extension),
        _text(a.fax),
    ]


def endpoint_to_row(endpoint: Endpoint) -> list[str]:
    row = [
        str(endpoint.npi),
        _text(endpoint.endpoint_type),
        _text(endpoint.endpoint_type_description),
        _text(endpoint.endpoint),
        "Y" if endpoint.affiliation else "N",
        _text(endpoint.endpoint_description),
        _text(endpoint.affiliation_legal_business_name),
        _text(endpoint.use_code),
        _text(endpoint.use_description),
        _text(endpoint.other_use_description),
        _text(endpoint.content_type),
        _text(endpoint.content_description),
        _text(endpoint.other_content_description),
    ]
    a = endpoint.affiliation_address or Address()
    row += [
        _text(a.line_1),
        _text(a.line_2),
        _text(a.city),
        _code(a.state),
        _code(a.country),
        _text(a.postal_code),
    ]
    return row


def taxonomy_to_row(reference: TaxonomyReference) -> list[str]:
    return [
        reference.code,
        _text(reference.grouping),
        _text(reference.classification),
        _text(reference.specialization),
        _text(reference.definition),
        _text(reference.notes),
        _text(reference.display_name),
        _text(reference.section),
    ]


ROW_RENDERERS: dict[FileKind, Callable[[Any], list[str]]] = {
    FileKind.MAIN: record_to_row,
    FileKind.OTHER_NAME: other_name_to_row,
    FileKind.PRACTICE_LOCATION: practice_location_to_row,
    FileKind.ENDPOINT: endpoint_to_row,
    FileKind.TAXONOMY: taxonomy_to_row,
}


def _prune_empty(value: Any) -> Any:
    if isinstance(value, dict):
        pruned = {k: _prune_empty(v) for k, v in value.items()}
        return {k: v for k, v in pruned.items() if v not in (None, "", [], {})}
    if isinstance(value, list):
        return [_prune_empty(v) for v in value]
    return value


class JsonExporter:
    """Write records as a JSON array or as JSON Lines."""

    def __init__(
        self,
        pretty: bool = True,
        json_lines: bool = False,
        include_empty: bool = True,
    ) -> None:
        self.pretty = pretty
        self.json_lines = json_lines
        self.include_empty = include_empty

    def _dump(self, record: NppesRecord, indent: int | None) -> str:
        data = record.to_dict()
        if not self.include_empty:
            data = _prune_empty(data)
        return json.dumps(data, indent=indent)

    def export(self, records: Iterable[NppesRecord], path: Path) -> int:
        count = 0
        with open(path, "w", encoding="utf-8") as f:
            if self.json_lines:
                for record in records:
                    f.write(self._dump(record, None))
                    f.write("\n")
                    count += 1
                return count

            indent = 2 if self.pretty else None
            f.write("[")
            for record in records:
                f.write(",\n" if count else "\n")
                f.write(self._dump(record, indent))
                count += 1
            f.write("\n]\n")
        return count


class CsvExporter:
    """Write records as CSV.

    Denormalized output reproduces the main provider file layout, so it can
    be read back with :class:`~nppes.parsers.NppesReader`. Normalized output
    writes ``<stem>_providers.csv``, ``<stem>_taxonomies.csv`` and
    ``<stem>_identifiers.csv`` next to ``path``.
    """

    def __init__(self, normalized: bool = False, delimiter: str = ",") -> None:
        self.normalized = normalized
        self.delimiter = delimiter

    def export(self, records: Iterable[NppesRecord], path: Path) -> int:
        if self.normalized:
            return self._export_normalized(records, path)

        count = 0
        with open(path, "w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f, delimiter=self.delimiter)
            writer.writerow(MAIN_HEADERS)
            for record in records:
                writer.writerow(record_to_row(record))
                count += 1
        return count

    def _export_normalized(self, records: Iterable[NppesRecord], path: Path) -> int:
        stem = path.stem or "nppes_export"
        directory = path.parent
        count = 0

        with open(directory / f"{stem}_providers.csv", "w", encoding="utf-8", newline="") as pf, \
                open(directory / f"{stem}_taxonomies.csv", "w", encoding="utf-8", newline="") as tf, \
                open(directory / f"{stem}_identifiers.csv", "w", encoding="utf-8", newline="") as idf:
            providers = csv.writer(pf, delimiter=self.delimiter)
            taxonomies = csv.writer(tf, delimiter=self.delimiter)
            identifiers = csv.writer(idf, delimiter=self.delimiter)

            providers.writerow([
                "npi", "entity_type", "display_name", "mailing_state",
                "mailing_postal_code", "enumeration_date", "is_active",
            ])
            taxonomies.writerow([
                "npi", "taxonomy_code", "is_primary", "license_number", "license_state",
            ])
            identifiers.writerow(["npi", "identifier", "type_code", "issuer", "state"])

            for record in records:
                npi = str(record.npi)
                providers.writerow([
                    npi,
                    _code(record.entity_type),
                    record.display_name(),
                    _code(record.mailing_address.state),
                    _text(record.mailing_address.postal_code),
                    record.enumeration_date.isoformat() if record.enumeration_date else "",
                    "Y" if record.is_active() else "N",
                ])
                for t in record.taxonomy_codes:
                    taxonomies.writerow([
                        npi, t.code, "Y" if t.is_primary else "N",
                        _text(t.license_number), _text(t.license_state),
                    ])
                for i in record.other_identifiers:
                    identifiers.writerow([
                        npi, i.identifier, _text(i.type_code), _code(i.issuer), _text(i.state),
                    ])
                count += 1

        logger.info(f"Exported normalized CSV files to {directory}")
        return count


_SQL_TYPES = {
    SqlDialect.POSTGRESQL: {"id": "SERIAL PRIMARY KEY", "bool": "BOOLEAN"},
    SqlDialect.MYSQL: {"id": "INT AUTO_INCREMENT PRIMARY KEY", "bool": "BOOLEAN"},
    SqlDialect.SQLITE: {"id": "INTEGER PRIMARY KEY AUTOINCREMENT", "bool": "INTEGER"},
}

_PROVIDER_COLUMNS = (
    "npi", "entity_type", "organization_name", "last_name", "first_name",
    "middle_name", "mailing_address_line1", "mailing_address_city",
    "mailing_address_state", "mailing_address_postal_code",
    "enumeration_date", "last_update_date", "is_active",
)


def sql_string(value: str | None) -> str:
    if value is None:
        return "NULL"
    return "'" + value.replace("'", "''") + "'"


def sql_date(value: date | None) -> str:
    return f"'{value.isoformat()}'" if value else "NULL"


class SqlExporter:
    """Write a SQL script creating and populating provider tables."""

    def __init__(
        self,
        dialect: SqlDialect | str = SqlDialect.POSTGRESQL,
        table_prefix: str = "nppes",
        batch_size: int = 1000,
        include_schema: bool = True,
    ) -> None:
        self.dialect = SqlDialect(dialect)
        self.table_prefix = table_prefix
        self.batch_size = batch_size
        self.include_schema = include_schema

    def sql_bool(self, value: bool) -> str:
        if self.dialect == SqlDialect.SQLITE:
            return "1" if value else "0"
        return "TRUE" if value else "FALSE"

    def schema_sql(self) -> str:
        types = _SQL_TYPES[self.dialect]
        p = self.table_prefix
        return "\n".join([
            f"-- NPPES schema ({self.dialect.value})",
            f"CREATE TABLE IF NOT EXISTS {p}_providers (",
            "  npi VARCHAR(10) PRIMARY KEY,",
            "  entity_type SMALLINT,",
            "  organization_name VARCHAR(255),",
            "  last_name VARCHAR(100),",
            "  first_name VARCHAR(100),",
            "  middle_name VARCHAR(100),",
            "  mailing_address_line1 VARCHAR(255),",
            "  mailing_address_city VARCHAR(100),",
            "  mailing_address_state VARCHAR(2),",
            "  mailing_address_postal_code VARCHAR(20),",
            "  enumeration_date DATE,",
            "  last_update_date DATE,",
            f"  is_active {types['bool']}",
            ");",
            "",
            f"CREATE TABLE IF NOT EXISTS {p}_taxonomies (",
            f"  id {types['id']},",
            f"  npi VARCHAR(10) REFERENCES {p}_providers(npi),",
            "  taxonomy_code VARCHAR(10) NOT NULL,",
            f"  is_primary {types['bool']},",
            "  license_number VARCHAR(50),",
            "  license_state VARCHAR(2)",
            ");",
            "",
            f"CREATE INDEX idx_{p}_state ON {p}_providers(mailing_address_state);",
            f"CREATE INDEX idx_{p}_taxonomy ON {p}_taxonomies(taxonomy_code);",
            "",
        ])

    def _provider_values(self, r: NppesRecord) -> str:
        is_org = r.is_organization()
        values = [
            sql_string(str(r.npi)),
            r.entity_type.as_code() if r.entity_type else "NULL",
            sql_string(r.organization_name.legal_business_name if is_org else None),
            sql_string(None if is_org else r.provider_name.last),
            sql_string(None if is_org else r.provider_name.first),
            sql_string(None if is_org else r.provider_name.middle),
            sql_string(r.mailing_address.line_1),
            sql_string(r.mailing_address.city),
            sql_string(r.mailing_address.state.as_code() if r.mailing_address.state else None),
            sql_string(r.mailing_address.postal_code),
            sql_date(r.enumeration_date),
            sql_date(r.last_update_date),
            self.sql_bool(r.is_active()),
        ]
        return f"({', '.join(values)})"

    def _write_batch(self, f: Any, table: str, columns: Iterable[str], rows: list[str]) -> None:
        if not rows:
            return
        f.write(f"INSERT INTO {table} ({', '.join(columns)}) VALUES\n")
        f.write(",\n".join(f"  {row}" for row in rows))
        f.write(";\n")

    def export(self, records: Iterable[NppesRecord], path: Path) -> int:
        p = self.table_prefix
        taxonomy_columns = ("npi", "taxonomy_code", "is_primary", "license_number", "license_state")
        count = 0
        providers: list[str] = []
        taxonomies: list[str] = []

        with open(path, "w", encoding="utf-8") as f:
            if self.include_schema:
                f.write(self.schema_sql())
            f.write("\n-- Provider data\n")

            for record in records:
                providers.append(self._provider_values(record))
                for t in record.taxonomy_codes:
                    taxonomies.append(
                        "(" + ", ".join([
                            sql_string(str(record.npi)),
                            sql_string(t.code),
                            self.sql_bool(t.is_primary),
                            sql_string(t.license_number),
                            sql_string(t.license_state),
                        ]) + ")"
                    )
                count += 1
                if len(providers) >= self.batch_size:
                    self._write_batch(f, f"{p}_providers", _PROVIDER_COLUMNS, providers)
                    self._write_batch(f, f"{p}_taxonomies", taxonomy_columns, taxonomies)
                    providers, taxonomies = [], []

            self._write_batch(f, f"{p}_providers", _PROVIDER_COLUMNS, providers)
            self._write_batch(f, f"{p}_taxonomies", taxonomy_columns, taxonomies)
        return count


class ParquetExporter:
    """Write records as parquet.

    Columns are named after the CSV headers of the matching distribution
    file and hold the same cell text, with null for empty cells, so the
    output reads back through :class:`~nppes.parsers.ParquetReader`.
    ``export_dataset`` also writes the reference tables beside the
    provider file (see :func:`~nppes.parsers.parquet_reader.reference_paths`).
    """

    def __init__(self, batch_size: int = 10000, compression: str = "zstd") -> None:
        if batch_size <= 0:
            raise ExportError("batch_size must be positive")
        self.batch_size = batch_size
        self.compression = compression

    def export(self, records: Iterable[NppesRecord], path: Path) -> int:
        return self.export_kind(FileKind.MAIN, records, path)

    def export_kind(self, kind: FileKind, records: Iterable[Any], path: Path) -> int:
        """Write records of one file kind to ``path``."""
        pa, pq = require_pyarrow()
        render = ROW_RENDERERS[kind]
        schema = pa.schema([pa.field(name, pa.string()) for name in schema_for(kind).headers])

        count = 0
        batch: list[list[str]] = []
        with pq.ParquetWriter(path, schema, compression=self.compression) as writer:
            for record in records:
                batch.append(render(record))
                count += 1
                if len(batch) >= self.batch_size:
                    writer.write_table(self._table(pa, schema, batch))
                    batch = []
            if batch:
                writer.write_table(self._table(pa, schema, batch))
        return count

    def export_dataset(self, dataset: NppesDataset, path: Path) -> int:
        """Write providers to ``path`` and each loaded reference table beside it.

        Returns:
            Number of provider records written
        """
        count = self.export(dataset.providers, path)
        tables = {
            FileKind.OTHER_NAME: _flatten(dataset.other_names.values()),
            FileKind.PRACTICE_LOCATION: _flatten(dataset.practice_locations.values()),
            FileKind.ENDPOINT: _flatten(dataset.endpoints.values()),
            FileKind.TAXONOMY: list(dataset.taxonomy_reference.values()),
        }
        for kind, table_path in reference_paths(path).items():
            if not tables[kind]:
                continue
            written = self.export_kind(kind, tables[kind], table_path)
            logger.info(f"Exported {written:,} {kind.value} rows to {table_path}")
        return count

    @staticmethod
    def _table(pa: Any, schema: Any, rows: list[list[str]]) -> Any:
        columns = [
            pa.array([value or None for value in column], type=pa.string())
            for column in zip(*rows)
        ]
        return pa.Table.from_arrays(columns, schema=schema)


def _flatten(groups: Iterable[list[Any]]) -> list[Any]:
    return [item for group in groups for item in group]


def get_exporter(
    fmt: ExportFormat | str, **kwargs: Any
) -> JsonExporter | CsvExporter | SqlExporter | ParquetExporter:
    """Build the exporter for a format.

    Raises:
        ExportError: If the format is unknown
    """
    try:
        fmt = ExportFormat(fmt)
    except ValueError:
        raise ExportError(
            f"Unknown export format '{fmt}'",
            suggestion=f"Use one of: {', '.join(f.value for f in ExportFormat)}",
        ) from None

    if fmt == ExportFormat.JSON:
        return JsonExporter(**kwargs)
    if fmt == ExportFormat.JSON_LINES:
        return JsonExporter(json_lines=True, **kwargs)
    if fmt == ExportFormat.CSV:
        return CsvExporter(**kwargs)
    if fmt == ExportFormat.CSV_NORMALIZED:
        return CsvExporter(normalized=True, **kwargs)
    if fmt == ExportFormat.SQL:
        return SqlExporter(**kwargs)
    return ParquetExporter(**kwargs)


def _write_export(write: Callable[[Path], int], path: str | Path) -> int:
    path = Path(path)
    try:
        count = write(path)
    except OSError as e:
        raise ExportError(f"Failed to write export: {e}", path=path) from e
    logger.info(f"Exported {count:,} records to {path}")
    return count


def export_records(
    records: Iterable[NppesRecord],
    path: str | Path,
    fmt: ExportFormat | str = ExportFormat.JSON,
    **kwargs: Any,
) -> int:
    """Write records to ``path``.

    Returns:
        Number of records written

    Raises:
        ExportError: If the format is unknown or the file cannot be written
    """
    exporter = get_exporter(fmt, **kwargs)
    return _write_export(lambda p: exporter.export(records, p), path)


def export_dataset(
    dataset: NppesDataset,
    path: str | Path,
    fmt: ExportFormat | str = ExportFormat.JSON,
    **kwargs: Any,
) -> int:
    """Export every provider in ``dataset``.

    Parquet output also carries the dataset's reference tables.
    """
    exporter = get_exporter(fmt, **kwargs)
    if isinstance(exporter, ParquetExporter):
        return _write_export(lambda p: exporter.export_dataset(dataset, p), path)
    return _write_export(lambda p: exporter.export(dataset.providers, p), path)


def export_subset(
    dataset: NppesDataset,
    path: str | Path,
    predicate: Callable[[NppesRecord], bool],
    fmt: ExportFormat | str = ExportFormat.JSON,
    **kwargs: Any,
) -> int:
    """Export providers for which ``predicate`` returns True."""
    return export_records(
        (r for r in dataset.providers if predicate(r)), path, fmt, **kwargs
    )
