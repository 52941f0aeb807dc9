"""Reader for parquet files written by :class:`nppes.export.ParquetExporter`.

Each parquet column is named after the matching CSV header and holds the
cell text (null for an empty cell). Rows therefore go through the same
record builders, error policy and load report as CSV rows.

pyarrow is an optional dependency, installed with the ``parquet`` extra.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Iterator

from ..config import LoadOptions
from ..errors import ConfigurationError, CsvParseError, DataFileNotFoundError, NppesError
from ..models import Endpoint, NppesRecord, OtherName, PracticeLocation, TaxonomyReference
from ..schema import FileKind, schema_for
from .csv_parser import ROW_BUILDERS, LoadReport, NppesReader, _Row

logger = logging.getLogger(__name__)

# Suffixes of the reference tables written beside a provider parquet file
REFERENCE_SUFFIXES = {
    FileKind.OTHER_NAME: "other_names",
    FileKind.PRACTICE_LOCATION: "practice_locations",
    FileKind.ENDPOINT: "endpoints",
    FileKind.TAXONOMY: "taxonomy",
}


def require_pyarrow() -> tuple[Any, Any]:
    """Import pyarrow and pyarrow.parquet.

    Raises:
        ConfigurationError: If pyarrow is not installed
    """
    try:
        import pyarrow
        import pyarrow.parquet
    except ImportError as e:
        raise ConfigurationError(
            "Parquet support requires pyarrow",
            suggestion="Install it with: pip install 'nppes-dataset[parquet]'",
        ) from e
    return pyarrow, pyarrow.parquet


def reference_paths(path: str | Path) -> dict[FileKind, Path]:
    """Paths of the reference tables that accompany a provider parquet file.

    ``providers.parquet`` pairs with ``providers_other_names.parquet``,
    ``providers_practice_locations.parquet`` and so on.
    """
    path = Path(path)
    stem = path.stem or "nppes_export"
    return {
        kind: path.with_name(f"{stem}_{suffix}.parquet")
        for kind, suffix in REFERENCE_SUFFIXES.items()
    }


def _compressed_size(row_group: Any) -> int:
    return sum(
        row_group.column(i).total_compressed_size for i in range(row_group.num_columns)
    )


class ParquetReader(NppesReader):
    """Streams typed records from parquet files.

    Inherits ``read_all`` and the ``parse_*`` helpers, so it can be passed
    anywhere an :class:`NppesReader` is accepted.
    """

    def parse(self, file_path: str | Path, kind: FileKind | str) -> Iterator[Any]:
        """Stream typed records from a parquet file.

        Raises:
            ConfigurationError: If pyarrow is not installed
            DataFileNotFoundError: If the file does not exist
            SchemaMismatchError: If header validation is enabled and the
                column names do not match the file type
            CsvParseError: If the file is not readable parquet
            NppesError: On the first row error in strict mode
        """
        pa, pq = require_pyarrow()
        kind = FileKind(kind)
        schema = schema_for(kind)
        build = ROW_BUILDERS[kind]
        path = Path(file_path)

        if not path.is_file():
            raise DataFileNotFoundError(path)

        report = LoadReport(path=str(path), file_kind=kind.value)
        self.report = report
        started = time.monotonic()
        logger.info(f"Reading {kind.value} parquet file {path.name}")

        try:
            parquet_file = pq.ParquetFile(path)
            if self.options.validate_headers:
                schema.validate_headers(parquet_file.schema_arrow.names, path)

            for group in range(parquet_file.num_row_groups):
                table = parquet_file.read_row_group(group)
                report.bytes_read += _compressed_size(parquet_file.metadata.row_group(group))
                columns = [table.column(i).to_pylist() for i in range(table.num_columns)]

                for values in zip(*columns):
                    report.rows_read += 1
                    cells = ["" if value is None else str(value) for value in values]
                    if len(cells) < schema.width:
                        cells = cells + [""] * (schema.width - len(cells))

                    try:
                        record = build(_Row(cells, schema, report))
                    except NppesError as e:
                        self._handle_error(e, report, path, report.rows_read)
                        continue

                    report.records_loaded += 1
                    if report.rows_read % self.options.progress_interval == 0:
                        self._report_progress(report, started)
                    yield record
        except (OSError, pa.ArrowException) as e:
            raise CsvParseError(
                f"Could not read parquet file: {e}",
                path=path,
                suggestion="Check that the file was written by the parquet exporter",
            ) from e
        finally:
            report.elapsed_seconds = time.monotonic() - started

        self._log_summary(report, started, path, kind)


def _read(path: str | Path, kind: FileKind, options: LoadOptions | None) -> list[Any]:
    records, _ = ParquetReader(options).read_all(path, kind)
    return records


def load_providers_parquet(
    path: str | Path, options: LoadOptions | None = None
) -> list[NppesRecord]:
    """Read provider records from a parquet file."""
    return _read(path, FileKind.MAIN, options)


def load_other_names_parquet(
    path: str | Path, options: LoadOptions | None = None
) -> list[OtherName]:
    return _read(path, FileKind.OTHER_NAME, options)


def load_practice_locations_parquet(
    path: str | Path, options: LoadOptions | None = None
) -> list[PracticeLocation]:
    return _read(path, FileKind.PRACTICE_LOCATION, options)


def load_endpoints_parquet(
    path: str | Path, options: LoadOptions | None = None
) -> list[Endpoint]:
    return _read(path, FileKind.ENDPOINT, options)


def load_taxonomy_parquet(
    path: str | Path, options: LoadOptions | None = None
) -> list[TaxonomyReference]:
    return _read(path, FileKind.TAXONOMY, options)
