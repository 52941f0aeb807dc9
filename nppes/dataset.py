"""In-memory NPPES dataset with secondary indexes.

The dataset owns the provider record list, the NPI-keyed reference maps and
three position indexes (NPI, mailing state, taxonomy code). Its lifecycle is
Empty -> Loading -> Loaded -> Indexed.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable

from .codes import EntityType
from .config import LoadOptions
from .errors import DataFileNotFoundError
from .models import (
    Endpoint,
    NppesRecord,
    Npi,
    OtherName,
    PracticeLocation,
    TaxonomyReference,
)
from .parsers.csv_parser import LoadReport, NppesReader
from .parsers.parquet_reader import ParquetReader, reference_paths
from .schema import FileKind, detect_file_kind

if TYPE_CHECKING:
    from .query import QueryBuilder

logger = logging.getLogger(__name__)


class DatasetState(str, Enum):
    """Lifecycle state of a dataset."""

    EMPTY = "empty"
    LOADING = "loading"
    LOADED = "loaded"
    INDEXED = "indexed"


@dataclass
class DatasetFiles:
    """Distribution files found in a directory."""

    directory: Path
    main: Path | None = None
    other_names: Path | None = None
    practice_locations: Path | None = None
    endpoints: Path | None = None
    taxonomy: Path | None = None

    def has_main_data(self) -> bool:
        return self.main is not None

    def summary(self) -> str:
        """Describe which files were recognized."""
        found = [
            label
            for label, path in (
                ("Main Data", self.main),
                ("Taxonomy", self.taxonomy),
                ("Other Names", self.other_names),
                ("Practice Locations", self.practice_locations),
                ("Endpoints", self.endpoints),
            )
            if path is not None
        ]
        if not found:
            return "No recognized NPPES files found"
        return f"Found: {', '.join(found)}"


_FILE_ATTRS = {
    FileKind.MAIN: "main",
    FileKind.OTHER_NAME: "other_names",
    FileKind.PRACTICE_LOCATION: "practice_locations",
    FileKind.ENDPOINT: "endpoints",
    FileKind.TAXONOMY: "taxonomy",
}


def classify_files(directory: str | Path, paths: Iterable[Path]) -> DatasetFiles:
    """Sort candidate paths into a DatasetFiles by name prefix.

    When several files of one kind exist, the lexically last (newest
    distribution date) wins.
    """
    files = DatasetFiles(directory=Path(directory))
    for path in sorted(paths, key=lambda p: p.name):
        kind = detect_file_kind(path.name)
        if kind is None:
            continue
        attr = _FILE_ATTRS[kind]
        previous = getattr(files, attr)
        if previous is not None:
            logger.warning(f"Multiple {kind.value} files; using {path.name} over {previous.name}")
        setattr(files, attr, path)
    return files


def find_dataset_files(directory: str | Path) -> DatasetFiles:
    """Recognize distribution files in ``directory``.

    Raises:
        DataFileNotFoundError: If the directory does not exist
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise DataFileNotFoundError(directory)
    return classify_files(directory, (p for p in directory.iterdir() if p.is_file()))


@dataclass
class DatasetStatistics:
    """Summary counts over a dataset."""

    total_providers: int = 0
    individual_providers: int = 0
    organization_providers: int = 0
    unknown_entity_type: int = 0
    active_providers: int = 0
    inactive_providers: int = 0
    states_represented: int = 0
    unique_taxonomy_codes: int = 0
    providers_with_other_names: int = 0
    providers_with_practice_locations: int = 0
    providers_with_endpoints: int = 0
    taxonomy_references: int = 0
    duplicate_npis: int = 0
    authorized_official_violations: int = 0
    load_reports: list[LoadReport] = field(default_factory=list)

    def summary_lines(self) -> list[str]:
        lines = [
            f"Total providers:          {self.total_providers:,}",
            f"  Individuals:            {self.individual_providers:,}",
            f"  Organizations:          {self.organization_providers:,}",
            f"  Entity type missing:    {self.unknown_entity_type:,}",
            f"Active providers:         {self.active_providers:,}",
            f"Inactive providers:       {self.inactive_providers:,}",
            f"States represented:       {self.states_represented:,}",
            f"Unique taxonomy codes:    {self.unique_taxonomy_codes:,}",
            f"With other names:         {self.providers_with_other_names:,}",
            f"With practice locations:  {self.providers_with_practice_locations:,}",
            f"With endpoints:           {self.providers_with_endpoints:,}",
            f"Taxonomy references:      {self.taxonomy_references:,}",
            f"Duplicate NPIs:           {self.duplicate_npis:,}",
        ]
        for report in self.load_reports:
            if report.records_skipped:
                lines.append(
                    f"Skipped in {Path(report.path).name}: {report.records_skipped:,} "
                    f"{dict(report.error_counts)}"
                )
        return lines

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = {k: v for k, v in self.__dict__.items() if k != "load_reports"}
        data["load_reports"] = [r.to_dict() for r in self.load_reports]
        return data


def _group_by_npi(records: Iterable[Any]) -> dict[Npi, list[Any]]:
    grouped: dict[Npi, list[Any]] = defaultdict(list)
    for record in records:
        grouped[record.npi].append(record)
    return dict(grouped)


def _as_npi(npi: Npi | str) -> Npi | None:
    if isinstance(npi, Npi):
        return npi
    value = str(npi).strip()
    return Npi(value) if Npi.is_valid(value) else None


class NppesDataset:
    """Provider records plus reference maps and secondary indexes.

    Records are read-only once loaded; indexes map keys to positions in
    ``providers``.
    """

    def __init__(self) -> None:
        self.providers: tuple[NppesRecord, ...] = ()
        self.other_names: dict[Npi, list[OtherName]] = {}
        self.practice_locations: dict[Npi, list[PracticeLocation]] = {}
        self.endpoints: dict[Npi, list[Endpoint]] = {}
        self.taxonomy_reference: dict[str, TaxonomyReference] = {}

        self.npi_index: dict[Npi, int] | None = None
        self.state_index: dict[str, list[int]] | None = None
        self.taxonomy_index: dict[str, list[int]] | None = None
        self.duplicate_npis: list[Npi] = []

        self.load_reports: list[LoadReport] = []
        self.state = DatasetState.EMPTY

    @classmethod
    def from_records(
        cls,
        providers: Iterable[NppesRecord],
        *,
        other_names: Iterable[OtherName] = (),
        practice_locations: Iterable[PracticeLocation] = (),
        endpoints: Iterable[Endpoint] = (),
        taxonomy_reference: Iterable[TaxonomyReference] = (),
        build_indexes: bool = True,
    ) -> NppesDataset:
        """Build a dataset from records already in memory."""
        dataset = cls()
        dataset.state = DatasetState.LOADING
        dataset.providers = tuple(providers)
        dataset.other_names = _group_by_npi(other_names)
        dataset.practice_locations = _group_by_npi(practice_locations)
        dataset.endpoints = _group_by_npi(endpoints)
        dataset.taxonomy_reference = {ref.code: ref for ref in taxonomy_reference}
        dataset.state = DatasetState.LOADED
        if build_indexes:
            dataset.build_indexes()
        return dataset

    # Loading

    def load_main(self, file_path: str | Path, reader: NppesReader) -> LoadReport:
        """Load the main provider file.

        Raises:
            RuntimeError: If provider records were already loaded
            NppesError: On any fatal load error (state returns to Empty)
        """
        if self.state != DatasetState.EMPTY:
            raise RuntimeError(f"Cannot load provider file in state '{self.state.value}'")

        self.state = DatasetState.LOADING
        try:
            self.providers = tuple(reader.parse_main(file_path))
        except BaseException:
            self.providers = ()
            self.state = DatasetState.EMPTY
            raise

        self.load_reports.append(reader.report)
        self.state = DatasetState.LOADED
        return reader.report

    def load_other_names(self, file_path: str | Path, reader: NppesReader) -> LoadReport:
        self.other_names = _group_by_npi(reader.parse_other_names(file_path))
        self.load_reports.append(reader.report)
        return reader.report

    def load_practice_locations(self, file_path: str | Path, reader: NppesReader) -> LoadReport:
        self.practice_locations = _group_by_npi(reader.parse_practice_locations(file_path))
        self.load_reports.append(reader.report)
        return reader.report

    def load_endpoints(self, file_path: str | Path, reader: NppesReader) -> LoadReport:
        self.endpoints = _group_by_npi(reader.parse_endpoints(file_path))
        self.load_reports.append(reader.report)
        return reader.report

    def load_taxonomy_reference(self, file_path: str | Path, reader: NppesReader) -> LoadReport:
        self.taxonomy_reference = {
            ref.code: ref for ref in reader.parse_taxonomy(file_path)
        }
        self.load_reports.append(reader.report)
        return reader.report

    # Indexes

    def build_indexes(self) -> None:
        """Build the NPI, state and taxonomy indexes.

        Safe to call again; each call rebuilds all three maps from scratch.
        Duplicate NPIs are logged and the later row wins in ``npi_index``.

        Raises:
            RuntimeError: If no provider file has been loaded
        """
        if self.state not in (DatasetState.LOADED, DatasetState.INDEXED):
            raise RuntimeError(f"Cannot build indexes in state '{self.state.value}'")

        npi_index: dict[Npi, int] = {}
        state_index: dict[str, list[int]] = defaultdict(list)
        taxonomy_index: dict[str, list[int]] = defaultdict(list)
        duplicates: list[Npi] = []

        for position, record in enumerate(self.providers):
            if record.npi in npi_index:
                duplicates.append(record.npi)
                logger.warning(
                    f"Duplicate NPI {record.npi} at positions "
                    f"{npi_index[record.npi]} and {position}; keeping the later row"
                )
            npi_index[record.npi] = position

            state = record.mailing_address.state
            if state is not None:
                state_index[state.as_code()].append(position)

            seen: set[str] = set()
            for assignment in record.taxonomy_codes:
                if assignment.code not in seen:
                    seen.add(assignment.code)
                    taxonomy_index[assignment.code].append(position)

        self.npi_index = npi_index
        self.state_index = dict(state_index)
        self.taxonomy_index = dict(taxonomy_index)
        self.duplicate_npis = duplicates
        self.state = DatasetState.INDEXED
        logger.info(
            f"Indexed {len(self.providers):,} providers: {len(self.state_index)} states, "
            f"{len(self.taxonomy_index)} taxonomy codes"
        )

    @property
    def is_indexed(self) -> bool:
        return self.state == DatasetState.INDEXED

    def index_positions(self, index_name: str, key: str) -> list[int] | None:
        """Positions for ``key`` in a secondary index, or None when unindexed."""
        if not self.is_indexed:
            return None
        index = {"state": self.state_index, "taxonomy": self.taxonomy_index}[index_name]
        return index.get(key, [])

    # Lookups

    def __len__(self) -> int:
        return len(self.providers)

    def __iter__(self):
        return iter(self.providers)

    def is_empty(self) -> bool:
        return not self.providers

    def get_by_npi(self, npi: Npi | str) -> NppesRecord | None:
        """Look up a provider by NPI (the later row when duplicated)."""
        key = _as_npi(npi)
        if key is None:
            return None
        if self.npi_index is not None:
            position = self.npi_index.get(key)
            return self.providers[position] if position is not None else None
        for record in reversed(self.providers):
            if record.npi == key:
                return record
        return None

    def get_by_state(self, state_code: str) -> list[NppesRecord]:
        """Providers whose mailing address is in ``state_code`` (case-insensitive)."""
        key = state_code.strip().upper()
        positions = self.index_positions("state", key)
        if positions is not None:
            return [self.providers[p] for p in positions]
        return [
            r
            for r in self.providers
            if r.mailing_address.state is not None and r.mailing_address.state.as_code() == key
        ]

    def get_by_taxonomy(self, code: str) -> list[NppesRecord]:
        """Providers with any taxonomy assignment equal to ``code``."""
        key = code.strip()
        positions = self.index_positions("taxonomy", key)
        if positions is not None:
            return [self.providers[p] for p in positions]
        return [
            r for r in self.providers if any(t.code == key for t in r.taxonomy_codes)
        ]

    def get_taxonomy_description(self, code: str) -> TaxonomyReference | None:
        return self.taxonomy_reference.get(code.strip())

    def get_other_names(self, npi: Npi | str) -> list[OtherName]:
        key = _as_npi(npi)
        return list(self.other_names.get(key, [])) if key else []

    def get_practice_locations(self, npi: Npi | str) -> list[PracticeLocation]:
        key = _as_npi(npi)
        return list(self.practice_locations.get(key, [])) if key else []

    def get_endpoints(self, npi: Npi | str) -> list[Endpoint]:
        key = _as_npi(npi)
        return list(self.endpoints.get(key, [])) if key else []

    def query(self) -> QueryBuilder:
        """Start a filter query over the providers.

        Raises:
            RuntimeError: If the dataset has not finished loading
        """
        from .query import QueryBuilder

        if self.state in (DatasetState.EMPTY, DatasetState.LOADING):
            raise RuntimeError(f"Cannot query a dataset in state '{self.state.value}'")
        return QueryBuilder(self)

    def statistics(self) -> DatasetStatistics:
        """Compute summary counts."""
        stats = DatasetStatistics(
            total_providers=len(self.providers),
            taxonomy_references=len(self.taxonomy_reference),
            load_reports=list(self.load_reports),
        )
        states: set[str] = set()
        codes: set[str] = set()
        npis: set[Npi] = set()

        for record in self.providers:
            npis.add(record.npi)
            if record.entity_type == EntityType.INDIVIDUAL:
                stats.individual_providers += 1
            elif record.entity_type == EntityType.ORGANIZATION:
                stats.organization_providers += 1
            else:
                stats.unknown_entity_type += 1

            if record.is_active():
                stats.active_providers += 1
            else:
                stats.inactive_providers += 1

            if record.mailing_address.state is not None:
                states.add(record.mailing_address.state.as_code())
            codes.update(t.code for t in record.taxonomy_codes)

            if record.authorized_official is not None and not record.is_organization():
                stats.authorized_official_violations += 1

        stats.states_represented = len(states)
        stats.unique_taxonomy_codes = len(codes)
        stats.duplicate_npis = len(self.providers) - len(npis)
        stats.providers_with_other_names = len(self.other_names)
        stats.providers_with_practice_locations = len(self.practice_locations)
        stats.providers_with_endpoints = len(self.endpoints)
        return stats


def open_dataset(
    main_path: str | Path,
    *,
    other_names: str | Path | None = None,
    practice_locations: str | Path | None = None,
    endpoints: str | Path | None = None,
    taxonomy: str | Path | None = None,
    options: LoadOptions | None = None,
) -> NppesDataset:
    """Load a dataset from the main file and optional reference files.

    Args:
        main_path: Main provider file (npidata_pfile_*.csv)
        other_names: Other-names reference file
        practice_locations: Practice-location reference file
        endpoints: Endpoint reference file
        taxonomy: NUCC taxonomy reference file
        options: Load options

    Returns:
        Loaded dataset, indexed unless ``options.build_indexes`` is False

    Raises:
        NppesError: On any fatal load error
    """
    options = options or LoadOptions()
    reader = NppesReader(options)
    dataset = NppesDataset()

    dataset.load_main(main_path, reader)
    if other_names:
        dataset.load_other_names(other_names, reader)
    if practice_locations:
        dataset.load_practice_locations(practice_locations, reader)
    if endpoints:
        dataset.load_endpoints(endpoints, reader)
    if taxonomy:
        dataset.load_taxonomy_reference(taxonomy, reader)

    if options.build_indexes:
        dataset.build_indexes()
    return dataset


def load_directory(
    directory: str | Path, options: LoadOptions | None = None
) -> NppesDataset:
    """Load every recognized distribution file in ``directory``.

    Raises:
        DataFileNotFoundError: If no main provider file is present
    """
    files = find_dataset_files(directory)
    logger.info(f"{files.summary()} in {files.directory}")
    if files.main is None:
        raise DataFileNotFoundError(Path(directory) / "npidata_pfile_*.csv")

    return open_dataset(
        files.main,
        other_names=files.other_names,
        practice_locations=files.practice_locations,
        endpoints=files.endpoints,
        taxonomy=files.taxonomy,
        options=options,
    )


def open_parquet_dataset(
    path: str | Path, options: LoadOptions | None = None
) -> NppesDataset:
    """Load a dataset written by ``export_dataset(..., "parquet")``.

    Reference tables are read from the files beside ``path`` when they
    exist.

    Raises:
        ConfigurationError: If pyarrow is not installed
        NppesError: On any fatal load error
    """
    options = options or LoadOptions()
    reader = ParquetReader(options)
    dataset = NppesDataset()
    dataset.load_main(path, reader)

    loaders = {
        FileKind.OTHER_NAME: dataset.load_other_names,
        FileKind.PRACTICE_LOCATION: dataset.load_practice_locations,
        FileKind.ENDPOINT: dataset.load_endpoints,
        FileKind.TAXONOMY: dataset.load_taxonomy_reference,
    }
    for kind, table_path in reference_paths(path).items():
        if table_path.is_file():
            loaders[kind](table_path, reader)

    if options.build_indexes:
        dataset.build_indexes()
    return dataset
