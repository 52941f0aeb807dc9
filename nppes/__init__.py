"""NPPES provider data package.

Loads the CMS National Plan and Provider Enumeration System (NPPES)
monthly distribution into typed, indexed in-memory records, including:

- Validated parsing of the 330-column main provider file
- Reference files (other names, practice locations, endpoints, NUCC taxonomy)
- NPI, state and taxonomy indexes with composable queries
- JSON, CSV, SQL and parquet export, with parquet read back
- Download and extraction of the monthly archive

Usage:
    from nppes import load_directory

    dataset = load_directory("./nppes_data")
    for provider in dataset.query().state("CA").active_only().limit(10):
        print(provider.npi, provider.display_name())

Modules:
    models: Provider record types and NPI validation
    codes: Enumerated NPPES code values
    schema: Column layouts of the distribution files
    parsers: Streaming CSV and parquet readers
    dataset: In-memory store, indexes and loading
    query: Query builder
    analytics: Aggregations over a dataset
    export: JSON, CSV, SQL and parquet exporters
    download: Archive download and extraction
    config: Load options and settings
    cli: Command-line entry point
"""

__version__ = "0.1.0"

from .analytics import NppesAnalytics
from .codes import DeactivationReason, EntityType, StateCode
from .config import LoadOptions, NppesSettings, load_settings
from .dataset import (
    DatasetState,
    DatasetStatistics,
    NppesDataset,
    find_dataset_files,
    load_directory,
    open_dataset,
    open_parquet_dataset,
)
from .errors import ErrorKind, NppesError
from .models import Address, Name, NppesRecord, Npi, TaxonomyAssignment
from .parsers import LoadReport, NppesReader, ParquetReader, estimate_memory
from .query import QueryBuilder

__all__ = [
    "__version__",
    "Address",
    "DatasetState",
    "DatasetStatistics",
    "DeactivationReason",
    "EntityType",
    "ErrorKind",
    "LoadOptions",
    "LoadReport",
    "Name",
    "NppesAnalytics",
    "NppesDataset",
    "NppesError",
    "NppesReader",
    "NppesRecord",
    "NppesSettings",
    "Npi",
    "ParquetReader",
    "QueryBuilder",
    "StateCode",
    "TaxonomyAssignment",
    "estimate_memory",
    "find_dataset_files",
    "load_directory",
    "load_settings",
    "open_dataset",
    "open_parquet_dataset",
]
