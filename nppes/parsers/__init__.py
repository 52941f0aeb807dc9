"""Parsers for NPPES distribution files."""

from .csv_parser import LoadReport, MemoryEstimate, NppesReader, estimate_memory
from .parquet_reader import (
    ParquetReader,
    load_endpoints_parquet,
    load_other_names_parquet,
    load_practice_locations_parquet,
    load_providers_parquet,
    load_taxonomy_parquet,
)

__all__ = [
    "LoadReport",
    "MemoryEstimate",
    "NppesReader",
    "ParquetReader",
    "estimate_memory",
    "load_endpoints_parquet",
    "load_other_names_parquet",
    "load_practice_locations_parquet",
    "load_providers_parquet",
    "load_taxonomy_parquet",
]
