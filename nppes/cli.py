"""Command-line interface for NPPES datasets.

Usage:
    nppes stats -d ./nppes_data
    nppes query -d ./nppes_data --state CA --specialty "Family Medicine" --active
    nppes export -d ./nppes_data -o providers.jsonl --format jsonl --state CA
    nppes download -o ./nppes_data
"""

from __future__ import annotations

import argparse
import logging
import sys

from .config import EXPORT_FORMATS, NppesSettings, load_settings
from .dataset import NppesDataset, load_directory
from .download import NppesDownloader, latest_distribution_url
from .errors import NppesError
from .export import export_records
from .models import NppesRecord
from .query import QueryBuilder
from .utils.sanitization import format_bytes

logger = logging.getLogger("nppes.cli")

EXIT_OK = 0
EXIT_LOAD_FAILED = 1
EXIT_NO_RESULTS = 2
EXIT_EXPORT_FAILED = 3


def _progress_logger(rows: int, bytes_read: int, elapsed: float) -> None:
    rate = rows / elapsed if elapsed > 0 else 0.0
    logger.info(f"  {rows:,} rows, {format_bytes(bytes_read)} ({rate:,.0f} rows/s)")


def _load(args: argparse.Namespace, settings: NppesSettings) -> NppesDataset:
    overrides = {}
    if args.skip_invalid:
        overrides["skip_invalid_records"] = True
    if settings.enable_progress:
        overrides["progress_callback"] = _progress_logger
        overrides["progress_interval"] = settings.batch_size
    return load_directory(args.data_dir, settings.to_load_options(**overrides))


def _apply_filters(query: QueryBuilder, args: argparse.Namespace) -> QueryBuilder:
    if args.state:
        query.state(args.state)
    if getattr(args, "taxonomy", None):
        query.taxonomy(args.taxonomy)
    if args.specialty:
        query.specialty(args.specialty)
    if args.active:
        query.active_only()
    return query


def _describe(record: NppesRecord) -> str:
    state = record.mailing_address.state
    primary = record.primary_taxonomy()
    return "\t".join([
        str(record.npi),
        record.full_display_name(),
        state.as_code() if state else "",
        primary.code if primary else "",
        "active" if record.is_active() else "deactivated",
    ])


def cmd_stats(args: argparse.Namespace, settings: NppesSettings) -> int:
    dataset = _load(args, settings)
    for line in dataset.statistics().summary_lines():
        print(line)
    return EXIT_OK


def cmd_query(args: argparse.Namespace, settings: NppesSettings) -> int:
    dataset = _load(args, settings)

    if args.npi:
        record = dataset.get_by_npi(args.npi)
        results = [record] if record is not None else []
    else:
        results = _apply_filters(dataset.query(), args).limit(args.limit).execute()

    for record in results:
        print(_describe(record))
    logger.info(f"{len(results):,} matching providers")

    if args.require_results and not results:
        return EXIT_NO_RESULTS
    return EXIT_OK


def cmd_export(args: argparse.Namespace, settings: NppesSettings) -> int:
    dataset = _load(args, settings)
    fmt = args.format or settings.default_export_format
    kwargs = {"batch_size": settings.batch_size} if fmt in ("sql", "parquet") else {}

    query = _apply_filters(dataset.query(), args)
    try:
        count = export_records(iter(query), args.output, fmt, **kwargs)
    except NppesError as e:
        logger.error(e.user_message())
        return EXIT_EXPORT_FAILED

    print(f"Exported {count:,} providers to {args.output}")
    return EXIT_OK


def cmd_download(args: argparse.Namespace, settings: NppesSettings) -> int:
    url = args.url or latest_distribution_url()
    with NppesDownloader(
        keep_archive=args.keep_archive, staging_dir=settings.temp_dir
    ) as downloader:
        extracted = downloader.download_and_extract(url, args.output)
    print(extracted.summary())
    print(f"Files extracted to {extracted.directory}")
    return EXIT_OK


def _add_data_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-d",
        "--data-dir",
        required=True,
        help="Directory containing the extracted NPPES CSV files",
    )
    parser.add_argument(
        "--skip-invalid",
        action="store_true",
        help="Skip malformed rows instead of stopping at the first one",
    )


def _add_filter_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--state", help="Two-letter mailing address state code")
    parser.add_argument(
        "--specialty",
        help="Substring of the taxonomy display name (requires the taxonomy file)",
    )
    parser.add_argument(
        "--active",
        action="store_true",
        help="Only providers without a deactivation date",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nppes",
        description="Load, query and export NPPES provider data",
    )
    parser.add_argument("--config", help="YAML or JSON settings file")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    stats = subparsers.add_parser("stats", help="Show dataset statistics")
    _add_data_args(stats)
    stats.set_defaults(func=cmd_stats)

    query = subparsers.add_parser("query", help="Find providers")
    _add_data_args(query)
    _add_filter_args(query)
    query.add_argument("--taxonomy", help="Exact taxonomy code, e.g. 207Q00000X")
    query.add_argument("--npi", help="Look up a single NPI")
    query.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Maximum number of results (default: 20)",
    )
    query.add_argument(
        "--require-results",
        action="store_true",
        help="Exit with status 2 when nothing matches",
    )
    query.set_defaults(func=cmd_query)

    export = subparsers.add_parser("export", help="Export providers to a file")
    _add_data_args(export)
    _add_filter_args(export)
    export.add_argument("-o", "--output", required=True, help="Output file path")
    export.add_argument(
        "--format",
        choices=EXPORT_FORMATS,
        help="Output format (default: from settings, normally json)",
    )
    export.set_defaults(func=cmd_export)

    download = subparsers.add_parser("download", help="Download the monthly distribution")
    download.add_argument(
        "-o",
        "--output",
        required=True,
        help="Directory to extract the files into",
    )
    download.add_argument("--url", help="Archive URL (default: this month's V2 file)")
    download.add_argument(
        "--keep-archive",
        action="store_true",
        help="Keep the downloaded zip after extraction",
    )
    download.set_defaults(func=cmd_download)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "limit", 0) < 0:
        parser.error("--limit must be a non-negative integer")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(args.config)
        return args.func(args, settings)
    except NppesError as e:
        logger.error(e.user_message())
        return EXIT_LOAD_FAILED


if __name__ == "__main__":
    sys.exit(main())
