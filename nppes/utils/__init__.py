"""Shared utility functions for the NPPES toolkit."""

from .date_parser import NPPES_DATE_PATTERN, format_nppes_date, parse_nppes_date
from .sanitization import format_bytes, parse_byte_size, safe_member_name

__all__ = [
    "NPPES_DATE_PATTERN",
    "format_bytes",
    "format_nppes_date",
    "parse_byte_size",
    "parse_nppes_date",
    "safe_member_name",
]
