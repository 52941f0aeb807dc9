"""Date parsing utilities for NPPES distribution files."""

from __future__ import annotations

from datetime import date, datetime

# NPPES writes every date cell as zero-padded month/day/year
NPPES_DATE_FORMAT = "%m/%d/%Y"
NPPES_DATE_PATTERN = "MM/DD/YYYY"


def parse_nppes_date(date_str: str | None) -> date | None:
    """Parse an NPPES date cell.

    Only the ``MM/DD/YYYY`` format is accepted. Blank cells are treated as
    absent rather than invalid.

    Args:
        date_str: Raw cell text, or None

    Returns:
        Parsed date, or None when the cell is empty

    Raises:
        ValueError: If the cell is non-empty and not a real MM/DD/YYYY date

    Examples:
        >>> parse_nppes_date("05/23/2005")
        datetime.date(2005, 5, 23)
        >>> parse_nppes_date("  ") is None
        True
        >>> parse_nppes_date("2005-05-23")
        Traceback (most recent call last):
        ...
        ValueError: time data '2005-05-23' does not match format '%m/%d/%Y'
    """
    if date_str is None:
        return None

    value = date_str.strip()
    if not value:
        return None

    return datetime.strptime(value, NPPES_DATE_FORMAT).date()


def format_nppes_date(value: date | None) -> str:
    """Render a date the way NPPES files store it (empty string for None)."""
    if value is None:
        return ""
    return f"{value.month:02d}/{value.day:02d}/{value.year:04d}"
