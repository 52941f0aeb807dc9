"""Input sanitization and size formatting utilities."""

from __future__ import annotations

import re

_BYTE_UNITS = ("B", "KB", "MB", "GB", "TB")
_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([KMGT]?B?)\s*$", re.IGNORECASE)


def safe_member_name(name: str | None, max_length: int = 255) -> str | None:
    """Reduce an archive member name to a bare, safe file name.

    Prevents:
    - Path traversal out of the extraction directory (../, absolute paths)
    - Log injection (newlines, control characters)
    - Excessively long names

    Args:
        name: Member name as stored in the archive
        max_length: Maximum allowed file name length

    Returns:
        A safe file name, or None when nothing usable remains
        (directory entries, empty names)
    """
    if not name:
        return None

    safe_name = name.replace("\\", "/").split("/")[-1]
    safe_name = safe_name.replace("..", "")
    safe_name = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", safe_name).strip()

    if len(safe_name) > max_length:
        if "." in safe_name:
            stem, ext = safe_name.rsplit(".", 1)
            ext = ext[:10]
            safe_name = stem[: max_length - len(ext) - 1] + "." + ext
        else:
            safe_name = safe_name[:max_length]

    return safe_name or None


def format_bytes(num_bytes: int | float) -> str:
    """Format a byte count using 1024-based units.

    Examples:
        >>> format_bytes(512)
        '512.00 B'
        >>> format_bytes(1536)
        '1.50 KB'
    """
    size = float(num_bytes)
    unit_index = 0
    while size >= 1024.0 and unit_index < len(_BYTE_UNITS) - 1:
        size /= 1024.0
        unit_index += 1
    return f"{size:.2f} {_BYTE_UNITS[unit_index]}"


def parse_byte_size(value: str | int | None) -> int | None:
    """Parse a human byte size such as ``"512MB"`` or ``"4 GB"``.

    Plain integers are returned unchanged. Units are 1024-based.

    Raises:
        ValueError: If the value is not a recognizable size
    """
    if value is None or isinstance(value, int):
        return value

    text = str(value).strip()
    if not text:
        return None

    match = _SIZE_PATTERN.match(text)
    if not match:
        raise ValueError(f"Invalid byte size: {value!r}")

    number, unit = match.groups()
    unit = unit.upper()
    if unit and not unit.endswith("B"):
        unit += "B"
    multiplier = 1024 ** _BYTE_UNITS.index(unit or "B")
    return int(float(number) * multiplier)
