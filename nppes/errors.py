"""Error taxonomy for NPPES ingestion.

Every failure raised by the toolkit is an :class:`NppesError` subclass that
carries a machine-readable ``kind`` plus the location of the problem (file,
line, column) and a user-facing suggestion derived from the kind.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from .utils.sanitization import format_bytes

NPPES_DOWNLOAD_PAGE = "https://download.cms.gov/nppes/NPI_Files.html"
NUCC_TAXONOMY_PAGE = (
    "https://www.nucc.org/index.php/code-sets-mainmenu-41/provider-taxonomy-mainmenu-40"
)


class ErrorKind(str, Enum):
    """Tag identifying the category of an :class:`NppesError`."""

    FILE_NOT_FOUND = "FileNotFound"
    SCHEMA_MISMATCH = "SchemaMismatch"
    CSV_PARSE = "CsvParse"
    DATA_VALIDATION = "DataValidation"
    INVALID_IDENTIFIER = "InvalidIdentifier"
    INVALID_ENTITY_TYPE = "InvalidEntityType"
    DATE_PARSE = "DateParse"
    MEMORY = "Memory"
    CONFIGURATION = "Configuration"
    EXPORT = "Export"
    DOWNLOAD = "Download"


class NppesError(Exception):
    """Base class for all NPPES toolkit errors."""

    kind: ErrorKind = ErrorKind.DATA_VALIDATION

    def __init__(
        self,
        message: str,
        *,
        path: str | Path | None = None,
        line: int | None = None,
        column: str | None = None,
        value: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = str(path) if path is not None else None
        self.line = line
        self.column = column
        self.value = value
        self.suggestion = suggestion or self.default_suggestion()

    def default_suggestion(self) -> str | None:
        """Suggestion used when the caller does not supply one."""
        return None

    def locate(
        self,
        path: str | Path | None = None,
        line: int | None = None,
        column: str | None = None,
    ) -> NppesError:
        """Fill in location fields that are still unknown.

        Returns:
            Self for chaining
        """
        if self.path is None and path is not None:
            self.path = str(path)
        if self.line is None:
            self.line = line
        if self.column is None:
            self.column = column
        return self

    def details(self) -> dict[str, Any]:
        """Kind-specific fields added to :meth:`to_dict`."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to a tagged dictionary."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "path": self.path,
            "line": self.line,
            "column": self.column,
            "value": self.value,
            "suggestion": self.suggestion,
            **self.details(),
        }

    def user_message(self) -> str:
        """Message with location and suggestion, for display to a person."""
        text = str(self)
        if self.suggestion:
            text += f"\n\nSuggestion: {self.suggestion}"
        return text

    def __str__(self) -> str:
        location = []
        if self.path:
            location.append(f"file {self.path}")
        if self.line is not None:
            location.append(f"line {self.line}")
        if self.column:
            location.append(f"column '{self.column}'")
        if not location:
            return self.message
        return f"{self.message} ({', '.join(location)})"


class DataFileNotFoundError(NppesError):
    """Raised when an input file does not exist."""

    kind = ErrorKind.FILE_NOT_FOUND

    def __init__(self, path: str | Path, suggestion: str | None = None) -> None:
        super().__init__(f"File not found: {path}", path=path, suggestion=suggestion)

    def default_suggestion(self) -> str:
        name = Path(self.path or "").name.lower()
        if "npidata" in name:
            return (
                "Ensure the NPPES data file exists. You can download the latest "
                f"file from {NPPES_DOWNLOAD_PAGE}"
            )
        if "taxonomy" in name:
            return (
                "Ensure the NUCC taxonomy file exists. You can download it from "
                f"{NUCC_TAXONOMY_PAGE}"
            )
        return "Check that the file path is correct and the file exists"


class SchemaMismatchError(NppesError):
    """Raised when a header row does not match the expected schema."""

    kind = ErrorKind.SCHEMA_MISMATCH

    def __init__(
        self,
        expected_columns: int,
        found_columns: int,
        first_mismatch: tuple[int, str, str] | None = None,
        *,
        path: str | Path | None = None,
        message: str | None = None,
    ) -> None:
        self.expected_columns = expected_columns
        self.found_columns = found_columns
        self.first_mismatch = first_mismatch

        if message is None:
            if first_mismatch is not None:
                index, expected, found = first_mismatch
                message = (
                    f"Header mismatch at column {index}: "
                    f"expected '{expected}', found '{found}'"
                )
            else:
                message = (
                    f"Expected {expected_columns} columns, found {found_columns}"
                )

        column = first_mismatch[1] if first_mismatch else None
        value = first_mismatch[2] if first_mismatch else None
        super().__init__(message, path=path, line=1, column=column, value=value)

    def default_suggestion(self) -> str:
        return (
            "Make sure the file is an unmodified NPPES distribution file "
            "of the expected type"
        )

    def details(self) -> dict[str, Any]:
        return {
            "expected_columns": self.expected_columns,
            "found_columns": self.found_columns,
            "first_mismatch": list(self.first_mismatch) if self.first_mismatch else None,
        }


class CsvParseError(NppesError):
    """Raised when a CSV row cannot be read."""

    kind = ErrorKind.CSV_PARSE

    def default_suggestion(self) -> str:
        return "Check the row for unbalanced quotes or a wrong number of fields"


class DataValidationError(NppesError):
    """Raised when a cell holds a value that fails validation."""

    kind = ErrorKind.DATA_VALIDATION

    def __init__(self, field: str, value: str | None, message: str, **kwargs: Any) -> None:
        self.field = field
        kwargs.setdefault("column", field)
        super().__init__(message, value=value, **kwargs)

    def details(self) -> dict[str, Any]:
        return {"field": self.field}


class InvalidIdentifierError(NppesError):
    """Raised when an NPI is not exactly ten ASCII digits."""

    kind = ErrorKind.INVALID_IDENTIFIER

    def __init__(self, npi: str, reason: str, **kwargs: Any) -> None:
        self.npi = npi
        self.reason = reason
        super().__init__(f"Invalid NPI '{npi}': {reason}", value=npi, **kwargs)

    def default_suggestion(self) -> str:
        return "NPI must be exactly 10 digits"

    def details(self) -> dict[str, Any]:
        return {"reason": self.reason}


class InvalidEntityTypeError(NppesError):
    """Raised when an entity type code is neither "1" nor "2"."""

    kind = ErrorKind.INVALID_ENTITY_TYPE
    valid_options = ("1 (Individual)", "2 (Organization)")

    def __init__(self, code: str, **kwargs: Any) -> None:
        self.code = code
        super().__init__(f"Invalid entity type code '{code}'", value=code, **kwargs)

    def default_suggestion(self) -> str:
        return f"Valid entity types are: {', '.join(self.valid_options)}"

    def details(self) -> dict[str, Any]:
        return {"valid_options": list(self.valid_options)}


class DateParseError(NppesError):
    """Raised when a date cell is not in MM/DD/YYYY form."""

    kind = ErrorKind.DATE_PARSE

    def __init__(self, value: str, expected: str = "MM/DD/YYYY", **kwargs: Any) -> None:
        self.expected = expected
        super().__init__(f"Failed to parse date '{value}'", value=value, **kwargs)

    def default_suggestion(self) -> str:
        return f"Dates must use the {self.expected} format"

    def details(self) -> dict[str, Any]:
        return {"expected": self.expected}


class InsufficientMemoryError(NppesError):
    """Raised when the estimated load footprint exceeds the allowed memory."""

    kind = ErrorKind.MEMORY

    def __init__(self, required: int, available: int, **kwargs: Any) -> None:
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient memory: need {format_bytes(required)}, "
            f"only {format_bytes(available)} available",
            **kwargs,
        )

    def default_suggestion(self) -> str:
        return "Raise memory_limit_bytes or load a smaller extract of the file"

    def details(self) -> dict[str, Any]:
        return {"required": self.required, "available": self.available}


class ConfigurationError(NppesError):
    """Raised when settings cannot be loaded or fail validation."""

    kind = ErrorKind.CONFIGURATION

    def __init__(
        self,
        message: str,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        self.errors = errors or []
        super().__init__(message, **kwargs)

    def default_suggestion(self) -> str:
        return "Check the settings file and the NPPES_* environment variables"

    def details(self) -> dict[str, Any]:
        return {"errors": [str(e.get("msg", e)) for e in self.errors]}


class ExportError(NppesError):
    """Raised when an export cannot be written."""

    kind = ErrorKind.EXPORT

    def default_suggestion(self) -> str:
        return "Check that the output directory exists and is writable"


class DownloadError(NppesError):
    """Raised when a distribution archive cannot be fetched or extracted."""

    kind = ErrorKind.DOWNLOAD

    def __init__(self, message: str, url: str | None = None, **kwargs: Any) -> None:
        self.url = url
        super().__init__(message, value=url, **kwargs)

    def default_suggestion(self) -> str:
        return f"Check network access, or download the archive manually from {NPPES_DOWNLOAD_PAGE}"
