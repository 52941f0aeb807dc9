"""Configuration for NPPES loading.

Two layers:

- :class:`LoadOptions` are the per-load switches passed to the reader and
  :func:`nppes.dataset.open_dataset`.
- :class:`NppesSettings` are tool-wide settings read from a YAML (or JSON)
  file and ``NPPES_*`` environment variables, and turned into LoadOptions.
"""

from __future__ import annotations

import codecs
import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .utils.sanitization import parse_byte_size

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, float], None]

# Environment variable -> settings field
ENV_VARS = {
    "NPPES_PROGRESS_BAR": "enable_progress",
    "NPPES_VALIDATION_LEVEL": "validation_level",
    "NPPES_INDEX_ON_LOAD": "index_on_load",
    "NPPES_SKIP_INVALID": "skip_invalid_records",
    "NPPES_MEMORY_LIMIT": "memory_limit_bytes",
    "NPPES_BATCH_SIZE": "batch_size",
    "NPPES_TEMP_DIR": "temp_dir",
    "NPPES_EXPORT_FORMAT": "default_export_format",
}

EXPORT_FORMATS = ("json", "jsonl", "csv", "csv-normalized", "sql", "parquet")


class LoadOptions(BaseModel):
    """Options recognized when loading a dataset."""

    skip_invalid_records: bool = False
    build_indexes: bool = True
    validate_headers: bool = True
    memory_limit_bytes: int | None = Field(default=None, gt=0)
    progress_callback: ProgressCallback | None = None
    progress_interval: int = Field(default=1000, gt=0)
    max_logged_errors: int = Field(default=10, ge=0)
    encoding: str = "utf-8"

    @field_validator("encoding")
    @classmethod
    def _known_encoding(cls, v: str) -> str:
        try:
            codecs.lookup(v)
        except LookupError:
            raise ValueError(f"Unknown encoding '{v}'") from None
        return v


class ValidationLevel(str, Enum):
    """How much of a file must be valid for a load to succeed.

    - ``strict``: any row error aborts the load
    - ``standard``: row errors abort unless ``skip_invalid_records`` is set
    - ``basic``: headers must match, invalid rows are always skipped
    - ``none``: headers are not checked and invalid rows are skipped
    """

    NONE = "none"
    BASIC = "basic"
    STANDARD = "standard"
    STRICT = "strict"


class NppesSettings(BaseModel):
    """Tool-wide settings."""

    enable_progress: bool = True
    validation_level: ValidationLevel = ValidationLevel.STANDARD
    index_on_load: bool = True
    skip_invalid_records: bool = False
    memory_limit_bytes: int | None = Field(default=None, gt=0)
    batch_size: int = 10000
    default_export_format: str = "json"
    temp_dir: str | None = None  # staging directory for downloaded archives

    @field_validator("validation_level", mode="before")
    @classmethod
    def _lowercase_level(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("memory_limit_bytes", mode="before")
    @classmethod
    def _parse_memory_limit(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_byte_size(v)
        return v

    @field_validator("batch_size")
    @classmethod
    def _positive_batch_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("batch_size must be positive")
        return v

    @field_validator("default_export_format")
    @classmethod
    def _known_export_format(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in EXPORT_FORMATS:
            raise ValueError(
                f"Unknown export format '{v}'. Valid: {', '.join(EXPORT_FORMATS)}"
            )
        return v

    @classmethod
    def performance(cls) -> NppesSettings:
        """Settings tuned for speed on trusted files."""
        return cls(
            enable_progress=False,
            validation_level=ValidationLevel.BASIC,
            skip_invalid_records=True,
            batch_size=50000,
        )

    @classmethod
    def safe(cls) -> NppesSettings:
        """Settings that stop on the first problem."""
        return cls(
            validation_level=ValidationLevel.STRICT,
            skip_invalid_records=False,
            batch_size=1000,
        )

    def to_load_options(self, **overrides: Any) -> LoadOptions:
        """Build LoadOptions from these settings.

        The validation level overrides ``skip_invalid_records``: ``strict``
        never skips, ``basic`` and ``none`` always do. ``none`` also disables
        header validation.
        """
        options: dict[str, Any] = {
            "skip_invalid_records": self._skips_invalid_records(),
            "build_indexes": self.index_on_load,
            "validate_headers": self.validation_level != ValidationLevel.NONE,
            "memory_limit_bytes": self.memory_limit_bytes,
        }
        options.update(overrides)
        return LoadOptions(**options)

    def _skips_invalid_records(self) -> bool:
        if self.validation_level == ValidationLevel.STRICT:
            return False
        if self.validation_level == ValidationLevel.STANDARD:
            return self.skip_invalid_records
        return True


def _read_settings_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Settings file not found: {path}", path=path)

    suffix = path.suffix.lower()
    try:
        with open(path, "r", encoding="utf-8") as f:
            if suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            elif suffix == ".json":
                data = json.load(f)
            else:
                raise ConfigurationError(
                    f"Unsupported settings format: {suffix}", path=path
                )
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not parse settings file: {e}", path=path) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("Settings file must contain a mapping", path=path)

    # Allow the settings to live under a top-level "nppes" key
    if isinstance(data.get("nppes"), dict):
        data = data["nppes"]
    return data


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides = {}
    for var, field_name in ENV_VARS.items():
        value = environ.get(var)
        if value is not None and value.strip():
            overrides[field_name] = value.strip()
    return overrides


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> NppesSettings:
    """Load settings from defaults, an optional file, then the environment.

    Args:
        path: YAML or JSON settings file. Defaults to ``$NPPES_CONFIG`` if set.
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Validated NppesSettings

    Raises:
        ConfigurationError: If the file is missing or malformed, or a value
            fails validation
    """
    environ = os.environ if environ is None else environ
    path = path or environ.get("NPPES_CONFIG")

    data: dict[str, Any] = {}
    if path:
        data.update(_read_settings_file(Path(path)))
        logger.debug(f"Loaded settings from {path}")

    env = _env_overrides(environ)
    if env:
        logger.debug(f"Applying environment overrides: {sorted(env)}")
    data.update(env)

    try:
        return NppesSettings(**data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid NPPES settings: {e.error_count()} error(s)",
            errors=e.errors(),
            path=path,
        ) from e
    except ValueError as e:
        raise ConfigurationError(f"Invalid NPPES settings: {e}", path=path) from e


def save_settings(settings: NppesSettings, path: str | Path) -> None:
    """Write settings to a YAML file."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(settings.model_dump(mode="json"), f, sort_keys=False)
    except OSError as e:
        raise ConfigurationError(f"Could not write settings file: {e}", path=path) from e
