"""Column schemas for the five NPPES distribution file types.

The main provider file header is built by concatenation:

- fixed head (47 columns)
- 15 taxonomy slots x {code, license number, license state, primary switch}
- 50 other-identifier slots x {identifier, type code, state, issuer}
- organization flags and parent info (7 columns)
- 15 taxonomy group labels
- certification date

All column positions used by the parser are looked up in that ordered list,
so the regions can never overlap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Sequence

from .errors import SchemaMismatchError

logger = logging.getLogger(__name__)

TAXONOMY_SLOTS = 15
OTHER_IDENTIFIER_SLOTS = 50

_MAILING = "Provider Business Mailing Address"
_PRACTICE = "Provider Business Practice Location Address"

FIXED_HEAD = (
    "NPI",
    "Entity Type Code",
    "Replacement NPI",
    "Employer Identification Number (EIN)",
    "Provider Organization Name (Legal Business Name)",
    "Provider Last Name (Legal Name)",
    "Provider First Name",
    "Provider Middle Name",
    "Provider Name Prefix Text",
    "Provider Name Suffix Text",
    "Provider Credential Text",
    "Provider Other Organization Name",
    "Provider Other Organization Name Type Code",
    "Provider Other Last Name",
    "Provider Other First Name",
    "Provider Other Middle Name",
    "Provider Other Name Prefix Text",
    "Provider Other Name Suffix Text",
    "Provider Other Credential Text",
    "Provider Other Last Name Type Code",
    "Provider First Line Business Mailing Address",
    "Provider Second Line Business Mailing Address",
    f"{_MAILING} City Name",
    f"{_MAILING} State Name",
    f"{_MAILING} Postal Code",
    f"{_MAILING} Country Code (If outside U.S.)",
    f"{_MAILING} Telephone Number",
    f"{_MAILING} Fax Number",
    "Provider First Line Business Practice Location Address",
    "Provider Second Line Business Practice Location Address",
    f"{_PRACTICE} City Name",
    f"{_PRACTICE} State Name",
    f"{_PRACTICE} Postal Code",
    f"{_PRACTICE} Country Code (If outside U.S.)",
    f"{_PRACTICE} Telephone Number",
    f"{_PRACTICE} Fax Number",
    "Provider Enumeration Date",
    "Last Update Date",
    "NPI Deactivation Reason Code",
    "NPI Deactivation Date",
    "NPI Reactivation Date",
    "Provider Sex Code",
    "Authorized Official Last Name",
    "Authorized Official First Name",
    "Authorized Official Middle Name",
    "Authorized Official Title or Position",
    "Authorized Official Telephone Number",
)

ORGANIZATION_FLAGS = (
    "Is Sole Proprietor",
    "Is Organization Subpart",
    "Parent Organization LBN",
    "Parent Organization TIN",
    "Authorized Official Name Prefix Text",
    "Authorized Official Name Suffix Text",
    "Authorized Official Credential Text",
)


def taxonomy_slot_headers(slot: int) -> tuple[str, str, str, str]:
    """Headers of taxonomy slot ``slot`` (0-based)."""
    n = slot + 1
    return (
        f"Healthcare Provider Taxonomy Code_{n}",
        f"Provider License Number_{n}",
        f"Provider License Number State Code_{n}",
        f"Healthcare Provider Primary Taxonomy Switch_{n}",
    )


def other_identifier_slot_headers(slot: int) -> tuple[str, str, str, str]:
    """Headers of other-identifier slot ``slot`` (0-based)."""
    n = slot + 1
    return (
        f"Other Provider Identifier_{n}",
        f"Other Provider Identifier Type Code_{n}",
        f"Other Provider Identifier State_{n}",
        f"Other Provider Identifier Issuer_{n}",
    )


def taxonomy_group_header(slot: int) -> str:
    return f"Healthcare Provider Taxonomy Group_{slot + 1}"


def _build_main_headers() -> tuple[str, ...]:
    headers = list(FIXED_HEAD)
    for i in range(TAXONOMY_SLOTS):
        headers.extend(taxonomy_slot_headers(i))
    for j in range(OTHER_IDENTIFIER_SLOTS):
        headers.extend(other_identifier_slot_headers(j))
    headers.extend(ORGANIZATION_FLAGS)
    headers.extend(taxonomy_group_header(i) for i in range(TAXONOMY_SLOTS))
    headers.append("Certification Date")
    return tuple(headers)


MAIN_HEADERS = _build_main_headers()

OTHER_NAME_HEADERS = (
    "NPI",
    "Provider Other Organization Name",
    "Provider Other Organization Name Type Code",
)

# The second header really does contain a double space after the dash
PRACTICE_LOCATION_HEADERS = (
    "NPI",
    "Provider Secondary Practice Location Address- Address Line 1",
    "Provider Secondary Practice Location Address-  Address Line 2",
    "Provider Secondary Practice Location Address - City Name",
    "Provider Secondary Practice Location Address - State Name",
    "Provider Secondary Practice Location Address - Postal Code",
    "Provider Secondary Practice Location Address - Country Code (If outside U.S.)",
    "Provider Secondary Practice Location Address - Telephone Number",
    "Provider Secondary Practice Location Address - Telephone Extension",
    "Provider Practice Location Address - Fax Number",
)

ENDPOINT_HEADERS = (
    "NPI",
    "Endpoint Type",
    "Endpoint Type Description",
    "Endpoint",
    "Affiliation",
    "Endpoint Description",
    "Affiliation Legal Business Name",
    "Use Code",
    "Use Description",
    "Other Use Description",
    "Content Type",
    "Content Description",
    "Other Content Description",
    "Affiliation Address Line One",
    "Affiliation Address Line Two",
    "Affiliation Address City",
    "Affiliation Address State",
    "Affiliation Address Country",
    "Affiliation Address Postal Code",
)

TAXONOMY_HEADERS = (
    "Code",
    "Grouping",
    "Classification",
    "Specialization",
    "Definition",
    "Notes",
    "Display Name",
    "Section",
)

CONDENSED_TAXONOMY_WIDTH = 6


class FileKind(str, Enum):
    """NPPES distribution file types."""

    MAIN = "main"
    OTHER_NAME = "other_name"
    PRACTICE_LOCATION = "practice_location"
    ENDPOINT = "endpoint"
    TAXONOMY = "taxonomy"


@dataclass(frozen=True)
class AddressColumns:
    line_1: int
    line_2: int
    city: int
    state: int
    postal_code: int
    country: int
    telephone: int
    fax: int


@dataclass(frozen=True)
class TaxonomySlotColumns:
    code: int
    license_number: int
    license_state: int
    primary_switch: int
    group: int


@dataclass(frozen=True)
class OtherIdentifierSlotColumns:
    identifier: int
    type_code: int
    state: int
    issuer: int


@dataclass(frozen=True)
class FileSchema:
    """Expected header layout of one file type."""

    kind: FileKind
    headers: tuple[str, ...]
    filename_prefix: str

    @property
    def width(self) -> int:
        return len(self.headers)

    def index(self, header: str) -> int:
        """Position of ``header`` in this schema.

        Raises:
            KeyError: If the schema has no such column
        """
        try:
            return self.headers.index(header)
        except ValueError:
            raise KeyError(header) from None

    def validate_headers(
        self, actual: Sequence[str], path: str | Path | None = None
    ) -> None:
        """Check a header row against this schema.

        Header cells are compared after trimming whitespace and a leading
        byte-order mark.

        Args:
            actual: Header row as read from the file
            path: File the header came from, for error reporting

        Raises:
            SchemaMismatchError: On a width difference or the first
                differing column
        """
        found = [cell.strip() for cell in actual]
        if found:
            found[0] = found[0].lstrip("\ufeff").strip()

        if self.kind == FileKind.TAXONOMY and len(found) == CONDENSED_TAXONOMY_WIDTH:
            raise SchemaMismatchError(
                self.width,
                len(found),
                path=path,
                message=(
                    "Taxonomy reference file uses the condensed 6-column layout; "
                    f"only the {self.width}-column NUCC layout is supported"
                ),
            )

        if len(found) != self.width:
            raise SchemaMismatchError(self.width, len(found), path=path)

        for index, (expected, got) in enumerate(zip(self.headers, found)):
            if expected != got:
                raise SchemaMismatchError(
                    self.width, len(found), (index, expected, got), path=path
                )

    def matches_filename(self, filename: str) -> bool:
        name = filename.lower()
        return (
            name.startswith(self.filename_prefix)
            and name.endswith(".csv")
            and not name.endswith("_fileheader.csv")
        )


MAIN_SCHEMA = FileSchema(FileKind.MAIN, MAIN_HEADERS, "npidata_pfile_")
OTHER_NAME_SCHEMA = FileSchema(FileKind.OTHER_NAME, OTHER_NAME_HEADERS, "othername_pfile_")
PRACTICE_LOCATION_SCHEMA = FileSchema(
    FileKind.PRACTICE_LOCATION, PRACTICE_LOCATION_HEADERS, "pl_pfile_"
)
ENDPOINT_SCHEMA = FileSchema(FileKind.ENDPOINT, ENDPOINT_HEADERS, "endpoint_pfile_")
TAXONOMY_SCHEMA = FileSchema(FileKind.TAXONOMY, TAXONOMY_HEADERS, "nucc_taxonomy_")

SCHEMAS: dict[FileKind, FileSchema] = {
    schema.kind: schema
    for schema in (
        MAIN_SCHEMA,
        OTHER_NAME_SCHEMA,
        PRACTICE_LOCATION_SCHEMA,
        ENDPOINT_SCHEMA,
        TAXONOMY_SCHEMA,
    )
}


def schema_for(kind: FileKind | str) -> FileSchema:
    return SCHEMAS[FileKind(kind)]


def detect_file_kind(filename: str | Path) -> FileKind | None:
    """Recognize a distribution file by its name prefix."""
    name = Path(filename).name
    for schema in SCHEMAS.values():
        if schema.matches_filename(name):
            return schema.kind
    return None


def _taxonomy_slot_columns() -> tuple[TaxonomySlotColumns, ...]:
    return tuple(
        TaxonomySlotColumns(
            *(MAIN_SCHEMA.index(h) for h in taxonomy_slot_headers(i)),
            group=MAIN_SCHEMA.index(taxonomy_group_header(i)),
        )
        for i in range(TAXONOMY_SLOTS)
    )


def _other_identifier_slot_columns() -> tuple[OtherIdentifierSlotColumns, ...]:
    return tuple(
        OtherIdentifierSlotColumns(
            *(MAIN_SCHEMA.index(h) for h in other_identifier_slot_headers(j))
        )
        for j in range(OTHER_IDENTIFIER_SLOTS)
    )


class MainColumns:
    """Column positions in the main provider file, derived from MAIN_HEADERS."""

    _col = MAIN_SCHEMA.index

    NPI = _col("NPI")
    ENTITY_TYPE = _col("Entity Type Code")
    REPLACEMENT_NPI = _col("Replacement NPI")
    EIN = _col("Employer Identification Number (EIN)")
    ORGANIZATION_NAME = _col("Provider Organization Name (Legal Business Name)")
    LAST_NAME = _col("Provider Last Name (Legal Name)")
    FIRST_NAME = _col("Provider First Name")
    MIDDLE_NAME = _col("Provider Middle Name")
    NAME_PREFIX = _col("Provider Name Prefix Text")
    NAME_SUFFIX = _col("Provider Name Suffix Text")
    CREDENTIAL = _col("Provider Credential Text")
    OTHER_ORGANIZATION_NAME = _col("Provider Other Organization Name")
    OTHER_ORGANIZATION_NAME_TYPE = _col("Provider Other Organization Name Type Code")
    OTHER_LAST_NAME = _col("Provider Other Last Name")
    OTHER_FIRST_NAME = _col("Provider Other First Name")
    OTHER_MIDDLE_NAME = _col("Provider Other Middle Name")
    OTHER_NAME_PREFIX = _col("Provider Other Name Prefix Text")
    OTHER_NAME_SUFFIX = _col("Provider Other Name Suffix Text")
    OTHER_CREDENTIAL = _col("Provider Other Credential Text")
    OTHER_LAST_NAME_TYPE = _col("Provider Other Last Name Type Code")

    MAILING = AddressColumns(
        line_1=_col("Provider First Line Business Mailing Address"),
        line_2=_col("Provider Second Line Business Mailing Address"),
        city=_col(f"{_MAILING} City Name"),
        state=_col(f"{_MAILING} State Name"),
        postal_code=_col(f"{_MAILING} Postal Code"),
        country=_col(f"{_MAILING} Country Code (If outside U.S.)"),
        telephone=_col(f"{_MAILING} Telephone Number"),
        fax=_col(f"{_MAILING} Fax Number"),
    )
    PRACTICE = AddressColumns(
        line_1=_col("Provider First Line Business Practice Location Address"),
        line_2=_col("Provider Second Line Business Practice Location Address"),
        city=_col(f"{_PRACTICE} City Name"),
        state=_col(f"{_PRACTICE} State Name"),
        postal_code=_col(f"{_PRACTICE} Postal Code"),
        country=_col(f"{_PRACTICE} Country Code (If outside U.S.)"),
        telephone=_col(f"{_PRACTICE} Telephone Number"),
        fax=_col(f"{_PRACTICE} Fax Number"),
    )

    ENUMERATION_DATE = _col("Provider Enumeration Date")
    LAST_UPDATE_DATE = _col("Last Update Date")
    DEACTIVATION_REASON = _col("NPI Deactivation Reason Code")
    DEACTIVATION_DATE = _col("NPI Deactivation Date")
    REACTIVATION_DATE = _col("NPI Reactivation Date")
    SEX = _col("Provider Sex Code")

    AO_LAST_NAME = _col("Authorized Official Last Name")
    AO_FIRST_NAME = _col("Authorized Official First Name")
    AO_MIDDLE_NAME = _col("Authorized Official Middle Name")
    AO_TITLE = _col("Authorized Official Title or Position")
    AO_TELEPHONE = _col("Authorized Official Telephone Number")
    AO_NAME_PREFIX = _col("Authorized Official Name Prefix Text")
    AO_NAME_SUFFIX = _col("Authorized Official Name Suffix Text")
    AO_CREDENTIAL = _col("Authorized Official Credential Text")

    SOLE_PROPRIETOR = _col("Is Sole Proprietor")
    ORGANIZATION_SUBPART = _col("Is Organization Subpart")
    PARENT_ORGANIZATION_LBN = _col("Parent Organization LBN")
    PARENT_ORGANIZATION_TIN = _col("Parent Organization TIN")
    CERTIFICATION_DATE = _col("Certification Date")

    TAXONOMY = _taxonomy_slot_columns()
    OTHER_IDENTIFIERS = _other_identifier_slot_columns()

    AUTHORIZED_OFFICIAL = (
        AO_LAST_NAME,
        AO_FIRST_NAME,
        AO_MIDDLE_NAME,
        AO_TITLE,
        AO_TELEPHONE,
        AO_NAME_PREFIX,
        AO_NAME_SUFFIX,
        AO_CREDENTIAL,
    )
    OTHER_NAME = (
        OTHER_LAST_NAME,
        OTHER_FIRST_NAME,
        OTHER_MIDDLE_NAME,
        OTHER_NAME_PREFIX,
        OTHER_NAME_SUFFIX,
        OTHER_CREDENTIAL,
    )

    del _col
