"""Pytest configuration and fixtures."""

from __future__ import annotations

import csv
import sys
from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

# Add project root to path for imports
project_root = str(Path(__file__).parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from nppes.schema import (  # noqa: E402
    ENDPOINT_HEADERS,
    MAIN_HEADERS,
    OTHER_NAME_HEADERS,
    PRACTICE_LOCATION_HEADERS,
    TAXONOMY_HEADERS,
)

MAILING_STATE = "Provider Business Mailing Address State Name"


def build_main_row(values: dict[str, str]) -> list[str]:
    """Build a 330-cell main-file row from header -> value pairs."""
    unknown = set(values) - set(MAIN_HEADERS)
    if unknown:
        raise KeyError(f"Not main-file headers: {sorted(unknown)}")
    return [values.get(header, "") for header in MAIN_HEADERS]


def individual(npi: str, **overrides: str) -> dict[str, str]:
    """Main-file values for an active individual provider."""
    values = {
        "NPI": npi,
        "Entity Type Code": "1",
        "Provider Last Name (Legal Name)": "SMITH",
        "Provider First Name": "JANE",
        "Provider Credential Text": "MD",
        "Provider First Line Business Mailing Address": "100 MAIN ST",
        "Provider Business Mailing Address City Name": "SACRAMENTO",
        MAILING_STATE: "CA",
        "Provider Business Mailing Address Postal Code": "958141234",
        "Provider Business Mailing Address Country Code (If outside U.S.)": "US",
        "Provider Enumeration Date": "05/23/2005",
        "Last Update Date": "07/08/2007",
        "Provider Sex Code": "F",
        "Healthcare Provider Taxonomy Code_1": "207Q00000X",
        "Provider License Number_1": "A12345",
        "Provider License Number State Code_1": "CA",
        "Healthcare Provider Primary Taxonomy Switch_1": "Y",
    }
    values.update(overrides)
    return values


def organization(npi: str, **overrides: str) -> dict[str, str]:
    """Main-file values for an active organization provider."""
    values = {
        "NPI": npi,
        "Entity Type Code": "2",
        "Employer Identification Number (EIN)": "<UNAVAIL>",
        "Provider Organization Name (Legal Business Name)": "VALLEY CLINIC LLC",
        "Provider First Line Business Mailing Address": "1 CLINIC WAY",
        "Provider Business Mailing Address City Name": "ALBANY",
        MAILING_STATE: "NY",
        "Provider Business Mailing Address Postal Code": "12207",
        "Provider Enumeration Date": "01/15/2010",
        "Authorized Official Last Name": "JONES",
        "Authorized Official First Name": "ROBERT",
        "Authorized Official Title or Position": "CEO",
        "Authorized Official Telephone Number": "5185550100",
        "Healthcare Provider Taxonomy Code_1": "261QP2300X",
        "Healthcare Provider Primary Taxonomy Switch_1": "Y",
        "Is Organization Subpart": "N",
    }
    values.update(overrides)
    return values


def write_csv(path: Path, headers: Iterable[str], rows: Iterable[Iterable[str]]) -> Path:
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_ALL)
        writer.writerow(list(headers))
        for row in rows:
            writer.writerow(list(row))
    return path


@pytest.fixture
def write_main_file(tmp_path: Path) -> Callable[..., Path]:
    """Write main-file rows (given as header -> value dicts) to a CSV."""

    def _write(rows: list[dict[str, str]], name: str = "npidata_pfile_20050523-20240107.csv") -> Path:
        return write_csv(tmp_path / name, MAIN_HEADERS, (build_main_row(r) for r in rows))

    return _write


@pytest.fixture
def sample_providers() -> list[dict[str, str]]:
    """Three providers: two in CA, one deactivated organization in NY."""
    return [
        individual("1234567893"),
        individual(
            "1245319599",
            **{
                "Provider Last Name (Legal Name)": "DOE",
                "Provider First Name": "JOHN",
                "Provider Sex Code": "M",
                "Healthcare Provider Taxonomy Code_1": "207R00000X",
                "Healthcare Provider Taxonomy Code_2": "207Q00000X",
                "Healthcare Provider Primary Taxonomy Switch_2": "N",
            },
        ),
        organization(
            "1003000126",
            **{
                "NPI Deactivation Reason Code": "DB",
                "NPI Deactivation Date": "01/01/2020",
            },
        ),
    ]


@pytest.fixture
def dataset_dir(tmp_path: Path, sample_providers: list[dict[str, str]]) -> Path:
    """Directory holding a small, complete distribution."""
    data_dir = tmp_path / "nppes"
    data_dir.mkdir()
    write_csv(
        data_dir / "npidata_pfile_20050523-20240107.csv",
        MAIN_HEADERS,
        (build_main_row(r) for r in sample_providers),
    )
    write_csv(
        data_dir / "othername_pfile_20050523-20240107.csv",
        OTHER_NAME_HEADERS,
        [["1003000126", "VALLEY FAMILY CARE", "3"]],
    )
    location = [""] * len(PRACTICE_LOCATION_HEADERS)
    location[:6] = ["1234567893", "200 SECOND ST", "SUITE 5", "DAVIS", "CA", "95616"]
    location[8] = "101"
    write_csv(data_dir / "pl_pfile_20050523-20240107.csv", PRACTICE_LOCATION_HEADERS, [location])
    endpoint = [""] * len(ENDPOINT_HEADERS)
    endpoint[:5] = ["1234567893", "DIRECT", "Direct Messaging Address", "jane@direct.example.org", "N"]
    write_csv(data_dir / "endpoint_pfile_20050523-20240107.csv", ENDPOINT_HEADERS, [endpoint])
    write_csv(
        data_dir / "nucc_taxonomy_241.csv",
        TAXONOMY_HEADERS,
        [
            ["207Q00000X", "Allopathic & Osteopathic Physicians", "Family Medicine", "",
             "Family Medicine is...", "", "Family Medicine Physician", "Individual"],
            ["207R00000X", "Allopathic & Osteopathic Physicians", "Internal Medicine", "",
             "", "", "Internal Medicine Physician", "Individual"],
            ["261QP2300X", "Ambulatory Health Care Facilities", "Clinic/Center", "Primary Care",
             "", "", "Primary Care Clinic/Center", "Non-Individual"],
        ],
    )
    return data_dir


@pytest.fixture
def main_row() -> Callable[[dict[str, Any]], list[str]]:
    return build_main_row


@pytest.fixture
def make_individual() -> Callable[..., dict[str, str]]:
    return individual


@pytest.fixture
def make_organization() -> Callable[..., dict[str, str]]:
    return organization
