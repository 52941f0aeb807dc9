"""Record model for NPPES provider data.

Defines the typed, immutable structures built from the main provider file
and the four reference files (other names, practice locations, endpoints,
taxonomy reference).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from .codes import (
    CountryCode,
    DeactivationReason,
    EntityType,
    GroupTaxonomy,
    NamePrefix,
    NameSuffix,
    OrganizationSubpart,
    OtherIdentifierIssuer,
    OtherNameType,
    PrimaryTaxonomySwitch,
    Sex,
    SoleProprietor,
    StateCode,
)
from .errors import InvalidIdentifierError


def _code(value: Any) -> str | None:
    return value.as_code() if value is not None else None


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True, order=True)
class Npi:
    """National Provider Identifier: exactly ten ASCII digits."""

    value: str

    def __post_init__(self) -> None:
        value = self.value
        if not isinstance(value, str) or not value:
            raise InvalidIdentifierError(str(value or ""), "NPI cannot be empty")
        if len(value) != 10:
            raise InvalidIdentifierError(
                value, f"NPI must be exactly 10 digits, found {len(value)}"
            )
        if not (value.isascii() and value.isdigit()):
            raise InvalidIdentifierError(value, "NPI must contain only digits")

    @staticmethod
    def is_valid(value: str | None) -> bool:
        """Check the ten-digit form without raising."""
        return bool(value) and len(value) == 10 and value.isascii() and value.isdigit()

    def has_valid_check_digit(self) -> bool:
        """Validate the NPI check digit using the Luhn algorithm.

        The NPI is prefixed with 80840 (the health-care issuer prefix) before
        the checksum is computed.
        """
        total = 0
        for i, digit in enumerate(reversed("80840" + self.value)):
            n = int(digit)
            if i % 2 == 1:
                n *= 2
                if n > 9:
                    n -= 9
            total += n
        return total % 10 == 0

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Address:
    """Postal address with telephone and fax."""

    line_1: str | None = None
    line_2: str | None = None
    city: str | None = None
    state: StateCode | None = None
    postal_code: str | None = None
    country: CountryCode | None = None
    telephone: str | None = None
    fax: str | None = None

    def is_empty(self) -> bool:
        return not any(
            (self.line_1, self.line_2, self.city, self.state, self.postal_code,
             self.country, self.telephone, self.fax)
        )

    def format_single_line(self) -> str:
        """Render as ``line 1, line 2, city, ST postal, country``."""
        parts = [p for p in (self.line_1, self.line_2, self.city) if p]
        region = " ".join(p for p in (_code(self.state), self.postal_code) if p)
        if region:
            parts.append(region)
        if self.country is not None and self.country.as_code() != "US":
            parts.append(self.country.as_code())
        return ", ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "line_1": self.line_1,
            "line_2": self.line_2,
            "city": self.city,
            "state": _code(self.state),
            "postal_code": self.postal_code,
            "country": _code(self.country),
            "telephone": self.telephone,
            "fax": self.fax,
        }


@dataclass(frozen=True)
class Name:
    """Personal name of an individual provider."""

    prefix: NamePrefix | None = None
    first: str | None = None
    middle: str | None = None
    last: str | None = None
    suffix: NameSuffix | None = None
    credential: str | None = None

    def is_empty(self) -> bool:
        return not any(
            (self.prefix, self.first, self.middle, self.last, self.suffix, self.credential)
        )

    def full_name(self) -> str:
        """Prefix, given names, surname and suffix, credential in parentheses."""
        parts = [
            p
            for p in (_code(self.prefix), self.first, self.middle, self.last, _code(self.suffix))
            if p
        ]
        if self.credential:
            parts.append(f"({self.credential})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "prefix": _code(self.prefix),
            "first": self.first,
            "middle": self.middle,
            "last": self.last,
            "suffix": _code(self.suffix),
            "credential": self.credential,
        }


@dataclass(frozen=True)
class OrganizationName:
    legal_business_name: str | None = None
    other_name: str | None = None
    other_name_type: OtherNameType | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "legal_business_name": self.legal_business_name,
            "other_name": self.other_name,
            "other_name_type": _code(self.other_name_type),
        }


@dataclass(frozen=True)
class AuthorizedOfficial:
    """Person empowered to act for an organization provider."""

    prefix: NamePrefix | None = None
    first: str | None = None
    middle: str | None = None
    last: str | None = None
    suffix: NameSuffix | None = None
    credential: str | None = None
    title: str | None = None
    telephone: str | None = None

    def full_name(self) -> str:
        return Name(
            prefix=self.prefix,
            first=self.first,
            middle=self.middle,
            last=self.last,
            suffix=self.suffix,
            credential=self.credential,
        ).full_name()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "prefix": _code(self.prefix),
            "first": self.first,
            "middle": self.middle,
            "last": self.last,
            "suffix": _code(self.suffix),
            "credential": self.credential,
            "title": self.title,
            "telephone": self.telephone,
        }


@dataclass(frozen=True)
class TaxonomyAssignment:
    """One filled taxonomy slot of a provider."""

    code: str
    license_number: str | None = None
    license_state: str | None = None
    is_primary: bool = False
    taxonomy_group: str | None = None
    group_taxonomy_code: GroupTaxonomy | None = None
    primary_switch: PrimaryTaxonomySwitch | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "code": self.code,
            "license_number": self.license_number,
            "license_state": self.license_state,
            "is_primary": self.is_primary,
            "taxonomy_group": self.taxonomy_group,
            "group_taxonomy_code": _code(self.group_taxonomy_code),
            "primary_switch": _code(self.primary_switch),
        }


@dataclass(frozen=True)
class OtherIdentifier:
    """One filled other-identifier slot (Medicaid number, etc.)."""

    identifier: str
    type_code: str | None = None
    issuer: OtherIdentifierIssuer | None = None
    state: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "identifier": self.identifier,
            "type_code": self.type_code,
            "issuer": _code(self.issuer),
            "state": self.state,
        }


@dataclass(frozen=True)
class NppesRecord:
    """Complete provider record from one row of the main file."""

    npi: Npi
    entity_type: EntityType | None = None
    replacement_npi: str | None = None
    ein: str | None = None

    # Names
    provider_name: Name = field(default_factory=Name)
    provider_other_name: Name | None = None
    provider_other_name_type: OtherNameType | None = None
    organization_name: OrganizationName = field(default_factory=OrganizationName)

    # Addresses
    mailing_address: Address = field(default_factory=Address)
    practice_address: Address = field(default_factory=Address)

    # Dates and status
    enumeration_date: date | None = None
    last_update_date: date | None = None
    deactivation_reason: DeactivationReason | None = None
    deactivation_date: date | None = None
    reactivation_date: date | None = None
    certification_date: date | None = None
    provider_sex: Sex | None = None

    authorized_official: AuthorizedOfficial | None = None

    # Repeating slots
    taxonomy_codes: tuple[TaxonomyAssignment, ...] = ()
    other_identifiers: tuple[OtherIdentifier, ...] = ()

    # Organization flags
    sole_proprietor: SoleProprietor | None = None
    organization_subpart: OrganizationSubpart | None = None
    parent_organization_lbn: str | None = None
    parent_organization_tin: str | None = None

    def primary_taxonomy(self) -> TaxonomyAssignment | None:
        """First taxonomy assignment flagged primary, if any."""
        for assignment in self.taxonomy_codes:
            if assignment.is_primary:
                return assignment
        return None

    def is_active(self) -> bool:
        return self.deactivation_date is None

    def is_organization(self) -> bool:
        return self.entity_type == EntityType.ORGANIZATION

    def display_name(self) -> str:
        """Short name: legal business name or first and last name."""
        if self.is_organization():
            return self.organization_name.legal_business_name or "Unknown Organization"

        parts = [p for p in (self.provider_name.first, self.provider_name.last) if p]
        if parts:
            return " ".join(parts)
        return self.organization_name.legal_business_name or "Unknown"

    def full_display_name(self) -> str:
        """Display name including prefix, suffix and credential for individuals."""
        if self.is_organization():
            return self.display_name()
        return self.provider_name.full_name() or self.display_name()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        primary = self.primary_taxonomy()
        return {
            "npi": str(self.npi),
            "entity_type": _code(self.entity_type),
            "replacement_npi": self.replacement_npi,
            "ein": self.ein,
            "display_name": self.display_name(),
            "provider_name": self.provider_name.to_dict(),
            "provider_other_name": (
                self.provider_other_name.to_dict() if self.provider_other_name else None
            ),
            "provider_other_name_type": _code(self.provider_other_name_type),
            "organization_name": self.organization_name.to_dict(),
            "mailing_address": self.mailing_address.to_dict(),
            "practice_address": self.practice_address.to_dict(),
            "enumeration_date": _iso(self.enumeration_date),
            "last_update_date": _iso(self.last_update_date),
            "deactivation_reason": _code(self.deactivation_reason),
            "deactivation_date": _iso(self.deactivation_date),
            "reactivation_date": _iso(self.reactivation_date),
            "certification_date": _iso(self.certification_date),
            "provider_sex": _code(self.provider_sex),
            "is_active": self.is_active(),
            "authorized_official": (
                self.authorized_official.to_dict() if self.authorized_official else None
            ),
            "primary_taxonomy": primary.code if primary else None,
            "taxonomy_codes": [t.to_dict() for t in self.taxonomy_codes],
            "other_identifiers": [i.to_dict() for i in self.other_identifiers],
            "sole_proprietor": _code(self.sole_proprietor),
            "organization_subpart": _code(self.organization_subpart),
            "parent_organization_lbn": self.parent_organization_lbn,
            "parent_organization_tin": self.parent_organization_tin,
        }


@dataclass(frozen=True)
class OtherName:
    """Row of the other-names reference file."""

    npi: Npi
    name: str | None = None
    type_code: OtherNameType | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"npi": str(self.npi), "name": self.name, "type_code": _code(self.type_code)}


@dataclass(frozen=True)
class PracticeLocation:
    """Row of the secondary practice-location reference file."""

    npi: Npi
    address: Address = field(default_factory=Address)
    telephone_extension: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "npi": str(self.npi),
            "address": self.address.to_dict(),
            "telephone_extension": self.telephone_extension,
        }


@dataclass(frozen=True)
class Endpoint:
    """Row of the endpoint reference file."""

    npi: Npi
    endpoint_type: str | None = None
    endpoint_type_description: str | None = None
    endpoint: str | None = None
    affiliation: bool = False
    endpoint_description: str | None = None
    affiliation_legal_business_name: str | None = None
    use_code: str | None = None
    use_description: str | None = None
    other_use_description: str | None = None
    content_type: str | None = None
    content_description: str | None = None
    other_content_description: str | None = None
    affiliation_address: Address | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "npi": str(self.npi),
            "endpoint_type": self.endpoint_type,
            "endpoint_type_description": self.endpoint_type_description,
            "endpoint": self.endpoint,
            "affiliation": self.affiliation,
            "endpoint_description": self.endpoint_description,
            "affiliation_legal_business_name": self.affiliation_legal_business_name,
            "use_code": self.use_code,
            "use_description": self.use_description,
            "other_use_description": self.other_use_description,
            "content_type": self.content_type,
            "content_description": self.content_description,
            "other_content_description": self.other_content_description,
            "affiliation_address": (
                self.affiliation_address.to_dict() if self.affiliation_address else None
            ),
        }


@dataclass(frozen=True)
class TaxonomyReference:
    """NUCC taxonomy code description."""

    code: str
    grouping: str | None = None
    classification: str | None = None
    specialization: str | None = None
    definition: str | None = None
    notes: str | None = None
    display_name: str | None = None
    section: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "code": self.code,
            "grouping": self.grouping,
            "classification": self.classification,
            "specialization": self.specialization,
            "definition": self.definition,
            "notes": self.notes,
            "display_name": self.display_name,
            "section": self.section,
        }
