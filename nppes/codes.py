"""Code enumerations used by NPPES distribution files.

Each code set is a closed ``str`` enumeration. ``from_code`` maps a raw cell
to a member, returning None for blank or unrecognized codes, and ``as_code``
gives back the canonical code written to NPPES files.
"""

from __future__ import annotations

from enum import Enum

from .errors import InvalidEntityTypeError


class CodeEnum(str, Enum):
    """Base class for NPPES code sets (exact code matching)."""

    @classmethod
    def aliases(cls) -> dict[str, CodeEnum]:
        """Alternate spellings accepted by :meth:`from_code`."""
        return {}

    @classmethod
    def normalize(cls, code: str) -> str:
        return code

    @classmethod
    def from_code(cls, code: str | None) -> CodeEnum | None:
        """Map a raw code to a member, or None when blank or unrecognized."""
        if code is None:
            return None
        code = cls.normalize(code.strip())
        if not code:
            return None
        try:
            return cls(code)
        except ValueError:
            return cls.aliases().get(code)

    def as_code(self) -> str:
        """Canonical code as stored in NPPES files."""
        return self.value


class CaseInsensitiveCodeEnum(CodeEnum):
    """Code set matched without regard to letter case."""

    @classmethod
    def normalize(cls, code: str) -> str:
        return code.upper()


class EntityType(CodeEnum):
    """NPI entity type."""

    INDIVIDUAL = "1"
    ORGANIZATION = "2"

    @classmethod
    def from_code(cls, code: str | None) -> EntityType | None:
        """Parse an entity type code.

        Blank cells yield None; any other value outside {"1", "2"} is an error.

        Raises:
            InvalidEntityTypeError: If the code is non-empty and unknown
        """
        if code is None or not code.strip():
            return None
        try:
            return cls(code.strip())
        except ValueError:
            raise InvalidEntityTypeError(code.strip()) from None


class Sex(CodeEnum):
    MALE = "M"
    FEMALE = "F"
    UNDISCLOSED = "U"

    @classmethod
    def aliases(cls) -> dict[str, CodeEnum]:
        return {"X": cls.UNDISCLOSED}


class SoleProprietor(CodeEnum):
    YES = "Y"
    NO = "N"
    NOT_ANSWERED = "X"


class OrganizationSubpart(CodeEnum):
    YES = "Y"
    NO = "N"
    NOT_ANSWERED = "X"


class PrimaryTaxonomySwitch(CodeEnum):
    YES = "Y"
    NO = "N"
    NOT_ANSWERED = "X"


class DeactivationReason(CodeEnum):
    """NPI deactivation reason."""

    DEATH = "DT"
    DISBANDMENT = "DB"
    FRAUD = "FR"
    OTHER = "OT"
    UNDISCLOSED = "U"

    @classmethod
    def normalize(cls, code: str) -> str:
        return code.upper()

    @classmethod
    def aliases(cls) -> dict[str, CodeEnum]:
        return {
            "DEATH": cls.DEATH,
            "DISBANDMENT": cls.DISBANDMENT,
            "FRAUD": cls.FRAUD,
            "OTHER": cls.OTHER,
            "UNDISCLOSED": cls.UNDISCLOSED,
            "X": cls.UNDISCLOSED,
        }


class OtherNameType(CodeEnum):
    FORMER_NAME = "1"
    PROFESSIONAL_NAME = "2"
    DOING_BUSINESS_AS = "3"
    FORMER_LEGAL_BUSINESS_NAME = "4"
    OTHER_NAME = "5"


class NamePrefix(CodeEnum):
    MS = "Ms."
    MR = "Mr."
    MISS = "Miss"
    MRS = "Mrs."
    DR = "Dr."
    PROF = "Prof."


class NameSuffix(CodeEnum):
    JR = "Jr."
    SR = "Sr."
    I = "I"  # noqa: E741
    II = "II"
    III = "III"
    IV = "IV"
    V = "V"
    VI = "VI"
    VII = "VII"
    VIII = "VIII"
    IX = "IX"
    X = "X"


class OtherIdentifierIssuer(CodeEnum):
    OTHER = "01"
    MEDICAID = "05"


class GroupTaxonomy(CodeEnum):
    MULTI_SPECIALTY_GROUP = "193200000X"
    SINGLE_SPECIALTY_GROUP = "193400000X"


class StateCode(CaseInsensitiveCodeEnum):
    """U.S. states, territories, and the foreign-address placeholder ZZ."""

    AK = "AK"
    AL = "AL"
    AR = "AR"
    AS = "AS"
    AZ = "AZ"
    CA = "CA"
    CO = "CO"
    CT = "CT"
    DC = "DC"
    DE = "DE"
    FL = "FL"
    FM = "FM"
    GA = "GA"
    GU = "GU"
    HI = "HI"
    IA = "IA"
    ID = "ID"
    IL = "IL"
    IN = "IN"
    KS = "KS"
    KY = "KY"
    LA = "LA"
    MA = "MA"
    MD = "MD"
    ME = "ME"
    MH = "MH"
    MI = "MI"
    MN = "MN"
    MO = "MO"
    MP = "MP"
    MS = "MS"
    MT = "MT"
    NC = "NC"
    ND = "ND"
    NE = "NE"
    NH = "NH"
    NJ = "NJ"
    NM = "NM"
    NV = "NV"
    NY = "NY"
    OH = "OH"
    OK = "OK"
    OR = "OR"
    PA = "PA"
    PR = "PR"
    PW = "PW"
    RI = "RI"
    SC = "SC"
    SD = "SD"
    TN = "TN"
    TX = "TX"
    UT = "UT"
    VA = "VA"
    VI = "VI"
    VT = "VT"
    WA = "WA"
    WI = "WI"
    WV = "WV"
    WY = "WY"
    ZZ = "ZZ"


# ISO 3166-1 alpha-2
_ISO_COUNTRY_CODES = """
AD AE AF AG AI AL AM AO AQ AR AS AT AU AW AX AZ BA BB BD BE BF BG BH BI BJ BL
BM BN BO BQ BR BS BT BV BW BY BZ CA CC CD CF CG CH CI CK CL CM CN CO CR CU CV
CW CX CY CZ DE DJ DK DM DO DZ EC EE EG EH ER ES ET FI FJ FK FM FO FR GA GB GD
GE GF GG GH GI GL GM GN GP GQ GR GS GT GU GW GY HK HM HN HR HT HU ID IE IL IM
IN IO IQ IR IS IT JE JM JO JP KE KG KH KI KM KN KP KR KW KY KZ LA LB LC LI LK
LR LS LT LU LV LY MA MC MD ME MF MG MH MK ML MM MN MO MP MQ MR MS MT MU MV MW
MX MY MZ NA NC NE NF NG NI NL NO NP NR NU NZ OM PA PE PF PG PH PK PL PM PN PR
PS PT PW PY QA RE RO RS RU RW SA SB SC SD SE SG SH SI SJ SK SL SM SN SO SR SS
ST SV SX SY SZ TC TD TF TG TH TJ TK TL TM TN TO TR TT TV TW TZ UA UG UM US UY
UZ VA VC VE VG VI VN VU WF WS YE YT ZA ZM ZW
""".split()

CountryCode = CaseInsensitiveCodeEnum(
    "CountryCode",
    [(code, code) for code in _ISO_COUNTRY_CODES],
    module=__name__,
)
CountryCode.__doc__ = "ISO 3166-1 alpha-2 country code."
