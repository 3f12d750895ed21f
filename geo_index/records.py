"""Record types read from GeoNames files."""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional


@dataclass
class GeoName:
    """Minimal located GeoNames entry."""
    id: int
    name: str
    latitude: float
    longitude: float

    def __str__(self):
        return self.name


@dataclass
class ExtendedGeoName(GeoName):
    """Full row of a GeoNames dump (allCountries, cities15000, ...)."""
    name_ascii: str = ""
    alternate_names: List[str] = field(default_factory=list)
    feature_class: str = ""
    feature_code: str = ""
    country_code: str = ""
    alternate_country_codes: List[str] = field(default_factory=list)
    # admin1 .. admin4
    admincodes: List[str] = field(default_factory=lambda: ["", "", "", ""])
    population: int = 0
    elevation: Optional[int] = None
    dem: int = 0
    timezone: str = ""
    modification_date: Optional[date] = None


@dataclass
class Postalcode:
    """Row of a GeoNames postal code file. Coordinates are NaN when unknown."""
    country_code: str
    postal_code: str
    place_name: str
    admin_names: List[str]
    admin_codes: List[str]
    latitude: float
    longitude: float
    accuracy: Optional[int] = None

    def __str__(self):
        return f"{self.postal_code} {self.place_name}"


@dataclass
class Admin1Code:
    """Row of admin1CodesASCII.txt."""
    code: str
    name: str
    name_ascii: str
    geoname_id: int = 0

    def __str__(self):
        return f"{self.code} {self.name}"


@dataclass
class CountryInfo:
    """Row of countryInfo.txt."""
    iso_alpha2: str
    iso_alpha3: str
    iso_numeric: str
    fips_code: str
    country: str
    capital: str
    area: float
    population: int
    continent: str
    tld: str
    currency_code: str
    currency_name: str
    phone: str
    postal_code_format: str
    postal_code_regex: str
    languages: List[str] = field(default_factory=list)
    geoname_id: Optional[int] = None
    neighbours: List[str] = field(default_factory=list)
    equivalent_fips_code: str = ""

    def __str__(self):
        return self.country


@dataclass
class TimeZone:
    """Row of timeZones.txt. Offsets are in hours."""
    country_code: str
    timezone_id: str
    gmt_offset: float
    dst_offset: float
    raw_offset: float

    def __str__(self):
        return self.timezone_id


@dataclass
class FeatureCode:
    """
    Row of featureCodes_xx.txt.

    The first column holds "<class>.<code>"; either part may be missing.
    """
    feature_class: Optional[str]
    code: Optional[str]
    name: str
    description: str = ""
