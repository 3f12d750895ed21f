"""Data loading utilities for Geo Index (GeoNames tab-delimited files)."""

import gzip
import io
import logging
import math
import zipfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Generic, IO, Iterable, Iterator, List, Optional, TypeVar, Union

from geo_index.records import (
    Admin1Code, CountryInfo, ExtendedGeoName, FeatureCode, GeoName, Postalcode,
    TimeZone
)
from geo_index.reverse_geocode import ReverseGeoCode


logger = logging.getLogger(__name__)

T = TypeVar("T")


class ParserError(ValueError):
    """Raised when a line cannot be parsed."""


class FileType(Enum):
    AUTO = "auto"
    PLAIN = "plain"
    GZIP = "gzip"
    ZIP = "zip"


class BaseParser(ABC, Generic[T]):
    """
    Field layout of one GeoNames file type.

    parse() turns the fields of a line into a record; compose() is its
    inverse and is used when writing files.
    """

    encoding = "utf-8"
    field_separator = "\t"
    has_comments = True
    skip_lines = 0
    expected_fields = 0
    # Written in place of the skipped lines
    header: Optional[str] = None

    @abstractmethod
    def parse(self, fields: List[str]) -> T:
        pass

    @abstractmethod
    def compose(self, record: T) -> List[str]:
        pass

    @staticmethod
    def to_int(value: str) -> int:
        if not value.strip():
            raise ValueError("Value cannot be empty")
        # Some dumps write integers as "123.0"
        if value.endswith(".0"):
            value = value[:-2]
        return int(value)

    @staticmethod
    def to_optional_int(value: str) -> Optional[int]:
        return BaseParser.to_int(value) if value.strip() else None

    @staticmethod
    def to_float(value: str) -> float:
        return float(value) if value.strip() else math.nan

    @staticmethod
    def to_list(value: str, separator: str = ",") -> List[str]:
        return [v for v in value.split(separator) if v]

    @staticmethod
    def from_float(value: float) -> str:
        return "" if math.isnan(value) else str(value)

    @staticmethod
    def from_optional(value) -> str:
        return "" if value is None else str(value)


class GeoNameParser(BaseParser[GeoName]):
    """
    Reads GeoName records.

    With extended_format (the default) lines are full 19-column dumps;
    otherwise lines hold id, name, latitude and longitude only.
    """

    def __init__(self, extended_format: bool = True):
        self.extended_format = extended_format
        self.expected_fields = 19 if extended_format else 4

    def parse(self, fields: List[str]) -> GeoName:
        if self.extended_format:
            return GeoName(
                id=self.to_int(fields[0]),
                name=fields[1],
                latitude=self.to_float(fields[4]),
                longitude=self.to_float(fields[5])
            )
        return GeoName(
            id=self.to_int(fields[0]),
            name=fields[1],
            latitude=self.to_float(fields[2]),
            longitude=self.to_float(fields[3])
        )

    def compose(self, record: GeoName) -> List[str]:
        location = [self.from_float(record.latitude), self.from_float(record.longitude)]
        if self.extended_format:
            # Remaining dump columns are left empty
            return [str(record.id), record.name, "", ""] + location + [""] * 13
        return [str(record.id), record.name] + location


class ExtendedGeoNameParser(BaseParser[ExtendedGeoName]):
    expected_fields = 19

    def parse(self, fields: List[str]) -> ExtendedGeoName:
        return ExtendedGeoName(
            id=self.to_int(fields[0]),
            name=fields[1],
            name_ascii=fields[2],
            alternate_names=self.to_list(fields[3]),
            latitude=self.to_float(fields[4]),
            longitude=self.to_float(fields[5]),
            feature_class=fields[6],
            feature_code=fields[7],
            country_code=fields[8],
            alternate_country_codes=self.to_list(fields[9]),
            admincodes=[fields[10], fields[11], fields[12], fields[13]],
            population=self.to_int(fields[14]) if fields[14].strip() else 0,
            elevation=self.to_optional_int(fields[15]),
            dem=self.to_int(fields[16]) if fields[16].strip() else 0,
            timezone=fields[17].replace("_", " "),
            modification_date=(
                datetime.strptime(fields[18], "%Y-%m-%d").date()
                if fields[18].strip() else None
            )
        )

    def compose(self, record: ExtendedGeoName) -> List[str]:
        return [
            str(record.id),
            record.name,
            record.name_ascii,
            ",".join(record.alternate_names),
            self.from_float(record.latitude),
            self.from_float(record.longitude),
            record.feature_class,
            record.feature_code,
            record.country_code,
            ",".join(record.alternate_country_codes),
            *(list(record.admincodes) + ["", "", "", ""])[:4],
            str(record.population),
            self.from_optional(record.elevation),
            str(record.dem),
            record.timezone.replace(" ", "_"),
            (record.modification_date.strftime("%Y-%m-%d")
             if record.modification_date else "")
        ]


class PostalcodeParser(BaseParser[Postalcode]):
    expected_fields = 12
    has_comments = False

    def parse(self, fields: List[str]) -> Postalcode:
        return Postalcode(
            country_code=fields[0],
            postal_code=fields[1],
            place_name=fields[2],
            admin_names=[fields[3], fields[5], fields[7]],
            admin_codes=[fields[4], fields[6], fields[8]],
            latitude=self.to_float(fields[9]),
            longitude=self.to_float(fields[10]),
            accuracy=self.to_optional_int(fields[11])
        )

    def compose(self, record: Postalcode) -> List[str]:
        names = (list(record.admin_names) + ["", "", ""])[:3]
        codes = (list(record.admin_codes) + ["", "", ""])[:3]
        return [
            record.country_code,
            record.postal_code,
            record.place_name,
            names[0], codes[0],
            names[1], codes[1],
            names[2], codes[2],
            self.from_float(record.latitude),
            self.from_float(record.longitude),
            self.from_optional(record.accuracy)
        ]


class Admin1CodeParser(BaseParser[Admin1Code]):
    expected_fields = 4
    has_comments = False

    def parse(self, fields: List[str]) -> Admin1Code:
        return Admin1Code(
            code=fields[0],
            name=fields[1],
            name_ascii=fields[2],
            geoname_id=self.to_int(fields[3]) if fields[3].strip() else 0
        )

    def compose(self, record: Admin1Code) -> List[str]:
        return [record.code, record.name, record.name_ascii, str(record.geoname_id)]


class CountryInfoParser(BaseParser[CountryInfo]):
    """countryInfo.txt; the file starts with a block of # comments."""

    expected_fields = 19

    def parse(self, fields: List[str]) -> CountryInfo:
        return CountryInfo(
            iso_alpha2=fields[0],
            iso_alpha3=fields[1],
            iso_numeric=fields[2],
            fips_code=fields[3],
            country=fields[4],
            capital=fields[5],
            area=self.to_float(fields[6]),
            population=self.to_int(fields[7]) if fields[7].strip() else 0,
            continent=fields[8],
            tld=fields[9],
            currency_code=fields[10],
            currency_name=fields[11],
            phone=fields[12],
            postal_code_format=fields[13],
            postal_code_regex=fields[14],
            languages=self.to_list(fields[15]),
            geoname_id=self.to_optional_int(fields[16]),
            neighbours=self.to_list(fields[17]),
            equivalent_fips_code=fields[18]
        )

    def compose(self, record: CountryInfo) -> List[str]:
        return [
            record.iso_alpha2,
            record.iso_alpha3,
            record.iso_numeric,
            record.fips_code,
            record.country,
            record.capital,
            self.from_float(record.area),
            str(record.population),
            record.continent,
            record.tld,
            record.currency_code,
            record.currency_name,
            record.phone,
            record.postal_code_format,
            record.postal_code_regex,
            ",".join(record.languages),
            self.from_optional(record.geoname_id),
            ",".join(record.neighbours),
            record.equivalent_fips_code
        ]


class TimeZoneParser(BaseParser[TimeZone]):
    expected_fields = 5
    has_comments = False
    skip_lines = 1
    header = "CountryCode\tTimeZoneId\tGMT offset\tDST offset\trawOffset"

    def parse(self, fields: List[str]) -> TimeZone:
        return TimeZone(
            country_code=fields[0],
            timezone_id=fields[1],
            gmt_offset=self.to_float(fields[2]),
            dst_offset=self.to_float(fields[3]),
            raw_offset=self.to_float(fields[4])
        )

    def compose(self, record: TimeZone) -> List[str]:
        return [
            record.country_code,
            record.timezone_id,
            self.from_float(record.gmt_offset),
            self.from_float(record.dst_offset),
            self.from_float(record.raw_offset)
        ]


class FeatureCodeParser(BaseParser[FeatureCode]):
    """featureCodes_xx.txt; "null" marks the entry without class or code."""

    expected_fields = 3
    has_comments = False

    def parse(self, fields: List[str]) -> FeatureCode:
        feature_class, code = None, None
        if fields[0] != "null":
            feature_class, _, code = fields[0].partition(".")
            code = code or None

        return FeatureCode(
            feature_class=feature_class,
            code=code,
            name=fields[1],
            description=fields[2]
        )

    def compose(self, record: FeatureCode) -> List[str]:
        if record.feature_class is None:
            key = "null"
        elif record.code is None:
            key = record.feature_class
        else:
            key = f"{record.feature_class}.{record.code}"
        return [key, record.name, record.description]


def detect_file_type(path: Union[str, Path]) -> FileType:
    """Guess the file type from the file extension."""
    suffix = Path(path).suffix.lower()
    if suffix == ".gz":
        return FileType.GZIP
    if suffix == ".zip":
        return FileType.ZIP
    return FileType.PLAIN


@contextmanager
def _open_binary(path: Path, file_type: FileType) -> Iterator[IO[bytes]]:
    if file_type == FileType.AUTO:
        file_type = detect_file_type(path)

    if file_type == FileType.PLAIN:
        with open(path, "rb") as f:
            yield f
    elif file_type == FileType.GZIP:
        with gzip.open(path, "rb") as f:
            yield f
    elif file_type == FileType.ZIP:
        with zipfile.ZipFile(path) as archive:
            # First entry that is not a readme
            names = [n for n in archive.namelist()
                     if not Path(n).name.lower().startswith("readme")]
            if not names:
                raise ValueError(f"No data file found in {path}")
            with archive.open(names[0]) as f:
                yield f
    else:
        raise ValueError(f"Unsupported file type: {file_type}")


def read_lines(stream: IO[bytes], parser: BaseParser[T]) -> Iterator[T]:
    """
    Parse records from a binary stream.

    Args:
        stream: Binary file-like object
        parser: Parser describing the line layout

    Yields:
        Parsed records
    """
    text = io.TextIOWrapper(stream, encoding=parser.encoding, newline="")

    for line_no, line in enumerate(text, 1):
        line = line.rstrip("\r\n")

        if line_no <= parser.skip_lines or not line:
            continue
        if parser.has_comments and line.startswith("#"):
            continue

        fields = line.split(parser.field_separator)
        if len(fields) != parser.expected_fields:
            raise ParserError(
                f"Expected {parser.expected_fields} fields, but got "
                f"{len(fields)} on line {line_no}."
            )

        try:
            record = parser.parse(fields)
        except ValueError as e:
            raise ParserError(f"Invalid value on line {line_no}: {e}") from e

        yield record


def read_records(path: Union[str, Path], parser: BaseParser[T],
                 file_type: FileType = FileType.AUTO) -> Iterator[T]:
    """
    Read records from a plain, gzip or zip file.

    Args:
        path: File to read
        parser: Parser describing the line layout
        file_type: Compression; detected from the extension by default

    Yields:
        Parsed records
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with _open_binary(path, file_type) as stream:
        yield from read_lines(stream, parser)


def read_geonames(path: Union[str, Path],
                  extended_format: bool = True) -> Iterator[GeoName]:
    """Load GeoName records."""
    return read_records(path, GeoNameParser(extended_format))


def read_extended_geonames(path: Union[str, Path]) -> Iterator[ExtendedGeoName]:
    """Load ExtendedGeoName records."""
    return read_records(path, ExtendedGeoNameParser())


def read_postalcodes(path: Union[str, Path]) -> Iterator[Postalcode]:
    """Load postal code records."""
    return read_records(path, PostalcodeParser())


def read_admin1_codes(path: Union[str, Path]) -> Iterator[Admin1Code]:
    return read_records(path, Admin1CodeParser())


def read_country_info(path: Union[str, Path]) -> Iterator[CountryInfo]:
    return read_records(path, CountryInfoParser())


def read_timezones(path: Union[str, Path]) -> Iterator[TimeZone]:
    return read_records(path, TimeZoneParser())


def read_feature_codes(path: Union[str, Path]) -> Iterator[FeatureCode]:
    return read_records(path, FeatureCodeParser())


def only_located(records: Iterable[T]) -> List[T]:
    """Drop records whose latitude or longitude is not a finite number."""
    kept = []
    dropped = 0

    for record in records:
        if math.isfinite(record.latitude) and math.isfinite(record.longitude):
            kept.append(record)
        else:
            dropped += 1

    if dropped:
        logger.warning("Dropped %d records without valid coordinates", dropped)

    return kept


def build_index(path: Union[str, Path],
                extended_format: bool = True) -> ReverseGeoCode:
    """
    Read a GeoNames file and build a balanced reverse geocoder.

    Args:
        path: GeoNames dump (plain, .gz or .zip)
        extended_format: Whether the file holds full 19-column rows

    Returns:
        ReverseGeoCode over the file's records
    """
    logger.info("Loading places from %s", path)

    records = only_located(read_geonames(path, extended_format))
    index = ReverseGeoCode(records)

    logger.info("Indexed %d places", index.count)
    return index
