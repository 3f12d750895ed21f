"""Writes records back to GeoNames tab-delimited files."""

import gzip
import io
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterable, Iterator, TypeVar, Union

from geo_index.data_loader import (
    Admin1CodeParser, BaseParser, CountryInfoParser, ExtendedGeoNameParser,
    FeatureCodeParser, FileType, GeoNameParser, PostalcodeParser,
    TimeZoneParser, detect_file_type
)
from geo_index.records import (
    Admin1Code, CountryInfo, ExtendedGeoName, FeatureCode, GeoName, Postalcode,
    TimeZone
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

LINE_SEPARATOR = "\n"


@contextmanager
def _create_binary(path: Path, file_type: FileType) -> Iterator[IO[bytes]]:
    if file_type == FileType.AUTO:
        file_type = detect_file_type(path)

    if file_type == FileType.PLAIN:
        with open(path, "wb") as f:
            yield f
    elif file_type == FileType.GZIP:
        with gzip.open(path, "wb") as f:
            yield f
    else:
        raise ValueError(f"Unsupported file type for writing: {file_type}")


def write_lines(stream: IO[bytes], records: Iterable[T],
                parser: BaseParser[T]) -> int:
    """
    Compose records into a binary stream.

    Args:
        stream: Binary file-like object
        records: Records to write
        parser: Parser describing the line layout

    Returns:
        Number of records written
    """
    text = io.TextIOWrapper(stream, encoding=parser.encoding, newline="")
    count = 0

    try:
        if parser.skip_lines and parser.header is not None:
            text.write(parser.header + LINE_SEPARATOR)

        for record in records:
            fields = parser.compose(record)
            text.write(parser.field_separator.join(fields) + LINE_SEPARATOR)
            count += 1
    finally:
        # Leave the underlying stream open for the caller
        text.flush()
        text.detach()

    return count


def write_records(path: Union[str, Path], records: Iterable[T],
                  parser: BaseParser[T],
                  file_type: FileType = FileType.AUTO) -> int:
    """
    Write records to a plain or gzip file, replacing any existing file.

    Args:
        path: File to write
        records: Records to write
        parser: Parser describing the line layout
        file_type: Compression; detected from the extension by default

    Returns:
        Number of records written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with _create_binary(path, file_type) as stream:
        count = write_lines(stream, records, parser)

    logger.info("Wrote %d records to %s", count, path)
    return count


def write_geonames(path: Union[str, Path], records: Iterable[GeoName],
                   extended_format: bool = True) -> int:
    return write_records(path, records, GeoNameParser(extended_format))


def write_extended_geonames(path: Union[str, Path],
                            records: Iterable[ExtendedGeoName]) -> int:
    return write_records(path, records, ExtendedGeoNameParser())


def write_postalcodes(path: Union[str, Path], records: Iterable[Postalcode]) -> int:
    return write_records(path, records, PostalcodeParser())


def write_admin1_codes(path: Union[str, Path], records: Iterable[Admin1Code]) -> int:
    return write_records(path, records, Admin1CodeParser())


def write_country_info(path: Union[str, Path], records: Iterable[CountryInfo]) -> int:
    return write_records(path, records, CountryInfoParser())


def write_timezones(path: Union[str, Path], records: Iterable[TimeZone]) -> int:
    return write_records(path, records, TimeZoneParser())


def write_feature_codes(path: Union[str, Path], records: Iterable[FeatureCode]) -> int:
    return write_records(path, records, FeatureCodeParser())
