"""Tests for the GeoNames file reader."""

import gzip
import math
import zipfile
from datetime import date

import pytest
from geo_index import data_loader
from geo_index.data_loader import (
    FileType, GeoNameParser, ParserError, build_index, detect_file_type,
    only_located, read_extended_geonames, read_geonames, read_postalcodes,
    read_records
)
from geo_index.geo import InvalidGeometryError
from geo_index.records import ExtendedGeoName, GeoName
from geo_index.reverse_geocode import ReverseGeoCode


def _row(*fields):
    return "\t".join(str(f) for f in fields)


AMSTERDAM_ROW = _row(
    2759794, "Amsterdam", "Amsterdam", "AMS,Amsterdam,Mokum", 52.37403, 4.88969,
    "P", "PPLC", "NL", "", "07", "0363", "", "", 741636, "", 13,
    "Europe/Amsterdam", "2022-03-09"
)
ROTTERDAM_ROW = _row(
    2747891, "Rotterdam", "Rotterdam", "", 51.9225, 4.47917,
    "P", "PPLA2", "NL", "BE", "11", "0599", "", "", "598199.0", 5, 3,
    "Europe/Amsterdam", "2021-11-29"
)
BERLIN_ROW = _row(
    2950159, "Berlin", "Berlin", "BER", 52.52437, 13.41053,
    "P", "PPLC", "DE", "", "16", "00", "11000", "11000000", 3426354, 74, 43,
    "Europe/Berlin", "2022-01-14"
)

GEONAMES_TEXT = "\n".join([
    "# cities extract",
    AMSTERDAM_ROW,
    "",
    ROTTERDAM_ROW,
    BERLIN_ROW,
]) + "\n"

POSTAL_TEXT = "\n".join([
    _row("AU", "0200", "Australian National University", "Australian Capital Territory",
         "ACT", "", "", "", "", "", "", ""),
    _row("CZ", "561 13", "Orlické Podhůří-Rozsocha", "Pardubický", "86", "Ústí nad Orlicí",
         "5304", "", "", 50.0333, 16.2833, ""),
    _row("NL", "1012", "Amsterdam", "Noord-Holland", "07", "Amsterdam", "0363", "", "",
         52.3731, 4.8922, 6),
]) + "\n"


@pytest.fixture
def geonames_file(tmp_path):
    path = tmp_path / "cities.txt"
    path.write_text(GEONAMES_TEXT, encoding="utf-8")
    return path


def test_read_extended_geonames(geonames_file):
    """Test that all 19 columns are mapped."""
    records = list(read_extended_geonames(geonames_file))

    assert len(records) == 3
    amsterdam, rotterdam, berlin = records

    assert isinstance(amsterdam, ExtendedGeoName)
    assert amsterdam.id == 2759794
    assert amsterdam.alternate_names == ["AMS", "Amsterdam", "Mokum"]
    assert amsterdam.latitude == 52.37403
    assert amsterdam.admincodes == ["07", "0363", "", ""]
    assert amsterdam.alternate_country_codes == []
    assert amsterdam.elevation is None
    assert amsterdam.timezone == "Europe/Amsterdam"
    assert amsterdam.modification_date == date(2022, 3, 9)

    assert rotterdam.alternate_names == []
    assert rotterdam.alternate_country_codes == ["BE"]
    assert rotterdam.population == 598199
    assert rotterdam.elevation == 5

    assert berlin.admincodes == ["16", "00", "11000", "11000000"]


def test_read_geonames(geonames_file):
    records = list(read_geonames(geonames_file))

    assert records[0] == GeoName(2759794, "Amsterdam", 52.37403, 4.88969)
    assert [r.name for r in records] == ["Amsterdam", "Rotterdam", "Berlin"]


def test_read_simple_geonames(tmp_path):
    """Test the four-column id/name/lat/lng layout."""
    path = tmp_path / "simple.txt"
    path.write_text("1\tA\t1.5\t2.5\n2\tB\t-3\t4\n", encoding="utf-8")

    records = list(read_geonames(path, extended_format=False))

    assert records == [GeoName(1, "A", 1.5, 2.5), GeoName(2, "B", -3.0, 4.0)]


def test_wrong_field_count(tmp_path):
    """Test that a malformed line reports its line number."""
    path = tmp_path / "broken.txt"
    path.write_text(AMSTERDAM_ROW + "\n1\tonly\tthree\n", encoding="utf-8")

    with pytest.raises(ParserError, match="line 2"):
        list(read_geonames(path))


def test_invalid_value(tmp_path):
    path = tmp_path / "broken.txt"
    path.write_text("x\tA\t1.5\t2.5\n", encoding="utf-8")

    with pytest.raises(ParserError, match="line 1"):
        list(read_geonames(path, extended_format=False))


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        list(read_geonames(tmp_path / "does_not_exist.txt"))


def test_empty_file(tmp_path):
    path = tmp_path / "empty.txt"
    path.write_text("", encoding="utf-8")

    assert list(read_geonames(path)) == []


def test_gzip_file(tmp_path):
    path = tmp_path / "cities.txt.gz"
    with gzip.open(path, "wt", encoding="utf-8") as f:
        f.write(GEONAMES_TEXT)

    assert detect_file_type(path) == FileType.GZIP
    assert len(list(read_geonames(path))) == 3


def test_zip_file_skips_readme(tmp_path):
    path = tmp_path / "cities.zip"
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("readme.txt", "not tab separated at all")
        archive.writestr("cities.txt", GEONAMES_TEXT)

    assert detect_file_type(path) == FileType.ZIP
    assert [r.name for r in read_geonames(path)] == ["Amsterdam", "Rotterdam", "Berlin"]


def test_explicit_file_type(tmp_path):
    """Test that the extension is ignored when a file type is given."""
    path = tmp_path / "cities.data"
    with gzip.open(path, "wt", encoding="utf-8") as f:
        f.write(GEONAMES_TEXT)

    records = list(read_records(path, GeoNameParser(), FileType.GZIP))
    assert len(records) == 3


def test_postalcodes(tmp_path):
    """Test that blank coordinates become NaN."""
    path = tmp_path / "postal.txt"
    path.write_text(POSTAL_TEXT, encoding="utf-8")

    records = list(read_postalcodes(path))

    assert len(records) == 3
    assert records[0].postal_code == "0200"
    assert math.isnan(records[0].latitude)
    assert math.isnan(records[0].longitude)
    assert records[0].accuracy is None
    assert records[1].place_name == "Orlické Podhůří-Rozsocha"
    assert records[1].latitude == 50.0333
    assert records[2].accuracy == 6


def test_postalcodes_without_coordinates_are_rejected(tmp_path):
    path = tmp_path / "postal.txt"
    path.write_text(POSTAL_TEXT, encoding="utf-8")
    records = list(read_postalcodes(path))

    with pytest.raises(InvalidGeometryError):
        ReverseGeoCode(records)

    located = only_located(records)
    assert [r.postal_code for r in located] == ["561 13", "1012"]

    index = ReverseGeoCode(located)
    assert index.nearest_neighbour_search(52.37, 4.89, 1)[0].place_name == "Amsterdam"


def test_build_index(geonames_file):
    index = build_index(geonames_file)

    assert index.count == 3
    assert index.is_balanced
    assert index.nearest_neighbour_search(52.5, 13.4, 1)[0].name == "Berlin"
    assert [p.name for p in index.radial_search_km(52.0, 4.6, 60)] == \
        ["Rotterdam", "Amsterdam"]


def test_to_int_accepts_float_notation():
    assert data_loader.BaseParser.to_int("598199.0") == 598199
    with pytest.raises(ValueError):
        data_loader.BaseParser.to_int(" ")


def test_admin1_codes(tmp_path):
    """Test that a missing geoname id reads as 0."""
    path = tmp_path / "admin1CodesASCII.txt"
    path.write_text(
        "CF.04\tMambéré-Kadéï\tMambere-Kadei\t2386161\n"
        "This.is.a.VERY.LONG.ID\tIğdır\tIgdir\t\n",
        encoding="utf-8"
    )

    first, second = data_loader.read_admin1_codes(path)

    assert (first.code, first.name, first.name_ascii, first.geoname_id) == \
        ("CF.04", "Mambéré-Kadéï", "Mambere-Kadei", 2386161)
    assert second.code == "This.is.a.VERY.LONG.ID"
    assert second.geoname_id == 0


def test_country_info_skips_comments(tmp_path):
    path = tmp_path / "countryInfo.txt"
    path.write_text(
        "# GeoNames.org Country Information\n"
        "#ISO\tISO3\tISO-Numeric\tfips\tCountry\tCapital\tArea(in sq km)\t...\n"
        + _row("BZ", "BLZ", "084", "BH", "Belize", "Belmopan", 22966, 383071, "NA",
               ".bz", "BZD", "Dollar", "501", "", "", "en-BZ,es", 3582678, "GT,MX", "")
        + "\n",
        encoding="utf-8"
    )

    (belize,) = data_loader.read_country_info(path)

    assert belize.iso_alpha2 == "BZ"
    assert belize.iso_alpha3 == "BLZ"
    assert belize.iso_numeric == "084"
    assert belize.country == "Belize"
    assert belize.capital == "Belmopan"
    assert belize.area == 22966.0
    assert belize.languages == ["en-BZ", "es"]
    assert belize.neighbours == ["GT", "MX"]
    assert belize.geoname_id == 3582678


def test_timezones_skip_header(tmp_path):
    path = tmp_path / "timeZones.txt"
    path.write_text(
        "CountryCode\tTimeZoneId\tGMT offset 1. Jan 2024\tDST offset 1. Jul 2024\t"
        "rawOffset (independant of DST)\n"
        "NL\tEurope/Amsterdam\t1.0\t2.0\t1.0\n"
        "IN\tAsia/Kolkata\t5.5\t5.5\t5.5\n",
        encoding="utf-8"
    )

    records = list(data_loader.read_timezones(path))

    assert [r.timezone_id for r in records] == ["Europe/Amsterdam", "Asia/Kolkata"]
    assert records[0].dst_offset == 2.0
    assert records[1].raw_offset == 5.5


def test_feature_codes(tmp_path):
    path = tmp_path / "featureCodes_en.txt"
    path.write_text(
        "A.ADM1\tfirst-order administrative division\ta primary administrative "
        "division of a country, such as a state in the United States\n"
        "XXX\tunknown\t\n"
        "null\tnot available\t\n",
        encoding="utf-8"
    )

    adm1, unknown, missing = data_loader.read_feature_codes(path)

    assert (adm1.feature_class, adm1.code) == ("A", "ADM1")
    assert adm1.name == "first-order administrative division"
    assert (unknown.feature_class, unknown.code) == ("XXX", None)
    assert (missing.feature_class, missing.code) == (None, None)
