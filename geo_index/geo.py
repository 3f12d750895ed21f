"""
Coordinate projection and distance helpers for Geo Index.

Latitude/longitude pairs are projected onto the unit sphere so that plain
Euclidean distances can be used to rank points by proximity.
"""

import math
from typing import Sequence, Tuple


# Mean earth radius (IUGG)
EARTH_RADIUS_KM = 6371.0088

Point3D = Tuple[float, float, float]


class InvalidGeometryError(ValueError):
    """Raised when a coordinate is NaN or infinite."""


def _check_finite(lat: float, lng: float):
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidGeometryError(
            f"Coordinates must be finite, got lat={lat}, lng={lng}"
        )


def project(lat: float, lng: float) -> Point3D:
    """
    Project geodetic coordinates onto the unit sphere.

    Args:
        lat: Latitude in degrees
        lng: Longitude in degrees

    Returns:
        (x, y, z) cartesian point
    """
    _check_finite(lat, lng)

    lat_rad = math.radians(lat)
    lng_rad = math.radians(lng)
    cos_lat = math.cos(lat_rad)

    return (
        cos_lat * math.cos(lng_rad),
        cos_lat * math.sin(lng_rad),
        math.sin(lat_rad)
    )


def squared_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Squared euclidean distance between two points of equal dimension."""
    total = 0.0
    for x, y in zip(a, b):
        d = x - y
        total += d * d
    return total


def km_to_chord(km: float) -> float:
    """
    Convert a great-circle distance to a unit-sphere chord length.

    Distances past half the circumference clamp to the sphere's diameter.
    """
    if km < 0:
        return -km_to_chord(-km)

    angle = min(km / EARTH_RADIUS_KM, math.pi)
    return 2.0 * math.sin(angle / 2.0)


def chord_to_km(chord: float) -> float:
    """Convert a unit-sphere chord length back to great-circle kilometres."""
    chord = min(max(chord, 0.0), 2.0)
    return 2.0 * EARTH_RADIUS_KM * math.asin(chord / 2.0)


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometres."""
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlng / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c
