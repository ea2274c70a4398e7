"""Great-circle distance helpers."""

import math
from typing import Iterable, Optional

EARTH_RADIUS_KM = 6371.0


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in kilometres between two points given in decimal degrees."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    # Rounding can push a slightly above 1 for antipodal points
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def parse_coordinate(value) -> Optional[float]:
    """Parse an optional numeric string. Missing or non-finite values yield None."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if not math.isfinite(number):
        return None
    return number


def coordinates_of(row) -> Optional[tuple[float, float]]:
    """Return (lat, lon) of a row, or None when either coordinate is invalid."""
    lat = parse_coordinate(row.latitude)
    lon = parse_coordinate(row.longitude)
    if lat is None or lon is None:
        return None
    return lat, lon


def cumulative_distances(rows: Iterable) -> dict[str, float]:
    """Running distance through rows taken in sortOrder.

    The walk starts at the first row with valid coordinates. Rows without
    coordinates carry the running total forward unchanged.
    """
    result: dict[str, float] = {}
    previous = None
    total = 0.0
    for row in sorted(rows, key=lambda r: r.sort_order):
        coords = coordinates_of(row)
        if coords is not None:
            if previous is not None:
                total += haversine(previous[0], previous[1], coords[0], coords[1])
            previous = coords
        result[row.id] = total
    return result
