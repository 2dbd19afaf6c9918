import math
from typing import Iterable, List, Sequence, Union

from looprun.Coordinate import Coordinate, LatLon

EARTH_RADIUS_M = 6371000.0
METERS_PER_MILE = 1609.34

PointLike = Union[Coordinate, LatLon]


# -------------------------
# small utils
# -------------------------
def _latlon(p: PointLike) -> LatLon:
    if isinstance(p, Coordinate):
        return p.as_latlon()
    return p


def cum_array(values: Iterable[float]) -> List[float]:
    cum = [0.0]
    s = 0.0
    for v in values:
        s += v
        cum.append(s)
    return cum


def miles_to_m(miles: float) -> float:
    return miles * METERS_PER_MILE


def m_to_miles(meters: float) -> float:
    return meters / METERS_PER_MILE


# -------------------------
# great-circle math
# -------------------------
def haversine_m(a: PointLike, b: PointLike) -> float:
    lat1, lon1 = map(math.radians, _latlon(a))
    lat2, lon2 = map(math.radians, _latlon(b))
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    x = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # rounding can push x a hair outside [0, 1] for (anti)coincident points
    x = min(1.0, max(0.0, x))
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(x))


def distance_miles(a: PointLike, b: PointLike) -> float:
    return m_to_miles(haversine_m(a, b))


def bearing_deg(a: PointLike, b: PointLike) -> float:
    """Initial great-circle bearing from a to b, degrees clockwise from north in [0, 360)."""
    lat1, lon1 = map(math.radians, _latlon(a))
    lat2, lon2 = map(math.radians, _latlon(b))
    dlon = lon2 - lon1
    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def segment_lengths_m(points: Sequence[PointLike]) -> List[float]:
    return [haversine_m(points[i], points[i + 1]) for i in range(len(points) - 1)]


def offset_north_m(point: LatLon, meters: float) -> LatLon:
    # along a meridian the haversine distance is exactly R * dlat
    lat, lon = point
    return lat + math.degrees(meters / EARTH_RADIUS_M), lon
