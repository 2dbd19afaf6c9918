from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

from looprun.errors import InvalidCoordinate

LatLon = Tuple[float, float]  # (lat, lon)


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float

    def __post_init__(self):
        if not (math.isfinite(self.lat) and math.isfinite(self.lon)):
            raise InvalidCoordinate(f"non-finite coordinate ({self.lat}, {self.lon})")
        if not -90.0 <= self.lat <= 90.0:
            raise InvalidCoordinate(f"latitude out of range: {self.lat}")
        if not -180.0 <= self.lon <= 180.0:
            raise InvalidCoordinate(f"longitude out of range: {self.lon}")

    @classmethod
    def from_latlon(cls, p: LatLon) -> "Coordinate":
        lat, lon = p
        return cls(float(lat), float(lon))

    def as_latlon(self) -> LatLon:
        return (self.lat, self.lon)

    def as_lonlat(self) -> Tuple[float, float]:
        # ORS / GeoJSON order
        return (self.lon, self.lat)
