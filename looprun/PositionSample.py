from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from looprun.Coordinate import Coordinate, LatLon


@dataclass(frozen=True)
class PositionSample:
    """
    One position fix as reported by the location provider.
    timestamp: epoch seconds of the fix (arrival order may differ)
    accuracy_m: reported horizontal accuracy, if the provider has one
    """
    coordinate: Coordinate
    timestamp: float
    accuracy_m: Optional[float] = None

    @classmethod
    def from_fix(cls, lat: float, lon: float, timestamp: float,
                 accuracy_m: Optional[float] = None) -> "PositionSample":
        return cls(coordinate=Coordinate(float(lat), float(lon)),
                   timestamp=float(timestamp),
                   accuracy_m=accuracy_m)

    @property
    def latlon(self) -> LatLon:
        return self.coordinate.as_latlon()
