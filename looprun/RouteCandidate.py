from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from looprun.Coordinate import Coordinate, LatLon


@dataclass
class RouteCandidate:
    """
    One generated loop offered to the user.
    geometry: polyline points (lat, lon), starts and ends near the origin
    dist_m / duration_s: provider summary, 0.0 when not reported
    seed: variation seed the provider was asked with
    """
    id: int
    geometry: List[LatLon]
    is_selected: bool = False
    dist_m: float = 0.0
    duration_s: float = 0.0
    seed: Optional[int] = None


@dataclass
class CandidateSet:
    generation: int
    origin: Coordinate
    target_miles: float
    candidates: List[RouteCandidate] = field(default_factory=list)

    def select(self, candidate_id: int) -> RouteCandidate:
        if not 0 <= candidate_id < len(self.candidates):
            raise ValueError(f"Unknown candidate: {candidate_id}")
        for c in self.candidates:
            c.is_selected = c.id == candidate_id
        return self.candidates[candidate_id]

    @property
    def selected(self) -> Optional[RouteCandidate]:
        for c in self.candidates:
            if c.is_selected:
                return c
        return None

    def __len__(self) -> int:
        return len(self.candidates)

    def __iter__(self) -> Iterator[RouteCandidate]:
        return iter(self.candidates)
