from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, List, Optional, Tuple

from looprun.Coordinate import Coordinate, LatLon
from looprun.PositionSample import PositionSample
from looprun.geo import distance_miles
from looprun.milestones import FIRST_MILESTONE_MILES, check_milestones, milestone_message

logger = logging.getLogger(__name__)

PACE_UNDEFINED = 0.0


class SessionState(Enum):
    IDLE = auto()
    ACTIVE = auto()
    STOPPED = auto()


@dataclass(frozen=True)
class Notification:
    threshold_miles: float
    message: str
    elapsed_seconds: float


class TrackingSession:
    """
    Live run state. Distance, pace and milestones are derived from the
    samples and ticks fed in; nothing here does I/O or waits on anything.

    Operations called in the wrong state return False (or an empty list)
    and leave the session untouched.
    """

    def __init__(self, alert_sink: Optional[Callable[[str], None]] = None):
        self.alert_sink = alert_sink
        self._state = SessionState.IDLE
        self._origin: Optional[Coordinate] = None
        self._samples: List[PositionSample] = []
        self._distance_miles = 0.0
        self._elapsed_s = 0.0
        self._pace = PACE_UNDEFINED
        self._next_milestone = FIRST_MILESTONE_MILES

    # -------------------------
    # read-only view
    # -------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.ACTIVE

    @property
    def origin(self) -> Optional[Coordinate]:
        return self._origin

    @property
    def samples(self) -> Tuple[PositionSample, ...]:
        return tuple(self._samples)

    @property
    def path(self) -> List[LatLon]:
        return [s.latlon for s in self._samples]

    @property
    def cumulative_distance_miles(self) -> float:
        return self._distance_miles

    @property
    def elapsed_seconds(self) -> float:
        return self._elapsed_s

    @property
    def pace_min_per_mile(self) -> float:
        # PACE_UNDEFINED until there is both distance and time
        return self._pace

    @property
    def pace_defined(self) -> bool:
        return self._pace > 0.0

    @property
    def next_milestone_miles(self) -> float:
        return self._next_milestone

    # -------------------------
    # transitions
    # -------------------------
    def start(self, origin: Coordinate) -> bool:
        if self._state is SessionState.ACTIVE:
            logger.debug("start ignored: session already active")
            return False

        self._origin = origin
        self._samples = []
        self._distance_miles = 0.0
        self._elapsed_s = 0.0
        self._pace = PACE_UNDEFINED
        self._next_milestone = FIRST_MILESTONE_MILES
        self._state = SessionState.ACTIVE
        logger.info("Tracking started at (%.5f, %.5f)", origin.lat, origin.lon)
        return True

    def stop(self) -> bool:
        if self._state is not SessionState.ACTIVE:
            logger.debug("stop ignored: session is %s", self._state.name)
            return False

        self._state = SessionState.STOPPED
        logger.info("Tracking stopped: %.2f mi in %.0f s",
                    self._distance_miles, self._elapsed_s)
        return True

    def ingest_sample(self, sample: PositionSample) -> List[Notification]:
        if self._state is not SessionState.ACTIVE:
            logger.debug("sample dropped: session is %s", self._state.name)
            return []

        if self._samples:
            last = self._samples[-1]
            if sample.timestamp < last.timestamp:
                logger.debug("out-of-order fix dropped (%.3f < %.3f)",
                             sample.timestamp, last.timestamp)
                return []
            if sample.timestamp == last.timestamp and sample.coordinate == last.coordinate:
                logger.debug("duplicate fix dropped")
                return []
            self._distance_miles += distance_miles(last.coordinate, sample.coordinate)

        self._samples.append(sample)
        self._update_pace()
        return self.check_milestones()

    def tick(self, elapsed_seconds: float) -> bool:
        if self._state is not SessionState.ACTIVE:
            return False
        if not math.isfinite(elapsed_seconds) or elapsed_seconds < 0:
            logger.debug("tick ignored: bad elapsed value %r", elapsed_seconds)
            return False

        self._elapsed_s = float(elapsed_seconds)
        self._update_pace()
        return True

    def check_milestones(self) -> List[Notification]:
        if self._state is not SessionState.ACTIVE:
            return []

        crossed, self._next_milestone = check_milestones(self._distance_miles, self._next_milestone)
        notes = [Notification(threshold_miles=t,
                              message=milestone_message(t),
                              elapsed_seconds=self._elapsed_s) for t in crossed]
        for n in notes:
            self._alert(n.message)
        return notes

    # -------------------------
    # helpers
    # -------------------------
    def _update_pace(self) -> None:
        if self._elapsed_s > 0 and self._distance_miles > 0:
            self._pace = (self._elapsed_s / 60.0) / self._distance_miles
        else:
            self._pace = PACE_UNDEFINED

    def _alert(self, message: str) -> None:
        logger.debug("milestone alert: %s", message)
        if self.alert_sink is None:
            return
        try:
            self.alert_sink(message)
        except Exception:
            logger.exception("alert sink failed for %r", message)
