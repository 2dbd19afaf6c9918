from __future__ import annotations

import asyncio
import itertools
import logging
import time
from typing import Callable, Dict, List, Optional, Protocol, Sequence

import gpxpy
import gpxpy.gpx
import requests

from looprun import config
from looprun.Coordinate import Coordinate, LatLon
from looprun.errors import InvalidCoordinate, LocationUnavailable

logger = logging.getLogger(__name__)

FixCallback = Callable[[float, float, float, Optional[float]], None]  # lat, lon, timestamp, accuracy_m
ErrorCallback = Callable[[Exception], None]


class LocationProvider(Protocol):
    def get_current_position(self) -> Coordinate:
        ...

    def watch_position(self, on_fix: FixCallback,
                       on_error: Optional[ErrorCallback] = None) -> int:
        ...

    def clear_watch(self, handle: int) -> None:
        ...


def initial_position(provider: LocationProvider,
                     default: Coordinate = config.DEFAULT_LOCATION) -> Coordinate:
    try:
        return provider.get_current_position()
    except LocationUnavailable as e:
        logger.warning("Could not access GPS (%s), using (%.4f, %.4f) as example.",
                       e, default.lat, default.lon)
        return default


class IpLocationProvider:
    """One-shot position from an IP geolocation service. No live feed."""

    def __init__(self, url: str = config.IP_LOCATION_URL,
                 timeout_s: float = config.INITIAL_FIX_TIMEOUT_S):
        self.url = url
        self.timeout_s = timeout_s

    def get_current_position(self) -> Coordinate:
        try:
            r = requests.get(self.url, timeout=self.timeout_s)
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as e:
            raise LocationUnavailable(f"IP lookup failed: {e}") from e

        if data.get("status", "success") != "success":
            raise LocationUnavailable(f"IP lookup refused: {data.get('message', data)}")
        try:
            return Coordinate(float(data["lat"]), float(data["lon"]))
        except (KeyError, TypeError, ValueError, InvalidCoordinate) as e:
            raise LocationUnavailable(f"IP lookup returned no position: {data!r:.200}") from e

    def watch_position(self, on_fix: FixCallback,
                       on_error: Optional[ErrorCallback] = None) -> int:
        raise LocationUnavailable("IP geolocation has no continuous feed")

    def clear_watch(self, handle: int) -> None:
        return None


class ReplayLocationProvider:
    """
    Plays back a recorded track as if it were a live GPS feed, one fix
    every `interval_s` seconds on the running event loop.
    """

    def __init__(self, points: Sequence[LatLon], interval_s: float = 1.0,
                 clock: Callable[[], float] = time.time):
        if not points:
            raise ValueError("replay needs at least one point")
        self.points: List[LatLon] = list(points)
        self.interval_s = interval_s
        self.clock = clock
        self._watches: Dict[int, asyncio.Task] = {}
        self._ids = itertools.count(1)

    @classmethod
    def from_gpx(cls, path: str, interval_s: float = 1.0) -> "ReplayLocationProvider":
        with open(path, "r", encoding="utf-8") as f:
            try:
                gpx = gpxpy.parse(f)
            except gpxpy.gpx.GPXException as e:
                raise LocationUnavailable(f"unreadable GPX {path}: {e}") from e
        points = [(p.latitude, p.longitude)
                  for track in gpx.tracks
                  for segment in track.segments
                  for p in segment.points]
        points += [(p.latitude, p.longitude) for route in gpx.routes for p in route.points]
        if not points:
            raise LocationUnavailable(f"no track points in {path}")
        logger.info("Loaded %d points from %s", len(points), path)
        return cls(points, interval_s=interval_s)

    @property
    def active_watches(self) -> int:
        return sum(1 for t in self._watches.values() if not t.done())

    def get_current_position(self) -> Coordinate:
        try:
            return Coordinate.from_latlon(self.points[0])
        except InvalidCoordinate as e:
            raise LocationUnavailable(str(e)) from e

    def watch_position(self, on_fix: FixCallback,
                       on_error: Optional[ErrorCallback] = None) -> int:
        handle = next(self._ids)
        self._watches[handle] = asyncio.ensure_future(self._play(on_fix, on_error))
        return handle

    def clear_watch(self, handle: int) -> None:
        task = self._watches.pop(handle, None)
        if task is not None and not task.done():
            task.cancel()

    async def _play(self, on_fix: FixCallback, on_error: Optional[ErrorCallback]) -> None:
        for lat, lon in self.points:
            try:
                on_fix(lat, lon, self.clock(), None)
            except Exception as e:
                if on_error is None:
                    raise
                on_error(e)
            await asyncio.sleep(self.interval_s)
