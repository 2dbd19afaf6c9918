from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from looprun import config
from looprun.Coordinate import Coordinate
from looprun.PositionSample import PositionSample
from looprun.TrackingSession import Notification, TrackingSession
from looprun.alerts import AlertSink
from looprun.errors import InvalidCoordinate
from looprun.location import LocationProvider
from looprun.presentation import session_snapshot

logger = logging.getLogger(__name__)

UpdateListener = Callable[[Dict[str, Any]], None]


class LiveTracker:
    """
    Owns the two feeds behind a TrackingSession: the position watch and
    the 1 s timer. Both are released on stop(), on restart() and when
    leaving `async with`, so no orphaned feed keeps adding distance.
    """

    def __init__(self, location: LocationProvider,
                 alert_sink: Optional[AlertSink] = None,
                 tick_interval_s: float = config.TICK_INTERVAL_S,
                 fix_timeout_s: float = config.LIVE_FIX_TIMEOUT_S,
                 clock: Callable[[], float] = time.monotonic):
        self.location = location
        self.session = TrackingSession(alert_sink=alert_sink)
        self.tick_interval_s = tick_interval_s
        self.fix_timeout_s = fix_timeout_s
        self.gps_lost = False
        self.clock = clock
        self.listeners: List[UpdateListener] = []
        self.notifications: List[Notification] = []
        self._watch_id: Optional[int] = None
        self._timer: Optional[asyncio.Task] = None
        self._started_at = 0.0
        self._last_fix_at = 0.0

    @property
    def is_tracking(self) -> bool:
        return self.session.is_active

    def start(self, origin: Coordinate) -> bool:
        if self.session.is_active:
            return False

        # leftovers from a session that never stopped cleanly
        self._release()
        self.notifications = []
        self.session.start(origin)
        self._started_at = self._last_fix_at = self.clock()
        self.gps_lost = False
        try:
            self._watch_id = self.location.watch_position(self._on_fix, self._on_error)
            self._timer = asyncio.ensure_future(self._run_timer())
        except Exception:
            self.stop()
            raise
        self._publish()
        return True

    def restart(self, origin: Coordinate) -> bool:
        self.stop()
        return self.start(origin)

    def stop(self) -> bool:
        self._release()
        stopped = self.session.stop()
        if stopped:
            self._publish()
        return stopped

    def snapshot(self) -> Dict[str, Any]:
        data = session_snapshot(self.session)
        data["gps_lost"] = self.gps_lost
        return data

    async def wait(self) -> None:
        """Block until the timer ends, i.e. until stop() is called."""
        timer = self._timer
        if timer is None:
            return
        try:
            # shielded so cancelling the waiter leaves the session running
            await asyncio.shield(timer)
        except asyncio.CancelledError:
            if not timer.cancelled():
                raise

    async def __aenter__(self) -> "LiveTracker":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # -------------------------
    # feeds
    # -------------------------
    def _release(self) -> None:
        if self._watch_id is not None:
            self.location.clear_watch(self._watch_id)
            self._watch_id = None
        if self._timer is not None:
            if not self._timer.done():
                self._timer.cancel()
            self._timer = None

    async def _run_timer(self) -> None:
        while self.session.is_active:
            await asyncio.sleep(self.tick_interval_s)
            self.on_tick()

    def on_tick(self) -> None:
        now = self.clock()
        if self.session.is_active and not self.gps_lost and now - self._last_fix_at > self.fix_timeout_s:
            # recoverable: the next fix clears it
            logger.warning("No GPS fix for %.0f s", now - self._last_fix_at)
            self.gps_lost = True
        if self.session.tick(now - self._started_at):
            self._publish()

    def _on_fix(self, lat: float, lon: float, timestamp: float,
                accuracy_m: Optional[float] = None) -> None:
        try:
            sample = PositionSample.from_fix(lat, lon, timestamp, accuracy_m)
        except InvalidCoordinate as e:
            logger.warning("Bad position fix dropped: %s", e)
            return
        self._last_fix_at = self.clock()
        if self.gps_lost:
            logger.info("GPS fix recovered")
            self.gps_lost = False
        notes = self.session.ingest_sample(sample)
        self.notifications.extend(notes)
        self._publish(notes)

    def _on_error(self, err: Exception) -> None:
        logger.error("watchPosition error: %s", err)

    def _publish(self, notes: Optional[List[Notification]] = None) -> None:
        if not self.listeners:
            return
        data = self.snapshot()
        if notes:
            data["milestones"] = [n.message for n in notes]
        for listener in self.listeners:
            try:
                listener(data)
            except Exception:
                logger.exception("snapshot listener failed")
