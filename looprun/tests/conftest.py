import asyncio
import math
from typing import List, Optional

import pytest

from looprun.Coordinate import Coordinate
from looprun.errors import RouteProviderFailure
from looprun.geo import METERS_PER_MILE, offset_north_m
from looprun.local_ors import RoundTrip

ORIGIN = Coordinate(40.7128, -74.006)


def loop_for_seed(origin: Coordinate, seed: int, n: int = 8) -> List[tuple]:
    # a small polygon around the origin whose radius depends on the seed
    r = 0.002 + (seed % 97) * 0.0001
    pts = [(origin.lat + r * math.sin(2 * math.pi * i / n),
            origin.lon + r * math.cos(2 * math.pi * i / n)) for i in range(n)]
    return [origin.as_latlon()] + pts + [origin.as_latlon()]


class FakeRoutingProvider:
    def __init__(self, fail_on: Optional[int] = None, gate: Optional[asyncio.Event] = None):
        self.fail_on = fail_on  # 1-based call number that fails
        self.gate = gate
        self.calls = []

    async def request_round_trip(self, origin, length_m, seed, points=4):
        self.calls.append({"origin": origin, "length_m": length_m, "seed": seed, "points": points})
        n = len(self.calls)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.fail_on == n:
            raise RouteProviderFailure(f"ORS request failed: call {n}")
        geometry = loop_for_seed(origin, seed)
        return RoundTrip(geometry=geometry, total_dist=length_m, total_time=length_m / 1.4,
                         cum_dist=[0.0], seed=seed)


class FakeLocationProvider:
    """Captures the watch callbacks so a test can push fixes by hand."""

    def __init__(self, start: Coordinate = ORIGIN):
        self.start = start
        self.next_handle = 0
        self.watches = {}
        self.cleared = []

    def get_current_position(self):
        return self.start

    def watch_position(self, on_fix, on_error=None):
        self.next_handle += 1
        self.watches[self.next_handle] = (on_fix, on_error)
        return self.next_handle

    def clear_watch(self, handle):
        self.cleared.append(handle)
        self.watches.pop(handle, None)

    def push(self, lat, lon, ts):
        for on_fix, _ in list(self.watches.values()):
            on_fix(lat, lon, ts, None)


class FakeClock:
    def __init__(self, t=0.0):
        self.t = t

    def __call__(self):
        return self.t


def north_of(origin: Coordinate, miles: float) -> Coordinate:
    return Coordinate.from_latlon(offset_north_m(origin.as_latlon(), miles * METERS_PER_MILE))


@pytest.fixture
def origin():
    return ORIGIN


@pytest.fixture
def fake_provider():
    return FakeRoutingProvider


@pytest.fixture
def fake_location():
    return FakeLocationProvider()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def north():
    return north_of
