from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import aiohttp

from looprun import config
from looprun.Coordinate import Coordinate, LatLon
from looprun.errors import RouteProviderFailure
from looprun.geo import cum_array, segment_lengths_m

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoundTrip:
    geometry: List[LatLon]
    total_dist: float
    total_time: float
    cum_dist: List[float]
    seed: Optional[int] = None


class RoutingProvider(Protocol):
    async def request_round_trip(self, origin: Coordinate, length_m: float,
                                 seed: int, points: int = 4) -> RoundTrip:
        ...


def round_trip_body(origin: Coordinate, length_m: float, seed: int, points: int) -> Dict[str, Any]:
    return {
        "coordinates": [list(origin.as_lonlat())],
        "options": {
            "round_trip": {
                "length": length_m,
                "points": points,
                "seed": seed,
            }
        },
        "geometry_simplify": False,
    }


def parse_round_trip(data: Dict[str, Any], seed: Optional[int] = None) -> RoundTrip:
    try:
        feature = data["features"][0]
        coords = feature["geometry"]["coordinates"]
        summary = feature.get("properties", {}).get("summary", {})
    except (KeyError, IndexError, TypeError) as e:
        raise RouteProviderFailure(f"unexpected ORS response: {data!r:.200}") from e

    geometry_latlon = [(pt[1], pt[0]) for pt in coords]
    if len(geometry_latlon) < 2:
        raise RouteProviderFailure("ORS returned an empty loop")

    seg_dist = segment_lengths_m(geometry_latlon)
    cum_dist = cum_array(seg_dist)
    return RoundTrip(
        geometry=geometry_latlon,
        total_dist=float(summary.get("distance", cum_dist[-1])),
        total_time=float(summary.get("duration", 0.0)),
        cum_dist=cum_dist,
        seed=seed,
    )


class OrsRoutingProvider:
    """OpenRouteService directions API, round_trip option, GeoJSON output."""

    def __init__(self, api_key: str,
                 profile: str = config.ORS_PROFILE,
                 base_url: str = config.ORS_URL,
                 timeout_s: float = config.ROUTE_TIMEOUT_S,
                 session: Optional[aiohttp.ClientSession] = None):
        self.api_key = api_key
        self.profile = profile
        self.base_url = base_url
        self.timeout_s = timeout_s
        self._session = session

    @property
    def url(self) -> str:
        return f"{self.base_url}/v2/directions/{self.profile}/geojson"

    async def request_round_trip(self, origin: Coordinate, length_m: float,
                                 seed: int, points: int = 4) -> RoundTrip:
        headers = {
            "Authorization": self.api_key,
            "Content-Type": "application/json",
        }
        body = round_trip_body(origin, length_m, seed, points)
        logger.debug("ORS round trip %.0f m seed=%s points=%s", length_m, seed, points)

        owned = self._session is None
        session = self._session or aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout_s))
        try:
            async with session.post(self.url, json=body, headers=headers) as r:
                if r.status != 200:
                    msg = await r.text()
                    raise RouteProviderFailure(f"ORS request failed ({r.status}): {msg}")
                data = await r.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RouteProviderFailure(f"ORS request failed: {e}") from e
        finally:
            if owned:
                await session.close()

        return parse_round_trip(data, seed=seed)
