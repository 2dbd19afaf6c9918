from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Callable, List, Optional, Tuple

from looprun import config
from looprun.Coordinate import Coordinate
from looprun.RouteCandidate import CandidateSet, RouteCandidate
from looprun.errors import RouteProviderFailure, RouteTooShort, StaleBatch
from looprun.geo import miles_to_m
from looprun.local_ors import RoundTrip, RoutingProvider

logger = logging.getLogger(__name__)


def clock_seed() -> int:
    return int(time.time() * 1000)


def batch_params(base_seed: int, count: int) -> List[Tuple[int, int]]:
    # (seed, points) per request; both vary so the loops come back different
    return [(base_seed + i + 1, 4 + i + 1) for i in range(count)]


class CandidateGenerator:
    """
    Requests `count` alternative loops around one origin and keeps the
    latest complete set in `current`.

    Each generate() call starts a new generation and cancels the batch
    still in flight. A batch that completes after being superseded raises
    StaleBatch instead of replacing `current`.
    """

    def __init__(self, provider: RoutingProvider,
                 min_length_m: float = config.MIN_LOOP_LENGTH_M,
                 seed_source: Callable[[], int] = clock_seed):
        self.provider = provider
        self.min_length_m = min_length_m
        self.seed_source = seed_source
        self.current: Optional[CandidateSet] = None
        self._generation = 0
        self._inflight: Optional[asyncio.Task] = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def busy(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def generate(self, origin: Coordinate, target_miles: float,
                       count: int = config.CANDIDATE_COUNT,
                       sequential: bool = False) -> CandidateSet:
        length_m = miles_to_m(target_miles)
        if not math.isfinite(length_m) or length_m < self.min_length_m:
            raise RouteTooShort(length_m, self.min_length_m)
        if count < 1:
            raise ValueError(f"count must be positive, got {count}")

        self._cancel_inflight()
        self._generation += 1
        generation = self._generation

        task = asyncio.ensure_future(self._run_batch(origin, length_m, count, sequential))
        self._inflight = task
        try:
            trips = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                raise StaleBatch(f"batch {generation} superseded by {self._generation}")
            raise
        finally:
            if self._inflight is task:
                self._inflight = None

        if generation != self._generation:
            raise StaleBatch(f"batch {generation} superseded by {self._generation}")

        candidate_set = CandidateSet(
            generation=generation,
            origin=origin,
            target_miles=target_miles,
            candidates=[
                RouteCandidate(id=i, geometry=t.geometry, is_selected=(i == 0),
                               dist_m=t.total_dist, duration_s=t.total_time, seed=t.seed)
                for i, t in enumerate(trips)
            ],
        )
        self.current = candidate_set
        logger.info("Generated %d loops of ~%.2f mi (batch %d)",
                    len(candidate_set), target_miles, generation)
        return candidate_set

    def select_candidate(self, candidate_id: int) -> RouteCandidate:
        if self.current is None:
            raise ValueError("No candidates generated yet")
        return self.current.select(candidate_id)

    def cancel(self) -> bool:
        """Abandon the batch in flight; its caller gets StaleBatch."""
        if not self.busy:
            return False
        self._generation += 1
        self._cancel_inflight()
        return True

    # -------------------------
    # batch
    # -------------------------
    def _cancel_inflight(self) -> None:
        if self._inflight is not None and not self._inflight.done():
            logger.debug("cancelling in-flight candidate batch")
            self._inflight.cancel()

    async def _request(self, origin: Coordinate, length_m: float,
                       seed: int, points: int) -> RoundTrip:
        try:
            return await self.provider.request_round_trip(origin, length_m, seed, points)
        except (RouteProviderFailure, asyncio.CancelledError):
            raise
        except Exception as e:
            raise RouteProviderFailure(f"round trip request failed (seed {seed}): {e}") from e

    async def _run_batch(self, origin: Coordinate, length_m: float,
                         count: int, sequential: bool) -> List[RoundTrip]:
        params = batch_params(self.seed_source(), count)

        if sequential:
            return [await self._request(origin, length_m, seed, points) for seed, points in params]

        tasks = [asyncio.ensure_future(self._request(origin, length_m, seed, points))
                 for seed, points in params]
        try:
            return list(await asyncio.gather(*tasks))
        except RouteProviderFailure:
            logger.error("Loop generation failed, discarding the whole batch", exc_info=True)
            raise
        finally:
            # all-or-nothing: one failure (or a cancel) takes the siblings down too
            for t in tasks:
                if not t.done():
                    t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
