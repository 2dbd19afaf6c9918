import argparse
import asyncio
import logging
import webbrowser
from typing import Optional

from aiohttp import web

from looprun import config
from looprun.RouteCandidate import CandidateSet
from looprun.alerts import LogAlertSink
from looprun.candidates import CandidateGenerator
from looprun.Coordinate import Coordinate
from looprun.errors import LoopRunError, RouteProviderFailure, RouteTooShort, StaleBatch
from looprun.geo import m_to_miles
from looprun.local_ors import OrsRoutingProvider
from looprun.location import IpLocationProvider, ReplayLocationProvider, initial_position
from looprun.logging_config import configure
from looprun.presentation import candidates_event, draw_map, format_pace, format_time, write_gpx
from looprun.realtime_runner import LiveTracker
from looprun.ws_bus import create_app, publish_nowait

logger = logging.getLogger(__name__)


async def plan_loops(generator: CandidateGenerator, origin: Coordinate, miles: float,
                     count: int, sequential: bool = False) -> Optional[CandidateSet]:
    try:
        return await generator.generate(origin, miles, count=count, sequential=sequential)
    except RouteTooShort as e:
        print(str(e))
    except RouteProviderFailure as e:
        logger.error("Error generating loop routes: %s", e)
        print("Could not generate routes. Try again later.")
    except StaleBatch:
        logger.info("Route request superseded by a newer one")
    return None


async def replay_run(replay: ReplayLocationProvider, origin: Coordinate,
                     app: Optional[web.Application] = None) -> LiveTracker:
    async with LiveTracker(replay, alert_sink=LogAlertSink()) as tracker:
        if app is not None:
            tracker.listeners.append(lambda data: publish_nowait(app, data))
        tracker.start(origin)
        # the replay feed ends on its own; keep the clock running until then
        while replay.active_watches:
            await asyncio.sleep(replay.interval_s)
        tracker.on_tick()
    return tracker


async def run(miles: float,
              gpx: Optional[str] = None,
              count: int = config.CANDIDATE_COUNT,
              select: int = 0,
              sequential: bool = False,
              port: Optional[int] = None,
              interval_s: float = 1.0,
              open_browser: bool = False) -> int:
    replay = ReplayLocationProvider.from_gpx(gpx, interval_s=interval_s) if gpx else None
    origin = initial_position(replay or IpLocationProvider())
    print(f"Start / End: {origin.lat:.5f}, {origin.lon:.5f}")

    try:
        provider = OrsRoutingProvider(config.ors_api_key())
    except LoopRunError as e:
        print(str(e))
        return 2

    generator = CandidateGenerator(provider)
    app = create_app(generator) if port else None
    runner = None
    if app is not None:
        runner = web.AppRunner(app)
        await runner.setup()
        await web.TCPSite(runner, "127.0.0.1", port).start()
        logger.info("Publishing on ws://127.0.0.1:%d/ws", port)

    try:
        candidates = await plan_loops(generator, origin, miles, count, sequential)
        if candidates is None:
            return 1

        try:
            chosen = generator.select_candidate(select)
        except ValueError as e:
            print(f"{e}, keeping Loop 1")
            chosen = candidates.selected
        if app is not None:
            publish_nowait(app, candidates_event(candidates))

        for c in candidates:
            mark = "*" if c.is_selected else " "
            print(f"{mark} Loop {c.id + 1}: {m_to_miles(c.dist_m):.2f} mi, {len(c.geometry)} points")
        write_gpx(chosen.geometry, "loop.gpx", name=f"Loop {chosen.id + 1}")
        draw_map(origin, candidates, filename="map.html")
        if open_browser:
            webbrowser.open("map.html")

        if replay is None:
            return 0

        tracker = await replay_run(replay, origin, app)
        s = tracker.session
        print(f"Distance: {s.cumulative_distance_miles:.2f} mi  "
              f"Time: {format_time(s.elapsed_seconds)}  "
              f"Pace: {format_pace(s.pace_min_per_mile)} min/mi")
        draw_map(origin, candidates, live_path=s.path, filename="map.html")
        return 0
    finally:
        if runner is not None:
            await runner.cleanup()


def cli(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="looprun", description="Plan a running loop and track a run.")
    parser.add_argument("miles", type=float, help="target loop length in miles")
    parser.add_argument("--gpx", help="replay this GPX track as the live GPS feed")
    parser.add_argument("--count", type=int, default=config.CANDIDATE_COUNT)
    parser.add_argument("--select", type=int, default=0, help="0-based loop to keep")
    parser.add_argument("--sequential", action="store_true", help="request loops one at a time")
    parser.add_argument("--port", type=int, help="serve live updates on ws://127.0.0.1:PORT/ws")
    parser.add_argument("--interval", type=float, default=1.0, help="seconds between replayed fixes")
    parser.add_argument("--open", action="store_true", help="open map.html when done")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    configure(args.log_level)
    try:
        return asyncio.run(run(args.miles, gpx=args.gpx, count=args.count, select=args.select,
                               sequential=args.sequential, port=args.port,
                               interval_s=args.interval, open_browser=args.open))
    except KeyboardInterrupt:
        return 130
    except (OSError, LoopRunError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(cli())
