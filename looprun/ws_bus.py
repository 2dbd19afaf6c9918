import asyncio
import json
import logging
from typing import Any, Dict, Optional, Set

from aiohttp import WSMsgType, web

from looprun.candidates import CandidateGenerator
from looprun.presentation import candidates_event

logger = logging.getLogger(__name__)


async def publish(app: web.Application, event: Dict[str, Any]) -> None:
    q: asyncio.Queue = app["pub_q"]

    if event.get("type") == "routes":
        app["state"]["last_routes"] = event

    # keep only latest event if queue is full
    if q.full():
        try:
            q.get_nowait()
            q.task_done()
        except asyncio.QueueEmpty:
            pass

    await q.put(event)


def publish_nowait(app: web.Application, event: Dict[str, Any]) -> None:
    """Sync entry point for tracker listeners running on the loop."""
    tasks: Set[asyncio.Task] = app["state"]["tasks"]
    task = asyncio.ensure_future(publish(app, event))
    tasks.add(task)
    task.add_done_callback(tasks.discard)


async def broadcast_loop(app: web.Application) -> None:
    q: asyncio.Queue = app["pub_q"]
    subs: Set[web.WebSocketResponse] = app["subscribers"]
    while True:
        event = await q.get()
        payload = json.dumps(event)
        for ws in list(subs):
            if ws.closed:
                subs.discard(ws)
                continue
            try:
                await ws.send_str(payload)
            except ConnectionError:
                subs.discard(ws)
        q.task_done()


async def handle_message(app: web.Application, ws: web.WebSocketResponse, msg: Dict[str, Any]) -> None:
    generator: Optional[CandidateGenerator] = app.get("generator")

    if msg.get("type") == "select":
        if generator is None or generator.current is None:
            await ws.send_json({"type": "error", "error": "no routes to select"})
            return
        try:
            generator.select_candidate(int(msg.get("id", -1)))
        except (TypeError, ValueError, OverflowError) as e:
            await ws.send_json({"type": "error", "error": str(e)})
            return
        await publish(app, candidates_event(generator.current))
        return

    await ws.send_json({"type": "error", "error": f"unknown message type {msg.get('type')!r}"})


async def ws_handler(request: web.Request) -> web.WebSocketResponse:
    app = request.app
    ws = web.WebSocketResponse(heartbeat=30)
    await ws.prepare(request)

    app["subscribers"].add(ws)
    if app["state"]["last_routes"] is not None:
        await ws.send_json(app["state"]["last_routes"])

    try:
        async for m in ws:
            if m.type != WSMsgType.TEXT:
                continue
            try:
                msg = json.loads(m.data)
            except ValueError:
                await ws.send_json({"type": "error", "error": "invalid json"})
                continue
            if not isinstance(msg, dict):
                await ws.send_json({"type": "error", "error": "expected a json object"})
                continue
            await handle_message(app, ws, msg)
    finally:
        app["subscribers"].discard(ws)
    return ws


async def _start_broadcast(app: web.Application) -> None:
    app["state"]["broadcast_task"] = asyncio.ensure_future(broadcast_loop(app))


async def _stop_broadcast(app: web.Application) -> None:
    task = app["state"].get("broadcast_task")
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    for ws in list(app["subscribers"]):
        await ws.close()


def create_app(generator: Optional[CandidateGenerator] = None, queue_size: int = 100) -> web.Application:
    app = web.Application()
    app["subscribers"] = set()
    app["pub_q"] = asyncio.Queue(maxsize=queue_size)
    app["state"] = {"last_routes": None, "tasks": set()}
    app["generator"] = generator
    app.router.add_get("/ws", ws_handler)
    app.on_startup.append(_start_broadcast)
    app.on_cleanup.append(_stop_broadcast)
    return app
