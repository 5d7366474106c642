"""Starlette app — JSON control routes + WebSocket event stream."""
import asyncio
import contextlib
import logging
import uuid
from typing import Callable, Optional

import httpx
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from ..config import API_HOST, APP_VERSION
from ..contents import ContentsService
from ..controller import PlaybackController
from ..player import QueuePlayer
from ..repository import PlaylistRepository
from ..videos import VideosService
from .state import PlaybackEvents

logger = logging.getLogger(__name__)

# Shared state
_events = PlaybackEvents()
_controller: Optional[PlaybackController] = None
_factory: Optional[Callable[[int, PlaybackEvents], PlaybackController]] = None


def default_factory(content_id: int, events: PlaybackEvents) -> PlaybackController:
    return PlaybackController(
        content_id,
        repository=PlaylistRepository(),
        videos=VideosService(),
        contents=ContentsService(),
        player=QueuePlayer(),
        events=events,
    )


# ── Health ───────────────────────────────────────────────────────────────────

async def _check_api() -> dict:
    try:
        async with httpx.AsyncClient(timeout=5) as client:
            r = await client.get(API_HOST)
            return {"ok": r.status_code < 500, "status": r.status_code}
    except httpx.HTTPError as e:
        return {"ok": False, "error": str(e)}


async def health(request: Request):
    checks = {"api": await _check_api()}
    all_ok = all(c["ok"] for c in checks.values())
    return JSONResponse({
        "status": "ok" if all_ok else "degraded",
        "version": APP_VERSION,
        "checks": checks,
    })


# ── Playback control ─────────────────────────────────────────────────────────

async def get_state(request: Request):
    if not _controller:
        return JSONResponse({"state": "initial", "loaded": False})
    return JSONResponse({"loaded": True, **_controller.get_snapshot()})


async def start_playlist(request: Request):
    """Release whatever is playing and start a new playlist at content_id."""
    global _controller
    try:
        body = await request.json()
        content_id = int(body["content_id"])
    except (ValueError, KeyError, TypeError):
        return JSONResponse({"error": "content_id (int) is required"}, status_code=400)

    if _controller:
        _controller.stop()
    _controller = _factory(content_id, _events)
    if not _controller.reload():
        return JSONResponse({"error": f"Unable to load playlist for {content_id}"}, status_code=404)
    _controller.play()
    return JSONResponse(_controller.get_snapshot())


async def reload_playlist(request: Request):
    if not _controller:
        return JSONResponse({"error": "Nothing loaded"}, status_code=409)
    if not _controller.reload():
        return JSONResponse({"error": "Unable to reload playlist"}, status_code=502)
    return JSONResponse(_controller.get_snapshot())


async def pause(request: Request):
    if not _controller:
        return JSONResponse({"error": "Nothing loaded"}, status_code=409)
    _controller.pause()
    return JSONResponse(_controller.get_snapshot())


async def resume(request: Request):
    if not _controller:
        return JSONResponse({"error": "Nothing loaded"}, status_code=409)
    _controller.resume()
    return JSONResponse(_controller.get_snapshot())


# ── WebSocket ────────────────────────────────────────────────────────────────

async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()
    client_id = str(uuid.uuid4())
    queue = _events.subscribe(client_id)
    logger.info("WS connected: %s", client_id)

    # Send initial sync
    if _controller:
        await websocket.send_json({"type": "sync", "data": _controller.get_snapshot()})

    async def _reader():
        # Client messages are ignored; reading detects the disconnect
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass

    async def _writer():
        while True:
            event, data = await queue.get()
            await websocket.send_json({"type": event, "data": data})

    reader_task = asyncio.create_task(_reader())
    writer_task = asyncio.create_task(_writer())

    try:
        done, pending = await asyncio.wait(
            [reader_task, writer_task],
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
    finally:
        _events.unsubscribe(client_id)
        logger.info("WS disconnected: %s", client_id)


# ── App factory ──────────────────────────────────────────────────────────────

@contextlib.asynccontextmanager
async def _lifespan(app: Starlette):
    global _controller
    yield
    if _controller:
        _controller.stop()
        _controller = None
        logger.info("Playback controller released")


def create_app(factory: Optional[Callable[[int, PlaybackEvents], PlaybackController]] = None) -> Starlette:
    global _factory, _controller, _events

    _factory = factory or default_factory
    _controller = None
    _events = PlaybackEvents()

    routes = [
        Route("/api/health", health),
        Route("/api/state", get_state),
        Route("/api/play", start_playlist, methods=["POST"]),
        Route("/api/reload", reload_playlist, methods=["POST"]),
        Route("/api/pause", pause, methods=["POST"]),
        Route("/api/resume", resume, methods=["POST"]),
        WebSocketRoute("/ws", websocket_endpoint),
    ]
    return Starlette(routes=routes, lifespan=_lifespan)
