"""HTTP and WebSocket surface of the relay."""
from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from . import __version__
from .errors import IngestError, MalformedIngest
from .ingest import IngestService
from .relay import BroadcastRelay, WebSocketViewer
from .settings import RelaySettings, load_relay_settings

_LOGGER = logging.getLogger("LiveMap.Relay.App")


def create_app(
    settings: Optional[RelaySettings] = None,
    relay: Optional[BroadcastRelay] = None,
) -> FastAPI:
    """Build the FastAPI app wired to one relay and one ingest service."""
    settings = settings if settings is not None else load_relay_settings()
    relay = relay if relay is not None else BroadcastRelay(send_timeout=settings.send_timeout)
    ingest = IngestService(settings.token)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        _LOGGER.info("Relay ready (token configured=%s)", settings.token_configured)
        try:
            yield
        finally:
            await relay.close_all()
            _LOGGER.info("Relay stopped")

    app = FastAPI(title="Live map relay", version=__version__, lifespan=lifespan)
    app.state.relay = relay
    app.state.settings = settings

    @app.exception_handler(IngestError)
    async def _ingest_error(request: Request, exc: IngestError) -> JSONResponse:
        client = request.client.host if request.client is not None else "unknown"
        _LOGGER.warning("Rejected position push from %s (%d): %s", client, exc.status_code, exc)
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    @app.post("/positions")
    async def positions(request: Request) -> Response:
        body = await request.body()
        try:
            raw = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MalformedIngest(f"request body is not valid JSON: {exc}") from exc
        payload = ingest.accept(raw)
        relay.publish(payload)
        _LOGGER.debug("Accepted %d player(s) for %s", len(payload["players"]), payload["jobId"])
        return Response(status_code=200)

    @app.get("/status")
    async def status() -> dict:
        return {"status": "ok", "viewers": len(relay)}

    @app.websocket("/ws")
    async def viewer_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        viewer = WebSocketViewer(websocket)
        relay.add(viewer)
        try:
            while True:
                message = await websocket.receive()
                if message.get("type") == "websocket.disconnect":
                    break
                _LOGGER.debug("Ignoring inbound frame from %s: %r", viewer.peer, message.get("text") or message.get("bytes"))
        except WebSocketDisconnect:
            pass
        finally:
            relay.remove(viewer)

    return app
