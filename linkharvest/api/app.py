"""FastAPI application exposing the harvesting WebSocket.

Endpoints:
- GET /: static pointer to the WebSocket address.
- GET /health: lightweight health check with the number of live sessions.
- WS /ws: control and delivery channel.

Example control message sent by a consumer over /ws:
{
    "query": "watch-it-for-the-plot",
    "order": "top",
    "divSelector": ".previewFeed",
    "category": "plot"
}

The server answers with any number of ``{"links": [...]}`` batches and, when
the session reaches its maximum duration, ``{"error": "Operation timed out"}``.
Sending a new control message replaces the running session; closing the
socket stops it.
"""
from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from linkharvest.config.settings import HarvestSettings, load_settings
from linkharvest.crawler.browser import playwright_launcher
from linkharvest.crawler.interfaces import BrowserLauncher
from linkharvest.etl.steps.store import LinkStore
from linkharvest.session.manager import SessionManager
from linkharvest.session.session import HarvestQuery
from linkharvest.session.sinks import WebSocketSink

LOGGER = logging.getLogger("api")


class HarvestRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(min_length=1)
    order: str = Field(min_length=1)
    div_selector: str = Field(alias="divSelector", min_length=1)
    category: Optional[str] = None

    def to_query(self) -> HarvestQuery:
        return HarvestQuery(
            query=self.query,
            order=self.order,
            div_selector=self.div_selector,
            category=self.category or None,
        )


def parse_request(message: str) -> HarvestRequest | None:
    """Parse one inbound control message, returning None when it is malformed."""
    try:
        return HarvestRequest.model_validate_json(message)
    except ValidationError as exc:
        LOGGER.warning("Ignoring malformed harvest request: %s", exc.errors(include_url=False))
        return None


def create_app(
    settings: HarvestSettings | None = None,
    *,
    store: LinkStore | None = None,
    launcher: BrowserLauncher | None = None,
) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        link_store = store or LinkStore(
            settings.mongo_url,
            db_name=settings.db_name,
            collection=settings.collection,
            accept_prefix=settings.accept_prefix,
        )
        # Startup fails if the unique index cannot be established.
        link_store.connect()
        link_store.ensure_unique_index()
        manager = SessionManager(
            link_store,
            settings.session,
            launcher or playwright_launcher(settings.session.browser),
        )
        app.state.manager = manager
        try:
            yield
        finally:
            await manager.shutdown()
            link_store.close()

    app = FastAPI(title="Link Harvester", lifespan=lifespan)
    app.state.settings = settings

    @app.get("/", response_class=PlainTextResponse)
    def status() -> str:
        return f"WebSocket server running on {settings.ws_public_url}. Connect for live scraping updates."

    @app.get("/health")
    def health() -> Dict[str, Any]:
        manager: SessionManager | None = getattr(app.state, "manager", None)
        return {"status": "ok", "sessions": len(manager) if manager is not None else 0}

    @app.websocket("/ws")
    async def harvest_socket(websocket: WebSocket) -> None:
        manager: SessionManager = websocket.app.state.manager
        await websocket.accept()
        consumer_id = uuid.uuid4().hex
        sink = WebSocketSink(websocket)
        LOGGER.info("Client connected (%s)", consumer_id)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                text = message.get("text")
                if text is None:
                    LOGGER.warning("Ignoring binary frame from %s", consumer_id)
                    continue
                request = parse_request(text)
                if request is None:
                    continue
                LOGGER.info("Received query: %s", request.query)
                await manager.start(consumer_id, sink, request.to_query())
        except WebSocketDisconnect:
            LOGGER.info("Client disconnected (%s)", consumer_id)
        finally:
            await manager.disconnect(consumer_id)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    uvicorn.run(app, host=app.state.settings.host, port=app.state.settings.port)
