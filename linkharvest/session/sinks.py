"""Delivery sinks that receive batches of newly accepted links."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Protocol, runtime_checkable

from fastapi import WebSocket
from fastapi.websockets import WebSocketDisconnect, WebSocketState

LOGGER = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Operation timed out"


class SinkNotReadyError(RuntimeError):
    """Raised when a sink is closed or fails while a batch is being sent."""


@runtime_checkable
class Sink(Protocol):
    def is_ready(self) -> bool:
        """Return True while the consumer can receive messages."""

    async def send(self, payload: Mapping[str, Any]) -> None:
        """Deliver one JSON-shaped message."""


class WebSocketSink:
    """Pushes messages to a connected WebSocket consumer."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    def is_ready(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, payload: Mapping[str, Any]) -> None:
        if not self.is_ready():
            raise SinkNotReadyError("WebSocket is not connected")
        try:
            await self.websocket.send_json(dict(payload))
        except (WebSocketDisconnect, RuntimeError) as exc:
            raise SinkNotReadyError(f"WebSocket send failed: {exc}") from exc


class LoggingSink:
    """Sink for headless runs: logs every message and keeps them in memory."""

    def __init__(self, name: str = "harvest") -> None:
        self.name = name
        self.messages: List[Dict[str, Any]] = []

    def is_ready(self) -> bool:
        return True

    async def send(self, payload: Mapping[str, Any]) -> None:
        message = dict(payload)
        self.messages.append(message)
        links = message.get("links")
        if links is not None:
            LOGGER.info("[%s] batch of %d new links", self.name, len(links))
            for link in links:
                LOGGER.info("[%s] %s", self.name, link)
        else:
            LOGGER.info("[%s] %s", self.name, message)
