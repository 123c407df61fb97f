"""Session manager: at most one live harvesting session per consumer."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List

from linkharvest.config.settings import SessionSettings
from linkharvest.crawler.interfaces import BrowserLauncher
from linkharvest.etl.steps.store import LinkStore

from .session import HarvestQuery, HarvestSession, StopReason
from .sinks import TIMEOUT_MESSAGE, Sink, SinkNotReadyError

LOGGER = logging.getLogger(__name__)


@dataclass
class _LiveSession:
    session: HarvestSession
    task: "asyncio.Task[None]"
    sink: Sink


class SessionManager:
    """Starts, supersedes and stops sessions keyed by consumer id.

    Starting a session for a consumer that already has one cancels the old
    session and waits for it to release its page driver before the new one
    is created. That ordering is held per consumer; tearing down one
    consumer's session never blocks another consumer. A session that
    ignores cancellation for longer than ``cancel_grace_seconds`` has its
    task cancelled outright.
    """

    def __init__(self, store: LinkStore, settings: SessionSettings, launcher: BrowserLauncher) -> None:
        self.store = store
        self.settings = settings
        self.launcher = launcher
        self._sessions: Dict[str, _LiveSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def active_session(self, consumer_id: str) -> HarvestSession | None:
        live = self._sessions.get(consumer_id)
        return live.session if live is not None else None

    async def start(self, consumer_id: str, sink: Sink, query: HarvestQuery) -> str:
        async with self._lock_for(consumer_id):
            await self._stop(consumer_id, StopReason.SUPERSEDED)
            session = HarvestSession(
                query,
                store=self.store,
                sink=sink,
                launcher=self.launcher,
                settings=self.settings,
                consumer_id=consumer_id,
                max_duration=self.settings.max_session_seconds,
            )
            task = asyncio.create_task(self._run(consumer_id, session, sink), name=f"harvest-{session.id}")
            self._sessions[consumer_id] = _LiveSession(session=session, task=task, sink=sink)
        LOGGER.info("Started session %s for consumer %s (query=%s)", session.id, consumer_id, query.query)
        return session.id

    async def disconnect(self, consumer_id: str) -> None:
        lock = self._lock_for(consumer_id)
        async with lock:
            await self._stop(consumer_id, StopReason.DISCONNECTED)
        if not lock.locked() and consumer_id not in self._sessions:
            self._locks.pop(consumer_id, None)

    async def shutdown(self) -> None:
        live: List[_LiveSession] = list(self._sessions.values())
        self._sessions.clear()
        for entry in live:
            entry.session.cancel(StopReason.SHUTDOWN)
        await asyncio.gather(*(self._await_termination(entry) for entry in live))
        if live:
            LOGGER.info("Stopped %d sessions on shutdown", len(live))

    def _lock_for(self, consumer_id: str) -> asyncio.Lock:
        # Serialises start/disconnect per consumer only; other consumers never wait on it.
        lock = self._locks.get(consumer_id)
        if lock is None:
            lock = self._locks[consumer_id] = asyncio.Lock()
        return lock

    async def _run(self, consumer_id: str, session: HarvestSession, sink: Sink) -> None:
        try:
            await session.run()
        finally:
            live = self._sessions.get(consumer_id)
            if live is not None and live.session is session:
                del self._sessions[consumer_id]
        if session.stop_reason is StopReason.TIMEOUT:
            await self._notify_timeout(session, sink)

    async def _notify_timeout(self, session: HarvestSession, sink: Sink) -> None:
        LOGGER.info("Session %s reached its maximum duration", session.id)
        if not sink.is_ready():
            return
        try:
            await sink.send({"error": TIMEOUT_MESSAGE})
        except SinkNotReadyError as exc:
            LOGGER.warning("Could not notify consumer of timeout: %s", exc)

    async def _stop(self, consumer_id: str, reason: StopReason) -> None:
        live = self._sessions.pop(consumer_id, None)
        if live is None:
            return
        live.session.cancel(reason)
        await self._await_termination(live)

    async def _await_termination(self, live: _LiveSession) -> None:
        try:
            await asyncio.wait_for(asyncio.shield(live.task), timeout=self.settings.cancel_grace_seconds)
        except asyncio.TimeoutError:
            LOGGER.warning("Session %s did not stop within %.1fs; cancelling its task",
                           live.session.id, self.settings.cancel_grace_seconds)
            live.task.cancel()
            await asyncio.gather(live.task, return_exceptions=True)
