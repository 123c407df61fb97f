"""A single harvesting session: poll, dedup, deliver, recycle, repeat."""
from __future__ import annotations

import asyncio
import enum
import logging
import time
import uuid
from dataclasses import dataclass
from typing import List
from urllib.parse import quote

from linkharvest.config.settings import SessionSettings
from linkharvest.crawler import extractor
from linkharvest.crawler.browser import BrowserError, NavigationError, SelectorNotFoundError
from linkharvest.crawler.interfaces import BrowserLauncher, IBrowser, IPage
from linkharvest.etl.steps.batch import chunk
from linkharvest.etl.steps.store import AcceptOutcome, LinkStore

from .sinks import Sink, SinkNotReadyError

LOGGER = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    STARTING = "starting"
    POLLING = "polling"
    DELIVERING = "delivering"
    STOPPED = "stopped"
    FAILED = "failed"
    SUPERSEDED = "superseded"


TERMINAL_STATES = frozenset({SessionState.STOPPED, SessionState.FAILED, SessionState.SUPERSEDED})


class StopReason(str, enum.Enum):
    SUPERSEDED = "superseded"
    DISCONNECTED = "disconnected"
    TIMEOUT = "timeout"
    SHUTDOWN = "shutdown"
    CYCLE_LIMIT = "cycle_limit"


class FailureReason(str, enum.Enum):
    SELECTOR_NOT_FOUND = "selector_not_found"
    NAVIGATION_FAILURE = "navigation_failure"
    UNEXPECTED_ERROR = "unexpected_error"


@dataclass(frozen=True)
class HarvestQuery:
    """What a consumer asked to harvest."""

    query: str
    order: str
    div_selector: str
    category: str | None = None

    def target_url(self, template: str) -> str:
        return template.format(query=quote(self.query, safe=""), order=quote(self.order, safe=""))


class HarvestSession:
    """Owns one page driver and loops extractor -> store -> sink until stopped.

    Cancellation is cooperative. :meth:`cancel` sets a token that the loop
    checks at every cycle boundary and before recycling; delays wait on the
    same token so a cancelled session wakes up immediately. Once the token is
    set no further page-driver calls are issued. The optional ``max_duration``
    is folded into the same token as a ``TIMEOUT`` cancellation.
    """

    def __init__(
        self,
        query: HarvestQuery,
        *,
        store: LinkStore,
        sink: Sink,
        launcher: BrowserLauncher,
        settings: SessionSettings,
        consumer_id: str | None = None,
        max_duration: float | None = None,
        session_id: str | None = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.query = query
        self.store = store
        self.sink = sink
        self.launcher = launcher
        self.settings = settings
        self.consumer_id = consumer_id
        self.max_duration = max_duration
        self.target_url = query.target_url(settings.target_url_template)
        self.batch_size = settings.batch_size_for(query.category)

        self.state = SessionState.STARTING
        self.cycles = 0
        self.started_at: float | None = None
        self.stop_reason: StopReason | None = None
        self.failure_reason: FailureReason | None = None
        self.delivered = 0

        self._cancelled = asyncio.Event()
        self._deadline: float | None = None
        self._browser: IBrowser | None = None
        self._page: IPage | None = None

    def __repr__(self) -> str:
        return f"<HarvestSession {self.id[:8]} {self.query.query!r} {self.state.value}>"

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    def cancel(self, reason: StopReason = StopReason.SHUTDOWN) -> None:
        """Request the session to stop; the first reason given wins."""
        if self._cancelled.is_set():
            return
        self.stop_reason = reason
        self._cancelled.set()
        LOGGER.info("Session %s cancellation requested (%s)", self.id, reason.value)

    async def run(self) -> SessionState:
        self.started_at = time.monotonic()
        if self.max_duration:
            self._deadline = self.started_at + self.max_duration
        LOGGER.info("Session %s starting for %s (selector %s)", self.id, self.target_url, self.query.div_selector)
        try:
            if not self._should_stop():
                await self._open()
                await self._loop()
        except SelectorNotFoundError as exc:
            LOGGER.warning("Session %s failed: %s", self.id, exc)
            self.failure_reason = FailureReason.SELECTOR_NOT_FOUND
        except NavigationError as exc:
            LOGGER.warning("Session %s failed: %s", self.id, exc)
            self.failure_reason = FailureReason.NAVIGATION_FAILURE
        except Exception:  # noqa: BLE001
            LOGGER.exception("Session %s crashed", self.id)
            self.failure_reason = FailureReason.UNEXPECTED_ERROR
        finally:
            await self.release()
            self._finish()
        return self.state

    async def release(self) -> None:
        """Tear down the page driver; calling it again is a no-op."""
        browser = self._browser
        self._browser = None
        self._page = None
        if browser is None:
            return
        try:
            await browser.close()
        except BrowserError:  # pragma: no cover - teardown of a crashed renderer
            LOGGER.warning("Session %s: browser raised during close", self.id, exc_info=True)

    async def _open(self) -> None:
        browser_settings = self.settings.browser
        self._browser = await self.launcher()
        page = await self._browser.new_page()
        LOGGER.info("Searching for results from %s", self.target_url)
        await page.goto(self.target_url, wait_until="networkidle", timeout_ms=browser_settings.navigation_timeout_ms)
        found = await page.wait_for_selector(self.query.div_selector, timeout_ms=browser_settings.selector_timeout_ms)
        if not found:
            raise SelectorNotFoundError(f"Selector {self.query.div_selector} not found on the page.")
        self._page = page

    async def _loop(self) -> None:
        while not self._should_stop():
            self.state = SessionState.POLLING
            links = await self._poll()
            if links:
                self.state = SessionState.DELIVERING
                await self._deliver(links)
                delay = self.settings.cycle_delay_seconds
            else:
                delay = self.settings.idle_delay_seconds
            self.state = SessionState.POLLING
            self.cycles += 1

            if self.settings.max_cycles and self.cycles >= self.settings.max_cycles:
                self.cancel(StopReason.CYCLE_LIMIT)
                return
            if self.cycles % self.settings.recycle_every == 0:
                if self._should_stop():
                    return
                await self._recycle()
            await self._sleep(delay)

    async def _poll(self) -> List[str]:
        if self._page is None:
            raise NavigationError("Browser is closed")
        browser_settings = self.settings.browser
        links = await extractor.poll(
            self._page,
            self.query.div_selector,
            scroll_delay_ms=browser_settings.scroll_delay_ms,
            scroll_step=browser_settings.scroll_step,
        )
        LOGGER.info("Session %s cycle %d: extracted %d links", self.id, self.cycles + 1, len(links))
        return links

    async def _deliver(self, links: List[str]) -> None:
        outcomes = await asyncio.to_thread(self.store.accept_all, links, self.query.category)
        inserted = [link for link, outcome in outcomes if outcome is AcceptOutcome.INSERTED]
        failed = sum(1 for _, outcome in outcomes if outcome is AcceptOutcome.STORE_ERROR)
        if failed:
            LOGGER.warning("Session %s: %d links could not be stored; they will be retried next cycle", self.id, failed)
        if not inserted or self.cancelled:
            return

        if not self.sink.is_ready():
            LOGGER.warning("Session %s: sink is not ready; dropping %d new links", self.id, len(inserted))
            return
        for batch in chunk(inserted, self.batch_size):
            try:
                await self.sink.send({"links": batch})
            except SinkNotReadyError as exc:
                LOGGER.warning("Session %s: delivery skipped for this cycle: %s", self.id, exc)
                return
            self.delivered += len(batch)

    async def _recycle(self) -> None:
        LOGGER.info("Session %s: recycling browser after %d cycles", self.id, self.cycles)
        await self.release()
        await self._open()

    def _should_stop(self) -> bool:
        if self._deadline is not None and not self.cancelled and time.monotonic() >= self._deadline:
            self.cancel(StopReason.TIMEOUT)
        return self.cancelled

    async def _sleep(self, delay: float) -> None:
        timeout = delay
        if self._deadline is not None:
            timeout = min(timeout, max(0.0, self._deadline - time.monotonic()))
        if timeout <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass

    def _finish(self) -> None:
        if self.failure_reason is not None:
            self.state = SessionState.FAILED
        else:
            if self.stop_reason is None:
                self.stop_reason = StopReason.SHUTDOWN
            if self.stop_reason is StopReason.SUPERSEDED:
                self.state = SessionState.SUPERSEDED
            else:
                self.state = SessionState.STOPPED
        elapsed = time.monotonic() - self.started_at if self.started_at is not None else 0.0
        LOGGER.info(
            "Session %s ended in state %s after %d cycles (%.1fs, %d links delivered)",
            self.id,
            self.state.value,
            self.cycles,
            elapsed,
            self.delivered,
        )


