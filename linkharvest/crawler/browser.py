"""Playwright-backed page driver used by harvesting sessions."""
from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout
from playwright.async_api import async_playwright

from linkharvest.config.settings import BrowserSettings

from .interfaces import BrowserLauncher

LOGGER = logging.getLogger(__name__)


class BrowserError(RuntimeError):
    """Base class for page driver failures."""


class NavigationError(BrowserError):
    """Raised when the page cannot be loaded, evaluated or has crashed."""


class SelectorNotFoundError(BrowserError):
    """Raised when the container selector never appears within the bounded wait."""


class PlaywrightPage:
    """Wraps a Playwright page and maps its errors onto :class:`BrowserError`."""

    def __init__(self, page: Any, *, evaluate_timeout_ms: int = 30000) -> None:
        self._page = page
        self.evaluate_timeout_ms = evaluate_timeout_ms

    async def goto(self, url: str, *, wait_until: str = "networkidle", timeout_ms: int = 30000) -> None:
        try:
            await self._page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        except PlaywrightTimeout as exc:
            raise NavigationError(f"Timed out loading {url}") from exc
        except PlaywrightError as exc:
            raise NavigationError(f"Failed to load {url}: {exc}") from exc

    async def wait_for_selector(self, selector: str, *, timeout_ms: int = 30000) -> bool:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms)
        except PlaywrightTimeout:
            return False
        except PlaywrightError as exc:
            raise NavigationError(f"Page failed while waiting for {selector}: {exc}") from exc
        return True

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        # Playwright has no evaluate timeout; bound it so a hung page cannot stall the session.
        try:
            return await asyncio.wait_for(
                self._page.evaluate(script, arg), timeout=self.evaluate_timeout_ms / 1000
            )
        except asyncio.TimeoutError as exc:
            raise NavigationError("Timed out evaluating script in page") from exc
        except PlaywrightError as exc:
            raise NavigationError(f"Script evaluation failed: {exc}") from exc


class PlaywrightBrowser:
    """A headless Chromium instance with a single browser context."""

    def __init__(self, settings: BrowserSettings) -> None:
        self.settings = settings
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None

    @classmethod
    async def launch(cls, settings: BrowserSettings) -> "PlaywrightBrowser":
        instance = cls(settings)
        try:
            await instance._start()
        except PlaywrightError as exc:
            await instance.close()
            raise NavigationError(f"Could not launch browser: {exc}") from exc
        return instance

    async def _start(self) -> None:
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.settings.headless)
        self._context = await self._browser.new_context(
            viewport={"width": self.settings.viewport_width, "height": self.settings.viewport_height},
        )
        LOGGER.debug("Launched Chromium (headless=%s)", self.settings.headless)

    async def new_page(self) -> PlaywrightPage:
        if self._context is None:
            raise NavigationError("Browser is closed")
        try:
            page = await self._context.new_page()
        except PlaywrightError as exc:
            raise NavigationError(f"Could not open a new page: {exc}") from exc
        return PlaywrightPage(page, evaluate_timeout_ms=self.settings.evaluate_timeout_ms)

    async def close(self) -> None:
        context, browser, playwright = self._context, self._browser, self._playwright
        self._context = self._browser = self._playwright = None
        for name, resource, closer in (
            ("context", context, "close"),
            ("browser", browser, "close"),
            ("playwright", playwright, "stop"),
        ):
            if resource is None:
                continue
            try:
                await getattr(resource, closer)()
            except PlaywrightError:  # pragma: no cover - teardown of a crashed browser
                LOGGER.debug("Browser %s raised during teardown", name, exc_info=True)


def playwright_launcher(settings: BrowserSettings) -> BrowserLauncher:
    """Return a zero-argument launcher bound to ``settings``."""
    return functools.partial(PlaywrightBrowser.launch, settings)
