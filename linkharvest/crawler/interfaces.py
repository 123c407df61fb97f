"""Page driver interfaces and protocols."""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol, runtime_checkable


@runtime_checkable
class IPage(Protocol):
    """A single rendered page that a session polls."""

    async def goto(self, url: str, *, wait_until: str = "networkidle", timeout_ms: int = 30000) -> None:
        """Navigate to `url`, raising NavigationError on failure or timeout."""

    async def wait_for_selector(self, selector: str, *, timeout_ms: int = 30000) -> bool:
        """Return True once `selector` is present, False if it never appears."""

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """Evaluate `script` in the page with `arg` and return its result."""


@runtime_checkable
class IBrowser(Protocol):
    """A launched rendering engine instance owned by exactly one session."""

    async def new_page(self) -> IPage:
        """Open a fresh page."""

    async def close(self) -> None:
        """Tear down the instance; calling it twice must be harmless."""


BrowserLauncher = Callable[[], Awaitable[IBrowser]]
