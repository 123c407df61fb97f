"""Single poll cycle: scroll the page and collect visible image links."""
from __future__ import annotations

import logging
from typing import Any, List

from .interfaces import IPage

LOGGER = logging.getLogger(__name__)

# Scrolls in fixed steps from the current position down to the document height
# read at the start, so each poll only covers what the previous one revealed.
# Stops early once the window no longer moves.
AUTO_SCROLL_JS = """
async ({ scrollDelay, distance }) => {
    const targetHeight = document.body.scrollHeight;
    await new Promise((resolve) => {
        const timer = setInterval(() => {
            const before = window.scrollY;
            window.scrollBy(0, distance);
            const atBottom = window.scrollY + window.innerHeight >= targetHeight;
            if (atBottom || window.scrollY === before) {
                clearInterval(timer);
                resolve();
            }
        }, scrollDelay);
    });
}
"""

COLLECT_LINKS_JS = """
(divSelector) => {
    const elements = document.querySelectorAll(`${divSelector} a img`);
    return Array.from(elements).map((element) => element.src).filter((src) => src);
}
"""


async def auto_scroll(page: IPage, *, scroll_delay_ms: int = 100, scroll_step: int = 100) -> None:
    await page.evaluate(AUTO_SCROLL_JS, {"scrollDelay": scroll_delay_ms, "distance": scroll_step})


async def poll(
    page: IPage,
    container_selector: str,
    *,
    scroll_delay_ms: int = 100,
    scroll_step: int = 100,
) -> List[str]:
    """Return every image link currently visible under ``container_selector``.

    This is the full visible set, not a delta against earlier polls; the
    dedup store decides what is new.
    """
    await auto_scroll(page, scroll_delay_ms=scroll_delay_ms, scroll_step=scroll_step)
    raw: Any = await page.evaluate(COLLECT_LINKS_JS, container_selector)
    links = [value for value in (raw or []) if isinstance(value, str) and value]
    LOGGER.debug("Extracted %d links under %s", len(links), container_selector)
    return links
