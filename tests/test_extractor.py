from __future__ import annotations

import asyncio

from linkharvest.crawler import extractor

from fakes import FakeLauncher


def test_poll_scrolls_then_collects_and_drops_empty_values() -> None:
    launcher = FakeLauncher([["https://x/1.jpg", "", None, "https://x/2.jpg", "https://x/1.jpg"]])

    async def scenario():
        browser = await launcher()
        page = await browser.new_page()
        return await extractor.poll(page, ".previewFeed", scroll_delay_ms=50, scroll_step=200)

    links = asyncio.run(scenario())

    # Full visible set in page order, repeats included; dedup happens downstream.
    assert links == ["https://x/1.jpg", "https://x/2.jpg", "https://x/1.jpg"]
    assert [(name, arg) for name, _, arg in launcher.calls[2:]] == [
        ("scroll", {"scrollDelay": 50, "distance": 200}),
        ("collect", ".previewFeed"),
    ]


def test_poll_handles_no_result() -> None:
    launcher = FakeLauncher([])

    async def scenario():
        browser = await launcher()
        return await extractor.poll(await browser.new_page(), "#feed")

    assert asyncio.run(scenario()) == []


def test_collect_script_targets_anchor_wrapped_images() -> None:
    assert "a img" in extractor.COLLECT_LINKS_JS
    assert "scrollHeight" in extractor.AUTO_SCROLL_JS


def test_scroll_script_resumes_from_current_position() -> None:
    # Each poll continues from where the last one left off and ends at the bottom.
    assert "window.scrollY + window.innerHeight >= targetHeight" in extractor.AUTO_SCROLL_JS
    assert "totalHeight" not in extractor.AUTO_SCROLL_JS
