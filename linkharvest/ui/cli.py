"""Command line interface for the link harvester."""
from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import replace

from linkharvest.config.settings import HarvestSettings, load_settings
from linkharvest.crawler.browser import playwright_launcher
from linkharvest.etl.steps.store import LinkStore
from linkharvest.session.session import HarvestQuery, HarvestSession, SessionState
from linkharvest.session.sinks import LoggingSink

LOGGER = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Link harvester")
    parser.add_argument("--config", help="Path to harvester.yaml (defaults to configs/harvester.yaml).")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP/WebSocket server")
    serve_parser.add_argument("--host", help="Override server.host")
    serve_parser.add_argument("--port", type=int, help="Override server.port")
    serve_parser.set_defaults(func=_run_serve)

    harvest_parser = subparsers.add_parser("harvest", help="Run one session headless and log new links")
    harvest_parser.add_argument("query", help="Target identifier, e.g. a niche name.")
    harvest_parser.add_argument("--order", default="top", help="Result ordering passed to the target.")
    harvest_parser.add_argument("--selector", default=".previewFeed", help="Container selector to harvest under.")
    harvest_parser.add_argument("--category", help="Category label stored with each link.")
    harvest_parser.add_argument("--cycles", type=int, help="Stop after this many poll cycles.")
    harvest_parser.add_argument(
        "--max-seconds", type=float, help="Stop after this many seconds (0 for unbounded)."
    )
    harvest_parser.set_defaults(func=_run_harvest)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    settings = load_settings(args.config)
    return args.func(args, settings)


def _run_serve(args: argparse.Namespace, settings: HarvestSettings) -> int:
    import uvicorn

    from linkharvest.api.app import create_app

    app = create_app(settings)
    uvicorn.run(app, host=args.host or settings.host, port=args.port or settings.port)
    return 0


def _run_harvest(args: argparse.Namespace, settings: HarvestSettings) -> int:
    session_settings = settings.session
    if args.cycles:
        session_settings = replace(session_settings, max_cycles=args.cycles)
    max_duration = session_settings.max_session_seconds
    if args.max_seconds is not None:
        max_duration = args.max_seconds if args.max_seconds > 0 else None

    store = LinkStore(
        settings.mongo_url,
        db_name=settings.db_name,
        collection=settings.collection,
        accept_prefix=settings.accept_prefix,
    )
    store.connect()
    try:
        store.ensure_unique_index()
        query = HarvestQuery(query=args.query, order=args.order, div_selector=args.selector, category=args.category)
        session = HarvestSession(
            query,
            store=store,
            sink=LoggingSink(args.query),
            launcher=playwright_launcher(session_settings.browser),
            settings=session_settings,
            max_duration=max_duration,
        )
        state = asyncio.run(session.run())
    finally:
        store.close()

    LOGGER.info("Harvest finished: %s (%s links delivered)", state.value, session.delivered)
    return 1 if state is SessionState.FAILED else 0


if __name__ == "__main__":
    raise SystemExit(main())
