#!/usr/bin/env python3
"""
Political Sentiment Tracker - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
This is the ONE executable entry point for the tracker.

- Compatible with PM2 process management
- Can be started, stopped, and restarted safely
- Handles SIGINT / SIGTERM gracefully
- Wires all components into one controlled runtime

============================================================
USAGE
============================================================
Direct execution:
    python app.py

With PM2:
    pm2 start app.py --interpreter python --name polimetric

Environment-based configuration (a .env file is honoured):
    TRACKER_PROVIDER=ollama OLLAMA_MODEL=llama3 python app.py

============================================================
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from core.config import TrackerConfig
from database.store import PersistentStore
from database.tiers import FlatFileTier, SqlCollectionTier
from discovery import AspirantDiscovery, SourceDiscovery
from orchestrator.cli import parse, print_banner
from orchestrator.core import Tracker, setup_logging
from providers.factory import ProviderFactory
from providers.news_fetcher import RealTimeNewsFetcher
from providers.search import SearchClient


# ============================================================
# WIRING
# ============================================================

def build_tracker(config: TrackerConfig) -> Tracker:
    """Construct every component from one configuration."""
    store = PersistentStore(
        primary=SqlCollectionTier(config.database_url),
        legacy=FlatFileTier(config.legacy_path, max_bytes=config.legacy_max_bytes),
    )
    search_client = SearchClient(gnews_api_key=config.gnews_api_key)

    return Tracker(
        store,
        ProviderFactory(),
        RealTimeNewsFetcher(search_client),
        source_discovery=SourceDiscovery(store, search_client),
        aspirant_discovery=AspirantDiscovery(store, search_client),
        config=config,
    )


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    """Set stop_event on SIGINT / SIGTERM."""
    logger = logging.getLogger(__name__)

    def request_stop(sig: signal.Signals) -> None:
        logger.info(f"Received signal {sig.name}")
        stop_event.set()

    if sys.platform == "win32":
        signal.signal(signal.SIGINT, lambda signum, frame: stop_event.set())
        return

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, request_stop, sig)


# ============================================================
# APPLICATION
# ============================================================

async def run_application(args, config: TrackerConfig) -> int:
    """
    Run the tracker.

    Returns:
        Exit code
    """
    logger = logging.getLogger(__name__)
    tracker = build_tracker(config)
    store = tracker.store

    if args.export_path:
        await store.load()
        Path(args.export_path).write_text(store.export_all(), encoding="utf-8")
        logger.info(f"Exported data to {args.export_path}")
        await store.close()
        return 0

    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    try:
        await tracker.start(background=not args.single_cycle)

        if args.import_path:
            blob = Path(args.import_path).read_text(encoding="utf-8")
            if not store.import_all(blob):
                logger.error(f"Import from {args.import_path} failed, keeping current data")

        if not args.no_backfill:
            await tracker.backfill_history()

        if args.single_cycle:
            results = await tracker.scheduler.fetch_now()
            succeeded = sum(1 for r in results if r.success)
            print(f"\nCycle complete: {succeeded}/{len(results)} events fetched")
            return 0

        logger.info("Tracker running (press Ctrl+C to stop)...")
        await stop_event.wait()
        return 0

    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await tracker.stop()


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    parsed = parse(argv)
    if parsed is None:
        return 1
    args, config = parsed

    setup_logging(level=config.log_level, log_format=config.log_format)
    for problem in config.validate():
        logging.getLogger(__name__).warning(f"Configuration: {problem}")

    print_banner(args, config)
    return asyncio.run(run_application(args, config))


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
