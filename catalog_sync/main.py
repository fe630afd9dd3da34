"""Command line entry point: check (and optionally fix) catalog price and stock."""

import argparse
import asyncio
import logging
import signal
import sys
from contextlib import suppress
from typing import List, Optional
from uuid import uuid4

from catalog_sync.config import settings
from catalog_sync.db.product_store import ProductStore, StorageUnavailableError
from catalog_sync.ingest.http_client import PageFetcher
from catalog_sync.ingest.url_discovery import DiscoveryStrategy, UrlDiscovery
from catalog_sync.logging_config import setup_logging
from catalog_sync.metrics import write_metrics_file
from catalog_sync.notify.report import format_summary, write_report
from catalog_sync.worker.reconcile import ReconciliationEngine, reconcile_catalog

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog-sync",
        description="Check products with missing price or stock against the live vendor site",
    )
    parser.add_argument(
        "--update",
        "-u",
        action="store_true",
        help="Write corrected price/stock to the database (default: check only)",
    )
    parser.add_argument(
        "--ids",
        type=int,
        nargs="+",
        metavar="ID",
        help="Only check these product ids",
    )
    parser.add_argument(
        "--limit",
        type=int,
        help="Maximum number of products to check",
    )
    parser.add_argument(
        "--strategy",
        choices=[s.value for s in DiscoveryStrategy],
        nargs="+",
        metavar="NAME",
        help="Discovery strategies to use (default: all, in fixed order)",
    )
    parser.add_argument(
        "--report",
        default=settings.report_path,
        help=f"Report file (default: {settings.report_path})",
    )
    parser.add_argument(
        "--metrics-file",
        help="Write Prometheus metrics to this file after the run",
    )
    parser.add_argument(
        "--no-delay",
        action="store_true",
        help="Skip politeness delays between products",
    )
    return parser


def _install_signal_handlers(cancel_event: asyncio.Event):
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows event loops
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, cancel_event.set)


async def run(args: argparse.Namespace) -> int:
    """Run one reconciliation pass from parsed arguments and return the exit code."""
    from catalog_sync.db.session import AsyncSessionLocal, engine

    cancel_event = asyncio.Event()
    _install_signal_handlers(cancel_event)

    if args.update:
        logger.warning("UPDATE MODE: Database will be updated with correct values")
    else:
        logger.info("CHECK MODE: Only checking, not updating database (use --update to update)")

    strategies = [DiscoveryStrategy(name) for name in args.strategy] if args.strategy else None
    delay = 0.0 if args.no_delay else None
    store = ProductStore(AsyncSessionLocal)

    try:
        async with PageFetcher() as fetcher:
            reconciler = ReconciliationEngine(
                discovery=UrlDiscovery(fetcher, strategies=strategies),
                fetcher=fetcher,
                store=store,
                product_delay=delay,
                not_found_delay=delay,
            )
            report = await reconcile_catalog(
                store,
                reconciler,
                persist=args.update,
                product_ids=args.ids,
                limit=args.limit,
                cancel_event=cancel_event,
            )
    except StorageUnavailableError as e:
        logger.error(f"Run aborted: {e}")
        return EXIT_ABORTED
    finally:
        await engine.dispose()

    print(format_summary(report))
    write_report(report, args.report)

    if args.metrics_file:
        write_metrics_file(args.metrics_file)

    if report.cancelled:
        return EXIT_CANCELLED
    logger.info("Check complete!")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    run_id = uuid4().hex[:12]
    setup_logging(run_id=run_id)
    logger.info(f"Starting run {run_id}")
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
