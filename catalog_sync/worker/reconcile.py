"""Batch reconciliation of catalog price and stock against the vendor site."""

import asyncio
import logging
import time
from contextlib import suppress
from typing import List, Optional, Sequence

from catalog_sync import metrics
from catalog_sync.config import settings
from catalog_sync.db.product_store import ProductStore, StorageWriteError
from catalog_sync.ingest.base import TargetProduct
from catalog_sync.ingest.http_client import FetchError, PageFetcher
from catalog_sync.ingest.product_extractor import ExtractionFailure, extract_product_page
from catalog_sync.ingest.url_discovery import UrlDiscovery
from catalog_sync.logging_config import get_logger
from catalog_sync.normalize.processor import PriceStockComparator, ReconciliationOutcome
from catalog_sync.notify.report import Report, generate_report

logger = logging.getLogger(__name__)

NOT_FOUND_REASON = "Not found on website"
EXTRACTION_FAILED_REASON = "Could not extract product data"


def outcome_status(outcome: ReconciliationOutcome) -> str:
    """Metric label for an outcome."""
    if outcome.error is not None:
        return "error"
    if not outcome.found:
        return "not_found"
    if outcome.proposed_updates:
        return "needs_update"
    return "no_change"


class ReconciliationEngine:
    """
    Reconciles products one at a time, in input order.

    The engine keeps no state between runs; each ``run()`` builds its own
    outcome list, so one engine can be invoked repeatedly.
    """

    def __init__(
        self,
        discovery: UrlDiscovery,
        fetcher: PageFetcher,
        store: Optional[ProductStore] = None,
        comparator: Optional[PriceStockComparator] = None,
        product_delay: Optional[float] = None,
        not_found_delay: Optional[float] = None,
    ):
        self.discovery = discovery
        self.fetcher = fetcher
        self.store = store
        self.comparator = comparator or PriceStockComparator()
        self.product_delay = settings.product_delay_seconds if product_delay is None else product_delay
        self.not_found_delay = (
            settings.not_found_delay_seconds if not_found_delay is None else not_found_delay
        )

    async def run(
        self,
        products: Sequence[TargetProduct],
        persist: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Report:
        """
        Reconcile a batch of products.

        Args:
            products: Products to check, processed in the given order
            persist: Write proposed updates through the store
            cancel_event: Checked between products; when set, the run stops
                          and reports the products processed so far

        Returns:
            Report over every processed product

        Raises:
            ValueError: If persist is requested without a store
        """
        if persist and self.store is None:
            raise ValueError("persist=True requires a ProductStore")

        outcomes: List[ReconciliationOutcome] = []
        cancelled = False
        started = time.monotonic()
        total = len(products)

        for index, product in enumerate(products, start=1):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"Run cancelled after {len(outcomes)}/{total} products")
                cancelled = True
                break

            log = get_logger(__name__, product_id=product.id, sku=product.sku)
            log.info(f"[{index}/{total}] Checking: {product.name}")
            if not product.needs_check:
                log.warning(f"{product.sku} already has price and stock; checking anyway")
            log.info(
                f"SKU: {product.sku}, Current Price: ${product.price or 0}, "
                f"Current Stock: {product.stock_quantity or 0}"
            )

            try:
                outcome = await self._reconcile_product(product, persist, log)
            except Exception as e:
                log.error(f"Failed to reconcile {product.sku}: {e}", exc_info=True)
                outcome = ReconciliationOutcome(product=product, found=False, error=str(e))

            outcomes.append(outcome)
            metrics.record_outcome(outcome_status(outcome))

            if index < total:
                delay = self.product_delay if outcome.found else self.not_found_delay
                await self._pause(delay, cancel_event)

        metrics.record_run(time.monotonic() - started)
        return generate_report(outcomes, cancelled=cancelled)

    async def _reconcile_product(
        self,
        product: TargetProduct,
        persist: bool,
        log: logging.LoggerAdapter,
    ) -> ReconciliationOutcome:
        hit = await self.discovery.discover(product)
        if hit is None:
            log.info(NOT_FOUND_REASON)
            return ReconciliationOutcome(
                product=product, found=False, not_found_reason=NOT_FOUND_REASON
            )

        try:
            page = await self.fetcher.fetch(hit.url, timeout=settings.page_timeout)
        except FetchError as e:
            log.error(f"Fetch failed for {hit.url} ({e.kind}): {e}")
            return ReconciliationOutcome(
                product=product,
                found=True,
                url=hit.url,
                found_via=hit.strategy.value,
                error=f"Fetch failed ({e.kind}): {e}",
            )

        try:
            candidate = extract_product_page(page.html, hit.url)
        except ExtractionFailure:
            log.info(f"{EXTRACTION_FAILED_REASON}: {hit.url}")
            return ReconciliationOutcome(
                product=product,
                found=False,
                url=hit.url,
                found_via=hit.strategy.value,
                not_found_reason=EXTRACTION_FAILED_REASON,
            )

        stored = self.comparator.stored_values(product)
        live = self.comparator.live_values(candidate)
        updates = self.comparator.propose(stored, live)

        stock_note = "" if live.stock_is_exact else f" (inferred, in stock: {live.in_stock})"
        log.info(f"Live Price: ${live.price:.2f}, Live Stock: {live.stock}{stock_note}")
        if updates.price is not None:
            log.info(f"Price mismatch: DB=${stored.price:.2f} vs Live=${live.price:.2f}")
        if updates.stock is not None:
            log.info(f"Stock mismatch: DB={stored.stock} vs Live={live.stock}")
        if not updates:
            log.info("No changes needed")

        outcome = ReconciliationOutcome(
            product=product,
            found=True,
            proposed_updates=updates,
            url=hit.url,
            found_via=hit.strategy.value,
            database=stored,
            live=live,
        )

        if persist and updates:
            try:
                await self.store.update_product(product.id, **updates.as_update_kwargs())
                outcome.applied_to_storage = True
                metrics.record_storage_update(True)
                log.info("Updated in database")
            except StorageWriteError as e:
                outcome.error = str(e)
                metrics.record_storage_update(False)
                log.error(f"Database update error: {e}")
            except Exception as e:
                outcome.error = f"Database update error: {e}"
                metrics.record_storage_update(False)
                log.error(f"Database update error: {e}", exc_info=True)

        return outcome

    @staticmethod
    async def _pause(delay: float, cancel_event: Optional[asyncio.Event]):
        """Politeness delay; returns early when the run is cancelled."""
        if delay <= 0:
            return
        if cancel_event is None:
            await asyncio.sleep(delay)
            return
        with suppress(asyncio.TimeoutError):
            await asyncio.wait_for(cancel_event.wait(), timeout=delay)


async def reconcile_catalog(
    store: ProductStore,
    engine: ReconciliationEngine,
    persist: bool = False,
    product_ids: Optional[Sequence[int]] = None,
    limit: Optional[int] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> Report:
    """
    Load products missing price or stock and reconcile them.

    Raises:
        StorageUnavailableError: If the catalog cannot be read; nothing is processed
    """
    logger.info("Fetching products with missing price or stock from database...")
    products = await store.get_products_missing_price_or_stock(product_ids=product_ids, limit=limit)

    if not products:
        logger.info("No products with missing price or stock found")
        return generate_report([])

    mode = "UPDATE" if persist else "CHECK"
    logger.info(f"{mode} mode: checking {len(products)} products")
    return await engine.run(products, persist=persist, cancel_event=cancel_event)
