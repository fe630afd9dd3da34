"""Compare stored catalog values with live vendor values."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from catalog_sync.config import settings
from catalog_sync.ingest.base import ScrapedCandidate, TargetProduct

logger = logging.getLogger(__name__)

PRICE_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class LiveValues:
    """Price and stock as read from the vendor page."""

    price: Decimal
    stock: int
    in_stock: bool
    stock_is_exact: bool  # False when stock was inferred from in_stock


@dataclass(frozen=True)
class StoredValues:
    """Price and stock as held in the catalog, unknowns read as zero."""

    price: Decimal
    stock: int


@dataclass
class ProposedUpdates:
    """Fields to write back; None means leave the column alone."""

    price: Optional[Decimal] = None
    stock: Optional[int] = None

    def __bool__(self) -> bool:
        return self.price is not None or self.stock is not None

    def as_update_kwargs(self) -> dict:
        """Keyword arguments for ProductStore.update_product."""
        kwargs = {}
        if self.price is not None:
            kwargs["price"] = self.price
        if self.stock is not None:
            kwargs["stock_quantity"] = self.stock
        return kwargs


@dataclass
class ReconciliationOutcome:
    """Result of reconciling one catalog product."""

    product: TargetProduct
    found: bool
    proposed_updates: ProposedUpdates = field(default_factory=ProposedUpdates)
    applied_to_storage: bool = False
    error: Optional[str] = None
    url: Optional[str] = None
    found_via: Optional[str] = None
    database: Optional[StoredValues] = None
    live: Optional[LiveValues] = None
    not_found_reason: Optional[str] = None


class PriceStockComparator:
    """Derive live values from a scraped page and propose corrections."""

    def __init__(
        self,
        inferred_in_stock_quantity: Optional[int] = None,
        accept_inferred_stock: Optional[bool] = None,
    ):
        self.inferred_in_stock_quantity = (
            settings.inferred_in_stock_quantity
            if inferred_in_stock_quantity is None
            else inferred_in_stock_quantity
        )
        self.accept_inferred_stock = (
            settings.accept_inferred_stock
            if accept_inferred_stock is None
            else accept_inferred_stock
        )

    def live_values(self, candidate: ScrapedCandidate) -> LiveValues:
        """
        Resolve live stock from a scraped page.

        An exact quantity is used when the page shows one. Otherwise the
        in-stock flag stands in: the configured quantity when in stock, else 0.
        """
        if candidate.stock is not None:
            stock, exact = candidate.stock, True
        else:
            stock = self.inferred_in_stock_quantity if candidate.in_stock else 0
            exact = False

        return LiveValues(
            price=candidate.price,
            stock=stock,
            in_stock=candidate.in_stock,
            stock_is_exact=exact,
        )

    @staticmethod
    def stored_values(product: TargetProduct) -> StoredValues:
        return StoredValues(
            price=Decimal(product.price or 0),
            stock=int(product.stock_quantity or 0),
        )

    def propose(self, stored: StoredValues, live: LiveValues) -> ProposedUpdates:
        """
        Propose updates for fields that differ.

        Price changes only when the live price is known (> 0). Stock changes
        when the live stock is exact, or inferred and inferred stock is accepted.
        """
        updates = ProposedUpdates()

        if live.price > 0 and abs(stored.price - live.price) > PRICE_TOLERANCE:
            updates.price = live.price

        if stored.stock != live.stock and (live.stock_is_exact or self.accept_inferred_stock):
            updates.stock = live.stock

        return updates
