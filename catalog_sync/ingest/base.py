"""Records passed between storage, discovery and extraction."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class TargetProduct:
    """A catalog product whose price or stock is missing."""

    id: int
    sku: str
    name: str
    slug: str
    price: Optional[Decimal] = None
    stock_quantity: Optional[int] = None
    brand_name: Optional[str] = None

    @property
    def needs_check(self) -> bool:
        """True when price or stock is unknown (zero or null)."""
        return not self.price or not self.stock_quantity


@dataclass
class ScrapedCandidate:
    """Values read from one fetched page."""

    source_url: Optional[str]
    is_product_page: bool
    price: Decimal = Decimal("0")  # 0 means no valid price found
    stock: Optional[int] = None  # None means the page shows no quantity
    in_stock: bool = False
    sku: Optional[str] = None
    name: Optional[str] = None
