"""Extract price, stock and identity from a vendor product page."""

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from selectolax.parser import HTMLParser, Node

from catalog_sync.config import settings
from catalog_sync.ingest.base import ScrapedCandidate
from catalog_sync.ingest.json_extractor import (
    extract_json_ld,
    extract_products_from_json_ld,
    iter_product_prices,
    parse_price_value,
)
from catalog_sync.match.product_matcher import parse_product_heading

logger = logging.getLogger(__name__)

META_PRICE_SELECTORS = [
    'meta[property="product:price:amount"]',
    'meta[property="og:price:amount"]',
    'meta[name="price"]',
    'meta[itemprop="price"]',
]

# Product container that scopes the CSS price search, most specific first
PRODUCT_AREA_SELECTORS = ["form.store-product", ".product-details", ".product-info"]

PRICE_SELECTORS = [
    ".store-product-price",
    ".product-price",
    ".price",
    ".current-price",
    ".sale-price",
    ".amount",
    ".ccm-block-product-price",
    "span.price",
    "div.price",
]

OUT_OF_STOCK_LABEL_SELECTORS = [".store-out-of-stock-label", ".store-not-available-label"]

STOCK_SELECTORS = [
    ".stock-quantity",
    ".inventory-quantity",
    ".qty-available",
    ".quantity-available",
    "[data-stock]",
    "[data-quantity]",
    ".product-stock",
]

CURRENCY_PATTERN = re.compile(r"\$\s*(\d{1,3}(?:,\d{3})*(?:\.\d{2})?)")
NUMBER_PATTERN = re.compile(r"(\d{1,3}(?:,\d{3})*(?:\.\d{2})?)")


class ExtractionFailure(RuntimeError):
    """Raised when a fetched page is not a product page."""

    def __init__(self, url: Optional[str]):
        super().__init__(f"Not a product page: {url}")
        self.url = url


def is_valid_price(price: Optional[Decimal]) -> bool:
    """Check a price against the sanity bounds (exclusive min, inclusive max)."""
    if price is None:
        return False
    return Decimal(str(settings.min_valid_price)) < price <= Decimal(str(settings.max_valid_price))


def _parse_number(text: str) -> Optional[Decimal]:
    """Convert a matched number like "1,299.00" to Decimal."""
    try:
        return Decimal(text.replace(",", ""))
    except InvalidOperation:
        return None


def _is_hidden(node: Node) -> bool:
    classes = (node.attributes.get("class") or "").split()
    return "hidden" in classes


def _product_area(tree: HTMLParser) -> Optional[Node]:
    for selector in PRODUCT_AREA_SELECTORS:
        node = tree.css_first(selector)
        if node is not None:
            return node
    return tree.body


def is_product_page(tree: HTMLParser) -> bool:
    """
    Check whether a page looks like a product page.

    Any single signal is enough: an <h1> with "SKU:", a product details
    container, a product price container, or an "Add to Cart" label.
    """
    heading = tree.css_first("h1")
    if heading is not None and "SKU:" in heading.text():
        return True
    if tree.css_first(".product-details") is not None:
        return True
    if tree.css_first(".product-price") is not None:
        return True
    body = tree.body
    return body is not None and "Add to Cart" in body.text()


def _price_from_json_ld(tree: HTMLParser) -> Optional[Decimal]:
    for product in extract_products_from_json_ld(extract_json_ld(tree)):
        for value in iter_product_prices(product):
            price = parse_price_value(value)
            if is_valid_price(price):
                logger.debug(f"JSON-LD price: ${price}")
                return price
    return None


def _price_from_meta(tree: HTMLParser) -> Optional[Decimal]:
    for selector in META_PRICE_SELECTORS:
        for node in tree.css(selector):
            price = parse_price_value(node.attributes.get("content"))
            if is_valid_price(price):
                logger.debug(f"Meta price ({selector}): ${price}")
                return price
    return None


def _price_from_selectors(area: Node) -> Optional[Decimal]:
    for selector in PRICE_SELECTORS:
        for node in area.css(selector):
            text = node.text(strip=True)
            if not text:
                continue
            match = CURRENCY_PATTERN.search(text) or NUMBER_PATTERN.search(text)
            if match:
                price = _parse_number(match.group(1))
                if is_valid_price(price):
                    logger.debug(f"Selector price ({selector}): ${price}")
                    return price
    return None


def _price_from_text(area: Node) -> Optional[Decimal]:
    for match in CURRENCY_PATTERN.finditer(area.text(separator=" ")):
        price = _parse_number(match.group(1))
        if is_valid_price(price):
            logger.debug(f"Fallback regex price: ${price}")
            return price
    return None


def extract_price(tree: HTMLParser) -> Decimal:
    """
    Extract the product price using an ordered fallback chain.

    JSON-LD, then meta tags, then CSS selectors inside the product area, then
    a currency regex over the product area text. Values outside the sanity
    bounds fall through to the next candidate.

    Returns:
        Price, or Decimal("0") when nothing valid was found
    """
    price = _price_from_json_ld(tree) or _price_from_meta(tree)
    if price:
        return price

    area = _product_area(tree)
    if area is not None:
        price = _price_from_selectors(area) or _price_from_text(area)
        if price:
            return price

    return Decimal("0")


def _has_visible_out_of_stock_label(tree: HTMLParser) -> bool:
    for selector in OUT_OF_STOCK_LABEL_SELECTORS:
        for node in tree.css(selector):
            if not _is_hidden(node):
                return True
    return False


def extract_stock(tree: HTMLParser) -> Optional[int]:
    """
    Extract the stock quantity.

    Returns:
        0 when a visible out-of-stock label is shown, the first quantity found
        in a stock element's text or data attribute, else None (unknown)
    """
    if _has_visible_out_of_stock_label(tree):
        return 0

    for selector in STOCK_SELECTORS:
        node = tree.css_first(selector)
        if node is None:
            continue

        text = node.text(strip=True)
        if text:
            match = re.search(r"(\d+)", text)
            if match:
                return int(match.group(1))

        data_value = node.attributes.get("data-stock") or node.attributes.get("data-quantity")
        if data_value:
            match = re.match(r"\s*(-?\d+)", data_value)
            if match and int(match.group(1)) >= 0:
                return int(match.group(1))

    return None


def check_in_stock(tree: HTMLParser) -> bool:
    """In-stock heuristic; true when any signal points to the item being available."""
    indicators = [
        tree.css_first(".in-stock") is not None,
        tree.css_first(".available") is not None,
        tree.css_first(".add-to-cart") is not None,
        tree.css_first(".out-of-stock") is None,
        not any(not _is_hidden(n) for n in tree.css(".store-out-of-stock-label")),
    ]
    return any(indicators)


def extract_product(html: str, source_url: Optional[str] = None) -> ScrapedCandidate:
    """
    Extract everything the reconciler needs from one page.

    Never raises on malformed markup; a page that is not a product page is
    returned with ``is_product_page=False``.
    """
    tree = HTMLParser(html)
    page_sku, page_name = parse_product_heading(tree)

    return ScrapedCandidate(
        source_url=source_url,
        is_product_page=is_product_page(tree),
        price=extract_price(tree),
        stock=extract_stock(tree),
        in_stock=check_in_stock(tree),
        sku=page_sku,
        name=page_name,
    )


def extract_product_page(html: str, source_url: Optional[str] = None) -> ScrapedCandidate:
    """
    Extract a page that must be a product page.

    Raises:
        ExtractionFailure: If the page is not a product page
    """
    candidate = extract_product(html, source_url)
    if not candidate.is_product_page:
        raise ExtractionFailure(source_url)
    return candidate
