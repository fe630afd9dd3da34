"""Extract product data from embedded JSON-LD in HTML pages."""

import json
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterator, List, Optional, Union

from selectolax.parser import HTMLParser

logger = logging.getLogger(__name__)

PRODUCT_TYPES = ("Product", "http://schema.org/Product", "https://schema.org/Product")

# Leading number of a price value, e.g. "19.99", "$1,299.00 USD"
_LEADING_NUMBER = re.compile(r"^\s*\$?\s*(\d[\d,]*(?:\.\d+)?)")


def extract_json_ld(source: Union[str, HTMLParser]) -> List[Any]:
    """
    Extract JSON-LD structured data from script tags.

    Scripts that are not valid JSON are skipped.

    Returns list of JSON-LD documents found in the page.
    """
    results = []
    try:
        tree = HTMLParser(source) if isinstance(source, str) else source
        scripts = tree.css('script[type="application/ld+json"]')
        for script in scripts:
            try:
                data = json.loads(script.text())
                results.append(data)
            except (json.JSONDecodeError, TypeError):
                continue
    except Exception as e:
        logger.debug(f"Failed to extract JSON-LD: {e}")
    return results


def iter_json_ld_items(document: Any) -> Iterator[Dict[str, Any]]:
    """Yield the items of one JSON-LD document (a list, an @graph, or a single object)."""
    if isinstance(document, list):
        items = document
    elif isinstance(document, dict) and isinstance(document.get("@graph"), list):
        items = document["@graph"]
    else:
        items = [document]

    for item in items:
        if isinstance(item, dict):
            yield item


def is_product_item(item: Dict[str, Any]) -> bool:
    """Check whether a JSON-LD item is a schema.org Product."""
    item_type = item.get("@type", "")
    if isinstance(item_type, list):
        return any(t in PRODUCT_TYPES for t in item_type)
    return item_type in PRODUCT_TYPES


def extract_products_from_json_ld(json_ld_objects: List[Any]) -> List[Dict[str, Any]]:
    """
    Extract product data from JSON-LD structured data.

    Looks for Product schema.org types.
    """
    products = []
    for document in json_ld_objects:
        for item in iter_json_ld_items(document):
            if is_product_item(item):
                products.append(item)
    return products


def iter_product_prices(product: Dict[str, Any]) -> Iterator[Any]:
    """
    Yield the raw price values of a Product item in lookup order.

    Each offer's price comes first (``offers`` may be a list or one object),
    then the item's own ``price``.
    """
    offers = product.get("offers")
    if isinstance(offers, dict):
        offers = [offers]
    if isinstance(offers, list):
        for offer in offers:
            if isinstance(offer, dict) and offer.get("price"):
                yield offer["price"]

    if product.get("price"):
        yield product["price"]


def parse_price_value(value: Any) -> Optional[Decimal]:
    """
    Parse a JSON-LD or meta price value.

    Args:
        value: Number or string such as "19.99" or "$1,299.00"

    Returns:
        Decimal price, or None if the value holds no leading number
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        price = Decimal(str(value))
        return price if price.is_finite() else None
    if not isinstance(value, str):
        return None

    match = _LEADING_NUMBER.match(value)
    if not match:
        return None
    try:
        return Decimal(match.group(1).replace(",", ""))
    except InvalidOperation:
        return None
