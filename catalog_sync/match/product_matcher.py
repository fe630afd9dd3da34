"""Verification that a vendor page shows the expected catalog product."""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from selectolax.parser import HTMLParser

from catalog_sync.config import settings
from catalog_sync.ingest.http_client import FetchError, PageFetcher

logger = logging.getLogger(__name__)

# First-pass filter for search results; accepted URLs always pass VERIFY_THRESHOLD too
DISCOVERY_THRESHOLD = 0.8
VERIFY_THRESHOLD = 0.85

SKU_PATTERN = re.compile(r"SKU:\s*([A-Za-z0-9\-]+)", re.IGNORECASE)
SKU_SUFFIX_PATTERN = re.compile(r"\s*SKU:.*$", re.IGNORECASE)


@dataclass(frozen=True)
class MatchResult:
    """Outcome of comparing a page heading with the expected product."""

    verified: bool
    method: Optional[str] = None  # "sku" or "name"
    similarity: float = 0.0
    page_sku: Optional[str] = None
    page_name: Optional[str] = None

    def __bool__(self) -> bool:
        return self.verified


def name_similarity(name1: str, name2: str) -> float:
    """
    Token overlap between two product names.

    Names are lowercased and split on whitespace; the score is the size of the
    shared token set divided by the larger token set.

    Example:
        "Vitamin C 1000mg" vs "Vitamin C 500mg" -> 2/3
    """
    words1 = set((name1 or "").lower().split())
    words2 = set((name2 or "").lower().split())
    if not words1 and not words2:
        return 0.0
    return len(words1 & words2) / max(len(words1), len(words2))


def parse_product_heading(source: Union[str, HTMLParser]) -> Tuple[Optional[str], Optional[str]]:
    """
    Read SKU and name from a product page's first <h1>.

    Vendor headings look like "<Name> SKU: <SKU>".

    Returns:
        Tuple of (page_sku, page_name); either may be None
    """
    tree = HTMLParser(source) if isinstance(source, str) else source
    heading = tree.css_first("h1")
    if heading is None:
        return None, None

    text = " ".join(heading.text().split())
    sku_match = SKU_PATTERN.search(text)
    page_sku = sku_match.group(1).strip() if sku_match else None
    page_name = SKU_SUFFIX_PATTERN.sub("", text).strip() or None
    return page_sku, page_name


def match_heading(
    page_sku: Optional[str],
    page_name: Optional[str],
    expected_sku: str,
    expected_name: str,
    threshold: float = VERIFY_THRESHOLD,
) -> MatchResult:
    """
    Decide whether a page heading identifies the expected product.

    An exact SKU (case-insensitive) wins outright; otherwise the name
    similarity must be strictly greater than ``threshold``.
    """
    if page_sku and expected_sku and page_sku.upper() == expected_sku.upper():
        return MatchResult(
            verified=True,
            method="sku",
            similarity=name_similarity(expected_name, page_name or ""),
            page_sku=page_sku,
            page_name=page_name,
        )

    similarity = name_similarity(expected_name, page_name or "")
    return MatchResult(
        verified=similarity > threshold,
        method="name" if similarity > threshold else None,
        similarity=similarity,
        page_sku=page_sku,
        page_name=page_name,
    )


class ProductMatcher:
    """Re-fetches candidate pages and checks them against the expected product."""

    def __init__(self, fetcher: PageFetcher, threshold: Optional[float] = None):
        self.fetcher = fetcher
        self.threshold = threshold if threshold is not None else settings.verify_similarity_threshold

    async def verify(
        self,
        url: str,
        expected_sku: str,
        expected_name: str,
        threshold: Optional[float] = None,
    ) -> MatchResult:
        """
        Verify that ``url`` is the expected product.

        Args:
            url: Candidate product page
            expected_sku: Catalog SKU
            expected_name: Catalog name
            threshold: Name similarity threshold (defaults to the verify threshold)

        Returns:
            MatchResult; a page that cannot be fetched is rejected
        """
        threshold = self.threshold if threshold is None else threshold
        try:
            page = await self.fetcher.fetch(url, timeout=settings.probe_timeout)
        except FetchError as e:
            logger.debug(f"Verification fetch failed for {url}: {e.kind}")
            return MatchResult(verified=False)

        page_sku, page_name = parse_product_heading(page.html)
        result = match_heading(page_sku, page_name, expected_sku, expected_name, threshold)

        if result:
            logger.debug(f"Verified {url} by {result.method} (similarity {result.similarity:.2f})")
        else:
            logger.debug(
                f"Rejected {url}: page SKU {page_sku!r}, name {page_name!r}, "
                f"similarity {result.similarity:.2f}"
            )
        return result
