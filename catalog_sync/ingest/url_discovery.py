"""Locate a catalog product's page on the vendor site.

Implements a chain of discovery strategies tried in a fixed order. Each
strategy proposes at most one candidate URL, and the chain accepts the first
candidate that passes product verification.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional
from urllib.parse import quote, urljoin

from selectolax.parser import HTMLParser, Node

from catalog_sync import metrics
from catalog_sync.config import settings
from catalog_sync.ingest.base import TargetProduct
from catalog_sync.ingest.http_client import FetchError, PageFetcher
from catalog_sync.ingest.product_extractor import is_product_page
from catalog_sync.match.product_matcher import (
    ProductMatcher,
    match_heading,
    parse_product_heading,
)

logger = logging.getLogger(__name__)

PRODUCT_LINK_SELECTOR = 'a[href*="/index.php/products/"]'


class DiscoveryStrategy(Enum):
    """Discovery strategies in the order they are tried."""
    SLUG_VARIANTS = "slug_variants"
    SKU_SEARCH = "sku_search"
    NAME_SEARCH = "name_search"
    SKU_PATTERN = "sku_pattern"


@dataclass(frozen=True)
class DiscoveryHit:
    """A verified product URL and the strategy that found it."""
    url: str
    strategy: DiscoveryStrategy


def slug_variants(slug: str) -> List[str]:
    """
    Candidate slugs derived from a possibly stale stored slug.

    Order: as-is, hyphens removed, hyphens to underscores, lowercased,
    one trailing "s" stripped, last hyphen segment dropped. Empty and
    duplicate variants are skipped.
    """
    candidates = [
        slug,
        slug.replace("-", ""),
        slug.replace("-", "_"),
        slug.lower(),
        re.sub(r"s$", "", slug),
        "-".join(slug.split("-")[:-1]),
    ]

    variants = []
    for candidate in candidates:
        if candidate and candidate not in variants:
            variants.append(candidate)
    return variants


def sku_url_patterns(sku: str) -> List[str]:
    """Product paths tried for purely numeric SKUs."""
    if not re.fullmatch(r"\d+", sku or ""):
        return []
    return [sku, f"product-{sku}", f"sku-{sku}"]


def name_keywords(name: str) -> List[str]:
    """Lowercased words of a name longer than three characters."""
    return [w for w in name.lower().split() if len(w) > 3]


class UrlDiscovery:
    """
    Finds product pages on the vendor site.

    Strategies run strictly sequentially with one request in flight; there is
    no caching between candidates or between products.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        matcher: Optional[ProductMatcher] = None,
        strategies: Optional[List[DiscoveryStrategy]] = None,
        base_url: Optional[str] = None,
    ):
        self.fetcher = fetcher
        self.matcher = matcher or ProductMatcher(fetcher)
        self.base_url = (base_url or settings.site_base_url).rstrip("/")
        # A subset keeps the fixed relative order
        selected = set(strategies) if strategies else set(DiscoveryStrategy)
        self.strategies = [s for s in DiscoveryStrategy if s in selected]

    def product_url(self, path: str) -> str:
        """Absolute URL of a product page."""
        return f"{self.base_url}{settings.product_path}{path}"

    def search_url(self, query: str) -> str:
        """Absolute URL of a search results page."""
        return f"{self.base_url}{settings.search_path}?q={quote(query, safe='')}"

    async def discover(self, product: TargetProduct) -> Optional[DiscoveryHit]:
        """
        Run the strategy chain for one product.

        Args:
            product: Catalog product to locate

        Returns:
            DiscoveryHit for the first verified candidate, or None when every
            strategy is exhausted
        """
        logger.info(f"Searching for: {product.name} (SKU: {product.sku})")

        for strategy in self.strategies:
            metrics.record_discovery_attempt(strategy.value)

            url = await self._execute_strategy(strategy, product)
            if not url:
                continue

            # SKU patterns verify each pattern themselves
            if strategy != DiscoveryStrategy.SKU_PATTERN:
                result = await self.matcher.verify(url, product.sku, product.name)
                if not result:
                    logger.debug(f"{strategy.value} candidate rejected: {url}")
                    continue

            metrics.record_discovery_hit(strategy.value)
            logger.info(f"Found via {strategy.value}: {url}")
            return DiscoveryHit(url=url, strategy=strategy)

        logger.info(f"Not found on website: {product.sku}")
        return None

    async def _execute_strategy(
        self,
        strategy: DiscoveryStrategy,
        product: TargetProduct,
    ) -> Optional[str]:
        """Run one strategy and return its candidate URL, if any."""
        if strategy == DiscoveryStrategy.SLUG_VARIANTS:
            return await self._try_slug_variants(product.slug)

        elif strategy == DiscoveryStrategy.SKU_SEARCH:
            return await self._search_by_sku(product.sku, product.name)

        elif strategy == DiscoveryStrategy.NAME_SEARCH:
            return await self._search_by_name(product.name)

        elif strategy == DiscoveryStrategy.SKU_PATTERN:
            return await self._try_sku_patterns(product)

        raise ValueError(f"Unknown strategy: {strategy}")

    async def _probe_product_page(self, url: str) -> bool:
        """Fetch a URL and report whether it is a product page."""
        try:
            page = await self.fetcher.fetch(url, timeout=settings.probe_timeout)
        except FetchError as e:
            logger.debug(f"Probe {url} failed: {e.kind}")
            return False
        return is_product_page(HTMLParser(page.html))

    async def _try_slug_variants(self, slug: str) -> Optional[str]:
        for variant in slug_variants(slug or ""):
            url = self.product_url(variant)
            if await self._probe_product_page(url):
                return url
        return None

    async def _search_links(self, query: str) -> List[Node]:
        """Fetch a search page and return its product result links."""
        try:
            page = await self.fetcher.fetch(self.search_url(query), timeout=settings.search_timeout)
        except FetchError as e:
            logger.debug(f"Search for {query!r} failed: {e.kind}")
            return []

        tree = HTMLParser(page.html)
        links = [a for a in tree.css(PRODUCT_LINK_SELECTOR) if a.attributes.get("href")]
        return links[:settings.max_search_results]

    def _absolute(self, href: str) -> str:
        return urljoin(self.base_url + "/", href)

    async def _search_by_sku(self, sku: str, expected_name: str) -> Optional[str]:
        links = await self._search_links(sku)

        for link in links:
            url = self._absolute(link.attributes["href"])
            try:
                page = await self.fetcher.fetch(url, timeout=settings.probe_timeout)
            except FetchError:
                continue

            page_sku, page_name = parse_product_heading(page.html)
            result = match_heading(
                page_sku, page_name, sku, expected_name,
                settings.discovery_similarity_threshold,
            )
            if result:
                return url

        # Fuzzy fallback; the chain still verifies it
        if links:
            return self._absolute(links[0].attributes["href"])
        return None

    async def _search_by_name(self, name: str) -> Optional[str]:
        links = await self._search_links(name)
        keywords = name_keywords(name)
        required = min(2, len(keywords))

        for link in links:
            link_text = link.text().lower()
            match_count = sum(1 for word in keywords if word in link_text)
            if match_count >= required:
                return self._absolute(link.attributes["href"])

        if links:
            return self._absolute(links[0].attributes["href"])
        return None

    async def _try_sku_patterns(self, product: TargetProduct) -> Optional[str]:
        for path in sku_url_patterns(product.sku):
            url = self.product_url(path)
            if not await self._probe_product_page(url):
                continue
            if await self.matcher.verify(url, product.sku, product.name):
                return url
        return None
