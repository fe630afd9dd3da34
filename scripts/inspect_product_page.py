#!/usr/bin/env python3
"""
Fetch one vendor page and show what the extractor and matcher see on it.
"""

import asyncio
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from catalog_sync.config import settings
from catalog_sync.ingest.http_client import FetchError, PageFetcher
from catalog_sync.ingest.product_extractor import extract_product
from catalog_sync.match.product_matcher import match_heading


async def inspect(url: str, sku: str | None = None, name: str | None = None) -> int:
    async with PageFetcher() as fetcher:
        try:
            page = await fetcher.fetch(url, timeout=settings.page_timeout)
        except FetchError as e:
            print(f"Fetch failed ({e.kind}): {e}")
            return 1

    candidate = extract_product(page.html, page.url)

    print("Page Inspection")
    print("===============")
    print(f"URL: {page.url} ({page.status_code})")
    print(f"Product page: {'yes' if candidate.is_product_page else 'no'}")
    print(f"Heading SKU: {candidate.sku}")
    print(f"Heading name: {candidate.name}")
    print(f"Price: ${candidate.price:.2f}" if candidate.price else "Price: not found")
    print(f"Stock: {candidate.stock if candidate.stock is not None else 'unknown'}")
    print(f"In stock: {candidate.in_stock}")

    if sku or name:
        result = match_heading(candidate.sku, candidate.name, sku or "", name or "")
        print("")
        print(f"Match: {'verified by ' + result.method if result else 'rejected'}")
        print(f"  name similarity: {result.similarity:.2f}")

    return 0


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Inspect a vendor product page")
    parser.add_argument("url", help="Product page URL")
    parser.add_argument("--sku", help="Expected SKU to verify against")
    parser.add_argument("--name", help="Expected product name to verify against")
    args = parser.parse_args()

    sys.exit(asyncio.run(inspect(args.url, sku=args.sku, name=args.name)))
