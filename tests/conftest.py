"""Shared fixtures: a stubbed vendor site and an in-memory catalog database."""

import json
from typing import Dict, Optional, Type

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from catalog_sync.db.models import Base
from catalog_sync.ingest.http_client import PageFetcher

BASE_URL = "https://hmherbs.com"
PRODUCT_PATH = "/index.php/products/"
SEARCH_PATH = "/index.php/search"


def product_page(
    name: str,
    sku: Optional[str] = None,
    price: Optional[str] = None,
    stock: Optional[int] = None,
    extra: str = "",
) -> str:
    """Build a vendor product page."""
    heading = f"{name} SKU: {sku}" if sku else name
    json_ld = ""
    if price is not None:
        data = {"@context": "https://schema.org", "@type": "Product", "name": name,
                "offers": {"@type": "Offer", "price": price}}
        json_ld = f'<script type="application/ld+json">{json.dumps(data)}</script>'
    stock_html = f'<span class="stock-quantity">{stock}</span>' if stock is not None else ""
    return f"""
    <html><head>{json_ld}</head>
    <body>
      <div class="product-details">
        <h1>{heading}</h1>
        {stock_html}
        {extra}
        <button class="add-to-cart">Add to Cart</button>
      </div>
    </body></html>
    """


def search_page(*links) -> str:
    """Build a search results page from (href, text) pairs."""
    anchors = "".join(f'<li><a href="{href}">{text}</a></li>' for href, text in links)
    return f"<html><body><ul class='results'>{anchors}</ul></body></html>"


class SiteStub:
    """In-memory vendor site served through httpx.MockTransport."""

    def __init__(self):
        self.pages: Dict[str, str] = {}
        self.searches: Dict[str, str] = {}
        self.failures: Dict[str, Type[Exception]] = {}
        self.statuses: Dict[str, int] = {}
        self.requests: list[httpx.URL] = []

    def add_product(self, slug: str, html: str):
        self.pages[PRODUCT_PATH + slug] = html

    def add_search(self, query: str, html: str):
        self.searches[query] = html

    def fail(self, path: str, exc: Type[Exception]):
        self.failures[path] = exc

    def requested_paths(self) -> list[str]:
        return [url.path for url in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request.url)
        path = request.url.path

        if path in self.failures:
            raise self.failures[path]("simulated failure", request=request)
        if path in self.statuses:
            return httpx.Response(self.statuses[path], text="Service Unavailable")

        if path == SEARCH_PATH:
            html = self.searches.get(request.url.params.get("q"))
        else:
            html = self.pages.get(path)

        if html is None:
            return httpx.Response(404, text="Not Found")
        return httpx.Response(200, text=html, headers={"content-type": "text/html"})

    def fetcher(self) -> PageFetcher:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return PageFetcher(client=client)


@pytest.fixture
def site():
    return SiteStub()


@pytest.fixture
async def fetcher(site):
    page_fetcher = site.fetcher()
    yield page_fetcher
    await page_fetcher.close()


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine with the catalog tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
