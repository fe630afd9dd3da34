"""Tests for the page fetcher."""

import httpx
import pytest

from catalog_sync.ingest.http_client import (
    FetchTimeoutError,
    PageFetcher,
    PageNotFoundError,
    TransientFetchError,
    default_headers,
)

from conftest import BASE_URL


def _fetcher(handler) -> PageFetcher:
    return PageFetcher(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_default_headers_emulate_browser():
    headers = default_headers()

    assert "Mozilla/5.0" in headers["User-Agent"]
    assert headers["Accept"].startswith("text/html")
    assert "Accept-Language" in headers
    assert headers["Connection"] == "keep-alive"


@pytest.mark.asyncio
async def test_fetch_returns_page():
    fetcher = _fetcher(lambda request: httpx.Response(200, text="<h1>Hello</h1>"))

    page = await fetcher.fetch(f"{BASE_URL}/index.php/products/hello")

    assert page.status_code == 200
    assert page.html == "<h1>Hello</h1>"
    assert page.url == f"{BASE_URL}/index.php/products/hello"
    await fetcher.close()


@pytest.mark.asyncio
async def test_404_raises_not_found():
    fetcher = _fetcher(lambda request: httpx.Response(404, text="Not Found"))

    with pytest.raises(PageNotFoundError) as exc_info:
        await fetcher.fetch(f"{BASE_URL}/index.php/products/missing")

    assert exc_info.value.kind == "not_found"
    assert exc_info.value.status_code == 404
    await fetcher.close()


@pytest.mark.asyncio
async def test_5xx_with_binary_body_is_transient():
    fetcher = _fetcher(lambda request: httpx.Response(503, content=b"\x00\xff\x10"))

    with pytest.raises(TransientFetchError) as exc_info:
        await fetcher.fetch(f"{BASE_URL}/index.php/products/busy")

    assert exc_info.value.kind == "transient"
    assert exc_info.value.status_code == 503
    await fetcher.close()


@pytest.mark.asyncio
async def test_other_non_2xx_is_transient():
    fetcher = _fetcher(lambda request: httpx.Response(403, text="Forbidden"))

    with pytest.raises(TransientFetchError):
        await fetcher.fetch(f"{BASE_URL}/index.php/products/blocked")
    await fetcher.close()


@pytest.mark.asyncio
async def test_timeout_raises_timeout_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    fetcher = _fetcher(handler)

    with pytest.raises(FetchTimeoutError) as exc_info:
        await fetcher.fetch(f"{BASE_URL}/slow", timeout=5.0)

    assert exc_info.value.kind == "timeout"
    await fetcher.close()


@pytest.mark.asyncio
async def test_network_error_is_transient():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    fetcher = _fetcher(handler)

    with pytest.raises(TransientFetchError):
        await fetcher.fetch(f"{BASE_URL}/down")
    await fetcher.close()


@pytest.mark.asyncio
async def test_redirects_are_followed():
    def handler(request):
        if request.url.path == "/index.php/products/old-slug":
            return httpx.Response(301, headers={"location": f"{BASE_URL}/index.php/products/new-slug"})
        return httpx.Response(200, text="moved here")

    fetcher = _fetcher(handler)

    page = await fetcher.fetch(f"{BASE_URL}/index.php/products/old-slug")

    assert page.html == "moved here"
    assert page.url.endswith("/new-slug")
    await fetcher.close()


@pytest.mark.asyncio
async def test_no_retries():
    calls = []

    def handler(request):
        calls.append(request.url)
        return httpx.Response(500)

    fetcher = _fetcher(handler)

    with pytest.raises(TransientFetchError):
        await fetcher.fetch(f"{BASE_URL}/flaky")

    assert len(calls) == 1
    await fetcher.close()


@pytest.mark.asyncio
async def test_context_manager_closes_client():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))

    async with PageFetcher(client=client) as fetcher:
        await fetcher.fetch(f"{BASE_URL}/")

    assert client.is_closed
