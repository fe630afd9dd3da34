"""Tests for product page extraction."""

import json
from decimal import Decimal

import pytest
from selectolax.parser import HTMLParser

from catalog_sync.ingest.product_extractor import (
    ExtractionFailure,
    check_in_stock,
    extract_price,
    extract_product,
    extract_product_page,
    extract_stock,
    is_product_page,
)

from conftest import product_page


def _tree(body: str, head: str = "") -> HTMLParser:
    return HTMLParser(f"<html><head>{head}</head><body>{body}</body></html>")


def _json_ld(data) -> str:
    return f'<script type="application/ld+json">{json.dumps(data)}</script>'


class TestIsProductPage:

    def test_heading_with_sku(self):
        assert is_product_page(_tree("<h1>Echinacea Extract SKU: HB-100</h1>"))

    def test_product_details_container(self):
        assert is_product_page(_tree('<div class="product-details"></div>'))

    def test_price_container(self):
        assert is_product_page(_tree('<span class="product-price">$4.00</span>'))

    def test_add_to_cart_text(self):
        assert is_product_page(_tree("<button>Add to Cart</button>"))

    def test_plain_page(self):
        assert not is_product_page(_tree("<h1>About Us</h1><p>Family owned since 1982.</p>"))


class TestExtractPrice:

    def test_json_ld_offer(self):
        head = _json_ld({"@type": "Product", "offers": {"price": "19.99"}})
        assert extract_price(_tree("", head)) == Decimal("19.99")

    def test_json_ld_graph_and_offer_list(self):
        head = _json_ld({
            "@graph": [
                {"@type": "Organization", "name": "H&M Herbs"},
                {"@type": "Product", "offers": [{"price": 0}, {"price": 7.5}]},
            ]
        })
        assert extract_price(_tree("", head)) == Decimal("7.5")

    def test_json_ld_schema_url_type_and_direct_price(self):
        head = _json_ld([{"@type": "http://schema.org/Product", "price": "12.00"}])
        assert extract_price(_tree("", head)) == Decimal("12.00")

    def test_out_of_range_json_ld_falls_through_to_meta(self):
        head = (
            _json_ld({"@type": "Product", "offers": {"price": "25000"}})
            + '<meta property="og:price:amount" content="24.95">'
        )
        assert extract_price(_tree("", head)) == Decimal("24.95")

    def test_malformed_json_ld_is_skipped(self):
        head = '<script type="application/ld+json">{"@type": "Product", "offers": </script>'
        body = '<div class="product-details"><span class="price">$8.49</span></div>'
        assert extract_price(_tree(body, head)) == Decimal("8.49")

    def test_meta_tag_order(self):
        head = (
            '<meta name="price" content="3.00">'
            '<meta property="product:price:amount" content="4.00">'
        )
        assert extract_price(_tree("", head)) == Decimal("4.00")

    def test_selector_with_thousands_separator(self):
        body = '<div class="product-details"><span class="price">$1,299.00</span></div>'
        assert extract_price(_tree(body)) == Decimal("1299.00")

    def test_selector_scoped_to_product_area(self):
        body = (
            '<aside><span class="price">$5.00</span></aside>'
            '<form class="store-product"><div class="store-product-price">$24.50</div></form>'
        )
        assert extract_price(_tree(body)) == Decimal("24.50")

    def test_bare_number_in_price_element(self):
        body = '<div class="product-info"><span class="amount">15.25</span></div>'
        assert extract_price(_tree(body)) == Decimal("15.25")

    def test_regex_fallback_over_area_text(self):
        body = '<div class="product-details"><p>Now only $ 12.75 while supplies last</p></div>'
        assert extract_price(_tree(body)) == Decimal("12.75")

    def test_upper_bound_is_inclusive(self):
        body = '<div class="product-details"><span class="price">$10,000.00</span></div>'
        assert extract_price(_tree(body)) == Decimal("10000.00")

    def test_above_bound_is_rejected(self):
        body = '<div class="product-details"><span class="price">$10,000.01</span></div>'
        assert extract_price(_tree(body)) == Decimal("0")

    def test_zero_price_is_not_found(self):
        body = '<div class="product-details"><span class="price">$0.00</span></div>'
        assert extract_price(_tree(body)) == Decimal("0")

    def test_no_price(self):
        assert extract_price(_tree("<p>Call for pricing</p>")) == Decimal("0")


class TestExtractStock:

    def test_visible_out_of_stock_label(self):
        body = (
            '<span class="store-out-of-stock-label">Out of Stock</span>'
            '<span class="stock-quantity">12</span>'
        )
        assert extract_stock(_tree(body)) == 0

    def test_not_available_label(self):
        assert extract_stock(_tree('<div class="store-not-available-label">Unavailable</div>')) == 0

    def test_hidden_label_is_ignored(self):
        body = (
            '<span class="store-out-of-stock-label hidden">Out of Stock</span>'
            '<span class="stock-quantity">42 in stock</span>'
        )
        assert extract_stock(_tree(body)) == 42

    def test_data_attribute(self):
        assert extract_stock(_tree('<div class="qty" data-stock="7"></div>')) == 7

    def test_unknown_quantity(self):
        assert extract_stock(_tree('<button class="add-to-cart">Add to Cart</button>')) is None


class TestCheckInStock:

    def test_add_to_cart_means_in_stock(self):
        body = '<div class="out-of-stock"></div><button class="add-to-cart">Add</button>'
        assert check_in_stock(_tree(body))

    def test_ambiguous_page_errs_toward_in_stock(self):
        assert check_in_stock(_tree("<p>Nothing to see</p>"))

    def test_all_signals_negative(self):
        body = (
            '<div class="out-of-stock">Sold out</div>'
            '<span class="store-out-of-stock-label">Out of Stock</span>'
        )
        assert not check_in_stock(_tree(body))


def test_extract_product_reads_heading_and_values():
    html = product_page("Echinacea Extract", sku="HB-100", price="19.99", stock=42)

    candidate = extract_product(html, "https://hmherbs.com/index.php/products/echinacea-extract")

    assert candidate.is_product_page
    assert candidate.price == Decimal("19.99")
    assert candidate.stock == 42
    assert candidate.in_stock
    assert candidate.sku == "HB-100"
    assert candidate.name == "Echinacea Extract"
    assert candidate.source_url.endswith("/echinacea-extract")


def test_extract_product_never_raises_on_garbage():
    candidate = extract_product("<<<not really html</div>")

    assert candidate.is_product_page is False
    assert candidate.price == Decimal("0")


def test_extract_product_page_rejects_non_product():
    with pytest.raises(ExtractionFailure):
        extract_product_page("<html><body><p>Search tips</p></body></html>", "https://hmherbs.com/x")
