"""Tests for product-page classification."""

from catalog_crawler.extraction.classifier import (
    ClassifierThresholds,
    classify_page,
    count_product_links,
    is_product_page,
)
from catalog_crawler.utils.parsing import make_soup

from conftest import page


def links(n, prefix="/products/item"):
    return "".join(f'<a href="{prefix}-{i}">Item {i}</a>' for i in range(n))


def test_many_product_links_is_never_a_product_page():
    """Six product links disqualify a page whatever else it carries."""
    html = page(
        '<meta property="og:type" content="product">'
        '<div class="product-details"><h1>Elderberry Syrup</h1>'
        '<span class="price">$12.99</span><button class="add-to-cart">Add to Cart</button></div>'
        + links(6)
    )
    verdict = classify_page(make_soup(html))
    assert not verdict.is_product
    assert verdict.reason.startswith("listing: 6 product links")


def test_sku_heading_beats_related_products_panel():
    html = page(
        "<h1>Valerian Root SKU: 4411</h1><p>$8.50</p>"
        f'<section class="related-products">{links(8)}</section>'
    )
    soup = make_soup(html)
    assert count_product_links(soup) == 0
    assert is_product_page(soup)


def test_sku_heading_does_not_beat_link_count():
    html = page(f"<h1>Valerian Root SKU: 4411</h1><p>$8.50</p>{links(8)}")
    assert not is_product_page(make_soup(html))


def test_generic_heading_is_a_listing():
    html = page(
        '<h1>Shop</h1><span class="price">$4.99</span>'
        '<button>Add to Cart</button><input name="quantity"><div class="product-description">x</div>'
    )
    verdict = classify_page(make_soup(html))
    assert not verdict
    assert "generic heading" in verdict.reason


def test_generic_heading_with_sku_marker_is_a_product():
    html = page("<h1>Shop Sampler Box SKU: SB-2</h1>")
    assert is_product_page(make_soup(html))


def test_grid_with_pagination_is_a_listing():
    html = page(
        '<h1>Herbal Teas</h1><div class="product-grid">'
        f'{links(3)}</div><ul class="pagination"><li><a href="?page=2">2</a></li></ul>'
        '<div class="product-details"></div>'
    )
    assert not is_product_page(make_soup(html))


def test_strong_indicators():
    jsonld = '<script type="application/ld+json">{"@type": "Product", "name": "Kelp"}</script>'
    for body in (
        '<div class="product-detail"><h1>Kelp Tablets</h1></div>',
        '<meta property="og:type" content="product"><h1>Kelp Tablets</h1>',
        jsonld + "<h1>Kelp Tablets</h1>",
        '<div itemscope itemtype="https://schema.org/Product"><h1>Kelp Tablets</h1></div>',
    ):
        verdict = classify_page(make_soup(page(body)))
        assert verdict.is_product, body
        assert verdict.reason.startswith("strong")


def test_weak_indicators_need_corroboration():
    two = page('<h1>Kelp Tablets</h1><span class="price">$6</span><input name="qty">')
    three = page('<h1>Kelp Tablets</h1><span class="price">$6</span><input name="qty"><button>Add to cart</button>')

    assert not is_product_page(make_soup(two))
    verdict = classify_page(make_soup(three))
    assert verdict.is_product
    assert verdict.reason.startswith("weak")


def test_thresholds_are_configurable():
    two = make_soup(page('<h1>Kelp Tablets</h1><span class="price">$6</span><input name="qty">'))
    assert is_product_page(two, ClassifierThresholds(weak_threshold=2))

    few_links = make_soup(page("<h1>Kelp Tablets SKU: K1</h1>" + links(3)))
    assert not is_product_page(few_links, ClassifierThresholds(max_listing_links=2))


def test_classification_is_deterministic():
    soup = make_soup(page("<h1>Kelp Tablets SKU: K1</h1>" + links(2)))
    assert classify_page(soup) == classify_page(soup)


def test_links_without_slug_are_not_counted():
    html = page('<a href="/products">All</a><a href="/products/">All</a><a href="/products/sage#reviews">Sage</a>')
    assert count_product_links(make_soup(html)) == 1
