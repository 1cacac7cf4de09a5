"""Tests for the crawl state: discovery bookkeeping and deduplication."""

from catalog_crawler.adapters.base import Product
from catalog_crawler.engines.base import CrawlState

A = "https://shop.test/products/a"
B = "https://shop.test/products/b"


def test_duplicate_url_is_a_noop():
    state = CrawlState()
    assert state.add_product(Product(url=A, sku="1", name="Alpha Tea"))
    assert not state.add_product(Product(url=A, sku="2", name="Alpha Tea Again"))

    assert len(state.products) == 1
    assert state.products[0].sku == "1"
    assert state.stats.duplicates == 1


def test_duplicate_sku_is_a_noop():
    state = CrawlState()
    state.add_product(Product(url=A, sku="1", name="Alpha Tea", brand="Acme", category="Teas"))
    assert not state.add_product(Product(url=B, sku="1", name="Alpha Tea Mirror", brand="Other"))

    assert len(state.products) == 1
    assert state.brands == {"Acme"}
    assert state.categories == {"Teas"}
    assert state.stats.duplicates == 1


def test_empty_sku_never_collides():
    state = CrawlState()
    assert state.add_product(Product(url=A, sku="", name="Alpha Tea"))
    assert state.add_product(Product(url=B, sku="", name="Beta Tea"))
    assert state.stats.duplicates == 0


def test_first_listing_keeps_its_label():
    state = CrawlState()
    assert state.discover(A, "category", "Teas")
    assert not state.discover(A, "category", "Best Sellers")
    assert not state.discover(A, "brand", "Acme")
    assert not state.discover(A, "brand", "Other")

    meta = state.link_metadata[A]
    assert (meta.category, meta.brand) == ("Teas", "Acme")


def test_worklist_keeps_order_and_skips_visited():
    state = CrawlState()
    state.discover(B)
    state.discover(A)
    state.discover(B)
    state.visited.add(B)
    assert state.worklist() == [A]
    assert A not in state.link_metadata


def test_report_sorts_aggregates():
    state = CrawlState()
    state.add_product(Product(url=A, sku="1", name="Alpha Tea", brand="Zeta", category="Teas"))
    state.add_product(Product(url=B, sku="2", name="Beta Oil", brand="Acme", category="Oils"))
    report = state.to_report(worklist_size=2)

    assert report.brands == ["Acme", "Zeta"]
    assert report.categories == ["Oils", "Teas"]
    assert report.to_dict()["totalProducts"] == 2
