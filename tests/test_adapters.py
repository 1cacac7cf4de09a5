"""Tests for adapter registration, plugin loading and configuration."""

import pytest

from catalog_crawler.adapters.concrete5 import Concrete5Adapter
from catalog_crawler.adapters.generic import GenericAdapter
from catalog_crawler.adapters.registry import AdapterRegistry
from catalog_crawler.config import CrawlConfig
from catalog_crawler.utils.loader import load_adapter, load_symbol


class ExampleStoreAdapter(GenericAdapter):
    name = "example-store"

    def matches(self, url):
        return "example-store.test" in url


def test_registry_builtins():
    registry = AdapterRegistry()
    assert registry.names == ["generic", "concrete5"]
    assert isinstance(registry.get("concrete5"), Concrete5Adapter)
    with pytest.raises(ValueError):
        registry.get("magento")


def test_registry_match_prefers_specific_adapters():
    registry = AdapterRegistry()
    registry.register(ExampleStoreAdapter())
    assert registry.match("https://herbs.test/index.php/products").name == "concrete5"
    assert registry.match("https://example-store.test/").name == "example-store"
    assert registry.match("https://herbs.test/").name == "generic"
    assert registry.resolve("concrete5", "https://herbs.test/").name == "concrete5"


def test_load_symbol_forms():
    assert load_symbol("catalog_crawler.adapters.concrete5:Concrete5Adapter") is Concrete5Adapter
    assert load_symbol("catalog_crawler.adapters.concrete5.Concrete5Adapter") is Concrete5Adapter
    with pytest.raises(ValueError):
        load_symbol("Concrete5Adapter")
    with pytest.raises(ValueError):
        load_symbol("catalog_crawler.adapters.concrete5:Missing")


def test_load_adapter_checks_interface():
    assert isinstance(load_adapter("catalog_crawler.adapters.generic:GenericAdapter"), GenericAdapter)
    with pytest.raises(ValueError):
        load_adapter("catalog_crawler.engines.base:CrawlStats")


def test_configure_applies_tuning():
    cfg = CrawlConfig(
        max_listing_links=9,
        weak_indicator_threshold=2,
        sku_prefix="HB",
        default_inventory=10,
        known_brands=["Acme Herbs"],
        pagination_param="p",
    )
    adapter = GenericAdapter().configure(cfg)

    assert adapter.thresholds.max_listing_links == 9
    assert adapter.thresholds.weak_threshold == 2
    assert adapter.options.sku_prefix == "HB"
    assert adapter.options.default_inventory == 10
    assert adapter.options.known_brands[0] == "Acme Herbs"
    assert adapter.page_url("https://herbs.test/c", 2) == "https://herbs.test/c?p=2"
    assert GenericAdapter.pagination_param == "page"
