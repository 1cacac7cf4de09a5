"""End-to-end tests for the crawl engine against an in-memory storefront."""

import json

import pytest

from catalog_crawler.adapters.generic import GenericAdapter
from catalog_crawler.engines.base import HomepageFetchError
from catalog_crawler.engines.catalog_engine import CatalogCrawlEngine
from catalog_crawler.engines.progress import ProgressStage
from catalog_crawler.export.json_exporter import JSONExporter

from conftest import BASE_URL, FakeSite, page


def listing_with(*slugs):
    return page("<h1>Listing</h1>" + "".join(f'<a href="/products/{s}">{s}</a>' for s in slugs))


@pytest.mark.asyncio
async def test_end_to_end_single_valid_product(config, site):
    """The fixture store yields exactly one product; the 'Shop' page is skipped."""
    events = []
    engine = CatalogCrawlEngine(config, adapter=GenericAdapter(), fetcher=site, observer=events.append)

    report = await engine.crawl()

    assert report.total_products == 1
    product = report.products[0]
    assert product.name == "Valid Herb Tea"
    assert product.sku == "100"
    assert product.price == 9.99
    assert product.category == "Herbs"
    assert "Sleep Support" in product.health_categories
    assert report.stats.skipped == 1
    assert report.stats.duplicates == 0
    assert report.stats.errors == 0
    assert report.worklist_size == 2
    assert report.categories == ["Herbs"]

    stages = [e.stage for e in events]
    assert stages[0] is ProgressStage.INIT
    assert ProgressStage.DISCOVERY in stages
    assert ProgressStage.SCRAPING_PRODUCTS in stages
    assert stages[-2:] == [ProgressStage.SAVING, ProgressStage.COMPLETE]
    assert events[-1].percentage == 100
    assert engine.latest_event.stage is ProgressStage.COMPLETE


@pytest.mark.asyncio
async def test_scraping_progress_total_is_fixed(config, site):
    events = []
    engine = CatalogCrawlEngine(config, adapter=GenericAdapter(), fetcher=site, observer=events.append)
    await engine.crawl()

    scraping = [e for e in events if e.stage is ProgressStage.SCRAPING_PRODUCTS]
    assert [e.current for e in scraping] == [1, 2]
    assert {e.total for e in scraping} == {2}
    assert scraping[-1].percentage == 100


@pytest.mark.asyncio
async def test_homepage_failure_is_fatal(config):
    events = []
    engine = CatalogCrawlEngine(config, adapter=GenericAdapter(), fetcher=FakeSite({}), observer=events.append)

    with pytest.raises(HomepageFetchError) as info:
        await engine.crawl()

    assert info.value.url == BASE_URL
    assert info.value.error.status == 404
    assert events[-1].stage is ProgressStage.ERROR


@pytest.mark.asyncio
async def test_pagination_stops_on_first_page_without_new_links(config):
    listing = f"{BASE_URL}/category/teas"
    site = FakeSite({
        BASE_URL: page('<a href="/category/teas">Teas</a>'),
        listing: listing_with("green-tea", "black-tea"),
        f"{listing}?page=2": listing_with("white-tea"),
        f"{listing}?page=3": listing_with("green-tea"),
        f"{listing}?page=4": listing_with("oolong-tea"),
    })
    engine = CatalogCrawlEngine(config, adapter=GenericAdapter(), fetcher=site)

    await engine.crawl()

    assert f"{listing}?page=3" in site.requested
    assert f"{listing}?page=4" not in site.requested
    assert f"{BASE_URL}/products/oolong-tea" not in site.requested
    assert engine.state.link_metadata[f"{BASE_URL}/products/white-tea"].category == "Teas"


@pytest.mark.asyncio
async def test_pagination_never_exceeds_ceiling(config):
    listing = f"{BASE_URL}/category/endless"
    pages = {BASE_URL: page('<a href="/category/endless">Endless</a>'), listing: listing_with("item-1")}
    for n in range(2, 50):
        pages[f"{listing}?page={n}"] = listing_with(f"item-{n}")
    site = FakeSite(pages)
    config.max_pagination_depth = 3
    engine = CatalogCrawlEngine(config, adapter=GenericAdapter(), fetcher=site)

    await engine.crawl()

    listing_requests = [u for u in site.requested if u.startswith(listing)]
    assert listing_requests == [listing, f"{listing}?page=2", f"{listing}?page=3"]
    assert len(engine.state.discovered) == 3


@pytest.mark.asyncio
async def test_duplicate_sku_is_counted(config):
    product = page('<div class="product-details"><h1>Lavender Oil SKU: L-1</h1><p class="price">$5.00</p></div>')
    site = FakeSite({
        BASE_URL: page('<a href="/products/lavender-oil">a</a><a href="/products/lavender-oil-2">b</a>'),
        f"{BASE_URL}/products/lavender-oil": product,
        f"{BASE_URL}/products/lavender-oil-2": product,
    })
    engine = CatalogCrawlEngine(config, adapter=GenericAdapter(), fetcher=site)

    report = await engine.crawl()

    assert report.total_products == 1
    assert report.stats.duplicates == 1


@pytest.mark.asyncio
async def test_fetch_errors_are_counted_not_fatal(config, site):
    del site.pages[f"{BASE_URL}/products/shop-all"]
    engine = CatalogCrawlEngine(config, adapter=GenericAdapter(), fetcher=site)

    report = await engine.crawl()

    assert report.total_products == 1
    assert report.stats.errors == 1
    assert report.stats.skipped == 0


@pytest.mark.asyncio
async def test_fallback_paths_are_scanned(config):
    site = FakeSite({
        BASE_URL: page("<h1>Home</h1>"),
        f"{BASE_URL}/herbs": listing_with("sage"),
        f"{BASE_URL}/herbs?page=2": listing_with("sage"),
    })
    config.fallback_paths = ["/herbs", "/vitamins"]
    engine = CatalogCrawlEngine(config, adapter=GenericAdapter(), fetcher=site)

    report = await engine.crawl()

    assert f"{BASE_URL}/vitamins" in site.requested
    assert f"{BASE_URL}/products/sage" in site.requested
    # /vitamins is a 404 and /products/sage is missing
    assert report.stats.errors == 2


@pytest.mark.asyncio
async def test_observer_errors_never_reach_the_crawl(config, site):
    def broken(event):
        raise RuntimeError("observer bug")

    engine = CatalogCrawlEngine(config, adapter=GenericAdapter(), fetcher=site, observer=broken)
    report = await engine.crawl()

    assert report.total_products == 1


@pytest.mark.asyncio
async def test_async_observer_receives_events(config, site):
    seen = []

    async def observer(event):
        seen.append(event.stage)

    engine = CatalogCrawlEngine(config, adapter=GenericAdapter(), fetcher=site, observer=observer)
    await engine.crawl()

    assert seen[-1] is ProgressStage.COMPLETE


@pytest.mark.asyncio
async def test_cancel_saves_partial_results(config, site):
    engine = CatalogCrawlEngine(
        config,
        adapter=GenericAdapter(),
        sinks=[(JSONExporter(), config.output_path)],
    )

    async def cancelling_fetch(url):
        result = await site(url)
        if url.endswith("/products/valid-herb-tea"):
            engine.cancel()
        return result

    engine.fetcher = cancelling_fetch
    report = await engine.crawl()

    assert engine.cancelled
    assert report.stats.cancelled
    assert f"{BASE_URL}/products/shop-all" not in site.requested
    with open(config.output_path, encoding="utf-8") as f:
        saved = json.load(f)
    assert saved["totalProducts"] == report.total_products == 1
    assert saved["stats"]["cancelled"] is True


@pytest.mark.asyncio
async def test_worker_pool_scrapes_everything(config):
    slugs = [f"tea-{i}" for i in range(6)]
    pages = {BASE_URL: listing_with(*slugs)}
    for s in slugs:
        pages[f"{BASE_URL}/products/{s}"] = page(
            f'<div class="product-details"><h1>Herbal {s} SKU: {s.upper()}</h1><p class="price">$3.50</p></div>'
        )
    config.max_concurrency = 3
    engine = CatalogCrawlEngine(config, adapter=GenericAdapter(), fetcher=FakeSite(pages))

    report = await engine.crawl()

    assert sorted(p.sku for p in report.products) == sorted(s.upper() for s in slugs)


@pytest.mark.asyncio
async def test_sinks_write_json_and_csv(config, site):
    from catalog_crawler.ui.cli import build_sinks

    engine = CatalogCrawlEngine(config, adapter=GenericAdapter(), fetcher=site, sinks=build_sinks(config))
    await engine.crawl()

    products = JSONExporter.load(config.output_path)
    assert [p.name for p in products] == ["Valid Herb Tea"]
    with open(config.csv_output_path, encoding="utf-8") as f:
        lines = f.read().splitlines()
    assert len(lines) == 2


def test_adapter_resolved_from_registry(config):
    config.base_url = "https://cms.test/index.php"
    engine = CatalogCrawlEngine(config)
    assert engine.adapter.name == "concrete5"
    assert engine.adapter.pagination_param == "ccm_paging_p"


@pytest.mark.asyncio
async def test_listing_paginates_past_links_already_found_elsewhere(config):
    listing = f"{BASE_URL}/category/teas"
    site = FakeSite({
        BASE_URL: page('<a href="/products/green-tea">Green</a><a href="/category/teas">Teas</a>'),
        listing: listing_with("green-tea"),
        f"{listing}?page=2": listing_with("white-tea"),
    })
    engine = CatalogCrawlEngine(config, adapter=GenericAdapter(), fetcher=site)

    await engine.crawl()

    assert f"{listing}?page=2" in site.requested
    assert f"{BASE_URL}/products/white-tea" in site.requested
    assert engine.state.link_metadata[f"{BASE_URL}/products/green-tea"].category == "Teas"


@pytest.mark.asyncio
async def test_listing_failure_is_counted_not_fatal(config, site):
    site.pages[BASE_URL] = page('<a href="/category/broken">Broken</a><a href="/category/herbs">Herbs</a>')

    async def flaky_fetch(url):
        if url.endswith("/category/broken"):
            raise RuntimeError("parser blew up")
        return await site(url)

    engine = CatalogCrawlEngine(config, adapter=GenericAdapter(), fetcher=flaky_fetch)
    report = await engine.crawl()

    assert report.total_products == 1
    assert report.stats.errors == 1
