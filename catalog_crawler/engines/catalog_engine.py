from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Sequence, Set, Tuple

from bs4 import BeautifulSoup

from .base import CrawlEngine, CrawlReport, CrawlState, HomepageFetchError
from .progress import ProgressChannel, ProgressEvent, ProgressObserver, ProgressStage, percent
from ..config import CrawlConfig
from ..adapters.base import Product, SiteAdapter
from ..adapters.registry import AdapterRegistry
from ..export.base import Exporter
from ..extraction.fields import is_generic_category
from ..extraction.health import categorize
from ..extraction.links import listing_label
from ..extraction.classifier import primary_heading
from ..utils.http import FetchError, FetchResult, HttpFetcher
from ..utils.parsing import absolute_url, make_soup, normalize_url

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[FetchResult]]


class CatalogCrawlEngine(CrawlEngine):
    """
    Discovers every product page of a storefront and extracts it.

    - Engine owns HTTP, the crawl state, politeness and progress.
    - Adapters own page parsing (links, classification, fields).
    - Listing discovery runs in order; product pages are scraped by a small
      worker pool sharing one worklist, each worker pausing between fetches.
    """
    def __init__(
        self,
        config: CrawlConfig,
        adapter: Optional[SiteAdapter] = None,
        registry: Optional[AdapterRegistry] = None,
        fetcher: Optional[Fetcher] = None,
        observer: Optional[ProgressObserver] = None,
        sinks: Sequence[Tuple[Exporter, str]] = (),
    ) -> None:
        self.config = config
        if adapter is None:
            registry = registry or AdapterRegistry()
            # Try entry-point discovery; a broken plugin is logged, not fatal.
            registry.discover_entry_points()
            adapter = registry.resolve(config.adapter, config.base_url)
        configure = getattr(adapter, "configure", None)
        self.adapter = configure(config) if callable(configure) else adapter
        self.fetcher = fetcher
        self.observer = observer
        self.sinks = list(sinks)
        self.state: Optional[CrawlState] = None
        self._cancel = asyncio.Event()
        self._progress = ProgressChannel()

    # ---- Control ----------------------------------------------------------

    def cancel(self) -> None:
        """Stop at the top of the next loop iteration; partial results are still saved."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def latest_event(self) -> Optional[ProgressEvent]:
        return self._progress.latest

    # ---- Lifecycle --------------------------------------------------------

    async def crawl(self) -> CrawlReport:
        cfg = self.config
        state = CrawlState()
        state.stats.started_at = datetime.now(timezone.utc)
        self.state = state

        self._progress = ProgressChannel(self.observer, cfg.progress_buffer)
        async with self._progress:
            self._emit(ProgressStage.INIT, f"Starting crawl of {cfg.base_url} with adapter {self.adapter.name!r}")
            if self.fetcher is not None:
                return await self._run(state, self.fetcher)
            async with HttpFetcher(cfg.user_agent, cfg.request_timeout) as fetcher:
                return await self._run(state, fetcher)

    async def _run(self, state: CrawlState, fetch: Fetcher) -> CrawlReport:
        try:
            worklist = await self._discover(state, fetch)
        except HomepageFetchError as exc:
            state.stats.finished_at = datetime.now(timezone.utc)
            self._emit(ProgressStage.ERROR, str(exc))
            raise

        await self._scrape(state, fetch, worklist)

        state.stats.cancelled = self.cancelled
        state.stats.finished_at = datetime.now(timezone.utc)
        report = state.to_report(worklist_size=len(worklist))

        self._emit(ProgressStage.SAVING, f"Saving {report.total_products} products",
                   current=len(worklist), total=len(worklist))
        self._save(report)

        stats = report.stats
        self._emit(
            ProgressStage.COMPLETE,
            f"Crawl {'cancelled' if stats.cancelled else 'complete'}: {report.total_products} products, "
            f"{len(report.categories)} categories, {len(report.brands)} brands, "
            f"{stats.pages_scanned} pages, {stats.errors} errors, {stats.duplicates} duplicates, "
            f"{stats.skipped} skipped in {stats.duration:.1f}s",
            current=len(worklist),
            total=len(worklist),
        )
        logger.info("Crawl finished: %s products from %s pages", report.total_products, stats.pages_scanned)
        return report

    # ---- Discovery --------------------------------------------------------

    async def _discover(self, state: CrawlState, fetch: Fetcher) -> List[str]:
        cfg = self.config
        homepage = normalize_url(cfg.base_url)
        self._emit(ProgressStage.DISCOVERY, f"Fetching homepage {homepage}")

        soup, error = await self._fetch(state, fetch, homepage)
        if soup is None:
            raise HomepageFetchError(homepage, error)

        links = self.adapter.extract_links(soup, homepage)
        for url in links.product_links:
            state.discover(url)

        listings: List[str] = []
        fallback = [absolute_url(p, cfg.root_url + "/") for p in [*self.adapter.fallback_paths, *cfg.fallback_paths]]
        for url in [*links.category_links, *fallback]:
            if url != homepage and url not in listings:
                listings.append(url)
        logger.info("Homepage yielded %d listing pages and %d product links", len(listings), len(links.product_links))

        for index, listing in enumerate(listings, start=1):
            if self.cancelled:
                break
            self._emit(
                ProgressStage.DISCOVERY,
                f"Scanning listing {listing}",
                current=index,
                total=len(listings),
                percentage=percent(index - 1, len(listings)),
            )
            try:
                await self._scan_listing(state, fetch, listing)
            except Exception:
                # A broken listing costs its own links, not the crawl.
                state.stats.errors += 1
                logger.exception("Unexpected failure scanning listing %s", listing)

        worklist = state.worklist()
        logger.info("Discovery complete: %d product URLs to scrape", len(worklist))
        return worklist

    async def _scan_listing(self, state: CrawlState, fetch: Fetcher, listing_url: str) -> None:
        """Follow one listing's pagination until a page adds no new product links."""
        kind, label = listing_label(listing_url, self.adapter.link_patterns)
        # Links already found elsewhere still count as new for this listing.
        seen: Set[str] = set()
        for page in range(1, self.config.max_pagination_depth + 1):
            if self.cancelled:
                return
            url = self.adapter.page_url(listing_url, page)
            if url in state.visited:
                return
            soup, _ = await self._fetch(state, fetch, url)
            if soup is None:
                return
            if page == 1 and not label:
                heading = primary_heading(soup)
                label = heading if heading and not is_generic_category(heading) and len(heading) <= 80 else ""

            links = self.adapter.extract_links(soup, url)
            new = [u for u in links.product_links if u not in seen]
            for u in links.product_links:
                state.discover(u, kind, label)
            seen.update(new)
            logger.debug("%s page %d: %d product links, %d new", listing_url, page, len(links.product_links), len(new))
            if not new:
                return

    # ---- Scraping ---------------------------------------------------------

    async def _scrape(self, state: CrawlState, fetch: Fetcher, worklist: List[str]) -> None:
        total = len(worklist)
        queue: asyncio.Queue[str] = asyncio.Queue()
        for url in worklist:
            queue.put_nowait(url)
        processed = 0

        async def worker() -> None:
            nonlocal processed
            while not self.cancelled:
                try:
                    url = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    await self._scrape_one(state, fetch, url)
                except Exception:
                    # One malformed page must not end the crawl.
                    state.stats.errors += 1
                    logger.exception("Unexpected failure scraping %s", url)
                finally:
                    processed += 1
                    self._emit(
                        ProgressStage.SCRAPING_PRODUCTS,
                        f"Processed {url}",
                        current=processed,
                        total=total,
                        percentage=percent(processed, total),
                    )

        workers = [asyncio.create_task(worker()) for _ in range(max(1, min(self.config.max_concurrency, total)))]
        await asyncio.gather(*workers)

    async def _scrape_one(self, state: CrawlState, fetch: Fetcher, url: str) -> None:
        soup, _ = await self._fetch(state, fetch, url)
        if soup is None:
            return

        verdict = self.adapter.classify(soup)
        if not verdict.is_product:
            state.stats.skipped += 1
            logger.debug("Skipping %s (%s)", url, verdict.reason)
            return

        product = self.adapter.extract_product(soup, url)
        if product is None:
            state.stats.skipped += 1
            logger.debug("Skipping %s: extraction found no valid product", url)
            return

        product.health_categories = categorize(product.name, product.description)
        self._backfill(state, product)
        if state.add_product(product):
            logger.info("Found product: %s (%s)", product.name, product.sku)
        else:
            logger.debug("Duplicate product %s (%s) at %s", product.name, product.sku, url)

    def _backfill(self, state: CrawlState, product: Product) -> None:
        meta = state.link_metadata.get(product.url)
        if meta is None:
            return
        if meta.category and is_generic_category(product.category):
            product.category = meta.category
        if meta.brand and not product.brand:
            product.brand = meta.brand

    # ---- Helpers ----------------------------------------------------------

    async def _fetch(
        self, state: CrawlState, fetch: Fetcher, url: str
    ) -> Tuple[Optional[BeautifulSoup], Optional[FetchError]]:
        state.visited.add(url)
        result = await fetch(url)
        await self._pause()
        if not result.ok:
            state.stats.errors += 1
            logger.warning("Fetch failed for %s: %s", url, result.error)
            return None, result.error
        state.stats.pages_scanned += 1
        return make_soup(result.html or ""), None

    async def _pause(self) -> None:
        if self.config.politeness_delay > 0:
            await asyncio.sleep(self.config.politeness_delay)

    def _save(self, report: CrawlReport) -> None:
        for exporter, path in self.sinks:
            try:
                exporter.export(report, path)
            except OSError as exc:
                self._emit(ProgressStage.ERROR, f"Could not write {path}: {exc}")
                raise
            logger.info("Wrote %s products to %s", report.total_products, path)

    def _emit(
        self,
        stage: ProgressStage,
        message: str,
        *,
        current: int = 0,
        total: int = 0,
        percentage: Optional[int] = None,
    ) -> None:
        if percentage is None:
            percentage = 100 if stage is ProgressStage.COMPLETE else percent(current, total)
        products = len(self.state.products) if self.state else 0
        self._progress.publish(ProgressEvent(stage, message, current, total, percentage, products))
