from __future__ import annotations

import argparse
import asyncio
import logging
from typing import List, Tuple

from ..config import CrawlConfig
from ..utils.logging import setup_logging
from ..utils.loader import load_adapter
from ..adapters.registry import AdapterRegistry
from ..engines.base import CrawlError, CrawlReport
from ..engines.catalog_engine import CatalogCrawlEngine
from ..engines.progress import ProgressEvent, ProgressStage
from ..export.base import Exporter
from ..export.csv_exporter import CSVExporter
from ..export.json_exporter import JSONExporter

logger = logging.getLogger(__name__)

# Log every Nth product while scraping; other stages are always logged.
PROGRESS_LOG_EVERY = 25


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Discover and extract every product of an e-commerce site")
    p.add_argument("base_url", nargs="?", help="Storefront root URL (default from config)")
    p.add_argument("--config", type=str, help="Path to config JSON", default=None)
    p.add_argument("--adapter", type=str, default=None,
                   help="Adapter name (generic, concrete5, or a plugin). Auto-detection only picks "
                   "concrete5 for /index.php URLs; pass --adapter concrete5 when crawling such a site from its root")
    p.add_argument("--extra-adapters", type=str, default=None,
                   help="Comma-separated dotted paths for additional adapters")
    p.add_argument("--delay", type=float, default=None, help="Politeness delay between fetches, seconds")
    p.add_argument("--timeout", type=float, default=None, help="Per-request timeout, seconds")
    p.add_argument("--max-pages", type=int, default=None, help="Pagination ceiling per listing")
    p.add_argument("--concurrency", type=int, default=None, help="Product-page workers (default 1)")
    p.add_argument("--output", type=str, default=None, help="JSON output file path")
    p.add_argument("--csv-output", type=str, default=None, help="CSV output file path")
    p.add_argument("--no-csv", action="store_true", help="Skip the CSV export")
    p.add_argument("--log-level", type=str, default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
    p.add_argument("--serve", action="store_true", help="Run REST API server instead of CLI crawl")
    p.add_argument("--host", type=str, default="127.0.0.1", help="API host (when --serve)")
    p.add_argument("--port", type=int, default=8000, help="API port (when --serve)")
    return p


def _load_config(args: argparse.Namespace) -> CrawlConfig:
    if args.config:
        cfg = CrawlConfig.from_file(args.config)
    else:
        cfg = CrawlConfig.from_env()

    if args.base_url:
        cfg.base_url = args.base_url
    if args.adapter:
        cfg.adapter = args.adapter
    if args.extra_adapters:
        cfg.extra_adapters = [a.strip() for a in args.extra_adapters.split(",") if a.strip()]
    if args.delay is not None:
        cfg.politeness_delay = args.delay
    if args.timeout is not None:
        cfg.request_timeout = args.timeout
    if args.max_pages is not None:
        cfg.max_pagination_depth = args.max_pages
    if args.concurrency is not None:
        cfg.max_concurrency = args.concurrency
    if args.output:
        cfg.output_path = args.output
    if args.csv_output:
        cfg.csv_output_path = args.csv_output
    if args.no_csv:
        cfg.csv_output_path = None

    cfg.validate()
    return cfg


def build_registry(cfg: CrawlConfig) -> AdapterRegistry:
    registry = AdapterRegistry()
    # Allow runtime registration of additional adapters
    for dotted in cfg.extra_adapters:
        try:
            registry.register(load_adapter(dotted))
        except (ImportError, ValueError) as exc:
            logger.warning("Failed to load adapter %s: %r", dotted, exc)
    return registry


def build_sinks(cfg: CrawlConfig) -> List[Tuple[Exporter, str]]:
    sinks: List[Tuple[Exporter, str]] = [(JSONExporter(), cfg.output_path)]
    if cfg.csv_output_path:
        sinks.append((CSVExporter(), cfg.csv_output_path))
    return sinks


def log_progress(event: ProgressEvent) -> None:
    if (
        event.stage is ProgressStage.SCRAPING_PRODUCTS
        and event.current % PROGRESS_LOG_EVERY
        and event.current != event.total
    ):
        return
    level = logging.ERROR if event.stage is ProgressStage.ERROR else logging.INFO
    logger.log(level, "[%s] %3d%% %s (products: %d)",
               event.stage.value, event.percentage, event.message, event.products_found)


def run_server(host: str, port: int) -> None:
    try:
        import uvicorn  # type: ignore
    except ImportError as exc:  # pragma: no cover - optional dep
        raise SystemExit("To run the API, install the api extra: pip install 'catalog-crawler[api]'") from exc
    uvicorn.run("catalog_crawler.apis.app:app", host=host, port=port)


def run_cli(argv: List[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.serve:
        run_server(args.host, args.port)
        return 0

    try:
        cfg = _load_config(args)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    engine = CatalogCrawlEngine(
        cfg,
        registry=build_registry(cfg),
        observer=log_progress,
        sinks=build_sinks(cfg),
    )

    try:
        report: CrawlReport = asyncio.run(engine.crawl())
    except CrawlError as exc:
        logger.error("Crawl aborted: %s", exc)
        return 1

    logger.info("Products: %s | Categories: %s | Brands: %s | Output: %s",
                report.total_products,
                len(report.categories),
                len(report.brands),
                cfg.output_path)
    return 0
