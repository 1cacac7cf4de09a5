from __future__ import annotations

from dataclasses import replace
from typing import List, Optional, TYPE_CHECKING

from bs4 import BeautifulSoup

from .base import PageLinks, Product
from ..extraction.classifier import Classification, ClassifierThresholds, classify_page
from ..extraction.fields import KNOWN_BRANDS, ExtractionOptions, extract_product
from ..extraction.links import DEFAULT_PATTERNS, LinkPatterns, extract_links
from ..utils.parsing import with_query_param

if TYPE_CHECKING:
    from ..config import CrawlConfig


class GenericAdapter:
    """
    A generic, domain-agnostic adapter built on the shared heuristics.
    Acts as a safe fallback when no specific adapter matches a URL.
    """
    name = "generic"
    domains: List[str] = []  # matches any
    pagination_param = "page"
    fallback_paths: List[str] = []
    link_patterns: LinkPatterns = DEFAULT_PATTERNS

    def __init__(self) -> None:
        self.thresholds = ClassifierThresholds()
        self.options = ExtractionOptions()

    def configure(self, config: "CrawlConfig") -> "GenericAdapter":
        """Apply tuning knobs from the crawl configuration; returns self."""
        self.thresholds = ClassifierThresholds(
            max_listing_links=config.max_listing_links,
            weak_threshold=config.weak_indicator_threshold,
        )
        self.options = replace(
            self.options,
            sku_prefix=config.sku_prefix,
            default_inventory=config.default_inventory,
            known_brands=tuple(config.known_brands) + KNOWN_BRANDS,
        )
        if config.pagination_param:
            self.pagination_param = config.pagination_param
        return self

    def matches(self, url: str) -> bool:  # pragma: no cover - trivial
        return True

    def page_url(self, listing_url: str, page: int) -> str:
        """URL of page ``page`` (1-based) of a paginated listing."""
        if page <= 1:
            return listing_url
        return with_query_param(listing_url, self.pagination_param, page)

    def extract_links(self, soup: BeautifulSoup, base_url: str) -> PageLinks:
        return extract_links(soup, base_url, self.link_patterns, self.pagination_param)

    def classify(self, soup: BeautifulSoup) -> Classification:
        return classify_page(soup, self.thresholds, self.link_patterns)

    def extract_product(self, soup: BeautifulSoup, url: str) -> Optional[Product]:
        return extract_product(soup, url, self.options)
