from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup

from ..adapters.base import PageLinks
from ..utils.parsing import absolute_url, humanize_slug, same_site

GENERIC_PATH_SEGMENTS = frozenset(
    {"index.php", "shop", "store", "products", "product", "catalog", "categories",
     "category", "brands", "brand", "collections", "item", "items", "p", "all", "home"}
)

_SKIP_SCHEMES = ("mailto:", "tel:", "javascript:", "data:")


@dataclass(frozen=True)
class LinkPatterns:
    """Ordered selector patterns used to find product and listing anchors."""

    # Anchors whose href carries a product path segment; the segment must be
    # followed by a slug so the bare /products index is not a product link.
    product_path_selectors: Tuple[str, ...] = (
        'a[href*="/product"]',
        'a[href*="/item"]',
        'a[href*="/p/"]',
    )
    product_segments: Tuple[str, ...] = ("product", "products", "item", "items", "p")
    # Anchors identified by the card they sit in rather than by their href.
    product_card_selectors: Tuple[str, ...] = (
        "a.product-link",
        ".product-item a[href]",
        ".product-card a[href]",
        ".product-title a[href]",
    )
    category_selectors: Tuple[str, ...] = (
        'a[href*="/category"]',
        'a[href*="/categories"]',
        'a[href*="/brand"]',
        'a[href*="/shop"]',
        'a[href*="/collections"]',
        "a.category-link",
        ".category-list a[href]",
        ".brand-list a[href]",
    )
    brand_segments: Tuple[str, ...] = ("brand", "brands", "manufacturer", "manufacturers")

    def product_path_re(self) -> "re.Pattern[str]":
        alternatives = "|".join(re.escape(s) for s in self.product_segments)
        return re.compile(rf"/(?:{alternatives})/[^/?#]+", re.IGNORECASE)


DEFAULT_PATTERNS = LinkPatterns()


def _hrefs(soup: BeautifulSoup, selectors: Iterable[str]) -> Iterable[str]:
    for selector in selectors:
        for anchor in soup.select(selector):
            href = anchor.get("href")
            if href and href.strip():
                yield href.strip()


def _usable(href: str) -> bool:
    lowered = href.lower()
    return not lowered.startswith("#") and not lowered.startswith(_SKIP_SCHEMES)


def _has_param(url: str, param: Optional[str]) -> bool:
    return bool(param) and param in parse_qs(urlparse(url).query)


def extract_links(
    soup: BeautifulSoup,
    base_url: str,
    patterns: LinkPatterns = DEFAULT_PATTERNS,
    pagination_param: Optional[str] = None,
) -> PageLinks:
    """
    Collect candidate product links and category/brand links from a parsed page.

    Links are resolved against ``base_url``, restricted to the same site and
    deduplicated in first-seen order. Pure: knows nothing about crawl history.
    """
    product_re = patterns.product_path_re()
    page_url = absolute_url(base_url, base_url)

    products: List[str] = []
    seen_products = set()

    def _add_product(url: str) -> None:
        if url in seen_products or url == page_url:
            return
        if not same_site(url, base_url) or _has_param(url, pagination_param):
            return
        seen_products.add(url)
        products.append(url)

    for href in _hrefs(soup, patterns.product_path_selectors):
        if not _usable(href):
            continue
        url = absolute_url(href, base_url)
        if product_re.search(urlparse(url).path):
            _add_product(url)

    for href in _hrefs(soup, patterns.product_card_selectors):
        if _usable(href):
            _add_product(absolute_url(href, base_url))

    categories: List[str] = []
    seen_categories = set()
    for href in _hrefs(soup, patterns.category_selectors):
        # In-page fragments (#reviews, /shop#top) never lead to a new listing.
        if "#" in href or not _usable(href):
            continue
        url = absolute_url(href, base_url)
        if url in seen_categories or url in seen_products or url == page_url:
            continue
        if not same_site(url, base_url) or product_re.search(urlparse(url).path):
            continue
        seen_categories.add(url)
        categories.append(url)

    return PageLinks(product_links=products, category_links=categories)


def listing_label(url: str, patterns: LinkPatterns = DEFAULT_PATTERNS) -> Tuple[str, str]:
    """
    ``(kind, label)`` for a listing URL, kind being ``"brand"`` or ``"category"``.

    The label is the humanized last non-generic path segment, or "" when the
    path is generic (e.g. /shop or /index.php/products).
    """
    segments = [s for s in urlparse(url).path.split("/") if s]
    lowered = [s.lower() for s in segments]
    kind = "brand" if any(s in patterns.brand_segments for s in lowered) else "category"
    for segment in reversed(segments):
        if segment.lower() not in GENERIC_PATH_SEGMENTS:
            return kind, humanize_slug(re.sub(r"\.(html?|php)$", "", segment))
    return kind, ""
