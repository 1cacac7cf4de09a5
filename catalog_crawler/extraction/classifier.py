"""
Product-page vs listing-page classification.

Two phases. Listing disqualifiers run first, because single-signal checks
("has an h1", "has a price") fire on category pages titled "Shop" too.
Only pages that survive them are scored: one strong indicator is enough,
otherwise weak indicators have to corroborate each other.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Set, Tuple

from bs4 import BeautifulSoup

from .links import DEFAULT_PATTERNS, LinkPatterns
from ..utils.parsing import clean_text, find_jsonld_product, node_text

SKU_MARKER_RE = re.compile(r"\bSKU\s*[:#]\s*[A-Za-z0-9\-]+", re.IGNORECASE)
FORMATTED_PRICE_RE = re.compile(r"\$\s?\d{1,3}(?:,\d{3})*\.\d{2}\b")

GENERIC_LISTING_TITLES: Tuple[str, ...] = (
    "shop",
    "shop all",
    "store",
    "products",
    "all products",
    "featured products",
    "new products",
    "catalog",
    "categories",
    "brands",
    "search",
    "search results",
    "home",
)

# Links inside these are "you may also like" panels on detail pages.
RELATED_PANEL_SELECTORS = (
    ".related", ".related-products", ".upsell", ".upsells", ".cross-sell",
    ".recommended", ".recently-viewed", "#related-products",
)
PRODUCT_GRID_SELECTORS = (
    ".product-grid", ".products-grid", ".product-list", ".products",
    ".product-listing", ".ccm-page-list", "ul.products",
)
PAGINATION_SELECTORS = (
    ".pagination", ".ccm-pagination", ".pager", "nav[aria-label*=agination]",
    'a[rel="next"]', 'a[href*="ccm_paging_p="]', 'a[href*="page="]',
)
DETAIL_CONTAINER_SELECTORS = (
    ".product-details", ".product-detail", ".product-single", "#product-detail",
    ".product-page",
)
PRICE_SELECTORS = (".product-price", ".price", "[itemprop=price]", ".current-price", ".sale-price")
ADD_TO_CART_SELECTORS = (
    ".add-to-cart", "button.add-to-cart", "[name=add-to-cart]", 'form[action*="cart"]',
    "#add-to-cart", ".btn-cart",
)
DESCRIPTION_SELECTORS = (".product-description", "[itemprop=description]", "#product-description")
QUANTITY_SELECTORS = ('input[name*="qty"]', 'input[name*="quantity"]', "select[name*=quantity]")


@dataclass(frozen=True)
class ClassifierThresholds:
    """Tuned against one storefront's markup; retune before trusting them elsewhere."""

    max_listing_links: int = 5
    weak_threshold: int = 3


@dataclass(frozen=True)
class Classification:
    is_product: bool
    reason: str

    def __bool__(self) -> bool:
        return self.is_product


def _any(soup: BeautifulSoup, selectors: Tuple[str, ...]) -> bool:
    return any(soup.select_one(sel) is not None for sel in selectors)


def primary_heading(soup: BeautifulSoup) -> str:
    return node_text(soup.find("h1"))


def count_product_links(soup: BeautifulSoup, patterns: LinkPatterns = DEFAULT_PATTERNS) -> int:
    """Distinct product-style hrefs on the page, ignoring related-product panels."""
    product_re = patterns.product_path_re()
    related = {id(panel) for sel in RELATED_PANEL_SELECTORS for panel in soup.select(sel)}
    hrefs: Set[str] = set()
    for sel in patterns.product_path_selectors + patterns.product_card_selectors:
        for anchor in soup.select(sel):
            href = (anchor.get("href") or "").strip()
            if not href or href.startswith("#"):
                continue
            if sel in patterns.product_path_selectors and not product_re.search(href.split("?")[0]):
                continue
            if any(id(parent) in related for parent in anchor.parents):
                continue
            hrefs.add(href.split("#")[0])
    return len(hrefs)


def _generic_title(heading: str) -> Optional[str]:
    lowered = clean_text(heading).lower()
    for title in GENERIC_LISTING_TITLES:
        if lowered == title or re.match(rf"^{re.escape(title)}\b", lowered):
            return title
    return None


def _has_schema_product(soup: BeautifulSoup) -> bool:
    if find_jsonld_product(soup) is not None:
        return True
    return soup.select_one('[itemtype*="schema.org/Product"]') is not None


def _og_type_product(soup: BeautifulSoup) -> bool:
    meta = soup.find("meta", attrs={"property": "og:type"})
    return bool(meta) and (meta.get("content") or "").strip().lower() == "product"


def _has_add_to_cart(soup: BeautifulSoup) -> bool:
    if _any(soup, ADD_TO_CART_SELECTORS):
        return True
    for control in soup.find_all(["button", "input"]):
        label = control.get("value") if control.name == "input" else control.get_text(" ")
        if label and "add to cart" in label.lower():
            return True
    return False


def classify_page(
    soup: BeautifulSoup,
    thresholds: ClassifierThresholds = ClassifierThresholds(),
    patterns: LinkPatterns = DEFAULT_PATTERNS,
) -> Classification:
    heading = primary_heading(soup)
    has_sku_marker = bool(SKU_MARKER_RE.search(heading))

    # Phase 1: listing disqualifiers
    link_count = count_product_links(soup, patterns)
    if link_count > thresholds.max_listing_links:
        return Classification(False, f"listing: {link_count} product links")
    if _any(soup, PRODUCT_GRID_SELECTORS) and _any(soup, PAGINATION_SELECTORS):
        return Classification(False, "listing: product grid with pagination")
    generic = _generic_title(heading)
    if generic and not has_sku_marker:
        return Classification(False, f"listing: generic heading {heading!r}")

    # Phase 2: strong indicators
    if has_sku_marker:
        return Classification(True, "strong: SKU marker in heading")
    if _any(soup, DETAIL_CONTAINER_SELECTORS):
        return Classification(True, "strong: product detail container")
    if _og_type_product(soup):
        return Classification(True, "strong: og:type=product")
    if _has_schema_product(soup):
        return Classification(True, "strong: schema.org Product")

    # Phase 2: weak indicators
    body = soup.body or soup
    weak = {
        "price element": _any(soup, PRICE_SELECTORS),
        "add to cart": _has_add_to_cart(soup),
        "description block": _any(soup, DESCRIPTION_SELECTORS),
        "formatted price": bool(FORMATTED_PRICE_RE.search(body.get_text(" "))),
        "quantity input": _any(soup, QUANTITY_SELECTORS),
    }
    hits = [name for name, present in weak.items() if present]
    if len(hits) >= thresholds.weak_threshold:
        return Classification(True, "weak: " + ", ".join(hits))
    return Classification(False, f"insufficient indicators ({len(hits)}/{thresholds.weak_threshold})")


def is_product_page(
    soup: BeautifulSoup,
    thresholds: ClassifierThresholds = ClassifierThresholds(),
    patterns: LinkPatterns = DEFAULT_PATTERNS,
) -> bool:
    return classify_page(soup, thresholds, patterns).is_product
