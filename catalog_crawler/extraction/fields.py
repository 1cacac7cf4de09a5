"""
Field extraction for product detail pages.

Every field is resolved through an ordered tuple of small strategies
``(ProductPage) -> value | None``; :func:`first_of` takes the first non-empty
result. Later strategies only exist as degradation paths for pages that lack
the more reliable sources (structured data, meta tags).
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import partial
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from ..adapters.base import Product, ProductImage
from ..utils.parsing import (
    absolute_url,
    clean_text,
    generate_sku,
    humanize_slug,
    jsonld_offer,
    node_text,
    parse_price,
)
from .classifier import primary_heading
from .links import GENERIC_PATH_SEGMENTS
from .strategies import ProductPage, first_of

logger = logging.getLogger(__name__)

HEADING_SKU_RE = re.compile(r"^(?P<name>.*?)\s*\bSKU\s*[:#]\s*(?P<sku>[A-Za-z0-9\-]+)", re.IGNORECASE)
LABELLED_SKU_RE = re.compile(r"(?:SKU|Item\s*(?:No\.?|#)|Product\s+Code|Code)\s*[:#]?\s*([A-Za-z0-9\-]+)", re.IGNORECASE)
SKU_TOKEN_RE = re.compile(r"^[A-Za-z0-9\-]{2,40}$")
WEIGHT_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s*(fl\.?\s?oz|oz|lbs?|kg|mg|g|ml|l|capsules|caps|vcaps|tablets|tabs|softgels|count|ct)\b",
    re.IGNORECASE,
)
FIRST_SENTENCE_RE = re.compile(r"^(.+?[.!?])(?:\s|$)")
PLACEHOLDER_RE = re.compile(
    r"placeholder|spacer|blank\.gif|pixel\.gif|transparent\.(?:gif|png)|no[-_]?image|loading|/icons?/|icon[-_.]|logo",
    re.IGNORECASE,
)
BOILERPLATE_RE = re.compile(
    r"add to (?:cart|bag|wishlist)|quantity|\bqty\b|\bsku\s*:|share (?:this|on)|checkout|sign in|"
    r"my account|continue shopping|free shipping on",
    re.IGNORECASE,
)
SECTION_STOP_RE = re.compile(r"related products|you may also like|customer reviews|write a review", re.IGNORECASE)
OUT_OF_STOCK_RE = re.compile(r"out of stock|sold out|currently unavailable|not available", re.IGNORECASE)

NAME_STOPLIST = frozenset(
    {"shop", "shop all", "products", "product", "home", "store", "catalog", "search",
     "search results", "all products", "featured products", "new products", "categories",
     "brands", "cart", "shopping cart", "checkout", "page not found", "not found"}
)
GENERIC_CATEGORY_NAMES = frozenset(
    {"home", "shop", "store", "products", "all products", "catalog", "categories", "category",
     "brands", "general", "search", "index.php", "featured products"}
)

KNOWN_BRANDS: Tuple[str, ...] = (
    "Advanced Orthomolecular Research",
    "AC Grace",
    "APS",
    "Cardio Amaze",
    "Doctors Blend",
    "Garden of Life",
    "Global Healing",
    "Herbs for Life",
    "HM Enterprise",
    "Host Defense",
    "Irwin Naturals",
    "Life Extension",
    "Miracle II",
    "Nature's Plus",
    "Natures Plus",
    "Nature's Sunshine",
    "Nature's Way",
    "Newton Labs",
    "Now Foods",
    "Regal Labs",
    "Standard Enzyme",
    "Terry Naturally",
    "Unicity",
)

MIN_DESCRIPTION = 50
MAX_DESCRIPTION = 5000
SHORT_DESCRIPTION = 200
MIN_NAME = 5


@dataclass(frozen=True)
class ExtractionOptions:
    sku_prefix: str = "SKU"
    default_inventory: int = 50
    known_brands: Tuple[str, ...] = KNOWN_BRANDS
    extra_name_stoplist: frozenset = field(default_factory=frozenset)


# ---- Small helpers -----------------------------------------------------------


def _scope(page: ProductPage):
    return page.container if page.container is not None else page.soup


def _select_text(root, selectors: Iterable[str]) -> str:
    for selector in selectors:
        text = node_text(root.select_one(selector))
        if text:
            return text
    return ""


def _strip_label(text: str, label: str) -> str:
    return clean_text(re.sub(rf"^\s*{label}\s*[:\-]?\s*", "", text, flags=re.IGNORECASE))


def is_hidden(node: Tag) -> bool:
    """True when the node or an ancestor is hidden via attribute, style or utility class."""
    for el in [node, *node.parents]:
        if not isinstance(el, Tag) or el.name in ("[document]", "html"):
            continue
        if el.has_attr("hidden") or (el.get("aria-hidden") or "").lower() == "true":
            return True
        style = (el.get("style") or "").replace(" ", "").lower()
        if "display:none" in style or "visibility:hidden" in style:
            return True
        classes = {c.lower() for c in el.get("class") or []}
        if classes & {"hidden", "d-none", "hide", "is-hidden", "visually-hidden"}:
            return True
    return False


def is_valid_name(name: str, extra_stoplist: Iterable[str] = ()) -> bool:
    """Names that are empty, too short, or generic page titles mean a misclassified listing page."""
    cleaned = clean_text(name)
    if len(cleaned) < MIN_NAME:
        return False
    key = cleaned.lower().strip(" :-|")
    return key not in NAME_STOPLIST and key not in set(extra_stoplist)


def is_generic_category(value: str) -> bool:
    return not value or clean_text(value).lower() in GENERIC_CATEGORY_NAMES


# ---- Name / SKU --------------------------------------------------------------


def name_from_heading(page: ProductPage) -> Optional[str]:
    heading = primary_heading(page.soup)
    match = HEADING_SKU_RE.match(heading)
    if match:
        return clean_text(match.group("name")) or None
    return heading or None


def name_from_elements(page: ProductPage) -> Optional[str]:
    return _select_text(page.soup, (".product-title", ".product-name", "[itemprop=name]")) or None


def name_from_jsonld(page: ProductPage) -> Optional[str]:
    return clean_text(str(page.jsonld.get("name") or "")) or None


def name_from_meta(page: ProductPage) -> Optional[str]:
    return clean_text(page.meta("og:title", "twitter:title")) or None


def name_from_title_tag(page: ProductPage) -> Optional[str]:
    title = node_text(page.soup.find("title"))
    return clean_text(re.split(r"\s+[|–—-]\s+", title)[0]) or None


NAME_STRATEGIES = (name_from_heading, name_from_elements, name_from_jsonld, name_from_meta, name_from_title_tag)


def sku_from_heading(page: ProductPage) -> Optional[str]:
    match = HEADING_SKU_RE.match(primary_heading(page.soup))
    return match.group("sku") if match else None


def sku_from_elements(page: ProductPage) -> Optional[str]:
    tagged = page.soup.select_one("[data-sku]")
    if tagged is not None and (tagged.get("data-sku") or "").strip():
        return tagged["data-sku"].strip()
    text = _select_text(page.soup, (".product-sku", ".sku", ".product-code", "[itemprop=sku]"))
    if not text:
        return None
    match = LABELLED_SKU_RE.search(text)
    if match:
        return match.group(1)
    return text if SKU_TOKEN_RE.match(text) else None


def sku_from_structured(page: ProductPage) -> Optional[str]:
    for key in ("sku", "mpn", "productID"):
        value = page.jsonld.get(key)
        if value:
            return clean_text(str(value))
    return page.meta("product:retailer_item_id", "sku") or None


SKU_STRATEGIES = (sku_from_heading, sku_from_elements, sku_from_structured)


# ---- Price ---------------------------------------------------------------------

PRICE_SELECTORS = (".product-price", ".price", "[itemprop=price]", ".current-price", ".sale-price", ".our-price")
COMPARE_PRICE_SELECTORS = (".compare-price", ".original-price", ".was-price", ".regular-price", ".old-price")
_COMPARE_CLASSES = {"compare-price", "original-price", "was-price", "regular-price", "old-price"}


def price_from_jsonld(page: ProductPage) -> Optional[float]:
    offer = jsonld_offer(page.jsonld)
    for key in ("price", "lowPrice"):
        value = parse_price(offer.get(key), require_symbol=False)
        if value is not None:
            return value
    return None


def price_from_meta(page: ProductPage) -> Optional[float]:
    for key in ("product:price:amount", "og:price:amount", "price"):
        value = parse_price(page.meta(key) or None, require_symbol=False)
        if value is not None:
            return value
    return None


def price_from_data_attributes(page: ProductPage) -> Optional[float]:
    for attr in ("data-price", "data-product-price", "data-price-amount"):
        for node in _scope(page).select(f"[{attr}]"):
            value = parse_price(node.get(attr), require_symbol=False)
            if value is not None:
                return value
    return None


def price_from_selectors(page: ProductPage) -> Optional[float]:
    if page.container is None:
        return None
    for selector in PRICE_SELECTORS:
        for node in page.container.select(selector):
            if _COMPARE_CLASSES & set(node.get("class") or []):
                continue
            value = parse_price(node_text(node))
            if value is not None:
                return value
    return None


def price_from_container_text(page: ProductPage) -> Optional[float]:
    if page.container is None:
        return None
    return parse_price(node_text(page.container))


PRICE_STRATEGIES = (
    price_from_jsonld,
    price_from_meta,
    price_from_data_attributes,
    price_from_selectors,
    price_from_container_text,
)


def compare_price(page: ProductPage) -> Optional[float]:
    for selector in COMPARE_PRICE_SELECTORS:
        node = _scope(page).select_one(selector)
        if node is not None:
            text = node_text(node)
            value = parse_price(text)
            if value is None:
                value = parse_price(text, require_symbol=False)
            if value is not None:
                return value
    return None


# ---- Description -----------------------------------------------------------------


def _cap(text: str) -> str:
    return text[:MAX_DESCRIPTION].rstrip()


def description_from_jsonld(page: ProductPage) -> Optional[str]:
    text = clean_text(str(page.jsonld.get("description") or ""))
    return _cap(text) if len(text) >= MIN_DESCRIPTION else None


def description_from_meta(page: ProductPage) -> Optional[str]:
    return _cap(clean_text(page.meta("description", "og:description"))) or None


def description_from_element(page: ProductPage) -> Optional[str]:
    for selector in (".product-description", "[itemprop=description]", "#product-description"):
        node = page.soup.select_one(selector)
        if node is None or node.name == "meta":
            continue
        text = node_text(node)
        if len(text) >= MIN_DESCRIPTION:
            return _cap(text)
    return None


def section_after_heading(soup: BeautifulSoup, pattern: str) -> str:
    """
    Text following a heading matching ``pattern``, gathered block by block
    until the next heading or MAX_DESCRIPTION characters.
    """
    title_re = re.compile(pattern, re.IGNORECASE)
    for heading in soup.find_all(["h2", "h3", "h4", "h5", "h6", "strong", "b", "dt"]):
        if not title_re.search(node_text(heading)):
            continue
        anchor = heading
        # <p><strong>Product Description</strong></p> style headings
        if heading.name in ("strong", "b") and heading.parent is not None and heading.parent.name == "p":
            anchor = heading.parent
        parts: List[str] = []
        total = 0
        for sibling in anchor.find_next_siblings():
            if sibling.name in ("h1", "h2", "h3", "h4", "h5", "h6"):
                break
            if sibling.find(["h2", "h3", "h4"]) is not None:
                break
            text = node_text(sibling)
            if not text:
                continue
            parts.append(text)
            total += len(text) + 1
            if total >= MAX_DESCRIPTION:
                break
        text = _cap(" ".join(parts))
        if text:
            return text
    return ""


def description_from_heading_section(page: ProductPage) -> Optional[str]:
    return section_after_heading(page.soup, r"product\s+description") or None


def description_after_price(page: ProductPage) -> Optional[str]:
    """Last resort: prose that follows the price line inside the product block."""
    root = _scope(page)
    lines = [clean_text(line) for line in root.get_text("\n").split("\n")]
    lines = [line for line in lines if line]
    start = next((i for i, line in enumerate(lines) if "$" in line), None)
    if start is None:
        return None
    kept: List[str] = []
    for line in lines[start + 1:]:
        if SECTION_STOP_RE.search(line):
            break
        if len(line) < 20 or "$" in line or BOILERPLATE_RE.search(line):
            continue
        kept.append(line)
        if sum(len(k) + 1 for k in kept) >= MAX_DESCRIPTION:
            break
    text = _cap(" ".join(kept))
    return text if len(text) >= MIN_DESCRIPTION else None


DESCRIPTION_STRATEGIES = (
    description_from_jsonld,
    description_from_meta,
    description_from_element,
    description_from_heading_section,
    description_after_price,
)


def short_description_from_element(page: ProductPage) -> Optional[str]:
    text = _select_text(page.soup, (".product-summary", ".short-description", ".product-excerpt", ".product-intro"))
    return text[:SHORT_DESCRIPTION] if len(text) > 10 else None


def summarize(description: str) -> str:
    """First sentence when it is short enough, else the first 200 characters."""
    description = clean_text(description)
    match = FIRST_SENTENCE_RE.match(description)
    if match and len(match.group(1)) <= SHORT_DESCRIPTION:
        return match.group(1)
    return description[:SHORT_DESCRIPTION].rstrip()


# ---- Images ----------------------------------------------------------------------

GALLERY_SELECTORS = (
    ".product-gallery", ".product-images", ".product-image", ".product-photos",
    ".main-image", ".product-img", ".product-thumbnails", ".gallery", ".slideshow",
)
_IMG_ATTRS = ("src", "data-src", "data-lazy-src", "data-zoom-image", "data-large_image")


def _jsonld_image_urls(page: ProductPage) -> List[str]:
    raw = page.jsonld.get("image")
    items = raw if isinstance(raw, list) else [raw]
    urls = []
    for item in items:
        if isinstance(item, str):
            urls.append(item)
        elif isinstance(item, dict):
            url = item.get("url") or item.get("contentUrl")
            if isinstance(url, str):
                urls.append(url)
    return urls


def _gallery_images(page: ProductPage) -> List[Tuple[str, str]]:
    found: List[Tuple[str, str]] = []
    containers = [c for sel in GALLERY_SELECTORS for c in page.soup.select(sel)]
    imgs = [img for c in containers for img in ([c] if c.name == "img" else c.find_all("img"))]
    imgs += page.soup.select("img[itemprop=image]")
    for img in imgs:
        src = next((img.get(a) for a in _IMG_ATTRS if (img.get(a) or "").strip()), None)
        if src:
            found.append((src, img.get("alt") or img.get("title") or ""))
    return found


def extract_images(page: ProductPage, name: str = "") -> List[ProductImage]:
    candidates: List[Tuple[str, str]] = [(u, "") for u in _jsonld_image_urls(page)]
    og_image = page.meta("og:image")
    if og_image:
        candidates.append((og_image, ""))
    candidates.extend(_gallery_images(page))

    images: List[ProductImage] = []
    seen = set()
    for src, alt in candidates:
        if src.strip().lower().startswith("data:"):
            continue
        url = absolute_url(src, page.url)
        if url in seen or PLACEHOLDER_RE.search(url):
            continue
        seen.add(url)
        images.append(ProductImage(url=url, alt_text=clean_text(alt) or name))
    return images


# ---- Brand / category --------------------------------------------------------------


def brand_from_element(page: ProductPage) -> Optional[str]:
    text = _select_text(page.soup, (".product-brand", "[itemprop=brand]")) or _select_text(
        _scope(page), (".brand", ".manufacturer", ".vendor")
    )
    text = _strip_label(text, r"(?:brand|by|manufacturer|vendor)")
    return text if 0 < len(text) <= 80 else None


def brand_from_jsonld(page: ProductPage) -> Optional[str]:
    brand = page.jsonld.get("brand")
    if isinstance(brand, dict):
        brand = brand.get("name")
    return clean_text(str(brand)) if brand else None


def match_known_brand(name: str, known_brands: Sequence[str]) -> Optional[str]:
    """Longest known brand occurring in ``name`` as whole words."""
    hits = [b for b in known_brands if re.search(rf"(?<!\w){re.escape(b)}(?!\w)", name, re.IGNORECASE)]
    return max(hits, key=len) if hits else None


def category_from_element(page: ProductPage) -> Optional[str]:
    text = _select_text(page.soup, (".product-category", "[itemprop=category]")) or _select_text(
        _scope(page), (".category",)
    )
    text = _strip_label(text, r"categor(?:y|ies)")
    return text if text and not is_generic_category(text) else None


def category_from_jsonld(page: ProductPage) -> Optional[str]:
    category = page.jsonld.get("category")
    if isinstance(category, list):
        category = category[-1] if category else None
    if not isinstance(category, str):
        return None
    last = clean_text(re.split(r"\s*[>/]\s*", category)[-1])
    return last if not is_generic_category(last) else None


def category_from_breadcrumb(page: ProductPage, name: str = "") -> Optional[str]:
    for selector in (
        ".breadcrumb a", ".breadcrumbs a", "nav[aria-label=breadcrumb] a",
        '[itemtype*="BreadcrumbList"] [itemprop=name]', ".breadcrumb li",
    ):
        crumbs = [node_text(n) for n in page.soup.select(selector)]
        crumbs = [c for c in crumbs if c and not is_generic_category(c) and c.lower() != name.lower()]
        if crumbs:
            return crumbs[-1]
    return None


def category_from_url(page: ProductPage) -> Optional[str]:
    segments = [s for s in urlparse(page.url).path.split("/") if s]
    for segment in reversed(segments[:-1]):
        if segment.lower() not in GENERIC_PATH_SEGMENTS:
            return humanize_slug(segment)
    return None


# ---- Stock / weight / ingredients ----------------------------------------------------


def stock_status(page: ProductPage, default_inventory: int) -> Tuple[bool, int]:
    """``(in_stock, inventory_quantity)``; a visible out-of-stock label always wins."""
    for node in page.soup.select(".out-of-stock, .sold-out, .unavailable, [data-availability=out-of-stock]"):
        if not is_hidden(node):
            return False, 0
    for node in page.soup.select(".availability, .stock, .stock-status, [itemprop=availability]"):
        text = node.get("content") or node.get("href") or node_text(node)
        if OUT_OF_STOCK_RE.search(text) or "outofstock" in text.lower().replace(" ", ""):
            if not is_hidden(node):
                return False, 0
    availability = str(jsonld_offer(page.jsonld).get("availability") or "").lower()
    if "outofstock" in availability or "soldout" in availability:
        return False, 0

    for attr in ("data-stock", "data-inventory", "data-quantity-available"):
        node = page.soup.select_one(f"[{attr}]")
        if node is not None and (node.get(attr) or "").strip().isdigit():
            qty = int(node[attr].strip())
            return qty > 0, qty
    for selector in (".stock-quantity", ".inventory", ".qty-available"):
        match = re.search(r"\d+", node_text(page.soup.select_one(selector)))
        if match:
            qty = int(match.group(0))
            return qty > 0, qty
    return True, default_inventory


def _weight_in(text: str) -> Optional[str]:
    match = WEIGHT_RE.search(text or "")
    if not match:
        return None
    unit = re.sub(r"\s+", " ", match.group(2).lower())
    return f"{match.group(1)} {unit}"


def extract_weight(page: ProductPage, name: str = "") -> str:
    for selector in (".product-weight", ".weight", ".size", ".product-size", "[itemprop=weight]"):
        weight = _weight_in(node_text(page.soup.select_one(selector)))
        if weight:
            return weight
    return _weight_in(name) or ""


def extract_ingredients(page: ProductPage) -> str:
    text = _select_text(page.soup, (".ingredients", ".product-ingredients", ".supplement-facts", "[itemprop=ingredients]"))
    if text:
        return _cap(_strip_label(text, "ingredients"))
    return section_after_heading(page.soup, r"^\s*(?:other\s+)?ingredients\s*:?\s*$")


# ---- Entry point ------------------------------------------------------------------------


def extract_product(
    soup: BeautifulSoup,
    url: str,
    options: ExtractionOptions = ExtractionOptions(),
) -> Optional[Product]:
    """
    Build a Product from a classified product page.

    Returns None when no valid name can be found; the caller treats that as a
    listing page the classifier let through.
    """
    page = ProductPage.from_soup(soup, url)

    name = clean_text(first_of(NAME_STRATEGIES, page) or "")
    if not is_valid_name(name, options.extra_name_stoplist):
        logger.debug("Rejecting %s: invalid product name %r", url, name)
        return None

    sku = first_of(SKU_STRATEGIES, page) or generate_sku(url, options.sku_prefix)
    price = first_of(PRICE_STRATEGIES, page) or 0.0
    description = first_of(DESCRIPTION_STRATEGIES, page) or ""
    short = short_description_from_element(page) or (summarize(description) if description else "")

    brand = first_of(
        (brand_from_element, brand_from_jsonld, lambda p: match_known_brand(name, options.known_brands)),
        page,
    ) or ""
    category = first_of(
        (category_from_element, category_from_jsonld, partial(category_from_breadcrumb, name=name), category_from_url),
        page,
    ) or ""
    in_stock, quantity = stock_status(page, options.default_inventory)

    return Product(
        url=url,
        sku=clean_text(sku),
        name=name,
        price=price,
        compare_price=compare_price(page),
        description=description,
        short_description=clean_text(short),
        brand=brand,
        category=category,
        images=extract_images(page, name),
        in_stock=in_stock,
        inventory_quantity=quantity,
        weight=extract_weight(page, name),
        ingredients=extract_ingredients(page),
    )
