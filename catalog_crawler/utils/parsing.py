from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterable, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup

MIN_PRICE = 0.01
MAX_PRICE = 10000.0

_WS_RE = re.compile(r"\s+")
# "$1,234.56", "$ 19.99", "US$5"; group 1 is the amount with thousands separators.
_CURRENCY_RE = re.compile(r"(?:US)?\$\s*(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)")
_BARE_NUMBER_RE = re.compile(r"^\s*(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)\s*$")


def make_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def normalize_url(url: str) -> str:
    """
    Normalize URL by removing fragments.
    """
    parts = list(urlparse(url))
    parts[5] = ""  # strip fragment
    return urlunparse(parts)


def absolute_url(href: str, base_url: str) -> str:
    """Resolve protocol-relative, root-relative and relative hrefs against ``base_url``."""
    href = href.strip()
    if href.startswith("//"):
        scheme = urlparse(base_url).scheme or "https"
        return normalize_url(f"{scheme}:{href}")
    return normalize_url(urljoin(base_url, href))


def same_site(url: str, base_url: str) -> bool:
    host = urlparse(url).netloc.lower()
    base = urlparse(base_url).netloc.lower()
    return host == base or host.removeprefix("www.") == base.removeprefix("www.")


def with_query_param(url: str, name: str, value: Any) -> str:
    """Return ``url`` with query parameter ``name`` set to ``value`` (other params kept)."""
    parts = urlparse(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != name]
    query.append((name, str(value)))
    return urlunparse(parts._replace(query=urlencode(query)))


def clean_text(text: Optional[str]) -> str:
    if not text:
        return ""
    return _WS_RE.sub(" ", text).strip()


def node_text(node: Any) -> str:
    if node is None:
        return ""
    return clean_text(node.get_text(" "))


def is_sane_price(value: Optional[float]) -> bool:
    return value is not None and MIN_PRICE <= value <= MAX_PRICE


def parse_price(text: Any, *, require_symbol: bool = True) -> Optional[float]:
    """
    Parse a price out of ``text``; ``None`` when absent or outside the sanity bounds.

    With ``require_symbol`` the amount must follow a dollar sign, which keeps
    quantities such as "60 capsules" from being read as prices. Structured
    values (JSON-LD, meta content, data attributes) are bare numbers.
    """
    if text is None:
        return None
    if isinstance(text, (int, float)):
        value: Optional[float] = float(text)
    else:
        raw = str(text)
        match = _CURRENCY_RE.search(raw)
        if match is None and not require_symbol:
            match = _BARE_NUMBER_RE.match(raw)
        if match is None:
            return None
        try:
            value = float(match.group(1).replace(",", ""))
        except ValueError:
            return None
    if not is_sane_price(value):
        return None
    return round(value, 2)


def generate_sku(url: str, prefix: str = "SKU") -> str:
    """Deterministic SKU from the URL's last path segment."""
    segments = [s for s in urlparse(url).path.split("/") if s]
    last = segments[-1] if segments else urlparse(url).netloc
    code = re.sub(r"[^A-Za-z0-9]", "", last).upper()[:20]
    return f"{prefix}-{code or 'UNKNOWN'}"


def humanize_slug(slug: str) -> str:
    """'herbal-teas_2' -> 'Herbal Teas 2'."""
    words = re.split(r"[-_+\s]+", slug.strip())
    return " ".join(w.capitalize() for w in words if w)


# ---- JSON-LD ---------------------------------------------------------------


def iter_jsonld_items(data: Any) -> Iterable[Any]:
    if isinstance(data, list):
        for item in data:
            yield from iter_jsonld_items(item)
    elif isinstance(data, dict):
        if "@graph" in data:
            yield from iter_jsonld_items(data["@graph"])
        else:
            yield data


def _is_product_type(type_field: Any) -> bool:
    if isinstance(type_field, list):
        return any(isinstance(t, str) and t.lower() == "product" for t in type_field)
    return isinstance(type_field, str) and type_field.lower() == "product"


def find_jsonld_product(soup: BeautifulSoup) -> Optional[Dict[str, Any]]:
    """Return the first schema.org Product object embedded as JSON-LD, if any."""
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        payload = script.string or script.get_text() or ""
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            continue
        for item in iter_jsonld_items(data):
            if isinstance(item, dict) and _is_product_type(item.get("@type")):
                return item
    return None


def jsonld_offer(product: Dict[str, Any]) -> Dict[str, Any]:
    offers = product.get("offers")
    if isinstance(offers, list) and offers:
        offers = offers[0]
    return offers if isinstance(offers, dict) else {}
