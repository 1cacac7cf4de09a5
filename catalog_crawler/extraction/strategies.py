from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence, TypeVar

from bs4 import BeautifulSoup, Tag

from ..utils.parsing import find_jsonld_product

T = TypeVar("T")

PRODUCT_CONTAINER_SELECTORS = (
    ".product-details",
    ".product-detail",
    ".product-info",
    ".product-single",
    '[itemtype*="schema.org/Product"]',
    'form[action*="cart"]',
    "main",
)


@dataclass
class ProductPage:
    """A parsed product page plus the lookups every strategy shares."""

    soup: BeautifulSoup
    url: str
    jsonld: Dict[str, Any] = field(default_factory=dict)
    container: Optional[Tag] = None

    @classmethod
    def from_soup(cls, soup: BeautifulSoup, url: str) -> "ProductPage":
        return cls(
            soup=soup,
            url=url,
            jsonld=find_jsonld_product(soup) or {},
            container=find_product_container(soup),
        )

    def meta(self, *keys: str) -> str:
        """First non-empty ``content`` among meta tags matching property/name/itemprop."""
        for key in keys:
            for attr in ("property", "name", "itemprop"):
                tag = self.soup.find("meta", attrs={attr: key})
                if tag and (tag.get("content") or "").strip():
                    return tag["content"].strip()
        return ""


def find_product_container(soup: BeautifulSoup) -> Optional[Tag]:
    """
    Element bounding the product's own data, so prices and text from banners,
    navigation and footers are not picked up.
    """
    for selector in PRODUCT_CONTAINER_SELECTORS:
        node = soup.select_one(selector)
        if node is not None:
            # The cart form usually wraps only options and the button; the price sits beside it.
            if node.name == "form" and node.parent is not None and node.parent.name not in ("body", "html"):
                return node.parent
            return node
    heading = soup.find("h1")
    if heading is not None and heading.parent is not None and heading.parent.name != "body":
        return heading.parent
    return None


Strategy = Callable[[ProductPage], Optional[T]]


def first_of(strategies: Sequence[Strategy[T]], page: ProductPage) -> Optional[T]:
    """Run strategies in order and return the first non-empty result."""
    for strategy in strategies:
        value = strategy(page)
        if value is not None and value != "" and value != []:
            return value
    return None
