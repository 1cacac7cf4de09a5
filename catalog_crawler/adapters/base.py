from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, TYPE_CHECKING

from bs4 import BeautifulSoup

if TYPE_CHECKING:
    from ..extraction.classifier import Classification
    from ..extraction.links import LinkPatterns


@dataclass
class PageLinks:
    product_links: List[str] = field(default_factory=list)
    category_links: List[str] = field(default_factory=list)


@dataclass
class ProductImage:
    url: str
    alt_text: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"url": self.url, "altText": self.alt_text}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductImage":
        return cls(url=data["url"], alt_text=data.get("altText") or "")


@dataclass
class Product:
    """A single product record extracted from a product detail page."""

    url: str
    sku: str
    name: str
    price: float = 0.0
    compare_price: Optional[float] = None
    description: str = ""
    short_description: str = ""
    brand: str = ""
    category: str = ""
    images: List[ProductImage] = field(default_factory=list)
    in_stock: bool = True
    inventory_quantity: int = 0
    weight: str = ""
    ingredients: str = ""
    health_categories: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "sku": self.sku,
            "name": self.name,
            "price": self.price,
            "comparePrice": self.compare_price,
            "description": self.description,
            "shortDescription": self.short_description,
            "brand": self.brand,
            "category": self.category,
            "images": [img.to_dict() for img in self.images],
            "inStock": self.in_stock,
            "inventoryQuantity": self.inventory_quantity,
            "weight": self.weight,
            "ingredients": self.ingredients,
            "healthCategories": list(self.health_categories),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        compare = data.get("comparePrice")
        return cls(
            url=data["url"],
            sku=data.get("sku") or "",
            name=data.get("name") or "",
            price=float(data.get("price") or 0.0),
            compare_price=float(compare) if compare is not None else None,
            description=data.get("description") or "",
            short_description=data.get("shortDescription") or "",
            brand=data.get("brand") or "",
            category=data.get("category") or "",
            images=[ProductImage.from_dict(img) for img in data.get("images") or []],
            in_stock=bool(data.get("inStock", True)),
            inventory_quantity=int(data.get("inventoryQuantity") or 0),
            weight=data.get("weight") or "",
            ingredients=data.get("ingredients") or "",
            health_categories=list(data.get("healthCategories") or []),
        )


class SiteAdapter(Protocol):
    """
    Interface for site-specific discovery and parsing logic.
    Keep this small and stable so adapters rarely break across upgrades.
    """

    name: str
    domains: List[str]  # e.g. ["example.com", "www.example.com"]
    pagination_param: str
    fallback_paths: List[str]
    link_patterns: "LinkPatterns"

    def matches(self, url: str) -> bool:
        """Return True if this adapter should handle the given URL."""
        ...

    def extract_links(self, soup: BeautifulSoup, base_url: str) -> PageLinks:
        """Product and category/brand links found on a page. Must not touch crawl state."""
        ...

    def classify(self, soup: BeautifulSoup) -> "Classification":
        """Decide whether a fetched page is a single product page."""
        ...

    def extract_product(self, soup: BeautifulSoup, url: str) -> Optional[Product]:
        """
        Extract a product record, or None when the page turns out not to be one.
        Engine owns the HTTP, worklist and dedup.
        """
        ...
