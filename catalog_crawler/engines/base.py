from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set
from abc import ABC, abstractmethod

from ..adapters.base import Product
from ..utils.http import FetchError
from ..version import OUTPUT_SCHEMA_VERSION


class CrawlError(Exception):
    """Base class for errors that abort a whole crawl run."""


class HomepageFetchError(CrawlError):
    def __init__(self, url: str, error: Optional[FetchError]) -> None:
        self.url = url
        self.error = error
        super().__init__(f"Could not fetch homepage {url}: {error}")


@dataclass
class CrawlStats:
    pages_scanned: int = 0
    errors: int = 0
    duplicates: int = 0
    skipped: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    cancelled: bool = False

    @property
    def duration(self) -> float:
        if not self.started_at or not self.finished_at:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pagesScanned": self.pages_scanned,
            "errors": self.errors,
            "duplicates": self.duplicates,
            "skipped": self.skipped,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "durationSeconds": round(self.duration, 3),
            "cancelled": self.cancelled,
        }


@dataclass
class LinkMetadata:
    """What the listing page that linked to a product tells us about it."""

    category: str = ""
    brand: str = ""


@dataclass
class CrawlReport:
    products: List[Product] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    brands: List[str] = field(default_factory=list)
    scraped_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    stats: CrawlStats = field(default_factory=CrawlStats)
    worklist_size: int = 0

    @property
    def total_products(self) -> int:
        return len(self.products)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schemaVersion": OUTPUT_SCHEMA_VERSION,
            "products": [p.to_dict() for p in self.products],
            "categories": list(self.categories),
            "brands": list(self.brands),
            "scrapedAt": self.scraped_at.isoformat(),
            "totalProducts": self.total_products,
            "stats": self.stats.to_dict(),
        }


@dataclass
class CrawlState:
    """
    Mutable state of one crawl run. Only the engine touches it; everything
    it calls (link extraction, classification, field extraction) is pure.
    """

    visited: Set[str] = field(default_factory=set)
    # dict keeps discovery order for the worklist
    discovered: Dict[str, None] = field(default_factory=dict)
    link_metadata: Dict[str, LinkMetadata] = field(default_factory=dict)
    products: List[Product] = field(default_factory=list)
    categories: Set[str] = field(default_factory=set)
    brands: Set[str] = field(default_factory=set)
    stats: CrawlStats = field(default_factory=CrawlStats)
    _urls: Set[str] = field(default_factory=set, repr=False)
    _skus: Set[str] = field(default_factory=set, repr=False)

    def discover(self, url: str, kind: str = "", label: str = "") -> bool:
        """
        Record a product URL found on a listing page; True when it is new.
        The first listing to attribute a category (or brand) keeps it.
        """
        is_new = url not in self.discovered
        self.discovered.setdefault(url, None)
        if label:
            meta = self.link_metadata.setdefault(url, LinkMetadata())
            if kind == "brand" and not meta.brand:
                meta.brand = label
            elif kind != "brand" and not meta.category:
                meta.category = label
        return is_new

    def worklist(self) -> List[str]:
        return [url for url in self.discovered if url not in self.visited]

    def is_duplicate(self, product: Product) -> bool:
        return product.url in self._urls or (bool(product.sku) and product.sku in self._skus)

    def add_product(self, product: Product) -> bool:
        """Insert unless a product with the same URL or non-empty SKU exists."""
        if self.is_duplicate(product):
            self.stats.duplicates += 1
            return False
        self.products.append(product)
        self._urls.add(product.url)
        if product.sku:
            self._skus.add(product.sku)
        if product.category:
            self.categories.add(product.category)
        if product.brand:
            self.brands.add(product.brand)
        return True

    def to_report(self, worklist_size: int = 0) -> CrawlReport:
        return CrawlReport(
            products=list(self.products),
            categories=sorted(self.categories),
            brands=sorted(self.brands),
            scraped_at=self.stats.finished_at or datetime.now(timezone.utc),
            stats=self.stats,
            worklist_size=worklist_size,
        )


class CrawlEngine(ABC):
    """
    Abstract engine interface. Implementations own the crawl lifecycle.
    """
    @abstractmethod
    async def crawl(self) -> CrawlReport:  # pragma: no cover - interface
        ...

    @abstractmethod
    def cancel(self) -> None:  # pragma: no cover - interface
        ...
