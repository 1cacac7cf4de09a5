"""Shared fixtures: an in-memory storefront and a crawl config that never sleeps."""

from typing import Dict, List

import pytest

from catalog_crawler.config import CrawlConfig
from catalog_crawler.utils.http import FetchError, FetchErrorKind, FetchResult

BASE_URL = "https://shop.test"


class FakeSite:
    """Async fetcher serving canned HTML by absolute URL; anything else is a 404."""

    def __init__(self, pages: Dict[str, str]):
        self.pages = dict(pages)
        self.requested: List[str] = []

    async def __call__(self, url: str) -> FetchResult:
        self.requested.append(url)
        html = self.pages.get(url)
        if html is None:
            return FetchResult(url=url, error=FetchError(FetchErrorKind.HTTP_4XX, "Not Found", status=404))
        return FetchResult(url=url, html=html)


def page(body: str, title: str = "Herb Shop") -> str:
    return f"<html><head><title>{title}</title></head><body>{body}</body></html>"


HOMEPAGE = page(
    """
    <nav>
      <a href="/category/herbs">Herbs</a>
      <a href="mailto:owner@shop.test">Contact</a>
    </nav>
    <h1>Welcome to the Herb Shop</h1>
    """
)

HERBS_CATEGORY = page(
    """
    <h1>Herbs</h1>
    <ul>
      <li><a href="/products/valid-herb-tea">Valid Herb Tea</a></li>
      <li><a href="/products/shop-all">Shop everything</a></li>
    </ul>
    """
)

VALID_PRODUCT = page(
    """
    <nav><a href="/category/herbs">Herbs</a></nav>
    <div class="product-details">
      <h1>Valid Herb Tea SKU: 100</h1>
      <p class="price">$9.99</p>
      <p>A soothing blend of chamomile and lemon balm that supports restful sleep after long days.</p>
      <button class="add-to-cart">Add to Cart</button>
    </div>
    """,
    title="Valid Herb Tea | Herb Shop",
)

SHOP_PAGE = page(
    "<h1>Shop</h1><p class='price'>$4.99</p><button>Add to Cart</button><ul>"
    + "".join(f'<li><a href="/products/item-{i}">Item {i}</a></li>' for i in range(1, 9))
    + "</ul>"
)


def storefront() -> Dict[str, str]:
    """Homepage -> one category -> a real product and a mislabelled listing page."""
    return {
        BASE_URL: HOMEPAGE,
        f"{BASE_URL}/category/herbs": HERBS_CATEGORY,
        f"{BASE_URL}/category/herbs?page=2": HERBS_CATEGORY,
        f"{BASE_URL}/products/valid-herb-tea": VALID_PRODUCT,
        f"{BASE_URL}/products/shop-all": SHOP_PAGE,
    }


@pytest.fixture
def config(tmp_path) -> CrawlConfig:
    return CrawlConfig(
        base_url=BASE_URL,
        politeness_delay=0,
        fallback_paths=[],
        output_path=str(tmp_path / "products.json"),
        csv_output_path=str(tmp_path / "products.csv"),
    )


@pytest.fixture
def site() -> FakeSite:
    return FakeSite(storefront())
