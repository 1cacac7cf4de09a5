from __future__ import annotations

from dataclasses import replace
from typing import List
from urllib.parse import urlparse

from .generic import GenericAdapter
from ..extraction.links import DEFAULT_PATTERNS, LinkPatterns


class Concrete5Adapter(GenericAdapter):
    """
    Storefronts running on the Concrete5 CMS.

    Products live under ``/index.php/products/<slug>``, the catalog index is
    ``/index.php/products`` and page lists paginate with ``ccm_paging_p``.
    Product headings carry the code inline: ``"Elderberry Syrup SKU: 1234"``.
    """

    name = "concrete5"
    domains: List[str] = []
    pagination_param = "ccm_paging_p"
    fallback_paths = ["/index.php/products", "/index.php/brands", "/index.php/categories"]
    link_patterns: LinkPatterns = replace(
        DEFAULT_PATTERNS,
        product_card_selectors=DEFAULT_PATTERNS.product_card_selectors
        + (".ccm-block-page-list-page-entry a[href]", ".ccm-block-page-list-title a[href]"),
    )

    def matches(self, url: str) -> bool:
        return urlparse(url).path.startswith("/index.php")
