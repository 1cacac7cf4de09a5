from __future__ import annotations

import csv
from typing import List
from pathlib import Path

from ..adapters.base import Product
from ..engines.base import CrawlReport


class CSVExporter:
    """
    Writes one row per product in the flat layout the store importer expects.
    """

    _headers = [
        "sku",
        "name",
        "brand",
        "category",
        "price",
        "weight",
        "inventory",
        "short_description",
        "description",
        "health_categories",
        "images",
        "active",
        "featured",
    ]

    def row(self, product: Product) -> List[str]:
        return [
            product.sku,
            product.name,
            product.brand or "Unknown",
            product.category or "General",
            f"{product.price:.2f}",
            product.weight,
            str(product.inventory_quantity if product.in_stock else 0),
            product.short_description,
            product.description,
            ",".join(product.health_categories),
            ",".join(img.url for img in product.images),
            "true",
            "false",
        ]

    def export(self, report: CrawlReport, path: str) -> None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            w = csv.writer(f, quoting=csv.QUOTE_ALL)
            w.writerow(self._headers)
            for product in report.products:
                w.writerow(self.row(product))
