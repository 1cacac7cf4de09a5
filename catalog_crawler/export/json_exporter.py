from __future__ import annotations

import json
from typing import Any, Dict, List
from pathlib import Path

from ..adapters.base import Product
from ..engines.base import CrawlReport
from ..version import OUTPUT_SCHEMA_VERSION


class JSONExporter:
    """Writes the full dataset: products plus categories, brands and run metadata."""

    def export(self, report: CrawlReport, path: str) -> None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(report.to_dict(), f, indent=2, ensure_ascii=False)

    @staticmethod
    def load(path: str) -> List[Product]:
        """Read products back from a file written by :meth:`export`."""
        with open(path, "r", encoding="utf-8") as f:
            data: Dict[str, Any] = json.load(f)
        version = data.get("schemaVersion", OUTPUT_SCHEMA_VERSION)
        if version > OUTPUT_SCHEMA_VERSION:
            raise ValueError(f"{path} uses dataset schema {version}; this version reads up to {OUTPUT_SCHEMA_VERSION}")
        return [Product.from_dict(item) for item in data.get("products", [])]
