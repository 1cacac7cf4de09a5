from __future__ import annotations

import logging
from typing import List, Optional
from importlib import metadata

from .base import SiteAdapter
from .concrete5 import Concrete5Adapter
from .generic import GenericAdapter

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "catalog_crawler.adapters"


class AdapterRegistry:
    """
    Registry for available adapters.
    Supports built-ins, runtime registration, and entry-point plugins.
    """
    def __init__(self) -> None:
        self._adapters: List[SiteAdapter] = [GenericAdapter(), Concrete5Adapter()]

    # ---- Introspection / Management ----

    def register(self, adapter: SiteAdapter) -> None:
        self._adapters.append(adapter)

    @property
    def adapters(self) -> List[SiteAdapter]:
        return list(self._adapters)

    @property
    def names(self) -> List[str]:
        return [a.name for a in self._adapters]

    def get(self, name: str) -> SiteAdapter:
        for adapter in self._adapters:
            if adapter.name == name:
                return adapter
        raise ValueError(f"Unknown adapter {name!r}; available: {', '.join(self.names)}")

    def match(self, url: str) -> SiteAdapter:
        # Prefer specific adapters over generic fallback (kept first in list).
        for a in self._adapters[1:]:
            if a.matches(url):
                return a
        return self._adapters[0]  # generic

    def resolve(self, name: Optional[str], url: str) -> SiteAdapter:
        return self.get(name) if name else self.match(url)

    # ---- Discovery ----

    def discover_entry_points(self, group: str = ENTRY_POINT_GROUP) -> int:
        """
        Discover third-party adapters installed as entry points.
        Returns count of newly registered adapters.
        """
        added = 0
        for ep in metadata.entry_points().select(group=group):
            try:
                adapter_cls = ep.load()
                self.register(adapter_cls())
            except Exception as exc:  # plugins are optional; a broken one must not stop the crawl
                logger.warning("Failed to load adapter plugin %s: %r", ep.name, exc)
                continue
            added += 1
        return added
