from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from ..engines.base import CrawlReport


class Exporter(Protocol):
    def export(self, report: "CrawlReport", path: str) -> None:
        ...
