from __future__ import annotations

from dataclasses import dataclass, field, fields, asdict
from typing import List, Optional, Dict, Any
from pathlib import Path
from urllib.parse import urlparse
import os
import json

from .version import CONFIG_SCHEMA_VERSION

#: A desktop Chrome UA; several storefronts serve stripped markup to bot-like agents.
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

DEFAULT_FALLBACK_PATHS = [
    "/shop",
    "/products",
    "/categories",
    "/herbs",
    "/vitamins",
    "/supplements",
]


@dataclass
class CrawlConfig:
    """
    Canonical configuration object passed into the engine at construction.
    Keep it dataclass-only (no heavy deps) to stay upgrade-friendly.
    """
    schema_version: int = CONFIG_SCHEMA_VERSION
    base_url: str = ""
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: float = 15.0
    # Seconds to sleep after every fetch (per worker).
    politeness_delay: float = 0.3
    max_pagination_depth: int = 37
    max_concurrency: int = 1
    # None lets the adapter decide ("page" for generic, "ccm_paging_p" for Concrete5).
    pagination_param: Optional[str] = None
    fallback_paths: List[str] = field(default_factory=lambda: list(DEFAULT_FALLBACK_PATHS))
    # Adapter name from the registry; None picks by URL.
    adapter: Optional[str] = None
    # Extra adapters (dotted class paths) to register at startup
    extra_adapters: List[str] = field(default_factory=list)
    output_path: str = "output/scraped-products.json"
    csv_output_path: Optional[str] = "output/scraped-products.csv"
    # Extraction / classification tuning
    default_inventory: int = 50
    max_listing_links: int = 5
    weak_indicator_threshold: int = 3
    sku_prefix: str = "SKU"
    known_brands: List[str] = field(default_factory=list)
    progress_buffer: int = 100

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    # ---------- Loaders ----------

    @classmethod
    def from_env(cls) -> "CrawlConfig":
        """
        Build config from environment variables (all optional).
        """
        def _get(name: str, default: str) -> str:
            return os.getenv(name, default)

        def _list(name: str) -> List[str]:
            return [p.strip() for p in _get(name, "").split(",") if p.strip()]

        defaults = cls()
        return cls(
            base_url=_get("CRAWLER_BASE_URL", ""),
            user_agent=_get("CRAWLER_USER_AGENT", DEFAULT_USER_AGENT),
            request_timeout=float(_get("CRAWLER_REQUEST_TIMEOUT", "15.0")),
            politeness_delay=float(_get("CRAWLER_POLITENESS_DELAY", "0.3")),
            max_pagination_depth=int(_get("CRAWLER_MAX_PAGINATION_DEPTH", "37")),
            max_concurrency=int(_get("CRAWLER_MAX_CONCURRENCY", "1")),
            pagination_param=os.getenv("CRAWLER_PAGINATION_PARAM") or None,
            fallback_paths=_list("CRAWLER_FALLBACK_PATHS") or defaults.fallback_paths,
            adapter=os.getenv("CRAWLER_ADAPTER") or None,
            extra_adapters=_list("CRAWLER_EXTRA_ADAPTERS"),
            output_path=_get("CRAWLER_OUTPUT_PATH", defaults.output_path),
            csv_output_path=_get("CRAWLER_CSV_OUTPUT_PATH", defaults.csv_output_path or "") or None,
            default_inventory=int(_get("CRAWLER_DEFAULT_INVENTORY", "50")),
            max_listing_links=int(_get("CRAWLER_MAX_LISTING_LINKS", "5")),
            weak_indicator_threshold=int(_get("CRAWLER_WEAK_INDICATOR_THRESHOLD", "3")),
            sku_prefix=_get("CRAWLER_SKU_PREFIX", "SKU"),
            known_brands=_list("CRAWLER_KNOWN_BRANDS"),
            progress_buffer=int(_get("CRAWLER_PROGRESS_BUFFER", "100")),
        )

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> "CrawlConfig":
        """
        Load configuration from a JSON file. Supports schema migration for older files.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        data = migrate_config(data)
        unknown = sorted(set(data) - {f.name for f in fields(cls)})
        if unknown:
            raise ValueError(f"Unknown config keys in {path}: {', '.join(unknown)}")
        return cls(**data)

    # ---------- Validation ----------

    def validate(self) -> None:
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"base_url must be an absolute http(s) URL, got {self.base_url!r}")
        if not 1 <= self.request_timeout <= 60:
            raise ValueError("request_timeout must be between 1 and 60 seconds")
        if self.politeness_delay < 0:
            raise ValueError("politeness_delay must be >= 0")
        if self.max_pagination_depth < 1:
            raise ValueError("max_pagination_depth must be >= 1")
        if self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        if self.default_inventory < 0:
            raise ValueError("default_inventory must be >= 0")
        if self.weak_indicator_threshold < 1:
            raise ValueError("weak_indicator_threshold must be >= 1")
        if self.progress_buffer <= 0:
            raise ValueError("progress_buffer must be > 0")
        # Validate output path parents exist or are creatable
        for out in filter(None, (self.output_path, self.csv_output_path)):
            Path(out).parent.mkdir(parents=True, exist_ok=True)

    @property
    def root_url(self) -> str:
        return self.base_url.rstrip("/")


def migrate_config(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Migrate config dict to the latest schema version.
    Keep this pure and additive. Add migrations here as you bump schema.
    """
    raw = dict(raw)
    schema = raw.get("schema_version", 1)

    if schema < 2:
        # v1 files described a generic link crawl.
        start_urls = raw.pop("start_urls", None) or []
        if start_urls and not raw.get("base_url"):
            raw["base_url"] = start_urls[0]
        # max_depth was link depth, not a pagination ceiling; it has no equivalent.
        for dropped in ("max_depth", "allowed_domains", "retries", "engine", "exporter", "keywords"):
            raw.pop(dropped, None)

    raw["schema_version"] = CONFIG_SCHEMA_VERSION
    return raw
