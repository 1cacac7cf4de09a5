from __future__ import annotations

import importlib
from typing import Any

_ADAPTER_ATTRS = ("name", "matches", "extract_links", "classify", "extract_product", "page_url")


def load_symbol(dotted: str) -> Any:
    """
    Load a class or function from "package.module:Name" or "package.module.Name".
    """
    module_name, sep, symbol_name = dotted.partition(":")
    if not sep:
        module_name, _, symbol_name = dotted.rpartition(".")
    if not module_name or not symbol_name:
        raise ValueError(f"Not a dotted path: {dotted!r}")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, symbol_name)
    except AttributeError as exc:
        raise ValueError(f"{module_name} has no attribute {symbol_name!r}") from exc


def load_adapter(dotted: str) -> Any:
    """Instantiate an adapter class by dotted path and check it looks like a SiteAdapter."""
    adapter = load_symbol(dotted)()
    missing = [attr for attr in _ADAPTER_ATTRS if not hasattr(adapter, attr)]
    if missing:
        raise ValueError(f"{dotted} is not a site adapter (missing {', '.join(missing)})")
    return adapter
