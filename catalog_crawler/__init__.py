"""Product discovery and extraction crawler for e-commerce storefronts."""

from .version import __version__

__all__ = ["__version__"]
