"""Central versioning and schema constants for the crawler."""

__all__ = ["__version__", "CONFIG_SCHEMA_VERSION", "OUTPUT_SCHEMA_VERSION"]

#: Semantic version of this codebase (bump using SemVer).
__version__ = "0.3.0"

#: Configuration schema version (increment if breaking changes to config format).
#: v2 replaced start_urls/max_depth with base_url/max_pagination_depth.
CONFIG_SCHEMA_VERSION = 2

#: Version of the JSON dataset layout written by export.json_exporter.
OUTPUT_SCHEMA_VERSION = 1
