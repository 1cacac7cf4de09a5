from __future__ import annotations

import logging
import sys
from typing import List, Optional

from .ui.cli import run_cli


def main(argv: Optional[List[str]] = None) -> int:
    """Console entry point for ``catalog-crawler``; returns the process exit status."""
    try:
        return run_cli(sys.argv[1:] if argv is None else argv)
    except KeyboardInterrupt:
        # asyncio.run already cancelled the crawl; nothing was saved.
        logging.getLogger(__name__).warning("Interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
