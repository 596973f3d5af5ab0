"""TagMe launcher.

Provides a stable entry point that runs preflight checks before importing
GTK-related modules, which gives clearer error messages on new systems.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

LOG_FORMAT = "%(levelname)s:%(name)s:%(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging from `level` or TAGME_LOG_LEVEL (default WARNING)."""
    name = (level or os.environ.get("TAGME_LOG_LEVEL") or "WARNING").upper()
    numeric = getattr(logging, name, None)
    if not isinstance(numeric, int):
        numeric = logging.WARNING
    logging.basicConfig(level=numeric, format=LOG_FORMAT)


def main() -> int:
    from tagme.preflight import run_preflight_or_die

    run_preflight_or_die(require_display=True, check_deps=True)
    setup_logging()

    from tagme.app import main as app_main

    return int(app_main())


if __name__ == "__main__":
    raise SystemExit(main())
