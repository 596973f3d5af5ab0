"""Environment and dependency preflight checks.

The storage checks run at install time and at startup; the display and GTK
checks only matter for the desktop application.
Set TAGME_SKIP_PREFLIGHT=1 to bypass (useful for development).
"""

from __future__ import annotations

import os
import sqlite3
import sys
from dataclasses import dataclass
from typing import Optional

MIN_SQLITE_VERSION = (3, 24, 0)


@dataclass(frozen=True)
class PreflightResult:
    ok: bool
    message: str


def _check_sqlite() -> Optional[str]:
    """Return an error message if the SQLite library is too old."""
    if sqlite3.sqlite_version_info < MIN_SQLITE_VERSION:
        wanted = ".".join(str(part) for part in MIN_SQLITE_VERSION)
        return (
            f"TagMe needs SQLite {wanted} or newer; "
            f"this Python is linked against SQLite {sqlite3.sqlite_version}."
        )
    return None


def _has_display() -> bool:
    return bool(os.environ.get("WAYLAND_DISPLAY") or os.environ.get("DISPLAY"))


def _check_python_deps() -> Optional[str]:
    """Return an error message if required deps are missing."""
    try:
        import cairo  # type: ignore[import-not-found]  # noqa: F401
    except ImportError as exc:
        return (
            "Missing Python dependency 'pycairo'. "
            "Install it with pip install 'tagme[gui]' and ensure cairo is available. "
            f"Underlying error: {exc}"
        )

    try:
        import gi  # type: ignore[import-not-found]

        gi.require_version("Gtk", "4.0")
        gi.require_version("Adw", "1")
        gi.require_version("Gdk", "4.0")
        from gi.repository import Gtk, Adw, Gdk  # type: ignore[import-not-found]  # noqa: F401
    except (ImportError, ValueError) as exc:
        return (
            "Missing GTK/libadwaita bindings. Install GTK 4, libadwaita and "
            "PyGObject (for example: gtk4 libadwaita python3-gobject). "
            f"Underlying error: {exc}"
        )

    return None


def run_preflight(
    *,
    require_display: bool = True,
    check_deps: bool = True,
) -> PreflightResult:
    """Run checks and return a structured result.

    `require_display` depends on session env vars, so it's only enforced
    when launching the GUI (not during `pip install`).
    """
    if os.environ.get("TAGME_SKIP_PREFLIGHT") == "1":
        return PreflightResult(True, "Preflight skipped via TAGME_SKIP_PREFLIGHT=1")

    sqlite_error = _check_sqlite()
    if sqlite_error:
        return PreflightResult(False, sqlite_error)

    if require_display and not _has_display():
        return PreflightResult(
            False,
            "TagMe needs a graphical session but neither WAYLAND_DISPLAY nor DISPLAY is set. "
            "Use tagme-admin for headless work, or set TAGME_SKIP_PREFLIGHT=1 to bypass.",
        )

    if check_deps:
        dep_error = _check_python_deps()
        if dep_error:
            return PreflightResult(False, dep_error)

    return PreflightResult(True, "Preflight OK")


def run_preflight_or_die(
    *,
    require_display: bool = True,
    check_deps: bool = True,
) -> None:
    result = run_preflight(
        require_display=require_display,
        check_deps=check_deps,
    )
    if result.ok:
        return

    sys.stderr.write("\nTagMe preflight check failed:\n")
    sys.stderr.write(result.message)
    sys.stderr.write("\n\n")
    sys.stderr.write(
        "Suggested setup:\n"
        "  install GTK 4, libadwaita and the PyGObject system packages\n"
        "  pip install 'tagme[gui]'\n\n"
    )
    raise SystemExit(1)
