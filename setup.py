#!/usr/bin/env python3
"""Setup script for TagMe."""

import os
from setuptools import setup, find_packages


def _run_install_preflight() -> None:
    """Fail fast on unsupported environments.

    Note: installing from a wheel will not execute setup.py, so we also
    enforce this at runtime via `tagme.launcher`.
    """
    if os.environ.get("TAGME_SKIP_PREFLIGHT") == "1":
        return
    try:
        from tagme.preflight import run_preflight_or_die
        # Install-time constraints: only the SQLite library matters here.
        # Do NOT require a display or GTK before pip has installed the extras.
        run_preflight_or_die(require_display=False, check_deps=False)
    except SystemExit:
        raise
    except ImportError:
        # Building from an isolated environment without the package on sys.path
        return


_run_install_preflight()

setup(
    name="tagme",
    version="0.4.0",
    description="Hierarchical tag organizer with drag-and-drop reordering",
    author="TagMe Project",
    license="MIT",
    packages=find_packages(exclude=("tests", "tests.*")),
    python_requires=">=3.9",
    install_requires=[],
    extras_require={
        "gui": [
            "PyGObject>=3.46.0",
            "pycairo>=1.25.0",
        ],
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tagme=tagme.launcher:main",
            "tagme-admin=tagme.admin:main",
        ],
        "gui_scripts": [
            "tagme-gui=tagme.launcher:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: X11 Applications :: GTK",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Topic :: Desktop Environment :: File Managers",
    ],
)
