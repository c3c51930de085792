"""
Root conftest.py — gating for the large-mesh tests.

Tests marked ``slow`` build meshes of thousands of elements.  They are
skipped unless pytest is given --runslow or SEM_GEOMETRY_RUNSLOW is set
to a non-empty value other than 0.
"""

import os

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--runslow", action="store_true", default=False,
        help="also run tests marked slow (large meshes, load timing)"
    )


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "slow: builds large meshes; enabled by --runslow or SEM_GEOMETRY_RUNSLOW=1")


def _slow_enabled(config):
    if config.getoption("--runslow"):
        return True
    return os.environ.get("SEM_GEOMETRY_RUNSLOW", "") not in ("", "0")


def pytest_collection_modifyitems(config, items):
    if _slow_enabled(config):
        return
    marker = pytest.mark.skip(reason="large-mesh test; pass --runslow to include")
    for item in items:
        if item.get_closest_marker("slow") is not None:
            item.add_marker(marker)
