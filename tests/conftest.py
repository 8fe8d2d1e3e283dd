"""Shared fixtures for scriptsync tests."""

import sys

import pytest


@pytest.fixture(autouse=True)
def clean_plugin_modules():
    """Drop plugin modules loaded during a test."""
    yield
    for name in [n for n in sys.modules if n.startswith("_scriptsync_plugins_")]:
        del sys.modules[name]
