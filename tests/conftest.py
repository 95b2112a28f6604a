import logging

import pytest

from rokuservice.lib import config

from support import FakeDiscovery


@pytest.fixture
def discovery():
    return FakeDiscovery()


@pytest.fixture
def store(tmp_path):
    return str(tmp_path / "rokus.json")


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch, tmp_path):
    """Never read a real config.json; start each test with an empty cache."""
    monkeypatch.setattr(config, "_SEARCH_PATHS", [str(tmp_path / "config.json")])
    monkeypatch.setattr(config, "_config", None)
    logging.getLogger("roku-service").setLevel(logging.DEBUG)
