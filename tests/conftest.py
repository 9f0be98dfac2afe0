"""
Shared pytest fixtures.

The remote identity store is simulated by FakeStormpath, an in-memory implementation of the
account endpoints served through httpx.MockTransport, so no test touches the network.
"""

import logging
import os
import sys
import tempfile
from pathlib import Path

import pytest

# make the top level packages importable when running from a checkout
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# keep the file log of the API server out of the working tree
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="idm-connector-logs-"))

from connector.core.ConnectorService import ConnectorService
from connector.idm_connector import initialize
from shared.clients.idm.stormpath.IDMClientStormpath import IDMClientStormpath
from shared.helper.HelperConfig import HelperConfig
from fake_stormpath import API_KEY_ID, API_KEY_SECRET, APPLICATION_HREF, BASE_URL, SETTINGS, FakeStormpath


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("tests")


@pytest.fixture
def fake_store() -> FakeStormpath:
    return FakeStormpath()


@pytest.fixture
def helper_config(logger) -> HelperConfig:
    return HelperConfig(logger=logger, overrides={
        "IDM_STORMPATH_API_KEY_ID": API_KEY_ID,
        "IDM_STORMPATH_API_KEY_SECRET": API_KEY_SECRET,
        "IDM_STORMPATH_APPLICATION_HREF": APPLICATION_HREF,
        "IDM_STORMPATH_BASE_URL": BASE_URL,
    })


@pytest.fixture
def client_factory(fake_store):
    def _factory(config: HelperConfig) -> IDMClientStormpath:
        return IDMClientStormpath(helper_config=config, transport=fake_store.transport())
    return _factory


@pytest.fixture
def connector(logger, client_factory) -> ConnectorService:
    return initialize(SETTINGS, logger=logger, client_factory=client_factory)
