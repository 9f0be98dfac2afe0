"""Entry point for ORM data sources backed by the remote identity store.

Usage:
    connector = initialize({
        "apiKeyId": "...",
        "apiKeySecret": "...",
        "applicationHref": "https://api.stormpath.com/v1/applications/...",
    })
    await connector.connect()
    user_id = await connector.create("User", {"email": "randall@example.com", ...})
"""

import itertools
import logging
from typing import Any, Callable

from connector.core.ConnectionManager import ConnectionManager
from connector.core.ConnectorService import ConnectorService
from shared.clients.idm.IDMClientInterface import IDMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging

# data source settings -> configuration keys
SETTINGS_KEYS = {
    "apiKeyId": "IDM_STORMPATH_API_KEY_ID",
    "apiKeySecret": "IDM_STORMPATH_API_KEY_SECRET",
    "applicationHref": "IDM_STORMPATH_APPLICATION_HREF",
    "baseUrl": "IDM_STORMPATH_BASE_URL",
    "engine": "IDM_ENGINE",
    "timeout": "IDM_TIMEOUT",
    "debug": "CONNECTOR_DEBUG",
    "concurrency": "CONNECTOR_CONCURRENCY",
    "pageSize": "CONNECTOR_PAGE_SIZE",
}
SECRET_SETTINGS = ("apiKeySecret",)

_datasource_ids = itertools.count(1)


def build_helper_config(settings: dict[str, Any] | None, logger: logging.Logger) -> HelperConfig:
    """Translate data source settings into a HelperConfig. Unknown settings are ignored, unset ones fall back to the environment."""
    overrides = {SETTINGS_KEYS[key]: val for key, val in (settings or {}).items() if key in SETTINGS_KEYS}
    return HelperConfig(logger=logger, overrides=overrides)


def initialize(
    settings: dict[str, Any] | None = None,
    logger: logging.Logger | None = None,
    client_factory: Callable[[HelperConfig], IDMClientInterface] | None = None,
) -> ConnectorService:
    """Build a connector for the given data source settings.

    No remote call happens here, the connection is made on the first operation (or an explicit connect()).

    Args:
        settings (dict | None): apiKeyId, apiKeySecret, applicationHref, debug and optionally baseUrl, timeout, concurrency, pageSize.
        logger (logging.Logger | None): Logger to use. Defaults to the application logging setup.
        client_factory (Callable | None): Builds the remote client from the configuration. Defaults to the IDMClientManager.

    Returns:
        ConnectorService: The connector.
    """
    logger = logger or setup_logging()
    helper_config = build_helper_config(settings, logger)

    if helper_config.get_bool_val("CONNECTOR_DEBUG", default=False):
        # a child logger per data source, the shared one keeps its level
        logger = logger.getChild(f"datasource{next(_datasource_ids)}")
        logger.setLevel(logging.DEBUG)
        helper_config = build_helper_config(settings, logger)
        masked = {key: ("***" if key in SECRET_SETTINGS and val else val) for key, val in (settings or {}).items()}
        logger.debug("Settings: %s", masked)

    connection = ConnectionManager(helper_config=helper_config, client_factory=client_factory)
    return ConnectorService(helper_config=helper_config, connection=connection)
