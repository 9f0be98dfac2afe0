import httpx

from shared.helper.HelperConfig import HelperConfig
from shared.clients.idm.IDMClientInterface import IDMClientInterface


class IDMClientManager:
    """Manager class to instantiate the configured IDM client."""

    def __init__(self, helper_config: HelperConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self._transport = transport
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """Read the IDM engine name from configuration.

        Returns:
            str: Capitalised engine name (e.g. "Stormpath").

        Raises:
            ValueError: If IDM_ENGINE is set but empty after stripping.
        """
        engine = self.helper_config.get_string_val("IDM_ENGINE", default="Stormpath")
        if not engine.strip():
            raise ValueError("No IDM engine specified in configuration (IDM_ENGINE).")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> IDMClientInterface:
        """Instantiate the IDM client for the configured engine.

        Returns:
            IDMClientInterface: The instantiated client.

        Raises:
            ValueError: If the engine is unsupported or its configuration is incomplete.
        """
        engine = self._get_engine_from_env()
        class_name = f"IDMClient{engine}"
        try:
            module = __import__(
                f"shared.clients.idm.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError("Unsupported IDM engine '%s'. Error: %s" % (engine, e))
        client = client_class(helper_config=self.helper_config, transport=self._transport)
        self.logging.debug("Instantiated IDM client for engine: %s", engine)
        return client

    def get_client(self) -> IDMClientInterface:
        """Return the instantiated IDM client."""
        return self.client
