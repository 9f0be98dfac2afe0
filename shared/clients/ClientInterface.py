from abc import ABC, abstractmethod

import httpx
from typing import Any
from shared.models.config import EnvConfig
from shared.clients.ClientErrors import NotFoundError, RemoteClientError, RemoteServerError

from shared.helper.HelperConfig import HelperConfig


class ClientInterface(ABC):
    def __init__(self, helper_config: HelperConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)

        # client and config
        self._client: httpx.AsyncClient | None = None
        self._transport = transport
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Validates that all required configuration values for the client are set and valid.

        Raises:
            ValueError: If any required configuration value is missing or invalid.
        """
        req_config = self._get_required_config()
        for config in req_config:
            _ = self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    def is_booted(self) -> bool:
        return self._client is not None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        """
        Returns the type of the client in lowercase. E.g. "idm"
        """
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "idm"
        """
        pass

    def get_engine_name(self) -> str:
        """
        Returns the name of the engine used by the client. E.g. "stormpath"
        """
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        """
        Returns the name of the engine used by the client. E.g. "Stormpath"
        """
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Returns all required configurations for the client.

        Returns:
            list[EnvConfig]: A list containing the details of each required configuration key.
        """
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        """
        Returns:
            str: The full configuration key name for the client. E.g. "IDM_STORMPATH_API_KEY_ID"
        """
        key_prefix = f"{self.get_client_type().upper()}_{self.get_engine_name().upper()}"
        return f"{key_prefix}_{raw_key.upper()}"

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Reads a client setting by its raw key, e.g. "API_KEY_ID" for IDM_STORMPATH_API_KEY_ID.

        Raises:
            ValueError: If the setting is required but unset, or val_type is not one of string, number, bool, list.
        """
        readers = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "bool": self._helper_config.get_bool_val,
            "list": self._helper_config.get_list_val,
        }
        if val_type not in readers:
            raise ValueError(f"Unsupported config value type '{val_type}' for '{raw_key}' of the {self.get_engine_name()} client.")
        return readers[val_type](self._get_config_key_name(raw_key), default=default)

    def get_masked_config(self) -> dict[str, Any]:
        """
        Returns the resolved required configuration with secret values masked, for debug logging.
        """
        masked = {}
        for config in self._get_required_config():
            val = self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)
            masked[self._get_config_key_name(config.env_key)] = "***" if config.secret and val else val
        return masked

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """
        Returns the authentication header for the client backend server.

        Returns:
            dict: A dictionary containing the auth data
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        """
        Returns the base URL of the client backend server

        Returns:
            str: The base URL of the client backend server (e.g. "https://api.stormpath.com/v1")
        """
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        """
        Returns the endpoint path for healthcheck requests.

        Returns:
            str: The endpoint path for healthcheck requests (e.g. "/tenants/current")
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        """Check if the client backend is reachable and accepts our credentials.

        Returns:
            httpx.Response: The response from the healthcheck request.
        """
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck(), raise_on_error=False)

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self) -> None:
        """Initialise the HTTP client and any other resources needed for making requests."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def close(self) -> None:
        """Close the HTTP client and any other resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_url(self, endpoint: str) -> str:
        """
        Build the request URL. Absolute hrefs returned by the backend are used as they are,
        everything else is appended to the base URL.
        """
        endpoint = endpoint.strip()
        if endpoint.startswith("http://") or endpoint.startswith("https://"):
            return endpoint
        endpoint = "/" + endpoint.lstrip("/") if endpoint else ""
        return f"{self._get_base_url().rstrip('/')}{endpoint}"

    async def do_request(
        self,
        method: str = "GET",
        endpoint: str = "",
        json: dict | None = None,
        params: dict | None = None,
        raise_on_error: bool = True,
    ) -> httpx.Response:
        """Send an authenticated JSON request to the client backend.

        Args:
            method: HTTP method (GET, POST, DELETE).
            endpoint: Path to append to the base URL, or an absolute href.
            json: JSON body, if any.
            params: URL query parameters.
            raise_on_error: Raise a typed RemoteError on non-2xx status.

        Returns:
            The raw httpx.Response.

        Raises:
            RuntimeError: If the client is not booted.
            NotFoundError: On 404 (when raise_on_error is True).
            RemoteClientError: On any other 4xx (when raise_on_error is True).
            RemoteServerError: On 5xx (when raise_on_error is True) or if the backend is not reachable.
        """
        if self._client is None:
            raise RuntimeError("HTTP client not initialised. Call boot() before making requests.")

        url = self._build_url(endpoint)
        headers = {"Accept": "application/json", **self._get_auth_header()}
        try:
            response = await self._client.request(method, url, headers=headers, params=params, json=json)
        except httpx.TransportError as e:
            self.logging.error("Request %s %s could not be sent: %s", method, url, e)
            raise RemoteServerError(f"{self._get_engine_name()} is not reachable: {e}") from e

        if raise_on_error and not response.is_success:
            self._raise_for_status(method, url, response)
        return response

    def _raise_for_status(self, method: str, url: str, response: httpx.Response) -> None:
        """
        Translate a non-2xx response into the matching RemoteError subclass.

        Raises:
            NotFoundError: On 404.
            RemoteClientError: On any other status below 500.
            RemoteServerError: On 5xx.
        """
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or response.reason_phrase or "Request failed"
        code = body.get("code")
        developer_message = body.get("developerMessage")
        status = response.status_code

        if status == 404:
            self.logging.debug("Request %s %s returned 404: %s", method, url, message)
            raise NotFoundError(message, status=status, code=code, developer_message=developer_message)

        self.logging.error("Request %s %s failed with status %d: %s", method, url, status, developer_message or message)
        if status >= 500:
            raise RemoteServerError(message, status=status, code=code, developer_message=developer_message)
        raise RemoteClientError(message, status=status, code=code, developer_message=developer_message)
