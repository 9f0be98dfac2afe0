"""One-shot connection to the remote identity store."""

import asyncio
from dataclasses import dataclass
from typing import Callable

from shared.clients.ClientErrors import StoreConnectionError
from shared.clients.idm.IDMClientInterface import IDMClientInterface
from shared.clients.idm.IDMClientManager import IDMClientManager
from shared.clients.idm.models.Application import ApplicationDetails
from shared.helper.HelperConfig import HelperConfig


@dataclass(frozen=True)
class ConnectionHandle:
    """The booted client together with the application that scopes all account operations."""
    client: IDMClientInterface
    application: ApplicationDetails


class ConnectionManager:
    """
    Creates the connection handle at most once and hands the same handle to every caller.

    Concurrent first calls share a single in-flight task. A failed connect is kept and re-raised
    to every later caller until reset() is called, there is no internal retry.
    """

    def __init__(self, helper_config: HelperConfig, client_factory: Callable[[HelperConfig], IDMClientInterface] | None = None) -> None:
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self._client_factory = client_factory or (lambda config: IDMClientManager(helper_config=config).get_client())
        self._handle: ConnectionHandle | None = None
        self._connect_task: asyncio.Task | None = None

    def is_connected(self) -> bool:
        return self._handle is not None

    async def connect(self) -> ConnectionHandle:
        """Return the connection handle, connecting on first use.

        Returns:
            ConnectionHandle: The shared handle.

        Raises:
            StoreConnectionError: If the client cannot be built, booted or the application cannot be resolved.
        """
        if self._handle is not None:
            return self._handle
        if self._connect_task is None:
            self._connect_task = asyncio.ensure_future(self._do_connect())
        return await asyncio.shield(self._connect_task)

    async def _do_connect(self) -> ConnectionHandle:
        client: IDMClientInterface | None = None
        try:
            client = self._client_factory(self._helper_config)
            await client.boot()
            self.logging.debug("Initialized %s client.", client.get_engine_name())
            application = await client.do_fetch_application()
        except asyncio.CancelledError:
            if client is not None:
                await client.close()
            raise
        except Exception as e:
            self.logging.error("Failed to connect to the identity store: %s", e)
            if client is not None:
                await client.close()
            raise StoreConnectionError(f"Failed to connect to the identity store: {e}") from e

        self._handle = ConnectionHandle(client=client, application=application)
        self.logging.info("Connected to %s application '%s'.", client.get_engine_name(), application.name or application.href)
        return self._handle

    async def reset(self) -> None:
        """Forget a failed (or successful) connect so the next connect() starts over."""
        await self.close()
        self._connect_task = None

    async def close(self) -> None:
        """
        Release the HTTP client. Owned by the host process, the connector never calls it on its own.
        A connect still in flight is awaited first, so the client it boots is released as well.
        """
        task = self._connect_task
        if task is not None and not task.done():
            await asyncio.wait({task})
        if self._handle is not None:
            await self._handle.client.close()
            self._handle = None
            self._connect_task = None
