"""FastAPI application exposing the identity connector as a REST /users resource."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from connector.core.ConnectorService import ConnectorService
from connector.idm_connector import initialize
from server.routers.UserRouter import router as user_router
from shared.clients.ClientErrors import (
    ConnectorError,
    MalformedLocatorError,
    NotFoundError,
    RecordValidationError,
    RemoteClientError,
    RemoteServerError,
    StoreConnectionError,
)
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


def _status_for_error(exc: ConnectorError) -> int:
    """Map a connector error onto the HTTP status returned to the caller."""
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, RemoteClientError):
        return exc.status if exc.status and 400 <= exc.status < 500 else 400
    if isinstance(exc, (RecordValidationError, MalformedLocatorError)):
        return 422
    if isinstance(exc, StoreConnectionError):
        return 503
    if isinstance(exc, RemoteServerError):
        return 502
    return 500


def create_app(helper_config: HelperConfig | None = None, connector: ConnectorService | None = None) -> FastAPI:
    """Build the API app. Without arguments, configuration and connector are read from the environment on startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # when the app starts
        app.state.logging = logging
        app.state.helper_config = helper_config or HelperConfig(logger=logging)
        app.state.connector = connector or initialize(logger=logging)

        # an unreachable store must not keep the server down, operations report it per request
        try:
            await app.state.connector.connect()
        except StoreConnectionError as e:
            logging.warning("Identity store not reachable on startup: %s", e)

        # while the app is running...
        yield

        # when the app shuts down, close the connection
        logging.info("Shutting down, closing the identity store connection...")
        await app.state.connector.get_connection().close()

    app = FastAPI(
        title="idm_connector",
        description=(
            "CRUD access to the user accounts of a remote identity-management service, "
            "exposed the way an ORM exposes a persisted User model."
        ),
        version=app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ConnectorError)
    async def connector_error_handler(request: Request, exc: ConnectorError) -> JSONResponse:
        status = _status_for_error(exc)
        if status >= 500:
            logging.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status, content={"error": exc.__class__.__name__, "detail": str(exc)})

    app.include_router(user_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.info("Starting idm_connector API Server v%s on port 8000...", app_version)
    uvicorn.run(app, host="0.0.0.0", port=8000)
