"""Error taxonomy shared by the remote store clients and the connector."""


class ConnectorError(Exception):
    """Base class for every error raised by the connector stack."""


class StoreConnectionError(ConnectorError, ConnectionError):
    """
    Raised when the first connect fails (bad credentials, unknown application, unreachable store).
    The failure is kept by the connection manager until the caller explicitly resets it.
    """


class RecordValidationError(ConnectorError):
    """Raised when the caller supplied a record the connector cannot act on."""


class MalformedLocatorError(ConnectorError):
    """Raised when a remote href carries no path segment to derive an id from."""


class RemoteError(ConnectorError):
    """
    Raised when the remote store answers with a non-2xx status.

    Attributes:
        status (int | None): The HTTP status code. None if the store was not reachable at all.
        code (int | None): The store specific error code, if the body carried one.
        message (str): Human readable message.
        developer_message (str | None): Detailed message for developers, if the body carried one.
    """

    def __init__(self, message: str, status: int | None = None, code: int | None = None, developer_message: str | None = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.developer_message = developer_message

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"[{self.status}] {self.message}"


class RemoteClientError(RemoteError):
    """4xx answer from the remote store."""


class NotFoundError(RemoteClientError):
    """404 answer from the remote store: the lookup target does not exist."""


class RemoteServerError(RemoteError):
    """5xx answer from the remote store, or a transport failure (status None)."""
