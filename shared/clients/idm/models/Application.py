"""Generic IDM application model, backend-independent."""

from pydantic import BaseModel


class ApplicationDetails(BaseModel):
    """
    Represents the application that scopes all account operations, as returned by an IDM client.
    """
    engine: str
    href: str
    name: str | None = None
    status: str | None = None
    accounts_href: str
    login_attempts_href: str
