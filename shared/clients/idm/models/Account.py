"""Generic IDM account models, backend-independent."""

from pydantic import BaseModel, Field, JsonValue


class CustomDataDetails(BaseModel):
    """
    Represents the schemaless attribute bag attached to an account.
    Backend metadata (href, timestamps) is kept apart from the user supplied keys in `data`.
    """
    href: str | None = None
    createdAt: str | None = None
    modifiedAt: str | None = None
    data: dict[str, JsonValue] = {}


class AccountDetails(BaseModel):
    """
    Represents a single account with all its metadata, as returned by an IDM client.
    `customData` is None when the backend response did not expand it.
    """
    engine: str
    href: str
    username: str | None = None
    email: str | None = None
    givenName: str | None = None
    middleName: str | None = None
    surname: str | None = None
    status: str | None = None
    custom_data_href: str | None = None
    customData: CustomDataDetails | None = None

    # write-only, only set when a new password is about to be saved
    password: str | None = Field(default=None, repr=False, exclude=True)
    # standard fields explicitly assigned since the last save, sent even when empty
    assigned_fields: set[str] = Field(default_factory=set, repr=False, exclude=True)


class AccountsListResponse(BaseModel):
    """
    Represents one page of accounts returned by an IDM client.
    """
    engine: str
    accounts: list[AccountDetails] = []
    offset: int = 0
    limit: int | None = None
    size: int = 0
