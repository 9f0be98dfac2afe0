"""ORM facing record and filter models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, JsonValue, field_validator

# account fields with a dedicated attribute on the remote account
STANDARD_FIELDS = ("givenName", "surname", "middleName", "email")
# keys of an incoming record that never end up in custom data
RESERVED_FIELDS = ("id", "password", *STANDARD_FIELDS)
# fields the remote store can filter on with an equality match
SEARCHABLE_FIELDS = ("givenName", "middleName", "surname", "username", "email")


class Record(BaseModel):
    """
    Flat representation of a remote account as handed to the ORM layer.
    The password is write-only and never part of a record.
    `customData` is None when the remote response did not expand it, which is different from an empty dict.
    """
    id: str
    givenName: str | None = None
    surname: str | None = None
    middleName: str | None = None
    email: str | None = None
    customData: dict[str, JsonValue] | None = None

    def to_json(self) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        if self.customData is not None:
            data["customData"] = dict(self.customData)
        return data


class Filter(BaseModel):
    """
    Query descriptor handed in by the ORM layer.

    Attributes:
        where (dict): Field name to equality condition. Only string conditions on SEARCHABLE_FIELDS are honoured.
        include (list[str]): Names of related data to expand in the response, e.g. ["customData"].
        limit (int | None): Maximum number of records returned, applied after fetching.
    """
    model_config = ConfigDict(extra="ignore")

    where: dict[str, Any] = {}
    include: list[str] = []
    limit: int | None = None

    @field_validator("where", mode="before")
    @classmethod
    def _where_none_is_empty(cls, value):
        return value or {}

    @field_validator("include", mode="before")
    @classmethod
    def _include_as_list(cls, value):
        if not value:
            return []
        if isinstance(value, str):
            return [value]
        if isinstance(value, dict):
            value = list(value.keys())
        if not isinstance(value, (list, tuple, set)):
            return []
        # relation objects and other non-string entries are not expandable
        return [name for name in value if isinstance(name, str)]

    @field_validator("limit")
    @classmethod
    def _limit_not_negative(cls, value):
        if value is not None and value < 0:
            raise ValueError("limit must not be negative")
        return value
