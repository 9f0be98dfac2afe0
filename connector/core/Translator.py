"""
Shape conversion between ORM records / filters and remote accounts / queries.

All functions are pure apart from update_account(), which overlays a record onto an account in place.
"""

from typing import Any
from urllib.parse import urlparse

from connector.models.Record import Record, RESERVED_FIELDS, SEARCHABLE_FIELDS, STANDARD_FIELDS
from shared.clients.ClientErrors import MalformedLocatorError
from shared.clients.idm.models.Account import AccountDetails, CustomDataDetails


def normalize_email(email: str) -> str:
    """Lower-case an email so it can be used as a lookup key."""
    return email.strip().lower()


def convert_href_to_id(href: str) -> str:
    """Convert a remote href into the short id exposed to the ORM layer.

    Args:
        href (str): The account href, e.g. "https://api.stormpath.com/v1/accounts/3apenYvL0Z9v9spdzpFfey".

    Returns:
        str: The last path segment of the href.

    Raises:
        MalformedLocatorError: If the href has no path segments.
    """
    segments = [segment for segment in urlparse(href or "").path.split("/") if segment]
    if not segments:
        raise MalformedLocatorError(f"Cannot derive an id from href '{href}'.")
    return segments[-1]


def convert_id_to_href(account_id: str, prefix: str) -> str:
    """Convert an id into the href of the account, e.g. "<prefix><id>"."""
    return prefix + str(account_id)


def convert_account_to_record(account: AccountDetails) -> Record:
    """Project a remote account onto the flat ORM record.

    Custom data is only part of the record when the account was fetched with it expanded.
    """
    return Record(
        id=convert_href_to_id(account.href),
        givenName=account.givenName,
        surname=account.surname,
        middleName=account.middleName,
        email=account.email,
        customData=dict(account.customData.data) if account.customData is not None else None,
    )


def update_account(account: AccountDetails, data: dict[str, Any], overwrite: bool = False) -> None:
    """Merge the given record data into the account.

    Standard fields are only overwritten by truthy incoming values, the password only if present.
    With overwrite=True every standard field present in data is assigned as given, empty values included.
    Every other key except id and password goes into the account's custom data, so the account
    must have been fetched with custom data expanded to keep the existing keys.
    """
    for field in STANDARD_FIELDS:
        if overwrite and field in data:
            setattr(account, field, data[field])
            account.assigned_fields.add(field)
        else:
            setattr(account, field, data.get(field) or getattr(account, field))

    if data.get("password"):
        account.password = data["password"]

    if account.customData is None:
        account.customData = CustomDataDetails(href=account.custom_data_href)
    for key, val in data.items():
        if key in RESERVED_FIELDS:
            continue
        # a projected record carries its custom data nested, flatten it back
        if key == "customData" and isinstance(val, dict):
            account.customData.data.update(val)
        else:
            account.customData.data[key] = val


def build_account_payload(data: dict[str, Any]) -> dict[str, Any]:
    """Build the payload of an account creation from a record.

    Keys that are neither standard fields, username nor password are sent as custom data.
    """
    payload: dict[str, Any] = {field: data[field] for field in STANDARD_FIELDS if data.get(field) is not None}
    if data.get("username") is not None:
        payload["username"] = data["username"]
    if data.get("password") is not None:
        payload["password"] = data["password"]

    custom_data = {key: val for key, val in data.items() if key not in RESERVED_FIELDS and key != "username"}
    if isinstance(data.get("customData"), dict):
        custom_data.pop("customData")
        custom_data.update(data["customData"])
    if custom_data:
        payload["customData"] = custom_data
    return payload


def build_where(where: dict[str, Any] | None) -> dict[str, str]:
    """Build a remote account query from an ORM where clause.

    Only string equality conditions on SEARCHABLE_FIELDS are copied. Operator conditions
    (e.g. {"like": ...}), boolean composites (and / or) and unsupported fields are dropped
    without error, so such queries return broader results than requested.
    """
    query: dict[str, str] = {}
    if not isinstance(where, dict):
        return query

    for key, cond in where.items():
        if key not in SEARCHABLE_FIELDS or not isinstance(cond, str):
            continue
        query[key] = normalize_email(cond) if key == "email" else cond
    return query


def build_expand(include: list[str] | str | None) -> list[str]:
    """Normalise the names of related data to expand into a de-duplicated list."""
    if not include:
        return []
    if isinstance(include, str):
        include = [include]
    expand: list[str] = []
    for name in include:
        if isinstance(name, str) and name and name not in expand:
            expand.append(name)
    return expand
