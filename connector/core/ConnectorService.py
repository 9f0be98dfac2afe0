"""Operation dispatcher.

Implements the CRUD contract of an ORM connector (create, find, exists, save, updateOrCreate,
all, count, destroyAll, updateAll, authenticate) on top of the remote account API.
Records are never cached, the remote store is the only system of record.
"""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import ValidationError

from connector.core.ConnectionManager import ConnectionHandle, ConnectionManager
from connector.core import Translator
from connector.models.Record import Filter, Record
from shared.clients.ClientErrors import ConnectorError, NotFoundError, RecordValidationError, RemoteServerError
from shared.clients.idm.models.Account import AccountDetails
from shared.helper.HelperConfig import HelperConfig

T = TypeVar("T")
R = TypeVar("R")

CUSTOM_DATA = "customData"


class ConnectorService:
    """Translates ORM verbs into remote account operations."""

    def __init__(self, helper_config: HelperConfig, connection: ConnectionManager) -> None:
        self.logging = helper_config.get_logger()
        self._connection = connection
        self._concurrency = int(helper_config.get_number_val("CONNECTOR_CONCURRENCY", default=10))
        self._page_size = int(helper_config.get_number_val("CONNECTOR_PAGE_SIZE", default=100))
        if self._concurrency < 1:
            raise ValueError("CONNECTOR_CONCURRENCY must be at least 1.")

    def get_connection(self) -> ConnectionManager:
        return self._connection

    async def connect(self) -> ConnectionHandle:
        return await self._connection.connect()

    ##########################################
    ################ HELPERS #################
    ##########################################

    async def _fan_out(self, label: str, items: list[T], worker: Callable[[T], Awaitable[R]]) -> list[R]:
        """
        Run worker for every item concurrently, with at most CONNECTOR_CONCURRENCY calls in flight.
        Results keep the order of items. Every call is awaited; if any failed, the first failure is
        re-raised and the calls that already succeeded are not undone.
        """
        sem = asyncio.Semaphore(self._concurrency)

        async def _bounded(item: T) -> R:
            async with sem:
                return await worker(item)

        results = await asyncio.gather(*[_bounded(item) for item in items], return_exceptions=True)
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            self.logging.error(
                "%s: %d of %d remote calls failed, %d succeeded and are not rolled back. First error: %s",
                label, len(errors), len(items), len(items) - len(errors), errors[0],
            )
            raise errors[0]
        return list(results)

    def _account_href(self, handle: ConnectionHandle, account_id: Any) -> str:
        return Translator.convert_id_to_href(str(account_id), handle.client.get_account_href_prefix())

    def _parse_filter(self, filter: dict | Filter | None) -> Filter:
        if isinstance(filter, Filter):
            return filter
        try:
            return Filter.model_validate(filter or {})
        except ValidationError as e:
            raise RecordValidationError(f"Invalid filter: {e}") from e

    async def _create_account(self, handle: ConnectionHandle, data: dict[str, Any]) -> AccountDetails:
        payload = Translator.build_account_payload(data)
        return await handle.client.do_create_account(handle.application, payload)

    async def _save_account(self, handle: ConnectionHandle, account: AccountDetails) -> None:
        """
        Save the standard fields and, if it carries user keys, the custom data of the account.
        Both writes are independent remote calls: one may succeed while the other fails.
        """
        writes = [handle.client.do_save_account(account)]
        if account.customData is not None and account.customData.data:
            writes.append(handle.client.do_save_custom_data(account))
        results = await asyncio.gather(*writes, return_exceptions=True)
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            raise errors[0]

    ##########################################
    ################# VERBS ##################
    ##########################################

    async def create(self, model: str, data: dict[str, Any] | list[dict[str, Any]]) -> str | list[str]:
        """Create one account, or one account per item of a list.

        Args:
            model (str): The model name, used for logging only.
            data (dict | list[dict]): The record(s) to create.

        Returns:
            str | list[str]: The new id, or the new ids in input order.

        Raises:
            RemoteError: On the first failed creation. Creations already issued are not rolled back.
        """
        handle = await self.connect()

        async def _create(item: dict[str, Any]) -> str:
            account = await self._create_account(handle, item)
            return Translator.convert_href_to_id(account.href)

        if isinstance(data, list):
            ids = await self._fan_out(f"create {model}", data, _create)
            self.logging.info("Created %d %s records.", len(ids), model)
            return ids
        return await _create(data)

    async def find(self, model: str, id: str, include: list[str] | str | None = None) -> Record:
        """Find a record by id.

        Raises:
            NotFoundError: If no account with this id exists.
        """
        handle = await self.connect()
        account = await handle.client.do_fetch_account(self._account_href(handle, id), expand=Translator.build_expand(include))
        return Translator.convert_account_to_record(account)

    async def exists(self, model: str, id: str) -> bool:
        """Check if a record exists. Only server side failures are raised, every other error means False."""
        handle = await self.connect()
        try:
            await handle.client.do_fetch_account(self._account_href(handle, id))
        except RemoteServerError:
            raise
        except ConnectorError as e:
            self.logging.debug("%s %s treated as absent: %s", model, id, e)
            return False
        return True

    async def save(self, model: str, data: dict[str, Any]) -> bool:
        """Write the given record back to its account.

        Raises:
            RecordValidationError: If the record has no id.
            NotFoundError: If the account no longer exists.
        """
        if not data.get("id"):
            raise RecordValidationError(f"Cannot save a {model} record without id.")
        handle = await self.connect()
        account = await handle.client.do_fetch_account(self._account_href(handle, data["id"]), expand=[CUSTOM_DATA])
        Translator.update_account(account, data)
        await self._save_account(handle, account)
        return True

    async def update_or_create(self, model: str, data: dict[str, Any]) -> Record:
        """Update the account identified by id (or else by email) or create it if it does not exist.

        Returns:
            Record: The merged (or created) record.

        Raises:
            RecordValidationError: If neither id nor email is supplied.
        """
        handle = await self.connect()
        account: AccountDetails | None = None

        if data.get("id"):
            try:
                account = await handle.client.do_fetch_account(self._account_href(handle, data["id"]), expand=[CUSTOM_DATA])
            except NotFoundError:
                account = None
        elif data.get("email"):
            email = Translator.normalize_email(data["email"])
            matches = await handle.client.do_fetch_accounts(handle.application, query={"email": email}, expand=[CUSTOM_DATA], page_size=self._page_size)
            # the remote search is not guaranteed to be an exact match
            account = next((acc for acc in matches if acc.email and Translator.normalize_email(acc.email) == email), None)
        else:
            raise RecordValidationError(f"Cannot update or create a {model} record without id or email.")

        if account is None:
            self.logging.debug("No %s found for update, creating a new one.", model)
            created = await self._create_account(handle, data)
            return Translator.convert_account_to_record(created)

        Translator.update_account(account, data)
        await self._save_account(handle, account)
        return Translator.convert_account_to_record(account)

    async def all(self, model: str, filter: dict | Filter | None = None) -> list[Record]:
        """Find all records matching the filter.

        Only string equality on the searchable fields is applied remotely, `limit` is applied after
        every page has been fetched.
        """
        flt = self._parse_filter(filter)
        handle = await self.connect()
        accounts = await handle.client.do_fetch_accounts(
            handle.application,
            query=Translator.build_where(flt.where),
            expand=Translator.build_expand(flt.include),
            page_size=self._page_size,
        )
        records = [Translator.convert_account_to_record(account) for account in accounts]
        if flt.limit is not None:
            records = records[:flt.limit]
        return records

    async def count(self, model: str, where: dict[str, Any] | None = None) -> int:
        """Count the records matching the where clause."""
        handle = await self.connect()
        return await handle.client.do_count_accounts(handle.application, query=Translator.build_where(where))

    async def destroy_all(self, model: str, where: dict[str, Any] | None = None) -> int:
        """Delete all records matching the where clause.

        Returns:
            int: The number of records found before deleting, not a confirmed count of deletions.

        Raises:
            RemoteError: If any delete failed. Some accounts may be deleted already.
        """
        handle = await self.connect()
        accounts = await handle.client.do_fetch_accounts(handle.application, query=Translator.build_where(where), page_size=self._page_size)
        hrefs = [account.href for account in accounts]
        await self._fan_out(f"destroyAll {model}", hrefs, handle.client.do_delete_account)
        self.logging.info("Deleted %d %s records.", len(hrefs), model)
        return len(hrefs)

    async def update_all(self, model: str, where: dict[str, Any] | None, data: dict[str, Any]) -> int:
        """Overlay data onto every record matching the where clause and save each of them.

        Unlike update_or_create, standard fields present in data are copied as given, so None or ""
        clears them.

        Returns:
            int: The number of saved records.

        Raises:
            RemoteError: If any save failed. Some accounts may be saved already.
        """
        handle = await self.connect()
        changes = {key: val for key, val in data.items() if key != "id"}
        accounts = await handle.client.do_fetch_accounts(handle.application, query=Translator.build_where(where), expand=[CUSTOM_DATA], page_size=self._page_size)

        async def _update(account: AccountDetails) -> None:
            Translator.update_account(account, changes, overwrite=True)
            await self._save_account(handle, account)

        await self._fan_out(f"updateAll {model}", accounts, _update)
        self.logging.info("Updated %d %s records.", len(accounts), model)
        return len(accounts)

    update = update_all

    async def authenticate(self, model: str, login: str, password: str) -> Record:
        """Verify a login (username or email) and password, returning the matching record.

        Raises:
            RemoteClientError: If the remote store rejects the credentials.
        """
        handle = await self.connect()
        account_href = await handle.client.do_authenticate_account(handle.application, login, password)
        account = await handle.client.do_fetch_account(account_href)
        return Translator.convert_account_to_record(account)
