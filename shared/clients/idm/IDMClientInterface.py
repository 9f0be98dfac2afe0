from abc import abstractmethod

import httpx

from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientInterface import ClientInterface
from shared.clients.idm.models.Account import AccountDetails, AccountsListResponse, CustomDataDetails
from shared.clients.idm.models.Application import ApplicationDetails


class IDMClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(helper_config=helper_config, transport=transport)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "idm"
        """
        return "idm"

    @abstractmethod
    def get_application_href(self) -> str:
        """
        Returns the configured href of the application that scopes all account operations.
        """
        pass

    @abstractmethod
    def get_account_href_prefix(self) -> str:
        """
        Returns the prefix an account id is appended to in order to build its href.

        Returns:
            str: E.g. "https://api.stormpath.com/v1/accounts/"
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_accounts(self, application: ApplicationDetails) -> str:
        """
        Returns the endpoint for account creation and account search within an application.
        """
        pass

    @abstractmethod
    def _get_endpoint_login_attempts(self, application: ApplicationDetails) -> str:
        """
        Returns the endpoint that verifies a login / password pair within an application.
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def _build_search_params(self, query: dict[str, str], expand: list[str], offset: int, limit: int) -> dict:
        """
        Builds the query parameters for an account search request.

        Args:
            query (dict[str, str]): Equality conditions on searchable fields.
            expand (list[str]): Names of nested resources to materialise in the response.
            offset (int): Index of the first item of the requested page.
            limit (int): Maximum number of items in the requested page.

        Returns:
            dict: The query parameters.
        """
        pass

    @abstractmethod
    def _build_expand_params(self, expand: list[str]) -> dict:
        """
        Builds the query parameters that expand nested resources of a single account.
        """
        pass

    @abstractmethod
    def _build_account_update_payload(self, account: AccountDetails) -> dict:
        """
        Builds the body of an account update request from the (locally modified) account.
        """
        pass

    @abstractmethod
    def _build_login_payload(self, login: str, password: str) -> dict:
        """
        Builds the body of a login attempt.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_fetch_application(self, application_href: str | None = None) -> ApplicationDetails:
        """
        Fetches the application that scopes all account operations.

        Args:
            application_href (str | None): The href of the application. Defaults to the configured one.

        Returns:
            ApplicationDetails: The resolved application.

        Raises:
            NotFoundError: If the application does not exist.
            RemoteError: If the request fails.
        """
        href = application_href or self.get_application_href()
        resp = await self.do_request(method="GET", endpoint=href)
        return self._parse_endpoint_application(resp.json())

    async def do_create_account(self, application: ApplicationDetails, payload: dict) -> AccountDetails:
        """
        Creates a new account in the given application.

        Args:
            application (ApplicationDetails): The application to create the account in.
            payload (dict): The account fields, including password and custom data.

        Returns:
            AccountDetails: The created account as returned by the backend.
        """
        resp = await self.do_request(method="POST", endpoint=self._get_endpoint_accounts(application), json=payload)
        account = self._parse_endpoint_account(resp.json())
        self.logging.debug("Created account %s in %s", account.href, self._get_engine_name())
        return account

    async def do_fetch_account(self, account_href: str, expand: list[str] | None = None) -> AccountDetails:
        """
        Fetches a single account.

        Args:
            account_href (str): The href of the account.
            expand (list[str] | None): Names of nested resources to materialise, e.g. ["customData"].

        Returns:
            AccountDetails: The fetched account.

        Raises:
            NotFoundError: If the account does not exist.
        """
        params = self._build_expand_params(expand) if expand else None
        resp = await self.do_request(method="GET", endpoint=account_href, params=params)
        return self._parse_endpoint_account(resp.json())

    async def do_fetch_accounts(self, application: ApplicationDetails, query: dict[str, str] | None = None, expand: list[str] | None = None, page_size: int = 100) -> list[AccountDetails]:
        """
        Fetches all accounts of the application matching the query. Every page is consumed.

        Args:
            application (ApplicationDetails): The application to search in.
            query (dict[str, str] | None): Equality conditions on searchable fields.
            expand (list[str] | None): Names of nested resources to materialise.
            page_size (int): Number of accounts requested per page.

        Returns:
            list[AccountDetails]: All matching accounts.
        """
        accounts: list[AccountDetails] = []
        offset = 0
        while True:
            params = self._build_search_params(query or {}, expand or [], offset=offset, limit=page_size)
            resp = await self.do_request(method="GET", endpoint=self._get_endpoint_accounts(application), params=params)
            page = self._parse_endpoint_accounts(resp.json())
            accounts.extend(page.accounts)
            self.logging.debug("Fetched accounts at offset %d from %s, total accounts so far: %d of %d", offset, self._get_engine_name(), len(accounts), page.size)
            offset += len(page.accounts)
            if not page.accounts or offset >= page.size:
                break
        return accounts

    async def do_count_accounts(self, application: ApplicationDetails, query: dict[str, str] | None = None) -> int:
        """
        Returns the size of the result set of an account search, without fetching it.
        """
        params = self._build_search_params(query or {}, [], offset=0, limit=1)
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_accounts(application), params=params)
        return self._parse_endpoint_accounts(resp.json()).size

    async def do_save_account(self, account: AccountDetails) -> AccountDetails:
        """
        Writes the standard fields (and a new password, if set) of the account back to the backend.
        Custom data is saved separately with do_save_custom_data().
        """
        payload = self._build_account_update_payload(account)
        resp = await self.do_request(method="POST", endpoint=account.href, json=payload)
        account.password = None
        account.assigned_fields.clear()
        return self._parse_endpoint_account(resp.json())

    async def do_save_custom_data(self, account: AccountDetails) -> CustomDataDetails:
        """
        Writes the custom data of the account back to the backend.

        Raises:
            ValueError: If the account has no expanded custom data.
        """
        if account.customData is None:
            raise ValueError(f"Custom data of account {account.href} is not expanded, nothing to save.")
        href = account.customData.href or account.custom_data_href or f"{account.href.rstrip('/')}/customData"
        resp = await self.do_request(method="POST", endpoint=href, json=dict(account.customData.data))
        return self._parse_custom_data(resp.json())

    async def do_delete_account(self, account_href: str) -> None:
        """
        Deletes a single account.

        Raises:
            NotFoundError: If the account does not exist.
        """
        await self.do_request(method="DELETE", endpoint=account_href)
        self.logging.debug("Deleted account %s from %s", account_href, self._get_engine_name())

    async def do_authenticate_account(self, application: ApplicationDetails, login: str, password: str) -> str:
        """
        Verifies a login / password pair against the application.

        Returns:
            str: The href of the authenticated account.

        Raises:
            RemoteClientError: If the credentials are rejected.
        """
        resp = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_login_attempts(application),
            json=self._build_login_payload(login, password),
        )
        return self._parse_endpoint_login_attempt(resp.json())

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def _parse_endpoint_application(self, response: dict) -> ApplicationDetails:
        """
        Parses a raw application dict from the backend API into an ApplicationDetails object.
        """
        pass

    @abstractmethod
    def _parse_endpoint_account(self, response: dict) -> AccountDetails:
        """
        Parses a raw account dict from the backend API into an AccountDetails object.
        """
        pass

    @abstractmethod
    def _parse_endpoint_accounts(self, response: dict) -> AccountsListResponse:
        """
        Parses one page of an account search into an AccountsListResponse object.
        """
        pass

    @abstractmethod
    def _parse_custom_data(self, response: dict) -> CustomDataDetails:
        """
        Parses a raw custom data dict from the backend API into a CustomDataDetails object.
        """
        pass

    @abstractmethod
    def _parse_endpoint_login_attempt(self, response: dict) -> str:
        """
        Parses the answer of a successful login attempt.

        Returns:
            str: The href of the authenticated account.
        """
        pass
