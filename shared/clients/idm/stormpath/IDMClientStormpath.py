import base64

import httpx

from shared.clients.idm.IDMClientInterface import IDMClientInterface
from shared.clients.idm.models.Account import AccountDetails, AccountsListResponse, CustomDataDetails
from shared.clients.idm.models.Application import ApplicationDetails
from shared.clients.ClientErrors import RemoteServerError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

# keys of a custom data resource that belong to the backend, not to the user
CUSTOM_DATA_META_FIELDS = ("href", "createdAt", "modifiedAt")
# account fields that can be written with an account update
WRITABLE_ACCOUNT_FIELDS = ("username", "email", "givenName", "middleName", "surname", "status")


class IDMClientStormpath(IDMClientInterface):
    def __init__(self, helper_config: HelperConfig, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(helper_config=helper_config, transport=transport)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.stormpath.com/v1", val_type="string")
        self._api_key_id = self.get_config_val("API_KEY_ID", default=None, val_type="string")
        self._api_key_secret = self.get_config_val("API_KEY_SECRET", default=None, val_type="string")
        self._application_href = self.get_config_val("APPLICATION_HREF", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Stormpath"

    def get_application_href(self) -> str:
        return self._application_href

    def get_account_href_prefix(self) -> str:
        return f"{self._base_url.rstrip('/')}/accounts/"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.stormpath.com/v1"),
            EnvConfig(env_key="API_KEY_ID", val_type="string", default=None),
            EnvConfig(env_key="API_KEY_SECRET", val_type="string", default=None, secret=True),
            EnvConfig(env_key="APPLICATION_HREF", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        token = base64.b64encode(f"{self._api_key_id}:{self._api_key_secret}".encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {token}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/tenants/current"

    def _get_endpoint_accounts(self, application: ApplicationDetails) -> str:
        return application.accounts_href

    def _get_endpoint_login_attempts(self, application: ApplicationDetails) -> str:
        return application.login_attempts_href

    ################ PAYLOAD BUILDER ##################
    def _build_expand_params(self, expand: list[str]) -> dict:
        return {"expand": ",".join(expand)}

    def _build_search_params(self, query: dict[str, str], expand: list[str], offset: int, limit: int) -> dict:
        params: dict = dict(query)
        if expand:
            params.update(self._build_expand_params(expand))
        params["offset"] = offset
        # stormpath caps collection pages at 100 items
        params["limit"] = max(1, min(limit, 100))
        return params

    def _build_account_update_payload(self, account: AccountDetails) -> dict:
        payload = {
            field: getattr(account, field) for field in WRITABLE_ACCOUNT_FIELDS
            if getattr(account, field) is not None or field in account.assigned_fields
        }
        if account.password:
            payload["password"] = account.password
        return payload

    def _build_login_payload(self, login: str, password: str) -> dict:
        value = base64.b64encode(f"{login}:{password}".encode("utf-8")).decode("ascii")
        return {"type": "basic", "value": value}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def _parse_endpoint_application(self, response: dict) -> ApplicationDetails:
        href = response.get("href")
        if not href:
            raise RemoteServerError("Stormpath returned an application without href.")
        return ApplicationDetails(
            engine=self._get_engine_name(),
            href=href,
            name=response.get("name"),
            status=response.get("status"),
            accounts_href=(response.get("accounts") or {}).get("href") or f"{href.rstrip('/')}/accounts",
            login_attempts_href=(response.get("loginAttempts") or {}).get("href") or f"{href.rstrip('/')}/loginAttempts",
        )

    def _parse_endpoint_account(self, response: dict) -> AccountDetails:
        href = response.get("href")
        if not href:
            raise RemoteServerError("Stormpath returned an account without href.")

        # custom data is either a bare link or, when expanded, the full resource
        raw_custom_data = response.get("customData")
        custom_data_href = None
        custom_data = None
        if isinstance(raw_custom_data, dict):
            custom_data_href = raw_custom_data.get("href")
            if set(raw_custom_data) - {"href"}:
                custom_data = self._parse_custom_data(raw_custom_data)

        return AccountDetails(
            engine=self._get_engine_name(),
            href=href,
            username=response.get("username"),
            email=response.get("email"),
            givenName=response.get("givenName"),
            middleName=response.get("middleName"),
            surname=response.get("surname"),
            status=response.get("status"),
            custom_data_href=custom_data_href,
            customData=custom_data,
        )

    def _parse_endpoint_accounts(self, response: dict) -> AccountsListResponse:
        accounts = [self._parse_endpoint_account(item) for item in response.get("items", [])]
        return AccountsListResponse(
            engine=self._get_engine_name(),
            accounts=accounts,
            offset=response.get("offset") or 0,
            limit=response.get("limit"),
            size=response.get("size") or 0,
        )

    def _parse_custom_data(self, response: dict) -> CustomDataDetails:
        return CustomDataDetails(
            href=response.get("href"),
            createdAt=response.get("createdAt"),
            modifiedAt=response.get("modifiedAt"),
            data={key: val for key, val in response.items() if key not in CUSTOM_DATA_META_FIELDS},
        )

    def _parse_endpoint_login_attempt(self, response: dict) -> str:
        href = (response.get("account") or {}).get("href")
        if not href:
            raise RemoteServerError("Stormpath accepted the login attempt but returned no account href.")
        return href
