import pytest

from connector.idm_connector import initialize
from shared.clients.ClientErrors import (
    NotFoundError,
    RecordValidationError,
    RemoteClientError,
    RemoteServerError,
)
from fake_stormpath import APPLICATION_ID, SETTINGS

ACCOUNTS_PATH = f"/applications/{APPLICATION_ID}/accounts"


def user(email: str, **fields) -> dict:
    data = {"givenName": "Randall", "surname": "Degges", "email": email, "password": "Secret123"}
    data.update(fields)
    return data


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_returns_id(self, connector, fake_store):
        user_id = await connector.create("User", user("randall@example.com", favoriteColor="blue"))

        assert user_id in fake_store.accounts
        assert fake_store.accounts[user_id]["email"] == "randall@example.com"
        assert fake_store.custom_data[user_id] == {"favoriteColor": "blue"}

    @pytest.mark.asyncio
    async def test_batch_create_keeps_input_order(self, connector):
        ids = await connector.create("User", [
            user("a@example.com", givenName="Alice"),
            user("b@example.com", givenName="Bob"),
        ])

        assert len(ids) == 2
        first = await connector.find("User", ids[0])
        second = await connector.find("User", ids[1])
        assert (first.givenName, first.email) == ("Alice", "a@example.com")
        assert (second.givenName, second.email) == ("Bob", "b@example.com")

    @pytest.mark.asyncio
    async def test_batch_create_partial_failure_is_not_rolled_back(self, connector, fake_store):
        batch = [
            user("a@example.com"),
            {"email": "no-password@example.com"},
            user("c@example.com"),
        ]

        with pytest.raises(RemoteClientError) as exc_info:
            await connector.create("User", batch)

        assert exc_info.value.status == 400
        emails = sorted(fields["email"] for fields in fake_store.accounts.values())
        assert emails == ["a@example.com", "c@example.com"]


class TestFind:
    @pytest.mark.asyncio
    async def test_find_round_trip(self, connector):
        user_id = await connector.create("User", user("randall@example.com"))
        record = await connector.find("User", user_id)

        assert record.id == user_id
        assert record.givenName == "Randall"
        assert record.surname == "Degges"
        assert record.email == "randall@example.com"
        assert record.customData is None

    @pytest.mark.asyncio
    async def test_find_with_custom_data(self, connector, fake_store):
        user_id = fake_store.seed(email="r@example.com", givenName="Randall", custom_data={"plan": "pro"})
        record = await connector.find("User", user_id, include="customData")

        assert record.customData == {"plan": "pro"}

    @pytest.mark.asyncio
    async def test_find_missing(self, connector):
        with pytest.raises(NotFoundError):
            await connector.find("User", "doesNotExist")


class TestExists:
    @pytest.mark.asyncio
    async def test_exists_is_stable(self, connector, fake_store):
        user_id = fake_store.seed(email="r@example.com")

        assert await connector.exists("User", user_id) is True
        assert await connector.exists("User", user_id) is True
        assert await connector.exists("User", "doesNotExist") is False
        assert await connector.exists("User", "doesNotExist") is False

    @pytest.mark.asyncio
    async def test_client_errors_mean_absent(self, connector, fake_store):
        user_id = fake_store.seed(email="r@example.com")
        fake_store.fail("GET", f"/accounts/{user_id}", status=403)

        assert await connector.exists("User", user_id) is False

    @pytest.mark.asyncio
    async def test_server_errors_propagate(self, connector, fake_store):
        user_id = fake_store.seed(email="r@example.com")
        fake_store.fail("GET", f"/accounts/{user_id}", status=500)

        with pytest.raises(RemoteServerError):
            await connector.exists("User", user_id)


class TestSave:
    @pytest.mark.asyncio
    async def test_save_writes_fields_back(self, connector, fake_store):
        user_id = fake_store.seed(email="r@example.com", givenName="Randall", surname="Degges", custom_data={"plan": "free"})

        assert await connector.save("User", {"id": user_id, "surname": "D.", "plan": "pro"}) is True
        assert fake_store.accounts[user_id]["surname"] == "D."
        assert fake_store.accounts[user_id]["givenName"] == "Randall"
        assert fake_store.custom_data[user_id] == {"plan": "pro"}

    @pytest.mark.asyncio
    async def test_save_requires_id(self, connector):
        with pytest.raises(RecordValidationError):
            await connector.save("User", {"email": "r@example.com"})

    @pytest.mark.asyncio
    async def test_save_missing_record(self, connector):
        with pytest.raises(NotFoundError):
            await connector.save("User", {"id": "doesNotExist", "surname": "x"})


class TestUpdateOrCreate:
    @pytest.mark.asyncio
    async def test_partial_update_keeps_existing_data(self, connector, fake_store):
        user_id = fake_store.seed(
            email="old@example.com", givenName="Randall", surname="Degges", middleName="M",
            custom_data={"favoriteColor": "blue", "age": 30},
        )

        record = await connector.update_or_create("User", {"id": user_id, "email": "new@example.com"})

        assert record.id == user_id
        assert (record.givenName, record.middleName, record.surname) == ("Randall", "M", "Degges")
        assert record.email == "new@example.com"
        assert record.customData == {"favoriteColor": "blue", "age": 30}
        assert fake_store.accounts[user_id]["email"] == "new@example.com"
        assert fake_store.custom_data[user_id] == {"favoriteColor": "blue", "age": 30}

    @pytest.mark.asyncio
    async def test_extra_keys_are_merged_into_custom_data(self, connector, fake_store):
        user_id = fake_store.seed(email="r@example.com", custom_data={"favoriteColor": "blue"})

        record = await connector.update_or_create("User", {"id": user_id, "age": 31})

        assert record.customData == {"favoriteColor": "blue", "age": 31}
        assert fake_store.custom_data[user_id] == {"favoriteColor": "blue", "age": 31}

    @pytest.mark.asyncio
    async def test_email_lookup_is_case_insensitive(self, connector, fake_store):
        user_id = await connector.create("User", user("Foo@Bar.com", givenName="Foo"))

        record = await connector.update_or_create("User", {"email": "foo@bar.com", "givenName": "Fooz"})

        assert record.id == user_id
        assert record.givenName == "Fooz"
        assert len(fake_store.accounts) == 1

    @pytest.mark.asyncio
    async def test_unknown_id_creates(self, connector, fake_store):
        record = await connector.update_or_create("User", {"id": "doesNotExist", **user("new@example.com")})

        assert record.id != "doesNotExist"
        assert record.id in fake_store.accounts

    @pytest.mark.asyncio
    async def test_unknown_email_creates(self, connector, fake_store):
        record = await connector.update_or_create("User", user("new@example.com"))

        assert fake_store.accounts[record.id]["email"] == "new@example.com"

    @pytest.mark.asyncio
    async def test_requires_id_or_email(self, connector, fake_store):
        with pytest.raises(RecordValidationError):
            await connector.update_or_create("User", {"givenName": "Nobody"})
        assert fake_store.accounts == {}

    @pytest.mark.asyncio
    async def test_custom_data_not_saved_without_user_keys(self, connector, fake_store):
        user_id = fake_store.seed(email="r@example.com", givenName="Randall")

        await connector.update_or_create("User", {"id": user_id, "givenName": "Rand"})

        assert fake_store.requests_to("POST", f"/accounts/{user_id}")
        assert not fake_store.requests_to("POST", f"/accounts/{user_id}/customData")

    @pytest.mark.asyncio
    async def test_account_and_custom_data_writes_are_independent(self, connector, fake_store):
        user_id = fake_store.seed(email="r@example.com", givenName="Randall", custom_data={"plan": "free"})
        fake_store.fail("POST", f"/accounts/{user_id}/customData", status=500)

        with pytest.raises(RemoteServerError):
            await connector.update_or_create("User", {"id": user_id, "givenName": "Rand", "plan": "pro"})

        # the account write went through, the custom data write did not
        assert fake_store.accounts[user_id]["givenName"] == "Rand"
        assert fake_store.custom_data[user_id] == {"plan": "free"}

    @pytest.mark.asyncio
    async def test_server_error_on_lookup_propagates(self, connector, fake_store):
        user_id = fake_store.seed(email="r@example.com")
        fake_store.fail("GET", f"/accounts/{user_id}", status=502)

        with pytest.raises(RemoteServerError):
            await connector.update_or_create("User", {"id": user_id, "givenName": "x"})
        assert len(fake_store.accounts) == 1


class TestQueries:
    @pytest.mark.asyncio
    async def test_search_applies_allow_listed_fields_only(self, connector, fake_store):
        fake_store.seed(email="r1@example.com", givenName="Randall", custom_data={"customField": "x"})
        fake_store.seed(email="r2@example.com", givenName="Randall", custom_data={"customField": "y"})
        fake_store.seed(email="b@example.com", givenName="Bob", custom_data={"customField": "x"})

        records = await connector.all("User", {"where": {"givenName": "Randall", "customField": "x"}})

        assert sorted(r.email for r in records) == ["r1@example.com", "r2@example.com"]
        assert all(r.givenName == "Randall" for r in records)

    @pytest.mark.asyncio
    async def test_limit_is_applied_after_fetching(self, connector, fake_store):
        for i in range(5):
            fake_store.seed(email=f"u{i}@example.com")

        records = await connector.all("User", {"limit": 2})

        assert [r.email for r in records] == ["u0@example.com", "u1@example.com"]

    @pytest.mark.asyncio
    async def test_include_expands_custom_data(self, connector, fake_store):
        fake_store.seed(email="r@example.com", custom_data={"plan": "pro"})

        plain = await connector.all("User")
        expanded = await connector.all("User", {"include": "customData"})

        assert plain[0].customData is None
        assert expanded[0].customData == {"plan": "pro"}

    @pytest.mark.asyncio
    async def test_include_objects_are_ignored(self, connector, fake_store):
        fake_store.seed(email="r@example.com", custom_data={"plan": "pro"})

        records = await connector.all("User", {"include": [{"relation": "groups"}, "customData"]})
        plain = await connector.all("User", {"include": [{"relation": "groups"}]})

        assert records[0].customData == {"plan": "pro"}
        assert plain[0].customData is None

    @pytest.mark.asyncio
    async def test_every_page_is_consumed(self, logger, client_factory, fake_store):
        connector = initialize({**SETTINGS, "pageSize": 2}, logger=logger, client_factory=client_factory)
        for i in range(5):
            fake_store.seed(email=f"u{i}@example.com")

        records = await connector.all("User", {})

        assert len(records) == 5
        assert len(fake_store.requests_to("GET", ACCOUNTS_PATH)) == 3

    @pytest.mark.asyncio
    async def test_invalid_filter(self, connector):
        with pytest.raises(RecordValidationError):
            await connector.all("User", {"limit": -1})

    @pytest.mark.asyncio
    async def test_count_with_where(self, connector, fake_store):
        fake_store.seed(email="r1@example.com", givenName="Randall")
        fake_store.seed(email="r2@example.com", givenName="Randall")
        fake_store.seed(email="b@example.com", givenName="Bob")

        assert await connector.count("User", {"givenName": "Randall"}) == 2
        assert await connector.count("User", {"givenName": "Nobody"}) == 0


class TestDestroyAll:
    @pytest.mark.asyncio
    async def test_count_and_destroy_all_agree(self, connector, fake_store):
        for i in range(3):
            fake_store.seed(email=f"u{i}@example.com")

        assert await connector.count("User", {}) == 3
        assert await connector.destroy_all("User", {}) == 3
        assert await connector.count("User", {}) == 0

    @pytest.mark.asyncio
    async def test_destroy_all_with_where(self, connector, fake_store):
        fake_store.seed(email="r@example.com", givenName="Randall")
        keep = fake_store.seed(email="b@example.com", givenName="Bob")

        assert await connector.destroy_all("User", {"givenName": "Randall"}) == 1
        assert list(fake_store.accounts) == [keep]

    @pytest.mark.asyncio
    async def test_partial_failure_leaves_other_deletes_done(self, connector, fake_store):
        ids = [fake_store.seed(email=f"u{i}@example.com") for i in range(3)]
        fake_store.fail("DELETE", f"/accounts/{ids[1]}", status=500)

        with pytest.raises(RemoteServerError):
            await connector.destroy_all("User")

        assert list(fake_store.accounts) == [ids[1]]


class TestUpdateAll:
    @pytest.mark.asyncio
    async def test_update_all_overlays_matches(self, connector, fake_store):
        r1 = fake_store.seed(email="r1@example.com", givenName="Randall", surname="Degges")
        r2 = fake_store.seed(email="r2@example.com", givenName="Randall", surname="Degges")
        bob = fake_store.seed(email="b@example.com", givenName="Bob", surname="Builder")

        count = await connector.update_all("User", {"givenName": "Randall"}, {"id": "ignored", "surname": "D.", "team": "core"})

        assert count == 2
        for user_id in (r1, r2):
            assert fake_store.accounts[user_id]["surname"] == "D."
            assert fake_store.custom_data[user_id] == {"team": "core"}
        assert fake_store.accounts[bob]["surname"] == "Builder"
        assert fake_store.custom_data[bob] == {}

    @pytest.mark.asyncio
    async def test_update_all_can_clear_fields(self, connector, fake_store):
        user_id = fake_store.seed(email="r@example.com", givenName="Randall", middleName="M", surname="Degges")

        count = await connector.update_all("User", {}, {"middleName": None, "surname": ""})

        assert count == 1
        assert fake_store.accounts[user_id]["middleName"] is None
        assert fake_store.accounts[user_id]["surname"] == ""
        assert fake_store.accounts[user_id]["givenName"] == "Randall"

    @pytest.mark.asyncio
    async def test_update_is_an_alias(self, connector, fake_store):
        fake_store.seed(email="r@example.com")

        assert await connector.update("User", {}, {"surname": "X"}) == 1

    @pytest.mark.asyncio
    async def test_partial_failure_is_reported(self, connector, fake_store):
        ok = fake_store.seed(email="ok@example.com", surname="A")
        broken = fake_store.seed(email="broken@example.com", surname="A")
        fake_store.fail("POST", f"/accounts/{broken}", status=503)

        with pytest.raises(RemoteServerError):
            await connector.update_all("User", {}, {"surname": "B"})

        assert fake_store.accounts[ok]["surname"] == "B"
        assert fake_store.accounts[broken]["surname"] == "A"


class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_login_with_email(self, connector):
        user_id = await connector.create("User", user("randall@example.com"))

        record = await connector.authenticate("User", "randall@example.com", "Secret123")

        assert record.id == user_id
        assert record.email == "randall@example.com"

    @pytest.mark.asyncio
    async def test_login_with_new_password_after_update(self, connector):
        user_id = await connector.create("User", user("randall@example.com"))
        await connector.update_or_create("User", {"id": user_id, "password": "N3wSecret"})

        record = await connector.authenticate("User", "randall@example.com", "N3wSecret")
        assert record.id == user_id

    @pytest.mark.asyncio
    async def test_wrong_password(self, connector):
        await connector.create("User", user("randall@example.com"))

        with pytest.raises(RemoteClientError) as exc_info:
            await connector.authenticate("User", "randall@example.com", "wrong")

        assert exc_info.value.status == 400
        assert exc_info.value.code == 7100
