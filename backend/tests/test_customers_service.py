import asyncio

import pytest

from config import settings
from conftest import AUTH_USER, PASSWORD
from errors import UpstreamError
from schemas import RegisterRequest
from services import auth_service, customers_service
from services.customers_service import (
    build_customer_record,
    find_or_create_customer,
    normalize_phone,
)


def test_build_customer_record_normalizes_fields():
    record = build_customer_record(
        {
            "first_name": " Grace ",
            "last_name": "Hopper",
            "email": " grace@example.com ",
            "phone": "+1 (555) 010-9999",
            "delivery_address": "z" * 400,
        },
        user_id="auth-1",
    )

    assert record["first_name"] == "Grace"
    assert record["email"] == "grace@example.com"
    assert record["phone"] == "15550109999"
    assert len(record["delivery_address"]) == 255
    assert record["user_id"] == "auth-1"


def test_normalize_phone_accepts_numbers():
    assert normalize_phone(700123456) == "700123456"
    assert normalize_phone(None) == ""


def test_find_or_create_is_idempotent_per_email(store):
    data = {
        "first_name": "Grace",
        "last_name": "Hopper",
        "email": "grace@example.com",
        "phone": "555",
        "delivery_address": "Arlington",
    }

    async def resolve_twice():
        first = await find_or_create_customer(store, data)
        second = await find_or_create_customer(store, dict(data, first_name="Other"))
        return first, second

    first, second = asyncio.run(resolve_twice())

    assert first.created and not second.created
    assert first.id == second.id
    assert len(store.rows(settings.customers_table)) == 1


def test_concurrent_checkouts_share_one_customer(store):
    data = {
        "first_name": "Grace",
        "last_name": "Hopper",
        "email": "grace@example.com",
        "phone": "555",
        "delivery_address": "Arlington",
    }

    async def resolve_concurrently():
        return await asyncio.gather(
            *(find_or_create_customer(store, data) for _ in range(5))
        )

    results = asyncio.run(resolve_concurrently())

    assert len({item.id for item in results}) == 1
    assert len(store.rows(settings.customers_table)) == 1


def test_lock_key_ignores_case():
    assert customers_service._lock_key("Grace@Example.com") == customers_service._lock_key(
        "grace@example.com"
    )


def _customer_data(email):
    return {
        "first_name": "Grace",
        "last_name": "Hopper",
        "email": email,
        "phone": "555",
        "delivery_address": "Arlington",
    }


def test_lock_registry_is_emptied_after_use(store):
    async def resolve_many():
        for number in range(20):
            await find_or_create_customer(store, _customer_data(f"user{number}@example.com"))
        await asyncio.gather(
            *(find_or_create_customer(store, _customer_data("shared@example.com")) for _ in range(5))
        )

    asyncio.run(resolve_many())

    assert customers_service._email_locks == {}


def test_lock_is_released_when_the_store_fails(store):
    store.fail_when("list", settings.customers_table)

    with pytest.raises(UpstreamError):
        asyncio.run(find_or_create_customer(store, _customer_data("grace@example.com")))

    assert customers_service._email_locks == {}


def test_registration_and_checkout_share_the_email_lock(store, auth_client):
    payload = RegisterRequest(**_customer_data("ada@example.com"), password=PASSWORD)

    async def register_during_checkout():
        return await asyncio.gather(
            auth_service.register(store, auth_client, payload),
            find_or_create_customer(store, _customer_data("ada@example.com")),
        )

    (_, session), resolved = asyncio.run(register_during_checkout())

    customers = store.rows(settings.customers_table)
    assert len(customers) == 1
    assert customers[0]["user_id"] == AUTH_USER["id"]
    assert resolved.id == customers[0]["id"]
    assert not resolved.created
    assert session.user.customer_id == customers[0]["id"]
