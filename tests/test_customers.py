from datetime import datetime

import pytest

from sahar.backend import BackendError
from sahar.customers import CustomerDirectory, customer_tier
from sahar.models import Customer


@pytest.fixture
def directory(backend):
    return CustomerDirectory(backend)


def test_short_phone_does_no_lookup_and_no_write(directory, backend):
    assert directory.lookup_by_phone("0101") is None
    assert directory.upsert_on_checkout(None, "Sara", "0101234", 50) is None
    assert backend.writes == []
    assert backend.select(Customer) == []


def test_new_customer_created_with_first_order(directory, backend):
    now = datetime(2024, 5, 1, 12, 0)
    c = directory.upsert_on_checkout(None, "Sara", "01012345678", 75, now=now)
    assert (c.phone, c.name, c.total_orders, c.total_spent) == ("01012345678", "Sara", 1, 75)
    assert c.first_visit == c.last_visit == now
    assert directory.lookup_by_phone("01012345678").id == c.id


def test_new_customer_without_name(directory):
    c = directory.upsert_on_checkout(None, "", "01099999999", 10)
    assert c.name == "Unknown"


def test_existing_customer_increments(directory, backend):
    before = backend.insert_one(Customer, {
        "phone": "01000000001", "name": "Omar", "total_orders": 4, "total_spent": 300,
        "first_visit": datetime(2024, 1, 1), "last_visit": datetime(2024, 1, 1),
    })
    now = datetime(2024, 6, 1, 9, 30)
    after = directory.upsert_on_checkout(before, "ignored", "01000000001", 20, now=now)
    assert after.total_orders == 5
    assert after.total_spent == 320
    assert after.last_visit == now
    assert after.first_visit == datetime(2024, 1, 1)
    assert after.name == "Omar"


def test_increment_is_relative_to_stored_values(directory, backend):
    # a stale in-memory copy must not reset the counters
    c = backend.insert_one(Customer, {"phone": "01000000002", "name": "Mona", "total_orders": 1, "total_spent": 50})
    directory.upsert_on_checkout(c, "Mona", c.phone, 10)
    directory.upsert_on_checkout(c, "Mona", c.phone, 10)
    row = backend.get(Customer, c.id)
    assert (row.total_orders, row.total_spent) == (3, 70)


def test_upsert_failure_raises_backend_error(directory, backend):
    backend.fail_on.add(("insert", "customers"))
    with pytest.raises(BackendError):
        directory.upsert_on_checkout(None, "Sara", "01012345678", 75)


def test_list_and_tier(directory, backend):
    backend.insert(Customer, [
        {"phone": "01000000003", "name": "Big Spender", "total_orders": 40, "total_spent": 6000},
        {"phone": "01000000004", "name": "Newbie", "total_orders": 1, "total_spent": 30},
    ])
    rows = directory.list_customers()
    assert [c.name for c in rows] == ["Big Spender", "Newbie"]
    assert [customer_tier(c) for c in rows] == ["VIP", "Regular"]
    assert [c.name for c in directory.list_customers("0004")] == ["Newbie"]


def test_known_phone_without_lookup_updates_existing_row(directory, backend):
    c = backend.insert_one(Customer, {"phone": "01000000005", "name": "Hana", "total_orders": 2, "total_spent": 90})
    after = directory.upsert_on_checkout(None, "Hana", c.phone, 30)
    assert after.id == c.id
    assert (after.total_orders, after.total_spent) == (3, 120)
    assert len(backend.select(Customer)) == 1


def test_take_back_undoes_one_checkout(directory, backend):
    c = directory.upsert_on_checkout(None, "Sara", "01012345678", 45)
    assert directory.take_back(c.id, 45) == 1
    row = backend.get(Customer, c.id)
    assert (row.total_orders, row.total_spent) == (0, 0)
