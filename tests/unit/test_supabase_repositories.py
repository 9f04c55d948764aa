from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from postgrest.exceptions import APIError

from coursemarket.cart.repository import SupabaseCartStore
from coursemarket.catalog.repository import SupabaseCourseCatalog
from coursemarket.enrollments.repository import SupabaseEnrollmentStore
from coursemarket.errors import ConflictError, InternalError, NotFoundError
from coursemarket.payments.ledger import SupabasePaymentLedger, new_payment
from coursemarket.users.repository import SupabaseUserDirectory


def _api_error(code, message="erreur"):
    return APIError({"code": code, "message": message, "details": "", "hint": ""})


def _result(data):
    res = MagicMock()
    res.data = data
    return res


def test_ledger_duplicate_maps_to_conflict():
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.side_effect = _api_error("23505", "duplicate key")
    ledger = SupabasePaymentLedger(client)

    payment = new_payment(user_id="u1", course_id="c1", amount=Decimal("10.00"), method="stripe", intent_id="pi_1")
    with pytest.raises(ConflictError):
        ledger.record(payment)

    client.table.assert_called_with("payments")
    row = client.table.return_value.insert.call_args[0][0]
    assert row["amount"] == "10.00"
    assert row["intent_id"] == "pi_1"
    assert row["status"] == "completed"


def test_ledger_other_error_is_internal():
    client = MagicMock()
    client.table.return_value.select.return_value.eq.return_value.execute.side_effect = _api_error("42P01", "relation missing")
    with pytest.raises(InternalError):
        SupabasePaymentLedger(client).list_for_intent("pi_1")


def test_ledger_list_for_intent_maps_rows():
    client = MagicMock()
    client.table.return_value.select.return_value.eq.return_value.execute.return_value = _result([
        {"id": "p1", "user_id": "u1", "course_id": "c1", "amount": "12.50", "method": "stripe",
         "status": "completed", "paid_at": "2024-05-01T10:00:00Z", "intent_id": "pi_1"},
    ])
    payments = SupabasePaymentLedger(client).list_for_intent("pi_1")
    assert payments[0].amount == Decimal("12.50")
    assert payments[0].paid_at.year == 2024


def test_catalog_get_courses_maps_rows():
    client = MagicMock()
    client.table.return_value.select.return_value.in_.return_value.execute.return_value = _result([
        {"id": "c1", "title": "Python 101", "price": 10, "thumbnail_url": None, "instructor_name": "Ada"},
        {"id": "c2", "title": "FastAPI avancé", "price": "20.00", "thumbnail_url": "https://img.test/c2.png", "instructor_name": None},
    ])
    courses = SupabaseCourseCatalog(client).get_courses(["c1", "c2", "absent"])

    client.table.return_value.select.return_value.in_.assert_called_once_with("id", ["c1", "c2", "absent"])
    assert set(courses) == {"c1", "c2"}
    assert courses["c1"].price == Decimal("10")
    assert courses["c2"].thumbnail_url == "https://img.test/c2.png"


def test_catalog_get_courses_empty_skips_query():
    client = MagicMock()
    assert SupabaseCourseCatalog(client).get_courses([]) == {}
    client.table.assert_not_called()


def test_cart_add_item_uses_atomic_rpc():
    client = MagicMock()
    client.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.return_value = _result([
        {"id": "cart-1", "user_id": "u1", "cart_items": []},
    ])
    client.rpc.return_value.execute.return_value = _result([
        {"id": "item-1", "cart_id": "cart-1", "course_id": "c1", "quantity": 2, "added_at": "2024-05-01T10:00:00+00:00"},
    ])

    item = SupabaseCartStore(client).add_item("u1", "c1", 2)

    client.rpc.assert_called_once_with("add_cart_item", {"p_cart_id": "cart-1", "p_course_id": "c1", "p_quantity": 2})
    assert item.id == "item-1"
    assert item.quantity == 2


def test_cart_created_on_first_access():
    client = MagicMock()
    select_exec = client.table.return_value.select.return_value.eq.return_value.limit.return_value.execute
    select_exec.side_effect = [_result([]), _result([{"id": "cart-9", "user_id": "u1", "cart_items": None}])]

    cart = SupabaseCartStore(client).get_or_create("u1")

    client.table.return_value.insert.assert_called_once_with({"user_id": "u1"})
    assert cart.id == "cart-9"
    assert cart.is_empty


def test_cart_concurrent_creation_reselects():
    client = MagicMock()
    select_exec = client.table.return_value.select.return_value.eq.return_value.limit.return_value.execute
    select_exec.side_effect = [_result([]), _result([{"id": "cart-7", "user_id": "u1", "cart_items": []}])]
    client.table.return_value.insert.return_value.execute.side_effect = _api_error("23505")

    assert SupabaseCartStore(client).get_or_create("u1").id == "cart-7"


def test_cart_update_unknown_item():
    client = MagicMock()
    client.table.return_value.update.return_value.eq.return_value.execute.return_value = _result([])
    with pytest.raises(NotFoundError):
        SupabaseCartStore(client).update_item_quantity("missing", 3)


def test_cart_clear_deletes_by_cart():
    client = MagicMock()
    SupabaseCartStore(client).clear("cart-1")
    client.table.assert_called_with("cart_items")
    client.table.return_value.delete.return_value.eq.assert_called_once_with("cart_id", "cart-1")


def test_enrollment_duplicate_maps_to_conflict():
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.side_effect = _api_error("23505")
    with pytest.raises(ConflictError):
        SupabaseEnrollmentStore(client).create("u1", "c1")


def test_users_update_contact_keeps_known_fields():
    client = MagicMock()
    SupabaseUserDirectory(client).update_contact("u1", {"full_name": "Jane Doe", "role": "admin"})
    client.table.return_value.update.assert_called_once_with({"full_name": "Jane Doe"})
    client.table.return_value.update.return_value.eq.assert_called_once_with("id", "u1")


def test_users_update_contact_noop_without_fields():
    client = MagicMock()
    SupabaseUserDirectory(client).update_contact("u1", {})
    client.table.assert_not_called()
