from decimal import Decimal

from coursemarket.errors import ErrorKind
from coursemarket.payments.orchestrator import PaymentIntentRequest
from coursemarket.users.repository import UserContact

USER = "test-user"


def test_single_course_amount_in_minor_units(orchestrator, gateway, fill_cart):
    fill_cart("c3")
    result = orchestrator.create_payment_intent(USER, PaymentIntentRequest(amount=Decimal("49.99"), currency="usd", course_ids=["c3"]))

    assert result.success is True
    assert result.data["intentId"].startswith("pi_fake_")
    assert result.data["clientSecret"]
    call = gateway.calls_to("create_intent")[0]
    assert call["amount_minor"] == 4999
    assert call["currency"] == "usd"
    assert call["receipt_email"] == "test@example.com"
    assert call["metadata"]["userId"] == USER
    assert call["metadata"]["courseIds"] == "c3"
    assert call["metadata"]["cartId"]


def test_currency_defaults_to_usd(orchestrator, gateway, fill_cart):
    fill_cart("c1")
    result = orchestrator.create_payment_intent(USER, PaymentIntentRequest(amount=Decimal("10.00")))
    assert result.success is True
    assert gateway.calls_to("create_intent")[0]["currency"] == "usd"


def test_amount_must_match_live_total(orchestrator, gateway, fill_cart):
    fill_cart("c1", "c2")
    result = orchestrator.create_payment_intent(USER, PaymentIntentRequest(amount=Decimal("10.00")))
    assert result.success is False
    assert result.error_kind == ErrorKind.VALIDATION
    assert result.http_status == 400
    assert gateway.calls == []


def test_course_ids_must_match_cart(orchestrator, gateway, fill_cart):
    fill_cart("c1")
    result = orchestrator.create_payment_intent(USER, PaymentIntentRequest(amount=Decimal("10.00"), course_ids=["c2"]))
    assert result.error_kind == ErrorKind.VALIDATION
    assert gateway.calls == []


def test_email_is_required(orchestrator, gateway, container):
    container.cart_store.add_item("no-email-user", "c1")
    result = orchestrator.create_payment_intent("no-email-user", PaymentIntentRequest(amount=Decimal("10.00")))
    assert result.error_kind == ErrorKind.VALIDATION
    assert "email" in result.message
    assert gateway.calls == []


def test_empty_cart_rejected(orchestrator, gateway):
    result = orchestrator.create_payment_intent(USER, PaymentIntentRequest(amount=Decimal("10.00")))
    assert result.error_kind == ErrorKind.VALIDATION
    assert gateway.calls == []


def test_contact_fields_updated_before_charge(orchestrator, container, fill_cart):
    fill_cart("c1")
    orchestrator.create_payment_intent(
        USER,
        PaymentIntentRequest(amount=Decimal("10.00"), full_name="Jane Doe", phone_number="+33 6 00 00 00 00", postal_code="75001"),
    )
    user = container.users.get_user(USER)
    assert user.full_name == "Jane Doe"
    assert user.phone_number == "+33 6 00 00 00 00"
    assert user.postal_code == "75001"


def test_retry_on_unchanged_cart_reuses_intent(orchestrator, gateway, fill_cart):
    fill_cart("c1")
    req = PaymentIntentRequest(amount=Decimal("10.00"), description="Achat")
    first = orchestrator.create_payment_intent(USER, req)
    second = orchestrator.create_payment_intent(USER, req)
    keys = [c["idempotency_key"] for c in gateway.calls_to("create_intent")]
    assert keys[0] == keys[1]
    assert first.data["intentId"] == second.data["intentId"]


def test_changed_cart_gets_new_intent(orchestrator, gateway, fill_cart):
    fill_cart("c1")
    first = orchestrator.create_payment_intent(USER, PaymentIntentRequest(amount=Decimal("10.00")))
    fill_cart("c2")
    second = orchestrator.create_payment_intent(USER, PaymentIntentRequest(amount=Decimal("30.00")))
    assert first.data["intentId"] != second.data["intentId"]


def test_explicit_idempotency_key_is_forwarded(orchestrator, gateway, fill_cart):
    fill_cart("c1")
    orchestrator.create_payment_intent(USER, PaymentIntentRequest(amount=Decimal("10.00"), idempotency_key="client-key-1"))
    assert gateway.calls_to("create_intent")[0]["idempotency_key"] == f"{USER}:client-key-1"


def test_gateway_outage_returns_correlation_id(orchestrator, gateway, fill_cart):
    fill_cart("c1")
    gateway.configure(available=False)
    result = orchestrator.create_payment_intent(USER, PaymentIntentRequest(amount=Decimal("10.00")))
    assert result.success is False
    assert result.error_kind == ErrorKind.GATEWAY
    assert result.http_status == 502
    assert result.correlation_id
    assert result.correlation_id in result.message


def test_unexpected_fault_is_internal(orchestrator, fill_cart, monkeypatch):
    fill_cart("c1")

    def _boom(*a, **kw):
        raise RuntimeError("db exploded")

    monkeypatch.setattr(orchestrator.users, "get_user", _boom)
    result = orchestrator.create_payment_intent(USER, PaymentIntentRequest(amount=Decimal("10.00")))
    assert result.error_kind == ErrorKind.INTERNAL
    assert "db exploded" not in result.message


def test_foreign_currency_rejected(orchestrator, gateway, fill_cart):
    fill_cart("c3")
    result = orchestrator.create_payment_intent(USER, PaymentIntentRequest(amount=Decimal("49.99"), currency="jpy"))
    assert result.success is False
    assert result.error_kind == ErrorKind.VALIDATION
    assert gateway.calls == []


def test_same_client_key_for_two_users_gives_two_intents(orchestrator, container, fill_cart):
    container.users.put(UserContact(id="other-user", email="other@example.com"))
    fill_cart("c1")
    fill_cart("c1", user_id="other-user")
    req = PaymentIntentRequest(amount=Decimal("10.00"), idempotency_key="same-key")

    mine = orchestrator.create_payment_intent(USER, req)
    theirs = orchestrator.create_payment_intent("other-user", req)
    assert mine.success and theirs.success
    assert mine.data["intentId"] != theirs.data["intentId"]
