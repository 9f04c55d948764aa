import pytest
import stripe

from coursemarket.errors import GatewayError, NotFoundError, ValidationError
from coursemarket.payments.gateway import stripe_adapter
from coursemarket.payments.gateway.port import CheckoutLineItem, IntentStatus
from coursemarket.payments.gateway.stripe_adapter import StripeGateway

API_KEY = "sk_test_secret_value"


@pytest.fixture(autouse=True)
def _no_global_stripe_setup(monkeypatch):
    monkeypatch.setattr(stripe_adapter, "require_stripe", lambda api_key, timeout: None)


def _gateway():
    return StripeGateway(API_KEY, "whsec_test", read_attempts=3, wait_multiplier=0)


def test_create_intent_params(monkeypatch):
    captured = {}

    def _fake_create(**kwargs):
        captured.update(kwargs)
        return {"id": "pi_123", "client_secret": "pi_123_secret"}

    monkeypatch.setattr(stripe.PaymentIntent, "create", _fake_create)
    handle = _gateway().create_intent(
        4999, "usd", {"userId": "u1", "courseIds": "c3"},
        description="Achat", receipt_email="a@b.test", idempotency_key="k1",
    )
    assert handle.intent_id == "pi_123"
    assert handle.client_secret == "pi_123_secret"
    assert captured["amount"] == 4999
    assert captured["currency"] == "usd"
    assert captured["payment_method_types"] == ["card"]
    assert captured["metadata"] == {"userId": "u1", "courseIds": "c3"}
    assert captured["receipt_email"] == "a@b.test"
    assert captured["idempotency_key"] == "k1"


def test_create_intent_rejects_non_positive_amount(monkeypatch):
    monkeypatch.setattr(stripe.PaymentIntent, "create", lambda **kw: pytest.fail("should not call"))
    with pytest.raises(ValidationError):
        _gateway().create_intent(0, "usd", {})


def test_get_intent_normalizes_status(monkeypatch):
    monkeypatch.setattr(
        stripe.PaymentIntent, "retrieve",
        lambda intent_id: {"id": intent_id, "status": "requires_payment_method", "amount": 1000, "currency": "usd", "metadata": {"userId": "u1"}},
    )
    intent = _gateway().get_intent("pi_1")
    assert intent.status == IntentStatus.PENDING
    assert intent.amount_minor == 1000
    assert intent.metadata == {"userId": "u1"}


def test_get_intent_retries_transport_errors(monkeypatch):
    calls = {"n": 0}

    def _flaky(intent_id):
        calls["n"] += 1
        if calls["n"] < 3:
            raise stripe.APIConnectionError("network down")
        return {"id": intent_id, "status": "succeeded", "amount": 500, "currency": "usd", "metadata": {}}

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", _flaky)
    intent = _gateway().get_intent("pi_1")
    assert calls["n"] == 3
    assert intent.status == IntentStatus.SUCCEEDED


def test_get_intent_gives_up_with_gateway_error(monkeypatch):
    calls = {"n": 0}

    def _down(intent_id):
        calls["n"] += 1
        raise stripe.APIConnectionError("could not reach api with key " + API_KEY)

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", _down)
    with pytest.raises(GatewayError) as exc:
        _gateway().get_intent("pi_1")
    assert calls["n"] == 3
    assert exc.value.correlation_id
    assert API_KEY not in exc.value.message


def test_unknown_intent_is_not_found(monkeypatch):
    calls = {"n": 0}

    def _missing(intent_id):
        calls["n"] += 1
        raise stripe.InvalidRequestError("No such payment_intent", "intent", code="resource_missing")

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", _missing)
    with pytest.raises(NotFoundError):
        _gateway().get_intent("pi_missing")
    assert calls["n"] == 1


def test_create_intent_auth_error_is_gateway_error(monkeypatch):
    def _auth(**kwargs):
        raise stripe.AuthenticationError("Invalid API Key provided: " + API_KEY)

    monkeypatch.setattr(stripe.PaymentIntent, "create", _auth)
    with pytest.raises(GatewayError) as exc:
        _gateway().create_intent(100, "usd", {})
    assert API_KEY not in exc.value.message


def test_checkout_session_params(monkeypatch):
    captured = {}

    def _fake_create(**kwargs):
        captured.update(kwargs)
        return {"id": "cs_1", "url": "https://checkout.stripe.test/cs_1", "payment_intent": None}

    monkeypatch.setattr(stripe.checkout.Session, "create", _fake_create)
    handle = _gateway().create_checkout_session(
        [CheckoutLineItem(title="Python 101", unit_amount_minor=1000, quantity=1, description="Course by Ada", image_url="https://img.test/c1.png")],
        success_url="https://shop.test/r?success=true&session_id={CHECKOUT_SESSION_ID}",
        cancel_url="https://shop.test/r?canceled=true",
        customer_email="a@b.test",
        metadata={"userId": "u1", "courseIds": "c1"},
        currency="usd",
    )
    assert handle.session_id == "cs_1"
    assert handle.payment_intent_id is None
    item = captured["line_items"][0]
    assert item["price_data"]["unit_amount"] == 1000
    assert item["price_data"]["currency"] == "usd"
    assert item["price_data"]["product_data"] == {"name": "Python 101", "description": "Course by Ada", "images": ["https://img.test/c1.png"]}
    assert captured["mode"] == "payment"
    assert captured["payment_intent_data"] == {"metadata": {"userId": "u1", "courseIds": "c1"}}
    assert captured["customer_email"] == "a@b.test"


def test_get_session_reads_linked_intent(monkeypatch):
    monkeypatch.setattr(
        stripe.checkout.Session, "retrieve",
        lambda sid: {"id": sid, "status": "complete", "payment_status": "paid", "payment_intent": {"id": "pi_9"}, "metadata": {"userId": "u1"}},
    )
    session = _gateway().get_session("cs_1")
    assert session.payment_intent_id == "pi_9"
    assert session.payment_status == "paid"


def test_parse_webhook_bad_signature(monkeypatch):
    def _reject(payload, sig, secret):
        raise stripe.SignatureVerificationError("bad signature", sig)

    monkeypatch.setattr(stripe.Webhook, "construct_event", _reject)
    with pytest.raises(ValidationError):
        _gateway().parse_webhook(b"{}", "t=1,v1=bad")


def test_parse_webhook_ok(monkeypatch):
    event = {"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1"}}}
    monkeypatch.setattr(stripe.Webhook, "construct_event", lambda payload, sig, secret: event)
    assert _gateway().parse_webhook(b"{}", "sig")["type"] == "payment_intent.succeeded"


def test_missing_api_key():
    with pytest.raises(RuntimeError):
        StripeGateway("", "")
