import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

from coursemarket.errors import ErrorKind, InternalError
from coursemarket.payments.metadata import make_metadata
from coursemarket.payments.orchestrator import PaymentIntentRequest

USER = "test-user"


def _paid_intent(orchestrator, gateway, fill_cart, *course_ids, amount="30.00"):
    fill_cart(*course_ids)
    result = orchestrator.create_payment_intent(USER, PaymentIntentRequest(amount=Decimal(amount)))
    assert result.success, result.message
    intent_id = result.data["intentId"]
    gateway.succeed(intent_id)
    return intent_id


def test_unknown_intent_is_not_found_and_mutates_nothing(orchestrator, container, fill_cart):
    fill_cart("c1")
    result = orchestrator.confirm_payment("pi_does_not_exist")
    assert result.success is False
    assert result.error_kind == ErrorKind.NOT_FOUND
    assert container.ledger.all() == []
    assert container.enrollments.all() == []
    assert len(container.cart_store.get_or_create(USER).items) == 1


def test_pending_intent_is_not_settled(orchestrator, container, fill_cart):
    fill_cart("c1")
    intent_id = orchestrator.create_payment_intent(USER, PaymentIntentRequest(amount=Decimal("10.00"))).data["intentId"]
    result = orchestrator.confirm_payment(intent_id)
    assert result.success is False
    assert result.error_kind is None
    assert result.status == "pending"
    assert result.http_status == 200
    assert container.ledger.all() == []


def test_failed_and_canceled_intents(orchestrator, gateway, container, fill_cart):
    fill_cart("c1")
    intent_id = orchestrator.create_payment_intent(USER, PaymentIntentRequest(amount=Decimal("10.00"))).data["intentId"]
    gateway.fail(intent_id)
    assert orchestrator.confirm_payment(intent_id).status == "failed"
    gateway.cancel(intent_id)
    assert orchestrator.confirm_payment(intent_id).status == "canceled"
    assert container.ledger.all() == []
    assert not container.cart_store.get_or_create(USER).is_empty


def test_success_splits_amount_across_courses(orchestrator, gateway, container, fill_cart):
    intent_id = _paid_intent(orchestrator, gateway, fill_cart, "c1", "c2")
    result = orchestrator.confirm_payment(intent_id)

    assert result.success is True
    assert result.message == "Paiement confirmé"
    assert result.data["amount"] == "30.00"
    amounts = {p.course_id: p.amount for p in container.ledger.list_for_intent(intent_id)}
    assert amounts == {"c1": Decimal("10.00"), "c2": Decimal("20.00")}
    assert sum(amounts.values()) == Decimal("30.00")
    payment = container.ledger.list_for_intent(intent_id)[0]
    assert payment.status == "completed"
    assert payment.method == "fake"


def test_success_grants_enrollments_and_clears_cart(orchestrator, gateway, container, fill_cart):
    intent_id = _paid_intent(orchestrator, gateway, fill_cart, "c1", "c2")
    orchestrator.confirm_payment(intent_id)
    assert container.enrollments.exists(USER, "c1")
    assert container.enrollments.exists(USER, "c2")
    assert container.cart_store.get_or_create(USER).is_empty


def test_second_confirmation_is_idempotent(orchestrator, gateway, container, fill_cart):
    intent_id = _paid_intent(orchestrator, gateway, fill_cart, "c1", "c2")
    first = orchestrator.confirm_payment(intent_id)
    # le panier est re-rempli entre temps: il ne doit pas être vidé une seconde fois
    fill_cart("c3")
    second = orchestrator.confirm_payment(intent_id)

    assert first.data["settled"] is True
    assert second.success is True
    assert second.data["alreadySettled"] is True
    assert len(container.ledger.list_for_intent(intent_id)) == 2
    assert len(container.enrollments.all()) == 2
    assert len(container.cart_store.get_or_create(USER).items) == 1


def test_enrollment_failure_keeps_cart_and_retry_does_not_duplicate(orchestrator, gateway, container, fill_cart, monkeypatch):
    intent_id = _paid_intent(orchestrator, gateway, fill_cart, "c1", "c2")
    original_create = container.enrollments.create

    def _broken(user_id, course_id):
        raise InternalError("enrollments down")

    monkeypatch.setattr(container.enrollments, "create", _broken)
    failed = orchestrator.confirm_payment(intent_id)
    assert failed.success is False
    assert failed.error_kind == ErrorKind.INTERNAL
    assert len(container.ledger.list_for_intent(intent_id)) == 2
    assert len(container.cart_store.get_or_create(USER).items) == 2

    monkeypatch.setattr(container.enrollments, "create", original_create)
    retried = orchestrator.confirm_payment(intent_id)
    assert retried.success is True
    assert len(container.ledger.list_for_intent(intent_id)) == 2
    assert container.enrollments.exists(USER, "c1") and container.enrollments.exists(USER, "c2")
    assert container.cart_store.get_or_create(USER).is_empty


def test_concurrent_confirmations_settle_once(orchestrator, gateway, container, fill_cart):
    intent_id = _paid_intent(orchestrator, gateway, fill_cart, "c1", "c2")
    barrier = threading.Barrier(4)

    def _confirm(_):
        barrier.wait()
        return orchestrator.confirm_payment(intent_id)

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(_confirm, range(4)))

    assert all(r.success for r in results)
    assert len(container.ledger.list_for_intent(intent_id)) == 2
    assert len(container.enrollments.all()) == 2


def test_confirm_checks_owner_when_user_given(orchestrator, gateway, container, fill_cart):
    intent_id = _paid_intent(orchestrator, gateway, fill_cart, "c1", amount="10.00")
    result = orchestrator.confirm_payment(intent_id, user_id="intruder")
    assert result.error_kind == ErrorKind.NOT_FOUND
    assert container.ledger.all() == []


def test_blank_intent_id(orchestrator):
    assert orchestrator.confirm_payment("  ").error_kind == ErrorKind.VALIDATION


def test_intent_paid_in_other_currency_grants_nothing(orchestrator, gateway, container, fill_cart):
    fill_cart("c3")
    handle = gateway.create_intent(4999, "jpy", make_metadata(USER, ["c3"]))
    gateway.succeed(handle.intent_id)

    result = orchestrator.confirm_payment(handle.intent_id)
    assert result.success is False
    assert result.error_kind == ErrorKind.VALIDATION
    assert container.ledger.all() == []
    assert not container.enrollments.exists(USER, "c3")
