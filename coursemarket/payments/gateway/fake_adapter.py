"""Passerelle de paiement factice, configurable, pour le développement et les tests.

Aucun appel réseau. Permet:
- d'enregistrer chaque appel (self.calls) pour les assertions de tests
- de simuler le paiement client (succeed/fail/cancel) sur un intent existant
- de simuler une panne du prestataire (configure(available=False))
Les clés d'idempotence se comportent comme chez Stripe: même clé => même objet.
"""
import json
import threading
from dataclasses import replace
from typing import Any, Dict, List, Optional
from uuid import uuid4

from coursemarket.errors import GatewayError, NotFoundError, ValidationError
from coursemarket.payments.gateway.port import (
    CheckoutLineItem,
    GatewayIntent,
    GatewaySession,
    IntentHandle,
    IntentStatus,
    PaymentGatewayClient,
    SessionHandle,
)

TEST_SIGNATURE = "test-signature"


class FakeGateway(PaymentGatewayClient):
    """Configurable fake payment gateway."""

    name = "fake"

    def __init__(self) -> None:
        self.available: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: List[Dict[str, Any]] = []
        self._lock = threading.Lock()
        self._intents: Dict[str, GatewayIntent] = {}
        self._sessions: Dict[str, GatewaySession] = {}
        self._idempotent: Dict[str, str] = {}
        self._idempotent_sessions: Dict[str, str] = {}

    def configure(self, available: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure le comportement de la passerelle à chaud."""
        self.available = available
        self.failure_reason = failure_reason

    def calls_to(self, method: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["method"] == method]

    def _record(self, call: Dict[str, Any]) -> None:
        self.calls.append(call)
        if not self.available:
            raise GatewayError(self.failure_reason)

    # --- Intents ---

    def create_intent(
        self,
        amount_minor: int,
        currency: str,
        metadata: Dict[str, str],
        *,
        description: Optional[str] = None,
        receipt_email: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> IntentHandle:
        with self._lock:
            self._record({
                "method": "create_intent",
                "amount_minor": amount_minor,
                "currency": currency,
                "metadata": dict(metadata),
                "description": description,
                "receipt_email": receipt_email,
                "idempotency_key": idempotency_key,
            })
            if not isinstance(amount_minor, int) or amount_minor <= 0:
                raise ValidationError("amount_minor doit être un entier strictement positif")
            if idempotency_key and idempotency_key in self._idempotent:
                intent_id = self._idempotent[idempotency_key]
                return IntentHandle(intent_id=intent_id, client_secret=f"{intent_id}_secret")
            intent_id = f"pi_fake_{uuid4().hex[:12]}"
            self._intents[intent_id] = GatewayIntent(
                intent_id=intent_id,
                status=IntentStatus.PENDING,
                amount_minor=amount_minor,
                currency=currency,
                metadata=dict(metadata),
            )
            if idempotency_key:
                self._idempotent[idempotency_key] = intent_id
            return IntentHandle(intent_id=intent_id, client_secret=f"{intent_id}_secret")

    def get_intent(self, intent_id: str) -> GatewayIntent:
        with self._lock:
            self._record({"method": "get_intent", "intent_id": intent_id})
            intent = self._intents.get(intent_id)
        if intent is None:
            raise NotFoundError(f"Intent inconnu: {intent_id}")
        return intent

    def set_intent_status(self, intent_id: str, status: IntentStatus) -> None:
        with self._lock:
            intent = self._intents.get(intent_id)
            if intent is None:
                raise NotFoundError(f"Intent inconnu: {intent_id}")
            self._intents[intent_id] = replace(intent, status=status)

    def succeed(self, intent_id: str) -> None:
        """Simule un paiement client réussi."""
        self.set_intent_status(intent_id, IntentStatus.SUCCEEDED)

    def fail(self, intent_id: str) -> None:
        self.set_intent_status(intent_id, IntentStatus.FAILED)

    def cancel(self, intent_id: str) -> None:
        self.set_intent_status(intent_id, IntentStatus.CANCELED)

    # --- Checkout sessions ---

    def create_checkout_session(
        self,
        line_items: List[CheckoutLineItem],
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str],
        metadata: Dict[str, str],
        *,
        currency: str,
        idempotency_key: Optional[str] = None,
    ) -> SessionHandle:
        amount_minor = sum(li.unit_amount_minor * li.quantity for li in line_items)
        with self._lock:
            self._record({
                "method": "create_checkout_session",
                "line_items": list(line_items),
                "success_url": success_url,
                "cancel_url": cancel_url,
                "customer_email": customer_email,
                "metadata": dict(metadata),
                "currency": currency,
                "idempotency_key": idempotency_key,
            })
            if idempotency_key and idempotency_key in self._idempotent_sessions:
                session = self._sessions[self._idempotent_sessions[idempotency_key]]
                return SessionHandle(
                    session_id=session.session_id,
                    url=f"https://checkout.fake.test/pay/{session.session_id}",
                    payment_intent_id=session.payment_intent_id,
                    client_secret=f"{session.payment_intent_id}_secret",
                )
        intent = self.create_intent(amount_minor, currency, metadata, receipt_email=customer_email)
        session_id = f"cs_fake_{uuid4().hex[:12]}"
        with self._lock:
            if idempotency_key:
                self._idempotent_sessions[idempotency_key] = session_id
            self._sessions[session_id] = GatewaySession(
                session_id=session_id,
                status="open",
                payment_status="unpaid",
                payment_intent_id=intent.intent_id,
                metadata=dict(metadata),
            )
        return SessionHandle(
            session_id=session_id,
            url=f"https://checkout.fake.test/pay/{session_id}",
            payment_intent_id=intent.intent_id,
            client_secret=intent.client_secret,
        )

    def get_session(self, session_id: str) -> GatewaySession:
        with self._lock:
            self._record({"method": "get_session", "session_id": session_id})
            session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Session inconnue: {session_id}")
        return session

    def complete_session(self, session_id: str) -> str:
        """Simule le retour d'un paiement hébergé réussi; retourne l'intent lié."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise NotFoundError(f"Session inconnue: {session_id}")
            self._sessions[session_id] = replace(session, status="complete", payment_status="paid")
        self.succeed(session.payment_intent_id)
        return session.payment_intent_id

    # --- Webhooks ---

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        if signature != TEST_SIGNATURE:
            raise ValidationError("Signature webhook invalide")
        try:
            return json.loads(payload or b"{}")
        except ValueError:
            raise ValidationError("Payload webhook invalide")
