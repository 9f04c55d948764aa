"""Payment gateway port (interface abstraite).

Contrat commun aux adaptateurs: StripeGateway (production) et FakeGateway (dev/tests).
Les montants circulent en unités mineures (int, centimes).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class IntentStatus(str, Enum):
    CREATED = "created"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


_STATUS_MAP = {
    "succeeded": IntentStatus.SUCCEEDED,
    "canceled": IntentStatus.CANCELED,
    "failed": IntentStatus.FAILED,
    "created": IntentStatus.CREATED,
    "requires_payment_method": IntentStatus.PENDING,
    "requires_confirmation": IntentStatus.PENDING,
    "requires_action": IntentStatus.PENDING,
    "requires_capture": IntentStatus.PENDING,
    "processing": IntentStatus.PENDING,
    "pending": IntentStatus.PENDING,
}


def normalize_status(raw: Optional[str]) -> IntentStatus:
    return _STATUS_MAP.get((raw or "").lower(), IntentStatus.PENDING)


@dataclass(frozen=True)
class IntentHandle:
    intent_id: str
    client_secret: Optional[str] = None


@dataclass(frozen=True)
class GatewayIntent:
    intent_id: str
    status: IntentStatus
    amount_minor: int
    currency: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CheckoutLineItem:
    title: str
    unit_amount_minor: int
    quantity: int = 1
    description: Optional[str] = None
    image_url: Optional[str] = None


@dataclass(frozen=True)
class SessionHandle:
    session_id: str
    url: Optional[str] = None
    payment_intent_id: Optional[str] = None
    client_secret: Optional[str] = None


@dataclass(frozen=True)
class GatewaySession:
    session_id: str
    status: Optional[str] = None
    payment_status: Optional[str] = None
    payment_intent_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class PaymentGatewayClient(ABC):
    """Interface de la passerelle de paiement externe."""

    name: str = "gateway"

    @abstractmethod
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
        """Crée un payment intent. amount_minor doit être un entier > 0."""
        ...

    @abstractmethod
    def get_intent(self, intent_id: str) -> GatewayIntent:
        """Relit l'intent (source de vérité). NotFoundError si inconnu."""
        ...

    @abstractmethod
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
        """Crée une session de paiement hébergée."""
        ...

    @abstractmethod
    def get_session(self, session_id: str) -> GatewaySession:
        ...

    @abstractmethod
    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Valide la signature et retourne l'événement (dict)."""
        ...
