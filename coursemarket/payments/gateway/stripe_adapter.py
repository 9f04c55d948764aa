"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.

- Lectures (get_intent/get_session): retentées avec backoff exponentiel (tenacity) sur erreurs de transport
- Créations: jamais retentées ici, protégées par une clé d'idempotence
- Erreurs SDK traduites vers la taxonomie du domaine; les messages ne contiennent jamais de secret
"""
import logging
from typing import Any, Dict, List, Optional

import stripe
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from coursemarket.errors import GatewayError, NotFoundError, ValidationError, new_correlation_id
from coursemarket.payments.gateway.port import (
    CheckoutLineItem,
    GatewayIntent,
    GatewaySession,
    IntentHandle,
    PaymentGatewayClient,
    SessionHandle,
    normalize_status,
)

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (stripe.APIConnectionError, stripe.RateLimitError)


def read_retry(attempts: int = 3, wait_multiplier: float = 0.3):
    return retry(
        reraise=True,
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=wait_multiplier, min=wait_multiplier, max=3),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
    )


def require_stripe(api_key: str, timeout: float) -> None:
    """
    Prépare le module stripe:
    - les retentatives réseau du SDK sont désactivées (la politique est la nôtre)
    - timeout borné sur le client HTTP par défaut
    """
    stripe.api_key = api_key
    stripe.max_network_retries = 0
    stripe.default_http_client = stripe.new_default_http_client(timeout=timeout)


def _as_dict(obj: Any) -> Dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, dict) and not hasattr(obj, "to_dict"):
        return obj
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


def _ref_id(value: Any) -> Optional[str]:
    # Champ Stripe soit identifiant, soit objet étendu
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return _as_dict(value).get("id")


def _translate(exc: Exception, operation: str) -> Exception:
    if isinstance(exc, stripe.InvalidRequestError) and getattr(exc, "code", None) == "resource_missing":
        return NotFoundError(f"{operation}: ressource inconnue")
    if isinstance(exc, (stripe.CardError, stripe.InvalidRequestError)):
        return ValidationError(f"{operation}: requête refusée par le prestataire ({getattr(exc, 'code', None) or 'invalid'})")
    correlation_id = new_correlation_id()
    logger.error(
        "payments.gateway.stripe %s failed correlation_id=%s error=%s http_status=%s",
        operation, correlation_id, type(exc).__name__, getattr(exc, "http_status", None),
    )
    return GatewayError(f"{operation}: prestataire de paiement indisponible", correlation_id=correlation_id)


class StripeGateway(PaymentGatewayClient):
    """Adaptateur de production (stripe-python)."""

    name = "stripe"

    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        *,
        timeout: float = 10.0,
        read_attempts: int = 3,
        wait_multiplier: float = 0.3,
    ) -> None:
        if not api_key:
            raise RuntimeError("STRIPE_SECRET_KEY manquant pour StripeGateway")
        self.webhook_secret = webhook_secret
        require_stripe(api_key, timeout)
        policy = read_retry(read_attempts, wait_multiplier)
        self._retrieve_intent = policy(stripe.PaymentIntent.retrieve)
        self._retrieve_session = policy(stripe.checkout.Session.retrieve)

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
        if not isinstance(amount_minor, int) or amount_minor <= 0:
            raise ValidationError("amount_minor doit être un entier strictement positif")
        params: Dict[str, Any] = {
            "amount": amount_minor,
            "currency": currency,
            "payment_method_types": ["card"],
            "metadata": metadata,
        }
        if description:
            params["description"] = description
        if receipt_email:
            params["receipt_email"] = receipt_email
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        try:
            intent = stripe.PaymentIntent.create(**params)
        except stripe.StripeError as e:
            raise _translate(e, "create_intent") from e
        data = _as_dict(intent)
        logger.info("payments.gateway.stripe create_intent intent_id=%s amount=%s", data.get("id"), amount_minor)
        return IntentHandle(intent_id=data["id"], client_secret=data.get("client_secret"))

    def get_intent(self, intent_id: str) -> GatewayIntent:
        try:
            intent = self._retrieve_intent(intent_id)
        except stripe.StripeError as e:
            raise _translate(e, "get_intent") from e
        data = _as_dict(intent)
        return GatewayIntent(
            intent_id=data["id"],
            status=normalize_status(data.get("status")),
            amount_minor=int(data.get("amount") or 0),
            currency=data.get("currency") or "",
            metadata=dict(data.get("metadata") or {}),
        )

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
        stripe_items = []
        for li in line_items:
            product_data: Dict[str, Any] = {"name": li.title}
            if li.description:
                product_data["description"] = li.description
            if li.image_url:
                product_data["images"] = [li.image_url]
            stripe_items.append({
                "quantity": li.quantity,
                "price_data": {
                    "currency": currency,
                    "unit_amount": li.unit_amount_minor,
                    "product_data": product_data,
                },
            })
        params: Dict[str, Any] = {
            "line_items": stripe_items,
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            # métadonnées recopiées sur l'intent: le règlement les relit depuis l'intent
            "payment_intent_data": {"metadata": metadata},
            "payment_method_types": ["card"],
        }
        if customer_email:
            params["customer_email"] = customer_email
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            raise _translate(e, "create_checkout_session") from e
        data = _as_dict(session)
        return SessionHandle(
            session_id=data["id"],
            url=data.get("url"),
            payment_intent_id=_ref_id(data.get("payment_intent")),
            client_secret=data.get("client_secret"),
        )

    def get_session(self, session_id: str) -> GatewaySession:
        try:
            session = self._retrieve_session(session_id)
        except stripe.StripeError as e:
            raise _translate(e, "get_session") from e
        data = _as_dict(session)
        return GatewaySession(
            session_id=data["id"],
            status=data.get("status"),
            payment_status=data.get("payment_status"),
            payment_intent_id=_ref_id(data.get("payment_intent")),
            metadata=dict(data.get("metadata") or {}),
        )

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        try:
            event = stripe.Webhook.construct_event(payload, signature or "", self.webhook_secret or "")
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise ValidationError("Signature ou payload webhook invalide") from e
        return _as_dict(event)
