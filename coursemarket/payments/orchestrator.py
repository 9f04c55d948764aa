"""
Cas d'usage 'payments': orchestre panier, catalogue, annuaire, passerelle et règlement.

Pipeline: Panier -> Intent / Session -> Confirmation (relecture passerelle) -> Règlement.
Chaque méthode publique capture les erreurs du domaine et renvoie un CheckoutResult.
"""
import hashlib
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from coursemarket.cart.models import PricedCart
from coursemarket.cart.pricing import CartPricer
from coursemarket.cart.repository import CartStore
from coursemarket.catalog.repository import CourseCatalog
from coursemarket.errors import (
    CheckoutError,
    ErrorKind,
    GatewayError,
    NotFoundError,
    ValidationError,
    new_correlation_id,
)
from coursemarket.users.repository import UserContact, UserDirectory, changed_contact_fields
from .gateway.port import CheckoutLineItem, IntentStatus, PaymentGatewayClient
from .metadata import make_metadata, parse_metadata
from .money import from_minor_units, to_minor_units
from .results import CheckoutResult
from .settlement import Settlement

logger = logging.getLogger(__name__)

MSG_CONFIRMED = "Paiement confirmé"
MSG_GATEWAY_DOWN = "Le prestataire de paiement est indisponible, veuillez réessayer (ref: {ref})"
MSG_INTERNAL = "Erreur interne, veuillez réessayer (ref: {ref})"


@dataclass
class PaymentIntentRequest:
    amount: Decimal
    currency: Optional[str] = None
    description: Optional[str] = None
    course_ids: List[str] = field(default_factory=list)
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    postal_code: Optional[str] = None
    idempotency_key: Optional[str] = None


def _digest(prefix: str, *parts: Any) -> str:
    raw = "|".join(str(p) for p in parts)
    return f"{prefix}-{hashlib.sha256(raw.encode('utf-8')).hexdigest()[:32]}"


def _with_query(url: str, query: str) -> str:
    return f"{url}{'&' if '?' in url else '?'}{query}"


class CheckoutOrchestrator:
    def __init__(
        self,
        cart_store: CartStore,
        catalog: CourseCatalog,
        users: UserDirectory,
        gateway: PaymentGatewayClient,
        settlement: Settlement,
        default_currency: str = "usd",
    ):
        self.cart_store = cart_store
        self.pricer = CartPricer(catalog)
        self.users = users
        self.gateway = gateway
        self.settlement = settlement
        self.default_currency = default_currency.lower()

    # --- frontière: exceptions -> CheckoutResult ---

    def _run(self, operation: str, fn: Callable[..., CheckoutResult], *args, **kwargs) -> CheckoutResult:
        try:
            return fn(*args, **kwargs)
        except GatewayError as e:
            logger.warning("payments.%s gateway failure correlation_id=%s", operation, e.correlation_id)
            return CheckoutResult.from_error(e, MSG_GATEWAY_DOWN.format(ref=e.correlation_id))
        except CheckoutError as e:
            logger.info("payments.%s rejected kind=%s message=%s", operation, e.kind.value, e.message)
            return CheckoutResult.from_error(e)
        except Exception:
            ref = new_correlation_id()
            logger.exception("payments.%s failed correlation_id=%s", operation, ref)
            return CheckoutResult(
                success=False,
                message=MSG_INTERNAL.format(ref=ref),
                error_kind=ErrorKind.INTERNAL,
                correlation_id=ref,
            )

    # --- helpers ---

    def _payer(self, user_id: str) -> UserContact:
        user = self.users.get_user(user_id)
        if user is None or not (user.email or "").strip():
            raise ValidationError("Une adresse email est requise pour payer")
        return user

    def _live_cart(self, user_id: str) -> PricedCart:
        priced = self.pricer.price(self.cart_store.get_or_create(user_id))
        if priced.is_empty:
            raise ValidationError("Le panier est vide")
        return priced

    # --- create_payment_intent ---

    def create_payment_intent(self, user_id: str, request: PaymentIntentRequest) -> CheckoutResult:
        return self._run("create_payment_intent", self._create_payment_intent, user_id, request)

    def _create_payment_intent(self, user_id: str, request: PaymentIntentRequest) -> CheckoutResult:
        """
        Crée un payment intent à partir du panier courant.
        - email obligatoire; champs de contact fournis et modifiés enregistrés avant le débit
        - courseIds (si fournis) == cours du panier, montant == total courant du panier
        - clé d'idempotence dérivée du contenu du panier sauf si l'appelant en fournit une
        """
        user = self._payer(user_id)
        changes = changed_contact_fields(
            user,
            full_name=request.full_name,
            phone_number=request.phone_number,
            postal_code=request.postal_code,
        )
        if changes:
            self.users.update_contact(user_id, changes)

        priced = self._live_cart(user_id)
        requested_ids = [str(c) for c in (request.course_ids or [])]
        if requested_ids and set(requested_ids) != set(priced.course_ids):
            raise ValidationError("Les cours demandés ne correspondent pas au panier")

        amount_minor = to_minor_units(request.amount)
        expected_minor = to_minor_units(priced.total_price)
        if amount_minor != expected_minor:
            raise ValidationError(
                f"Montant incohérent: {from_minor_units(amount_minor)} au lieu de {from_minor_units(expected_minor)}"
            )

        currency = (request.currency or self.default_currency).strip().lower()
        if currency != self.default_currency:
            raise ValidationError(f"Devise non prise en charge: {currency}")
        metadata = make_metadata(user_id, priced.course_ids, cart_id=priced.cart_id, quantities=priced.quantities())
        # Clé fournie par l'appelant: préfixée par l'utilisateur, jamais partagée entre comptes
        idempotency_key = f"{user_id}:{request.idempotency_key}" if request.idempotency_key else _digest(
            "intent",
            user_id,
            priced.cart_id,
            sorted((line.item_id, line.course_id, line.quantity) for line in priced.lines),
            amount_minor,
            currency,
            request.description or "",
            user.email,
        )
        handle = self.gateway.create_intent(
            amount_minor,
            currency,
            metadata,
            description=request.description,
            receipt_email=user.email,
            idempotency_key=idempotency_key,
        )
        logger.info(
            "payments.create_payment_intent intent_id=%s user_id=%s amount_minor=%s courses=%s",
            handle.intent_id, user_id, amount_minor, len(priced.lines),
        )
        return CheckoutResult.ok(
            "Intent de paiement créé",
            status=IntentStatus.CREATED.value,
            intentId=handle.intent_id,
            clientSecret=handle.client_secret,
            amount=str(from_minor_units(amount_minor)),
            currency=currency,
        )

    # --- confirm_payment ---

    def confirm_payment(self, intent_id: str, user_id: Optional[str] = None) -> CheckoutResult:
        return self._run("confirm_payment", self._confirm_payment, intent_id, user_id)

    def _confirm_payment(self, intent_id: str, user_id: Optional[str] = None) -> CheckoutResult:
        if not (intent_id or "").strip():
            raise ValidationError("intentId manquant")
        # Le statut fait foi côté passerelle, jamais côté appelant
        intent = self.gateway.get_intent(intent_id)
        if user_id is not None and parse_metadata(intent.metadata).user_id != user_id:
            raise NotFoundError("Paiement introuvable")

        if intent.status != IntentStatus.SUCCEEDED:
            logger.info("payments.confirm_payment not settled intent_id=%s status=%s", intent_id, intent.status.value)
            return CheckoutResult(
                success=False,
                message=f"Statut du paiement: {intent.status.value}",
                status=intent.status.value,
                data={"intentId": intent_id},
            )

        outcome = self.settlement.settle(intent)
        return CheckoutResult.ok(
            MSG_CONFIRMED,
            status=IntentStatus.SUCCEEDED.value,
            intentId=intent_id,
            amount=str(from_minor_units(intent.amount_minor)),
            currency=intent.currency,
            settled=not outcome.already_settled,
            alreadySettled=outcome.already_settled,
        )

    # --- create_checkout_session ---

    def create_checkout_session(self, user_id: str, return_url: str) -> CheckoutResult:
        return self._run("create_checkout_session", self._create_checkout_session, user_id, return_url)

    def _create_checkout_session(self, user_id: str, return_url: str) -> CheckoutResult:
        """
        Crée une session de paiement hébergée depuis le panier courant.
        - panier vide: ValidationError sans aucun appel passerelle
        - URLs: succès avec session_id, annulation avec canceled=true
        """
        return_url = (return_url or "").strip()
        if not return_url.startswith(("http://", "https://")):
            raise ValidationError("returnUrl invalide")
        priced = self._live_cart(user_id)
        user = self._payer(user_id)

        line_items = [
            CheckoutLineItem(
                title=line.title,
                unit_amount_minor=to_minor_units(line.unit_price),
                quantity=line.quantity,
                description=f"Course by {line.instructor_name}" if line.instructor_name else None,
                image_url=line.thumbnail_url or None,
            )
            for line in priced.lines
        ]
        amount_minor = sum(li.unit_amount_minor * li.quantity for li in line_items)
        if amount_minor <= 0:
            raise ValidationError("Le montant du panier doit être strictement positif")

        currency = self.default_currency
        metadata = make_metadata(user_id, priced.course_ids, cart_id=priced.cart_id, quantities=priced.quantities())
        handle = self.gateway.create_checkout_session(
            line_items,
            success_url=_with_query(return_url, "success=true&session_id={CHECKOUT_SESSION_ID}"),
            cancel_url=_with_query(return_url, "canceled=true"),
            customer_email=user.email,
            metadata=metadata,
            currency=currency,
            idempotency_key=_digest(
                "session",
                user_id,
                priced.cart_id,
                sorted((line.item_id, line.course_id, line.quantity) for line in priced.lines),
                amount_minor,
                return_url,
            ),
        )
        logger.info("payments.create_checkout_session session_id=%s user_id=%s", handle.session_id, user_id)
        return CheckoutResult.ok(
            "Session de paiement créée",
            status="open",
            sessionId=handle.session_id,
            url=handle.url,
            paymentIntentId=handle.payment_intent_id,
            clientSecret=handle.client_secret,
            amount=str(from_minor_units(amount_minor)),
            currency=currency,
        )

    # --- confirm_session ---

    def confirm_session(self, session_id: str, user_id: Optional[str] = None) -> CheckoutResult:
        return self._run("confirm_session", self._confirm_session, session_id, user_id)

    def _confirm_session(self, session_id: str, user_id: Optional[str] = None) -> CheckoutResult:
        if not (session_id or "").strip():
            raise ValidationError("session_id manquant")
        session = self.gateway.get_session(session_id)
        if user_id is not None and str(session.metadata.get("userId") or "") != user_id:
            raise NotFoundError("Session introuvable")
        if not session.payment_intent_id:
            return CheckoutResult(
                success=False,
                message="Paiement en attente",
                status=IntentStatus.PENDING.value,
                data={"sessionId": session_id},
            )
        result = self._confirm_payment(session.payment_intent_id, user_id)
        return CheckoutResult(
            success=result.success,
            message=result.message,
            status=result.status,
            data={**result.data, "sessionId": session_id},
        )

    # --- webhook ---

    def handle_webhook_event(self, event: Dict[str, Any]) -> CheckoutResult:
        """
        Événements consommés:
        - payment_intent.succeeded: règlement de l'intent
        - checkout.session.completed: règlement de l'intent lié à la session
        Le statut porté par l'événement n'est pas utilisé: l'intent est toujours relu.
        """
        event_type = (event or {}).get("type")
        obj = ((event or {}).get("data") or {}).get("object") or {}
        if event_type == "payment_intent.succeeded":
            intent_id = obj.get("id")
        elif event_type == "checkout.session.completed":
            intent_id = obj.get("payment_intent")
            if isinstance(intent_id, dict):
                intent_id = intent_id.get("id")
        else:
            return CheckoutResult.ok("Événement ignoré", status="ignored", type=event_type)
        logger.info("payments.webhook type=%s intent_id=%s", event_type, intent_id)
        return self.confirm_payment(intent_id)
