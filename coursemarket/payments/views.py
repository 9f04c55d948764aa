import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from coursemarket.dependencies import get_orchestrator, http_error
from coursemarket.errors import CheckoutError
from coursemarket.utils.rate_limit import optional_rate_limit
from coursemarket.utils.security import require_user
from .orchestrator import CheckoutOrchestrator, PaymentIntentRequest
from .results import CheckoutResult
from .schemas import CheckoutSessionIn, ConfirmPaymentIn, PaymentIntentIn

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payment", tags=["Payments API"])


def _respond(result: CheckoutResult) -> JSONResponse:
    """
    Traduit un CheckoutResult en réponse HTTP.
    - succès ou statut passerelle non abouti: 200 (success true/false)
    - erreur: 400 validation, 404 introuvable, 502 passerelle, 500 interne
    """
    if result.error_kind is not None:
        raise HTTPException(status_code=result.http_status, detail=result.message)
    return JSONResponse(result.to_dict())


# module coursemarket.payments.views
@router.post("/intent", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_payment_intent(
    payload: PaymentIntentIn,
    user: Dict[str, Any] = Depends(require_user),
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
):
    """
    Crée un payment intent pour le panier de l'utilisateur authentifié.
    - Entrée JSON: {amount, currency, description, courseIds, fullName?, phoneNumber?, postalCode?}
    - Le montant doit correspondre au total courant du panier
    - Réponse: {intentId, clientSecret, amount, currency}
    """
    request = PaymentIntentRequest(
        amount=payload.amount,
        currency=payload.currency,
        description=payload.description,
        course_ids=payload.course_ids,
        full_name=payload.full_name,
        phone_number=payload.phone_number,
        postal_code=payload.postal_code,
        idempotency_key=payload.idempotency_key,
    )
    return _respond(orchestrator.create_payment_intent(user["id"], request))


@router.post("/confirm")
def confirm_payment(
    payload: ConfirmPaymentIn,
    user: Dict[str, Any] = Depends(require_user),
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
):
    """
    Confirme un intent: relit son statut chez le prestataire puis règle l'achat s'il a réussi.
    - Idempotent: une seconde confirmation ne crée ni paiement ni inscription en double
    - Réponse: {success, message, status, ...}
    """
    return _respond(orchestrator.confirm_payment(payload.intent_id, user_id=user["id"]))


@router.post("/checkout-session", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_checkout_session(
    payload: CheckoutSessionIn,
    user: Dict[str, Any] = Depends(require_user),
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
):
    """
    Crée une session de paiement hébergée pour le panier courant.
    - Panier vide: 400, aucun appel au prestataire
    - Réponse: {sessionId, url}
    """
    return _respond(orchestrator.create_checkout_session(user["id"], payload.return_url))


@router.get("/success")
def checkout_success(
    session_id: str,
    user: Dict[str, Any] = Depends(require_user),
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
):
    """
    Retour de la page de paiement hébergée (sans webhook): confirme la session et règle l'achat.
    """
    return _respond(orchestrator.confirm_session(session_id, user_id=user["id"]))


@router.post("/webhook", include_in_schema=False)
async def payment_webhook(request: Request, orchestrator: CheckoutOrchestrator = Depends(get_orchestrator)):
    """
    Webhook du prestataire: payment_intent.succeeded et checkout.session.completed.
    - Signature: vérifiée par la passerelle (Stripe-Signature + STRIPE_WEBHOOK_SECRET)
    - Erreurs: 400 si signature/payload invalide
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    gateway = request.app.state.container.gateway
    try:
        event = gateway.parse_webhook(payload, signature)
    except CheckoutError as e:
        logger.warning("payments.webhook rejected: %s", e.message)
        raise http_error(e)
    result = await run_in_threadpool(orchestrator.handle_webhook_event, event)
    logger.info("payments.webhook type=%s success=%s status=%s", event.get("type"), result.success, result.status)
    return _respond(result)
