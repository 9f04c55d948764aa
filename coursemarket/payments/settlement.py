"""
Règlement d'un intent réussi: registre des paiements, inscriptions, puis vidage du panier.

Ordre imposé:
  1) une ligne Payment par cours (montant réparti au prorata des prix courants)
  2) une inscription par (utilisateur, cours)
  3) vidage du panier, toujours en dernier
Si l'étape 2 échoue, l'exception remonte et le panier reste intact; une nouvelle
confirmation reprend là où le règlement s'est arrêté sans dupliquer les paiements.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from coursemarket.cart.repository import CartStore
from coursemarket.catalog.repository import CourseCatalog
from coursemarket.enrollments.service import EntitlementGranter
from coursemarket.errors import ConflictError, InternalError, ValidationError
from .gateway.port import GatewayIntent
from .ledger import PaymentLedger, new_payment
from .metadata import parse_metadata
from .money import from_minor_units, split_proportionally, to_minor_units

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementOutcome:
    intent_id: str
    user_id: str
    course_ids: List[str]
    recorded: List[str] = field(default_factory=list)
    granted: List[str] = field(default_factory=list)
    already_settled: bool = False
    cart_cleared: bool = False


class Settlement:
    def __init__(
        self,
        ledger: PaymentLedger,
        granter: EntitlementGranter,
        cart_store: CartStore,
        catalog: CourseCatalog,
        method: str = "stripe",
        currency: str = "usd",
    ):
        self.ledger = ledger
        self.granter = granter
        self.cart_store = cart_store
        self.catalog = catalog
        self.method = method
        self.currency = currency.lower()

    def is_settled(self, intent_id: str, user_id: str, course_ids: List[str]) -> bool:
        return all(
            self.ledger.exists(intent_id, c) and self.granter.is_entitled(user_id, c)
            for c in course_ids
        )

    def shares(self, total_minor: int, course_ids: List[str], meta) -> List[Decimal]:
        """Montant (unités majeures) attribué à chaque cours; la somme vaut total_minor."""
        courses = self.catalog.get_courses(course_ids)
        weights = []
        for course_id in course_ids:
            course = courses.get(course_id)
            price = course.price if course is not None else Decimal("0")
            weights.append(price * meta.quantity_of(course_id))
        return [from_minor_units(m) for m in split_proportionally(total_minor, weights)]

    def settle(self, intent: GatewayIntent) -> SettlementOutcome:
        if (intent.currency or "").lower() != self.currency:
            raise ValidationError(f"Devise de l'intent non prise en charge: {intent.currency}")
        meta = parse_metadata(intent.metadata)
        user_id, course_ids = meta.user_id, meta.course_ids

        if self.is_settled(intent.intent_id, user_id, course_ids):
            logger.info("payments.settlement already settled intent_id=%s", intent.intent_id)
            return SettlementOutcome(intent.intent_id, user_id, course_ids, already_settled=True)

        # Reprise: seul le reste non encore enregistré est réparti entre les cours manquants
        existing = {p.course_id: p for p in self.ledger.list_for_intent(intent.intent_id)}
        missing = [c for c in course_ids if c not in existing]
        remaining_minor = intent.amount_minor - sum(to_minor_units(p.amount) for p in existing.values())
        if remaining_minor < 0:
            raise InternalError(f"Registre incohérent pour l'intent {intent.intent_id}")

        recorded: List[str] = []
        for course_id, amount in zip(missing, self.shares(remaining_minor, missing, meta)):
            payment = new_payment(
                user_id=user_id,
                course_id=course_id,
                amount=amount,
                method=self.method,
                intent_id=intent.intent_id,
            )
            try:
                self.ledger.record(payment)
            except ConflictError:
                # Règlement concurrent du même intent: la ligne existe déjà
                logger.info("payments.settlement concurrent write intent_id=%s course_id=%s", intent.intent_id, course_id)
                continue
            recorded.append(course_id)

        granted = self.granter.grant(user_id, course_ids)

        cart_id = meta.cart_id or self.cart_store.get_or_create(user_id).id
        self.cart_store.clear(cart_id)

        logger.info(
            "payments.settlement done intent_id=%s user_id=%s recorded=%s granted=%s",
            intent.intent_id, user_id, recorded, granted,
        )
        return SettlementOutcome(
            intent.intent_id,
            user_id,
            course_ids,
            recorded=recorded,
            granted=granted,
            cart_cleared=True,
        )
