"""
Sérialisation/désérialisation des métadonnées de paiement (userId, courseIds, cartId).
Les métadonnées Stripe n'acceptent que des chaînes: courseIds est une liste séparée par des virgules,
quantities un JSON compact {courseId: qty} (facultatif, sert de poids à la répartition).
"""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from coursemarket.errors import ValidationError

# Limite Stripe: 500 caractères par valeur de métadonnée
MAX_VALUE_LENGTH = 500


@dataclass(frozen=True)
class PaymentMetadata:
    user_id: str
    course_ids: List[str]
    cart_id: Optional[str] = None
    quantities: Dict[str, int] = field(default_factory=dict)

    def quantity_of(self, course_id: str) -> int:
        return int(self.quantities.get(course_id) or 1)


def make_metadata(
    user_id: str,
    course_ids: List[str],
    cart_id: Optional[str] = None,
    quantities: Optional[Dict[str, int]] = None,
) -> Dict[str, str]:
    """
    Construit le dict de métadonnées attaché à l'intent / la session.
    - quantities n'est incluse que si elle tient dans la limite Stripe
    """
    meta = {"userId": user_id, "courseIds": ",".join(course_ids)}
    if cart_id:
        meta["cartId"] = cart_id
    if quantities and any(q != 1 for q in quantities.values()):
        encoded = json.dumps(quantities, separators=(",", ":"))
        if len(encoded) <= MAX_VALUE_LENGTH:
            meta["quantities"] = encoded
    return meta


def parse_metadata(meta: Dict[str, Any]) -> PaymentMetadata:
    """
    Relit les métadonnées d'un intent.
    - ValidationError si userId ou courseIds sont absents
    - quantities illisible: ignorée (poids = 1 par cours)
    """
    meta = meta or {}
    user_id = str(meta.get("userId") or "").strip()
    course_ids = [c.strip() for c in str(meta.get("courseIds") or "").split(",") if c.strip()]
    if not user_id or not course_ids:
        raise ValidationError("Métadonnées de paiement incomplètes (userId/courseIds)")
    try:
        raw = json.loads(meta.get("quantities") or "{}")
        quantities = {str(k): int(v) for k, v in raw.items()}
    except (TypeError, ValueError, AttributeError):
        quantities = {}
    return PaymentMetadata(
        user_id=user_id,
        course_ids=course_ids,
        cart_id=(str(meta.get("cartId")).strip() or None) if meta.get("cartId") else None,
        quantities=quantities,
    )
