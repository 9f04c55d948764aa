"""
Cas d'usage 'enrollments': attribution des droits d'accès après paiement.
"""
import logging
from typing import Iterable, List

from coursemarket.errors import ConflictError
from .repository import EnrollmentStore

logger = logging.getLogger(__name__)


class EntitlementGranter:
    """
    Accorde l'accès aux cours achetés, exactement une fois par (user, cours).
    - ignore les inscriptions existantes
    - une ConflictError (inscription concurrente) est traitée comme un succès
    - toute autre erreur remonte: le règlement ne vide alors pas le panier
    """

    def __init__(self, store: EnrollmentStore):
        self.store = store

    def is_entitled(self, user_id: str, course_id: str) -> bool:
        return self.store.exists(user_id, course_id)

    def grant(self, user_id: str, course_ids: Iterable[str]) -> List[str]:
        granted: List[str] = []
        for course_id in course_ids:
            if self.store.exists(user_id, course_id):
                continue
            try:
                self.store.create(user_id, course_id)
            except ConflictError:
                logger.info("enrollments.grant already enrolled user_id=%s course_id=%s", user_id, course_id)
                continue
            granted.append(course_id)
        if granted:
            logger.info("enrollments.grant user_id=%s granted=%s", user_id, granted)
        return granted
