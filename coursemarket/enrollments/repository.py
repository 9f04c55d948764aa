"""
Accès aux données pour la feature 'enrollments' (inscriptions = droit d'accès à un cours).
Contrainte: au plus une inscription par (user_id, course_id).
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Tuple
from uuid import uuid4

from supabase import Client

from coursemarket.errors import ConflictError
from coursemarket.infra.supabase_client import translate_api_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Enrollment:
    id: str
    user_id: str
    course_id: str
    enrolled_at: datetime


class EnrollmentStore(ABC):
    @abstractmethod
    def create(self, user_id: str, course_id: str) -> Enrollment:
        """Crée l'inscription; ConflictError si elle existe déjà."""

    @abstractmethod
    def exists(self, user_id: str, course_id: str) -> bool:
        ...


class SupabaseEnrollmentStore(EnrollmentStore):
    def __init__(self, client: Client):
        self.client = client

    def create(self, user_id: str, course_id: str) -> Enrollment:
        row = {
            "id": str(uuid4()),
            "user_id": user_id,
            "course_id": course_id,
            "enrolled_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.client.table("enrollments").insert(row).execute()
        except Exception as e:
            raise translate_api_error(e, "enrollments.create") from e
        return Enrollment(
            id=row["id"],
            user_id=user_id,
            course_id=course_id,
            enrolled_at=datetime.fromisoformat(row["enrolled_at"]),
        )

    def exists(self, user_id: str, course_id: str) -> bool:
        try:
            res = (
                self.client.table("enrollments")
                .select("id")
                .eq("user_id", user_id)
                .eq("course_id", course_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise translate_api_error(e, "enrollments.exists") from e
        return bool(res.data)


class InMemoryEnrollmentStore(EnrollmentStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._rows: Dict[Tuple[str, str], Enrollment] = {}

    def create(self, user_id: str, course_id: str) -> Enrollment:
        key = (user_id, course_id)
        with self._lock:
            if key in self._rows:
                raise ConflictError("enrollments.create: duplicate row")
            enrollment = Enrollment(
                id=str(uuid4()),
                user_id=user_id,
                course_id=course_id,
                enrolled_at=datetime.now(timezone.utc),
            )
            self._rows[key] = enrollment
            return enrollment

    def exists(self, user_id: str, course_id: str) -> bool:
        with self._lock:
            return (user_id, course_id) in self._rows

    def all(self) -> List[Enrollment]:
        with self._lock:
            return list(self._rows.values())
