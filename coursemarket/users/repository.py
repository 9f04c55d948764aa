"""Annuaire utilisateurs (collaborateur externe).
Lecture du contact (email obligatoire pour payer) et mise à jour des champs de contact
saisis au moment du paiement (nom complet, téléphone, code postal).
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Optional

from supabase import Client

from coursemarket.infra.supabase_client import translate_api_error

logger = logging.getLogger(__name__)

CONTACT_FIELDS = ("full_name", "phone_number", "postal_code")


@dataclass(frozen=True)
class UserContact:
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    postal_code: Optional[str] = None


class UserDirectory(ABC):
    @abstractmethod
    def get_user(self, user_id: str) -> Optional[UserContact]:
        ...

    @abstractmethod
    def update_contact(self, user_id: str, fields: Dict[str, str]) -> None:
        ...


def changed_contact_fields(user: UserContact, full_name=None, phone_number=None, postal_code=None) -> Dict[str, str]:
    """Champs fournis (non vides) et différents de la valeur stockée."""
    proposed = {"full_name": full_name, "phone_number": phone_number, "postal_code": postal_code}
    return {
        k: v.strip()
        for k, v in proposed.items()
        if v and v.strip() and v.strip() != (getattr(user, k) or "")
    }


class SupabaseUserDirectory(UserDirectory):
    def __init__(self, client: Client):
        self.client = client

    def get_user(self, user_id: str) -> Optional[UserContact]:
        if not user_id:
            return None
        try:
            res = (
                self.client.table("users")
                .select("id, email, full_name, phone_number, postal_code")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise translate_api_error(e, "users.get_user") from e
        rows = res.data or []
        if not rows:
            return None
        row: Dict[str, Any] = rows[0]
        return UserContact(
            id=str(row.get("id")),
            email=row.get("email"),
            full_name=row.get("full_name"),
            phone_number=row.get("phone_number"),
            postal_code=row.get("postal_code"),
        )

    def update_contact(self, user_id: str, fields: Dict[str, str]) -> None:
        payload = {k: v for k, v in (fields or {}).items() if k in CONTACT_FIELDS}
        if not payload:
            return
        try:
            self.client.table("users").update(payload).eq("id", user_id).execute()
        except Exception as e:
            raise translate_api_error(e, "users.update_contact") from e
        logger.info("users.update_contact user_id=%s fields=%s", user_id, sorted(payload))


class InMemoryUserDirectory(UserDirectory):
    def __init__(self, users: Iterable[UserContact] = ()):
        self._lock = threading.Lock()
        self._users: Dict[str, UserContact] = {u.id: u for u in users}

    def put(self, user: UserContact) -> None:
        with self._lock:
            self._users[user.id] = user

    def get_user(self, user_id: str) -> Optional[UserContact]:
        with self._lock:
            return self._users.get(user_id)

    def update_contact(self, user_id: str, fields: Dict[str, str]) -> None:
        payload = {k: v for k, v in (fields or {}).items() if k in CONTACT_FIELDS}
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return
            self._users[user_id] = replace(user, **payload)
