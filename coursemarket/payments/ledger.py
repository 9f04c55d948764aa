"""
Registre des paiements (une ligne immuable par cours et par intent réglé).
Unicité (intent_id, course_id): garantit qu'un intent n'est réglé qu'une fois, même en concurrence.
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Tuple
from uuid import uuid4

from supabase import Client

from coursemarket.errors import ConflictError
from coursemarket.infra.supabase_client import translate_api_error

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"


@dataclass(frozen=True)
class Payment:
    id: str
    user_id: str
    course_id: str
    amount: Decimal
    method: str
    status: str
    paid_at: datetime
    intent_id: str


def new_payment(*, user_id: str, course_id: str, amount: Decimal, method: str, intent_id: str) -> Payment:
    return Payment(
        id=str(uuid4()),
        user_id=user_id,
        course_id=course_id,
        amount=amount,
        method=method,
        status=STATUS_COMPLETED,
        paid_at=datetime.now(timezone.utc),
        intent_id=intent_id,
    )


def payment_from_row(row: Dict[str, Any]) -> Payment:
    paid_at = row.get("paid_at")
    return Payment(
        id=str(row.get("id")),
        user_id=str(row.get("user_id")),
        course_id=str(row.get("course_id")),
        amount=Decimal(str(row.get("amount") or "0")),
        method=row.get("method") or "",
        status=row.get("status") or "",
        paid_at=datetime.fromisoformat(str(paid_at).replace("Z", "+00:00")) if paid_at else datetime.now(timezone.utc),
        intent_id=str(row.get("intent_id")),
    )


class PaymentLedger(ABC):
    @abstractmethod
    def record(self, payment: Payment) -> Payment:
        """Insère la ligne; ConflictError si (intent_id, course_id) existe déjà."""

    @abstractmethod
    def exists(self, intent_id: str, course_id: str) -> bool:
        ...

    @abstractmethod
    def list_for_intent(self, intent_id: str) -> List[Payment]:
        ...


class SupabasePaymentLedger(PaymentLedger):
    def __init__(self, client: Client):
        self.client = client

    def record(self, payment: Payment) -> Payment:
        row = {
            "id": payment.id,
            "user_id": payment.user_id,
            "course_id": payment.course_id,
            "amount": f"{payment.amount:.2f}",
            "method": payment.method,
            "status": payment.status,
            "paid_at": payment.paid_at.isoformat(),
            "intent_id": payment.intent_id,
        }
        try:
            self.client.table("payments").insert(row).execute()
        except Exception as e:
            raise translate_api_error(e, "payments.ledger.record") from e
        return payment

    def exists(self, intent_id: str, course_id: str) -> bool:
        try:
            res = (
                self.client.table("payments")
                .select("id")
                .eq("intent_id", intent_id)
                .eq("course_id", course_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise translate_api_error(e, "payments.ledger.exists") from e
        return bool(res.data)

    def list_for_intent(self, intent_id: str) -> List[Payment]:
        try:
            res = self.client.table("payments").select("*").eq("intent_id", intent_id).execute()
        except Exception as e:
            raise translate_api_error(e, "payments.ledger.list_for_intent") from e
        return [payment_from_row(r) for r in (res.data or [])]


class InMemoryPaymentLedger(PaymentLedger):
    def __init__(self):
        self._lock = threading.Lock()
        self._rows: Dict[Tuple[str, str], Payment] = {}

    def record(self, payment: Payment) -> Payment:
        key = (payment.intent_id, payment.course_id)
        with self._lock:
            if key in self._rows:
                raise ConflictError("payments.ledger.record: duplicate row")
            self._rows[key] = payment
            return payment

    def exists(self, intent_id: str, course_id: str) -> bool:
        with self._lock:
            return (intent_id, course_id) in self._rows

    def list_for_intent(self, intent_id: str) -> List[Payment]:
        with self._lock:
            return [p for (iid, _), p in self._rows.items() if iid == intent_id]

    def all(self) -> List[Payment]:
        with self._lock:
            return list(self._rows.values())
