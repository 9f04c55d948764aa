"""
Résultat renvoyé par l'orchestrateur à sa frontière (succès ou type d'erreur), jamais d'exception.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from coursemarket.errors import CheckoutError, ErrorKind, GatewayError, HTTP_STATUS_BY_KIND


@dataclass(frozen=True)
class CheckoutResult:
    success: bool
    message: str = ""
    error_kind: Optional[ErrorKind] = None
    status: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    correlation_id: Optional[str] = None

    @classmethod
    def ok(cls, message: str = "", status: Optional[str] = None, **data: Any) -> "CheckoutResult":
        return cls(success=True, message=message, status=status, data=data)

    @classmethod
    def from_error(cls, exc: CheckoutError, message: Optional[str] = None) -> "CheckoutResult":
        return cls(
            success=False,
            message=message or exc.message,
            error_kind=exc.kind,
            correlation_id=getattr(exc, "correlation_id", None) if isinstance(exc, GatewayError) else None,
        )

    @property
    def http_status(self) -> int:
        # Statut passerelle non abouti (pending/failed/canceled): 200 avec success=false
        if self.error_kind is None:
            return 200
        return HTTP_STATUS_BY_KIND.get(self.error_kind, 500)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.status:
            body["status"] = self.status
        if self.error_kind is not None:
            body["error"] = self.error_kind.value
        if self.correlation_id:
            body["correlationId"] = self.correlation_id
        body.update(self.data)
        return body
