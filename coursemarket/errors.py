"""
Taxonomie des erreurs du pipeline checkout.

- Les collaborateurs (stores, passerelle) lèvent ces exceptions.
- L'orchestrateur les capture à sa frontière et les convertit en CheckoutResult.
- ConflictError ne sort jamais du règlement (écriture concurrente = no-op).
"""
from enum import Enum
from typing import Optional
from uuid import uuid4


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    GATEWAY = "gateway"
    CONFLICT = "conflict"
    INTERNAL = "internal"


# Correspondance type d'erreur -> code HTTP (utilisée par les vues)
HTTP_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.GATEWAY: 502,
    ErrorKind.INTERNAL: 500,
}


class CheckoutError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(CheckoutError):
    kind = ErrorKind.VALIDATION


class NotFoundError(CheckoutError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(CheckoutError):
    kind = ErrorKind.CONFLICT


class InternalError(CheckoutError):
    kind = ErrorKind.INTERNAL


class GatewayError(CheckoutError):
    """
    Échec côté prestataire de paiement (réseau, authentification, 5xx).
    - correlation_id: identifiant court à journaliser et renvoyer à l'appelant
    - le message ne contient jamais de clé ni de secret
    """
    kind = ErrorKind.GATEWAY

    def __init__(self, message: str = "", correlation_id: Optional[str] = None):
        super().__init__(message)
        self.correlation_id = correlation_id or new_correlation_id()


def new_correlation_id() -> str:
    return uuid4().hex[:12]
