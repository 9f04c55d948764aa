"""
Vérification des tokens d'accès (l'identité est gérée par Supabase Auth).
Retourne un dict utilisateur {id, email, metadata} ou None si le token est invalide.
"""
import logging
from typing import Any, Dict, Optional

from supabase import Client

logger = logging.getLogger(__name__)


class SupabaseTokenVerifier:
    def __init__(self, client: Client):
        self.client = client

    def __call__(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            res = self.client.auth.get_user(token)
        except Exception:
            logger.info("users.auth token rejected")
            return None
        user = getattr(res, "user", None)
        if not user or not getattr(user, "id", None):
            return None
        return {
            "id": str(user.id),
            "email": getattr(user, "email", None),
            "metadata": getattr(user, "user_metadata", None) or {},
        }


class InMemoryTokenVerifier:
    """Tokens statiques pour le développement local (STORAGE_BACKEND=memory)."""

    def __init__(self, tokens: Optional[Dict[str, Dict[str, Any]]] = None):
        self.tokens = dict(tokens or {})

    def __call__(self, token: str) -> Optional[Dict[str, Any]]:
        return self.tokens.get(token)
