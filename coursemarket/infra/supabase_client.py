"""
Fabriques de clients Supabase et traduction des erreurs PostgREST.
Aucun client global: le conteneur (coursemarket.container) crée les clients et les injecte dans les stores.
"""
import logging
from postgrest.exceptions import APIError
from supabase import create_client, Client
from coursemarket.config import SUPABASE_URL, SUPABASE_ANON, SUPABASE_SERVICE_KEY
from coursemarket.errors import CheckoutError, ConflictError, InternalError

logger = logging.getLogger(__name__)

# Code Postgres: violation de contrainte d'unicité
UNIQUE_VIOLATION = "23505"


def create_anon_client() -> Client:
    """Client 'anon' (RLS actif), utilisé pour la vérification des tokens d'accès."""
    if not SUPABASE_URL or not SUPABASE_ANON:
        raise RuntimeError("SUPABASE_URL/SUPABASE_ANON_KEY manquants pour create_anon_client()")
    return create_client(SUPABASE_URL, SUPABASE_ANON)


def create_service_client() -> Client:
    """
    Client service-role (bypass RLS) pour les écritures serveur:
    panier, paiements et inscriptions sont écrits après vérification côté API.
    """
    if not SUPABASE_SERVICE_KEY:
        raise RuntimeError("SUPABASE_SERVICE_KEY manquant pour create_service_client()")
    return create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)


def is_unique_violation(exc: Exception) -> bool:
    return isinstance(exc, APIError) and str(getattr(exc, "code", "") or "") == UNIQUE_VIOLATION


def translate_api_error(exc: Exception, operation: str) -> CheckoutError:
    """
    Convertit une erreur Supabase en erreur du domaine.
    - 23505 (unicité) -> ConflictError
    - erreur déjà traduite -> inchangée
    - tout le reste -> InternalError (journalisé avec la trace)
    """
    if isinstance(exc, CheckoutError):
        return exc
    if is_unique_violation(exc):
        return ConflictError(f"{operation}: duplicate row")
    logger.exception("%s failed", operation)
    return InternalError(f"{operation} failed")
