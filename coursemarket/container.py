"""
Assemblage des collaborateurs (injection explicite, aucun singleton de domaine).

- build_container(): choisit Supabase/mémoire et Stripe/fake selon la configuration
- build_memory_container(): tout en mémoire + FakeGateway (dev/tests)
Le conteneur est stocké sur app.state.container par la factory.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from coursemarket import config
from coursemarket.cart.memory import InMemoryCartStore
from coursemarket.cart.repository import CartStore, SupabaseCartStore
from coursemarket.cart.service import CartService
from coursemarket.catalog.repository import CourseCatalog, InMemoryCourseCatalog, SupabaseCourseCatalog
from coursemarket.enrollments.repository import EnrollmentStore, InMemoryEnrollmentStore, SupabaseEnrollmentStore
from coursemarket.enrollments.service import EntitlementGranter
from coursemarket.infra.supabase_client import create_anon_client, create_service_client
from coursemarket.payments.gateway.fake_adapter import FakeGateway
from coursemarket.payments.gateway.port import PaymentGatewayClient
from coursemarket.payments.gateway.stripe_adapter import StripeGateway
from coursemarket.payments.ledger import InMemoryPaymentLedger, PaymentLedger, SupabasePaymentLedger
from coursemarket.payments.orchestrator import CheckoutOrchestrator
from coursemarket.payments.settlement import Settlement
from coursemarket.users.auth import InMemoryTokenVerifier, SupabaseTokenVerifier
from coursemarket.users.repository import InMemoryUserDirectory, SupabaseUserDirectory, UserDirectory

logger = logging.getLogger(__name__)


@dataclass
class Container:
    cart_store: CartStore
    catalog: CourseCatalog
    users: UserDirectory
    enrollments: EnrollmentStore
    ledger: PaymentLedger
    gateway: PaymentGatewayClient
    granter: EntitlementGranter
    settlement: Settlement
    orchestrator: CheckoutOrchestrator
    cart_service: CartService
    verify_token: Callable[[str], Optional[Dict[str, Any]]]
    storage: str = "memory"


def assemble(
    *,
    cart_store: CartStore,
    catalog: CourseCatalog,
    users: UserDirectory,
    enrollments: EnrollmentStore,
    ledger: PaymentLedger,
    gateway: PaymentGatewayClient,
    verify_token: Callable[[str], Optional[Dict[str, Any]]],
    currency: str = "usd",
    storage: str = "memory",
) -> Container:
    granter = EntitlementGranter(enrollments)
    settlement = Settlement(ledger, granter, cart_store, catalog, method=gateway.name, currency=currency)
    orchestrator = CheckoutOrchestrator(
        cart_store,
        catalog,
        users,
        gateway,
        settlement,
        default_currency=currency,
    )
    return Container(
        cart_store=cart_store,
        catalog=catalog,
        users=users,
        enrollments=enrollments,
        ledger=ledger,
        gateway=gateway,
        granter=granter,
        settlement=settlement,
        orchestrator=orchestrator,
        cart_service=CartService(cart_store, catalog),
        verify_token=verify_token,
        storage=storage,
    )


def build_gateway(kind: str) -> PaymentGatewayClient:
    if kind == "stripe":
        return StripeGateway(
            config.STRIPE_SECRET_KEY,
            config.STRIPE_WEBHOOK_SECRET,
            timeout=config.GATEWAY_TIMEOUT_SECONDS,
            read_attempts=config.GATEWAY_READ_RETRIES,
        )
    return FakeGateway()


def build_memory_container(gateway: Optional[PaymentGatewayClient] = None, currency: str = "usd") -> Container:
    return assemble(
        cart_store=InMemoryCartStore(),
        catalog=InMemoryCourseCatalog(),
        users=InMemoryUserDirectory(),
        enrollments=InMemoryEnrollmentStore(),
        ledger=InMemoryPaymentLedger(),
        gateway=gateway or FakeGateway(),
        verify_token=InMemoryTokenVerifier(),
        currency=currency,
        storage="memory",
    )


def build_container(storage: Optional[str] = None, gateway: Optional[str] = None) -> Container:
    storage = storage or config.STORAGE_BACKEND
    payment_gateway = build_gateway(gateway or config.PAYMENT_GATEWAY)
    logger.info("container storage=%s gateway=%s", storage, payment_gateway.name)
    if storage != "supabase":
        return build_memory_container(payment_gateway, currency=config.DEFAULT_CURRENCY)

    service = create_service_client()
    return assemble(
        cart_store=SupabaseCartStore(service),
        catalog=SupabaseCourseCatalog(service),
        users=SupabaseUserDirectory(service),
        enrollments=SupabaseEnrollmentStore(service),
        ledger=SupabasePaymentLedger(service),
        gateway=payment_gateway,
        verify_token=SupabaseTokenVerifier(create_anon_client()),
        currency=config.DEFAULT_CURRENCY,
        storage="supabase",
    )
