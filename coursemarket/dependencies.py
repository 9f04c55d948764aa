"""
Dépendances FastAPI: lisent les collaborateurs depuis app.state.container.
"""
from fastapi import Depends, HTTPException, Request

from coursemarket.cart.service import CartService
from coursemarket.container import Container
from coursemarket.errors import CheckoutError, HTTP_STATUS_BY_KIND
from coursemarket.payments.orchestrator import CheckoutOrchestrator


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_orchestrator(container: Container = Depends(get_container)) -> CheckoutOrchestrator:
    return container.orchestrator


def get_cart_service(container: Container = Depends(get_container)) -> CartService:
    return container.cart_service


def http_error(exc: CheckoutError) -> HTTPException:
    return HTTPException(status_code=HTTP_STATUS_BY_KIND.get(exc.kind, 500), detail=exc.message)
