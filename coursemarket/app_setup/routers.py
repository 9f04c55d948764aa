"""
Registre central des routers (panier, paiement, health).
"""
from fastapi import FastAPI
from coursemarket.cart import views as cart_views
from coursemarket.payments import views as payments_views
from coursemarket.health.router import router as health_router


def register_routers(app: FastAPI) -> None:
    app.include_router(cart_views.router)
    app.include_router(payments_views.router)
    # Health & monitoring
    app.include_router(health_router)
