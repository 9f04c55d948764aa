"""
Factory d'application pour les entrypoints (coursemarket.asgi) et les tests.
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
from typing import Optional

from fastapi import FastAPI

from coursemarket.container import Container, build_container
from .exceptions import register_exception_handlers
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_security_middleware
from .routers import register_routers


def create_app(container: Optional[Container] = None) -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - le conteneur de collaborateurs (app.state.container)
      - middlewares de base puis sécurité
      - gestionnaires d'exceptions et routers (cart, payment, health)
    Retour:
      FastAPI prêt à être utilisé par le serveur ASGI.
    """
    app = FastAPI(title="Course Market API", lifespan=lifespan)
    app.state.container = container or build_container()
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    return app
