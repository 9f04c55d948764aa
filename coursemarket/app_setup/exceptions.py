"""
Gestionnaires d'exceptions utilisés par la factory.
- HTTPException: corps JSON {"detail": ...}
- CheckoutError échappée d'une vue: code HTTP selon le type d'erreur
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from coursemarket.errors import CheckoutError, HTTP_STATUS_BY_KIND

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def json_http_exception(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))

    @app.exception_handler(CheckoutError)
    async def json_checkout_error(request: Request, exc: CheckoutError):
        logger.info("checkout error path=%s kind=%s", request.url.path, exc.kind.value)
        return JSONResponse(status_code=HTTP_STATUS_BY_KIND.get(exc.kind, 500), content={"detail": exc.message})
