import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from coursemarket.dependencies import get_cart_service, http_error
from coursemarket.errors import CheckoutError
from coursemarket.utils.security import require_user
from .schemas import AddCartItemIn, UpdateCartItemIn
from .service import CartService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/cart", tags=["Cart API"])


def _call(operation: str, fn, *args) -> Dict[str, Any]:
    try:
        return fn(*args).to_dict()
    except CheckoutError as e:
        raise http_error(e)
    except Exception:
        logger.exception("cart.%s failed", operation)
        raise HTTPException(status_code=500, detail="Erreur interne")


# module coursemarket.cart.views
@router.get("")
def get_cart(user: Dict[str, Any] = Depends(require_user), service: CartService = Depends(get_cart_service)):
    """
    Panier de l'utilisateur authentifié, valorisé aux prix courants du catalogue.
    - Créé vide au premier accès.
    """
    return _call("get_cart", service.get_cart, user["id"])


@router.post("/items")
def add_cart_item(
    payload: AddCartItemIn,
    user: Dict[str, Any] = Depends(require_user),
    service: CartService = Depends(get_cart_service),
):
    """
    Ajoute un cours au panier; si le cours y est déjà, la quantité est incrémentée.
    - Erreurs: 404 si le cours n'existe pas, 400 si quantité invalide
    """
    return _call("add_item", service.add_item, user["id"], payload.course_id, payload.quantity)


@router.put("/items/{item_id}")
def update_cart_item(
    item_id: str,
    payload: UpdateCartItemIn,
    user: Dict[str, Any] = Depends(require_user),
    service: CartService = Depends(get_cart_service),
):
    return _call("update_item", service.update_item, user["id"], item_id, payload.quantity)


@router.delete("/items/{item_id}")
def remove_cart_item(
    item_id: str,
    user: Dict[str, Any] = Depends(require_user),
    service: CartService = Depends(get_cart_service),
):
    return _call("remove_item", service.remove_item, user["id"], item_id)


@router.delete("")
def clear_cart(user: Dict[str, Any] = Depends(require_user), service: CartService = Depends(get_cart_service)):
    return _call("clear_cart", service.clear_cart, user["id"])
