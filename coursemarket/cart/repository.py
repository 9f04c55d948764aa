"""
Accès aux données pour la feature 'cart'.
- CartStore: interface (un panier par utilisateur, une ligne par cours)
- SupabaseCartStore: tables 'carts' / 'cart_items' + RPC add_cart_item (upsert atomique)
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict

from supabase import Client

from coursemarket.errors import NotFoundError, ValidationError
from coursemarket.infra.supabase_client import is_unique_violation, translate_api_error
from .models import Cart, CartItem

logger = logging.getLogger(__name__)


class CartStore(ABC):
    @abstractmethod
    def get_or_create(self, user_id: str) -> Cart:
        ...

    @abstractmethod
    def add_item(self, user_id: str, course_id: str, quantity: int = 1) -> CartItem:
        """Incrémente la ligne existante du cours ou en insère une nouvelle."""

    @abstractmethod
    def update_item_quantity(self, item_id: str, quantity: int) -> CartItem:
        ...

    @abstractmethod
    def remove_item(self, item_id: str) -> bool:
        ...

    @abstractmethod
    def clear(self, cart_id: str) -> None:
        ...


def check_quantity(quantity: int) -> int:
    try:
        qty = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError("Quantité invalide")
    if qty < 1:
        raise ValidationError("La quantité doit être supérieure ou égale à 1")
    return qty


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value:
        try:
            return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime.now(timezone.utc)


def item_from_row(row: Dict[str, Any]) -> CartItem:
    return CartItem(
        id=str(row.get("id")),
        cart_id=str(row.get("cart_id")),
        course_id=str(row.get("course_id")),
        quantity=int(row.get("quantity") or 0),
        added_at=_parse_ts(row.get("added_at")),
    )


class SupabaseCartStore(CartStore):
    def __init__(self, client: Client):
        self.client = client

    def _select_cart(self, user_id: str):
        res = (
            self.client.table("carts")
            .select("id, user_id, cart_items(id, cart_id, course_id, quantity, added_at)")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None

    def get_or_create(self, user_id: str) -> Cart:
        try:
            row = self._select_cart(user_id)
            if row is None:
                try:
                    self.client.table("carts").insert({"user_id": user_id}).execute()
                    logger.info("cart.get_or_create created user_id=%s", user_id)
                except Exception as e:
                    # Premier accès concurrent: l'autre requête a créé le panier (carts.user_id unique)
                    if not is_unique_violation(e):
                        raise
                row = self._select_cart(user_id)
        except Exception as e:
            raise translate_api_error(e, "cart.get_or_create") from e
        if row is None:
            raise NotFoundError("Panier introuvable")
        items = tuple(item_from_row(r) for r in (row.get("cart_items") or []))
        return Cart(id=str(row.get("id")), user_id=str(row.get("user_id")), items=items)

    def add_item(self, user_id: str, course_id: str, quantity: int = 1) -> CartItem:
        qty = check_quantity(quantity)
        cart = self.get_or_create(user_id)
        try:
            res = self.client.rpc(
                "add_cart_item",
                {"p_cart_id": cart.id, "p_course_id": course_id, "p_quantity": qty},
            ).execute()
        except Exception as e:
            raise translate_api_error(e, "cart.add_item") from e
        data = res.data
        row = data[0] if isinstance(data, list) and data else data
        if not row:
            raise NotFoundError("Ligne de panier introuvable après ajout")
        return item_from_row(row)

    def update_item_quantity(self, item_id: str, quantity: int) -> CartItem:
        qty = check_quantity(quantity)
        try:
            res = self.client.table("cart_items").update({"quantity": qty}).eq("id", item_id).execute()
        except Exception as e:
            raise translate_api_error(e, "cart.update_item_quantity") from e
        rows = res.data or []
        if not rows:
            raise NotFoundError("Article du panier introuvable")
        return item_from_row(rows[0])

    def remove_item(self, item_id: str) -> bool:
        try:
            res = self.client.table("cart_items").delete().eq("id", item_id).execute()
        except Exception as e:
            raise translate_api_error(e, "cart.remove_item") from e
        return bool(res.data)

    def clear(self, cart_id: str) -> None:
        try:
            self.client.table("cart_items").delete().eq("cart_id", cart_id).execute()
        except Exception as e:
            raise translate_api_error(e, "cart.clear") from e
        logger.info("cart.clear cart_id=%s", cart_id)
