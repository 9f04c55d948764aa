"""
Panier en mémoire (dev/tests), mêmes règles que le schéma SQL:
- un panier par utilisateur, une ligne par (panier, cours)
- toutes les mutations (ajout, mise à jour, suppression, vidage) sérialisées par un même verrou
"""
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict
from uuid import uuid4

from coursemarket.errors import NotFoundError
from .models import Cart, CartItem
from .repository import CartStore, check_quantity


class InMemoryCartStore(CartStore):
    def __init__(self):
        self._lock = threading.RLock()
        self._carts: Dict[str, str] = {}  # user_id -> cart_id
        self._owners: Dict[str, str] = {}  # cart_id -> user_id
        self._items: Dict[str, CartItem] = {}

    def _cart_id_for(self, user_id: str) -> str:
        with self._lock:
            cart_id = self._carts.get(user_id)
            if cart_id is None:
                cart_id = str(uuid4())
                self._carts[user_id] = cart_id
                self._owners[cart_id] = user_id
            return cart_id

    def get_or_create(self, user_id: str) -> Cart:
        cart_id = self._cart_id_for(user_id)
        with self._lock:
            items = tuple(i for i in self._items.values() if i.cart_id == cart_id)
        return Cart(id=cart_id, user_id=user_id, items=items)

    def add_item(self, user_id: str, course_id: str, quantity: int = 1) -> CartItem:
        qty = check_quantity(quantity)
        cart_id = self._cart_id_for(user_id)
        # Lecture-modification-écriture sous un seul verrou: un clear/update concurrent ne peut s'intercaler
        with self._lock:
            existing = next(
                (i for i in self._items.values() if i.cart_id == cart_id and i.course_id == course_id),
                None,
            )
            if existing is not None:
                updated = replace(existing, quantity=existing.quantity + qty)
            else:
                updated = CartItem(
                    id=str(uuid4()),
                    cart_id=cart_id,
                    course_id=course_id,
                    quantity=qty,
                    added_at=datetime.now(timezone.utc),
                )
            self._items[updated.id] = updated
            return updated

    def update_item_quantity(self, item_id: str, quantity: int) -> CartItem:
        qty = check_quantity(quantity)
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                raise NotFoundError("Article du panier introuvable")
            updated = replace(item, quantity=qty)
            self._items[item_id] = updated
            return updated

    def remove_item(self, item_id: str) -> bool:
        with self._lock:
            return self._items.pop(item_id, None) is not None

    def clear(self, cart_id: str) -> None:
        with self._lock:
            for item_id in [i.id for i in self._items.values() if i.cart_id == cart_id]:
                del self._items[item_id]
