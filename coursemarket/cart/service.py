"""
Cas d'usage 'cart': lecture et modification du panier de l'utilisateur courant.
Chaque opération renvoie le panier valorisé (prix courants).
"""
import logging

from coursemarket.catalog.repository import CourseCatalog
from coursemarket.errors import NotFoundError
from .models import PricedCart
from .pricing import CartPricer
from .repository import CartStore

logger = logging.getLogger(__name__)


class CartService:
    def __init__(self, store: CartStore, catalog: CourseCatalog):
        self.store = store
        self.catalog = catalog
        self.pricer = CartPricer(catalog)

    def get_cart(self, user_id: str) -> PricedCart:
        return self.pricer.price(self.store.get_or_create(user_id))

    def add_item(self, user_id: str, course_id: str, quantity: int = 1) -> PricedCart:
        if self.catalog.get_course(course_id) is None:
            raise NotFoundError("Cours introuvable")
        item = self.store.add_item(user_id, course_id, quantity)
        logger.info("cart.add_item user_id=%s course_id=%s quantity=%s", user_id, course_id, item.quantity)
        return self.get_cart(user_id)

    def _owned_item(self, user_id: str, item_id: str):
        # Un utilisateur ne modifie que les lignes de son propre panier
        item = self.store.get_or_create(user_id).find_item(item_id)
        if item is None:
            raise NotFoundError("Article du panier introuvable")
        return item

    def update_item(self, user_id: str, item_id: str, quantity: int) -> PricedCart:
        self._owned_item(user_id, item_id)
        self.store.update_item_quantity(item_id, quantity)
        return self.get_cart(user_id)

    def remove_item(self, user_id: str, item_id: str) -> PricedCart:
        self._owned_item(user_id, item_id)
        self.store.remove_item(item_id)
        return self.get_cart(user_id)

    def clear_cart(self, user_id: str) -> PricedCart:
        cart = self.store.get_or_create(user_id)
        self.store.clear(cart.id)
        return self.get_cart(user_id)
