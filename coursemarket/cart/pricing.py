"""
Valorisation du panier à partir des prix courants du catalogue.
"""
from coursemarket.catalog.repository import CourseCatalog
from coursemarket.errors import NotFoundError
from .models import Cart, PricedCart, PricedLine


class CartPricer:
    def __init__(self, catalog: CourseCatalog):
        self.catalog = catalog

    def price(self, cart: Cart) -> PricedCart:
        """
        Construit un PricedCart (une ligne par article).
        - prix unitaire = prix courant du cours, jamais une valeur mémorisée
        - NotFoundError si un cours du panier n'existe plus au catalogue
        """
        courses = self.catalog.get_courses([i.course_id for i in cart.items])
        lines = []
        for item in sorted(cart.items, key=lambda i: i.added_at):
            course = courses.get(item.course_id)
            if course is None:
                raise NotFoundError(f"Cours introuvable: {item.course_id}")
            lines.append(
                PricedLine(
                    item_id=item.id,
                    course_id=item.course_id,
                    title=course.title,
                    unit_price=course.price,
                    quantity=item.quantity,
                    thumbnail_url=course.thumbnail_url,
                    instructor_name=course.instructor_name,
                )
            )
        return PricedCart(cart_id=cart.id, user_id=cart.user_id, lines=lines)
