"""
Modèles du panier.
Le prix unitaire n'est jamais stocké sur la ligne: il est relu dans le catalogue à chaque valorisation.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class CartItem:
    id: str
    cart_id: str
    course_id: str
    quantity: int
    added_at: datetime


@dataclass(frozen=True)
class Cart:
    id: str
    user_id: str
    items: Tuple[CartItem, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find_item(self, item_id: str) -> Optional[CartItem]:
        return next((i for i in self.items if i.id == item_id), None)


@dataclass(frozen=True)
class PricedLine:
    item_id: str
    course_id: str
    title: str
    unit_price: Decimal
    quantity: int
    thumbnail_url: Optional[str] = None
    instructor_name: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PricedCart:
    cart_id: str
    user_id: str
    lines: List[PricedLine] = field(default_factory=list)

    @property
    def total_price(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0.00"))

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def course_ids(self) -> List[str]:
        return [line.course_id for line in self.lines]

    def quantities(self) -> Dict[str, int]:
        return {line.course_id: line.quantity for line in self.lines}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.cart_id,
            "userId": self.user_id,
            "items": [
                {
                    "id": line.item_id,
                    "courseId": line.course_id,
                    "courseTitle": line.title,
                    "coursePrice": str(line.unit_price),
                    "thumbnailUrl": line.thumbnail_url,
                    "instructorName": line.instructor_name,
                    "quantity": line.quantity,
                    "totalPrice": str(line.line_total),
                }
                for line in self.lines
            ],
            "totalPrice": str(self.total_price),
        }
