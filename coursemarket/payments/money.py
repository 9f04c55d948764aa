"""
Arithmétique monétaire (Decimal uniquement, jamais de float).
- to_minor_units / from_minor_units: conversion unités majeures <-> centimes
- split_proportionally: répartition exacte d'un total en centimes entre plusieurs lignes
"""
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import List, Sequence, Union

from coursemarket.errors import ValidationError

Number = Union[Decimal, int, str, float]

CENT = Decimal("0.01")


def to_decimal(amount: Number) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    try:
        # str() évite de propager l'imprécision binaire d'un float
        return Decimal(str(amount))
    except Exception:
        raise ValidationError(f"Montant invalide: {amount!r}")


def to_minor_units(amount: Number) -> int:
    """round(amount * 100), arrondi au demi supérieur: 49.99 -> 4999, 10.005 -> 1001."""
    return int((to_decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount_minor: int) -> Decimal:
    return (Decimal(int(amount_minor)) / 100).quantize(CENT)


def split_proportionally(total_minor: int, weights: Sequence[Number]) -> List[int]:
    """
    Répartit total_minor entre len(weights) parts proportionnelles aux poids.
    - chaque part est arrondie à l'inférieur, le reste va à la dernière part
    - la somme des parts vaut toujours exactement total_minor
    - poids tous nuls: répartition égale
    """
    if not weights:
        return []
    dec_weights = [max(to_decimal(w), Decimal("0")) for w in weights]
    total_weight = sum(dec_weights, Decimal("0"))
    if total_weight == 0:
        dec_weights = [Decimal("1")] * len(weights)
        total_weight = Decimal(len(weights))

    total = Decimal(int(total_minor))
    shares = [
        int((total * w / total_weight).to_integral_value(rounding=ROUND_FLOOR))
        for w in dec_weights
    ]
    shares[-1] += int(total_minor) - sum(shares)
    return shares
