"""coursemarket: panier, paiement et attribution des cours achetés."""

__version__ = "0.1.0"
