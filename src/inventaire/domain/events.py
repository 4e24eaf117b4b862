"""
Events du domaine.

Les events représentent des faits qui se sont produits dans le système.
Ils sont immuables et nommés au passé (quelque chose s'est passé).
"""

from dataclasses import dataclass


class Event:
    """Classe de base pour tous les events du domaine."""
    pass


@dataclass(frozen=True)
class StockCritiqueAtteint(Event):
    """Le stock disponible d'un produit est passé sous son seuil critique."""

    code: str
    quantité_disponible: int
    seuil: int
