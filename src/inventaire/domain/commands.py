"""
Commands du domaine.

Les commands représentent des intentions : quelque chose que
le système doit faire. Contrairement aux events (faits passés),
les commands sont des demandes qui peuvent échouer.

Chaque command affectant le stock disponible consigne un mouvement
dans le registre.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from inventaire.domain.model import Categorie, EtatPhysique, StatutInstance, TypeProduit


class Command:
    """Classe de base pour toutes les commands."""
    pass


# --- Produits ---


@dataclass(frozen=True)
class CréerProduit(Command):
    """Ajout d'un produit au catalogue avec son stock initial."""

    code: str
    nom: str
    catégorie: Categorie
    type_produit: TypeProduit
    prix_unitaire: float
    quantité_initiale: int
    effectué_par: str
    seuil_critique: Optional[int] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class ModifierProduit(Command):
    """
    Mise à jour de la fiche produit.

    Un changement de quantité initiale est reporté sur le disponible
    des produits EN_QUANTITE.
    """

    id_produit: int
    nom: str
    catégorie: Categorie
    prix_unitaire: float
    quantité_initiale: int
    effectué_par: str
    seuil_critique: Optional[int] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class SupprimerProduit(Command):
    """Suppression logique : le produit reste au catalogue avec un stock nul."""

    id_produit: int
    effectué_par: str


@dataclass(frozen=True)
class DésactiverProduit(Command):
    id_produit: int
    effectué_par: str


@dataclass(frozen=True)
class RéactiverProduit(Command):
    id_produit: int
    quantité: int
    effectué_par: str


@dataclass(frozen=True)
class AjusterStock(Command):
    """Correction signée du stock après inventaire."""

    id_produit: int
    quantité: int
    motif: str
    effectué_par: str


@dataclass(frozen=True)
class DécrémenterStock(Command):
    """Sortie de stock pour une réservation confirmée."""

    id_produit: int
    quantité: int
    id_reservation: Optional[int]
    effectué_par: str


@dataclass(frozen=True)
class IncrémenterStock(Command):
    """Retour de stock après location."""

    id_produit: int
    quantité: int
    id_reservation: Optional[int]
    effectué_par: str


@dataclass(frozen=True)
class MarquerEndommagé(Command):
    id_produit: int
    quantité: int
    motif: str
    effectué_par: str


@dataclass(frozen=True)
class MettreEnMaintenance(Command):
    id_produit: int
    quantité: int
    motif: str
    effectué_par: str


@dataclass(frozen=True)
class RetournerDeMaintenance(Command):
    id_produit: int
    quantité: int
    motif: str
    effectué_par: str


# --- Instances ---


@dataclass(frozen=True)
class AjouterInstance(Command):
    """Ajout d'une unité numérotée à un produit AVEC_REFERENCE."""

    id_produit: int
    numéro_série: str
    effectué_par: str
    état_physique: EtatPhysique = EtatPhysique.BON_ETAT
    observation: Optional[str] = None


@dataclass(frozen=True)
class CréerInstancesEnLot(Command):
    """
    Ajout de plusieurs unités d'un coup, numérotées à la suite
    des numéros de série existants (CODE-0001, CODE-0002...).
    """

    id_produit: int
    quantité: int
    effectué_par: str


@dataclass(frozen=True)
class SupprimerInstance(Command):
    id_instance: int
    effectué_par: str


@dataclass(frozen=True)
class EnvoyerInstanceEnMaintenance(Command):
    id_instance: int
    motif: str
    effectué_par: str


@dataclass(frozen=True)
class RetournerInstanceDeMaintenance(Command):
    id_instance: int
    effectué_par: str
    date_prochaine_maintenance: Optional[date] = None


@dataclass(frozen=True)
class ChangerStatutInstance(Command):
    id_instance: int
    statut: StatutInstance
    effectué_par: str
