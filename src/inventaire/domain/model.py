"""
Modèle de domaine pour la gestion du stock locatif.

Ce module contient les entités du domaine : le Produit (agrégat racine),
ses InstanceProduit (unités physiques numérotées), les MouvementStock
(journal en ajout seul) et la Reservation, lue mais jamais modifiée ici.

Deux familles de produits coexistent :
- EN_QUANTITE : suivis par simple compteur (ex : 200 chaises)
- AVEC_REFERENCE : chaque unité a un numéro de série (ex : projecteurs)
"""

from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Optional

from inventaire.domain import events


# --- Exceptions ---


class ErreurStock(Exception):
    """Classe de base des erreurs métier sur le stock."""
    pass


class StockInsuffisant(ErreurStock):
    """Levée quand une sortie ferait passer le stock disponible sous zéro."""
    pass


class QuantitéInvalide(ErreurStock):
    pass


class ErreurInstance(ErreurStock):
    """Opération impossible sur une instance (type de produit, statut, doublon)."""
    pass


# --- Énumérations ---


class Categorie(str, enum.Enum):
    MOBILIER = "MOBILIER"
    VAISSELLE = "VAISSELLE"
    DECORATION = "DECORATION"
    ECLAIRAGE = "ECLAIRAGE"
    SONORISATION = "SONORISATION"
    TEXTILE = "TEXTILE"
    AUTRE = "AUTRE"


class TypeProduit(str, enum.Enum):
    EN_QUANTITE = "EN_QUANTITE"
    AVEC_REFERENCE = "AVEC_REFERENCE"


class StatutInstance(str, enum.Enum):
    DISPONIBLE = "DISPONIBLE"
    RESERVE = "RESERVE"
    EN_LIVRAISON = "EN_LIVRAISON"
    EN_MAINTENANCE = "EN_MAINTENANCE"
    HORS_SERVICE = "HORS_SERVICE"
    PERDU = "PERDU"


class EtatPhysique(str, enum.Enum):
    NEUF = "NEUF"
    BON_ETAT = "BON_ETAT"
    ETAT_MOYEN = "ETAT_MOYEN"
    USAGE = "USAGE"
    ENDOMMAGE = "ENDOMMAGE"


class TypeMouvement(str, enum.Enum):
    """
    Nature d'un mouvement de stock.

    Chaque type est classé comme entrée, sortie ou ajustement,
    ce qui sert aux statistiques par produit.
    """

    CREATION = "CREATION"
    REACTIVATION = "REACTIVATION"
    DESACTIVATION = "DESACTIVATION"
    AJOUT_STOCK = "AJOUT_STOCK"
    ENTREE_STOCK = "ENTREE_STOCK"
    RETOUR_MAINTENANCE = "RETOUR_MAINTENANCE"
    RETRAIT_STOCK = "RETRAIT_STOCK"
    MAINTENANCE = "MAINTENANCE"
    PRODUIT_ENDOMMAGE = "PRODUIT_ENDOMMAGE"
    AJOUT_INSTANCE = "AJOUT_INSTANCE"
    SUPPRESSION_INSTANCE = "SUPPRESSION_INSTANCE"
    RESERVATION = "RESERVATION"
    ANNULATION_RESERVATION = "ANNULATION_RESERVATION"
    LIVRAISON = "LIVRAISON"
    RETOUR = "RETOUR"
    AJUSTEMENT_INVENTAIRE = "AJUSTEMENT_INVENTAIRE"
    CORRECTION = "CORRECTION"
    CORRECTION_STOCK = "CORRECTION_STOCK"

    @property
    def est_entrée(self) -> bool:
        return self in _ENTRÉES

    @property
    def est_sortie(self) -> bool:
        return self in _SORTIES

    @property
    def est_ajustement(self) -> bool:
        return self in _AJUSTEMENTS

    @property
    def libellé(self) -> str:
        return _LIBELLÉS[self]


_ENTRÉES = frozenset({
    TypeMouvement.CREATION,
    TypeMouvement.REACTIVATION,
    TypeMouvement.AJOUT_STOCK,
    TypeMouvement.ENTREE_STOCK,
    TypeMouvement.RETOUR_MAINTENANCE,
    TypeMouvement.AJOUT_INSTANCE,
    TypeMouvement.ANNULATION_RESERVATION,
    TypeMouvement.RETOUR,
})

_SORTIES = frozenset({
    TypeMouvement.DESACTIVATION,
    TypeMouvement.RETRAIT_STOCK,
    TypeMouvement.MAINTENANCE,
    TypeMouvement.PRODUIT_ENDOMMAGE,
    TypeMouvement.SUPPRESSION_INSTANCE,
    TypeMouvement.RESERVATION,
    TypeMouvement.LIVRAISON,
})

_AJUSTEMENTS = frozenset({
    TypeMouvement.AJUSTEMENT_INVENTAIRE,
    TypeMouvement.CORRECTION,
    TypeMouvement.CORRECTION_STOCK,
})

_LIBELLÉS = {
    TypeMouvement.CREATION: "Création du produit",
    TypeMouvement.REACTIVATION: "Réactivation",
    TypeMouvement.DESACTIVATION: "Désactivation",
    TypeMouvement.AJOUT_STOCK: "Ajout de stock",
    TypeMouvement.ENTREE_STOCK: "Entrée de stock",
    TypeMouvement.RETRAIT_STOCK: "Retrait de stock",
    TypeMouvement.MAINTENANCE: "Envoi en maintenance",
    TypeMouvement.RETOUR_MAINTENANCE: "Retour de maintenance",
    TypeMouvement.PRODUIT_ENDOMMAGE: "Produit endommagé",
    TypeMouvement.AJOUT_INSTANCE: "Ajout d'instance",
    TypeMouvement.SUPPRESSION_INSTANCE: "Suppression d'instance",
    TypeMouvement.RESERVATION: "Réservation",
    TypeMouvement.ANNULATION_RESERVATION: "Annulation de réservation",
    TypeMouvement.LIVRAISON: "Livraison",
    TypeMouvement.RETOUR: "Retour",
    TypeMouvement.AJUSTEMENT_INVENTAIRE: "Ajustement inventaire",
    TypeMouvement.CORRECTION: "Correction",
    TypeMouvement.CORRECTION_STOCK: "Correction de stock",
}

SEUIL_CRITIQUE_PAR_DÉFAUT = {
    TypeProduit.AVEC_REFERENCE: 2,
    TypeProduit.EN_QUANTITE: 5,
}


# --- Entités ---


class Reservation:
    """
    Réservation d'un client, vue depuis le stock.

    Le registre des mouvements ne fait que lire ses dates
    pour les recopier dans les mouvements de type RESERVATION.
    """

    def __init__(
        self,
        référence: str,
        date_début: date,
        date_fin: date,
        id_reservation: Optional[int] = None,
    ):
        self.id_reservation = id_reservation
        self.référence = référence
        self.date_début = date_début
        self.date_fin = date_fin

    def __repr__(self) -> str:
        return f"<Reservation {self.référence}>"


class InstanceProduit:
    """
    Unité physique d'un produit AVEC_REFERENCE, identifiée par son numéro de série.

    L'instance n'a pas de référence vers son produit : on y accède
    toujours à travers l'agrégat Produit.
    """

    def __init__(
        self,
        numéro_série: str,
        statut: StatutInstance = StatutInstance.DISPONIBLE,
        état_physique: EtatPhysique = EtatPhysique.BON_ETAT,
        date_acquisition: Optional[date] = None,
        ajouté_par: Optional[str] = None,
        observation: Optional[str] = None,
        id_instance: Optional[int] = None,
    ):
        self.id_instance = id_instance
        self.numéro_série = numéro_série
        self.statut = statut
        self.état_physique = état_physique
        self.observation = observation
        self.date_acquisition = date_acquisition or date.today()
        self.ajouté_par = ajouté_par
        self.date_dernière_maintenance: Optional[date] = None
        self.date_prochaine_maintenance: Optional[date] = None
        self.motif: Optional[str] = None

    def __repr__(self) -> str:
        return f"<InstanceProduit {self.numéro_série}>"

    @property
    def est_disponible(self) -> bool:
        return self.statut == StatutInstance.DISPONIBLE

    def maintenance_nécessaire(self, aujourd_hui: Optional[date] = None) -> bool:
        """Vrai si la prochaine maintenance prévue est dépassée."""
        aujourd_hui = aujourd_hui or date.today()
        return (
            self.date_prochaine_maintenance is not None
            and self.date_prochaine_maintenance < aujourd_hui
            and self.statut != StatutInstance.EN_MAINTENANCE
        )


class Produit:
    """
    Agrégat racine du catalogue locatif.

    Toutes les variations de quantité disponible passent par cet agrégat,
    qui garantit que le stock ne devient jamais négatif et émet
    StockCritiqueAtteint quand une sortie franchit le seuil critique.

    Les méthodes de variation retournent le couple (avant, après) que
    l'appelant transmet ensuite au registre des mouvements.
    """

    def __init__(
        self,
        code: str,
        nom: str,
        catégorie: Categorie,
        type_produit: TypeProduit,
        prix_unitaire: float,
        quantité_initiale: int,
        quantité_disponible: Optional[int] = None,
        seuil_critique: Optional[int] = None,
        description: Optional[str] = None,
        instances: Optional[list[InstanceProduit]] = None,
        id_produit: Optional[int] = None,
    ):
        self.id_produit = id_produit
        self.code = code
        self.nom = nom
        self.description = description
        self.catégorie = catégorie
        self.type_produit = type_produit
        self.prix_unitaire = prix_unitaire
        self.quantité_initiale = quantité_initiale
        self.quantité_disponible = (
            quantité_initiale if quantité_disponible is None else quantité_disponible
        )
        self.seuil_critique = seuil_critique
        self.maintenance_requise = False
        self.instances = instances or []
        self.date_création = datetime.now()
        self.date_modification = self.date_création
        self.événements: list[events.Event] = []

    def __repr__(self) -> str:
        return f"<Produit {self.code}>"

    @property
    def seuil_effectif(self) -> int:
        if self.seuil_critique is not None:
            return self.seuil_critique
        return SEUIL_CRITIQUE_PAR_DÉFAUT[self.type_produit]

    @property
    def en_stock(self) -> bool:
        return self.quantité_disponible is not None and self.quantité_disponible > 0

    @property
    def avec_référence(self) -> bool:
        return self.type_produit == TypeProduit.AVEC_REFERENCE

    # --- Variations de quantité (produits EN_QUANTITE) ---

    def ajouter(self, quantité: int) -> tuple[int, int]:
        """Entrée de stock ; la quantité doit être strictement positive."""
        if quantité <= 0:
            raise QuantitéInvalide(f"Quantité invalide : {quantité}")
        return self._appliquer(quantité)

    def retirer(self, quantité: int) -> tuple[int, int]:
        """Sortie de stock ; lève StockInsuffisant si le disponible ne suffit pas."""
        if quantité <= 0:
            raise QuantitéInvalide(f"Quantité invalide : {quantité}")
        if self.quantité_disponible < quantité:
            raise StockInsuffisant(f"Stock insuffisant pour le produit {self.nom}")
        return self._appliquer(-quantité)

    def ajuster(self, delta: int) -> tuple[int, int]:
        """Ajustement signé après inventaire."""
        if delta == 0:
            raise QuantitéInvalide("Un ajustement de stock nul n'a pas de sens")
        if self.quantité_disponible + delta < 0:
            raise StockInsuffisant("La quantité disponible ne peut pas être négative")
        return self._appliquer(delta)

    # --- Cycle de vie au catalogue ---

    def modifier_quantité_initiale(self, nouvelle: int) -> tuple[int, int] | None:
        """
        Change la quantité initiale.

        Pour un produit EN_QUANTITE, l'écart est reporté sur le disponible
        et le couple (avant, après) est retourné. Pour un produit
        AVEC_REFERENCE le disponible reste le compte des instances : None.
        """
        if nouvelle < 0:
            raise QuantitéInvalide(f"Quantité initiale invalide : {nouvelle}")
        écart = nouvelle - self.quantité_initiale
        if écart == 0:
            return None
        if not self.avec_référence and self.quantité_disponible + écart < 0:
            raise StockInsuffisant(
                f"Quantité initiale {nouvelle} trop basse pour le produit {self.nom} : "
                "le disponible deviendrait négatif"
            )
        self.quantité_initiale = nouvelle
        self.date_modification = datetime.now()
        if self.avec_référence:
            return None
        return self._appliquer(écart)

    def désactiver(self) -> tuple[int, int]:
        """Retire tout le disponible de la location, sans alerte de stock."""
        return self._fixer(0)

    def réactiver(self, quantité: int) -> tuple[int, int]:
        if quantité <= 0:
            raise QuantitéInvalide(f"Quantité invalide : {quantité}")
        return self._fixer(quantité)

    def supprimer(self) -> tuple[int, int]:
        """Suppression logique : stock initial et disponible à zéro."""
        self.quantité_initiale = 0
        return self._fixer(0)

    def _fixer(self, quantité: int) -> tuple[int, int]:
        avant = self.quantité_disponible
        self.quantité_disponible = quantité
        self.date_modification = datetime.now()
        return avant, quantité

    def _appliquer(self, delta: int) -> tuple[int, int]:
        avant = self.quantité_disponible
        self.quantité_disponible = avant + delta
        self.date_modification = datetime.now()
        if delta < 0:
            self._vérifier_seuil()
        return avant, self.quantité_disponible

    def _vérifier_seuil(self) -> None:
        if self.quantité_disponible < self.seuil_effectif:
            self.événements.append(
                events.StockCritiqueAtteint(
                    code=self.code,
                    quantité_disponible=self.quantité_disponible,
                    seuil=self.seuil_effectif,
                )
            )

    # --- Instances (produits AVEC_REFERENCE) ---

    def get_instance(self, id_instance: int) -> Optional[InstanceProduit]:
        return next((i for i in self.instances if i.id_instance == id_instance), None)

    def ajouter_instance(self, instance: InstanceProduit) -> None:
        if not self.avec_référence:
            raise ErreurInstance(
                "Les instances ne peuvent être créées que pour les produits AVEC_REFERENCE"
            )
        self.instances.append(instance)

    def retirer_instance(self, instance: InstanceProduit) -> None:
        self.instances.remove(instance)

    def recompter_disponibles(self) -> None:
        """
        Recalcule le disponible d'un produit AVEC_REFERENCE
        en comptant ses instances DISPONIBLE.
        """
        if not self.avec_référence:
            return
        avant = self.quantité_disponible
        self.quantité_disponible = sum(1 for i in self.instances if i.est_disponible)
        self.date_modification = datetime.now()
        if self.quantité_disponible < avant:
            self._vérifier_seuil()


class MouvementStock:
    """
    Ligne du journal des mouvements de stock.

    Un mouvement est créé une seule fois par événement affectant le stock
    et n'est jamais modifié ni supprimé : c'est une piste d'audit.
    Les dates de la réservation sont dénormalisées pour le reporting.
    """

    def __init__(
        self,
        produit: Produit,
        type_mouvement: TypeMouvement,
        quantité: int,
        quantité_avant: Optional[int],
        quantité_après: Optional[int],
        motif: Optional[str],
        effectué_par: Optional[str],
        id_reservation: Optional[int] = None,
        id_instance: Optional[int] = None,
        code_instance: Optional[str] = None,
    ):
        self.id_mouvement: Optional[int] = None
        self.produit = produit
        self.type_mouvement = type_mouvement
        self.quantité = quantité
        self.quantité_avant = quantité_avant
        self.quantité_après = quantité_après
        self.motif = motif
        self.effectué_par = effectué_par
        self.id_reservation = id_reservation
        self.référence_reservation: Optional[str] = None
        self.date_début: Optional[date] = None
        self.date_fin: Optional[date] = None
        self.id_instance = id_instance
        self.code_instance = code_instance
        self.date_mouvement = datetime.now()

    def __repr__(self) -> str:
        return f"<MouvementStock {self.type_mouvement.value} {self.quantité}>"
