"""
Views (lecture) du stock.

Deux familles de fonctions :
- les projections pures vue_produit, vue_mouvement et vue_instance, qui
  transforment une entité en vue de réponse sans aucun effet de bord
- les requêtes (catalogue, instances, historique, statistiques), qui lisent
  via le Unit of Work et projettent le résultat avant la fin de la session

Les vues sont des dataclasses figées, sérialisées telles quelles
par la couche HTTP.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

from inventaire.domain import model
from inventaire.service_layer import unit_of_work


@dataclass(frozen=True)
class VueProduit:
    id_produit: Optional[int]
    code: str
    nom: str
    description: Optional[str]
    catégorie: model.Categorie
    type_produit: model.TypeProduit
    prix_unitaire: float
    quantité_initiale: int
    quantité_disponible: int
    seuil_critique: Optional[int]
    maintenance_requise: bool
    en_stock: bool
    alerte_stock_critique: bool
    taux_occupation: Optional[float]
    date_création: Optional[datetime]
    date_modification: Optional[datetime]


@dataclass(frozen=True)
class VueMouvement:
    id_mouvement: Optional[int]
    type_mouvement: model.TypeMouvement
    libellé: str
    quantité: int
    quantité_avant: Optional[int]
    quantité_après: Optional[int]
    date_mouvement: Optional[datetime]
    motif: Optional[str]
    effectué_par: Optional[str]
    id_reservation: Optional[int]
    référence_reservation: Optional[str]
    date_début: Optional[date]
    date_fin: Optional[date]
    id_produit: Optional[int]
    nom_produit: Optional[str]
    code_produit: Optional[str]
    id_instance: Optional[int]
    numéro_série: Optional[str]
    code_instance: Optional[str]


@dataclass(frozen=True)
class VueInstance:
    id_instance: Optional[int]
    numéro_série: str
    statut: model.StatutInstance
    état_physique: model.EtatPhysique
    id_produit: Optional[int]
    nom_produit: str
    code_produit: str
    observation: Optional[str]
    date_acquisition: Optional[date]
    date_dernière_maintenance: Optional[date]
    date_prochaine_maintenance: Optional[date]
    disponible: bool
    maintenance_requise: bool
    jours_avant_maintenance: Optional[int]
    ajouté_par: Optional[str]
    motif: Optional[str]


@dataclass(frozen=True)
class StatistiquesStock:
    total_entrées: int
    total_sorties: int
    quantité_disponible: int
    nombre_mouvements: int
    date_dernier_mouvement: Optional[datetime]


# --- Projections ---


def taux_occupation(quantité_initiale: Optional[int], quantité_disponible: int) -> Optional[float]:
    """
    Pourcentage du stock initial actuellement sorti, arrondi à 2 décimales
    (arrondi au plus proche, les demis vers le haut).

    None si le stock initial est absent ou nul.
    """
    if not quantité_initiale:
        return None
    taux = (quantité_initiale - quantité_disponible) / quantité_initiale * 100
    return math.floor(taux * 100 + 0.5) / 100


def vue_produit(produit: model.Produit) -> VueProduit:
    disponible = produit.quantité_disponible
    return VueProduit(
        id_produit=produit.id_produit,
        code=produit.code,
        nom=produit.nom,
        description=produit.description,
        catégorie=produit.catégorie,
        type_produit=produit.type_produit,
        prix_unitaire=produit.prix_unitaire,
        quantité_initiale=produit.quantité_initiale,
        quantité_disponible=disponible,
        seuil_critique=produit.seuil_critique,
        maintenance_requise=bool(produit.maintenance_requise),
        en_stock=produit.en_stock,
        alerte_stock_critique=disponible < produit.seuil_effectif,
        taux_occupation=taux_occupation(produit.quantité_initiale, disponible),
        date_création=produit.date_création,
        date_modification=produit.date_modification,
    )


def vue_mouvement(mouvement: Optional[model.MouvementStock]) -> Optional[VueMouvement]:
    if mouvement is None:
        return None
    produit = mouvement.produit
    return VueMouvement(
        id_mouvement=mouvement.id_mouvement,
        type_mouvement=mouvement.type_mouvement,
        libellé=mouvement.type_mouvement.libellé,
        quantité=mouvement.quantité,
        quantité_avant=mouvement.quantité_avant,
        quantité_après=mouvement.quantité_après,
        date_mouvement=mouvement.date_mouvement,
        motif=mouvement.motif,
        effectué_par=mouvement.effectué_par,
        id_reservation=mouvement.id_reservation,
        référence_reservation=mouvement.référence_reservation,
        date_début=mouvement.date_début,
        date_fin=mouvement.date_fin,
        id_produit=produit.id_produit if produit else None,
        nom_produit=produit.nom if produit else None,
        code_produit=produit.code if produit else None,
        id_instance=mouvement.id_instance,
        numéro_série=mouvement.code_instance,
        code_instance=mouvement.code_instance,
    )


def vue_instance(
    instance: model.InstanceProduit,
    produit: model.Produit,
    aujourd_hui: Optional[date] = None,
) -> VueInstance:
    aujourd_hui = aujourd_hui or date.today()
    prochaine = instance.date_prochaine_maintenance
    return VueInstance(
        id_instance=instance.id_instance,
        numéro_série=instance.numéro_série,
        statut=instance.statut,
        état_physique=instance.état_physique,
        id_produit=produit.id_produit,
        nom_produit=produit.nom,
        code_produit=produit.code,
        observation=instance.observation,
        date_acquisition=instance.date_acquisition,
        date_dernière_maintenance=instance.date_dernière_maintenance,
        date_prochaine_maintenance=prochaine,
        disponible=instance.est_disponible,
        maintenance_requise=instance.maintenance_nécessaire(aujourd_hui),
        jours_avant_maintenance=(prochaine - aujourd_hui).days if prochaine else None,
        ajouté_par=instance.ajouté_par,
        motif=instance.motif,
    )


# --- Requêtes : catalogue ---


def produit(id_produit: int, uow: unit_of_work.AbstractUnitOfWork) -> VueProduit | None:
    with uow:
        trouvé = uow.produits.get(id_produit)
        return vue_produit(trouvé) if trouvé else None


def catalogue(
    uow: unit_of_work.AbstractUnitOfWork,
    catégorie: Optional[model.Categorie] = None,
    type_produit: Optional[model.TypeProduit] = None,
) -> list[VueProduit]:
    return _produits(uow, lambda p: True, catégorie=catégorie, type_produit=type_produit)


def produits_disponibles(uow: unit_of_work.AbstractUnitOfWork) -> list[VueProduit]:
    return _produits(uow, lambda p: p.en_stock)


def produits_en_rupture(uow: unit_of_work.AbstractUnitOfWork) -> list[VueProduit]:
    return _produits(uow, lambda p: not p.en_stock)


def produits_stock_critique(
    uow: unit_of_work.AbstractUnitOfWork, seuil: Optional[int] = None
) -> list[VueProduit]:
    """
    Produits encore en stock mais sous le seuil : `seuil` s'il est donné,
    sinon le seuil effectif de chaque produit. Les ruptures n'en font pas partie.
    """
    def critique(p: model.Produit) -> bool:
        limite = seuil if seuil is not None else p.seuil_effectif
        return p.en_stock and p.quantité_disponible < limite

    return _produits(uow, critique)


def vérifier_disponibilité(
    id_produit: int, quantité: int, uow: unit_of_work.AbstractUnitOfWork
) -> bool | None:
    with uow:
        trouvé = uow.produits.get(id_produit)
        if trouvé is None:
            return None
        return trouvé.quantité_disponible >= quantité


# --- Requêtes : instances ---


def instance(id_instance: int, uow: unit_of_work.AbstractUnitOfWork) -> VueInstance | None:
    with uow:
        propriétaire = uow.produits.get_par_instance(id_instance)
        if propriétaire is None:
            return None
        return vue_instance(propriétaire.get_instance(id_instance), propriétaire)


def instances_du_produit(
    id_produit: int,
    uow: unit_of_work.AbstractUnitOfWork,
    disponibles_seulement: bool = False,
) -> list[VueInstance]:
    with uow:
        trouvé = uow.produits.get(id_produit)
        if trouvé is None:
            return []
        return [
            vue_instance(i, trouvé) for i in trouvé.instances
            if i.est_disponible or not disponibles_seulement
        ]


def instances_par_statut(
    statut: model.StatutInstance, uow: unit_of_work.AbstractUnitOfWork
) -> list[VueInstance]:
    return _instances(uow, lambda i: i.statut == statut)


def instances_nécessitant_maintenance(
    uow: unit_of_work.AbstractUnitOfWork, aujourd_hui: Optional[date] = None
) -> list[VueInstance]:
    """Instances dont la prochaine maintenance est dépassée et qui n'y sont pas encore."""
    aujourd_hui = aujourd_hui or date.today()
    return _instances(uow, lambda i: i.maintenance_nécessaire(aujourd_hui), aujourd_hui)


# --- Requêtes : mouvements ---


def historique_mouvements(
    id_produit: int, uow: unit_of_work.AbstractUnitOfWork
) -> list[VueMouvement]:
    return _mouvements(uow, id_produit=id_produit)


def mouvements_par_type(
    type_mouvement: model.TypeMouvement, uow: unit_of_work.AbstractUnitOfWork
) -> list[VueMouvement]:
    return _mouvements(uow, type_mouvement=type_mouvement)


def mouvements_par_utilisateur(
    effectué_par: str, uow: unit_of_work.AbstractUnitOfWork
) -> list[VueMouvement]:
    return _mouvements(uow, effectué_par=effectué_par)


def mouvements_par_reservation(
    id_reservation: int, uow: unit_of_work.AbstractUnitOfWork
) -> list[VueMouvement]:
    return _mouvements(uow, id_reservation=id_reservation)


def mouvements_par_période(
    début: datetime, fin: datetime, uow: unit_of_work.AbstractUnitOfWork
) -> list[VueMouvement]:
    return _mouvements(uow, début=début, fin=fin)


def mouvements_récents(
    uow: unit_of_work.AbstractUnitOfWork, limite: Optional[int] = None
) -> list[VueMouvement]:
    if limite is None:
        limite = 10
    if limite <= 0:
        raise ValueError(f"La limite doit être strictement positive : {limite}")
    return _mouvements(uow, limite=limite)


def statistiques_produit(
    id_produit: int, uow: unit_of_work.AbstractUnitOfWork
) -> StatistiquesStock | None:
    """Totaux des entrées et sorties consignées pour un produit."""
    with uow:
        trouvé = uow.produits.get(id_produit)
        if trouvé is None:
            return None
        mouvements = uow.mouvements.liste(id_produit=id_produit)
        return StatistiquesStock(
            total_entrées=sum(m.quantité for m in mouvements if m.type_mouvement.est_entrée),
            total_sorties=sum(m.quantité for m in mouvements if m.type_mouvement.est_sortie),
            quantité_disponible=trouvé.quantité_disponible,
            nombre_mouvements=len(mouvements),
            date_dernier_mouvement=mouvements[0].date_mouvement if mouvements else None,
        )


def _mouvements(uow: unit_of_work.AbstractUnitOfWork, **filtres) -> list[VueMouvement]:
    with uow:
        return [vue_mouvement(m) for m in uow.mouvements.liste(**filtres)]


def _produits(
    uow: unit_of_work.AbstractUnitOfWork,
    filtre: Callable[[model.Produit], bool],
    **critères,
) -> list[VueProduit]:
    with uow:
        return [vue_produit(p) for p in uow.produits.liste(**critères) if filtre(p)]


def _instances(
    uow: unit_of_work.AbstractUnitOfWork,
    filtre: Callable[[model.InstanceProduit], bool],
    aujourd_hui: Optional[date] = None,
) -> list[VueInstance]:
    with uow:
        return [
            vue_instance(i, p, aujourd_hui)
            for p in uow.produits.liste()
            for i in p.instances
            if filtre(i)
        ]
