"""
Registre des mouvements de stock.

Chaque variation de stock est consignée par un MouvementStock ajouté
au journal ; aucun mouvement n'est jamais modifié ni supprimé.

Deux points d'entrée, aux contrats volontairement distincts :

- enregistrer_mouvement : l'appelant fournit la quantité et les
  quantités avant/après, enregistrées telles quelles.
- enregistrer_mouvement_instance : la quantité avant est lue sur le
  produit, la quantité reçue est signée (négative pour une sortie)
  et seule sa valeur absolue est enregistrée.

Ces fonctions n'appellent pas commit() : elles s'exécutent dans le
Unit of Work de l'appelant.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from sqlalchemy.exc import SQLAlchemyError

from inventaire.domain import model

if TYPE_CHECKING:
    from inventaire.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


def enregistrer_mouvement(
    uow: AbstractUnitOfWork,
    produit: model.Produit,
    type_mouvement: model.TypeMouvement,
    quantité: int,
    quantité_avant: Optional[int],
    quantité_après: Optional[int],
    motif: Optional[str],
    effectué_par: Optional[str],
    id_reservation: Optional[int] = None,
    logger: logging.Logger = logger,
) -> model.MouvementStock:
    """
    Ajoute un mouvement au journal pour un produit EN_QUANTITE.

    Pour un mouvement RESERVATION rattaché à une réservation, les dates
    de la réservation sont recopiées dans le mouvement. Cet enrichissement
    est facultatif : s'il échoue, le mouvement est enregistré sans dates.
    """
    mouvement = model.MouvementStock(
        produit=produit,
        type_mouvement=type_mouvement,
        quantité=quantité,
        quantité_avant=quantité_avant,
        quantité_après=quantité_après,
        motif=motif,
        effectué_par=effectué_par,
        id_reservation=id_reservation,
    )

    if type_mouvement == model.TypeMouvement.RESERVATION and id_reservation is not None:
        reservation = _reservation_pour_enrichissement(uow, id_reservation, logger)
        if reservation is not None:
            mouvement.référence_reservation = reservation.référence
            mouvement.date_début = reservation.date_début
            mouvement.date_fin = reservation.date_fin

    uow.mouvements.add(mouvement)
    logger.debug(
        "Mouvement de stock enregistré : type=%s, quantité=%s, produit=%s",
        type_mouvement.value, quantité, produit.code,
    )
    return mouvement


def enregistrer_mouvement_instance(
    uow: AbstractUnitOfWork,
    produit: model.Produit,
    type_mouvement: model.TypeMouvement,
    quantité: int,
    motif: Optional[str],
    effectué_par: Optional[str],
    instance: model.InstanceProduit,
    logger: logging.Logger = logger,
) -> model.MouvementStock:
    """
    Ajoute un mouvement au journal pour une instance d'un produit AVEC_REFERENCE.

    `quantité` est signée : +1 pour une instance qui redevient disponible,
    -1 pour une instance qui sort du stock.
    """
    quantité_avant = produit.quantité_disponible
    quantité_après = quantité_avant + quantité

    mouvement = model.MouvementStock(
        produit=produit,
        type_mouvement=type_mouvement,
        quantité=abs(quantité),
        quantité_avant=quantité_avant,
        quantité_après=quantité_après,
        motif=motif,
        effectué_par=effectué_par,
        id_instance=instance.id_instance,
        code_instance=instance.numéro_série,
    )

    uow.mouvements.add(mouvement)
    logger.debug(
        "Mouvement enregistré : %s - %s (%s→%s)",
        type_mouvement.value, motif, quantité_avant, quantité_après,
    )
    return mouvement


def _reservation_pour_enrichissement(
    uow: AbstractUnitOfWork,
    id_reservation: int,
    logger: logging.Logger,
) -> model.Reservation | None:
    """
    Lecture facultative de la réservation.

    Retourne None, avec un avertissement, si la réservation est absente
    ou si la lecture échoue côté base. Les autres erreurs remontent.
    """
    try:
        reservation = uow.reservations.get(id_reservation)
    except SQLAlchemyError as e:
        logger.warning(
            "Lecture de la réservation %s impossible, dates non renseignées : %s",
            id_reservation, e,
        )
        return None
    if reservation is None:
        logger.warning(
            "Réservation %s introuvable, dates non renseignées", id_reservation
        )
    return reservation
