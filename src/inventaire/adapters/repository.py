"""
Pattern Repository.

Le repository fournit une abstraction sur la couche de persistance.
Il expose une interface de type collection (add, get) qui masque
les détails de l'accès aux données.

Trois repositories coexistent :
- produits : l'agrégat Produit (et ses instances), avec tracking `seen`
- mouvements : le journal des mouvements, en ajout seul
- reservations : lecture seule, pour l'enrichissement des mouvements
"""

from __future__ import annotations

import abc
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventaire.domain import model


class AbstractRepository(abc.ABC):
    """
    Interface abstraite du repository de produits.

    Le pattern Template Method est utilisé : les méthodes publiques
    gèrent le tracking via `seen`, puis délèguent aux méthodes
    abstraites préfixées _ que les sous-classes implémentent.
    """

    seen: set[model.Produit]

    def __init__(self) -> None:
        # `seen` trace tous les agrégats consultés pendant la transaction,
        # ce qui permet au Unit of Work de collecter leurs événements.
        self.seen: set[model.Produit] = set()

    def add(self, produit: model.Produit) -> None:
        self._add(produit)
        self.seen.add(produit)

    def get(self, id_produit: int) -> model.Produit | None:
        return self._marquer(self._get(id_produit))

    def get_par_code(self, code: str) -> model.Produit | None:
        return self._marquer(self._get_par_code(code))

    def get_par_instance(self, id_instance: int) -> model.Produit | None:
        """Récupère le produit propriétaire de l'instance donnée."""
        return self._marquer(self._get_par_instance(id_instance))

    def get_par_numéro_série(self, numéro_série: str) -> model.Produit | None:
        return self._marquer(self._get_par_numéro_série(numéro_série))

    def liste(
        self,
        catégorie: Optional[model.Categorie] = None,
        type_produit: Optional[model.TypeProduit] = None,
    ) -> list[model.Produit]:
        """Produits du catalogue, par identifiant croissant."""
        produits = self._liste(catégorie, type_produit)
        self.seen.update(produits)
        return produits

    def _marquer(self, produit: model.Produit | None) -> model.Produit | None:
        if produit:
            self.seen.add(produit)
        return produit

    @abc.abstractmethod
    def _add(self, produit: model.Produit) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get(self, id_produit: int) -> model.Produit | None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get_par_code(self, code: str) -> model.Produit | None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get_par_instance(self, id_instance: int) -> model.Produit | None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get_par_numéro_série(self, numéro_série: str) -> model.Produit | None:
        raise NotImplementedError

    @abc.abstractmethod
    def _liste(
        self,
        catégorie: Optional[model.Categorie],
        type_produit: Optional[model.TypeProduit],
    ) -> list[model.Produit]:
        raise NotImplementedError


class SqlAlchemyRepository(AbstractRepository):
    """Implémentation concrète du repository de produits avec SQLAlchemy."""

    def __init__(self, session: Session):
        super().__init__()
        self.session = session

    def _add(self, produit: model.Produit) -> None:
        self.session.add(produit)

    def _get(self, id_produit: int) -> model.Produit | None:
        return self.session.get(model.Produit, id_produit)

    def _get_par_code(self, code: str) -> model.Produit | None:
        return self.session.query(model.Produit).filter_by(code=code).first()

    def _get_par_instance(self, id_instance: int) -> model.Produit | None:
        return (
            self.session.query(model.Produit)
            .join(model.Produit.instances)
            .filter(model.InstanceProduit.id_instance == id_instance)
            .first()
        )

    def _get_par_numéro_série(self, numéro_série: str) -> model.Produit | None:
        return (
            self.session.query(model.Produit)
            .join(model.Produit.instances)
            .filter(model.InstanceProduit.numéro_série == numéro_série)
            .first()
        )

    def _liste(
        self,
        catégorie: Optional[model.Categorie],
        type_produit: Optional[model.TypeProduit],
    ) -> list[model.Produit]:
        requête = select(model.Produit)
        if catégorie is not None:
            requête = requête.where(model.Produit.catégorie == catégorie)
        if type_produit is not None:
            requête = requête.where(model.Produit.type_produit == type_produit)
        return list(self.session.scalars(requête.order_by(model.Produit.id_produit)))


class AbstractMouvementRepository(abc.ABC):
    """
    Journal des mouvements de stock.

    Volontairement sans update ni delete : un mouvement enregistré
    fait partie de la piste d'audit.
    """

    @abc.abstractmethod
    def add(self, mouvement: model.MouvementStock) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def liste(
        self,
        id_produit: Optional[int] = None,
        type_mouvement: Optional[model.TypeMouvement] = None,
        effectué_par: Optional[str] = None,
        id_reservation: Optional[int] = None,
        début: Optional[datetime] = None,
        fin: Optional[datetime] = None,
        limite: Optional[int] = None,
    ) -> list[model.MouvementStock]:
        """Mouvements correspondant à tous les filtres donnés, du plus récent au plus ancien."""
        raise NotImplementedError


class SqlAlchemyMouvementRepository(AbstractMouvementRepository):
    def __init__(self, session: Session):
        self.session = session

    def add(self, mouvement: model.MouvementStock) -> None:
        self.session.add(mouvement)

    def liste(
        self,
        id_produit: Optional[int] = None,
        type_mouvement: Optional[model.TypeMouvement] = None,
        effectué_par: Optional[str] = None,
        id_reservation: Optional[int] = None,
        début: Optional[datetime] = None,
        fin: Optional[datetime] = None,
        limite: Optional[int] = None,
    ) -> list[model.MouvementStock]:
        Mouvement = model.MouvementStock
        requête = select(Mouvement)
        if id_produit is not None:
            requête = requête.join(Mouvement.produit).where(
                model.Produit.id_produit == id_produit
            )
        if type_mouvement is not None:
            requête = requête.where(Mouvement.type_mouvement == type_mouvement)
        if effectué_par is not None:
            requête = requête.where(Mouvement.effectué_par == effectué_par)
        if id_reservation is not None:
            requête = requête.where(Mouvement.id_reservation == id_reservation)
        if début is not None:
            requête = requête.where(Mouvement.date_mouvement >= début)
        if fin is not None:
            requête = requête.where(Mouvement.date_mouvement <= fin)
        requête = requête.order_by(
            Mouvement.date_mouvement.desc(), Mouvement.id_mouvement.desc()
        )
        if limite is not None:
            requête = requête.limit(limite)
        return list(self.session.scalars(requête))


class AbstractReservationRepository(abc.ABC):
    """Accès en lecture seule aux réservations."""

    @abc.abstractmethod
    def get(self, id_reservation: int) -> model.Reservation | None:
        raise NotImplementedError


class SqlAlchemyReservationRepository(AbstractReservationRepository):
    def __init__(self, session: Session):
        self.session = session

    def get(self, id_reservation: int) -> model.Reservation | None:
        # Les écritures en attente du Unit of Work ne sont pas flushées ici
        with self.session.no_autoflush:
            return self.session.get(model.Reservation, id_reservation)
