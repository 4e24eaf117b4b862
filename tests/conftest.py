"""
Configuration partagée pour les tests.

Le mapping ORM est démarré une seule fois pour toute la session de tests.
Cela permet aux tests d'intégration et e2e d'utiliser SQLAlchemy
sans interférer avec les tests unitaires.

Les fakes (repositories en mémoire, Unit of Work, notifications)
sont exposés aux tests unitaires sous forme de fixtures.
"""

from __future__ import annotations

import itertools
from datetime import datetime
from typing import Optional

import pytest
from sqlalchemy.exc import OperationalError

from inventaire.adapters import orm
from inventaire.adapters.notifications import AbstractNotifications
from inventaire.adapters.repository import (
    AbstractMouvementRepository,
    AbstractRepository,
    AbstractReservationRepository,
)
from inventaire.domain.model import (
    Categorie,
    MouvementStock,
    Produit,
    Reservation,
    TypeMouvement,
    TypeProduit,
)
from inventaire.service_layer import bootstrap, messagebus, unit_of_work


@pytest.fixture(scope="session", autouse=True)
def mappers():
    """Démarre le mapping ORM une fois pour toute la session."""
    orm.start_mappers()


# --- Fakes ---


class FakeRepository(AbstractRepository):
    """
    Repository de produits en mémoire.

    Hérite d'AbstractRepository pour bénéficier du tracking `seen`.
    Les identifiants sont attribués à l'ajout, comme le ferait la base.
    """

    def __init__(self, produits: list[Produit] | None = None):
        super().__init__()
        self._produits: list[Produit] = []
        self._ids = itertools.count(1)
        for produit in produits or []:
            self._add(produit)

    def _add(self, produit: Produit) -> None:
        if produit.id_produit is None:
            produit.id_produit = next(self._ids)
        self._produits.append(produit)

    def _get(self, id_produit: int) -> Produit | None:
        return next((p for p in self._produits if p.id_produit == id_produit), None)

    def _get_par_code(self, code: str) -> Produit | None:
        return next((p for p in self._produits if p.code == code), None)

    def _get_par_instance(self, id_instance: int) -> Produit | None:
        return next(
            (p for p in self._produits
             for i in p.instances
             if i.id_instance == id_instance),
            None,
        )

    def _get_par_numéro_série(self, numéro_série: str) -> Produit | None:
        return next(
            (p for p in self._produits
             for i in p.instances
             if i.numéro_série == numéro_série),
            None,
        )

    def _liste(
        self,
        catégorie: Optional[Categorie],
        type_produit: Optional[TypeProduit],
    ) -> list[Produit]:
        return [
            p for p in self._produits
            if (catégorie is None or p.catégorie == catégorie)
            and (type_produit is None or p.type_produit == type_produit)
        ]


class FakeMouvementRepository(AbstractMouvementRepository):
    """Journal en mémoire, en ajout seul comme le vrai."""

    def __init__(self) -> None:
        self.mouvements: list[MouvementStock] = []
        self._ids = itertools.count(1)

    def add(self, mouvement: MouvementStock) -> None:
        mouvement.id_mouvement = next(self._ids)
        self.mouvements.append(mouvement)

    def liste(
        self,
        id_produit: Optional[int] = None,
        type_mouvement: Optional[TypeMouvement] = None,
        effectué_par: Optional[str] = None,
        id_reservation: Optional[int] = None,
        début: Optional[datetime] = None,
        fin: Optional[datetime] = None,
        limite: Optional[int] = None,
    ) -> list[MouvementStock]:
        résultat = [
            m for m in self.mouvements
            if (id_produit is None or m.produit.id_produit == id_produit)
            and (type_mouvement is None or m.type_mouvement == type_mouvement)
            and (effectué_par is None or m.effectué_par == effectué_par)
            and (id_reservation is None or m.id_reservation == id_reservation)
            and (début is None or m.date_mouvement >= début)
            and (fin is None or m.date_mouvement <= fin)
        ]
        résultat.sort(key=lambda m: (m.date_mouvement, m.id_mouvement), reverse=True)
        return résultat[:limite] if limite is not None else résultat


class FakeReservationRepository(AbstractReservationRepository):
    def __init__(self, reservations: list[Reservation] | None = None):
        self._reservations = {r.id_reservation: r for r in reservations or []}

    def add(self, reservation: Reservation) -> None:
        self._reservations[reservation.id_reservation] = reservation

    def get(self, id_reservation: int) -> Reservation | None:
        return self._reservations.get(id_reservation)


class ReservationRepositoryEnPanne(AbstractReservationRepository):
    """Simule une base indisponible au moment de lire la réservation."""

    def get(self, id_reservation: int) -> Reservation | None:
        raise OperationalError("SELECT * FROM reservations", {}, Exception("base verrouillée"))


class FakeUnitOfWork(unit_of_work.AbstractUnitOfWork):
    """
    Unit of Work en mémoire pour les tests.

    L'attribut `committed` permet de vérifier que le commit
    a bien été appelé dans les tests.
    """

    def __init__(self) -> None:
        self.produits = FakeRepository()
        self.mouvements = FakeMouvementRepository()
        self.reservations = FakeReservationRepository()
        self.committed = False
        self._ids_instances = itertools.count(1)

    def __enter__(self) -> FakeUnitOfWork:
        return super().__enter__()

    def flush(self) -> None:
        for produit in self.produits._produits:
            for instance in produit.instances:
                if instance.id_instance is None:
                    instance.id_instance = next(self._ids_instances)

    def _commit(self) -> None:
        self.committed = True

    def rollback(self) -> None:
        pass


class FakeNotifications(AbstractNotifications):
    """Capture les notifications envoyées pour vérification dans les tests."""

    def __init__(self) -> None:
        self.envoyées: list[tuple[str, str]] = []

    def send(self, destination: str, message: str) -> None:
        self.envoyées.append((destination, message))


# --- Fixtures ---


@pytest.fixture
def uow() -> FakeUnitOfWork:
    return FakeUnitOfWork()


@pytest.fixture
def uow_reservations_en_panne(uow: FakeUnitOfWork) -> FakeUnitOfWork:
    uow.reservations = ReservationRepositoryEnPanne()
    return uow


@pytest.fixture
def notifications() -> FakeNotifications:
    return FakeNotifications()


@pytest.fixture
def bus(uow: FakeUnitOfWork, notifications: FakeNotifications) -> messagebus.MessageBus:
    """
    MessageBus configuré avec des fakes.

    Même wiring que la production, mais avec des implémentations
    en mémoire pour l'isolation et la rapidité.
    """
    return bootstrap.bootstrap(
        start_orm=False,
        uow=uow,
        notifications_adapter=notifications,
    )
