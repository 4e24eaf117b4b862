"""
Tests d'intégration des repositories avec SQLite en mémoire.

Ces tests vérifient que le mapping ORM fonctionne correctement :
- Sauvegarder et recharger un Produit avec ses instances
- Le journal des mouvements : ajout, filtres et ordre
- La lecture des réservations
"""

from datetime import date, datetime

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from inventaire.adapters import orm, repository
from inventaire.domain.model import (
    Categorie,
    InstanceProduit,
    MouvementStock,
    Produit,
    Reservation,
    StatutInstance,
    TypeMouvement,
    TypeProduit,
)


def make_session():
    """Crée une session SQLite en mémoire avec les tables."""
    engine = create_engine("sqlite:///:memory:")
    orm.metadata.create_all(engine)
    return sessionmaker(bind=engine)()


def créer_produit(code="ENCEINTE-JBL", type_produit=TypeProduit.AVEC_REFERENCE, instances=None):
    return Produit(
        code=code,
        nom="Enceinte JBL",
        catégorie=Categorie.SONORISATION,
        type_produit=type_produit,
        prix_unitaire=40.0,
        quantité_initiale=2,
        instances=instances,
    )


class TestSqlAlchemyRepository:
    def test_sauvegarder_et_recharger_un_produit_avec_ses_instances(self):
        session = make_session()
        repo = repository.SqlAlchemyRepository(session)
        produit = créer_produit(instances=[
            InstanceProduit("JBL-001"),
            InstanceProduit("JBL-002", statut=StatutInstance.RESERVE),
        ])

        repo.add(produit)
        session.commit()
        id_produit = produit.id_produit
        session.expunge_all()

        rechargé = repo.get(id_produit)
        assert rechargé is not produit
        assert rechargé.code == "ENCEINTE-JBL"
        assert rechargé.catégorie == Categorie.SONORISATION
        assert rechargé.événements == []
        assert [i.numéro_série for i in rechargé.instances] == ["JBL-001", "JBL-002"]
        assert rechargé.instances[1].statut == StatutInstance.RESERVE

    def test_get_par_code(self):
        session = make_session()
        repo = repository.SqlAlchemyRepository(session)
        repo.add(créer_produit())
        session.commit()

        assert repo.get_par_code("ENCEINTE-JBL") is not None
        assert repo.get_par_code("INEXISTANT") is None

    def test_get_par_instance_et_par_numéro_de_série(self):
        session = make_session()
        repo = repository.SqlAlchemyRepository(session)
        instance = InstanceProduit("JBL-001")
        produit = créer_produit(instances=[instance])
        repo.add(produit)
        session.commit()

        assert repo.get_par_instance(instance.id_instance) is produit
        assert repo.get_par_numéro_série("JBL-001") is produit
        assert repo.get_par_instance(999) is None

    def test_retirer_une_instance_la_supprime(self):
        session = make_session()
        repo = repository.SqlAlchemyRepository(session)
        instance = InstanceProduit("JBL-001")
        produit = créer_produit(instances=[instance])
        repo.add(produit)
        session.commit()

        produit.retirer_instance(instance)
        session.commit()

        assert session.query(InstanceProduit).count() == 0

    def test_liste_filtrée_par_catégorie_et_type(self):
        session = make_session()
        repo = repository.SqlAlchemyRepository(session)
        enceinte = créer_produit()
        tables = créer_produit(code="TABLE-RONDE", type_produit=TypeProduit.EN_QUANTITE)
        tables.catégorie = Categorie.MOBILIER
        repo.add(enceinte)
        repo.add(tables)
        session.commit()

        assert repo.liste() == [enceinte, tables]
        assert repo.liste(catégorie=Categorie.MOBILIER) == [tables]
        assert repo.liste(type_produit=TypeProduit.AVEC_REFERENCE) == [enceinte]
        assert repo.liste(Categorie.MOBILIER, TypeProduit.AVEC_REFERENCE) == []

    def test_seen_trace_les_agrégats(self):
        session = make_session()
        repo = repository.SqlAlchemyRepository(session)
        produit = créer_produit()

        repo.add(produit)
        session.commit()

        assert produit in repo.seen
        repo2 = repository.SqlAlchemyRepository(session)
        repo2.get(produit.id_produit)
        assert len(repo2.seen) == 1


class TestSqlAlchemyMouvementRepository:
    def _journal(self):
        session = make_session()
        produit = créer_produit(code="TABLE-RONDE", type_produit=TypeProduit.EN_QUANTITE)
        autre = créer_produit(code="TABLE-RECT", type_produit=TypeProduit.EN_QUANTITE)
        session.add_all([produit, autre])
        repo = repository.SqlAlchemyMouvementRepository(session)
        return session, repo, produit, autre

    def test_mouvement_persisté_et_relu(self):
        session, repo, produit, _ = self._journal()
        mouvement = MouvementStock(
            produit, TypeMouvement.RESERVATION, 2, 10, 8, "Réservation confirmée", "paul",
            id_reservation=5,
        )
        mouvement.date_début = date(2025, 6, 14)
        repo.add(mouvement)
        session.commit()
        id_produit = produit.id_produit
        session.expunge_all()

        [relu] = repo.liste(id_produit=id_produit)
        assert relu.id_mouvement is not None
        assert relu.type_mouvement == TypeMouvement.RESERVATION
        assert (relu.quantité, relu.quantité_avant, relu.quantité_après) == (2, 10, 8)
        assert relu.date_début == date(2025, 6, 14)
        assert relu.produit.code == "TABLE-RONDE"

    def test_filtres_et_ordre(self):
        session, repo, produit, autre = self._journal()
        anciens = MouvementStock(produit, TypeMouvement.CREATION, 10, 0, 10, None, "admin")
        anciens.date_mouvement = datetime(2025, 1, 1, 8, 0)
        sortie = MouvementStock(produit, TypeMouvement.RESERVATION, 2, 10, 8, None, "paul")
        sortie.date_mouvement = datetime(2025, 6, 1, 8, 0)
        ailleurs = MouvementStock(autre, TypeMouvement.RESERVATION, 1, 2, 1, None, "marie")
        ailleurs.date_mouvement = datetime(2025, 6, 2, 8, 0)
        for m in (anciens, sortie, ailleurs):
            repo.add(m)
        session.commit()

        assert repo.liste(id_produit=produit.id_produit) == [sortie, anciens]
        assert repo.liste(type_mouvement=TypeMouvement.RESERVATION) == [ailleurs, sortie]
        assert repo.liste(effectué_par="admin") == [anciens]
        assert repo.liste(
            début=datetime(2025, 5, 1), fin=datetime(2025, 6, 1, 23, 59)
        ) == [sortie]
        assert repo.liste(limite=1) == [ailleurs]

    def test_même_date_départagée_par_identifiant(self):
        session, repo, produit, _ = self._journal()
        instant = datetime(2025, 6, 1, 8, 0)
        premier = MouvementStock(produit, TypeMouvement.RESERVATION, 1, 10, 9, None, None)
        second = MouvementStock(produit, TypeMouvement.RESERVATION, 1, 9, 8, None, None)
        premier.date_mouvement = second.date_mouvement = instant
        repo.add(premier)
        session.flush()
        repo.add(second)
        session.commit()

        assert repo.liste() == [second, premier]

    def test_journal_sans_modification_ni_suppression(self):
        for nom in ("update", "delete", "remove"):
            assert not hasattr(repository.AbstractMouvementRepository, nom)


class TestSqlAlchemyReservationRepository:
    def test_get(self):
        session = make_session()
        session.add(Reservation("RES-2025-007", date(2025, 7, 4), date(2025, 7, 6)))
        session.commit()
        repo = repository.SqlAlchemyReservationRepository(session)

        [reservation] = session.query(Reservation).all()
        assert repo.get(reservation.id_reservation).référence == "RES-2025-007"
        assert repo.get(999) is None

    def test_get_ne_flushe_pas_les_écritures_en_attente(self):
        session = make_session()
        session.add(Reservation("RES-2025-008", date(2025, 7, 11), date(2025, 7, 12)))
        session.commit()
        id_reservation = session.query(Reservation).one().id_reservation
        session.expunge_all()
        invalide = créer_produit()
        invalide.nom = None  # colonne NOT NULL
        session.add(invalide)
        repo = repository.SqlAlchemyReservationRepository(session)

        assert repo.get(id_reservation).référence == "RES-2025-008"
        assert invalide in session.new
