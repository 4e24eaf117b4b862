"""
Tests des vues de lecture.

Les projections vue_produit et vue_mouvement sont pures : elles sont
testées directement sur des objets du domaine. Les requêtes passent
par le FakeUnitOfWork.
"""

from datetime import date, datetime

import pytest

from inventaire.domain import commands
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
from inventaire.views import views


def créer_produit(
    initiale=5,
    disponible=None,
    seuil_critique=None,
    type_produit=TypeProduit.EN_QUANTITE,
) -> Produit:
    return Produit(
        code="VERRE-VIN",
        nom="Verre à vin",
        catégorie=Categorie.VAISSELLE,
        type_produit=type_produit,
        prix_unitaire=0.5,
        quantité_initiale=initiale,
        quantité_disponible=disponible,
        seuil_critique=seuil_critique,
        id_produit=12,
    )


class TestTauxOccupation:
    @pytest.mark.parametrize(
        "initiale, disponible, attendu",
        [
            (5, 3, 40.0),
            (3, 1, 66.67),
            (3, 2, 33.33),
            (8, 7, 12.5),
            (200, 1, 99.5),
            (10, 10, 0.0),
            (10, 0, 100.0),
        ],
    )
    def test_arrondi_à_deux_décimales(self, initiale, disponible, attendu):
        assert views.taux_occupation(initiale, disponible) == attendu

    def test_demi_arrondi_vers_le_haut(self):
        # 3.125 % et 15.625 % exactement
        assert views.taux_occupation(32, 31) == 3.13
        assert views.taux_occupation(32, 27) == 15.63

    @pytest.mark.parametrize("initiale", [0, None])
    def test_absent_sans_stock_initial(self, initiale):
        assert views.taux_occupation(initiale, 0) is None


class TestVueProduit:
    def test_copie_les_champs_du_produit(self):
        produit = créer_produit(initiale=5, disponible=3)

        vue = views.vue_produit(produit)

        assert vue.id_produit == 12
        assert vue.code == "VERRE-VIN"
        assert vue.catégorie == Categorie.VAISSELLE
        assert vue.quantité_initiale == 5
        assert vue.quantité_disponible == 3
        assert vue.taux_occupation == 40.0
        assert vue.date_création == produit.date_création

    def test_cent_initiaux_soixante_disponibles(self):
        vue = views.vue_produit(créer_produit(100, 60, seuil_critique=20))
        assert vue.taux_occupation == 40.0
        assert vue.en_stock
        assert not vue.alerte_stock_critique

        assert views.vue_produit(créer_produit(100, 10, seuil_critique=20)).alerte_stock_critique

    def test_en_stock(self):
        assert views.vue_produit(créer_produit(disponible=1)).en_stock
        assert not views.vue_produit(créer_produit(disponible=0)).en_stock

    def test_alerte_sous_le_seuil_explicite(self):
        assert views.vue_produit(créer_produit(10, 2, seuil_critique=3)).alerte_stock_critique
        assert not views.vue_produit(créer_produit(10, 3, seuil_critique=3)).alerte_stock_critique

    def test_alerte_avec_seuil_par_défaut(self):
        assert views.vue_produit(créer_produit(10, 4)).alerte_stock_critique
        assert not views.vue_produit(créer_produit(10, 5)).alerte_stock_critique
        produit_à_référence = créer_produit(10, 1, type_produit=TypeProduit.AVEC_REFERENCE)
        assert views.vue_produit(produit_à_référence).alerte_stock_critique

    def test_taux_absent_si_stock_initial_nul(self):
        assert views.vue_produit(créer_produit(initiale=0)).taux_occupation is None

    def test_projection_répétable(self):
        produit = créer_produit(5, 3)
        assert views.vue_produit(produit) == views.vue_produit(produit)
        assert produit.quantité_disponible == 3


class TestVueMouvement:
    def test_none_donne_none(self):
        assert views.vue_mouvement(None) is None

    def test_copie_les_champs_du_mouvement(self):
        produit = créer_produit()
        mouvement = MouvementStock(
            produit, TypeMouvement.MAINTENANCE, 1, 4, 3, "Lampe", "marie",
            id_instance=9, code_instance="PROJ-009",
        )
        mouvement.id_mouvement = 77

        vue = views.vue_mouvement(mouvement)

        assert vue.id_mouvement == 77
        assert vue.type_mouvement == TypeMouvement.MAINTENANCE
        assert vue.libellé == "Envoi en maintenance"
        assert (vue.quantité, vue.quantité_avant, vue.quantité_après) == (1, 4, 3)
        assert (vue.id_produit, vue.nom_produit, vue.code_produit) == (12, "Verre à vin", "VERRE-VIN")
        assert vue.id_instance == 9
        assert vue.numéro_série == "PROJ-009"
        assert vue.code_instance == "PROJ-009"
        assert vue.date_début is None

    def test_mouvement_sans_produit(self):
        mouvement = MouvementStock(None, TypeMouvement.CORRECTION, 1, None, None, None, None)
        vue = views.vue_mouvement(mouvement)
        assert vue.id_produit is None
        assert vue.nom_produit is None


# --- Requêtes via le Unit of Work ---


def créer_verres(bus, quantité=100) -> int:
    return bus.handle(commands.CréerProduit(
        code="VERRE-VIN", nom="Verre à vin", catégorie=Categorie.VAISSELLE,
        type_produit=TypeProduit.EN_QUANTITE, prix_unitaire=0.5,
        quantité_initiale=quantité, effectué_par="admin",
    )).pop(0)


class TestRequêtes:
    def test_produit_inexistant(self, uow):
        assert views.produit(999, uow) is None

    def test_historique_du_plus_récent_au_plus_ancien(self, bus, uow):
        id_produit = créer_verres(bus)
        bus.handle(commands.DécrémenterStock(id_produit, 30, None, "paul"))
        bus.handle(commands.IncrémenterStock(id_produit, 30, None, "paul"))

        historique = views.historique_mouvements(id_produit, uow)

        assert [m.type_mouvement for m in historique] == [
            TypeMouvement.RETOUR, TypeMouvement.RESERVATION, TypeMouvement.CREATION,
        ]

    def test_par_type_et_par_utilisateur(self, bus, uow):
        id_produit = créer_verres(bus)
        bus.handle(commands.DécrémenterStock(id_produit, 10, None, "paul"))
        bus.handle(commands.DécrémenterStock(id_produit, 5, None, "marie"))

        réservations = views.mouvements_par_type(TypeMouvement.RESERVATION, uow)
        de_marie = views.mouvements_par_utilisateur("marie", uow)

        assert [m.quantité for m in réservations] == [5, 10]
        assert [m.quantité for m in de_marie] == [5]

    def test_par_reservation(self, bus, uow):
        uow.reservations.add(Reservation(
            "RES-042", date(2025, 6, 14), date(2025, 6, 16), id_reservation=42,
        ))
        id_produit = créer_verres(bus)
        bus.handle(commands.DécrémenterStock(id_produit, 10, 42, "paul"))
        bus.handle(commands.DécrémenterStock(id_produit, 10, 43, "paul"))

        mouvements = views.mouvements_par_reservation(42, uow)

        assert len(mouvements) == 1
        assert mouvements[0].référence_reservation == "RES-042"
        assert mouvements[0].date_début == date(2025, 6, 14)

    def test_par_période(self, bus, uow):
        id_produit = créer_verres(bus)
        ancien = uow.mouvements.mouvements[0]
        ancien.date_mouvement = datetime(2024, 1, 10, 9, 0)
        bus.handle(commands.DécrémenterStock(id_produit, 10, None, "paul"))

        janvier = views.mouvements_par_période(
            datetime(2024, 1, 1), datetime(2024, 1, 31, 23, 59), uow,
        )

        assert [m.type_mouvement for m in janvier] == [TypeMouvement.CREATION]

    def test_récents_limités_à_dix_par_défaut(self, bus, uow):
        id_produit = créer_verres(bus)
        for _ in range(12):
            bus.handle(commands.DécrémenterStock(id_produit, 1, None, "paul"))

        assert len(views.mouvements_récents(uow)) == 10
        assert len(views.mouvements_récents(uow, limite=3)) == 3

    def test_statistiques(self, bus, uow):
        id_produit = créer_verres(bus, 100)
        bus.handle(commands.DécrémenterStock(id_produit, 30, None, "paul"))
        bus.handle(commands.IncrémenterStock(id_produit, 20, None, "paul"))
        bus.handle(commands.AjusterStock(id_produit, -5, "Inventaire", "admin"))

        stats = views.statistiques_produit(id_produit, uow)

        # CREATION (100) + RETOUR (20) en entrées, la correction n'est comptée nulle part
        assert stats.total_entrées == 120
        assert stats.total_sorties == 30
        assert stats.quantité_disponible == 85
        assert stats.nombre_mouvements == 4
        assert stats.date_dernier_mouvement == uow.mouvements.mouvements[-1].date_mouvement

    def test_statistiques_produit_inexistant(self, uow):
        assert views.statistiques_produit(999, uow) is None

    def test_limite_non_positive_refusée(self, uow):
        for limite in (0, -1):
            with pytest.raises(ValueError, match="strictement positive"):
                views.mouvements_récents(uow, limite=limite)


# --- Catalogue ---


def créer(bus, code, quantité, type_produit=TypeProduit.EN_QUANTITE,
          catégorie=Categorie.VAISSELLE, seuil_critique=None) -> int:
    return bus.handle(commands.CréerProduit(
        code=code, nom=code.title(), catégorie=catégorie, type_produit=type_produit,
        prix_unitaire=1.0, quantité_initiale=quantité, effectué_par="admin",
        seuil_critique=seuil_critique,
    )).pop(0)


class TestCatalogue:
    def test_par_catégorie_et_par_type(self, bus, uow):
        créer(bus, "VERRE", 100)
        créer(bus, "NAPPE", 20, catégorie=Categorie.TEXTILE)
        créer(bus, "PROJ", 3, type_produit=TypeProduit.AVEC_REFERENCE, catégorie=Categorie.ECLAIRAGE)

        assert [v.code for v in views.catalogue(uow)] == ["VERRE", "NAPPE", "PROJ"]
        assert [v.code for v in views.catalogue(uow, catégorie=Categorie.TEXTILE)] == ["NAPPE"]
        assert [v.code for v in views.catalogue(
            uow, type_produit=TypeProduit.AVEC_REFERENCE
        )] == ["PROJ"]

    def test_disponibles_rupture_et_stock_critique(self, bus, uow):
        créer(bus, "VERRE", 100)
        id_nappes = créer(bus, "NAPPE", 20)
        id_assiettes = créer(bus, "ASSIETTE", 10)
        bus.handle(commands.DécrémenterStock(id_nappes, 20, None, "paul"))
        bus.handle(commands.DécrémenterStock(id_assiettes, 7, None, "paul"))

        assert [v.code for v in views.produits_disponibles(uow)] == ["VERRE", "ASSIETTE"]
        assert [v.code for v in views.produits_en_rupture(uow)] == ["NAPPE"]
        # 3 assiettes restantes, sous le seuil par défaut de 5 ; la rupture n'y figure pas
        assert [v.code for v in views.produits_stock_critique(uow)] == ["ASSIETTE"]
        assert views.produits_stock_critique(uow, seuil=3) == []
        assert [v.code for v in views.produits_stock_critique(uow, seuil=101)] == [
            "VERRE", "ASSIETTE",
        ]

    def test_vérifier_disponibilité(self, bus, uow):
        id_produit = créer(bus, "VERRE", 100)

        assert views.vérifier_disponibilité(id_produit, 100, uow) is True
        assert views.vérifier_disponibilité(id_produit, 101, uow) is False
        assert views.vérifier_disponibilité(999, 1, uow) is None


# --- Instances ---


class TestVueInstance:
    def test_copie_les_champs_et_le_produit(self):
        produit = créer_produit(type_produit=TypeProduit.AVEC_REFERENCE)
        instance = InstanceProduit("VERRE-0001", ajouté_par="admin", id_instance=4)
        instance.date_prochaine_maintenance = date(2025, 6, 11)

        vue = views.vue_instance(instance, produit, aujourd_hui=date(2025, 6, 1))

        assert vue.id_instance == 4
        assert (vue.id_produit, vue.code_produit) == (12, "VERRE-VIN")
        assert vue.statut == StatutInstance.DISPONIBLE
        assert vue.disponible
        assert vue.jours_avant_maintenance == 10
        assert not vue.maintenance_requise

    def test_maintenance_dépassée(self):
        instance = InstanceProduit("VERRE-0001")
        instance.date_prochaine_maintenance = date(2025, 5, 30)

        vue = views.vue_instance(instance, créer_produit(), aujourd_hui=date(2025, 6, 1))

        assert vue.maintenance_requise
        assert vue.jours_avant_maintenance == -2


class TestRequêtesInstances:
    def test_instance_et_instances_du_produit(self, bus, uow):
        id_produit = créer(bus, "PROJ", 3, type_produit=TypeProduit.AVEC_REFERENCE)
        id_a, id_b = bus.handle(commands.CréerInstancesEnLot(id_produit, 2, "admin")).pop(0)
        bus.handle(commands.ChangerStatutInstance(id_b, StatutInstance.RESERVE, "paul"))

        assert views.instance(id_a, uow).numéro_série == "PROJ-0001"
        assert views.instance(999, uow) is None
        assert [v.id_instance for v in views.instances_du_produit(id_produit, uow)] == [id_a, id_b]
        assert [v.id_instance for v in views.instances_du_produit(
            id_produit, uow, disponibles_seulement=True
        )] == [id_a]
        assert views.instances_du_produit(999, uow) == []

    def test_par_statut(self, bus, uow):
        id_produit = créer(bus, "PROJ", 3, type_produit=TypeProduit.AVEC_REFERENCE)
        _, id_b = bus.handle(commands.CréerInstancesEnLot(id_produit, 2, "admin")).pop(0)
        bus.handle(commands.EnvoyerInstanceEnMaintenance(id_b, "Lampe", "marie"))

        en_maintenance = views.instances_par_statut(StatutInstance.EN_MAINTENANCE, uow)

        assert [v.numéro_série for v in en_maintenance] == ["PROJ-0002"]

    def test_nécessitant_maintenance(self, bus, uow):
        id_produit = créer(bus, "PROJ", 3, type_produit=TypeProduit.AVEC_REFERENCE)
        id_a, id_b = bus.handle(commands.CréerInstancesEnLot(id_produit, 2, "admin")).pop(0)
        bus.handle(commands.EnvoyerInstanceEnMaintenance(id_a, "Révision", "marie"))
        bus.handle(commands.RetournerInstanceDeMaintenance(id_a, "marie", date(2025, 1, 15)))
        bus.handle(commands.EnvoyerInstanceEnMaintenance(id_b, "Révision", "marie"))

        dues = views.instances_nécessitant_maintenance(uow, aujourd_hui=date(2025, 2, 1))

        # id_b est déjà en maintenance
        assert [v.id_instance for v in dues] == [id_a]
        assert dues[0].maintenance_requise
