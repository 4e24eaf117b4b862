"""
Handlers pour les commands et events.

Les handlers sont les fonctions qui traitent les commands et events
transitant par le message bus.

- Command handlers : font varier le stock puis consignent le mouvement
  correspondant dans le registre, dans la même transaction
- Event handlers : réagissent à un fait passé (ne doivent pas échouer)
"""

from __future__ import annotations

import calendar
import logging
from datetime import date
from typing import TYPE_CHECKING

from inventaire import config
from inventaire.domain import commands, events, model
from inventaire.domain.model import StatutInstance, TypeMouvement
from inventaire.service_layer import registre

if TYPE_CHECKING:
    from inventaire.adapters.notifications import AbstractNotifications
    from inventaire.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

MOIS_ENTRE_MAINTENANCES = 4


# --- Exceptions ---


class ProduitIntrouvable(Exception):
    """Levée quand un produit référencé n'existe pas dans le système."""
    pass


class InstanceIntrouvable(Exception):
    pass


class ProduitDéjàExistant(Exception):
    pass


# --- Command Handlers : produits ---


def créer_produit(
    cmd: commands.CréerProduit,
    uow: AbstractUnitOfWork,
) -> int:
    """
    Ajoute un produit au catalogue et consigne un mouvement CREATION.

    Un produit AVEC_REFERENCE démarre sans stock disponible :
    ses unités arrivent ensuite une à une via AjouterInstance.
    """
    with uow:
        if uow.produits.get_par_code(cmd.code) is not None:
            raise ProduitDéjàExistant(f"Le code produit {cmd.code} existe déjà")
        produit = model.Produit(
            code=cmd.code,
            nom=cmd.nom,
            catégorie=cmd.catégorie,
            type_produit=cmd.type_produit,
            prix_unitaire=cmd.prix_unitaire,
            quantité_initiale=cmd.quantité_initiale,
            quantité_disponible=(
                0 if cmd.type_produit == model.TypeProduit.AVEC_REFERENCE
                else cmd.quantité_initiale
            ),
            seuil_critique=cmd.seuil_critique,
            description=cmd.description,
        )
        uow.produits.add(produit)
        registre.enregistrer_mouvement(
            uow,
            produit,
            TypeMouvement.CREATION,
            produit.quantité_disponible,
            0,
            produit.quantité_disponible,
            TypeMouvement.CREATION.libellé,
            cmd.effectué_par,
        )
        uow.commit()
        logger.info("Produit créé : %s", cmd.code)
        return produit.id_produit


def modifier_produit(
    cmd: commands.ModifierProduit,
    uow: AbstractUnitOfWork,
) -> None:
    with uow:
        produit = uow.produits.get(cmd.id_produit)
        if produit is None:
            raise ProduitIntrouvable(f"Produit introuvable : {cmd.id_produit}")
        variation = produit.modifier_quantité_initiale(cmd.quantité_initiale)
        produit.nom = cmd.nom
        produit.description = cmd.description
        produit.catégorie = cmd.catégorie
        produit.prix_unitaire = cmd.prix_unitaire
        produit.seuil_critique = cmd.seuil_critique
        if variation is not None:
            avant, après = variation
            registre.enregistrer_mouvement(
                uow, produit, TypeMouvement.AJUSTEMENT_INVENTAIRE, abs(après - avant),
                avant, après, "Ajustement suite à modification de la quantité initiale",
                cmd.effectué_par,
            )
        uow.commit()
        logger.info("Produit modifié : %s", produit.code)


def supprimer_produit(
    cmd: commands.SupprimerProduit,
    uow: AbstractUnitOfWork,
) -> None:
    """
    Suppression logique : stock initial et disponible remis à zéro.

    Rien n'est consigné si le produit n'avait déjà plus de stock.
    """
    with uow:
        produit = _produit_en_quantité(uow, cmd.id_produit)
        avant, après = produit.supprimer()
        if avant > 0:
            registre.enregistrer_mouvement(
                uow, produit, TypeMouvement.AJUSTEMENT_INVENTAIRE, avant,
                avant, après, "Suppression logique du produit", cmd.effectué_par,
            )
        uow.commit()
        logger.info("Produit supprimé (logiquement) : %s", produit.code)


def désactiver_produit(
    cmd: commands.DésactiverProduit,
    uow: AbstractUnitOfWork,
) -> None:
    with uow:
        produit = _produit_en_quantité(uow, cmd.id_produit)
        avant, après = produit.désactiver()
        if avant > 0:
            registre.enregistrer_mouvement(
                uow, produit, TypeMouvement.DESACTIVATION, avant,
                avant, après, TypeMouvement.DESACTIVATION.libellé, cmd.effectué_par,
            )
        uow.commit()
        logger.info("Produit désactivé : %s", produit.code)


def réactiver_produit(
    cmd: commands.RéactiverProduit,
    uow: AbstractUnitOfWork,
) -> None:
    """Remet le produit en location avec le disponible demandé."""
    with uow:
        produit = _produit_en_quantité(uow, cmd.id_produit)
        avant, après = produit.réactiver(cmd.quantité)
        registre.enregistrer_mouvement(
            uow, produit, TypeMouvement.REACTIVATION, cmd.quantité,
            avant, après, TypeMouvement.REACTIVATION.libellé, cmd.effectué_par,
        )
        uow.commit()
        logger.info("Produit réactivé : %s avec %s unité(s)", produit.code, cmd.quantité)


def ajuster_stock(
    cmd: commands.AjusterStock,
    uow: AbstractUnitOfWork,
) -> None:
    """
    Ajustement signé du stock après inventaire.

    Une quantité positive est une entrée, une quantité négative
    un ajustement ; le mouvement enregistre la valeur absolue.
    """
    with uow:
        produit = _produit_en_quantité(uow, cmd.id_produit)
        avant, après = produit.ajuster(cmd.quantité)
        type_mouvement = (
            TypeMouvement.ENTREE_STOCK if cmd.quantité > 0
            else TypeMouvement.AJUSTEMENT_INVENTAIRE
        )
        registre.enregistrer_mouvement(
            uow, produit, type_mouvement, abs(cmd.quantité),
            avant, après, cmd.motif, cmd.effectué_par,
        )
        uow.commit()
        logger.info("Stock ajusté pour le produit %s : %s → %s", produit.code, avant, après)


def décrémenter_stock(
    cmd: commands.DécrémenterStock,
    uow: AbstractUnitOfWork,
) -> None:
    """Sortie de stock pour une réservation ; lève StockInsuffisant si besoin."""
    with uow:
        produit = _produit_en_quantité(uow, cmd.id_produit)
        avant, après = produit.retirer(cmd.quantité)
        registre.enregistrer_mouvement(
            uow, produit, TypeMouvement.RESERVATION, cmd.quantité,
            avant, après, "Réservation confirmée", cmd.effectué_par,
            id_reservation=cmd.id_reservation,
        )
        uow.commit()
        logger.info("Stock décrémenté pour le produit %s : %s → %s", produit.code, avant, après)


def incrémenter_stock(
    cmd: commands.IncrémenterStock,
    uow: AbstractUnitOfWork,
) -> None:
    with uow:
        produit = _produit_en_quantité(uow, cmd.id_produit)
        avant, après = produit.ajouter(cmd.quantité)
        registre.enregistrer_mouvement(
            uow, produit, TypeMouvement.RETOUR, cmd.quantité,
            avant, après, "Retour après location", cmd.effectué_par,
            id_reservation=cmd.id_reservation,
        )
        uow.commit()
        logger.info("Stock incrémenté pour le produit %s : %s → %s", produit.code, avant, après)


def marquer_endommagé(
    cmd: commands.MarquerEndommagé,
    uow: AbstractUnitOfWork,
) -> None:
    with uow:
        produit = _produit_en_quantité(uow, cmd.id_produit)
        avant, après = produit.retirer(cmd.quantité)
        registre.enregistrer_mouvement(
            uow, produit, TypeMouvement.PRODUIT_ENDOMMAGE, cmd.quantité,
            avant, après, cmd.motif, cmd.effectué_par,
        )
        uow.commit()


def mettre_en_maintenance(
    cmd: commands.MettreEnMaintenance,
    uow: AbstractUnitOfWork,
) -> None:
    with uow:
        produit = _produit_en_quantité(uow, cmd.id_produit)
        avant, après = produit.retirer(cmd.quantité)
        produit.maintenance_requise = True
        registre.enregistrer_mouvement(
            uow, produit, TypeMouvement.MAINTENANCE, cmd.quantité,
            avant, après, cmd.motif, cmd.effectué_par,
        )
        uow.commit()


def retourner_de_maintenance(
    cmd: commands.RetournerDeMaintenance,
    uow: AbstractUnitOfWork,
) -> None:
    with uow:
        produit = _produit_en_quantité(uow, cmd.id_produit)
        avant, après = produit.ajouter(cmd.quantité)
        produit.maintenance_requise = False
        registre.enregistrer_mouvement(
            uow, produit, TypeMouvement.RETOUR_MAINTENANCE, cmd.quantité,
            avant, après, cmd.motif, cmd.effectué_par,
        )
        uow.commit()


# --- Command Handlers : instances ---


def ajouter_instance(
    cmd: commands.AjouterInstance,
    uow: AbstractUnitOfWork,
) -> int:
    """
    Ajoute une unité numérotée à un produit AVEC_REFERENCE.

    Le mouvement est consigné avant le recomptage du disponible,
    sa quantité avant est donc celle d'avant l'ajout.
    """
    with uow:
        produit = uow.produits.get(cmd.id_produit)
        if produit is None:
            raise ProduitIntrouvable(f"Produit introuvable : {cmd.id_produit}")
        if uow.produits.get_par_numéro_série(cmd.numéro_série) is not None:
            raise model.ErreurInstance(
                f"Le numéro de série {cmd.numéro_série} existe déjà"
            )
        instance = model.InstanceProduit(
            numéro_série=cmd.numéro_série,
            état_physique=cmd.état_physique,
            ajouté_par=cmd.effectué_par,
            observation=cmd.observation,
        )
        produit.ajouter_instance(instance)
        uow.flush()
        registre.enregistrer_mouvement_instance(
            uow, produit, TypeMouvement.AJOUT_INSTANCE, 1,
            f"Ajout instance {instance.numéro_série}", cmd.effectué_par, instance,
        )
        produit.recompter_disponibles()
        uow.commit()
        logger.info("Instance %s créée pour le produit %s", cmd.numéro_série, produit.code)
        return instance.id_instance


def créer_instances_en_lot(
    cmd: commands.CréerInstancesEnLot,
    uow: AbstractUnitOfWork,
) -> list[int]:
    """
    Crée `quantité` instances DISPONIBLE numérotées à la suite.

    Un seul mouvement AJOUT_INSTANCE couvre tout le lot ; il porte
    le numéro de série de la première instance créée.
    """
    if cmd.quantité <= 0:
        raise model.QuantitéInvalide(f"Quantité invalide : {cmd.quantité}")
    with uow:
        produit = uow.produits.get(cmd.id_produit)
        if produit is None:
            raise ProduitIntrouvable(f"Produit introuvable : {cmd.id_produit}")
        numéros = _numéros_de_série_suivants(produit, cmd.quantité)
        for numéro in numéros:
            if uow.produits.get_par_numéro_série(numéro) is not None:
                raise model.ErreurInstance(f"Le numéro de série {numéro} existe déjà")
        instances = [
            model.InstanceProduit(numéro_série=numéro, ajouté_par=cmd.effectué_par)
            for numéro in numéros
        ]
        for instance in instances:
            produit.ajouter_instance(instance)
        uow.flush()
        registre.enregistrer_mouvement_instance(
            uow, produit, TypeMouvement.AJOUT_INSTANCE, cmd.quantité,
            f"Ajout lot de {cmd.quantité} instances ({produit.code})",
            cmd.effectué_par, instances[0],
        )
        produit.recompter_disponibles()
        uow.commit()
        logger.info("%s instances créées en lot pour le produit %s", cmd.quantité, produit.code)
        return [instance.id_instance for instance in instances]


def supprimer_instance(
    cmd: commands.SupprimerInstance,
    uow: AbstractUnitOfWork,
) -> None:
    with uow:
        produit, instance = _produit_et_instance(uow, cmd.id_instance)
        registre.enregistrer_mouvement_instance(
            uow, produit, TypeMouvement.SUPPRESSION_INSTANCE, -1,
            f"Suppression instance {instance.numéro_série}", cmd.effectué_par, instance,
        )
        produit.retirer_instance(instance)
        produit.recompter_disponibles()
        uow.commit()
        logger.info("Instance %s supprimée", instance.numéro_série)


def envoyer_instance_en_maintenance(
    cmd: commands.EnvoyerInstanceEnMaintenance,
    uow: AbstractUnitOfWork,
) -> None:
    with uow:
        produit, instance = _produit_et_instance(uow, cmd.id_instance)
        if instance.statut == StatutInstance.EN_MAINTENANCE:
            raise model.ErreurInstance(
                f"L'instance {instance.numéro_série} est déjà en maintenance"
            )
        aujourd_hui = date.today()
        instance.statut = StatutInstance.EN_MAINTENANCE
        instance.date_dernière_maintenance = aujourd_hui
        instance.date_prochaine_maintenance = _ajouter_mois(
            aujourd_hui, MOIS_ENTRE_MAINTENANCES
        )
        instance.motif = cmd.motif
        registre.enregistrer_mouvement_instance(
            uow, produit, TypeMouvement.MAINTENANCE, -1,
            "Instance envoyée en maintenance", cmd.effectué_par, instance,
        )
        produit.recompter_disponibles()
        uow.commit()


def retourner_instance_de_maintenance(
    cmd: commands.RetournerInstanceDeMaintenance,
    uow: AbstractUnitOfWork,
) -> None:
    with uow:
        produit, instance = _produit_et_instance(uow, cmd.id_instance)
        if instance.statut != StatutInstance.EN_MAINTENANCE:
            raise model.ErreurInstance(
                f"L'instance {instance.numéro_série} n'est pas en maintenance"
            )
        instance.statut = StatutInstance.DISPONIBLE
        instance.date_dernière_maintenance = date.today()
        instance.date_prochaine_maintenance = cmd.date_prochaine_maintenance
        registre.enregistrer_mouvement_instance(
            uow, produit, TypeMouvement.RETOUR_MAINTENANCE, 1,
            "Instance retournée de maintenance", cmd.effectué_par, instance,
        )
        produit.recompter_disponibles()
        uow.commit()


def changer_statut_instance(
    cmd: commands.ChangerStatutInstance,
    uow: AbstractUnitOfWork,
) -> None:
    """
    Changement de statut simple d'une instance.

    Les entrées et sorties de maintenance ont leurs propres commands.
    Seules les pertes et mises hors service sont consignées au registre.
    """
    with uow:
        produit, instance = _produit_et_instance(uow, cmd.id_instance)
        ancien_statut = instance.statut
        if ancien_statut == StatutInstance.EN_MAINTENANCE:
            raise model.ErreurInstance(
                "Une instance en maintenance doit passer par le retour de maintenance"
            )
        if cmd.statut == StatutInstance.EN_MAINTENANCE:
            raise model.ErreurInstance(
                "Une mise en maintenance doit passer par l'envoi en maintenance"
            )

        instance.statut = cmd.statut
        if cmd.statut in (StatutInstance.HORS_SERVICE, StatutInstance.PERDU):
            registre.enregistrer_mouvement_instance(
                uow, produit, TypeMouvement.PRODUIT_ENDOMMAGE, -1,
                f"Instance : {cmd.statut.value}", cmd.effectué_par, instance,
            )
        if (ancien_statut == StatutInstance.DISPONIBLE) != (cmd.statut == StatutInstance.DISPONIBLE):
            produit.recompter_disponibles()
        uow.commit()
        logger.info(
            "Statut de l'instance %s changé de %s vers %s",
            instance.numéro_série, ancien_statut.value, cmd.statut.value,
        )


# --- Event Handlers ---


def envoyer_alerte_stock_critique(
    event: events.StockCritiqueAtteint,
    notifications: AbstractNotifications,
) -> None:
    """Prévient le responsable du stock qu'un produit passe sous son seuil."""
    notifications.send(
        destination=config.get_destinataire_alertes(),
        message=(
            f"Stock critique pour le produit {event.code} : "
            f"{event.quantité_disponible} disponible(s), seuil {event.seuil}"
        ),
    )


# --- Utilitaires ---


def _produit_en_quantité(uow: AbstractUnitOfWork, id_produit: int) -> model.Produit:
    produit = uow.produits.get(id_produit)
    if produit is None:
        raise ProduitIntrouvable(f"Produit introuvable : {id_produit}")
    if produit.avec_référence:
        raise model.ErreurStock(
            f"Le produit {produit.code} est géré par instance, pas par quantité"
        )
    return produit


def _produit_et_instance(
    uow: AbstractUnitOfWork, id_instance: int
) -> tuple[model.Produit, model.InstanceProduit]:
    produit = uow.produits.get_par_instance(id_instance)
    if produit is None:
        raise InstanceIntrouvable(f"Instance introuvable : {id_instance}")
    return produit, produit.get_instance(id_instance)


def _numéros_de_série_suivants(produit: model.Produit, quantité: int) -> list[str]:
    dernier = 0
    for instance in produit.instances:
        numéro = instance.numéro_série
        if numéro.startswith(produit.code):
            suffixe = numéro.rsplit("-", 1)[-1]
            if suffixe.isdigit():
                dernier = max(dernier, int(suffixe))
    return [f"{produit.code}-{dernier + i:04d}" for i in range(1, quantité + 1)]


def _ajouter_mois(jour: date, mois: int) -> date:
    index = jour.month - 1 + mois
    année, mois_cible = jour.year + index // 12, index % 12 + 1
    dernier_jour = calendar.monthrange(année, mois_cible)[1]
    return jour.replace(year=année, month=mois_cible, day=min(jour.day, dernier_jour))
