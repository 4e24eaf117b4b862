"""
Bootstrap : assemblage de l'application (Composition Root).

Ce module construit le message bus avec toutes ses dépendances.
C'est ici que l'injection de dépendances est réalisée :
on assemble les composants concrets (ou les fakes pour les tests).
"""

from __future__ import annotations

from typing import Any

from inventaire.adapters import notifications, orm
from inventaire.domain import commands, events
from inventaire.service_layer import handlers, messagebus, unit_of_work


def bootstrap(
    start_orm: bool = True,
    uow: unit_of_work.AbstractUnitOfWork | None = None,
    notifications_adapter: notifications.AbstractNotifications | None = None,
    **extra_dependencies: Any,
) -> messagebus.MessageBus:
    """
    Construit et retourne un MessageBus configuré.

    En production, utilise les implémentations concrètes.
    En test, on injecte des fakes via les paramètres.
    """
    if start_orm:
        orm.start_mappers()

    if uow is None:
        uow = unit_of_work.SqlAlchemyUnitOfWork()

    if notifications_adapter is None:
        notifications_adapter = notifications.EmailNotifications()

    dependencies: dict[str, Any] = {
        "notifications": notifications_adapter,
        **extra_dependencies,
    }

    return messagebus.MessageBus(
        uow=uow,
        event_handlers=EVENT_HANDLERS,
        command_handlers=COMMAND_HANDLERS,
        dependencies=dependencies,
    )


# --- Routage des messages vers les handlers ---

EVENT_HANDLERS: dict[type[events.Event], list] = {
    events.StockCritiqueAtteint: [handlers.envoyer_alerte_stock_critique],
}

COMMAND_HANDLERS: dict[type[commands.Command], Any] = {
    commands.CréerProduit: handlers.créer_produit,
    commands.ModifierProduit: handlers.modifier_produit,
    commands.SupprimerProduit: handlers.supprimer_produit,
    commands.DésactiverProduit: handlers.désactiver_produit,
    commands.RéactiverProduit: handlers.réactiver_produit,
    commands.AjusterStock: handlers.ajuster_stock,
    commands.DécrémenterStock: handlers.décrémenter_stock,
    commands.IncrémenterStock: handlers.incrémenter_stock,
    commands.MarquerEndommagé: handlers.marquer_endommagé,
    commands.MettreEnMaintenance: handlers.mettre_en_maintenance,
    commands.RetournerDeMaintenance: handlers.retourner_de_maintenance,
    commands.AjouterInstance: handlers.ajouter_instance,
    commands.CréerInstancesEnLot: handlers.créer_instances_en_lot,
    commands.SupprimerInstance: handlers.supprimer_instance,
    commands.EnvoyerInstanceEnMaintenance: handlers.envoyer_instance_en_maintenance,
    commands.RetournerInstanceDeMaintenance: handlers.retourner_instance_de_maintenance,
    commands.ChangerStatutInstance: handlers.changer_statut_instance,
}
