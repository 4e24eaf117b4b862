"""
Message Bus du stock.

Une command a un seul handler et son erreur remonte à l'appelant.
Les events (StockCritiqueAtteint) ont 0 à N handlers dont les erreurs
sont seulement loggées.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Union

from inventaire.domain import commands, events, model
from inventaire.service_layer import unit_of_work

logger = logging.getLogger(__name__)

Message = Union[commands.Command, events.Event]


class MessageBus:
    def __init__(
        self,
        uow: unit_of_work.AbstractUnitOfWork,
        event_handlers: dict[type[events.Event], list[Callable]],
        command_handlers: dict[type[commands.Command], Callable],
        dependencies: dict[str, Any] | None = None,
    ):
        self.uow = uow
        self.event_handlers = event_handlers
        self.command_handlers = command_handlers
        self.dependencies = dependencies or {}
        self.queue: list[Message] = []

    def handle(self, message: Message) -> list[Any]:
        """Retourne les résultats des commands traitées, dans l'ordre."""
        self.queue = [message]
        results: list[Any] = []
        while self.queue:
            message = self.queue.pop(0)
            if isinstance(message, events.Event):
                self._handle_event(message)
            elif isinstance(message, commands.Command):
                results.append(self._handle_command(message))
            else:
                raise ValueError(f"Message de type inconnu : {type(message)}")
        return results

    def _handle_event(self, event: events.Event) -> None:
        for handler in self.event_handlers.get(type(event), []):
            try:
                self._call_handler(handler, event)
                self.queue.extend(self.uow.collect_new_events())
            except Exception:
                logger.exception("Échec de %s pour %s", handler.__name__, event)

    def _handle_command(self, command: commands.Command) -> Any:
        nom = type(command).__name__
        handler = self.command_handlers.get(type(command))
        if handler is None:
            raise ValueError(f"Aucun handler pour la command {nom}")
        logger.info("Command %s (par %s)", nom, getattr(command, "effectué_par", "?"))
        try:
            result = self._call_handler(handler, command)
        except model.ErreurStock as e:
            # Refus métier : rien n'a été consigné au registre
            logger.warning("Command %s refusée : %s", nom, e)
            raise
        self.queue.extend(self.uow.collect_new_events())
        return result

    def _call_handler(self, handler: Callable, message: Message) -> Any:
        # Premier argument : le message ; les suivants sont injectés par nom
        _, *noms = inspect.signature(handler).parameters
        kwargs = {
            nom: self.uow if nom == "uow" else self.dependencies[nom]
            for nom in noms
            if nom == "uow" or nom in self.dependencies
        }
        return handler(message, **kwargs)
