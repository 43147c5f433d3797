# speaktime/realtime/listener.py
from typing import Any, Callable, Dict, List
from speaktime.realtime.feed import ChangeEvent, ChangeFeed, Subscription
from speaktime.utils.logger import logger


class ChangeFeedListener:
    """Escucha los cambios de una reunión y dispara la recarga de cada entidad.

    handlers mapea tabla -> callback. Cualquier INSERT/UPDATE/DELETE de una
    fila con meeting_id igual a la reunión llama al callback de esa tabla;
    no se aplican parches incrementales, el callback recarga la lista entera.
    """

    def __init__(
        self,
        feed: ChangeFeed,
        meeting_id: int,
        handlers: Dict[str, Callable[[ChangeEvent], Any]],
    ):
        self.feed = feed
        self.meeting_id = meeting_id
        self.handlers = handlers
        self._subscriptions: List[Subscription] = []

    @property
    def is_listening(self) -> bool:
        return bool(self._subscriptions)

    def start(self):
        """Suscribirse a todas las tablas"""
        if self.is_listening:
            return
        for table, handler in self.handlers.items():
            self._subscriptions.append(
                self.feed.subscribe(
                    table,
                    handler,
                    meeting_id=self.meeting_id,
                )
            )
        logger.info(f"Escuchando cambios de la reunión {self.meeting_id} ({len(self._subscriptions)} tablas)")

    def stop(self):
        """Cancelar todas las suscripciones"""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        logger.info(f"Escucha de la reunión {self.meeting_id} detenida")
