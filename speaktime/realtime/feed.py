# speaktime/realtime/feed.py
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Set
from speaktime.utils.logger import logger


INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
ALL_EVENTS = frozenset({INSERT, UPDATE, DELETE})


@dataclass
class ChangeEvent:
    """Notificación de que una fila de una tabla cambió"""
    table: str
    event: str
    row: Dict[str, Any]


class Subscription:
    """Suscripción a una tabla con filtro de igualdad sobre la fila"""

    def __init__(
        self,
        feed: "ChangeFeed",
        table: str,
        callback: Callable[[ChangeEvent], Any],
        events: Set[str],
        row_filter: Dict[str, Any],
    ):
        self.feed = feed
        self.table = table
        self.callback = callback
        self.events = events
        self.row_filter = row_filter
        self.active = True

    def matches(self, event: ChangeEvent) -> bool:
        if not self.active or event.table != self.table or event.event not in self.events:
            return False
        return all(event.row.get(key) == value for key, value in self.row_filter.items())

    def unsubscribe(self):
        if self.active:
            self.active = False
            self.feed._remove(self)


class ChangeFeed:
    """Canal publish/subscribe de cambios por tabla, en proceso"""

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    def subscribe(
        self,
        table: str,
        callback: Callable[[ChangeEvent], Any],
        events: Optional[Iterable[str]] = None,
        **row_filter,
    ) -> Subscription:
        """Suscribirse a los cambios de una tabla que cumplan el filtro"""
        subscription = Subscription(
            self,
            table,
            callback,
            set(events) if events else set(ALL_EVENTS),
            row_filter,
        )
        self._subscriptions.append(subscription)
        logger.debug(f"Suscripción a {table} con filtro {row_filter}")
        return subscription

    def _remove(self, subscription: Subscription):
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, event: ChangeEvent):
        """Entregar el evento a cada suscriptor que coincida"""
        # Copia: un callback puede desuscribir durante la entrega
        for subscription in list(self._subscriptions):
            if not subscription.matches(event):
                continue
            try:
                result = subscription.callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                # El escritor ya confirmó su cambio, solo registramos el fallo
                logger.exception(f"Error en suscriptor de {event.table} ({event.event})")
