# speaktime/notifications.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from speaktime.utils.logger import logger


@dataclass
class Notification:
    """Aviso transitorio para el usuario (toast)"""
    title: str
    description: str
    variant: str = "default"  # default, destructive
    created_at: datetime = field(default_factory=datetime.utcnow)


class Notifier:
    """Cola de avisos de una vista"""

    def __init__(self, max_items: int = 50):
        self.max_items = max_items
        self.items: List[Notification] = []

    def error(self, description: str):
        logger.warning(f"Aviso de error: {description}")
        self._push(Notification(title="Error", description=description, variant="destructive"))

    def _push(self, notification: Notification):
        self.items.append(notification)
        # Los avisos más viejos se descartan
        if len(self.items) > self.max_items:
            self.items = self.items[-self.max_items:]

    @property
    def last(self) -> Optional[Notification]:
        return self.items[-1] if self.items else None
