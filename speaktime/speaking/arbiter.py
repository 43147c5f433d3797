# speaktime/speaking/arbiter.py
import asyncio
from contextlib import asynccontextmanager
from typing import Dict


class MeetingArbiter:
    """Cola de mutaciones por reunión: un solo escritor de la palabra a la vez.

    Sin árbitro, dos clientes que dan la palabra casi a la vez pueden dejar a
    dos participantes marcados. Los controladores que comparten un árbitro
    ejecutan start/stop de una misma reunión en orden de llegada.
    """

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}

    def lock_for(self, meeting_id: int) -> asyncio.Lock:
        return self._locks.setdefault(meeting_id, asyncio.Lock())

    @asynccontextmanager
    async def turn(self, meeting_id: int):
        """Esperar el turno de la reunión"""
        async with self.lock_for(meeting_id):
            yield

    def forget(self, meeting_id: int):
        self._locks.pop(meeting_id, None)
