# speaktime/tracker.py
import asyncio
import time
from datetime import datetime
from typing import Callable, Dict, Iterable, Optional

from sqlalchemy.engine import Engine

from speaktime.annotations import AnnotationService
from speaktime.meetings import MeetingRepository
from speaktime.models import Meeting
from speaktime.realtime.feed import ChangeFeed
from speaktime.speaking.arbiter import MeetingArbiter
from speaktime.speaking.timer import Clock
from speaktime.store import RowStore
from speaktime.utils.logger import logger
from speaktime.view import MeetingView


class SpeakingTracker:
    """Une store, feed, repositorios y vistas abiertas de un proceso"""

    def __init__(
        self,
        engine: Optional[Engine] = None,
        clock: Clock = time.monotonic,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.clock = clock
        self.now = now
        self.feed = ChangeFeed()
        self.store = RowStore(engine, self.feed)
        self.meetings = MeetingRepository(self.store, now)
        self.annotations = AnnotationService(self.store)
        self.arbiter = MeetingArbiter()
        self.views: Dict[int, MeetingView] = {}
        self._ticker: Optional[asyncio.Task] = None

    async def startup(self):
        """Leer la reunión activa una sola vez"""
        meeting = await self.meetings.load_active()
        if meeting:
            logger.info(f"Reunión activa al arrancar: {meeting.id}")

    async def view_for(self, meeting_id: int) -> MeetingView:
        """Vista abierta de la reunión, se crea la primera vez"""
        view = self.views.get(meeting_id)
        if view is None:
            await self.meetings.get_meeting(meeting_id)
            view = MeetingView(
                meeting_id,
                self.feed,
                self.meetings,
                self.annotations,
                clock=self.clock,
                now=self.now,
                arbiter=self.arbiter,
            )
            await view.open()
            self.views[meeting_id] = view
        return view

    def close_view(self, meeting_id: int):
        view = self.views.pop(meeting_id, None)
        if view is not None:
            view.close()

    async def create_meeting(self, title: str, participant_names: Iterable[str], owner_id: Optional[str] = None) -> Meeting:
        previous = self.meetings.active_meeting_id
        meeting = await self.meetings.create_meeting(title, participant_names, owner_id)
        if previous is not None:
            self.close_view(previous)
        return meeting

    async def end_meeting(self, meeting_id: int) -> Meeting:
        # La vista se cierra antes para que no acredite dos veces la sesión abierta
        self.close_view(meeting_id)
        async with self.arbiter.turn(meeting_id):
            meeting = await self.meetings.end_meeting(meeting_id)
        self.arbiter.forget(meeting_id)
        return meeting

    # ============= TICK =============

    def tick(self):
        for view in list(self.views.values()):
            view.tick()

    async def run_ticker(self, interval: float):
        """Refresco local de los contadores en vivo"""
        while True:
            await asyncio.sleep(interval)
            self.tick()

    def start_ticker(self, interval: float):
        if self._ticker is None or self._ticker.done():
            self._ticker = asyncio.create_task(self.run_ticker(interval))

    async def shutdown(self):
        if self._ticker is not None:
            self._ticker.cancel()
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
            self._ticker = None
        for meeting_id in list(self.views):
            self.close_view(meeting_id)
