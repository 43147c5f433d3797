# speaktime/meetings.py
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from speaktime.exceptions import (
    InvalidInputError,
    MeetingNotFoundError,
    ParticipantNotFoundError,
    RemoteOperationError,
)
from speaktime.models import Meeting, Participant, SpeakingSession
from speaktime.store import RowStore, StoreError
from speaktime.utils.logger import logger


# Orden del ranking: más tiempo primero, empates por orden de alta
LEADERBOARD_ORDER = ("-total_speaking_time", "id")


class MeetingRepository:
    """Reuniones y participantes.

    active_meeting_id es la referencia a la única reunión activa. Se lee del
    store una vez (load_active) y después solo la cambian create_meeting y
    end_meeting.
    """

    def __init__(self, store: RowStore, now: Callable[[], datetime] = datetime.utcnow):
        self.store = store
        self.now = now
        self.active_meeting_id: Optional[int] = None

    async def load_active(self) -> Optional[Meeting]:
        """Inicializar la referencia a la reunión activa al arrancar"""
        try:
            meeting = await self.store.first(Meeting, order_by=("-created_at", "-id"), is_active=True)
        except StoreError as e:
            raise RemoteOperationError("load meetings", e) from e
        self.active_meeting_id = meeting.id if meeting else None
        return meeting

    async def active_meeting(self) -> Optional[Meeting]:
        if self.active_meeting_id is None:
            return None
        return await self.get_meeting(self.active_meeting_id)

    async def get_meeting(self, meeting_id: int) -> Meeting:
        try:
            meeting = await self.store.get(Meeting, meeting_id)
        except StoreError as e:
            raise RemoteOperationError("load meeting", e) from e
        if meeting is None:
            raise MeetingNotFoundError(meeting_id)
        return meeting

    async def list_meetings(self) -> List[Meeting]:
        """Reuniones, la más reciente primero"""
        try:
            return await self.store.select(Meeting, order_by=("-created_at", "-id"))
        except StoreError as e:
            raise RemoteOperationError("load meetings", e) from e

    async def create_meeting(self, title: str, participant_names: Iterable[str], owner_id: Optional[str] = None) -> Meeting:
        """Crear una reunión nueva; la activa anterior se da por terminada"""
        title = (title or "").strip()
        if not title:
            raise InvalidInputError("Please enter a meeting title")
        names = [name.strip() for name in participant_names if name and name.strip()]
        if not names:
            raise InvalidInputError("Please add at least one participant")

        try:
            if self.active_meeting_id is not None:
                previous = self.active_meeting_id
                await self._close_meeting(previous)
                self.active_meeting_id = None
                logger.info(f"Reunión {previous} terminada por la creación de otra")

            meeting = await self.store.insert(Meeting, title=title, created_by=owner_id, is_active=True)
            self.active_meeting_id = meeting.id
            await self.store.insert_many(
                Participant,
                [{"meeting_id": meeting.id, "name": name} for name in names],
            )
        except StoreError as e:
            logger.error(f"Error creando reunión '{title}': {e}")
            raise RemoteOperationError("create meeting", e) from e

        logger.info(f"Reunión creada: {meeting.id} con {len(names)} participantes")
        return meeting

    async def end_meeting(self, meeting_id: int) -> Meeting:
        """Terminar la reunión y acreditar las sesiones que sigan abiertas"""
        await self.get_meeting(meeting_id)
        try:
            await self._close_meeting(meeting_id)
        except StoreError as e:
            logger.error(f"Error terminando reunión {meeting_id}: {e}")
            raise RemoteOperationError("end meeting", e) from e
        if self.active_meeting_id == meeting_id:
            self.active_meeting_id = None
        logger.info(f"Reunión terminada: {meeting_id}")
        return await self.get_meeting(meeting_id)

    async def _close_meeting(self, meeting_id: int):
        now = self.now()
        await self.store.update(Meeting, {"is_active": False, "ended_at": now}, id=meeting_id)
        await self.close_open_sessions(meeting_id, now)

    async def close_open_sessions(self, meeting_id: int, now: datetime) -> List[SpeakingSession]:
        """Cerrar las sesiones abiertas y acreditar su duración según las marcas del store"""
        open_sessions = await self.store.select(SpeakingSession, meeting_id=meeting_id, ended_at=None)
        for session in open_sessions:
            duration = max(0, int((now - session.started_at).total_seconds()))
            await self.store.update(SpeakingSession, {"ended_at": now, "duration": duration}, id=session.id)
            participant = await self.store.get(Participant, session.participant_id)
            if participant is None:
                continue
            await self.store.update(
                Participant,
                {
                    "is_currently_speaking": False,
                    "total_speaking_time": participant.total_speaking_time + duration,
                    "speaking_sessions": participant.speaking_sessions + 1,
                },
                id=participant.id,
            )
            logger.info(f"Sesión {session.id} cerrada al terminar la reunión ({duration}s)")

        await self.store.update(
            Participant,
            {"is_currently_speaking": False},
            meeting_id=meeting_id,
            is_currently_speaking=True,
        )
        return open_sessions

    # ============= PARTICIPANTES =============

    async def add_participant(self, meeting_id: int, name: str) -> Participant:
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("Please enter a participant name")
        await self.get_meeting(meeting_id)
        try:
            participant = await self.store.insert(Participant, meeting_id=meeting_id, name=name)
        except StoreError as e:
            raise RemoteOperationError("add participant", e) from e
        logger.info(f"Participante {participant.id} agregado a la reunión {meeting_id}")
        return participant

    async def remove_participant(self, participant_id: int) -> Participant:
        """Borrar participante; sus sesiones se borran en cascada"""
        try:
            participant = await self.store.delete(Participant, participant_id)
        except StoreError as e:
            raise RemoteOperationError("remove participant", e) from e
        if participant is None:
            raise ParticipantNotFoundError(participant_id)
        return participant

    async def list_participants(self, meeting_id: int) -> List[Participant]:
        """Participantes en orden de ranking"""
        try:
            return await self.store.select(Participant, order_by=LEADERBOARD_ORDER, meeting_id=meeting_id)
        except StoreError as e:
            raise RemoteOperationError("load participants", e) from e
