# speaktime/speaking/controller.py
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from speaktime.exceptions import (
    InvalidInputError,
    NoOpenSessionError,
    ParticipantNotFoundError,
    RemoteOperationError,
)
from speaktime.models import Participant, SpeakingSession
from speaktime.speaking.arbiter import MeetingArbiter
from speaktime.speaking.timer import LiveTimer
from speaktime.store import RowStore, StoreError
from speaktime.utils.logger import logger


START_ACTION = "start speaking session"
STOP_ACTION = "stop speaking session"


@dataclass
class OpenSession:
    """Sesión abierta por este cliente, según su contabilidad local"""
    session_id: int
    participant_id: int
    meeting_id: int
    started_at: datetime


class SpeakingController:
    """Controla quién tiene la palabra en una reunión.

    Cada paso es una llamada remota separada y no hay transacción: si un paso
    falla, los anteriores quedan confirmados. El siguiente start_speaking
    exitoso cierra las sesiones que hayan quedado abiertas.

    Con un arbiter compartido, start/stop de una misma reunión se serializan
    entre controladores; sin él gana la última escritura.
    """

    def __init__(
        self,
        store: RowStore,
        timer: LiveTimer,
        now: Callable[[], datetime] = datetime.utcnow,
        arbiter: Optional[MeetingArbiter] = None,
    ):
        self.store = store
        self.timer = timer
        self.now = now
        self.arbiter = arbiter
        self._open: Optional[OpenSession] = None

    @property
    def open_session(self) -> Optional[OpenSession]:
        return self._open

    def holds_session_for(self, participant_id: int) -> bool:
        return self._open is not None and self._open.participant_id == participant_id

    def _turn(self, meeting_id: int):
        if self.arbiter is None:
            return nullcontext()
        return self.arbiter.turn(meeting_id)

    def discard(self):
        """Olvidar la sesión local sin tocar el store"""
        self._open = None
        self.timer.clear()

    def drop_session(self):
        """Olvidar la sesión local sin tocar el contador, que ya reconcilió la vista"""
        if self._open is not None:
            logger.debug(f"Sesión local {self._open.session_id} descartada: el participante ya no tiene la palabra")
        self._open = None

    async def _load_participant(self, participant_id: int, action: str) -> Participant:
        try:
            participant = await self.store.get(Participant, participant_id)
        except StoreError as e:
            logger.error(f"Error leyendo participante {participant_id}: {e}")
            raise RemoteOperationError(action, e) from e
        if participant is None:
            raise ParticipantNotFoundError(participant_id)
        return participant

    async def start_speaking(self, participant_id: int, meeting_id: int) -> SpeakingSession:
        """Dar la palabra a un participante; pasa a ser el único orador"""
        async with self._turn(meeting_id):
            participant = await self._load_participant(participant_id, START_ACTION)
            if participant.meeting_id != meeting_id:
                raise InvalidInputError("Participant does not belong to this meeting")

            now = self.now()
            try:
                # 1. Nadie más tiene la palabra
                await self.store.update(Participant, {"is_currently_speaking": False}, meeting_id=meeting_id)

                # 2. Cerrar sesiones que quedaron abiertas, sin acreditar duración
                stale = await self.store.select(SpeakingSession, meeting_id=meeting_id, ended_at=None)
                if stale:
                    await self.store.update(
                        SpeakingSession,
                        {"ended_at": now},
                        id=[session.id for session in stale],
                    )
                    logger.info(f"Reunión {meeting_id}: {len(stale)} sesión(es) abierta(s) cerrada(s)")
                # La sesión local, si había, ya está cerrada en el store
                self._open = None

                # 3. Nueva sesión
                session = await self.store.insert(
                    SpeakingSession,
                    participant_id=participant_id,
                    meeting_id=meeting_id,
                    started_at=now,
                )

                # 4. Marcar al orador
                await self.store.update(Participant, {"is_currently_speaking": True}, id=participant_id)
            except StoreError as e:
                logger.error(f"Error iniciando sesión de palabra para {participant_id}: {e}")
                raise RemoteOperationError(START_ACTION, e) from e

            # 5. Contador local desde cero
            self._open = OpenSession(
                session_id=session.id,
                participant_id=participant_id,
                meeting_id=meeting_id,
                started_at=now,
            )
            self.timer.start(participant_id, participant.total_speaking_time)
        logger.info(f"Participante {participant_id} tiene la palabra (sesión {session.id})")
        return session

    async def stop_speaking(self, participant_id: int) -> int:
        """Cerrar la sesión local abierta y acreditar la duración contada"""
        open_session = self._open
        if open_session is None or open_session.participant_id != participant_id:
            raise NoOpenSessionError(participant_id)

        async with self._turn(open_session.meeting_id):
            # Duración según los ticks locales, no según las marcas del servidor
            duration = self.timer.elapsed_seconds(participant_id)
            now = self.now()
            try:
                session = await self.store.get(SpeakingSession, open_session.session_id)
                if session is None:
                    # Participante borrado mientras hablaba, su sesión cayó en cascada
                    self.discard()
                    raise ParticipantNotFoundError(participant_id)
                if session.ended_at is not None:
                    # Otro cliente la cerró al dar la palabra; no se acredita
                    self.drop_session()
                    raise NoOpenSessionError(participant_id)
                await self.store.update(
                    SpeakingSession,
                    {"ended_at": now, "duration": duration},
                    id=open_session.session_id,
                )
                participant = await self.store.get(Participant, participant_id)
                if participant is None:
                    # Borrado mientras hablaba, su sesión cayó en cascada
                    self.discard()
                    raise ParticipantNotFoundError(participant_id)
                await self.store.update(
                    Participant,
                    {
                        "is_currently_speaking": False,
                        "total_speaking_time": participant.total_speaking_time + duration,
                        "speaking_sessions": participant.speaking_sessions + 1,
                    },
                    id=participant_id,
                )
            except StoreError as e:
                logger.error(f"Error cerrando sesión {open_session.session_id}: {e}")
                raise RemoteOperationError(STOP_ACTION, e) from e

            self.discard()
        logger.info(f"Participante {participant_id} dejó la palabra tras {duration}s")
        return duration

    async def toggle_speaking(self, participant_id: int, meeting_id: int):
        """Punto de entrada único: detiene si este cliente tiene su sesión, si no la inicia"""
        if self.holds_session_for(participant_id):
            return await self.stop_speaking(participant_id)
        return await self.start_speaking(participant_id, meeting_id)
