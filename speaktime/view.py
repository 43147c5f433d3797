# speaktime/view.py
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, TypeVar

from speaktime.annotations import AnnotationService
from speaktime.exceptions import InvalidInputError, SpeakTimeError
from speaktime.meetings import MeetingRepository
from speaktime.models import Participant, Question, SpeakingSession, Subject
from speaktime.notifications import Notifier
from speaktime.realtime.feed import ChangeEvent, ChangeFeed, INSERT
from speaktime.realtime.listener import ChangeFeedListener
from speaktime.speaking.arbiter import MeetingArbiter
from speaktime.speaking.controller import SpeakingController
from speaktime.speaking.timer import Clock, LiveTimer, format_time
from speaktime.utils.config import settings


LEADERBOARD_TAB = "leaderboard"
SUBJECTS_TAB = "subjects"
QUESTIONS_TAB = "questions"
TABS = (LEADERBOARD_TAB, SUBJECTS_TAB, QUESTIONS_TAB)

T = TypeVar("T")


@dataclass
class LeaderboardEntry:
    rank: int
    participant_id: int
    name: str
    seconds: int
    speaking_sessions: int
    is_speaking: bool
    share: float  # fracción respecto del primero, para la barra de progreso
    on_podium: bool

    @property
    def formatted(self) -> str:
        return format_time(self.seconds)


class MeetingView:
    """Proyección en memoria de una reunión para un cliente.

    Recarga listas completas cuando el feed avisa de un cambio, mantiene el
    contador local del orador activo y expone las acciones de palabra.
    """

    def __init__(
        self,
        meeting_id: int,
        feed: ChangeFeed,
        meetings: MeetingRepository,
        annotations: AnnotationService,
        clock: Clock = time.monotonic,
        now: Callable[[], datetime] = datetime.utcnow,
        notifier: Optional[Notifier] = None,
        arbiter: Optional[MeetingArbiter] = None,
    ):
        self.meeting_id = meeting_id
        self.meetings = meetings
        self.annotations = annotations
        self.notifier = notifier or Notifier()
        self.timer = LiveTimer(clock)
        self.controller = SpeakingController(meetings.store, self.timer, now, arbiter)
        self.listener = ChangeFeedListener(
            feed,
            meeting_id,
            {
                "participants": self._on_participants_changed,
                "speaking_sessions": self._on_sessions_changed,
                "subjects": self._on_subjects_changed,
                "questions": self._on_questions_changed,
            },
        )

        # Estado
        self.participants: List[Participant] = []
        self.subjects: List[Subject] = []
        self.questions: List[Question] = []
        self.active_tab = LEADERBOARD_TAB
        self.has_new_subjects = False
        self.has_new_questions = False
        self.is_open = False

    async def open(self):
        """Carga inicial y suscripción al feed"""
        await self.refresh_participants()
        await self.refresh_subjects()
        await self.refresh_questions()
        self.listener.start()
        self.is_open = True

    def close(self):
        """Soltar suscripciones y estado local"""
        self.listener.stop()
        self.controller.discard()
        self.is_open = False

    # ============= RECARGAS =============

    async def refresh_participants(self):
        try:
            self.participants = await self.meetings.list_participants(self.meeting_id)
        except SpeakTimeError as e:
            self.notifier.error(e.user_message)
            return
        self.timer.reconcile(self.participants)
        self._drop_preempted_session()

    def _drop_preempted_session(self):
        """Si otro cliente quitó la palabra a nuestro orador, la sesión local ya no vale"""
        open_session = self.controller.open_session
        if open_session is None:
            return
        holder = next((p for p in self.participants if p.id == open_session.participant_id), None)
        if holder is None or not holder.is_currently_speaking:
            self.controller.drop_session()

    async def refresh_subjects(self):
        try:
            self.subjects = await self.annotations.list_subjects(self.meeting_id)
        except SpeakTimeError as e:
            self.notifier.error(e.user_message)

    async def refresh_questions(self):
        try:
            self.questions = await self.annotations.list_questions(self.meeting_id)
        except SpeakTimeError as e:
            self.notifier.error(e.user_message)

    async def _on_participants_changed(self, event: ChangeEvent):
        await self.refresh_participants()

    async def _on_sessions_changed(self, event: ChangeEvent):
        # El orador se lee de participants, no de las sesiones
        await self.refresh_participants()

    async def _on_subjects_changed(self, event: ChangeEvent):
        if event.event == INSERT and self.active_tab != SUBJECTS_TAB:
            self.has_new_subjects = True
        await self.refresh_subjects()

    async def _on_questions_changed(self, event: ChangeEvent):
        if event.event == INSERT and self.active_tab != QUESTIONS_TAB:
            self.has_new_questions = True
        await self.refresh_questions()

    def select_tab(self, tab: str):
        if tab not in TABS:
            raise InvalidInputError(f"Unknown tab: {tab}")
        self.active_tab = tab
        if tab == SUBJECTS_TAB:
            self.has_new_subjects = False
        elif tab == QUESTIONS_TAB:
            self.has_new_questions = False

    # ============= PALABRA =============

    async def _run(self, operation: Awaitable[T]) -> T:
        try:
            return await operation
        except SpeakTimeError as e:
            self.notifier.error(e.user_message)
            raise

    async def start_speaking(self, participant_id: int) -> SpeakingSession:
        return await self._run(self.controller.start_speaking(participant_id, self.meeting_id))

    async def stop_speaking(self, participant_id: int) -> int:
        return await self._run(self.controller.stop_speaking(participant_id))

    async def toggle_speaking(self, participant_id: int):
        return await self._run(self.controller.toggle_speaking(participant_id, self.meeting_id))

    # ============= PRESENTACIÓN =============

    def tick(self):
        self.timer.tick()

    @property
    def active_speaker(self) -> Optional[Participant]:
        return next((p for p in self.participants if p.is_currently_speaking), None)

    @property
    def is_live(self) -> bool:
        return self.active_speaker is not None

    def leaderboard(self) -> List[LeaderboardEntry]:
        """Ranking con el tiempo en vivo del orador activo"""
        rows = [(p, self.timer.displayed_seconds(p)) for p in self.participants]
        # sorted es estable: los empates conservan el orden de la recarga
        rows = sorted(rows, key=lambda row: row[1], reverse=True)
        top = max([1] + [seconds for _, seconds in rows])
        podium = settings.leaderboard.podium_size
        return [
            LeaderboardEntry(
                rank=index + 1,
                participant_id=p.id,
                name=p.name,
                seconds=seconds,
                speaking_sessions=p.speaking_sessions,
                is_speaking=p.is_currently_speaking,
                share=seconds / top,
                on_podium=index < podium,
            )
            for index, (p, seconds) in enumerate(rows)
        ]

