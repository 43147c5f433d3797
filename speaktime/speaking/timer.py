# speaktime/speaking/timer.py
"""
Contador local del orador activo.

Dos niveles de estado: lo persistido (total_speaking_time y las sesiones en
el store) es la fuente de verdad; este módulo solo guarda una caché de
presentación por vista, que se reconcilia con lo persistido cada vez que se
recargan los participantes.
"""
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

from speaktime.models import Participant
from speaktime.utils.logger import logger


Clock = Callable[[], float]


def format_time(seconds: int) -> str:
    """Segundos a m:ss"""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{secs:02d}"


@dataclass
class LiveCounter:
    participant_id: int
    start_instant: float
    base_seconds: int
    elapsed: int = 0

    @property
    def displayed_seconds(self) -> int:
        return self.base_seconds + self.elapsed


class LiveTimer:
    """Caché local {participante -> inicio, base} con a lo sumo una entrada"""

    def __init__(self, clock: Clock = time.monotonic):
        self.clock = clock
        self._counters: Dict[int, LiveCounter] = {}

    @property
    def active(self) -> Optional[LiveCounter]:
        return next(iter(self._counters.values()), None)

    def counter_for(self, participant_id: int) -> Optional[LiveCounter]:
        return self._counters.get(participant_id)

    def start(self, participant_id: int, base_seconds: int) -> LiveCounter:
        """Reiniciar a cero para un nuevo orador"""
        counter = LiveCounter(
            participant_id=participant_id,
            start_instant=self.clock(),
            base_seconds=base_seconds or 0,
        )
        self._counters = {participant_id: counter}
        return counter

    def clear(self):
        self._counters = {}

    def tick(self):
        """Refresco periódico: un segundo más por tick, sin llamadas remotas"""
        # Cuenta ticks, no diferencias de reloj: un tick tardío suma uno solo
        for counter in self._counters.values():
            counter.elapsed += 1

    def elapsed_seconds(self, participant_id: int) -> int:
        """Segundos contados por los ticks desde el inicio"""
        counter = self._counters.get(participant_id)
        return counter.elapsed if counter else 0

    def displayed_seconds(self, participant: Participant) -> int:
        """base + transcurrido para el orador activo, el total persistido para el resto"""
        counter = self._counters.get(participant.id)
        if counter is None:
            return participant.total_speaking_time or 0
        return counter.displayed_seconds

    def reconcile(self, participants: Iterable[Participant]):
        """Alinear la caché local con la última lista leída del store"""
        speaker = next((p for p in participants if p.is_currently_speaking), None)
        if speaker is None:
            if self._counters:
                logger.debug("Nadie habla según el store, contador local limpiado")
                self.clear()
            return
        if speaker.id not in self._counters:
            # El inicio real se desconoce, se aproxima con el momento de la observación
            logger.debug(f"Contador local sembrado para participante {speaker.id}")
            self.start(speaker.id, speaker.total_speaking_time)
