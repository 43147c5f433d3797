# conftest.py
"""
Fixtures compartidas: base SQLite en memoria y un reloj falso para controlar
los ticks del contador en vivo.
"""
from datetime import datetime, timedelta

import pytest
from sqlmodel import SQLModel

from speaktime.database import build_engine, create_db_and_tables
from speaktime.tracker import SpeakingTracker


class FakeClock:
    """Reloj monotónico y de pared que solo avanza cuando se le pide"""

    def __init__(self, start: float = 1000.0):
        self.start = start
        self.value = start
        self.base = datetime(2025, 9, 4, 12, 0, 0)

    def __call__(self) -> float:
        return self.value

    def now(self) -> datetime:
        return self.base + timedelta(seconds=self.value - self.start)

    def advance(self, seconds: float = 1.0):
        self.value += seconds


def run_ticks(target, clock: FakeClock, count: int):
    """Avanzar el reloj un segundo y hacer tick, count veces"""
    for _ in range(count):
        clock.advance(1)
        target.tick()


@pytest.fixture
def engine():
    """Engine SQLite en memoria con todas las tablas"""
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(engine, clock):
    return SpeakingTracker(engine=engine, clock=clock, now=clock.now)


@pytest.fixture
async def meeting(tracker):
    """Reunión activa con Alice y Bob"""
    return await tracker.create_meeting("Weekly sync", ["Alice", "Bob"], owner_id="owner-1")


@pytest.fixture
async def people(tracker, meeting):
    """Participantes de la reunión por nombre"""
    participants = await tracker.meetings.list_participants(meeting.id)
    return {p.name: p for p in participants}


@pytest.fixture
async def view(tracker, meeting):
    return await tracker.view_for(meeting.id)
