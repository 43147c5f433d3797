# speaktime/models.py
from typing import Optional, List
from datetime import datetime
from sqlmodel import Field, SQLModel, Relationship


ANONYMOUS_ASKER = "Anonymous"

# Borrado en cascada a nivel ORM: los hijos se eliminan con el padre
CASCADE = {"cascade": "all, delete"}


class Meeting(SQLModel, table=True):
    """Reunión en la que se mide el tiempo de palabra"""
    __tablename__ = "meetings"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    created_by: Optional[str] = Field(default=None, index=True)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    ended_at: Optional[datetime] = None

    # Relaciones
    participants: List["Participant"] = Relationship(
        back_populates="meeting", sa_relationship_kwargs=CASCADE
    )
    sessions: List["SpeakingSession"] = Relationship(
        back_populates="meeting", sa_relationship_kwargs=CASCADE
    )
    subjects: List["Subject"] = Relationship(
        back_populates="meeting", sa_relationship_kwargs=CASCADE
    )
    questions: List["Question"] = Relationship(
        back_populates="meeting", sa_relationship_kwargs=CASCADE
    )


class Participant(SQLModel, table=True):
    """Asistente con sus totales acumulados de palabra"""
    __tablename__ = "participants"

    id: Optional[int] = Field(default=None, primary_key=True)
    meeting_id: int = Field(foreign_key="meetings.id", index=True)
    name: str
    total_speaking_time: int = 0  # segundos
    speaking_sessions: int = 0
    is_currently_speaking: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relaciones
    meeting: Optional[Meeting] = Relationship(back_populates="participants")
    sessions: List["SpeakingSession"] = Relationship(
        back_populates="participant", sa_relationship_kwargs=CASCADE
    )


class SpeakingSession(SQLModel, table=True):
    """Intervalo continuo en el que un participante tuvo la palabra"""
    __tablename__ = "speaking_sessions"

    id: Optional[int] = Field(default=None, primary_key=True)
    participant_id: int = Field(foreign_key="participants.id", index=True)
    meeting_id: int = Field(foreign_key="meetings.id", index=True)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    ended_at: Optional[datetime] = None
    duration: Optional[int] = None  # segundos, se calcula al cerrar

    # Relaciones
    participant: Optional[Participant] = Relationship(back_populates="sessions")
    meeting: Optional[Meeting] = Relationship(back_populates="sessions")


class Subject(SQLModel, table=True):
    """Tema de discusión de una reunión"""
    __tablename__ = "subjects"

    id: Optional[int] = Field(default=None, primary_key=True)
    meeting_id: int = Field(foreign_key="meetings.id", index=True)
    title: str
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    meeting: Optional[Meeting] = Relationship(back_populates="subjects")


class Question(SQLModel, table=True):
    """Pregunta del público, asker_name es None si es anónima"""
    __tablename__ = "questions"

    id: Optional[int] = Field(default=None, primary_key=True)
    meeting_id: int = Field(foreign_key="meetings.id", index=True)
    question: str
    asker_name: Optional[str] = None
    is_answered: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)

    meeting: Optional[Meeting] = Relationship(back_populates="questions")

    @property
    def display_name(self) -> str:
        return self.asker_name or ANONYMOUS_ASKER


# ============= ESQUEMAS DE ENTRADA =============

class MeetingCreate(SQLModel):
    title: str
    participants: List[str] = []


class ParticipantCreate(SQLModel):
    name: str


class SubjectCreate(SQLModel):
    title: str
    description: Optional[str] = None


class QuestionCreate(SQLModel):
    question: str
    asker_name: Optional[str] = None
    is_anonymous: bool = False
