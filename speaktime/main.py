# speaktime/main.py
from fastapi import FastAPI, HTTPException, Depends, Header
from fastapi.middleware.cors import CORSMiddleware
from typing import List, Optional
from datetime import datetime
import uvicorn

from speaktime.database import create_db_and_tables
from speaktime.exceptions import (
    InvalidInputError,
    NoOpenSessionError,
    NotFoundError,
    SpeakTimeError,
)
from speaktime.models import (
    Meeting,
    MeetingCreate,
    Participant,
    ParticipantCreate,
    QuestionCreate,
    Subject,
    SubjectCreate,
)
from speaktime.tracker import SpeakingTracker
from speaktime.utils.config import settings
from speaktime.utils.logger import logger

# Crear aplicación FastAPI
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Medición del tiempo de palabra en reuniones"
)

# Estado del proceso: store, feed y vistas abiertas
tracker = SpeakingTracker()

# Configurar CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_tracker() -> SpeakingTracker:
    """Dependency con el tracker del proceso"""
    return tracker


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Identidad del usuario; solo se usa para registrar al dueño de la reunión"""
    return x_user_id or settings.default_user_id


def http_error(exc: SpeakTimeError) -> HTTPException:
    """Traducir errores de la aplicación a respuestas HTTP"""
    if isinstance(exc, InvalidInputError):
        status_code = 400
    elif isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, NoOpenSessionError):
        status_code = 409
    else:
        status_code = 500
    return HTTPException(status_code=status_code, detail=exc.user_message)


# Eventos de inicio/cierre
@app.on_event("startup")
async def startup_event():
    """Inicializar la aplicación"""
    logger.info(f"Iniciando {settings.app_name} v{settings.app_version}")
    create_db_and_tables()
    logger.info("Base de datos inicializada")
    await tracker.startup()
    tracker.start_ticker(settings.timer.tick_interval_seconds)


@app.on_event("shutdown")
async def shutdown_event():
    """Cerrar la aplicación"""
    logger.info("Cerrando aplicación...")
    await tracker.shutdown()


# Rutas básicas
@app.get("/")
async def root():
    """Endpoint raíz"""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "active"
    }


@app.get("/health")
async def health_check():
    """Verificar estado de la aplicación"""
    return {"status": "healthy", "timestamp": datetime.utcnow()}


# ============= REUNIONES =============

@app.post("/meetings/", response_model=Meeting)
async def create_meeting(
    payload: MeetingCreate,
    user_id: str = Depends(get_current_user_id),
    tracker: SpeakingTracker = Depends(get_tracker)
):
    """Crear una nueva reunión; la activa anterior termina"""
    try:
        return await tracker.create_meeting(payload.title, payload.participants, user_id)
    except SpeakTimeError as e:
        raise http_error(e)


@app.get("/meetings/", response_model=List[Meeting])
async def get_meetings(tracker: SpeakingTracker = Depends(get_tracker)):
    """Obtener lista de reuniones"""
    try:
        return await tracker.meetings.list_meetings()
    except SpeakTimeError as e:
        raise http_error(e)


@app.get("/meetings/active", response_model=Optional[Meeting])
async def get_active_meeting(tracker: SpeakingTracker = Depends(get_tracker)):
    """Obtener la reunión activa, si hay"""
    try:
        return await tracker.meetings.active_meeting()
    except SpeakTimeError as e:
        raise http_error(e)


@app.get("/meetings/{meeting_id}", response_model=Meeting)
async def get_meeting(meeting_id: int, tracker: SpeakingTracker = Depends(get_tracker)):
    """Obtener una reunión específica"""
    try:
        return await tracker.meetings.get_meeting(meeting_id)
    except SpeakTimeError as e:
        raise http_error(e)


@app.post("/meetings/{meeting_id}/end", response_model=Meeting)
async def end_meeting(meeting_id: int, tracker: SpeakingTracker = Depends(get_tracker)):
    """Terminar una reunión"""
    try:
        return await tracker.end_meeting(meeting_id)
    except SpeakTimeError as e:
        raise http_error(e)


# ============= PARTICIPANTES =============

@app.post("/meetings/{meeting_id}/participants", response_model=Participant)
async def add_participant(
    meeting_id: int,
    payload: ParticipantCreate,
    tracker: SpeakingTracker = Depends(get_tracker)
):
    """Agregar un participante"""
    try:
        return await tracker.meetings.add_participant(meeting_id, payload.name)
    except SpeakTimeError as e:
        raise http_error(e)


@app.delete("/participants/{participant_id}")
async def remove_participant(participant_id: int, tracker: SpeakingTracker = Depends(get_tracker)):
    """Eliminar un participante"""
    try:
        participant = await tracker.meetings.remove_participant(participant_id)
    except SpeakTimeError as e:
        raise http_error(e)
    return {"message": "Participant removed", "participant_id": participant.id}


@app.get("/meetings/{meeting_id}/leaderboard")
async def get_leaderboard(meeting_id: int, tracker: SpeakingTracker = Depends(get_tracker)):
    """Ranking con el tiempo en vivo del orador"""
    try:
        view = await tracker.view_for(meeting_id)
    except SpeakTimeError as e:
        raise http_error(e)
    return {
        "meeting_id": meeting_id,
        "is_live": view.is_live,
        "entries": [
            {
                "rank": entry.rank,
                "participant_id": entry.participant_id,
                "name": entry.name,
                "seconds": entry.seconds,
                "formatted": entry.formatted,
                "speaking_sessions": entry.speaking_sessions,
                "is_speaking": entry.is_speaking,
                "share": entry.share,
                "on_podium": entry.on_podium,
            }
            for entry in view.leaderboard()
        ],
    }


# ============= PALABRA =============

@app.post("/meetings/{meeting_id}/participants/{participant_id}/start")
async def start_speaking(meeting_id: int, participant_id: int, tracker: SpeakingTracker = Depends(get_tracker)):
    """Dar la palabra a un participante"""
    try:
        view = await tracker.view_for(meeting_id)
        session = await view.start_speaking(participant_id)
    except SpeakTimeError as e:
        raise http_error(e)
    return {"message": "Speaking session started", "participant_id": participant_id, "session_id": session.id}


@app.post("/meetings/{meeting_id}/participants/{participant_id}/stop")
async def stop_speaking(meeting_id: int, participant_id: int, tracker: SpeakingTracker = Depends(get_tracker)):
    """Quitar la palabra y acreditar la duración"""
    try:
        view = await tracker.view_for(meeting_id)
        duration = await view.stop_speaking(participant_id)
    except SpeakTimeError as e:
        raise http_error(e)
    return {"message": "Speaking session stopped", "participant_id": participant_id, "duration": duration}


@app.post("/meetings/{meeting_id}/participants/{participant_id}/toggle")
async def toggle_speaking(meeting_id: int, participant_id: int, tracker: SpeakingTracker = Depends(get_tracker)):
    """Alternar la palabra de un participante"""
    try:
        view = await tracker.view_for(meeting_id)
        await view.toggle_speaking(participant_id)
    except SpeakTimeError as e:
        raise http_error(e)
    return {
        "participant_id": participant_id,
        "is_speaking": view.controller.holds_session_for(participant_id),
    }


# ============= TEMAS Y PREGUNTAS =============

@app.post("/meetings/{meeting_id}/subjects", response_model=Subject)
async def add_subject(meeting_id: int, payload: SubjectCreate, tracker: SpeakingTracker = Depends(get_tracker)):
    """Agregar un tema"""
    try:
        await tracker.meetings.get_meeting(meeting_id)
        return await tracker.annotations.add_subject(meeting_id, payload.title, payload.description)
    except SpeakTimeError as e:
        raise http_error(e)


@app.get("/meetings/{meeting_id}/subjects", response_model=List[Subject])
async def get_subjects(meeting_id: int, tracker: SpeakingTracker = Depends(get_tracker)):
    """Obtener temas de una reunión"""
    try:
        return await tracker.annotations.list_subjects(meeting_id)
    except SpeakTimeError as e:
        raise http_error(e)


def _question_payload(question) -> dict:
    data = question.model_dump()
    data["asker_display"] = question.display_name
    return data


@app.post("/meetings/{meeting_id}/questions")
async def submit_question(meeting_id: int, payload: QuestionCreate, tracker: SpeakingTracker = Depends(get_tracker)):
    """Enviar una pregunta"""
    try:
        await tracker.meetings.get_meeting(meeting_id)
        question = await tracker.annotations.submit_question(
            meeting_id,
            payload.question,
            asker_name=payload.asker_name,
            is_anonymous=payload.is_anonymous,
        )
    except SpeakTimeError as e:
        raise http_error(e)
    return _question_payload(question)


@app.get("/meetings/{meeting_id}/questions")
async def get_questions(meeting_id: int, tracker: SpeakingTracker = Depends(get_tracker)):
    """Obtener preguntas de una reunión"""
    try:
        questions = await tracker.annotations.list_questions(meeting_id)
    except SpeakTimeError as e:
        raise http_error(e)
    return {
        "unanswered": sum(1 for q in questions if not q.is_answered),
        "questions": [_question_payload(q) for q in questions],
    }


@app.post("/questions/{question_id}/toggle")
async def toggle_question(question_id: int, tracker: SpeakingTracker = Depends(get_tracker)):
    """Marcar una pregunta como respondida o no"""
    try:
        question = await tracker.annotations.toggle_answered(question_id)
    except SpeakTimeError as e:
        raise http_error(e)
    return _question_payload(question)


# Función principal
def main():
    """Ejecutar el servidor"""
    logger.info(f"Iniciando servidor en {settings.api_host}:{settings.api_port}")
    uvicorn.run(
        "speaktime.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )


if __name__ == "__main__":
    main()
