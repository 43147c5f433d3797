# speaktime/exceptions.py
"""
Excepciones propias de SpeakTime.

Cada excepción lleva un user_message corto, pensado para mostrarse tal cual
al usuario, sin detalle de diagnóstico.
"""


class SpeakTimeError(Exception):
    """Base para todos los errores de la aplicación."""

    def __init__(self, user_message: str):
        self.user_message = user_message
        super().__init__(user_message)


class InvalidInputError(SpeakTimeError):
    """Dato requerido vacío o inválido; se detecta antes de tocar el store."""
    pass


class NotFoundError(SpeakTimeError):
    """La fila solicitada no existe."""
    pass


class MeetingNotFoundError(NotFoundError):
    def __init__(self, meeting_id: int):
        self.meeting_id = meeting_id
        super().__init__("Meeting not found")


class ParticipantNotFoundError(NotFoundError):
    def __init__(self, participant_id: int):
        self.participant_id = participant_id
        super().__init__("Participant not found")


class QuestionNotFoundError(NotFoundError):
    def __init__(self, question_id: int):
        self.question_id = question_id
        super().__init__("Question not found")


class NoOpenSessionError(SpeakTimeError):
    """StopSpeaking sin una sesión abierta registrada localmente."""

    def __init__(self, participant_id: int):
        self.participant_id = participant_id
        super().__init__("No open speaking session for this participant")


class RemoteOperationError(SpeakTimeError):
    """Fallo de una operación contra el store. No se reintenta ni se revierte."""

    def __init__(self, action: str, cause: Exception = None):
        self.action = action
        self.cause = cause
        super().__init__(f"Failed to {action}")
