# speaktime/annotations.py
from typing import List, Optional

from speaktime.exceptions import InvalidInputError, QuestionNotFoundError, RemoteOperationError
from speaktime.models import Question, Subject
from speaktime.store import RowStore, StoreError
from speaktime.utils.logger import logger


NEWEST_FIRST = ("-created_at", "-id")


class AnnotationService:
    """Temas y preguntas de una reunión"""

    def __init__(self, store: RowStore):
        self.store = store

    async def add_subject(self, meeting_id: int, title: str, description: Optional[str] = None) -> Subject:
        title = (title or "").strip()
        if not title:
            raise InvalidInputError("Please enter a subject title")
        try:
            subject = await self.store.insert(
                Subject,
                meeting_id=meeting_id,
                title=title,
                description=(description or "").strip() or None,
            )
        except StoreError as e:
            raise RemoteOperationError("add subject", e) from e
        logger.info(f"Tema agregado a la reunión {meeting_id}: {title}")
        return subject

    async def list_subjects(self, meeting_id: int) -> List[Subject]:
        try:
            return await self.store.select(Subject, order_by=NEWEST_FIRST, meeting_id=meeting_id)
        except StoreError as e:
            raise RemoteOperationError("load subjects", e) from e

    async def submit_question(
        self,
        meeting_id: int,
        question: str,
        asker_name: Optional[str] = None,
        is_anonymous: bool = False,
    ) -> Question:
        """Registrar una pregunta; las anónimas se guardan sin nombre"""
        question = (question or "").strip()
        if not question:
            raise InvalidInputError("Please enter a question")
        asker_name = (asker_name or "").strip()
        if not is_anonymous and not asker_name:
            raise InvalidInputError("Please enter your name or submit anonymously")
        try:
            row = await self.store.insert(
                Question,
                meeting_id=meeting_id,
                question=question,
                asker_name=None if is_anonymous else asker_name,
            )
        except StoreError as e:
            raise RemoteOperationError("submit question", e) from e
        return row

    async def list_questions(self, meeting_id: int) -> List[Question]:
        try:
            return await self.store.select(Question, order_by=NEWEST_FIRST, meeting_id=meeting_id)
        except StoreError as e:
            raise RemoteOperationError("load questions", e) from e

    async def toggle_answered(self, question_id: int) -> Question:
        try:
            question = await self.store.get(Question, question_id)
            if question is None:
                raise QuestionNotFoundError(question_id)
            updated = await self.store.update(Question, {"is_answered": not question.is_answered}, id=question_id)
        except StoreError as e:
            raise RemoteOperationError("update question status", e) from e
        return updated[0]

    async def unanswered_count(self, meeting_id: int) -> int:
        questions = await self.list_questions(meeting_id)
        return sum(1 for q in questions if not q.is_answered)
