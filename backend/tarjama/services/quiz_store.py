"""Durable storage for quiz sessions and answers.

Each write opens its own DB session, since a quiz outlives any single HTTP
request. Writes are idempotent (client-side session ids, one answer row per
question index, completion written once), so a failed write is retried
before PersistenceError is raised.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from tarjama.config import settings
from tarjama.models import QuizAnswer, QuizSession
from tarjama.schemas import Direction

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    pass


class QuizStore:
    def __init__(self, session_factory: sessionmaker, retries: int | None = None):
        self.session_factory = session_factory
        self.retries = settings.persistence_retries if retries is None else retries

    def _write(self, operation: str, fn: Callable[[Session], None]) -> None:
        last_error: Exception | None = None
        for attempt in range(1, self.retries + 2):
            db = self.session_factory()
            try:
                fn(db)
                db.commit()
                return
            except SQLAlchemyError as e:
                db.rollback()
                last_error = e
                logger.warning("%s failed (attempt %d): %s", operation, attempt, e)
            finally:
                db.close()
        raise PersistenceError(f"{operation} failed: {last_error}") from last_error

    def create_session(
        self,
        user_id: str,
        deck_id: str,
        direction: Direction,
        total_questions: int,
    ) -> str:
        session_id = str(uuid.uuid4())

        def _insert(db: Session) -> None:
            if db.get(QuizSession, session_id) is not None:
                return
            db.add(QuizSession(
                id=session_id,
                user_id=user_id,
                deck_id=deck_id,
                quiz_type="sentence",
                direction=direction.value,
                total_questions=total_questions,
                correct_answers=0,
                completed_at=None,
            ))

        self._write("create_session", _insert)
        return session_id

    def record_answer(
        self,
        session_id: str,
        question_index: int,
        word_id: str,
        user_answer: str,
        is_correct: bool,
        score: int | None = None,
    ) -> None:
        def _insert(db: Session) -> None:
            existing = (
                db.query(QuizAnswer.id)
                .filter(
                    QuizAnswer.session_id == session_id,
                    QuizAnswer.question_index == question_index,
                )
                .first()
            )
            if existing:
                return
            db.add(QuizAnswer(
                session_id=session_id,
                question_index=question_index,
                word_id=word_id,
                user_answer=user_answer,
                is_correct=is_correct,
                score=score,
            ))

        self._write("record_answer", _insert)

    def complete_session(
        self,
        session_id: str,
        correct_answers: int,
        completed_at: datetime,
    ) -> None:
        def _update(db: Session) -> None:
            session = db.get(QuizSession, session_id)
            if session is None:
                raise PersistenceError(f"Quiz session {session_id} not found")
            if session.completed_at is not None:
                return
            if not 0 <= correct_answers <= session.total_questions:
                raise PersistenceError(
                    f"correct_answers {correct_answers} outside 0..{session.total_questions}"
                )
            session.correct_answers = correct_answers
            session.completed_at = completed_at

        self._write("complete_session", _update)
