import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, JSON, Boolean, UniqueConstraint
)
from sqlalchemy.orm import relationship

from tarjama.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Deck(Base):
    __tablename__ = "decks"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(50), nullable=False, index=True)
    name = Column(Text, nullable=False)
    source_language = Column(String(50), nullable=False)
    target_language = Column(String(50), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    words = relationship("Word", back_populates="deck", cascade="all, delete-orphan")


class Word(Base):
    __tablename__ = "words"

    id = Column(String(36), primary_key=True, default=_new_id)
    deck_id = Column(String(36), ForeignKey("decks.id"), nullable=False, index=True)
    word_type = Column(String(20), default="other")  # noun/verb/adjective/particle/...
    source_term = Column(Text, nullable=False)
    target_term = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)  # plurals, verb forms
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    deck = relationship("Deck", back_populates="words")


class QuizSession(Base):
    __tablename__ = "quiz_sessions"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(50), nullable=False, index=True)
    deck_id = Column(String(36), ForeignKey("decks.id"), nullable=False, index=True)
    quiz_type = Column(String(20), default="sentence")
    direction = Column(String(20), nullable=False)  # source_to_target/target_to_source
    total_questions = Column(Integer, nullable=False)
    correct_answers = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    completed_at = Column(DateTime, nullable=True)  # NULL = in progress or abandoned

    answers = relationship(
        "QuizAnswer", back_populates="session", order_by="QuizAnswer.question_index"
    )


class QuizAnswer(Base):
    __tablename__ = "quiz_answers"
    __table_args__ = (
        UniqueConstraint("session_id", "question_index", name="uq_quiz_answer_question"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(36), ForeignKey("quiz_sessions.id"), nullable=False, index=True)
    question_index = Column(Integer, nullable=False)
    word_id = Column(String(36), ForeignKey("words.id"), nullable=False)
    user_answer = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False)
    score = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    session = relationship("QuizSession", back_populates="answers")
