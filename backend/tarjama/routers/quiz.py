import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, sessionmaker

from tarjama.database import get_db, get_session_factory
from tarjama.models import Deck
from tarjama.schemas import (
    GradeOutcome,
    QuestionOut,
    QuizAnswerIn,
    QuizCreateIn,
    QuizStartIn,
    QuizStateOut,
    VocabularyItem,
)
from tarjama.services.interaction_logger import log_interaction
from tarjama.services.llm import LLMClient, LLMConfigError, get_llm_client
from tarjama.services.quiz_session import (
    QuizController,
    QuizRegistry,
    QuizStateError,
    get_registry,
)
from tarjama.services.quiz_store import QuizStore
from tarjama.services.sentence_generator import GenerationError, is_rtl_language

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])


def get_llm() -> LLMClient:
    try:
        return get_llm_client()
    except LLMConfigError as e:
        logger.error("LLM unavailable: %s", e)
        raise HTTPException(503, "Sentence generation is not configured on this server")


def get_quiz_store(session_factory: sessionmaker = Depends(get_session_factory)) -> QuizStore:
    return QuizStore(session_factory)


def _get_quiz(quiz_id: str, registry: QuizRegistry) -> QuizController:
    quiz = registry.get(quiz_id)
    if quiz is None:
        raise HTTPException(404, "Quiz not found")
    return quiz


def _state_out(quiz: QuizController) -> QuizStateOut:
    question = quiz.current_question()
    question_out = None
    if question is not None:
        question_out = QuestionOut(
            index=quiz.current_index,
            word_id=question.word_id,
            original_word=question.original_word,
            sentence=question.sentence,
            sentence_language=quiz.sentence_language,
            answer_language=quiz.answer_language,
            rtl=is_rtl_language(quiz.sentence_language),
        )
    return QuizStateOut(
        quiz_id=quiz.quiz_id,
        session_id=quiz.session_id,
        status=quiz.status.value,
        deck_id=quiz.deck_id,
        direction=quiz.direction,
        question_count=quiz.question_count,
        available_words=len(quiz.words),
        total_questions=quiz.total_questions,
        current_index=quiz.current_index,
        correct_so_far=quiz.correct_so_far,
        question=question_out,
        last_result=quiz.last_result,
        answers=list(quiz.history),
        summary=quiz.summary(),
        completed_at=quiz.completed_at,
    )


@router.post("", response_model=QuizStateOut)
def create_quiz(
    body: QuizCreateIn,
    db: Session = Depends(get_db),
    llm: LLMClient = Depends(get_llm),
    store: QuizStore = Depends(get_quiz_store),
    registry: QuizRegistry = Depends(get_registry),
):
    """Open a quiz for a deck in the configuring state."""
    deck = (
        db.query(Deck)
        .filter(Deck.id == body.deck_id, Deck.user_id == body.user_id)
        .first()
    )
    if deck is None:
        raise HTTPException(404, "Deck not found")
    if not deck.words:
        raise HTTPException(400, "Deck has no words")

    quiz = QuizController(
        user_id=body.user_id,
        deck_id=deck.id,
        words=[VocabularyItem.model_validate(w) for w in deck.words],
        source_language=deck.source_language,
        target_language=deck.target_language,
        llm=llm,
        store=store,
    )
    registry.add(quiz)
    log_interaction(event="quiz_created", quiz_id=quiz.quiz_id, deck_id=deck.id)
    return _state_out(quiz)


@router.get("/{quiz_id}", response_model=QuizStateOut)
def get_quiz(quiz_id: str, registry: QuizRegistry = Depends(get_registry)):
    return _state_out(_get_quiz(quiz_id, registry))


@router.post("/{quiz_id}/start", response_model=QuizStateOut)
def start_quiz(
    quiz_id: str,
    body: QuizStartIn,
    registry: QuizRegistry = Depends(get_registry),
):
    quiz = _get_quiz(quiz_id, registry)
    try:
        quiz.configure(body.direction, body.question_count)
        quiz.start()
    except QuizStateError as e:
        raise HTTPException(409, str(e))
    except GenerationError:
        raise HTTPException(
            502, "Failed to generate quiz sentences. Please try again in a moment."
        )
    return _state_out(quiz)


@router.post("/{quiz_id}/answer", response_model=GradeOutcome)
def answer_question(
    quiz_id: str,
    body: QuizAnswerIn,
    registry: QuizRegistry = Depends(get_registry),
):
    quiz = _get_quiz(quiz_id, registry)
    try:
        return quiz.submit_answer(body.answer)
    except QuizStateError as e:
        raise HTTPException(409, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.post("/{quiz_id}/next", response_model=QuizStateOut)
def next_question(quiz_id: str, registry: QuizRegistry = Depends(get_registry)):
    quiz = _get_quiz(quiz_id, registry)
    try:
        quiz.advance()
    except QuizStateError as e:
        raise HTTPException(409, str(e))
    return _state_out(quiz)


@router.post("/{quiz_id}/restart", response_model=QuizStateOut)
def restart_quiz(quiz_id: str, registry: QuizRegistry = Depends(get_registry)):
    quiz = _get_quiz(quiz_id, registry)
    try:
        quiz.restart()
    except QuizStateError as e:
        raise HTTPException(409, str(e))
    return _state_out(quiz)


@router.delete("/{quiz_id}")
def abandon_quiz(quiz_id: str, registry: QuizRegistry = Depends(get_registry)):
    if registry.remove(quiz_id) is None:
        raise HTTPException(404, "Quiz not found")
    return {"status": "abandoned"}
