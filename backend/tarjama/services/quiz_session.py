"""Quiz session controller.

State machine for one learner working through one deck:

    configuring → generating → active(i) → grading(i) → result(i)
        → active(i+1) | complete

plus `abandoned` when the learner walks away. LLM and database calls run
outside the lock; the `generating` and `grading` states are what block a
second start or a duplicate answer while a call is outstanding.

Persistence failures never interrupt the quiz. They are logged and the
learner carries on; a quiz whose session row could not be created runs
unpersisted.
"""

import logging
import random
import threading
import uuid
from collections import OrderedDict
from datetime import datetime, timezone
from enum import Enum

from tarjama.config import settings
from tarjama.schemas import (
    AnswerRecord,
    Direction,
    GeneratedQuestion,
    GradeOutcome,
    QuizSummary,
    VocabularyItem,
)
from tarjama.services.answer_grader import grade_answer
from tarjama.services.interaction_logger import log_interaction
from tarjama.services.llm import LLMClient
from tarjama.services.quiz_store import PersistenceError, QuizStore
from tarjama.services.sentence_generator import (
    GenerationError,
    generate_questions,
    sentence_languages,
)
from tarjama.services.word_selector import clamp_question_count, select_words

logger = logging.getLogger(__name__)


class QuizStatus(str, Enum):
    CONFIGURING = "configuring"
    GENERATING = "generating"
    ACTIVE = "active"
    GRADING = "grading"
    RESULT = "result"
    COMPLETE = "complete"
    ABANDONED = "abandoned"


class QuizStateError(Exception):
    pass


class AnswerInFlightError(QuizStateError):
    pass


class QuizController:
    def __init__(
        self,
        user_id: str,
        deck_id: str,
        words: list[VocabularyItem],
        source_language: str,
        target_language: str,
        llm: LLMClient,
        store: QuizStore | None = None,
        rng: random.Random | None = None,
        quiz_id: str | None = None,
    ):
        if not words:
            raise ValueError("Deck has no words to quiz")
        self.quiz_id = quiz_id or str(uuid.uuid4())
        self.user_id = user_id
        self.deck_id = deck_id
        self.words = list(words)
        self.source_language = source_language
        self.target_language = target_language
        self.llm = llm
        self.store = store
        self.rng = rng

        self._lock = threading.Lock()
        # Held across each database write so abandon() cannot interleave with one.
        self._write_lock = threading.Lock()
        self.status = QuizStatus.CONFIGURING
        self.direction = Direction.SOURCE_TO_TARGET
        self.question_count = clamp_question_count(
            settings.default_question_count, len(self.words), settings.max_question_count
        )
        self._reset_run()

    def _reset_run(self) -> None:
        self.session_id: str | None = None
        self.questions: list[GeneratedQuestion] = []
        self.current_index = 0
        self.history: list[AnswerRecord] = []
        self.last_result: GradeOutcome | None = None
        self.correct_answers: int | None = None
        self.completed_at: datetime | None = None

    # --- configuration ---

    def configure(self, direction: Direction, question_count: int | None = None) -> None:
        with self._lock:
            if self.status != QuizStatus.CONFIGURING:
                raise QuizStateError(f"Cannot configure a quiz that is {self.status.value}")
            self.direction = direction
            if question_count is not None:
                self.question_count = clamp_question_count(
                    question_count, len(self.words), settings.max_question_count
                )

    @property
    def sentence_language(self) -> str:
        return sentence_languages(self.direction, self.source_language, self.target_language)[0]

    @property
    def answer_language(self) -> str:
        return sentence_languages(self.direction, self.source_language, self.target_language)[1]

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def correct_so_far(self) -> int:
        return sum(1 for r in self.history if r.is_correct)

    # --- generation ---

    def start(self) -> list[GeneratedQuestion]:
        """Generate questions and open a persisted session.

        On GenerationError the quiz returns to `configuring` and nothing is
        written.
        """
        with self._lock:
            if self.status == QuizStatus.GENERATING:
                raise QuizStateError("Quiz generation already in progress")
            if self.status != QuizStatus.CONFIGURING:
                raise QuizStateError(f"Cannot start a quiz that is {self.status.value}")
            self.status = QuizStatus.GENERATING
            direction = self.direction
            count = self.question_count

        try:
            selected = select_words(self.words, count, self.rng)
            questions = generate_questions(
                self.llm, selected, self.source_language, self.target_language, direction
            )
        except GenerationError as e:
            with self._lock:
                if self.status == QuizStatus.GENERATING:
                    self.status = QuizStatus.CONFIGURING
            log_interaction(
                event="quiz_generation_failed",
                quiz_id=self.quiz_id,
                deck_id=self.deck_id,
                error=str(e),
            )
            raise
        except Exception:
            with self._lock:
                if self.status == QuizStatus.GENERATING:
                    self.status = QuizStatus.CONFIGURING
            raise

        session_id = None
        with self._write_lock:
            with self._lock:
                if self.status == QuizStatus.ABANDONED:
                    return questions
            if self.store is not None:
                try:
                    session_id = self.store.create_session(
                        self.user_id, self.deck_id, direction, len(questions)
                    )
                except PersistenceError as e:
                    self._report_persistence_failure("create_session", e)

        with self._lock:
            if self.status == QuizStatus.ABANDONED:
                return questions
            self._reset_run()
            self.session_id = session_id
            self.questions = questions
            self.status = QuizStatus.ACTIVE

        log_interaction(
            event="quiz_start",
            quiz_id=self.quiz_id,
            session_id=session_id,
            deck_id=self.deck_id,
            direction=direction.value,
            total_questions=len(questions),
        )
        return questions

    # --- question loop ---

    def current_question(self) -> GeneratedQuestion | None:
        if self.status in (QuizStatus.ACTIVE, QuizStatus.GRADING, QuizStatus.RESULT):
            return self.questions[self.current_index]
        return None

    def submit_answer(self, answer: str) -> GradeOutcome:
        """Grade the answer to the current question and record it.

        Raises AnswerInFlightError if this question is already being graded.
        """
        text = answer.strip()
        if not text:
            raise ValueError("Answer must not be empty")

        with self._lock:
            if self.status == QuizStatus.GRADING:
                raise AnswerInFlightError("An answer for this question is already being graded")
            if self.status != QuizStatus.ACTIVE:
                raise QuizStateError(f"Cannot answer while quiz is {self.status.value}")
            self.status = QuizStatus.GRADING
            index = self.current_index
            question = self.questions[index]
            session_id = self.session_id

        try:
            outcome = grade_answer(
                self.llm,
                question.sentence,
                question.translation,
                text,
                self.sentence_language,
                self.answer_language,
            )
        except Exception:
            with self._lock:
                if self.status == QuizStatus.GRADING:
                    self.status = QuizStatus.ACTIVE
            raise

        record = AnswerRecord(
            question_index=index,
            word_id=question.word_id,
            user_answer=text,
            is_correct=outcome.is_correct,
            score=outcome.score,
            feedback=outcome.feedback,
        )
        with self._write_lock:
            with self._lock:
                if self.status == QuizStatus.ABANDONED:
                    return outcome
                self.history.append(record)

            if self.store is not None and session_id is not None:
                try:
                    self.store.record_answer(
                        session_id,
                        index,
                        record.word_id,
                        record.user_answer,
                        record.is_correct,
                        record.score,
                    )
                except PersistenceError as e:
                    self._report_persistence_failure("record_answer", e)

        with self._lock:
            if self.status == QuizStatus.GRADING:
                self.last_result = outcome
                self.status = QuizStatus.RESULT

        log_interaction(
            event="quiz_answer",
            quiz_id=self.quiz_id,
            session_id=session_id,
            word_id=record.word_id,
            question_index=index,
            score=outcome.score,
            is_correct=outcome.is_correct,
            fallback=outcome.fallback,
        )
        return outcome

    def advance(self) -> QuizStatus:
        """Move past the shown result to the next question or to completion."""
        with self._lock:
            if self.status != QuizStatus.RESULT:
                raise QuizStateError(f"Cannot advance while quiz is {self.status.value}")
            if self.current_index + 1 < self.total_questions:
                self.current_index += 1
                self.last_result = None
                self.status = QuizStatus.ACTIVE
                return self.status

            self.correct_answers = self.correct_so_far
            self.completed_at = datetime.now(timezone.utc)
            self.status = QuizStatus.COMPLETE
            session_id = self.session_id
            correct = self.correct_answers
            completed_at = self.completed_at

        with self._write_lock:
            if self.store is not None and session_id is not None:
                try:
                    self.store.complete_session(session_id, correct, completed_at)
                except PersistenceError as e:
                    self._report_persistence_failure("complete_session", e)

        summary = self.summary()
        log_interaction(
            event="quiz_complete",
            quiz_id=self.quiz_id,
            session_id=session_id,
            correct_answers=correct,
            total_questions=self.total_questions,
            average_score=summary.average_score if summary else None,
        )
        return QuizStatus.COMPLETE

    def summary(self) -> QuizSummary | None:
        if self.status != QuizStatus.COMPLETE or not self.questions:
            return None
        correct = self.correct_answers or 0
        scores = [r.score for r in self.history]
        return QuizSummary(
            correct_answers=correct,
            total_questions=self.total_questions,
            percentage=round(correct / self.total_questions * 100),
            average_score=round(sum(scores) / len(scores)) if scores else 0,
        )

    # --- lifecycle ---

    def restart(self) -> None:
        """Back to configuration; the next start() opens a fresh session."""
        with self._lock:
            if self.status in (QuizStatus.GENERATING, QuizStatus.GRADING):
                raise QuizStateError(f"Cannot restart while quiz is {self.status.value}")
            if self.status == QuizStatus.ABANDONED:
                raise QuizStateError("Quiz was abandoned")
            self._reset_run()
            self.status = QuizStatus.CONFIGURING

    def abandon(self) -> None:
        """Stop the quiz. Waits for an in-progress database write to finish."""
        with self._write_lock, self._lock:
            if self.status == QuizStatus.ABANDONED:
                return
            previous = self.status
            self.status = QuizStatus.ABANDONED
            session_id = self.session_id
        log_interaction(
            event="quiz_abandoned",
            quiz_id=self.quiz_id,
            session_id=session_id,
            previous_status=previous.value,
        )

    def _report_persistence_failure(self, operation: str, error: Exception) -> None:
        logger.error(
            "Quiz %s: %s failed, results may be lost: %s", self.quiz_id, operation, error
        )
        log_interaction(
            event="persistence_failed",
            quiz_id=self.quiz_id,
            session_id=self.session_id,
            operation=operation,
            error=str(error),
        )


class QuizRegistry:
    """Live quizzes by id. When full, the oldest quiz is abandoned to make room."""

    def __init__(self, max_size: int | None = None):
        self.max_size = max_size or settings.max_active_quizzes
        self._quizzes: "OrderedDict[str, QuizController]" = OrderedDict()
        self._lock = threading.Lock()

    def add(self, controller: QuizController) -> None:
        evicted: list[QuizController] = []
        with self._lock:
            self._quizzes[controller.quiz_id] = controller
            while len(self._quizzes) > self.max_size:
                _, oldest = self._quizzes.popitem(last=False)
                evicted.append(oldest)
        for quiz in evicted:
            quiz.abandon()

    def get(self, quiz_id: str) -> QuizController | None:
        with self._lock:
            return self._quizzes.get(quiz_id)

    def remove(self, quiz_id: str) -> QuizController | None:
        with self._lock:
            controller = self._quizzes.pop(quiz_id, None)
        if controller is not None:
            controller.abandon()
        return controller

    def __len__(self) -> int:
        with self._lock:
            return len(self._quizzes)


_registry = QuizRegistry()


def get_registry() -> QuizRegistry:
    return _registry
