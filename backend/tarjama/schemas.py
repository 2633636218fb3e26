from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field


class Direction(str, Enum):
    SOURCE_TO_TARGET = "source_to_target"
    TARGET_TO_SOURCE = "target_to_source"


class VocabularyItem(BaseModel):
    id: str
    source_term: str
    target_term: str
    word_type: str = "other"
    details: Optional[dict[str, Any]] = None
    model_config = {"from_attributes": True, "frozen": True}

    def term_for(self, direction: Direction) -> str:
        if direction == Direction.SOURCE_TO_TARGET:
            return self.source_term
        return self.target_term


class GeneratedQuestion(BaseModel):
    word_id: str
    original_word: str
    sentence: str
    translation: str
    model_config = {"frozen": True}


class GradeOutcome(BaseModel):
    is_correct: bool
    score: int = Field(ge=0, le=100)
    feedback: str
    suggested_correction: Optional[str] = None
    fallback: bool = False


class AnswerRecord(BaseModel):
    question_index: int
    word_id: str
    user_answer: str
    is_correct: bool
    score: int
    feedback: str
    model_config = {"frozen": True}


class QuizSummary(BaseModel):
    correct_answers: int
    total_questions: int
    percentage: int
    average_score: int


# --- HTTP ---

class QuizCreateIn(BaseModel):
    user_id: str
    deck_id: str


class QuizStartIn(BaseModel):
    direction: Direction = Direction.SOURCE_TO_TARGET
    question_count: Optional[int] = Field(None, ge=1)


class QuizAnswerIn(BaseModel):
    answer: str


class QuestionOut(BaseModel):
    index: int
    word_id: str
    original_word: str
    sentence: str
    sentence_language: str
    answer_language: str
    rtl: bool = False


class QuizStateOut(BaseModel):
    quiz_id: str
    session_id: Optional[str] = None
    status: str
    deck_id: str
    direction: Direction
    question_count: int
    available_words: int
    total_questions: int = 0
    current_index: int = 0
    correct_so_far: int = 0
    question: Optional[QuestionOut] = None
    last_result: Optional[GradeOutcome] = None
    answers: list[AnswerRecord] = []
    summary: Optional[QuizSummary] = None
    completed_at: Optional[datetime] = None


class GenerateSentencesIn(BaseModel):
    words: list[VocabularyItem]
    count: int = Field(ge=1)
    source_language: str
    target_language: str
    direction: Direction = Direction.SOURCE_TO_TARGET


class GenerateSentencesOut(BaseModel):
    sentences: list[GeneratedQuestion]


class GradeAnswerIn(BaseModel):
    sentence: str
    correct_translation: str
    user_answer: str
    source_language: str
    target_language: str
