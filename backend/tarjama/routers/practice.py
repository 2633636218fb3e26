"""Stateless sentence generation and grading endpoints.

Same pipeline the quiz controller uses, for clients that keep their own
quiz state.
"""

from fastapi import APIRouter, Depends, HTTPException

from tarjama.schemas import (
    GenerateSentencesIn,
    GenerateSentencesOut,
    GradeAnswerIn,
    GradeOutcome,
)
from tarjama.services.answer_grader import grade_answer
from tarjama.services.llm import LLMClient
from tarjama.services.sentence_generator import GenerationError, generate_questions
from tarjama.services.word_selector import select_words
from tarjama.routers.quiz import get_llm

router = APIRouter(prefix="/api", tags=["practice"])


@router.post("/generate-sentences", response_model=GenerateSentencesOut)
def generate_sentences(body: GenerateSentencesIn, llm: LLMClient = Depends(get_llm)):
    if not body.words:
        raise HTTPException(400, "No words provided")
    selected = select_words(body.words, body.count)
    try:
        questions = generate_questions(
            llm, selected, body.source_language, body.target_language, body.direction
        )
    except GenerationError:
        raise HTTPException(502, "Failed to generate sentences")
    return GenerateSentencesOut(sentences=questions)


@router.post("/grade-answer", response_model=GradeOutcome)
def grade(body: GradeAnswerIn, llm: LLMClient = Depends(get_llm)):
    if not body.sentence.strip() or not body.correct_translation.strip() or not body.user_answer.strip():
        raise HTTPException(400, "Missing required fields")
    return grade_answer(
        llm,
        body.sentence,
        body.correct_translation,
        body.user_answer.strip(),
        body.source_language,
        body.target_language,
    )
