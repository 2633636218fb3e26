"""Free-text answer grading.

The LLM grades leniently and reports a 0-100 score. Pass/fail is always
recomputed from the score (>= PASS_SCORE), whatever boolean the model sent.
When the call fails or the reply cannot be parsed, a deterministic
case-insensitive comparison grades the answer instead, so every submission
gets a grade.
"""

import logging
import math

from tarjama.config import settings
from tarjama.schemas import GradeOutcome
from tarjama.services.llm import LLMClient, LLMError, MalformedResponse, extract_json

logger = logging.getLogger(__name__)

PASS_SCORE = 70

GRADING_SYSTEM_PROMPT = """\
You are a language learning assistant grading translation exercises. \
Be flexible and generous, and judge meaning rather than exact wording. \
Respond with a single JSON object only."""


def build_grading_prompt(
    sentence: str,
    correct_translation: str,
    user_answer: str,
    source_language: str,
    target_language: str,
) -> str:
    return f"""Original sentence ({source_language}):
"{sentence}"

Expected translation ({target_language}):
"{correct_translation}"

Student's answer:
"{user_answer}"

Grade this translation. Be FLEXIBLE and GENEROUS:
- Accept synonyms and alternative phrasings that convey the same meaning
- Accept minor spelling mistakes if the word is still recognizable
- Accept different but valid grammatical structures
- Accept informal/formal variations
- Focus on meaning preservation, not exact wording

Return ONLY a JSON object with this exact format:
{{
  "isCorrect": true or false,
  "score": number between 0 and 100,
  "feedback": "Brief explanation of the grade",
  "suggestedCorrection": "Only if incorrect, show a correct version"
}}

A score of {PASS_SCORE} or higher is considered correct for learning purposes."""


def _normalize_text(text: str) -> str:
    return text.casefold().strip()


def fallback_grade(user_answer: str, correct_translation: str) -> GradeOutcome:
    """Exact comparison after case-folding and trimming."""
    is_correct = _normalize_text(user_answer) == _normalize_text(correct_translation)
    return GradeOutcome(
        is_correct=is_correct,
        score=100 if is_correct else 0,
        feedback="Correct!" if is_correct else "Not quite right.",
        suggested_correction=None if is_correct else correct_translation,
        fallback=True,
    )


def normalize_grade(raw: dict) -> GradeOutcome:
    """Turn a parsed grading reply into a GradeOutcome.

    Raises MalformedResponse when the score is missing or not a number.
    """
    score = raw.get("score")
    if isinstance(score, bool) or score is None:
        raise MalformedResponse(f"Grading reply has no numeric score: {score!r}")
    if isinstance(score, int) and not 0 <= score <= 100:
        score = 100 if score > 100 else 0
        logger.warning("Grading score outside [0, 100], clamping to %s", score)
    try:
        value = float(score)
    except (TypeError, ValueError, OverflowError):
        raise MalformedResponse(f"Grading reply has no numeric score: {score!r}")
    if math.isnan(value):
        raise MalformedResponse("Grading reply score is NaN")

    if value < 0 or value > 100:
        logger.warning("Grading score %s outside [0, 100], clamping", score)
        value = min(100.0, max(0.0, value))
    final_score = int(round(value))

    feedback = raw.get("feedback")
    if not isinstance(feedback, str):
        feedback = ""
    suggestion = raw.get("suggestedCorrection")
    if not isinstance(suggestion, str) or not suggestion.strip():
        suggestion = None

    return GradeOutcome(
        is_correct=final_score >= PASS_SCORE,
        score=final_score,
        feedback=feedback.strip(),
        suggested_correction=suggestion,
    )


def grade_answer(
    llm: LLMClient | None,
    sentence: str,
    correct_translation: str,
    user_answer: str,
    source_language: str,
    target_language: str,
) -> GradeOutcome:
    """Grade one answer; never raises for upstream problems."""
    if llm is None:
        return fallback_grade(user_answer, correct_translation)

    prompt = build_grading_prompt(
        sentence, correct_translation, user_answer, source_language, target_language
    )
    try:
        text = llm.complete(
            prompt=prompt,
            system_prompt=GRADING_SYSTEM_PROMPT,
            max_tokens=settings.grading_max_tokens,
            temperature=0.0,
            task_type="grade_answer",
        )
        return normalize_grade(extract_json(text, dict))
    except LLMError as e:
        logger.warning("LLM grading failed, using exact comparison: %s", e)
        return fallback_grade(user_answer, correct_translation)
