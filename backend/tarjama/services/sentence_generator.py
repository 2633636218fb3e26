"""Practice sentence generation.

One LLM call produces a sentence per selected word. The response is free
text; the first JSON array in it is validated as a whole batch. Any problem
(no array, wrong length, bad or repeated index, empty fields) rejects the
entire batch: dropping a single question would desynchronize scoring.
"""

import logging

from tarjama.config import settings
from tarjama.schemas import Direction, GeneratedQuestion, VocabularyItem
from tarjama.services.llm import LLMClient, LLMError, extract_json

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    pass


class GenerationValidationError(GenerationError):
    pass


RTL_LANGUAGES = ("arabic", "hebrew", "persian", "farsi", "urdu")

DIACRITIC_RULES = {
    "arabic": (
        "full tashkeel (harakat) on ALL Arabic words: every letter carries its vowel mark "
        "(fatha, damma, kasra, sukun, shadda, tanween)"
    ),
    "persian": (
        "full e'rab (harakat) on ALL Persian words: zabar, zir, pish, tashdid and sukun "
        "wherever they apply"
    ),
    "farsi": (
        "full e'rab (harakat) on ALL Persian words: zabar, zir, pish, tashdid and sukun "
        "wherever they apply"
    ),
    "urdu": (
        "full e'rab (harakat) on ALL Urdu words: zabar, zer, pesh, tashdid and jazm "
        "wherever they apply"
    ),
    "hebrew": "full niqqud (vowel pointing, including dagesh) on ALL Hebrew words",
}

SENTENCE_SYSTEM_PROMPT = """\
You are a language tutor writing practice sentences for vocabulary learners. \
Each sentence must be short, natural, grammatically correct and use its target \
word in a clear everyday context. Translations must be natural, not word-for-word. \
Respond with a JSON array only, no prose and no markdown."""


def is_rtl_language(language: str) -> bool:
    lang = language.lower()
    return any(name in lang for name in RTL_LANGUAGES)


def diacritic_instruction(language: str) -> str | None:
    """Return the vowel-marking requirement for a diacritic-sensitive language, if any."""
    lang = language.lower()
    for name, rule in DIACRITIC_RULES.items():
        if name in lang:
            return f"CRITICAL: Include {rule}. This is essential for learners."
    return None


def sentence_languages(
    direction: Direction, source_language: str, target_language: str
) -> tuple[str, str]:
    """Return (sentence_language, answer_language) for a direction."""
    if direction == Direction.SOURCE_TO_TARGET:
        return source_language, target_language
    return target_language, source_language


def build_generation_prompt(
    words: list[VocabularyItem],
    source_language: str,
    target_language: str,
    direction: Direction,
) -> str:
    sentence_language, translation_language = sentence_languages(
        direction, source_language, target_language
    )
    word_list = "\n".join(
        f'{i}. "{w.term_for(direction)}" ({w.word_type})' for i, w in enumerate(words)
    )

    rules = [
        "Use simple, everyday vocabulary beyond the target word",
        "Keep sentences clear and grammatically correct (5-10 words)",
        "Make sentences natural and useful for language learners",
        "The translation should be natural, not word-for-word literal",
        f"Exactly one sentence per word: {len(words)} items, each wordIndex used once",
    ]
    diacritics = diacritic_instruction(sentence_language)
    if diacritics:
        rules.append(diacritics)
    rules.append("Return ONLY the JSON array, no other text")
    rule_lines = "\n".join(f"- {r}" for r in rules)

    return f"""Create {len(words)} simple, beginner-friendly sentences using the following \
{sentence_language} words. Each sentence should use its word in a clear context.

Words (wordIndex. "word" (word type)):
{word_list}

For each sentence, also provide the accurate translation in {translation_language}.

Return a JSON array with exactly this format:
[
  {{
    "wordIndex": 0,
    "sentence": "The sentence in {sentence_language}",
    "translation": "The translation in {translation_language}"
  }}
]

Rules:
{rule_lines}"""


def _parse_index(item: dict) -> int:
    raw = item.get("wordIndex", item.get("index"))
    if isinstance(raw, bool):
        raise GenerationValidationError(f"wordIndex must be an integer, got {raw!r}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdecimal():
        return int(raw.strip())
    raise GenerationValidationError(f"wordIndex must be an integer, got {raw!r}")


def parse_generated_sentences(
    raw_items: list,
    words: list[VocabularyItem],
    direction: Direction,
) -> list[GeneratedQuestion]:
    """Validate a parsed response array and join it back to the selected words."""
    if len(raw_items) != len(words):
        raise GenerationValidationError(
            f"Expected {len(words)} sentences, got {len(raw_items)}"
        )

    questions: list[GeneratedQuestion] = []
    seen: set[int] = set()
    for item in raw_items:
        if not isinstance(item, dict):
            raise GenerationValidationError(f"Sentence entry is not an object: {item!r}")
        index = _parse_index(item)
        if not 0 <= index < len(words):
            raise GenerationValidationError(
                f"wordIndex {index} out of range for {len(words)} words"
            )
        if index in seen:
            raise GenerationValidationError(f"wordIndex {index} used more than once")
        seen.add(index)

        sentence = item.get("sentence")
        translation = item.get("translation")
        if not isinstance(sentence, str) or not sentence.strip():
            raise GenerationValidationError(f"Missing sentence for wordIndex {index}")
        if not isinstance(translation, str) or not translation.strip():
            raise GenerationValidationError(f"Missing translation for wordIndex {index}")

        word = words[index]
        questions.append(GeneratedQuestion(
            word_id=word.id,
            original_word=word.term_for(direction),
            sentence=sentence.strip(),
            translation=translation.strip(),
        ))
    return questions


def generate_questions(
    llm: LLMClient,
    words: list[VocabularyItem],
    source_language: str,
    target_language: str,
    direction: Direction,
) -> list[GeneratedQuestion]:
    """Generate one question per selected word, in response order.

    Raises GenerationError for upstream failures, malformed output and
    structurally inconsistent batches alike.
    """
    if not words:
        raise GenerationError("No words selected for generation")

    prompt = build_generation_prompt(words, source_language, target_language, direction)
    try:
        text = llm.complete(
            prompt=prompt,
            system_prompt=SENTENCE_SYSTEM_PROMPT,
            max_tokens=settings.generation_max_tokens,
            temperature=0.7,
            task_type="sentence_gen",
        )
        raw_items = extract_json(text, list)
        questions = parse_generated_sentences(raw_items, words, direction)
    except GenerationError as e:
        logger.warning("Rejected generated batch for %d words: %s", len(words), e)
        raise
    except LLMError as e:
        logger.warning("Sentence generation failed for %d words: %s", len(words), e)
        raise GenerationError(f"Failed to generate sentences: {e}") from e

    logger.info("Generated %d questions (%s)", len(questions), direction.value)
    return questions
