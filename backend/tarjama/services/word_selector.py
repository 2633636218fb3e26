"""Word selection for a quiz session.

Every word in the deck has the same chance of being picked: the list is
shuffled uniformly and the first `count` words are taken. Order of the
prefix only seeds generation.
"""

import random

from tarjama.schemas import VocabularyItem


def clamp_question_count(requested: int | None, available: int, maximum: int) -> int:
    """Clamp a requested question count into [1, min(available, maximum)]."""
    if available < 1:
        raise ValueError("Deck has no words to quiz")
    upper = min(available, maximum)
    if requested is None:
        return upper
    return max(1, min(requested, upper))


def select_words(
    words: list[VocabularyItem],
    count: int,
    rng: random.Random | None = None,
) -> list[VocabularyItem]:
    """Pick min(count, len(words)) distinct words in random order."""
    if not words:
        raise ValueError("Cannot select words from an empty list")
    if count < 1:
        raise ValueError(f"count must be positive, got {count}")

    # Duplicate ids would repeat a question within one session
    unique: dict[str, VocabularyItem] = {}
    for w in words:
        unique.setdefault(w.id, w)
    pool = list(unique.values())

    rng = rng or random
    shuffled = rng.sample(pool, len(pool))
    return shuffled[:min(count, len(pool))]
