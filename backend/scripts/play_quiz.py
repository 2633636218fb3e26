#!/usr/bin/env python3
"""Play a sentence translation quiz in the terminal.

Reads a deck exported as JSON (a list of words with id, word_type,
source_term, target_term, details) and runs the full quiz loop against the
configured LLM providers. Nothing is written to the database.

Usage:
    python scripts/play_quiz.py deck.json --source Arabic --target English
    python scripts/play_quiz.py deck.json --source Arabic --target English \
        --direction target_to_source --count 10 --model gemini
"""

import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from tarjama.schemas import Direction, VocabularyItem
from tarjama.services.llm import LLMClient, LLMConfigError
from tarjama.services.quiz_session import QuizController, QuizStatus
from tarjama.services.sentence_generator import GenerationError


def load_deck(path: Path) -> list[VocabularyItem]:
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("words", [])
    return [
        VocabularyItem(
            id=str(w["id"]),
            source_term=w["source_term"],
            target_term=w["target_term"],
            word_type=w.get("word_type") or "other",
            details=w.get("details"),
        )
        for w in data
    ]


def main():
    parser = argparse.ArgumentParser(description="Terminal sentence translation quiz")
    parser.add_argument("deck", type=Path, help="JSON deck file")
    parser.add_argument("--source", required=True, help="Source language name")
    parser.add_argument("--target", required=True, help="Target language name")
    parser.add_argument(
        "--direction",
        choices=[d.value for d in Direction],
        default=Direction.SOURCE_TO_TARGET.value,
    )
    parser.add_argument("--count", type=int, default=5, help="Number of sentences")
    parser.add_argument("--model", default=None, help="Only use this provider (anthropic, gemini, openai)")
    args = parser.parse_args()

    words = load_deck(args.deck)
    if not words:
        print(f"No words in {args.deck}")
        sys.exit(1)

    try:
        llm = LLMClient(model_override=args.model)
    except LLMConfigError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    quiz = QuizController(
        user_id="cli",
        deck_id=args.deck.stem,
        words=words,
        source_language=args.source,
        target_language=args.target,
        llm=llm,
    )
    quiz.configure(Direction(args.direction), args.count)

    print(f"Generating {quiz.question_count} sentences...")
    try:
        quiz.start()
    except GenerationError as e:
        print(f"Failed to generate quiz: {e}")
        sys.exit(1)

    while quiz.status != QuizStatus.COMPLETE:
        question = quiz.current_question()
        print(f"\n[{quiz.current_index + 1}/{quiz.total_questions}] Word: {question.original_word}")
        print(f"  {question.sentence}")
        answer = ""
        while not answer.strip():
            answer = input(f"Translate to {quiz.answer_language}: ")
        result = quiz.submit_answer(answer)

        mark = "✓" if result.is_correct else "✗"
        print(f"  {mark} {result.score}% {result.feedback}")
        if result.suggested_correction:
            print(f"  Expected: {result.suggested_correction}")
        quiz.advance()

    summary = quiz.summary()
    print(f"\n{summary.correct_answers}/{summary.total_questions} correct "
          f"({summary.percentage}%), average score {summary.average_score}%")


if __name__ == "__main__":
    main()
