import random

import pytest

from conftest import make_words
from tarjama.schemas import VocabularyItem
from tarjama.services.word_selector import clamp_question_count, select_words


@pytest.mark.parametrize("requested,available", [
    (1, 1), (3, 10), (5, 5), (10, 3), (20, 20), (7, 1),
])
def test_subset_size_is_min_of_requested_and_available(requested, available):
    words = make_words(available)
    selected = select_words(words, requested, random.Random(requested * 31 + available))
    assert len(selected) == min(requested, available)
    ids = [w.id for w in selected]
    assert len(ids) == len(set(ids))
    assert set(ids) <= {w.id for w in words}


def test_empty_list_rejected():
    with pytest.raises(ValueError):
        select_words([], 5)


def test_non_positive_count_rejected():
    with pytest.raises(ValueError):
        select_words(make_words(3), 0)


def test_duplicate_ids_never_selected_twice():
    dup = VocabularyItem(id="w0", source_term="again", target_term="again")
    selected = select_words(make_words(3) + [dup], 10, random.Random(1))
    assert sorted(w.id for w in selected) == ["w0", "w1", "w2"]


def test_order_is_randomized():
    words = make_words(10)
    orders = {
        tuple(w.id for w in select_words(words, 10, random.Random(seed)))
        for seed in range(20)
    }
    assert len(orders) > 1


def test_every_word_can_be_selected():
    words = make_words(6)
    seen = set()
    rng = random.Random(7)
    for _ in range(200):
        seen.update(w.id for w in select_words(words, 2, rng))
    assert seen == {w.id for w in words}


class TestClampQuestionCount:
    def test_clamped_to_available(self):
        assert clamp_question_count(10, 4, 20) == 4

    def test_clamped_to_maximum(self):
        assert clamp_question_count(50, 100, 20) == 20

    def test_minimum_one(self):
        assert clamp_question_count(0, 5, 20) == 1

    def test_none_means_as_many_as_allowed(self):
        assert clamp_question_count(None, 8, 20) == 8

    def test_no_words(self):
        with pytest.raises(ValueError):
            clamp_question_count(5, 0, 20)
