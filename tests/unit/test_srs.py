"""Unit tests for the vocabulary bank and the fixed-stage review schedule."""

from datetime import datetime, timedelta, timezone

import pytest

from sprachheld.srs import (
    MAX_STAGE,
    SRS_INTERVALS_DAYS,
    add_word,
    is_due,
    mark_word_mastered,
    next_review_interval,
    problem_words,
    record_answer,
    update_word,
    words_for_review,
    words_for_topic,
)
from sprachheld.schemas import VocabularyWord


@pytest.fixture
def bank(fresh_data, now):
    data = add_word(fresh_data, "Guten Tag", "Добрый день", "A0_greetings", "A0", "Guten Tag, Frau Müller!", now)
    data = add_word(data, "die Mutter", "мать", "A0_family", "A0", now=now + timedelta(seconds=1))
    return data


class TestAddWord:
    def test_new_word_defaults(self, bank, now):
        word = bank.vocabulary_bank[0]
        assert word.id == f"Guten-Tag-A0_greetings-{int(now.timestamp() * 1000)}"
        assert word.srs_stage == 0
        assert word.consecutive_correct_answers == 0
        assert word.error_count == 0
        assert word.next_review_date is None
        assert is_due(word, now)

    def test_duplicates_are_ignored_case_insensitively(self, bank, now):
        same = add_word(bank, "guten tag", "Добрый день", "A0_greetings", "A0", now=now)
        assert same is bank
        other_topic = add_word(bank, "guten tag", "Добрый день", "A1_food", "A1", now=now)
        assert len(other_topic.vocabulary_bank) == 3

    def test_requires_both_sides(self, fresh_data):
        with pytest.raises(ValueError):
            add_word(fresh_data, "  ", "мать", "A0_family", "A0")


class TestSchedule:
    def test_interval_table(self):
        assert SRS_INTERVALS_DAYS == (1, 3, 7, 14, 30, 90)
        assert next_review_interval(0) == timedelta(days=1)
        assert next_review_interval(99) == timedelta(days=90)

    def test_correct_answer_advances_stage(self, bank, now):
        word_id = bank.vocabulary_bank[0].id
        data = record_answer(bank, word_id, True, now)
        word = data.vocabulary_bank[0]
        assert word.srs_stage == 1
        assert word.consecutive_correct_answers == 1
        assert word.last_tested_date == now
        assert word.next_review_date == now + timedelta(days=3)
        assert not is_due(word, now + timedelta(days=2))
        assert is_due(word, now + timedelta(days=3))

    def test_wrong_answer_resets_stage(self, bank, now):
        word_id = bank.vocabulary_bank[0].id
        data = record_answer(bank, word_id, True, now)
        data = record_answer(data, word_id, False, now)
        word = data.vocabulary_bank[0]
        assert word.srs_stage == 0
        assert word.consecutive_correct_answers == 0
        assert word.error_count == 1
        assert word.next_review_date == now + timedelta(days=1)

        data = record_answer(data, word_id, True, now)
        assert data.vocabulary_bank[0].error_count == 0

    def test_stage_is_capped(self, bank, now):
        word_id = bank.vocabulary_bank[0].id
        data = bank
        for _ in range(10):
            data = record_answer(data, word_id, True, now)
        assert data.vocabulary_bank[0].srs_stage == MAX_STAGE

    def test_unknown_word(self, bank):
        with pytest.raises(KeyError):
            record_answer(bank, "missing", True)
        with pytest.raises(KeyError):
            mark_word_mastered(bank, "missing")

    def test_mark_mastered(self, bank, now):
        word_id = bank.vocabulary_bank[1].id
        data = record_answer(bank, word_id, False, now)
        data = mark_word_mastered(data, word_id, now)
        word = data.vocabulary_bank[1]
        assert word.consecutive_correct_answers == 3
        assert word.error_count == 0
        assert word.srs_stage == 3
        assert word.next_review_date == now + timedelta(days=14)


class TestQueries:
    def test_words_for_topic(self, bank):
        assert [w.german for w in words_for_topic(bank, "A0_family")] == ["die Mutter"]

    def test_review_orders_tested_words_first(self, bank, now):
        first, second = bank.vocabulary_bank
        data = record_answer(bank, second.id, False, now)

        review = words_for_review(data, now)
        assert [w.id for w in review] == [second.id, first.id]

    def test_mastered_words_leave_review_until_due(self, bank, now):
        word_id = bank.vocabulary_bank[0].id
        data = mark_word_mastered(bank, word_id, now)

        assert word_id not in [w.id for w in words_for_review(data, now + timedelta(days=1))]
        assert word_id in [w.id for w in words_for_review(data, now + timedelta(days=14))]

    def test_problem_words(self, bank, now):
        word_id = bank.vocabulary_bank[0].id
        data = record_answer(bank, word_id, False, now)
        assert [w.id for w in problem_words(data)] == [word_id]
        data = mark_word_mastered(data, word_id, now)
        assert problem_words(data) == []

    def test_update_word_unknown_is_ignored(self, bank):
        ghost = bank.vocabulary_bank[0].model_copy(update={"id": "ghost"})
        assert update_word(bank, ghost) is bank

    def test_naive_dates_are_read_as_utc(self, bank, now):
        stored = bank.vocabulary_bank[0].model_dump(mode="json")
        stored.update(last_tested_date="2026-02-01T00:00:00", next_review_date="2026-02-02T00:00:00")
        word = VocabularyWord.model_validate(stored)
        assert word.next_review_date == datetime(2026, 2, 2, tzinfo=timezone.utc)

        data = update_word(bank, word)
        assert is_due(word, now)
        assert [w.id for w in words_for_review(data, now)][0] == word.id
