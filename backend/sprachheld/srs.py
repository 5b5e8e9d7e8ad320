from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import List, Optional

from .catalog import MASTERED_STREAK
from .schemas import UserData, VocabularyWord, utcnow


# Day intervals indexed by SRS stage
SRS_INTERVALS_DAYS = (1, 3, 7, 14, 30, 90)
MAX_STAGE = len(SRS_INTERVALS_DAYS) - 1


def next_review_interval(stage: int) -> timedelta:
    stage = max(0, min(stage, MAX_STAGE))
    return timedelta(days=SRS_INTERVALS_DAYS[stage])


def is_due(word: VocabularyWord, now: Optional[datetime] = None) -> bool:
    if word.next_review_date is None:
        return True
    return word.next_review_date <= (now or utcnow())


def is_learned(word: VocabularyWord) -> bool:
    return word.error_count == 0 and word.consecutive_correct_answers >= MASTERED_STREAK


def _find(data: UserData, word_id: str) -> int:
    for index, word in enumerate(data.vocabulary_bank):
        if word.id == word_id:
            return index
    return -1


def add_word(
    data: UserData,
    german: str,
    russian: str,
    topic: str,
    level: str,
    example_sentence: Optional[str] = None,
    now: Optional[datetime] = None,
) -> UserData:
    german = (german or "").strip()
    if not german or not (russian or "").strip():
        raise ValueError("german and russian are required")
    for word in data.vocabulary_bank:
        if word.german.lower() == german.lower() and word.topic == topic and word.level == level:
            return data
    now = now or utcnow()
    slug = re.sub(r"\s+", "-", german)
    word = VocabularyWord(
        id=f"{slug}-{topic}-{int(now.timestamp() * 1000)}",
        german=german,
        russian=russian.strip(),
        example_sentence=example_sentence,
        topic=topic,
        level=level,
    )
    updated = data.model_copy(deep=True)
    updated.vocabulary_bank.append(word)
    updated.settings.last_activity_at = now
    return updated


def update_word(data: UserData, word: VocabularyWord, now: Optional[datetime] = None) -> UserData:
    index = _find(data, word.id)
    if index == -1:
        return data
    updated = data.model_copy(deep=True)
    updated.vocabulary_bank[index] = word.model_copy(deep=True)
    updated.settings.last_activity_at = now or utcnow()
    return updated


def record_answer(data: UserData, word_id: str, correct: bool, now: Optional[datetime] = None) -> UserData:
    index = _find(data, word_id)
    if index == -1:
        raise KeyError(word_id)
    now = now or utcnow()
    word = data.vocabulary_bank[index].model_copy(deep=True)
    if correct:
        word.consecutive_correct_answers += 1
        word.error_count = max(0, word.error_count - 1)
        word.srs_stage = min(word.srs_stage + 1, MAX_STAGE)
    else:
        word.consecutive_correct_answers = 0
        word.error_count += 1
        word.srs_stage = 0
    word.last_tested_date = now
    word.next_review_date = now + next_review_interval(word.srs_stage)
    return update_word(data, word, now)


def mark_word_mastered(data: UserData, word_id: str, now: Optional[datetime] = None) -> UserData:
    index = _find(data, word_id)
    if index == -1:
        raise KeyError(word_id)
    now = now or utcnow()
    word = data.vocabulary_bank[index].model_copy(deep=True)
    word.consecutive_correct_answers = MASTERED_STREAK
    word.error_count = 0
    word.srs_stage = min(MASTERED_STREAK, MAX_STAGE)
    word.last_tested_date = now
    word.next_review_date = now + next_review_interval(word.srs_stage)
    return update_word(data, word, now)


def words_for_topic(data: UserData, topic_id: str) -> List[VocabularyWord]:
    return [w for w in data.vocabulary_bank if w.topic == topic_id]


def words_for_review(data: UserData, now: Optional[datetime] = None) -> List[VocabularyWord]:
    now = now or utcnow()
    due = [w for w in data.vocabulary_bank if not is_learned(w) or is_due(w, now)]
    tested = sorted((w for w in due if w.last_tested_date is not None), key=lambda w: w.last_tested_date)
    untested = [w for w in due if w.last_tested_date is None]
    return tested + untested


def problem_words(data: UserData) -> List[VocabularyWord]:
    return [w for w in data.vocabulary_bank if w.error_count > 0 and w.consecutive_correct_answers < MASTERED_STREAK]
