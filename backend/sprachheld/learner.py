"""Learner orchestration.

``Learner`` owns the persisted ``UserData`` document of one local profile,
applies the pure progress/vocabulary operations to it and merges the
results of the AI flows back into it. AI failures never propagate out of
the ``get_*``/``evaluate_*`` coroutines: they are logged and ``None`` is
returned so callers can fall back to locally computed state.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy.orm import Session

from . import progress, srs
from .catalog import ALL_MODULE_TYPES, DEFAULT_TOPICS, MODULE_NAMES_RU, PASS_SCORE
from .flows import evaluate_user_response, generate_lesson_content, recommend_lesson
from .gemini_client import GeminiClient
from .progress import Continuation
from .retry import is_transient
from .schemas import (
    EvaluationRequest,
    EvaluationResult,
    LessonContent,
    LessonRequest,
    Recommendation,
    RecommendationRequest,
    UserData,
    VocabularyWord,
    WeaknessContextSummary,
    WeaknessSummary,
)
from .settings import settings
from .store import load_user_data, save_user_data


logger = logging.getLogger(__name__)

MAX_PROGRESS_ENTRIES = 10
MAX_WEAK_AREAS = 10

_EPOCH = datetime.fromtimestamp(0, timezone.utc)


class Dashboard(BaseModel):
    recommendation: Optional[Recommendation] = None
    # Topic to open: the recommended one when it can be matched, else the next uncompleted one
    topic_id: Optional[str] = None
    level: str
    current_level_progress: int
    overall_progress: float


def build_recommendation_request(data: UserData) -> RecommendationRequest:
    entries: List[Tuple[str, int, datetime, str]] = []
    for level, level_data in data.progress.items():
        for topic_id, topic in level_data.topics.items():
            passed = 0
            last_activity: Optional[datetime] = None
            for module_type in ALL_MODULE_TYPES:
                module = topic.modules.get(module_type)
                if module is None or module.score is None:
                    continue
                if module.score >= PASS_SCORE:
                    passed += 1
                if module.last_attempt_date and (last_activity is None or module.last_attempt_date > last_activity):
                    last_activity = module.last_attempt_date
            percent = round(passed / len(ALL_MODULE_TYPES) * 100)
            entries.append((f"{level} - {topic.name or topic_id}", percent, last_activity or _EPOCH, level))

    entries.sort(key=lambda e: (e[3] != data.current_level, -e[2].timestamp()))
    user_progress = {name: percent for name, percent, _, _ in entries[:MAX_PROGRESS_ENTRIES]}

    weak_areas: List[str] = []
    current = data.current_level
    current_data = data.progress.get(current)
    if current_data is not None:
        for topic in current_data.topics.values():
            if progress.is_topic_completed(data, current, topic.id):
                continue
            name = topic.name or topic.id
            for module_type in ALL_MODULE_TYPES:
                module = topic.modules.get(module_type)
                module_name = MODULE_NAMES_RU[module_type]
                if module is not None and module.score is not None and module.score < PASS_SCORE:
                    weak_areas.append(
                        f"Низкий результат ({module.score}%) по модулю '{module_name}' в теме '{name}' (текущий уровень {current})."
                    )
                elif module is None:
                    weak_areas.append(f"Модуль '{module_name}' в теме '{name}' (текущий уровень {current}) не начат.")

    for level, level_data in data.progress.items():
        if level == current:
            continue
        for topic in level_data.topics.values():
            if progress.is_topic_completed(data, level, topic.id):
                continue
            for module_type in ALL_MODULE_TYPES:
                module = topic.modules.get(module_type)
                if module is not None and module.score is not None and module.score < PASS_SCORE:
                    weak_areas.append(
                        f"Низкий результат ({module.score}%) по модулю '{MODULE_NAMES_RU[module_type]}' "
                        f"в теме '{topic.name or topic.id}' (уровень {level})."
                    )

    weaknesses = {
        tag: WeaknessSummary(
            count=detail.count,
            last_encountered_date=detail.last_encountered_date.isoformat(),
            example_contexts=[
                WeaknessContextSummary(level=ctx.level, topic_name=ctx.topic_name, module_id=ctx.module_id)
                for ctx in detail.example_contexts
            ],
        )
        for tag, detail in data.grammar_weaknesses.items()
    }

    return RecommendationRequest(
        user_level=current,
        user_progress=user_progress,
        weak_areas=list(dict.fromkeys(weak_areas))[:MAX_WEAK_AREAS],
        preferred_topics=list(data.profile.preferred_topics),
        grammar_weaknesses=weaknesses,
    )


def recommended_topic_id(data: UserData, recommendation: Optional[Recommendation]) -> Optional[str]:
    level = data.current_level
    if recommendation is not None:
        for topic in DEFAULT_TOPICS.get(level, []):
            if topic["name"] == recommendation.topic:
                return topic["id"]
        for custom in data.custom_topics:
            if custom.id.startswith(f"{level}_custom_") and custom.name == recommendation.topic:
                return custom.id
    return progress.next_topic_id(data)


class Learner:
    def __init__(self, db: Session, profile_key: Optional[str] = None, *, client: Optional[GeminiClient] = None) -> None:
        self.db = db
        self.profile_key = profile_key or settings.profile_key
        # None: each AI call opens (and closes) its own GeminiClient
        self.client = client
        self._data: Optional[UserData] = None

    @property
    def data(self) -> UserData:
        if self._data is None:
            self._data = load_user_data(self.db, self.profile_key)
        return self._data

    def _commit(self, data: UserData) -> UserData:
        save_user_data(self.db, self.profile_key, data)
        self._data = data
        return data

    # ---- progress ----

    def reset_progress(self) -> UserData:
        return self._commit(progress.reset_progress())

    def update_user_data(self, updates: Dict[str, Any]) -> UserData:
        return self._commit(progress.update_user_data(self.data, updates))

    def update_module_progress(self, level: str, topic_id: str, module: str, score: int) -> Tuple[UserData, Continuation]:
        data = self._commit(progress.update_module_progress(self.data, level, topic_id, module, score))
        return data, progress.continuation_after_module(data, level, topic_id, module)

    def add_custom_topic(self, name: str) -> UserData:
        return self._commit(progress.add_custom_topic(self.data, name))

    # ---- vocabulary ----

    def add_word(self, german: str, russian: str, topic: str, level: str, example_sentence: Optional[str] = None) -> UserData:
        return self._commit(srs.add_word(self.data, german, russian, topic, level, example_sentence))

    def update_word(self, word: VocabularyWord) -> UserData:
        if not any(w.id == word.id for w in self.data.vocabulary_bank):
            raise KeyError(word.id)
        return self._commit(srs.update_word(self.data, word))

    def record_word_answer(self, word_id: str, correct: bool) -> UserData:
        return self._commit(srs.record_answer(self.data, word_id, correct))

    def mark_word_mastered(self, word_id: str) -> UserData:
        return self._commit(srs.mark_word_mastered(self.data, word_id))

    # ---- AI ----

    async def get_topic_lesson_content(self, level: str, topic_name: str) -> Optional[LessonContent]:
        try:
            return await generate_lesson_content(LessonRequest(level=level, topic=topic_name), client=self.client)
        except Exception as exc:
            logger.error("Error generating lesson content for %s/%s: %s", level, topic_name, exc)
            return None

    async def evaluate_user_response(
        self,
        level: str,
        topic_id: str,
        module: str,
        user_response: str,
        question_context: str,
        expected_answer: Optional[str] = None,
        grammar_rules: Optional[str] = None,
    ) -> Optional[EvaluationResult]:
        req = EvaluationRequest(
            module_type=module,
            user_response=user_response,
            question_context=question_context,
            user_level=self.data.current_level,
            expected_answer=expected_answer,
            grammar_rules=grammar_rules,
        )
        try:
            evaluation = await evaluate_user_response(req, client=self.client)
        except Exception as exc:
            logger.error("Error evaluating user response (%s/%s/%s): %s", level, topic_id, module, exc)
            return None
        if evaluation.grammar_error_tags:
            self._commit(
                progress.record_grammar_weaknesses(self.data, level, topic_id, module, evaluation.grammar_error_tags)
            )
        return evaluation

    async def get_ai_recommended_lesson(self) -> Optional[Recommendation]:
        req = build_recommendation_request(self.data)
        try:
            return await recommend_lesson(req, client=self.client)
        except Exception as exc:
            if is_transient(exc):
                logger.warning("AI recommendation service temporarily unavailable (handled): %s", exc)
            else:
                logger.error("Error getting AI recommended lesson: %s", exc)
            return None

    async def dashboard(self) -> Dashboard:
        recommendation = await self.get_ai_recommended_lesson()
        data = self.data
        return Dashboard(
            recommendation=recommendation,
            topic_id=recommended_topic_id(data, recommendation),
            level=data.current_level,
            current_level_progress=progress.current_level_progress(data),
            overall_progress=progress.overall_progress(data),
        )
