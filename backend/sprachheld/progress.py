"""Progress bookkeeping for levels, topics and modules.

Every function takes a ``UserData`` and returns a new one; the input is
never mutated. Completion propagates upwards: a module passes at
``PASS_SCORE``, a topic completes when all module types pass, a level
completes when all of its defined topics complete, and completing the
current level moves the learner to the next one.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel

from .catalog import (
    ALL_LEVELS,
    ALL_MODULE_TYPES,
    DEFAULT_TOPICS,
    MAX_GRAMMAR_CONTEXTS,
    PASS_SCORE,
    UNKNOWN_TOPIC_NAME,
    default_topic,
)
from .schemas import (
    GrammarWeakness,
    GrammarWeaknessContext,
    LevelProgress,
    ModuleProgress,
    Profile,
    TopicProgress,
    UserData,
    UserSettings,
    utcnow,
)


class Continuation(BaseModel):
    # module: next module of the same topic; level: back to the level's topics;
    # next_level: the level is done; finished: every level is done
    kind: Literal["module", "level", "next_level", "finished"]
    level: Optional[str] = None
    topic_id: Optional[str] = None
    module: Optional[str] = None


def _default_progress() -> Dict[str, LevelProgress]:
    progress: Dict[str, LevelProgress] = {}
    for level in ALL_LEVELS:
        progress[level] = LevelProgress(
            topics={t["id"]: TopicProgress(id=t["id"], name=t["name"]) for t in DEFAULT_TOPICS[level]}
        )
    return progress


def initial_user_data(now: Optional[datetime] = None) -> UserData:
    return UserData(
        current_level="A0",
        current_topic_id=None,
        profile=Profile(),
        progress=_default_progress(),
        settings=UserSettings(notifications_enabled=True, last_activity_at=now or utcnow()),
    )


def reset_progress(now: Optional[datetime] = None) -> UserData:
    return initial_user_data(now)


def ensure_structure(data: UserData) -> UserData:
    """Fill in levels and default topics that a stored document lacks."""
    fixed = data.model_copy(deep=True)
    for level in ALL_LEVELS:
        level_data = fixed.progress.setdefault(level, LevelProgress())
        for topic in DEFAULT_TOPICS[level]:
            if topic["id"] not in level_data.topics:
                level_data.topics[topic["id"]] = TopicProgress(id=topic["id"], name=topic["name"])
    if fixed.current_level not in ALL_LEVELS:
        fixed.current_level = "A0"
    return fixed


def update_user_data(data: UserData, updates: Dict[str, Any], now: Optional[datetime] = None) -> UserData:
    payload = data.model_dump()
    for key, value in updates.items():
        if key not in UserData.model_fields:
            raise ValueError(f"unknown field: {key}")
        if key in ("settings", "profile"):
            if value is not None and not isinstance(value, dict):
                raise ValueError(f"{key} must be an object")
            # Nested sections merge shallowly
            payload[key] = {**payload[key], **(value or {})}
        elif key == "current_level" and value not in ALL_LEVELS:
            raise ValueError(f"unknown level: {value}")
        else:
            # An explicit None for current_topic_id clears it
            payload[key] = value
    payload["settings"]["last_activity_at"] = now or utcnow()
    return UserData.model_validate(payload)


def _custom_topics_for(data: UserData, level: str, *, prefix: Optional[str] = None) -> List[TopicProgress]:
    prefix = prefix or f"{level}_"
    return [t for t in data.custom_topics if t.id.startswith(prefix)]


def _defined_topic_ids(data: UserData, level: str, *, custom_prefix: Optional[str] = None) -> List[str]:
    ids = [t["id"] for t in DEFAULT_TOPICS.get(level, [])]
    for topic in _custom_topics_for(data, level, prefix=custom_prefix):
        if topic.id not in ids:
            ids.append(topic.id)
    return ids


def _module_passed(module: Optional[ModuleProgress]) -> bool:
    return module is not None and module.score is not None and module.score >= PASS_SCORE


def _all_modules_passed(topic: TopicProgress) -> bool:
    return all(_module_passed(topic.modules.get(m)) for m in ALL_MODULE_TYPES)


def topic_completion_percent(topic: TopicProgress) -> float:
    passed = sum(1 for m in ALL_MODULE_TYPES if topic.modules.get(m) is not None and topic.modules[m].completed)
    return passed / len(ALL_MODULE_TYPES) * 100


def is_topic_completed(data: UserData, level: str, topic_id: str) -> bool:
    level_data = data.progress.get(level)
    if level_data is None or topic_id not in level_data.topics:
        return False
    topic = level_data.topics[topic_id]
    if topic.completed:
        return True
    return _all_modules_passed(topic)


def is_level_completed(data: UserData, level: str) -> bool:
    level_data = data.progress.get(level)
    if level_data is None:
        return False
    if level_data.completed:
        return True
    defined = _defined_topic_ids(data, level)
    tracked = [tid for tid in defined if tid in level_data.topics]
    if not defined or not tracked:
        return False
    return all(is_topic_completed(data, level, tid) for tid in tracked)


def is_level_accessible(data: UserData, level: str) -> bool:
    if level not in ALL_LEVELS:
        return False
    index = ALL_LEVELS.index(level)
    return all(is_level_completed(data, ALL_LEVELS[i]) for i in range(index))


def current_level_progress(data: UserData) -> int:
    level = data.current_level
    level_data = data.progress.get(level)
    if level_data is None:
        return 0
    topic_ids = _defined_topic_ids(data, level, custom_prefix=f"{level}_custom_")
    if not topic_ids:
        return 100 if level_data.completed else 0
    done = sum(1 for tid in topic_ids if tid in level_data.topics and is_topic_completed(data, level, tid))
    return round(done / len(topic_ids) * 100)


def overall_progress(data: UserData) -> float:
    total = 0
    completed = 0
    for level_data in data.progress.values():
        total += len(level_data.topics)
        completed += sum(1 for t in level_data.topics.values() if t.completed)
    return completed / total * 100 if total else 0.0


def next_topic_id(data: UserData) -> Optional[str]:
    level = data.current_level
    level_data = data.progress.get(level)
    if level_data is None:
        return None
    for topic_id in _defined_topic_ids(data, level, custom_prefix=f"{level}_custom_"):
        if topic_id in level_data.topics and not is_topic_completed(data, level, topic_id):
            return topic_id
    return None


def topic_name(data: UserData, level: str, topic_id: str) -> str:
    topic = data.progress.get(level, LevelProgress()).topics.get(topic_id)
    if topic is not None and topic.name:
        return topic.name
    default = default_topic(level, topic_id)
    if default is not None:
        return default["name"]
    for custom in data.custom_topics:
        if custom.id == topic_id:
            return custom.name
    return topic_id


def update_module_progress(
    data: UserData,
    level: str,
    topic_id: str,
    module: str,
    score: int,
    now: Optional[datetime] = None,
) -> UserData:
    if level not in ALL_LEVELS:
        raise ValueError(f"unknown level: {level}")
    if module not in ALL_MODULE_TYPES:
        raise ValueError(f"unknown module: {module}")
    if score < 0 or score > 100:
        raise ValueError("score must be between 0 and 100")
    now = now or utcnow()
    updated = data.model_copy(deep=True)

    level_data = updated.progress.setdefault(level, LevelProgress())
    topic = level_data.topics.get(topic_id)
    if topic is None:
        default = default_topic(level, topic_id)
        custom = next((t for t in updated.custom_topics if t.id == topic_id), None)
        name = (default or {}).get("name") or (custom.name if custom else None) or UNKNOWN_TOPIC_NAME
        topic = TopicProgress(id=topic_id, name=name, custom=custom is not None)
        level_data.topics[topic_id] = topic

    previous = topic.modules.get(module) or ModuleProgress()
    topic.modules[module] = ModuleProgress(
        score=score,
        completed=score >= PASS_SCORE,
        last_attempt_date=now,
        attempts=previous.attempts + 1,
    )
    topic.completed = _all_modules_passed(topic)

    defined = _defined_topic_ids(updated, level)
    tracked = [tid for tid in defined if tid in level_data.topics]
    level_done = (
        bool(tracked)
        and len(tracked) >= len(defined)
        and all(level_data.topics[tid].completed for tid in tracked)
    )
    level_data.completed = level_done
    if level_done and level == updated.current_level:
        index = ALL_LEVELS.index(level)
        if index < len(ALL_LEVELS) - 1:
            updated.current_level = ALL_LEVELS[index + 1]
        updated.current_topic_id = None

    updated.settings.last_activity_at = now
    return updated


def add_custom_topic(data: UserData, name: str, now: Optional[datetime] = None) -> UserData:
    name = (name or "").strip()
    if not name:
        raise ValueError("topic name is required")
    now = now or utcnow()
    updated = data.model_copy(deep=True)
    level = updated.current_level
    topic_id = f"{level}_custom_{int(now.timestamp() * 1000)}"
    topic = TopicProgress(id=topic_id, name=name, custom=True)

    updated.custom_topics.append(topic)
    level_data = updated.progress.setdefault(level, LevelProgress())
    level_data.topics[topic_id] = topic.model_copy(deep=True)
    level_data.completed = False
    updated.current_topic_id = topic_id
    updated.settings.last_activity_at = now
    return updated


def next_module(data: UserData, level: str, topic_id: str, module: str) -> Optional[str]:
    topic = data.progress.get(level, LevelProgress()).topics.get(topic_id)
    if topic is None or module not in ALL_MODULE_TYPES:
        return None
    start = ALL_MODULE_TYPES.index(module)
    for offset in range(1, len(ALL_MODULE_TYPES)):
        candidate = ALL_MODULE_TYPES[(start + offset) % len(ALL_MODULE_TYPES)]
        progress = topic.modules.get(candidate)
        if progress is None or not progress.completed:
            return candidate
    return None


def continuation_after_module(data: UserData, level: str, topic_id: str, module: str) -> Continuation:
    following = next_module(data, level, topic_id, module)
    if following is not None:
        return Continuation(kind="module", level=level, topic_id=topic_id, module=following)
    if is_topic_completed(data, level, topic_id) and is_level_completed(data, level):
        index = ALL_LEVELS.index(level)
        if index < len(ALL_LEVELS) - 1:
            return Continuation(kind="next_level", level=ALL_LEVELS[index + 1])
        return Continuation(kind="finished")
    return Continuation(kind="level", level=level)


def record_grammar_weaknesses(
    data: UserData,
    level: str,
    topic_id: str,
    module: str,
    tags: List[str],
    now: Optional[datetime] = None,
) -> UserData:
    if not tags:
        return data
    now = now or utcnow()
    updated = data.model_copy(deep=True)
    context = GrammarWeaknessContext(
        level=level,
        topic_id=topic_id,
        topic_name=topic_name(updated, level, topic_id),
        module_id=module,
    )
    for tag in tags:
        existing = updated.grammar_weaknesses.get(tag)
        if existing is None:
            updated.grammar_weaknesses[tag] = GrammarWeakness(
                tag=tag,
                count=1,
                last_encountered_date=now,
                example_contexts=[context.model_copy()],
            )
            continue
        existing.count += 1
        existing.last_encountered_date = now
        existing.example_contexts.insert(0, context.model_copy())
        del existing.example_contexts[MAX_GRAMMAR_CONTEXTS:]
    return updated
