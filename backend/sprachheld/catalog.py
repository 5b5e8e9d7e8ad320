from __future__ import annotations

from typing import Dict, List, Optional


ALL_LEVELS: List[str] = ["A0", "A1", "A2", "B1", "B2", "C1", "C2"]

ALL_MODULE_TYPES: List[str] = ["vocabulary", "grammar", "listening", "reading", "writing", "wordTest"]

MODULE_NAMES_RU: Dict[str, str] = {
    "vocabulary": "Лексика",
    "grammar": "Грамматика",
    "listening": "Аудирование",
    "reading": "Чтение",
    "writing": "Письмо",
    "wordTest": "Тест слов",
}

# A module counts as passed from this score on
PASS_SCORE = 70
# Consecutive correct answers after which a word is considered learned
MASTERED_STREAK = 3
MAX_GRAMMAR_CONTEXTS = 5

UNKNOWN_TOPIC_NAME = "Неизвестная тема"


def _topics(level: str, *pairs: str) -> List[Dict[str, str]]:
    return [{"id": f"{level}_{slug}", "name": name} for slug, name in zip(pairs[::2], pairs[1::2])]


DEFAULT_TOPICS: Dict[str, List[Dict[str, str]]] = {
    "A0": _topics(
        "A0",
        "alphabet", "Алфавит и произношение",
        "greetings", "Приветствие и знакомство",
        "numbers", "Числа и время",
        "family", "Семья",
    ),
    "A1": _topics(
        "A1",
        "daily_routine", "Распорядок дня",
        "food", "Еда и напитки",
        "shopping", "Покупки",
        "home", "Дом и квартира",
        "hobbies", "Хобби и увлечения",
    ),
    "A2": _topics(
        "A2",
        "travel", "Путешествия и транспорт",
        "work", "Работа и профессии",
        "health", "Здоровье",
        "city", "Город и ориентирование",
        "holidays", "Праздники и традиции",
    ),
    "B1": _topics(
        "B1",
        "education", "Образование",
        "media", "СМИ и интернет",
        "relationships", "Отношения",
        "environment", "Окружающая среда",
        "culture", "Культура и искусство",
    ),
    "B2": _topics(
        "B2",
        "career", "Карьера и рынок труда",
        "society", "Общество и политика",
        "science", "Наука и технологии",
        "economy", "Экономика и финансы",
    ),
    "C1": _topics(
        "C1",
        "globalization", "Глобализация",
        "psychology", "Психология",
        "law", "Право и справедливость",
        "literature", "Литература",
    ),
    "C2": _topics(
        "C2",
        "philosophy", "Философия",
        "rhetoric", "Риторика и стиль",
        "history", "История Германии",
        "idioms", "Идиомы и фразеологизмы",
    ),
}


def parse_level(value: str) -> str:
    level = (value or "").strip().upper()
    if level not in ALL_LEVELS:
        raise ValueError(f"level must be one of {','.join(ALL_LEVELS)}")
    return level


def parse_module(value: str) -> str:
    candidate = (value or "").strip()
    for module_type in ALL_MODULE_TYPES:
        if module_type.lower() == candidate.lower():
            return module_type
    raise ValueError(f"module must be one of {','.join(ALL_MODULE_TYPES)}")


def default_topic(level: str, topic_id: str) -> Optional[Dict[str, str]]:
    for topic in DEFAULT_TOPICS.get(level, []):
        if topic["id"] == topic_id:
            return topic
    return None
