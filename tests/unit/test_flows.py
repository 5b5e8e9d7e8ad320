"""Unit tests for the AI request/response flows, driven by a fake model client."""

import asyncio
import json
import logging

import pytest

from sprachheld.flows import (
    LLMOutputError,
    evaluate_user_response,
    extract_json_block,
    generate_lesson_content,
    recommend_lesson,
)
from sprachheld.gemini_client import GeminiError
from sprachheld.schemas import (
    EvaluationRequest,
    FillInTheBlanksExercise,
    LessonRequest,
    RecommendationRequest,
    TrueFalseExercise,
)

from conftest import FakeGeminiClient


def lesson_payload(vocabulary_count=5):
    return {
        "lesson_title": "Die Familie",
        "vocabulary": [
            {"german": f"Wort {i}", "russian": f"слово {i}", "example_sentence": "Das ist ein Wort."}
            for i in range(vocabulary_count)
        ],
        "grammar_explanation": "Possessivartikel: mein, dein, sein.",
        "grammar_exercises": [
            {
                "type": "fillInTheBlanks",
                "instructions": "Ergänzen Sie.",
                "questions": [{"prompt_text": "Das ist ___ Vater.", "correct_answers": ["mein"]}],
            }
        ],
        "listening_exercise": {"script": "Ich heiße Anna.", "questions": ["Wie heißt sie?"]},
        "reading_passage": "Meine Familie ist groß.",
        "reading_questions": ["Ist die Familie groß?"],
        "writing_prompt": "Beschreiben Sie Ihre Familie.",
        "interactive_reading_exercises": [
            {
                "type": "trueFalse",
                "instructions": "Richtig oder falsch?",
                "statements": [
                    {"statement": "Die Familie ist klein.", "is_true": False},
                    {"statement": "Die Familie ist groß.", "is_true": True},
                ],
            }
        ],
    }


class TestExtractJsonBlock:
    def test_plain_json(self):
        assert extract_json_block('{"a": 1}') == {"a": 1}

    def test_json_wrapped_in_fences(self):
        text = 'Here you go:\n```json\n{"topic": "Essen", "modules": []}\n```'
        assert extract_json_block(text)["topic"] == "Essen"

    @pytest.mark.parametrize("text", ["", "   ", "no json here", "[1, 2, 3]"])
    def test_rejects_non_objects(self, text):
        with pytest.raises(LLMOutputError):
            extract_json_block(text)


class TestLessonFlow:
    def test_parses_discriminated_exercises(self):
        client = FakeGeminiClient(json.dumps(lesson_payload()))
        lesson = asyncio.run(generate_lesson_content(LessonRequest(level="A1", topic="Familie"), client=client))

        assert lesson.lesson_title == "Die Familie"
        assert isinstance(lesson.grammar_exercises[0], FillInTheBlanksExercise)
        assert isinstance(lesson.interactive_reading_exercises[0], TrueFalseExercise)
        assert client.calls[0]["json_output"] is True
        assert "Topic: Familie" in client.prompts[0]

    def test_warns_on_short_vocabulary(self, caplog):
        client = FakeGeminiClient(json.dumps(lesson_payload(vocabulary_count=3)))
        with caplog.at_level(logging.WARNING, logger="sprachheld.flows.lesson"):
            lesson = asyncio.run(generate_lesson_content(LessonRequest(level="A1", topic="Familie"), client=client))
        assert len(lesson.vocabulary) == 3
        assert "only 3 vocabulary items" in caplog.text

    def test_grammar_exercise_count_is_bounded(self):
        payload = lesson_payload()
        payload["grammar_exercises"] = payload["grammar_exercises"] * 4
        client = FakeGeminiClient(json.dumps(payload))
        with pytest.raises(LLMOutputError):
            asyncio.run(generate_lesson_content(LessonRequest(level="A1", topic="Familie"), client=client))

    def test_malformed_output_is_not_retried(self, no_backoff):
        client = FakeGeminiClient("Sorry, I cannot help with that.", json.dumps(lesson_payload()))
        with pytest.raises(LLMOutputError):
            asyncio.run(generate_lesson_content(LessonRequest(level="A1", topic="Familie"), client=client))
        assert len(client.prompts) == 1

    def test_transient_failures_are_retried(self, no_backoff):
        client = FakeGeminiClient(
            GeminiError("Gemini request failed with 503", status_code=503),
            GeminiError("constraint that has too many states", status_code=400),
            json.dumps(lesson_payload()),
        )
        lesson = asyncio.run(generate_lesson_content(LessonRequest(level="A1", topic="Familie"), client=client))
        assert lesson.reading_passage == "Meine Familie ist groß."
        assert len(client.prompts) == 3


class TestEvaluationFlow:
    def test_normalizes_grammar_tags(self):
        client = FakeGeminiClient(
            json.dumps(
                {
                    "is_correct": False,
                    "feedback": "Нужен дательный падеж.",
                    "suggested_correction": "mit dem Bus",
                    "grammar_error_tags": ["Dativ Articles", "dativ_articles", " "],
                }
            )
        )
        req = EvaluationRequest(
            module_type="writing",
            user_response="mit der Bus",
            question_context="Describe your way to work.",
            user_level="A1",
            expected_answer="mit dem Bus",
        )
        result = asyncio.run(evaluate_user_response(req, client=client))

        assert not result.is_correct
        assert result.grammar_error_tags == ["dativ_articles"]
        assert "Expected answer: mit dem Bus" in client.prompts[0]


class TestRecommendationFlow:
    def test_prompt_carries_learner_state(self):
        client = FakeGeminiClient('{"topic": "Семья", "modules": ["grammar"], "reasoning": "Dativ."}')
        req = RecommendationRequest(
            user_level="A0",
            user_progress={"A0 - Семья": 50},
            weak_areas=["Модуль 'Грамматика' в теме 'Семья' (текущий уровень A0) не начат."],
            preferred_topics=["Reisen"],
        )
        rec = asyncio.run(recommend_lesson(req, client=client))

        assert rec.topic == "Семья"
        assert rec.modules == ["grammar"]
        prompt = client.prompts[0]
        assert "- A0 - Семья: 50%" in prompt
        assert "Preferred topics: Reisen" in prompt
        assert "None tracked." in prompt

    def test_missing_keys_raise(self):
        client = FakeGeminiClient('{"topic": "Семья"}')
        with pytest.raises(LLMOutputError):
            asyncio.run(recommend_lesson(RecommendationRequest(user_level="A0"), client=client))
