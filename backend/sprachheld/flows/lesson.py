from __future__ import annotations

import logging
from typing import Optional

from ..gemini_client import GeminiClient
from ..retry import retry_transient
from ..schemas import LessonContent, LessonRequest
from .common import ask_for_model


logger = logging.getLogger(__name__)

MIN_VOCABULARY_ITEMS = 5
# A schema-size complaint from the model endpoint; retried like a transient failure
SCHEMA_STATES_MARKER = "constraint that has too many states"

SYSTEM_INSTRUCTION = (
    "You are an expert German language teacher writing lessons for Russian-speaking learners. "
    "Return ONLY a JSON object, no markdown, no commentary."
)


def build_lesson_prompt(req: LessonRequest) -> str:
    return (
        "Generate a comprehensive German lesson for a student.\n\n"
        f"Student level (CEFR): {req.level}\n"
        f"Topic: {req.topic}\n\n"
        "Mandatory keys:\n"
        '- "lesson_title": string.\n'
        '- "vocabulary": at least 5 items {german, russian, example_sentence}; include conversational phrases and idioms for the level.\n'
        '- "grammar_explanation": string; for A0-B2 prefer verb topics (tenses, modals, reflexives, word order).\n'
        '- "listening_exercise": {script (German, level-appropriate), questions (1-3 open questions)}.\n'
        '- "reading_passage": short German text on the topic.\n'
        '- "reading_questions": 1-3 open comprehension questions.\n'
        '- "writing_prompt": string.\n\n'
        "Optional keys (1-2 exercises each when they fit the topic and level):\n"
        '- "grammar_exercises": items with "type" one of:\n'
        '  "fillInTheBlanks" {instructions, questions: [{prompt_text, correct_answers, explanation}]},\n'
        '  "multipleChoice" {instructions, questions: [{question_text, options (2-4), correct_answer, explanation}]},\n'
        '  "sentenceConstruction" {instructions, tasks: [{words, possible_correct_sentences, explanation}]}.\n'
        '- "interactive_vocabulary_exercises": "matching" {instructions, pairs (3-8 {german, russian}), german_distractors, russian_distractors}\n'
        '  or "audioQuiz" {instructions, items (2-5 {german_phrase_to_speak, options (3-4 Russian), correct_answer, explanation})}.\n'
        '- "interactive_listening_exercises" (based on the script) and "interactive_reading_exercises" (based on the passage):\n'
        '  "comprehensionMultipleChoice" {instructions, questions: [{question_text, options, correct_answer, explanation}]},\n'
        '  "trueFalse" {instructions, statements (2-5 {statement, is_true, explanation})},\n'
        '  "sequencing" {instructions, shuffled_items (3-6), correct_order (same items in order)}.\n'
        '- "interactive_writing_exercises": one "structuredWriting" {instructions, prompt_details, template_outline, required_vocabulary}.\n\n'
        f"All content must be appropriate for level {req.level}."
    )


async def generate_lesson_content(req: LessonRequest, *, client: Optional[GeminiClient] = None) -> LessonContent:
    prompt = build_lesson_prompt(req)

    async def _attempt() -> LessonContent:
        return await ask_for_model(prompt, LessonContent, system_instruction=SYSTEM_INSTRUCTION, client=client)

    lesson = await retry_transient(
        _attempt,
        label=f"generate_lesson_content {req.level}/{req.topic}",
        extra_markers=(SCHEMA_STATES_MARKER,),
    )
    if len(lesson.vocabulary) < MIN_VOCABULARY_ITEMS:
        logger.warning(
            "AI returned only %d vocabulary items for topic %r at level %s, expected at least %d",
            len(lesson.vocabulary),
            req.topic,
            req.level,
            MIN_VOCABULARY_ITEMS,
        )
    return lesson
