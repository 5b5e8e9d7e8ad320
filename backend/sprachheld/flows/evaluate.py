from __future__ import annotations

from typing import Optional

from ..gemini_client import GeminiClient
from ..retry import retry_transient
from ..schemas import EvaluationRequest, EvaluationResult
from .common import ask_for_model


SYSTEM_INSTRUCTION = (
    "You are a patient German teacher checking answers of Russian-speaking learners. "
    "Write feedback in Russian. Return ONLY a JSON object, no markdown."
)


def build_evaluation_prompt(req: EvaluationRequest) -> str:
    lines = [
        f"Learner level: {req.user_level}",
        f"Module: {req.module_type}",
        f"Task context: {req.question_context}",
    ]
    if req.expected_answer:
        lines.append(f"Expected answer: {req.expected_answer}")
    if req.grammar_rules:
        lines.append(f"Grammar rules in focus: {req.grammar_rules}")
    lines.append(f"Learner response: {req.user_response}")
    return (
        "\n".join(lines)
        + "\n\nDecide whether the response solves the task for this level; accept synonyms and minor typos "
        "when the meaning is right.\n"
        "Return JSON with exactly these keys:\n"
        "{\n"
        '  "is_correct": boolean,\n'
        '  "feedback": string,\n'
        '  "suggested_correction": string or null,\n'
        '  "grammar_error_tags": [string, ...]\n'
        "}\n"
        "grammar_error_tags lists English snake_case tags for every grammar concept the learner got wrong "
        '(e.g. "akkusativ_prepositions", "verb_second_position"); use [] when there is none.'
    )


async def evaluate_user_response(req: EvaluationRequest, *, client: Optional[GeminiClient] = None) -> EvaluationResult:
    prompt = build_evaluation_prompt(req)

    async def _attempt() -> EvaluationResult:
        return await ask_for_model(prompt, EvaluationResult, system_instruction=SYSTEM_INSTRUCTION, client=client)

    result = await retry_transient(_attempt, label=f"evaluate_user_response {req.module_type}")
    # Tags are used as dictionary keys; normalise them once here
    tags = []
    for tag in result.grammar_error_tags:
        normalized = "_".join(str(tag).strip().lower().split())
        if normalized and normalized not in tags:
            tags.append(normalized)
    result.grammar_error_tags = tags
    return result
