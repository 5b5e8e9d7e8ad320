from __future__ import annotations

from typing import List, Optional

from ..gemini_client import GeminiClient
from ..retry import retry_transient
from ..schemas import Recommendation, RecommendationRequest
from .common import ask_for_model


SYSTEM_INSTRUCTION = (
    "You are a German learning assistant recommending the next lesson. "
    "Write the reasoning in Russian. Return ONLY a JSON object, no markdown."
)


def build_recommendation_prompt(req: RecommendationRequest) -> str:
    lines: List[str] = [f"User level: {req.user_level}", "", "Topic progress:"]
    if req.user_progress:
        lines += [f"- {topic}: {percent}%" for topic, percent in req.user_progress.items()]
    else:
        lines.append("No progress data available.")

    lines += ["", "Weak areas (low scores or modules not started):"]
    lines += [f"- {area}" for area in req.weak_areas] or ["No weak areas identified by module scores."]

    lines += ["", "Recurring grammar weaknesses:"]
    if req.grammar_weaknesses:
        for tag, detail in req.grammar_weaknesses.items():
            lines.append(f"- '{tag}': count {detail.count}, last {detail.last_encountered_date}")
            for ctx in detail.example_contexts:
                module = f", module {ctx.module_id}" if ctx.module_id else ""
                lines.append(f"  - topic '{ctx.topic_name}' (level {ctx.level}{module})")
    else:
        lines.append("None tracked.")

    preferred = ", ".join(req.preferred_topics) if req.preferred_topics else "None specified"
    lines += ["", f"Preferred topics: {preferred}", ""]
    lines.append(
        "Recommend one topic and a set of modules (vocabulary, grammar, listening, reading, writing, wordTest).\n"
        "Priorities, in order:\n"
        "1. A recurring grammar weakness: pick a topic that practises it and include 'grammar'.\n"
        "2. Weak grammar modules from the weak areas.\n"
        "3. Other weak modules.\n"
        "4. Preferred topics suitable for the level.\n"
        f"5. Otherwise the next uncompleted topic of level {req.user_level}.\n"
        'Return JSON: {"topic": string, "modules": [string, ...], "reasoning": string}'
    )
    return "\n".join(lines)


async def recommend_lesson(req: RecommendationRequest, *, client: Optional[GeminiClient] = None) -> Recommendation:
    prompt = build_recommendation_prompt(req)

    async def _attempt() -> Recommendation:
        return await ask_for_model(prompt, Recommendation, system_instruction=SYSTEM_INSTRUCTION, client=client)

    return await retry_transient(_attempt, label="recommend_lesson")
