from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..gemini_client import GeminiClient


M = TypeVar("M", bound=BaseModel)


class LLMOutputError(ValueError):
    pass


def extract_json_block(text: str) -> Dict[str, Any]:
    if not text or not text.strip():
        raise LLMOutputError("AI model returned an empty output")
    try:
        data = json.loads(text)
    except Exception:
        data = None
    if data is None:
        # Models sometimes wrap the object in prose or code fences
        match = re.search(r"\{[\s\S]*\}", text)
        if match:
            try:
                data = json.loads(match.group(0))
            except Exception:
                data = None
    if not isinstance(data, dict):
        raise LLMOutputError("Failed to parse JSON object from model output")
    return data


async def ask_for_model(
    prompt: str,
    output_model: Type[M],
    *,
    system_instruction: Optional[str] = None,
    client: Optional[GeminiClient] = None,
) -> M:
    owned = client is None
    active = client or GeminiClient()
    try:
        raw = await active.generate(prompt, system_instruction=system_instruction, json_output=True)
    finally:
        if owned:
            await active.aclose()
    data = extract_json_block(raw)
    try:
        return output_model.model_validate(data)
    except ValidationError as err:
        raise LLMOutputError(f"Model output does not match {output_model.__name__}: {err}") from err
