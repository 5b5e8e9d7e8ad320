from .common import LLMOutputError, extract_json_block
from .evaluate import evaluate_user_response
from .lesson import generate_lesson_content
from .recommend import recommend_lesson

__all__ = [
    "LLMOutputError",
    "extract_json_block",
    "evaluate_user_response",
    "generate_lesson_content",
    "recommend_lesson",
]
