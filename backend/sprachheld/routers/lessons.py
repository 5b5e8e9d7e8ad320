from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..catalog import parse_level, parse_module
from ..deps import get_learner
from ..learner import Dashboard, Learner
from ..schemas import EvaluationResult, LessonContent


router = APIRouter(prefix="/lessons", tags=["lessons"])


class ContentRequest(BaseModel):
    level: str
    topic_name: str


class ContentResponse(BaseModel):
    # None when the model could not produce a lesson
    lesson: Optional[LessonContent] = None


class EvaluateRequest(BaseModel):
    level: str
    topic_id: str
    module: str
    user_response: str
    question_context: str
    expected_answer: Optional[str] = None
    grammar_rules: Optional[str] = None


@router.post("/content", response_model=ContentResponse)
async def lesson_content(req: ContentRequest, learner: Learner = Depends(get_learner)):
    try:
        level = parse_level(req.level)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not req.topic_name.strip():
        raise HTTPException(status_code=400, detail="topic_name is required")
    lesson = await learner.get_topic_lesson_content(level, req.topic_name.strip())
    return ContentResponse(lesson=lesson)


@router.post("/evaluate", response_model=EvaluationResult)
async def evaluate(req: EvaluateRequest, learner: Learner = Depends(get_learner)):
    try:
        level = parse_level(req.level)
        module = parse_module(req.module)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not req.user_response.strip():
        raise HTTPException(status_code=400, detail="user_response is required")
    evaluation = await learner.evaluate_user_response(
        level,
        req.topic_id,
        module,
        req.user_response,
        req.question_context,
        req.expected_answer,
        req.grammar_rules,
    )
    if evaluation is None:
        raise HTTPException(status_code=502, detail="Could not evaluate the response, try again")
    return evaluation


@router.get("/recommendation", response_model=Dashboard)
async def recommendation(learner: Learner = Depends(get_learner)):
    return await learner.dashboard()
