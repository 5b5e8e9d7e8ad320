from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from .. import progress
from ..catalog import ALL_LEVELS, DEFAULT_TOPICS, parse_level, parse_module
from ..deps import get_learner
from ..learner import Learner
from ..progress import Continuation
from ..schemas import UserData


router = APIRouter(prefix="/progress", tags=["progress"])


class ProgressResponse(BaseModel):
    user_data: UserData
    current_level_progress: int
    overall_progress: float
    next_topic_id: Optional[str] = None


class UpdateRequest(BaseModel):
    updates: Dict[str, Any]


class ModuleResultRequest(BaseModel):
    level: str
    topic_id: str
    module: str
    score: int = Field(ge=0, le=100)


class ModuleResultResponse(BaseModel):
    user_data: UserData
    topic_completed: bool
    level_completed: bool
    continuation: Continuation


class LevelSummary(BaseModel):
    level: str
    completed: bool
    accessible: bool
    topics_total: int
    topics_completed: int


class TopicSummary(BaseModel):
    id: str
    name: str
    custom: bool
    completed: bool
    completion_percent: float


class CustomTopicRequest(BaseModel):
    name: str


def _progress_response(data: UserData) -> ProgressResponse:
    return ProgressResponse(
        user_data=data,
        current_level_progress=progress.current_level_progress(data),
        overall_progress=progress.overall_progress(data),
        next_topic_id=progress.next_topic_id(data),
    )


@router.get("", response_model=ProgressResponse)
async def get_progress(learner: Learner = Depends(get_learner)):
    return _progress_response(learner.data)


@router.patch("", response_model=ProgressResponse)
async def patch_progress(req: UpdateRequest, learner: Learner = Depends(get_learner)):
    try:
        data = learner.update_user_data(req.updates)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _progress_response(data)


@router.post("/reset", response_model=ProgressResponse)
async def reset(learner: Learner = Depends(get_learner)):
    return _progress_response(learner.reset_progress())


@router.post("/modules", response_model=ModuleResultResponse)
async def record_module_result(req: ModuleResultRequest, learner: Learner = Depends(get_learner)):
    try:
        level = parse_level(req.level)
        module = parse_module(req.module)
        data, continuation = learner.update_module_progress(level, req.topic_id, module, req.score)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ModuleResultResponse(
        user_data=data,
        topic_completed=progress.is_topic_completed(data, level, req.topic_id),
        level_completed=progress.is_level_completed(data, level),
        continuation=continuation,
    )


@router.get("/levels", response_model=List[LevelSummary])
async def list_levels(learner: Learner = Depends(get_learner)):
    data = learner.data
    summaries: List[LevelSummary] = []
    for level in ALL_LEVELS:
        topics = data.progress[level].topics
        summaries.append(
            LevelSummary(
                level=level,
                completed=progress.is_level_completed(data, level),
                accessible=progress.is_level_accessible(data, level),
                topics_total=len(topics),
                topics_completed=sum(1 for tid in topics if progress.is_topic_completed(data, level, tid)),
            )
        )
    return summaries


@router.get("/levels/{level}/topics", response_model=List[TopicSummary])
async def list_topics(level: str, learner: Learner = Depends(get_learner)):
    try:
        level = parse_level(level)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    data = learner.data
    topics = data.progress[level].topics
    # Catalog order first, then custom topics in creation order
    ordered = [t["id"] for t in DEFAULT_TOPICS[level] if t["id"] in topics]
    ordered += [tid for tid in topics if tid not in ordered]
    return [
        TopicSummary(
            id=tid,
            name=topics[tid].name,
            custom=topics[tid].custom,
            completed=progress.is_topic_completed(data, level, tid),
            completion_percent=progress.topic_completion_percent(topics[tid]),
        )
        for tid in ordered
    ]


@router.post("/topics", response_model=ProgressResponse, status_code=201)
async def add_custom_topic(req: CustomTopicRequest, learner: Learner = Depends(get_learner)):
    try:
        data = learner.add_custom_topic(req.name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _progress_response(data)
