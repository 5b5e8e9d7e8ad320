from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from .. import srs
from ..catalog import parse_level
from ..deps import get_learner
from ..learner import Learner
from ..schemas import VocabularyWord


router = APIRouter(prefix="/vocabulary", tags=["vocabulary"])


class AddWordRequest(BaseModel):
    german: str
    russian: str
    topic: str
    level: str
    example_sentence: Optional[str] = None


class AnswerRequest(BaseModel):
    correct: bool


def _word(learner: Learner, word_id: str) -> VocabularyWord:
    for word in learner.data.vocabulary_bank:
        if word.id == word_id:
            return word
    raise HTTPException(status_code=404, detail="Word not found")


@router.get("", response_model=List[VocabularyWord])
async def list_words(learner: Learner = Depends(get_learner)):
    return learner.data.vocabulary_bank


@router.post("", response_model=List[VocabularyWord], status_code=201)
async def add_word(req: AddWordRequest, learner: Learner = Depends(get_learner)):
    try:
        data = learner.add_word(req.german, req.russian, req.topic, parse_level(req.level), req.example_sentence)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return data.vocabulary_bank


@router.get("/review", response_model=List[VocabularyWord])
async def review_words(learner: Learner = Depends(get_learner)):
    return srs.words_for_review(learner.data)


@router.get("/problem", response_model=List[VocabularyWord])
async def problem_words(learner: Learner = Depends(get_learner)):
    return srs.problem_words(learner.data)


@router.get("/topics/{topic_id}", response_model=List[VocabularyWord])
async def topic_words(topic_id: str, learner: Learner = Depends(get_learner)):
    return srs.words_for_topic(learner.data, topic_id)


@router.put("/{word_id:path}", response_model=VocabularyWord)
async def update_word(word_id: str, word: VocabularyWord, learner: Learner = Depends(get_learner)):
    if word.id != word_id:
        raise HTTPException(status_code=400, detail="word id does not match path")
    try:
        learner.update_word(word)
    except KeyError:
        raise HTTPException(status_code=404, detail="Word not found")
    return _word(learner, word_id)


@router.post("/{word_id:path}/answer", response_model=VocabularyWord)
async def answer(word_id: str, req: AnswerRequest, learner: Learner = Depends(get_learner)):
    try:
        learner.record_word_answer(word_id, req.correct)
    except KeyError:
        raise HTTPException(status_code=404, detail="Word not found")
    return _word(learner, word_id)


@router.post("/{word_id:path}/mastered", response_model=VocabularyWord)
async def mastered(word_id: str, learner: Learner = Depends(get_learner)):
    try:
        learner.mark_word_mastered(word_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Word not found")
    return _word(learner, word_id)
