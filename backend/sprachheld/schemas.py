from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Naive timestamps are read as UTC so stored dates always compare with utcnow()
UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


# ---- Learner document ----


class ModuleProgress(BaseModel):
    score: Optional[int] = Field(default=None, ge=0, le=100)
    completed: bool = False
    last_attempt_date: Optional[UtcDatetime] = None
    attempts: int = 0


class TopicProgress(BaseModel):
    id: str
    name: str
    modules: Dict[str, ModuleProgress] = Field(default_factory=dict)
    completed: bool = False
    custom: bool = False


class LevelProgress(BaseModel):
    topics: Dict[str, TopicProgress] = Field(default_factory=dict)
    completed: bool = False


class Profile(BaseModel):
    preferred_topics: List[str] = Field(default_factory=list)


class UserSettings(BaseModel):
    notifications_enabled: bool = True
    last_activity_at: UtcDatetime = Field(default_factory=utcnow)


class VocabularyWord(BaseModel):
    id: str
    german: str
    russian: str
    example_sentence: Optional[str] = None
    topic: str
    level: str
    consecutive_correct_answers: int = 0
    error_count: int = 0
    last_tested_date: Optional[UtcDatetime] = None
    srs_stage: int = Field(default=0, ge=0)
    # None means due right away
    next_review_date: Optional[UtcDatetime] = None


class GrammarWeaknessContext(BaseModel):
    level: str
    topic_id: str
    topic_name: str
    module_id: Optional[str] = None


class GrammarWeakness(BaseModel):
    tag: str
    count: int = 1
    last_encountered_date: UtcDatetime
    example_contexts: List[GrammarWeaknessContext] = Field(default_factory=list)


class UserData(BaseModel):
    current_level: str = "A0"
    current_topic_id: Optional[str] = None
    profile: Profile = Field(default_factory=Profile)
    progress: Dict[str, LevelProgress] = Field(default_factory=dict)
    vocabulary_bank: List[VocabularyWord] = Field(default_factory=list)
    settings: UserSettings = Field(default_factory=UserSettings)
    custom_topics: List[TopicProgress] = Field(default_factory=list)
    grammar_weaknesses: Dict[str, GrammarWeakness] = Field(default_factory=dict)


# ---- Lesson content (model output) ----


class VocabularyItem(BaseModel):
    german: str
    russian: str
    example_sentence: Optional[str] = None


class MatchingPair(BaseModel):
    german: str
    russian: str


class MatchingExercise(BaseModel):
    type: Literal["matching"]
    instructions: str
    pairs: List[MatchingPair] = Field(min_length=3, max_length=8)
    german_distractors: Optional[List[str]] = None
    russian_distractors: Optional[List[str]] = None


class AudioQuizItem(BaseModel):
    german_phrase_to_speak: str
    options: List[str] = Field(min_length=3, max_length=4)
    correct_answer: str
    explanation: Optional[str] = None


class AudioQuizExercise(BaseModel):
    type: Literal["audioQuiz"]
    instructions: str
    items: List[AudioQuizItem] = Field(min_length=2, max_length=5)


VocabularyInteractiveExercise = Annotated[
    Union[MatchingExercise, AudioQuizExercise], Field(discriminator="type")
]


class FillInTheBlanksQuestion(BaseModel):
    prompt_text: str
    correct_answers: List[str] = Field(min_length=1)
    explanation: Optional[str] = None


class FillInTheBlanksExercise(BaseModel):
    type: Literal["fillInTheBlanks"]
    instructions: str
    questions: List[FillInTheBlanksQuestion] = Field(min_length=1, max_length=3)


class MultipleChoiceQuestion(BaseModel):
    question_text: str
    options: List[str] = Field(min_length=2, max_length=4)
    correct_answer: str
    explanation: Optional[str] = None


class MultipleChoiceExercise(BaseModel):
    type: Literal["multipleChoice"]
    instructions: str
    questions: List[MultipleChoiceQuestion] = Field(min_length=1, max_length=3)


class SentenceConstructionTask(BaseModel):
    words: List[str] = Field(min_length=3)
    possible_correct_sentences: List[str] = Field(min_length=1)
    explanation: Optional[str] = None


class SentenceConstructionExercise(BaseModel):
    type: Literal["sentenceConstruction"]
    instructions: str
    tasks: List[SentenceConstructionTask] = Field(min_length=1, max_length=3)


GrammarExercise = Annotated[
    Union[FillInTheBlanksExercise, MultipleChoiceExercise, SentenceConstructionExercise],
    Field(discriminator="type"),
]


class ListeningExercise(BaseModel):
    script: str
    questions: List[str] = Field(min_length=1, max_length=3)


class ComprehensionQuestion(BaseModel):
    question_text: str
    options: List[str] = Field(min_length=2, max_length=4)
    correct_answer: str
    explanation: Optional[str] = None


class ComprehensionMultipleChoiceExercise(BaseModel):
    type: Literal["comprehensionMultipleChoice"]
    instructions: str
    questions: List[ComprehensionQuestion] = Field(min_length=1, max_length=3)


class TrueFalseStatement(BaseModel):
    statement: str
    is_true: bool
    explanation: Optional[str] = None


class TrueFalseExercise(BaseModel):
    type: Literal["trueFalse"]
    instructions: str
    statements: List[TrueFalseStatement] = Field(min_length=2, max_length=5)


class SequencingExercise(BaseModel):
    type: Literal["sequencing"]
    instructions: str
    shuffled_items: List[str] = Field(min_length=3, max_length=6)
    correct_order: List[str] = Field(min_length=3, max_length=6)


ComprehensionExercise = Annotated[
    Union[ComprehensionMultipleChoiceExercise, TrueFalseExercise, SequencingExercise],
    Field(discriminator="type"),
]


class StructuredWritingExercise(BaseModel):
    type: Literal["structuredWriting"]
    instructions: str
    prompt_details: str
    template_outline: Optional[List[str]] = None
    required_vocabulary: Optional[List[str]] = None
    ai_generated_story_to_describe: Optional[str] = None


class LessonRequest(BaseModel):
    level: str
    topic: str


class LessonContent(BaseModel):
    lesson_title: str
    vocabulary: List[VocabularyItem]
    grammar_explanation: str
    grammar_exercises: Optional[List[GrammarExercise]] = Field(default=None, min_length=1, max_length=3)
    listening_exercise: ListeningExercise
    reading_passage: str
    reading_questions: List[str] = Field(min_length=1, max_length=3)
    writing_prompt: str
    interactive_vocabulary_exercises: Optional[List[VocabularyInteractiveExercise]] = None
    interactive_listening_exercises: Optional[List[ComprehensionExercise]] = None
    interactive_reading_exercises: Optional[List[ComprehensionExercise]] = None
    interactive_writing_exercises: Optional[List[StructuredWritingExercise]] = None


# ---- Answer evaluation ----


class EvaluationRequest(BaseModel):
    module_type: str
    user_response: str
    question_context: str
    user_level: str
    expected_answer: Optional[str] = None
    grammar_rules: Optional[str] = None


class EvaluationResult(BaseModel):
    is_correct: bool
    feedback: str
    suggested_correction: Optional[str] = None
    grammar_error_tags: List[str] = Field(default_factory=list)


# ---- Recommendation ----


class WeaknessContextSummary(BaseModel):
    level: str
    topic_name: str
    module_id: Optional[str] = None


class WeaknessSummary(BaseModel):
    count: int
    last_encountered_date: str
    example_contexts: List[WeaknessContextSummary] = Field(default_factory=list)


class RecommendationRequest(BaseModel):
    user_level: str
    user_progress: Dict[str, int] = Field(default_factory=dict)
    weak_areas: List[str] = Field(default_factory=list)
    preferred_topics: List[str] = Field(default_factory=list)
    grammar_weaknesses: Dict[str, WeaknessSummary] = Field(default_factory=dict)


class Recommendation(BaseModel):
    topic: str
    modules: List[str]
    reasoning: str
