# models.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Tuple


AnswerType = Literal["INITIAL", "FINAL"]

INITIAL: AnswerType = "INITIAL"
FINAL: AnswerType = "FINAL"


@dataclass(frozen=True)
class QuestionStructure:
    id: int
    text: str
    initial: bool
    final: bool


@dataclass(frozen=True)
class Answer:
    question_id: int
    type: str  # INITIAL/FINAL; anything else is ignored by the aggregation
    answer: float


@dataclass(frozen=True)
class FullSurveyResponse:
    initial_count: int
    final_count: int
    answers: Tuple[Answer, ...] = ()


@dataclass(frozen=True)
class AnalysisRow:
    id: int
    question: str
    total_initial_count: Optional[int] = None
    average_initial_score: Optional[float] = None
    total_final_count: Optional[int] = None
    average_final_score: Optional[float] = None
    change: Optional[float] = None


@dataclass(frozen=True)
class Opportunity:
    id: int
    name: str
    location: Optional[str] = None
    sdg: Optional[int] = None


@dataclass(frozen=True)
class EntityRef:
    id: int
    name: str


@dataclass(frozen=True)
class HostEntity:
    lc: EntityRef
    mc: EntityRef


@dataclass(frozen=True)
class SurveyResponseSummary:
    application_id: int
    slot_name: str
    updated_at: str


@dataclass(frozen=True)
class OpportunitySummary:
    id: int
    name: str
    project_id: Optional[int]
    project_sdg: Optional[int]
    responses_count: int
