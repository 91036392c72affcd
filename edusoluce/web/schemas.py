from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class CurrentState(BaseModel):
    level: str
    percentage: str
    description: str


class QuestionView(BaseModel):
    """A question as shown to respondents; the answer key stays server-side."""

    id: str
    prompt: str
    options: list[str]
    difficulty: Literal["easy", "medium", "hard"]
    points: int


class AreaView(BaseModel):
    id: str
    title: str
    description: str
    question_count: int = 0
    has_maturity_levels: bool = False


class AreaDetail(AreaView):
    mode: Literal["questions", "maturity"]
    questions: list[QuestionView] = Field(default_factory=list)
    states: list[CurrentState] = Field(default_factory=list)
    gap_indicators: list[str] = Field(default_factory=list)
    notice: Optional[str] = None


class AssessmentSummary(BaseModel):
    id: str
    title: str
    description: str
    role: str
    regulation: str
    level: str
    estimated_minutes: int
    area_count: int
    question_count: int


class AssessmentDetail(AssessmentSummary):
    areas: list[AreaView]


class SessionCreateRequest(BaseModel):
    assessment_id: str
    role: Optional[str] = None
    user_id: Optional[str] = None
    mode: Optional[Literal["questions", "maturity"]] = None


class QuestionAnswerRequest(BaseModel):
    question_id: str
    option_index: int


class LevelSelectionRequest(BaseModel):
    state_index: int
    area_id: Optional[str] = None


class SessionResponses(BaseModel):
    questions: dict[str, int] = Field(default_factory=dict)
    levels: dict[str, int] = Field(default_factory=dict)


class SessionView(BaseModel):
    id: str
    assessment_id: str
    assessment_title: str
    user_id: Optional[str] = None
    mode: Literal["questions", "maturity"]
    state: Literal["in_area", "review_confirmation", "submitting", "results"]
    area_index: int
    area_count: int
    is_last_area: bool
    has_response: bool
    current_area: Optional[AreaDetail] = None
    notices: dict[str, str] = Field(default_factory=dict)
    responses: SessionResponses
    last_error: Optional[str] = None


class AdvanceResponse(BaseModel):
    advanced: bool
    message: Optional[str] = None
    session: SessionView


class AreaResultView(BaseModel):
    area_id: str
    area_title: str
    mode: Literal["questions", "maturity"]
    level: Optional[int] = None
    percentage: int
    selected_state: Optional[CurrentState] = None
    badge_tier: Optional[Literal["beginner", "intermediate", "advanced"]] = None
    remediation: Optional[str] = None
    used_fallback: bool = False


class OutcomeResponse(BaseModel):
    session_id: str
    assessment_id: str
    mode: Literal["questions", "maturity"]
    percentage: int = Field(ge=0, le=100)
    maturity_level: str
    total_score: int
    max_score: int
    passed: bool
    saved: bool
    areas: list[AreaResultView]


class StoredResult(BaseModel):
    user_id: str
    assessment_type: str
    assessment_id: str
    area_id: str
    area_title: str
    current_level: int = Field(ge=1, le=5)
    score: int = Field(ge=0, le=100)
    gap_indicators: list[str]
    remediation_actions: dict[str, str]
    responses: dict[str, int]
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class HistoryItem(BaseModel):
    assessment_id: str
    assessment_type: str
    score: int
    passed: bool
    areas: int
    average_level: float
    completed_at: Optional[datetime] = None


class UserStatisticsResponse(BaseModel):
    user_id: str
    assessments_taken: int
    areas_assessed: int
    average_score: int
    pass_rate: int
    average_level: float
    strongest_area: Optional[str] = None
    weakest_area: Optional[str] = None
