from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal

from ..infrastructure.exceptions import AreaNotFoundError, InvalidResponseError

MATURITY_LEVEL_COUNT = 5

Role = Literal["administrator", "teacher", "it-staff", "student"]
Regulation = Literal["ferpa", "coppa", "gdpr", "general"]
ExperienceLevel = Literal["beginner", "intermediate", "advanced"]
Difficulty = Literal["easy", "medium", "hard"]

ROLES: tuple[Role, ...] = ("administrator", "teacher", "it-staff", "student")


class AssessmentMode(str, Enum):
    QUESTIONS = "questions"
    MATURITY = "maturity"


@dataclass(frozen=True, slots=True)
class CurrentState:
    level: str  # e.g. "Level 3 - Defined (41-60%)"
    percentage: str  # band label, e.g. "41-60%"
    description: str


@dataclass(frozen=True, slots=True)
class Question:
    id: str
    area_id: str
    prompt: str
    options: tuple[str, ...]
    correct_answer: int  # zero-based index into options
    explanation: str
    difficulty: Difficulty
    points: int


@dataclass(frozen=True, slots=True)
class MaturityLevelSet:
    states: tuple[CurrentState, ...]  # always 5, least to most mature
    gap_indicators: tuple[str, ...] = ()
    remediation_actions: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True, slots=True)
class Area:
    id: str
    title: str
    description: str
    questions: tuple[Question, ...] = ()
    maturity: MaturityLevelSet | None = None

    @property
    def states(self) -> tuple[CurrentState, ...]:
        return self.maturity.states if self.maturity else ()

    @property
    def gap_indicators(self) -> tuple[str, ...]:
        return self.maturity.gap_indicators if self.maturity else ()

    @property
    def remediation_actions(self) -> Mapping[str, str]:
        return self.maturity.remediation_actions if self.maturity else MappingProxyType({})


@dataclass(frozen=True, slots=True)
class AssessmentDefinition:
    id: str
    title: str
    description: str
    role: Role
    regulation: Regulation
    level: ExperienceLevel
    estimated_minutes: int
    areas: tuple[Area, ...]

    def area(self, area_id: str) -> Area:
        for area in self.areas:
            if area.id == area_id:
                return area
        raise AreaNotFoundError(area_id)

    def area_index(self, area_id: str) -> int:
        for index, area in enumerate(self.areas):
            if area.id == area_id:
                return index
        raise AreaNotFoundError(area_id)

    @property
    def question_count(self) -> int:
        return sum(len(area.questions) for area in self.areas)


# Scoring mode of a single area, resolved once per session.


@dataclass(frozen=True, slots=True)
class KnowledgeMode:
    questions: tuple[Question, ...]

    @property
    def kind(self) -> AssessmentMode:
        return AssessmentMode.QUESTIONS


@dataclass(frozen=True, slots=True)
class MaturityMode:
    states: tuple[CurrentState, ...]

    @property
    def kind(self) -> AssessmentMode:
        return AssessmentMode.MATURITY


ScoringMode = KnowledgeMode | MaturityMode


# Response keys: a question answer and an area level selection never collide
# even when a question id happens to equal an area id.


@dataclass(frozen=True, slots=True)
class QuestionKey:
    id: str


@dataclass(frozen=True, slots=True)
class AreaKey:
    id: str


ResponseKey = QuestionKey | AreaKey


def _check_index(item_id: str, value: Any, option_count: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidResponseError(item_id, value, option_count)
    if not 0 <= value < option_count:
        raise InvalidResponseError(item_id, value, option_count)
    return value


class ResponseSet:
    """
    Respondent answers keyed by `QuestionKey` or `AreaKey`.

    Values are zero-based option indices, validated against the item when
    recorded. Unanswered items have no entry.
    """

    __slots__ = ("_answers",)

    def __init__(self) -> None:
        self._answers: dict[ResponseKey, int] = {}

    def record_answer(self, question: Question, option_index: int) -> None:
        self._answers[QuestionKey(question.id)] = _check_index(
            question.id, option_index, len(question.options)
        )

    def record_level(self, area: Area, state_index: int) -> None:
        count = len(area.states) or MATURITY_LEVEL_COUNT
        self._answers[AreaKey(area.id)] = _check_index(area.id, state_index, count)

    def get(self, key: ResponseKey) -> int | None:
        return self._answers.get(key)

    def answer_for(self, question_id: str) -> int | None:
        return self._answers.get(QuestionKey(question_id))

    def level_for(self, area_id: str) -> int | None:
        return self._answers.get(AreaKey(area_id))

    def question_answers(self) -> dict[str, int]:
        return {k.id: v for k, v in self._answers.items() if isinstance(k, QuestionKey)}

    def area_levels(self) -> dict[str, int]:
        return {k.id: v for k, v in self._answers.items() if isinstance(k, AreaKey)}

    def copy(self) -> ResponseSet:
        clone = ResponseSet()
        clone._answers = dict(self._answers)
        return clone

    def __contains__(self, key: object) -> bool:
        return key in self._answers

    def __iter__(self) -> Iterator[ResponseKey]:
        return iter(self._answers)

    def __len__(self) -> int:
        return len(self._answers)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResponseSet):
            return NotImplemented
        return self._answers == other._answers

    def __repr__(self) -> str:
        return f"ResponseSet({self._answers!r})"


@dataclass(frozen=True, slots=True)
class KnowledgeScore:
    score: int  # 0..100
    total_points: int
    correct_answers: int


@dataclass(frozen=True, slots=True)
class MaturityScore:
    percentage: int  # 0..100
    maturity_level: str
    total_score: int
    max_score: int


@dataclass(frozen=True, slots=True)
class AreaResult:
    area_id: str
    area_title: str
    mode: AssessmentMode
    level: int | None  # 1..5, None while a maturity area is unanswered
    percentage: int
    selected_state: CurrentState | None
    badge_tier: ExperienceLevel | None
    remediation: str | None
    used_fallback: bool = False


@dataclass(frozen=True, slots=True)
class AssessmentOutcome:
    assessment_id: str
    mode: AssessmentMode
    percentage: int
    maturity_level: str
    total_score: int
    max_score: int
    passed: bool
    areas: tuple[AreaResult, ...]


@dataclass(frozen=True, slots=True)
class AssessmentResultRecord:
    user_id: str
    assessment_type: Role
    assessment_id: str
    area_id: str
    area_title: str
    current_level: int  # 1..5
    score: int  # 0..100
    gap_indicators: tuple[str, ...]
    remediation_actions: Mapping[str, str]
    responses: Mapping[str, int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "assessment_type": self.assessment_type,
            "assessment_id": self.assessment_id,
            "area_id": self.area_id,
            "area_title": self.area_title,
            "current_level": self.current_level,
            "score": self.score,
            "gap_indicators": list(self.gap_indicators),
            "remediation_actions": dict(self.remediation_actions),
            "responses": dict(self.responses),
        }
