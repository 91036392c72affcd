"""
Pydantic schemas for catalog integrity and request validation.

The catalog schemas enforce the invariants the scoring engine relies on
(option bounds, five maturity states, upgrade keys); the input schemas
validate what respondents send while taking an assessment.
"""

from __future__ import annotations

import re
from html import unescape
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .models import MATURITY_LEVEL_COUNT

REMEDIATION_KEY_RE = re.compile(r"^Level ([1-4])→([2-5])$")

RoleName = Literal["administrator", "teacher", "it-staff", "student"]
ModeName = Literal["questions", "maturity"]


class BaseValidationSchema(BaseModel):
    """Base schema with common validation utilities."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    @field_validator("*", mode="before")
    @classmethod
    def sanitize_strings(cls, v: Any) -> Any:
        """Strip markup and control characters from free-text input."""
        if isinstance(v, str):
            cleaned = unescape(v.strip())
            cleaned = re.sub(
                r"<\s*script[^>]*>.*?<\s*/\s*script\s*>",
                "",
                cleaned,
                flags=re.IGNORECASE | re.DOTALL,
            )
            cleaned = re.sub(r"<[^>]+>", "", cleaned)
            cleaned = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]", "", cleaned)
            return cleaned
        return v


# ----- Catalog -----


class CurrentStateInput(BaseModel):
    level: str = Field(..., min_length=1)
    percentage: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)


class QuestionInput(BaseModel):
    id: str = Field(..., min_length=1)
    area_id: str = Field(..., min_length=1)
    prompt: str = Field(..., min_length=1)
    options: list[str] = Field(..., min_length=2)
    correct_answer: int = Field(..., ge=0)
    explanation: str = ""
    difficulty: Literal["easy", "medium", "hard"] = "medium"
    points: int = Field(..., gt=0)

    @model_validator(mode="after")
    def correct_answer_within_options(self) -> QuestionInput:
        if self.correct_answer >= len(self.options):
            raise ValueError(
                f"correct_answer {self.correct_answer} out of bounds for "
                f"{len(self.options)} options in question {self.id}"
            )
        return self


class AreaInput(BaseModel):
    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: str = ""
    current_states: list[CurrentStateInput] = Field(default_factory=list)
    gap_indicators: list[str] = Field(default_factory=list)
    remediation_actions: dict[str, str] = Field(default_factory=dict)

    @field_validator("current_states")
    @classmethod
    def five_states_when_present(cls, v: list[CurrentStateInput]) -> list[CurrentStateInput]:
        if v and len(v) != MATURITY_LEVEL_COUNT:
            raise ValueError(f"an area needs exactly {MATURITY_LEVEL_COUNT} maturity states")
        return v

    @field_validator("remediation_actions")
    @classmethod
    def upgrade_keys_only(cls, v: dict[str, str]) -> dict[str, str]:
        for key in v:
            match = REMEDIATION_KEY_RE.match(key)
            if not match or int(match.group(2)) != int(match.group(1)) + 1:
                raise ValueError(f"invalid remediation key {key!r}")
        return v


class AssessmentInput(BaseModel):
    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: str = ""
    role: RoleName
    regulation: Literal["ferpa", "coppa", "gdpr", "general"] = "general"
    level: Literal["beginner", "intermediate", "advanced"] = "beginner"
    estimated_minutes: int = Field(..., gt=0)
    areas: list[AreaInput] = Field(..., min_length=1)

    @field_validator("areas")
    @classmethod
    def unique_area_ids(cls, v: list[AreaInput]) -> list[AreaInput]:
        ids = [area.id for area in v]
        if len(set(ids)) != len(ids):
            raise ValueError("duplicate area ids within assessment")
        return v


class CatalogInput(BaseModel):
    assessments: list[AssessmentInput] = Field(..., min_length=1)
    questions: dict[str, list[QuestionInput]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def cross_references(self) -> CatalogInput:
        assessment_ids = [a.id for a in self.assessments]
        if len(set(assessment_ids)) != len(assessment_ids):
            raise ValueError("duplicate assessment ids")

        areas = {area.id: area for a in self.assessments for area in a.areas}

        question_ids: set[str] = set()
        for area_id, questions in self.questions.items():
            if area_id not in areas:
                raise ValueError(f"questions reference unknown area {area_id!r}")
            for question in questions:
                if question.area_id != area_id:
                    raise ValueError(
                        f"question {question.id} is filed under {area_id!r} "
                        f"but belongs to {question.area_id!r}"
                    )
                if question.id in question_ids:
                    raise ValueError(f"duplicate question id {question.id!r}")
                question_ids.add(question.id)

        for area_id, area in areas.items():
            if not area.current_states and not self.questions.get(area_id):
                raise ValueError(f"area {area_id!r} has no scoring mechanism")
        return self


# ----- Requests -----


class SessionStartInput(BaseValidationSchema):
    """Validation schema for starting an assessment session."""

    assessment_id: str = Field(..., min_length=1, max_length=255)
    role: RoleName | None = None
    user_id: str | None = Field(None, max_length=255)
    mode: ModeName | None = None

    @field_validator("user_id")
    @classmethod
    def blank_user_is_anonymous(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v


class QuestionAnswerInput(BaseValidationSchema):
    question_id: str = Field(..., min_length=1, max_length=255)
    option_index: int = Field(..., ge=0)


class LevelSelectionInput(BaseValidationSchema):
    state_index: int = Field(..., ge=0, lt=MATURITY_LEVEL_COUNT)
    area_id: str | None = Field(None, max_length=255)


class ValidationErrorDetail(BaseModel):
    field: str
    message: str
    value: Any = None


class ValidationResponse(BaseModel):
    success: bool
    errors: list[ValidationErrorDetail] = []
    data: dict[str, Any] | None = None


def validate_input(schema_class: type[BaseModel], data: dict[str, Any]) -> ValidationResponse:
    """
    Validate `data` against `schema_class` and return a structured result.

    Example:
        >>> result = validate_input(SessionStartInput, {"assessment_id": "coppa-classroom-apps"})
        >>> result.success
        True
    """
    try:
        validated = schema_class(**data)
        return ValidationResponse(success=True, data=validated.model_dump())
    except Exception as e:
        errors = []
        if hasattr(e, "errors"):
            for error in e.errors():
                errors.append(
                    ValidationErrorDetail(
                        field=".".join(str(x) for x in error["loc"]) or "general",
                        message=error["msg"],
                        value=error.get("input"),
                    )
                )
        else:
            errors.append(ValidationErrorDetail(field="general", message=str(e)))

        return ValidationResponse(success=False, errors=errors)
