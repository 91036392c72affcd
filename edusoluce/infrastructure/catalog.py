"""
Static assessment catalog: loading, integrity checks and lookups.

The catalog is read once from a JSON data file, validated with the pydantic
catalog schemas and frozen into a `ContentCatalog`. Callers construct it
explicitly (usually at application start) and pass it to whatever needs it.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType

from pydantic import ValidationError as PydanticValidationError

from ..domain.models import (
    ROLES,
    Area,
    AssessmentDefinition,
    CurrentState,
    MaturityLevelSet,
    Question,
    Regulation,
    Role,
)
from ..domain.schemas import AreaInput, CatalogInput, QuestionInput
from .config import DEFAULT_CATALOG_PATH
from .exceptions import AssessmentNotFoundError, CatalogIntegrityError
from .logging import get_logger

logger = get_logger(__name__)


class ContentCatalog:
    """
    Immutable registry of assessment definitions and question banks.

    Example:
        >>> catalog = load_catalog()
        >>> [a.id for a in catalog.get_assessments_by_role("teacher")][:1]
        ['ferpa-classroom-teachers']
    """

    def __init__(
        self,
        assessments: Iterable[AssessmentDefinition],
        questions: Mapping[str, Iterable[Question]] | None = None,
    ):
        by_id: dict[str, AssessmentDefinition] = {}
        for assessment in assessments:
            if assessment.id in by_id:
                raise CatalogIntegrityError(f"Duplicate assessment id '{assessment.id}'")
            by_id[assessment.id] = assessment
        self._assessments = MappingProxyType(by_id)
        self._questions = MappingProxyType(
            {area_id: tuple(bank) for area_id, bank in (questions or {}).items()}
        )

    def __len__(self) -> int:
        return len(self._assessments)

    def __contains__(self, assessment_id: object) -> bool:
        return assessment_id in self._assessments

    @property
    def assessments(self) -> tuple[AssessmentDefinition, ...]:
        return tuple(self._assessments.values())

    def roles(self) -> tuple[Role, ...]:
        present = {a.role for a in self._assessments.values()}
        return tuple(role for role in ROLES if role in present)

    def get_assessments_by_role(
        self, role: Role, regulation: Regulation | None = None
    ) -> tuple[AssessmentDefinition, ...]:
        """Assessments for `role` in catalog order; unknown roles yield an empty tuple."""
        return tuple(
            a
            for a in self._assessments.values()
            if a.role == role and (regulation is None or a.regulation == regulation)
        )

    def get_assessment(self, assessment_id: str, role: Role | None = None) -> AssessmentDefinition:
        assessment = self._assessments.get(assessment_id)
        if assessment is None or (role is not None and assessment.role != role):
            raise AssessmentNotFoundError(assessment_id, role)
        return assessment

    def get_questions_for_area(self, area_id: str) -> tuple[Question, ...]:
        return self._questions.get(area_id, ())

    def get_questions_for_assessment(self, assessment_id: str) -> tuple[Question, ...]:
        assessment = self.get_assessment(assessment_id)
        return tuple(q for area in assessment.areas for q in self.get_questions_for_area(area.id))


def _build_question(data: QuestionInput) -> Question:
    return Question(
        id=data.id,
        area_id=data.area_id,
        prompt=data.prompt,
        options=tuple(data.options),
        correct_answer=data.correct_answer,
        explanation=data.explanation,
        difficulty=data.difficulty,
        points=data.points,
    )


def _build_area(data: AreaInput, questions: tuple[Question, ...]) -> Area:
    maturity = None
    if data.current_states:
        maturity = MaturityLevelSet(
            states=tuple(
                CurrentState(level=s.level, percentage=s.percentage, description=s.description)
                for s in data.current_states
            ),
            gap_indicators=tuple(data.gap_indicators),
            remediation_actions=MappingProxyType(dict(data.remediation_actions)),
        )
    return Area(
        id=data.id,
        title=data.title,
        description=data.description,
        questions=questions,
        maturity=maturity,
    )


def build_catalog(data: CatalogInput) -> ContentCatalog:
    """Freeze a validated catalog document into domain objects."""
    questions = {
        area_id: tuple(_build_question(q) for q in bank) for area_id, bank in data.questions.items()
    }
    assessments = [
        AssessmentDefinition(
            id=a.id,
            title=a.title,
            description=a.description,
            role=a.role,
            regulation=a.regulation,
            level=a.level,
            estimated_minutes=a.estimated_minutes,
            areas=tuple(_build_area(area, questions.get(area.id, ())) for area in a.areas),
        )
        for a in data.assessments
    ]
    return ContentCatalog(assessments, questions)


def load_catalog(path: str | Path | None = None) -> ContentCatalog:
    """
    Load and validate the catalog file.

    Raises:
        CatalogIntegrityError: If the file is missing, unreadable or violates
            the catalog invariants.
    """
    source = Path(path) if path else DEFAULT_CATALOG_PATH
    try:
        raw = json.loads(source.read_text(encoding="utf-8"))
    except OSError as e:
        raise CatalogIntegrityError(f"Cannot read catalog: {e}", source=str(source)) from e
    except json.JSONDecodeError as e:
        raise CatalogIntegrityError(f"Catalog is not valid JSON: {e}", source=str(source)) from e

    try:
        document = CatalogInput.model_validate(raw)
    except PydanticValidationError as e:
        raise CatalogIntegrityError(
            f"Catalog failed validation with {e.error_count()} error(s)",
            source=str(source),
            details={"source": str(source), "errors": e.errors(include_url=False)},
        ) from e

    catalog = build_catalog(document)
    logger.info(
        "Loaded catalog from %s: %d assessments, %d question banks",
        source,
        len(catalog),
        len(document.questions),
    )
    return catalog
