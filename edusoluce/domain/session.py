"""
Area-by-area assessment session.

An `AssessmentSession` walks one respondent through the areas of an
assessment, collects answers into a `ResponseSet` and, on confirmation,
hands one `AssessmentResultRecord` per area to a `ResultStore`.

States::

    IN_AREA(i) --advance--> IN_AREA(i+1) | REVIEW_CONFIRMATION
    IN_AREA(i) --back--> IN_AREA(i-1)
    REVIEW_CONFIRMATION --review_answers--> IN_AREA(last)
    REVIEW_CONFIRMATION --confirm_submit--> SUBMITTING --> RESULTS
                                                       \\-> REVIEW_CONFIRMATION (store failed)
"""

from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Protocol

from ..infrastructure.exceptions import (
    CatalogIntegrityError,
    ConfigurationError,
    PersistenceError,
    SessionStateError,
    ValidationError,
)
from ..infrastructure.logging import LogContext
from .models import (
    Area,
    AssessmentDefinition,
    AssessmentMode,
    AssessmentOutcome,
    AssessmentResultRecord,
    KnowledgeMode,
    MaturityMode,
    ResponseSet,
    ScoringMode,
)
from .scoring import DEFAULT_PASSING_SCORE, summarize_assessment

logger = logging.getLogger(__name__)

NO_QUESTIONS_NOTICE = (
    "No questions available for {title}. Switching to maturity assessment mode."
)
NO_MATURITY_LEVELS_NOTICE = (
    "No maturity levels available for {title}. Switching to knowledge questions."
)


class SessionState(str, Enum):
    IN_AREA = "in_area"
    REVIEW_CONFIRMATION = "review_confirmation"
    SUBMITTING = "submitting"
    RESULTS = "results"


class ResultStore(Protocol):
    """Destination for submitted results; raises on failure."""

    async def save_result(self, record: AssessmentResultRecord) -> None: ...


def resolve_scoring_modes(
    definition: AssessmentDefinition, mode: AssessmentMode
) -> tuple[dict[str, ScoringMode], dict[str, str]]:
    """
    Decide once, per area, how the area is scored.

    An area that cannot be scored in the requested mode falls back to the
    other mechanism; every fallback produces a notice keyed by area id.

    Raises:
        CatalogIntegrityError: If an area has neither questions nor levels.
    """
    modes: dict[str, ScoringMode] = {}
    notices: dict[str, str] = {}

    for area in definition.areas:
        if not area.questions and not area.states:
            raise CatalogIntegrityError(
                f"Area '{area.id}' has no scoring mechanism", source=definition.id
            )

        if mode is AssessmentMode.QUESTIONS:
            if area.questions:
                modes[area.id] = KnowledgeMode(area.questions)
            else:
                modes[area.id] = MaturityMode(area.states)
                notices[area.id] = NO_QUESTIONS_NOTICE.format(title=area.title)
        else:
            if area.states:
                modes[area.id] = MaturityMode(area.states)
            else:
                modes[area.id] = KnowledgeMode(area.questions)
                notices[area.id] = NO_MATURITY_LEVELS_NOTICE.format(title=area.title)

    return modes, notices


class AssessmentSession:
    """
    One respondent taking one assessment.

    Sessions without a `user_id` are anonymous: submitting moves straight to
    RESULTS without touching the store.
    """

    def __init__(
        self,
        definition: AssessmentDefinition,
        mode: AssessmentMode = AssessmentMode.QUESTIONS,
        user_id: str | None = None,
        store: ResultStore | None = None,
        passing_score: int = DEFAULT_PASSING_SCORE,
        session_id: str | None = None,
    ):
        if user_id and store is None:
            raise ConfigurationError(
                "A result store is required for sessions with a user", config_key="store"
            )

        self.id = session_id or uuid.uuid4().hex
        self.definition = definition
        self.mode = AssessmentMode(mode)
        self.user_id = user_id or None
        self.store = store
        self.passing_score = passing_score
        self.modes, self.notices = resolve_scoring_modes(definition, self.mode)
        self.responses = ResponseSet()
        self.state = SessionState.IN_AREA
        self.area_index = 0
        self.last_error: PersistenceError | None = None

    def __repr__(self) -> str:
        return (
            f"AssessmentSession(id={self.id!r}, assessment={self.definition.id!r}, "
            f"state={self.state.value}, area_index={self.area_index})"
        )

    # ----- Navigation state -----

    @property
    def current_area(self) -> Area:
        return self.definition.areas[self.area_index]

    @property
    def current_mode(self) -> ScoringMode:
        return self.modes[self.current_area.id]

    @property
    def current_notice(self) -> str | None:
        return self.notices.get(self.current_area.id)

    @property
    def is_last_area(self) -> bool:
        return self.area_index == len(self.definition.areas) - 1

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    def _require(self, action: str, *states: SessionState) -> None:
        if self.state not in states:
            raise SessionStateError(action, self.state.value, self.id)

    # ----- Answering -----

    def answer_question(self, question_id: str, option_index: int) -> None:
        """Record an answer to a question of the current area."""
        self._require("answer a question", SessionState.IN_AREA)
        mode = self.current_mode
        if not isinstance(mode, KnowledgeMode):
            raise ValidationError(
                "question_id", f"area '{self.current_area.id}' is scored by maturity level"
            )
        for question in mode.questions:
            if question.id == question_id:
                self.responses.record_answer(question, option_index)
                return
        raise ValidationError(
            "question_id",
            f"'{question_id}' is not part of area '{self.current_area.id}'",
            value=question_id,
        )

    def select_level(self, state_index: int, area_id: str | None = None) -> None:
        """Record the zero-based maturity state selected for the current area."""
        self._require("select a maturity level", SessionState.IN_AREA)
        area = self.current_area
        if area_id is not None and area_id != area.id:
            raise ValidationError(
                "area_id", f"'{area_id}' is not the current area '{area.id}'", value=area_id
            )
        if not isinstance(self.current_mode, MaturityMode):
            raise ValidationError("area_id", f"area '{area.id}' is scored by questions")
        self.responses.record_level(area, state_index)

    def has_response(self, area: Area | None = None) -> bool:
        """True when every required item of `area` (default: current) is answered."""
        area = area or self.current_area
        mode = self.modes[area.id]
        if isinstance(mode, KnowledgeMode):
            return all(self.responses.answer_for(q.id) is not None for q in mode.questions)
        return self.responses.level_for(area.id) is not None

    def unanswered_areas(self) -> list[str]:
        return [area.id for area in self.definition.areas if not self.has_response(area)]

    # ----- Transitions -----

    def advance(self) -> bool:
        """
        Move past the current area.

        Returns False, leaving the state untouched, while the current area is
        incomplete.
        """
        self._require("advance", SessionState.IN_AREA)
        if not self.has_response():
            return False
        if self.is_last_area:
            self.state = SessionState.REVIEW_CONFIRMATION
        else:
            self.area_index += 1
        return True

    def back(self) -> bool:
        self._require("go back", SessionState.IN_AREA)
        if self.area_index == 0:
            return False
        self.area_index -= 1
        return True

    def review_answers(self) -> None:
        self._require("review answers", SessionState.REVIEW_CONFIRMATION)
        self.area_index = len(self.definition.areas) - 1
        self.state = SessionState.IN_AREA

    # ----- Scoring and submission -----

    def outcome(self) -> AssessmentOutcome:
        return summarize_assessment(
            self.definition, self.modes, self.responses, self.mode, self.passing_score
        )

    @property
    def results(self) -> AssessmentOutcome:
        self._require("view results", SessionState.RESULTS)
        return self.outcome()

    def build_records(self) -> tuple[AssessmentResultRecord, ...]:
        """One record per area; requires a user and a complete response set."""
        if self.user_id is None:
            raise SessionStateError("build result records", "anonymous", self.id)
        missing = self.unanswered_areas()
        if missing:
            raise ValidationError("responses", f"unanswered areas: {', '.join(missing)}")

        outcome = self.outcome()
        records = []
        for area, area_result in zip(self.definition.areas, outcome.areas, strict=True):
            mode = self.modes[area.id]
            if isinstance(mode, KnowledgeMode):
                responses = {q.id: self.responses.answer_for(q.id) for q in mode.questions}
            else:
                responses = {area.id: self.responses.level_for(area.id)}
            records.append(
                AssessmentResultRecord(
                    user_id=self.user_id,
                    assessment_type=self.definition.role,
                    assessment_id=self.definition.id,
                    area_id=area.id,
                    area_title=area.title,
                    current_level=area_result.level or 1,
                    score=outcome.percentage,
                    gap_indicators=area.gap_indicators,
                    remediation_actions=dict(area.remediation_actions),
                    responses=responses,
                )
            )
        return tuple(records)

    async def confirm_submit(self) -> AssessmentOutcome:
        """
        Persist one record per area and move to RESULTS.

        On a store failure the session returns to REVIEW_CONFIRMATION with
        its responses intact and a retryable `PersistenceError` is raised.
        """
        self._require("submit", SessionState.REVIEW_CONFIRMATION)

        with LogContext(
            session_id=self.id, assessment_id=self.definition.id, user_id=self.user_id
        ):
            if self.user_id is None:
                self.state = SessionState.RESULTS
                logger.info("Anonymous session %s completed; results not saved", self.id)
                return self.outcome()

            records = self.build_records()
            store = self.store
            if store is None:
                raise ConfigurationError("No result store configured", config_key="store")
            self.state = SessionState.SUBMITTING

            current_area_id: str | None = None
            try:
                for record in records:
                    current_area_id = record.area_id
                    await store.save_result(record)
            except PersistenceError as e:
                self._fail_submission(e)
                raise
            except Exception as e:
                error = PersistenceError(f"Failed to save results: {e}", area_id=current_area_id)
                self._fail_submission(error)
                raise error from e
            except BaseException:
                # Cancellation must not strand the session in SUBMITTING.
                self._fail_submission(
                    PersistenceError("Saving results was interrupted", area_id=current_area_id)
                )
                raise

            self.state = SessionState.RESULTS
            self.last_error = None
            logger.info("Saved %d area results for session %s", len(records), self.id)
            return self.outcome()

    def _fail_submission(self, error: PersistenceError) -> None:
        self.state = SessionState.REVIEW_CONFIRMATION
        self.last_error = error
        logger.warning(
            "Saving results for session %s failed at area %s: %s",
            self.id,
            error.area_id,
            error.message,
        )
