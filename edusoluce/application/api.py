"""
Application API layer: session lifecycle, result history and statistics.

Functions here compose the catalog, the session controller and the result
store for the web layer, validating input and translating failures into
application errors with user-friendly messages.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Any

import pandas as pd

from ..domain.models import AssessmentMode, AssessmentOutcome
from ..domain.schemas import (
    LevelSelectionInput,
    QuestionAnswerInput,
    SessionStartInput,
    validate_input,
)
from ..domain.scoring import DEFAULT_PASSING_SCORE, is_passing, round_percentage
from ..domain.session import AssessmentSession, ResultStore, SessionState
from ..infrastructure.catalog import ContentCatalog
from ..infrastructure.config import ApplicationConfig
from ..infrastructure.exceptions import (
    EduSoluceError,
    MultipleValidationError,
    SessionNotFoundError,
    ValidationError,
    log_error_details,
)
from ..infrastructure.logging import LogContext, get_logger, log_operation
from ..infrastructure.result_store import SqlResultStore

logger = get_logger(__name__)

RESULT_COLUMNS = [
    "user_id",
    "assessment_type",
    "assessment_id",
    "area_id",
    "area_title",
    "current_level",
    "score",
    "completed_at",
]


def _awaiting_save(session: AssessmentSession) -> bool:
    if session.state is SessionState.SUBMITTING:
        return True
    return session.state is SessionState.REVIEW_CONFIRMATION and session.last_error is not None


class SessionRegistry:
    """
    In-process registry of live sessions, least recently used evicted first
    once full. Sessions waiting to retry a failed save are evicted last.

    Example:
        >>> registry = SessionRegistry(max_sessions=2)
        >>> registry.add(session)
        >>> registry.get(session.id) is session
        True
    """

    def __init__(self, max_sessions: int = 1000):
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, AssessmentSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def add(self, session: AssessmentSession) -> AssessmentSession:
        self._sessions[session.id] = session
        while len(self._sessions) > self.max_sessions:
            evicted_id = self._eviction_candidate()
            del self._sessions[evicted_id]
            logger.info("Evicted abandoned session %s", evicted_id)
        return session

    def get(self, session_id: str) -> AssessmentSession:
        try:
            session = self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None
        self._sessions.move_to_end(session_id)
        return session

    def _eviction_candidate(self) -> str:
        """Least recently used session, passing over ones awaiting a save retry."""
        for session_id, session in self._sessions.items():
            if not _awaiting_save(session):
                return session_id
        oldest = next(iter(self._sessions))
        logger.warning("Every session is awaiting a save; evicting %s", oldest)
        return oldest

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)


def _validated(schema_class: type, data: dict[str, Any]) -> dict[str, Any]:
    validation = validate_input(schema_class, data)
    if not validation.success:
        raise MultipleValidationError(
            [ValidationError(e.field, e.message, e.value) for e in validation.errors]
        )
    return validation.data or {}


@log_operation("start_assessment_session")
def start_assessment_session(
    catalog: ContentCatalog,
    registry: SessionRegistry,
    assessment_id: str,
    role: str | None = None,
    user_id: str | None = None,
    mode: str | None = None,
    store: ResultStore | None = None,
    config: ApplicationConfig | None = None,
) -> AssessmentSession:
    """
    Validate the request, build a session for the assessment and register it.

    Raises:
        MultipleValidationError: If the request fails validation
        AssessmentNotFoundError: If the assessment is not in the catalog
    """
    config = config or ApplicationConfig()
    data = _validated(
        SessionStartInput,
        {"assessment_id": assessment_id, "role": role, "user_id": user_id, "mode": mode},
    )
    definition = catalog.get_assessment(data["assessment_id"], data["role"])
    session = AssessmentSession(
        definition,
        mode=AssessmentMode(data["mode"] or config.default_mode),
        user_id=data["user_id"],
        store=store if data["user_id"] else None,
        passing_score=config.passing_score,
    )
    registry.add(session)

    with LogContext(session_id=session.id, assessment_id=definition.id):
        logger.info(
            "Started %s session %s for %s (%d areas, %d fallback notices)",
            session.mode.value,
            session.id,
            definition.id,
            len(definition.areas),
            len(session.notices),
        )
    return session


def record_answer(session: AssessmentSession, question_id: str, option_index: int) -> None:
    """
    Validate and record one question answer in the session's current area.

    Raises:
        MultipleValidationError: If the payload fails validation
    """
    data = _validated(
        QuestionAnswerInput, {"question_id": question_id, "option_index": option_index}
    )
    session.answer_question(data["question_id"], data["option_index"])


def record_level(session: AssessmentSession, state_index: int, area_id: str | None = None) -> None:
    """
    Validate and record a maturity level selection.

    Raises:
        MultipleValidationError: If the payload fails validation
    """
    data = _validated(LevelSelectionInput, {"state_index": state_index, "area_id": area_id})
    session.select_level(data["state_index"], data["area_id"])


def outcome_to_dict(outcome: AssessmentOutcome) -> dict[str, Any]:
    payload = asdict(outcome)
    payload["mode"] = outcome.mode.value
    for area in payload["areas"]:
        area["mode"] = area["mode"].value
    return payload


@log_operation("results_dataframe")
def results_dataframe(store: SqlResultStore, user_id: str) -> pd.DataFrame:
    """
    Stored results for a user, one row per area.

    Raises:
        EduSoluceError: If results cannot be read
    """
    try:
        rows = store.list_result_rows(user_id)
    except Exception as e:
        error_details = log_error_details(e, {"operation": "results_dataframe", "user_id": user_id})
        logger.error("Failed to load stored results", extra=error_details)
        raise EduSoluceError(
            "Failed to load stored results",
            details=error_details,
            user_message="Unable to load your assessment history. Please try again.",
        ) from e

    df = pd.DataFrame(rows)
    if df.empty:
        return pd.DataFrame(
            columns=RESULT_COLUMNS + ["gap_indicators", "remediation_actions", "responses"]
        )
    return df


@dataclass(frozen=True)
class UserStatistics:
    user_id: str
    assessments_taken: int
    areas_assessed: int
    average_score: int
    pass_rate: int
    average_level: float
    strongest_area: str | None
    weakest_area: str | None


def compute_user_statistics(
    df: pd.DataFrame, user_id: str, passing_score: int = DEFAULT_PASSING_SCORE
) -> UserStatistics:
    """
    Aggregate a user's stored results.

    Every area row of a submission carries the submission's overall score,
    so scores are taken once per assessment.
    """
    if df.empty:
        return UserStatistics(user_id, 0, 0, 0, 0, 0.0, None, None)

    per_assessment = df.groupby("assessment_id", sort=False)["score"].first()
    scores = [int(s) for s in per_assessment.tolist()]
    passed = sum(1 for s in scores if is_passing(s, passing_score))

    levels = df.sort_values(["current_level", "area_title"], kind="stable")

    return UserStatistics(
        user_id=user_id,
        assessments_taken=len(scores),
        areas_assessed=len(df),
        average_score=round_percentage(sum(scores), 100 * len(scores)),
        pass_rate=round_percentage(passed, len(scores)),
        average_level=round(float(df["current_level"].mean()), 2),
        strongest_area=str(levels.iloc[-1]["area_title"]),
        weakest_area=str(levels.iloc[0]["area_title"]),
    )


def summarize_history(df: pd.DataFrame, passing_score: int = DEFAULT_PASSING_SCORE) -> list[dict]:
    """One entry per stored assessment, most recent first."""
    if df.empty:
        return []

    grouped = (
        df.groupby(["assessment_id", "assessment_type"], sort=False)
        .agg(
            score=("score", "first"),
            areas=("area_id", "count"),
            average_level=("current_level", "mean"),
            completed_at=("completed_at", "max"),
        )
        .reset_index()
        .sort_values("completed_at", ascending=False)
    )
    return [
        {
            "assessment_id": row.assessment_id,
            "assessment_type": row.assessment_type,
            "score": int(row.score),
            "passed": is_passing(int(row.score), passing_score),
            "areas": int(row.areas),
            "average_level": round(float(row.average_level), 2),
            "completed_at": row.completed_at,
        }
        for row in grouped.itertuples(index=False)
    ]
