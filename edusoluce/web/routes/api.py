from __future__ import annotations

import io
import json
import logging
from dataclasses import asdict
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse, Response, StreamingResponse

from edusoluce.application import api as app_api
from edusoluce.domain.models import AssessmentDefinition, KnowledgeMode
from edusoluce.domain.session import AssessmentSession, SessionState
from edusoluce.infrastructure.catalog import ContentCatalog
from edusoluce.infrastructure.config import ApplicationConfig
from edusoluce.infrastructure.exceptions import (
    AreaNotFoundError,
    AssessmentNotFoundError,
    CatalogIntegrityError,
    EduSoluceError,
    MultipleValidationError,
    PersistenceError,
    SessionNotFoundError,
    SessionStateError,
    ValidationError,
)
from edusoluce.infrastructure.result_store import SqlResultStore
from edusoluce.utils.exports import make_json_export_payload, make_xlsx_export_bytes
from edusoluce.web.dependencies import get_app_config, get_catalog, get_registry, get_result_store
from edusoluce.web.schemas import (
    AdvanceResponse,
    AreaDetail,
    AreaView,
    AssessmentDetail,
    AssessmentSummary,
    HistoryItem,
    LevelSelectionRequest,
    OutcomeResponse,
    QuestionAnswerRequest,
    QuestionView,
    SessionCreateRequest,
    SessionResponses,
    SessionView,
    StoredResult,
    UserStatisticsResponse,
)

router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)

INCOMPLETE_AREA_MESSAGE = "Please answer every item in this area before continuing."


def _raise_http(exc: EduSoluceError) -> NoReturn:
    if isinstance(exc, (SessionNotFoundError, AssessmentNotFoundError, AreaNotFoundError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, SessionStateError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, (ValidationError, MultipleValidationError)):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, PersistenceError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        logger.error("Unhandled application error: %s", exc.message)
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    raise HTTPException(status_code=code, detail=exc.user_message) from exc


def _summary(definition: AssessmentDefinition) -> AssessmentSummary:
    return AssessmentSummary(
        id=definition.id,
        title=definition.title,
        description=definition.description,
        role=definition.role,
        regulation=definition.regulation,
        level=definition.level,
        estimated_minutes=definition.estimated_minutes,
        area_count=len(definition.areas),
        question_count=definition.question_count,
    )


def _session_view(session: AssessmentSession) -> SessionView:
    current_area = None
    if session.state is SessionState.IN_AREA:
        area = session.current_area
        mode = session.current_mode
        questions = (
            [
                QuestionView(
                    id=q.id,
                    prompt=q.prompt,
                    options=list(q.options),
                    difficulty=q.difficulty,
                    points=q.points,
                )
                for q in mode.questions
            ]
            if isinstance(mode, KnowledgeMode)
            else []
        )
        current_area = AreaDetail(
            id=area.id,
            title=area.title,
            description=area.description,
            question_count=len(area.questions),
            has_maturity_levels=bool(area.states),
            mode=mode.kind.value,
            questions=questions,
            states=[
                {"level": s.level, "percentage": s.percentage, "description": s.description}
                for s in area.states
            ],
            gap_indicators=list(area.gap_indicators),
            notice=session.current_notice,
        )

    return SessionView(
        id=session.id,
        assessment_id=session.definition.id,
        assessment_title=session.definition.title,
        user_id=session.user_id,
        mode=session.mode.value,
        state=session.state.value,
        area_index=session.area_index,
        area_count=len(session.definition.areas),
        is_last_area=session.is_last_area,
        has_response=session.has_response(),
        current_area=current_area,
        notices=dict(session.notices),
        responses=SessionResponses(
            questions=session.responses.question_answers(),
            levels=session.responses.area_levels(),
        ),
        last_error=session.last_error.user_message if session.last_error else None,
    )


def _outcome_response(session: AssessmentSession) -> OutcomeResponse:
    payload = app_api.outcome_to_dict(session.results)
    return OutcomeResponse(
        session_id=session.id,
        saved=not session.is_anonymous,
        **payload,
    )


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/roles", response_model=list[str])
def list_roles(catalog: ContentCatalog = Depends(get_catalog)) -> list[str]:
    return list(catalog.roles())


@router.get("/assessments", response_model=list[AssessmentSummary])
def list_assessments(
    role: str = Query(...),
    regulation: Optional[str] = Query(None),
    catalog: ContentCatalog = Depends(get_catalog),
) -> list[AssessmentSummary]:
    return [_summary(a) for a in catalog.get_assessments_by_role(role, regulation)]  # type: ignore[arg-type]


@router.get("/assessments/{assessment_id}", response_model=AssessmentDetail)
def get_assessment(
    assessment_id: str, catalog: ContentCatalog = Depends(get_catalog)
) -> AssessmentDetail:
    try:
        definition = catalog.get_assessment(assessment_id)
    except AssessmentNotFoundError as exc:
        _raise_http(exc)
    return AssessmentDetail(
        **_summary(definition).model_dump(),
        areas=[
            AreaView(
                id=area.id,
                title=area.title,
                description=area.description,
                question_count=len(area.questions),
                has_maturity_levels=bool(area.states),
            )
            for area in definition.areas
        ],
    )


@router.post("/sessions", response_model=SessionView, status_code=status.HTTP_201_CREATED)
def create_session(
    payload: SessionCreateRequest,
    catalog: ContentCatalog = Depends(get_catalog),
    registry: app_api.SessionRegistry = Depends(get_registry),
    store: SqlResultStore = Depends(get_result_store),
    config: ApplicationConfig = Depends(get_app_config),
) -> SessionView:
    try:
        session = app_api.start_assessment_session(
            catalog,
            registry,
            payload.assessment_id,
            role=payload.role,
            user_id=payload.user_id,
            mode=payload.mode,
            store=store,
            config=config,
        )
    except (MultipleValidationError, AssessmentNotFoundError, CatalogIntegrityError) as exc:
        _raise_http(exc)
    return _session_view(session)


@router.get("/sessions/{session_id}", response_model=SessionView)
def get_session(
    session_id: str, registry: app_api.SessionRegistry = Depends(get_registry)
) -> SessionView:
    try:
        return _session_view(registry.get(session_id))
    except SessionNotFoundError as exc:
        _raise_http(exc)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def abandon_session(
    session_id: str, registry: app_api.SessionRegistry = Depends(get_registry)
) -> Response:
    registry.discard(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/sessions/{session_id}/answers", response_model=SessionView)
def answer_question(
    session_id: str,
    payload: QuestionAnswerRequest,
    registry: app_api.SessionRegistry = Depends(get_registry),
) -> SessionView:
    try:
        session = registry.get(session_id)
        app_api.record_answer(session, payload.question_id, payload.option_index)
    except (
        SessionNotFoundError,
        SessionStateError,
        ValidationError,
        MultipleValidationError,
    ) as exc:
        _raise_http(exc)
    return _session_view(session)


@router.post("/sessions/{session_id}/level", response_model=SessionView)
def select_level(
    session_id: str,
    payload: LevelSelectionRequest,
    registry: app_api.SessionRegistry = Depends(get_registry),
) -> SessionView:
    try:
        session = registry.get(session_id)
        app_api.record_level(session, payload.state_index, payload.area_id)
    except (
        SessionNotFoundError,
        SessionStateError,
        ValidationError,
        MultipleValidationError,
    ) as exc:
        _raise_http(exc)
    return _session_view(session)


@router.post("/sessions/{session_id}/advance", response_model=AdvanceResponse)
def advance(
    session_id: str, registry: app_api.SessionRegistry = Depends(get_registry)
) -> AdvanceResponse:
    try:
        session = registry.get(session_id)
        advanced = session.advance()
    except (SessionNotFoundError, SessionStateError) as exc:
        _raise_http(exc)
    return AdvanceResponse(
        advanced=advanced,
        message=None if advanced else INCOMPLETE_AREA_MESSAGE,
        session=_session_view(session),
    )


@router.post("/sessions/{session_id}/back", response_model=SessionView)
def back(session_id: str, registry: app_api.SessionRegistry = Depends(get_registry)) -> SessionView:
    try:
        session = registry.get(session_id)
        session.back()
    except (SessionNotFoundError, SessionStateError) as exc:
        _raise_http(exc)
    return _session_view(session)


@router.post("/sessions/{session_id}/review", response_model=SessionView)
def review_answers(
    session_id: str, registry: app_api.SessionRegistry = Depends(get_registry)
) -> SessionView:
    try:
        session = registry.get(session_id)
        session.review_answers()
    except (SessionNotFoundError, SessionStateError) as exc:
        _raise_http(exc)
    return _session_view(session)


@router.post("/sessions/{session_id}/submit", response_model=OutcomeResponse)
async def submit(
    session_id: str, registry: app_api.SessionRegistry = Depends(get_registry)
) -> OutcomeResponse:
    try:
        session = registry.get(session_id)
        await session.confirm_submit()
    except (SessionNotFoundError, SessionStateError, ValidationError, PersistenceError) as exc:
        _raise_http(exc)
    return _outcome_response(session)


@router.get("/sessions/{session_id}/results", response_model=OutcomeResponse)
def get_results(
    session_id: str, registry: app_api.SessionRegistry = Depends(get_registry)
) -> OutcomeResponse:
    try:
        return _outcome_response(registry.get(session_id))
    except (SessionNotFoundError, SessionStateError) as exc:
        _raise_http(exc)


@router.get("/users/{user_id}/results", response_model=list[StoredResult])
def list_user_results(
    user_id: str,
    assessment_id: Optional[str] = Query(None),
    store: SqlResultStore = Depends(get_result_store),
) -> list[StoredResult]:
    rows = store.list_result_rows(user_id, assessment_id)
    return [StoredResult(**row) for row in rows]


@router.get("/users/{user_id}/history", response_model=list[HistoryItem])
def user_history(
    user_id: str,
    store: SqlResultStore = Depends(get_result_store),
    config: ApplicationConfig = Depends(get_app_config),
) -> list[HistoryItem]:
    try:
        df = app_api.results_dataframe(store, user_id)
    except EduSoluceError as exc:
        _raise_http(exc)
    return [HistoryItem(**item) for item in app_api.summarize_history(df, config.passing_score)]


@router.get("/users/{user_id}/statistics", response_model=UserStatisticsResponse)
def user_statistics(
    user_id: str,
    store: SqlResultStore = Depends(get_result_store),
    config: ApplicationConfig = Depends(get_app_config),
) -> UserStatisticsResponse:
    try:
        df = app_api.results_dataframe(store, user_id)
    except EduSoluceError as exc:
        _raise_http(exc)
    stats = app_api.compute_user_statistics(df, user_id, config.passing_score)
    return UserStatisticsResponse(**asdict(stats))


def _require_exports(config: ApplicationConfig) -> None:
    if not config.enable_result_export:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exports are disabled")


@router.get("/users/{user_id}/exports/json")
def export_results_json(
    user_id: str,
    store: SqlResultStore = Depends(get_result_store),
    config: ApplicationConfig = Depends(get_app_config),
) -> JSONResponse:
    _require_exports(config)
    try:
        df = app_api.results_dataframe(store, user_id)
        payload_str = make_json_export_payload(user_id, df)
    except EduSoluceError as exc:
        _raise_http(exc)
    return JSONResponse(content=json.loads(payload_str))


@router.get("/users/{user_id}/exports/xlsx")
def export_results_xlsx(
    user_id: str,
    store: SqlResultStore = Depends(get_result_store),
    config: ApplicationConfig = Depends(get_app_config),
) -> StreamingResponse:
    _require_exports(config)
    try:
        df = app_api.results_dataframe(store, user_id)
        xlsx_bytes = make_xlsx_export_bytes(df)
    except EduSoluceError as exc:
        _raise_http(exc)
    headers = {"Content-Disposition": f"attachment; filename=assessment_results_{user_id}.xlsx"}
    return StreamingResponse(
        io.BytesIO(xlsx_bytes),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers=headers,
    )
