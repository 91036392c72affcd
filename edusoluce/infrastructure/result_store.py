"""
SQL-backed result store used by assessment sessions.

`save_result` is the only async entry point; the blocking upsert runs in a
worker thread so an event loop serving other sessions is not stalled.
"""

from __future__ import annotations

import asyncio

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..domain.models import AssessmentResultRecord
from .exceptions import PersistenceError, handle_database_error
from .logging import get_logger
from .repositories_result import ResultRepo, to_record
from .uow import UnitOfWork

logger = get_logger(__name__)


class SqlResultStore:
    """
    Example:
        >>> store = SqlResultStore(create_session_factory(engine))
        >>> await store.save_result(record)
    """

    def __init__(self, session_factory: sessionmaker):
        self.uow = UnitOfWork(session_factory)

    async def save_result(self, record: AssessmentResultRecord) -> None:
        await asyncio.to_thread(self.save_result_sync, record)

    def save_result_sync(self, record: AssessmentResultRecord) -> None:
        try:
            with self.uow.begin() as s:
                ResultRepo(s).upsert(record)
        except SQLAlchemyError as e:
            db_error = handle_database_error(e, "save result")
            logger.error(
                "Saving result for %s/%s failed: %s",
                record.assessment_id,
                record.area_id,
                db_error.message,
            )
            raise PersistenceError(
                db_error.message,
                area_id=record.area_id,
                details={"area_id": record.area_id, "operation": db_error.operation},
            ) from e

    def list_results(
        self, user_id: str, assessment_id: str | None = None
    ) -> list[AssessmentResultRecord]:
        with self.uow.begin() as s:
            return [to_record(row) for row in ResultRepo(s).list_for_user(user_id, assessment_id)]

    def list_result_rows(self, user_id: str, assessment_id: str | None = None) -> list[dict]:
        """Stored results with their timestamps, for history views and exports."""
        with self.uow.begin() as s:
            return [
                {
                    **to_record(row).to_dict(),
                    "completed_at": row.completed_at,
                    "updated_at": row.updated_at,
                }
                for row in ResultRepo(s).list_for_user(user_id, assessment_id)
            ]
