from __future__ import annotations

import builtins

from sqlalchemy.orm import Session

from ..domain.models import AssessmentResultRecord
from .logging import log_database_operation as log_op
from .models import AssessmentResultORM
from .repositories_base import BaseRepository as GenericBaseRepository


def to_record(row: AssessmentResultORM) -> AssessmentResultRecord:
    return AssessmentResultRecord(
        user_id=row.user_id,
        assessment_type=row.assessment_type,  # type: ignore[arg-type]
        assessment_id=row.assessment_id,
        area_id=row.area_id,
        area_title=row.area_title,
        current_level=row.current_level,
        score=row.score,
        gap_indicators=tuple(row.gap_indicators or ()),
        remediation_actions=dict(row.remediation_actions or {}),
        responses=dict(row.responses or {}),
    )


class ResultRepo(GenericBaseRepository[AssessmentResultORM]):
    model = AssessmentResultORM

    def __init__(self, session: Session):
        super().__init__(session)

    @log_op("result.get_for_area")
    def get_for_area(
        self, user_id: str, assessment_id: str, area_id: str
    ) -> AssessmentResultORM | None:
        return self.first(
            AssessmentResultORM.user_id == user_id,
            AssessmentResultORM.assessment_id == assessment_id,
            AssessmentResultORM.area_id == area_id,
        )

    @log_op("result.upsert")
    def upsert(self, record: AssessmentResultRecord) -> AssessmentResultORM:
        """Insert the area result, or overwrite the stored one for the same key."""
        fields = record.to_dict()
        existing = self.get_for_area(record.user_id, record.assessment_id, record.area_id)
        if existing is None:
            return self.create(**fields)
        return self.update(existing, **fields)

    @log_op("result.list_for_user")
    def list_for_user(
        self, user_id: str, assessment_id: str | None = None
    ) -> builtins.list[AssessmentResultORM]:
        filters = [AssessmentResultORM.user_id == user_id]
        if assessment_id is not None:
            filters.append(AssessmentResultORM.assessment_id == assessment_id)
        return self.list(
            *filters,
            order_by=[AssessmentResultORM.completed_at, AssessmentResultORM.id],
        )

    @log_op("result.delete_for_assessment")
    def delete_for_assessment(self, user_id: str, assessment_id: str) -> int:
        rows = self.list_for_user(user_id, assessment_id)
        for row in rows:
            self.delete(row)
        return len(rows)
