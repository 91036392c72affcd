from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, CheckConstraint, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class AssessmentResultORM(Base):
    """One stored area result; resubmitting the same area overwrites it."""

    __tablename__ = "assessment_results"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    assessment_type: Mapped[str] = mapped_column(String(32), nullable=False)
    assessment_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    area_id: Mapped[str] = mapped_column(String(255), nullable=False)
    area_title: Mapped[str] = mapped_column(String(255), nullable=False)
    current_level: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    gap_indicators: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    remediation_actions: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    responses: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "assessment_id", "area_id", name="uq_result_user_area"),
        CheckConstraint("current_level BETWEEN 1 AND 5", name="ck_result_level_1_5"),
        CheckConstraint("score BETWEEN 0 AND 100", name="ck_result_score_0_100"),
    )
