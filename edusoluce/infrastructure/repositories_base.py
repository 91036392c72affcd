from __future__ import annotations

import builtins
from collections.abc import Iterable
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session


class BaseRepository[T]:
    """
    Small generic repository over one ORM class.

    Subclasses set `model` and add domain queries and logging decorators.
    """

    model: type[T]

    def __init__(self, session: Session):
        if getattr(self, "model", None) is None:
            raise ValueError(f"{self.__class__.__name__}.model must be set to an ORM class.")
        self.s = session

    def get(self, id_: Any) -> T | None:
        return self.s.get(self.model, id_)

    def first(self, *filters: Any) -> T | None:
        return self.s.scalars(select(self.model).where(*filters).limit(1)).one_or_none()

    def list(
        self,
        *filters: Any,
        order_by: Iterable[Any] | None = None,
        limit: int | None = None,
    ) -> builtins.list[T]:
        stmt = select(self.model)
        if filters:
            stmt = stmt.where(*filters)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit:
            stmt = stmt.limit(limit)
        return builtins.list(self.s.scalars(stmt).all())

    def count(self, *filters: Any) -> int:
        stmt = select(func.count()).select_from(self.model)
        if filters:
            stmt = stmt.where(*filters)
        return int(self.s.scalar(stmt) or 0)

    def create(self, **fields: Any) -> T:
        obj = self.model(**fields)
        self.s.add(obj)
        self.s.flush()
        return obj

    def update(self, obj: T, **fields: Any) -> T:
        for key, value in fields.items():
            setattr(obj, key, value)
        self.s.flush()
        return obj

    def delete(self, obj: T) -> None:
        self.s.delete(obj)
        self.s.flush()
