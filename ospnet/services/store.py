"""Record lookup collaborator used by the path tracer and delete-impact report.

The tracer only ever needs two reads: fetch one row by id, and list rows
matching column equality filters. Both return empty results on a miss and
never raise for unknown ids.
"""

from __future__ import annotations

from typing import Any, Protocol, TypeVar

from sqlalchemy.orm import Session

T = TypeVar("T")


class NetworkStore(Protocol):
    """Protocol for keyed entity stores."""

    async def get(self, model: type[T], item_id: int | None) -> T | None: ...

    async def list_by(self, model: type[T], **criteria: Any) -> list[T]: ...


class SqlAlchemyNetworkStore:
    """Store backed by a SQLAlchemy session.

    Reads are synchronous underneath; the coroutine interface lets callers
    swap in an async store without touching traversal code.
    """

    def __init__(self, db: Session):
        self.db = db

    async def get(self, model: type[T], item_id: int | None) -> T | None:
        if item_id is None:
            return None
        return self.db.get(model, item_id)

    async def list_by(self, model: type[T], **criteria: Any) -> list[T]:
        query = self.db.query(model)
        if criteria:
            query = query.filter_by(**criteria)
        return query.order_by(model.id).all()


class InMemoryNetworkStore:
    """Dict-backed store for callers that already hold records in memory."""

    def __init__(self, records: dict[type, list[Any]] | None = None):
        self._records: dict[type, list[Any]] = {}
        for model, rows in (records or {}).items():
            for row in rows:
                self.add(model, row)

    def add(self, model: type, row: Any) -> None:
        self._records.setdefault(model, []).append(row)

    async def get(self, model: type[T], item_id: int | None) -> T | None:
        if item_id is None:
            return None
        for row in self._records.get(model, []):
            if row.id == item_id:
                return row
        return None

    async def list_by(self, model: type[T], **criteria: Any) -> list[T]:
        rows = [
            row
            for row in self._records.get(model, [])
            if all(getattr(row, key, None) == value for key, value in criteria.items())
        ]
        return sorted(rows, key=lambda row: row.id)
