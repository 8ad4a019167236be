from typing import Any

from sqlalchemy.orm import Query

from ospnet.services.errors import InvalidRequest


def apply_ordering(query: Query, order_by: str, order_dir: str, allowed_columns: dict[str, Any]) -> Query:
    if order_by not in allowed_columns:
        allowed = ", ".join(sorted(allowed_columns))
        raise InvalidRequest(code="invalid_order_by", detail=f"Invalid order_by. Allowed: {allowed}")
    column = allowed_columns[order_by]
    if order_dir == "desc":
        return query.order_by(column.desc())
    return query.order_by(column.asc())


def apply_pagination(query: Query, limit: int, offset: int) -> Query:
    return query.limit(limit).offset(offset)
