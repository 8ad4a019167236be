from fastapi import Depends
from sqlalchemy.orm import Session

from ospnet.db import get_db
from ospnet.services.store import SqlAlchemyNetworkStore


def get_store(db: Session = Depends(get_db)) -> SqlAlchemyNetworkStore:
    """Record store for the path tracer and delete-impact report."""
    return SqlAlchemyNetworkStore(db)


__all__ = ["get_db", "get_store"]
