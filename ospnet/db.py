from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from ospnet.config import settings


class Base(DeclarativeBase):
    pass


_engine = None


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        # SQLite pools do not accept sizing arguments
        return {"connect_args": {"check_same_thread": False}, "echo": settings.db_echo}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
        "echo": settings.db_echo,
    }


def get_engine():
    global _engine
    if _engine is None:
        _engine = create_engine(settings.database_url, **_engine_options(settings.database_url))
    return _engine


SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)


def get_db():
    """Centralized database session dependency for FastAPI.

    Yields a database session and ensures it is closed after the request.

    Example:
        @router.get("/enclosures/{enclosure_id}")
        def get_enclosure(enclosure_id: int, db: Session = Depends(get_db)):
            return enclosures.get(db, enclosure_id)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
