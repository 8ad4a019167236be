import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str = os.getenv("DATABASE_URL", "sqlite+pysqlite:///./ospnet.db")
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))
    db_echo: bool = _env_bool("DB_ECHO")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_json: bool = _env_bool("LOG_JSON")

    # Path tracing
    trace_default_cable_fiber_count: int = int(os.getenv("TRACE_DEFAULT_CABLE_FIBER_COUNT", "48"))
    trace_assumed_splice_loss_db: float = float(os.getenv("TRACE_ASSUMED_SPLICE_LOSS_DB", "0.05"))
    trace_max_steps: int = int(os.getenv("TRACE_MAX_STEPS", "512"))

    # Enclosure setup
    default_tray_capacity: int = int(os.getenv("DEFAULT_TRAY_CAPACITY", "12"))


settings = Settings()
