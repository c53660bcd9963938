from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Device-local durable store (offline queue, device flags)
    LOCAL_DB_URL: str = "sqlite+aiosqlite:///./pos_outbox.db"
    # Hosted store shared by every device of a tenant (print queue, business tables)
    REMOTE_DB_URL: str = "sqlite+aiosqlite:///./pos_remote.db"

    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    STALE_OPERATION_THRESHOLD_SECONDS: int = 60 * 60
    PENDING_CHECK_INTERVAL_SECONDS: int = 24 * 60 * 60
    RECONNECT_DEBOUNCE_SECONDS: float = 2.0
    PRINT_QUEUE_POLL_INTERVAL_SECONDS: float = 5.0

    DEFAULT_TENANT_ID: Optional[str] = None

    class Config:
        env_file = ".env"

settings = Settings()
