from typing import Optional, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


ClusteringStrategyName = Literal["category", "proximity", "source", "auto"]
ResolutionName = Literal["merge", "reject-new", "reject-existing", "manual"]


class Settings(BaseSettings):
    # Интервалы и таймауты в миллисекундах
    auto_save_interval: int = Field(30_000, gt=0)
    max_session_duration: int = Field(4 * 60 * 60 * 1000, gt=0)
    session_timeout: int = Field(5 * 60 * 1000, gt=0)
    max_concurrent_sessions: int = Field(5, ge=1)

    # Конфликты
    enable_conflict_resolution: bool = True
    conflict_resolution_strategy: ResolutionName = "merge"
    conflict_auto_policy: Optional[ResolutionName] = None
    simultaneous_edit_window: int = Field(5_000, ge=0)

    # Кластеризация
    clustering_strategy: ClusteringStrategyName = "category"
    proximity_threshold: int = Field(100, ge=0)
    preview_length: int = Field(50, ge=1)
    clustering_chunk_size: int = Field(200, ge=1)

    # Автопринятие правок ИИ
    auto_accept_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)

    # Снимки и хранение
    max_snapshots_per_session: int = Field(10, ge=1)
    change_retention: int = Field(7 * 24 * 60 * 60 * 1000, gt=0)
    max_queued_bulk_operations: int = Field(4, ge=1)
    snapshot_persist_attempts: int = Field(3, ge=1)

    database_url: str = "sqlite+aiosqlite:///./trackedits.db"
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_prefix": "TRACKEDITS_", "extra": "ignore"}

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


settings = Settings()
