from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central config loaded from environment variables and optionally .env (local).

    Empty connection strings select the in-memory backends, which is what
    local runs and the test-suite use.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # -------------------------
    # Job persistence (Postgres)
    # -------------------------
    database_url: str = Field("", alias="DATABASE_URL")

    # -------------------------
    # Result cache (Redis)
    # -------------------------
    redis_url: str = Field("", alias="REDIS_URL")
    result_ttl_seconds: int = Field(86400, alias="RESULT_TTL_SECONDS")

    # -------------------------
    # Source data
    # Local files live under DATA_DIR; SUPABASE_URL switches to Supabase Storage.
    # -------------------------
    data_dir: str = Field("/data", alias="DATA_DIR")
    supabase_url: str = Field("", alias="SUPABASE_URL")
    supabase_service_role_key: str = Field("", alias="SUPABASE_SERVICE_ROLE_KEY")
    supabase_storage_bucket: str = Field("datasets", alias="SUPABASE_STORAGE_BUCKET")

    # -------------------------
    # Column classification
    # -------------------------
    numeric_threshold: float = Field(0.95, alias="NUMERIC_THRESHOLD")
    date_threshold: float = Field(0.95, alias="DATE_THRESHOLD")
    categorical_max_ratio: float = Field(0.5, alias="CATEGORICAL_MAX_RATIO")
    categorical_max_unique: int = Field(50, alias="CATEGORICAL_MAX_UNIQUE")
    top_n: int = Field(5, alias="TOP_N")

    # -------------------------
    # Worker pool
    # -------------------------
    max_concurrent_jobs: int = Field(4, alias="MAX_CONCURRENT_JOBS")
    job_timeout_seconds: float = Field(120.0, alias="JOB_TIMEOUT_SECONDS")
    max_retries: int = Field(3, alias="MAX_RETRIES")
    retry_backoff_seconds: float = Field(0.5, alias="RETRY_BACKOFF_SECONDS")
    retry_backoff_max_seconds: float = Field(8.0, alias="RETRY_BACKOFF_MAX_SECONDS")

    # -------------------------
    # Service
    # -------------------------
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"], alias="CORS_ALLOW_ORIGINS")


settings = Settings()
