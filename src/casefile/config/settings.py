from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator

from pydantic_settings import BaseSettings

from .paths import DATA_DIR, LOGS_DIR, PROJECT_ROOT, TMP_DIR, UPLOADS_DIR, ensure_directories

STORED_LANGUAGES = ("en", "ar")


class Settings(BaseSettings):
    """Configuration centralisee du pipeline d'ingestion casefile."""

    debug_mode: bool = Field(default=False, alias="DEBUG_MODE")

    # === Broker (Redis / RQ) ===
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_password: Optional[str] = Field(default=None, alias="REDIS_PASSWORD")
    redis_db: int = Field(default=0, alias="REDIS_DB")
    redis_connect_timeout: float = Field(default=5.0, alias="REDIS_CONNECT_TIMEOUT")

    # Timeout d'un job RQ (secondes) et TTL des resultats conserves
    job_timeout: int = Field(default=3600, alias="INGESTION_JOB_TIMEOUT")
    result_ttl: int = Field(default=86400, alias="INGESTION_RESULT_TTL")

    # === Concurrence par file ===
    doc_worker_concurrency: int = Field(default=2, alias="DOC_WORKER_CONCURRENCY")
    user_requests_concurrency: int = Field(default=5, alias="USER_REQUESTS_CONCURRENCY")
    ai_analysis_concurrency: int = Field(default=3, alias="AI_ANALYSIS_CONCURRENCY")

    # === Gemini ===
    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-1.5-flash", alias="GEMINI_MODEL")
    gemini_request_timeout: float = Field(default=120.0, alias="GEMINI_REQUEST_TIMEOUT")
    ai_max_retries: int = Field(default=3, alias="AI_MAX_RETRIES")
    ai_retry_base_delay: float = Field(default=2.0, alias="AI_RETRY_BASE_DELAY")

    # === OCR ===
    ocr_workers: int = Field(default=2, alias="OCR_WORKERS")
    ocr_languages: str = Field(default="eng+ara", alias="OCR_LANGUAGES")
    ocr_max_dimension: int = Field(default=2000, alias="OCR_MAX_DIMENSION")
    video_frame_interval: float = Field(default=2.0, alias="VIDEO_FRAME_INTERVAL")
    video_max_frames: int = Field(default=10, alias="VIDEO_MAX_FRAMES")

    # === Langues de travail ===
    primary_language: str = Field(default="en", alias="PRIMARY_LANGUAGE")
    secondary_language: str = Field(default="ar", alias="SECONDARY_LANGUAGE")
    timeline_dayfirst: bool = Field(default=False, alias="TIMELINE_DAYFIRST")

    # === Base documentaire ===
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    processing_lease_seconds: int = Field(default=5400, alias="PROCESSING_LEASE_SECONDS")

    data_dir: Path = Field(default=DATA_DIR, alias="CASEFILE_DATA_DIR")
    logs_dir: Path = Field(default=LOGS_DIR)
    tmp_dir: Path = Field(default=TMP_DIR)
    uploads_dir: Path = Field(default=UPLOADS_DIR)

    class Config:
        env_file = PROJECT_ROOT / ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        populate_by_name = True
        extra = "ignore"

    @field_validator("doc_worker_concurrency", "user_requests_concurrency", "ai_analysis_concurrency", "ocr_workers")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("concurrency must be >= 1")
        return value

    @field_validator("primary_language", "secondary_language")
    @classmethod
    def _language_code(cls, value: str) -> str:
        return value.strip().lower()

    @model_validator(mode="after")
    def _storable_languages(self) -> "Settings":
        # Les traductions sont persistees dans translation_en / translation_ar
        if {self.primary_language, self.secondary_language} != set(STORED_LANGUAGES):
            raise ValueError(
                f"PRIMARY_LANGUAGE/SECONDARY_LANGUAGE must be {' and '.join(STORED_LANGUAGES)}, "
                f"got {self.primary_language!r}/{self.secondary_language!r}"
            )
        return self

    @property
    def redis_url(self) -> str:
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    @property
    def resolved_database_url(self) -> str:
        """URL SQLAlchemy: DATABASE_URL sinon fallback SQLite dans data_dir."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.data_dir}/casefile.db"

    def configure_runtime(self) -> None:
        """Cree les repertoires utiles au runtime."""
        ensure_directories([self.data_dir, self.logs_dir, self.tmp_dir, self.uploads_dir])


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()  # type: ignore[arg-type]
    settings.configure_runtime()
    return settings
