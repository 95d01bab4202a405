"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    APP_NAME: str = "Hawk-i Sync"
    ENV: str = "development"

    DATABASE_URL: str = "postgresql+psycopg://postgres@localhost:5432/hawki"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000"

    # azure devops credentials
    ADO_ORGANIZATION: str = ""
    ADO_PAT: str = ""
    ADO_BASE_URL: str = "https://dev.azure.com"
    ADO_GRAPH_API_URL: str = "https://vssps.dev.azure.com"
    ADO_API_VERSION: str = "7.0"
    ADO_GRAPH_API_VERSION: str = "7.0-preview.1"
    ADO_REQUEST_TIMEOUT_SECONDS: float = 30.0
    ADO_POST_TIMEOUT_SECONDS: float = 60.0
    ADO_MAX_RETRIES: int = 3
    ADO_DEFAULT_RETRY_AFTER_SECONDS: int = 60
    ADO_CACHE_TTL_SECONDS: int = 1800
    ADO_PROJECTS_CACHE_TTL_SECONDS: int = 3600
    ADO_WORK_ITEM_BATCH_SIZE: int = 20
    ADO_WORK_ITEM_QUERY_TOP: int = 20000
    ADO_WORK_ITEM_WARN_THRESHOLD: int = 1000
    ADO_BATCH_DELAY_MS: int = 100
    ADO_TEAM_DELAY_MS: int = 50
    ADO_ITERATION_DEPTH: int = 10
    # keep_unscoped | require_active_team_iteration
    ADO_WORK_ITEM_SCOPE_POLICY: str = "keep_unscoped"

    # bamboohr credentials
    BAMBOOHR_API_KEY: str = ""
    BAMBOOHR_SUBDOMAIN: str = ""
    BAMBOOHR_BASE_URL: str = "https://api.bamboohr.com/api/gateway.php"
    BAMBOOHR_DIVISION: str = ""

    IDENTITY_SUGGESTION_MIN_SCORE: float = 30.0
    IDENTITY_NAME_THRESHOLD: float = 50.0
    IDENTITY_EMAIL_THRESHOLD: float = 70.0
    IDENTITY_EMAIL_BOOST: float = 1.2

    model_config = SettingsConfigDict(env_file=str(BASE_DIR / ".env"), env_file_encoding="utf-8")

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def ado_ready(self) -> bool:
        return bool(self.ADO_ORGANIZATION.strip() and self.ADO_PAT.strip())

    @property
    def bamboohr_ready(self) -> bool:
        return bool(self.BAMBOOHR_API_KEY.strip() and self.BAMBOOHR_SUBDOMAIN.strip())

    @property
    def work_item_batch_size(self) -> int:
        return max(1, min(50, self.ADO_WORK_ITEM_BATCH_SIZE))


settings = Settings()
