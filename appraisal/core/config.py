import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

REPO_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE = os.getenv("ENV_FILE", str(REPO_ROOT / ".env"))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=ENV_FILE, extra="ignore")

    APP_ENV: str = "local"
    # postgresql+psycopg://... in deployments, sqlite:// is accepted for tests
    DATABASE_URL: str
    # Comma-separated origins, or "*"
    CORS_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    # Used when a template is created without dispute_period_days
    DEFAULT_DISPUTE_WINDOW_DAYS: int = Field(default=7, ge=0, le=365)

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


settings = Settings()
