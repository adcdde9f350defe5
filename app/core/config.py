from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AnyUrl, Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = Field(default="dev", description="dev|staging|prod")
    APP_NAME: str = "Portal TI API"
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8081

    # Segurança
    JWT_SECRET: str = "change-me"
    ACCESS_EXPIRES_MIN: int = 480
    RATE_LIMIT_REQUESTS: int = Field(default=100, description="Requests per client IP per window on /api/")
    RATE_LIMIT_WINDOW_SECONDS: int = 900

    # DB
    DB_URL: AnyUrl | str = "sqlite+aiosqlite:///./portal_ti.db"
    DB_AUTO_CREATE: bool = Field(default=True, description="Create tables on startup when migrations are not used")

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # Inventário
    MAINTENANCE_ALERT_DAYS: int = 15
    MAINTENANCE_ALERT_HIGH_DAYS: int = 30
    LONG_USE_ALERT_DAYS: int = 180
    LONG_USE_ALERT_HIGH_DAYS: int = 365
    EQUIPMENT_USEFUL_LIFE_YEARS: int = 5

@lru_cache
def get_settings() -> Settings:
    return Settings()
