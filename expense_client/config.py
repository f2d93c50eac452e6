from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "extra": "ignore"}

    # Backend
    API_BASE_URL: str = "http://localhost:8000"
    REQUEST_TIMEOUT_SECONDS: float = 15.0

    # Session
    LOGOUT_SETTLE_SECONDS: float = 0.3
    TOKEN_STORE_BACKEND: str = "file"
    TOKEN_STORE_PATH: str = "~/.expense-tracker/credentials.json"

    # Budget
    MONTHLY_BUDGET_LIMIT: float = 10000.0
    BUDGET_WARNING_THRESHOLD: int = 75
    BUDGET_AT_RISK_THRESHOLD: int = 90
    DEFAULT_CURRENCY: str = "INR"

    # SMS ingestion
    SMS_LISTENER_ENABLED: bool = True

    LOG_LEVEL: str = "INFO"


settings = Settings()
