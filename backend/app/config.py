from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./dev.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    # bearer tokens issued by the auth service
    JWT_SECRET: str = "change-this-secret"
    JWT_ALGORITHM: str = "HS256"

    # collaborator functions (shipping, payment, pharmacy, discounts)
    FUNCTIONS_BASE_URL: str = "http://localhost:54321/functions/v1"
    SVC_INTERNAL_KEY: str = "devkey"
    EXTERNAL_TIMEOUT_SECONDS: float = 10.0

    DEFAULT_MERCHANT_FEE_PERCENTAGE: float = 3.75
    CHECKOUT_LOCK_TTL_SECONDS: int = 300
    ABANDONED_ORDER_TTL_SECONDS: int = 3600
    RECONCILE_INTERVAL_SECONDS: int = 60
    ENABLE_SCHEDULER: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
