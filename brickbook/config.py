from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str
    REDIS_URL: str = "redis://localhost:6379/0"

    JWT_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRY_MINUTES: int = 120
    REFRESH_TOKEN_EXPIRY_DAYS: int = 3

    # "production" hides tracebacks from 500 responses and marks cookies secure
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    RATE_LIMIT_ENABLED: bool = True

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Amounts are stored without a unit; everything is in this currency
    CURRENCY: str = "INR"
    CURRENCY_SYMBOL: str = "₹"

    class Config:
        env_file = ".env"

    @property
    def IS_PRODUCTION(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


Config = Settings()
