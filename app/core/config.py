from pydantic_settings import BaseSettings
from typing import Optional
from functools import lru_cache

class Settings(BaseSettings):
    # MongoDB Settings
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "pos_tax_portal"

    # JWT Settings (tokens are issued by the identity provider)
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # CORS Settings
    CORS_ORIGINS: str = "*"

    # Frontend URL
    FRONTEND_URL: str = "http://localhost:5173"  # Default value for development

    LOG_LEVEL: str = "INFO"

    # Tax policy
    TAX_RATE: float = 0.05  # 5% of estimated POS profit
    MISSING_PERIOD_FALLBACK_MONTHS: int = 6  # Used when a bank has no creation date
    INVOICE_NUMBER_PREFIX: str = "INV"
    SETTLEMENT_REFERENCE_PREFIX: str = "SET"

    # Terra Switching payment gateway
    TERRASWITCH_ENV: str = "sandbox"  # "sandbox" or "live"
    TERRASWITCH_SECRET_KEY: Optional[str] = None
    TERRASWITCH_WEBHOOK_SECRET: Optional[str] = None
    TERRASWITCH_TIMEOUT_SECONDS: float = 30.0

    @property
    def CORS_ORIGINS_LIST(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def TERRASWITCH_BASE_URL(self) -> str:
        if self.TERRASWITCH_ENV == "live":
            return "https://api.terraswitching.com/v1"
        return "https://sandbox.terraswitching.com/v1"

    class Config:
        env_file = ".env"
        case_sensitive = True

@lru_cache()
def get_settings():
    return Settings()

settings = get_settings()
