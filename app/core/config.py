from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Ledger: how many times a payment is re-applied after losing a per-record race
    ledger_max_retries: int = Field(3, alias="LEDGER_MAX_RETRIES", ge=1)
    receipt_prefix: str = Field("RCP", alias="RECEIPT_PREFIX")
    default_currency: str = Field("INR", alias="DEFAULT_CURRENCY")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_format: Optional[str] = Field(None, alias="LOG_FORMAT")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
