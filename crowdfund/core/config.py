"""
Settings for the crowdfund backend, read from the environment and .env.

Amounts are integers in the currency's minor unit (Rappen).
"""
import logging
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = "development"  # development | test | production
    CONFIG_STRICT: bool = False

    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # HS256 key for session bearer tokens
    SESSION_SECRET: Optional[str] = None

    # PostFinance e-payment
    PF_PSPID: Optional[str] = None
    PF_SHA_IN_SECRET: Optional[str] = None
    PF_SHA_ALGORITHM: str = "sha512"
    PAYMENT_ALIAS_METHOD: str = "POSTFINANCECARD"

    MIN_PLEDGE_TOTAL: int = 100

    DEFAULT_LOCALE: str = "de"
    CORS_ORIGINS: str = "http://localhost:3000"


settings = Settings()

# Needed to take pledges; missing ones are named, values never logged
REQUIRED_KEYS = ("DATABASE_URL", "SESSION_SECRET", "PF_PSPID", "PF_SHA_IN_SECRET")


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Warn about missing required keys, or raise RuntimeError when strict."""
    cfg = settings_obj or settings
    if strict is None:
        strict = bool(getattr(cfg, "CONFIG_STRICT", False))

    missing = [key for key in REQUIRED_KEYS if not getattr(cfg, key, None)]
    if not missing:
        return True

    message = f"Missing required configuration: {', '.join(missing)}"
    if strict:
        raise RuntimeError(message)
    (logger or logging.getLogger("crowdfund")).warning(message)
    return True
