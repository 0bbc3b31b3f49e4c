import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Identity provider (NextAuth-issued JWT, HS256)
    AUTH_JWT_SECRET: Optional[str] = None
    AUTH_ALLOW_HEADER_IDENTITY: bool = True  # X-User-Id fallback, ignored in production

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_PRICE_PRO_MONTHLY: Optional[str] = None
    STRIPE_PRICE_PRO_YEARLY: Optional[str] = None
    STRIPE_PRICE_MAX_MONTHLY: Optional[str] = None
    STRIPE_PRICE_MAX_YEARLY: Optional[str] = None
    STRIPE_PRICE_ULTRA_MONTHLY: Optional[str] = None
    STRIPE_PRICE_ULTRA_YEARLY: Optional[str] = None

    # Usage metering
    USAGE_BYPASS_IDENTITIES: str = ""  # comma-separated emails or user ids
    USAGE_MESSAGE_LOCALE: str = "pt-BR"

    # AI model toggles (site_settings cache)
    AI_CONFIG_CACHE_TTL_SECONDS: float = 5.0

    # App URLs
    FRONTEND_URL: str = "http://localhost:3000"

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def bypass_identities(self) -> List[str]:
        return [item.strip() for item in self.USAGE_BYPASS_IDENTITIES.split(",") if item.strip()]

settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("buildix")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
        "AUTH_JWT_SECRET",
        "STRIPE_SECRET_KEY",
        "STRIPE_WEBHOOK_SECRET",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
