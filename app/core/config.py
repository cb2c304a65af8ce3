from __future__ import annotations

import os
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseAppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "Contribui"
    ENV: str = "dev"
    DATABASE_URL: str | None = None
    REDIS_URL: str | None = None

    # Tenant used when a request does not send X-Company-Id
    DEFAULT_COMPANY_ID: str = "default"
    ADMIN_API_KEY: str = "change_me"

    # Cielo e-commerce API
    CIELO_PRODUCTION_URL: str = "https://api.cieloecommerce.cielo.com.br"
    CIELO_SANDBOX_URL: str = "https://apisandbox.cieloecommerce.cielo.com.br"
    CIELO_TIMEOUT_SECONDS: float = 15.0
    PIX_EXPIRATION_MINUTES: int = 30
    BOLETO_EXPIRATION_DAYS: int = 7
    BOLETO_PROVIDER: str = "Bradesco2"
    BOLETO_ASSIGNOR: str = "Vinha Ministérios"
    CARD_SOFT_DESCRIPTOR: str = "Contribuicao"
    # Banks confirm boleto payments up to this many days after the due date
    BOLETO_SETTLEMENT_DAYS: int = 3

    # Gateway configuration cache (seconds)
    GATEWAY_CONFIG_CACHE_TTL: int = 300

    # Grace after a charge's own payment deadline before it is refused;
    # card charges that stay pending are refused after this alone
    PENDING_EXPIRY_MINUTES: int = 15

    # Webhook reconciliation backoff
    WEBHOOK_MAX_ATTEMPTS: int = 5
    WEBHOOK_INITIAL_DELAY_MS: int = 100
    WEBHOOK_MAX_DELAY_MS: int = 5000
    WEBHOOK_BACKOFF_MULTIPLIER: float = 2.0

    CORS_ALLOW_ORIGINS: list[str] = ["*"]
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True
    HSTS_SECONDS: int = 31536000
    CONTENT_SECURITY_POLICY: str = "default-src 'none'; frame-ancestors 'none'"
    MAX_REQUEST_BODY_BYTES: int = 1024 * 1024
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "plain"
    SENTRY_DSN: str | None = None

    @model_validator(mode="after")
    def _validate_required_fields(self) -> BaseAppSettings:
        # Convert Heroku's postgres:// URL to postgresql://
        if self.DATABASE_URL and self.DATABASE_URL.startswith("postgres://"):
            self.DATABASE_URL = self.DATABASE_URL.replace("postgres://", "postgresql://", 1)

        if self.ENV.lower() == "prod":
            missing = [name for name in ("DATABASE_URL", "ADMIN_API_KEY") if not getattr(self, name)]
            if missing:
                raise ValueError(f"Missing required production settings: {', '.join(missing)}")
            if self.ADMIN_API_KEY == "change_me":
                raise ValueError("Insecure default secrets in production: ADMIN_API_KEY uses default placeholder")
        return self


class DevSettings(BaseAppSettings):
    ENV: str = "dev"
    DATABASE_URL: str = "sqlite:///./storage/dev.db"
    ADMIN_API_KEY: str = "dev-admin-key"


class TestSettings(BaseAppSettings):
    ENV: str = "test"
    DATABASE_URL: str = "sqlite:///:memory:"
    ADMIN_API_KEY: str = "test-admin-key"
    DEFAULT_COMPANY_ID: str = "test-company"
    WEBHOOK_MAX_ATTEMPTS: int = 2
    WEBHOOK_INITIAL_DELAY_MS: int = 0
    WEBHOOK_MAX_DELAY_MS: int = 0


class ProdSettings(BaseAppSettings):
    ENV: str = "prod"
    CORS_ALLOW_ORIGINS: list[str] = [
        "https://contribui.com.br",
        "https://admin.contribui.com.br",
    ]
    LOG_FORMAT: str = "json"


_ENV_TO_SETTINGS: dict[str, type[BaseAppSettings]] = {
    "dev": DevSettings,
    "development": DevSettings,
    "test": TestSettings,
    "testing": TestSettings,
    "prod": ProdSettings,
    "production": ProdSettings,
}


@lru_cache
def get_settings() -> BaseAppSettings:
    env_name = os.getenv("APP_ENV") or os.getenv("ENV") or "dev"
    env = env_name.lower()
    settings_cls = _ENV_TO_SETTINGS.get(env, DevSettings)
    return settings_cls()


settings = get_settings()
