import os
import sys
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "CouponHub API"
    app_env: str = "local"
    public_base_url: str = "http://localhost:3000"
    cors_allowed_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    jwt_secret: str = "local-dev-secret"
    jwt_access_ttl_seconds: int = 43200
    jwt_algorithm: str = "HS256"

    postgres_dsn: str = "sqlite:///./couponhub.db"
    redis_url: str = "redis://localhost:6379/0"

    log_level: str = "INFO"
    metrics_enabled: bool = False
    max_request_body_bytes: int = 1_000_000
    max_submit_body_bytes: int = 16_384
    rate_limit_enabled: bool = False
    submit_rate_limit_per_minute: int = 30
    csrf_enabled: bool = True

    default_tenant_slug: str = "default"
    default_tenant_name: str = "Default Tenant"
    bootstrap_superadmin_username: str = "superadmin"
    bootstrap_superadmin_password: str = ""

    campaign_update_strict_validation: bool = False
    custom_field_limit: int = 5
    form_link_max_batch: int = 1000
    token_retry_budget: int = 10

    @model_validator(mode="after")
    def validate_production_guardrails(self) -> "Settings":
        if not self.jwt_secret.strip():
            raise ValueError("JWT_SECRET is required and must not be empty.")
        if self.custom_field_limit < 0:
            raise ValueError("CUSTOM_FIELD_LIMIT must not be negative.")
        if self.form_link_max_batch < 1:
            raise ValueError("FORM_LINK_MAX_BATCH must be at least 1.")
        if self.token_retry_budget < 1:
            raise ValueError("TOKEN_RETRY_BUDGET must be at least 1.")

        if self.app_env.lower() != "production":
            return self

        if self.jwt_secret in {"local-dev-secret", "replace-me"} or len(self.jwt_secret) < 32:
            raise ValueError("Production requires JWT_SECRET with at least 32 characters.")
        if self.postgres_dsn.startswith("sqlite"):
            raise ValueError("Production requires POSTGRES_DSN backed by PostgreSQL.")
        if self.bootstrap_superadmin_password in {"admin", "password", "replace-me"}:
            raise ValueError("Production forbids weak BOOTSTRAP_SUPERADMIN_PASSWORD values.")
        return self

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    app_env = os.getenv("APP_ENV", "").lower()
    is_pytest_runtime = "pytest" in sys.modules
    if app_env == "test" or (not app_env and is_pytest_runtime):
        def _env_or_default(name: str, default: str) -> str:
            value = os.getenv(name)
            if value is None:
                return default
            stripped = value.strip()
            return stripped if stripped else default

        return Settings(
            app_env="test",
            public_base_url=_env_or_default("PUBLIC_BASE_URL", "http://testserver"),
            jwt_secret=_env_or_default("JWT_SECRET", "test-jwt-secret-32-characters-minimum"),
            postgres_dsn=_env_or_default("POSTGRES_DSN", "sqlite:///./couponhub-test.db"),
            rate_limit_enabled=False,
            bootstrap_superadmin_password="",
        )
    return Settings()
