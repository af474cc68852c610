from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # `.env.prod` takes priority over `.env`
        env_file=(".env", ".env.prod")
    )

    # Session token settings
    jwt_secret: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"
    token_expire_hours: int = 24
    cookie_secure: bool = False  # True in production (cross-site cookie)
    # POST /auth trusts the email it is given; only enable behind an identity provider
    email_sign_in_enabled: bool = True

    # Comma separated list of allowed browser origins
    cors_origins: str = "http://localhost:5173"

    # Public URL of this API (gateway callbacks) and of the web client (redirects)
    app_base_url: str = "http://localhost:8000"
    client_base_url: str = "http://localhost:5173"

    # Outbound email
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    mail_sender: str = "Jobify <no-reply@jobify.local>"
    smtp_timeout: float = 10.0
    mail_retry_attempts: int = 3

    # Stripe billing settings
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None

    # SSLCommerz hosted payment settings
    sslcommerz_store_id: Optional[str] = None
    sslcommerz_store_password: Optional[str] = None
    sslcommerz_sandbox: bool = True
    gateway_timeout: float = 15.0

    # Plan pricing, in major currency units
    payment_currency: str = "USD"
    plan_prices: dict[str, float] = {"basic": 10.0, "standard": 20.0, "premium": 30.0}

    # Shared secret the cron trigger sends in X-Cron-Secret
    cron_secret: Optional[str] = None

    @property
    def allowed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
