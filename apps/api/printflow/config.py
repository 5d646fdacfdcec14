from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ADMIN_API_TOKEN = "printflow-admin-token"
DEFAULT_CRON_SECRET = "printflow-cron-secret"
MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    app_name: str = "Printflow Order Service"

    database_url: str = Field(
        default="sqlite+pysqlite:///./test.db",
        validation_alias="PRINTFLOW_DATABASE_URL",
    )
    cors_allowed_origins: str = "http://localhost:3000"
    testing: bool = Field(default=False, validation_alias="PRINTFLOW_TESTING")
    auto_create_schema: bool = Field(default=True, validation_alias="PRINTFLOW_AUTO_CREATE_SCHEMA")

    admin_api_token: str = Field(
        default=DEFAULT_ADMIN_API_TOKEN, validation_alias="ADMIN_API_TOKEN"
    )
    cron_secret: str = Field(default=DEFAULT_CRON_SECRET, validation_alias="CRON_SECRET")

    # payment gateway
    razorpay_key_id: str = Field(default="", validation_alias="RAZORPAY_KEY_ID")
    razorpay_key_secret: str = Field(default="", validation_alias="RAZORPAY_KEY_SECRET")
    razorpay_base_url: str = "https://api.razorpay.com/v1"
    razorpay_timeout_s: float = 10.0
    razorpay_max_retries: int = 2
    razorpay_backoff_s: float = 0.5
    currency: str = "INR"

    # object storage
    storage_base_url: str = ""
    storage_api_key: str = ""
    storage_timeout_s: float = 15.0

    # notifications
    notification_base_url: str = ""
    notification_timeout_s: float = 5.0

    # conversion providers
    conversion_api_url: str = "https://api.cloudmersive.com"
    conversion_api_key: str = Field(default="", validation_alias="CONVERSION_API_KEY")
    conversion_api_timeout_s: float = 60.0
    libreoffice_binary: str = "soffice"
    local_conversion_timeout_s: float = 120.0
    render_service_url: str = Field(default="", validation_alias="RENDER_SERVICE_URL")
    render_api_key: str = Field(default="", validation_alias="RENDER_API_KEY")
    render_webhook_secret: str = Field(default="", validation_alias="RENDER_WEBHOOK_SECRET")
    render_timeout_s: float = 10.0
    public_base_url: str = "http://localhost:8000"
    conversion_job_ttl_s: int = 60 * 60
    conversion_job_store: Literal["memory", "database"] = "memory"
    conversion_expected_duration_s: float = 90.0

    # printer fleet
    printer_api_urls: str = Field(default="", validation_alias="PRINTER_API_URLS")
    printer_api_key: str = Field(default="", validation_alias="PRINTER_API_KEY")
    printer_api_timeout_s: float = 5.0
    print_retry_max_attempts: int = 5
    print_retry_backoff_s: float = 30.0
    print_retry_max_backoff_s: float = 15 * 60.0

    # reconciliation
    reconcile_min_age_minutes: int = 5
    reminder_min_age_hours: int = 2
    stale_order_threshold_hours: int = 24
    amount_tolerance_paise: int = 100
    reconcile_strict_amount: bool = False
    gross_mismatch_ratio: float = 10.0

    # pricing
    price_a4: float = 5.0
    price_a3: float = 10.0
    color_multiplier: float = 2.0
    double_sided_multiplier: float = 1.5
    binding_fee: float = 20.0
    file_handling_fee: float = 10.0
    service_fee: float = 5.0
    template_commission_percent: float = 20.0
    delivery_charge_per_band: float = 10.0
    delivery_band_km: float = 5.0
    delivery_max_bands: int = 5

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @field_validator("stale_order_threshold_hours", "print_retry_max_attempts")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @field_validator("template_commission_percent")
    @classmethod
    def validate_commission(cls, value: float) -> float:
        if not 0 <= value <= 100:
            raise ValueError("template_commission_percent must be between 0 and 100")
        return value


settings = Settings()


def allowed_origins() -> list[str]:
    return [origin.strip() for origin in settings.cors_allowed_origins.split(",") if origin.strip()]


def printer_api_urls() -> list[str]:
    from printflow.integrations.printer_client import parse_printer_urls

    return parse_printer_urls(settings.printer_api_urls)


def render_callback_url() -> str:
    return f"{settings.public_base_url.rstrip('/')}/webhooks/render"


def ensure_secure_runtime_settings() -> None:
    """Fail fast when production-like runtime uses insecure defaults."""
    if settings.testing:
        return
    if not settings.razorpay_key_id or not settings.razorpay_key_secret:
        raise RuntimeError("RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET must be set")
    if settings.admin_api_token == DEFAULT_ADMIN_API_TOKEN:
        raise RuntimeError("ADMIN_API_TOKEN must be set to a non-default value")
    if settings.cron_secret == DEFAULT_CRON_SECRET:
        raise RuntimeError("CRON_SECRET must be set to a non-default value")
    if len(settings.admin_api_token) < MIN_SECRET_LENGTH:
        raise RuntimeError(f"ADMIN_API_TOKEN must be at least {MIN_SECRET_LENGTH} characters")
    if len(settings.cron_secret) < MIN_SECRET_LENGTH:
        raise RuntimeError(f"CRON_SECRET must be at least {MIN_SECRET_LENGTH} characters")
    if _is_sqlite_url(settings.database_url):
        raise RuntimeError(
            "PRINTFLOW_DATABASE_URL must use postgres when PRINTFLOW_TESTING is false"
        )


def _is_sqlite_url(database_url: str) -> bool:
    value = database_url.strip().lower()
    return value.startswith("sqlite")
