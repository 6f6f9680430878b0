from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000", "http://localhost:5173"]
_DEFAULT_PRODUCTS = ["iyfa", "ylp"]


def _parse_list(v: Any, default: List[str]) -> List[str]:
    try:
        if v is None or v == "":
            return default.copy()
        if isinstance(v, list):
            return [x for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if not s:
            return default.copy()
        if s.startswith("["):
            import json
            out = json.loads(s)
            return [x for x in out if isinstance(x, str) and x.strip()] or default.copy()
        return [x.strip() for x in s.split(",") if x.strip()] or default.copy()
    except Exception:
        return default.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")
    secret_key: str = Field(default="change-me-in-production-min-32-chars")
    session_max_age_seconds: int = 7 * 24 * 3600

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="coursepay", alias="MONGODB_DB_NAME")

    # Redis (ARQ)
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    # Razorpay
    razorpay_key_id: str = Field(default="", alias="RAZORPAY_KEY_ID")
    razorpay_key_secret: str = Field(default="", alias="RAZORPAY_KEY_SECRET")
    razorpay_webhook_secret: str = Field(default="", alias="RAZORPAY_WEBHOOK_SECRET")
    razorpay_plan_id: str = Field(default="", alias="RAZORPAY_PLAN_ID")
    razorpay_timeout_seconds: float = Field(default=10.0, alias="RAZORPAY_TIMEOUT_SECONDS")

    # Pricing, minor units (paise)
    payment_amount: int | None = Field(default=None, alias="PAYMENT_AMOUNT")
    currency: str = Field(default="INR", alias="CURRENCY")
    subscription_total_count: int = Field(default=12, alias="SUBSCRIPTION_TOTAL_COUNT")
    subscription_product_id: str = Field(default="subscription", alias="SUBSCRIPTION_PRODUCT_ID")
    refund_window_days: int = Field(default=14, alias="REFUND_WINDOW_DAYS")

    course_products_raw: str = Field(
        default="iyfa,ylp",
        alias="COURSE_PRODUCTS",
        description="Comma-separated or JSON list",
    )

    # SMTP
    smtp_host: str = Field(default="smtp.gmail.com", alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_username: str = Field(default="", alias="SMTP_USERNAME")
    smtp_password: str = Field(default="", alias="SMTP_PASSWORD")
    smtp_from_email: str = Field(default="", alias="SMTP_FROM_EMAIL")
    smtp_use_tls: bool = Field(default=True, alias="SMTP_USE_TLS")

    notification_enqueue_timeout_seconds: float = Field(
        default=2.0, alias="NOTIFICATION_ENQUEUE_TIMEOUT_SECONDS"
    )

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_list(getattr(self, "cors_origins_raw", None), _DEFAULT_CORS)

    @property
    def course_products(self) -> List[str]:
        return _parse_list(getattr(self, "course_products_raw", None), _DEFAULT_PRODUCTS)


@lru_cache
def get_settings() -> Settings:
    return Settings()
