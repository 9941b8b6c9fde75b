# app/core/config.py
import os
from urllib.parse import quote_plus

from dotenv import load_dotenv


def str_to_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def merge_unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in items:
        if v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out


class Settings:
    def __init__(self) -> None:
        # Only load .env for local/dev. In prod, env vars come from the function/service config.
        self.ENV = os.getenv("ENV", "dev").strip().lower()  # dev | prod
        if self.ENV != "prod":
            load_dotenv()

        # ----------------------------
        # Database
        # ----------------------------
        # DATABASE_URL wins when set (local sqlite, managed Postgres connection strings).
        self.DATABASE_URL = os.getenv("DATABASE_URL", "").strip()
        self.DB_HOST = os.getenv("DB_HOST", "")
        self.DB_PORT = os.getenv("DB_PORT", "5432")
        self.DB_NAME = os.getenv("DB_NAME", "")
        self.DB_APP_USER = os.getenv("DB_APP_USER", "")
        self.DB_APP_PASSWORD = os.getenv("DB_APP_PASSWORD", "")
        self.DB_MIGRATOR_USER = os.getenv("DB_MIGRATOR_USER", "")
        self.DB_MIGRATOR_PASSWORD = os.getenv("DB_MIGRATOR_PASSWORD", "")
        self.DB_SSLMODE = os.getenv("DB_SSLMODE", "require").strip().lower()

        # ----------------------------
        # CORS
        # ----------------------------
        # The landing page and its previews are served from several hosts; default is open.
        cors_from_env = parse_csv(os.getenv("CORS_ORIGINS"))
        self.CORS_ORIGINS = merge_unique(cors_from_env) or ["*"]

        if self.ENV == "prod":
            self.FRONTEND_BASE_URL = os.getenv("FRONTEND_BASE_URL", "").strip().rstrip("/")
        else:
            self.FRONTEND_BASE_URL = os.getenv("FRONTEND_BASE_URL", "http://localhost:8080").strip().rstrip("/")

        # ----------------------------
        # Stripe
        # ----------------------------
        self.STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
        self.STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
        self.STRIPE_ONE_TIME_PRICE_ID = os.getenv("STRIPE_ONE_TIME_PRICE_ID", "")
        self.STRIPE_INSTALLMENT_PRICE_ID = os.getenv("STRIPE_INSTALLMENT_PRICE_ID", "")
        self.STRIPE_CHECKOUT_LOCALE = os.getenv("STRIPE_CHECKOUT_LOCALE", "pt-BR").strip()
        # Number of monthly charges collected before an installment plan is cancelled.
        self.INSTALLMENT_COUNT = int(os.getenv("INSTALLMENT_COUNT", "3"))

        # ----------------------------
        # Admin dashboard
        # ----------------------------
        self.ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN", "")
        self.ANALYTICS_DEFAULT_DAYS = int(os.getenv("ANALYTICS_DEFAULT_DAYS", "30"))
        self.ANALYTICS_MAX_DAYS = int(os.getenv("ANALYTICS_MAX_DAYS", "365"))

        # ----------------------------
        # Tracking / rate limiting
        # ----------------------------
        self.ENABLE_RATE_LIMITING = str_to_bool(os.getenv("ENABLE_RATE_LIMITING", "false"))
        self.TRACKING_RATE_LIMIT = os.getenv("TRACKING_RATE_LIMIT", "120/minute").strip()
        self.TRACKING_ENDPOINT_URL = os.getenv(
            "TRACKING_ENDPOINT_URL", "http://localhost:8000/track-checkout-event"
        ).strip()
        self.TRACKING_TIMEOUT_SECONDS = float(os.getenv("TRACKING_TIMEOUT_SECONDS", "5"))

        # Final: fail fast in prod
        self._validate_prod()

    def _validate_prod(self) -> None:
        if self.ENV != "prod":
            return

        missing: list[str] = []

        if not self.DATABASE_URL:
            if not self.DB_HOST:
                missing.append("DB_HOST")
            if not self.DB_NAME:
                missing.append("DB_NAME")
            if not self.DB_APP_USER:
                missing.append("DB_APP_USER")
            if not self.DB_APP_PASSWORD:
                missing.append("DB_APP_PASSWORD")
            if self.DB_SSLMODE != "require":
                raise RuntimeError("DB_SSLMODE must be 'require' in prod")

        if not self.STRIPE_SECRET_KEY:
            missing.append("STRIPE_SECRET_KEY")
        if not self.STRIPE_WEBHOOK_SECRET:
            missing.append("STRIPE_WEBHOOK_SECRET")
        if not self.STRIPE_ONE_TIME_PRICE_ID:
            missing.append("STRIPE_ONE_TIME_PRICE_ID")
        if not self.STRIPE_INSTALLMENT_PRICE_ID:
            missing.append("STRIPE_INSTALLMENT_PRICE_ID")
        if not self.ADMIN_API_TOKEN:
            missing.append("ADMIN_API_TOKEN")

        if not self.FRONTEND_BASE_URL:
            missing.append("FRONTEND_BASE_URL")
        if self.FRONTEND_BASE_URL and not self.FRONTEND_BASE_URL.startswith("https://"):
            raise RuntimeError("FRONTEND_BASE_URL should be https://... in prod")

        if self.INSTALLMENT_COUNT < 1:
            raise RuntimeError("INSTALLMENT_COUNT must be at least 1")

        if missing:
            raise RuntimeError(f"Missing required prod env vars: {', '.join(missing)}")

    @property
    def is_prod(self) -> bool:
        return self.ENV == "prod"

    def get_price_for_mode(self, payment_mode: str) -> tuple[str, str] | None:
        """Return (price_id, checkout mode) for a payment mode, or None if unknown."""
        table = {
            "one_time": (self.STRIPE_ONE_TIME_PRICE_ID, "payment"),
            "installment": (self.STRIPE_INSTALLMENT_PRICE_ID, "subscription"),
        }
        return table.get(payment_mode)

    def _build_database_url(self, user: str, password: str) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        encoded_password = quote_plus(password)
        return (
            f"postgresql+psycopg2://{user}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            f"?sslmode={self.DB_SSLMODE}"
        )

    @property
    def database_url(self) -> str:
        return self._build_database_url(self.DB_APP_USER, self.DB_APP_PASSWORD)

    @property
    def migrations_database_url(self) -> str:
        return self._build_database_url(self.DB_MIGRATOR_USER, self.DB_MIGRATOR_PASSWORD)


settings = Settings()
