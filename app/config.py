from __future__ import annotations

import os
from dataclasses import dataclass


def _flag(env_var: str, default: bool = False) -> bool:
    """Return True when an env var is explicitly set to a truthy value."""
    value = os.getenv(env_var)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    store_backend: str = "sql"
    database_url: str = "sqlite:///./dev.db"
    store_path: str = "./data.json"
    redis_url: str = "redis://redis:6379/0"
    store_key: str = "price_alerts:data"
    coingecko_url: str = "https://api.coingecko.com/api/v3"
    price_timeout: float = 10.0
    smtp_host: str = "localhost"
    smtp_port: int = 25
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_sender: str = "alerts@example.com"
    smtp_use_tls: bool = False
    email_dry_run: bool = True
    jwt_secret: str = "dev-secret-change-me"
    cron_secret: str | None = None
    metrics_endpoint: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            store_backend=os.getenv("ALERT_STORE", "sql").strip().lower(),
            # Default to a local SQLite database for dev/tests when DATABASE_URL is unset.
            database_url=os.getenv("DATABASE_URL", "sqlite:///./dev.db"),
            store_path=os.getenv("ALERT_STORE_PATH", "./data.json"),
            redis_url=os.getenv("REDIS_URL", "redis://redis:6379/0"),
            store_key=os.getenv("ALERT_STORE_KEY", "price_alerts:data"),
            coingecko_url=os.getenv("COINGECKO_API_URL", "https://api.coingecko.com/api/v3"),
            price_timeout=float(os.getenv("PRICE_HTTP_TIMEOUT", "10")),
            smtp_host=os.getenv("SMTP_HOST", "localhost"),
            smtp_port=int(os.getenv("SMTP_PORT", "25")),
            smtp_user=os.getenv("SMTP_USER") or None,
            smtp_password=os.getenv("SMTP_PASSWORD") or None,
            smtp_sender=os.getenv("SMTP_SENDER", "alerts@example.com"),
            smtp_use_tls=_flag("SMTP_USE_TLS"),
            email_dry_run=_flag("EMAIL_DRY_RUN", default=True),
            jwt_secret=os.getenv("JWT_SECRET", "dev-secret-change-me"),
            cron_secret=os.getenv("CRON_SECRET") or None,
            metrics_endpoint=_flag("ENABLE_METRICS_ENDPOINT"),
        )
