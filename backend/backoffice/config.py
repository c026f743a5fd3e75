# backend/backoffice/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/backoffice.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///backoffice.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds a writer waits on a locked row/database before the operation
    # fails with a retryable storage error.
    DB_LOCK_TIMEOUT_SECONDS = float(os.environ.get("DB_LOCK_TIMEOUT_SECONDS", "5"))

    # Background sweepers (quote expiration, overdue invoices)
    SCHEDULER_ENABLED = _env_bool("SCHEDULER_ENABLED", False)
    QUOTE_EXPIRY_INTERVAL_MINUTES = int(os.environ.get("QUOTE_EXPIRY_INTERVAL_MINUTES", "60"))
    OVERDUE_SWEEP_INTERVAL_HOURS = int(os.environ.get("OVERDUE_SWEEP_INTERVAL_HOURS", "24"))

    # Quote validity window (days between quote_date and valid_until)
    QUOTE_MIN_VALIDITY_DAYS = int(os.environ.get("QUOTE_MIN_VALIDITY_DAYS", "7"))
    QUOTE_MAX_VALIDITY_DAYS = int(os.environ.get("QUOTE_MAX_VALIDITY_DAYS", "90"))

    # Browser origins allowed to call the API (local frontend dev servers)
    CORS_ALLOWED_ORIGINS = tuple(
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    )
