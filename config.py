"""
Configuration for the Site Notification Dashboard Flask app.
Production (Railway/Render): uses DATABASE_URL only; fails if missing.
Local: DATABASE_URL or a SQLite file under instance/.
"""
import os
from pathlib import Path
from datetime import timedelta


def _is_production():
    """True when running on Railway, Render, or explicit production."""
    return (
        os.environ.get("RENDER") == "true"
        or os.environ.get("RAILWAY_ENVIRONMENT") is not None
        or os.environ.get("FLASK_ENV") == "production"
    )


def _normalize_database_url(url):
    """Convert postgres:// to postgresql+psycopg2:// for SQLAlchemy/psycopg2."""
    if not url:
        return url
    url = url.strip()
    if url.startswith("postgres://"):
        return "postgresql+psycopg2://" + url[11:]
    if url.startswith("postgresql://") and "psycopg2" not in url:
        return "postgresql+psycopg2://" + url[13:]
    return url


def _get_database_uri(instance_dir):
    """Database URI: production = DATABASE_URL only; local = DATABASE_URL or SQLite file."""
    url = os.environ.get("DATABASE_URL")
    if _is_production():
        if not url or not url.strip():
            raise RuntimeError(
                "DATABASE_URL is required in production (Railway/Render). "
                "Set it in your service environment variables."
            )
        return _normalize_database_url(url.strip())

    if url and url.strip():
        return _normalize_database_url(url.strip())
    return f"sqlite:///{instance_dir / 'dashboard.db'}"


def _split_list(value):
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get("SECRET_KEY") or "dev-secret-key-change-in-production"
    DEBUG = os.environ.get("FLASK_DEBUG", "false").lower() in ("true", "1")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    PERMANENT_SESSION_LIFETIME = timedelta(hours=8)
    SESSION_COOKIE_SECURE = os.environ.get("SESSION_COOKIE_SECURE", "false").lower() in ("true", "on", "1")
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    BASE_DIR = Path(__file__).parent
    INSTANCE_DIR = BASE_DIR / "instance"
    try:
        INSTANCE_DIR.mkdir(exist_ok=True)
    except OSError:
        pass
    SQLALCHEMY_DATABASE_URI = _get_database_uri(INSTANCE_DIR)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    MAIL_SERVER = os.environ.get("MAIL_SERVER")
    MAIL_PORT = int(os.environ.get("MAIL_PORT") or 587)
    MAIL_USE_TLS = os.environ.get("MAIL_USE_TLS", "true").lower() in ("true", "on", "1")
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER") or os.environ.get("MAIL_USERNAME") or "noreply@site-dashboard.local"

    # Two-factor login
    OTP_SECRET_KEY = os.environ.get("OTP_SECRET_KEY")  # falls back to SECRET_KEY when unset
    OTP_EXPIRY_MINUTES = int(os.environ.get("OTP_EXPIRY_MINUTES") or 5)
    OTP_RESEND_COOLDOWN_SECONDS = int(os.environ.get("OTP_RESEND_COOLDOWN_SECONDS") or 60)
    OTP_MAX_ATTEMPTS = int(os.environ.get("OTP_MAX_ATTEMPTS") or 5)

    # Session guard
    SESSION_IDLE_TIMEOUT_MINUTES = int(os.environ.get("SESSION_IDLE_TIMEOUT_MINUTES") or 15)
    SESSION_EVENTS_HEARTBEAT_SECONDS = int(os.environ.get("SESSION_EVENTS_HEARTBEAT_SECONDS") or 15)

    # Notification form
    NOTIFICATION_RECIPIENTS = _split_list(os.environ.get("NOTIFICATION_RECIPIENTS"))
    NOTIFICATION_ENVIRONMENTS = _split_list(
        os.environ.get("NOTIFICATION_ENVIRONMENTS") or "UAT4,UAT3,UAT2,UAT1,PROD,DEV"
    )
    NOTIFICATION_FROM_NAME = os.environ.get("NOTIFICATION_FROM_NAME") or "Site Dashboard"
    DEFAULT_EMAIL_LIMIT = int(os.environ.get("DEFAULT_EMAIL_LIMIT") or 20)

    SEED_ADMIN_EMAIL = os.environ.get("SEED_ADMIN_EMAIL")
    SEED_ADMIN_PASSWORD = os.environ.get("SEED_ADMIN_PASSWORD")
