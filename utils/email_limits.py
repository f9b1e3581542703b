"""
Notification email limits: a default for everyone plus per-user overrides.
"""
from flask import current_app

from models import db
from models.email_limit import EmailLimit
from utils.settings_helper import get_setting, set_setting

DEFAULT_LIMIT_KEY = 'default_email_limit'
NEAR_LIMIT_RATIO = 0.8


def get_default_email_limit() -> int:
    fallback = current_app.config.get('DEFAULT_EMAIL_LIMIT', 20)
    try:
        return int(get_setting(DEFAULT_LIMIT_KEY, fallback))
    except (TypeError, ValueError):
        return fallback


def set_default_email_limit(limit: int) -> int:
    set_setting(DEFAULT_LIMIT_KEY, int(limit))
    return int(limit)


def get_all_user_limits() -> dict:
    """{email: limit} for users with an override."""
    return {row.email: row.max_emails for row in EmailLimit.query.all()}


def set_user_email_limit(email: str, limit: int) -> EmailLimit:
    row = db.session.get(EmailLimit, email)
    if row is None:
        row = EmailLimit(email=email, max_emails=int(limit))
        db.session.add(row)
    else:
        row.max_emails = int(limit)
    db.session.commit()
    return row


def get_user_email_limit(email: str) -> int:
    """Override for email if one exists, else the default."""
    row = db.session.get(EmailLimit, email)
    return row.max_emails if row else get_default_email_limit()


def limit_status(count: int, limit: int) -> str:
    """'reached' at or above the limit, 'near' from 80% of it, else 'ok'."""
    if count >= limit:
        return 'reached'
    if count >= limit * NEAR_LIMIT_RATIO:
        return 'near'
    return 'ok'
