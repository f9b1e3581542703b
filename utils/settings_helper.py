"""
Settings helper: read and write app settings stored in the DB.
"""
from models import db
from models.settings import Settings


def get_setting(key, default=''):
    """Get setting value by key. Safe to call from any request context."""
    try:
        setting = db.session.get(Settings, key)
        return setting.value if setting and setting.value is not None else default
    except Exception:
        return default


def set_setting(key, value):
    """Create or update a setting. Commits the session."""
    setting = db.session.get(Settings, key)
    if setting is None:
        setting = Settings(key=key)
        db.session.add(setting)
    setting.value = None if value is None else str(value)
    db.session.commit()
    return setting
