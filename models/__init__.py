"""
Models package for the site notification dashboard
"""
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Import all models here to ensure they're registered
from models.user import User
from models.settings import Settings
from models.active_session import ActiveSession
from models.audit_entry import AuditEntry
from models.email_limit import EmailLimit

__all__ = [
    'db',
    'User',
    'Settings',
    'ActiveSession',
    'AuditEntry',
    'EmailLimit',
]
