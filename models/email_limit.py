"""
Per-user override of the notification email limit
"""
from models import db
from datetime import datetime


class EmailLimit(db.Model):
    __tablename__ = 'email_limits'

    email = db.Column(db.String(120), primary_key=True)
    max_emails = db.Column(db.Integer, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<EmailLimit {self.email}: {self.max_emails}>'
