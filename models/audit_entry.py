"""
Audit log model (append-only)
"""
from models import db


class AuditEntry(db.Model):
    """One user action: logins, OTP steps, logouts and notification emails"""
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_email = db.Column(db.String(120), nullable=False, index=True)
    action = db.Column(db.String(50), nullable=False, index=True)
    details = db.Column(db.JSON, nullable=False, default=dict)
    timestamp = db.Column(db.BigInteger, nullable=False, index=True)  # epoch ms
    date = db.Column(db.String(10), nullable=False, index=True)  # YYYY-MM-DD (UTC)
    client_descriptor = db.Column(db.String(512), nullable=True)

    def __repr__(self):
        return f'<AuditEntry {self.id}: {self.action}>'

    def to_dict(self):
        """Convert entry to dictionary for JSON responses"""
        return {
            'id': self.id,
            'userEmail': self.user_email,
            'action': self.action,
            'details': self.details or {},
            'timestamp': self.timestamp,
            'date': self.date,
            'clientDescriptor': self.client_descriptor,
        }
