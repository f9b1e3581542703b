"""
Session registry record: one row per user holding the id of the session that owns it.
"""
from models import db


class ActiveSession(db.Model):
    """
    Current session of a user, keyed by the sanitized email.
    Overwritten on every login; the previous holder is evicted when it next observes the row.
    """
    __tablename__ = 'active_sessions'

    key = db.Column(db.String(120), primary_key=True)
    email = db.Column(db.String(120), nullable=False)
    session_id = db.Column(db.String(64), nullable=False)
    login_time = db.Column(db.BigInteger, nullable=False)  # epoch ms
    client_descriptor = db.Column(db.String(512), nullable=True)

    def to_dict(self):
        return {
            'sessionId': self.session_id,
            'loginTime': self.login_time,
            'clientDescriptor': self.client_descriptor,
        }

    def __repr__(self):
        return f'<ActiveSession {self.key}>'
