"""
Session registry: at most one live session per user.

The registry row of a user is a single-writer register. Every completed login
overwrites it with a fresh session id (last writer wins) and publishes a
``session-changed`` signal; a client holding an older id learns it was
superseded the next time it observes the row, either through the signal or
on its next request.
"""
import logging
import re
import secrets

from blinker import Namespace
from sqlalchemy.exc import IntegrityError

from models import db
from models.active_session import ActiveSession
from utils import time_helper

logger = logging.getLogger(__name__)

_signals = Namespace()
session_changed = _signals.signal('session-changed')

# Input events that count as user activity for the idle watchdog
ACTIVITY_EVENTS = ('pointerdown', 'keydown', 'scroll', 'touchstart', 'click')
IDLE_TIMEOUT_MINUTES = 15

_UNSAFE_KEY_CHARS = re.compile(r'[.#$\[\]]')


def sanitize_session_key(email: str) -> str:
    """Registry key for an email: '.', '#', '$', '[' and ']' become '_'."""
    return _UNSAFE_KEY_CHARS.sub('_', email)


def new_session_id() -> str:
    return secrets.token_urlsafe(24)


def get_session_record(email):
    """Current registry row for email (freshly read), or None."""
    return db.session.get(ActiveSession, sanitize_session_key(email), populate_existing=True)


def _write_record(key, email, client_descriptor):
    record = db.session.get(ActiveSession, key, populate_existing=True)
    if record is None:
        record = ActiveSession(key=key, email=email)
        db.session.add(record)
    record.session_id = new_session_id()
    record.login_time = time_helper.now_ms()
    record.client_descriptor = (client_descriptor or '')[:512] or None
    db.session.commit()
    return record


def claim_session(email, client_descriptor=None):
    """
    Make a new session the owner of email's registry row, overwriting any previous owner.
    Returns the written ActiveSession.
    """
    key = sanitize_session_key(email)
    try:
        record = _write_record(key, email, client_descriptor)
    except IntegrityError:
        # Another login inserted the row first; overwrite it.
        db.session.rollback()
        record = _write_record(key, email, client_descriptor)
    logger.info("Session claimed for %s", email)
    session_changed.send(key, record=record.to_dict())
    return record


def release_session(email, session_id) -> bool:
    """Delete email's registry row if session_id still owns it. Returns True when deleted."""
    key = sanitize_session_key(email)
    record = db.session.get(ActiveSession, key, populate_existing=True)
    if record is None or record.session_id != session_id:
        return False
    db.session.delete(record)
    db.session.commit()
    session_changed.send(key, record=None)
    return True


def idle_expired(last_activity, timeout_minutes=IDLE_TIMEOUT_MINUTES, now=None) -> bool:
    """True when more than timeout_minutes have passed since last_activity (epoch ms)."""
    if last_activity is None:
        return False
    now = time_helper.now_ms() if now is None else now
    return now - int(last_activity) > timeout_minutes * 60 * 1000


class SessionWatch:
    """
    One client's view of its registry row.

    Holds the session id the client owns and calls ``on_superseded(record)``
    once, the first time it observes a row carrying another id or no row at all.
    """

    def __init__(self, email, session_id, on_superseded=None):
        self.email = email
        self.key = sanitize_session_key(email)
        self.session_id = session_id
        self.on_superseded = on_superseded
        self.superseded = False

    def observe(self, record) -> bool:
        """Compare an observed row (ActiveSession, dict snapshot or None). Returns True when superseded."""
        if self.superseded:
            return True
        if isinstance(record, ActiveSession):
            record = record.to_dict()
        if record is not None and self.session_id and record.get('sessionId') == self.session_id:
            return False
        self.superseded = True
        if self.on_superseded is not None:
            self.on_superseded(record)
        return True

    def _receive(self, sender, record=None, **kwargs):
        self.observe(record)

    def start(self):
        """Subscribe to change notifications for this user's row."""
        session_changed.connect(self._receive, sender=self.key, weak=False)
        return self

    def stop(self):
        """Unsubscribe; safe to call more than once."""
        session_changed.disconnect(self._receive)
