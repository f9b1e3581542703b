"""
Audit trail utility functions.
Every auth and email event is appended here; entries are never updated or deleted.
"""
import csv
import io
import json

from flask import current_app, has_request_context, request
from sqlalchemy import cast, func, or_

from models import db
from models.audit_entry import AuditEntry
from utils import time_helper

LOGIN_SUCCESS = 'LOGIN_SUCCESS'
LOGIN_FAILED = 'LOGIN_FAILED'
OTP_SENT = 'OTP_SENT'
OTP_VERIFIED = 'OTP_VERIFIED'
OTP_FAILED = 'OTP_FAILED'
LOGOUT = 'LOGOUT'
FORCED_LOGOUT = 'FORCED_LOGOUT'
SESSION_TIMEOUT = 'SESSION_TIMEOUT'
SEND_EMAIL = 'SEND_EMAIL'
SEND_EMAIL_FAILED = 'SEND_EMAIL_FAILED'

AUDIT_ACTIONS = (
    LOGIN_SUCCESS,
    LOGIN_FAILED,
    OTP_SENT,
    OTP_VERIFIED,
    OTP_FAILED,
    LOGOUT,
    FORCED_LOGOUT,
    SESSION_TIMEOUT,
    SEND_EMAIL,
    SEND_EMAIL_FAILED,
)

CSV_HEADERS = ['Timestamp', 'User Email', 'Action', 'Details']


def log_audit_event(user_email, action, details=None, client_descriptor=None):
    """
    Append an audit entry.

    Args:
        user_email: Email of the user performing the action
        action: One of AUDIT_ACTIONS
        details: Optional dict with extra context
        client_descriptor: Client user agent; taken from the current request when omitted

    Returns:
        id of the new entry, or None if it could not be written.
        Never raises: auditing must not break the action being audited.
    """
    if client_descriptor is None and has_request_context():
        client_descriptor = request.user_agent.string
    try:
        timestamp = time_helper.now_ms()
        entry = AuditEntry(
            user_email=user_email or 'unknown',
            action=action,
            details=details or {},
            timestamp=timestamp,
            date=time_helper.date_str(timestamp),
            client_descriptor=(client_descriptor or '')[:512] or None,
        )
        db.session.add(entry)
        db.session.commit()
        return entry.id
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to write audit entry {action} for {user_email}: {str(e)}", exc_info=True)
        return None


def _newest_first(query):
    return query.order_by(AuditEntry.timestamp.desc(), AuditEntry.id.desc())


def get_all_audit_logs(limit=100):
    """Most recent entries first."""
    return _newest_first(AuditEntry.query).limit(limit).all()


def get_audit_logs_by_user(user_email, limit=50):
    return _newest_first(AuditEntry.query.filter_by(user_email=user_email)).limit(limit).all()


def get_audit_logs_by_date_range(start_date, end_date):
    """Entries whose date (YYYY-MM-DD) falls within [start_date, end_date]."""
    query = AuditEntry.query.filter(AuditEntry.date >= start_date, AuditEntry.date <= end_date)
    return _newest_first(query).all()


def filter_audit_logs(user_email=None, start_date=None, end_date=None, search=None, limit=100):
    """
    Combined filter used by the admin views.
    search is a case-insensitive substring match on email, action and details.
    """
    query = AuditEntry.query
    if user_email:
        query = query.filter(AuditEntry.user_email == user_email)
    if start_date:
        query = query.filter(AuditEntry.date >= start_date)
    if end_date:
        query = query.filter(AuditEntry.date <= end_date)
    if search:
        needle = search.strip()
        query = query.filter(or_(
            AuditEntry.user_email.icontains(needle, autoescape=True),
            AuditEntry.action.icontains(needle, autoescape=True),
            cast(AuditEntry.details, db.String).icontains(needle, autoescape=True),
        ))
    return _newest_first(query).limit(limit).all()


def count_user_emails(user_email):
    """Number of notification emails a user has sent."""
    return AuditEntry.query.filter_by(user_email=user_email, action=SEND_EMAIL).count()


def get_email_count_by_user():
    """{email: number of SEND_EMAIL entries}"""
    rows = db.session.query(AuditEntry.user_email, func.count(AuditEntry.id)).filter(
        AuditEntry.action == SEND_EMAIL
    ).group_by(AuditEntry.user_email).all()
    return {email: count for email, count in rows}


def get_audit_stats(today=None):
    """Counters for the admin statistics cards."""
    today = today or time_helper.date_str(time_helper.now_ms())

    def _count(action, date=None):
        query = AuditEntry.query.filter(AuditEntry.action == action)
        if date:
            query = query.filter(AuditEntry.date == date)
        return query.count()

    return {
        'totalLogins': _count(LOGIN_SUCCESS),
        'totalEmails': _count(SEND_EMAIL),
        'failedLogins': _count(LOGIN_FAILED),
        'todayLogins': _count(LOGIN_SUCCESS, today),
        'todayEmails': _count(SEND_EMAIL, today),
    }


def audit_logs_to_csv(entries):
    """Render entries as CSV text with a header row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL)
    writer.writerow(CSV_HEADERS)
    for entry in entries:
        writer.writerow([
            time_helper.format_timestamp(entry.timestamp),
            entry.user_email,
            entry.action,
            json.dumps(entry.details or {}),
        ])
    return buffer.getvalue()
