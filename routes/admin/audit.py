"""
Admin audit log routes
"""
from datetime import datetime

from flask import Blueprint, jsonify, request, make_response

from utils.audit import filter_audit_logs, audit_logs_to_csv, get_email_count_by_user
from utils import time_helper
from utils.auth_utils import admin_required
from utils.validators import normalize_email

admin_audit_bp = Blueprint('admin_audit', __name__, url_prefix='/admin')

DEFAULT_LOG_LIMIT = 100
MAX_LOG_LIMIT = 1000


def _valid_date(value):
    """YYYY-MM-DD or None; invalid dates are ignored like an empty filter."""
    if not value:
        return None
    try:
        datetime.strptime(value, '%Y-%m-%d')
    except ValueError:
        return None
    return value


def _filtered_logs(default_limit):
    limit = request.args.get('limit', default_limit, type=int)
    limit = max(1, min(limit, MAX_LOG_LIMIT))
    return filter_audit_logs(
        user_email=normalize_email(request.args.get('user')) or None,
        start_date=_valid_date(request.args.get('start', '').strip()),
        end_date=_valid_date(request.args.get('end', '').strip()),
        search=request.args.get('q', '').strip() or None,
        limit=limit,
    )


@admin_audit_bp.route('/audit-logs')
@admin_required
def audit_logs():
    """Audit entries, newest first. Filters: limit, user, start, end (YYYY-MM-DD), q."""
    logs = _filtered_logs(DEFAULT_LOG_LIMIT)
    return jsonify({
        "logs": [entry.to_dict() for entry in logs],
        "count": len(logs),
        "emailCounts": get_email_count_by_user(),
    })


@admin_audit_bp.route('/audit-logs/export')
@admin_required
def export_audit_logs():
    """Export audit entries to CSV (same filters as the list view)"""
    logs = _filtered_logs(MAX_LOG_LIMIT)
    response = make_response(audit_logs_to_csv(logs))
    response.headers['Content-Type'] = 'text/csv; charset=utf-8'
    response.headers['Content-Disposition'] = f'attachment; filename=audit_logs_{time_helper.date_str(time_helper.now_ms())}.csv'
    return response
