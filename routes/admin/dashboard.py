"""
Admin dashboard routes: usage statistics and email limits
"""
from flask import Blueprint, jsonify, request, current_app

from models import db
from utils.audit import get_audit_stats, get_email_count_by_user, get_all_audit_logs
from utils.auth_utils import admin_required
from utils.email_limits import (
    get_default_email_limit,
    set_default_email_limit,
    get_all_user_limits,
    set_user_email_limit,
    limit_status,
)
from utils.validators import normalize_email, validate_email, validate_limit

admin_dashboard_bp = Blueprint('admin_dashboard', __name__, url_prefix='/admin')

RECENT_ACTIVITY_COUNT = 10


def _email_usage(email_counts, default_limit, user_limits):
    """Per-user sent count against their limit, busiest senders first."""
    usage = []
    for email, count in sorted(email_counts.items(), key=lambda item: item[1], reverse=True):
        limit = user_limits.get(email, default_limit)
        usage.append({
            "email": email,
            "sent": count,
            "limit": limit,
            "status": limit_status(count, limit),
        })
    return usage


@admin_dashboard_bp.route('/stats')
@admin_required
def stats():
    """Statistics cards, per-user email usage and recent activity"""
    email_counts = get_email_count_by_user()
    default_limit = get_default_email_limit()
    user_limits = get_all_user_limits()

    return jsonify({
        "stats": get_audit_stats(),
        "emailCounts": email_counts,
        "defaultLimit": default_limit,
        "userLimits": user_limits,
        "emailUsage": _email_usage(email_counts, default_limit, user_limits),
        "recentActivity": [entry.to_dict() for entry in get_all_audit_logs(RECENT_ACTIVITY_COUNT)],
    })


@admin_dashboard_bp.route('/email-limits', methods=['GET'])
@admin_required
def email_limits():
    return jsonify({"defaultLimit": get_default_email_limit(), "userLimits": get_all_user_limits()})


@admin_dashboard_bp.route('/email-limits', methods=['PUT', 'POST'])
@admin_required
def update_default_limit():
    """Set the default limit. Input: {limit}."""
    data = request.get_json(silent=True) or request.form
    is_valid, result = validate_limit(data.get('limit'))
    if not is_valid:
        return jsonify({"success": False, "message": result}), 400
    try:
        set_default_email_limit(result)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update default email limit: {str(e)}", exc_info=True)
        return jsonify({"success": False, "message": "Failed to save limit. Please try again."}), 500
    return jsonify({"success": True, "defaultLimit": result})


@admin_dashboard_bp.route('/email-limits/<path:email>', methods=['PUT', 'POST'])
@admin_required
def update_user_limit(email):
    """Set one user's limit. Input: {limit}."""
    email = normalize_email(email)
    if not validate_email(email):
        return jsonify({"success": False, "message": "Please provide a valid email address."}), 400

    data = request.get_json(silent=True) or request.form
    is_valid, result = validate_limit(data.get('limit'))
    if not is_valid:
        return jsonify({"success": False, "message": result}), 400
    try:
        set_user_email_limit(email, result)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update email limit for {email}: {str(e)}", exc_info=True)
        return jsonify({"success": False, "message": "Failed to save limit. Please try again."}), 500
    return jsonify({"success": True, "email": email, "limit": result})
