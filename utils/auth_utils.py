"""
Authentication utility functions
"""
from functools import wraps

from flask import jsonify, request
from flask_login import current_user


def client_descriptor():
    """User agent of the current request, used to describe a session or audit entry."""
    return request.user_agent.string or 'unknown'


def admin_required(f):
    """Decorator to require a signed-in, active admin user (JSON responses)"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({"success": False, "message": "Please log in to access the admin panel."}), 401

        if not current_user.is_admin:
            return jsonify({"success": False, "message": "Access denied. Admin privileges required."}), 403

        return f(*args, **kwargs)
    return decorated_function
