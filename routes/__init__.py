"""
Routes package for the site notification dashboard
"""
# Export blueprints for registration in app.py
from routes.otp import otp_bp
from routes.auth import auth_bp
from routes.dashboard import dashboard_bp
from routes.admin.dashboard import admin_dashboard_bp
from routes.admin.audit import admin_audit_bp

__all__ = [
    'otp_bp',
    'auth_bp',
    'dashboard_bp',
    'admin_dashboard_bp',
    'admin_audit_bp',
]
