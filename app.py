"""
Main Flask application entry point for the site notification dashboard
"""
import logging
import os

from flask import Flask, jsonify
from flask.logging import default_handler
from flask_login import LoginManager
from werkzeug.exceptions import HTTPException

from config import Config
from models import db
from models.user import User
from utils.mail import mail

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
LOG_HANDLER_NAME = "dashboard"

# Initialize login manager (no DB access at import time)
login_manager = LoginManager()


@login_manager.user_loader
def load_user(user_id):
    """Load user for Flask-Login (runs in request context)."""
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"success": False, "message": "Please log in to access this page."}), 401


def _configure_logging(app):
    """Log to stderr in one format for the app and the utils helpers."""
    level = getattr(logging, app.config.get("LOG_LEVEL", "INFO"), logging.INFO)
    app.logger.removeHandler(default_handler)
    for logger in (app.logger, logging.getLogger("utils")):
        logger.setLevel(level)
        if not any(h.get_name() == LOG_HANDLER_NAME for h in logger.handlers):
            handler = logging.StreamHandler()
            handler.set_name(LOG_HANDLER_NAME)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(handler)


def _register_error_handlers(app):
    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"success": False, "error": e.description}), e.code

    @app.errorhandler(500)
    def handle_500_error(e):
        return jsonify({"success": False, "error": "Internal server error. Please try again later."}), 500


def create_app(config_class=Config):
    """Application factory pattern. DB init runs inside app_context; non-fatal on failure."""
    app = Flask(__name__)
    app.config.from_object(config_class)
    _configure_logging(app)

    db.init_app(app)
    login_manager.init_app(app)
    mail.init_app(app)
    _register_error_handlers(app)

    # Create tables and seed only inside app context; do not crash if DB temporarily unavailable
    with app.app_context():
        try:
            db.create_all()
            seed_admin()
        except Exception as e:
            db.session.rollback()
            app.logger.warning("Database init/seed skipped (non-fatal): %s", e)

    from routes import otp_bp, auth_bp, dashboard_bp, admin_dashboard_bp, admin_audit_bp

    app.register_blueprint(otp_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(admin_dashboard_bp)
    app.register_blueprint(admin_audit_bp)

    from commands import register_commands
    register_commands(app)

    return app


def seed_admin():
    """Ensure the configured admin exists with the configured password. Runs every boot; skipped when unset."""
    from flask import current_app

    seed_email = (current_app.config.get("SEED_ADMIN_EMAIL") or "").strip().lower()
    seed_password = current_app.config.get("SEED_ADMIN_PASSWORD")
    if not seed_email or not seed_password:
        return

    admin = User.query.filter_by(email=seed_email).first()
    if not admin:
        admin = User(email=seed_email, full_name=seed_email.split("@")[0])
        db.session.add(admin)
    admin.is_admin = True
    admin.is_active = True
    admin.set_password(seed_password)

    db.session.commit()
    current_app.logger.info("Admin ready. Email: %s", seed_email)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    create_app().run(host="0.0.0.0", port=port, threaded=True)
