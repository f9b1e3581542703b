"""
Authentication routes: two-step login (password + emailed OTP), logout,
and the session guard that enforces one live session per user plus the idle timeout.
"""
import json
import queue
import time

from flask import Blueprint, Response, jsonify, request, session, current_app, stream_with_context
from flask_login import login_user, logout_user, login_required, current_user

from models import db
from models.user import User
from routes.otp import send_login_otp, OTP_SEND_FAIL_MSG
from utils import time_helper
from utils.audit import (
    log_audit_event,
    LOGIN_SUCCESS,
    LOGIN_FAILED,
    OTP_SENT,
    OTP_VERIFIED,
    OTP_FAILED,
    LOGOUT,
    FORCED_LOGOUT,
    SESSION_TIMEOUT,
)
from utils.auth_utils import client_descriptor
from utils.otp_helper import verify_otp_token, otp_secret, OTP_LENGTH, MAX_OTP_ATTEMPTS
from utils.session_registry import (
    ACTIVITY_EVENTS,
    SessionWatch,
    claim_session,
    get_session_record,
    idle_expired,
    release_session,
)
from utils.validators import normalize_email

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')

GENERIC_ERROR = "Something went wrong. Please try again later."
CREDENTIALS_REQUIRED_MSG = "Please enter both email and password"
INVALID_CREDENTIALS_MSG = "Invalid email or password"
INACTIVE_ACCOUNT_MSG = "Your account is inactive. Please contact support."
NO_PENDING_LOGIN_MSG = "Please sign in with your email and password first."
OTP_FORMAT_MSG = "Please enter a 6-digit OTP"
OTP_RESEND_COOLDOWN_MSG = "Please wait before requesting another code."
TOO_MANY_ATTEMPTS_MSG = "Too many incorrect codes. Please sign in again."
LOGIN_SUCCESS_MSG = "Login successful! Welcome to the dashboard"
LOGOUT_MSG = "You have been logged out successfully."
SUPERSEDED_MSG = "You have been signed out because your account was signed in from another location."
IDLE_MSG = "You have been signed out after a period of inactivity."

# Requests that do not reflect user input and so do not reset the idle watchdog
PASSIVE_ENDPOINTS = {'auth.session_status', 'auth.session_events'}


def _idle_timeout_minutes():
    return current_app.config.get('SESSION_IDLE_TIMEOUT_MINUTES', 15)


def _force_logout(action, reason, message):
    """End the current session locally and tell the client why. Not an error."""
    email = current_user.email
    log_audit_event(email, action, {"reason": reason, "forced": True})
    current_app.logger.info("Forced logout of %s (%s)", email, reason)
    logout_user()
    session.clear()
    return jsonify({
        "success": False,
        "forcedLogout": True,
        "reason": reason,
        "severity": "info",
        "message": message,
    }), 401


@auth_bp.before_app_request
def enforce_session_guard():
    """
    Runs before every request of a signed-in user.
    Ends the session if it went idle or if another login took over the registry row.
    """
    if not current_user.is_authenticated:
        return None

    now = time_helper.now_ms()
    if idle_expired(session.get('last_activity'), _idle_timeout_minutes(), now):
        return _force_logout(SESSION_TIMEOUT, 'inactivity', IDLE_MSG)

    watch = SessionWatch(current_user.email, session.get('session_id'))
    if watch.observe(get_session_record(current_user.email)):
        return _force_logout(FORCED_LOGOUT, 'superseded', SUPERSEDED_MSG)

    if request.endpoint not in PASSIVE_ENDPOINTS:
        session['last_activity'] = now
    return None


def _clear_pending_login():
    for key in ('pending_email', 'otp_sent_at', 'otp_attempts'):
        session.pop(key, None)


def _start_otp_step(email, message):
    """Mail a fresh OTP and remember which email is waiting for step 2."""
    try:
        token = send_login_otp(email)
    except Exception as e:
        current_app.logger.error(f"Failed to send login OTP to {email}: {str(e)}", exc_info=True)
        log_audit_event(email, LOGIN_FAILED, {"step": "email_otp", "reason": "otp_delivery_failed"})
        response = {"success": False, "error": OTP_SEND_FAIL_MSG}
        if current_app.config.get('DEBUG'):
            response["details"] = str(e)
        return jsonify(response), 500

    session['pending_email'] = email
    session['otp_sent_at'] = time_helper.now_ms()
    session['otp_attempts'] = 0
    log_audit_event(email, OTP_SENT, {"step": "email_otp", "success": True})
    return jsonify({"success": True, "message": message, "otpToken": token})


@auth_bp.route('/login', methods=['POST'])
def login():
    """Step 1: check email and password, then mail an OTP. Input: {email, password}."""
    data = request.get_json(silent=True) or request.form
    email = normalize_email(data.get('email'))
    password = str(data.get('password') or '')

    if not email or not password.strip():
        return jsonify({"success": False, "message": CREDENTIALS_REQUIRED_MSG}), 400

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        log_audit_event(email, LOGIN_FAILED, {"step": "password", "reason": "invalid_credentials"})
        return jsonify({"success": False, "message": INVALID_CREDENTIALS_MSG}), 401

    if not user.is_active:
        log_audit_event(email, LOGIN_FAILED, {"step": "password", "reason": "inactive_account"})
        return jsonify({"success": False, "message": INACTIVE_ACCOUNT_MSG}), 403

    return _start_otp_step(user.email, "Credentials verified! OTP sent successfully to your email")


@auth_bp.route('/login/resend', methods=['POST'])
def resend_login_otp():
    """Mail a new OTP for the pending login, at most once per cooldown period."""
    email = session.get('pending_email')
    if not email:
        return jsonify({"success": False, "message": NO_PENDING_LOGIN_MSG}), 400

    cooldown_ms = current_app.config.get('OTP_RESEND_COOLDOWN_SECONDS', 60) * 1000
    elapsed = time_helper.now_ms() - int(session.get('otp_sent_at') or 0)
    if elapsed < cooldown_ms:
        return jsonify({
            "success": False,
            "message": OTP_RESEND_COOLDOWN_MSG,
            "retry_after_seconds": max(1, (cooldown_ms - elapsed) // 1000),
        }), 429

    return _start_otp_step(email, "Email OTP resent successfully")


@auth_bp.route('/login/verify', methods=['POST'])
def verify_login():
    """
    Step 2: check the OTP for the pending login. Input: {otp, otpToken}.
    On success the new session claims the registry row, evicting any other session of this user.
    """
    email = session.get('pending_email')
    if not email:
        return jsonify({"success": False, "message": NO_PENDING_LOGIN_MSG}), 400

    data = request.get_json(silent=True) or request.form
    otp = str(data.get('otp') or '').strip()
    token = str(data.get('otpToken') or '').strip()

    if len(otp) != OTP_LENGTH or not otp.isdigit():
        return jsonify({"success": False, "message": OTP_FORMAT_MSG}), 400

    result = verify_otp_token(token, email, otp, otp_secret())
    if not result.valid:
        log_audit_event(email, OTP_FAILED, {"step": "email_otp", "message": result.message})
        attempts = int(session.get('otp_attempts') or 0) + 1
        if attempts >= current_app.config.get('OTP_MAX_ATTEMPTS', MAX_OTP_ATTEMPTS):
            _clear_pending_login()
            log_audit_event(email, LOGIN_FAILED, {"step": "email_otp", "reason": "too_many_attempts"})
            return jsonify({"success": False, "message": TOO_MANY_ATTEMPTS_MSG}), 429
        session['otp_attempts'] = attempts
        return jsonify({"success": False, "message": result.message}), 401

    user = User.query.filter_by(email=email).first()
    if not user or not user.is_active:
        _clear_pending_login()
        log_audit_event(email, LOGIN_FAILED, {"step": "email_otp", "reason": "inactive_account"})
        return jsonify({"success": False, "message": INACTIVE_ACCOUNT_MSG}), 403

    try:
        record = claim_session(email, client_descriptor())
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to register session for {email}: {str(e)}", exc_info=True)
        return jsonify({"success": False, "message": GENERIC_ERROR}), 500

    _clear_pending_login()
    login_user(user)
    session['session_id'] = record.session_id
    session['last_activity'] = time_helper.now_ms()
    session.permanent = True

    log_audit_event(email, OTP_VERIFIED, {"step": "email_otp"})
    log_audit_event(email, LOGIN_SUCCESS, {"method": "2-layer-auth", "steps": ["password", "email_otp"]})
    return jsonify({
        "success": True,
        "message": LOGIN_SUCCESS_MSG,
        "sessionId": record.session_id,
        "user": user.to_dict(),
    })


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Voluntary logout: frees the registry row if this session still owns it."""
    email = current_user.email
    try:
        release_session(email, session.get('session_id'))
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to release session for {email}: {str(e)}", exc_info=True)

    log_audit_event(email, LOGOUT, {"forced": False})
    logout_user()
    session.clear()
    return jsonify({"success": True, "message": LOGOUT_MSG})


@auth_bp.route('/session', methods=['GET'])
def session_status():
    """Current session state, plus what the client needs to drive the idle watchdog."""
    if not current_user.is_authenticated:
        return jsonify({"authenticated": False, "pendingOtp": bool(session.get('pending_email'))})

    timeout_ms = _idle_timeout_minutes() * 60 * 1000
    idle_ms = time_helper.now_ms() - int(session.get('last_activity') or time_helper.now_ms())
    record = get_session_record(current_user.email)
    return jsonify({
        "authenticated": True,
        "user": current_user.to_dict(),
        "sessionId": session.get('session_id'),
        "loginTime": record.login_time if record else None,
        "idleTimeoutSeconds": timeout_ms // 1000,
        "idleRemainingSeconds": max(0, (timeout_ms - idle_ms) // 1000),
        "activityEvents": list(ACTIVITY_EVENTS),
    })


@auth_bp.route('/activity', methods=['POST'])
@login_required
def record_activity():
    """Ping sent by the UI on user input; the session guard has already reset the idle timer."""
    return jsonify({"success": True, "idleTimeoutSeconds": _idle_timeout_minutes() * 60})


def _sse(event, data):
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


@auth_bp.route('/session/events', methods=['GET'])
@login_required
def session_events():
    """
    Server-Sent Events stream for this session.
    Emits 'superseded' as soon as another login takes over the registry row: immediately for
    logins handled by this process, otherwise on the next heartbeat re-read.
    The stream closes after one idle period; clients reconnect.
    """
    email = current_user.email
    session_id = session.get('session_id')
    heartbeat = current_app.config.get('SESSION_EVENTS_HEARTBEAT_SECONDS', 15)
    lifetime = _idle_timeout_minutes() * 60
    notifications = queue.Queue()
    watch = SessionWatch(email, session_id, on_superseded=notifications.put)

    @stream_with_context
    def generate():
        # Subscribed only while the stream is being read.
        watch.start()
        try:
            watch.observe(get_session_record(email))
            yield _sse('connected', {"sessionId": session_id})
            deadline = time.monotonic() + lifetime
            while time.monotonic() < deadline:
                try:
                    notifications.get(timeout=heartbeat)
                except queue.Empty:
                    watch.observe(get_session_record(email))
                if watch.superseded:
                    yield _sse('superseded', {"reason": "superseded", "severity": "info", "message": SUPERSEDED_MSG})
                    return
                yield ": heartbeat\n\n"
            yield _sse('reconnect', {"sessionId": session_id})
        finally:
            watch.stop()

    return Response(
        generate(),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'},
    )
