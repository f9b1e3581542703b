"""
Stateless OTP API: issue a signed OTP token and verify a code against it.
No OTP state is kept server-side; the token is round-tripped by the caller.
"""
from flask import Blueprint, jsonify, request, current_app

from utils.audit import log_audit_event, OTP_SENT, OTP_VERIFIED, OTP_FAILED
from utils.mail import send_otp_email
from utils.otp_helper import issue_otp, verify_otp_token, otp_secret
from utils.validators import normalize_email, validate_email

otp_bp = Blueprint('otp', __name__, url_prefix='/api')

OTP_SEND_FAIL_MSG = "Failed to send OTP"
OTP_SUCCESS_MSG = "OTP sent successfully to your email"
OTP_FIELDS_REQUIRED_MSG = "Email, OTP, and token are required"


def send_login_otp(email):
    """
    Issue an OTP for email and mail the code.
    Returns the token; raises if the email could not be sent.
    """
    expiry_minutes = current_app.config.get('OTP_EXPIRY_MINUTES', 5)
    otp, token = issue_otp(email, otp_secret(), expiry_minutes)
    send_otp_email(email, otp, expiry_minutes)
    return token


@otp_bp.route('/send-otp', methods=['POST'])
def send_otp():
    """Input: {email}. Output: {success, message, otpToken} or {error}."""
    data = request.get_json(silent=True) or request.form
    email = normalize_email(data.get('email'))

    if not email:
        return jsonify({"error": "Email is required"}), 400
    if not validate_email(email):
        return jsonify({"error": "Invalid email format"}), 400

    try:
        token = send_login_otp(email)
    except Exception as e:
        current_app.logger.error(f"Error sending OTP to {email}: {str(e)}", exc_info=True)
        response = {"success": False, "error": OTP_SEND_FAIL_MSG}
        if current_app.config.get('DEBUG'):
            response["details"] = str(e)
        return jsonify(response), 500

    current_app.logger.info("OTP email sent to %s", email)
    log_audit_event(email, OTP_SENT, {"step": "email_otp", "success": True})
    return jsonify({"success": True, "message": OTP_SUCCESS_MSG, "otpToken": token})


@otp_bp.route('/verify-otp', methods=['POST'])
def verify_otp():
    """Input: {email, otp, otpToken}. Output: {valid, message}."""
    data = request.get_json(silent=True) or request.form
    email = normalize_email(data.get('email'))
    otp = str(data.get('otp') or '').strip()
    token = str(data.get('otpToken') or '').strip()

    if not email or not otp or not token:
        return jsonify({"valid": False, "message": OTP_FIELDS_REQUIRED_MSG}), 400

    result = verify_otp_token(token, email, otp, otp_secret())
    if result.valid:
        log_audit_event(email, OTP_VERIFIED, {"step": "email_otp"})
    else:
        log_audit_event(email, OTP_FAILED, {"step": "email_otp", "message": result.message})
    return jsonify(result._asdict())
