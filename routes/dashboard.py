"""
Dashboard routes: the notification form and the notification API
"""
from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user

from utils.audit import log_audit_event, count_user_emails, SEND_EMAIL, SEND_EMAIL_FAILED
from utils.email_limits import get_user_email_limit, limit_status
from utils.mail import send_site_notification
from utils.validators import normalize_email, validate_email, validate_flow_code, parse_email_list

dashboard_bp = Blueprint('dashboard', __name__)

SUBJECT_FORMAT = "SITE | {environment} | {business_flow}"
EMAIL_SENT_MSG = "Email sent successfully!"
EMAIL_FAILED_MSG = "Failed to send email"
LIMIT_REACHED_MSG = "You have reached your email limit. Please contact an administrator."


def build_subject(environment, business_flow):
    """Subject line of a site notification, e.g. 'SITE | UAT4 | ADD_NEW_LINE'."""
    return SUBJECT_FORMAT.format(environment=environment, business_flow=business_flow)


def _usage(email):
    sent = count_user_emails(email)
    limit = get_user_email_limit(email)
    return sent, limit


def _deliver(recipients, subject, message, from_email, from_name=None, cc=None, details=None):
    """Send a notification for the current user, enforcing their email limit and auditing the outcome."""
    user_email = current_user.email
    details = dict(details or {}, subject=subject, recipients=recipients)

    sent, limit = _usage(user_email)
    if sent >= limit:
        log_audit_event(user_email, SEND_EMAIL_FAILED, dict(details, reason="limit_reached", limit=limit))
        return jsonify({"success": False, "error": LIMIT_REACHED_MSG, "emailsSent": sent, "emailLimit": limit}), 429

    try:
        send_site_notification(recipients, subject, message, from_email, from_name=from_name, cc=cc)
    except Exception as e:
        current_app.logger.error(f"Error sending notification for {user_email}: {str(e)}", exc_info=True)
        log_audit_event(user_email, SEND_EMAIL_FAILED, dict(details, reason="delivery_failed"))
        response = {"success": False, "error": EMAIL_FAILED_MSG}
        if current_app.config.get('DEBUG'):
            response["details"] = str(e)
        return jsonify(response), 500

    log_audit_event(user_email, SEND_EMAIL, details)
    current_app.logger.info("Notification '%s' sent by %s", subject, user_email)
    return jsonify({"success": True, "message": EMAIL_SENT_MSG, "subject": subject, "emailsSent": sent + 1, "emailLimit": limit})


@dashboard_bp.route('/dashboard', methods=['GET'])
@login_required
def dashboard():
    """Everything the notification form needs"""
    sent, limit = _usage(current_user.email)
    return jsonify({
        "user": current_user.to_dict(),
        "environments": current_app.config.get('NOTIFICATION_ENVIRONMENTS', []),
        "subjectFormat": SUBJECT_FORMAT,
        "emailsSent": sent,
        "emailLimit": limit,
        "limitStatus": limit_status(sent, limit),
    })


@dashboard_bp.route('/dashboard/notify', methods=['POST'])
@login_required
def notify():
    """Send 'SITE | <environment> | <flow>' to the configured recipients. Input: {environment, businessFlow, email?}."""
    data = request.get_json(silent=True) or request.form
    environment = str(data.get('environment') or '').strip()
    business_flow = str(data.get('businessFlow') or '').strip().upper()
    from_email = normalize_email(data.get('email')) or current_user.email

    if environment not in current_app.config.get('NOTIFICATION_ENVIRONMENTS', []):
        return jsonify({"success": False, "error": "Please select a valid environment."}), 400
    if not validate_flow_code(business_flow):
        return jsonify({"success": False, "error": "Please select a valid business flow."}), 400
    if not validate_email(from_email):
        return jsonify({"success": False, "error": "Please enter a valid email address."}), 400

    recipients = current_app.config.get('NOTIFICATION_RECIPIENTS') or []
    if not recipients:
        current_app.logger.error("NOTIFICATION_RECIPIENTS is empty; cannot send notification")
        return jsonify({"success": False, "error": "Notification recipients are not configured."}), 500

    return _deliver(
        recipients,
        build_subject(environment, business_flow),
        None,
        from_email,
        details={"environment": environment, "businessFlow": business_flow, "fromEmail": from_email},
    )


@dashboard_bp.route('/api/send-notification', methods=['POST'])
@login_required
def send_notification():
    """Free-form notification. Input: {to_email, subject, from_name?, from_email?, cc_email?, message?}."""
    data = request.get_json(silent=True) or request.form
    recipients = parse_email_list(data.get('to_email'))
    subject = str(data.get('subject') or '').strip()

    if not recipients or not subject:
        return jsonify({"success": False, "error": "Missing required fields (to_email, subject)"}), 400
    if not all(validate_email(address) for address in recipients):
        return jsonify({"success": False, "error": "Invalid recipient email address"}), 400

    cc = parse_email_list(data.get('cc_email'))
    from_email = normalize_email(data.get('from_email')) or current_user.email
    return _deliver(
        recipients,
        subject,
        data.get('message') or '',
        from_email,
        from_name=str(data.get('from_name') or '').strip() or None,
        cc=cc,
        details={"fromEmail": from_email, "cc": cc},
    )
