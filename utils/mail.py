"""
Email utility functions
"""
from flask_mail import Mail, Message
from flask import current_app

mail = Mail()


def _ensure_mail_configured():
    """Raise if the Mail extension or the SMTP settings are missing."""
    if 'mail' not in current_app.extensions:
        raise RuntimeError("Mail extension not initialized. Check app configuration.")

    if not current_app.config.get('MAIL_SERVER'):
        raise RuntimeError("MAIL_SERVER not configured. Please set MAIL_SERVER environment variable.")

    if not current_app.config.get('MAIL_USERNAME'):
        raise RuntimeError("MAIL_USERNAME not configured. Please set MAIL_USERNAME environment variable.")


def send_email(subject, recipients, body, html=None, cc=None, sender=None, reply_to=None):
    """
    Send an email

    Args:
        subject: Email subject
        recipients: List of recipient email addresses
        body: Plain text body
        html: HTML body (optional)
        cc: List of CC addresses (optional)
        sender: Sender address or (name, address) tuple; MAIL_DEFAULT_SENDER when omitted
        reply_to: Reply-To address (optional)
    """
    _ensure_mail_configured()
    msg = Message(
        subject=subject,
        recipients=recipients,
        body=body,
        html=html,
        cc=cc or None,
        sender=sender,
        reply_to=reply_to,
    )
    try:
        mail.send(msg)
    except Exception as e:
        current_app.logger.error(f"SMTP error sending '{subject}' to {', '.join(recipients)}: {str(e)}", exc_info=True)
        raise


def send_otp_email(email, otp, expiry_minutes=5):
    """Send the login one-time password. Raises on delivery failure."""
    from_name = current_app.config.get('NOTIFICATION_FROM_NAME', 'Site Dashboard')
    subject = f"{from_name} - Your OTP Code"
    body = f"""Your one-time password (OTP) is: {otp}

This code expires in {expiry_minutes} minutes.

If you didn't request this code, please ignore this email.
"""
    html = _otp_email_html(otp, expiry_minutes)
    send_email(subject, [email], body, html=html,
               sender=(from_name, current_app.config.get('MAIL_DEFAULT_SENDER')))


def _otp_email_html(otp: str, expiry_minutes: int) -> str:
    """Clean HTML template for the OTP email."""
    return f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="utf-8"><title>Your OTP Code</title></head>
    <body style="font-family: system-ui, sans-serif; max-width: 480px; margin: 0 auto; padding: 24px;">
        <h2 style="color: #1a1a21;">Your one-time password</h2>
        <p style="font-size: 28px; letter-spacing: 8px; font-weight: bold; color: #e60000;">{otp}</p>
        <p style="color: #666;">This code expires in {expiry_minutes} minutes.</p>
        <hr style="border: none; border-top: 1px solid #eee; margin: 24px 0;">
        <p style="font-size: 12px; color: #999;">If you didn't request this code, please ignore this email.</p>
    </body>
    </html>
    """


def send_site_notification(recipients, subject, message, from_email, from_name=None, cc=None):
    """
    Send a dashboard notification on behalf of an employee.
    The mail goes out from MAIL_DEFAULT_SENDER with the employee as Reply-To.
    """
    from_name = from_name or current_app.config.get('NOTIFICATION_FROM_NAME', 'Site Dashboard')
    body = f"""{message or '(No message)'}

Sent by {from_email} via {from_name}.
"""
    send_email(
        subject,
        recipients,
        body,
        cc=cc,
        sender=(from_name, current_app.config.get('MAIL_DEFAULT_SENDER')),
        reply_to=from_email,
    )
