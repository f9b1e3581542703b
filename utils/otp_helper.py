"""
OTP generation and signed OTP tokens for the two-factor login.
The code is never stored server-side: the token carries a salted hash of it
plus an expiry, signed with HMAC-SHA256, and the client hands it back on verify.

Token format: base64(json {email, otpHash, expiresAt}) + "." + hex HMAC of that base64 string.
"""
import base64
import binascii
import hashlib
import hmac
import json
import secrets
from typing import NamedTuple

from flask import current_app

from utils import time_helper

OTP_LENGTH = 6
MAX_OTP_ATTEMPTS = 5
OTP_EXPIRY_MINUTES = 5
TOKEN_DELIMITER = "."

INVALID_TOKEN_MSG = "Invalid token"
EMAIL_MISMATCH_MSG = "Email mismatch"
OTP_EXPIRED_MSG = "OTP has expired. Please request a new OTP."
INVALID_OTP_MSG = "Invalid OTP. Please try again."
OTP_VALID_MSG = "Email verified successfully"


class OTPCheck(NamedTuple):
    valid: bool
    message: str


def otp_secret() -> str:
    """Signing secret for OTP tokens (OTP_SECRET_KEY, else the app SECRET_KEY)."""
    return current_app.config.get("OTP_SECRET_KEY") or current_app.config.get("SECRET_KEY", "")


def generate_otp() -> str:
    """Generate a secure 6-digit numeric OTP."""
    return ''.join(secrets.choice('0123456789') for _ in range(OTP_LENGTH))


def hash_otp(otp: str, secret: str) -> str:
    """SHA-256 of the code salted with the secret."""
    return hashlib.sha256(f"{otp}{secret}".encode('utf-8')).hexdigest()


def _sign(payload: str, secret: str) -> str:
    return hmac.new(secret.encode('utf-8'), payload.encode('utf-8'), hashlib.sha256).hexdigest()


def create_otp_token(email: str, otp: str, secret: str,
                     expiry_minutes: int = OTP_EXPIRY_MINUTES, now: int | None = None) -> str:
    """Build the signed token for an issued code."""
    now = time_helper.now_ms() if now is None else now
    data = {
        "email": email,
        "otpHash": hash_otp(otp, secret),
        "expiresAt": now + expiry_minutes * 60 * 1000,
    }
    payload = base64.b64encode(json.dumps(data, separators=(',', ':')).encode('utf-8')).decode('ascii')
    return f"{payload}{TOKEN_DELIMITER}{_sign(payload, secret)}"


def issue_otp(email: str, secret: str,
              expiry_minutes: int = OTP_EXPIRY_MINUTES, now: int | None = None) -> tuple[str, str]:
    """
    Issue a new OTP for email.
    Returns (code, token); the code goes out by email, the token back to the caller.
    """
    otp = generate_otp()
    return otp, create_otp_token(email, otp, secret, expiry_minutes, now)


def _decode_payload(payload: str) -> tuple[str, str, int]:
    data = json.loads(base64.b64decode(payload.encode('ascii'), validate=True).decode('utf-8'))
    return data["email"], str(data["otpHash"]), int(data["expiresAt"])


def verify_otp_token(token: str, email: str, otp: str, secret: str, now: int | None = None) -> OTPCheck:
    """
    Check a candidate code against a token issued for email.
    Order: signature, email, expiry, code. Every failure is final for this attempt.
    Not single-use: the same token and code verify again until the token expires.
    """
    if not token or not isinstance(token, str):
        return OTPCheck(False, INVALID_TOKEN_MSG)

    parts = token.split(TOKEN_DELIMITER)
    if len(parts) != 2:
        return OTPCheck(False, INVALID_TOKEN_MSG)
    payload, signature = parts

    expected = _sign(payload, secret)
    if not hmac.compare_digest(signature.encode('utf-8'), expected.encode('utf-8')):
        return OTPCheck(False, INVALID_TOKEN_MSG)

    try:
        token_email, otp_hash, expires_at = _decode_payload(payload)
    except (binascii.Error, ValueError, KeyError, TypeError):
        return OTPCheck(False, INVALID_TOKEN_MSG)

    if token_email != email:
        return OTPCheck(False, EMAIL_MISMATCH_MSG)

    now = time_helper.now_ms() if now is None else now
    if now >= expires_at:
        return OTPCheck(False, OTP_EXPIRED_MSG)

    candidate = hash_otp(otp or '', secret)
    if not hmac.compare_digest(candidate.encode('utf-8'), otp_hash.encode('utf-8')):
        return OTPCheck(False, INVALID_OTP_MSG)

    return OTPCheck(True, OTP_VALID_MSG)
