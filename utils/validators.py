"""
Input validation helpers
"""
import re

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
FLOW_CODE_RE = re.compile(r'^[A-Z0-9][A-Z0-9_]{0,63}$')
MAX_EMAIL_LIMIT = 10000


def normalize_email(email):
    """Trim and lowercase; anything but a string becomes empty."""
    if not isinstance(email, str):
        return ''
    return email.strip().lower()


def validate_email(email):
    """Basic shape check: something@something.tld with no whitespace."""
    return bool(email) and EMAIL_RE.match(email) is not None


def validate_flow_code(code):
    """Business flow codes are upper-case identifiers such as NEW_B2B_CUSTOMER."""
    return bool(code) and FLOW_CODE_RE.match(code) is not None


def parse_email_list(value):
    """Split a comma separated recipient string (or list) into normalized addresses."""
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value or '').split(',')
    return [normalize_email(item) for item in items if normalize_email(item)]


def validate_limit(value):
    """Returns (is_valid, limit_or_error)."""
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return False, 'Limit must be a whole number.'
    if limit < 0 or limit > MAX_EMAIL_LIMIT:
        return False, f'Limit must be between 0 and {MAX_EMAIL_LIMIT}.'
    return True, limit
