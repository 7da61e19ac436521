"""Input checks for account fields and uploaded file names."""

import re
from typing import Optional

from email_validator import EmailNotValidError, validate_email as _validate_email

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,6}$")

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128

# (pattern that must match, message when it does not)
PASSWORD_RULES = [
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"\d"), "Password must contain at least one digit"),
]

UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
MAX_FILENAME_LENGTH = 255


def validate_email(email: str) -> tuple[bool, Optional[str]]:
    """
    Returns:
        ``(True, normalized_address)`` or ``(False, reason)``; the domain
        part is lower-cased by normalization.
    """
    if not EMAIL_PATTERN.match(email or ""):
        return False, "Invalid email address"
    try:
        return True, _validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        return False, str(e)


def validate_password_strength(password: str) -> tuple[bool, list[str]]:
    """All failed rules are reported, not just the first."""
    errors = []
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if len(password) > PASSWORD_MAX_LENGTH:
        errors.append(f"Password must be less than {PASSWORD_MAX_LENGTH} characters")
    errors.extend(message for pattern, message in PASSWORD_RULES if not pattern.search(password))
    return not errors, errors


def sanitize_filename(filename: str) -> str:
    """Strip path separators and control characters; spaces become underscores."""
    cleaned = UNSAFE_FILENAME_CHARS.sub("", filename).replace(" ", "_")
    if len(cleaned) <= MAX_FILENAME_LENGTH:
        return cleaned

    stem, dot, ext = cleaned.rpartition(".")
    if not dot or len(ext) > 16:
        return cleaned[:MAX_FILENAME_LENGTH]
    return f"{stem[:MAX_FILENAME_LENGTH - len(ext) - 1]}.{ext}"


def file_extension(filename: Optional[str], default: str = "bin") -> str:
    """Lower-cased extension without the dot, used in stored object keys."""
    _, dot, ext = sanitize_filename(filename or "").rpartition(".")
    if not dot or not ext.isalnum():
        return default
    return ext.lower()
