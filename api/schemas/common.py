"""Field validators shared across request models."""

from core.utils.validators import validate_email, validate_password_strength


def check_email(value: str) -> str:
    """Field validator body: reject malformed addresses, return the normalized one."""
    valid, result = validate_email(value.strip())
    if not valid:
        raise ValueError(result)
    return result


def check_password(value: str) -> str:
    """Field validator body: enforce password strength rules."""
    valid, errors = validate_password_strength(value)
    if not valid:
        raise ValueError("; ".join(errors))
    return value
