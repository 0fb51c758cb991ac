"""Path parameter helpers."""

from app.core.errors import ValidationError


def parse_id(value: str, message: str) -> int:
    """Parse a numeric path id, rejecting anything non-numeric with a 400."""
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(message)
