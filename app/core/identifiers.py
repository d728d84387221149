import uuid

from app.core.exceptions import InvalidIdentifier


def parse_identifier(value: str | uuid.UUID | None, *, label: str = "id") -> uuid.UUID:
    """Coerce a client-supplied id into a UUID or raise InvalidIdentifier (400)."""
    if isinstance(value, uuid.UUID):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidIdentifier(f"Invalid {label} format: {value!r}")
    try:
        return uuid.UUID(value.strip())
    except ValueError:
        raise InvalidIdentifier(f"Invalid {label} format: {value}") from None
