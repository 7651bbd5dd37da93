"""UUID generation utilities.

This module centralizes all UUID generation. This is the ONLY module that
should import uuid4. All other code should use uid.generate_uuid().
"""

from uuid import UUID, uuid4


def generate_uuid() -> str:
    """Generate a random UUID v4 as a string."""
    return str(uuid4())


def parse_uuid(value: str) -> str | None:
    """Return the canonical form of ``value`` or None if it is not a UUID."""
    try:
        return str(UUID(value))
    except (ValueError, AttributeError, TypeError):
        return None
