"""Random secret generation for reset tokens."""

import secrets

# 32 bytes -> 43 URL-safe characters, under bcrypt's 72-byte input limit
TOKEN_SECRET_BYTES = 32


def generate_token_secret() -> str:
    """Generate a URL-safe base64 secret (no padding) from 32 random bytes."""
    return secrets.token_urlsafe(TOKEN_SECRET_BYTES)
