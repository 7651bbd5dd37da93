"""Account module for account-core.

This module holds the account logic behind the HTTP endpoints:
- passwords: bcrypt hashing for passwords and token secrets
- allocator: partitioned student code number allocation
- verification: registration verification codes (issue, verify, resend)
- reset_tokens: password reset and email reset tokens
- credentials: login credential validation
- service: registration and account management
- notifications: after-commit outbound notifications
- schemas: request and response models
"""

from . import allocator, credentials, notifications, passwords, reset_tokens, schemas, service, verification

__all__ = [
    "allocator",
    "credentials",
    "notifications",
    "passwords",
    "reset_tokens",
    "schemas",
    "service",
    "verification",
]
