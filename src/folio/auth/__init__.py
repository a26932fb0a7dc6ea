"""
Authentication: bcrypt credentials, stateless JWT sessions, admin/editor roles.

Usage::

    from folio.auth import AuthService

    auth = AuthService.from_settings(database, settings)
    envelope = await auth.sign_in("me@example.com", "s3cret-pass")
    token = envelope.unwrap()["access_token"]
"""

from folio.auth.models import Principal, Role, UserRecord
from folio.auth.passwords import PasswordHasher
from folio.auth.service import INVALID_CREDENTIALS, AuthService
from folio.auth.tokens import TokenIssuer, bearer_token

__all__ = [
    "INVALID_CREDENTIALS",
    "AuthService",
    "PasswordHasher",
    "Principal",
    "Role",
    "TokenIssuer",
    "UserRecord",
    "bearer_token",
]
