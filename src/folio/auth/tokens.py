"""Signed session tokens (PyJWT, HS256)."""

from __future__ import annotations

import time
from typing import Any

import jwt

from folio.auth.models import Principal, UserRecord
from folio.core.errors import UnauthorizedError

ALGORITHM = "HS256"


class TokenIssuer:
    """Mint and verify stateless session tokens.

    Claims are ``{sub, email, role, iat, exp, iss}``.  There is no
    revocation list; a token is valid until it expires.
    """

    def __init__(self, secret: str, issuer: str = "folio-core", expires_in: int = 86400):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self._secret = secret
        self.issuer = issuer
        self.expires_in = expires_in

    @classmethod
    def from_settings(cls, settings: Any) -> TokenIssuer:
        return cls(settings.jwt_secret, settings.jwt_issuer, settings.jwt_expiry_seconds)

    def issue(self, user: UserRecord) -> str:
        now = int(time.time())
        claims = {
            "sub": user.id,
            "email": user.email,
            "role": user.role.value,
            "iat": now,
            "exp": now + self.expires_in,
            "iss": self.issuer,
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> Principal:
        if not token:
            raise UnauthorizedError("Access token required")
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                issuer=self.issuer,
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError("Token has expired") from None
        except jwt.InvalidTokenError:
            raise UnauthorizedError("Invalid or expired token") from None
        # storage URL tokens share the secret but are not sessions
        if claims.get("typ") == "storage":
            raise UnauthorizedError("Invalid or expired token")
        return Principal.from_claims(claims)


def bearer_token(header: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


__all__ = ["ALGORITHM", "TokenIssuer", "bearer_token"]
