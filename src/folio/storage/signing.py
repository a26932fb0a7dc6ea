"""Signed object URLs for stores without native presigning.

The token is a short-lived HS256 JWT binding one ``bucket``/``path`` pair;
it is verified by ``GET /storage/{bucket}/signed/{path}?token=...``.
"""

from __future__ import annotations

import time

import jwt

from folio.core.errors import UnauthorizedError

_TOKEN_TYPE = "storage"


class UrlSigner:
    def __init__(self, secret: str, issuer: str = "folio-core"):
        self._secret = secret
        self._issuer = issuer

    def sign(self, bucket: str, path: str, expires_in: int) -> str:
        now = int(time.time())
        claims = {
            "typ": _TOKEN_TYPE,
            "bucket": bucket,
            "path": path,
            "iat": now,
            "exp": now + int(expires_in),
            "iss": self._issuer,
        }
        return jwt.encode(claims, self._secret, algorithm="HS256")

    def verify(self, token: str, bucket: str, path: str) -> None:
        """Raise :class:`UnauthorizedError` unless ``token`` grants ``bucket/path``."""
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=["HS256"],
                issuer=self._issuer,
                options={"require": ["exp", "bucket", "path"]},
            )
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError("Signed URL has expired") from None
        except jwt.InvalidTokenError:
            raise UnauthorizedError("Invalid signed URL") from None

        if claims.get("typ") != _TOKEN_TYPE or claims["bucket"] != bucket or claims["path"] != path:
            raise UnauthorizedError("Invalid signed URL")
