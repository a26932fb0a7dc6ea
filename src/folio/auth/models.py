"""Auth value types: roles, principals and user records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Role(str, Enum):
    """The two account roles. New accounts are editors."""

    ADMIN = "admin"
    EDITOR = "editor"

    @classmethod
    def parse(cls, value: Any) -> Role | None:
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class Principal:
    """The authenticated caller, decoded from a verified session token."""

    user_id: str
    email: str
    role: Role
    issued_at: datetime
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> Principal:
        return cls(
            user_id=str(claims["sub"]),
            email=claims.get("email", ""),
            role=Role.parse(claims.get("role")) or Role.EDITOR,
            issued_at=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "email": self.email,
            "role": self.role.value,
            "issuedAt": self.issued_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
        }


def _iso(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


@dataclass(slots=True)
class UserRecord:
    """A ``users`` row joined with its ``profiles`` row."""

    id: str
    email: str
    role: Role = Role.EDITOR
    full_name: str | None = None
    created_at: Any = None
    last_sign_in_at: Any = None
    deleted_at: Any = None
    encrypted_password: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> UserRecord:
        return cls(
            id=str(row["id"]),
            email=row["email"],
            role=Role.parse(row.get("role")) or Role.EDITOR,
            full_name=row.get("full_name"),
            created_at=row.get("created_at"),
            last_sign_in_at=row.get("last_sign_in_at"),
            deleted_at=row.get("deleted_at"),
            encrypted_password=row.get("encrypted_password"),
        )

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None

    def to_public_dict(self) -> dict[str, Any]:
        """Wire shape; the password hash is never included."""
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role.value,
            "created_at": _iso(self.created_at),
            "last_sign_in_at": _iso(self.last_sign_in_at),
        }


__all__ = ["Principal", "Role", "UserRecord"]
