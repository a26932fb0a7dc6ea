"""
Account service: sign-up, sign-in, sessions and role administration.

Credentials live in ``users`` (bcrypt hash, ``last_sign_in_at``, soft-delete
``deleted_at``); display name and role live in ``profiles``.  Both rows are
written in one transaction at sign-up.  Every public method resolves to an
:class:`~folio.core.envelope.Envelope` and never raises.

Failure semantics:
    - duplicate email                     -> ``Conflict``
    - unknown email / wrong password /
      deactivated account                 -> one identical ``Unauthorized``
    - admin operation by a non-admin      -> ``Forbidden``
    - admin targeting their own account   -> ``Forbidden``

Admin checks read the caller's role from ``profiles`` rather than trusting
the token claim, so a demotion takes effect before the token expires.

Tags:
    folio-core, auth, bcrypt, jwt, roles, envelope
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from folio.auth.models import Principal, Role, UserRecord
from folio.auth.passwords import PasswordHasher, password_too_long
from folio.auth.tokens import TokenIssuer
from folio.core.database import Database, driver_message, is_unique_violation
from folio.core.envelope import Envelope
from folio.core.errors import (
    ConflictError,
    ExecutionError,
    FolioError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    UnauthorizedError,
)
from folio.core.logging import get_logger

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"

_USER_COLUMNS = """
    SELECT u.id, u.email, u.encrypted_password, u.created_at, u.last_sign_in_at,
           u.deleted_at, p.full_name, p.role
    FROM users u
    LEFT JOIN profiles p ON p.user_id = u.id
"""


def _normalize_email(email: Any) -> str:
    if not isinstance(email, str) or "@" not in email.strip():
        raise InvalidArgumentError("A valid email address is required", field="email")
    return email.strip().lower()


class AuthService:
    def __init__(
        self,
        database: Database,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        *,
        min_password_length: int = 8,
    ):
        self.database = database
        self.hasher = hasher
        self.tokens = tokens
        self.min_password_length = min_password_length

    @classmethod
    def from_settings(cls, database: Database, settings: Any) -> AuthService:
        return cls(
            database,
            PasswordHasher(settings.bcrypt_rounds),
            TokenIssuer.from_settings(settings),
            min_password_length=settings.min_password_length,
        )

    async def _guard(self, operation: str, call: Callable[[], Awaitable[Any]]) -> Envelope:
        try:
            data = await call()
        except FolioError as exc:
            logger.info("auth.failed", operation=operation, code=exc.code.value, reason=exc.message)
            return Envelope.failure(exc)
        except SQLAlchemyError as exc:
            if is_unique_violation(exc):
                return Envelope.failure(ConflictError("User already exists", cause=exc))
            logger.error("auth.store_failed", operation=operation, error=driver_message(exc))
            return Envelope.failure(ExecutionError(driver_message(exc), cause=exc))
        return Envelope.success(data)

    def _check_password(self, password: Any, field: str = "password") -> str:
        if not isinstance(password, str) or len(password) < self.min_password_length:
            raise InvalidArgumentError(
                f"Password must be at least {self.min_password_length} characters long", field=field
            )
        if password_too_long(password):
            raise InvalidArgumentError("Password must be at most 72 bytes long", field=field)
        return password

    # -- Lookups -----------------------------------------------------------

    async def _find_by_email(self, email: str) -> UserRecord | None:
        row = await self.database.fetch_one(_USER_COLUMNS + " WHERE u.email = :email", {"email": email})
        return UserRecord.from_row(row) if row else None

    async def _find_by_id(self, user_id: str, *, active_only: bool = True) -> UserRecord | None:
        sql = _USER_COLUMNS + " WHERE u.id = :id"
        if active_only:
            sql += " AND u.deleted_at IS NULL"
        row = await self.database.fetch_one(sql, {"id": user_id})
        return UserRecord.from_row(row) if row else None

    async def _require_user(self, principal: Principal) -> UserRecord:
        user = await self._find_by_id(principal.user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def require_admin(self, principal: Principal) -> UserRecord:
        user = await self._find_by_id(principal.user_id)
        if user is None or user.role is not Role.ADMIN:
            raise ForbiddenError("Admin access required")
        return user

    async def _insert_user(
        self, email: str, password: str, full_name: str | None, role: Role
    ) -> UserRecord:
        hashed = await self.hasher.hash(password)
        user_id = str(uuid.uuid4())
        async with self.database.transaction() as conn:
            await conn.execute(
                text(
                    "INSERT INTO users (id, email, encrypted_password, created_at, updated_at) "
                    "VALUES (:id, :email, :pw, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)"
                ),
                {"id": user_id, "email": email, "pw": hashed},
            )
            await conn.execute(
                text(
                    "INSERT INTO profiles (user_id, email, full_name, role, created_at, updated_at) "
                    "VALUES (:id, :email, :full_name, :role, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)"
                ),
                {"id": user_id, "email": email, "full_name": full_name, "role": role.value},
            )
        user = await self._find_by_id(user_id)
        if user is None:
            raise ExecutionError("User row missing after insert")
        return user

    # -- Account lifecycle -------------------------------------------------

    async def sign_up(self, email: str, password: str, meta: dict[str, Any] | None = None) -> Envelope:
        """Create an editor account; resolves to ``{user}``."""

        async def _sign_up() -> dict[str, Any]:
            address = _normalize_email(email)
            self._check_password(password)
            if await self._find_by_email(address) is not None:
                raise ConflictError("User already exists")
            full_name = (meta or {}).get("full_name")
            user = await self._insert_user(address, password, full_name, Role.EDITOR)
            logger.info("auth.signed_up", user_id=user.id)
            return {"user": user.to_public_dict()}

        return await self._guard("sign_up", _sign_up)

    async def sign_in(self, email: str, password: str) -> Envelope:
        """Resolves to ``{access_token, token_type, expires_in, user}``."""

        async def _sign_in() -> dict[str, Any]:
            if not email or not password:
                raise InvalidArgumentError("Email and password are required")
            user = await self._find_by_email(str(email).strip().lower())
            if user is None or not user.is_active:
                await self.hasher.verify(password, None)
                raise UnauthorizedError(INVALID_CREDENTIALS)
            if not await self.hasher.verify(password, user.encrypted_password):
                raise UnauthorizedError(INVALID_CREDENTIALS)

            await self.database.execute(
                "UPDATE users SET last_sign_in_at = CURRENT_TIMESTAMP WHERE id = :id", {"id": user.id}
            )
            logger.info("auth.signed_in", user_id=user.id, role=user.role.value)
            return {
                "access_token": self.tokens.issue(user),
                "token_type": "Bearer",
                "expires_in": self.tokens.expires_in,
                "user": user.to_public_dict(),
            }

        return await self._guard("sign_in", _sign_in)

    def authenticate(self, token: str | None) -> Principal:
        """Verify a bearer token; raises :class:`UnauthorizedError`."""
        return self.tokens.verify(token or "")

    async def get_session(self, token: str | None) -> Envelope:
        async def _session() -> dict[str, Any]:
            principal = self.authenticate(token)
            user = await self._find_by_id(principal.user_id)
            if user is None:
                raise UnauthorizedError("Invalid or expired token")
            return {
                "access_token": token,
                "token_type": "Bearer",
                "expires_at": principal.expires_at.isoformat(),
                "user": user.to_public_dict(),
            }

        return await self._guard("get_session", _session)

    async def get_user(self, principal: Principal) -> Envelope:
        async def _user() -> dict[str, Any]:
            return {"user": (await self._require_user(principal)).to_public_dict()}

        return await self._guard("get_user", _user)

    async def sign_out(self, principal: Principal | None) -> Envelope:
        # Tokens are stateless; this only records the event.
        logger.info("auth.signed_out", user_id=principal.user_id if principal else None)
        return Envelope.success({"message": "Signed out successfully"})

    async def change_password(self, principal: Principal, current_password: str, new_password: str) -> Envelope:
        async def _change() -> dict[str, Any]:
            if not current_password or not new_password:
                raise InvalidArgumentError("Current password and new password are required")
            self._check_password(new_password, field="newPassword")
            user = await self._require_user(principal)
            if not await self.hasher.verify(current_password, user.encrypted_password):
                raise UnauthorizedError("Current password is incorrect")
            hashed = await self.hasher.hash(new_password)
            await self.database.execute(
                "UPDATE users SET encrypted_password = :pw, updated_at = CURRENT_TIMESTAMP WHERE id = :id",
                {"pw": hashed, "id": user.id},
            )
            logger.info("auth.password_changed", user_id=user.id)
            return {"message": "Password changed successfully"}

        return await self._guard("change_password", _change)

    # -- Administration ----------------------------------------------------

    async def list_users(self, principal: Principal) -> Envelope:
        async def _list() -> dict[str, Any]:
            await self.require_admin(principal)
            rows = await self.database.fetch_all(
                _USER_COLUMNS + " WHERE u.deleted_at IS NULL ORDER BY u.created_at DESC"
            )
            return {"users": [UserRecord.from_row(r).to_public_dict() for r in rows]}

        return await self._guard("list_users", _list)

    async def set_role(self, principal: Principal, user_id: str, role: str) -> Envelope:
        async def _set_role() -> dict[str, Any]:
            new_role = Role.parse(role)
            if new_role is None:
                raise InvalidArgumentError("Valid role is required (admin or editor)", field="role")
            await self.require_admin(principal)
            if str(user_id) == principal.user_id:
                raise ForbiddenError("Cannot change your own role")
            if await self._find_by_id(str(user_id)) is None:
                raise NotFoundError("User not found")
            await self.database.execute(
                "UPDATE profiles SET role = :role, updated_at = CURRENT_TIMESTAMP WHERE user_id = :id",
                {"role": new_role.value, "id": str(user_id)},
            )
            logger.info("auth.role_changed", user_id=str(user_id), role=new_role.value, by=principal.user_id)
            return {"message": "User role updated successfully"}

        return await self._guard("set_role", _set_role)

    async def deactivate(self, principal: Principal, user_id: str) -> Envelope:
        """Soft-delete an account; it can no longer sign in."""

        async def _deactivate() -> dict[str, Any]:
            await self.require_admin(principal)
            if str(user_id) == principal.user_id:
                raise ForbiddenError("Cannot deactivate your own account")
            if await self._find_by_id(str(user_id)) is None:
                raise NotFoundError("User not found")
            await self.database.execute(
                "UPDATE users SET deleted_at = CURRENT_TIMESTAMP WHERE id = :id", {"id": str(user_id)}
            )
            logger.info("auth.user_deactivated", user_id=str(user_id), by=principal.user_id)
            return {"message": "User deactivated successfully"}

        return await self._guard("deactivate", _deactivate)

    async def create_admin(self, email: str, password: str, full_name: str | None = None) -> Envelope:
        """Create an admin, or promote and reset the password of an existing account."""

        async def _create() -> dict[str, Any]:
            address = _normalize_email(email)
            self._check_password(password)
            existing = await self._find_by_email(address)
            if existing is None:
                user = await self._insert_user(address, password, full_name, Role.ADMIN)
                logger.info("auth.admin_created", user_id=user.id)
                return {"user": user.to_public_dict(), "created": True}

            hashed = await self.hasher.hash(password)
            await self.database.execute(
                "UPDATE users SET encrypted_password = :pw, deleted_at = NULL, "
                "updated_at = CURRENT_TIMESTAMP WHERE id = :id",
                {"pw": hashed, "id": existing.id},
            )
            await self.database.execute(
                "INSERT INTO profiles (user_id, email, full_name, role, created_at, updated_at) "
                "VALUES (:id, :email, :full_name, :role, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP) "
                "ON CONFLICT (user_id) DO UPDATE SET role = excluded.role, updated_at = excluded.updated_at",
                {"id": existing.id, "email": address, "full_name": full_name or existing.full_name,
                 "role": Role.ADMIN.value},
            )
            user = await self._find_by_id(existing.id)
            logger.info("auth.admin_promoted", user_id=existing.id)
            return {"user": user.to_public_dict() if user else None, "created": False}

        return await self._guard("create_admin", _create)


__all__ = ["INVALID_CREDENTIALS", "AuthService"]
