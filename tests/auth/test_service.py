"""Tests for AuthService against a migrated SQLite database."""

from __future__ import annotations

from folio.auth.models import Role
from folio.auth.service import INVALID_CREDENTIALS
from tests._support.accounts import ADMIN_EMAIL, EDITOR_EMAIL, EDITOR_PASSWORD, sign_in_account


class TestSignUp:
    async def test_creates_editor(self, runtime):
        envelope = await runtime.auth.sign_up("New@Example.com ", "long-enough-pw", {"full_name": "New"})
        assert envelope.is_ok()
        user = envelope.data["user"]
        assert user["email"] == "new@example.com"
        assert user["role"] == "editor"
        assert user["full_name"] == "New"
        assert "encrypted_password" not in user

    async def test_duplicate_email_conflicts(self, runtime, editor):
        envelope = await runtime.auth.sign_up(EDITOR_EMAIL.upper(), "another-password")
        assert envelope.error.code == "CONFLICT"

    async def test_short_password(self, runtime):
        envelope = await runtime.auth.sign_up("short@example.com", "short")
        assert envelope.error.code == "INVALID_ARGUMENT"
        assert envelope.error.details["field"] == "password"

    async def test_invalid_email(self, runtime):
        envelope = await runtime.auth.sign_up("not-an-email", "long-enough-pw")
        assert envelope.error.code == "INVALID_ARGUMENT"


class TestSignIn:
    async def test_session_shape(self, runtime, editor):
        envelope = await runtime.auth.sign_in(EDITOR_EMAIL, EDITOR_PASSWORD)
        data = envelope.data
        assert data["token_type"] == "Bearer"
        assert data["expires_in"] == runtime.settings.jwt_expiry_seconds
        assert data["user"]["last_sign_in_at"] is not None
        assert runtime.auth.authenticate(data["access_token"]).user_id == editor.id

    async def test_unknown_email_and_wrong_password_look_identical(self, runtime, editor):
        unknown = await runtime.auth.sign_in("ghost@example.com", EDITOR_PASSWORD)
        wrong = await runtime.auth.sign_in(EDITOR_EMAIL, "wrong-password")
        assert unknown.error.code == wrong.error.code == "UNAUTHORIZED"
        assert unknown.error.message == wrong.error.message == INVALID_CREDENTIALS

    async def test_missing_fields(self, runtime):
        envelope = await runtime.auth.sign_in("", "")
        assert envelope.error.code == "INVALID_ARGUMENT"


class TestSession:
    async def test_get_session(self, runtime, editor):
        envelope = await runtime.auth.get_session(editor.token)
        assert envelope.data["user"]["id"] == editor.id
        assert envelope.data["access_token"] == editor.token

    async def test_get_session_without_token(self, runtime):
        envelope = await runtime.auth.get_session(None)
        assert envelope.error.code == "UNAUTHORIZED"

    async def test_get_user(self, runtime, editor):
        envelope = await runtime.auth.get_user(editor.principal)
        assert envelope.data["user"]["email"] == EDITOR_EMAIL

    async def test_sign_out(self, runtime, editor):
        envelope = await runtime.auth.sign_out(editor.principal)
        assert envelope.data == {"message": "Signed out successfully"}


class TestChangePassword:
    async def test_changes_password(self, runtime, editor):
        envelope = await runtime.auth.change_password(editor.principal, EDITOR_PASSWORD, "brand-new-password")
        assert envelope.is_ok()
        assert (await runtime.auth.sign_in(EDITOR_EMAIL, EDITOR_PASSWORD)).is_err()
        assert (await runtime.auth.sign_in(EDITOR_EMAIL, "brand-new-password")).is_ok()

    async def test_wrong_current_password(self, runtime, editor):
        envelope = await runtime.auth.change_password(editor.principal, "nope-nope-nope", "brand-new-password")
        assert envelope.error.code == "UNAUTHORIZED"

    async def test_new_password_too_short(self, runtime, editor):
        envelope = await runtime.auth.change_password(editor.principal, EDITOR_PASSWORD, "short")
        assert envelope.error.code == "INVALID_ARGUMENT"
        assert envelope.error.details["field"] == "newPassword"


class TestAdministration:
    async def test_list_users_requires_admin(self, runtime, editor):
        envelope = await runtime.auth.list_users(editor.principal)
        assert envelope.error.code == "FORBIDDEN"

    async def test_list_users(self, runtime, admin, editor):
        envelope = await runtime.auth.list_users(admin.principal)
        emails = {u["email"] for u in envelope.data["users"]}
        assert emails == {ADMIN_EMAIL, EDITOR_EMAIL}

    async def test_set_role_promotes(self, runtime, admin, editor):
        envelope = await runtime.auth.set_role(admin.principal, editor.id, "admin")
        assert envelope.is_ok()
        # role is read from the database, so the editor's old token now passes admin checks
        assert (await runtime.auth.list_users(editor.principal)).is_ok()

    async def test_demotion_applies_before_token_expiry(self, runtime, admin, editor):
        await runtime.auth.set_role(admin.principal, editor.id, "admin")
        await runtime.auth.set_role(editor.principal, admin.id, "editor")
        envelope = await runtime.auth.list_users(admin.principal)
        assert envelope.error.code == "FORBIDDEN"
        assert admin.principal.role is Role.ADMIN

    async def test_set_role_invalid(self, runtime, admin, editor):
        envelope = await runtime.auth.set_role(admin.principal, editor.id, "owner")
        assert envelope.error.code == "INVALID_ARGUMENT"

    async def test_cannot_change_own_role(self, runtime, admin):
        envelope = await runtime.auth.set_role(admin.principal, admin.id, "editor")
        assert envelope.error.code == "FORBIDDEN"

    async def test_set_role_unknown_user(self, runtime, admin):
        envelope = await runtime.auth.set_role(admin.principal, "missing-id", "editor")
        assert envelope.error.code == "NOT_FOUND"

    async def test_deactivate_blocks_sign_in(self, runtime, admin, editor):
        envelope = await runtime.auth.deactivate(admin.principal, editor.id)
        assert envelope.is_ok()
        signed_in = await runtime.auth.sign_in(EDITOR_EMAIL, EDITOR_PASSWORD)
        assert signed_in.error.message == INVALID_CREDENTIALS
        assert (await runtime.auth.get_session(editor.token)).error.code == "UNAUTHORIZED"

    async def test_cannot_deactivate_self(self, runtime, admin):
        envelope = await runtime.auth.deactivate(admin.principal, admin.id)
        assert envelope.error.code == "FORBIDDEN"

    async def test_editor_cannot_deactivate(self, runtime, admin, editor):
        envelope = await runtime.auth.deactivate(editor.principal, admin.id)
        assert envelope.error.code == "FORBIDDEN"


class TestCreateAdmin:
    async def test_creates_new_admin(self, runtime):
        envelope = await runtime.auth.create_admin("root@example.com", "root-password-1")
        assert envelope.data["created"] is True
        assert envelope.data["user"]["role"] == "admin"

    async def test_promotes_existing_and_resets_password(self, runtime, editor):
        envelope = await runtime.auth.create_admin(EDITOR_EMAIL, "promoted-password")
        assert envelope.data["created"] is False
        assert envelope.data["user"]["role"] == "admin"
        assert envelope.data["user"]["full_name"] == "Ed Itor"
        account = await sign_in_account(runtime, EDITOR_EMAIL, "promoted-password")
        assert account.principal.is_admin

    async def test_reactivates_deactivated_account(self, runtime, admin, editor):
        await runtime.auth.deactivate(admin.principal, editor.id)
        await runtime.auth.create_admin(EDITOR_EMAIL, "second-chance-pw")
        assert (await runtime.auth.sign_in(EDITOR_EMAIL, "second-chance-pw")).is_ok()
