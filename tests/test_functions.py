"""Tests for the function registry and the contact-form function."""

from __future__ import annotations

import pytest

from folio.core.errors import NotFoundError
from folio.functions import FunctionRegistry
from folio.mail import MailError, MailMessage

CONTACT = {
    "name": "Jane Doe",
    "email": "jane@example.com",
    "subject": "Commission",
    "message": "I would like a print of the harbour series.",
}


class RecordingMailer:
    def __init__(self, fail_for: str | None = None):
        self.sent: list[MailMessage] = []
        self.fail_for = fail_for

    async def send(self, message: MailMessage) -> str:
        if self.fail_for in message.to:
            raise MailError("550 mailbox unavailable")
        self.sent.append(message)
        return f"<{len(self.sent)}@folio.test>"


async def add_site_settings(database, **columns):
    values = {"contact_email": "studio@example.com", "form_enabled": True, **columns}
    names = ", ".join(values)
    params = ", ".join(f":{name}" for name in values)
    await database.execute(f"INSERT INTO site_settings ({names}) VALUES ({params})", values)


class TestSendContactEmail:
    async def test_persists_message(self, runtime):
        envelope = await runtime.invoke_function("send-contact-email", CONTACT)
        assert envelope.data == {
            "success": True,
            "message": "Contact message received successfully",
            "messageId": None,
            "responses": [],
        }
        rows = await runtime.database.fetch_all("SELECT name, email, phone, subject, message FROM contact_messages")
        assert rows == [{**CONTACT, "phone": None}]

    async def test_trims_text(self, runtime):
        await runtime.invoke_function("send-contact-email", {**CONTACT, "name": "  Jane  ", "phone": " "})
        row = await runtime.database.fetch_one("SELECT name, phone FROM contact_messages")
        assert row == {"name": "Jane", "phone": None}

    @pytest.mark.parametrize("missing", ["name", "email", "message"])
    async def test_required_fields(self, runtime, missing):
        body = {k: v for k, v in CONTACT.items() if k != missing}
        envelope = await runtime.invoke_function("send-contact-email", body)
        assert envelope.error.code == "INVALID_ARGUMENT"
        assert envelope.error.details == {"field": missing}

    async def test_invalid_email(self, runtime):
        envelope = await runtime.invoke_function("send-contact-email", {**CONTACT, "email": "jane"})
        assert envelope.error.details == {"field": "email"}

    async def test_non_string_field(self, runtime):
        envelope = await runtime.invoke_function("send-contact-email", {**CONTACT, "message": 42})
        assert envelope.error.message == "message must be a string"

    async def test_overlong_field(self, runtime):
        envelope = await runtime.invoke_function("send-contact-email", {**CONTACT, "subject": "x" * 256})
        assert envelope.error.message == "subject is too long"
        assert await runtime.database.fetch_all("SELECT id FROM contact_messages") == []

    async def test_disabled_form_is_forbidden(self, runtime):
        await add_site_settings(runtime.database, form_enabled=False)
        envelope = await runtime.invoke_function("send-contact-email", CONTACT)
        assert envelope.error.code == "FORBIDDEN"
        assert envelope.error.message == "Contact form is currently disabled"
        assert await runtime.database.fetch_all("SELECT id FROM contact_messages") == []

    async def test_enabled_form_without_mailer_only_stores(self, runtime):
        await add_site_settings(runtime.database)
        envelope = await runtime.invoke_function("send-contact-email", CONTACT)
        assert envelope.data["success"] is True
        assert envelope.data["responses"] == []
        assert len(await runtime.database.fetch_all("SELECT id FROM contact_messages")) == 1


class TestContactMail:
    async def invoke(self, runtime, mailer, body=CONTACT):
        return await runtime.functions.invoke(
            "send-contact-email", body, database=runtime.database, mailer=mailer
        )

    async def test_notifies_notification_address(self, runtime):
        await add_site_settings(runtime.database, notification_email="inbox@example.com")
        mailer = RecordingMailer()
        envelope = await self.invoke(runtime, mailer)

        (mail,) = mailer.sent
        assert mail.to == ("inbox@example.com",)
        assert mail.reply_to == "jane@example.com"
        assert mail.subject == "Contact form: Commission"
        assert "harbour series" in mail.text
        assert envelope.data["messageId"] == "<1@folio.test>"
        assert envelope.data["responses"] == [
            {"type": "notification", "success": True, "messageId": "<1@folio.test>"}
        ]

    async def test_falls_back_to_contact_email(self, runtime):
        await add_site_settings(runtime.database)
        mailer = RecordingMailer()
        await self.invoke(runtime, mailer)
        assert mailer.sent[0].to == ("studio@example.com",)

    async def test_auto_reply(self, runtime):
        await add_site_settings(
            runtime.database,
            auto_reply_enabled=True,
            auto_reply_subject="Thanks!",
            auto_reply_message="We will be in touch.",
        )
        mailer = RecordingMailer()
        envelope = await self.invoke(runtime, mailer)

        notification, reply = mailer.sent
        assert reply.to == ("jane@example.com",)
        assert reply.subject == "Thanks!"
        assert reply.text == "We will be in touch."
        assert reply.reply_to == "studio@example.com"
        assert [r["type"] for r in envelope.data["responses"]] == ["notification", "auto_reply"]

    async def test_delivery_failure_is_reported_and_message_kept(self, runtime):
        await add_site_settings(runtime.database, auto_reply_enabled=True)
        mailer = RecordingMailer(fail_for="studio@example.com")
        envelope = await self.invoke(runtime, mailer)

        assert envelope.data["success"] is True
        assert envelope.data["messageId"] is None
        failed, reply = envelope.data["responses"]
        assert failed == {"type": "notification", "success": False, "error": "550 mailbox unavailable"}
        assert reply["success"] is True
        assert mailer.sent[0].subject == "Thank you for your message"
        assert len(await runtime.database.fetch_all("SELECT id FROM contact_messages")) == 1

    async def test_no_settings_row_sends_nothing(self, runtime):
        mailer = RecordingMailer()
        envelope = await self.invoke(runtime, mailer)
        assert mailer.sent == []
        assert envelope.data["success"] is True

    async def test_disabled_form_sends_nothing(self, runtime):
        await add_site_settings(runtime.database, form_enabled=False)
        mailer = RecordingMailer()
        envelope = await self.invoke(runtime, mailer)
        assert envelope.error.code == "FORBIDDEN"
        assert mailer.sent == []


class TestRegistry:
    async def test_unknown_function(self, runtime):
        envelope = await runtime.invoke_function("does-not-exist", {})
        assert envelope.error.code == "NOT_FOUND"
        assert envelope.error.message == "Function not found: does-not-exist"

    async def test_body_must_be_object(self, runtime):
        envelope = await runtime.invoke_function("send-contact-email", ["not", "an", "object"])
        assert envelope.error.code == "INVALID_ARGUMENT"

    async def test_requires_auth(self, database, editor):
        registry = FunctionRegistry()

        @registry.register("whoami", requires_auth=True)
        async def whoami(ctx, body):
            """Return the caller's email."""
            return {"email": ctx.principal.email}

        anonymous = await registry.invoke("whoami", None, database=database)
        assert anonymous.error.code == "UNAUTHORIZED"
        signed_in = await registry.invoke("whoami", None, database=database, principal=editor.principal)
        assert signed_in.data == {"email": editor.email}
        assert registry.get("whoami").description == "Return the caller's email."

    async def test_handler_errors_become_envelopes(self, database):
        registry = FunctionRegistry()

        @registry.register("missing")
        async def missing(ctx, body):
            raise NotFoundError("Album not found")

        envelope = await registry.invoke("missing", {}, database=database)
        assert envelope.error.code == "NOT_FOUND"
        assert envelope.error.message == "Album not found"

    def test_duplicate_registration(self):
        registry = FunctionRegistry()

        @registry.register("once")
        async def once(ctx, body):
            return None

        with pytest.raises(ValueError, match="already registered"):
            registry.register("once")(once)
        assert registry.names() == ["once"]
        assert registry.copy().names() == ["once"]
