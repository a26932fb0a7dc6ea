"""Named server-side functions.

A :class:`FunctionRegistry` maps function names to async handlers.  Each
handler receives a :class:`FunctionContext` (database, caller, mailer) plus
the JSON body and resolves to an :class:`~folio.core.envelope.Envelope`.

Functions are invoked in-process by the local adapter and over HTTP via
``POST /functions/{name}``.

Tags:
    folio-core, functions, registry, contact-form
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from folio.auth.models import Principal
from folio.core.database import Database, driver_message
from folio.core.envelope import Envelope
from folio.core.errors import (
    ExecutionError,
    FolioError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    UnauthorizedError,
)
from folio.core.logging import get_logger
from folio.mail import MailError, Mailer, MailMessage

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class FunctionContext:
    database: Database
    principal: Principal | None = None
    mailer: Mailer | None = None


FunctionHandler = Callable[[FunctionContext, dict[str, Any]], Awaitable[Any]]


@dataclass(slots=True)
class RegisteredFunction:
    name: str
    handler: FunctionHandler
    requires_auth: bool = False
    description: str = ""


@dataclass
class FunctionRegistry:
    """Name -> handler table. Handlers return data or raise :class:`FolioError`."""

    _functions: dict[str, RegisteredFunction] = field(default_factory=dict)

    def register(
        self, name: str, *, requires_auth: bool = False, description: str = ""
    ) -> Callable[[FunctionHandler], FunctionHandler]:
        def decorator(handler: FunctionHandler) -> FunctionHandler:
            if name in self._functions:
                raise ValueError(f"Function '{name}' is already registered")
            doc_lines = (handler.__doc__ or "").strip().splitlines()
            self._functions[name] = RegisteredFunction(
                name=name,
                handler=handler,
                requires_auth=requires_auth,
                description=description or (doc_lines[0] if doc_lines else ""),
            )
            logger.debug("function.registered", name=name)
            return handler

        return decorator

    def names(self) -> list[str]:
        return sorted(self._functions)

    def get(self, name: str) -> RegisteredFunction | None:
        return self._functions.get(name)

    def copy(self) -> FunctionRegistry:
        return FunctionRegistry(dict(self._functions))

    async def invoke(
        self,
        name: str,
        body: dict[str, Any] | None,
        *,
        database: Database,
        principal: Principal | None = None,
        mailer: Mailer | None = None,
    ) -> Envelope:
        function = self._functions.get(name)
        if function is None:
            return Envelope.failure(NotFoundError(f"Function not found: {name}"))
        if function.requires_auth and principal is None:
            return Envelope.failure(UnauthorizedError("Access token required"))
        if body is not None and not isinstance(body, dict):
            return Envelope.failure(InvalidArgumentError("Function body must be a JSON object"))

        context = FunctionContext(database=database, principal=principal, mailer=mailer)
        try:
            data = await function.handler(context, body or {})
        except FolioError as exc:
            logger.info("function.failed", name=name, code=exc.code.value, reason=exc.message)
            return Envelope.failure(exc)
        except SQLAlchemyError as exc:
            logger.error("function.store_failed", name=name, error=driver_message(exc))
            return Envelope.failure(ExecutionError(driver_message(exc), cause=exc))
        logger.info("function.invoked", name=name)
        return Envelope.success(data)


builtin_functions = FunctionRegistry()

CONTACT_FIELD_LIMITS = {"name": 255, "email": 255, "phone": 64, "subject": 255, "message": 10_000}


def _text_field(body: dict[str, Any], key: str, *, required: bool) -> str | None:
    value = body.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise InvalidArgumentError(f"{key} is required", field=key)
        return None
    if not isinstance(value, str):
        raise InvalidArgumentError(f"{key} must be a string", field=key)
    value = value.strip()
    if len(value) > CONTACT_FIELD_LIMITS[key]:
        raise InvalidArgumentError(f"{key} is too long", field=key)
    return value


_SITE_SETTINGS_SQL = (
    "SELECT contact_email, notification_email, form_enabled, "
    "auto_reply_enabled, auto_reply_subject, auto_reply_message "
    "FROM site_settings ORDER BY created_at LIMIT 1"
)

DEFAULT_AUTO_REPLY_SUBJECT = "Thank you for your message"


def _notification(message: dict[str, Any], recipient: str) -> MailMessage:
    lines = [f"Name: {message['name']}", f"Email: {message['email']}"]
    if message["phone"]:
        lines.append(f"Phone: {message['phone']}")
    lines += ["", message["message"]]
    return MailMessage(
        to=(recipient,),
        subject=f"Contact form: {message['subject'] or message['name']}",
        text="\n".join(lines),
        reply_to=message["email"],
    )


def _auto_reply(message: dict[str, Any], site: dict[str, Any]) -> MailMessage:
    return MailMessage(
        to=(message["email"],),
        subject=site["auto_reply_subject"] or DEFAULT_AUTO_REPLY_SUBJECT,
        text=site["auto_reply_message"] or "",
        reply_to=site["notification_email"] or site["contact_email"],
    )


async def _deliver(mailer: Mailer, kind: str, mail: MailMessage, responses: list[dict[str, Any]]) -> str | None:
    try:
        message_id = await mailer.send(mail)
    except MailError as exc:
        responses.append({"type": kind, "success": False, "error": exc.message})
        return None
    responses.append({"type": kind, "success": True, "messageId": message_id})
    return message_id


@builtin_functions.register("send-contact-email")
async def send_contact_email(ctx: FunctionContext, body: dict[str, Any]) -> dict[str, Any]:
    """Store a contact-form message and notify the site owner.

    Rejected with ``FORBIDDEN`` when ``site_settings.form_enabled`` is off;
    a site without a settings row accepts messages.  With a mailer, the
    owner is notified at ``notification_email`` (or ``contact_email``) and
    the sender gets the auto-reply when it is enabled.  Delivery failures
    are reported per mail in ``responses``; the message stays stored.
    """
    message = {
        "name": _text_field(body, "name", required=True),
        "email": _text_field(body, "email", required=True),
        "phone": _text_field(body, "phone", required=False),
        "subject": _text_field(body, "subject", required=False),
        "message": _text_field(body, "message", required=True),
    }
    if "@" not in (message["email"] or ""):
        raise InvalidArgumentError("A valid email address is required", field="email")

    site = await ctx.database.fetch_one(_SITE_SETTINGS_SQL) or {}
    if site and not site["form_enabled"]:
        raise ForbiddenError("Contact form is currently disabled")

    stored = await ctx.database.fetch_one(
        "INSERT INTO contact_messages (name, email, phone, subject, message) "
        "VALUES (:name, :email, :phone, :subject, :message) RETURNING id",
        message,
    )
    logger.info("contact_message.received", id=str(stored["id"]), subject=message["subject"])

    responses: list[dict[str, Any]] = []
    message_id = None
    if ctx.mailer is not None and site:
        recipient = site["notification_email"] or site["contact_email"]
        if recipient:
            message_id = await _deliver(ctx.mailer, "notification", _notification(message, recipient), responses)
        if site["auto_reply_enabled"]:
            await _deliver(ctx.mailer, "auto_reply", _auto_reply(message, site), responses)

    return {
        "success": True,
        "message": "Contact message received successfully",
        "messageId": message_id,
        "responses": responses,
    }


__all__ = [
    "FunctionContext",
    "FunctionHandler",
    "FunctionRegistry",
    "RegisteredFunction",
    "builtin_functions",
    "send_contact_email",
]
