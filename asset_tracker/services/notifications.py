"""Best-effort borrower notifications.

Lifecycle operations hand messages to a ``Notifier`` only after their
transaction has committed. Delivery problems are logged and swallowed here so
they can never turn a successful borrow or return into an error.
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from fastapi import BackgroundTasks

from ..core.config import settings
from ..core.errors import DependencyFailure
from ..models.borrow import BorrowRecord
from .email_templates import render

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    html: str
    text: str
    template: str = ""


class Notifier(Protocol):
    def send(self, message: OutgoingEmail) -> None: ...


def _build_mime(message: OutgoingEmail) -> MIMEMultipart:
    mime = MIMEMultipart("alternative")
    mime["Subject"] = message.subject
    mime["From"] = settings.EMAIL_FROM
    mime["To"] = message.to
    mime.attach(MIMEText(message.text, "plain", "utf-8"))
    mime.attach(MIMEText(message.html, "html", "utf-8"))
    return mime


def _smtp_send(message: OutgoingEmail) -> None:
    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT) as server:
            if settings.SMTP_STARTTLS:
                server.starttls()
            if settings.SMTP_USER:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.send_message(_build_mime(message))
    except (smtplib.SMTPException, OSError) as exc:
        raise DependencyFailure(f"SMTP delivery failed: {exc}", code="email_failed") from exc


def deliver(message: OutgoingEmail) -> bool:
    """Send one email. Returns whether it actually went out."""

    if not settings.SEND_EMAILS:
        logger.debug("email.disabled", extra={"extra_data": {"template": message.template}})
        return False
    try:
        _smtp_send(message)
    except DependencyFailure as exc:
        logger.warning(
            "email.failed",
            extra={"extra_data": {"template": message.template, "code": exc.code, "error": exc.message}},
        )
        return False
    logger.info("email.sent", extra={"extra_data": {"template": message.template}})
    return True


class BackgroundNotifier:
    """Defers delivery until FastAPI has written the response."""

    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self.background_tasks = background_tasks

    def send(self, message: OutgoingEmail) -> None:
        self.background_tasks.add_task(deliver, message)


def notify(notifier: Notifier | None, message: OutgoingEmail | None) -> None:
    if notifier is None or message is None:
        return
    try:
        notifier.send(message)
    except Exception:
        # Never propagates: the operation has already committed.
        logger.warning(
            "email.dispatch_failed",
            exc_info=True,
            extra={"extra_data": {"template": message.template}},
        )


def _borrow_context(record: BorrowRecord) -> dict[str, str]:
    item = record.inventory
    return {
        "borrower_name": record.borrower_name,
        "equipment_name": item.equipment_name if item is not None else "N/A",
        "pc_name": (item.pc_name if item is not None else None) or "N/A",
        "borrow_date": record.borrow_date,
        "expected_return_date": record.expected_return_date,
        "return_date": record.actual_return_date or "",
    }


def borrow_email(template: str, record: BorrowRecord) -> OutgoingEmail | None:
    """Render ``template`` for the borrower, or ``None`` when they have no email."""

    if not record.borrower_email:
        return None
    subject, html, text = render(template, _borrow_context(record))
    return OutgoingEmail(to=record.borrower_email, subject=subject, html=html, text=text, template=template)
