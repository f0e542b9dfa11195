"""Build and deliver the lineup email of a single show.

``send_lineup_email`` never raises for an expected failure: validation,
precondition and delivery problems come back as a failed ``SendResult`` and
are written to ``show_email_logs`` so the admin UI can show them.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from config import DEFAULT_LINEUP_BASE_URL
from lineup.models import db
from lineup.models.email_settings import EmailRecipient, EmailSettings
from lineup.models.show import Show, ShowItem
from lineup.services.email_channels import (
    EmailConfigurationError,
    EmailDeliveryError,
    get_channel,
    validate_email_settings,
)
from lineup.services.email_content import prepare_email_content
from lineup.services.email_log_service import record_email_outcome
from lineup.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SendResult:
    success: bool
    error: str | None = None
    message_id: str | None = None
    method: str | None = None

    @classmethod
    def failed(cls, error: str, method: str | None = None) -> "SendResult":
        return cls(success=False, error=error, method=method)


def _load_items(show_id: str) -> list[ShowItem]:
    stmt = (
        select(ShowItem)
        .options(selectinload(ShowItem.interviewees))
        .where(ShowItem.show_id == show_id)
        .order_by(ShowItem.position)
    )
    return list(db.session.execute(stmt).scalars())


def _lineup_base_url() -> str:
    return current_app.config.get("LINEUP_BASE_URL") or DEFAULT_LINEUP_BASE_URL


def _deliver(show: Show, *, test_email: str | None) -> SendResult:
    items = _load_items(show.id)
    if not items:
        return SendResult.failed("Show has no items")

    settings = EmailSettings.current()
    if settings is None:
        return SendResult.failed("Email settings not found")

    missing = validate_email_settings(settings)
    if missing:
        return SendResult.failed(f"Missing required email settings: {', '.join(missing)}")

    try:
        channel = get_channel(settings.email_method)
    except EmailConfigurationError as exc:
        return SendResult.failed(str(exc))

    recipients = [test_email] if test_email else EmailRecipient.all_addresses()
    if not recipients:
        return SendResult.failed("No recipients found", method=channel.method.value)

    content = prepare_email_content(
        show,
        items,
        settings.subject_template,
        settings.body_template,
        base_url=_lineup_base_url(),
    )

    try:
        delivery = channel.send(settings, recipients, content.subject, content.html)
    except (EmailDeliveryError, EmailConfigurationError) as exc:
        return SendResult.failed(str(exc), method=channel.method.value)

    return SendResult(success=True, message_id=delivery.message_id, method=delivery.method)


def send_lineup_email(show_id: str, *, test_email: str | None = None) -> SendResult:
    """Send the lineup email of ``show_id`` and record the outcome.

    With ``test_email`` the message goes to that single address and no
    outcome is recorded.
    """

    logger.info("[DISPATCH] Processing show %s", show_id)

    show = db.session.get(Show, show_id)
    if show is None:
        logger.warning("[DISPATCH] Show not found: %s", show_id)
        return SendResult.failed("Show not found")

    try:
        result = _deliver(show, test_email=test_email)
    except Exception as exc:
        logger.exception("[DISPATCH] Unexpected error building lineup email for show %s", show_id)
        db.session.rollback()
        result = SendResult.failed(str(exc) or exc.__class__.__name__)

    if result.success:
        logger.info(
            "[DISPATCH] Email sent for show %s (%s)",
            show.name,
            show_id,
            extra={"message_id": result.message_id, "method": result.method},
        )
    else:
        logger.error("[DISPATCH] Email failed for show %s (%s): %s", show.name, show_id, result.error)

    if not test_email:
        record_email_outcome(show_id, result.success, result.error)

    return result


__all__ = ["SendResult", "send_lineup_email"]
