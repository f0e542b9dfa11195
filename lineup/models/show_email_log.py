"""Outcome of the lineup email for a show."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from . import db


class ShowEmailLog(db.Model):
    __tablename__ = "show_email_logs"

    id = db.Column(db.Integer, primary_key=True)
    show_id = db.Column(
        db.String(36),
        db.ForeignKey("shows.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    success = db.Column(db.Boolean, nullable=False, default=False, server_default=db.text("false"))
    error_message = db.Column(db.Text, nullable=True)
    sent_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=db.func.now(),
        index=True,
    )

    def serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "show_id": self.show_id,
            "success": bool(self.success),
            "error_message": self.error_message,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
        }

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return (
            f"<ShowEmailLog show_id={self.show_id!r} success={self.success} "
            f"sent_at={self.sent_at}>"
        )


__all__ = ["ShowEmailLog"]
