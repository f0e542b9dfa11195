"""Delivery configuration edited from the admin UI."""
from __future__ import annotations

from . import db


class EmailSettings(db.Model):
    __tablename__ = "email_settings"

    id = db.Column(db.Integer, primary_key=True)
    email_method = db.Column(
        db.String(32),
        nullable=False,
        default="smtp",
        server_default="smtp",
    )
    sender_email = db.Column(db.String(255), nullable=True)
    sender_name = db.Column(db.String(255), nullable=True)
    subject_template = db.Column(db.Text, nullable=True)
    body_template = db.Column(db.Text, nullable=True)

    smtp_host = db.Column(db.String(255), nullable=True)
    smtp_port = db.Column(db.Integer, nullable=True)
    smtp_user = db.Column(db.String(255), nullable=True)
    smtp_password = db.Column(db.String(255), nullable=True)

    mailgun_api_key = db.Column(db.String(255), nullable=True)
    mailgun_domain = db.Column(db.String(255), nullable=True)
    is_eu_region = db.Column(
        db.Boolean,
        nullable=False,
        default=False,
        server_default=db.text("false"),
    )

    @classmethod
    def current(cls) -> "EmailSettings | None":
        return cls.query.order_by(cls.id).first()

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<EmailSettings id={self.id} method={self.email_method!r}>"


class EmailRecipient(db.Model):
    __tablename__ = "email_recipients"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True)

    @classmethod
    def all_addresses(cls) -> list[str]:
        rows = cls.query.order_by(cls.id).all()
        return [row.email.strip() for row in rows if row.email and row.email.strip()]


__all__ = ["EmailSettings", "EmailRecipient"]
