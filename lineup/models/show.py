"""Schedule tables owned by the admin application.

The dispatcher only reads these rows; the columns mapped here are the subset
needed to build a lineup email.
"""
from __future__ import annotations

from uuid import uuid4

from . import db


def _uuid() -> str:
    return str(uuid4())


class Show(db.Model):
    __tablename__ = "shows"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(255), nullable=False)
    date = db.Column(db.Date, nullable=True, index=True)
    time = db.Column(db.Time, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    items = db.relationship(
        "ShowItem",
        back_populates="show",
        order_by="ShowItem.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Show id={self.id!r} name={self.name!r} date={self.date} time={self.time}>"


class ShowItem(db.Model):
    __tablename__ = "show_items"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    show_id = db.Column(
        db.String(36),
        db.ForeignKey("shows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(255), nullable=True)
    title = db.Column(db.String(255), nullable=True)
    details = db.Column(db.Text, nullable=True)
    is_break = db.Column(db.Boolean, nullable=False, default=False, server_default=db.text("false"))
    is_note = db.Column(db.Boolean, nullable=False, default=False, server_default=db.text("false"))
    is_divider = db.Column(db.Boolean, nullable=False, default=False, server_default=db.text("false"))

    show = db.relationship("Show", back_populates="items")
    interviewees = db.relationship(
        "Interviewee",
        back_populates="item",
        order_by="Interviewee.id",
        cascade="all, delete-orphan",
    )


class Interviewee(db.Model):
    __tablename__ = "interviewees"

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(
        db.String(36),
        db.ForeignKey("show_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    title = db.Column(db.String(255), nullable=True)

    item = db.relationship("ShowItem", back_populates="interviewees")


__all__ = ["Show", "ShowItem", "Interviewee"]
