from __future__ import annotations

from datetime import date, time

import pytest
from sqlalchemy.pool import StaticPool

from lineup import create_app
from lineup.models import (
    EmailRecipient,
    EmailSettings,
    Interviewee,
    Show,
    ShowItem,
    db,
)
from lineup.services import email_channels


@pytest.fixture()
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_ENGINE_OPTIONS": {
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool,
            },
            "LOG_DIR": str(tmp_path / "logs"),
            "DATA_DIR": str(tmp_path),
            "DISPATCH_TIMEZONE": "",
            "LINEUP_BASE_URL": "http://lineup.test",
        }
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


class FakeSMTP:
    """Stand-in for ``smtplib.SMTP`` that records what would be sent."""

    instances: list["FakeSMTP"] = []
    noop_code = 250
    send_error: Exception | None = None

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.login_args = None
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def ehlo(self):
        return 250, b"hello"

    def has_extn(self, name):
        return False

    def starttls(self, context=None):  # pragma: no cover - has_extn is False
        return 220, b"ready"

    def login(self, user, password):
        self.login_args = (user, password)
        return 235, b"ok"

    def noop(self):
        return self.noop_code, b"ok"

    def send_message(self, message, to_addrs=None):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((message, list(to_addrs or [])))
        return {}


@pytest.fixture()
def fake_smtp(monkeypatch):
    monkeypatch.setattr(FakeSMTP, "instances", [])
    monkeypatch.setattr(email_channels.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


@pytest.fixture()
def make_show(app):
    def _make_show(
        show_id: str = "s1",
        *,
        name: str = "Morning Show",
        on: date | None = None,
        at: time | None = time(14, 0),
        items: list[dict] | None = None,
    ) -> Show:
        show = Show(id=show_id, name=name, date=on or date(2026, 10, 19), time=at)
        db.session.add(show)
        if items is None:
            items = [{"name": "Dana Cohen", "title": "Economist"}]
        for position, fields in enumerate(items):
            fields = dict(fields)
            interviewees = fields.pop("interviewees", [])
            item = ShowItem(show_id=show_id, position=position, **fields)
            for person in interviewees:
                item.interviewees.append(Interviewee(**person))
            db.session.add(item)
        db.session.commit()
        return show

    return _make_show


@pytest.fixture()
def make_settings(app):
    def _make_settings(**overrides) -> EmailSettings:
        values = {
            "email_method": "smtp",
            "sender_email": "lineup@radio.test",
            "sender_name": "Radio Lineup",
            "subject_template": "Lineup: {{show_name}} {{show_date}}",
            "body_template": "<p>{{show_name}} at {{show_time}}</p>{{interviewees_list}}{{lineup_link}}",
            "smtp_host": "smtp.radio.test",
            "smtp_port": 587,
            "smtp_user": "mailer@radio.test",
            "smtp_password": "secret",
        }
        values.update(overrides)
        settings = EmailSettings(**values)
        db.session.add(settings)
        db.session.commit()
        return settings

    return _make_settings


@pytest.fixture()
def add_recipients(app):
    def _add_recipients(*emails: str) -> None:
        for email in emails:
            db.session.add(EmailRecipient(email=email))
        db.session.commit()

    return _add_recipients
