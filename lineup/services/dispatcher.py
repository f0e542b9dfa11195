"""Dispatch cycle: find the shows airing now and send their lineup email.

A cycle is guarded twice. Inside the process a non-blocking lock drops a
cycle that starts while the previous one is still running. Across processes
each show is sent under its own database lock, and the outcome table is
checked again once the lock is held.

Known limitation: with the default 30 minute tick and a 5 minute window a
show starting away from ``:00/:05/:30/:35`` (e.g. 14:15) never falls inside
the window and is not emailed automatically.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from flask import Flask

from lineup.models import db
from lineup.services.email_log_service import (
    has_recent_successful_email,
    has_successful_email,
)
from lineup.services.lineup_email_service import SendResult, send_lineup_email
from lineup.services.show_lock import show_lock
from lineup.services.show_scanner import find_due_shows
from lineup.utils.logger import get_logger

logger = get_logger(__name__)


class DispatchStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    LOCKED = "locked"
    ALREADY_SENT = "already_sent"
    RECENTLY_SENT = "recently_sent"
    NOT_DUE = "not_due"
    ERROR = "error"


@dataclass
class CycleSummary:
    started_at: datetime
    skipped: bool = False
    candidates: int = 0
    statuses: dict[str, DispatchStatus] = field(default_factory=dict)

    def count(self, status: DispatchStatus) -> int:
        return sum(1 for value in self.statuses.values() if value is status)


def minute_of_day(value: time | datetime) -> int:
    return value.hour * 60 + value.minute


class EmailDispatcher:
    def __init__(
        self,
        app: Flask,
        *,
        window_minutes: int | None = None,
        duplicate_guard: timedelta | None = None,
        lock_ttl: timedelta | None = None,
        timezone_name: str | None = None,
    ):
        self.app = app
        config = app.config
        self.window_minutes = (
            window_minutes if window_minutes is not None else int(config.get("DISPATCH_WINDOW_MINUTES", 5))
        )
        self.duplicate_guard = duplicate_guard or timedelta(
            minutes=int(config.get("DUPLICATE_GUARD_MINUTES", 10))
        )
        self.lock_ttl = lock_ttl or timedelta(seconds=int(config.get("DISPATCH_LOCK_TTL_SECONDS", 900)))
        tz_name = timezone_name if timezone_name is not None else config.get("DISPATCH_TIMEZONE", "")
        self.tz = ZoneInfo(tz_name) if tz_name else None
        self._running = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running.locked()

    def local_now(self) -> datetime:
        if self.tz is None:
            return datetime.now()
        return datetime.now(self.tz)

    def run_cycle(self, now: datetime | None = None) -> CycleSummary:
        """Run one scan-and-send pass. Safe to call from the scheduler thread."""

        now = now or self.local_now()
        if not self._running.acquire(blocking=False):
            logger.warning("[DISPATCH] Previous email check still running - skipping this run")
            return CycleSummary(started_at=now, skipped=True)

        try:
            with self.app.app_context():
                return self._run_cycle(now)
        except Exception:
            logger.exception("[DISPATCH] Email check failed")
            return CycleSummary(started_at=now)
        finally:
            self._running.release()

    def _run_cycle(self, now: datetime) -> CycleSummary:
        summary = CycleSummary(started_at=now)
        current_minute = minute_of_day(now)
        logger.info(
            "[DISPATCH] Checking for shows that need emails",
            extra={"date": now.date().isoformat(), "time": now.strftime("%H:%M")},
        )

        # Plain values: a lock conflict rolls the session back and expires rows
        candidates = [(show.id, show.name, show.time) for show in find_due_shows(now.date())]

        summary.candidates = len(candidates)
        logger.info("[DISPATCH] Found %s shows for %s", len(candidates), now.date().isoformat())

        for show_id, show_name, show_time in candidates:
            try:
                time_diff = abs(current_minute - minute_of_day(show_time))
                if time_diff > self.window_minutes:
                    logger.info(
                        "[DISPATCH] Show %s at %s is not ready for email (time diff: %s minutes)",
                        show_name,
                        show_time.strftime("%H:%M"),
                        time_diff,
                    )
                    summary.statuses[show_id] = DispatchStatus.NOT_DUE
                    continue

                summary.statuses[show_id] = self.dispatch_show(show_id, show_name)
            except Exception:
                logger.exception("[DISPATCH] Error processing show %s", show_id)
                db.session.rollback()
                summary.statuses[show_id] = DispatchStatus.ERROR

        logger.info(
            "[DISPATCH] Check completed",
            extra={
                "candidates": summary.candidates,
                "sent": summary.count(DispatchStatus.SENT),
                "failed": summary.count(DispatchStatus.FAILED),
            },
        )
        return summary

    def dispatch_show(self, show_id: str, show_name: str | None = None) -> DispatchStatus:
        """Send one show's email under its lock, after the duplicate checks."""

        label = show_name or show_id
        with show_lock(show_id, ttl=self.lock_ttl) as acquired:
            if not acquired:
                logger.warning(
                    "[DISPATCH] Could not acquire lock for show %s - another process is handling it",
                    label,
                )
                return DispatchStatus.LOCKED

            if has_successful_email(show_id):
                logger.warning("[DISPATCH] Email already sent for show %s - skipping", label)
                return DispatchStatus.ALREADY_SENT

            if has_recent_successful_email(show_id, self.duplicate_guard):
                logger.warning("[DISPATCH] Email sent recently for show %s - skipping", label)
                return DispatchStatus.RECENTLY_SENT

            result: SendResult = send_lineup_email(show_id)
            return DispatchStatus.SENT if result.success else DispatchStatus.FAILED


__all__ = ["CycleSummary", "DispatchStatus", "EmailDispatcher", "minute_of_day"]
