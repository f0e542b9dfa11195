import threading
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from lineup.services.dispatcher import CycleSummary
from lineup.services.scheduler_service import (
    JOB_ID,
    SchedulerService,
    next_tick_boundary,
)


@pytest.mark.parametrize(
    ("now", "interval", "expected"),
    [
        (datetime(2026, 10, 19, 10, 7, 30), 30, datetime(2026, 10, 19, 10, 30)),
        (datetime(2026, 10, 19, 10, 30), 30, datetime(2026, 10, 19, 11, 0)),
        (datetime(2026, 10, 19, 10, 59, 59), 30, datetime(2026, 10, 19, 11, 0)),
        (datetime(2026, 10, 19, 23, 45), 30, datetime(2026, 10, 20, 0, 0)),
        (datetime(2026, 10, 19, 10, 7), 15, datetime(2026, 10, 19, 10, 15)),
    ],
)
def test_next_tick_boundary(now, interval, expected):
    assert next_tick_boundary(now, interval) == expected


def test_next_tick_boundary_keeps_timezone():
    tz = ZoneInfo("UTC")
    tick = next_tick_boundary(datetime(2026, 10, 19, 9, 1, tzinfo=tz))

    assert tick == datetime(2026, 10, 19, 9, 30, tzinfo=tz)
    assert tick.tzinfo is tz


def test_next_tick_boundary_rejects_invalid_interval():
    with pytest.raises(ValueError):
        next_tick_boundary(datetime(2026, 10, 19, 10, 0), 0)


class StubDispatcher:
    tz = ZoneInfo("UTC")

    def __init__(self):
        self.ran = threading.Event()
        self.calls = 0
        self.is_running = False

    def local_now(self):
        return datetime.now(self.tz)

    def run_cycle(self, now=None):
        self.calls += 1
        self.ran.set()
        return CycleSummary(started_at=self.local_now())


def test_scheduler_runs_once_at_startup_then_on_half_hour_ticks(app):
    dispatcher = StubDispatcher()
    service = SchedulerService(app, dispatcher=dispatcher)

    service.start()
    try:
        assert service.running is True
        assert dispatcher.ran.wait(timeout=5)

        job = service.scheduler.get_job(JOB_ID)
        assert job is not None
        assert job.trigger.interval == timedelta(minutes=30)
        assert job.max_instances == 1
        assert job.coalesce is True
        assert job.next_run_time.minute in (0, 30)
        assert job.next_run_time.second == 0
        assert job.next_run_time > dispatcher.local_now()

        service.start()
        assert len(service.scheduler.get_jobs()) <= 2
    finally:
        service.stop()

    assert service.running is False
    service.stop()


def test_interval_follows_configuration(app):
    app.config["DISPATCH_INTERVAL_MINUTES"] = 15
    service = SchedulerService(app, dispatcher=StubDispatcher())

    service.start()
    try:
        job = service.scheduler.get_job(JOB_ID)
        assert job.trigger.interval == timedelta(minutes=15)
        assert job.next_run_time.minute % 15 == 0
    finally:
        service.stop()


def test_start_requires_init_app():
    with pytest.raises(RuntimeError):
        SchedulerService().start()
