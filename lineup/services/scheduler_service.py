from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from lineup.services.dispatcher import EmailDispatcher
from lineup.utils.logger import get_logger

logger = get_logger(__name__)

JOB_ID = "lineup_emails"
STARTUP_JOB_ID = "lineup_emails_startup"


def next_tick_boundary(now: datetime, interval_minutes: int = 30) -> datetime:
    """First wall-clock instant after ``now`` on a multiple of the interval.

    With the default interval that is the next ``:00`` or ``:30``.
    """

    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be > 0")

    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    elapsed = now - midnight
    step = timedelta(minutes=interval_minutes)
    ticks = elapsed // step + 1
    return midnight + ticks * step


class SchedulerService:
    def __init__(self, app=None, dispatcher: EmailDispatcher | None = None):
        self.scheduler = None
        self.app = None
        self.dispatcher = dispatcher
        if app:
            self.init_app(app)

    def init_app(self, app):
        """Bind the service to a Flask app; ``start()`` schedules the jobs."""
        self.app = app
        if self.dispatcher is None:
            self.dispatcher = EmailDispatcher(app)
        self.interval_minutes = int(app.config.get("DISPATCH_INTERVAL_MINUTES", 30))
        self.scheduler = BackgroundScheduler(timezone=self.dispatcher.tz)

    @property
    def running(self) -> bool:
        return bool(self.scheduler and self.scheduler.running)

    def start(self) -> None:
        if self.scheduler is None:
            raise RuntimeError("SchedulerService.init_app must be called before start()")
        if self.running:
            return

        now = self.dispatcher.local_now()
        first_tick = next_tick_boundary(now, self.interval_minutes)

        # No trigger: runs once, immediately
        self.scheduler.add_job(
            func=self._run_cycle_job,
            id=STARTUP_JOB_ID,
            name="Send lineup emails on startup",
            replace_existing=True,
        )
        self.scheduler.add_job(
            func=self._run_cycle_job,
            trigger=IntervalTrigger(
                minutes=self.interval_minutes,
                start_date=first_tick,
                timezone=self.dispatcher.tz,
            ),
            id=JOB_ID,
            name="Send lineup emails for shows airing now",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )

        self.scheduler.start()
        logger.info(
            "Scheduler started - checking lineup emails every %s minutes, next tick at %s",
            self.interval_minutes,
            first_tick.strftime("%H:%M"),
        )

    def stop(self) -> None:
        """Cancel pending ticks; a cycle already running is left to finish."""
        if not self.running:
            return
        try:
            self.scheduler.shutdown(wait=False)
        except Exception:  # pragma: no cover
            logger.exception("Scheduler shutdown encountered an error")
        else:
            logger.info("Scheduler stopped")

    def _run_cycle_job(self):
        started_at = datetime.now(timezone.utc)
        logger.info(
            "[WORKER] scheduler.job.start",
            extra={"job_id": JOB_ID, "started_at": started_at.isoformat()},
        )
        try:
            summary = self.dispatcher.run_cycle()
        except Exception:  # pragma: no cover - run_cycle already guards
            logger.exception("[WORKER] scheduler.job.error", extra={"job_id": JOB_ID})
        else:
            finished_at = datetime.now(timezone.utc)
            duration = (finished_at - started_at).total_seconds()
            logger.info(
                "[WORKER] scheduler.job.stop",
                extra={
                    "job_id": JOB_ID,
                    "finished_at": finished_at.isoformat(),
                    "duration_s": duration,
                    "candidates": summary.candidates,
                    "skipped": summary.skipped,
                },
            )
