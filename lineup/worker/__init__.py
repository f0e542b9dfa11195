"""Background worker entry-point for the lineup email scheduler."""

from __future__ import annotations

import json
import os
import signal
import sys
import threading
import time
from datetime import datetime, timezone
from pathlib import Path

from lineup import create_app
from lineup.bootstrap import init_db
from lineup.services.scheduler_service import SchedulerService
from lineup.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)

_HEARTBEAT_FILE_NAME = "worker-heartbeat.json"


def _heartbeat_path(app) -> Path:
    data_dir = Path(app.config.get("DATA_DIR", "/var/tmp"))
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / _HEARTBEAT_FILE_NAME


def _write_heartbeat(app, scheduler: SchedulerService) -> None:
    path = _heartbeat_path(app)
    payload = {
        "pid": os.getpid(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "scheduler_running": scheduler.running,
        "cycle_in_progress": scheduler.dispatcher.is_running,
    }
    try:
        path.write_text(json.dumps(payload), encoding="utf-8")
    except OSError:
        logger.warning("[WORKER] Unable to persist heartbeat at %s", path)


def _start_heartbeat_thread(app, scheduler: SchedulerService):
    stop_event = threading.Event()
    interval = int(app.config.get("WORKER_HEARTBEAT_INTERVAL", 30))

    def _beat():
        while not stop_event.is_set():
            _write_heartbeat(app, scheduler)
            stop_event.wait(max(interval, 10))

    thread = threading.Thread(target=_beat, daemon=True, name="worker-heartbeat")
    thread.start()
    return stop_event


def main() -> None:
    configure_logging(os.getenv("LOG_DIR", "logs"), os.getenv("LOG_LEVEL"))
    logger.info("[WORKER] Bootstrapping lineup email worker...")

    app = create_app()
    init_db(app)

    scheduler = SchedulerService(app)
    heartbeat_stop = _start_heartbeat_thread(app, scheduler)

    def _graceful_exit(signum, _frame):
        logger.info("[WORKER] Received %s, stopping scheduler...", signal.Signals(signum).name)
        scheduler.stop()
        heartbeat_stop.set()
        sys.exit(0)

    signal.signal(signal.SIGTERM, _graceful_exit)
    signal.signal(signal.SIGINT, _graceful_exit)

    scheduler.start()
    logger.info("[WORKER] Scheduler ready")

    while True:
        time.sleep(60)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
