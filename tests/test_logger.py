import logging

import pytest

from lineup.utils.logger import configure_logging, get_logger


@pytest.fixture()
def root_logger():
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in saved_handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(saved_level)


def test_reconfiguring_replaces_only_own_handlers(root_logger, tmp_path):
    foreign = logging.NullHandler()
    root_logger.addHandler(foreign)

    configure_logging(str(tmp_path / "first"))
    log_path = configure_logging(str(tmp_path / "second"), "warning")

    owned = [h for h in root_logger.handlers if getattr(h, "_lineup_handler", False)]
    assert len(owned) == 2
    assert foreign in root_logger.handlers
    assert log_path == tmp_path / "second" / "app.log"
    assert root_logger.level == logging.WARNING
    assert logging.getLogger("apscheduler").level == logging.WARNING


def test_messages_reach_the_log_file(root_logger, tmp_path):
    log_path = configure_logging(str(tmp_path))

    get_logger("lineup.test").info("[DISPATCH] hello")
    for handler in root_logger.handlers:
        handler.flush()

    assert "[DISPATCH] hello" in log_path.read_text(encoding="utf-8")
