import logging
import logging.handlers

import pytest

from taskguard.infrastructure.monitoring import logger_setup
from taskguard.infrastructure.monitoring.logger_setup import resolve_log_level, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    level = root.level
    yield
    for handler in logger_setup._installed_handlers:
        root.removeHandler(handler)
        handler.close()
    logger_setup._installed_handlers.clear()
    root.setLevel(level)


def test_resolve_log_level():
    assert resolve_log_level("debug") == logging.DEBUG
    assert resolve_log_level(logging.ERROR) == logging.ERROR
    assert resolve_log_level(None) == logging.WARNING
    assert resolve_log_level("chatty", default=logging.INFO) == logging.INFO


def test_console_only_by_default():
    handlers = setup_logging(log_level=logging.INFO)

    assert len(handlers) == 1
    assert isinstance(handlers[0], logging.StreamHandler)
    assert logging.getLogger().level == logging.INFO


def test_log_file_rotates_and_creates_directory(tmp_path):
    log_file = tmp_path / "logs" / "taskguard.log"

    handlers = setup_logging(log_level=logging.INFO, log_file=str(log_file), max_bytes=200, backup_count=2)
    file_handler = handlers[-1]
    assert isinstance(file_handler, logging.handlers.RotatingFileHandler)
    assert file_handler.maxBytes == 200
    assert file_handler.backupCount == 2

    for n in range(20):
        logging.getLogger("taskguard.test").info(f"line {n} " + "x" * 40)
    file_handler.flush()

    assert log_file.exists()
    assert (tmp_path / "logs" / "taskguard.log.1").exists()
    assert not (tmp_path / "logs" / "taskguard.log.3").exists()


def test_second_call_replaces_only_its_own_handlers():
    foreign = logging.NullHandler()
    root = logging.getLogger()
    root.addHandler(foreign)
    try:
        first = setup_logging()
        second = setup_logging()

        assert not any(handler in root.handlers for handler in first)
        assert all(handler in root.handlers for handler in second)
        assert foreign in root.handlers
    finally:
        root.removeHandler(foreign)


def test_unusable_log_file_keeps_console_logging(tmp_path, caplog):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")

    with caplog.at_level(logging.ERROR, logger="taskguard.infrastructure.monitoring.logger_setup"):
        handlers = setup_logging(log_file=str(blocker / "taskguard.log"))

    assert len(handlers) == 1
    assert "Failed to set up file logging" in caplog.text
