import logging
from logging.handlers import RotatingFileHandler

import pytest
from rich.logging import RichHandler

from manifestor import log_utils

pytestmark = pytest.mark.unit


@pytest.fixture
def restore_logger():
    level = log_utils.logger.level
    handlers = list(log_utils.logger.handlers)
    yield log_utils.logger
    for handler in log_utils.logger.handlers[:]:
        if handler not in handlers:
            log_utils.logger.removeHandler(handler)
            handler.close()
    log_utils.set_log_level(logging.getLevelName(level))


def test_console_handler_is_rich():
    assert any(isinstance(h, RichHandler) for h in log_utils.logger.handlers)
    assert log_utils.logger.propagate is False


def test_set_log_level_updates_handlers(restore_logger):
    log_utils.set_log_level("debug")

    assert restore_logger.level == logging.DEBUG
    assert all(h.level == logging.DEBUG for h in restore_logger.handlers)


def test_invalid_level_keeps_current(restore_logger):
    before = restore_logger.level

    log_utils.set_log_level("LOUD")

    assert restore_logger.level == before


def test_file_logging_writes_log_file(restore_logger, tmp_path):
    log_utils.add_file_logging(tmp_path / "logs", "INFO")
    restore_logger.info("hello file")
    for handler in restore_logger.handlers:
        handler.flush()

    assert "hello file" in (tmp_path / "logs" / "manifestor.log").read_text()


def test_file_logging_replaces_previous_handler(restore_logger, tmp_path):
    log_utils.add_file_logging(tmp_path / "a")
    log_utils.add_file_logging(tmp_path / "b", "bogus")

    file_handlers = [
        h for h in restore_logger.handlers if isinstance(h, RotatingFileHandler)
    ]
    assert len(file_handlers) == 1
    assert file_handlers[0].level == logging.INFO
