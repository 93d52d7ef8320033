import logging
from logging.handlers import RotatingFileHandler

import pytest

from timetable_ops.core.logging import APP_LOGGER, setup_logging


@pytest.fixture()
def clean_app_logger():
    app_logger = logging.getLogger(APP_LOGGER)
    saved_handlers, saved_level = list(app_logger.handlers), app_logger.level
    app_logger.handlers.clear()
    yield app_logger
    for handler in app_logger.handlers:
        handler.close()
    app_logger.handlers[:] = saved_handlers
    app_logger.setLevel(saved_level)


def test_production_logs_to_console_and_rotating_file(clean_app_logger, tmp_path):
    log_file = tmp_path / "logs" / "bulk.log"

    setup_logging(environment=" Production ", log_file=str(log_file))
    setup_logging(environment="production", log_file=str(log_file))

    assert clean_app_logger.level == logging.INFO
    assert len(clean_app_logger.handlers) == 2
    assert any(isinstance(handler, RotatingFileHandler) for handler in clean_app_logger.handlers)
    assert log_file.parent.is_dir()


def test_development_logs_debug_to_console_only(clean_app_logger):
    setup_logging(environment="development")

    assert clean_app_logger.level == logging.DEBUG
    assert [type(handler) for handler in clean_app_logger.handlers] == [logging.StreamHandler]
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
