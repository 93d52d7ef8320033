from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

APP_LOGGER = "timetable_ops"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(*, environment: str, log_file: str | None = None) -> logging.Logger:
    """Attach handlers to the ``timetable_ops`` logger tree.

    Production logs at INFO, anything else at DEBUG. ``log_file`` adds a
    rotating file for hosts without a log collector. Repeated calls are no-ops.
    """
    app_logger = logging.getLogger(APP_LOGGER)
    if app_logger.handlers:
        return app_logger

    level = logging.INFO if (environment or "").strip().lower() == "production" else logging.DEBUG
    formatter = logging.Formatter(LOG_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        app_logger.addHandler(handler)
    app_logger.setLevel(level)

    # Statement echo drowns out per-entry operation logs.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    return app_logger
