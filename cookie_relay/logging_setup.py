"""
Logging setup for the relay.

- request_id_var: ContextVar carrying the current request id
- RequestIdFilter: injects request_id into every LogRecord
- RedactTokenFilter: shortens token query values in uvicorn access logs
- configure_logging: console + rotating file handlers for the app loggers
"""

from __future__ import annotations

import os
import re
import logging
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from typing import Optional

from .config import Settings

# Context variable to tag logs with the request being served
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

LOG_FORMAT = '%(asctime)s [%(levelname)s] [%(name)s] [%(request_id)s] %(message)s'


class RequestIdFilter(logging.Filter):
    """Logging filter that ensures record.request_id is set.

    Keeps a request_id passed via ``extra``, otherwise reads request_id_var.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "request_id"):
            setattr(record, "request_id", request_id_var.get() or "-")
        return True


class RedactTokenFilter(logging.Filter):
    """Collapse long token values in access-log request paths."""

    _PATTERN = re.compile(r'(?P<prefix>(?:access_token|refresh_token|token)=)(?P<token>[A-Za-z0-9._-]+)')

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        # Uvicorn access logs pass (client_addr, method, path, http_version, status_code)
        args = record.args
        if isinstance(args, tuple) and len(args) >= 3:
            args_list = list(args)
            args_list[2] = self.redact(str(args_list[2]))
            record.args = tuple(args_list)
        return True

    @classmethod
    def redact(cls, message: str) -> str:
        def _shorten(m: re.Match) -> str:
            token = m.group('token')
            if len(token) <= 20:
                return m.group(0)
            return f"{m.group('prefix')}{token[:5]}...{token[-10:]}"
        return cls._PATTERN.sub(_shorten, message)


def configure_logging(settings: Settings) -> None:
    """Attach handlers to the app loggers; safe to call more than once.

    The console handler is rebuilt on every call so it writes to the current
    sys.stderr. The file handler is only opened when none exists for the same
    path; one for a different path is closed and replaced.
    """
    formatter = logging.Formatter(LOG_FORMAT)
    level = getattr(logging, settings.log_level, logging.INFO)

    app_logger = logging.getLogger('cookie_relay')
    app_logger.setLevel(level)

    for handler in [h for h in app_logger.handlers if type(h) is logging.StreamHandler]:
        app_logger.removeHandler(handler)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console.addFilter(RequestIdFilter())
    app_logger.addHandler(console)

    file_handlers = [h for h in app_logger.handlers if isinstance(h, RotatingFileHandler)]
    log_path = os.path.abspath(os.path.join(settings.log_dir, 'cookie_relay.log')) if settings.log_dir else None
    for handler in file_handlers:
        if handler.baseFilename != log_path:
            app_logger.removeHandler(handler)
            handler.close()
    if log_path and not any(h.baseFilename == log_path for h in file_handlers):
        os.makedirs(settings.log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(log_path, maxBytes=5 * 1024 * 1024, backupCount=3)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(RequestIdFilter())
        app_logger.addHandler(file_handler)

    access_logger = logging.getLogger('uvicorn.access')
    if not any(isinstance(f, RedactTokenFilter) for f in access_logger.filters):
        access_logger.addFilter(RedactTokenFilter())

    app_logger.info(
        f"Log setup complete. level={settings.log_level} handlers={[type(h).__name__ for h in app_logger.handlers]}"
    )
