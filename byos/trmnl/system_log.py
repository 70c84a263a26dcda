"""Logging handler that keeps server log records in the database."""

import logging

from .database import DeviceDatabase

_formatter = logging.Formatter()


class SystemLogHandler(logging.Handler):
    """Writes log records to the system_logs table."""

    def __init__(self, db: DeviceDatabase, level: int = logging.WARNING, source: str = "api"):
        super().__init__(level)
        self.db = db
        self.source = source

    def emit(self, record: logging.LogRecord):
        try:
            self.db.insert_system_log(
                level=record.levelname.lower(),
                message=record.getMessage(),
                source=self.source,
                metadata={"logger": record.name, "module": record.module, "line": record.lineno},
                trace=_formatter.formatException(record.exc_info) if record.exc_info else None,
            )
        except Exception:
            self.handleError(record)
