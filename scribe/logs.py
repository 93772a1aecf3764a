"""Logging setup: console, rotating file, and the system_logs table."""

from __future__ import annotations

import logging
import logging.handlers
import sqlite3
from pathlib import Path

from scribe.config import get_db_path
from scribe.db import get_connection, insert_log


class SystemLogHandler(logging.Handler):
    """Persist records into ``system_logs`` so runs can be audited later.

    Structured context travels in ``extra={"details": {...}}``; the logger
    name becomes the component.
    """

    def __init__(self, db_path: str, level: int = logging.INFO):
        super().__init__(level)
        self.db_path = db_path

    def emit(self, record: logging.LogRecord) -> None:
        details = getattr(record, "details", None)
        if record.exc_info and record.exc_info[1] is not None:
            details = dict(details or {})
            details["error"] = repr(record.exc_info[1])
        try:
            conn = get_connection(self.db_path)
            try:
                insert_log(
                    conn,
                    record.levelname.lower(),
                    record.name,
                    record.getMessage(),
                    details,
                )
            finally:
                conn.close()
        except sqlite3.Error:
            self.handleError(record)


def setup_logging(config: dict, persist: bool = True) -> None:
    """Configure logging with console + rotating file output."""
    root = logging.getLogger()
    root.setLevel(logging.INFO)

    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setFormatter(fmt)
    root.addHandler(console)

    # File handler (rotate at 5MB, keep 3 backups)
    db_path = get_db_path(config)
    log_dir = Path(db_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.handlers.RotatingFileHandler(
        str(log_dir / "scribe.log"), maxBytes=5 * 1024 * 1024, backupCount=3,
    )
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    if persist:
        logging.getLogger("scribe").addHandler(SystemLogHandler(db_path))

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("trafilatura").setLevel(logging.WARNING)
    logging.getLogger("feedparser").setLevel(logging.WARNING)
