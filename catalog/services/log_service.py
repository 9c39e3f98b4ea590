import enum
import html
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catalog.config import get_settings
from catalog.context import RequestContext
from catalog.exceptions import PersistenceError
from catalog.models.log import Log

settings = get_settings()
logger = logging.getLogger(__name__)


class LogLevel(enum.IntEnum):
    """Audit log severity, lower is more severe."""
    CRITICAL = 1
    WARNING = 2
    NOTICE = 3
    INFO = 4


# NOTICE has no stdlib counterpart
_PYTHON_LEVELS = {
    LogLevel.CRITICAL: logging.CRITICAL,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.NOTICE: logging.INFO,
    LogLevel.INFO: logging.INFO,
}


class LogService:
    """
    Audit log writer.

    Every message is mirrored to the process logger. It is also stored as
    a ``Log`` row unless database logging is disabled, the level is above
    the configured ``LOG_LEVEL``, or the message reports a refused
    connection (storing it would most likely fail the same way).
    """

    def __init__(self, db: Session, context: Optional[RequestContext] = None):
        self.db = db
        self.context = context or RequestContext()

    def save_log(self, name: str, message: str, level: LogLevel = LogLevel.INFO) -> None:
        """
        Record an audit log entry.

        Args:
            name: Log category, e.g. 'product-manager'
            message: Human-readable message
            level: Severity

        Raises:
            PersistenceError: If the log row cannot be stored
        """
        logger.log(_PYTHON_LEVELS[LogLevel(level)], f"[{name}] {message}")

        if not settings.DATABASE_LOGGING:
            return

        if "Connection refused" in message:
            return

        if level > settings.LOG_LEVEL:
            return

        log = Log(
            name=html.escape(name),
            message=html.escape(message),
            time=datetime.now(timezone.utc),
            user_agent=self.context.user_agent,
            request_uri=self.context.request_uri,
            request_method=self.context.request_method,
            ip_address=self.context.ip_address,
            level=int(level),
            user_id=self.context.user_id,
            status="UNREAD",
        )

        try:
            self.db.add(log)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("Error saving log to database", {"error": str(e)}) from e
