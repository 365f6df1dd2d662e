"""
Logging configuration for the Records Center application.
Provides structured logging with different levels and formats.

- Uses QueueHandler to prevent log writes from blocking the event loop
- QueueListener handles file I/O in a separate thread
"""

import atexit
import logging
import logging.handlers
import queue
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from core.middleware.correlation import CorrelationIdFilter


# Global queue listener for cleanup
_queue_listener: Optional[logging.handlers.QueueListener] = None


class LogConfig(BaseModel):
    """Logging configuration settings."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    enable_file_logging: bool = True
    log_dir: str = "logs"
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    enable_console: bool = True


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    grey = "\x1b[38;21m"
    yellow = "\x1b[33;21m"
    red = "\x1b[31;21m"
    bold_red = "\x1b[31;1m"
    blue = "\x1b[34;21m"
    reset = "\x1b[0m"

    COLORS = {
        logging.DEBUG: grey,
        logging.INFO: blue,
        logging.WARNING: yellow,
        logging.ERROR: red,
        logging.CRITICAL: bold_red,
    }

    def format(self, record):
        color = self.COLORS.get(record.levelno, self.grey)
        record.levelname = f"{color}{record.levelname}{self.reset}"
        formatted = super().format(record)
        return f"{formatted}{self.reset}"


def _rotating_handler(
    config: LogConfig, filename: str, formatter: logging.Formatter
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        Path(config.log_dir) / filename,
        maxBytes=config.max_file_size,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    handler.setLevel(getattr(logging, config.level.upper()))
    handler.setFormatter(formatter)
    return handler


class _LoggerPrefixFilter(logging.Filter):
    """Pass only records whose logger name starts with one of the prefixes."""

    def __init__(self, *prefixes: str):
        super().__init__()
        self.prefixes = prefixes

    def filter(self, record: logging.LogRecord) -> bool:
        return record.name.startswith(self.prefixes)


def setup_logging(config: Optional[LogConfig] = None) -> None:
    """Setup application logging with configuration.

    - Uses QueueHandler for all file handlers to prevent blocking
    - QueueListener runs in separate thread for file I/O
    - Console handler remains direct (stdout is non-blocking)
    """
    global _queue_listener

    if config is None:
        config = LogConfig()

    if _queue_listener:
        _queue_listener.stop()
        _queue_listener = None

    if config.enable_file_logging:
        Path(config.log_dir).mkdir(exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.level.upper()))
    root_logger.handlers.clear()

    correlation_filter = CorrelationIdFilter()

    if config.enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, config.level.upper()))
        console_handler.setFormatter(
            ColoredFormatter(
                fmt="%(asctime)s | %(name)s | %(levelname)s | %(correlation_id)s | %(message)s",
                datefmt=config.date_format,
            )
        )
        console_handler.addFilter(correlation_filter)
        root_logger.addHandler(console_handler)

    file_handlers = []

    if config.enable_file_logging:
        file_formatter = logging.Formatter(
            fmt="%(asctime)s | %(name)s | %(levelname)s | %(correlation_id)s | %(funcName)s:%(lineno)d | %(message)s",
            datefmt=config.date_format,
        )

        # Main application log
        file_handlers.append(_rotating_handler(config, "app.log", file_formatter))

        # Meeting signaling log (sessions, signals, offline sync)
        meetings_handler = _rotating_handler(config, "meetings.log", file_formatter)
        meetings_handler.addFilter(
            _LoggerPrefixFilter("meeting.", "services.signaling_service", "services.meeting_message_service")
        )
        file_handlers.append(meetings_handler)

        # Access grant audit log
        access_handler = _rotating_handler(config, "access.log", file_formatter)
        access_handler.addFilter(_LoggerPrefixFilter("services.access_grant_service"))
        file_handlers.append(access_handler)

        # Database log
        db_handler = _rotating_handler(config, "database.log", file_formatter)
        db_handler.addFilter(_LoggerPrefixFilter("core.decorators", "sqlalchemy"))
        file_handlers.append(db_handler)

    if file_handlers:
        log_queue = queue.Queue(-1)
        queue_handler = logging.handlers.QueueHandler(log_queue)
        queue_handler.addFilter(correlation_filter)
        root_logger.addHandler(queue_handler)

        # respect_handler_level=True ensures only relevant logs are processed
        _queue_listener = logging.handlers.QueueListener(
            log_queue,
            *file_handlers,
            respect_handler_level=True,
        )
        _queue_listener.start()
        atexit.register(stop_queue_listener)

    from .config import settings

    sqlalchemy_logger = logging.getLogger("sqlalchemy.engine")
    if settings.database.echo:
        sqlalchemy_logger.setLevel(getattr(logging, config.level.upper()))
    else:
        sqlalchemy_logger.setLevel(logging.WARNING)


def stop_queue_listener() -> None:
    """Stop the queue listener gracefully.

    Called automatically on exit via atexit.
    Can also be called manually during shutdown.
    """
    global _queue_listener

    if _queue_listener:
        _queue_listener.stop()
        _queue_listener = None


class MeetingSessionLogger:
    """Structured logger for meeting session lifecycle events."""

    def __init__(self, name: str = "session"):
        self.logger = logging.getLogger(f"meeting.{name}")

    def session_started(
        self,
        meeting_id: int,
        user_id: int,
        session_id: int,
        peer_id: str,
        ip_address: Optional[str],
    ) -> None:
        """Log when a session is started or re-initialized."""
        self.logger.info(
            f"Session started | Meeting ID: {meeting_id} | User ID: {user_id} | "
            f"Session ID: {session_id} | Peer: {peer_id} | IP: {ip_address}"
        )

    def session_ended(
        self, session_id: int, user_id: int, duration_minutes: float
    ) -> None:
        """Log when a session is ended by its owner."""
        self.logger.info(
            f"Session ended | Session ID: {session_id} | User ID: {user_id} | "
            f"Duration: {duration_minutes:.1f} minutes"
        )

    def heartbeat_received(self, session_id: int, user_id: int) -> None:
        self.logger.debug(
            f"Heartbeat received | Session ID: {session_id} | User ID: {user_id}"
        )

    def signal_queued(
        self,
        session_id: int,
        sender_peer_id: str,
        receiver_peer_id: str,
        signal_type: str,
        reason: str,
    ) -> None:
        """Log when a signal is stored for later pickup instead of relayed live."""
        self.logger.info(
            f"Signal queued | Holder Session ID: {session_id} | Type: {signal_type} | "
            f"From: {sender_peer_id} | To: {receiver_peer_id} | Reason: {reason}"
        )

    def stale_session_cleaned(
        self,
        session_id: int,
        user_id: int,
        last_activity: datetime,
        inactive_minutes: float,
    ) -> None:
        """Log when a stale session is ended by the sweep."""
        self.logger.warning(
            f"Stale session cleaned | Session ID: {session_id} | User ID: {user_id} | "
            f"Last Activity: {last_activity.isoformat()} | Inactive for: {inactive_minutes:.1f} minutes"
        )

    def error_occurred(
        self,
        operation: str,
        session_id: Optional[int] = None,
        user_id: Optional[int] = None,
        error: str = "",
    ) -> None:
        """Log errors with context."""
        context = []
        if session_id:
            context.append(f"Session ID: {session_id}")
        if user_id:
            context.append(f"User ID: {user_id}")

        context_str = " | ".join(context) if context else "No context"

        self.logger.error(
            f"Session error | Operation: {operation} | {context_str} | Error: {error}"
        )
