"""
Global Logger Manager using loguru.

Every sink writes to stderr or to files: stdout is reserved for the stdio
MCP transport and must never receive log lines.

Configuration via .env file:
- LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
- LOG_MODE: Environment mode (development, production)
- LOG_DIR: Log directory for production (default: logs)
- LOG_ROTATION: Rotation size (e.g., "10 MB", "1 GB", "1 day")
- LOG_RETENTION: Retention time (e.g., "7 days", "1 month")
"""

import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_MODE = "development"
DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_ROTATION = "10 MB"
DEFAULT_LOG_RETENTION = "7 days"

_PLAIN_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]}:{function}:{line} - {message}"
)


class LoggerManager:
    """Global singleton logger manager."""

    _instance: Optional["LoggerManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "LoggerManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if LoggerManager._initialized:
            return
        LoggerManager._initialized = True

        self.log_level = os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
        self.log_mode = os.getenv("LOG_MODE", DEFAULT_LOG_MODE).lower()
        self.log_dir = Path(os.getenv("LOG_DIR", DEFAULT_LOG_DIR))
        self.log_rotation = os.getenv("LOG_ROTATION", DEFAULT_LOG_ROTATION)
        self.log_retention = os.getenv("LOG_RETENTION", DEFAULT_LOG_RETENTION)

        # Handler ids added by this manager; file sinks from add_file_sink
        # are tracked separately so set_level() leaves them alone.
        self._base_handlers: list[int] = []
        self._file_sinks: dict[int, Path] = {}

        logger.remove()
        self._configure()

    def _configure(self):
        self._base_handlers.append(
            logger.add(
                sys.stderr,
                format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{extra[name]}</cyan> - <level>{message}</level>",
                level=self.log_level,
                colorize=self.log_mode != "production",
                backtrace=self.log_mode != "production",
                diagnose=False,
            )
        )

        if self.log_mode == "production":
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self._base_handlers.append(
                logger.add(
                    self.log_dir / "devtools_mcp_{time:YYYY-MM-DD}.log",
                    format=_PLAIN_FORMAT,
                    level=self.log_level,
                    rotation=self.log_rotation,
                    retention=self.log_retention,
                    encoding="utf-8",
                    enqueue=True,
                )
            )

    def get_logger(self, name: Optional[str] = None):
        """
        Get a logger bound to ``name`` (defaults to "root").

        Example:
            log = LoggerManager().get_logger(__name__)
            log.info("Hello, world!")
        """
        return logger.bind(name=name or "root")

    def set_level(self, level: str):
        """Change the level of the stderr/production sinks at runtime."""
        self.log_level = level.upper()
        for handler_id in self._base_handlers:
            logger.remove(handler_id)
        self._base_handlers.clear()
        self._configure()

    def add_file_sink(self, path: str | Path, session: Optional[str] = None) -> int:
        """
        Mirror every log line at DEBUG and above into ``path``.

        Used for the ``logFile`` option. With ``session`` set, lines bound to
        another session (see session_scope()) are left out. Returns the loguru
        handler id so the owner can detach the sink with remove_file_sink().
        """
        path = Path(path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handler_id = logger.add(
            path,
            format=_PLAIN_FORMAT,
            level="DEBUG",
            filter=session_filter(session) if session is not None else None,
            encoding="utf-8",
            enqueue=True,
        )
        self._file_sinks[handler_id] = path
        return handler_id

    def remove_file_sink(self, handler_id: int) -> None:
        if self._file_sinks.pop(handler_id, None) is None:
            return
        logger.remove(handler_id)


def session_filter(session: str):
    """Accept records bound to ``session`` and records bound to no session."""

    def accept(record) -> bool:
        return record["extra"].get("session", session) == session

    return accept


# ======================================================================
## Convenience Functions
# ======================================================================


def get_logger(name: Optional[str] = None):
    """
    Get a logger instance. This is the recommended way to use the logger.

    Example:
        from devtools_mcp.utils.logger import get_logger

        log = get_logger(__name__)
        log.info("Browser launched")
    """
    return LoggerManager().get_logger(name)


def set_log_level(level: str):
    """Change log level at runtime (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""
    LoggerManager().set_level(level)


def save_logs_to_file(path: str | Path, session: Optional[str] = None) -> int:
    """Start writing logs to ``path``; returns the sink id."""
    return LoggerManager().add_file_sink(path, session=session)


def stop_saving_logs(handler_id: int) -> None:
    LoggerManager().remove_file_sink(handler_id)


def session_scope(session: str):
    """
    Bind ``session`` to every record logged inside the block, across awaits.

    Example:
        with session_scope(key):
            await dispatcher.call_tool(name, arguments)
    """
    return logger.contextualize(session=session)


__all__ = [
    "LoggerManager",
    "get_logger",
    "set_log_level",
    "save_logs_to_file",
    "stop_saving_logs",
    "session_scope",
    "session_filter",
    "logger",
]
