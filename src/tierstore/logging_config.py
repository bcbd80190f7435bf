# src/tierstore/logging_config.py
"""
Logging setup for tierstore processes.

Library modules only ever call ``logging.getLogger(__name__)``; handlers are
installed once per process by :func:`configure_logging`, typically from the
CLI or from the host application's startup code.

Key concepts:

    **Display filter**: When ``console_enabled=False`` (the default), the
    console handler still exists but only passes log records that carry
    ``extra={"display": True}``. Operational messages reach the operator
    while per-call storage chatter (one INFO line per tier call) stays in
    the log file.

    **File logging**: disabled by default. When enabled, a
    ``RotatingFileHandler`` writes ``{app}.log`` under ``file_directory``.

Usage:
    from tierstore.logging_config import configure_logging, log_display

    configure_logging(app_name="tierstore", config={"console_enabled": True})
    log_display(logger, logging.INFO, "Loaded %d entities", count)
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

DEFAULT_LOGGING_CONFIG: dict[str, Any] = {
    "console_enabled": False,
    "console_level": "WARNING",
    "console_format": "%(levelname)s - %(message)s",
    "file_enabled": False,
    "file_level": "DEBUG",
    "file_directory": "~/.local/share/tierstore/logs",
    "file_name": "{app}.log",
    "file_format": "%(asctime)s [%(levelname)-8s] %(name)-30s - %(message)s (%(filename)s:%(lineno)d)",
    "rotation_max_bytes": 10 * 1024 * 1024,  # 10 MB
    "rotation_backup_count": 5,
    "display_min_level": "INFO",
    "components": {
        "tierstore": "INFO",
        "aiosqlite": "WARNING",
        "asyncio": "WARNING",
        "redis": "WARNING",
    },
}


def _to_level(value: str | int, default: int) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else default


class DisplayFilter(logging.Filter):
    """Controls which log records pass through to the console handler.

    With the console globally enabled every record passes and the handler
    level does the filtering. Otherwise only records flagged
    ``display=True`` at or above ``display_min_level`` pass.
    """

    def __init__(
        self,
        console_globally_enabled: bool = False,
        display_min_level: int = logging.INFO,
    ) -> None:
        super().__init__()
        self.console_globally_enabled = console_globally_enabled
        self.display_min_level = display_min_level

    def filter(self, record: logging.LogRecord) -> bool:
        if self.console_globally_enabled:
            return True
        if getattr(record, "display", False):
            return record.levelno >= self.display_min_level
        return False


class LoggingManager:
    """
    Singleton that installs tierstore's handlers on the root logger.

    Configuration happens once per process unless ``force_reconfigure`` is
    passed, so repeated CLI invocations inside one interpreter (tests) do not
    stack handlers.
    """

    _instance: Optional["LoggingManager"] = None
    _configured: bool = False
    _log_file_path: Path | None = None
    _console_handler: logging.Handler | None = None
    _file_handler: logging.Handler | None = None

    def __new__(cls) -> "LoggingManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def is_configured(cls) -> bool:
        """Check if logging has been configured."""
        return cls._configured

    def configure(
        self,
        app_name: str = "tierstore",
        config: dict[str, Any] | None = None,
        force_reconfigure: bool = False,
    ) -> Path | None:
        """
        Configure logging for the process.

        Args:
            app_name: Used in the log file name.
            config: Overrides merged over DEFAULT_LOGGING_CONFIG.
            force_reconfigure: Replace handlers installed by an earlier call.

        Returns:
            Path to the log file, or None when file logging is disabled.
        """
        if LoggingManager._configured and not force_reconfigure:
            return LoggingManager._log_file_path

        log_config = {**DEFAULT_LOGGING_CONFIG, **(config or {})}
        root_logger = logging.getLogger()
        for handler in (self._console_handler, self._file_handler):
            if handler is not None:
                root_logger.removeHandler(handler)
                handler.close()
        root_logger.setLevel(logging.DEBUG)

        console_enabled = bool(log_config.get("console_enabled", False))
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(log_config["console_format"]))
        if console_enabled:
            console_handler.setLevel(_to_level(log_config["console_level"], logging.WARNING))
        else:
            # Filter is the sole gate when the console is "off".
            console_handler.setLevel(logging.DEBUG)
        console_handler.addFilter(
            DisplayFilter(
                console_globally_enabled=console_enabled,
                display_min_level=_to_level(log_config["display_min_level"], logging.INFO),
            )
        )
        root_logger.addHandler(console_handler)
        LoggingManager._console_handler = console_handler

        LoggingManager._file_handler = None
        LoggingManager._log_file_path = None
        if log_config.get("file_enabled", False):
            file_handler, log_path = self._create_file_handler(log_config, app_name)
            if file_handler is not None:
                root_logger.addHandler(file_handler)
                LoggingManager._file_handler = file_handler
                LoggingManager._log_file_path = log_path

        for component_name, level_str in log_config.get("components", {}).items():
            logging.getLogger(component_name).setLevel(_to_level(level_str, logging.INFO))

        LoggingManager._configured = True
        logging.getLogger(__name__).debug("Logging configured. Log file: %s", LoggingManager._log_file_path)
        return LoggingManager._log_file_path

    @staticmethod
    def _create_file_handler(
        config: dict[str, Any], app_name: str
    ) -> tuple[logging.Handler | None, Path | None]:
        log_dir = Path(os.path.expanduser(config["file_directory"]))
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file_path = log_dir / config["file_name"].format(app=app_name)
            handler = RotatingFileHandler(
                log_file_path,
                maxBytes=config["rotation_max_bytes"],
                backupCount=config["rotation_backup_count"],
                encoding="utf-8",
            )
        except OSError as e:
            sys.stderr.write(f"Warning: Cannot create log file in {log_dir}: {e}\n")
            return None, None

        handler.setLevel(_to_level(config["file_level"], logging.DEBUG))
        handler.setFormatter(logging.Formatter(config["file_format"]))
        return handler, log_file_path


def configure_logging(
    app_name: str = "tierstore",
    config: dict[str, Any] | None = None,
    force_reconfigure: bool = False,
) -> Path | None:
    """Configure process-wide logging. See :class:`LoggingManager`."""
    return LoggingManager().configure(
        app_name=app_name,
        config=config,
        force_reconfigure=force_reconfigure,
    )


def log_display(
    logger: logging.Logger,
    level: int,
    msg: str,
    *args: Any,
    **kwargs: Any,
) -> None:
    """Log a message that also appears on the console in silent mode.

    The caller's ``extra`` dict is merged, not replaced.
    """
    extra = kwargs.pop("extra", None) or {}
    extra["display"] = True
    kwargs["extra"] = extra
    logger.log(level, msg, *args, **kwargs)
