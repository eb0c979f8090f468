import json
import logging
import os
import sys
import threading
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from pathlib import Path

# Cached StructuredLogger instances, one per name, so handlers are attached once
_logger_cache: Dict[str, 'StructuredLogger'] = {}
_cache_lock = threading.RLock()

# Chatty third-party loggers and the level they are capped at
THIRD_PARTY_LOG_LEVELS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "hpack": logging.WARNING,
    "uvicorn.access": logging.WARNING,
}


# --- Custom JSON Formatter ---

class CustomJsonEncoder(json.JSONEncoder):
    """JSON encoder that tolerates datetimes, bytes, paths and Enum members."""
    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, bytes):
            return f"<{len(obj)} bytes>"
        if isinstance(obj, Path):
            return str(obj)
        if hasattr(obj, 'name') and hasattr(obj, 'value'):  # Enum-like
            return obj.value
        if isinstance(obj, BaseException):
            return f"{type(obj).__name__}: {obj}"
        return super().default(obj)


class JsonFormatter(logging.Formatter):
    """Formats log records into a JSON string."""

    def format(self, record: logging.LogRecord) -> str:
        if isinstance(record.msg, dict):
            message_dict = {str(k): v for k, v in record.msg.items()}
        else:
            message_dict = {"message": record.getMessage()}

        log_object = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "funcName": record.funcName,
            "lineno": record.lineno,
            **message_dict,
        }
        if record.exc_info:
            log_object["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_object, cls=CustomJsonEncoder)


class StructuredLogger:
    """
    Thin wrapper over ``logging.Logger`` that logs ``event_type`` + data dicts.

    Usage::

        logger = get_logger(__name__)
        logger.info("credential_store.sync_completed", {"uploaded": 3})
    """

    def __init__(self, name: str, config: Any, filename: str = None):
        self.logger = logging.getLogger(name)
        level = getattr(config.level, "value", config.level)
        self.logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
        self.logger.propagate = False

        console_enabled = getattr(config, 'console_enabled', True)
        file_enabled = getattr(config, 'file_enabled', False)
        structured_logging = getattr(config, 'structured_logging', True)
        max_file_size_mb = getattr(config, 'max_file_size_mb', 10)
        backup_count = getattr(config, 'backup_count', 5)
        log_dir = getattr(config, 'log_dir', 'logs')

        if filename:
            log_file = str(Path(log_dir) / filename)
        elif file_enabled:
            log_file = str(Path(log_dir) / "whatsapp_service.jsonl")
        else:
            log_file = None

        self._setup_console_handler(console_enabled, structured_logging)
        self._setup_file_handler(file_enabled, log_file, max_file_size_mb, backup_count, structured_logging)

    @staticmethod
    def _make_formatter(structured: bool) -> logging.Formatter:
        if structured:
            return JsonFormatter()
        return logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    def _setup_console_handler(self, enabled: bool, structured: bool):
        """Attach a stdout handler unless one is already attached."""
        if not enabled:
            return

        for existing_handler in self.logger.handlers:
            if isinstance(existing_handler, logging.StreamHandler) and \
                    getattr(existing_handler, 'stream', None) is sys.stdout:
                return

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(self._make_formatter(structured))
        self.logger.addHandler(handler)

    def _setup_file_handler(self, enabled: bool, log_file: Optional[str], max_size_mb: int,
                            backup_count: int, structured: bool):
        """Attach a rotating file handler unless one for the same file exists."""
        if not enabled or not log_file:
            return

        log_file_normalized = os.path.abspath(log_file)
        for existing_handler in self.logger.handlers:
            if isinstance(existing_handler, RotatingFileHandler) and \
                    os.path.abspath(existing_handler.baseFilename) == log_file_normalized:
                return

        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        try:
            handler = RotatingFileHandler(
                log_file,
                maxBytes=max_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding='utf-8'
            )
        except OSError as e:
            # stderr only; never raise from logger setup
            print(f"ERROR: Failed to create file handler for {log_file}: {e}", file=sys.stderr)
            return

        handler.setFormatter(self._make_formatter(structured))
        self.logger.addHandler(handler)

    def _log(self, level: int, event_type: str, data: Dict[str, Any], exc_info=False):
        payload = {"event_type": event_type, "data": data}
        self.logger.log(level, payload, exc_info=exc_info)

    def info(self, event_type: str, data: Dict[str, Any] = None):
        self._log(logging.INFO, event_type, data or {})

    def warning(self, event_type: str, data: Dict[str, Any] = None, exc_info=False):
        self._log(logging.WARNING, event_type, data or {}, exc_info=exc_info)

    def error(self, event_type: str, data: Dict[str, Any] = None, exc_info=False):
        """
        Log an error event.

        Args:
            event_type: Type of error event
            data: Optional error context data
            exc_info: Include exception info (default: False)
        """
        self._log(logging.ERROR, event_type, data or {}, exc_info=exc_info)

    def debug(self, event_type: str, data: Dict[str, Any] = None):
        self._log(logging.DEBUG, event_type, data or {})


def configure_third_party_loggers() -> None:
    """Cap noisy library loggers so request traces don't drown session events."""
    for logger_name, level in THIRD_PARTY_LOG_LEVELS.items():
        logging.getLogger(logger_name).setLevel(level)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a cached structured logger instance for the given name.

    The first call per name builds a StructuredLogger from the application's
    logging settings; later calls return the same instance so handlers are
    never attached twice.

    Args:
        name: Logger name (typically __name__ of calling module)

    Returns:
        Cached StructuredLogger instance (singleton per name)
    """
    if name in _logger_cache:
        return _logger_cache[name]

    with _cache_lock:
        if name in _logger_cache:
            return _logger_cache[name]

        from ..infrastructure.config.settings import get_settings
        try:
            logging_config = get_settings().logging
        except Exception as e:
            # Invalid settings fall back to console-only JSON logging
            print(f"WARNING: Failed to load config for logger '{name}': {e}", file=sys.stderr)

            class FallbackConfig:
                level = "INFO"
                console_enabled = True
                file_enabled = False
                structured_logging = True
                log_dir = "logs"
                max_file_size_mb = 10
                backup_count = 5

            logging_config = FallbackConfig()

        logger = StructuredLogger(name, logging_config)
        _logger_cache[name] = logger
        return logger
