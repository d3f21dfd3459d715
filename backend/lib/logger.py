"""
Logging Utility for the Tutor Backend

Provides readable, structured console logging with:
- Color-coded log levels
- Icons per logger section (request, session, engine, ...)
- Section separators for startup/shutdown
- Request/response helpers with timing
"""

import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional


class Colors:
    """ANSI color codes for terminal output."""
    RESET = '\033[0m'
    BOLD = '\033[1m'

    DEBUG = '\033[36m'      # Cyan
    INFO = '\033[32m'       # Green
    WARNING = '\033[33m'    # Yellow
    ERROR = '\033[31m'      # Red
    CRITICAL = '\033[35m'   # Magenta

    SECTION = '\033[94m'    # Bright Blue
    TIMESTAMP = '\033[90m'  # Dark Gray


LEVEL_COLORS = {
    'DEBUG': Colors.DEBUG,
    'INFO': Colors.INFO,
    'WARNING': Colors.WARNING,
    'ERROR': Colors.ERROR,
    'CRITICAL': Colors.CRITICAL,
}


class ColoredFormatter(logging.Formatter):
    """Formatter with colors and icons."""

    ICONS = {
        'DEBUG': '🔍',
        'INFO': 'ℹ️',
        'WARNING': '⚠️',
        'ERROR': '❌',
        'CRITICAL': '🚨',
    }

    # Keyed by the last component of the logger name
    SECTION_ICONS = {
        'main': '🌐',
        'socratic_engine': '🧠',
        'socratic_tutor': '💾',
        'depth_tracker': '📈',
        'completion_client': '🤖',
        'adaptive_controller': '📊',
        'analytics_engine': '📊',
        'user_profile_manager': '👤',
        'session_manager': '🗂️',
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        icon = self.SECTION_ICONS.get(record.name.split('.')[-1], self.ICONS.get(record.levelname, '•'))
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]

        if self.use_colors:
            level_color = LEVEL_COLORS.get(record.levelname, Colors.RESET)
            reset, timestamp_color, bold = Colors.RESET, Colors.TIMESTAMP, Colors.BOLD
        else:
            level_color = reset = timestamp_color = bold = ''

        formatted = (
            f"{timestamp_color}[{timestamp}]{reset} "
            f"{icon} {level_color}{record.levelname:8s}{reset} "
            f"{bold}{record.name}{reset} | {record.getMessage()}"
        )
        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"
        return formatted


class StructuredLogger:
    """Logger with optional key/value payloads and section banners."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(name)

    @staticmethod
    def _format_data(data: Dict[str, Any]) -> str:
        return "\n".join(f"  {key}: {value}" for key, value in data.items())

    def _with_data(self, message: str, data: Optional[Dict[str, Any]]) -> str:
        return f"{message}\n{self._format_data(data)}" if data else message

    def section(self, title: str, data: Optional[Dict[str, Any]] = None):
        """Print a section banner (startup, shutdown)."""
        separator = "=" * 80
        color, reset = (Colors.SECTION, Colors.RESET) if sys.stdout.isatty() else ('', '')
        print(f"\n{color}{separator}{reset}")
        print(f"{color}📋 {title.upper()}{reset}")
        if data:
            print(self._format_data(data))
        print(f"{color}{separator}{reset}\n")

    def debug(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.debug(self._with_data(message, data))

    def info(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.info(self._with_data(message, data))

    def warning(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.warning(self._with_data(message, data))

    def error(self, message: str, error: Optional[Exception] = None, data: Optional[Dict[str, Any]] = None):
        """Log error message with exception and optional data."""
        error_info = f"Error: {type(error).__name__}: {error}" if error else ""
        self.logger.error(self._with_data(f"{message} {error_info}".strip(), data), exc_info=error)

    def success(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.info(self._with_data(f"✅ {message}", data))

    def request(self, method: str, path: str):
        """Log incoming request."""
        self.logger.info(f"📥 REQUEST: {method} {path}")

    def response(self, status: int, path: str, duration: Optional[float] = None):
        """Log response."""
        timing = f" in {duration * 1000:.2f}ms" if duration is not None else ""
        self.logger.info(f"📤 RESPONSE: {status} {path}{timing}")


def setup_logging(level: int = logging.INFO, use_colors: bool = True):
    """Setup console logging for the backend."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(use_colors=use_colors))

    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    # Suppress noisy loggers
    logging.getLogger('asyncio').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)
    logging.getLogger('openai').setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name, logging.getLogger(name))
