"""
Centralized Logging Configuration Module

Logging for the papyrus notifier. Everything goes to stdout, which Jenkins
captures as the build's console output; a rotating application.log is added
when a log directory is configured.

- Pipe-delimited plain text format
- Build ID correlation (project#build) on every record
- Sensitive data masking (access tokens, Authorization headers)
- Log rotation with size limits for the optional file

Format:
timestamp | level | logger | build_id | message | context

Example:
2024-01-01 10:15:30.123 | INFO     | papyrus_notifier.build_publisher | purpur#1234 | Artifact uploaded | status_code=200
"""

import logging
import logging.handlers
import re
import sys
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any

# Build being published, stamped on every record
build_id_var: ContextVar[Optional[str]] = ContextVar('build_id', default=None)


class SensitiveDataFilter(logging.Filter):
    """
    Filter to mask sensitive data in log arguments.

    Masks:
    - Authorization header values (Basic and Bearer)
    - Generic token=/secret=/password= values
    - Dictionary values whose key looks like a credential
    """

    PATTERNS = [
        (re.compile(r'(Authorization[\'"]?:\s*[\'"]?(?:Basic|Bearer)\s+)[^\s\'",}]+', re.IGNORECASE), r'\1****'),
        (re.compile(r'(Authorization:\s*)(?!Basic\s|Bearer\s)[^\s]+', re.IGNORECASE), r'\1****'),
        (re.compile(r'(token[=:]\s*)[^\s&]+', re.IGNORECASE), r'\1****'),
        (re.compile(r'(secret[=:]\s*)[^\s&]+', re.IGNORECASE), r'\1****'),
        (re.compile(r'(password[=:]\s*)[^\s&]+', re.IGNORECASE), r'\1****'),
    ]

    SENSITIVE_KEYS = ['token', 'secret', 'password', 'auth']

    def filter(self, record: logging.LogRecord) -> bool:
        """Mask sensitive data in log arguments"""
        # The msg template holds format specifiers; only the args are masked
        if record.args:
            if isinstance(record.args, dict):
                record.args = self._mask_dict(record.args)
            elif isinstance(record.args, tuple):
                record.args = tuple(self._mask_value(arg) for arg in record.args)
        return True

    def _mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        masked = {}
        for key, value in data.items():
            if isinstance(key, str) and any(s in key.lower() for s in self.SENSITIVE_KEYS):
                masked[key] = self._mask_token(str(value))
            else:
                masked[key] = self._mask_value(value)
        return masked

    def _mask_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self._mask_dict(value)
        if isinstance(value, str):
            for pattern, replacement in self.PATTERNS:
                value = pattern.sub(replacement, value)
        return value

    @staticmethod
    def _mask_token(token: str) -> str:
        """Mask token showing only first and last 4 characters"""
        if not token or len(token) < 12:
            return "****"
        return f"{token[:4]}...{token[-4:]}"


class BuildIdFilter(logging.Filter):
    """Add the build ID from context to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.build_id = build_id_var.get() or 'N/A'
        return True


class PipeDelimitedFormatter(logging.Formatter):
    """
    Formatter for pipe-delimited log lines with aligned columns.

    Format: timestamp | level | logger | build_id | message | context
    """

    LEVEL_WIDTH = 8
    LOGGER_WIDTH = 32
    BUILD_ID_WIDTH = 8

    # Extra fields rendered as key=value context
    CONTEXT_FIELDS = ['phase', 'status_code', 'duration_ms', 'error_type', 'path']

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        level = record.levelname.ljust(self.LEVEL_WIDTH)

        name = record.name
        if len(name) > self.LOGGER_WIDTH:
            name = name[:self.LOGGER_WIDTH - 3] + '...'
        else:
            name = name.ljust(self.LOGGER_WIDTH)

        build_id = str(getattr(record, 'build_id', 'N/A')).ljust(self.BUILD_ID_WIDTH)
        message = record.getMessage()

        context_parts = []
        for field in self.CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                context_parts.append(f"{field}={value}")

        if context_parts:
            log_line = f"{timestamp} | {level} | {name} | {build_id} | {message} | {' '.join(context_parts)}"
        else:
            log_line = f"{timestamp} | {level} | {name} | {build_id} | {message}"

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            log_line = log_line + '\n' + record.exc_text
        if record.stack_info:
            log_line = log_line + '\n' + self.formatStack(record.stack_info)

        return log_line


class LoggingConfig:
    """
    Centralized logging configuration manager.

    Sets up:
    - Console output (Jenkins console)
    - Optional rotating application.log
    - Build ID tracking
    - Sensitive data masking
    """

    def __init__(self, log_dir: Optional[str] = None, log_level: str = 'INFO'):
        """
        Initialize logging configuration.

        Args:
            log_dir: Directory for application.log, None to log to the console only
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        """
        self.log_dir = Path(log_dir) if log_dir else None
        self.log_level = getattr(logging, log_level.upper(), logging.INFO)

        if self.log_dir:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        self._setup_logging()

    def _setup_logging(self):
        formatter = PipeDelimitedFormatter()

        root_logger = logging.getLogger()
        root_logger.setLevel(self.log_level)
        root_logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(formatter)
        console_handler.addFilter(BuildIdFilter())
        console_handler.addFilter(SensitiveDataFilter())
        root_logger.addHandler(console_handler)

        if self.log_dir:
            app_handler = logging.handlers.RotatingFileHandler(
                filename=self.log_dir / 'application.log',
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            app_handler.setLevel(self.log_level)
            app_handler.setFormatter(formatter)
            app_handler.addFilter(BuildIdFilter())
            app_handler.addFilter(SensitiveDataFilter())
            root_logger.addHandler(app_handler)

        # urllib3 logs full request lines at DEBUG
        logging.getLogger('urllib3').setLevel(max(self.log_level, logging.INFO))


def setup_logging(log_dir: Optional[str] = None, log_level: str = 'INFO') -> LoggingConfig:
    """
    Initialize logging configuration (call once at startup).

    Re-initialization is allowed so the level from configuration can replace
    the defaults used before configuration was loaded.

    Args:
        log_dir: Directory for application.log, None for console only
        log_level: Logging level

    Returns:
        LoggingConfig instance
    """
    return LoggingConfig(log_dir=log_dir, log_level=log_level)


def set_build_id(build_id: str):
    """Set the build ID for the current context."""
    build_id_var.set(build_id)


def clear_build_id():
    """Clear the build ID from context."""
    build_id_var.set(None)


def get_build_id() -> Optional[str]:
    """Get the current build ID."""
    return build_id_var.get()


def mask_token(token: str) -> str:
    """
    Mask a token for display.

    Args:
        token: Token to mask

    Returns:
        Masked token (e.g., "dXNl...cmQ=")
    """
    return SensitiveDataFilter._mask_token(token)
