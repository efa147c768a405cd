"""
Logging configuration for servicelink processes.

Supports:
- Console logging (human-readable or JSON)
- Optional file logging with size-based rotation
- Masking of credentials (tokens, API keys) in log output
- Version/host enrichment of every record

Libraries only call ``logging.getLogger(__name__)``; ``setup_logging`` is for
the CLI and for applications embedding acceptors.
"""

import logging
import logging.handlers
import os
import socket
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pythonjsonlogger import jsonlogger


class SensitiveDataFilter(logging.Filter):
    """Mask sensitive patterns (tokens, API keys) in log messages."""

    def __init__(self, patterns: list[str] | None = None):
        super().__init__()
        self._patterns: list[str] = []
        if patterns:
            self._patterns = [p for p in patterns if p]

    def add_pattern(self, pattern: str) -> None:
        if pattern and pattern not in self._patterns:
            self._patterns.append(pattern)

    def filter(self, record: logging.LogRecord) -> bool:
        if self._patterns:
            # Use fully formatted message to catch secrets in non-string args
            formatted = record.getMessage()
            needs_redaction = False
            for pattern in self._patterns:
                if pattern in formatted:
                    redacted = pattern[:4] + "***REDACTED***"
                    formatted = formatted.replace(pattern, redacted)
                    needs_redaction = True
            if needs_redaction:
                record.msg = formatted
                record.args = None
        return True


class ProcessEnrichmentFilter(logging.Filter):
    """Add version, host and pid to all log records."""

    def __init__(self, version: str, hostname: str | None = None):
        super().__init__()
        self.version = version or "unknown"
        self.hostname = hostname or socket.gethostname()

    def filter(self, record: logging.LogRecord) -> bool:
        record.version = self.version  # type: ignore
        record.hostname = self.hostname  # type: ignore
        record.pid = os.getpid()  # type: ignore
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with ISO timestamp, level, logger name and thread."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        # Server handlers run on pool threads; keep the name for correlation
        log_record["thread"] = record.threadName

        # Extract context from extra fields
        context = {}
        for key, value in message_dict.items():
            if key not in ["message", "timestamp", "level", "logger", "version", "hostname"]:
                context[key] = value

        if context:
            log_record["context"] = context


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[Path] = None,
    json_format: bool = False,
    version: str = "unknown",
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    sensitive_patterns: list[str] | None = None,
) -> None:
    """
    Configure root logging: console always, rotating files when log_dir is set.

    Rotation strategy:
    - By size: When a log file reaches max_bytes, rotate to backup
    - Retention: Keep backup_count old files (servicelink.log, servicelink.log.1, ...)

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files (no file logging if None)
        json_format: Emit JSON records on the console too
        version: Application version added to every record
        max_bytes: Maximum size per log file before rotation (default: 10MB)
        backup_count: Number of backup files to keep (default: 5)
        sensitive_patterns: Strings to mask in log output
    """
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers
    root_logger.handlers.clear()

    json_formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(logger)s %(version)s %(hostname)s %(message)s"
    )
    enrichment_filter = ProcessEnrichmentFilter(version=version)
    sensitive_filter = SensitiveDataFilter(patterns=sensitive_patterns)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    if json_format:
        console_handler.setFormatter(json_formatter)
    else:
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    console_handler.addFilter(enrichment_filter)
    console_handler.addFilter(sensitive_filter)
    root_logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)

        # All logs (JSON format, rotating by size)
        app_handler = logging.handlers.RotatingFileHandler(
            log_dir / "servicelink.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        app_handler.setLevel(level)
        app_handler.setFormatter(json_formatter)
        app_handler.addFilter(enrichment_filter)
        app_handler.addFilter(sensitive_filter)
        root_logger.addHandler(app_handler)

        # Errors only
        error_handler = logging.handlers.RotatingFileHandler(
            log_dir / "errors.log",
            maxBytes=max_bytes // 2,
            backupCount=backup_count,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(json_formatter)
        error_handler.addFilter(enrichment_filter)
        error_handler.addFilter(sensitive_filter)
        root_logger.addHandler(error_handler)

    # grpc's own logger is chatty at DEBUG
    logging.getLogger("grpc").setLevel(max(level, logging.INFO))

    logging.info(f"Logging configured: level={log_level}, log_dir={log_dir}, json={json_format}")
