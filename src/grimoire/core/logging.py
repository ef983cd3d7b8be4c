"""
Simple asynchronous logging for GRIMOIRE.
"""

import re
import time
import os
import yaml
from pathlib import Path
from typing import List, Pattern, Optional
from contextlib import contextmanager
from loguru import logger as loguru_logger


DEFAULT_LOG_FILE = ".grimoire/logs/debug.log"


class AsyncLogger:
    """
    Asynchronous logger with flat format.

    Format: timestamp | level | component | message
    Keyword context is attached to the record, never interpolated.
    """

    # Single handler shared by every instance
    _handler_id = None

    def __init__(self, component: str, debug_mode: bool = False):
        self.component = component
        self.debug_mode = debug_mode
        self._setup_async_handler()

    def _setup_async_handler(self):
        """
        Registers the enqueued file sink once per process.

        - Non-blocking writes (enqueue=True)
        - Minimum level from GRIMOIRE_LOG_LEVEL or logging.level
        - Rotation at 10MB, zipped
        """
        if AsyncLogger._handler_id is None:
            AsyncLogger._handler_id = loguru_logger.add(
                os.getenv("GRIMOIRE_LOG_FILE", DEFAULT_LOG_FILE),
                format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {extra[component]} | {message}",
                level=_get_log_level(),
                rotation="10 MB",
                compression="zip",
                enqueue=True,
            )

    def log(self, level: str, message: str, **context):
        """Hands the record to loguru; the enqueued sink writes it in the background."""
        loguru_logger.bind(component=self.component).log(level, message, **context)

    def debug(self, message: str, **context):
        """Log DEBUG level."""
        self.log("DEBUG", message, **context)

    def info(self, message: str, **context):
        """Log INFO level."""
        self.log("INFO", message, **context)

    def warning(self, message: str, **context):
        """Log WARNING level."""
        self.log("WARNING", message, **context)

    def error(self, message: str, include_trace: Optional[bool] = None, **context):
        """
        Log ERROR level with optional stack trace.

        Args:
            message: Error message
            include_trace: Whether to attach the stack trace (None = follow debug_mode)
            **context: Additional context
        """
        should_include_trace = include_trace if include_trace is not None else self.debug_mode

        if should_include_trace:
            import traceback

            context["stack_trace"] = traceback.format_exc()

        self.log("ERROR", message, **context)


class SensitiveDataMasker:
    """
    Masks sensitive data before it reaches the logs.

    Sampled searches store the full query text, everything else
    only ever logs a masked preview.
    """

    def __init__(self, patterns: Optional[List[Pattern]] = None):
        self.patterns = patterns or []

    def mask(self, text: str) -> str:
        """
        Example:
        - "token=abc123def456" -> "token=***"
        - "a1b2c3d4e5f6a7b8c9d0..." -> "a1b2c3d4..."
        """
        masked = text

        # key=value pairs with long values
        masked = re.sub(
            r'(api_key|token|secret|password|key)=[a-zA-Z0-9]{8,}',
            r'\1=***',
            masked,
            flags=re.IGNORECASE,
        )

        # Long hex hashes keep their first 8 chars
        masked = re.sub(r'\b([a-f0-9]{8})[a-f0-9]{8,}\b', r'\1...', masked)

        # Long token-like runs
        masked = re.sub(r'\b[a-zA-Z0-9]{32,}\b', '***TOKEN***', masked)

        for pattern in self.patterns:
            masked = pattern.sub("***", masked)

        return masked

    def preview(self, text: Optional[str], length: int = 50) -> str:
        """Masked, shortened version of free text for log context."""
        if not text:
            return ""
        return self.mask(text[:length])


class PerformanceLogger:
    """
    Logger specialised in timing operations.
    """

    def __init__(self):
        self.logger = AsyncLogger("performance")

    @contextmanager
    def measure(self, operation: str, **context):
        """
        Context manager to time an operation.

        Usage:
        ```
        with perf_logger.measure("metrics_persist", campaign_id=cid):
            await store.save(metric)
        ```
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start
            self.logger.info(
                "Operation completed", operation=operation, duration_ms=duration * 1000, **context
            )


def _read_logging_section() -> dict:
    """logging section of grimoire.yaml, {} when absent or unreadable."""
    config_path = Path(os.getenv("GRIMOIRE_CONFIG", "grimoire.yaml"))
    if not config_path.is_file():
        return {}
    try:
        with open(config_path, encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}
    logging_section = config.get("logging", {}) if isinstance(config, dict) else {}
    return logging_section if isinstance(logging_section, dict) else {}


def _get_debug_mode() -> bool:
    """Reads debug_mode from grimoire.yaml or the environment."""
    logging_section = _read_logging_section()
    if "debug_mode" in logging_section:
        return bool(logging_section["debug_mode"])

    return os.getenv("GRIMOIRE_DEBUG", "false").lower() == "true"


def _get_log_level() -> str:
    """
    Minimum level for the file sink.

    GRIMOIRE_LOG_LEVEL wins over logging.level in grimoire.yaml.
    Without either, debug mode logs DEBUG and everything else INFO.
    Unknown level names fall back to INFO.
    """
    level = os.getenv("GRIMOIRE_LOG_LEVEL") or _read_logging_section().get("level")
    if not level:
        return "DEBUG" if _get_debug_mode() else "INFO"

    level = str(level).strip().upper()
    try:
        loguru_logger.level(level)
    except ValueError:
        return "INFO"
    return level


logger = AsyncLogger("grimoire", debug_mode=_get_debug_mode())
