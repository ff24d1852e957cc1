"""Custom exception hierarchy for PlayerValue-Pro.

Errors are split by blast radius:
    - Per-task errors (TransientNetworkError, ExtractionError) are caught by
      the task pool and turned into error records.
    - Stage errors (DataStoreError, BrowserInitializationError) propagate to
      the campaign caller.
    - Startup errors (ConfigurationError, LoggingInitializationError) stop the
      process before any work is scheduled.
"""

from datetime import UTC, datetime
from typing import Any


class CrawlerError(Exception):
    """Base exception for all PlayerValue-Pro errors.

    Attributes:
        message: Human-readable error description.
        context: Optional dictionary with additional debugging information.
        timestamp: UTC timestamp when the exception was raised.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now(UTC)
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format exception message with context for logging."""
        base = f"[{self.timestamp.isoformat()}] {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base} | Context: {context_str}"
        return base


class ConfigurationError(CrawlerError):
    """Raised when required configuration is missing or unusable.

    Fatal at startup - the campaign cannot run without a store or
    an exclusion list.
    """

    def __init__(self, field: str, reason: str, value: Any = None) -> None:
        super().__init__(
            message=f"Configuration invalid for '{field}': {reason}",
            context={"field": field, "value": value, "reason": reason},
        )


class BrowserInitializationError(CrawlerError):
    """Raised when the browser process or its context cannot be created."""

    def __init__(self, reason: str, browser_type: str = "chromium") -> None:
        super().__init__(
            message=f"Failed to initialize {browser_type} browser: {reason}",
            context={"browser_type": browser_type, "reason": reason},
        )


class TransientNetworkError(CrawlerError):
    """Base for navigation-time failures isolated to a single task."""


class NavigationError(TransientNetworkError):
    """Raised when page navigation fails or returns an HTTP error."""

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(
            message=f"Navigation to '{url}' failed: {reason}",
            context={"url": url, "reason": reason, "status_code": status_code},
        )
        self.status_code = status_code


class ReadinessTimeoutError(TransientNetworkError):
    """Raised when the valuation element never becomes ready in time."""

    def __init__(self, url: str, selector: str, timeout_ms: int) -> None:
        super().__init__(
            message=f"Readiness poll for '{selector}' exceeded {timeout_ms}ms",
            context={"url": url, "selector": selector, "timeout_ms": timeout_ms},
        )
        self.timeout_ms = timeout_ms


class ExtractionError(CrawlerError):
    """Raised when the ready element cannot be read."""

    def __init__(self, selector: str, url: str, reason: str) -> None:
        super().__init__(
            message=f"Extraction failed for selector '{selector}': {reason}",
            context={"selector": selector, "url": url, "reason": reason},
        )


class DataStoreError(CrawlerError):
    """Raised when a document-store call fails.

    A failed batch write reports zero persisted effect to the caller.
    """

    def __init__(self, operation: str, reason: str, **context: Any) -> None:
        super().__init__(
            message=f"Document store {operation} failed: {reason}",
            context={"operation": operation, "reason": reason, **context},
        )
        self.operation = operation


class ReportGenerationError(CrawlerError):
    """Raised when report generation fails."""

    def __init__(self, report_type: str, reason: str, output_path: str | None = None) -> None:
        super().__init__(
            message=f"Failed to generate {report_type} report: {reason}",
            context={"report_type": report_type, "reason": reason, "output_path": output_path},
        )


class LoggingInitializationError(CrawlerError):
    """Raised when the logging system fails to initialize."""

    def __init__(self, log_dir: str, reason: str) -> None:
        super().__init__(
            message=f"Failed to initialize logging at '{log_dir}': {reason}",
            context={"log_dir": log_dir, "reason": reason},
        )


class ResourceLeakWarning(UserWarning):
    """Emitted when a browser process from a previous acquire is still alive.

    The session manager force-closes the stale process and continues.
    """
