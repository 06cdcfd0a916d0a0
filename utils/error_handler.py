"""
Error Handling Module for CodeSage Scrape

This module provides the custom exceptions, error detection utilities and the
central error reporter used while scraping problem pages and exporting datasets.

Propagation rules:
- TransientFetchError and its subclasses are attempt failures. The retry
  orchestrator absorbs them and degrades to a fallback record.
- ConfigurationError is fatal. It is raised at construction time and is never
  retried.
- An empty classification result is not an error at all.
"""

import logging
import traceback
import functools
import shutil
import socket
from typing import Dict, Any, Optional, Callable, List, Tuple
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from requests.exceptions import (
    Timeout, ConnectionError, HTTPError, ChunkedEncodingError
)
from selenium.common.exceptions import (
    WebDriverException, TimeoutException, NoSuchElementException,
    StaleElementReferenceException, SessionNotCreatedException,
    InvalidSessionIdException
)
from urllib3.exceptions import MaxRetryError, NewConnectionError

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification"""
    NETWORK = "network"
    CONTENT_MISSING = "content_missing"
    CAPTCHA = "captcha"
    RATE_LIMITING = "rate_limiting"
    CONFIGURATION = "configuration"
    EXPORT = "export"
    SELENIUM = "selenium"
    UNKNOWN = "unknown"


@dataclass
class ErrorInfo:
    """Structured error information"""
    message: str
    category: ErrorCategory
    severity: ErrorSeverity
    original_exception: Optional[Exception] = None
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    traceback_str: Optional[str] = None
    recovery_suggestions: List[str] = field(default_factory=list)


# =============================================================================
# Custom Exception Classes
# =============================================================================

class ScrapeError(Exception):
    """Base exception for all CodeSage Scrape specific errors"""

    def __init__(self, message: str, error_info: Optional[ErrorInfo] = None):
        super().__init__(message)
        self.error_info = error_info or ErrorInfo(
            message=message,
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.MEDIUM
        )


class TransientFetchError(ScrapeError):
    """Navigation or timeout failure against the target site"""

    def __init__(self, message: str, original_exception: Optional[Exception] = None,
                 url: Optional[str] = None, error_info: Optional[ErrorInfo] = None,
                 category: ErrorCategory = ErrorCategory.NETWORK):
        error_info = error_info or ErrorInfo(
            message=message,
            category=category,
            severity=ErrorSeverity.HIGH,
            original_exception=original_exception,
            context={"url": url} if url else {},
            recovery_suggestions=[
                "Check internet connection",
                "Increase the delay between requests",
                "Try again after a few minutes"
            ]
        )
        super().__init__(message, error_info)
        self.url = url


class ContentMissingError(TransientFetchError):
    """The page answered but the expected document was not there (404 and friends)"""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        error_info = ErrorInfo(
            message=message,
            category=ErrorCategory.CONTENT_MISSING,
            severity=ErrorSeverity.MEDIUM,
            context={"url": url, "status_code": status_code},
            recovery_suggestions=[
                "Verify the problem slug exists",
                "Check whether the page requires a premium account"
            ]
        )
        super().__init__(message, url=url, error_info=error_info)
        self.status_code = status_code


class CaptchaDetectedError(TransientFetchError):
    """CAPTCHA or bot check detected during scraping"""

    def __init__(self, message: str, url: Optional[str] = None):
        error_info = ErrorInfo(
            message=message,
            category=ErrorCategory.CAPTCHA,
            severity=ErrorSeverity.HIGH,
            context={"url": url} if url else {},
            recovery_suggestions=[
                "Wait for some time before retrying",
                "Run with --no-headless and solve the check manually",
                "Reduce scraping frequency"
            ]
        )
        super().__init__(message, url=url, error_info=error_info)


class RateLimitError(TransientFetchError):
    """Rate limiting reported by the target site"""

    def __init__(self, message: str, retry_after: Optional[int] = None, url: Optional[str] = None):
        error_info = ErrorInfo(
            message=message,
            category=ErrorCategory.RATE_LIMITING,
            severity=ErrorSeverity.MEDIUM,
            context={"url": url, "retry_after": retry_after},
            recovery_suggestions=[
                f"Wait {retry_after} seconds before retrying" if retry_after else "Wait before retrying",
                "Increase delay between requests"
            ]
        )
        super().__init__(message, url=url, error_info=error_info)
        self.retry_after = retry_after


class ConfigurationError(ScrapeError):
    """Invalid configuration or policy values. Fatal, never retried."""

    def __init__(self, message: str, setting: Optional[str] = None, value: Any = None):
        error_info = ErrorInfo(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            context={"setting": setting, "value": value} if setting else {},
            recovery_suggestions=[
                "Check the configuration file and command line flags"
            ]
        )
        super().__init__(message, error_info)


class ExportError(ScrapeError):
    """File system errors while writing datasets"""

    def __init__(self, message: str, path: Optional[str] = None,
                 original_exception: Optional[Exception] = None):
        error_info = ErrorInfo(
            message=message,
            category=ErrorCategory.EXPORT,
            severity=ErrorSeverity.HIGH,
            original_exception=original_exception,
            context={"path": path} if path else {},
            recovery_suggestions=[
                "Check file/directory permissions",
                "Ensure sufficient disk space",
                "Try a different output location"
            ]
        )
        super().__init__(message, error_info)


# =============================================================================
# Error Detection Utilities
# =============================================================================

class ErrorDetector:
    """Utilities for detecting specific types of errors"""

    CAPTCHA_INDICATORS = [
        'captcha', 'recaptcha', 'hcaptcha', 'verify you are human',
        'checking your browser', 'cf-challenge', 'bot detection'
    ]

    RATE_LIMIT_INDICATORS = [
        'too many requests', 'rate limit exceeded', 'temporarily blocked'
    ]

    @staticmethod
    def is_network_error(exception: Exception) -> bool:
        """Check if exception is a network-related error"""
        network_exceptions = (
            ConnectionError, Timeout, socket.timeout, socket.gaierror,
            MaxRetryError, NewConnectionError, ChunkedEncodingError
        )
        return isinstance(exception, network_exceptions)

    @staticmethod
    def is_http_error(exception: Exception) -> Tuple[bool, Optional[int]]:
        """Check if exception is an HTTP error and return status code"""
        if isinstance(exception, HTTPError):
            response = exception.response
            return True, response.status_code if response is not None else None
        return False, None

    @staticmethod
    def is_selenium_error(exception: Exception) -> bool:
        """Check if exception is a Selenium-related error"""
        selenium_exceptions = (
            WebDriverException, TimeoutException, NoSuchElementException,
            StaleElementReferenceException, SessionNotCreatedException,
            InvalidSessionIdException
        )
        return isinstance(exception, selenium_exceptions)

    @classmethod
    def is_captcha_detected(cls, content: str) -> bool:
        """Detect CAPTCHA in page content"""
        content_lower = (content or "").lower()
        return any(indicator in content_lower for indicator in cls.CAPTCHA_INDICATORS)

    @classmethod
    def is_rate_limited(cls, content: str) -> bool:
        """Detect rate limiting notices in page content"""
        content_lower = (content or "").lower()
        return any(indicator in content_lower for indicator in cls.RATE_LIMIT_INDICATORS)

    @staticmethod
    def check_disk_space(path: str, required_mb: int = 50) -> bool:
        """Check if there's sufficient disk space"""
        try:
            free_bytes = shutil.disk_usage(path).free
        except OSError:
            return True  # Assume sufficient space if can't check
        return free_bytes / (1024 * 1024) >= required_mb


def to_transient_error(exception: Exception, url: Optional[str] = None) -> TransientFetchError:
    """Wrap a driver or HTTP client exception into a TransientFetchError"""
    if isinstance(exception, TransientFetchError):
        return exception

    is_http, status_code = ErrorDetector.is_http_error(exception)
    if is_http and status_code == 404:
        return ContentMissingError(f"Content not found (404): {url}", url, status_code=404)
    if is_http and status_code in (429, 503):
        return RateLimitError(f"Rate limited (HTTP {status_code})", url=url)

    if ErrorDetector.is_selenium_error(exception):
        message = f"Browser automation error: {str(exception).strip()}"
        category = ErrorCategory.SELENIUM
    elif ErrorDetector.is_network_error(exception):
        message = f"Network error: {exception}"
        category = ErrorCategory.NETWORK
    else:
        message = f"Unexpected fetch error: {exception}"
        category = ErrorCategory.UNKNOWN
    return TransientFetchError(message, original_exception=exception, url=url, category=category)


# =============================================================================
# Error Reporting
# =============================================================================

class ErrorReporter:
    """Centralized error reporting and logging"""

    def __init__(self):
        self.error_history: List[ErrorInfo] = []

    def report_error(self, error_info: Optional[ErrorInfo], context: Optional[Dict[str, Any]] = None):
        """Report an error with full context"""
        if error_info is None:
            return

        self.error_history.append(error_info)

        # Log based on severity
        if error_info.severity == ErrorSeverity.CRITICAL:
            logger.critical(f"CRITICAL ERROR: {error_info.message}")
        elif error_info.severity == ErrorSeverity.HIGH:
            logger.error(f"ERROR: {error_info.message}")
        elif error_info.severity == ErrorSeverity.MEDIUM:
            logger.warning(f"WARNING: {error_info.message}")
        else:
            logger.info(f"INFO: {error_info.message}")

        if error_info.context:
            logger.debug(f"Context: {error_info.context}")

        if context:
            logger.debug(f"Additional context: {context}")

        if error_info.traceback_str:
            logger.debug(f"Traceback: {error_info.traceback_str}")

    def clear(self):
        self.error_history.clear()

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of all reported errors"""
        if not self.error_history:
            return {"total_errors": 0, "categories": {}, "severity_counts": {}}

        categories: Dict[str, int] = {}
        severity_counts: Dict[str, int] = {}

        for error in self.error_history:
            cat = error.category.value
            categories[cat] = categories.get(cat, 0) + 1

            sev = error.severity.value
            severity_counts[sev] = severity_counts.get(sev, 0) + 1

        return {
            "total_errors": len(self.error_history),
            "categories": categories,
            "severity_counts": severity_counts,
            "recent_errors": [
                {
                    "message": e.message,
                    "category": e.category.value,
                    "severity": e.severity.value,
                    "timestamp": e.timestamp.isoformat()
                }
                for e in self.error_history[-10:]  # Last 10 errors
            ]
        }


# Global error reporter instance
error_reporter = ErrorReporter()


def handle_exception(func: Callable) -> Callable:
    """Decorator to report exceptions and re-raise them as ScrapeError"""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ScrapeError as e:
            error_reporter.report_error(e.error_info)
            raise
        except Exception as e:
            error_info = ErrorInfo(
                message=f"Unexpected error in {func.__name__}: {str(e)}",
                category=ErrorCategory.UNKNOWN,
                severity=ErrorSeverity.MEDIUM,
                original_exception=e,
                traceback_str=traceback.format_exc()
            )
            error_reporter.report_error(error_info)
            raise ScrapeError(f"Unexpected error: {str(e)}", error_info) from e

    return wrapper
