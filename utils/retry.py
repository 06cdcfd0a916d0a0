"""
Retry / fallback orchestration for CodeSage Scrape

Every network-facing extraction runs through run_with_retry(): bounded
attempts, a wait between attempts, and a deterministic fallback value when all
attempts fail, so a batch of independent problems degrades instead of
aborting. run_batch() drives a whole list of items through it sequentially,
sleeping between items to stay under the target site's rate limits.

Example:
    >>> policy = RetryPolicy(max_attempts=3, base_delay=1.0)
    >>> result = run_with_retry(lambda: fetch("two-sum"), policy,
    ...                         fallback={"slug": "two-sum"}, item_id="two-sum")
    >>> result.is_fallback
    False
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

from utils.error_handler import (
    ConfigurationError, ErrorCategory, ErrorInfo, ErrorSeverity, ScrapeError,
    error_reporter
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
ItemT = TypeVar("ItemT")

BACKOFF_STRATEGIES = ("linear", "exponential")


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often and how patiently an operation is retried.

    Attributes:
        max_attempts (int): Attempts including the first try
        base_delay (float): Seconds to wait after the first failure
        backoff (str): 'linear' waits base_delay * attempt,
            'exponential' waits base_delay * multiplier ** (attempt - 1)
        multiplier (float): Growth factor for exponential backoff
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    backoff: str = "linear"
    multiplier: float = 2.0

    def __post_init__(self):
        if not isinstance(self.max_attempts, int) or self.max_attempts < 1:
            raise ConfigurationError(
                f"max_attempts must be a positive integer, got {self.max_attempts!r}",
                "max_attempts", self.max_attempts)
        if self.base_delay < 0:
            raise ConfigurationError(
                f"base_delay cannot be negative, got {self.base_delay}",
                "base_delay", self.base_delay)
        if self.backoff not in BACKOFF_STRATEGIES:
            raise ConfigurationError(
                f"Unknown backoff strategy {self.backoff!r}, expected one of {BACKOFF_STRATEGIES}",
                "backoff", self.backoff)
        if self.multiplier < 1:
            raise ConfigurationError(
                f"multiplier must be >= 1, got {self.multiplier}",
                "multiplier", self.multiplier)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt"""
        if self.backoff == "exponential":
            return self.base_delay * (self.multiplier ** (attempt - 1))
        return self.base_delay * attempt


@dataclass
class ExtractionResult(Generic[T]):
    """Outcome of one orchestrated operation"""
    item_id: str
    value: T
    is_fallback: bool = False
    attempts: int = 0
    error: Optional[str] = None

    @property
    def recovered(self) -> bool:
        """True when the operation succeeded only after a retry"""
        return not self.is_fallback and self.attempts > 1


def run_with_retry(operation: Callable[[], T], policy: RetryPolicy, fallback: T,
                   item_id: str = "", sleep: Callable[[float], Any] = time.sleep) -> ExtractionResult[T]:
    """
    Run operation with bounded retries and a static fallback.

    ConfigurationError raised by the operation propagates immediately, every
    other exception counts as a failed attempt. The wait happens only between
    attempts, so N attempts produce at most N - 1 waits.

    Args:
        operation: Zero-argument callable doing the fetch and extraction
        policy: Retry policy
        fallback: Value returned when every attempt fails
        item_id: Identifier used in log messages
        sleep: Blocking wait function, injectable for tests

    Returns:
        ExtractionResult: The operation's value, or the fallback flagged with is_fallback
    """
    label = item_id or getattr(operation, "__name__", "operation")
    last_error: Optional[Exception] = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            value = operation()
        except ConfigurationError:
            raise
        except Exception as e:
            last_error = e
            _report_attempt_failure(label, attempt, policy.max_attempts, e)

            if attempt == policy.max_attempts:
                break

            wait = policy.delay_for(attempt)
            logger.warning(f"Attempt {attempt}/{policy.max_attempts} failed for {label}: {e}. "
                           f"Retrying in {wait:.1f} seconds...")
            sleep(wait)
            continue

        if attempt > 1:
            logger.info(f"Recovered {label} on attempt {attempt}/{policy.max_attempts}")
        return ExtractionResult(item_id=item_id, value=value, is_fallback=False, attempts=attempt)

    logger.error(f"All {policy.max_attempts} attempts failed for {label}; using static fallback "
                 f"(last error: {last_error})")
    return ExtractionResult(item_id=item_id, value=fallback, is_fallback=True,
                            attempts=policy.max_attempts,
                            error=str(last_error) if last_error else None)


def _report_attempt_failure(label: str, attempt: int, max_attempts: int, error: Exception):
    if isinstance(error, ScrapeError):
        error_reporter.report_error(error.error_info, {"item": label, "attempt": attempt})
        return
    error_reporter.report_error(ErrorInfo(
        message=f"Attempt {attempt}/{max_attempts} failed for {label}: {error}",
        category=ErrorCategory.UNKNOWN,
        severity=ErrorSeverity.MEDIUM,
        original_exception=error,
        context={"item": label, "attempt": attempt}
    ))


def run_batch(items: Sequence[ItemT],
              operation: Callable[[ItemT], T],
              fallback: Callable[[ItemT], T],
              policy: RetryPolicy,
              inter_item_delay: float = 0.0,
              sleep: Callable[[float], Any] = time.sleep,
              item_id: Callable[[ItemT], str] = str,
              on_result: Optional[Callable[[ExtractionResult[T]], Any]] = None) -> List[ExtractionResult[T]]:
    """
    Process items one after another through run_with_retry.

    The inter-item delay is applied between items whatever the outcome of the
    previous one. A fallback for one item never stops the batch.

    Args:
        items: Items to process, in order
        operation: Called with one item, returns its extracted value
        fallback: Called with one item, returns its static substitute
        policy: Retry policy applied to each item
        inter_item_delay: Seconds to wait between consecutive items
        sleep: Blocking wait function, injectable for tests
        item_id: Maps an item to the identifier stored on its result
        on_result: Called with each result as soon as it is available

    Returns:
        List[ExtractionResult]: One result per item, in input order
    """
    results: List[ExtractionResult[T]] = []
    total = len(items)

    for index, item in enumerate(items, start=1):
        identifier = item_id(item)
        logger.info(f"Processing item {index}/{total}: {identifier}")

        result = run_with_retry(lambda: operation(item), policy, fallback(item),
                                item_id=identifier, sleep=sleep)
        results.append(result)

        if on_result is not None:
            on_result(result)

        if index < total and inter_item_delay > 0:
            logger.debug(f"Rate limiting: sleeping for {inter_item_delay:.2f} seconds")
            sleep(inter_item_delay)

    fallbacks = sum(1 for result in results if result.is_fallback)
    recovered = sum(1 for result in results if result.recovered)
    logger.info(f"Batch completed: {total} items, {fallbacks} used fallback, {recovered} recovered on retry")
    return results
