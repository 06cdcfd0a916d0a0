"""
Base scraper class for CodeSage Scrape

This module provides the abstract base class shared by site-specific scrapers.
It owns the session-wide configuration, builds Page objects (headless Chrome or
requests + BeautifulSoup), enforces the delay between requests and drives batch
runs through the retry/fallback orchestrator.

The BaseScraper class implements:
- Scoped page acquisition through the open_page() context manager
- Rate limiting between navigations
- Batch processing with per-item retries and static fallbacks
- Text normalization shared by the extraction code

Example:
    >>> from scraper.leetcode_scraper import LeetCodeScraper
    >>> scraper = LeetCodeScraper(ScrapingConfig(headless=True))
    >>> dataset = scraper.scrape_problems(limit=5)
    >>> len(dataset.problems)
    5

Note:
    Site-specific scrapers must implement scrape_problem(), which is the one
    extraction every batch mode performs.
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, Sequence

from scraper.classifier import ExtractionClassifier
from scraper.models import Problem, ProblemEntry
from scraper.page import Page, SeleniumPage, StaticPage, build_session, create_chrome_driver
from utils.config import ScrapingConfig
from utils.retry import ExtractionResult, run_batch, run_with_retry

logger = logging.getLogger(__name__)


class BaseScraper(ABC):
    """
    Abstract base class for site-specific scrapers.

    Attributes:
        config (ScrapingConfig): Session-wide settings
        classifier (ExtractionClassifier): Code/comment/approach classifier built from config
        policy (RetryPolicy): Retry policy applied to every batch item

    Args:
        config (ScrapingConfig, optional): Settings, defaults to ScrapingConfig()
        page_factory (Callable[[], Page], optional): Builds the page used by
            open_page(). Defaults to headless Chrome, or to a requests-backed
            StaticPage when config.use_browser is False.
        sleep (Callable[[float], Any], optional): Blocking wait used for rate
            limiting and backoff. Tests inject a recorder.
    """

    def __init__(self, config: Optional[ScrapingConfig] = None,
                 page_factory: Optional[Callable[[], Page]] = None,
                 sleep: Callable[[float], Any] = time.sleep):
        self.config = config or ScrapingConfig()
        self.classifier = ExtractionClassifier.from_config(self.config)
        self.policy = self.config.retry_policy()
        self._page_factory = page_factory
        self._sleep = sleep
        self.last_request_time: Optional[float] = None

    def create_page(self) -> Page:
        """Build a fresh page for one scraping session"""
        if self._page_factory is not None:
            return self._page_factory()

        if self.config.use_browser:
            driver = create_chrome_driver(
                headless=self.config.headless,
                timeout=self.config.timeout,
                user_agent=self.config.user_agent,
            )
            return SeleniumPage(driver, timeout=self.config.timeout,
                                settle_delay=self.config.settle_delay, sleep=self._sleep)

        return StaticPage(build_session(self.config.user_agent), timeout=self.config.timeout)

    @contextmanager
    def open_page(self) -> Iterator[Page]:
        """Yield a page and close it however the block exits"""
        page = self.create_page()
        try:
            yield page
        finally:
            page.close()

    def navigate(self, page: Page, url: str) -> None:
        """Go to url once at least delay_between_requests has passed since the last navigation"""
        self._enforce_rate_limit()
        page.goto(url)

    def _enforce_rate_limit(self) -> None:
        now = time.monotonic()
        if self.last_request_time is not None:
            remaining = self.config.delay_between_requests - (now - self.last_request_time)
            if remaining > 0:
                logger.debug(f"Rate limiting: sleeping for {remaining:.2f} seconds")
                self._sleep(remaining)
        self.last_request_time = time.monotonic()

    def retry(self, operation: Callable[[], Any], fallback: Any, label: str) -> ExtractionResult:
        """Run one extraction with the scraper's retry policy and a static fallback"""
        return run_with_retry(operation, self.policy, fallback, item_id=label, sleep=self._sleep)

    def run_items(self, entries: Sequence[ProblemEntry],
                  operation: Callable[[ProblemEntry], Any],
                  fallback: Callable[[ProblemEntry], Any],
                  on_result: Optional[Callable[[ExtractionResult], Any]] = None) -> List[ExtractionResult]:
        """Run operation for every entry with retries, fallbacks and the inter-item delay"""
        return run_batch(
            entries,
            operation,
            fallback,
            self.policy,
            inter_item_delay=self.config.delay_between_requests,
            sleep=self._sleep,
            item_id=lambda entry: entry.slug,
            on_result=on_result,
        )

    @staticmethod
    def clean_and_format_text(text: str) -> str:
        """
        Normalize text pulled from the DOM.

        Collapses runs of spaces and blank lines, trims spaces around newlines
        and decodes HTML entities that survived extraction.

        Args:
            text (str): Raw text content

        Returns:
            str: Cleaned text
        """
        if not text:
            return ""

        text = text.replace('\r\n', '\n').replace('\r', '\n').replace('\xa0', ' ')
        text = re.sub(r'[ \t]+', ' ', text.strip())
        text = re.sub(r' *\n *', '\n', text)
        text = re.sub(r'\n{3,}', '\n\n', text)

        html_entities = {
            '&nbsp;': ' ',
            '&lt;': '<',
            '&gt;': '>',
            '&quot;': '"',
            '&#39;': "'",
            '&hellip;': '...',
            '&amp;': '&',
        }
        for entity, replacement in html_entities.items():
            text = text.replace(entity, replacement)

        return text.strip()

    @abstractmethod
    def scrape_problem(self, page: Page, entry: ProblemEntry) -> Problem:
        """
        Extract the problem statement for entry.

        Raises:
            TransientFetchError: If navigation fails or the statement is missing
        """
