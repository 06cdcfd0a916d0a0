"""
Page access for the scrapers

A Page is the only thing extraction code touches: it navigates, runs CSS
queries, reads element text and attributes, walks siblings and reads
iframes. Two implementations share the interface:

- SeleniumPage drives headless Chrome (webdriver-manager, falling back to the
  system driver) for client-rendered pages such as LeetCode.
- StaticPage fetches with a requests session and parses with BeautifulSoup.
  StaticPage.from_html() wraps a literal document, which is how the tests
  exercise the extraction code without a browser.

Element handles are opaque: a WebElement for SeleniumPage, a bs4 Tag for
StaticPage. They are only ever passed back to the page that produced them.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import requests
from bs4 import BeautifulSoup, Tag
from requests.adapters import HTTPAdapter
from requests.exceptions import RequestException
from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.support.ui import WebDriverWait
from urllib3.util.retry import Retry
from webdriver_manager.chrome import ChromeDriverManager

from utils.error_handler import (
    CaptchaDetectedError, ContentMissingError, ErrorDetector, RateLimitError,
    TransientFetchError, to_transient_error
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameReadResult:
    """Outcome of reading an iframe: text when readable, error when not"""
    src: str
    text: Optional[str] = None
    error: Optional[str] = None

    @property
    def readable(self) -> bool:
        return self.text is not None


class Page(ABC):
    """DOM access used by extraction functions"""

    @abstractmethod
    def goto(self, url: str) -> None:
        """Navigate to url. Raises TransientFetchError on failure."""

    @property
    @abstractmethod
    def current_url(self) -> str:
        pass

    @abstractmethod
    def query_all(self, selector: str, within: Any = None) -> List[Any]:
        pass

    @abstractmethod
    def text_of(self, element: Any) -> str:
        pass

    @abstractmethod
    def tag_name(self, element: Any) -> str:
        pass

    @abstractmethod
    def attribute(self, element: Any, name: str) -> Optional[str]:
        pass

    @abstractmethod
    def following_siblings(self, element: Any, limit: int) -> List[Any]:
        pass

    @abstractmethod
    def read_frame(self, element: Any) -> FrameReadResult:
        pass

    @abstractmethod
    def body_text(self) -> str:
        pass

    def close(self) -> None:
        pass

    def query_first(self, selector: str, within: Any = None) -> Optional[Any]:
        elements = self.query_all(selector, within)
        return elements[0] if elements else None

    def check_blocked(self, url: str) -> None:
        """Raise when the visible page is a bot check or a rate limit notice"""
        visible = self.body_text()
        if ErrorDetector.is_captcha_detected(visible):
            raise CaptchaDetectedError(f"CAPTCHA detected on page: {url}", url)
        if ErrorDetector.is_rate_limited(visible):
            raise RateLimitError(f"Rate limiting detected on page: {url}", url=url)


# =============================================================================
# Selenium
# =============================================================================

def create_chrome_driver(headless: bool = True, timeout: int = 30, user_agent: Optional[str] = None):
    """Start Chrome, preferring a webdriver-manager driver over the system one"""
    chrome_options = Options()
    if headless:
        chrome_options.add_argument('--headless=new')
    chrome_options.add_argument('--no-sandbox')
    chrome_options.add_argument('--disable-dev-shm-usage')
    chrome_options.add_argument('--disable-gpu')
    chrome_options.add_argument('--window-size=1920,1080')
    chrome_options.add_argument('--disable-blink-features=AutomationControlled')
    chrome_options.add_experimental_option("excludeSwitches", ["enable-automation"])
    chrome_options.add_experimental_option('useAutomationExtension', False)
    if user_agent:
        chrome_options.add_argument(f'--user-agent={user_agent}')

    try:
        service = Service(ChromeDriverManager().install())
        driver = webdriver.Chrome(service=service, options=chrome_options)
    except Exception as driver_error:
        logger.warning(f"ChromeDriverManager failed: {driver_error}. Trying system Chrome driver...")
        try:
            driver = webdriver.Chrome(options=chrome_options)
        except WebDriverException as e:
            raise TransientFetchError(f"Failed to create WebDriver session: {e}", original_exception=e)

    driver.set_page_load_timeout(timeout)
    driver.execute_script("Object.defineProperty(navigator, 'webdriver', {get: () => undefined})")
    logger.info("WebDriver setup completed successfully")
    return driver


class SeleniumPage(Page):
    """Page backed by a Selenium WebDriver"""

    def __init__(self, driver, timeout: int = 30, settle_delay: float = 2.0,
                 sleep: Callable[[float], Any] = time.sleep):
        self.driver = driver
        self.timeout = timeout
        self.settle_delay = settle_delay
        self._sleep = sleep

    def goto(self, url: str) -> None:
        logger.info(f"Fetching content from: {url}")
        try:
            self.driver.get(url)
            try:
                WebDriverWait(self.driver, self.timeout).until(
                    lambda driver: driver.execute_script("return document.readyState") == "complete"
                )
            except TimeoutException:
                logger.warning(f"Page load timeout for {url}, continuing with partial content")

            # Client-rendered content keeps arriving after readyState
            self._sleep(self.settle_delay)

            title = self.driver.title or ""
            if "404" in title or "Not Found" in title:
                raise ContentMissingError(f"Page not found: {url}", url, status_code=404)
        except TransientFetchError:
            raise
        except WebDriverException as e:
            raise to_transient_error(e, url)

        self.check_blocked(url)

    @property
    def current_url(self) -> str:
        return self.driver.current_url

    def query_all(self, selector: str, within: Any = None) -> List[Any]:
        root = within if within is not None else self.driver
        try:
            return root.find_elements(By.CSS_SELECTOR, selector)
        except WebDriverException as e:
            logger.debug(f"Selector {selector!r} failed: {e}")
            return []

    def text_of(self, element: Any) -> str:
        try:
            return element.get_attribute("textContent") or element.text or ""
        except WebDriverException as e:
            logger.debug(f"Could not read element text: {e}")
            return ""

    def tag_name(self, element: Any) -> str:
        try:
            return (element.tag_name or "").lower()
        except WebDriverException:
            return ""

    def attribute(self, element: Any, name: str) -> Optional[str]:
        try:
            return element.get_attribute(name)
        except WebDriverException:
            return None

    def following_siblings(self, element: Any, limit: int) -> List[Any]:
        try:
            return element.find_elements(By.XPATH, f"following-sibling::*[position() <= {int(limit)}]")
        except WebDriverException as e:
            logger.debug(f"Could not walk siblings: {e}")
            return []

    def read_frame(self, element: Any) -> FrameReadResult:
        src = self.attribute(element, "src") or ""
        try:
            self.driver.switch_to.frame(element)
            body = self.driver.find_element(By.TAG_NAME, "body")
            text = body.get_attribute("textContent") or ""
            return FrameReadResult(src=src, text=text.strip())
        except WebDriverException as e:
            return FrameReadResult(src=src, error=getattr(e, "msg", None) or repr(e))
        finally:
            try:
                self.driver.switch_to.default_content()
            except WebDriverException as e:
                logger.warning(f"Could not leave iframe {src}: {e}")

    def body_text(self) -> str:
        try:
            return self.driver.find_element(By.TAG_NAME, "body").text or ""
        except WebDriverException:
            return ""

    def close(self) -> None:
        try:
            self.driver.quit()
            logger.info("WebDriver closed successfully")
        except WebDriverException as e:
            logger.warning(f"Error closing WebDriver: {e}")


# =============================================================================
# requests + BeautifulSoup
# =============================================================================

def build_session(user_agent: str) -> requests.Session:
    """requests session with browser-like headers and urllib3 retries for 5xx"""
    session = requests.Session()
    session.headers.update({
        'User-Agent': user_agent,
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
        'Accept-Language': 'en-US,en;q=0.5',
        'Connection': 'keep-alive',
    })
    retry_strategy = Retry(
        total=2,
        backoff_factor=1,
        status_forcelist=[500, 502, 504],
        allowed_methods=["HEAD", "GET", "OPTIONS"]
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class StaticPage(Page):
    """Page backed by a requests session and a BeautifulSoup tree"""

    FRAME_UNREADABLE = "frame content is only readable from srcdoc without a browser"

    def __init__(self, session: Optional[requests.Session] = None, timeout: int = 30):
        self.session = session
        self.timeout = timeout
        self.soup = BeautifulSoup("", "lxml")
        self._url = "about:blank"

    @classmethod
    def from_html(cls, html: str, url: str = "about:blank") -> "StaticPage":
        page = cls()
        page.load_html(html, url)
        return page

    def load_html(self, html: str, url: str) -> None:
        self.soup = BeautifulSoup(html, "lxml")
        self._url = url

    def goto(self, url: str) -> None:
        if self.session is None:
            raise TransientFetchError(f"No HTTP session available to fetch {url}", url=url)

        logger.info(f"Fetching content from: {url}")
        try:
            response = self.session.get(url, timeout=(max(1, self.timeout // 2), self.timeout),
                                        allow_redirects=True)
            if response.status_code == 429:
                retry_after = response.headers.get('Retry-After')
                raise RateLimitError("Rate limited by server",
                                     int(retry_after) if retry_after and retry_after.isdigit() else None, url)
            response.raise_for_status()
        except TransientFetchError:
            raise
        except RequestException as e:
            raise to_transient_error(e, url)

        self.load_html(response.text, response.url)
        self.check_blocked(url)

    @property
    def current_url(self) -> str:
        return self._url

    def query_all(self, selector: str, within: Any = None) -> List[Any]:
        root = within if within is not None else self.soup
        try:
            return root.select(selector)
        except (ValueError, NotImplementedError) as e:
            logger.debug(f"Selector {selector!r} failed: {e}")
            return []

    def text_of(self, element: Any) -> str:
        return element.get_text() if element is not None else ""

    def tag_name(self, element: Any) -> str:
        return (element.name or "").lower()

    def attribute(self, element: Any, name: str) -> Optional[str]:
        value = element.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    def following_siblings(self, element: Any, limit: int) -> List[Any]:
        siblings = []
        for sibling in element.next_siblings:
            if len(siblings) >= limit:
                break
            if isinstance(sibling, Tag):
                siblings.append(sibling)
        return siblings

    def read_frame(self, element: Any) -> FrameReadResult:
        src = element.get("src") or ""
        srcdoc = element.get("srcdoc")
        if not srcdoc:
            return FrameReadResult(src=src, error=self.FRAME_UNREADABLE)
        frame = BeautifulSoup(srcdoc, "lxml")
        root = frame.body or frame
        return FrameReadResult(src=src, text=root.get_text().strip())

    def body_text(self) -> str:
        root = self.soup.body or self.soup
        return root.get_text("\n")

    def close(self) -> None:
        if self.session is not None:
            self.session.close()
