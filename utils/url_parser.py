"""
URL parsing for LeetCode problem pages

Recognizes problem, editorial, solutions and discuss URLs, extracts the
problem slug and builds the related URLs for a slug. The URL templates are
configuration data, so a mirror such as leetcode.cn only needs another
base URL.

Example:
    >>> parser = URLParser()
    >>> parser.parse_url("https://leetcode.com/problems/two-sum/editorial/")
    {'is_valid': True, 'slug': 'two-sum', 'page_type': 'editorial', 'url': 'https://leetcode.com/problems/two-sum/editorial/'}
    >>> parser.editorial_url("two-sum")
    'https://leetcode.com/problems/two-sum/editorial/'
"""

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

LEETCODE_BASE_URL = "https://leetcode.com"

SLUG_PATTERN = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*$')


class URLParser:
    """
    Parse LeetCode URLs and build per-problem URLs.

    Attributes:
        URL_TEMPLATES (Dict[str, str]): Page type -> path template with a {slug} field
    """

    URL_TEMPLATES = {
        'problem': "/problems/{slug}/",
        'editorial': "/problems/{slug}/editorial/",
        'solutions': "/problems/{slug}/solutions/",
        'discuss': "/problems/{slug}/discuss/",
    }

    PAGE_PATTERN = re.compile(
        r'^https?://(?:www\.)?leetcode\.(?:com|cn)/problems/([a-z0-9-]+)'
        r'(?:/(description|editorial|solutions|discuss))?/?(?:[?#].*)?$'
    )

    def __init__(self, base_url: str = LEETCODE_BASE_URL):
        self.base_url = base_url.rstrip('/')

    def parse_url(self, url: str) -> Dict[str, Any]:
        """
        Parse a LeetCode problem URL.

        Args:
            url (str): URL to parse

        Returns:
            Dict[str, Any]: is_valid, slug, page_type ('problem', 'editorial',
                'solutions' or 'discuss') and the stripped url
        """
        result = {'is_valid': False, 'slug': None, 'page_type': None, 'url': url}
        if not url or not isinstance(url, str):
            return result

        url = url.strip()
        result['url'] = url
        match = self.PAGE_PATTERN.match(url)
        if not match:
            logger.debug(f"Not a LeetCode problem URL: {url}")
            return result

        section = match.group(2)
        result.update({
            'is_valid': True,
            'slug': match.group(1),
            'page_type': 'problem' if section in (None, 'description') else section,
        })
        return result

    def extract_slug(self, value: str) -> Optional[str]:
        """Return the slug of a problem URL, or value itself when it already is a slug"""
        if not value:
            return None
        value = value.strip()
        if SLUG_PATTERN.match(value):
            return value
        return self.parse_url(value)['slug']

    def build_url(self, page_type: str, slug: str) -> str:
        if page_type not in self.URL_TEMPLATES:
            raise ValueError(f"Unknown page type: {page_type}")
        return self.base_url + self.URL_TEMPLATES[page_type].format(slug=slug)

    def problem_url(self, slug: str) -> str:
        return self.build_url('problem', slug)

    def editorial_url(self, slug: str) -> str:
        return self.build_url('editorial', slug)

    def solutions_url(self, slug: str) -> str:
        return self.build_url('solutions', slug)

    def discuss_url(self, slug: str) -> str:
        return self.build_url('discuss', slug)

    def is_page_type(self, url: str, page_type: str) -> bool:
        """True when url is still on the given page type, e.g. after a redirect"""
        parsed = urlparse(url or "")
        return f"/{page_type}" in parsed.path

    @staticmethod
    def title_from_slug(slug: str) -> str:
        return " ".join(word.capitalize() for word in slug.split('-'))
