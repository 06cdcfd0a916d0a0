"""
LeetCode scraper for CodeSage Scrape

Collects problem statements, editorial implementations, the top community
solution and discussion comments for the problems of the known catalog.

Each batch item is one problem plus the extras requested by the mode. The
problem statement is retried first; when every attempt fails the item becomes
the static fallback problem (and the fallback editorial in solution modes).
Once the statement is in, each extra page is retried on its own, so a broken
editorial or comments page degrades only that extra. An editorial or community
page that loads fine but yields no qualifying code is a classification miss:
the problem is kept and no solution record is produced.

Selectors and URL templates are configuration data: see SELECTORS and
utils.url_parser.URLParser.URL_TEMPLATES.

Example:
    >>> scraper = LeetCodeScraper(ScrapingConfig())
    >>> dataset = scraper.scrape_problems_with_editorials(limit=3)
    >>> [s.is_fallback for s in dataset.solutions]
    [False, False, True]
"""

import logging
import re
from typing import Any, Callable, List, Optional, Sequence, Set

from scraper.base_scraper import BaseScraper
from scraper.classifier import (
    CandidateBlock, ClassifiedArtifact, Provenance, extract_complexity, language_from_class,
    normalize_whitespace, parse_author, parse_votes
)
from scraper.fallbacks import KNOWN_PROBLEMS, fallback_editorial, fallback_problem, find_entry, tags_for
from scraper.models import (
    Comment, Dataset, EditorialApproach, EditorialImplementation, Example, Problem, ProblemBundle, ProblemEntry,
    Solution, VideoSolution
)
from scraper.page import FrameReadResult, Page
from utils.config import ScrapingConfig
from utils.error_handler import ConfigurationError, ContentMissingError
from utils.retry import ExtractionResult
from utils.url_parser import URLParser

logger = logging.getLogger(__name__)

SELECTORS = {
    'description': [
        '[data-track-load="description_content"]',
        '[class*="content"]',
        '[class*="description"]',
        'p',
    ],
    'iframe': 'iframe',
    'headings': 'h1, h2, h3, h4, h5, h6',
    'code': 'pre, code, [class*="code"], [class*="highlight"]',
    'generic_code': 'pre, code, [class*="code"], [class*="highlight"], [class*="lang-"]',
    'approach_text': 'p, div',
    'editorial_text': ['[class*="editorial"]', '[class*="content"]', 'article', 'main'],
    'solution_container': [
        '[data-cy="solution-item"]',
        '.solution-topic',
        '.discuss-topic',
        '[class*="solution-item"]',
        'article',
    ],
    'comments': [
        '.comment-content',
        '.comment-body',
        '.post-content',
        '.discussion-post',
        '.solution-comment',
        '[class*="comment"]',
        '[class*="discussion"]',
        '[class*="post"]',
        '.bg-layer-1',
        '.rounded.p-4',
    ],
    'broad_comments': 'div',
}

EDITORIAL_ANCHORS = ('approach 1', 'implementation')
HEADING_TAGS = {'h1', 'h2', 'h3', 'h4', 'h5', 'h6'}
CODE_TAGS = {'pre', 'code'}
SIBLING_SEARCH_DEPTH = 10
IFRAME_MIN_LENGTH = 50
IFRAME_MAX_LENGTH = 10000
DESCRIPTION_MIN_LENGTH = 50
EDITORIAL_TEXT_MIN_LENGTH = 200
EDITORIAL_TEXT_MAX_LENGTH = 2000
MAX_SOLUTION_CONTAINERS = 20
BROAD_COMMENT_MIN_LENGTH = 100
IMPLEMENTATION_SEPARATOR = "\n\n--- Alternative Implementation ---\n\n"
APPROACH_SIBLING_LIMIT = 40
SECTION_KEYWORD_WINDOW = 40
VIDEO_SOURCES = ('vimeo', 'youtube', 'video')
PLAYGROUND_SOURCES = ('playground', 'shared')

# Sub-sections of an approach, matched against sub-heading text (or the start of a paragraph)
APPROACH_SECTIONS = (
    ('intuition', ('intuition', 'overview', 'idea')),
    ('algorithm', ('algorithm',)),
    ('complexity_analysis', ('complexity',)),
    ('implementation', ('implementation', 'code')),
)

EXAMPLE_PATTERN = re.compile(
    r'Example\s*\d*:\s*Input:?\s*(?P<input>.*?)\s*Output:?\s*(?P<output>.*?)'
    r'(?:\s*Explanation:?\s*(?P<explanation>.*?))?\s*(?=Example\s*\d*:|Constraints:|Follow[- ]up|$)',
    re.DOTALL | re.IGNORECASE
)
CONSTRAINTS_PATTERN = re.compile(r'Constraints:\s*(.*?)\s*(?=Follow[- ]up|$)', re.DOTALL | re.IGNORECASE)
RELATIVE_TIME_PATTERN = re.compile(r'\b\d+\s*(?:second|minute|hour|day|week|month|year)s?\s+ago\b', re.IGNORECASE)


def _heading_level(tag: str) -> int:
    return int(tag[1]) if tag in HEADING_TAGS else 0


def _section_for(text: str) -> Optional[str]:
    lowered = text.lower()
    for name, keywords in APPROACH_SECTIONS:
        if any(keyword in lowered for keyword in keywords):
            return name
    return None


class LeetCodeScraper(BaseScraper):
    """
    Scraper for leetcode.com.

    Every extraction method receives the page explicitly. The batch modes open
    one page for the whole run and close it when the run ends.

    Example:
        >>> scraper = LeetCodeScraper(ScrapingConfig(use_browser=False))
        >>> with scraper.open_page() as page:
        ...     problem = scraper.scrape_problem(page, find_entry("two-sum"))
    """

    def __init__(self, config: Optional[ScrapingConfig] = None, page_factory=None, sleep=None,
                 url_parser: Optional[URLParser] = None):
        kwargs = {'sleep': sleep} if sleep is not None else {}
        super().__init__(config, page_factory=page_factory, **kwargs)
        self.url_parser = url_parser or URLParser()

    # =========================================================================
    # Problem statement
    # =========================================================================

    def scrape_problem(self, page: Page, entry: ProblemEntry) -> Problem:
        url = self.url_parser.problem_url(entry.slug)
        self.navigate(page, url)

        description = self._find_description(page)
        if not description:
            raise ContentMissingError(f"Problem description not found for {entry.slug}", url)

        logger.info(f"Scraped problem statement for {entry.title}")
        return Problem(
            id=entry.slug,
            title=entry.title,
            slug=entry.slug,
            difficulty=entry.difficulty,
            description=description,
            url=url,
            tags=tags_for(entry.slug),
            constraints=self.parse_constraints(description),
            examples=self.parse_examples(description),
            provenance="problem-page",
        )

    def _find_description(self, page: Page) -> Optional[str]:
        for selector in SELECTORS['description']:
            element = page.query_first(selector)
            if element is None:
                continue
            text = self.clean_and_format_text(page.text_of(element))
            if len(text) > DESCRIPTION_MIN_LENGTH:
                logger.debug(f"Description found with selector {selector!r}")
                return text
        return None

    @staticmethod
    def parse_examples(description: str) -> List[Example]:
        examples = []
        for match in EXAMPLE_PATTERN.finditer(description or ""):
            explanation = match.group('explanation')
            examples.append(Example(
                input=normalize_whitespace(match.group('input')),
                output=normalize_whitespace(match.group('output')),
                explanation=normalize_whitespace(explanation) if explanation else None,
            ))
        return examples

    @staticmethod
    def parse_constraints(description: str) -> str:
        match = CONSTRAINTS_PATTERN.search(description or "")
        return match.group(1).strip() if match else ""

    # =========================================================================
    # Editorial
    # =========================================================================

    @staticmethod
    def read_frames(page: Page) -> List[FrameReadResult]:
        return [page.read_frame(frame) for frame in page.query_all(SELECTORS['iframe'])]

    def collect_editorial_candidates(self, page: Page,
                                     frames: Optional[Sequence[FrameReadResult]] = None) -> List[List[CandidateBlock]]:
        """
        Candidate code blocks from the two preferred editorial locations, as priority tiers.

        Priority 1 is the content of iframes (the code playgrounds). Priority 2
        is code elements among the siblings that follow an 'Approach 1' or
        'Implementation' heading, up to the next heading.
        """
        frame_candidates = []
        for result in self.read_frames(page) if frames is None else frames:
            if not result.readable:
                logger.debug(f"Skipping unreadable iframe {result.src or '<inline>'}: {result.error}")
                continue
            if IFRAME_MIN_LENGTH < len(result.text) < IFRAME_MAX_LENGTH:
                frame_candidates.append(CandidateBlock(result.text, Provenance.IFRAME))

        candidates = []
        for heading in page.query_all(SELECTORS['headings']):
            heading_text = page.text_of(heading).lower()
            if not any(anchor in heading_text for anchor in EDITORIAL_ANCHORS):
                continue
            for sibling in page.following_siblings(heading, SIBLING_SEARCH_DEPTH):
                if page.tag_name(sibling) in HEADING_TAGS:
                    break
                elements = page.query_all(SELECTORS['code'], within=sibling)
                if page.tag_name(sibling) in CODE_TAGS:
                    elements = [sibling] + elements
                candidates.extend(self._code_blocks(page, elements, Provenance.SIBLING_OF_HEADING))

        return [frame_candidates, candidates]

    def collect_generic_code_candidates(self, page: Page) -> List[CandidateBlock]:
        return self._code_blocks(page, page.query_all(SELECTORS['generic_code']),
                                 Provenance.GENERIC_CODE_ELEMENT)

    def _code_blocks(self, page: Page, elements: Sequence[Any], provenance: Provenance) -> List[CandidateBlock]:
        blocks = []
        for element in elements:
            text = page.text_of(element)
            if text and text.strip():
                hint = language_from_class(page.attribute(element, 'class'))
                blocks.append(CandidateBlock(text, provenance, hint))
        return blocks

    def scrape_editorial(self, page: Page, entry: ProblemEntry) -> Optional[Solution]:
        """
        Extract the editorial implementations of entry.

        Returns:
            Optional[Solution]: The editorial, or None when no candidate qualifies as code
        """
        url = self.url_parser.editorial_url(entry.slug)
        self.navigate(page, url)

        frames = self.read_frames(page)
        seen: Set[str] = set()
        code = self.classifier.classify_code_by_priority(self.collect_editorial_candidates(page, frames), seen=seen)
        if not code:
            logger.info("No code near the approach headings, falling back to a generic code search")
            code = self.classifier.classify_code(self.collect_generic_code_candidates(page), seen=seen)

        if not code:
            logger.warning(f"No substantial editorial implementation found for {entry.title}")
            return None

        body = page.body_text()
        approach_blocks = [CandidateBlock(page.text_of(element), Provenance.APPROACH_PARAGRAPH)
                           for element in page.query_all(SELECTORS['approach_text'])]
        approach = self.classifier.classify_approach(approach_blocks, seen=seen)
        explanation = self._editorial_text(page)
        approaches = self.extract_approaches(page)

        logger.info(f"Successfully scraped editorial for {entry.title} "
                    f"({len(code)} implementations, {len(approaches)} approaches)")
        return Solution(
            problem_id=entry.slug,
            title=f"Editorial Solution: {entry.title}",
            content=IMPLEMENTATION_SEPARATOR.join(artifact.text for artifact in code),
            language=self._combined_language(code),
            url=url,
            author="LeetCode Editorial",
            votes=None,
            approach=approach[0].text if approach else explanation[:500],
            complexity=extract_complexity(body),
            explanation=explanation,
            approaches=approaches,
            implementations=self.playground_implementations(frames),
            video=self.find_video_solution(page, frames),
            is_editorial=True,
            provenance=code[0].provenance.value,
        )

    def _editorial_text(self, page: Page) -> str:
        best = ""
        for selector in SELECTORS['editorial_text']:
            for element in page.query_all(selector):
                text = self.clean_and_format_text(page.text_of(element))
                if len(text) > max(len(best), EDITORIAL_TEXT_MIN_LENGTH):
                    best = text
        return best[:EDITORIAL_TEXT_MAX_LENGTH]

    def extract_approaches(self, page: Page) -> List[EditorialApproach]:
        """
        One EditorialApproach per heading that mentions 'approach'.

        The section runs until the next heading of the same or a higher level.
        Lower level headings inside it (Intuition, Algorithm, Complexity
        Analysis, ...) route the following paragraphs to that sub-section;
        without them a paragraph is routed by the keyword it starts with.
        """
        approaches = []
        for heading in page.query_all(SELECTORS['headings']):
            title = normalize_whitespace(page.text_of(heading))
            if 'approach' in title.lower():
                approaches.append(self._approach_section(page, heading, title))
        return approaches

    def _approach_section(self, page: Page, heading: Any, title: str) -> EditorialApproach:
        level = _heading_level(page.tag_name(heading))
        sections = {name: [] for name, _ in APPROACH_SECTIONS}
        content, code_blocks = [], []
        current = None

        for sibling in page.following_siblings(heading, APPROACH_SIBLING_LIMIT):
            tag = page.tag_name(sibling)
            text = self.clean_and_format_text(page.text_of(sibling))
            if tag in HEADING_TAGS:
                if _heading_level(tag) <= level:
                    break
                current = _section_for(text)
                content.append(text)
                continue

            elements = page.query_all(SELECTORS['code'], within=sibling)
            if tag in CODE_TAGS:
                elements = [sibling] + elements
            code_blocks.extend(self._code_blocks(page, elements, Provenance.SIBLING_OF_HEADING))
            if not text:
                continue
            content.append(text)
            if tag in CODE_TAGS:
                continue
            section = current or _section_for(text[:SECTION_KEYWORD_WINDOW])
            if section:
                sections[section].append(text)

        complexity_analysis = "\n".join(sections['complexity_analysis'])
        full_text = "\n".join(content)
        return EditorialApproach(
            title=title,
            intuition="\n".join(sections['intuition']),
            algorithm="\n".join(sections['algorithm']),
            implementation="\n".join(sections['implementation']),
            complexity_analysis=complexity_analysis,
            complexity=extract_complexity(complexity_analysis or full_text),
            code=[artifact.text for artifact in self.classifier.classify_code(code_blocks)],
            content=full_text,
        )

    @staticmethod
    def playground_implementations(frames: Sequence[FrameReadResult]) -> List[EditorialImplementation]:
        """Code playground iframes, readable or not, in document order"""
        implementations = []
        for result in frames:
            if not (result.readable or any(marker in result.src for marker in PLAYGROUND_SOURCES)):
                continue
            implementations.append(EditorialImplementation(
                id=f"iframe-{len(implementations) + 1}",
                src=result.src,
                content=result.text,
            ))
        return implementations

    @staticmethod
    def find_video_solution(page: Page, frames: Sequence[FrameReadResult]) -> VideoSolution:
        for result in frames:
            if any(marker in result.src.lower() for marker in VIDEO_SOURCES):
                return VideoSolution(found=True, url=result.src)
        if 'video solution' in page.body_text().lower():
            return VideoSolution(found=True)
        return VideoSolution()

    @staticmethod
    def _combined_language(code: Sequence[ClassifiedArtifact]) -> str:
        languages = {artifact.language for artifact in code}
        return languages.pop() if len(languages) == 1 else "multiple"

    # =========================================================================
    # Community solutions
    # =========================================================================

    def scrape_top_solution(self, page: Page, entry: ProblemEntry) -> Optional[Solution]:
        """
        Extract the highest voted community solution of entry.

        Each solution container contributes its longest qualifying code block.
        Containers whose code repeats an earlier fingerprint are skipped.
        Unknown vote counts rank below every known count.
        """
        self.navigate(page, self.url_parser.solutions_url(entry.slug))
        if not self.url_parser.is_page_type(page.current_url, 'solutions'):
            logger.info(f"Redirected to {page.current_url}, trying the discuss page")
            self.navigate(page, self.url_parser.discuss_url(entry.slug))

        containers: List[Any] = []
        for selector in SELECTORS['solution_container']:
            containers = page.query_all(selector)
            if containers:
                break

        seen: Set[str] = set()
        found = []
        for container in containers[:MAX_SOLUTION_CONTAINERS]:
            blocks = self._code_blocks(page, page.query_all(SELECTORS['code'], within=container),
                                       Provenance.SOLUTION_CONTAINER)
            code = self.classifier.classify_code(blocks, limit=1, seen=seen)
            if not code:
                continue
            full_text = page.text_of(container)
            found.append((code[0], parse_votes(full_text), parse_author(full_text) or "Community",
                          self._explanation_without_code(full_text, code[0].text)))

        logger.info(f"Found {len(found)} potential community solutions")
        if not found:
            logger.warning(f"No community solutions found for {entry.title}")
            return None

        artifact, votes, author, explanation = max(
            found, key=lambda item: (item[1] is not None, item[1] or 0))

        logger.info(f"Successfully scraped top solution for {entry.title} "
                    f"({votes if votes is not None else 'unknown'} votes, {artifact.language})")
        return Solution(
            problem_id=entry.slug,
            title=f"Top Community Solution: {entry.title}",
            content=artifact.text,
            language=artifact.language,
            url=page.current_url,
            author=author,
            votes=votes,
            approach="Community Solution",
            explanation=explanation,
            is_community_top=True,
            provenance=artifact.provenance.value,
        )

    @staticmethod
    def _explanation_without_code(full_text: str, code: str, max_length: int = 1000) -> str:
        return normalize_whitespace(full_text.replace(code, ' '))[:max_length]

    # =========================================================================
    # Comments
    # =========================================================================

    def scrape_comments(self, page: Page, entry: ProblemEntry, limit: Optional[int] = None) -> List[Comment]:
        """Top discussion comments from the editorial page of entry"""
        url = self.url_parser.editorial_url(entry.slug)
        if page.current_url.rstrip('/') != url.rstrip('/'):
            self.navigate(page, url)

        limit = self.config.max_comments if limit is None else limit
        blocks = [CandidateBlock(page.text_of(element), Provenance.COMMENT_ELEMENT)
                  for selector in SELECTORS['comments']
                  for element in page.query_all(selector)]
        artifacts = self.classifier.classify_comments(blocks, limit=limit)

        if not artifacts:
            logger.info("No comments found with specific selectors, trying broader search")
            broad = [CandidateBlock(text, Provenance.BROAD_COMMENT_SEARCH)
                     for text in (page.text_of(div) for div in page.query_all(SELECTORS['broad_comments']))
                     if len(text.strip()) > BROAD_COMMENT_MIN_LENGTH]
            artifacts = self.classifier.classify_comments(broad, limit=limit)

        comments = []
        for index, artifact in enumerate(artifacts, start=1):
            timestamp = RELATIVE_TIME_PATTERN.search(artifact.text)
            comments.append(Comment(
                id=f"{entry.slug}-comment-{index}",
                problem_id=entry.slug,
                content=artifact.text,
                author=parse_author(artifact.text) or "Anonymous",
                votes=artifact.votes,
                votes_synthetic=artifact.votes_synthetic,
                timestamp=timestamp.group(0) if timestamp else None,
                provenance=artifact.provenance.value,
            ))

        logger.info(f"Extracted {len(comments)} unique comments for {entry.title}")
        return comments

    # =========================================================================
    # Batch modes
    # =========================================================================

    def select_entries(self, limit: Optional[int] = None,
                       slugs: Optional[Sequence[str]] = None) -> List[ProblemEntry]:
        """
        Problems to visit: the given slugs or URLs, else the first limit catalog entries.

        Raises:
            ConfigurationError: If limit is not positive or a slug cannot be parsed
        """
        if slugs:
            entries = []
            for value in slugs:
                slug = self.url_parser.extract_slug(value)
                if not slug:
                    raise ConfigurationError(f"Not a LeetCode problem slug or URL: {value}", "problems", value)
                entries.append(find_entry(slug))
            return entries[:limit] if limit else entries

        if limit is None:
            return list(KNOWN_PROBLEMS)
        if limit < 1:
            raise ConfigurationError(f"limit must be positive, got {limit}", "limit", limit)
        if limit > len(KNOWN_PROBLEMS):
            logger.warning(f"Only {len(KNOWN_PROBLEMS)} problems are known, limiting the run to them")
        return list(KNOWN_PROBLEMS[:limit])

    def scrape_batch(self, entries: Sequence[ProblemEntry], with_editorial: bool = False,
                     with_top_solution: bool = False, with_comments: bool = False,
                     on_result: Optional[Callable[[ExtractionResult], Any]] = None) -> List[ExtractionResult]:
        """
        Scrape every entry, one after another, on a single page.

        Returns:
            List[ExtractionResult]: One result per entry, each holding a ProblemBundle
        """
        with_solutions = with_editorial or with_top_solution
        entries_by_slug = {entry.slug: entry for entry in entries}

        def fallback(entry: ProblemEntry) -> ProblemBundle:
            solutions = [fallback_editorial(entry)] if with_solutions else []
            return ProblemBundle(problem=fallback_problem(entry), solutions=solutions)

        with self.open_page() as page:
            def scrape_item(entry: ProblemEntry) -> ProblemBundle:
                return ProblemBundle(problem=self.scrape_problem(page, entry))

            def finish_item(result: ExtractionResult) -> None:
                if not result.is_fallback:
                    self.scrape_extras(page, entries_by_slug[result.item_id], result.value,
                                       with_editorial, with_top_solution, with_comments)
                if on_result is not None:
                    on_result(result)

            return self.run_items(entries, scrape_item, fallback, on_result=finish_item)

    def scrape_extras(self, page: Page, entry: ProblemEntry, bundle: ProblemBundle, with_editorial: bool = False,
                      with_top_solution: bool = False, with_comments: bool = False) -> None:
        """
        Add the requested extras to the bundle of a scraped problem.

        Each extra is retried on its own. A failure replaces only that extra:
        the fallback editorial for a solution, nothing for comments. The
        problem already in the bundle is never touched.
        """
        if with_editorial:
            result = self.retry(lambda: self.scrape_editorial(page, entry), fallback_editorial(entry),
                                f"{entry.slug} editorial")
            if result.value is not None:
                bundle.solutions.append(result.value)
        if with_top_solution:
            result = self.retry(lambda: self.scrape_top_solution(page, entry), fallback_editorial(entry),
                                f"{entry.slug} top solution")
            if result.value is not None:
                bundle.solutions.append(result.value)
        if with_comments:
            result = self.retry(lambda: self.scrape_comments(page, entry), [], f"{entry.slug} comments")
            bundle.comments.extend(result.value)

    def _scrape_dataset(self, limit: Optional[int], slugs: Optional[Sequence[str]],
                        on_result: Optional[Callable[[ExtractionResult], Any]], **extras: bool) -> Dataset:
        entries = self.select_entries(limit, slugs)
        logger.info(f"Starting scrape of {len(entries)} problems")
        results = self.scrape_batch(entries, on_result=on_result, **extras)
        dataset = Dataset.from_bundles([result.value for result in results])
        logger.info(f"Scrape finished: {len(dataset.problems)} problems, {len(dataset.solutions)} solutions, "
                    f"{len(dataset.comments)} comments, fallbacks {dataset.fallback_counts()}")
        return dataset

    def scrape_problems(self, limit: Optional[int] = 20, slugs: Optional[Sequence[str]] = None,
                        on_result=None) -> Dataset:
        return self._scrape_dataset(limit, slugs, on_result)

    def scrape_problems_with_editorials(self, limit: Optional[int] = 5, slugs: Optional[Sequence[str]] = None,
                                        on_result=None) -> Dataset:
        return self._scrape_dataset(limit, slugs, on_result, with_editorial=True)

    def scrape_problems_with_top_solutions(self, limit: Optional[int] = 5,
                                           slugs: Optional[Sequence[str]] = None, on_result=None) -> Dataset:
        return self._scrape_dataset(limit, slugs, on_result, with_top_solution=True)

    def scrape_problems_with_comments(self, limit: Optional[int] = 5, slugs: Optional[Sequence[str]] = None,
                                      on_result=None) -> Dataset:
        return self._scrape_dataset(limit, slugs, on_result, with_comments=True)
