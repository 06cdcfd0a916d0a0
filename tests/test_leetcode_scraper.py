import os, sys
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import time

import pytest

from scraper.leetcode_scraper import IMPLEMENTATION_SEPARATOR, LeetCodeScraper
from scraper.fallbacks import FALLBACK_PROVENANCE, KNOWN_PROBLEMS, find_entry
from scraper.page import StaticPage
from utils.config import ScrapingConfig
from utils.error_handler import CaptchaDetectedError, ConfigurationError, ContentMissingError, error_reporter
from utils.url_parser import URLParser

urls = URLParser()

PROBLEM_HTML = """
<html><body>
<div data-track-load="description_content">
<p>Given an array of integers nums and an integer target, return indices of the two numbers such that they add up to target.</p>
<p>Example 1:</p>
<pre>Input: nums = [2,7,11,15], target = 9
Output: [0,1]
Explanation: Because nums[0] + nums[1] == 9, we return [0, 1].</pre>
<p>Constraints:</p>
<ul><li>2 &lt;= nums.length &lt;= 10^4</li></ul>
</div>
</body></html>
"""

SHORT_PROBLEM_HTML = "<html><body><p>Premium only.</p></body></html>"

EDITORIAL_HTML = """
<html><body>
<div class="editorial-content">
<h2>Approach 1: Brute Force</h2>
<p>The brute force approach checks every pair of numbers in the array and returns the first pair whose sum equals the target value.</p>
<pre class="language-python">class Solution:
    def twoSum(self, nums, target):
        for i in range(len(nums)):
            for j in range(i + 1, len(nums)):
                if nums[i] + nums[j] == target:
                    return [i, j]
</pre>
<p>Time complexity: O(n^2). Space complexity: O(1).</p>
<h2>Approach 2: Hash Map</h2>
<p>Store every value in a map while scanning.</p>
<iframe src="https://leetcode.com/playground/abc/shared"></iframe>
</div>
<div class="comment-content">Great solution, the two pointer approach is O(n). 12 votes Reply</div>
<div class="comment-content">I used a stack instead, same time complexity and simpler to read. 3 days ago</div>
</body></html>
"""

SRCDOC_EDITORIAL_HTML = """
<html><body>
<h2>Overview</h2>
<iframe src="https://leetcode.com/playground/xyz/shared"></iframe>
<iframe srcdoc="&lt;pre&gt;class Solution:
    def isValid(self, s):
        stack = []
        return not stack&lt;/pre&gt;"></iframe>
</body></html>
"""

GENERIC_CODE_EDITORIAL_HTML = """
<html><body>
<h2>Overview</h2>
<div class="code-block">function twoSum(nums, target) { const seen = new Map(); return []; }</div>
</body></html>
"""

NO_CODE_EDITORIAL_HTML = """
<html><body>
<h2>Approach 1: Iteration</h2>
<p>Walk both lists together.</p>
</body></html>
"""

STRUCTURED_EDITORIAL_HTML = """
<html><body>
<h2>Video Solution</h2>
<iframe src="https://player.vimeo.com/video/123456"></iframe>
<h3>Approach 1: Stack</h3>
<h4>Intuition</h4>
<p>Every closing bracket must match the most recent unmatched opening bracket.</p>
<h4>Algorithm</h4>
<p>Push opening brackets, pop and compare on closing brackets.</p>
<p>The string is valid when the stack ends up empty.</p>
<h4>Implementation</h4>
<pre class="language-python">class Solution:
    def isValid(self, s):
        pairs = {")": "(", "]": "[", "}": "{"}
        stack = []
        for ch in s:
            if ch in pairs:
                if not stack or stack.pop() != pairs[ch]:
                    return False
            else:
                stack.append(ch)
        return not stack
</pre>
<iframe srcdoc="&lt;pre&gt;def is_valid(s):
    while '()' in s or '[]' in s or '{}' in s:
        s = s.replace('()', '').replace('[]', '').replace('{}', '')
    return s == ''&lt;/pre&gt;"></iframe>
<h4>Complexity Analysis</h4>
<p>Time complexity: O(n). Space complexity: O(n).</p>
<h3>Approach 2: Replace pairs</h3>
<p>Repeatedly remove adjacent pairs.</p>
</body></html>
"""

SOLUTIONS_HTML = """
<html><body>
<div data-cy="solution-item">
<span>by alice 25 votes</span>
<pre>class Solution:
    def twoSum(self, nums, target):
        seen = {}
        for i, n in enumerate(nums):
            if target - n in seen:
                return [seen[target - n], i]
            seen[n] = i</pre>
<p>Hash map in one pass.</p>
</div>
<div data-cy="solution-item">
<span>by bob 120 votes</span>
<pre class="language-java">class Solution {
    public int[] twoSum(int[] nums, int target) { return new int[] {0, 1}; }
}</pre>
</div>
<div data-cy="solution-item">
<span>by carol 500 votes</span>
<p>Just words, no code at all in this post.</p>
</div>
</body></html>
"""

UNKNOWN_VOTES_HTML = """
<html><body>
<div data-cy="solution-item">
<pre>def longest_unrated(nums):
    total = 0
    for n in nums:
        total += n
    return total</pre>
</div>
<div data-cy="solution-item">
<span>0 votes</span>
<pre>def short_one(nums):
    return sum(nums)</pre>
</div>
</body></html>
"""


class FixturePage(StaticPage):
    """StaticPage that serves canned HTML by URL"""

    def __init__(self, pages, redirects=None):
        super().__init__()
        self.pages = pages
        self.redirects = redirects or {}
        self.visited = []
        self.closed = False

    def goto(self, url):
        self.visited.append(url)
        target = self.redirects.get(url, url)
        if target not in self.pages:
            raise ContentMissingError(f"Content not found (404): {url}", url, status_code=404)
        self.load_html(self.pages[target], target)

    def close(self):
        self.closed = True


class SleepRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture(autouse=True)
def clear_error_reporter():
    error_reporter.clear()
    yield
    error_reporter.clear()


@pytest.fixture
def config():
    return ScrapingConfig(delay_between_requests=0, base_delay=0, max_attempts=2)


def make_scraper(config, pages, redirects=None):
    page = FixturePage(pages, redirects)
    sleep = SleepRecorder()
    scraper = LeetCodeScraper(config, page_factory=lambda: page, sleep=sleep)
    return scraper, page, sleep


def test_scrape_problem_parses_statement(config):
    scraper, page, _ = make_scraper(config, {urls.problem_url('two-sum'): PROBLEM_HTML})

    problem = scraper.scrape_problem(page, find_entry('two-sum'))

    assert problem.title == 'Two Sum'
    assert problem.difficulty == 'Easy'
    assert problem.url == urls.problem_url('two-sum')
    assert problem.tags == ['Array', 'Hash Table']
    assert problem.description.startswith('Given an array of integers')
    assert problem.constraints == '2 <= nums.length <= 10^4'
    assert len(problem.examples) == 1
    assert problem.examples[0].input == 'nums = [2,7,11,15], target = 9'
    assert problem.examples[0].output == '[0,1]'
    assert problem.examples[0].explanation.startswith('Because nums[0]')
    assert not problem.is_fallback
    assert problem.provenance == 'problem-page'


def test_missing_description_raises(config):
    scraper, page, _ = make_scraper(config, {urls.problem_url('two-sum'): SHORT_PROBLEM_HTML})
    with pytest.raises(ContentMissingError):
        scraper.scrape_problem(page, find_entry('two-sum'))


def test_scrape_editorial_uses_code_after_approach_heading(config):
    scraper, page, _ = make_scraper(config, {urls.editorial_url('two-sum'): EDITORIAL_HTML})

    editorial = scraper.scrape_editorial(page, find_entry('two-sum'))

    assert editorial is not None
    assert editorial.content.startswith('class Solution:')
    assert IMPLEMENTATION_SEPARATOR not in editorial.content
    assert editorial.language == 'python'
    assert editorial.votes is None
    assert editorial.is_editorial
    assert editorial.provenance == 'sibling-of-heading'
    assert editorial.complexity.time == 'O(n^2)'
    assert editorial.complexity.space == 'O(1)'
    assert editorial.approach.startswith('The brute force approach')
    assert [a.title for a in editorial.approaches] == ['Approach 1: Brute Force', 'Approach 2: Hash Map']
    brute_force = editorial.approaches[0]
    assert brute_force.complexity_analysis.startswith('Time complexity: O(n^2)')
    assert brute_force.complexity.time == 'O(n^2)'
    assert brute_force.code[0].startswith('class Solution:')
    assert brute_force.intuition == ''
    assert editorial.approaches[1].code == []
    assert [(i.id, i.content) for i in editorial.implementations] == [('iframe-1', None)]
    assert not editorial.video.found


def test_scrape_editorial_reads_srcdoc_iframe(config):
    scraper, page, _ = make_scraper(config, {urls.editorial_url('valid-parentheses'): SRCDOC_EDITORIAL_HTML})

    editorial = scraper.scrape_editorial(page, find_entry('valid-parentheses'))

    assert editorial is not None
    assert editorial.provenance == 'iframe'
    assert 'def isValid' in editorial.content


def test_scrape_editorial_structures_approach_sections(config):
    scraper, page, _ = make_scraper(config, {urls.editorial_url('valid-parentheses'): STRUCTURED_EDITORIAL_HTML})

    editorial = scraper.scrape_editorial(page, find_entry('valid-parentheses'))

    assert [a.title for a in editorial.approaches] == ['Approach 1: Stack', 'Approach 2: Replace pairs']
    stack = editorial.approaches[0]
    assert stack.intuition.startswith('Every closing bracket')
    assert stack.algorithm.splitlines() == ['Push opening brackets, pop and compare on closing brackets.',
                                            'The string is valid when the stack ends up empty.']
    assert stack.complexity.time == 'O(n)'
    assert stack.complexity.space == 'O(n)'
    assert len(stack.code) == 1 and 'def isValid' in stack.code[0]
    # the h3 of the next approach ends the section, its h4 sub-headings do not
    assert 'Repeatedly remove' not in stack.content
    assert editorial.approaches[1].content == 'Repeatedly remove adjacent pairs.'

    assert editorial.video.found
    assert editorial.video.url == 'https://player.vimeo.com/video/123456'
    assert [(i.id, i.src) for i in editorial.implementations] == [('iframe-1', '')]
    assert 'def is_valid' in editorial.implementations[0].content
    assert editorial.editorial_summary() == {
        'total_approaches': 2, 'total_implementations': 1,
        'readable_implementations': 1, 'has_video_solution': True,
    }


def test_iframe_code_leads_even_when_sibling_code_is_longer(config):
    scraper, page, _ = make_scraper(config, {urls.editorial_url('valid-parentheses'): STRUCTURED_EDITORIAL_HTML})
    entry = find_entry('valid-parentheses')

    editorial = scraper.scrape_editorial(page, entry)

    assert editorial.provenance == 'iframe'
    first, second = editorial.content.split(IMPLEMENTATION_SEPARATOR)
    assert first.startswith('def is_valid')
    assert second.startswith('class Solution:')
    assert len(second) > len(first)


def test_scrape_editorial_falls_back_to_generic_code(config):
    scraper, page, _ = make_scraper(config, {urls.editorial_url('two-sum'): GENERIC_CODE_EDITORIAL_HTML})

    editorial = scraper.scrape_editorial(page, find_entry('two-sum'))

    assert editorial is not None
    assert editorial.provenance == 'generic-code-element'
    assert editorial.language == 'javascript'


def test_scrape_editorial_without_code_is_a_miss(config):
    scraper, page, _ = make_scraper(config, {urls.editorial_url('add-two-numbers'): NO_CODE_EDITORIAL_HTML})
    assert scraper.scrape_editorial(page, find_entry('add-two-numbers')) is None


def test_scrape_top_solution_picks_highest_votes(config):
    scraper, page, _ = make_scraper(config, {urls.solutions_url('two-sum'): SOLUTIONS_HTML})

    solution = scraper.scrape_top_solution(page, find_entry('two-sum'))

    assert solution.votes == 120
    assert solution.author == 'bob'
    assert solution.language == 'java'
    assert solution.is_community_top
    assert solution.provenance == 'solution-container'
    assert solution.url == urls.solutions_url('two-sum')


def test_unknown_votes_rank_lowest(config):
    scraper, page, _ = make_scraper(config, {urls.solutions_url('two-sum'): UNKNOWN_VOTES_HTML})

    solution = scraper.scrape_top_solution(page, find_entry('two-sum'))

    assert solution.votes == 0
    assert 'short_one' in solution.content


def test_scrape_top_solution_follows_redirect_to_discuss(config):
    solutions, discuss = urls.solutions_url('two-sum'), urls.discuss_url('two-sum')
    scraper, page, _ = make_scraper(config, {discuss: SOLUTIONS_HTML}, redirects={solutions: discuss})

    solution = scraper.scrape_top_solution(page, find_entry('two-sum'))

    assert page.visited == [solutions, discuss]
    assert solution.url == discuss


def test_scrape_comments(config):
    scraper, page, _ = make_scraper(config, {urls.editorial_url('two-sum'): EDITORIAL_HTML})

    comments = scraper.scrape_comments(page, find_entry('two-sum'))

    assert [c.id for c in comments] == ['two-sum-comment-1', 'two-sum-comment-2']
    assert comments[0].votes == 12
    assert comments[0].content.endswith('12 votes')
    assert comments[1].votes is None
    assert not comments[1].votes_synthetic
    assert comments[1].timestamp == '3 days ago'
    assert all(c.provenance == 'comment-element' for c in comments)


def test_scrape_comments_does_not_reload_current_page(config):
    scraper, page, _ = make_scraper(config, {urls.editorial_url('two-sum'): EDITORIAL_HTML})
    entry = find_entry('two-sum')

    scraper.scrape_editorial(page, entry)
    scraper.scrape_comments(page, entry, limit=1)

    assert page.visited == [urls.editorial_url('two-sum')]


def test_select_entries(config):
    scraper, _, _ = make_scraper(config, {})

    assert [e.slug for e in scraper.select_entries(3)] == ['two-sum', 'add-two-numbers',
                                                           'longest-substring-without-repeating-characters']
    assert len(scraper.select_entries(50)) == len(KNOWN_PROBLEMS)

    custom = scraper.select_entries(slugs=['https://leetcode.com/problems/two-sum/description/',
                                           'my-custom-problem'])
    assert custom[0] == find_entry('two-sum')
    assert custom[1].title == 'My Custom Problem'
    assert custom[1].difficulty == 'Unknown'

    with pytest.raises(ConfigurationError):
        scraper.select_entries(0)
    with pytest.raises(ConfigurationError):
        scraper.select_entries(slugs=['not a slug!'])


def test_batch_substitutes_fallback_for_failing_problem(config):
    pages = {
        urls.problem_url('two-sum'): PROBLEM_HTML,
        urls.problem_url('longest-substring-without-repeating-characters'): PROBLEM_HTML,
    }
    scraper, page, sleep = make_scraper(config, pages)
    streamed = []

    dataset = scraper.scrape_problems(limit=3, on_result=streamed.append)

    assert [p.slug for p in dataset.problems] == [e.slug for e in KNOWN_PROBLEMS[:3]]
    assert [p.is_fallback for p in dataset.problems] == [False, True, False]
    assert dataset.problems[1].provenance == FALLBACK_PROVENANCE
    assert dataset.solutions == []
    assert len(streamed) == 3
    # one backoff wait for the failing item, no rate limit waits with a zero delay
    assert sleep.calls == [0.0]
    assert page.closed


def test_editorial_batch_miss_keeps_problem_without_solution(config):
    pages = {
        urls.problem_url('two-sum'): PROBLEM_HTML,
        urls.editorial_url('two-sum'): EDITORIAL_HTML,
        urls.problem_url('add-two-numbers'): PROBLEM_HTML,
        urls.editorial_url('add-two-numbers'): NO_CODE_EDITORIAL_HTML,
    }
    scraper, _, _ = make_scraper(config, pages)

    dataset = scraper.scrape_problems_with_editorials(slugs=['two-sum', 'add-two-numbers'])

    assert [p.is_fallback for p in dataset.problems] == [False, False]
    assert len(dataset.solutions) == 1
    assert dataset.solutions[0].problem_id == 'two-sum'
    assert not dataset.solutions[0].is_fallback


def test_broken_editorial_page_keeps_scraped_problem(config):
    scraper, page, sleep = make_scraper(config, {urls.problem_url('two-sum'): PROBLEM_HTML})
    streamed = []

    dataset = scraper.scrape_problems_with_editorials(slugs=['two-sum'], on_result=streamed.append)

    assert not dataset.problems[0].is_fallback
    assert dataset.problems[0].provenance == 'problem-page'
    assert len(dataset.solutions) == 1
    assert dataset.solutions[0].is_fallback
    assert dataset.solutions[0].author == 'LeetCode Editorial (Fallback)'
    assert dataset.fallback_counts() == {'problems': 0, 'solutions': 1, 'comments': 0}
    # only the editorial is retried, the problem page is fetched once
    assert page.visited == [urls.problem_url('two-sum')] + [urls.editorial_url('two-sum')] * 2
    assert sleep.calls == [0.0]
    # the streamed item already carries its extras and is not a fallback
    assert [r.is_fallback for r in streamed] == [False]
    assert streamed[0].value.solutions == dataset.solutions


def test_failed_problem_uses_fallback_without_visiting_extras(config):
    scraper, page, _ = make_scraper(config, {urls.editorial_url('two-sum'): EDITORIAL_HTML})

    dataset = scraper.scrape_problems_with_editorials(slugs=['two-sum'])

    assert dataset.problems[0].is_fallback
    assert [s.is_fallback for s in dataset.solutions] == [True]
    assert page.visited == [urls.problem_url('two-sum')] * 2


def test_broken_comments_page_keeps_scraped_problem(config):
    scraper, _, _ = make_scraper(config, {urls.problem_url('valid-parentheses'): PROBLEM_HTML})

    dataset = scraper.scrape_problems_with_comments(slugs=['valid-parentheses'])

    assert not dataset.problems[0].is_fallback
    assert dataset.comments == []
    assert dataset.solutions == []


def test_broken_solutions_page_keeps_scraped_problem(config):
    scraper, _, _ = make_scraper(config, {urls.problem_url('two-sum'): PROBLEM_HTML})

    dataset = scraper.scrape_problems_with_top_solutions(slugs=['two-sum'])

    assert not dataset.problems[0].is_fallback
    assert [s.is_fallback for s in dataset.solutions] == [True]


def test_comments_batch(config):
    pages = {
        urls.problem_url('two-sum'): PROBLEM_HTML,
        urls.editorial_url('two-sum'): EDITORIAL_HTML,
    }
    scraper, _, _ = make_scraper(config, pages)

    dataset = scraper.scrape_problems_with_comments(slugs=['two-sum'])

    assert len(dataset.problems) == 1
    assert len(dataset.comments) == 2
    assert dataset.solutions == []


def test_rate_limit_between_navigations():
    config = ScrapingConfig(delay_between_requests=2.0)
    scraper, page, sleep = make_scraper(config, {urls.problem_url('two-sum'): PROBLEM_HTML})
    scraper.last_request_time = time.monotonic()

    scraper.navigate(page, urls.problem_url('two-sum'))

    assert len(sleep.calls) == 1
    assert 1.5 < sleep.calls[0] <= 2.0


def test_static_page_frames_and_siblings():
    page = StaticPage.from_html(SRCDOC_EDITORIAL_HTML, urls.editorial_url('valid-parentheses'))
    frames = page.query_all('iframe')

    unreadable, readable = page.read_frame(frames[0]), page.read_frame(frames[1])
    assert not unreadable.readable
    assert unreadable.src == 'https://leetcode.com/playground/xyz/shared'
    assert unreadable.error == StaticPage.FRAME_UNREADABLE
    assert readable.readable
    assert readable.text.startswith('class Solution:')

    heading = page.query_first('h2')
    assert [page.tag_name(s) for s in page.following_siblings(heading, 1)] == ['iframe']


def test_static_page_detects_bot_check():
    page = StaticPage.from_html("<html><body><h1>Verify you are human</h1></body></html>")
    with pytest.raises(CaptchaDetectedError):
        page.check_blocked("https://leetcode.com/problems/two-sum/")
