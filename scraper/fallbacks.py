"""
Known problem catalog and static fallback records

The batch driver walks KNOWN_PROBLEMS in order. When every attempt to scrape
a problem fails, the orchestrator substitutes the records built here. They are
flagged with is_fallback=True and provenance 'static-fallback'.
"""

from typing import Dict, List

from scraper.models import Complexity, Example, Problem, ProblemEntry, Solution
from utils.url_parser import URLParser

FALLBACK_PROVENANCE = "static-fallback"

KNOWN_PROBLEMS: List[ProblemEntry] = [
    ProblemEntry('Two Sum', 'two-sum', 'Easy'),
    ProblemEntry('Add Two Numbers', 'add-two-numbers', 'Medium'),
    ProblemEntry('Longest Substring Without Repeating Characters',
                 'longest-substring-without-repeating-characters', 'Medium'),
    ProblemEntry('Median of Two Sorted Arrays', 'median-of-two-sorted-arrays', 'Hard'),
    ProblemEntry('Longest Palindromic Substring', 'longest-palindromic-substring', 'Medium'),
    ProblemEntry('ZigZag Conversion', 'zigzag-conversion', 'Medium'),
    ProblemEntry('Reverse Integer', 'reverse-integer', 'Medium'),
    ProblemEntry('String to Integer (atoi)', 'string-to-integer-atoi', 'Medium'),
    ProblemEntry('Palindrome Number', 'palindrome-number', 'Easy'),
    ProblemEntry('Regular Expression Matching', 'regular-expression-matching', 'Hard'),
    ProblemEntry('Container With Most Water', 'container-with-most-water', 'Medium'),
    ProblemEntry('Integer to Roman', 'integer-to-roman', 'Medium'),
    ProblemEntry('Roman to Integer', 'roman-to-integer', 'Easy'),
    ProblemEntry('Longest Common Prefix', 'longest-common-prefix', 'Easy'),
    ProblemEntry('3Sum', '3sum', 'Medium'),
    ProblemEntry('3Sum Closest', '3sum-closest', 'Medium'),
    ProblemEntry('Letter Combinations of a Phone Number', 'letter-combinations-of-a-phone-number', 'Medium'),
    ProblemEntry('4Sum', '4sum', 'Medium'),
    ProblemEntry('Remove Nth Node From End of List', 'remove-nth-node-from-end-of-list', 'Medium'),
    ProblemEntry('Valid Parentheses', 'valid-parentheses', 'Easy'),
]

PROBLEM_TAGS: Dict[str, List[str]] = {
    'two-sum': ['Array', 'Hash Table'],
    'add-two-numbers': ['Linked List', 'Math', 'Recursion'],
    'longest-substring-without-repeating-characters': ['Hash Table', 'String', 'Sliding Window'],
    'median-of-two-sorted-arrays': ['Array', 'Binary Search', 'Divide and Conquer'],
    'valid-parentheses': ['String', 'Stack'],
}
DEFAULT_TAGS = ['Algorithm', 'Data Structure']

FALLBACK_DESCRIPTIONS: Dict[str, str] = {
    'two-sum': ('Given an array of integers nums and an integer target, return indices of the '
                'two numbers such that they add up to target.'),
    'add-two-numbers': 'You are given two non-empty linked lists representing two non-negative integers.',
    'longest-substring-without-repeating-characters': (
        'Given a string s, find the length of the longest substring without repeating characters.'),
}

FALLBACK_EXAMPLES: Dict[str, List[Example]] = {
    'two-sum': [Example(input='nums = [2,7,11,15], target = 9', output='[0,1]')],
    'add-two-numbers': [Example(input='l1 = [2,4,3], l2 = [5,6,4]', output='[7,0,8]')],
    'longest-substring-without-repeating-characters': [Example(input='s = "abcabcbb"', output='3')],
}

FALLBACK_EDITORIALS: Dict[str, dict] = {
    'two-sum': {
        'content': '''def twoSum(self, nums: List[int], target: int) -> List[int]:
    hashmap = {}
    for i, num in enumerate(nums):
        complement = target - num
        if complement in hashmap:
            return [hashmap[complement], i]
        hashmap[num] = i
    return []''',
        'approach': ('Use a hash map to store seen numbers and their indices. For each number, '
                     'check if its complement exists in the hash map.'),
        'complexity': Complexity(time='O(n)', space='O(n)'),
    },
    'add-two-numbers': {
        'content': '''def addTwoNumbers(self, l1: ListNode, l2: ListNode) -> ListNode:
    dummy = ListNode(0)
    current = dummy
    carry = 0

    while l1 or l2 or carry:
        val1 = l1.val if l1 else 0
        val2 = l2.val if l2 else 0

        total = val1 + val2 + carry
        carry = total // 10

        current.next = ListNode(total % 10)
        current = current.next

        l1 = l1.next if l1 else None
        l2 = l2.next if l2 else None

    return dummy.next''',
        'approach': 'Simulate the addition process digit by digit, handling carry appropriately.',
        'complexity': Complexity(time='O(max(m,n))', space='O(max(m,n))'),
    },
    'longest-substring-without-repeating-characters': {
        'content': '''def lengthOfLongestSubstring(self, s: str) -> int:
    char_map = {}
    left = 0
    max_length = 0

    for right, char in enumerate(s):
        if char in char_map and char_map[char] >= left:
            left = char_map[char] + 1

        char_map[char] = right
        max_length = max(max_length, right - left + 1)

    return max_length''',
        'approach': 'Use sliding window technique with hash map to track character positions.',
        'complexity': Complexity(time='O(n)', space='O(min(m,n))'),
    },
}

_url_parser = URLParser()


def tags_for(slug: str) -> List[str]:
    return list(PROBLEM_TAGS.get(slug, DEFAULT_TAGS))


def find_entry(slug: str) -> ProblemEntry:
    """Catalog entry for slug, or an entry with a title derived from the slug"""
    for entry in KNOWN_PROBLEMS:
        if entry.slug == slug:
            return entry
    return ProblemEntry(URLParser.title_from_slug(slug), slug, 'Unknown')


def fallback_problem(entry: ProblemEntry) -> Problem:
    return Problem(
        id=entry.slug,
        title=entry.title,
        slug=entry.slug,
        difficulty=entry.difficulty,
        description=FALLBACK_DESCRIPTIONS.get(entry.slug, f"Description for {entry.title}"),
        url=_url_parser.problem_url(entry.slug),
        tags=tags_for(entry.slug),
        constraints='Standard constraints apply',
        examples=list(FALLBACK_EXAMPLES.get(entry.slug, [])),
        is_fallback=True,
        provenance=FALLBACK_PROVENANCE,
    )


def fallback_editorial(entry: ProblemEntry) -> Solution:
    record = FALLBACK_EDITORIALS.get(entry.slug) or {
        'content': f"# Editorial solution for {entry.title}\n# Implementation would go here",
        'approach': f"Standard algorithmic approach for {entry.title}",
        'complexity': Complexity(time='O(n)', space='O(1)'),
    }
    return Solution(
        problem_id=entry.slug,
        title=f"Editorial Solution: {entry.title}",
        content=record['content'],
        language='python',
        url=_url_parser.editorial_url(entry.slug),
        author='LeetCode Editorial (Fallback)',
        votes=1000,
        runtime='Optimal',
        memory='Optimal',
        approach=record['approach'],
        complexity=Complexity(record['complexity'].time, record['complexity'].space),
        explanation=f"Official editorial solution for {entry.title}. {record['approach']}",
        is_editorial=True,
        is_fallback=True,
        provenance=FALLBACK_PROVENANCE,
    )
