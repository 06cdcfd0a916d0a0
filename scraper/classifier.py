"""
Extraction classifier for CodeSage Scrape

Decides whether raw DOM text is real source code, a discussion comment or an
approach description, and turns qualifying text into de-duplicated
ClassifiedArtifact records. Every inclusion/exclusion rule is a named Signal
in one of the rule tables below, so a rule can be added, removed or tested on
its own without touching the extraction plumbing.

Selection policy for code: among qualifying candidates the longest wins, then
fingerprint de-duplication, then the output cap. Comments keep document order.

Example:
    >>> classifier = ExtractionClassifier()
    >>> blocks = [CandidateBlock("class Solution:\\n    def twoSum(self, nums): return []",
    ...                          Provenance.IFRAME)]
    >>> classifier.classify_code(blocks)[0].language
    'python'
"""

import logging
import random
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple, Union

from scraper.models import Complexity

logger = logging.getLogger(__name__)

FINGERPRINT_LENGTH = 100


class Provenance(Enum):
    """Where a candidate block was found"""
    IFRAME = "iframe"
    SIBLING_OF_HEADING = "sibling-of-heading"
    GENERIC_CODE_ELEMENT = "generic-code-element"
    SOLUTION_CONTAINER = "solution-container"
    COMMENT_ELEMENT = "comment-element"
    BROAD_COMMENT_SEARCH = "broad-comment-search"
    APPROACH_PARAGRAPH = "approach-paragraph"


class ArtifactKind(Enum):
    CODE = "code"
    COMMENT = "comment"
    APPROACH_TEXT = "approach_text"


@dataclass(frozen=True)
class CandidateBlock:
    """Raw text pulled out of the DOM, not yet classified"""
    text: str
    provenance: Provenance
    language_hint: Optional[str] = None


@dataclass(frozen=True)
class ClassifiedArtifact:
    kind: ArtifactKind
    text: str
    fingerprint: str
    provenance: Provenance
    language: Optional[str] = None
    votes: Optional[int] = None
    votes_synthetic: bool = False


@dataclass(frozen=True)
class Signal:
    """A named boolean rule over candidate text"""
    name: str
    predicate: Callable[[str], bool]

    def matches(self, text: str) -> bool:
        return self.predicate(text)


def contains_any(*tokens: str) -> Callable[[str], bool]:
    return lambda text: any(token in text for token in tokens)


def matches_regex(pattern: str, flags: int = 0) -> Callable[[str], bool]:
    compiled = re.compile(pattern, flags)
    return lambda text: compiled.search(text) is not None


# =============================================================================
# Rule tables
# =============================================================================

CODE_POSITIVE_SIGNALS: Tuple[Signal, ...] = (
    Signal("class_declaration", matches_regex(r'\bclass\s+[A-Z_]\w*')),
    Signal("def_declarator", matches_regex(r'\bdef\s+\w+\s*\(')),
    Signal("function_keyword", matches_regex(r'\bfunction\b')),
    Signal("access_modifier", matches_regex(r'\b(?:public|private|protected)\b')),
    Signal("return_statement", matches_regex(r'\breturn\b')),
    Signal("typed_container", matches_regex(r'\bvector\s*<|\w\[\]|\bVec<|\[\]\w')),
    Signal("arrow_function", contains_any('=>')),
    Signal("variable_declaration", matches_regex(r'\b(?:var|let|const)\s+\w+')),
    Signal("brace_pair", lambda text: '{' in text and '}' in text and text.index('{') < text.rindex('}')),
)

LICENSING_SIGNAL = Signal("licensing_boilerplate", contains_any('Copyright', 'Licensed', 'MIT License'))
DOM_MANIPULATION_SIGNAL = Signal("dom_manipulation", contains_any(
    'jQuery', '$(', 'addEventListener', 'createElement', 'querySelector',
    'innerHTML', 'appendChild', 'insertBefore', 'classList'))
BROWSER_GLOBALS_SIGNAL = Signal("browser_globals", contains_any('document.', 'window.', 'localStorage'))

# Signals that mark text as page scripts rather than user content
PAGE_SCRIPT_SIGNALS: Tuple[Signal, ...] = (
    LICENSING_SIGNAL,
    DOM_MANIPULATION_SIGNAL,
    BROWSER_GLOBALS_SIGNAL,
)

CODE_NEGATIVE_SIGNALS: Tuple[Signal, ...] = PAGE_SCRIPT_SIGNALS + (
    Signal("styling_properties", matches_regex(
        r'\b(?:css|style|margin|padding|transition|animation|classname)\b|animation-timing-function')),
    Signal("telemetry_tokens", contains_any('getHashCode', 'feedback', 'eventURL')),
)

COMMENT_POSITIVE_SIGNALS: Tuple[Signal, ...] = (
    Signal("reply_marker", matches_regex(r'\bRepl(?:y|ies)\b')),
    Signal("read_more_marker", contains_any('Read more')),
    Signal("vote_marker", matches_regex(r'\b(?:up)?votes?\b|\blikes?\b|[▲↑👍]', re.IGNORECASE)),
    Signal("date", matches_regex(
        r'\b(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?\s+\d{1,2},?\s+\d{4}\b'
        r'|\b\d{4}-\d{2}-\d{2}\b')),
    Signal("relative_time", matches_regex(r'\b\d+\s*(?:second|minute|hour|day|week|month|year)s?\s+ago\b',
                                          re.IGNORECASE)),
    Signal("discussion_keyword", matches_regex(
        r'\b(?:solution|approach|algorithm|complexity|time|space|intuition)\b', re.IGNORECASE)),
    Signal("big_o_notation", matches_regex(r'O\([^)]+\)')),
    Signal("timing", matches_regex(r'\b\d+\s*(?:ms|seconds?)\b', re.IGNORECASE)),
)

APPROACH_KEYWORD_SIGNAL = Signal("approach_keyword", matches_regex(
    r'\b(?:approach|algorithm|intuition|solution|complexity|time|space)\b', re.IGNORECASE))

# Structural code shapes that never appear in prose
STRUCTURAL_CODE_SIGNALS: Tuple[Signal, ...] = tuple(
    signal for signal in CODE_POSITIVE_SIGNALS
    if signal.name in ("class_declaration", "def_declarator", "arrow_function", "brace_pair")
)

# Ordered: the first matching rule names the language
LANGUAGE_RULES: Tuple[Tuple[str, Signal], ...] = (
    ("python", Signal("python_shape", matches_regex(r'\bdef\s+\w+\s*\(|\bself\b'))),
    ("rust", Signal("rust_shape", matches_regex(r'\bfn\s+\w+\s*\(|\bimpl\s+\w+|\blet\s+mut\b|\bVec<'))),
    ("javascript", Signal("javascript_shape", matches_regex(r'\bfunction\b|\bvar\s|\blet\s|\bconst\s+\w+\s*='))),
    ("java", Signal("java_shape", matches_regex(r'\bpublic\s+(?:class|int|boolean|String|long|void)\b'))),
    ("cpp", Signal("cpp_shape", matches_regex(r'#include|\bcout\b|\bstd::|\bpublic:|\bvector\s*<'))),
    ("go", Signal("go_shape", matches_regex(r'\bfunc\s|\bpackage\s+main\b'))),
)

LANGUAGE_ALIASES = {
    'python': 'python', 'python3': 'python', 'py': 'python',
    'rust': 'rust', 'rs': 'rust',
    'javascript': 'javascript', 'js': 'javascript',
    'typescript': 'typescript', 'ts': 'typescript',
    'java': 'java',
    'cpp': 'cpp', 'c++': 'cpp', 'cplusplus': 'cpp',
    'c': 'c',
    'csharp': 'csharp', 'cs': 'csharp', 'c#': 'csharp',
    'go': 'go', 'golang': 'go',
    'kotlin': 'kotlin', 'swift': 'swift',
}

_LANGUAGE_CLASS_PATTERN = re.compile(r'\b(?:language|lang)-([\w+#]+)', re.IGNORECASE)

# Ordered: the first match wins
_COUNT = r'(\d+(?:\.\d+)?\s*[KkMm]?)'
VOTE_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(_COUNT + r'\s*(?:(?:upvotes?|votes?|likes?)\b|👍)', re.IGNORECASE),
    re.compile(r'(?:\b(?:upvotes?|votes?|likes?)\b|👍)\s*:?\s*' + _COUNT, re.IGNORECASE),
    re.compile(_COUNT + r'\s*↑'),
    re.compile(r'▲\s*' + _COUNT),
    re.compile(_COUNT + r'\s*▲'),
    re.compile(r'Read more\s*' + _COUNT),
)

AUTHOR_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r'\bby\s+([\w-]+)', re.IGNORECASE),
    re.compile(r'\bauthor:?\s*([\w-]+)', re.IGNORECASE),
    re.compile(r'@([\w-]+)'),
)

_COMPLEXITY_VALUE = r'(O\((?:[^()]|\([^()]*\))+\))'
TIME_COMPLEXITY_PATTERN = re.compile(r'Time[^:\n]*complexity[^:\n]*:?\s*' + _COMPLEXITY_VALUE, re.IGNORECASE)
SPACE_COMPLEXITY_PATTERN = re.compile(r'Space[^:\n]*complexity[^:\n]*:?\s*' + _COMPLEXITY_VALUE, re.IGNORECASE)


# =============================================================================
# Text helpers
# =============================================================================

def normalize_whitespace(text: str) -> str:
    return re.sub(r'\s+', ' ', text).strip()


def fingerprint(text: str) -> str:
    """Lower-cased, whitespace-collapsed, truncated key used for de-duplication"""
    return normalize_whitespace(text.lower())[:FINGERPRINT_LENGTH]


def clean_comment_text(text: str) -> str:
    """Strip discussion-widget chrome from comment text"""
    text = normalize_whitespace(text)
    text = re.sub(r'Read more\s*(?:\d+(?:\.\d+)?\s*[KkMm]?)?', '', text)
    text = re.sub(r'Show \d+ Repl(?:y|ies)', '', text)
    text = re.sub(r'\s*Reply\s*$', '', text)
    return normalize_whitespace(text)


def language_from_class(class_attribute: Optional[str]) -> Optional[str]:
    """Extract a language hint such as 'python' from 'language-python hljs'"""
    if not class_attribute:
        return None
    match = _LANGUAGE_CLASS_PATTERN.search(class_attribute)
    return match.group(1).lower() if match else None


def infer_language(code: str, hint: Optional[str] = None) -> str:
    if hint:
        recognized = LANGUAGE_ALIASES.get(hint.lower())
        if recognized:
            return recognized
    for language, rule in LANGUAGE_RULES:
        if rule.matches(code):
            return language
    return "unknown"


def _expand_count(raw: str) -> int:
    raw = raw.replace(' ', '')
    multiplier = 1
    if raw[-1] in 'Kk':
        multiplier, raw = 1000, raw[:-1]
    elif raw[-1] in 'Mm':
        multiplier, raw = 1000000, raw[:-1]
    return int(round(float(raw) * multiplier))


def parse_votes(text: str) -> Optional[int]:
    """Return the first vote count found in text, or None when there is none"""
    collapsed = normalize_whitespace(text or "")
    for pattern in VOTE_PATTERNS:
        match = pattern.search(collapsed)
        if match:
            return _expand_count(match.group(1))
    return None


def parse_author(text: str) -> Optional[str]:
    for pattern in AUTHOR_PATTERNS:
        match = pattern.search(text or "")
        if match:
            return match.group(1)
    return None


def extract_complexity(text: str) -> Complexity:
    """Pull 'Time complexity: O(..)' / 'Space complexity: O(..)' out of free text"""
    complexity = Complexity()
    if not text:
        return complexity
    time_match = TIME_COMPLEXITY_PATTERN.search(text)
    if time_match:
        complexity.time = time_match.group(1)
    space_match = SPACE_COMPLEXITY_PATTERN.search(text)
    if space_match:
        complexity.space = space_match.group(1)
    return complexity


def first_matching(signals: Iterable[Signal], text: str) -> Optional[str]:
    """Name of the first signal that matches, for debug logging"""
    for signal in signals:
        if signal.matches(text):
            return signal.name
    return None


CandidateInput = Union[CandidateBlock, Tuple[str, Provenance]]


def _coerce(candidate: CandidateInput) -> Optional[CandidateBlock]:
    if isinstance(candidate, tuple) and len(candidate) == 2:
        candidate = CandidateBlock(candidate[0], candidate[1])
    if not isinstance(candidate, CandidateBlock):
        return None
    if not isinstance(candidate.text, str) or not candidate.text.strip():
        return None
    return candidate


# =============================================================================
# Classifier
# =============================================================================

class ExtractionClassifier:
    """
    Classifies candidate blocks into code, comment and approach artifacts.

    Args:
        min_code_length (int): Shortest text that may count as code
        max_code_length (int): Longest text that may count as code
        min_comment_length (int): Shortest cleaned text that may count as a comment
        max_code_artifacts (int): Default cap for classify_code
        max_comments (int): Default cap for classify_comments
        allow_vote_placeholder (bool): Substitute a random vote count in [0, 100)
            for comments without one, flagged with votes_synthetic
        rng (random.Random, optional): Source of placeholder votes
    """

    APPROACH_MIN_LENGTH = 100
    APPROACH_MAX_LENGTH = 1000
    MAX_COMMENT_LENGTH = 2000

    def __init__(self, min_code_length: int = 30, max_code_length: int = 5000,
                 min_comment_length: int = 20, max_code_artifacts: int = 5,
                 max_comments: int = 5, allow_vote_placeholder: bool = False,
                 rng: Optional[random.Random] = None):
        self.min_code_length = min_code_length
        self.max_code_length = max_code_length
        self.min_comment_length = min_comment_length
        self.max_code_artifacts = max_code_artifacts
        self.max_comments = max_comments
        self.allow_vote_placeholder = allow_vote_placeholder
        self.rng = rng or random.Random()

    @classmethod
    def from_config(cls, config) -> "ExtractionClassifier":
        return cls(
            min_code_length=config.min_code_length,
            max_code_length=config.max_code_length,
            min_comment_length=config.min_comment_length,
            max_code_artifacts=config.max_code_artifacts,
            max_comments=config.max_comments,
            allow_vote_placeholder=config.allow_vote_placeholder,
        )

    # -- code -----------------------------------------------------------------

    def qualifies_as_code(self, text: str) -> bool:
        if not isinstance(text, str):
            return False
        text = text.strip()
        if not self.min_code_length <= len(text) <= self.max_code_length:
            return False
        if not any(signal.matches(text) for signal in CODE_POSITIVE_SIGNALS):
            return False
        rejected_by = first_matching(CODE_NEGATIVE_SIGNALS, text)
        if rejected_by:
            logger.debug(f"Rejected code candidate ({rejected_by}): {text[:60]!r}")
            return False
        return True

    def classify_code(self, candidates: Sequence[CandidateInput], limit: Optional[int] = None,
                      seen: Optional[Set[str]] = None) -> List[ClassifiedArtifact]:
        """
        Select genuine source code from candidate blocks.

        Args:
            candidates: Candidate blocks in document order
            limit: Output cap, defaults to max_code_artifacts
            seen: Fingerprints already taken in this extraction pass, updated in place

        Returns:
            List[ClassifiedArtifact]: Longest first, unique by fingerprint
        """
        limit = self.max_code_artifacts if limit is None else limit
        seen = set() if seen is None else seen

        qualifying = []
        for candidate in candidates:
            block = _coerce(candidate)
            if block and self.qualifies_as_code(block.text):
                qualifying.append(block)

        qualifying.sort(key=lambda block: len(block.text.strip()), reverse=True)

        artifacts: List[ClassifiedArtifact] = []
        for block in qualifying:
            if len(artifacts) >= limit:
                break
            text = block.text.strip()
            key = fingerprint(text)
            if key in seen:
                continue
            seen.add(key)
            artifacts.append(ClassifiedArtifact(
                kind=ArtifactKind.CODE,
                text=text,
                fingerprint=key,
                provenance=block.provenance,
                language=infer_language(text, block.language_hint),
            ))

        logger.debug(f"classify_code: {len(artifacts)} of {len(candidates)} candidates kept")
        return artifacts

    def classify_code_by_priority(self, tiers: Sequence[Sequence[CandidateInput]], limit: Optional[int] = None,
                                  seen: Optional[Set[str]] = None) -> List[ClassifiedArtifact]:
        """
        classify_code() over candidate tiers, highest priority first.

        Every artifact of a tier comes before any artifact of a later tier;
        longest-first ordering applies within a tier. Later tiers fill only the
        room the earlier ones left under the cap.
        """
        limit = self.max_code_artifacts if limit is None else limit
        seen = set() if seen is None else seen

        artifacts: List[ClassifiedArtifact] = []
        for tier in tiers:
            if len(artifacts) >= limit:
                break
            artifacts.extend(self.classify_code(tier, limit=limit - len(artifacts), seen=seen))
        return artifacts

    # -- comments -------------------------------------------------------------

    def qualifies_as_comment(self, text: str) -> bool:
        if not self.min_comment_length <= len(text) <= self.MAX_COMMENT_LENGTH:
            return False
        if not any(signal.matches(text) for signal in COMMENT_POSITIVE_SIGNALS):
            return False
        return not any(signal.matches(text) for signal in PAGE_SCRIPT_SIGNALS)

    def classify_comments(self, candidates: Sequence[CandidateInput], limit: Optional[int] = None,
                          seen: Optional[Set[str]] = None) -> List[ClassifiedArtifact]:
        """Select discussion comments, in document order, unique by cleaned fingerprint"""
        limit = self.max_comments if limit is None else limit
        seen = set() if seen is None else seen
        artifacts: List[ClassifiedArtifact] = []

        for candidate in candidates:
            if len(artifacts) >= limit:
                break
            block = _coerce(candidate)
            if block is None:
                continue

            raw = normalize_whitespace(block.text)
            cleaned = clean_comment_text(raw)
            # Markers such as "Reply" disappear with cleaning, signals run on the raw text
            if not self.qualifies_as_comment(raw) or len(cleaned) < self.min_comment_length:
                continue

            key = fingerprint(cleaned)
            if key in seen:
                continue
            seen.add(key)

            votes = parse_votes(raw)
            synthetic = False
            if votes is None and self.allow_vote_placeholder:
                votes = self.rng.randrange(100)
                synthetic = True

            artifacts.append(ClassifiedArtifact(
                kind=ArtifactKind.COMMENT,
                text=cleaned,
                fingerprint=key,
                provenance=block.provenance,
                votes=votes,
                votes_synthetic=synthetic,
            ))

        return artifacts

    # -- approach text ----------------------------------------------------------

    def classify_approach(self, candidates: Sequence[CandidateInput],
                          seen: Optional[Set[str]] = None) -> List[ClassifiedArtifact]:
        """Pick the single longest paragraph that describes an approach in prose"""
        seen = set() if seen is None else seen
        best: Optional[CandidateBlock] = None
        best_text = ""

        for candidate in candidates:
            block = _coerce(candidate)
            if block is None:
                continue
            text = normalize_whitespace(block.text)
            if not self.APPROACH_MIN_LENGTH <= len(text) <= self.APPROACH_MAX_LENGTH:
                continue
            if not APPROACH_KEYWORD_SIGNAL.matches(text):
                continue
            if any(signal.matches(text) for signal in PAGE_SCRIPT_SIGNALS):
                continue
            if any(signal.matches(text) for signal in STRUCTURAL_CODE_SIGNALS):
                continue
            if fingerprint(text) in seen:
                continue
            if len(text) > len(best_text):
                best, best_text = block, text

        if best is None:
            return []

        key = fingerprint(best_text)
        seen.add(key)
        return [ClassifiedArtifact(
            kind=ArtifactKind.APPROACH_TEXT,
            text=best_text,
            fingerprint=key,
            provenance=best.provenance,
        )]
