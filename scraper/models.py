"""
Record types produced by the scrapers and consumed by the exporters

Every record carries ``is_fallback`` and ``provenance`` so that downstream
consumers can filter out degraded entries.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    return value


@dataclass(frozen=True)
class ProblemEntry:
    """Catalog entry for a problem the batch driver visits"""
    title: str
    slug: str
    difficulty: str


@dataclass
class Example:
    input: str
    output: str
    explanation: Optional[str] = None


@dataclass
class Complexity:
    time: str = ""
    space: str = ""

    def is_empty(self) -> bool:
        return not self.time and not self.space


@dataclass
class EditorialApproach:
    """One 'Approach N' section of an editorial, split by its sub-headings"""
    title: str
    intuition: str = ""
    algorithm: str = ""
    implementation: str = ""
    complexity_analysis: str = ""
    complexity: Complexity = field(default_factory=Complexity)
    code: List[str] = field(default_factory=list)
    content: str = ""


@dataclass
class EditorialImplementation:
    """A code playground embedded in an editorial; content is None when the frame was unreadable"""
    id: str
    src: str
    content: Optional[str] = None


@dataclass
class VideoSolution:
    found: bool = False
    url: str = ""


@dataclass
class Problem:
    id: str
    title: str
    slug: str
    difficulty: str
    description: str
    url: str
    tags: List[str] = field(default_factory=list)
    likes: int = 0
    dislikes: int = 0
    acceptance: Optional[float] = None
    is_premium: bool = False
    companies: List[str] = field(default_factory=list)
    similar_problems: List[str] = field(default_factory=list)
    hints: List[str] = field(default_factory=list)
    constraints: str = ""
    examples: List[Example] = field(default_factory=list)
    scraped_at: datetime = field(default_factory=datetime.now)
    is_fallback: bool = False
    provenance: str = "problem-page"

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(asdict(self))


@dataclass
class Solution:
    problem_id: str
    title: str
    content: str
    language: str
    url: str
    author: str = "Unknown"
    votes: Optional[int] = None
    runtime: str = ""
    memory: str = ""
    approach: str = ""
    complexity: Complexity = field(default_factory=Complexity)
    explanation: str = ""
    approaches: List[EditorialApproach] = field(default_factory=list)
    implementations: List[EditorialImplementation] = field(default_factory=list)
    video: VideoSolution = field(default_factory=VideoSolution)
    is_editorial: bool = False
    is_community_top: bool = False
    scraped_at: datetime = field(default_factory=datetime.now)
    is_fallback: bool = False
    provenance: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(asdict(self))

    def editorial_summary(self) -> Dict[str, Any]:
        return {
            'total_approaches': len(self.approaches),
            'total_implementations': len(self.implementations),
            'readable_implementations': sum(1 for i in self.implementations if i.content is not None),
            'has_video_solution': self.video.found,
        }


@dataclass
class Comment:
    id: str
    problem_id: str
    content: str
    author: str = "Anonymous"
    votes: Optional[int] = None
    votes_synthetic: bool = False
    solution_id: Optional[str] = None
    timestamp: Optional[str] = None
    scraped_at: datetime = field(default_factory=datetime.now)
    is_fallback: bool = False
    provenance: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(asdict(self))


@dataclass
class ProblemBundle:
    """Everything scraped for one problem in a single batch item"""
    problem: Problem
    solutions: List[Solution] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)


@dataclass
class Dataset:
    problems: List[Problem] = field(default_factory=list)
    solutions: List[Solution] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)

    def add_bundle(self, bundle: ProblemBundle) -> None:
        self.problems.append(bundle.problem)
        self.solutions.extend(bundle.solutions)
        self.comments.extend(bundle.comments)

    @classmethod
    def from_bundles(cls, bundles: List[ProblemBundle]) -> "Dataset":
        dataset = cls()
        for bundle in bundles:
            dataset.add_bundle(bundle)
        return dataset

    def fallback_counts(self) -> Dict[str, int]:
        return {
            'problems': sum(1 for p in self.problems if p.is_fallback),
            'solutions': sum(1 for s in self.solutions if s.is_fallback),
            'comments': sum(1 for c in self.comments if c.is_fallback),
        }
