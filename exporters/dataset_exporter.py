"""
Dataset exporter for CodeSage Scrape

Writes a scraped Dataset as JSON (one document with a metadata header), JSONL
(one file per record type) or CSV (one file per record type with fixed
columns), plus an optional metadata file with breakdowns and data quality
counts. export_for_llm_training() turns problem/solution pairs into
instruction/input/output examples. DatasetStream appends every finished batch
item to JSONL files right away, so an interrupted run keeps what it scraped.

Example:
    >>> exporter = DatasetExporter("./data")
    >>> paths = exporter.export(dataset, export_format="csv")
    >>> sorted(p.name for p in paths)
    ['leetcode_dataset_2024-01-01_comments.csv', ...]
"""

import json
import logging
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from scraper.models import Dataset, Problem, ProblemBundle, Solution
from utils.config import EXPORT_FORMATS
from utils.error_handler import ConfigurationError
from utils.file_manager import FileManager
from utils.retry import ExtractionResult

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0.0"
DEFAULT_FILE_PREFIX = "leetcode_dataset"

# CSV column maps: header -> record field
PROBLEM_COLUMNS = {
    'ID': 'id',
    'Title': 'title',
    'Slug': 'slug',
    'Difficulty': 'difficulty',
    'Description': 'description',
    'Tags': 'tags',
    'Acceptance': 'acceptance',
    'URL': 'url',
    'Is Premium': 'is_premium',
    'Constraints': 'constraints',
    'Examples': 'examples',
    'Scraped At': 'scraped_at',
    'Is Fallback': 'is_fallback',
    'Provenance': 'provenance',
}

SOLUTION_COLUMNS = {
    'Problem ID': 'problem_id',
    'Title': 'title',
    'Content': 'content',
    'Language': 'language',
    'Runtime': 'runtime',
    'Memory': 'memory',
    'Author': 'author',
    'Votes': 'votes',
    'Approach': 'approach',
    'Complexity': 'complexity',
    'Explanation': 'explanation',
    'Approaches': 'approaches',
    'Implementations': 'implementations',
    'URL': 'url',
    'Scraped At': 'scraped_at',
    'Is Fallback': 'is_fallback',
    'Provenance': 'provenance',
}

COMMENT_COLUMNS = {
    'ID': 'id',
    'Problem ID': 'problem_id',
    'Solution ID': 'solution_id',
    'Author': 'author',
    'Content': 'content',
    'Votes': 'votes',
    'Votes Synthetic': 'votes_synthetic',
    'Timestamp': 'timestamp',
    'Scraped At': 'scraped_at',
    'Is Fallback': 'is_fallback',
    'Provenance': 'provenance',
}

RECORD_TYPES = ('problems', 'solutions', 'comments')


def default_file_name(prefix: str = DEFAULT_FILE_PREFIX, today: Optional[datetime] = None) -> str:
    return f"{prefix}_{(today or datetime.now()).strftime('%Y-%m-%d')}"


def _csv_value(value: Any) -> Any:
    """Lists of strings are joined with '; ', other nested values are JSON-encoded"""
    if value is None:
        return ""
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return "; ".join(value)
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    return value


def to_csv_rows(records: Iterable[Dict[str, Any]], columns: Dict[str, str]) -> List[Dict[str, Any]]:
    return [{header: _csv_value(record.get(field)) for header, field in columns.items()}
            for record in records]


class DatasetExporter:
    """
    Export datasets to the output directory.

    Args:
        output_dir (Union[str, Path]): Directory that receives the files
    """

    def __init__(self, output_dir: Union[str, Path] = "./data"):
        self.output_dir = Path(output_dir)
        self.file_manager = FileManager(self.output_dir)

    def export(self, dataset: Dataset, export_format: str = "json", file_name: Optional[str] = None,
               include_metadata: bool = True) -> List[Path]:
        """
        Export dataset in the given format.

        Args:
            dataset: Records to export
            export_format: 'json', 'csv' or 'jsonl'
            file_name: Base name without extension, defaults to leetcode_dataset_<date>
            include_metadata: Also write <file_name>_metadata.json

        Returns:
            List[Path]: Written files

        Raises:
            ConfigurationError: If the format is not supported
            ExportError: If a file cannot be written
        """
        if export_format not in EXPORT_FORMATS:
            raise ConfigurationError(
                f"Unsupported export format: {export_format}. Expected one of {', '.join(EXPORT_FORMATS)}",
                "export_format", export_format)

        file_name = self.file_manager.safe_filename(file_name or default_file_name())
        self.file_manager.ensure_directory(self.output_dir)
        logger.info(f"Exporting dataset in {export_format} format...")

        if export_format == "json":
            paths = [self._export_json(dataset, file_name)]
        elif export_format == "jsonl":
            paths = self._export_jsonl(dataset, file_name)
        else:
            paths = self._export_csv(dataset, file_name)

        if include_metadata:
            paths.append(self.export_metadata(dataset, file_name, export_format))

        logger.info(f"Dataset exported successfully to {self.output_dir}")
        return paths

    @staticmethod
    def _records(dataset: Dataset) -> Dict[str, List[Dict[str, Any]]]:
        return {
            'problems': [problem.to_dict() for problem in dataset.problems],
            'solutions': [solution.to_dict() for solution in dataset.solutions],
            'comments': [comment.to_dict() for comment in dataset.comments],
        }

    def _export_json(self, dataset: Dataset, file_name: str) -> Path:
        document = {
            'metadata': {
                'exported_at': datetime.now().isoformat(),
                'total_problems': len(dataset.problems),
                'total_solutions': len(dataset.solutions),
                'total_comments': len(dataset.comments),
                'fallback_records': dataset.fallback_counts(),
                'version': EXPORT_VERSION,
            },
        }
        document.update(self._records(dataset))
        return self.file_manager.save_json(document, f"{file_name}.json")

    def _export_jsonl(self, dataset: Dataset, file_name: str) -> List[Path]:
        return [self.file_manager.save_jsonl(records, f"{file_name}_{record_type}.jsonl")
                for record_type, records in self._records(dataset).items()]

    def _export_csv(self, dataset: Dataset, file_name: str) -> List[Path]:
        records = self._records(dataset)
        column_maps = {'problems': PROBLEM_COLUMNS, 'solutions': SOLUTION_COLUMNS, 'comments': COMMENT_COLUMNS}
        return [
            self.file_manager.save_csv(to_csv_rows(records[record_type], columns), list(columns),
                                       f"{file_name}_{record_type}.csv")
            for record_type, columns in column_maps.items()
        ]

    # -- metadata ---------------------------------------------------------------

    @staticmethod
    def difficulty_breakdown(problems: List[Problem]) -> Dict[str, int]:
        return dict(Counter(problem.difficulty for problem in problems))

    @staticmethod
    def language_breakdown(solutions: List[Solution]) -> Dict[str, int]:
        return dict(Counter(solution.language for solution in solutions))

    @staticmethod
    def tag_breakdown(problems: List[Problem]) -> Dict[str, int]:
        return dict(Counter(tag for problem in problems for tag in problem.tags))

    @staticmethod
    def editorial_structure(solutions: List[Solution]) -> Dict[str, int]:
        """Summed editorial_summary() of the scraped editorials"""
        totals = Counter()
        for solution in solutions:
            if solution.is_editorial and not solution.is_fallback:
                totals['editorials'] += 1
                totals.update({key: int(value) for key, value in solution.editorial_summary().items()})
        return dict(totals)

    def build_metadata(self, dataset: Dataset, export_format: str) -> Dict[str, Any]:
        return {
            'export_info': {
                'exported_at': datetime.now().isoformat(),
                'format': export_format,
                'version': EXPORT_VERSION,
            },
            'statistics': {
                'total_problems': len(dataset.problems),
                'total_solutions': len(dataset.solutions),
                'total_comments': len(dataset.comments),
                'difficulty_breakdown': self.difficulty_breakdown(dataset.problems),
                'language_breakdown': self.language_breakdown(dataset.solutions),
                'tag_breakdown': self.tag_breakdown(dataset.problems),
                'editorial_structure': self.editorial_structure(dataset.solutions),
            },
            'data_quality': {
                'problems_with_examples': sum(1 for p in dataset.problems if p.examples),
                'solutions_with_code': sum(1 for s in dataset.solutions if len(s.content) > 50),
                'comments_with_votes': sum(1 for c in dataset.comments if c.votes and not c.votes_synthetic),
                'fallback_records': dataset.fallback_counts(),
            },
        }

    def export_metadata(self, dataset: Dataset, file_name: str, export_format: str) -> Path:
        path = self.file_manager.save_json(self.build_metadata(dataset, export_format),
                                           f"{file_name}_metadata.json")
        logger.info(f"Metadata saved: {path}")
        return path

    # -- LLM training -----------------------------------------------------------

    @staticmethod
    def _problem_prompt(problem: Problem) -> str:
        return (f"Title: {problem.title}\nDifficulty: {problem.difficulty}\n\n"
                f"Description:\n{problem.description}")

    def build_training_examples(self, dataset: Dataset, include_fallbacks: bool = True) -> List[Dict[str, Any]]:
        """Instruction/input/output examples: one per solution, one per discussed problem"""
        examples = []
        for problem in dataset.problems:
            if problem.is_fallback and not include_fallbacks:
                continue
            solutions = [s for s in dataset.solutions if s.problem_id == problem.id
                         and (include_fallbacks or not s.is_fallback)]
            comments = [c for c in dataset.comments if c.problem_id == problem.id]

            example_input = "\n\n".join(
                f"Input: {ex.input}\nOutput: {ex.output}" + (f"\nExplanation: {ex.explanation}" if ex.explanation else "")
                for ex in problem.examples
            )
            for solution in solutions:
                examples.append({
                    'instruction': f"Solve the following LeetCode problem:\n\n{self._problem_prompt(problem)}",
                    'input': example_input,
                    'output': (f"Language: {solution.language}\n\nSolution:\n{solution.content}\n\n"
                               f"Explanation:\n{solution.explanation}"),
                    'metadata': {
                        'problem_id': problem.id,
                        'difficulty': problem.difficulty,
                        'tags': problem.tags,
                        'language': solution.language,
                        'votes': solution.votes,
                        'is_fallback': problem.is_fallback or solution.is_fallback,
                    },
                })

            top_comments = sorted(
                (c for c in comments if c.votes and not c.votes_synthetic and len(c.content) > 20),
                key=lambda c: c.votes, reverse=True)[:3]
            if top_comments:
                examples.append({
                    'instruction': ("Provide insights and discussion points for the following LeetCode "
                                    f"problem:\n\n{self._problem_prompt(problem)}"),
                    'input': 'What are some key insights, alternative approaches, or common pitfalls for this problem?',
                    'output': "\n".join(f"• {c.content} ({c.votes} votes)" for c in top_comments),
                    'metadata': {
                        'problem_id': problem.id,
                        'type': 'discussion',
                        'comment_count': len(comments),
                    },
                })
        return examples

    def export_for_llm_training(self, dataset: Dataset, output_dir: Optional[Union[str, Path]] = None,
                                include_fallbacks: bool = True) -> List[Path]:
        """Write llm_training/training_data.jsonl and llm_training/dataset_summary.json"""
        export_dir = self.file_manager.resolve(output_dir or "llm_training")
        logger.info("Preparing dataset for LLM training...")

        examples = self.build_training_examples(dataset, include_fallbacks)
        training_path = self.file_manager.save_jsonl(examples, export_dir / "training_data.jsonl")
        summary_path = self.file_manager.save_json({
            'total_training_examples': len(examples),
            'problems_covered': len(dataset.problems),
            'solutions_included': len(dataset.solutions),
            'comments_included': len(dataset.comments),
            'difficulty_distribution': self.difficulty_breakdown(dataset.problems),
            'language_distribution': self.language_breakdown(dataset.solutions),
            'fallback_records': dataset.fallback_counts(),
            'created_at': datetime.now().isoformat(),
        }, export_dir / "dataset_summary.json")

        logger.info(f"LLM training dataset exported: {training_path} ({len(examples)} examples)")
        return [training_path, summary_path]


class DatasetStream:
    """
    Append each finished batch item to <file_name>_<type>.stream.jsonl files.

    Pass write_result as the on_result callback of a batch run.
    """

    def __init__(self, output_dir: Union[str, Path], file_name: Optional[str] = None):
        self.file_manager = FileManager(output_dir)
        base = self.file_manager.safe_filename(file_name or default_file_name())
        self.paths = {record_type: self.file_manager.resolve(f"{base}_{record_type}.stream.jsonl")
                      for record_type in RECORD_TYPES}
        self.items_written = 0

    def write_bundle(self, bundle: ProblemBundle) -> None:
        self.file_manager.append_jsonl(bundle.problem.to_dict(), self.paths['problems'])
        for solution in bundle.solutions:
            self.file_manager.append_jsonl(solution.to_dict(), self.paths['solutions'])
        for comment in bundle.comments:
            self.file_manager.append_jsonl(comment.to_dict(), self.paths['comments'])
        self.items_written += 1

    def write_result(self, result: ExtractionResult) -> None:
        self.write_bundle(result.value)
        logger.debug(f"Flushed {result.item_id} to stream (fallback={result.is_fallback})")
