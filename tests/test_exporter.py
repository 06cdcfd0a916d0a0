import os, sys
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
import csv
import json
from datetime import datetime

import pytest

from exporters.dataset_exporter import DatasetExporter, DatasetStream, default_file_name, to_csv_rows, \
    PROBLEM_COLUMNS
from scraper.fallbacks import fallback_editorial, fallback_problem, find_entry
from scraper.models import (
    Comment, Complexity, Dataset, EditorialApproach, EditorialImplementation, Example, Problem, ProblemBundle,
    Solution, VideoSolution
)
from utils.error_handler import ConfigurationError
from utils.retry import ExtractionResult

FILE_NAME = "dataset_test"


@pytest.fixture
def dataset():
    problem = Problem(
        id='two-sum', title='Two Sum', slug='two-sum', difficulty='Easy',
        description='Given an array of integers nums and an integer target...',
        url='https://leetcode.com/problems/two-sum/',
        tags=['Array', 'Hash Table'],
        examples=[Example(input='nums = [2,7,11,15], target = 9', output='[0,1]')],
    )
    solution = Solution(
        problem_id='two-sum', title='Editorial Solution: Two Sum',
        content='class Solution:\n    def twoSum(self, nums, target):\n        return []',
        language='python', url='https://leetcode.com/problems/two-sum/editorial/',
        complexity=Complexity(time='O(n)', space='O(n)'), is_editorial=True,
        approaches=[EditorialApproach(title='Approach 1: Hash Map', intuition='Remember what was seen.',
                                      complexity=Complexity(time='O(n)', space='O(n)'))],
        implementations=[EditorialImplementation(id='iframe-1', src='https://leetcode.com/playground/abc/shared')],
        video=VideoSolution(found=True, url='https://player.vimeo.com/video/1'),
        provenance='sibling-of-heading',
    )
    comments = [
        Comment(id='two-sum-comment-1', problem_id='two-sum', content='Great hash map trick, thanks for sharing',
                votes=12, provenance='comment-element'),
        Comment(id='two-sum-comment-2', problem_id='two-sum', content='Placeholder voted comment about the approach',
                votes=40, votes_synthetic=True, provenance='comment-element'),
    ]
    entry = find_entry('add-two-numbers')
    return Dataset(
        problems=[problem, fallback_problem(entry)],
        solutions=[solution, fallback_editorial(entry)],
        comments=comments,
    )


def test_default_file_name():
    assert default_file_name(today=datetime(2024, 3, 9)) == 'leetcode_dataset_2024-03-09'
    assert default_file_name('custom', datetime(2024, 3, 9)) == 'custom_2024-03-09'


def test_export_json(tmp_path, dataset):
    exporter = DatasetExporter(tmp_path)

    paths = exporter.export(dataset, 'json', FILE_NAME)

    assert [p.name for p in paths] == [f'{FILE_NAME}.json', f'{FILE_NAME}_metadata.json']
    document = json.loads((tmp_path / f'{FILE_NAME}.json').read_text(encoding='utf-8'))
    assert document['metadata']['total_problems'] == 2
    assert document['metadata']['fallback_records'] == {'problems': 1, 'solutions': 1, 'comments': 0}
    assert document['problems'][0]['examples'][0]['output'] == '[0,1]'
    assert document['problems'][1]['is_fallback'] is True
    assert document['problems'][1]['provenance'] == 'static-fallback'
    assert document['solutions'][0]['complexity'] == {'time': 'O(n)', 'space': 'O(n)'}
    assert document['solutions'][0]['approaches'][0]['complexity'] == {'time': 'O(n)', 'space': 'O(n)'}
    assert document['solutions'][0]['implementations'][0]['content'] is None
    assert document['solutions'][0]['video']['found'] is True
    # datetimes are written as ISO strings
    datetime.fromisoformat(document['problems'][0]['scraped_at'])


def test_export_jsonl(tmp_path, dataset):
    paths = DatasetExporter(tmp_path).export(dataset, 'jsonl', FILE_NAME, include_metadata=False)

    assert [p.name for p in paths] == [f'{FILE_NAME}_problems.jsonl', f'{FILE_NAME}_solutions.jsonl',
                                       f'{FILE_NAME}_comments.jsonl']
    lines = (tmp_path / f'{FILE_NAME}_comments.jsonl').read_text(encoding='utf-8').splitlines()
    assert len(lines) == 2
    assert json.loads(lines[1])['votes_synthetic'] is True


def test_export_csv(tmp_path, dataset):
    DatasetExporter(tmp_path).export(dataset, 'csv', FILE_NAME, include_metadata=False)

    with open(tmp_path / f'{FILE_NAME}_problems.csv', encoding='utf-8', newline='') as f:
        rows = list(csv.DictReader(f))

    assert list(rows[0]) == list(PROBLEM_COLUMNS)
    assert rows[0]['Tags'] == 'Array; Hash Table'
    assert json.loads(rows[0]['Examples'])[0]['input'] == 'nums = [2,7,11,15], target = 9'
    assert rows[0]['Acceptance'] == ''
    assert rows[1]['Is Fallback'] == 'True'

    with open(tmp_path / f'{FILE_NAME}_solutions.csv', encoding='utf-8', newline='') as f:
        solutions = list(csv.DictReader(f))
    assert solutions[0]['Votes'] == ''
    assert solutions[1]['Votes'] == '1000'
    assert json.loads(solutions[0]['Approaches'])[0]['title'] == 'Approach 1: Hash Map'
    assert solutions[1]['Approaches'] == ''


def test_to_csv_rows_maps_headers():
    rows = to_csv_rows([{'id': 'x', 'tags': [], 'examples': []}], {'ID': 'id', 'Tags': 'tags', 'Slug': 'slug'})
    assert rows == [{'ID': 'x', 'Tags': '', 'Slug': ''}]


def test_unsupported_format_raises(tmp_path, dataset):
    with pytest.raises(ConfigurationError):
        DatasetExporter(tmp_path).export(dataset, 'xml', FILE_NAME)


def test_metadata(tmp_path, dataset):
    metadata = DatasetExporter(tmp_path).build_metadata(dataset, 'json')

    assert metadata['export_info']['format'] == 'json'
    assert metadata['statistics']['difficulty_breakdown'] == {'Easy': 1, 'Medium': 1}
    assert metadata['statistics']['language_breakdown'] == {'python': 2}
    assert metadata['statistics']['tag_breakdown']['Array'] == 1
    # the fallback editorial is not counted
    assert metadata['statistics']['editorial_structure'] == {
        'editorials': 1, 'total_approaches': 1, 'total_implementations': 1,
        'readable_implementations': 0, 'has_video_solution': 1,
    }
    assert metadata['data_quality']['problems_with_examples'] == 2
    # synthetic votes are not counted as real votes
    assert metadata['data_quality']['comments_with_votes'] == 1


def test_llm_training_export(tmp_path, dataset):
    exporter = DatasetExporter(tmp_path)

    paths = exporter.export_for_llm_training(dataset)

    assert paths[0] == tmp_path.resolve() / 'llm_training' / 'training_data.jsonl'
    examples = [json.loads(line) for line in paths[0].read_text(encoding='utf-8').splitlines()]
    # one per solution plus one discussion example for two-sum
    assert len(examples) == 3
    assert examples[0]['instruction'].startswith('Solve the following LeetCode problem')
    assert 'Input: nums = [2,7,11,15], target = 9' in examples[0]['input']
    discussion = [e for e in examples if e['metadata'].get('type') == 'discussion']
    assert len(discussion) == 1
    assert '(12 votes)' in discussion[0]['output']
    assert '40 votes' not in discussion[0]['output']

    summary = json.loads(paths[1].read_text(encoding='utf-8'))
    assert summary['total_training_examples'] == 3


def test_training_examples_can_skip_fallbacks(tmp_path, dataset):
    examples = DatasetExporter(tmp_path).build_training_examples(dataset, include_fallbacks=False)
    assert all(not e['metadata'].get('is_fallback') for e in examples)
    assert {e['metadata']['problem_id'] for e in examples} == {'two-sum'}


def test_stream_appends_each_result(tmp_path, dataset):
    stream = DatasetStream(tmp_path, FILE_NAME)
    entry = find_entry('add-two-numbers')

    stream.write_result(ExtractionResult('two-sum', ProblemBundle(dataset.problems[0], [dataset.solutions[0]])))
    stream.write_result(ExtractionResult('add-two-numbers', ProblemBundle(fallback_problem(entry)), is_fallback=True))

    problems = (tmp_path / f'{FILE_NAME}_problems.stream.jsonl').read_text(encoding='utf-8').splitlines()
    solutions = (tmp_path / f'{FILE_NAME}_solutions.stream.jsonl').read_text(encoding='utf-8').splitlines()
    assert stream.items_written == 2
    assert [json.loads(line)['slug'] for line in problems] == ['two-sum', 'add-two-numbers']
    assert len(solutions) == 1
    assert not (tmp_path / f'{FILE_NAME}_comments.stream.jsonl').exists()
