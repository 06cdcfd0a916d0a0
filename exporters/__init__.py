"""
Exporters package for CodeSage Scrape
Writes scraped datasets as JSON, JSONL and CSV files
"""

from .dataset_exporter import DatasetExporter, DatasetStream

__all__ = ['DatasetExporter', 'DatasetStream']
