"""
Utils package for CodeSage Scrape
Contains configuration, error handling, retries, URL parsing and file management
"""

from .url_parser import URLParser
from .file_manager import FileManager
from .config import ScrapingConfig, load_config
from .retry import ExtractionResult, RetryPolicy, run_batch, run_with_retry

__all__ = [
    'URLParser',
    'FileManager',
    'ScrapingConfig',
    'load_config',
    'ExtractionResult',
    'RetryPolicy',
    'run_batch',
    'run_with_retry',
]
