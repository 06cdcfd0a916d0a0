"""
Scraper package for CodeSage Scrape
Contains the base scraper class, the LeetCode scraper and the extraction classifier
"""

from .base_scraper import BaseScraper
from .classifier import ExtractionClassifier
from .leetcode_scraper import LeetCodeScraper

__all__ = [
    'BaseScraper',
    'ExtractionClassifier',
    'LeetCodeScraper',
]
