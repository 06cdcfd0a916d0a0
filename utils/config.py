"""
Configuration for CodeSage Scrape

Settings are read from an INI file with configparser, overlaid on the defaults
below, and finally overridden by command line flags. Invalid values raise
ConfigurationError before any page is fetched.
"""

import configparser
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

from utils.error_handler import ConfigurationError
from utils.retry import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)

EXPORT_FORMATS = ('json', 'csv', 'jsonl')


@dataclass(frozen=True)
class ScrapingConfig:
    """Session-wide scraping settings. Constructed once, never mutated."""

    # Browser / fetching
    headless: bool = True
    use_browser: bool = True
    timeout: int = 30
    settle_delay: float = 2.0
    delay_between_requests: float = 2.0
    user_agent: str = DEFAULT_USER_AGENT

    # Retry policy
    max_attempts: int = 3
    base_delay: float = 1.0
    backoff: str = "linear"
    backoff_multiplier: float = 2.0

    # Classification
    min_code_length: int = 30
    max_code_length: int = 5000
    min_comment_length: int = 20
    max_code_artifacts: int = 5
    max_comments: int = 5
    allow_vote_placeholder: bool = False

    # Export
    output_directory: str = field(default_factory=lambda: str(Path.cwd() / "data"))
    export_format: str = "json"
    file_name_prefix: str = "leetcode_dataset"
    include_metadata: bool = True

    def __post_init__(self):
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}",
                                     "timeout", self.timeout)
        if self.delay_between_requests < 0:
            raise ConfigurationError("delay_between_requests cannot be negative",
                                     "delay_between_requests", self.delay_between_requests)
        if self.settle_delay < 0:
            raise ConfigurationError("settle_delay cannot be negative",
                                     "settle_delay", self.settle_delay)
        if self.min_code_length < 1 or self.max_code_length <= self.min_code_length:
            raise ConfigurationError(
                f"Invalid code length bounds: {self.min_code_length}..{self.max_code_length}",
                "code_length", (self.min_code_length, self.max_code_length))
        if self.min_comment_length < 1:
            raise ConfigurationError("min_comment_length must be positive",
                                     "min_comment_length", self.min_comment_length)
        if self.max_code_artifacts < 1 or self.max_comments < 1:
            raise ConfigurationError("Artifact caps must be at least 1",
                                     "max_code_artifacts", self.max_code_artifacts)
        if self.export_format not in EXPORT_FORMATS:
            raise ConfigurationError(
                f"Unsupported export format: {self.export_format}. "
                f"Expected one of {', '.join(EXPORT_FORMATS)}",
                "export_format", self.export_format)
        # Builds and validates the policy eagerly
        self.retry_policy()

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            backoff=self.backoff,
            multiplier=self.backoff_multiplier,
        )

    def with_overrides(self, **overrides: Any) -> "ScrapingConfig":
        """Return a copy with the non-None overrides applied"""
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **values)


# INI layout: section -> {option: (field name, type)}
_INI_LAYOUT = {
    'DEFAULT': {
        'timeout': ('timeout', int),
        'headless_browser': ('headless', bool),
        'use_browser': ('use_browser', bool),
    },
    'Scraping': {
        'delay_between_requests': ('delay_between_requests', float),
        'settle_delay': ('settle_delay', float),
        'user_agent': ('user_agent', str),
        'min_code_length': ('min_code_length', int),
        'max_code_length': ('max_code_length', int),
        'min_comment_length': ('min_comment_length', int),
        'max_code_artifacts': ('max_code_artifacts', int),
        'max_comments': ('max_comments', int),
        'allow_vote_placeholder': ('allow_vote_placeholder', bool),
    },
    'Retry': {
        'max_attempts': ('max_attempts', int),
        'base_delay': ('base_delay', float),
        'backoff': ('backoff', str),
        'backoff_multiplier': ('backoff_multiplier', float),
    },
    'Export': {
        'output_directory': ('output_directory', str),
        'format': ('export_format', str),
        'file_name_prefix': ('file_name_prefix', str),
        'include_metadata': ('include_metadata', bool),
    },
}


def _read_option(parser: configparser.ConfigParser, section: str, option: str, kind: type) -> Any:
    if kind is bool:
        return parser.getboolean(section, option)
    if kind is int:
        return parser.getint(section, option)
    if kind is float:
        return parser.getfloat(section, option)
    return parser.get(section, option)


def load_config(config_file: Optional[Union[str, Path]] = None) -> ScrapingConfig:
    """
    Load configuration from an INI file.

    Missing files and missing options fall back to the dataclass defaults.
    Values that cannot be parsed raise ConfigurationError.

    Args:
        config_file: Path to the INI file

    Returns:
        ScrapingConfig: Validated configuration
    """
    if config_file is None:
        return ScrapingConfig()

    path = Path(config_file)
    if not path.exists():
        logger.info(f"No configuration file at {path}, using defaults")
        return ScrapingConfig()

    parser = configparser.ConfigParser()
    try:
        parser.read(path, encoding='utf-8')
    except configparser.Error as e:
        raise ConfigurationError(f"Cannot parse configuration file {path}: {e}", "config_file", str(path))

    values: Dict[str, Any] = {}
    for section, options in _INI_LAYOUT.items():
        if section != 'DEFAULT' and not parser.has_section(section):
            continue
        for option, (field_name, kind) in options.items():
            if not parser.has_option(section, option):
                continue
            try:
                values[field_name] = _read_option(parser, section, option, kind)
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid value for [{section}] {option}: {e}", option,
                    parser.get(section, option))

    logger.debug(f"Configuration loaded from {path}: {sorted(values)}")
    return ScrapingConfig(**values)


def create_default_config(config_file: Union[str, Path]) -> Path:
    """Write a default configuration file and return its path"""
    defaults = ScrapingConfig()
    parser = configparser.ConfigParser()

    for section, options in _INI_LAYOUT.items():
        if section != 'DEFAULT':
            parser[section] = {}
        target = parser.defaults() if section == 'DEFAULT' else parser[section]
        for option, (field_name, kind) in options.items():
            value = getattr(defaults, field_name)
            target[option] = str(value).lower() if kind is bool else str(value)

    path = Path(config_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        parser.write(f)
    logger.info(f"Default configuration created: {path}")
    return path
