#!/usr/bin/env python3
"""
CodeSage Scrape
Main entry point for the application

This module provides:
- Command-line argument parsing for the scrape commands
- Logging configuration and management
- Configuration loading with command line overrides
- Graceful shutdown and cleanup
- Integration of all components (scraper, exporters)
"""

__version__ = "1.0.0"
__author__ = "CodeSage Team"
__license__ = "MIT"
__description__ = "Collect LeetCode problems, editorials, solutions and comments as training datasets"

import sys
import argparse
import logging
import signal
import traceback
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from scraper.leetcode_scraper import LeetCodeScraper
from scraper.models import Dataset
from exporters.dataset_exporter import DatasetExporter, DatasetStream, default_file_name
from utils.config import EXPORT_FORMATS, ScrapingConfig, create_default_config, load_config
from utils.error_handler import ConfigurationError, ExportError, ScrapeError, error_reporter

# command -> (scraper method, default limit)
COMMANDS = {
    'quick': ('scrape_problems', 5),
    'problems': ('scrape_problems', 20),
    'editorials': ('scrape_problems_with_editorials', 5),
    'top-solutions': ('scrape_problems_with_top_solutions', 5),
    'comments': ('scrape_problems_with_comments', 5),
}


class ApplicationManager:
    """
    Main application manager that handles initialization, configuration,
    and lifecycle management of CodeSage Scrape.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir else Path.home() / ".codesage_scrape"
        self.config_file = self.config_dir / "config.ini"
        self.log_file = self.config_dir / "app.log"

        self.config: Optional[ScrapingConfig] = None
        self.scraper: Optional[LeetCodeScraper] = None
        self.exporter: Optional[DatasetExporter] = None

        self.is_running = False

    def initialize(self, log_level: str = "INFO", overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize logging, configuration and components.

        Raises:
            ConfigurationError: If the configuration file or an override is invalid
        """
        self._create_config_directory()
        self._setup_logging(log_level)
        self._load_configuration(overrides or {})
        self._initialize_components()
        self._setup_signal_handlers()
        self.is_running = True
        logging.info("Application initialized successfully")

    def _create_config_directory(self):
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            # Fallback to current directory
            print(f"Warning: Could not create {self.config_dir}: {e}", file=sys.stderr)
            self.config_dir = Path.cwd() / ".codesage_scrape"
            self.config_dir.mkdir(exist_ok=True)
            self.log_file = self.config_dir / "app.log"
            if not self.config_file.exists():
                self.config_file = self.config_dir / "config.ini"

    def _setup_logging(self, log_level: str):
        """
        Configure logging with file and console handlers.
        """
        level = getattr(logging, log_level.upper(), logging.INFO)

        detailed_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
        )
        simple_formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s'
        )

        root_logger = logging.getLogger()
        root_logger.setLevel(min(level, logging.DEBUG))
        root_logger.handlers.clear()

        try:
            file_handler = logging.FileHandler(self.log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(detailed_formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            print(f"Warning: Could not setup file logging: {e}", file=sys.stderr)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(simple_formatter)
        root_logger.addHandler(console_handler)

        # Selenium and urllib3 are chatty at DEBUG
        for noisy in ('selenium', 'urllib3', 'WDM'):
            logging.getLogger(noisy).setLevel(logging.WARNING)

        logging.info(f"Logging configured. Level: {logging.getLevelName(level)}, Log file: {self.log_file}")

    def _load_configuration(self, overrides: Dict[str, Any]):
        """
        Load configuration from the INI file, creating a default one on first run.
        """
        if not self.config_file.exists():
            try:
                create_default_config(self.config_file)
            except OSError as e:
                logging.warning(f"Failed to create default configuration: {e}")

        self.config = load_config(self.config_file).with_overrides(**overrides)
        logging.debug(f"Effective configuration: {self.config}")

    def _initialize_components(self):
        self.scraper = LeetCodeScraper(self.config)
        self.exporter = DatasetExporter(self.config.output_directory)

    def _setup_signal_handlers(self):
        """
        Turn SIGTERM into KeyboardInterrupt so a terminated run unwinds like Ctrl+C.
        """
        def signal_handler(signum, frame):
            logging.info(f"Received signal {signum}, initiating graceful shutdown...")
            raise KeyboardInterrupt

        if hasattr(signal, 'SIGTERM'):
            signal.signal(signal.SIGTERM, signal_handler)

    def run_command(self, command: str, limit: Optional[int] = None, slugs: Optional[List[str]] = None,
                    llm: bool = False, stream: bool = False) -> Dict[str, Any]:
        """
        Scrape a dataset for command and export it.

        Args:
            command: One of COMMANDS
            limit: Number of problems, defaults to the command's own limit
            slugs: Explicit problem slugs or URLs
            llm: Also write the LLM training export
            stream: Append each finished problem to .stream.jsonl files as it completes

        Returns:
            Dict[str, Any]: Run summary with counts and written files
        """
        if not self.is_running:
            raise RuntimeError("Application not initialized")
        if command not in COMMANDS:
            raise ConfigurationError(f"Unknown command: {command}", "command", command)

        method_name, default_limit = COMMANDS[command]
        if limit is None and not slugs:
            limit = default_limit
        file_name = default_file_name(self.config.file_name_prefix)

        on_result = None
        if stream:
            dataset_stream = DatasetStream(self.config.output_directory, file_name)
            on_result = dataset_stream.write_result
            logging.info(f"Streaming results to {self.config.output_directory}")

        logging.info(f"Running '{command}' ({'browser' if self.config.use_browser else 'static'} mode)")
        dataset: Dataset = getattr(self.scraper, method_name)(limit=limit, slugs=slugs, on_result=on_result)

        files = self.exporter.export(
            dataset,
            export_format=self.config.export_format,
            file_name=file_name,
            include_metadata=self.config.include_metadata,
        )
        if llm:
            files.extend(self.exporter.export_for_llm_training(dataset))

        summary = {
            'command': command,
            'problems': len(dataset.problems),
            'solutions': len(dataset.solutions),
            'comments': len(dataset.comments),
            'fallbacks': dataset.fallback_counts(),
            'files': [str(path) for path in files],
        }

        error_summary = error_reporter.get_error_summary()
        if error_summary.get('total_errors'):
            logging.warning(f"Errors during run: {error_summary}")

        return summary

    def shutdown(self):
        """
        Graceful shutdown of the application.
        """
        if not self.is_running:
            return

        logging.info("Initiating application shutdown...")
        self.is_running = False

        logging.info("Application shutdown completed")


def print_summary(summary: Dict[str, Any]):
    print()
    print(f"Scraped {summary['problems']} problems, {summary['solutions']} solutions, "
          f"{summary['comments']} comments")
    fallbacks = summary['fallbacks']
    if any(fallbacks.values()):
        print(f"Fallback records: {fallbacks}")
    print("Files written:")
    for path in summary['files']:
        print(f"  {path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codesage-scrape",
        description="CodeSage Scrape - LeetCode dataset collector",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  quick            Scrape 5 problems
  problems         Scrape 20 problems
  editorials       Scrape 5 problems with their editorial solutions
  top-solutions    Scrape 5 problems with the top community solution
  comments         Scrape 5 problems with their top comments
  help             Show this message

Examples:
  %(prog)s quick                                   # Quick run, JSON output
  %(prog)s problems --format csv --output ./data   # 20 problems as CSV
  %(prog)s editorials --llm                        # Editorials plus LLM training export
  %(prog)s comments --problems two-sum 3sum        # Comments for chosen problems
  %(prog)s quick --static --log-level DEBUG        # No browser, debug logging
        """
    )

    parser.add_argument(
        'command',
        nargs='?',
        default='help',
        choices=list(COMMANDS) + ['help'],
        help='What to scrape (default: help)'
    )

    parser.add_argument(
        '--limit', '-n',
        type=int,
        help='Number of problems to scrape (overrides the command default)'
    )

    parser.add_argument(
        '--problems', '-p',
        nargs='+',
        metavar='SLUG_OR_URL',
        help='Scrape these problems instead of the first entries of the catalog'
    )

    parser.add_argument(
        '--format', '-f',
        dest='export_format',
        choices=list(EXPORT_FORMATS),
        help='Export format (default: from config, json)'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        help='Output directory for exported datasets'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        help='Path to custom configuration file'
    )

    parser.add_argument(
        '--log-level', '-l',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default='INFO',
        help='Set logging level (default: INFO)'
    )

    parser.add_argument(
        '--headless',
        dest='headless',
        action='store_true',
        default=None,
        help='Run the browser headless (default)'
    )

    parser.add_argument(
        '--no-headless',
        dest='headless',
        action='store_false',
        help='Show the browser window'
    )

    parser.add_argument(
        '--static',
        action='store_true',
        help='Fetch pages with requests instead of a browser'
    )

    parser.add_argument(
        '--delay',
        type=float,
        help='Seconds between requests'
    )

    parser.add_argument(
        '--retries',
        type=int,
        help='Attempts per problem before falling back to static data'
    )

    parser.add_argument(
        '--llm',
        action='store_true',
        help='Also export instruction/input/output JSONL for LLM training'
    )

    parser.add_argument(
        '--allow-vote-placeholder',
        action='store_true',
        default=None,
        help='Give comments without a visible vote count a random, flagged vote value'
    )

    parser.add_argument(
        '--stream',
        action='store_true',
        help='Append each finished problem to .stream.jsonl files immediately'
    )

    parser.add_argument(
        '--version', '-v',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    return parser


def parse_arguments(argv: Optional[List[str]] = None):
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    return build_parser().parse_args(argv)


def config_overrides(args) -> Dict[str, Any]:
    """Map parsed arguments onto ScrapingConfig fields; None means keep the configured value"""
    return {
        'export_format': args.export_format,
        'output_directory': args.output,
        'headless': args.headless,
        'use_browser': False if args.static else None,
        'delay_between_requests': args.delay,
        'max_attempts': args.retries,
        'allow_vote_placeholder': args.allow_vote_placeholder,
    }


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function of CodeSage Scrape.

    Returns:
        int: Process exit code
    """
    args = parse_arguments(argv)

    if args.command == 'help':
        build_parser().print_help()
        return 0

    app_manager = ApplicationManager()
    if args.config:
        app_manager.config_file = Path(args.config)

    try:
        app_manager.initialize(args.log_level, config_overrides(args))
        summary = app_manager.run_command(
            args.command,
            limit=args.limit,
            slugs=args.problems,
            llm=args.llm,
            stream=args.stream,
        )
        print_summary(summary)
        return 0

    except ConfigurationError as e:
        logging.error(f"Configuration error: {e}")
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    except ExportError as e:
        logging.error(f"Export failed: {e}")
        return 1

    except KeyboardInterrupt:
        logging.info("Application interrupted by user")
        return 130

    except ScrapeError as e:
        logging.error(f"Fatal application error: {e}")
        logging.debug(traceback.format_exc())
        return 1

    finally:
        app_manager.shutdown()


if __name__ == "__main__":
    sys.exit(main())
