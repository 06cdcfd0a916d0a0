"""
File Manager for CodeSage Scrape
Handles output directories and the JSON / JSONL / CSV writes of the exporters
"""

import csv
import json
import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from utils.error_handler import ErrorDetector, ExportError, handle_exception

logger = logging.getLogger(__name__)


class FileManager:
    """
    Utility class for managing dataset files and directories
    """

    def __init__(self, base_dir: Optional[Union[str, Path]] = None):
        """
        Initialize File Manager

        Args:
            base_dir (Optional[Union[str, Path]]): Directory all relative paths resolve against
        """
        self.base_dir = (Path(base_dir) if base_dir else Path.cwd()).resolve()

    def resolve(self, filename: Union[str, Path]) -> Path:
        path = Path(filename)
        return path if path.is_absolute() else self.base_dir / path

    @handle_exception
    def ensure_directory(self, path: Union[str, Path]) -> Path:
        """
        Ensure directory exists

        Raises:
            ExportError: If the path is a file or cannot be created
        """
        path_obj = Path(path)
        if not str(path_obj).strip():
            raise ExportError("Empty path provided")

        if path_obj.exists() and not path_obj.is_dir():
            raise ExportError(f"Path exists but is not a directory: {path_obj}", str(path_obj))

        if not path_obj.exists() and not ErrorDetector.check_disk_space(str(path_obj.parent), required_mb=10):
            logger.warning(f"Low disk space when creating directory: {path_obj}")

        try:
            path_obj.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise ExportError(f"Permission denied creating directory: {path_obj}", str(path_obj), e)
        except OSError as e:
            raise ExportError(f"OS error creating directory: {path_obj}", str(path_obj), e)

        logger.debug(f"Directory ensured: {path_obj}")
        return path_obj

    def safe_filename(self, filename: str, max_length: int = 255) -> str:
        """
        Create a safe filename by removing/replacing invalid characters

        Args:
            filename (str): Original filename
            max_length (int): Maximum filename length

        Returns:
            str: Safe filename
        """
        invalid_chars = '<>:"/\\|?*'
        safe_name = filename or ""

        for char in invalid_chars:
            safe_name = safe_name.replace(char, '_')

        while '__' in safe_name:
            safe_name = safe_name.replace('__', '_')

        safe_name = safe_name.strip(' .')

        if len(safe_name) > max_length:
            name_part, ext_part = os.path.splitext(safe_name)
            safe_name = name_part[:max_length - len(ext_part)] + ext_part

        if not safe_name:
            safe_name = f"file_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

        return safe_name

    @handle_exception
    def save_json(self, data: Any, filepath: Union[str, Path], indent: int = 2) -> Path:
        """
        Save data to a JSON file atomically

        The document is written to a temporary file first and moved into place
        once it has been written completely.

        Raises:
            ExportError: If the data cannot be serialized or written
        """
        if data is None:
            raise ExportError("Cannot save None data to JSON file")

        filepath = self.resolve(filepath)
        self.ensure_directory(filepath.parent)

        try:
            json_str = json.dumps(data, indent=indent, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise ExportError(f"Data cannot be serialized to JSON: {e}", str(filepath), e)

        temp_file = filepath.with_suffix(filepath.suffix + '.tmp')
        try:
            with open(temp_file, 'w', encoding='utf-8') as f:
                f.write(json_str)
            shutil.move(str(temp_file), str(filepath))
        except OSError as e:
            raise ExportError(f"Failed writing JSON file: {filepath}", str(filepath), e)
        finally:
            if temp_file.exists():
                temp_file.unlink()

        logger.info(f"JSON data saved to: {filepath}")
        return filepath

    @handle_exception
    def save_jsonl(self, records: Iterable[Dict[str, Any]], filepath: Union[str, Path]) -> Path:
        """Write one JSON document per line, replacing any existing file"""
        filepath = self.resolve(filepath)
        self.ensure_directory(filepath.parent)
        try:
            with open(filepath, 'w', encoding='utf-8') as f:
                for record in records:
                    f.write(json.dumps(record, ensure_ascii=False) + "\n")
        except OSError as e:
            raise ExportError(f"Failed writing JSONL file: {filepath}", str(filepath), e)
        logger.info(f"JSONL data saved to: {filepath}")
        return filepath

    @handle_exception
    def append_jsonl(self, record: Dict[str, Any], filepath: Union[str, Path]) -> Path:
        """Append a single JSON line and flush it to disk"""
        filepath = self.resolve(filepath)
        self.ensure_directory(filepath.parent)
        try:
            with open(filepath, 'a', encoding='utf-8') as f:
                f.write(json.dumps(record, ensure_ascii=False) + "\n")
                f.flush()
        except OSError as e:
            raise ExportError(f"Failed appending to JSONL file: {filepath}", str(filepath), e)
        return filepath

    @handle_exception
    def save_csv(self, rows: List[Dict[str, Any]], columns: List[str], filepath: Union[str, Path]) -> Path:
        """Write rows with a header line, in the given column order"""
        filepath = self.resolve(filepath)
        self.ensure_directory(filepath.parent)
        try:
            with open(filepath, 'w', encoding='utf-8', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=columns, extrasaction='ignore')
                writer.writeheader()
                writer.writerows(rows)
        except OSError as e:
            raise ExportError(f"Failed writing CSV file: {filepath}", str(filepath), e)
        logger.info(f"CSV data saved to: {filepath}")
        return filepath

