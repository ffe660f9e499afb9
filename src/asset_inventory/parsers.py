#!/usr/bin/env python3
"""
Parsers for bulk import files in asset-inventory.

Contains parsers for:
- CSV files (header row + data rows, all values kept as text)
- JSON files (an array of flat objects)

Both return the headers in file order and the rows as header -> raw value dicts.
"""

import hashlib
import io
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd

SUPPORTED_SUFFIXES = (".csv", ".json")


class ParseError(Exception):
    """The import file is unreadable, empty or not in a supported format."""

    pass


@dataclass
class ParsedFile:
    """Headers and rows read from one import file."""

    headers: List[str]
    rows: List[Dict[str, Any]]
    source_name: str = ""
    fingerprint: str = ""
    warnings: List[str] = field(default_factory=list)


def _fingerprint(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _decode(data: bytes, source_name: str) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"{source_name} is not valid UTF-8 text: {e}") from e


def parse_csv_text(text: str, source_name: str = "<csv>") -> ParsedFile:
    """
    Parse CSV text with a header row.

    Values are kept as strings; empty cells stay empty strings and blank lines
    are skipped. A header row without data rows is valid.
    """
    if not text.strip():
        raise ParseError(f"{source_name} is empty")

    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError as e:
        raise ParseError(f"{source_name} has no header row") from e
    except (pd.errors.ParserError, ValueError) as e:
        raise ParseError(f"Error parsing CSV {source_name}: {e}") from e

    # Short rows leave NaN in trailing cells
    df = df.fillna("")

    headers = [str(column) for column in df.columns]
    warnings = [
        f"Unnamed column at position {position + 1}"
        for position, header in enumerate(headers)
        if header.startswith("Unnamed: ")
    ]
    rows = df.to_dict(orient="records")
    return ParsedFile(headers, rows, source_name, warnings=warnings)


def parse_json_text(text: str, source_name: str = "<json>") -> ParsedFile:
    """
    Parse a JSON array of objects.

    Headers are the union of object keys in first-seen order. An empty array is
    valid and yields no headers and no rows.
    """
    if not text.strip():
        raise ParseError(f"{source_name} is empty")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Error parsing JSON {source_name}: {e}") from e

    if not isinstance(data, list):
        raise ParseError(
            f"{source_name} should contain an array of asset objects"
        )

    headers: List[str] = []
    seen = set()
    rows = []
    for position, item in enumerate(data, 1):
        if not isinstance(item, dict):
            raise ParseError(
                f"{source_name}: item {position} is not an object; JSON data should be an array of objects"
            )
        for key in item:
            if key not in seen:
                seen.add(key)
                headers.append(key)
        rows.append(dict(item))

    return ParsedFile(headers, rows, source_name)


def parse_bytes(data: bytes, filename: str) -> ParsedFile:
    """
    Parse uploaded file content, choosing the format from the file name.

    Raises:
        ParseError: For unsupported types or unparseable content
    """
    suffix = Path(filename).suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ParseError(
            f"Unsupported file type: {filename}. Please upload a CSV or JSON file."
        )

    text = _decode(data, filename)
    if suffix == ".csv":
        parsed = parse_csv_text(text, filename)
    else:
        parsed = parse_json_text(text, filename)
    parsed.fingerprint = _fingerprint(data)
    return parsed


def parse_file(path: Union[str, Path]) -> ParsedFile:
    """Read and parse an import file from disk."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        raise ParseError(f"Import file not found: {path}") from None
    except OSError as e:
        raise ParseError(f"Could not read {path}: {e}") from e
    return parse_bytes(data, path.name)
