#!/usr/bin/env python3
"""
Nested path resolution for asset-inventory target records.

Target field paths use dot notation with optional bracket indices, for example
``hardware.extended.MTBF`` or ``context.businessProcesses[0].name``. A path is
parsed once into a tuple of segments and then used to read from or write into
plain nested dicts and lists:

- reads never raise for missing data, they return None
- writes create missing or wrongly shaped intermediate containers
- writing the same path twice keeps the last value
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple, Union

_SEGMENT_RE = re.compile(r"^(?P<key>[^.\[\]]+)(?:\[(?P<index>\d+)\])?$")

EXTENDED_SCOPES = {
    "asset": ("extended",),
    "hardware": ("hardware", "extended"),
}


class PathSyntaxError(ValueError):
    """Raised when a field path string cannot be parsed."""

    pass


@dataclass(frozen=True)
class PathSegment:
    """One step of a field path: a mapping key, optionally indexing into a list."""

    key: str
    index: Optional[int] = None

    def __str__(self) -> str:
        if self.index is None:
            return self.key
        return f"{self.key}[{self.index}]"


FieldPath = Tuple[PathSegment, ...]
PathLike = Union[str, FieldPath]


@lru_cache(maxsize=1024)
def parse_path(text: str) -> FieldPath:
    """
    Parse a dot/bracket path string into segments.

    Args:
        text: Path such as ``a.b[0].c``

    Returns:
        Tuple of PathSegment objects

    Raises:
        PathSyntaxError: If the path is empty or a segment is malformed
    """
    if not text:
        raise PathSyntaxError("Field path cannot be empty")

    segments = []
    for part in text.split("."):
        match = _SEGMENT_RE.match(part)
        if not match:
            raise PathSyntaxError(f"Invalid path segment {part!r} in {text!r}")
        index = match.group("index")
        segments.append(
            PathSegment(match.group("key"), int(index) if index is not None else None)
        )
    return tuple(segments)


def format_path(path: FieldPath) -> str:
    """Render segments back into dot/bracket notation."""
    return ".".join(str(segment) for segment in path)


def _as_segments(path: PathLike) -> FieldPath:
    if isinstance(path, str):
        return parse_path(path)
    return path


def extended_path(key: str, scope: str = "asset") -> FieldPath:
    """
    Build the target path for an extended-properties mapping.

    The key is used verbatim as a single segment, so keys containing dots or
    brackets are stored under that literal name.
    """
    if scope not in EXTENDED_SCOPES:
        raise ValueError(
            f"Unknown extended scope {scope!r}, expected one of {sorted(EXTENDED_SCOPES)}"
        )
    prefix = tuple(PathSegment(name) for name in EXTENDED_SCOPES[scope])
    return prefix + (PathSegment(key),)


def read_path(obj: Any, path: PathLike) -> Any:
    """
    Read the value at ``path`` from a nested structure.

    Returns None as soon as an intermediate container is missing or has the
    wrong shape.
    """
    current = obj
    for segment in _as_segments(path):
        if not isinstance(current, dict) or segment.key not in current:
            return None
        current = current[segment.key]
        if segment.index is not None:
            if not isinstance(current, list) or segment.index >= len(current):
                return None
            current = current[segment.index]
    return current


def write_path(obj: Dict[str, Any], path: PathLike, value: Any) -> None:
    """
    Write ``value`` at ``path`` into a nested dict, creating containers on demand.

    Plain segments hold dicts, indexed segments hold lists padded with None up to
    the index. An existing container of the wrong shape is replaced.
    """
    segments = _as_segments(path)
    current = obj
    last = len(segments) - 1

    for position, segment in enumerate(segments):
        is_last = position == last

        if segment.index is None:
            if is_last:
                current[segment.key] = value
                return
            child = current.get(segment.key)
            if not isinstance(child, dict):
                child = {}
                current[segment.key] = child
            current = child
            continue

        items = current.get(segment.key)
        if not isinstance(items, list):
            items = []
            current[segment.key] = items
        _pad(items, segment.index)

        if is_last:
            items[segment.index] = value
            return
        child = items[segment.index]
        if not isinstance(child, dict):
            child = {}
            items[segment.index] = child
        current = child


def _pad(items: List[Any], index: int) -> None:
    while len(items) <= index:
        items.append(None)


def is_empty_value(value: Any) -> bool:
    """True for None, blank strings and empty containers."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False
