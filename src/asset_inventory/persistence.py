#!/usr/bin/env python3
"""
Simulated asset persistence for asset-inventory.

Nothing here talks to a database. The in-memory store keeps the contract a real
backend must honor: saving is idempotent per natural key (``deviceId``), so
re-running an import with overlapping rows replaces records instead of
duplicating them.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .logging_config import get_logger
from .paths import read_path

logger = get_logger(__name__)


class InMemoryAssetStore:
    """Dict-backed asset store keyed on the natural key path."""

    def __init__(self, key_path: str = "deviceId"):
        self.key_path = key_path
        self._records: Dict[str, Dict[str, Any]] = {}

    def key_of(self, record: Dict[str, Any]) -> Optional[str]:
        key = read_path(record, self.key_path)
        return None if key is None else str(key)

    def exists(self, key: Any) -> bool:
        return key is not None and str(key) in self._records

    def get(self, key: Any) -> Optional[Dict[str, Any]]:
        record = self._records.get(str(key))
        return copy.deepcopy(record) if record is not None else None

    def save_all(self, records: Iterable[Dict[str, Any]]) -> None:
        """Upsert records; later records with the same key replace earlier ones."""
        saved = 0
        for record in records:
            key = self.key_of(record)
            if key is None:
                logger.warning(f"Skipping record without {self.key_path}")
                continue
            self._records[key] = copy.deepcopy(record)
            saved += 1
        logger.info(f"Simulated save of {saved} asset records")

    def all_records(self) -> List[Dict[str, Any]]:
        return [copy.deepcopy(record) for record in self._records.values()]

    def __len__(self) -> int:
        return len(self._records)

    def dump_json(self, path: Union[str, Path]) -> Path:
        """Write all stored records to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.all_records(), f, ensure_ascii=False, indent=2)
        return path
