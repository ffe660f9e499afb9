#!/usr/bin/env python3
"""
Saved column mappings for asset-inventory.

A mapping file records the reviewed header -> target path mapping plus any
extended-properties mappings so the same import can be repeated from the CLI:

    mappings:
      Device: deviceId
      Notes: null
    custom_mappings:
    - source_header: Rack
      key: rackPosition
      scope: asset
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

from .automap import AutoMapResult
from .logging_config import get_logger
from .schema import validate_mapping_file
from .transformer import ColumnMapping, CustomMapping

logger = get_logger(__name__)


def load_mapping_file(path: Path) -> Tuple[ColumnMapping, List[CustomMapping]]:
    """
    Read and validate a mapping YAML file.

    Raises:
        OSError: If the file cannot be read
        yaml.YAMLError: If the file is not valid YAML
        ValidationError: If the content does not match the mapping schema
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    schema = validate_mapping_file(data)
    mapping = dict(schema.mappings)
    custom_mappings = [
        CustomMapping(custom.source_header, custom.key, custom.scope)
        for custom in schema.custom_mappings
    ]
    logger.debug(
        f"Loaded mapping {path}: {len(mapping)} headers, {len(custom_mappings)} custom"
    )
    return mapping, custom_mappings


def mapping_to_dict(
    mapping: ColumnMapping, custom_mappings: Sequence[CustomMapping] = ()
) -> Dict[str, Any]:
    return {
        "mappings": dict(mapping),
        "custom_mappings": [
            {"source_header": c.source_header, "key": c.key, "scope": c.scope}
            for c in custom_mappings
        ],
    }


def write_mapping_file(
    output_path: Path,
    mapping: ColumnMapping,
    custom_mappings: Sequence[CustomMapping] = (),
    automap_result: Optional[AutoMapResult] = None,
    source_name: str = "",
) -> None:
    """
    Write a mapping YAML file with a short commented header.

    Args:
        output_path: Path to write the mapping file
        mapping: Header -> target path mapping (None = skipped)
        custom_mappings: Extended-properties mappings
        automap_result: Auto-mapping result to summarize in the header
        source_name: Name of the import file the mapping was built for
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    data = mapping_to_dict(mapping, custom_mappings)

    with open(output_path, "w", encoding="utf-8") as f:
        f.write("# Column mapping generated by asset-inventory\n")
        f.write(f"# Generated at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
        if source_name:
            f.write(f"# Source: {source_name}\n")
        if automap_result is not None:
            stats = automap_result.stats()
            f.write(f"# Coverage: {stats['coverage_percentage']:.1f}%\n")
            for path, headers in automap_result.collisions.items():
                f.write(f"# Collision on {path}: {', '.join(headers)}\n")
        f.write("\n")

        yaml.dump(
            {"mappings": data["mappings"]},
            f,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )
        f.write("\n")
        yaml.dump(
            {"custom_mappings": data["custom_mappings"]},
            f,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )

    logger.info(f"Mapping written to {output_path}")
