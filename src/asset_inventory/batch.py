#!/usr/bin/env python3
"""
Batch processing for asset-inventory imports.

Runs the row transformer over a bounded preview slice or over every row, and
aggregates the outcomes into preview and commit reports.
"""

from collections import Counter
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .field_registry import ASSET_REGISTRY, FieldDescriptor, FieldRegistry
from .logging_config import get_logger
from .paths import read_path
from .transformer import (
    ColumnMapping,
    CustomMapping,
    EnumPolicy,
    RowTransformer,
    SourceRow,
    ValidationOutcome,
)

logger = get_logger(__name__)

DEFAULT_PREVIEW_LIMIT = 10
NATURAL_KEY_PATH = "deviceId"


class ErrorPolicy(str, Enum):
    """When the commit action is offered after a preview."""

    STOP_ON_FIRST_ERROR = "stop_on_first_error"
    SKIP_INVALID_ROWS = "skip_invalid_rows"


@dataclass
class PreviewReport:
    total: int
    valid_count: int
    invalid_count: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class CommitReport:
    total: int
    created: int
    updated: int
    failed: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def preview(
    rows: Sequence[SourceRow],
    mapping: ColumnMapping,
    custom_mappings: Sequence[CustomMapping] = (),
    limit: int = DEFAULT_PREVIEW_LIMIT,
    registry: FieldRegistry = ASSET_REGISTRY,
    enum_policy: EnumPolicy = EnumPolicy.LENIENT,
) -> List[ValidationOutcome]:
    """
    Transform at most ``limit`` rows, in file order, for operator review.

    Args:
        rows: Parsed source rows (not modified)
        mapping: Header -> target path mapping
        custom_mappings: Extended-properties mappings
        limit: Maximum number of rows to transform
        registry: Field registry to validate against
        enum_policy: Enum mismatch handling

    Returns:
        One ValidationOutcome per previewed row
    """
    transformer = RowTransformer(mapping, custom_mappings, registry, enum_policy)
    return [
        transformer.transform(row, row_number)
        for row_number, row in enumerate(rows[: max(limit, 0)], 1)
    ]


def _natural_key(record: Dict[str, Any], store) -> Any:
    if store is not None:
        return store.key_of(record)
    return read_path(record, NATURAL_KEY_PATH)


def plan_commit(
    rows: Sequence[SourceRow],
    mapping: ColumnMapping,
    custom_mappings: Sequence[CustomMapping] = (),
    store=None,
    registry: FieldRegistry = ASSET_REGISTRY,
    enum_policy: EnumPolicy = EnumPolicy.LENIENT,
    outcomes: Optional[List[ValidationOutcome]] = None,
) -> Tuple[CommitReport, List[Dict[str, Any]]]:
    """
    Transform every row and count what a commit would do, without saving.

    Args:
        rows: All parsed source rows
        mapping: Header -> target path mapping
        custom_mappings: Extended-properties mappings
        store: Optional asset store with ``key_of(record)`` and ``exists(key)``;
            when given, records whose natural key already exists count as updated
        registry: Field registry to validate against
        enum_policy: Enum mismatch handling
        outcomes: Optional list that receives every row outcome

    Returns:
        The CommitReport and the valid records in file order
    """
    transformer = RowTransformer(mapping, custom_mappings, registry, enum_policy)

    created = updated = failed = 0
    valid_records = []
    seen_keys = set()

    for row_number, row in enumerate(rows, 1):
        outcome = transformer.transform(row, row_number)
        if outcomes is not None:
            outcomes.append(outcome)

        if not outcome.is_valid:
            failed += 1
            continue

        valid_records.append(outcome.record)
        key = _natural_key(outcome.record, store)
        if store is not None and (key in seen_keys or store.exists(key)):
            updated += 1
        else:
            created += 1
        seen_keys.add(key)

    report = CommitReport(
        total=len(rows), created=created, updated=updated, failed=failed
    )
    return report, valid_records


def commit(
    rows: Sequence[SourceRow],
    mapping: ColumnMapping,
    custom_mappings: Sequence[CustomMapping] = (),
    error_policy: ErrorPolicy = ErrorPolicy.SKIP_INVALID_ROWS,
    store=None,
    registry: FieldRegistry = ASSET_REGISTRY,
    enum_policy: EnumPolicy = EnumPolicy.LENIENT,
    outcomes: Optional[List[ValidationOutcome]] = None,
) -> CommitReport:
    """
    Transform every row and hand the valid records to the store.

    The error policy does not change per-row behavior here: invalid rows are
    always counted as failed and never persisted. Gating on the preview is done
    by ``commit_allowed``.
    """
    report, valid_records = plan_commit(
        rows, mapping, custom_mappings, store, registry, enum_policy, outcomes
    )
    if store is not None and valid_records:
        store.save_all(valid_records)
    log_commit(report, error_policy)
    return report


def log_commit(report: CommitReport, error_policy: ErrorPolicy) -> None:
    logger.info(
        f"Committed {report.total} rows ({ErrorPolicy(error_policy).value}): "
        f"created={report.created} updated={report.updated} failed={report.failed}"
    )


def summarize(outcomes: Sequence[ValidationOutcome]) -> PreviewReport:
    valid = sum(1 for outcome in outcomes if outcome.is_valid)
    return PreviewReport(
        total=len(outcomes), valid_count=valid, invalid_count=len(outcomes) - valid
    )


def commit_allowed(
    preview_outcomes: Sequence[ValidationOutcome],
    total_rows: int,
    error_policy: ErrorPolicy,
) -> bool:
    """
    Decide whether the commit action is available after a preview.

    ``stop_on_first_error`` requires every previewed row to be valid.
    ``skip_invalid_rows`` only refuses when there are rows but none of the
    previewed ones is valid.
    """
    error_policy = ErrorPolicy(error_policy)
    valid = sum(1 for outcome in preview_outcomes if outcome.is_valid)

    if error_policy is ErrorPolicy.STOP_ON_FIRST_ERROR:
        return valid == len(preview_outcomes)
    return total_rows == 0 or valid > 0


def unmapped_headers(
    headers: Sequence[str],
    mapping: ColumnMapping,
    custom_mappings: Sequence[CustomMapping] = (),
) -> List[str]:
    """Headers claimed by neither a standard nor a custom mapping."""
    claimed = {header for header, path in mapping.items() if path}
    claimed.update(custom.source_header for custom in custom_mappings)
    return [header for header in headers if header not in claimed]


def missing_required_mappings(
    mapping: ColumnMapping,
    custom_mappings: Sequence[CustomMapping] = (),
    registry: FieldRegistry = ASSET_REGISTRY,
) -> List[FieldDescriptor]:
    """
    Required fields that no mapping targets.

    Every row will fail the completeness pass for these, so they are reported
    once per session as well.
    """
    targeted = {path for path in mapping.values() if path}
    targeted.update(custom.target for custom in custom_mappings)
    return [
        descriptor
        for descriptor in registry.required_fields()
        if descriptor.path not in targeted
    ]


def error_counts(outcomes: Sequence[ValidationOutcome]) -> Dict[str, int]:
    """Count errors by header (or completeness marker) across outcomes."""
    counter: Counter = Counter()
    for outcome in outcomes:
        counter.update(outcome.errors_by_header.keys())
    return dict(counter.most_common())


def rejected_rows(outcomes: Sequence[ValidationOutcome]) -> List[Dict[str, Any]]:
    """Flatten invalid outcomes into rows suitable for a rejects CSV."""
    rejected = []
    for outcome in outcomes:
        if outcome.is_valid:
            continue
        errors = list(outcome.errors_by_header.items())
        rejected.append(
            {
                "__rownum": outcome.row_number,
                "__errors": "|".join(f"{key}: {message}" for key, message in errors),
                "__first_error": errors[0][0] if errors else "",
                **outcome.source_row,
            }
        )
    return rejected
