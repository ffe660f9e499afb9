#!/usr/bin/env python3
"""
Row transformation and validation for asset-inventory.

Turns one flat source row into a partial nested Asset record:
- applies the standard column mapping with per-kind coercion
- writes extended-properties (custom) mappings verbatim
- runs a completeness pass over every required field

Malformed data never raises; problems are collected per header and the row is
marked invalid. Only defects in the field registry (an unknown value kind) or in
a path string raise.
"""

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from dateutil import parser as date_parser

from .field_registry import ASSET_REGISTRY, FieldDescriptor, FieldRegistry, KindTag, ValueKind
from .logging_config import get_logger
from .paths import EXTENDED_SCOPES, extended_path, is_empty_value, read_path, write_path

logger = get_logger(__name__)

SourceRow = Mapping[str, Any]
ColumnMapping = Mapping[str, Optional[str]]

UNMAPPED_PREFIX = "_unmapped_"

_DATE_DEFAULT = datetime(1970, 1, 1)


class EnumPolicy(str, Enum):
    """How a value outside an enum's allowed set is handled.

    Both policies flag the header and mark the row invalid. LENIENT still writes
    the value into the record so it is visible and importable once the allowed
    set catches up; STRICT leaves the field unset.
    """

    STRICT = "strict"
    LENIENT = "lenient"


class CoercionError(ValueError):
    """A raw value could not be converted to the field's kind."""

    pass


@dataclass(frozen=True)
class CustomMapping:
    """Extended-properties mapping: a source header stored under a free-form key."""

    source_header: str
    key: str
    scope: str = "asset"

    def __post_init__(self):
        if self.scope not in EXTENDED_SCOPES:
            raise ValueError(
                f"Unknown extended scope {self.scope!r}, expected one of {sorted(EXTENDED_SCOPES)}"
            )
        if not self.key or not self.key.strip():
            raise ValueError("Custom mapping key cannot be empty")

    @property
    def target(self) -> str:
        prefix = ".".join(EXTENDED_SCOPES[self.scope])
        return f"{prefix}.{self.key}"


@dataclass
class ValidationOutcome:
    """Result of transforming one source row."""

    record: Dict[str, Any]
    errors_by_header: Dict[str, str]
    is_valid: bool
    source_row: Dict[str, Any] = field(default_factory=dict)
    row_number: Optional[int] = None

    @property
    def completeness_errors(self) -> Dict[str, str]:
        return {
            key: message
            for key, message in self.errors_by_header.items()
            if key.startswith(UNMAPPED_PREFIX)
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row_number": self.row_number,
            "is_valid": self.is_valid,
            "record": self.record,
            "errors": dict(self.errors_by_header),
            "source_row": self.source_row,
        }


def _is_blank(raw: Any) -> bool:
    if raw is None:
        return True
    if isinstance(raw, float) and math.isnan(raw):
        # pandas-originated missing values
        return True
    return str(raw).strip() == ""


def coerce_number(raw: Any, descriptor: FieldDescriptor) -> float:
    if isinstance(raw, bool):
        raise CoercionError(f"{descriptor.path} must be a number.")
    try:
        if isinstance(raw, (int, float)):
            value = float(raw)
        else:
            value = float(str(raw).strip())
    except (ValueError, OverflowError):
        raise CoercionError(f"{descriptor.path} must be a number.") from None
    if not math.isfinite(value):
        raise CoercionError(f"{descriptor.path} must be a finite number.")
    return value


def coerce_boolean(raw: Any, descriptor: FieldDescriptor) -> bool:
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text == "true":
        return True
    if text == "false":
        return False
    raise CoercionError(f"{descriptor.path} must be true or false.")


def coerce_iso_date(raw: Any, descriptor: FieldDescriptor) -> str:
    """Parse a calendar date and render it as a UTC ISO-8601 timestamp."""
    if isinstance(raw, datetime):
        parsed = raw
    else:
        try:
            parsed = date_parser.parse(str(raw).strip(), default=_DATE_DEFAULT)
        except (ValueError, OverflowError):
            raise CoercionError(
                f"{descriptor.path} must be a valid date (e.g., YYYY-MM-DD or ISO string)."
            ) from None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    parsed = parsed.astimezone(timezone.utc)
    return parsed.strftime("%Y-%m-%dT%H:%M:%S.") + f"{parsed.microsecond // 1000:03d}Z"


def coerce_string_array(raw: Any, descriptor: FieldDescriptor) -> List[str]:
    pieces = raw if isinstance(raw, list) else str(raw).split(",")
    return [str(piece).strip() for piece in pieces if str(piece).strip()]


def render_custom_value(raw: Any) -> str:
    """Text stored for an extended property: strings verbatim, other JSON values as JSON."""
    if isinstance(raw, str):
        return raw
    return json.dumps(raw, ensure_ascii=False, default=str)


def coerce_string(raw: Any, descriptor: FieldDescriptor) -> Any:
    return raw


def check_enum(raw: Any, descriptor: FieldDescriptor) -> Any:
    if raw not in descriptor.kind.values:
        raise CoercionError(
            f"Invalid {descriptor.label.lower()}: {raw}. "
            f"Expected one of: {', '.join(descriptor.kind.values)}"
        )
    return raw


COERCERS: Dict[KindTag, Callable[[Any, FieldDescriptor], Any]] = {
    KindTag.STRING: coerce_string,
    KindTag.NUMBER: coerce_number,
    KindTag.BOOLEAN: coerce_boolean,
    KindTag.ISO_DATE: coerce_iso_date,
    KindTag.STRING_ARRAY_CSV: coerce_string_array,
    KindTag.ENUM: check_enum,
}


def _coercer_for(kind: ValueKind) -> Callable[[Any, FieldDescriptor], Any]:
    tag = getattr(kind, "tag", None)
    coercer = COERCERS.get(tag)
    if coercer is None:
        raise AssertionError(f"Unhandled value kind in field registry: {kind!r}")
    return coercer


class RowTransformer:
    """Applies a column mapping and custom mappings to source rows."""

    def __init__(
        self,
        mapping: ColumnMapping,
        custom_mappings: Sequence[CustomMapping] = (),
        registry: FieldRegistry = ASSET_REGISTRY,
        enum_policy: EnumPolicy = EnumPolicy.LENIENT,
    ):
        self.mapping = dict(mapping)
        self.custom_mappings = list(custom_mappings)
        self.registry = registry
        self.enum_policy = EnumPolicy(enum_policy)

        # Resolve every coercer up front so a bad registry fails before any row
        for path in self.mapping.values():
            descriptor = registry.get(path) if path else None
            if descriptor is not None:
                _coercer_for(descriptor.kind)

    def transform(self, row: SourceRow, row_number: Optional[int] = None) -> ValidationOutcome:
        record: Dict[str, Any] = {}
        errors: Dict[str, str] = {}

        for header, path in self.mapping.items():
            if not path:
                continue
            self._apply_standard(row, header, path, record, errors)

        for custom in self.custom_mappings:
            raw = row.get(custom.source_header)
            if _is_blank(raw):
                continue
            write_path(record, extended_path(custom.key, custom.scope), render_custom_value(raw))

        for descriptor in self.registry.required_fields():
            if is_empty_value(read_path(record, descriptor.segments)):
                errors[f"{UNMAPPED_PREFIX}{descriptor.path}"] = (
                    f"{descriptor.label} ({descriptor.path}) is required but was not "
                    f"mapped or has no value."
                )

        return ValidationOutcome(
            record=record,
            errors_by_header=errors,
            is_valid=not errors,
            source_row=dict(row),
            row_number=row_number,
        )

    def _apply_standard(
        self,
        row: SourceRow,
        header: str,
        path: str,
        record: Dict[str, Any],
        errors: Dict[str, str],
    ) -> None:
        descriptor = self.registry.get(path)
        if descriptor is None:
            errors[header] = f"Unknown target field: {path}"
            return

        raw = row.get(header)
        if _is_blank(raw):
            if descriptor.required:
                errors[header] = f"{path} is required but has no value"
            return

        coercer = _coercer_for(descriptor.kind)
        try:
            value = coercer(raw, descriptor)
        except CoercionError as exc:
            errors[header] = str(exc)
            if (
                descriptor.kind.tag is KindTag.ENUM
                and self.enum_policy is EnumPolicy.LENIENT
            ):
                write_path(record, descriptor.segments, raw)
            return

        write_path(record, descriptor.segments, value)


def transform_row(
    row: SourceRow,
    mapping: ColumnMapping,
    custom_mappings: Sequence[CustomMapping] = (),
    registry: FieldRegistry = ASSET_REGISTRY,
    enum_policy: EnumPolicy = EnumPolicy.LENIENT,
    row_number: Optional[int] = None,
) -> ValidationOutcome:
    """Transform and validate a single source row."""
    transformer = RowTransformer(mapping, custom_mappings, registry, enum_policy)
    return transformer.transform(row, row_number)
