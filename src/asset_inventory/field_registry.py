#!/usr/bin/env python3
"""
Field schema registry for the Asset target record.

Contains the static catalog of importable target paths, each with:
- a human readable label (used by the auto-mapper and the UI)
- a required flag (checked by the completeness pass)
- a value kind (drives coercion in the row transformer)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .paths import FieldPath, parse_path


class KindTag(str, Enum):
    """Closed set of value kinds a target field can have."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ISO_DATE = "isoDate"
    STRING_ARRAY_CSV = "stringArrayCsv"
    ENUM = "enum"


@dataclass(frozen=True)
class ValueKind:
    """A value kind; only ENUM kinds carry allowed values."""

    tag: KindTag
    values: Tuple[str, ...] = ()

    def __str__(self) -> str:
        if self.tag is KindTag.ENUM:
            return f"enum({', '.join(self.values)})"
        return self.tag.value


STRING = ValueKind(KindTag.STRING)
NUMBER = ValueKind(KindTag.NUMBER)
BOOLEAN = ValueKind(KindTag.BOOLEAN)
ISO_DATE = ValueKind(KindTag.ISO_DATE)
STRING_ARRAY_CSV = ValueKind(KindTag.STRING_ARRAY_CSV)


def enum_of(*values: str) -> ValueKind:
    """Create an enumerated-string kind."""
    return ValueKind(KindTag.ENUM, tuple(values))


@dataclass(frozen=True)
class FieldDescriptor:
    """Schema entry describing one addressable path into the Asset record."""

    path: str
    label: str
    required: bool = False
    kind: ValueKind = STRING
    segments: FieldPath = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "segments", parse_path(self.path))

    @property
    def leaf(self) -> str:
        """Final path segment without any bracket index."""
        return self.segments[-1].key


class FieldRegistry:
    """Read-only catalog of field descriptors keyed by path."""

    def __init__(self, fields: Iterable[FieldDescriptor]):
        self._fields: Tuple[FieldDescriptor, ...] = tuple(fields)
        self._by_path: Dict[str, FieldDescriptor] = {}
        for descriptor in self._fields:
            if descriptor.path in self._by_path:
                raise ValueError(f"Duplicate field path in registry: {descriptor.path}")
            self._by_path[descriptor.path] = descriptor

    def all_fields(self) -> List[FieldDescriptor]:
        return list(self._fields)

    def required_fields(self) -> List[FieldDescriptor]:
        return [descriptor for descriptor in self._fields if descriptor.required]

    def get(self, path: str) -> Optional[FieldDescriptor]:
        return self._by_path.get(path)

    def label_of(self, path: str) -> str:
        """Return the label for a path, or the path itself when unknown."""
        descriptor = self._by_path.get(path)
        return descriptor.label if descriptor else path

    def __contains__(self, path: str) -> bool:
        return path in self._by_path

    def __iter__(self):
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)


ASSET_TYPE_VALUES = (
    "PLC",
    "Laptop",
    "Router",
    "Workstation",
    "Printer",
    "MobileDevice",
    "Server",
    "Switch",
    "Other",
    "Sensor",
    "HMI",
)

ASSET_STAGE_VALUES = (
    "Operational",
    "Active",
    "Online",
    "In Use",
    "Standby",
    "Inactive",
    "Offline",
    "Maintenance",
    "In Repair",
    "End of Life",
    "Disposed",
    "Retired",
    "Missing",
    "Planning",
    "Commissioning",
    "Testing",
    "Active Support",
    "Limited Support",
    "Unsupported",
)

_ASSET_FIELDS = (
    # Core identifiers and general information
    FieldDescriptor("deviceId", "Device ID", True),
    FieldDescriptor("name", "Name", True),
    FieldDescriptor("description", "Description"),
    FieldDescriptor("documentation", "Documentation"),
    FieldDescriptor("installationDate", "Installation Date", kind=ISO_DATE),
    FieldDescriptor("manufactureDate", "Manufacture Date", kind=ISO_DATE),
    FieldDescriptor("stage", "Stage", True, enum_of(*ASSET_STAGE_VALUES)),
    FieldDescriptor("lifecycle", "Lifecycle"),
    FieldDescriptor("serialNumber", "Serial Number"),
    FieldDescriptor("last_seen", "Last Seen", kind=ISO_DATE),
    FieldDescriptor("zone", "Zone"),
    FieldDescriptor("release", "Release"),
    FieldDescriptor("modified", "Modified", kind=ISO_DATE),
    FieldDescriptor("exposure", "Exposure"),
    FieldDescriptor("os_firmware", "OS / Firmware"),
    FieldDescriptor("last_seen_by", "Last Seen By"),
    FieldDescriptor("last_patch_date", "Last Patch Date", kind=ISO_DATE),
    FieldDescriptor("days_since_last_patch", "Days Since Last Patch", kind=NUMBER),
    FieldDescriptor("assignedUser", "Assigned User"),
    FieldDescriptor("department", "Department"),
    FieldDescriptor("cpu", "CPU"),
    FieldDescriptor("ram", "RAM"),
    FieldDescriptor("storage", "Storage"),
    FieldDescriptor("imageUrl", "Image URL"),
    FieldDescriptor("purchaseCost", "Purchase Cost", kind=NUMBER),
    FieldDescriptor("currentValue", "Current Value", kind=NUMBER),
    FieldDescriptor("retirementDate", "Retirement Date", kind=ISO_DATE),
    FieldDescriptor("hostedOn", "Hosted On"),
    FieldDescriptor("tags", "Tags", kind=STRING_ARRAY_CSV),
    # Hardware
    FieldDescriptor("hardware.vendor", "Vendor"),
    FieldDescriptor("hardware.model", "Model"),
    FieldDescriptor("hardware.type", "Asset Type", kind=enum_of(*ASSET_TYPE_VALUES)),
    FieldDescriptor("hardware.category", "Category"),
    FieldDescriptor("hardware.version", "Hardware Version"),
    FieldDescriptor("hardware.orderNumber", "Order Number"),
    FieldDescriptor("hardware.endOfLife", "End of Life", kind=ISO_DATE),
    FieldDescriptor("hardware.extended.MTBF", "MTBF", kind=NUMBER),
    # Context
    FieldDescriptor("context.location.name", "Location"),
    FieldDescriptor("context.location.locationId", "Location ID"),
    FieldDescriptor("context.referenceLocation.name", "Reference Location"),
    FieldDescriptor("context.otSystem.name", "OT System"),
    FieldDescriptor("context.deviceGroup", "Device Group"),
    FieldDescriptor("context.businessProcesses[0].name", "Business Process"),
    FieldDescriptor(
        "context.businessProcesses[0].criticality", "Business Process Criticality"
    ),
    FieldDescriptor("context.businessProcesses[0].role", "Business Process Role"),
    # Network (first connection only)
    FieldDescriptor("connections[0].L3Address", "IP Address"),
    FieldDescriptor("connections[0].L2Address", "MAC Address"),
    # Warranty
    FieldDescriptor("warranty.startDate", "Warranty Start", kind=ISO_DATE),
    FieldDescriptor("warranty.endDate", "Warranty End", kind=ISO_DATE),
    FieldDescriptor("warranty.provider", "Warranty Provider"),
    # Criticality and safety
    FieldDescriptor("criticality.rating", "Criticality Rating"),
    FieldDescriptor("criticality.impact", "Impact", kind=NUMBER),
    FieldDescriptor(
        "criticality.businessCriticality", "Business Criticality", kind=NUMBER
    ),
    FieldDescriptor("safety.certification", "Safety Certification"),
    FieldDescriptor("safety.level", "Safety Level"),
    # Security (flat fields only; vulnerability lists are not importable)
    FieldDescriptor("security.authenticationMethod", "Authentication Method"),
    FieldDescriptor("security.encryptionEnabled", "Encryption Enabled", kind=BOOLEAN),
    FieldDescriptor("security.securityScore", "Security Score", kind=NUMBER),
)

ASSET_REGISTRY = FieldRegistry(_ASSET_FIELDS)


def all_fields() -> List[FieldDescriptor]:
    return ASSET_REGISTRY.all_fields()


def required_fields() -> List[FieldDescriptor]:
    return ASSET_REGISTRY.required_fields()


def label_of(path: str) -> str:
    return ASSET_REGISTRY.label_of(path)
