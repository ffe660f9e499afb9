#!/usr/bin/env python3
"""
Header auto-mapping for asset-inventory.

Proposes an initial source header -> target path mapping by comparing normalized
headers against the field registry in tiers:

1. the full target path (``hardware.vendor`` ~ ``Hardware Vendor``)
2. the field label (``Serial Number``)
3. the last path segment without index (``Vendor`` ~ ``hardware.vendor``)
4. optionally, legacy field aliases (``Manufacturer`` ~ ``hardware.vendor``)

The first match wins. A header whose match was already claimed by an earlier
header is left unmapped and reported as a collision. The result is only a
proposal; operators are expected to review and override it.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .fuzzy import FuzzyConfig, normalize_header, rank_candidates
from .field_registry import FieldDescriptor
from .logging_config import get_logger
from .synonym import LegacyAliasMatcher

logger = get_logger(__name__)

ColumnMapping = Dict[str, Optional[str]]

MATCH_TIERS = ("path", "label", "leaf")


@dataclass
class AutoMapResult:
    """Outcome of an auto-mapping run."""

    mapping: ColumnMapping
    match_types: Dict[str, str] = field(default_factory=dict)
    collisions: Dict[str, List[str]] = field(default_factory=dict)
    suggestions: Dict[str, List[Tuple[str, float]]] = field(default_factory=dict)

    @property
    def mapped_count(self) -> int:
        return sum(1 for path in self.mapping.values() if path)

    @property
    def unmapped_headers(self) -> List[str]:
        return [header for header, path in self.mapping.items() if not path]

    def stats(self) -> Dict[str, float]:
        total = len(self.mapping)
        return {
            "total_headers": total,
            "mapped_headers": self.mapped_count,
            "collisions": sum(len(headers) for headers in self.collisions.values()),
            "coverage_percentage": (self.mapped_count / total * 100) if total else 0,
        }


class HeaderAutoMapper:
    """Tiered exact matcher with collision reporting and fuzzy suggestions."""

    def __init__(
        self,
        fields: Sequence[FieldDescriptor],
        fuzzy_config: Optional[FuzzyConfig] = None,
        use_legacy_aliases: bool = False,
    ):
        self.fields = list(fields)
        self.fuzzy_config = fuzzy_config or FuzzyConfig()
        self.alias_matcher = LegacyAliasMatcher() if use_legacy_aliases else None

        # One lookup per tier; earlier fields win within a tier
        self._lookups: Dict[str, Dict[str, str]] = {tier: {} for tier in MATCH_TIERS}
        for descriptor in self.fields:
            keys = {
                "path": normalize_header(descriptor.path),
                "label": normalize_header(descriptor.label),
                "leaf": normalize_header(descriptor.leaf),
            }
            for tier, key in keys.items():
                if key:
                    self._lookups[tier].setdefault(key, descriptor.path)

        self._known_paths = {descriptor.path for descriptor in self.fields}

    def _find_match(self, header: str) -> Tuple[Optional[str], str]:
        key = normalize_header(header)
        if not key:
            return None, "no_match"

        for tier in MATCH_TIERS:
            path = self._lookups[tier].get(key)
            if path:
                return path, tier

        if self.alias_matcher:
            path = self.alias_matcher.resolve(header)
            if path in self._known_paths:
                return path, "alias"

        return None, "no_match"

    def map_headers(self, headers: Sequence[str]) -> AutoMapResult:
        """
        Build a mapping proposal for ``headers``.

        Args:
            headers: Source headers in file order

        Returns:
            AutoMapResult with the mapping, how each header matched, collisions
            and fuzzy suggestions for unmapped headers
        """
        mapping: ColumnMapping = {}
        match_types: Dict[str, str] = {}
        claimed: Dict[str, str] = {}
        collisions: Dict[str, List[str]] = {}

        for header in headers:
            path, match_type = self._find_match(header)

            if path and path in claimed:
                collisions.setdefault(path, [claimed[path]]).append(header)
                logger.warning(
                    f"Header '{header}' also matches '{path}', already mapped from "
                    f"'{claimed[path]}'; leaving it unmapped"
                )
                path, match_type = None, "collision"

            if path:
                claimed[path] = header

            mapping[header] = path
            match_types[header] = match_type

        suggestions = self._suggest(mapping, set(claimed))

        logger.debug(
            f"Auto-mapped {len(claimed)} of {len(mapping)} headers "
            f"({len(collisions)} collisions)"
        )
        return AutoMapResult(mapping, match_types, collisions, suggestions)

    def _suggest(
        self, mapping: ColumnMapping, claimed_paths: set
    ) -> Dict[str, List[Tuple[str, float]]]:
        if not self.fuzzy_config.enabled:
            return {}

        candidates = [
            (descriptor.path, (descriptor.path, descriptor.label, descriptor.leaf))
            for descriptor in self.fields
            if descriptor.path not in claimed_paths
        ]
        suggestions = {}
        for header, path in mapping.items():
            if path:
                continue
            ranked = rank_candidates(header, candidates, self.fuzzy_config)
            if ranked:
                suggestions[header] = ranked
        return suggestions


def auto_map(
    headers: Sequence[str],
    fields: Sequence[FieldDescriptor],
    fuzzy_config: Optional[FuzzyConfig] = None,
    use_legacy_aliases: bool = False,
) -> AutoMapResult:
    """Run the auto-mapper and return the full result."""
    mapper = HeaderAutoMapper(fields, fuzzy_config, use_legacy_aliases)
    return mapper.map_headers(headers)


def propose_mapping(
    headers: Sequence[str], fields: Sequence[FieldDescriptor]
) -> ColumnMapping:
    """Return only the proposed header -> path mapping (no suggestions)."""
    return auto_map(headers, fields, FuzzyConfig(enabled=False)).mapping


def find_collisions(mapping: ColumnMapping) -> Dict[str, List[str]]:
    """Target paths claimed by more than one header in an edited mapping."""
    by_path: Dict[str, List[str]] = {}
    for header, path in mapping.items():
        if path:
            by_path.setdefault(path, []).append(header)
    return {path: headers for path, headers in by_path.items() if len(headers) > 1}
