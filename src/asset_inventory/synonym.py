#!/usr/bin/env python3
"""
Legacy field aliases for asset-inventory auto-mapping.

Older exports of the inventory used a flat asset model (``manufacturer``,
``status``, ``ipAddress``...). These names were folded into the nested schema;
this module keeps the lookup from old names (and a few common spellings) to the
current target paths.
"""

from typing import Dict, List, Optional

from .fuzzy import normalize_header


class LegacyAliasMatcher:
    """Resolves legacy and common alternative header names to target paths."""

    ALIASES: Dict[str, List[str]] = {
        "deviceId": ["id", "assetId", "assetTag"],
        "description": ["notes", "comments"],
        "installationDate": ["purchaseDate", "installDate"],
        "stage": ["status", "assetStatus"],
        "os_firmware": ["operatingSystem", "os", "firmware"],
        "last_seen": ["lastSeen"],
        "hardware.vendor": ["manufacturer", "make"],
        "hardware.type": ["assetType", "deviceType"],
        "context.location.name": ["site", "room"],
        "warranty.endDate": ["warrantyEndDate", "warrantyExpiry"],
        "connections[0].L3Address": ["ipAddress", "ip", "ipv4"],
        "connections[0].L2Address": ["macAddress", "mac"],
    }

    def __init__(self, aliases: Optional[Dict[str, List[str]]] = None):
        self._lookup: Dict[str, str] = {}
        for path, names in (aliases or self.ALIASES).items():
            for name in names:
                self._lookup.setdefault(normalize_header(name), path)

    def resolve(self, header: str) -> Optional[str]:
        """Return the target path for a legacy header name, if known."""
        return self._lookup.get(normalize_header(header))

    def aliases_for(self, path: str) -> List[str]:
        """Normalized alias names pointing at ``path``."""
        return [alias for alias, target in self._lookup.items() if target == path]
