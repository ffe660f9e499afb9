"""Tests for header normalization, fuzzy suggestions and auto-mapping."""

from asset_inventory.automap import auto_map, find_collisions, propose_mapping
from asset_inventory.field_registry import ASSET_REGISTRY, FieldDescriptor, all_fields
from asset_inventory.fuzzy import (
    FuzzyConfig,
    combined_similarity,
    jaro_winkler_similarity,
    levenshtein_distance,
    normalize_header,
    rank_candidates,
)
from asset_inventory.synonym import LegacyAliasMatcher


class TestNormalization:
    """Tests for header normalization."""

    def test_normalize_header(self):
        assert normalize_header("Serial  Number") == "serialnumber"
        assert normalize_header("serial_number") == "serialnumber"
        assert normalize_header("serialNumber") == "serialnumber"
        assert normalize_header("OS / Firmware") == "osfirmware"
        assert normalize_header("connections[0].L3Address") == "connections0l3address"

    def test_accents_are_folded(self):
        assert normalize_header("Zöne") == "zone"
        assert normalize_header("Catégorie") == "categorie"

    def test_empty(self):
        assert normalize_header("") == ""
        assert normalize_header("---") == ""


class TestFuzzy:
    """Tests for the similarity measures."""

    def test_levenshtein_distance(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("same", "same") == 0

    def test_jaro_winkler_bounds(self):
        assert jaro_winkler_similarity("vendor", "vendor") == 1.0
        assert jaro_winkler_similarity("abc", "xyz") == 0.0
        assert 0.0 < jaro_winkler_similarity("vendor", "vendr") < 1.0

    def test_combined_similarity_uses_normalized_text(self):
        config = FuzzyConfig()
        assert combined_similarity("Serial Number", "serialNumber", config) == 1.0

    def test_rank_candidates(self):
        config = FuzzyConfig(threshold=0.75, max_suggestions=2)
        candidates = [
            ("serialNumber", ["serialNumber", "Serial Number"]),
            ("hardware.vendor", ["hardware.vendor", "Vendor"]),
        ]
        ranked = rank_candidates("Serial Nmber", candidates, config)
        assert ranked[0][0] == "serialNumber"
        assert all(score >= 0.75 for _, score in ranked)

    def test_rank_candidates_disabled(self):
        config = FuzzyConfig(enabled=False)
        assert rank_candidates("Serial Nmber", [("serialNumber", ["serialNumber"])], config) == []


class TestAutoMap:
    """Tests for the tiered auto-mapper."""

    def test_tiers(self):
        result = auto_map(
            ["Device ID", "Vendor", "version", "L3Address", "Hardware Vendor2"],
            all_fields(),
        )
        assert result.mapping["Device ID"] == "deviceId"
        assert result.match_types["Device ID"] == "path"
        assert result.mapping["Vendor"] == "hardware.vendor"
        assert result.match_types["Vendor"] == "label"
        assert result.mapping["version"] == "hardware.version"
        assert result.match_types["version"] == "leaf"
        assert result.mapping["L3Address"] == "connections[0].L3Address"
        assert result.mapping["Hardware Vendor2"] is None

    def test_labels_map_nested_fields(self):
        mapping = propose_mapping(
            ["IP Address", "MAC Address", "Business Process", "Location", "Asset Type"],
            all_fields(),
        )
        assert mapping == {
            "IP Address": "connections[0].L3Address",
            "MAC Address": "connections[0].L2Address",
            "Business Process": "context.businessProcesses[0].name",
            "Location": "context.location.name",
            "Asset Type": "hardware.type",
        }

    def test_unmatched_header_is_none(self):
        mapping = propose_mapping(["Cost Center Code", ""], all_fields())
        assert mapping == {"Cost Center Code": None, "": None}

    def test_collision_leaves_later_header_unmapped(self):
        result = auto_map(["Vendor", "hardware_vendor"], all_fields())

        assert result.mapping == {"Vendor": "hardware.vendor", "hardware_vendor": None}
        assert result.collisions == {"hardware.vendor": ["Vendor", "hardware_vendor"]}
        assert result.match_types["hardware_vendor"] == "collision"
        assert result.stats()["collisions"] == 2

    def test_first_field_wins_within_a_tier(self):
        fields = [
            FieldDescriptor("context.location.name", "Site"),
            FieldDescriptor("context.otSystem.name", "OT"),
        ]
        assert propose_mapping(["name"], fields) == {"name": "context.location.name"}

    def test_legacy_aliases_are_opt_in(self):
        headers = ["Manufacturer", "Status", "os"]
        assert propose_mapping(headers, all_fields()) == {
            "Manufacturer": None,
            "Status": None,
            "os": None,
        }

        result = auto_map(headers, all_fields(), use_legacy_aliases=True)
        assert result.mapping == {
            "Manufacturer": "hardware.vendor",
            "Status": "stage",
            "os": "os_firmware",
        }
        assert set(result.match_types.values()) == {"alias"}

    def test_alias_only_maps_to_known_fields(self):
        fields = [FieldDescriptor("deviceId", "Device ID", True)]
        result = auto_map(["Manufacturer"], fields, use_legacy_aliases=True)
        assert result.mapping == {"Manufacturer": None}

    def test_suggestions_are_not_applied(self):
        result = auto_map(["Serial Nmber"], all_fields())
        assert result.mapping["Serial Nmber"] is None
        assert result.suggestions["Serial Nmber"][0][0] == "serialNumber"

    def test_suggestions_skip_claimed_fields(self):
        result = auto_map(["Serial Number", "Serial Nmber"], all_fields())
        suggested = [path for path, _ in result.suggestions.get("Serial Nmber", [])]
        assert "serialNumber" not in suggested

    def test_no_suggestions_when_fuzzy_disabled(self):
        result = auto_map(["Serial Nmber"], all_fields(), FuzzyConfig(enabled=False))
        assert result.suggestions == {}

    def test_every_registry_path_maps_to_itself(self):
        paths = [descriptor.path for descriptor in ASSET_REGISTRY]
        mapping = propose_mapping(paths, ASSET_REGISTRY.all_fields())
        assert mapping == {path: path for path in paths}


def test_find_collisions_in_edited_mapping():
    mapping = {"A": "name", "B": "name", "C": "stage", "D": None}
    assert find_collisions(mapping) == {"name": ["A", "B"]}


def test_legacy_alias_matcher():
    matcher = LegacyAliasMatcher()
    assert matcher.resolve("manufacturer") == "hardware.vendor"
    assert matcher.resolve("MAC address") == "connections[0].L2Address"
    assert matcher.resolve("unknown") is None
    assert "make" in matcher.aliases_for("hardware.vendor")
