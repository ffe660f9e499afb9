"""Tests for schema validation functionality."""

import pytest

from asset_inventory.schema import (
    ValidationError,
    validate_config,
    validate_mapping_file,
)


class TestConfigValidation:
    """Tests for config.yaml validation."""

    def test_empty_config_uses_defaults(self):
        """Test that an empty config gives the documented defaults."""
        result = validate_config({})
        assert result.preview_limit == 10
        assert result.enum_policy == "lenient"
        assert result.error_policy == "skip_invalid_rows"
        assert result.background_threshold == 500
        assert result.automap.use_legacy_aliases is False
        assert result.automap.fuzzy_threshold == 0.75

    def test_valid_full_config(self):
        """Test that a full valid config passes validation."""
        config_data = {
            "preview_limit": 25,
            "enum_policy": "strict",
            "error_policy": "stop_on_first_error",
            "background_threshold": 0,
            "output_dir": "exports",
            "automap": {
                "use_legacy_aliases": True,
                "disable_fuzzy": True,
                "fuzzy_threshold": 0.9,
                "max_suggestions": 5,
            },
        }
        result = validate_config(config_data)
        assert result.preview_limit == 25
        assert result.enum_policy == "strict"
        assert result.automap.max_suggestions == 5

    @pytest.mark.parametrize(
        "config_data",
        [
            {"preview_limit": 0},
            {"enum_policy": "relaxed"},
            {"error_policy": "ignore"},
            {"background_threshold": -1},
            {"automap": {"fuzzy_threshold": 1.5}},
            {"automap": {"max_suggestions": 0}},
        ],
    )
    def test_invalid_values(self, config_data):
        """Test that out-of-range or unknown values are rejected."""
        with pytest.raises(ValidationError, match="Config validation failed"):
            validate_config(config_data)


class TestMappingFileValidation:
    """Tests for mapping.yaml validation."""

    def test_valid_mapping_file(self):
        """Test that standard and custom mappings validate together."""
        data = {
            "mappings": {"Device": "deviceId", "IP": "connections[0].L3Address", "Rack": None},
            "custom_mappings": [
                {"source_header": "Rack", "key": "rackPosition"},
                {"source_header": "MTBF", "key": "MTBF", "scope": "hardware"},
            ],
        }
        result = validate_mapping_file(data)
        assert result.mappings["Rack"] is None
        assert result.custom_mappings[0].scope == "asset"
        assert result.custom_mappings[1].scope == "hardware"

    def test_empty_mapping_file(self):
        """Test that an empty mapping file is valid."""
        result = validate_mapping_file({})
        assert result.mappings == {}
        assert result.custom_mappings == []

    def test_malformed_target_path(self):
        """Test that a malformed target path is rejected."""
        with pytest.raises(ValidationError, match="Device"):
            validate_mapping_file({"mappings": {"Device": "hardware..vendor"}})

    def test_unknown_scope(self):
        """Test that only asset and hardware scopes are accepted."""
        with pytest.raises(ValidationError):
            validate_mapping_file(
                {"custom_mappings": [{"source_header": "Rack", "key": "r", "scope": "os"}]}
            )

    def test_empty_custom_key(self):
        """Test that a custom mapping needs a key."""
        with pytest.raises(ValidationError):
            validate_mapping_file({"custom_mappings": [{"source_header": "Rack", "key": ""}]})

    def test_header_in_two_custom_mappings(self):
        """Test that a header can be claimed by one custom mapping only."""
        data = {
            "custom_mappings": [
                {"source_header": "Rack", "key": "a"},
                {"source_header": "Rack", "key": "b"},
            ]
        }
        with pytest.raises(ValidationError, match="Rack"):
            validate_mapping_file(data)

    def test_header_mapped_and_custom(self):
        """Test that a header cannot be both mapped and custom-mapped."""
        data = {
            "mappings": {"Rack": "name"},
            "custom_mappings": [{"source_header": "Rack", "key": "rack"}],
        }
        with pytest.raises(ValidationError, match="both"):
            validate_mapping_file(data)
