#!/usr/bin/env python3
"""
Schema validation for asset-inventory config and mapping files.

This module provides Pydantic models for validating:
- config.yaml: Main configuration file
- mapping.yaml: Saved column mapping (standard + extended-properties mappings)
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from .paths import PathSyntaxError, parse_path


class ValidationError(Exception):
    """Custom validation error for clearer error messages."""

    pass


# config.yaml schemas
class AutomapConfig(BaseModel):
    """Configuration for header auto-mapping."""

    use_legacy_aliases: bool = False
    disable_fuzzy: bool = False
    fuzzy_threshold: float = Field(default=0.75, ge=0.0, le=1.0)
    max_suggestions: int = Field(default=3, ge=1)


class ConfigSchema(BaseModel):
    """Schema for config.yaml."""

    preview_limit: int = Field(default=10, ge=1)
    enum_policy: Literal["strict", "lenient"] = "lenient"
    error_policy: Literal["stop_on_first_error", "skip_invalid_rows"] = (
        "skip_invalid_rows"
    )
    background_threshold: int = Field(default=500, ge=0)
    output_dir: str = "output"
    automap: AutomapConfig = Field(default_factory=AutomapConfig)


# mapping.yaml schemas
class CustomMappingSchema(BaseModel):
    """Schema for one extended-properties mapping."""

    source_header: str
    key: str = Field(min_length=1)
    scope: Literal["asset", "hardware"] = "asset"


class MappingFileSchema(BaseModel):
    """Schema for mapping.yaml."""

    mappings: dict[str, str | None] = Field(default_factory=dict)
    custom_mappings: list[CustomMappingSchema] = Field(default_factory=list)

    @field_validator("mappings")
    @classmethod
    def validate_target_paths(cls, v: dict[str, str | None]) -> dict[str, str | None]:
        """Validate that every target is a well-formed field path."""
        for header, path in v.items():
            if path is None:
                continue
            try:
                parse_path(path)
            except PathSyntaxError as e:
                raise ValueError(f"mapping for '{header}': {e}") from e
        return v

    @field_validator("custom_mappings")
    @classmethod
    def validate_single_claim(
        cls, v: list[CustomMappingSchema]
    ) -> list[CustomMappingSchema]:
        """Validate that a header appears in at most one custom mapping."""
        headers = [custom.source_header for custom in v]
        duplicates = sorted({header for header in headers if headers.count(header) > 1})
        if duplicates:
            raise ValueError(
                f"headers claimed by more than one custom mapping: {', '.join(duplicates)}"
            )
        return v


def validate_config(data: dict[str, Any]) -> ConfigSchema:
    """
    Validate config.yaml data.

    Args:
        data: Dictionary containing config data

    Returns:
        Validated ConfigSchema instance

    Raises:
        ValidationError: If validation fails
    """
    try:
        return ConfigSchema(**data)
    except Exception as e:
        raise ValidationError(f"Config validation failed: {e}") from e


def validate_mapping_file(data: dict[str, Any]) -> MappingFileSchema:
    """
    Validate mapping.yaml data.

    A header may not have both a standard target and a custom mapping.

    Raises:
        ValidationError: If validation fails
    """
    try:
        schema = MappingFileSchema(**data)
    except Exception as e:
        raise ValidationError(f"Mapping validation failed: {e}") from e

    double_claimed = sorted(
        custom.source_header
        for custom in schema.custom_mappings
        if schema.mappings.get(custom.source_header)
    )
    if double_claimed:
        raise ValidationError(
            "Mapping validation failed: headers mapped both to a field and to a "
            f"custom key: {', '.join(double_claimed)}"
        )
    return schema
