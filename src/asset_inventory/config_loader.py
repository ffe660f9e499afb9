#!/usr/bin/env python3
"""
Configuration loading and management for asset-inventory.

Handles loading configuration from config.yaml and merging with CLI arguments.
CLI arguments take precedence over config.yaml values.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .batch import ErrorPolicy
from .fuzzy import FuzzyConfig
from .logging_config import get_logger
from .schema import ValidationError, validate_config
from .transformer import EnumPolicy

# Initialize logger for this module
logger = get_logger(__name__)


class Config:
    """Configuration management class for asset-inventory."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration with defaults and load from file if available."""
        self._apply(validate_config({}))
        self.source_path: Optional[Path] = None

        if config_path is None:
            # Look in config directory first, then the working directory
            config_path = Path.cwd() / "config" / "config.yaml"
            if not config_path.exists():
                config_path = Path.cwd() / "config.yaml"

        if config_path.exists():
            self._load_from_file(config_path)

    def _apply(self, schema) -> None:
        self.preview_limit = schema.preview_limit
        self.enum_policy = EnumPolicy(schema.enum_policy)
        self.error_policy = ErrorPolicy(schema.error_policy)
        self.background_threshold = schema.background_threshold
        self.output_dir = schema.output_dir
        self.use_legacy_aliases = schema.automap.use_legacy_aliases
        self.disable_fuzzy = schema.automap.disable_fuzzy
        self.fuzzy_threshold = schema.automap.fuzzy_threshold
        self.max_suggestions = schema.automap.max_suggestions

    def _load_from_file(self, config_path: Path) -> None:
        """Load configuration from YAML file."""
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}
            self._apply(validate_config(config_data))
            self.source_path = config_path
            logger.debug(f"Loaded configuration from {config_path}")
        except (OSError, yaml.YAMLError, ValidationError) as e:
            logger.warning(f"Could not load {config_path}: {e}")
            logger.info("Using default values")

    def merge_with_cli_args(self, args) -> None:
        """Merge CLI arguments with config values. CLI args take precedence."""
        if getattr(args, "limit", None) is not None:
            if args.limit < 1:
                raise ValueError("--limit must be at least 1")
            self.preview_limit = args.limit
        if getattr(args, "enum_policy", None) is not None:
            self.enum_policy = EnumPolicy(args.enum_policy)
        if getattr(args, "error_policy", None) is not None:
            self.error_policy = ErrorPolicy(args.error_policy)
        if getattr(args, "legacy_aliases", False):
            self.use_legacy_aliases = True
        if getattr(args, "disable_fuzzy", False):
            self.disable_fuzzy = True
        if getattr(args, "output_dir", None) is not None:
            self.output_dir = args.output_dir

    def fuzzy_config(self) -> FuzzyConfig:
        return FuzzyConfig(
            enabled=not self.disable_fuzzy,
            threshold=self.fuzzy_threshold,
            max_suggestions=self.max_suggestions,
        )

    def get_output_dir(self) -> Path:
        return Path.cwd() / self.output_dir

    def as_dict(self) -> Dict[str, Any]:
        return {
            "preview_limit": self.preview_limit,
            "enum_policy": self.enum_policy.value,
            "error_policy": self.error_policy.value,
            "background_threshold": self.background_threshold,
            "output_dir": self.output_dir,
            "automap": {
                "use_legacy_aliases": self.use_legacy_aliases,
                "disable_fuzzy": self.disable_fuzzy,
                "fuzzy_threshold": self.fuzzy_threshold,
                "max_suggestions": self.max_suggestions,
            },
        }


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file or use defaults."""
    return Config(config_path)
