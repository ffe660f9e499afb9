#!/usr/bin/env python3
"""
Main entry point for asset-inventory.

Runs the CLI commands:
- fields: list the target field catalog
- automap: propose a header mapping for an import file and save it as YAML
- preview: validate the first rows of an import file
- import: validate every row and save the valid records
- frontend: start the web wizard
"""

import sys
from pathlib import Path

import pandas as pd
import yaml

from .batch import rejected_rows
from .cli import setup_cli
from .field_registry import ASSET_REGISTRY
from .logging_config import get_logger
from .mapping_file import load_mapping_file, write_mapping_file
from .parsers import ParseError, parse_file
from .persistence import InMemoryAssetStore
from .schema import ValidationError
from .session import ImportSession

# Initialize logger for this module
logger = get_logger(__name__)


def _load_session(args, config, enhanced_logger, store=None) -> ImportSession:
    """Parse the input file and apply a saved mapping, exiting on failure."""
    input_path = Path(args.input)
    if not input_path.exists():
        enhanced_logger.log_error({"error": "missing_input", "path": str(input_path)})
        sys.exit(2)

    session = ImportSession.from_config(config, store=store)
    try:
        session.load_parsed(parse_file(input_path))
    except ParseError as e:
        enhanced_logger.log_error(
            {"error": "parse_error", "path": str(input_path), "message": str(e)}
        )
        sys.exit(2)

    mapping_path = getattr(args, "mapping", None)
    if mapping_path:
        try:
            mapping, custom_mappings = load_mapping_file(Path(mapping_path))
        except (OSError, yaml.YAMLError, ValidationError) as e:
            enhanced_logger.log_error(
                {"error": "invalid_mapping", "path": str(mapping_path), "message": str(e)}
            )
            sys.exit(3)

        headers = set(session.headers)
        absent = [header for header in mapping if header not in headers]
        absent += [c.source_header for c in custom_mappings if c.source_header not in headers]
        for header in absent:
            logger.warning(f"Mapping names header '{header}' which is not in {input_path.name}")
        try:
            session.replace_mappings(
                {header: path for header, path in mapping.items() if header in headers},
                [c for c in custom_mappings if c.source_header in headers],
            )
        except KeyError as e:
            enhanced_logger.log_error(
                {"error": "invalid_mapping", "path": str(mapping_path), "message": str(e)}
            )
            sys.exit(3)

    return session


def run_fields_command(args, config):
    """List the target field catalog."""
    from .enhanced_logging import EnhancedLogger

    enhanced_logger = EnhancedLogger(args, "fields", Path(args.root))

    fields = (
        ASSET_REGISTRY.required_fields()
        if args.required_only
        else ASSET_REGISTRY.all_fields()
    )
    preview_data = [
        {
            "path": descriptor.path,
            "label": descriptor.label,
            "kind": str(descriptor.kind),
            "required": descriptor.required,
        }
        for descriptor in fields
    ]
    summary = {
        "step": "fields",
        "total_fields": len(fields),
        "required_fields": sum(1 for descriptor in fields if descriptor.required),
        "fields": preview_data,
        "warnings": [],
    }
    enhanced_logger.log_event(summary, preview_data)


def run_automap_command(args, config):
    """Propose a mapping for the input file and write it to a mapping YAML."""
    from .enhanced_logging import EnhancedLogger

    logger.info(f"=== Automap Command: {args.input} ===")
    root_path = Path(args.root)
    enhanced_logger = EnhancedLogger(args, "automap", root_path)

    session = _load_session(args, config, enhanced_logger)
    result = session.automap_result

    output_path = (
        Path(args.output)
        if args.output
        else root_path / config.output_dir / f"{Path(args.input).stem}_mapping.yaml"
    )

    try:
        write_mapping_file(
            output_path,
            session.mapping,
            session.custom_mappings,
            result,
            session.parsed.source_name,
        )

        preview_data = [
            {
                "source_header": header,
                "target_field": path,
                "match": result.match_types.get(header, "none"),
                "suggestions": ", ".join(
                    f"{suggested} ({score:.2f})"
                    for suggested, score in result.suggestions.get(header, [])
                ),
            }
            for header, path in session.mapping.items()
        ]
        summary = {
            "step": "automap",
            "input_file": str(args.input),
            "output_file": str(output_path),
            "headers": len(session.headers),
            "mapped": result.mapped_count,
            "unmapped": len(result.unmapped_headers),
            "collisions": len(result.collisions),
            "mapping": dict(session.mapping),
            "warnings": session.warnings(),
        }
        enhanced_logger.log_event(summary, preview_data)
        logger.info("✓ Automap command completed successfully!")

    except Exception as e:
        enhanced_logger.log_error({"error": "exception", "message": str(e)})
        sys.exit(1)


def run_preview_command(args, config):
    """Validate the first rows of the input file."""
    from .enhanced_logging import EnhancedLogger

    logger.info(f"=== Preview Command: {args.input} ===")
    enhanced_logger = EnhancedLogger(args, "preview", Path(args.root))

    session = _load_session(args, config, enhanced_logger)

    try:
        outcomes = session.preview()
        report = session.preview_report()
        preview_data = [outcome.to_dict() for outcome in outcomes]
        summary = {
            "step": "preview",
            "input_file": str(args.input),
            "mapping_file": str(args.mapping) if args.mapping else "",
            "total": report.total,
            "valid": report.valid_count,
            "invalid": report.invalid_count,
            "commit_allowed": session.commit_allowed(),
            "error_policy": session.error_policy.value,
            "rows": preview_data,
            "warnings": session.warnings(),
        }
        enhanced_logger.log_event(summary, preview_data)

    except Exception as e:
        enhanced_logger.log_error({"error": "exception", "message": str(e)})
        sys.exit(1)


def run_import_command(args, config):
    """Validate every row of the input file and save the valid records."""
    from .enhanced_logging import EnhancedLogger

    logger.info(f"=== Import Command: {args.input} ===")
    root_path = Path(args.root)
    enhanced_logger = EnhancedLogger(args, "import", root_path)

    store = InMemoryAssetStore()
    session = _load_session(args, config, enhanced_logger, store=store)

    outcomes = session.preview()
    if not session.commit_allowed():
        report = session.preview_report()
        enhanced_logger.log_error(
            {
                "error": "commit_blocked",
                "input_file": str(args.input),
                "error_policy": session.error_policy.value,
                "valid": report.valid_count,
                "invalid": report.invalid_count,
                "rows": [outcome.to_dict() for outcome in outcomes],
            }
        )
        sys.exit(4)

    try:
        report = session.commit()

        output_path = (
            Path(args.output)
            if args.output
            else root_path / config.output_dir / f"{Path(args.input).stem}_assets.json"
        )
        store.dump_json(output_path)

        rejects_path = None
        rejected = rejected_rows(session.commit_outcomes)
        if rejected and not args.no_rejects:
            rejects_path = (
                Path(args.rejects_csv)
                if args.rejects_csv
                else root_path / config.output_dir / f"{Path(args.input).stem}_rejected.csv"
            )
            rejects_path.parent.mkdir(parents=True, exist_ok=True)
            pd.DataFrame(rejected).to_csv(rejects_path, index=False, encoding="utf-8")
            logger.info(f"Wrote {len(rejected)} rejected rows to {rejects_path}")

        preview_data = [
            outcome.to_dict() for outcome in session.commit_outcomes if not outcome.is_valid
        ][: config.preview_limit]
        summary = {
            "step": "import",
            "input_file": str(args.input),
            "mapping_file": str(args.mapping) if args.mapping else "",
            "output_file": str(output_path),
            "rejects_csv": str(rejects_path) if rejects_path else "",
            "error_policy": session.error_policy.value,
            **report.to_dict(),
            "warnings": session.warnings(),
        }
        enhanced_logger.log_event(summary, preview_data)
        logger.info("✓ Import command completed successfully!")

    except Exception as e:
        enhanced_logger.log_error({"error": "exception", "message": str(e)})
        sys.exit(1)


def run_frontend_command(args, config):
    """Start the web wizard."""
    from .frontend import start_frontend

    start_frontend(host=args.host, port=args.port, debug=args.debug)


def main(argv=None):
    """Main entry point for the application."""
    args, config = setup_cli(argv)

    if args.command == "fields":
        run_fields_command(args, config)
    elif args.command == "automap":
        run_automap_command(args, config)
    elif args.command == "preview":
        run_preview_command(args, config)
    elif args.command == "import":
        run_import_command(args, config)
    elif args.command == "frontend":
        run_frontend_command(args, config)
    else:
        logger.error(f"Unknown command: {args.command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
