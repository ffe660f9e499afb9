#!/usr/bin/env python3
"""
CLI parsing and argument handling for asset-inventory.

Contains all CLI parsing and argument handling including:
- argparse setup and configuration
- subcommands definition
- help and version handling
- the Typer console script entry point
"""

import argparse
import sys

import typer

from . import __version__
from .config_loader import load_config
from .logging_config import get_logger

# Initialize logger for this module
logger = get_logger(__name__)

COMMANDS = ("fields", "automap", "preview", "import", "frontend")


def _add_output_flags(parser: argparse.ArgumentParser) -> None:
    """Logging flags shared by every reporting command."""
    parser.add_argument("--root", default=".", help="Root directory (default: .)")
    parser.add_argument(
        "--json", action="store_true", help="Force JSONL output to stdout"
    )
    parser.add_argument(
        "--format",
        choices=["human", "jsonl"],
        help="Output format (overrides TTY detection)",
    )
    parser.add_argument("--log-file", type=str, help="Override log file path")
    parser.add_argument(
        "--no-log-file", action="store_true", help="Do not write log file"
    )
    parser.add_argument(
        "--no-preview", action="store_true", help="Suppress preview table in human mode"
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="No stdout output; still writes file unless --no-log-file",
    )


def _add_input_flags(parser: argparse.ArgumentParser, config) -> None:
    parser.add_argument(
        "-i", "--input", required=True, help="Import file (.csv or .json)"
    )
    parser.add_argument(
        "--enum-policy",
        choices=["strict", "lenient"],
        help=f"Enum mismatch handling (default: {config.enum_policy.value})",
    )
    parser.add_argument(
        "--legacy-aliases",
        action="store_true",
        help="Also auto-map legacy field names (e.g. Manufacturer -> hardware.vendor)",
    )
    parser.add_argument(
        "--disable-fuzzy",
        action="store_true",
        help="Disable fuzzy suggestions for unmapped headers",
    )


def setup_cli(argv=None):
    """Set up the command line interface with argparse."""
    # Load configuration to get default values
    config = load_config()

    parser = argparse.ArgumentParser(
        prog="asset-inventory",
        description="Asset Inventory - bulk import of IT assets from CSV or JSON",
    )
    parser.add_argument(
        "--version", action="version", version=f"asset-inventory {__version__}"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Fields subcommand
    fields_parser = subparsers.add_parser(
        "fields", help="List the target fields an import can populate"
    )
    fields_parser.add_argument(
        "--required-only", action="store_true", help="Only list required fields"
    )
    _add_output_flags(fields_parser)

    # Automap subcommand
    automap_parser = subparsers.add_parser(
        "automap", help="Propose a header mapping and write it to a mapping YAML"
    )
    _add_input_flags(automap_parser, config)
    automap_parser.add_argument(
        "-o", "--output", help="Mapping file to write (default: <output_dir>/<input>_mapping.yaml)"
    )
    _add_output_flags(automap_parser)

    # Preview subcommand
    preview_parser = subparsers.add_parser(
        "preview", help="Validate the first rows of an import file"
    )
    _add_input_flags(preview_parser, config)
    preview_parser.add_argument("-m", "--mapping", help="Saved mapping YAML to apply")
    preview_parser.add_argument(
        "--limit",
        type=int,
        help=f"Number of rows to preview (default: {config.preview_limit})",
    )
    preview_parser.add_argument(
        "--error-policy",
        choices=["stop_on_first_error", "skip_invalid_rows"],
        help=f"Commit gating policy (default: {config.error_policy.value})",
    )
    _add_output_flags(preview_parser)

    # Import subcommand
    import_parser = subparsers.add_parser(
        "import", help="Validate every row and save the valid asset records"
    )
    _add_input_flags(import_parser, config)
    import_parser.add_argument("-m", "--mapping", help="Saved mapping YAML to apply")
    import_parser.add_argument(
        "--limit",
        type=int,
        help=f"Rows checked before committing (default: {config.preview_limit})",
    )
    import_parser.add_argument(
        "--error-policy",
        choices=["stop_on_first_error", "skip_invalid_rows"],
        help=f"Commit gating policy (default: {config.error_policy.value})",
    )
    import_parser.add_argument(
        "-o", "--output", help="JSON file for saved records (default: <output_dir>/<input>_assets.json)"
    )
    import_parser.add_argument(
        "--rejects-csv", help="CSV file for rejected rows (default: <output_dir>/<input>_rejected.csv)"
    )
    import_parser.add_argument(
        "--no-rejects", action="store_true", help="Do not write a rejects CSV"
    )
    import_parser.add_argument(
        "--output-dir", help=f"Directory for default outputs (default: {config.output_dir})"
    )
    _add_output_flags(import_parser)

    # Frontend subcommand
    frontend_parser = subparsers.add_parser(
        "frontend", help="Start the web import wizard"
    )
    frontend_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    frontend_parser.add_argument(
        "--port", type=int, default=5000, help="Port to bind to (default: 5000)"
    )
    frontend_parser.add_argument(
        "--debug", action="store_true", help="Run Flask in debug mode"
    )

    args = parser.parse_args(argv)

    # If no command is specified, show help
    if args.command not in COMMANDS:
        parser.print_help()
        sys.exit(1)

    try:
        config.merge_with_cli_args(args)
    except ValueError as e:
        parser.error(str(e))

    return args, config


app = typer.Typer(
    name="asset-inventory",
    help="Asset Inventory - bulk import of IT assets from CSV or JSON",
    add_completion=False,
)


@app.command(
    context_settings={
        "allow_extra_args": True,
        "ignore_unknown_options": True,
        "help_option_names": [],
    }
)
def run(ctx: typer.Context):
    """Console script entry point; the argparse CLI handles all arguments."""
    from .logging_config import setup_logging
    from .main import main

    # Initialize logging
    setup_logging()

    try:
        main(ctx.args)
    except KeyboardInterrupt:
        typer.echo("Interrupted")
        raise typer.Exit(130)
