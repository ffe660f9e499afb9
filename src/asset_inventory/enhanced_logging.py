#!/usr/bin/env python3
"""
Enhanced logging for asset-inventory CLI commands.

Provides Rich-based logging with TTY detection, JSONL file output,
and configurable output formats for the fields, automap, preview and import
commands.
"""

import json
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table


class EnhancedLogger:
    """Enhanced logger with Rich output, TTY detection, and JSONL file support."""

    def __init__(self, args, step: str, root_path: Path):
        """Initialize the enhanced logger.

        Args:
            args: CLI arguments containing logging flags
            step: The command name (fields, automap, preview or import)
            root_path: Root directory path
        """
        self.args = args
        self.step = step
        self.root_path = root_path
        self.start_time = time.time()

        # Precedence: quiet > json > format > TTY detection
        self.quiet = getattr(args, "quiet", False)
        self.json_flag = getattr(args, "json", False)
        self.format_flag = getattr(args, "format", None)
        self.no_preview = getattr(args, "no_preview", False)

        self.log_file_path = getattr(args, "log_file", None)
        self.no_log_file = getattr(args, "no_log_file", False)
        self._resolved_log_file: Optional[Path] = None

        self.console = Console()

        if self.quiet:
            self.stdout_format = "none"
        elif self.json_flag:
            self.stdout_format = "jsonl"
        elif self.format_flag:
            self.stdout_format = self.format_flag
        else:
            self.stdout_format = "human" if sys.stdout.isatty() else "jsonl"

    def get_duration_ms(self) -> int:
        """Get elapsed time in milliseconds since logger creation."""
        return int((time.time() - self.start_time) * 1000)

    def normalize_path(self, path: Path) -> str:
        """Normalize path to use forward slashes and make relative to root."""
        try:
            relative_path = path.relative_to(self.root_path)
            return str(relative_path).replace("\\", "/")
        except ValueError:
            return str(path).replace("\\", "/")

    def get_log_file_path(self) -> Optional[Path]:
        """Get the log file path based on naming convention."""
        if self.no_log_file:
            return None

        if self.log_file_path:
            return Path(self.log_file_path)

        if self._resolved_log_file is None:
            # data/99_logging/<step>_<YYYYMMDD_HHmm>.jsonl
            timestamp = datetime.now().strftime("%Y%m%d_%H%M")
            log_dir = self.root_path / "data" / "99_logging"
            log_dir.mkdir(parents=True, exist_ok=True)
            self._resolved_log_file = log_dir / f"{self.step}_{timestamp}.jsonl"
        return self._resolved_log_file

    def write_jsonl_to_file(self, event: Dict[str, Any]) -> None:
        """Write JSONL event to log file."""
        log_file = self.get_log_file_path()
        if not log_file:
            return

        jsonl_line = json.dumps(event, ensure_ascii=False, separators=(",", ":"))
        with open(log_file, "a", encoding="utf-8") as f:
            f.write(jsonl_line + "\n")

    def output_to_stdout(
        self, event: Dict[str, Any], preview_data: Optional[List[Dict]] = None
    ) -> None:
        """Output event to stdout based on format settings."""
        if self.stdout_format == "none":
            return
        elif self.stdout_format == "jsonl":
            print(json.dumps(event, ensure_ascii=False, separators=(",", ":")))
        elif self.stdout_format == "human":
            self._output_human_format(event, preview_data)

    def _output_human_format(
        self, event: Dict[str, Any], preview_data: Optional[List[Dict]] = None
    ) -> None:
        """Output event in human-readable Rich format."""
        warnings = event.get("warnings", [])
        check_color = "yellow" if warnings else "green"
        check_mark = "⚠" if warnings else "✓"
        prefix = f"[{check_color}]{check_mark}[/{check_color}] {self.step}"

        if self.step == "fields":
            self.console.print(
                f"{prefix}  fields={event.get('total_fields', 0)}  "
                f"required={event.get('required_fields', 0)}"
            )
        elif self.step == "automap":
            self.console.print(
                f"{prefix}  headers={event.get('headers', 0)}  "
                f"mapped={event.get('mapped', 0)}  unmapped={event.get('unmapped', 0)}  "
                f"collisions={event.get('collisions', 0)}"
            )
        elif self.step == "preview":
            self.console.print(
                f"{prefix}  rows={event.get('total', 0)}  valid={event.get('valid', 0)}  "
                f"invalid={event.get('invalid', 0)}"
            )
        elif self.step == "import":
            self.console.print(
                f"{prefix}  rows={event.get('total', 0)}  created={event.get('created', 0)}  "
                f"updated={event.get('updated', 0)}  failed={event.get('failed', 0)}"
            )

        input_file = event.get("input_file", "")
        if input_file:
            self.console.print(f"  in:  {input_file}")
        mapping_file = event.get("mapping_file", "")
        if mapping_file:
            self.console.print(f"  mapping: {mapping_file}")
        output_file = event.get("output_file", "")
        if output_file:
            self.console.print(f"  out: {output_file}")
        rejects_csv = event.get("rejects_csv", "")
        if rejects_csv:
            self.console.print(f"  rej: {rejects_csv}")

        self.console.print(f"  time: {event.get('duration_ms', 0)}ms")
        self.console.print(f"  warnings: {len(warnings)}")
        for warning in warnings:
            self.console.print(f"    [yellow]-[/yellow] {warning}")

        if not self.no_preview and preview_data:
            self._output_preview_table(preview_data)

    def _output_preview_table(self, preview_data: List[Dict]) -> None:
        """Output preview table for human format."""
        if self.step == "fields":
            self._output_fields_table(preview_data)
        elif self.step == "automap":
            self._output_mapping_table(preview_data)
        elif self.step in ("preview", "import"):
            self._output_rows_table(preview_data)

    def _output_fields_table(self, preview_data: List[Dict]) -> None:
        table = Table(title="Target fields")
        table.add_column("path")
        table.add_column("label")
        table.add_column("kind")
        table.add_column("required")

        for item in preview_data:
            table.add_row(
                item.get("path", ""),
                item.get("label", ""),
                item.get("kind", ""),
                "yes" if item.get("required") else "",
            )

        self.console.print(table)

    def _output_mapping_table(self, preview_data: List[Dict]) -> None:
        table = Table(title="Header mapping")
        table.add_column("source_header")
        table.add_column("target_field")
        table.add_column("match")
        table.add_column("suggestions")

        for item in preview_data:
            table.add_row(
                item.get("source_header", ""),
                item.get("target_field") or "[dim]skip[/dim]",
                item.get("match", ""),
                item.get("suggestions", ""),
            )

        self.console.print(table)

    def _output_rows_table(self, preview_data: List[Dict]) -> None:
        """Output one line per previewed row with its status and first error."""
        table = Table(title="Preview (sample)")
        table.add_column("#", style="dim")
        table.add_column("status")
        table.add_column("deviceId")
        table.add_column("name")
        table.add_column("errors")

        for item in preview_data:
            record = item.get("record", {})
            errors = item.get("errors", {})
            status = "[green]valid[/green]" if item.get("is_valid") else "[red]invalid[/red]"
            first_error = next(iter(errors.values()), "")
            if len(errors) > 1:
                first_error = f"{first_error} (+{len(errors) - 1} more)"
            table.add_row(
                str(item.get("row_number", "")),
                status,
                str(record.get("deviceId", ""))[:20],
                str(record.get("name", ""))[:30],
                first_error,
            )

        self.console.print(table)

    def log_event(
        self, event: Dict[str, Any], preview_data: Optional[List[Dict]] = None
    ) -> None:
        """Log an event to both file and stdout as configured."""
        if "duration_ms" not in event:
            event["duration_ms"] = self.get_duration_ms()

        for key in ("input_file", "output_file", "mapping_file", "rejects_csv"):
            if event.get(key):
                event[key] = self.normalize_path(Path(event[key]))

        self.write_jsonl_to_file(event)
        self.output_to_stdout(event, preview_data)

    def log_error(self, error_event: Dict[str, Any]) -> None:
        """Log an error event."""
        error_event["duration_ms"] = self.get_duration_ms()

        if "path" in error_event:
            error_event["path"] = self.normalize_path(Path(error_event["path"]))

        self.write_jsonl_to_file(error_event)

        if self.stdout_format == "none":
            return
        if self.stdout_format == "jsonl":
            print(json.dumps(error_event, ensure_ascii=False, separators=(",", ":")))
        else:
            error_msg = self._format_error_message(error_event)
            self.console.print(f"[red]✗[/red] Error: {error_msg}")

    def _format_error_message(self, error_event: Dict[str, Any]) -> str:
        """Format error message for human-readable output."""
        error_type = error_event.get("error", "unknown")

        if error_type == "missing_input":
            path = error_event.get("path", "unknown")
            return f"Input file not found: {path}"
        elif error_type == "parse_error":
            return f"Could not read import file: {error_event.get('message', '')}"
        elif error_type == "invalid_mapping":
            return f"Invalid mapping file: {error_event.get('message', '')}"
        elif error_type == "invalid_config":
            return f"Invalid configuration: {error_event.get('message', '')}"
        elif error_type == "commit_blocked":
            invalid = error_event.get("invalid", 0)
            policy = error_event.get("error_policy", "unknown")
            return f"Import blocked by error policy '{policy}': {invalid} invalid preview rows"
        elif error_type == "exception":
            message = error_event.get("message", "Unknown exception")
            return f"Unexpected error: {message}"
        else:
            return error_event.get("message", f"Unknown error type: {error_type}")
