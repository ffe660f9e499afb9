#!/usr/bin/env python3
"""
Tests for the asset-inventory CLI commands.
"""

import json
import os
import subprocess
import sys
from pathlib import Path

import pandas as pd
import pytest
import yaml

from asset_inventory.main import main

SRC = str(Path(__file__).resolve().parents[1] / "src")

CSV = (
    "Device ID,Name,Stage,Vendor,Purchase Cost,Rack\n"
    "D1,Pump,Active,ABB,100,R1\n"
    "D2,Valve,Active,Siemens,n/a,R2\n"
    "D3,Tank,Retired,ABB,250.5,R3\n"
)


def run_module(*args, cwd=None):
    env = dict(os.environ, PYTHONPATH=SRC)
    return subprocess.run(
        [sys.executable, "-m", "asset_inventory", *args],
        capture_output=True,
        text=True,
        cwd=cwd,
        env=env,
    )


def json_events(output):
    """JSONL events from captured stdout, skipping plain log lines."""
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "assets.csv").write_text(CSV, encoding="utf-8")
    return tmp_path


def run_main(capsys, *argv):
    main(list(argv) + ["--json", "--no-log-file"])
    return json_events(capsys.readouterr().out)


def test_cli_help():
    """Test that the CLI help command works."""
    result = run_module("--help")
    assert result.returncode == 0
    assert "Asset Inventory" in result.stdout
    for command in ("fields", "automap", "preview", "import", "frontend"):
        assert command in result.stdout


@pytest.mark.parametrize("command", ["fields", "automap", "preview", "import"])
def test_command_help(command):
    """Test that every subcommand has help with the logging flags."""
    result = run_module(command, "--help")
    assert result.returncode == 0
    assert "--json" in result.stdout
    assert "--no-log-file" in result.stdout


def test_missing_command():
    """Test that running without a command shows help and exits 1."""
    result = run_module()
    assert result.returncode == 1
    assert "usage" in result.stdout.lower()


def test_fields(workdir, capsys):
    events = run_main(capsys, "fields", "--required-only")
    assert events[0]["step"] == "fields"
    assert [field["path"] for field in events[0]["fields"]] == ["deviceId", "name", "stage"]


def test_automap_writes_mapping_file(workdir, capsys):
    events = run_main(capsys, "automap", "-i", "assets.csv")

    event = events[0]
    assert event["output_file"] == "output/assets_mapping.yaml"
    assert event["mapped"] == 5
    assert event["unmapped"] == 1

    data = yaml.safe_load((workdir / "output" / "assets_mapping.yaml").read_text(encoding="utf-8"))
    assert data["mappings"]["Purchase Cost"] == "purchaseCost"
    assert data["mappings"]["Rack"] is None


def test_preview(workdir, capsys):
    events = run_main(capsys, "preview", "-i", "assets.csv", "--limit", "2")
    event = events[0]
    assert event["total"] == 2
    assert event["valid"] == 1
    assert event["invalid"] == 1
    assert event["rows"][1]["errors"] == {"Purchase Cost": "purchaseCost must be a number."}


def test_import_with_saved_mapping(workdir, capsys):
    (workdir / "mapping.yaml").write_text(
        "mappings:\n"
        "  Purchase Cost: null\n"
        "  Unknown Column: name\n"
        "custom_mappings:\n"
        "- source_header: Rack\n"
        "  key: rackPosition\n",
        encoding="utf-8",
    )
    events = run_main(capsys, "import", "-i", "assets.csv", "-m", "mapping.yaml")

    event = events[0]
    assert (event["total"], event["created"], event["updated"], event["failed"]) == (3, 3, 0, 0)
    assert event["rejects_csv"] == ""

    records = json.loads((workdir / "output" / "assets_assets.json").read_text(encoding="utf-8"))
    assert [record["deviceId"] for record in records] == ["D1", "D2", "D3"]
    assert records[0]["extended"] == {"rackPosition": "R1"}
    assert "purchaseCost" not in records[0]


def test_import_writes_rejects_csv(workdir, capsys):
    events = run_main(capsys, "import", "-i", "assets.csv", "-o", "out/assets.json")

    event = events[0]
    assert (event["created"], event["failed"]) == (2, 1)
    assert event["output_file"] == "out/assets.json"

    rejects = pd.read_csv(workdir / "output" / "assets_rejected.csv", dtype=str)
    assert list(rejects["Device ID"]) == ["D2"]
    assert list(rejects["__first_error"]) == ["Purchase Cost"]


def test_import_blocked_by_error_policy(workdir, capsys):
    with pytest.raises(SystemExit) as exc_info:
        run_main(capsys, "import", "-i", "assets.csv", "--error-policy", "stop_on_first_error")
    assert exc_info.value.code == 4

    events = json_events(capsys.readouterr().out)
    assert events[0]["error"] == "commit_blocked"
    assert not (workdir / "output" / "assets_assets.json").exists()


def test_missing_input(workdir, capsys):
    with pytest.raises(SystemExit) as exc_info:
        run_main(capsys, "preview", "-i", "missing.csv")
    assert exc_info.value.code == 2
    assert json_events(capsys.readouterr().out)[0]["error"] == "missing_input"


def test_unparseable_input(workdir, capsys):
    (workdir / "empty.csv").write_text("", encoding="utf-8")
    with pytest.raises(SystemExit) as exc_info:
        run_main(capsys, "preview", "-i", "empty.csv")
    assert exc_info.value.code == 2
    assert json_events(capsys.readouterr().out)[0]["error"] == "parse_error"


def test_invalid_mapping_file(workdir, capsys):
    (workdir / "mapping.yaml").write_text("mappings:\n  Vendor: 'a..b'\n", encoding="utf-8")
    with pytest.raises(SystemExit) as exc_info:
        run_main(capsys, "preview", "-i", "assets.csv", "-m", "mapping.yaml")
    assert exc_info.value.code == 3
    assert json_events(capsys.readouterr().out)[0]["error"] == "invalid_mapping"


def test_log_file_is_written(workdir, capsys):
    main(["fields", "--json", "--log-file", "fields.jsonl"])
    capsys.readouterr()

    lines = (workdir / "fields.jsonl").read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[0])["step"] == "fields"


def test_import_as_module(workdir):
    """Test a full import through python -m."""
    result = run_module("import", "-i", "assets.csv", "--json", "--no-log-file", cwd=workdir)
    assert result.returncode == 0
    event = json_events(result.stdout)[-1]
    assert event["step"] == "import"
    assert event["created"] == 2
