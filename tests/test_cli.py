"""Tests for the Click command-line interface."""

import json

import pytest
from click.testing import CliRunner

from pescope.cli import pescope_cli


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def dll_path(pe_builder, tmp_path):
    builder = pe_builder(characteristics=0x2102)
    builder.add_export(0x1010, "GetWidget").add_export(0x1020, "SetWidget").add_export(0x1030)
    builder.add_import("KERNEL32.dll", ["ExitProcess", 5])
    path = tmp_path / "widget.dll"
    path.write_bytes(builder.build())
    return path


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('[global]\nlog_level = "ERROR"\n', encoding="utf-8")
    return path


def invoke(runner, config_path, *args):
    return runner.invoke(pescope_cli, ["--config", str(config_path), *args])


def test_inspect(runner, config_path, dll_path):
    outcome = invoke(runner, config_path, "inspect", str(dll_path))
    assert outcome.exit_code == 0, outcome.output
    assert "Native DLL Analysis: widget.dll" in outcome.output
    assert "GetWidget" in outcome.output
    assert "KERNEL32.dll" in outcome.output


def test_inspect_json(runner, config_path, dll_path):
    outcome = invoke(runner, config_path, "inspect", str(dll_path), "--json")
    assert outcome.exit_code == 0, outcome.output
    report = json.loads(outcome.stdout)
    assert report["file"]["name"] == "widget.dll"
    assert report["file"]["is_dll"] is True
    assert [e["ordinal"] for e in report["exports"]] == [1, 2, 3]
    assert report["imports"][0]["functions"] == [
        {"name": "ExitProcess", "hint": 0},
        {"ordinal": 5},
    ]


def test_inspect_writes_report(runner, config_path, dll_path, tmp_path):
    target = tmp_path / "out" / "report.json"
    outcome = invoke(
        runner, config_path, "inspect", str(dll_path), "--no-imports", "-o", str(target)
    )
    assert outcome.exit_code == 0, outcome.output
    assert "Imported Modules" not in outcome.output
    assert json.loads(target.read_text(encoding="utf-8"))["file"]["name"] == "widget.dll"


def test_inspect_invalid_file(runner, config_path, tmp_path):
    path = tmp_path / "bogus.dll"
    path.write_bytes(bytes(10))
    outcome = invoke(runner, config_path, "inspect", str(path))
    assert outcome.exit_code == 1
    assert "is not a valid PE file" in outcome.output


def test_inspect_rejects_negative_limit(runner, config_path, dll_path):
    outcome = invoke(runner, config_path, "inspect", str(dll_path), "--max-exports", "-1")
    assert outcome.exit_code == 2


def test_search(runner, config_path, dll_path):
    outcome = invoke(runner, config_path, "search", str(dll_path), "get*")
    assert outcome.exit_code == 0, outcome.output
    assert "Found 1 matching export(s)" in outcome.output
    assert "GetWidget" in outcome.output
    assert "SetWidget" not in outcome.output


def test_unsupported_platform(runner, tmp_path, dll_path, monkeypatch):
    path = tmp_path / "windows.toml"
    path.write_text('[global]\nlog_level = "ERROR"\n[pe]\nrequire_windows = true\n')
    monkeypatch.setattr("sys.platform", "linux")

    outcome = invoke(runner, path, "inspect", str(dll_path))
    assert outcome.exit_code == 1
    assert "not supported on this platform" in outcome.output


def test_missing_config_file(runner, tmp_path, dll_path):
    outcome = invoke(runner, tmp_path / "absent.toml", "inspect", str(dll_path))
    assert outcome.exit_code == 2


def test_inspect_save_uses_output_dir(runner, tmp_path, dll_path):
    output_dir = tmp_path / "reports"
    path = tmp_path / "save.toml"
    path.write_text(
        f'[global]\nlog_level = "ERROR"\noutput_dir = "{output_dir.as_posix()}"\n',
        encoding="utf-8",
    )
    outcome = invoke(runner, path, "inspect", str(dll_path), "--save")
    assert outcome.exit_code == 0, outcome.output

    (report,) = output_dir.glob("pescope_widget_*.json")
    assert json.loads(report.read_text(encoding="utf-8"))["file"]["name"] == "widget.dll"


def test_invalid_config_limit(runner, tmp_path, dll_path):
    path = tmp_path / "bad.toml"
    path.write_text("[pe]\nmax_string_length = -1\n", encoding="utf-8")
    outcome = invoke(runner, path, "inspect", str(dll_path))
    assert outcome.exit_code == 2
    assert "max_string_length" in outcome.output
