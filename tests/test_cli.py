"""Tests for the command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from nppes.cli import (
    EXIT_EXPORT_FAILED,
    EXIT_LOAD_FAILED,
    EXIT_NO_RESULTS,
    EXIT_OK,
    build_parser,
    main,
)


class TestStats:
    def test_prints_summary(self, dataset_dir: Path, capsys):
        assert main(["stats", "-d", str(dataset_dir)]) == EXIT_OK

        lines = dict(
            line.split(":", 1) for line in capsys.readouterr().out.splitlines()
        )
        assert lines["Total providers"].strip() == "3"
        assert lines["Inactive providers"].strip() == "1"

    def test_missing_directory(self, tmp_path: Path):
        assert main(["stats", "-d", str(tmp_path / "missing")]) == EXIT_LOAD_FAILED

    def test_directory_without_main_file(self, tmp_path: Path):
        assert main(["stats", "-d", str(tmp_path)]) == EXIT_LOAD_FAILED


class TestQuery:
    """Test the query subcommand."""

    def test_state_filter(self, dataset_dir: Path, capsys):
        assert main(["query", "-d", str(dataset_dir), "--state", "CA"]) == EXIT_OK

        lines = capsys.readouterr().out.splitlines()
        assert [line.split("\t")[0] for line in lines] == ["1234567893", "1245319599"]

    def test_specialty_and_active(self, dataset_dir: Path, capsys):
        argv = ["query", "-d", str(dataset_dir), "--specialty", "clinic", "--active"]

        assert main(argv) == EXIT_OK
        assert capsys.readouterr().out == ""

    def test_npi_lookup(self, dataset_dir: Path, capsys):
        assert main(["query", "-d", str(dataset_dir), "--npi", "1003000126"]) == EXIT_OK

        fields = capsys.readouterr().out.strip().split("\t")
        assert fields == ["1003000126", "VALLEY CLINIC LLC", "NY", "261QP2300X", "deactivated"]

    def test_limit(self, dataset_dir: Path, capsys):
        assert main(["query", "-d", str(dataset_dir), "--limit", "1"]) == EXIT_OK

        assert len(capsys.readouterr().out.splitlines()) == 1

    def test_require_results(self, dataset_dir: Path):
        argv = ["query", "-d", str(dataset_dir), "--state", "TX", "--require-results"]

        assert main(argv) == EXIT_NO_RESULTS

    def test_negative_limit_rejected(self, dataset_dir: Path):
        with pytest.raises(SystemExit):
            main(["query", "-d", str(dataset_dir), "--limit", "-1"])


class TestExport:
    def test_jsonl_export(self, dataset_dir: Path, tmp_path: Path, capsys):
        output = tmp_path / "ca.jsonl"
        argv = ["export", "-d", str(dataset_dir), "-o", str(output), "--format", "jsonl", "--state", "CA"]

        assert main(argv) == EXIT_OK

        records = [json.loads(line) for line in output.read_text().splitlines()]
        assert [r["npi"] for r in records] == ["1234567893", "1245319599"]
        assert "Exported 2 providers" in capsys.readouterr().out

    def test_default_format_from_settings(self, dataset_dir: Path, tmp_path: Path):
        config = tmp_path / "nppes.yaml"
        config.write_text("default_export_format: sql\n")
        output = tmp_path / "providers.sql"

        argv = ["--config", str(config), "export", "-d", str(dataset_dir), "-o", str(output)]

        assert main(argv) == EXIT_OK
        assert "INSERT INTO nppes_providers" in output.read_text()

    def test_unwritable_output(self, dataset_dir: Path, tmp_path: Path):
        output = tmp_path / "missing" / "out.json"

        assert main(["export", "-d", str(dataset_dir), "-o", str(output)]) == EXIT_EXPORT_FAILED


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_unknown_format_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["export", "-d", ".", "-o", "x", "--format", "xlsx"])

    def test_invalid_config(self, dataset_dir: Path, tmp_path: Path):
        config = tmp_path / "nppes.yaml"
        config.write_text("batch_size: 0\n")

        assert main(["--config", str(config), "stats", "-d", str(dataset_dir)]) == EXIT_LOAD_FAILED
