"""Tests for the exemplars CLI."""

import json
import os
import sys

from click.testing import CliRunner

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from harness.cli import cli


class TestCli:
    """Commands of the exemplars group."""

    def setup_method(self):
        self.runner = CliRunner()

    def test_list(self):
        result = self.runner.invoke(cli, ["list"])
        assert result.exit_code == 0
        assert "IntegerOverflow" in result.output

    def test_show(self):
        result = self.runner.invoke(cli, ["show", "overflow"])
        assert result.exit_code == 0
        assert "Integer Overflow/Underflow Vulnerability" in result.output
        assert "deposit-at-max-balance" in result.output

    def test_show_unknown_kind(self):
        result = self.runner.invoke(cli, ["show", "buffer-overflow"])
        assert result.exit_code == 1

    def test_verify_json(self):
        result = self.runner.invoke(cli, ["verify", "--kind", "overflow", "--format", "json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["ok"] is True
        assert data["summary"]["total"] == 2

    def test_verify_failure_exit_code(self, tmp_path):
        """Overrides that defeat the attack make verify exit non-zero."""
        overrides = tmp_path / "o.json"
        overrides.write_text(json.dumps({"IntegerOverflow:1": {"balance": 10}}))
        result = self.runner.invoke(
            cli, ["verify", "-k", "IntegerOverflow", "--format", "json", "--scenarios", str(overrides)]
        )
        assert result.exit_code == 1
        assert json.loads(result.output)["summary"]["failed"] == 1

    def test_verify_bad_override(self, tmp_path):
        overrides = tmp_path / "o.json"
        overrides.write_text(json.dumps({"Nope": {}}))
        result = self.runner.invoke(cli, ["verify", "--scenarios", str(overrides)])
        assert result.exit_code == 2

    def test_verify_zero_budget(self):
        result = self.runner.invoke(cli, ["verify", "-k", "overflow", "--max-units", "0"])
        assert result.exit_code == 2
        assert "must be positive" in result.output

    def test_verify_html_to_file(self, tmp_path):
        out = tmp_path / "report.html"
        result = self.runner.invoke(cli, ["verify", "-k", "reentrancy", "--format", "html", "-o", str(out)])
        assert result.exit_code == 0
        assert out.read_text().startswith("<!DOCTYPE html>")

    def test_annotations(self):
        result = self.runner.invoke(cli, ["annotations"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert len(data) == 15
