"""Tests for the command line interface."""

import json

from typer.testing import CliRunner

from mainwebdb import __version__
from mainwebdb.cli import app, state

runner = CliRunner()


def _invoke(*args: str):
    result = runner.invoke(app, list(args))
    # Global options persist on the module state between invocations
    state.json_output = False
    state.verbose = False
    return result


class TestGlobalOptions:
    """Tests for global CLI options."""

    def test_version(self):
        result = _invoke("--version")
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self):
        result = _invoke()
        assert "export" in result.output


class TestStoreCommands:
    """Tests for export, import, reset and stats."""

    def test_stats_json(self, engine, shop):
        result = _invoke("--json", "stats")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["users"] == 1
        assert data["databases"] == 1
        assert data["tables"] == 1
        assert data["size_bytes"] > 0

    def test_stats_table(self, engine, shop):
        result = _invoke("stats")
        assert result.exit_code == 0
        assert "databases" in result.stdout

    def test_export_then_import(self, engine, shop, tmp_path):
        target = tmp_path / "backup.json"

        result = _invoke("export", str(target))
        assert result.exit_code == 0
        assert json.loads(target.read_text())["databases"][0]["name"] == "Shop"

        assert _invoke("reset", "--yes").exit_code == 0
        assert engine.store.load().databases == []

        result = _invoke("--json", "import", str(target))
        assert result.exit_code == 0
        assert json.loads(result.stdout)["counts"]["databases"] == 1
        assert len(engine.store.load().databases) == 1

    def test_import_invalid_file(self, engine, shop, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{oops")

        result = _invoke("import", str(bad))

        assert result.exit_code == 1
        assert len(engine.store.load().databases) == 1

    def test_import_missing_file(self, engine, tmp_path):
        result = _invoke("import", str(tmp_path / "nope.json"))
        assert result.exit_code != 0

    def test_reset_requires_confirmation(self, engine, shop):
        result = _invoke("reset")

        assert result.exit_code == 1
        assert len(engine.store.load().databases) == 1
