"""Tests for the indexer-spine CLI."""

from __future__ import annotations

import yaml
from typer.testing import CliRunner

from indexer_spine import __version__
from indexer_spine.cli.app import app

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_config_check_ok(config_path):
    result = runner.invoke(app, ["config", "check", "--path", str(config_path), "--max-name-length", "32"])
    assert result.exit_code == 0, result.output
    assert "catapulta" in result.output
    assert "Configuration OK" in result.output


def test_config_check_postgres_disabled(config_path, rindexer_document):
    rindexer_document["storage"] = {"postgres": {"enabled": False}}
    config_path.write_text(yaml.safe_dump(rindexer_document), encoding="utf-8")

    result = runner.invoke(app, ["config", "check", "--path", str(config_path), "--max-name-length", "32"])

    assert result.exit_code == 1


def test_config_check_reads_settings(config_path, monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", '["*"]')
    monkeypatch.setenv("CONFIG_PATH", str(config_path))
    result = runner.invoke(app, ["config", "check"])
    assert result.exit_code == 0, result.output


def test_serve_requires_cors_origins(monkeypatch, tmp_path):
    monkeypatch.delenv("CORS_ORIGINS", raising=False)
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["serve"])
    assert result.exit_code == 1
