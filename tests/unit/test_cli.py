"""CLI command tests."""

import asyncio

from typer.testing import CliRunner

from nourishnet.claims import ClaimStore
from nourishnet.cli import app
from nourishnet.policy import render_rules
from nourishnet.storage import SQLiteStorage

runner = CliRunner()


def _seed(db_path):
    store = ClaimStore(SQLiteStorage(db_path))
    asyncio.run(store.create_claim("d1", {"itemName": "Bread"}, "qr-abc"))


def test_claims_list_empty(tmp_path, monkeypatch):
    monkeypatch.setenv("NOURISHNET_CONFIG", str(tmp_path / "missing.yaml"))
    result = runner.invoke(app, ["claims", "list", "--storage", f"sqlite://{tmp_path / 'c.db'}"])

    assert result.exit_code == 0
    assert "No cached claims." in result.stdout


def test_claims_list_and_clear(tmp_path, monkeypatch):
    monkeypatch.setenv("NOURISHNET_CONFIG", str(tmp_path / "missing.yaml"))
    db_path = tmp_path / "c.db"
    _seed(db_path)
    url = f"sqlite://{db_path}"

    result = runner.invoke(app, ["claims", "list", "--storage", url])
    assert result.exit_code == 0
    assert "Bread" in result.stdout
    assert "pending" in result.stdout
    assert "offline" in result.stdout

    result = runner.invoke(app, ["claims", "clear", "--storage", url])
    assert result.exit_code == 0
    assert "Cleared cached claims." in result.stdout

    result = runner.invoke(app, ["claims", "list", "--storage", url])
    assert "No cached claims." in result.stdout


def test_rules_render_stdout():
    result = runner.invoke(app, ["rules", "render"])

    assert result.exit_code == 0
    assert result.stdout == render_rules()


def test_rules_render_to_file(tmp_path):
    target = tmp_path / "firestore.rules"
    result = runner.invoke(app, ["rules", "render", "--output", str(target)])

    assert result.exit_code == 0
    assert target.read_text() == render_rules()
    assert f"Wrote rules to {target}" in result.stdout
