# ABOUTME: End-to-end tests for the `shelfmirror suggest` and `shelfmirror wanted` groups.
# ABOUTME: Seeds suggestions directly in the data dir and drives the CLI with CliRunner.

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from shelfmirror.cli import cli
from shelfmirror.db.connection import open_database
from shelfmirror.db.mapping import SuggestedCandidate
from shelfmirror.db.suggested import SuggestedStore
from tests.fixtures.hardcover_responses import FOUNDATION, HYPERION


@pytest.fixture(autouse=True)
def _no_catalog(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SHELFMIRROR_HARDCOVER_API_KEY", raising=False)
    monkeypatch.delenv("SHELFMIRROR_DATA_DIR", raising=False)


@pytest.fixture
def seeded(tmp_path: Path) -> Path:
    """A data dir holding two stored suggestions."""
    data_dir = tmp_path / "data"
    store = SuggestedStore(open_database(data_dir / "shelfmirror.db"))
    store.upsert_missing(
        [
            SuggestedCandidate(source_key="1001", book=HYPERION),
            SuggestedCandidate(source_key="1002", book=FOUNDATION),
        ]
    )
    return data_dir


class TestSuggestCommands:
    """E2E tests for `shelfmirror suggest`."""

    def test_list_empty(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["suggest", "list", "--data-dir", str(tmp_path / "d")])
        assert result.exit_code == 0
        assert "No suggestions yet." in result.output

    def test_list_json(self, seeded: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["suggest", "list", "--data-dir", str(seeded), "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert {item["title"] for item in data} == {"Hyperion", "Foundation"}
        assert all(1 <= item["score"] <= 20 for item in data)
        assert "final_score" in data[0]["debug"]

    def test_list_table_with_debug(self, seeded: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["suggest", "list", "--data-dir", str(seeded), "--debug"])
        assert result.exit_code == 0
        assert "Hyperion" in result.output

    def test_hide_hidden_unhide_delete(self, seeded: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["suggest", "hide", "--data-dir", str(seeded), "1"])
        assert "Hid 1 suggestion(s)." in result.output

        result = runner.invoke(cli, ["suggest", "hidden", "--data-dir", str(seeded)])
        assert "Hyperion" in result.output

        result = runner.invoke(cli, ["suggest", "unhide", "--data-dir", str(seeded), "1"])
        assert "Restored 1 suggestion(s)." in result.output

        result = runner.invoke(cli, ["suggest", "delete", "--data-dir", str(seeded), "1", "2"])
        assert "Deleted 2 suggestion(s)." in result.output

    def test_hide_requires_ids(self, seeded: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["suggest", "hide", "--data-dir", str(seeded)])
        assert result.exit_code == 2

    def test_dedup(self, seeded: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["suggest", "dedup", "--data-dir", str(seeded)])
        assert result.exit_code == 0
        assert "Hid 0 duplicate suggestion(s)." in result.output

    def test_scan_requires_api_key(self, seeded: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["suggest", "scan", "--data-dir", str(seeded)])
        assert result.exit_code == 1


class TestWantedCommands:
    """E2E tests for `shelfmirror wanted`."""

    def test_add_list_remove(self, tmp_path: Path) -> None:
        runner = CliRunner()
        data_dir = str(tmp_path / "data")
        result = runner.invoke(
            cli,
            [
                "wanted", "add", "--data-dir", data_dir, "kindred",
                "--title", "Kindred", "--author", "Octavia E. Butler", "--isbn", "9780807083697",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Wanted: Kindred" in result.output

        result = runner.invoke(cli, ["wanted", "list", "--data-dir", data_dir])
        assert "kindred" in result.output
        assert "Kindred" in result.output
        assert "1 wanted book(s)" in result.output

        result = runner.invoke(cli, ["wanted", "remove", "--data-dir", data_dir, "kindred"])
        assert result.exit_code == 0
        result = runner.invoke(cli, ["wanted", "remove", "--data-dir", data_dir, "kindred"])
        assert result.exit_code == 1

    def test_list_empty(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["wanted", "list", "--data-dir", str(tmp_path / "data")])
        assert "No wanted books." in result.output

    def test_sync_requires_api_key(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["wanted", "sync", "--data-dir", str(tmp_path / "data")])
        assert result.exit_code == 1
