"""Tests for the typer CLI."""

import asyncio

from typer.testing import CliRunner

from event_import.cli import app
from event_import.models import Platform, RawImportedEvent
from event_import.store import JsonEventStore

runner = CliRunner()


class TestCheck:
    def test_classifies_url(self):
        result = runner.invoke(app, ["check", "https://www.facebook.com/events/search/?q=dalat"])
        assert result.exit_code == 0
        assert "facebook_search" in result.output

    def test_unsafe_url(self):
        result = runner.invoke(app, ["check", "http://127.0.0.1/admin"])
        assert result.exit_code == 1
        assert "Unsafe URL" in result.output

    def test_unsupported_url(self):
        result = runner.invoke(app, ["check", "https://meetup.com/e/1"])
        assert result.exit_code == 1


class TestImport:
    def test_unsafe_url_exits_nonzero(self, tmp_path):
        result = runner.invoke(app, [
            "import", "http://169.254.169.254/", "--user", "user-1",
            "--store", str(tmp_path / "events.json"),
        ])
        assert result.exit_code == 1
        assert "400" in result.output


class TestStats:
    def test_counts_events(self, tmp_path):
        path = tmp_path / "events.json"
        store = JsonEventStore(path)
        event = RawImportedEvent(source_url="https://lu.ma/x", platform=Platform.LUMA, title="X")
        asyncio.run(store.insert(event, "user-1"))

        result = runner.invoke(app, ["stats", "--store", str(path)])
        assert result.exit_code == 0
        assert "Events: 1" in result.output
        assert "luma" in result.output
