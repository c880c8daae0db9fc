"""
Tests for the command line interface.
"""
import pytest
from click.testing import CliRunner

import cli as cli_module
from core.database.operations import create_product
from core.scrapers.websites.static_scraper import StaticLookupClient
from core.updater.batch import BatchRunner


@pytest.fixture
def runner(session_factory, ingester, update_logger, scheduler):
    return BatchRunner(
        session_factory=session_factory,
        lookup_client=StaticLookupClient(),
        ingester=ingester,
        update_logger=update_logger,
        scheduler=scheduler,
        sleep=lambda _seconds: None,
    )


class TestRunCommand:

    def test_run_prints_acknowledgement(self, monkeypatch, runner, db):
        create_product(db, name="Mouse", sku="012345678905")
        monkeypatch.setattr(cli_module, "create_runner", lambda **kwargs: runner)

        result = CliRunner().invoke(cli_module.cli, ["run"], obj={})

        assert result.exit_code == 0
        assert "Update Processed!" in result.output
        assert "Next update run:" in result.output

    def test_verbose_run_prints_counts(self, monkeypatch, runner, db):
        create_product(db, name="Unknown", sku="111")
        monkeypatch.setattr(cli_module, "create_runner", lambda **kwargs: runner)

        result = CliRunner().invoke(cli_module.cli, ["-v", "run"], obj={})

        assert "Processed: 1, updated: 0, failed: 1, without SKU: 0" in result.output


class TestFormatTimestamp:

    def test_none(self):
        assert cli_module.format_timestamp(None) == "-"

    def test_formats(self):
        assert len(cli_module.format_timestamp(1_700_000_000)) == len("2023-11-14 22:13:20")
