from unittest.mock import patch

import pytest
from click.testing import CliRunner

from genmux.cli import main
from genmux.client import UnifiedAIClient
from genmux.types import FailedGeneration, PlainText, Usage


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def patched_client(scripted, settings, registry):
    """Route the CLI's client to a scripted adapter registered as 'openai'."""
    def install(outcomes):
        adapter = scripted(outcomes=outcomes)
        client = UnifiedAIClient({"openai": adapter}, settings=settings, tools=registry)
        return patch("genmux.cli.UnifiedAIClient", return_value=client), adapter
    return install


class TestCli:

    def test_unknown_target(self, runner):
        with patch("genmux.cli.UnifiedAIClient") as client_cls:
            result = runner.invoke(main, ["mistral"])

        assert result.exit_code == 2
        assert "neither a provider" in result.output
        client_cls.assert_not_called()

    def test_unknown_provider_after_test_type(self, runner):
        result = runner.invoke(main, ["text", "mistral"])

        assert result.exit_code == 2
        assert "unknown provider 'mistral'" in result.output

    def test_provider_after_provider(self, runner):
        result = runner.invoke(main, ["openai", "anthropic"])

        assert result.exit_code == 2
        assert "PROVIDER can only follow a test type" in result.output

    def test_text_run_writes_artifacts(self, runner, patched_client, tmp_path):
        client_patch, adapter = patched_client([PlainText(text="narration", usage=Usage(10, 20))])

        with client_patch:
            result = runner.invoke(main, ["text", "openai", "-o", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "Done." in result.output
        assert len(adapter.calls) == 1
        assert (tmp_path / "openai" / "m1.txt").exists()

    def test_provider_run_exits_nonzero_on_failure(self, runner, patched_client, tmp_path):
        client_patch, _ = patched_client([FailedGeneration(error="invalid api key")])

        with client_patch:
            result = runner.invoke(main, ["OpenAI", "-o", str(tmp_path)])

        assert result.exit_code == 1
        assert "1 test(s) failed" in result.output
        assert "invalid api key" in result.output
