"""Tests for the Typer CLI."""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from conftest import ScriptedProvider, tool_response
from nexis_agent import __version__
from nexis_agent.cli.app import app
from nexis_agent.core.agent import AgentRuntime
from nexis_agent.llm.base import LLMResponse

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("NEXIS_CONFIG", raising=False)
    monkeypatch.delenv("NEXIS_LLM_PROVIDER", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return tmp_path


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_chains_table():
    result = runner.invoke(app, ["chains"])
    assert result.exit_code == 0
    assert "Monad" in result.output
    assert "Solana" in result.output


def test_init_writes_env_placeholders(isolated_env):
    result = runner.invoke(app, ["init", "--provider", "anthropic"])

    assert result.exit_code == 0
    text = (isolated_env / "config.yaml").read_text()
    assert "${ANTHROPIC_API_KEY}" in text
    assert "default_provider: anthropic" in text

    again = runner.invoke(app, ["init"])
    assert again.exit_code == 1


def test_missing_config_file_exits():
    result = runner.invoke(app, ["--config", "nope.yaml", "chains"])
    assert result.exit_code == 1


def test_serve_refuses_without_model_key():
    with patch("uvicorn.run") as uvicorn_run:
        result = runner.invoke(app, ["serve"])

    assert result.exit_code == 1
    assert "API key" in result.output
    uvicorn_run.assert_not_called()


def test_ask_prints_answer(make_runtime):
    runtime = make_runtime(ScriptedProvider([LLMResponse(content="Gas is cheap today.")]))

    with patch.object(AgentRuntime, "from_config", return_value=runtime):
        result = runner.invoke(app, ["ask", "how is gas?"])

    assert result.exit_code == 0
    assert "Gas is cheap today." in result.output


def test_ask_round_cap_exit_code(make_runtime, agent_config):
    agent_config.dispatch.max_rounds = 1
    runtime = make_runtime(ScriptedProvider(lambda messages: tool_response(("help", {}))))

    with patch.object(AgentRuntime, "from_config", return_value=runtime):
        result = runner.invoke(app, ["ask", "loop"])

    assert result.exit_code == 2


def test_ask_key_env_must_exist(make_runtime):
    runtime = make_runtime(ScriptedProvider([]))

    with patch.object(AgentRuntime, "from_config", return_value=runtime):
        result = runner.invoke(app, ["ask", "hi", "--evm-key-env", "NEXIS_TEST_UNSET_KEY"])

    assert result.exit_code == 1
    assert "NEXIS_TEST_UNSET_KEY" in result.output


def test_ask_model_failure_is_sanitized(make_runtime):
    def _fail(messages):
        raise RuntimeError("Incorrect API key provided: sk-live-secret")

    runtime = make_runtime(ScriptedProvider(_fail))

    with patch.object(AgentRuntime, "from_config", return_value=runtime):
        result = runner.invoke(app, ["ask", "hi"])

    assert result.exit_code == 1
    assert "could not answer" in result.output
    assert "sk-live-secret" not in result.output


def test_invalid_config_exits_before_running(isolated_env):
    (isolated_env / "config.yaml").write_text("dispatch:\n  max_rounds: 0\n")

    result = runner.invoke(app, ["chains"])

    assert result.exit_code == 1
    assert "max_rounds" in result.output
