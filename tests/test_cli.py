"""Tests for the click command-line interface."""

import json

from click.testing import CliRunner

from smart_suggestion.cli import main
from smart_suggestion.config import NO_PROVIDER_MESSAGE, SuggestionSettings
from smart_suggestion.log import setup_logging


def test_config_command(monkeypatch):
    monkeypatch.setenv("SMART_SUGGESTION_KEY", "^x")
    monkeypatch.setenv("SMART_SUGGESTION_UPDATE_INTERVAL", "14")

    result = CliRunner().invoke(main, ["config"])

    assert result.exit_code == 0
    assert "press ^x to get suggestions" in result.output
    assert "SMART_SUGGESTION_UPDATE_INTERVAL: Days between update checks (value: 14)." in result.output
    assert "SMART_SUGGESTION_AI_PROVIDER" in result.output


def test_suggest_prints_replacement(monkeypatch, make_provider):
    binary = make_provider("""printf '=git status' > "$OUT" """)
    monkeypatch.setenv("SMART_SUGGESTION_BINARY", str(binary))
    monkeypatch.setenv("OPENAI_API_KEY", "test")

    result = CliRunner().invoke(main, ["suggest", "--plain", "show", "changes"])

    assert result.exit_code == 0
    assert result.output.strip().splitlines()[-1] == "git status"


def test_suggest_with_spinner(monkeypatch, make_provider):
    """The spinner goes to stderr; stdout still ends with the command line."""
    binary = make_provider("""printf '+ --oneline' > "$OUT" """)
    monkeypatch.setenv("SMART_SUGGESTION_BINARY", str(binary))
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test")
    monkeypatch.setenv("SMART_SUGGESTION_POLL_INTERVAL", "0.02")

    result = CliRunner().invoke(main, ["suggest", "git", "log"])

    assert result.exit_code == 0
    assert "git log --oneline" in result.output


def test_suggest_failure_exit_code(monkeypatch, make_provider):
    binary = make_provider("""printf 'quota exceeded' > "$SMART_SUGGESTION_ERROR_FILE"; exit 1""")
    monkeypatch.setenv("SMART_SUGGESTION_BINARY", str(binary))
    monkeypatch.setenv("OPENAI_API_KEY", "test")

    result = CliRunner().invoke(main, ["suggest", "--plain", "anything"])

    assert result.exit_code == 1
    assert "quota exceeded" in result.output


def test_missing_provider_is_fatal(monkeypatch, make_binary):
    """Without an API key the CLI reports the provider error and exits 1."""
    monkeypatch.setenv("SMART_SUGGESTION_BINARY", str(make_binary("exit 0")))

    result = CliRunner().invoke(main, ["suggest", "ls"])

    assert result.exit_code == 1
    assert "No AI provider selected" in result.output
    assert NO_PROVIDER_MESSAGE.startswith("No AI provider selected")


def test_config_shows_detected_provider(monkeypatch, make_binary):
    binary = make_binary("exit 0")
    monkeypatch.setenv("OPENAI_API_KEY", "test")
    monkeypatch.setenv("SMART_SUGGESTION_BINARY", str(binary))

    result = CliRunner().invoke(main, ["config"])

    assert result.exit_code == 0
    assert "SMART_SUGGESTION_AI_PROVIDER: " in result.output
    assert "(value: openai)." in result.output
    assert f"(value: {binary})." in result.output


def test_config_detects_provider_without_binary(monkeypatch):
    """A missing binary still leaves the detected provider visible."""
    monkeypatch.setenv("PATH", "/nonexistent")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test")

    result = CliRunner().invoke(main, ["config"])

    assert result.exit_code == 0
    assert "(value: anthropic)." in result.output


def test_plain_suggest_writes_debug_record(monkeypatch, make_provider, tmp_path):
    log_path = tmp_path / "plain.log"
    binary = make_provider("""printf '=uptime' > "$OUT" """)
    monkeypatch.setenv("SMART_SUGGESTION_BINARY", str(binary))
    monkeypatch.setenv("OPENAI_API_KEY", "test")
    monkeypatch.setenv("SMART_SUGGESTION_DEBUG", "true")
    monkeypatch.setenv("SMART_SUGGESTION_DEBUG_LOG", str(log_path))

    try:
        result = CliRunner().invoke(main, ["suggest", "--plain", "how", "long", "up"])
    finally:
        setup_logging(SuggestionSettings(debug=False))

    assert result.exit_code == 0
    records = [json.loads(line) for line in log_path.read_text().splitlines()]
    assert [(r["input"], r["response_code"], r["state"]) for r in records] == [
        ("how long up", 0, "completed"),
    ]
