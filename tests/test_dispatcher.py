"""Tests for request building and provider invocation."""

import pytest

from smart_suggestion.config import Provider
from smart_suggestion.dispatcher import (
    ERROR_FILE_ENV,
    EXIT_NOT_FOUND,
    RequestDispatcher,
    SuggestionRequest,
)
from smart_suggestion.errors import DispatchError


def test_request_from_buffer_flattens_newlines(settings_for, make_binary):
    settings = settings_for(make_binary("exit 0"), send_context=False, debug=True)
    request = SuggestionRequest.from_buffer("cd /tmp\nls", settings)
    assert request.input_text == "cd /tmp;ls"
    assert request.provider is Provider.OPENAI
    assert request.send_context is False
    assert request.debug is True


def test_build_command(settings_for, make_binary, fixed_artifacts):
    binary = make_binary("exit 0")
    dispatcher = RequestDispatcher(settings_for(binary))
    request = SuggestionRequest("git st", Provider.GEMINI, send_context=True, debug=True)

    cmd = dispatcher.build_command(request, fixed_artifacts)
    assert cmd == [
        str(binary),
        "--provider", "gemini",
        "--input", "git st",
        "--output", str(fixed_artifacts.response),
        "--debug",
        "--context",
    ]


def test_build_command_without_optional_flags(settings_for, make_binary, fixed_artifacts):
    dispatcher = RequestDispatcher(settings_for(make_binary("exit 0")))
    request = SuggestionRequest("ls", Provider.OPENAI, send_context=False, debug=False)
    cmd = dispatcher.build_command(request, fixed_artifacts)
    assert "--debug" not in cmd
    assert "--context" not in cmd


def test_unresolved_settings_rejected():
    from smart_suggestion.config import SuggestionSettings
    with pytest.raises(ValueError):
        RequestDispatcher(SuggestionSettings())


def test_dispatch_returns_exit_status_and_leaves_artifact(settings_for, make_provider, fixed_artifacts):
    """dispatch() does not interpret the response."""
    binary = make_provider("""printf '=%s' "$IN" > "$OUT"; exit 3""")
    dispatcher = RequestDispatcher(settings_for(binary))
    request = SuggestionRequest("echo hi", Provider.OPENAI)

    assert dispatcher.dispatch(request, fixed_artifacts) == 3
    assert fixed_artifacts.response.read_text() == "=echo hi"


def test_dispatch_passes_error_file(settings_for, make_provider, fixed_artifacts):
    binary = make_provider(f"""printf 'rate limited' > "${ERROR_FILE_ENV}"; exit 1""")
    dispatcher = RequestDispatcher(settings_for(binary))

    assert dispatcher.dispatch(SuggestionRequest("x", Provider.OPENAI), fixed_artifacts) == 1
    assert fixed_artifacts.read_error() == "rate limited"
    assert not fixed_artifacts.response.exists()


def test_dispatch_missing_binary(settings_for, tmp_path, fixed_artifacts):
    dispatcher = RequestDispatcher(settings_for(tmp_path / "missing"))
    assert dispatcher.dispatch(SuggestionRequest("x", Provider.OPENAI), fixed_artifacts) == EXIT_NOT_FOUND


def test_spawn_missing_binary_raises(settings_for, tmp_path, fixed_artifacts):
    dispatcher = RequestDispatcher(settings_for(tmp_path / "missing"))
    with pytest.raises(DispatchError):
        dispatcher.spawn(SuggestionRequest("x", Provider.OPENAI), fixed_artifacts)


def test_spawn_does_not_block(settings_for, make_provider, fixed_artifacts):
    binary = make_provider("exec sleep 5")
    dispatcher = RequestDispatcher(settings_for(binary))
    process = dispatcher.spawn(SuggestionRequest("x", Provider.OPENAI), fixed_artifacts)
    try:
        assert process.poll() is None
    finally:
        process.kill()
        process.wait()
