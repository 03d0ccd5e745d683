"""Shared fixtures: fake provider binaries, resolved settings, captured consoles."""

import io
import os
import stat
from pathlib import Path

import pytest
from rich.console import Console

from smart_suggestion.config import SuggestionSettings
from smart_suggestion.paths import RendezvousArtifacts

# Argument parsing shared by every fake provider; the body sees $OUT, $IN,
# $PROVIDER and the remaining flags in $FLAGS
PROVIDER_PREAMBLE = """#!/bin/sh
OUT=""
IN=""
PROVIDER=""
FLAGS=""
while [ $# -gt 0 ]; do
  case "$1" in
    --output) OUT="$2"; shift 2 ;;
    --input) IN="$2"; shift 2 ;;
    --provider) PROVIDER="$2"; shift 2 ;;
    *) FLAGS="$FLAGS $1"; shift ;;
  esac
done
"""


def _write_script(path: Path, text: str) -> Path:
    path.write_text(text)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Keep the developer's shell configuration out of the tests."""
    for name in list(os.environ):
        if name.startswith("SMART_SUGGESTION_") or name.endswith("_API_KEY"):
            monkeypatch.delenv(name, raising=False)
    for name in ("AZURE_OPENAI_RESOURCE_NAME", "AZURE_OPENAI_DEPLOYMENT_NAME",
                 "TMUX", "STY", "ZELLIJ"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TMPDIR", str(tmp_path / "tmp"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))


@pytest.fixture
def make_provider(tmp_path):
    """Factory writing a fake provider binary with the given shell body."""
    def factory(body: str, name: str = "smart-suggestion") -> Path:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        return _write_script(bin_dir / name, PROVIDER_PREAMBLE + body + "\n")
    return factory


@pytest.fixture
def make_binary(tmp_path):
    """Factory writing a fake backend binary with a raw shell script."""
    def factory(script: str, name: str = "smart-suggestion") -> Path:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        return _write_script(bin_dir / name, "#!/bin/sh\n" + script + "\n")
    return factory


@pytest.fixture
def settings_for(tmp_path):
    """Build resolved settings pointing at a binary."""
    def factory(binary: Path, **overrides) -> SuggestionSettings:
        values = {
            "binary": binary,
            "ai_provider": "openai",
            "poll_interval": 0.02,
            "request_timeout": 10,
            "debug_log": tmp_path / "smart-suggestion.log",
        }
        values.update(overrides)
        return SuggestionSettings(**values)
    return factory


@pytest.fixture
def artifacts_dir(tmp_path) -> Path:
    path = tmp_path / "rendezvous"
    path.mkdir()
    return path


@pytest.fixture
def fixed_artifacts(artifacts_dir):
    """Artifacts factory that always hands out the same file set."""
    artifacts = RendezvousArtifacts.for_request("fixed", directory=artifacts_dir)
    return artifacts


@pytest.fixture
def terminal_console():
    """A rich Console that emits terminal control codes into a buffer."""
    return Console(file=io.StringIO(), force_terminal=True, width=80)
