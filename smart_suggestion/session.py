"""Interactive shell session with AI command suggestions.

A prompt_toolkit line editor where the configured key (Ctrl+O by default)
asks the backend for a suggestion for the text left of the cursor:
- "=" responses replace the input
- "+" responses appear as a grey inline suggestion (accept with Right/Ctrl+E)

Session start also warms the backend proxy and runs the throttled update
check. Accepted lines are executed with $SHELL -c.
"""

import os
import subprocess
from pathlib import Path
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.application import run_in_terminal
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.history import FileHistory
from prompt_toolkit.key_binding import KeyBindings
from rich.console import Console

from .config import SuggestionSettings
from .dispatcher import SuggestionRequest
from .editor import EditorBuffer, PromptBufferAdapter
from .errors import RequestInProgressError
from .log import setup_logging
from .paths import get_config_dir
from .proxy import ProxySupervisor
from .runner import JobRunner, JobState, RunResult
from .updates import UpdateScheduler


def display_key(key: str) -> str:
    """Render a prompt_toolkit key binding the way the zsh plugin shows it."""
    return ' '.join(f"^{k[2:]}" if k.startswith('c-') and len(k) == 3 else k
                    for k in key.split())


class SuggestionSession:
    """Line-editing session wired to the job runner."""

    def __init__(self, settings: SuggestionSettings, console: Optional[Console] = None,
                 runner: Optional[JobRunner] = None,
                 proxy: Optional[ProxySupervisor] = None,
                 updates: Optional[UpdateScheduler] = None):
        self.settings = settings
        self.console = console or Console()
        self.runner = runner or JobRunner(settings)
        self.proxy = proxy or ProxySupervisor(settings)
        self.updates = updates or UpdateScheduler(settings, console=self.console,
                                                  defer_notice=True)
        self._prompt_session: Optional[PromptSession] = None

    def start(self) -> None:
        """One-time session start: logging, warm proxy, update check."""
        setup_logging(self.settings)
        if self.settings.proxy_mode:
            self.proxy.ensure_warm_process()
        if self.settings.auto_update:
            self.updates.maybe_check_for_update(self.settings.update_interval)
        self.console.print(
            f"Smart Suggestion is now active. Press {display_key(self.settings.key)} "
            "to get suggestions.",
            highlight=False,
        )

    def create_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        # Store reference to self for closure
        session = self

        @kb.add(*self.settings.key_sequence)
        def _(event):
            """Fetch an AI suggestion for the current input."""
            adapter = PromptBufferAdapter(event.app.current_buffer)
            # Leaves raw mode while waiting so Ctrl+C arrives as SIGINT
            run_in_terminal(lambda: session.request_suggestion(adapter))

        return kb

    @property
    def prompt_session(self) -> PromptSession:
        if self._prompt_session is None:
            history_dir = get_config_dir()
            history_dir.mkdir(parents=True, exist_ok=True)
            self._prompt_session = PromptSession(
                history=FileHistory(str(history_dir / "history")),
                auto_suggest=AutoSuggestFromHistory(),
                key_bindings=self.create_key_bindings(),
            )
        return self._prompt_session

    def request_suggestion(self, buffer: EditorBuffer) -> Optional[RunResult]:
        """Run one suggestion request and report failures to the user."""
        request = SuggestionRequest.from_buffer(buffer.text_before_cursor(), self.settings)
        try:
            result = self.runner.run(request, buffer)
        except RequestInProgressError as e:
            self.console.print(f"[yellow]{e.message}[/]")
            return None
        if result.state is JobState.FAILED and result.message:
            self.console.print(result.message, highlight=False)
        return result

    def run_command(self, line: str) -> int:
        """Execute an accepted line. `cd` changes this process's directory."""
        stripped = line.strip()
        if stripped == "cd" or stripped.startswith("cd "):
            target = stripped[2:].strip() or str(Path.home())
            try:
                os.chdir(os.path.expanduser(target))
            except OSError as e:
                self.console.print(f"[red]cd: {e.strerror}: {target}[/]", highlight=False)
                return 1
            return 0
        shell = os.environ.get("SHELL") or "/bin/sh"
        return subprocess.run([shell, "-c", line]).returncode

    def prompt_text(self) -> str:
        cwd = os.getcwd()
        home = str(Path.home())
        if cwd == home or cwd.startswith(home + os.sep):
            cwd = "~" + cwd[len(home):]
        return f"{cwd} $ "

    def read_line(self) -> str:
        """Prompt for one line.

        prompt_toolkit leaves SIGINT alone so an interrupt during a request
        only cancels the request. Ctrl+C at the prompt still arrives as a key
        and aborts the line.
        """
        return self.prompt_session.prompt(self.prompt_text(), handle_sigint=False)

    def loop(self) -> None:
        """Read and execute lines until EOF (Ctrl+D)."""
        self.start()
        while True:
            self.updates.flush_notices()
            try:
                line = self.read_line()
            except KeyboardInterrupt:
                continue
            except EOFError:
                break
            if line.strip():
                self.run_command(line)
