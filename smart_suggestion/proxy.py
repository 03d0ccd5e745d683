"""Warm backend ("proxy") startup.

Starting `smart-suggestion proxy` once per interactive session keeps
provider connections warm so later requests answer faster. The process is
detached and never waited on; if it fails, the first real request reports
its own error.
"""

import logging
import os
import subprocess
import sys
from typing import Mapping, Optional, TextIO

from .config import SuggestionSettings

logger = logging.getLogger(__name__)

# A proxy started from the outer shell already serves every pane
MULTIPLEXER_ENV_VARS = ("TMUX", "STY", "ZELLIJ")


def in_multiplexer(environ: Optional[Mapping[str, str]] = None) -> bool:
    """True inside tmux, GNU screen or zellij."""
    environ = os.environ if environ is None else environ
    return any(environ.get(var) for var in MULTIPLEXER_ENV_VARS)


def is_interactive(stream: Optional[TextIO] = None) -> bool:
    stream = sys.stdin if stream is None else stream
    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return False


class ProxySupervisor:
    """Starts the warm backend at most once."""

    def __init__(self, settings: SuggestionSettings,
                 environ: Optional[Mapping[str, str]] = None,
                 stdin: Optional[TextIO] = None):
        if settings.binary is None:
            raise ValueError("settings must be resolved before starting the proxy")
        self.settings = settings
        self.environ = os.environ if environ is None else environ
        self.stdin = stdin
        self.attempted = False
        self.process: Optional[subprocess.Popen] = None

    def should_start(self) -> bool:
        if self.attempted:
            return False
        if in_multiplexer(self.environ):
            logger.debug("Inside a terminal multiplexer, not starting proxy")
            return False
        if not is_interactive(self.stdin):
            logger.debug("Non-interactive session, not starting proxy")
            return False
        return True

    def ensure_warm_process(self) -> bool:
        """Start the proxy in the background if this session should.

        Returns:
            True if a proxy process was spawned.
        """
        if not self.should_start():
            return False
        self.attempted = True

        try:
            self.process = subprocess.Popen(
                [str(self.settings.binary), "proxy"],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            logger.debug("Could not start proxy: %s", e)
            return False
        logger.debug("Started proxy (pid %s)", self.process.pid)
        return True
