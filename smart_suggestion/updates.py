"""Throttled background update checks.

At most one `smart-suggestion update --check-only` probe runs per update
interval. The timestamp of the last check lives next to the backend binary
(.last_update_check, integer epoch seconds) and is written before the probe
starts, so sessions opened in quick succession do not all probe.
"""

import logging
import queue
import subprocess
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console

from .config import DEFAULT_UPDATE_INTERVAL_DAYS, SuggestionSettings
from .errors import UpdateProbeError
from .paths import get_update_stamp_path

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 3600
PROBE_TIMEOUT = 60

INVALID_INTERVAL_MESSAGE = (
    "SMART_SUGGESTION_UPDATE_INTERVAL must be a positive integer. "
    "Will be reset to default value."
)
UPDATE_AVAILABLE_MESSAGE = (
    "Smart Suggestion update available! Run 'smart-suggestion update' to update."
)


def read_last_check(stamp_path: Path) -> int:
    """Read the last check time; missing or garbled stamps count as never."""
    try:
        return int(stamp_path.read_text().strip())
    except (OSError, ValueError):
        return 0


class UpdateScheduler:
    """Decides whether to probe for updates and runs the probe off-thread."""

    def __init__(self, settings: SuggestionSettings, console: Optional[Console] = None,
                 clock: Callable[[], float] = time.time, defer_notice: bool = False):
        if settings.binary is None:
            raise ValueError("settings must be resolved before scheduling update checks")
        self.settings = settings
        self.console = console or Console(stderr=True)
        self.clock = clock
        self.stamp_path = get_update_stamp_path(settings.binary)
        # Interactive sessions print probe results between prompts
        self.defer_notice = defer_notice
        self._notices: queue.SimpleQueue = queue.SimpleQueue()

    def _validated_interval(self, interval_days) -> int:
        if isinstance(interval_days, bool) or not isinstance(interval_days, int) or interval_days <= 0:
            self.console.print(INVALID_INTERVAL_MESSAGE, style="yellow", highlight=False)
            return DEFAULT_UPDATE_INTERVAL_DAYS
        return interval_days

    def is_due(self, interval_days: int, now: Optional[float] = None) -> bool:
        now = self.clock() if now is None else now
        if not self.stamp_path.exists():
            return True
        return now - read_last_check(self.stamp_path) >= interval_days * SECONDS_PER_DAY

    def maybe_check_for_update(self, interval_days=None) -> Optional[threading.Thread]:
        """Start an update probe if the interval has elapsed.

        Args:
            interval_days: Days between checks (defaults to settings)

        Returns:
            The probe thread if one was started, None otherwise.
        """
        if interval_days is None:
            interval_days = self.settings.update_interval
        interval_days = self._validated_interval(interval_days)

        now = int(self.clock())
        if not self.is_due(interval_days, now):
            return None

        # Written before probing: concurrent session starts see a fresh stamp
        try:
            self.stamp_path.write_text(str(now))
        except OSError as e:
            logger.debug("Could not write %s: %s", self.stamp_path, e)

        thread = threading.Thread(target=self._run_probe, name="update-check", daemon=True)
        thread.start()
        return thread

    def probe(self) -> bool:
        """Ask the backend whether an update is available.

        Raises:
            UpdateProbeError: The probe could not be run or reported failure.
        """
        cmd = [str(self.settings.binary), "update", "--check-only"]
        try:
            result = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=PROBE_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise UpdateProbeError(str(e)) from e
        if result.returncode != 0:
            raise UpdateProbeError(f"exit status {result.returncode}")
        return bool(result.stdout.strip())

    def _run_probe(self) -> None:
        try:
            available = self.probe()
        except UpdateProbeError as e:
            logger.debug("Update check failed: %s", e.message)
            return
        if not available:
            return
        if self.defer_notice:
            self._notices.put(UPDATE_AVAILABLE_MESSAGE)
        else:
            self.console.print(UPDATE_AVAILABLE_MESSAGE, style="green", highlight=False)

    def flush_notices(self) -> int:
        """Print notices queued by the probe thread. Returns how many."""
        count = 0
        while True:
            try:
                message = self._notices.get_nowait()
            except queue.Empty:
                return count
            self.console.print(message, style="green", highlight=False)
            count += 1
