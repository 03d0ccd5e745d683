"""Cancellable job runner for suggestion requests.

Drives one request through
IDLE -> DISPATCHING -> AWAITING_RESULT -> COMPLETED | CANCELLED | FAILED -> IDLE:

- clears the rendezvous artifacts, then spawns the provider
- waits for the provider with a spinner on the terminal (Ctrl+C cancels)
- reads the cancel marker / response / error artifacts and applies the
  decoded response to the editing buffer
"""

import logging
import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from rich.console import Console
from rich.control import Control
from rich.segment import ControlType
from rich.spinner import Spinner

from .config import SuggestionSettings
from .dispatcher import RequestDispatcher, SuggestionRequest
from .editor import EditorBuffer, apply_response
from .errors import DispatchError, RequestInProgressError
from .log import ensure_request_log, log_request
from .paths import RendezvousArtifacts
from .protocol import SuggestionResponse, decode

logger = logging.getLogger(__name__)

# Same frames as the zsh plugin's braille animation
SPINNER_FRAMES: tuple[str, ...] = tuple(Spinner("dots").frames)
CANCEL_HINT = "Press <Ctrl-c> to cancel"

NO_SUGGESTION_MESSAGE = "No suggestion available at this time. Please try again later."
TIMEOUT_MESSAGE = "Timed out waiting for a suggestion."

# Seconds between SIGTERM and SIGKILL for a cancelled provider
KILL_GRACE = 2.0


class JobState(str, Enum):
    IDLE = "idle"
    DISPATCHING = "dispatching"
    AWAITING_RESULT = "awaiting_result"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class JobHandle:
    """One in-flight provider process."""

    process: subprocess.Popen
    artifacts: RendezvousArtifacts
    started_at: float = field(default_factory=time.monotonic)
    cancelled: bool = False
    cancelled_at: Optional[float] = None
    timed_out: bool = False

    @property
    def pid(self) -> int:
        return self.process.pid


@dataclass
class RunResult:
    state: JobState
    response: Optional[SuggestionResponse] = None
    message: Optional[str] = None
    exit_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.state is JobState.COMPLETED


def _signal_process_group(process: subprocess.Popen, sig: int) -> None:
    """Signal the provider and anything it spawned. Already-exited is fine."""
    if process.poll() is not None:
        return
    try:
        os.killpg(process.pid, sig)
    except (OSError, ProcessLookupError):
        pass


class ProgressIndicator:
    """Spinner line drawn while waiting, with the cursor hidden.

    restore() may be called from the interrupt handler and again from the
    wait loop's cleanup; the cursor is shown again only once.
    """

    def __init__(self, console: Console, frames: tuple[str, ...] = SPINNER_FRAMES,
                 text: str = CANCEL_HINT):
        self.console = console
        self.frames = frames
        self.text = text
        self._index = 0
        self._hidden = False
        self._lock = threading.RLock()

    def _erase_line(self) -> None:
        self.console.control(
            Control.move_to_column(0),
            Control((ControlType.ERASE_IN_LINE, 2)),
        )

    def start(self) -> None:
        with self._lock:
            self.console.show_cursor(False)
            self._hidden = True
        self.advance()

    def advance(self) -> None:
        with self._lock:
            if not self._hidden:
                return
            frame = self.frames[self._index % len(self.frames)]
            self._index += 1
            self._erase_line()
            self.console.print(f"[cyan]{frame}[/] {self.text}", end="", highlight=False)

    def restore(self) -> bool:
        """Erase the spinner and show the cursor.

        Returns:
            True if this call made the cursor visible again.
        """
        with self._lock:
            self._erase_line()
            if not self._hidden:
                return False
            self._hidden = False
            self.console.show_cursor(True)
            return True


class JobRunner:
    """Runs suggestion requests one at a time."""

    def __init__(self, settings: SuggestionSettings,
                 dispatcher: Optional[RequestDispatcher] = None,
                 console: Optional[Console] = None,
                 artifacts_factory: Callable[[], RendezvousArtifacts] = RendezvousArtifacts.for_request):
        self.settings = settings
        self.dispatcher = dispatcher or RequestDispatcher(settings)
        self.console = console or Console(stderr=True)
        self.artifacts_factory = artifacts_factory
        self.state = JobState.IDLE

        self._busy = threading.Lock()
        # RLock: cancel() can re-enter from the SIGINT handler
        self._lock = threading.RLock()
        self._handle: Optional[JobHandle] = None
        self._indicator: Optional[ProgressIndicator] = None
        ensure_request_log(settings)

    @property
    def handle(self) -> Optional[JobHandle]:
        return self._handle

    def run(self, request: SuggestionRequest, buffer: EditorBuffer) -> RunResult:
        """Fetch a suggestion for request and apply it to buffer.

        Blocks until the provider finishes, is cancelled, or times out.

        Raises:
            RequestInProgressError: Another request is still live.
        """
        if not self._busy.acquire(blocking=False):
            raise RequestInProgressError()
        try:
            return self._run(request, buffer)
        finally:
            self._busy.release()

    def _run(self, request: SuggestionRequest, buffer: EditorBuffer) -> RunResult:
        self.state = JobState.DISPATCHING
        buffer.clear_suggestion()

        # Nothing from an earlier cycle may be observed by this one
        artifacts = self.artifacts_factory()
        artifacts.clear()

        result: Optional[RunResult] = None
        process: Optional[subprocess.Popen] = None
        try:
            try:
                process = self.dispatcher.spawn(request, artifacts)
            except DispatchError as e:
                logger.debug("%s", e.message)
                result = RunResult(JobState.FAILED, message=e.message)
                return result

            handle = JobHandle(process=process, artifacts=artifacts)
            with self._lock:
                self._handle = handle
            self.state = JobState.AWAITING_RESULT

            exit_code = self._await(handle)
            result = self._decide(handle, exit_code, buffer)
            return result
        finally:
            with self._lock:
                self._handle = None
            if process is not None:
                # Only still running if the wait loop never took ownership
                _signal_process_group(process, signal.SIGTERM)
            if self.settings.debug:
                log_request(
                    request.input_text,
                    result.exit_code if result else None,
                    result.state.value if result else "error",
                )
            artifacts.clear()
            self.state = JobState.IDLE

    def _install_interrupt_handler(self):
        try:
            return True, signal.signal(signal.SIGINT, self._handle_interrupt)
        except (ValueError, OSError):
            # Not in main thread; cancel() remains available
            logger.debug("SIGINT handler not installed (not main thread)")
            return False, None

    def _handle_interrupt(self, signum, frame) -> None:
        self.cancel()

    def _await(self, handle: JobHandle) -> int:
        """Wait for the provider, animating the spinner between checks."""
        indicator = ProgressIndicator(self.console)
        self._indicator = indicator
        installed, previous = self._install_interrupt_handler()
        indicator.start()
        try:
            deadline = handle.started_at + self.settings.request_timeout
            while True:
                try:
                    return handle.process.wait(timeout=self.settings.poll_interval)
                except subprocess.TimeoutExpired:
                    pass

                now = time.monotonic()
                if handle.cancelled_at is not None and now - handle.cancelled_at > KILL_GRACE:
                    _signal_process_group(handle.process, signal.SIGKILL)
                elif not handle.timed_out and now >= deadline:
                    logger.warning("Provider %s timed out", handle.pid)
                    handle.timed_out = True
                    _signal_process_group(handle.process, signal.SIGKILL)
                indicator.advance()
        finally:
            indicator.restore()
            self._indicator = None
            if installed:
                # None means the previous handler was not set from Python
                signal.signal(signal.SIGINT,
                              previous if previous is not None else signal.default_int_handler)

    def cancel(self) -> bool:
        """Cancel the live request.

        Safe to call repeatedly and from a signal handler.

        Returns:
            True if this call cancelled the request.
        """
        with self._lock:
            handle = self._handle
            if handle is None or handle.cancelled:
                return False
            handle.cancelled = True
            handle.cancelled_at = time.monotonic()

            # Marker first: it must exist by the time the wait loop sees the
            # process exit
            try:
                handle.artifacts.mark_canceled()
            except OSError as e:
                logger.warning("Could not write cancel marker: %s", e)
            _signal_process_group(handle.process, signal.SIGTERM)
            if self._indicator is not None:
                self._indicator.restore()
        return True

    def _decide(self, handle: JobHandle, exit_code: int, buffer: EditorBuffer) -> RunResult:
        artifacts = handle.artifacts

        if artifacts.canceled.exists():
            buffer.clear_suggestion()
            return RunResult(JobState.CANCELLED, exit_code=exit_code)

        if handle.timed_out:
            buffer.clear_suggestion()
            return RunResult(JobState.FAILED, message=TIMEOUT_MESSAGE, exit_code=exit_code)

        if not artifacts.response.exists():
            buffer.clear_suggestion()
            message = artifacts.read_error() or NO_SUGGESTION_MESSAGE
            return RunResult(JobState.FAILED, message=message, exit_code=exit_code)

        response = decode(artifacts.response.read_bytes())
        if response is None:
            logger.debug("Response artifact carried no recognized sigil")
        apply_response(buffer, response)
        return RunResult(JobState.COMPLETED, response=response, exit_code=exit_code)
