"""Request dispatch to the smart-suggestion backend binary.

Handles:
- Building SuggestionRequest from the editing buffer
- Translating a request into provider arguments
- Spawning the provider as a background process (for the job runner)
- Blocking one-shot dispatch returning the exit status
"""

import logging
import os
import subprocess
from dataclasses import dataclass

from .config import Provider, SuggestionSettings
from .errors import DispatchError
from .paths import RendezvousArtifacts

logger = logging.getLogger(__name__)

# Environment variable naming the error artifact for the provider
ERROR_FILE_ENV = "SMART_SUGGESTION_ERROR_FILE"

# Exit status reported when the binary cannot be executed (shell convention)
EXIT_NOT_FOUND = 127


@dataclass(frozen=True)
class SuggestionRequest:
    input_text: str
    provider: Provider
    send_context: bool = True
    debug: bool = False

    @classmethod
    def from_buffer(cls, text_before_cursor: str,
                    settings: SuggestionSettings) -> "SuggestionRequest":
        """Build a request from the text left of the cursor.

        Multi-line input is flattened with ';' so the provider sees one
        command line.
        """
        return cls(
            input_text=text_before_cursor.replace('\n', ';'),
            provider=settings.ai_provider,
            send_context=settings.send_context,
            debug=settings.debug,
        )


class RequestDispatcher:
    """Invokes the provider binary for one request at a time."""

    def __init__(self, settings: SuggestionSettings):
        if settings.binary is None or settings.ai_provider is None:
            raise ValueError("settings must be resolved before dispatching")
        self.settings = settings

    def build_command(self, request: SuggestionRequest,
                      artifacts: RendezvousArtifacts) -> list[str]:
        cmd = [
            str(self.settings.binary),
            "--provider", Provider(request.provider).value,
            "--input", request.input_text,
            "--output", str(artifacts.response),
        ]
        if request.debug:
            cmd.append("--debug")
        if request.send_context:
            cmd.append("--context")
        return cmd

    def _environment(self, artifacts: RendezvousArtifacts) -> dict:
        env = os.environ.copy()
        env[ERROR_FILE_ENV] = str(artifacts.error)
        return env

    def spawn(self, request: SuggestionRequest,
              artifacts: RendezvousArtifacts) -> subprocess.Popen:
        """Start the provider without waiting for it.

        The child gets its own session so terminal signals reach only the
        runner, which decides how to stop it.

        Raises:
            DispatchError: The binary could not be executed.
        """
        cmd = self.build_command(request, artifacts)
        logger.debug("Spawning provider: %s", cmd)
        try:
            return subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                env=self._environment(artifacts),
                start_new_session=True,
            )
        except OSError as e:
            raise DispatchError(f"Could not run {cmd[0]}: {e}") from e

    def dispatch(self, request: SuggestionRequest,
                 artifacts: RendezvousArtifacts) -> int:
        """Run the provider once and return its exit status.

        The response is left in the artifacts untouched.
        """
        cmd = self.build_command(request, artifacts)
        try:
            result = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                env=self._environment(artifacts),
                timeout=self.settings.request_timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("Provider timed out after %ss", self.settings.request_timeout)
            return -1
        except OSError as e:
            logger.warning("Could not run %s: %s", cmd[0], e)
            return EXIT_NOT_FOUND
        return result.returncode
