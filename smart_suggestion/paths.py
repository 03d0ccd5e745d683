"""Filesystem locations for smart-suggestion.

Provides:
- XDG config directory lookup (backend binary search path)
- Per-user temp directory holding the rendezvous artifacts
- RendezvousArtifacts: the response/cancel/error files of one request
- Update-check stamp location next to the backend binary

Rendezvous layout: $TMPDIR/smart-suggestion/{UID}/{request_id}.{suffix}
"""

import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

APP_NAME = "smart-suggestion"

# Artifact suffixes
RESPONSE_SUFFIX = "suggestion"
CANCELED_SUFFIX = "canceled"
ERROR_SUFFIX = "error"

UPDATE_STAMP_FILENAME = ".last_update_check"


def get_config_dir(app_name: str = APP_NAME) -> Path:
    """Get application config directory using XDG spec.

    Returns:
        Path to XDG_CONFIG_HOME/app_name or ~/.config/app_name
    """
    xdg_config = os.environ.get('XDG_CONFIG_HOME')
    if xdg_config:
        base = Path(xdg_config)
    else:
        base = Path.home() / '.config'
    return base / app_name


def get_temp_root() -> Path:
    """Get the temp base directory (TMPDIR, TMP, TEMP or /tmp)."""
    tmpdir = os.environ.get('TMPDIR') or os.environ.get('TMP') or os.environ.get('TEMP')
    return Path(tmpdir) if tmpdir else Path('/tmp')


def get_temp_dir(app_name: str = APP_NAME) -> Path:
    """Get application temp directory with user isolation.

    Returns:
        Path to TMPDIR/app_name/{uid} or /tmp/app_name/{uid}
    """
    return get_temp_root() / app_name / str(os.getuid())


def ensure_temp_dir(app_name: str = APP_NAME) -> Path:
    """Create the per-user temp directory with mode 0700 if missing."""
    temp_dir = get_temp_dir(app_name)
    temp_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
    return temp_dir


def get_debug_log_path() -> Path:
    """Default location of the JSON-lines debug log."""
    return get_temp_root() / f"{APP_NAME}.log"


def get_update_stamp_path(binary: Path) -> Path:
    """Update-check timestamp file, colocated with the backend binary."""
    return Path(binary).parent / UPDATE_STAMP_FILENAME


@dataclass(frozen=True)
class RendezvousArtifacts:
    """The three files exchanged between the runner and one provider run.

    The provider writes ``response`` on success and may write ``error`` on
    failure. The runner writes ``canceled`` when the user interrupts.
    """

    response: Path
    canceled: Path
    error: Path

    @classmethod
    def for_request(cls, request_id: Optional[str] = None,
                    directory: Optional[Path] = None) -> "RendezvousArtifacts":
        """Allocate a uniquely named artifact set for a new request."""
        request_id = request_id or uuid.uuid4().hex
        directory = Path(directory) if directory else ensure_temp_dir()
        return cls(
            response=directory / f"{request_id}.{RESPONSE_SUFFIX}",
            canceled=directory / f"{request_id}.{CANCELED_SUFFIX}",
            error=directory / f"{request_id}.{ERROR_SUFFIX}",
        )

    def all(self) -> tuple[Path, Path, Path]:
        return (self.response, self.canceled, self.error)

    def clear(self) -> None:
        """Delete every artifact that exists. Missing files are fine."""
        for path in self.all():
            path.unlink(missing_ok=True)

    def mark_canceled(self) -> None:
        self.canceled.touch()

    def read_error(self) -> Optional[str]:
        """Return the provider's error message, if it recorded one."""
        try:
            message = self.error.read_text(encoding='utf-8', errors='replace').strip()
        except OSError:
            return None
        return message or None
