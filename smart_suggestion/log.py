"""Logging setup for smart-suggestion.

Two channels:
- package diagnostics (logging.getLogger(__name__) in each module) go to
  stderr at the configured level
- the request log: one JSON line per suggestion request, appended to the
  debug log file only when debug mode is on
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import SuggestionSettings

PACKAGE_LOGGER = "smart_suggestion"
REQUEST_LOGGER = "smart_suggestion.requests"

# Extra attributes copied from the LogRecord into the JSON line
REQUEST_FIELDS = ("input", "response_code", "state")

request_logger = logging.getLogger(REQUEST_LOGGER)
request_logger.propagate = False
request_logger.addHandler(logging.NullHandler())


class JsonLinesFormatter(logging.Formatter):
    """Format a record as {"date": ..., "log": ..., <extra fields>}."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "date": datetime.fromtimestamp(record.created).isoformat(timespec="seconds"),
            "log": record.getMessage(),
        }
        for name in REQUEST_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)
        return json.dumps(entry, ensure_ascii=False)


def _remove_file_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            logger.removeHandler(handler)
            handler.close()


def ensure_request_log(settings: SuggestionSettings) -> Optional[Path]:
    """Attach the request log file handler when debug mode is on.

    Idempotent for the same log path.

    Returns:
        Path of the request log, or None when debug mode is off.
    """
    if not settings.debug:
        return None

    log_path = Path(settings.debug_log)
    request_logger.setLevel(logging.INFO)
    for handler in request_logger.handlers:
        if isinstance(handler, logging.FileHandler) and \
                handler.baseFilename == os.path.abspath(log_path):
            return log_path

    _remove_file_handlers(request_logger)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(JsonLinesFormatter())
    request_logger.addHandler(file_handler)
    return log_path


def setup_logging(settings: SuggestionSettings) -> Optional[Path]:
    """Configure both channels from settings.

    Returns:
        Path of the request log if debug mode is on, None otherwise.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
               for h in package_logger.handlers):
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter("%(name)s: %(levelname)s: %(message)s"))
        package_logger.addHandler(stream_handler)
    package_logger.setLevel(settings.log_level.upper())

    if not settings.debug:
        _remove_file_handlers(request_logger)
        request_logger.setLevel(logging.CRITICAL + 1)
        return None
    return ensure_request_log(settings)


def log_request(input_text: str, response_code: Optional[int], state: str) -> None:
    """Append the per-request record (no-op unless debug is configured)."""
    request_logger.info(
        "Fetched message",
        extra={"input": input_text, "response_code": response_code, "state": state},
    )
