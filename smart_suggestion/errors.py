"""Error codes and exceptions for smart-suggestion.

Provides the error taxonomy shared by the session frontend and the job runner:
- ConfigurationError: fatal at session start (no provider, missing binary)
- DispatchError: provider process failed, recovered by the runner
- RequestInProgressError: a second request while one is still live
- UpdateProbeError: swallowed inside the update-check thread
"""


class ErrorCode:
    """Standard error codes used in messages and debug records."""

    # Session start
    NO_PROVIDER = "NO_PROVIDER"            # No API key found to pick a provider
    BINARY_MISSING = "BINARY_MISSING"      # Backend binary not found
    INVALID_CONFIG = "INVALID_CONFIG"      # SMART_SUGGESTION_* value rejected

    # Request cycle
    DISPATCH_FAILED = "DISPATCH_FAILED"    # Provider exited non-zero or crashed
    NO_SUGGESTION = "NO_SUGGESTION"        # Provider wrote no response artifact
    TIMEOUT = "TIMEOUT"                    # Provider ran past request_timeout
    BUSY = "BUSY"                          # Request already in flight

    # Background maintenance
    UPDATE_PROBE = "UPDATE_PROBE"          # update --check-only failed


class SmartSuggestionError(Exception):
    """Base exception for smart-suggestion errors."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class ConfigurationError(SmartSuggestionError):
    """Raised when the plugin cannot be activated."""

    def __init__(self, message: str, code: str = ErrorCode.NO_PROVIDER):
        super().__init__(code, message)


class DispatchError(SmartSuggestionError):
    """Raised when the provider process cannot produce a suggestion."""

    def __init__(self, message: str, exit_code: int | None = None):
        self.exit_code = exit_code
        super().__init__(ErrorCode.DISPATCH_FAILED, message)


class RequestInProgressError(SmartSuggestionError):
    """Raised when a request is triggered while another one is live."""

    def __init__(self, message: str = "A suggestion request is already in progress"):
        super().__init__(ErrorCode.BUSY, message)


class UpdateProbeError(SmartSuggestionError):
    """Raised when the update probe fails."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.UPDATE_PROBE, message)
