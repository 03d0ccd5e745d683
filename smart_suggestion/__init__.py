"""smart-suggestion - AI command suggestions for interactive shells.

Client-side orchestration for the smart-suggestion backend binary:
- Press a key (Ctrl+O) to get a suggestion for the current command line
- Non-blocking: the provider runs in its own process, Ctrl+C cancels
- Warm backend proxy started once per session for low latency
- Throttled background update checks
"""

__version__ = "1.0.0"
