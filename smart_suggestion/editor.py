"""Editing-buffer adapters.

The job runner only needs four operations on the line being edited. They are
expressed as the EditorBuffer protocol with two implementations:
- PromptBufferAdapter: a live prompt_toolkit Buffer
- InMemoryBuffer: plain text, used by the one-shot CLI command
"""

from typing import Optional, Protocol

from prompt_toolkit.auto_suggest import Suggestion
from prompt_toolkit.buffer import Buffer

from .protocol import ResponseKind, SuggestionResponse


class EditorBuffer(Protocol):
    def text_before_cursor(self) -> str: ...

    def replace(self, text: str) -> None:
        """Clear the input and insert text, cursor at the end."""

    def suggest(self, text: str) -> None:
        """Offer text as a non-committed inline suggestion."""

    def clear_suggestion(self) -> None: ...


class PromptBufferAdapter:
    """EditorBuffer over a prompt_toolkit Buffer."""

    def __init__(self, buffer: Buffer):
        self.buffer = buffer

    def text_before_cursor(self) -> str:
        return self.buffer.document.text_before_cursor

    def replace(self, text: str) -> None:
        self.buffer.text = ""
        self.buffer.cursor_position = 0
        self.buffer.insert_text(text)

    def suggest(self, text: str) -> None:
        # Rendered by prompt_toolkit's AppendAutoSuggestion processor and
        # accepted with the usual auto-suggest keys
        self.buffer.suggestion = Suggestion(text)

    def clear_suggestion(self) -> None:
        self.buffer.suggestion = None


class InMemoryBuffer:
    """Minimal EditorBuffer holding text, cursor and suggestion."""

    def __init__(self, text: str = "", cursor: Optional[int] = None):
        self.text = text
        self.cursor = len(text) if cursor is None else cursor
        self.suggestion: Optional[str] = None

    def text_before_cursor(self) -> str:
        return self.text[:self.cursor]

    def replace(self, text: str) -> None:
        # Same as prompt_toolkit: changing the text drops the suggestion
        self.text = text
        self.cursor = len(text)
        self.suggestion = None

    def suggest(self, text: str) -> None:
        self.suggestion = text

    def clear_suggestion(self) -> None:
        self.suggestion = None

    @property
    def rendered(self) -> str:
        """Committed text followed by the pending suggestion, if any."""
        return self.text + (self.suggestion or "")


def apply_response(buffer: EditorBuffer, response: Optional[SuggestionResponse]) -> bool:
    """Apply a decoded response to the buffer.

    Returns:
        True if the buffer was changed, False for a no-op response.
    """
    if response is None:
        return False
    if response.kind is ResponseKind.REPLACE:
        buffer.replace(response.payload)
    else:
        buffer.suggest(response.payload)
    return True
