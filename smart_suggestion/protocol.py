"""Response artifact protocol.

The provider answers with a single text blob whose first character is a
sigil selecting how the rest is applied to the editing buffer:

    =ls -la      replace the whole input with "ls -la"
    +--help      offer "--help" as an inline suggestion after the input

Anything else (including an empty blob) carries no action. Trailing newlines
are not part of the payload, as with shell command substitution.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class ResponseKind(str, Enum):
    """How a decoded suggestion is applied."""

    REPLACE = "="
    APPEND = "+"


@dataclass(frozen=True)
class SuggestionResponse:
    kind: ResponseKind
    payload: str


def decode(raw: Union[bytes, str, None]) -> Optional[SuggestionResponse]:
    """Decode a response artifact.

    Args:
        raw: Full artifact contents

    Returns:
        SuggestionResponse, or None when the blob is empty or the sigil is
        not recognized (callers must leave the buffer untouched).

    Examples:
        >>> decode(b"=ls -la")
        SuggestionResponse(kind=<ResponseKind.REPLACE: '='>, payload='ls -la')
        >>> decode(b"?what") is None
        True
    """
    if isinstance(raw, bytes):
        raw = raw.decode('utf-8', errors='replace')
    raw = (raw or "").rstrip("\n")
    if not raw:
        return None

    sigil, payload = raw[0], raw[1:]
    try:
        kind = ResponseKind(sigil)
    except ValueError:
        return None
    return SuggestionResponse(kind=kind, payload=payload)


def encode(response: SuggestionResponse) -> str:
    """Render a response in artifact form."""
    return f"{response.kind.value}{response.payload}"
