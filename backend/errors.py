"""
Error types for the presenter backend.

Everything raised on purpose derives from PresentationError so the HTTP
layer and the sync relay can report it without crashing.
"""


class PresentationError(Exception):
    """Base class for recoverable presenter errors."""


class NotFound(PresentationError):
    """A requested presentation or file does not exist."""

    def __init__(self, filename: str):
        super().__init__(f"Presentation not found: {filename}")
        self.filename = filename


class MalformedDocument(PresentationError):
    """Stored deck content does not match the deck schema."""


class TransportUnavailable(PresentationError):
    """The sync channel is disconnected."""


class UnsupportedBlockKind(PresentationError):
    """A beat uses a block kind the renderer does not know."""

    def __init__(self, kind):
        super().__init__(f"Unsupported block kind: {kind!r}")
        self.kind = kind


class InvalidTransition(PresentationError):
    """A navigation event arrived in a state that cannot accept it."""


class NotAuthorized(PresentationError):
    """A connection without presenter authority tried to change state."""
