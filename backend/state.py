"""
Navigation state machine.

Holds the authoritative {presentation, indexh, indexv, totalSlides, notes}
record and the rules for changing it. The relay owns one instance per
running session; presenter viewers keep a local copy to turn direction
requests into absolute positions.
"""

import logging
from typing import Optional

from errors import InvalidTransition, MalformedDocument
from models import MAX_SLIDES, NavigationState, NoteEntry, parse_slide_count

logger = logging.getLogger(__name__)

DIRECTIONS = ("next", "prev", "up", "down")


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def slide_structure(state: NavigationState) -> list[int]:
    """Vertical slide count of each horizontal position.

    The notes index has one entry per addressable position; without it,
    every slide is a single horizontal position.
    """
    if not state.notes:
        if not 0 <= state.total_slides <= MAX_SLIDES:
            raise MalformedDocument(f"Slide count {state.total_slides} is out of range")
        return [1] * state.total_slides

    for note in state.notes:
        if not (0 <= note.indexh < MAX_SLIDES and 0 <= note.indexv < MAX_SLIDES):
            raise MalformedDocument(f"Note position ({note.indexh}, {note.indexv}) is out of range")
    verticals = [1] * (max(n.indexh for n in state.notes) + 1)
    for note in state.notes:
        verticals[note.indexh] = max(verticals[note.indexh], note.indexv + 1)
    return verticals


class NavigationStateMachine:
    """NoPresentation -> Loaded state machine over a NavigationState."""

    def __init__(self, state: Optional[NavigationState] = None):
        self.state = state or NavigationState()
        self._verticals: list[int] = slide_structure(self.state)

    @property
    def is_loaded(self) -> bool:
        return self.state.presentation is not None

    @property
    def horizontal_count(self) -> int:
        return len(self._verticals)

    def vertical_count(self, indexh: int) -> int:
        if 0 <= indexh < len(self._verticals):
            return self._verticals[indexh]
        return 1

    def load(self, presentation: str, total_slides: int, notes: Optional[list[NoteEntry]] = None):
        """Load a presentation and reset the position to (0, 0)."""
        state = NavigationState(
            presentation=presentation,
            indexh=0,
            indexv=0,
            total_slides=parse_slide_count(total_slides),
            notes=list(notes or []),
        )
        # Nothing changes unless the whole new structure is valid
        verticals = slide_structure(state)
        self.state, self._verticals = state, verticals
        logger.info(f"Loaded {presentation} ({self.state.total_slides} slides)")
        return self.state

    def navigate(self, direction: str) -> tuple[int, int]:
        """Move one step. Moves past either end are clamped, not errors."""
        if not self.is_loaded:
            raise InvalidTransition("No presentation loaded")
        if direction not in DIRECTIONS:
            raise ValueError(f"Invalid direction: {direction}")

        indexh, indexv = self.state.indexh, self.state.indexv
        last_h = max(self.horizontal_count - 1, 0)
        if direction == "next":
            indexh, indexv = _clamp(indexh + 1, 0, last_h), 0
        elif direction == "prev":
            indexh, indexv = _clamp(indexh - 1, 0, last_h), 0
        elif direction == "down":
            indexv = _clamp(indexv + 1, 0, self.vertical_count(indexh) - 1)
        else:
            indexv = _clamp(indexv - 1, 0, self.vertical_count(indexh) - 1)

        if (indexh, indexv) == (self.state.indexh, self.state.indexv):
            logger.debug(f"Navigation {direction} clamped at ({indexh}, {indexv})")
        self.state.indexh, self.state.indexv = indexh, indexv
        return indexh, indexv

    def navigate_to(self, indexh: int, indexv: int = 0) -> tuple[int, int]:
        """Jump to an absolute position, clamped into the loaded presentation."""
        if not self.is_loaded:
            raise InvalidTransition("No presentation loaded")
        indexh = _clamp(int(indexh or 0), 0, max(self.horizontal_count - 1, 0))
        indexv = _clamp(int(indexv or 0), 0, self.vertical_count(indexh) - 1)
        self.state.indexh, self.state.indexv = indexh, indexv
        return indexh, indexv

    def snapshot(self) -> dict:
        """Full state in wire form."""
        return self.state.to_dict()

    def apply_snapshot(self, data: dict):
        """Overwrite the whole state from a snapshot."""
        state = NavigationState.from_dict(data)
        verticals = slide_structure(state)
        self.state, self._verticals = state, verticals

    def reset(self):
        self.state = NavigationState()
        self._verticals = []

    def current_note(self) -> str:
        """Speaker notes for the current position."""
        for note in self.state.notes:
            if note.indexh == self.state.indexh and note.indexv == self.state.indexv:
                return note.text
        return ""
