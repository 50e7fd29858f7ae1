"""
Tests for the navigation state machine.
"""

import pytest

from errors import InvalidTransition, MalformedDocument
from models import NoteEntry
from state import NavigationStateMachine


def deck_notes(count: int) -> list[NoteEntry]:
    return [NoteEntry(indexh=i, indexv=0, text=f"note {i}") for i in range(count)]


@pytest.fixture
def machine() -> NavigationStateMachine:
    machine = NavigationStateMachine()
    machine.load("talk.deck", 3, deck_notes(3))
    return machine


@pytest.fixture
def nested_machine() -> NavigationStateMachine:
    # Slide 1 has three vertical sub-slides
    notes = [
        NoteEntry(0, 0),
        NoteEntry(1, 0), NoteEntry(1, 1), NoteEntry(1, 2),
        NoteEntry(2, 0),
    ]
    machine = NavigationStateMachine()
    machine.load("talk.md", 5, notes)
    return machine


class TestLoad:
    """Tests for loading presentations."""

    def test_initial_state(self):
        machine = NavigationStateMachine()

        assert not machine.is_loaded
        assert machine.snapshot()["presentation"] is None

    def test_load_resets_position(self, machine):
        machine.navigate("next")
        machine.load("other.deck", 2, deck_notes(2))

        assert machine.is_loaded
        assert (machine.state.indexh, machine.state.indexv) == (0, 0)
        assert machine.state.total_slides == 2
        assert machine.state.presentation == "other.deck"

    @pytest.mark.parametrize("total,notes", [
        (3, [NoteEntry(-1, 0)]),
        (3, [NoteEntry(0, 0), NoteEntry(10 ** 9, 0)]),
        (10 ** 9, None),
        (-1, None),
    ])
    def test_invalid_structure_leaves_state_untouched(self, machine, total, notes):
        machine.navigate("next")
        before = machine.snapshot()

        with pytest.raises(MalformedDocument):
            machine.load("bad.deck", total, notes)

        assert machine.snapshot() == before
        assert machine.navigate("next") == (2, 0)

    def test_navigation_requires_a_presentation(self):
        machine = NavigationStateMachine()

        with pytest.raises(InvalidTransition):
            machine.navigate("next")
        with pytest.raises(InvalidTransition):
            machine.navigate_to(1, 0)


class TestNavigate:
    """Tests for relative navigation."""

    def test_three_scene_scenario(self, machine):
        assert machine.state.total_slides == 3
        assert machine.state.indexh == 0

        machine.navigate("next")
        machine.navigate("next")
        assert machine.state.indexh == 2

        machine.navigate("next")
        assert machine.state.indexh == 2

    def test_prev_at_start_is_clamped(self, machine):
        assert machine.navigate("prev") == (0, 0)

    def test_invalid_direction(self, machine):
        with pytest.raises(ValueError):
            machine.navigate("sideways")

    def test_vertical_moves_within_a_scene(self, nested_machine):
        nested_machine.navigate("next")
        assert nested_machine.navigate("down") == (1, 1)
        assert nested_machine.navigate("down") == (1, 2)
        assert nested_machine.navigate("down") == (1, 2)
        assert nested_machine.navigate("up") == (1, 1)

    def test_horizontal_move_resets_vertical(self, nested_machine):
        nested_machine.navigate_to(1, 2)
        assert nested_machine.navigate("next") == (2, 0)

    def test_clamps_to_horizontal_positions_not_total(self, nested_machine):
        for _ in range(10):
            nested_machine.navigate("next")
        assert nested_machine.state.indexh == 2

    def test_total_slides_without_notes(self):
        machine = NavigationStateMachine()
        machine.load("bare.deck", 2)

        machine.navigate("next")
        machine.navigate("next")
        assert machine.state.indexh == 1


class TestNavigateTo:
    """Out-of-range jumps are clamped."""

    @pytest.mark.parametrize("target,expected", [
        ((1, 0), (1, 0)),
        ((9, 0), (2, 0)),
        ((-4, 0), (0, 0)),
        ((0, 5), (0, 0)),
    ])
    def test_clamping(self, machine, target, expected):
        assert machine.navigate_to(*target) == expected
        assert (machine.state.indexh, machine.state.indexv) == expected

    def test_vertical_clamp(self, nested_machine):
        assert nested_machine.navigate_to(1, 9) == (1, 2)


class TestSnapshot:
    """Snapshots and notes."""

    def test_apply_snapshot_is_idempotent(self, machine):
        machine.navigate("next")
        snapshot = machine.snapshot()

        other = NavigationStateMachine()
        other.apply_snapshot(snapshot)
        once = other.snapshot()
        other.apply_snapshot(snapshot)

        assert other.snapshot() == once == snapshot

    def test_snapshot_restores_structure(self, nested_machine):
        other = NavigationStateMachine()
        other.apply_snapshot(nested_machine.snapshot())

        assert other.navigate_to(1, 9) == (1, 2)

    def test_current_note(self, machine):
        machine.navigate("next")
        assert machine.current_note() == "note 1"

    def test_reset(self, machine):
        machine.reset()
        assert not machine.is_loaded
