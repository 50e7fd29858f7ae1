"""
Tests for the deck schema and navigation records.
"""

import pytest

from errors import MalformedDocument
from models import (
    BEAT_TYPES,
    Beat,
    BlockKind,
    ComparisonBeat,
    Deck,
    EnterAnimation,
    Layout,
    ListBeat,
    Mood,
    NavigationState,
    NoteEntry,
    RevealMode,
    Scene,
    UnknownBeat,
    parse_notes,
)


class TestBeat:
    """Tests for Beat.from_dict dispatch."""

    def test_every_kind_is_registered(self):
        assert set(BEAT_TYPES) == {kind.value for kind in BlockKind}

    def test_list_beat(self):
        beat = Beat.from_dict({"block": "list", "items": ["a", 2], "reveal": "one-by-one"})

        assert isinstance(beat, ListBeat)
        assert beat.items == ["a", "2"]
        assert beat.reveal == RevealMode.ONE_BY_ONE
        assert beat.enter == EnterAnimation.FADE

    def test_comparison_beat(self):
        beat = Beat.from_dict({
            "block": "comparison",
            "left": {"title": "A", "text": "a"},
            "right": {"title": "B"},
        })

        assert isinstance(beat, ComparisonBeat)
        assert beat.left.title == "A"
        assert beat.right.text == ""

    def test_display_hints(self):
        beat = Beat.from_dict({"block": "text", "text": "t", "position": "left", "delay": "0.5"})

        assert beat.position == "left"
        assert beat.delay == 0.5

    def test_unknown_kind_keeps_raw_record(self):
        raw = {"block": "hologram", "text": "x", "depth": 3}
        beat = Beat.from_dict(raw)

        assert isinstance(beat, UnknownBeat)
        assert beat.text == "x"
        assert beat.to_dict() == raw

    def test_unhashable_kind_is_unknown(self):
        raw = {"block": ["metric"], "text": "x"}
        beat = Beat.from_dict(raw)

        assert isinstance(beat, UnknownBeat)
        assert beat.text == "x"
        assert beat.to_dict() == raw

    def test_unknown_enter_falls_back_to_fade(self):
        beat = Beat.from_dict({"block": "text", "text": "t", "enter": "explode"})
        assert beat.enter == EnterAnimation.FADE

    def test_non_object_beat_is_malformed(self):
        with pytest.raises(MalformedDocument):
            Beat.from_dict(["title"])


class TestScene:
    """Tests for Scene defaults."""

    def test_defaults(self):
        scene = Scene.from_dict({})

        assert scene.mood == Mood.CALM
        assert scene.layout == Layout.CENTER
        assert scene.beats == []
        assert scene.notes == ""

    def test_beats_must_be_a_list(self):
        with pytest.raises(MalformedDocument):
            Scene.from_dict({"beats": {"block": "title"}})


class TestDeck:
    """Tests for Deck parsing."""

    def test_round_trip(self, sample_deck):
        assert Deck.from_dict(sample_deck).to_dict() == sample_deck

    @pytest.mark.parametrize("data", [None, [], {}, {"scenes": None}, {"scenes": []}])
    def test_invalid_decks(self, data):
        with pytest.raises(MalformedDocument):
            Deck.from_dict(data)

    def test_missing_meta_gets_defaults(self):
        deck = Deck.from_dict({"scenes": [{}]})

        assert deck.meta.title == "Untitled"
        assert len(deck.scenes) == 1


class TestNavigationState:
    """Wire form of the navigation state."""

    def test_to_dict_uses_wire_names(self):
        state = NavigationState(
            presentation="talk.deck",
            indexh=1,
            total_slides=3,
            notes=[NoteEntry(0, 0, "hi")],
        )

        assert state.to_dict() == {
            "presentation": "talk.deck",
            "indexh": 1,
            "indexv": 0,
            "totalSlides": 3,
            "notes": [{"indexh": 0, "indexv": 0, "text": "hi"}],
        }

    def test_from_dict_round_trip(self):
        data = {
            "presentation": None,
            "indexh": 0,
            "indexv": 0,
            "totalSlides": 0,
            "notes": [],
        }
        assert NavigationState.from_dict(data).to_dict() == data

    def test_note_text_must_be_text(self):
        with pytest.raises(MalformedDocument):
            NoteEntry.from_dict({"indexh": 0, "indexv": 0, "text": {"a": 1}})

        assert NoteEntry.from_dict({"indexh": 0, "text": 5}).text == "5"

    @pytest.mark.parametrize("notes", [
        "oops",
        ["oops"],
        [{"indexh": -1, "indexv": 0}],
        [{"indexh": 0, "indexv": -2}],
        [{"indexh": 10 ** 12, "indexv": 0}],
        [{"indexh": 0, "indexv": 0}, {"indexh": 2, "indexv": 0}],
        [{"indexh": "two", "indexv": 0}],
    ])
    def test_bad_notes_are_malformed(self, notes):
        with pytest.raises(MalformedDocument):
            parse_notes(notes)

    def test_notes_index_within_entry_count(self):
        notes = parse_notes([
            {"indexh": 0, "indexv": 0},
            {"indexh": 1, "indexv": 0},
            {"indexh": 1, "indexv": 1, "text": "deep"},
        ])

        assert notes[2] == NoteEntry(1, 1, "deep")

    @pytest.mark.parametrize("total", [-1, 10 ** 9, "many", [3]])
    def test_bad_slide_count_is_malformed(self, total):
        with pytest.raises(MalformedDocument):
            NavigationState.from_dict({"presentation": "x.deck", "totalSlides": total})
