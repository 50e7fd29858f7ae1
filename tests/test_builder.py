"""
Tests for deck authoring helpers.
"""

import pytest

from builder import (
    add_beat,
    add_scene,
    create_beat,
    create_empty,
    create_scene,
    delete_beat,
    delete_scene,
    move_beat,
    slugify_title,
    update_beat_field,
)
from models import Beat, BlockKind, Deck, TextBeat


@pytest.mark.parametrize("kind", [kind.value for kind in BlockKind])
def test_create_beat_is_valid_for_every_kind(kind):
    beat = create_beat(kind)
    data = beat.to_dict()

    assert data["block"] == kind
    # Parses back to the same kind without falling back
    assert type(Beat.from_dict(data)) is type(beat)
    assert Beat.from_dict(data).to_dict() == data


def test_create_beat_returns_fresh_instances():
    first, second = create_beat("list"), create_beat("list")
    first.items.append("extra")

    assert len(second.items) == 3


def test_create_beat_unknown_kind_is_text():
    assert isinstance(create_beat("sparkles"), TextBeat)


def test_create_empty():
    deck = create_empty("Launch")
    data = deck.to_dict()

    assert data["meta"]["title"] == "Launch"
    assert len(data["scenes"]) == 1
    assert [b["block"] for b in data["scenes"][0]["beats"]] == ["title", "subtitle"]
    assert data["scenes"][0]["beats"][0]["text"] == "Launch"
    # A valid persisted deck
    assert Deck.from_dict(data).to_dict() == data


def test_create_scene():
    scene = create_scene()

    assert scene.id.startswith("scene-")
    assert scene.beats[0].to_dict()["block"] == "heading"
    assert create_scene("custom").id == "custom"


def test_delete_scene_keeps_at_least_one():
    deck = create_empty()

    assert delete_scene(deck, 0) is False
    add_scene(deck)
    assert delete_scene(deck, 0) is True
    assert len(deck.scenes) == 1


def test_beat_editing():
    scene = create_scene("s")
    add_beat(scene, "text")
    add_beat(scene, "metric")

    assert move_beat(scene, 2, -1) is True
    assert [b.kind for b in scene.beats] == ["heading", "metric", "text"]
    assert move_beat(scene, 0, -1) is False
    assert delete_beat(scene, 5) is False
    assert delete_beat(scene, 0) is True
    assert [b.kind for b in scene.beats] == ["metric", "text"]


def test_update_beat_field_nested():
    scene = create_scene("s")
    add_beat(scene, "comparison")

    beat = update_beat_field(scene, 1, "left.title", "Before")

    assert beat.left.title == "Before"
    assert scene.beats[1].left.title == "Before"
    assert scene.beats[1].right.title == "Option B"


def test_update_beat_field_plain():
    scene = create_scene("s")
    beat = update_beat_field(scene, 0, "text", "Renamed")

    assert beat.text == "Renamed"


@pytest.mark.parametrize("title,expected", [
    ("My Talk!", "my-talk"),
    ("  --Q4 / 2025--  ", "q4-2025"),
    ("", "untitled"),
    ("???", "untitled"),
])
def test_slugify_title(title, expected):
    assert slugify_title(title) == expected
