"""
Deck authoring helpers used by the visual builder.

Every factory returns a structurally valid instance so the builder never
holds a beat that is missing the fields of its kind.
"""

import re
import time
import logging
from datetime import date
from typing import Any, Callable

from models import (
    Beat,
    BlockKind,
    CodeBeat,
    ComparisonBeat,
    ComparisonSide,
    Deck,
    DeckMeta,
    EmbedBeat,
    EnterAnimation,
    HeadingBeat,
    ImageBeat,
    ListBeat,
    Mood,
    MetricBeat,
    QuoteBeat,
    RevealMode,
    Scene,
    SubtitleBeat,
    TextBeat,
    TitleBeat,
)

logger = logging.getLogger(__name__)


BEAT_DEFAULTS: dict[str, Callable[[], Beat]] = {
    BlockKind.TITLE.value: lambda: TitleBeat(text="Title"),
    BlockKind.SUBTITLE.value: lambda: SubtitleBeat(text="Subtitle", enter=EnterAnimation.RISE),
    BlockKind.HEADING.value: lambda: HeadingBeat(text="Heading"),
    BlockKind.TEXT.value: lambda: TextBeat(text="Your text here"),
    BlockKind.LIST.value: lambda: ListBeat(
        items=["Item 1", "Item 2", "Item 3"],
        reveal=RevealMode.ONE_BY_ONE,
        enter=EnterAnimation.RISE,
    ),
    BlockKind.CODE.value: lambda: CodeBeat(language="python", code="# Your code here"),
    BlockKind.METRIC.value: lambda: MetricBeat(value="99%", label="Description", enter=EnterAnimation.ZOOM),
    BlockKind.QUOTE.value: lambda: QuoteBeat(text="Your quote here", attribution="Author"),
    BlockKind.IMAGE.value: lambda: ImageBeat(),
    BlockKind.COMPARISON.value: lambda: ComparisonBeat(
        left=ComparisonSide(title="Option A", text="Description"),
        right=ComparisonSide(title="Option B", text="Description"),
    ),
    BlockKind.EMBED.value: lambda: EmbedBeat(),
}


def create_beat(kind: str = "text") -> Beat:
    """Default beat of the given kind; unknown kinds get a text beat."""
    factory = BEAT_DEFAULTS.get(kind)
    if factory is None:
        logger.warning(f"No default for block kind {kind!r}, using text")
        factory = BEAT_DEFAULTS[BlockKind.TEXT.value]
    return factory()


def create_scene(scene_id: str = "") -> Scene:
    """New scene with a single heading."""
    return Scene(
        id=scene_id or f"scene-{int(time.time() * 1000)}",
        beats=[HeadingBeat(text="New Scene")],
    )


def create_empty(title: str = "Untitled") -> Deck:
    """Single-scene deck with a title and a prompt subtitle."""
    return Deck(
        meta=DeckMeta(title=title, created=date.today().isoformat()),
        scenes=[
            Scene(
                id="intro",
                mood=Mood.DRAMATIC,
                beats=[
                    TitleBeat(text=title),
                    SubtitleBeat(text="Click to edit", enter=EnterAnimation.RISE),
                ],
            )
        ],
    )


# =============================================================================
# EDITING ACTIONS
# =============================================================================

def add_scene(deck: Deck, scene: Scene = None) -> int:
    """Append a scene and return its index."""
    deck.scenes.append(scene or create_scene())
    return len(deck.scenes) - 1


def delete_scene(deck: Deck, index: int) -> bool:
    """Remove a scene. The last remaining scene is never removed."""
    if len(deck.scenes) <= 1 or not 0 <= index < len(deck.scenes):
        return False
    del deck.scenes[index]
    return True


def add_beat(scene: Scene, kind: str) -> Beat:
    beat = create_beat(kind)
    scene.beats.append(beat)
    return beat


def delete_beat(scene: Scene, index: int) -> bool:
    if not 0 <= index < len(scene.beats):
        return False
    del scene.beats[index]
    return True


def move_beat(scene: Scene, index: int, direction: int) -> bool:
    """Swap a beat up (-1) or down (+1). Moves past either end are ignored."""
    new_index = index + direction
    if not 0 <= index < len(scene.beats) or not 0 <= new_index < len(scene.beats):
        return False
    beat = scene.beats.pop(index)
    scene.beats.insert(new_index, beat)
    return True


def update_beat_field(scene: Scene, index: int, path: str, value: Any) -> Beat:
    """Set a beat field by name; dotted paths reach into nested objects ("left.title")."""
    data = scene.beats[index].to_dict()
    if "." in path:
        obj, key = path.split(".", 1)
        if not isinstance(data.get(obj), dict):
            data[obj] = {}
        data[obj][key] = value
    else:
        data[path] = value
    beat = Beat.from_dict(data)
    scene.beats[index] = beat
    return beat


def slugify_title(title: str) -> str:
    """Filename stem for a deck title."""
    slug = re.sub(r"[^a-z0-9]+", "-", (title or "").lower()).strip("-")
    return slug or "untitled"
