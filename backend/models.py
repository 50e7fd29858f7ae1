"""
Data models for the presenter.

Defines the deck document schema (decks, scenes, beats), the navigation
state shared with every viewer, and stored presentation records.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional
from enum import Enum

from errors import MalformedDocument

logger = logging.getLogger(__name__)


class Mood(Enum):
    """Visual theme of a scene."""
    CALM = "calm"
    DRAMATIC = "dramatic"
    ENERGETIC = "energetic"
    DARK = "dark"
    WARM = "warm"
    COOL = "cool"
    MINIMAL = "minimal"


class Layout(Enum):
    """Spatial arrangement of a scene."""
    CENTER = "center"
    LEFT = "left"
    RIGHT = "right"
    SPLIT = "split"
    TOP = "top"
    BOTTOM = "bottom"
    GRID = "grid"


class EnterAnimation(Enum):
    """Entrance animation of a beat."""
    FADE = "fade"
    RISE = "rise"
    DROP = "drop"
    ZOOM = "zoom"
    SLIDE_LEFT = "slide-left"
    SLIDE_RIGHT = "slide-right"
    TYPEWRITER = "typewriter"
    NONE = "none"


class RevealMode(Enum):
    """How list items appear."""
    ALL = "all"
    ONE_BY_ONE = "one-by-one"


class BlockKind(Enum):
    """Closed set of beat kinds the renderer knows."""
    TITLE = "title"
    SUBTITLE = "subtitle"
    HEADING = "heading"
    TEXT = "text"
    LIST = "list"
    CODE = "code"
    METRIC = "metric"
    QUOTE = "quote"
    IMAGE = "image"
    COMPARISON = "comparison"
    EMBED = "embed"


class PresentationType(Enum):
    """Stored presentation formats."""
    DECK = "deck"
    MARKDOWN = "markdown"


def _enum_or_default(enum_cls, value, default):
    """Parse an enum value, falling back to the default for unknown tags."""
    if value is None or value == "":
        return default
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(f"Unknown {enum_cls.__name__} value {value!r}, using {default.value!r}")
        return default


def _text(value: Any) -> str:
    """Coerce a scalar field to text."""
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise MalformedDocument(f"Expected text, got {type(value).__name__}")
    return str(value)


def _delay(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# =============================================================================
# BEATS
# =============================================================================

@dataclass
class Beat:
    """One content block within a scene.

    Subclasses register themselves in BEAT_TYPES by their `kind`.
    """
    enter: EnterAnimation = EnterAnimation.FADE
    position: Optional[str] = None
    delay: Optional[float] = None

    kind: ClassVar[str] = ""

    def payload(self) -> dict:
        """Kind-specific fields."""
        return {}

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = {"block": self.kind}
        data.update(self.payload())
        data["enter"] = self.enter.value
        if self.position:
            data["position"] = self.position
        if self.delay is not None:
            data["delay"] = self.delay
        return data

    @classmethod
    def parse_payload(cls, data: dict) -> dict:
        return {}

    @classmethod
    def from_dict(cls, data: dict) -> "Beat":
        """Create the right beat variant from a dictionary.

        Unknown kinds and beats whose fields do not fit their kind come back
        as UnknownBeat so the rest of the scene still renders.
        """
        if not isinstance(data, dict):
            raise MalformedDocument(f"Beat must be an object, got {type(data).__name__}")

        position = data.get("position")
        common = {
            "enter": _enum_or_default(EnterAnimation, data.get("enter"), EnterAnimation.FADE),
            "position": position if isinstance(position, str) and position else None,
            "delay": _delay(data.get("delay")),
        }
        block = data.get("block")
        beat_cls = BEAT_TYPES.get(block) if isinstance(block, str) else None
        if beat_cls is None:
            return UnknownBeat(block=data.get("block"), raw=dict(data), **common)

        try:
            return beat_cls(**beat_cls.parse_payload(data), **common)
        except MalformedDocument as e:
            logger.warning(f"Malformed {data.get('block')} beat: {e}")
            return UnknownBeat(block=data.get("block"), raw=dict(data), **common)


@dataclass
class TextualBeat(Beat):
    """Base for single-line text blocks."""
    text: str = ""

    def payload(self) -> dict:
        return {"text": self.text}

    @classmethod
    def parse_payload(cls, data: dict) -> dict:
        return {"text": _text(data.get("text"))}


@dataclass
class TitleBeat(TextualBeat):
    kind: ClassVar[str] = BlockKind.TITLE.value


@dataclass
class SubtitleBeat(TextualBeat):
    kind: ClassVar[str] = BlockKind.SUBTITLE.value


@dataclass
class HeadingBeat(TextualBeat):
    kind: ClassVar[str] = BlockKind.HEADING.value


@dataclass
class TextBeat(TextualBeat):
    kind: ClassVar[str] = BlockKind.TEXT.value


@dataclass
class ListBeat(Beat):
    items: list[str] = field(default_factory=list)
    reveal: RevealMode = RevealMode.ALL

    kind: ClassVar[str] = BlockKind.LIST.value

    def payload(self) -> dict:
        return {"items": list(self.items), "reveal": self.reveal.value}

    @classmethod
    def parse_payload(cls, data: dict) -> dict:
        items = data.get("items") or []
        if not isinstance(items, list):
            raise MalformedDocument("List items must be a list")
        return {
            "items": [_text(item) for item in items],
            "reveal": _enum_or_default(RevealMode, data.get("reveal"), RevealMode.ALL),
        }


@dataclass
class CodeBeat(Beat):
    language: str = ""
    code: str = ""

    kind: ClassVar[str] = BlockKind.CODE.value

    def payload(self) -> dict:
        return {"language": self.language, "code": self.code}

    @classmethod
    def parse_payload(cls, data: dict) -> dict:
        return {"language": _text(data.get("language")), "code": _text(data.get("code"))}


@dataclass
class MetricBeat(Beat):
    value: str = ""
    label: str = ""

    kind: ClassVar[str] = BlockKind.METRIC.value

    def payload(self) -> dict:
        return {"value": self.value, "label": self.label}

    @classmethod
    def parse_payload(cls, data: dict) -> dict:
        return {"value": _text(data.get("value")), "label": _text(data.get("label"))}


@dataclass
class QuoteBeat(Beat):
    text: str = ""
    attribution: str = ""

    kind: ClassVar[str] = BlockKind.QUOTE.value

    def payload(self) -> dict:
        return {"text": self.text, "attribution": self.attribution}

    @classmethod
    def parse_payload(cls, data: dict) -> dict:
        return {"text": _text(data.get("text")), "attribution": _text(data.get("attribution"))}


@dataclass
class ImageBeat(Beat):
    src: str = ""
    alt: str = ""

    kind: ClassVar[str] = BlockKind.IMAGE.value

    def payload(self) -> dict:
        return {"src": self.src, "alt": self.alt}

    @classmethod
    def parse_payload(cls, data: dict) -> dict:
        return {"src": _text(data.get("src")), "alt": _text(data.get("alt"))}


@dataclass
class ComparisonSide:
    """One column of a comparison block."""
    title: str = ""
    text: str = ""

    def to_dict(self) -> dict:
        return {"title": self.title, "text": self.text}

    @classmethod
    def from_dict(cls, data: Any) -> "ComparisonSide":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise MalformedDocument("Comparison side must be an object")
        return cls(title=_text(data.get("title")), text=_text(data.get("text")))


@dataclass
class ComparisonBeat(Beat):
    left: ComparisonSide = field(default_factory=ComparisonSide)
    right: ComparisonSide = field(default_factory=ComparisonSide)

    kind: ClassVar[str] = BlockKind.COMPARISON.value

    def payload(self) -> dict:
        return {"left": self.left.to_dict(), "right": self.right.to_dict()}

    @classmethod
    def parse_payload(cls, data: dict) -> dict:
        return {
            "left": ComparisonSide.from_dict(data.get("left")),
            "right": ComparisonSide.from_dict(data.get("right")),
        }


@dataclass
class EmbedBeat(Beat):
    src: str = ""

    kind: ClassVar[str] = BlockKind.EMBED.value

    VIDEO_EXTENSIONS: ClassVar[tuple] = (".mp4", ".webm")

    @property
    def is_video(self) -> bool:
        return self.src.lower().endswith(self.VIDEO_EXTENSIONS)

    def payload(self) -> dict:
        return {"src": self.src}

    @classmethod
    def parse_payload(cls, data: dict) -> dict:
        return {"src": _text(data.get("src"))}


@dataclass
class UnknownBeat(Beat):
    """A beat of a kind this version does not understand.

    Keeps the raw record so saving the deck does not lose data.
    """
    block: Any = None
    raw: dict = field(default_factory=dict)

    @property
    def text(self) -> str:
        value = self.raw.get("text")
        if value is None or isinstance(value, (dict, list)):
            return ""
        return str(value)

    def to_dict(self) -> dict:
        return dict(self.raw)


BEAT_TYPES: dict[str, type[Beat]] = {
    beat_cls.kind: beat_cls
    for beat_cls in (
        TitleBeat, SubtitleBeat, HeadingBeat, TextBeat, ListBeat, CodeBeat,
        MetricBeat, QuoteBeat, ImageBeat, ComparisonBeat, EmbedBeat,
    )
}


# =============================================================================
# SCENES AND DECKS
# =============================================================================

@dataclass
class Scene:
    """One slide of a deck."""
    id: str = ""
    mood: Mood = Mood.CALM
    layout: Layout = Layout.CENTER
    beats: list[Beat] = field(default_factory=list)
    notes: str = ""  # Speaker notes, never shown to the audience

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "mood": self.mood.value,
            "layout": self.layout.value,
            "beats": [beat.to_dict() for beat in self.beats],
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Scene":
        """Create from dictionary."""
        if not isinstance(data, dict):
            raise MalformedDocument(f"Scene must be an object, got {type(data).__name__}")
        beats = data.get("beats") or []
        if not isinstance(beats, list):
            raise MalformedDocument("Scene beats must be a list")
        return cls(
            id=_text(data.get("id")),
            mood=_enum_or_default(Mood, data.get("mood"), Mood.CALM),
            layout=_enum_or_default(Layout, data.get("layout"), Layout.CENTER),
            beats=[Beat.from_dict(b) for b in beats],
            notes=_text(data.get("notes")),
        )


@dataclass
class DeckMeta:
    """Free-form display metadata."""
    title: str = "Untitled"
    author: str = ""
    created: str = ""
    palette: str = "default"

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "author": self.author,
            "created": self.created,
            "palette": self.palette,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "DeckMeta":
        data = data if isinstance(data, dict) else {}
        return cls(
            title=_text(data.get("title")) or "Untitled",
            author=_text(data.get("author")),
            created=_text(data.get("created")),
            palette=_text(data.get("palette")) or "default",
        )


@dataclass
class Deck:
    """Root presentation document. Scene order is slide order."""
    meta: DeckMeta = field(default_factory=DeckMeta)
    scenes: list[Scene] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "meta": self.meta.to_dict(),
            "scenes": [scene.to_dict() for scene in self.scenes],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Deck":
        """Create from dictionary. Raises MalformedDocument on bad structure."""
        if not isinstance(data, dict):
            raise MalformedDocument("Deck must be an object")
        scenes = data.get("scenes")
        if not isinstance(scenes, list):
            raise MalformedDocument("Deck has no scene list")
        if not scenes:
            raise MalformedDocument("Deck must have at least one scene")
        return cls(
            meta=DeckMeta.from_dict(data.get("meta")),
            scenes=[Scene.from_dict(s) for s in scenes],
        )


# =============================================================================
# NAVIGATION STATE
# =============================================================================

# Upper bound on addressable positions in one presentation
MAX_SLIDES = 10_000


def _index(value: Any, name: str, limit: int) -> int:
    """Parse a slide index or count in [0, limit)."""
    if isinstance(value, (dict, list)):
        raise MalformedDocument(f"{name} must be an integer")
    try:
        index = int(value or 0)
    except (TypeError, ValueError, OverflowError):
        raise MalformedDocument(f"{name} must be an integer, got {value!r}") from None
    if not 0 <= index < limit:
        raise MalformedDocument(f"{name} {index} is out of range")
    return index


@dataclass
class NoteEntry:
    """Speaker notes for one addressable slide position."""
    indexh: int
    indexv: int
    text: str = ""

    def to_dict(self) -> dict:
        return {"indexh": self.indexh, "indexv": self.indexv, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict, limit: int = MAX_SLIDES) -> "NoteEntry":
        """Create from dictionary. Both indexes must lie in [0, limit)."""
        if not isinstance(data, dict):
            raise MalformedDocument(f"Note must be an object, got {type(data).__name__}")
        return cls(
            indexh=_index(data.get("indexh"), "indexh", limit),
            indexv=_index(data.get("indexv"), "indexv", limit),
            text=_text(data.get("text")),
        )


def parse_notes(data: Any) -> list[NoteEntry]:
    """Parse a wire notes index.

    There is one entry per addressable position, so no index can reach the
    number of entries.
    """
    if data is None:
        return []
    if not isinstance(data, list):
        raise MalformedDocument("Notes must be a list")
    if len(data) > MAX_SLIDES:
        raise MalformedDocument(f"Too many notes: {len(data)}")
    return [NoteEntry.from_dict(n, limit=len(data)) for n in data]


def parse_slide_count(value: Any) -> int:
    return _index(value, "totalSlides", MAX_SLIDES + 1)


@dataclass
class NavigationState:
    """Authoritative navigation position of a running session."""
    presentation: Optional[str] = None
    indexh: int = 0
    indexv: int = 0
    total_slides: int = 0
    notes: list[NoteEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Wire form, as sent in state-update snapshots."""
        return {
            "presentation": self.presentation,
            "indexh": self.indexh,
            "indexv": self.indexv,
            "totalSlides": self.total_slides,
            "notes": [n.to_dict() for n in self.notes],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NavigationState":
        return cls(
            presentation=data.get("presentation"),
            indexh=_index(data.get("indexh"), "indexh", MAX_SLIDES),
            indexv=_index(data.get("indexv"), "indexv", MAX_SLIDES),
            total_slides=parse_slide_count(data.get("totalSlides")),
            notes=parse_notes(data.get("notes")),
        )


# =============================================================================
# STORED PRESENTATIONS
# =============================================================================

@dataclass
class PresentationRecord:
    """A stored presentation and its metadata."""
    id: str
    name: str
    filename: str
    type: PresentationType
    created_at: str
    updated_at: str
    content: Any = None  # Parsed deck dict or raw markdown text

    def to_dict(self, include_content: bool = True) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = {
            "id": self.id,
            "name": self.name,
            "filename": self.filename,
            "type": self.type.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if include_content:
            data["content"] = self.content
        return data
