"""
Deck renderer.

Turns decks (and markdown presentations) into an ordered list of slide
fragments that map one-to-one onto reveal.js <section> elements, plus the
flattened speaker-notes index the sync relay hands to viewers.
"""

import html
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from errors import MalformedDocument, UnsupportedBlockKind
from models import (
    Beat,
    CodeBeat,
    ComparisonBeat,
    Deck,
    EmbedBeat,
    ImageBeat,
    ListBeat,
    MetricBeat,
    NoteEntry,
    PresentationType,
    QuoteBeat,
    RevealMode,
    Scene,
    TextualBeat,
    UnknownBeat,
)

logger = logging.getLogger(__name__)


def escape(value: Any) -> str:
    """HTML-escape any field value."""
    return html.escape("" if value is None else str(value), quote=True)


# =============================================================================
# FRAGMENTS
# =============================================================================

@dataclass
class ItemFragment:
    """One list item."""
    html: str
    revealable: bool = False

    def to_html(self) -> str:
        cls = ' class="fragment"' if self.revealable else ""
        return f"<li{cls}>{self.html}</li>"


@dataclass
class BlockFragment:
    """Rendered beat inside a slide."""
    kind: str
    html: str  # Inner markup of the block
    enter: str = "fade"
    position: Optional[str] = None
    delay: Optional[float] = None
    revealable: bool = False
    preview: bool = False
    items: list[ItemFragment] = field(default_factory=list)

    def to_html(self) -> str:
        classes = ["block-container"]
        if self.preview:
            classes.append("visible")
        classes.append(f"enter-{escape(self.enter)}")
        if self.position:
            classes.append(f"beat-{escape(self.position)}")
        if self.revealable:
            classes.append("fragment")
        style = f' style="animation-delay: {self.delay:g}s;"' if self.delay else ""
        return f'<div class="{" ".join(classes)}"{style}>\n  {self.html}\n</div>'

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "enter": self.enter,
            "position": self.position,
            "delay": self.delay,
            "revealable": self.revealable,
            "items": [{"html": i.html, "revealable": i.revealable} for i in self.items],
            "html": self.to_html(),
        }


@dataclass
class SlideFragment:
    """One horizontal slide position.

    Deck scenes fill `blocks`; markdown slides carry `markdown`; a slide with
    vertical sub-slides carries them in `children`.
    """
    scene_id: str = ""
    mood: str = "calm"
    layout: str = "center"
    blocks: list[BlockFragment] = field(default_factory=list)
    notes: str = ""
    children: list["SlideFragment"] = field(default_factory=list)
    markdown: Optional[str] = None

    def notes_html(self) -> str:
        if not self.notes:
            return ""
        return f'<aside class="notes">{escape(self.notes)}</aside>'

    def to_html(self) -> str:
        if self.children:
            inner = "\n".join(child.to_html() for child in self.children)
            return f"<section>\n{inner}\n</section>"

        if self.markdown is not None:
            return (
                "<section data-markdown><textarea data-template>"
                f"{escape(self.markdown)}</textarea>{self.notes_html()}</section>"
            )

        mood, layout = escape(self.mood), escape(self.layout)
        blocks = "\n    ".join(block.to_html() for block in self.blocks)
        return (
            f'<section data-mood="{mood}" data-layout="{layout}" '
            f'data-scene-id="{escape(self.scene_id)}">\n'
            f'  <div class="deck-scene mood-{mood} layout-{layout}">\n'
            f"    {blocks}\n"
            f"  </div>\n"
            f"  {self.notes_html()}\n"
            f"</section>"
        )

    def to_dict(self) -> dict:
        return {
            "sceneId": self.scene_id,
            "mood": self.mood,
            "layout": self.layout,
            "blocks": [block.to_dict() for block in self.blocks],
            "notes": self.notes,
            "children": [child.to_dict() for child in self.children],
            "markdown": self.markdown,
        }


def error_fragment(message: str) -> SlideFragment:
    """Slide shown in place of content that could not be rendered."""
    return SlideFragment(
        scene_id="error",
        mood="dark",
        blocks=[
            BlockFragment(kind="heading", html='<div class="block-heading">Could not render slide</div>'),
            BlockFragment(kind="text", html=f'<div class="block-text">{escape(message)}</div>'),
        ],
    )


# =============================================================================
# BLOCK RENDERERS
# =============================================================================

def list_items(beat: ListBeat, preview: bool = False) -> list[ItemFragment]:
    """Items of a list beat. With one-by-one reveal, all but the first are revealable."""
    staged = beat.reveal == RevealMode.ONE_BY_ONE and not preview
    return [
        ItemFragment(html=escape(item), revealable=staged and j > 0)
        for j, item in enumerate(beat.items)
    ]


def _render_textual(beat: TextualBeat, preview: bool) -> str:
    return f'<div class="block-{beat.kind}">{escape(beat.text)}</div>'


def _render_list(beat: ListBeat, preview: bool) -> str:
    items = "\n".join(item.to_html() for item in list_items(beat, preview))
    return f'<ul class="block-list">{items}</ul>'


def _render_code(beat: CodeBeat, preview: bool) -> str:
    return (
        f'<div class="block-code"><pre><code class="language-{escape(beat.language)}">'
        f"{escape(beat.code)}</code></pre></div>"
    )


def _render_metric(beat: MetricBeat, preview: bool) -> str:
    return (
        '<div class="block-metric">'
        f'<div class="metric-value">{escape(beat.value)}</div>'
        f'<div class="metric-label">{escape(beat.label)}</div>'
        "</div>"
    )


def _render_quote(beat: QuoteBeat, preview: bool) -> str:
    attribution = ""
    if beat.attribution:
        attribution = f'<div class="quote-attribution">— {escape(beat.attribution)}</div>'
    return f'<blockquote class="block-quote">{escape(beat.text)}{attribution}</blockquote>'


def _render_image(beat: ImageBeat, preview: bool) -> str:
    return f'<div class="block-image"><img src="{escape(beat.src)}" alt="{escape(beat.alt)}"></div>'


def _render_comparison(beat: ComparisonBeat, preview: bool) -> str:
    sides = [
        '<div class="comp-side">'
        f'<div class="block-heading">{escape(side.title)}</div>'
        f'<div class="block-text">{escape(side.text)}</div>'
        "</div>"
        for side in (beat.left, beat.right)
    ]
    return f'<div class="block-comparison">{sides[0]}<div class="comp-vs">VS</div>{sides[1]}</div>'


def _render_embed(beat: EmbedBeat, preview: bool) -> str:
    src = escape(beat.src)
    if preview:
        return f'<div class="block-embed"><em>[Embed: {src}]</em></div>'
    if beat.is_video:
        return f'<div class="block-embed"><video src="{src}" controls></video></div>'
    return f'<div class="block-embed"><iframe src="{src}" width="800" height="450"></iframe></div>'


_RENDERERS: dict[str, Callable[[Any, bool], str]] = {
    "title": _render_textual,
    "subtitle": _render_textual,
    "heading": _render_textual,
    "text": _render_textual,
    "list": _render_list,
    "code": _render_code,
    "metric": _render_metric,
    "quote": _render_quote,
    "image": _render_image,
    "comparison": _render_comparison,
    "embed": _render_embed,
}


def _render_inner(beat: Beat, preview: bool) -> str:
    render_fn = None if isinstance(beat, UnknownBeat) else _RENDERERS.get(beat.kind)
    if render_fn is None:
        raise UnsupportedBlockKind(getattr(beat, "block", beat.kind))
    return render_fn(beat, preview)


def _fallback_text(beat: Beat) -> str:
    text = getattr(beat, "text", "")
    return f'<div class="block-text">{escape(text)}</div>'


def render_beat(beat: Beat, index: int, preview: bool = False) -> BlockFragment:
    """Render one beat. The first beat of a scene is never revealable."""
    try:
        inner = _render_inner(beat, preview)
        kind = beat.kind
    except UnsupportedBlockKind as e:
        logger.warning(f"{e}; rendering as text")
        inner = _fallback_text(beat)
        kind = "text"

    return BlockFragment(
        kind=kind,
        html=inner,
        enter=beat.enter.value,
        position=beat.position,
        delay=beat.delay,
        revealable=index > 0 and not preview,
        preview=preview,
        items=list_items(beat, preview) if isinstance(beat, ListBeat) else [],
    )


# =============================================================================
# SCENES AND DECKS
# =============================================================================

def render_scene(scene: Scene, preview: bool = False) -> SlideFragment:
    """Render a scene to one slide fragment."""
    return SlideFragment(
        scene_id=scene.id,
        mood=scene.mood.value,
        layout=scene.layout.value,
        blocks=[render_beat(beat, i, preview) for i, beat in enumerate(scene.beats)],
        notes=scene.notes,
    )


def render(deck: Deck) -> list[SlideFragment]:
    """Render a deck to one fragment per scene, in document order."""
    return [render_scene(scene) for scene in deck.scenes]


def render_preview(deck: Deck) -> list[SlideFragment]:
    """Render a deck with every beat visible and no staged reveal."""
    return [render_scene(scene, preview=True) for scene in deck.scenes]


def render_scene_preview(scene: Scene) -> str:
    """Standalone scene markup for the builder's live preview."""
    fragment = render_scene(scene, preview=True)
    blocks = "\n".join(block.to_html() for block in fragment.blocks)
    mood, layout = escape(fragment.mood), escape(fragment.layout)
    return f'<div class="deck-scene mood-{mood} layout-{layout}">\n{blocks}\n</div>'


def render_html(fragments: list[SlideFragment]) -> str:
    """Join fragments into reveal.js slide markup."""
    if not fragments:
        return "<section><h2>Empty presentation</h2></section>"
    return "\n".join(fragment.to_html() for fragment in fragments)


def render_document(content: Any) -> list[SlideFragment]:
    """Render raw deck JSON, one scene at a time.

    A broken scene becomes an error slide at its own position; a document
    that is not a deck at all becomes a single error slide.
    """
    if not isinstance(content, dict) or not isinstance(content.get("scenes"), list):
        logger.warning("Deck content has no scene list")
        return [error_fragment("This presentation is not a valid deck.")]
    if not content["scenes"]:
        return [error_fragment("This deck has no scenes.")]

    fragments = []
    for i, raw_scene in enumerate(content["scenes"]):
        try:
            fragments.append(render_scene(Scene.from_dict(raw_scene)))
        except MalformedDocument as e:
            logger.warning(f"Scene {i} is malformed: {e}")
            fragments.append(error_fragment(f"Scene {i + 1}: {e}"))
    return fragments


# =============================================================================
# MARKDOWN PRESENTATIONS
# =============================================================================

FRONT_MATTER_RE = re.compile(r"^---\n[\s\S]*?\n---\n")
SLIDE_SEPARATOR_RE = re.compile(r"\n---\n")
VERTICAL_SEPARATOR_RE = re.compile(r"\n-v-\n")
NOTE_RE = re.compile(r"\nNote:([\s\S]*)\Z")


def _markdown_slide(text: str) -> SlideFragment:
    notes = ""
    match = NOTE_RE.search(text)
    if match:
        notes = match.group(1).strip()
        text = text[:match.start()]
    return SlideFragment(markdown=text.strip(), notes=notes)


def render_markdown(content: str) -> list[SlideFragment]:
    """Split markdown into slides.

    `---` separates horizontal slides, `-v-` vertical ones, and a trailing
    `Note:` block holds speaker notes.
    """
    content = content.replace("\r\n", "\n")
    content = FRONT_MATTER_RE.sub("", content, count=1)

    fragments = []
    for slide in SLIDE_SEPARATOR_RE.split(content):
        verticals = VERTICAL_SEPARATOR_RE.split(slide)
        if len(verticals) > 1:
            fragments.append(SlideFragment(children=[_markdown_slide(v) for v in verticals]))
        else:
            fragments.append(_markdown_slide(slide))
    return fragments


def render_presentation(presentation_type: PresentationType, content: Any) -> list[SlideFragment]:
    """Render stored content of either presentation type."""
    if presentation_type == PresentationType.MARKDOWN:
        if not isinstance(content, str):
            return [error_fragment("Markdown presentation has no text content.")]
        return render_markdown(content)
    return render_document(content)


# =============================================================================
# NOTES INDEX
# =============================================================================

def extract_notes(fragments: list[SlideFragment]) -> list[NoteEntry]:
    """Flatten notes to one entry per addressable (indexh, indexv) position."""
    notes = []
    for indexh, fragment in enumerate(fragments):
        if fragment.children:
            for indexv, child in enumerate(fragment.children):
                notes.append(NoteEntry(indexh=indexh, indexv=indexv, text=child.notes))
        else:
            notes.append(NoteEntry(indexh=indexh, indexv=0, text=fragment.notes))
    return notes


def count_slides(fragments: list[SlideFragment]) -> int:
    """Number of addressable slide positions."""
    return sum(len(fragment.children) or 1 for fragment in fragments)
