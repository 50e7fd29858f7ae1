"""
Pytest Configuration and Fixtures
"""

import copy
import os
import tempfile

# Keep the app's default store out of the source tree
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="deck-presenter-"))

import pytest

from store import PresentationStore


SAMPLE_DECK = {
    "meta": {
        "title": "Quarterly <Review>",
        "author": "Ops",
        "created": "2025-01-15",
        "palette": "default",
    },
    "scenes": [
        {
            "id": "intro",
            "mood": "dramatic",
            "layout": "center",
            "beats": [
                {"block": "title", "text": "Quarterly Review", "enter": "fade"},
                {"block": "subtitle", "text": "Q4 & beyond", "enter": "rise"},
            ],
            "notes": "Welcome everyone",
        },
        {
            "id": "numbers",
            "mood": "energetic",
            "layout": "split",
            "beats": [
                {"block": "heading", "text": "Numbers", "enter": "fade"},
                {"block": "metric", "value": "42%", "label": "Growth", "enter": "zoom"},
                {
                    "block": "list",
                    "items": ["Revenue", "Margin", "Churn"],
                    "reveal": "one-by-one",
                    "enter": "rise",
                },
            ],
            "notes": "Pause after growth",
        },
        {
            "id": "outro",
            "mood": "calm",
            "layout": "center",
            "beats": [
                {"block": "quote", "text": "Ship it", "attribution": "Everyone", "enter": "fade"},
            ],
            "notes": "",
        },
    ],
}

SAMPLE_MARKDOWN = """---
title: Talk
---
# Hello

Note:
Say hi
---
## Part one
-v-
## Part one, detail
Note:
Go deep
---
## End
"""


@pytest.fixture
def sample_deck() -> dict:
    """Three-scene deck, fresh copy per test."""
    return copy.deepcopy(SAMPLE_DECK)


@pytest.fixture
def sample_markdown() -> str:
    return SAMPLE_MARKDOWN


@pytest.fixture
def store(tmp_path) -> PresentationStore:
    """Empty store in a temporary directory."""
    return PresentationStore(
        presentations_dir=tmp_path / "presentations",
        db_path=tmp_path / "presentations.db",
    )


@pytest.fixture
def seeded_store(store, sample_deck, sample_markdown) -> PresentationStore:
    store.save("Quarterly Review", "quarterly", "deck", sample_deck)
    store.save("Talk", "talk", "markdown", sample_markdown)
    return store
