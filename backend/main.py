"""
Deck Presenter Backend - FastAPI Server

This server provides endpoints for:
- Presentation storage (.deck and markdown presentations)
- Rendering decks to reveal.js slides and builder previews
- Deck, scene and beat templates for the builder
- A websocket sync channel that keeps presenter, audience and remote in step
"""

import asyncio
import socket
import logging
from datetime import datetime
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

import config
from builder import create_beat, create_empty, create_scene, slugify_title
from channel import SyncRelay, serve_websocket
from errors import MalformedDocument, NotFound
from models import Deck, PresentationType, Scene
from renderer import (
    count_slides,
    extract_notes,
    render_html,
    render_presentation,
    render_preview,
    render_scene_preview,
)
from state import NavigationStateMachine
from store import PresentationStore

# Configure logging
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

# One store and one relay per process; the relay's state is not persisted
store = PresentationStore()
relay = SyncRelay(NavigationStateMachine())


def get_store() -> PresentationStore:
    return store


def get_relay() -> SyncRelay:
    return relay


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown tasks."""
    # Startup
    logger.info("Starting deck presenter backend...")
    added = await asyncio.to_thread(store.sync_from_disk)
    logger.info(f"Presentations directory: {store.presentations_dir} ({added} new files)")

    yield

    # Shutdown
    logger.info("Shutting down deck presenter backend...")
    await relay.close_all()


# Create FastAPI app
app = FastAPI(
    title="Deck Presenter API",
    description="Synchronized presentation playback and deck authoring API",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class SavePresentationRequest(BaseModel):
    """Body of POST /api/presentations."""
    content: Any = None
    deck: Optional[dict] = None  # Builder shorthand for a deck
    filename: Optional[str] = None
    name: Optional[str] = None
    type: PresentationType = PresentationType.DECK


class PreviewRequest(BaseModel):
    scene: dict


def get_local_ip() -> str:
    """Best guess at the LAN address other devices can reach."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("10.255.255.255", 1))
            return s.getsockname()[0]
    except OSError:
        return "localhost"


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@app.get("/api/info")
async def server_info():
    """Addresses of the viewer pages on this machine."""
    ip = get_local_ip()
    base = f"http://{ip}:{config.PORT}"
    return {
        "ip": ip,
        "port": config.PORT,
        "remoteUrl": f"{base}/remote.html",
        "audienceUrl": f"{base}/audience.html",
        "presenterUrl": f"http://localhost:{config.PORT}/presenter.html",
    }


@app.get("/api/state")
async def get_state(relay: SyncRelay = Depends(get_relay)):
    """Current navigation snapshot."""
    return relay.machine.snapshot()


@app.get("/api/presentations")
async def list_presentations(store: PresentationStore = Depends(get_store)):
    """List presentations, newest first."""
    records = await store.alist()
    return [record.to_dict(include_content=False) for record in records]


@app.get("/api/presentations/{filename}")
async def get_presentation(filename: str, store: PresentationStore = Depends(get_store)):
    """Get a presentation including its content."""
    try:
        record = await store.aget(filename)
    except NotFound:
        raise HTTPException(status_code=404, detail="Not found")
    except MalformedDocument as e:
        raise HTTPException(status_code=400, detail=str(e))
    return record.to_dict()


@app.post("/api/presentations")
async def save_presentation(
    request: SavePresentationRequest,
    store: PresentationStore = Depends(get_store),
):
    """Create or overwrite a presentation by filename."""
    content = request.deck if request.deck is not None else request.content
    if content is None:
        raise HTTPException(status_code=400, detail="Missing presentation content")

    name = request.name
    if not name and isinstance(content, dict):
        name = (content.get("meta") or {}).get("title")
    name = name or "Untitled"
    filename = request.filename or slugify_title(name)

    try:
        record = await store.asave(name, filename, request.type, content)
    except MalformedDocument as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"success": True, "file": record.filename, **record.to_dict(include_content=False)}


@app.delete("/api/presentations/{filename}")
async def delete_presentation(filename: str, store: PresentationStore = Depends(get_store)):
    """Delete a presentation."""
    try:
        await store.adelete(filename)
    except NotFound:
        raise HTTPException(status_code=404, detail="Not found")
    return {"success": True}


@app.get("/api/presentations/{filename}/slides")
async def get_slides(
    filename: str,
    preview: bool = False,
    store: PresentationStore = Depends(get_store),
):
    """Rendered slides, notes index and slide count for a presentation."""
    try:
        record = await store.aget(filename)
    except NotFound:
        raise HTTPException(status_code=404, detail="Not found")
    except MalformedDocument as e:
        raise HTTPException(status_code=400, detail=str(e))

    if preview and record.type == PresentationType.DECK:
        try:
            fragments = render_preview(Deck.from_dict(record.content))
        except MalformedDocument as e:
            raise HTTPException(status_code=400, detail=str(e))
    else:
        fragments = render_presentation(record.type, record.content)

    return {
        "presentation": record.filename,
        "type": record.type.value,
        "slides": [fragment.to_dict() for fragment in fragments],
        "html": render_html(fragments),
        "notes": [note.to_dict() for note in extract_notes(fragments)],
        "totalSlides": count_slides(fragments),
    }


@app.post("/api/preview")
async def preview_scene(request: PreviewRequest):
    """Builder live preview of one scene, every beat visible."""
    try:
        scene = Scene.from_dict(request.scene)
    except MalformedDocument as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"html": render_scene_preview(scene)}


@app.get("/api/templates/deck")
async def deck_template(title: str = "Untitled"):
    return create_empty(title).to_dict()


@app.get("/api/templates/scene")
async def scene_template(scene_id: str = ""):
    return create_scene(scene_id).to_dict()


@app.get("/api/templates/beat/{kind}")
async def beat_template(kind: str):
    return create_beat(kind).to_dict()


@app.websocket("/ws")
async def sync_websocket(
    websocket: WebSocket,
    role: str = Query("viewer"),
    relay: SyncRelay = Depends(get_relay),
):
    """Sync channel endpoint. Connect with ?role=presenter|audience|remote."""
    await serve_websocket(relay, websocket, role)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
