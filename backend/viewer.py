"""
Viewer reconciliation.

The same reconciler runs in every viewer role. It keeps a local copy of
the navigation state and drives a slide surface from incoming snapshots
and events. Only the presenter turns direction requests into positions;
remotes only emit requests.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

import channel
from channel import Role, SyncChannel
from errors import MalformedDocument, NotFound, PresentationError, TransportUnavailable
from models import NavigationState, PresentationRecord, parse_notes, parse_slide_count
from renderer import (
    SlideFragment,
    count_slides,
    error_fragment,
    extract_notes,
    render_presentation,
)
from state import NavigationStateMachine

logger = logging.getLogger(__name__)

Fetch = Callable[[str], Awaitable[PresentationRecord]]
Publish = Callable[[str, Any], Awaitable[None]]


class SlideSurface(Protocol):
    """Anything that can show rendered slides (a reveal.js page, a test double)."""

    def load(self, fragments: list[SlideFragment]) -> None:
        ...

    def slide(self, indexh: int, indexv: int) -> None:
        ...


class RecordingSurface:
    """In-memory surface that remembers what it was asked to show."""

    def __init__(self):
        self.fragments: list[SlideFragment] = []
        self.position: Optional[tuple[int, int]] = None
        self.calls: list[tuple] = []

    def load(self, fragments: list[SlideFragment]) -> None:
        self.fragments = fragments
        self.position = None
        self.calls.append(("load", len(fragments)))

    def slide(self, indexh: int, indexv: int) -> None:
        self.position = (indexh, indexv)
        self.calls.append(("slide", indexh, indexv))


class ViewerReconciler:
    """Applies sync channel traffic to one viewer's surface."""

    def __init__(
        self,
        role: Any,
        surface: SlideSurface,
        fetch: Fetch,
        publish: Optional[Publish] = None,
    ):
        self.role = role if isinstance(role, Role) else Role.parse(role)
        self.surface = surface
        self.fetch = fetch
        self.machine = NavigationStateMachine()
        self.loaded_presentation: Optional[str] = None
        self.connected = False
        self._publish = publish
        self._lock = asyncio.Lock()
        self._handlers = {
            channel.STATE_UPDATE: self._on_state_update,
            channel.PRESENTATION_LOADED: self._on_presentation_loaded,
            channel.SLIDE_CHANGED: self._on_slide_changed,
            channel.NAVIGATE_TO: self._on_navigate_to,
            channel.NAVIGATE: self._on_navigate,
            channel.ROLE_ASSIGNED: self._on_role_assigned,
            channel.ERROR: self._on_error,
        }

    @property
    def position(self) -> tuple[int, int]:
        return self.machine.state.indexh, self.machine.state.indexv

    @property
    def current_note(self) -> str:
        return self.machine.current_note()

    def bind(self, sync_channel: SyncChannel):
        """Subscribe to every event this reconciler understands."""
        for event in self._handlers:
            sync_channel.subscribe(event, self._subscriber(event))
        sync_channel.on_connection_change(self._on_connection_change)
        self._publish = sync_channel.publish
        self.connected = sync_channel.connected

    def _subscriber(self, event: str):
        async def handler(payload):
            await self.handle(event, payload)
        return handler

    async def handle(self, event: str, payload: Any):
        """Process one incoming message.

        Messages are applied strictly in arrival order: a reload started by
        one message finishes before the next message is looked at.
        """
        handler = self._handlers.get(event)
        if handler is None:
            logger.debug(f"Ignoring {event}")
            return
        async with self._lock:
            try:
                await handler(payload)
            except (PresentationError, ValueError, TypeError) as e:
                logger.warning(f"Rejected {event}: {e}")

    async def _on_connection_change(self, connected: bool):
        was_connected, self.connected = self.connected, connected
        if connected and not was_connected:
            logger.info(f"{self.role.value} connected")
        elif not connected:
            # Keep the local position; a fresh snapshot arrives on reconnect
            logger.warning(f"{self.role.value} disconnected")

    # Loading

    async def _load(self, filename: str) -> list[SlideFragment]:
        try:
            record = await self.fetch(filename)
            fragments = render_presentation(record.type, record.content)
        except NotFound as e:
            logger.warning(str(e))
            fragments = [error_fragment(str(e))]
        except MalformedDocument as e:
            logger.warning(f"Cannot render {filename}: {e}")
            fragments = [error_fragment(str(e))]
        self.surface.load(fragments)
        self.loaded_presentation = filename
        return fragments

    def _show(self):
        self.surface.slide(*self.position)

    # Handlers

    async def _on_state_update(self, payload: dict):
        presentation = payload.get("presentation")
        if self.role == Role.PRESENTER and presentation and presentation == self.loaded_presentation:
            # The presenter is ahead of any snapshot of its own presentation
            return
        snapshot = NavigationState.from_dict(payload)
        if presentation and presentation != self.loaded_presentation:
            await self._load(presentation)
        self.machine.apply_snapshot(snapshot.to_dict())
        if self.loaded_presentation:
            self._show()

    async def _on_presentation_loaded(self, payload: dict):
        presentation = payload.get("presentation")
        if not presentation:
            return
        notes = parse_notes(payload.get("notes"))
        total = parse_slide_count(payload.get("totalSlides"))
        await self._load(presentation)
        self.machine.load(presentation, total, notes)
        self._show()

    async def _on_slide_changed(self, payload: dict):
        self._apply_position(payload)

    async def _on_navigate_to(self, payload: dict):
        if self.role == Role.PRESENTER:
            # A forwarded jump request: clamp it and announce the result
            if self.machine.is_loaded:
                self.machine.navigate_to(payload.get("indexh", 0), payload.get("indexv", 0))
                self._show()
                await self._announce_position()
            return
        self._apply_position(payload)

    async def _on_navigate(self, payload: Any):
        if self.role != Role.PRESENTER:
            return
        direction = payload.get("direction") if isinstance(payload, dict) else payload
        if not self.machine.is_loaded:
            logger.warning(f"Ignoring navigate {direction}: nothing loaded")
            return
        self.machine.navigate(direction)
        self._show()
        await self._announce_position()

    async def _on_role_assigned(self, payload: dict):
        role = Role.parse(payload.get("role"))
        if role != self.role:
            logger.warning(f"Role changed by relay: {self.role.value} -> {role.value}")
        self.role = role

    async def _on_error(self, payload: Any):
        logger.warning(f"Relay error: {payload}")

    def _apply_position(self, payload: dict):
        """Set the position exactly as received."""
        self.machine.state.indexh = int(payload.get("indexh") or 0)
        self.machine.state.indexv = int(payload.get("indexv") or 0)
        if self.loaded_presentation:
            self._show()

    async def _announce_position(self) -> bool:
        indexh, indexv = self.position
        return await self._send(channel.SLIDE_CHANGED, {"indexh": indexh, "indexv": indexv})

    async def _send(self, event: str, payload: Any) -> bool:
        if self._publish is None:
            logger.warning(f"No channel bound; dropping {event}")
            return False
        try:
            await self._publish(event, payload)
            return True
        except TransportUnavailable as e:
            logger.warning(str(e))
            return False

    # Local input

    async def open(self, filename: str) -> bool:
        """Presenter: load a presentation and tell every viewer about it."""
        async with self._lock:
            fragments = await self._load(filename)
            notes = extract_notes(fragments)
            self.machine.load(filename, count_slides(fragments), notes)
            self._show()
            return await self._send(
                channel.PRESENTATION_LOADED,
                {
                    "presentation": filename,
                    "totalSlides": self.machine.state.total_slides,
                    "notes": [n.to_dict() for n in notes],
                },
            )

    async def request(self, direction: str) -> bool:
        """Handle a next/prev/up/down input.

        The presenter moves and announces the new position; every other role
        only sends a navigate request and waits for the resulting event.
        """
        if self.role != Role.PRESENTER:
            return await self._send(channel.NAVIGATE, {"direction": direction})
        async with self._lock:
            self.machine.navigate(direction)
            self._show()
            return await self._announce_position()

    async def jump(self, indexh: int, indexv: int = 0) -> bool:
        """Go to an absolute position (presenter) or ask for it (others)."""
        if self.role != Role.PRESENTER:
            return await self._send(channel.NAVIGATE_TO, {"indexh": indexh, "indexv": indexv})
        async with self._lock:
            self.machine.navigate_to(indexh, indexv)
            self._show()
            return await self._announce_position()

    async def resync(self) -> bool:
        """Ask the relay for a fresh snapshot."""
        return await self._send(channel.REQUEST_STATE, None)
