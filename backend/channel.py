"""
Sync channel for presentation navigation.

The relay owns the navigation state machine and fans events out to every
connected viewer. Each connection has its own outbox queue, so delivery is
FIFO per connection and a slow client never holds up the others.

Wire format: {"event": <name>, "payload": <object or string>}
"""

import asyncio
import itertools
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from fastapi import WebSocket, WebSocketDisconnect

from errors import NotAuthorized, PresentationError, TransportUnavailable
from models import parse_notes
from state import DIRECTIONS, NavigationStateMachine

logger = logging.getLogger(__name__)

# Event names
STATE_UPDATE = "state-update"
SLIDE_CHANGED = "slide-changed"
NAVIGATE = "navigate"
NAVIGATE_TO = "navigate-to"
PRESENTATION_LOADED = "presentation-loaded"
REQUEST_STATE = "request-state"
ROLE_ASSIGNED = "role-assigned"
ERROR = "error"


class Role(Enum):
    """Viewer roles. Only the presenter may change navigation state."""
    PRESENTER = "presenter"
    AUDIENCE = "audience"
    REMOTE = "remote"
    VIEWER = "viewer"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        try:
            return cls(value)
        except ValueError:
            return cls.VIEWER


@dataclass
class Message:
    """One event on the wire."""
    event: str
    payload: Any = None

    def to_dict(self) -> dict:
        return {"event": self.event, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: Any) -> "Message":
        if not isinstance(data, dict) or not isinstance(data.get("event"), str):
            raise ValueError("Message must be an object with an 'event' name")
        return cls(event=data["event"], payload=data.get("payload"))


def _direction(payload: Any) -> str:
    direction = payload.get("direction") if isinstance(payload, dict) else payload
    if direction not in DIRECTIONS:
        raise ValueError(f"Invalid direction: {direction!r}")
    return direction


def _position(payload: Any) -> tuple[int, int]:
    if not isinstance(payload, dict) or "indexh" not in payload:
        raise ValueError("Position payload needs indexh")
    try:
        return int(payload["indexh"]), int(payload.get("indexv") or 0)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"Invalid position: {payload!r}") from None


# =============================================================================
# RELAY (server side)
# =============================================================================

class Connection:
    """A client connected to the relay."""

    _ids = itertools.count(1)

    def __init__(self, role: Role):
        self.id = f"conn-{next(self._ids)}"
        self.role = role
        self.outbox: asyncio.Queue = asyncio.Queue()
        self.connected = True

    def deliver(self, event: str, payload: Any = None):
        """Queue a message for this client. Closed connections drop it."""
        if self.connected:
            self.outbox.put_nowait(Message(event, payload))

    def close(self):
        if self.connected:
            self.connected = False
            self.outbox.put_nowait(None)

    def __repr__(self):
        return f"Connection({self.id}, {self.role.value})"


class SyncRelay:
    """Serializes events from all connections against one state machine."""

    def __init__(self, machine: Optional[NavigationStateMachine] = None):
        self.machine = machine or NavigationStateMachine()
        self.connections: dict[str, Connection] = {}
        self.presenter_id: Optional[str] = None
        self._lock = asyncio.Lock()
        self._handlers: dict[str, Callable[[Connection, Any], None]] = {
            REQUEST_STATE: self._on_request_state,
            NAVIGATE: self._on_navigate,
            NAVIGATE_TO: self._on_navigate_to,
            SLIDE_CHANGED: self._on_slide_changed,
            PRESENTATION_LOADED: self._on_presentation_loaded,
        }

    @property
    def presenter(self) -> Optional[Connection]:
        return self.connections.get(self.presenter_id) if self.presenter_id else None

    async def connect(self, role: Any = Role.VIEWER) -> Connection:
        """Register a client and send it the current snapshot.

        The first client asking for the presenter role gets it; later
        claimants join as audience.
        """
        role = role if isinstance(role, Role) else Role.parse(role)
        async with self._lock:
            if role == Role.PRESENTER and self.presenter_id is not None:
                logger.warning(f"Presenter already connected ({self.presenter_id}); joining as audience")
                role = Role.AUDIENCE
            connection = Connection(role)
            self.connections[connection.id] = connection
            if role == Role.PRESENTER:
                self.presenter_id = connection.id

            connection.deliver(ROLE_ASSIGNED, {"connectionId": connection.id, "role": role.value})
            connection.deliver(STATE_UPDATE, self.machine.snapshot())

        logger.info(f"Client connected: {connection}")
        return connection

    async def disconnect(self, connection: Connection):
        async with self._lock:
            self.connections.pop(connection.id, None)
            if self.presenter_id == connection.id:
                self.presenter_id = None
                logger.info("Presenter disconnected; authority released")
            connection.close()
        logger.info(f"Client disconnected: {connection}")

    async def close_all(self):
        async with self._lock:
            for connection in self.connections.values():
                connection.close()
            self.connections.clear()
            self.presenter_id = None

    async def handle(self, connection: Connection, event: str, payload: Any = None):
        """Apply one event from a connection."""
        async with self._lock:
            handler = self._handlers.get(event)
            if handler is None:
                connection.deliver(ERROR, {"event": event, "error": f"Unknown event: {event}"})
                return
            try:
                handler(connection, payload)
            except (PresentationError, ValueError, TypeError) as e:
                logger.warning(f"Rejected {event} from {connection}: {e}")
                connection.deliver(ERROR, {"event": event, "error": str(e)})

    def _broadcast(self, event: str, payload: Any, exclude: Optional[Connection] = None):
        for connection in self.connections.values():
            if connection is not exclude:
                connection.deliver(event, payload)

    def _has_authority(self, connection: Connection) -> bool:
        return self.presenter_id is None or connection.id == self.presenter_id

    def _require_authority(self, connection: Connection):
        if not self._has_authority(connection):
            raise NotAuthorized("Only the presenter can change the slide")

    # Handlers, one per event type

    def _on_request_state(self, connection: Connection, payload: Any):
        connection.deliver(STATE_UPDATE, self.machine.snapshot())

    def _on_navigate(self, connection: Connection, payload: Any):
        direction = _direction(payload)
        presenter = self.presenter
        if presenter is not None and presenter is not connection:
            presenter.deliver(NAVIGATE, {"direction": direction})
            return
        # No presenter to ask: the relay moves itself
        self.machine.navigate(direction)
        self._broadcast(SLIDE_CHANGED, self.machine.snapshot())

    def _on_navigate_to(self, connection: Connection, payload: Any):
        indexh, indexv = _position(payload)
        presenter = self.presenter
        if presenter is not None and presenter is not connection:
            presenter.deliver(NAVIGATE_TO, {"indexh": indexh, "indexv": indexv})
            return
        indexh, indexv = self.machine.navigate_to(indexh, indexv)
        self._broadcast(
            NAVIGATE_TO,
            {"indexh": indexh, "indexv": indexv},
            exclude=connection if presenter is connection else None,
        )

    def _on_slide_changed(self, connection: Connection, payload: Any):
        self._require_authority(connection)
        indexh, indexv = _position(payload)
        self.machine.navigate_to(indexh, indexv)
        self._broadcast(SLIDE_CHANGED, self.machine.snapshot(), exclude=connection)

    def _on_presentation_loaded(self, connection: Connection, payload: Any):
        self._require_authority(connection)
        presentation = payload.get("presentation") if isinstance(payload, dict) else None
        if not isinstance(presentation, str) or not presentation:
            raise ValueError("presentation-loaded needs a presentation")
        notes = parse_notes(payload.get("notes"))
        state = self.machine.load(presentation, payload.get("totalSlides"), notes)
        self._broadcast(
            PRESENTATION_LOADED,
            {
                "presentation": state.presentation,
                "totalSlides": state.total_slides,
                "notes": [n.to_dict() for n in state.notes],
            },
            exclude=connection,
        )
        self._broadcast(STATE_UPDATE, self.machine.snapshot(), exclude=connection)


# =============================================================================
# CLIENT SIDE
# =============================================================================

Handler = Callable[[Any], Awaitable[None]]
ConnectionListener = Callable[[bool], Awaitable[None]]


class SyncChannel(ABC):
    """Client end of the channel: publish, subscribe and connectivity."""

    def __init__(self):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._connection_listeners: list[ConnectionListener] = []
        self.connected = False

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        """Register a handler; returns a function that removes it."""
        self._handlers[event].append(handler)
        return lambda: self._handlers[event].remove(handler)

    def on_connection_change(self, listener: ConnectionListener):
        self._connection_listeners.append(listener)

    async def _set_connected(self, connected: bool):
        if connected == self.connected:
            return
        self.connected = connected
        for listener in list(self._connection_listeners):
            await listener(connected)

    async def publish(self, event: str, payload: Any = None):
        if not self.connected:
            raise TransportUnavailable(f"Cannot publish {event}: channel disconnected")
        await self._send(Message(event, payload))

    @abstractmethod
    async def _send(self, message: Message):
        """Deliver one message to the relay."""

    async def dispatch(self, message: Message):
        """Hand an incoming message to its subscribers, in registration order."""
        for handler in list(self._handlers.get(message.event, [])):
            await handler(message.payload)


class LocalChannel(SyncChannel):
    """Channel bound to a relay running in the same process."""

    def __init__(self, relay: SyncRelay, role: Any = Role.VIEWER):
        super().__init__()
        self.relay = relay
        self.role = role
        self.connection: Optional[Connection] = None

    async def connect(self):
        self.connection = await self.relay.connect(self.role)
        await self._set_connected(True)

    async def disconnect(self):
        if self.connection is not None:
            await self.relay.disconnect(self.connection)
        await self._set_connected(False)

    async def _send(self, message: Message):
        await self.relay.handle(self.connection, message.event, message.payload)

    async def pump(self) -> int:
        """Dispatch everything already queued for this client. Returns the count."""
        count = 0
        while self.connection is not None and not self.connection.outbox.empty():
            message = self.connection.outbox.get_nowait()
            if message is None:
                break
            await self.dispatch(message)
            count += 1
        return count


# =============================================================================
# WEBSOCKET BINDING
# =============================================================================

async def serve_websocket(relay: SyncRelay, websocket: WebSocket, role: str):
    """Run one websocket client against the relay until it disconnects."""
    await websocket.accept()
    connection = await relay.connect(role)

    async def sender():
        while True:
            message = await connection.outbox.get()
            if message is None:
                break
            await websocket.send_json(message.to_dict())

    sender_task = asyncio.create_task(sender())
    try:
        while True:
            try:
                message = Message.from_dict(await websocket.receive_json())
            except ValueError as e:
                connection.deliver(ERROR, {"error": str(e)})
                continue
            await relay.handle(connection, message.event, message.payload)
    except WebSocketDisconnect:
        pass
    finally:
        await relay.disconnect(connection)
        sender_task.cancel()
        try:
            await sender_task
        except (asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            pass
