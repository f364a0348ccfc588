import asyncio
import json
import uuid
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Union

from pydantic import BaseModel

from logging_config import get_logger
from models import utcnow
from schemas.events import SystemEvent

logger = get_logger(__name__)

Event = Union[BaseModel, dict]


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class Connection:
    """A live real-time channel bound to one (room, user) pair.

    `websocket` is anything exposing async accept/send_text/close (a Starlette
    WebSocket in production). Sends are serialized per connection so frames
    arrive in publish order.
    """

    def __init__(self, websocket: Any, room_id: str, user_id: str, connection_id: Optional[str] = None):
        self.websocket = websocket
        self.room_id = room_id
        self.user_id = user_id
        self.connection_id = connection_id or str(uuid.uuid4())
        self.state = ConnectionState.CONNECTING
        self._send_lock = asyncio.Lock()
        self._close_callbacks: List[Callable[["Connection"], None]] = []

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    def on_close(self, callback: Callable[["Connection"], None]) -> None:
        self._close_callbacks.append(callback)

    async def accept(self) -> None:
        if self.state != ConnectionState.CONNECTING:
            return
        await self.websocket.accept()
        self.state = ConnectionState.OPEN
        logger.debug(f"Connection {self.connection_id} open for user {self.user_id} in room {self.room_id}")

    async def send_text(self, text: str) -> bool:
        if not self.is_open:
            return False
        async with self._send_lock:
            if not self.is_open:
                return False
            try:
                await self.websocket.send_text(text)
                return True
            except Exception as e:
                logger.warning(f"Send to connection {self.connection_id} in room {self.room_id} failed: {e}")
                self.mark_closed()
                return False

    def mark_closed(self) -> None:
        """Transition to CLOSED; close callbacks (unsubscription) run synchronously."""
        if self.state == ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED
        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            try:
                callback(self)
            except Exception as e:
                logger.error(f"Close callback failed for connection {self.connection_id}: {e}", exc_info=True)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        was_open = self.state != ConnectionState.CLOSED
        self.mark_closed()
        if not was_open:
            return
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception as e:
            logger.debug(f"Error closing WebSocket {self.connection_id}: {e}")


def encode_event(event: Event) -> str:
    if isinstance(event, BaseModel):
        return json.dumps(event.model_dump(mode="json", by_alias=True, exclude_none=True))
    return json.dumps(event)


class BroadcastFabric:
    """Per-room sets of live connections and best-effort fan-out to them."""

    def __init__(self):
        self._rooms: Dict[str, Set[Connection]] = {}

    def subscribe(self, room_id: str, connection: Connection) -> None:
        self._rooms.setdefault(room_id, set()).add(connection)
        connection.on_close(lambda conn: self.unsubscribe(room_id, conn))
        logger.debug(f"Subscribed connection {connection.connection_id} to room {room_id} "
                     f"(local connections: {len(self._rooms[room_id])})")

    def unsubscribe(self, room_id: str, connection: Connection) -> None:
        connections = self._rooms.get(room_id)
        if not connections:
            return
        connections.discard(connection)
        if not connections:
            del self._rooms[room_id]
            logger.debug(f"No more connections in room {room_id}, dropped its connection set")

    def connections(self, room_id: str) -> List[Connection]:
        return list(self._rooms.get(room_id, ()))

    def room_ids(self) -> List[str]:
        return list(self._rooms)

    def connection_count(self, room_id: Optional[str] = None) -> int:
        if room_id is not None:
            return len(self._rooms.get(room_id, ()))
        return sum(len(conns) for conns in self._rooms.values())

    async def _deliver(self, targets: List[Connection], text: str) -> int:
        if not targets:
            return 0
        results = await asyncio.gather(*(conn.send_text(text) for conn in targets), return_exceptions=True)
        return sum(1 for result in results if result is True)

    async def publish(self, room_id: str, event: Event, exclude_user: Optional[str] = None) -> int:
        """Deliver `event` to every open connection in the room, skipping `exclude_user`'s own.

        Returns the number of connections the frame was written to.
        """
        text = encode_event(event)
        targets = [
            conn for conn in self.connections(room_id)
            if conn.is_open and (exclude_user is None or conn.user_id != exclude_user)
        ]
        delivered = await self._deliver(targets, text)
        logger.debug(f"Published frame to {delivered}/{len(targets)} connections in room {room_id}")
        return delivered

    async def relay(self, room_id: str, raw: str, sender: Connection) -> int:
        """Forward a client frame verbatim to the other connections in the room."""
        targets = [conn for conn in self.connections(room_id) if conn is not sender and conn.is_open]
        return await self._deliver(targets, raw)

    async def close_room(self, room_id: str, reason: str, code: int = 1000) -> int:
        connections = self.connections(room_id)
        if not connections:
            return 0
        notice = SystemEvent(message=reason, room_id=room_id, timestamp=utcnow())
        await self.publish(room_id, notice)
        for conn in connections:
            await conn.close(code=code, reason=reason)
        self._rooms.pop(room_id, None)
        logger.info(f"Closed {len(connections)} connections in room {room_id}: {reason}")
        return len(connections)

    async def close_user(self, room_id: str, user_id: str, reason: str, code: int = 1000) -> int:
        """Notify and close every connection `user_id` holds in the room."""
        connections = [conn for conn in self.connections(room_id) if conn.user_id == user_id]
        if not connections:
            return 0
        text = encode_event(SystemEvent(message=reason, room_id=room_id, timestamp=utcnow()))
        await self._deliver([conn for conn in connections if conn.is_open], text)
        for conn in connections:
            await conn.close(code=code, reason=reason)
        logger.info(f"Closed {len(connections)} connections of user {user_id} in room {room_id}: {reason}")
        return len(connections)

    async def close_all(self,reason: str = "Server shutting down") -> None:
        for room_id in self.room_ids():
            try:
                await self.close_room(room_id, reason, code=1001)
            except Exception as e:
                logger.error(f"Error closing connections for room {room_id}: {e}", exc_info=True)
