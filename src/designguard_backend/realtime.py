import asyncio
import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Set

from .config import Config
from .errors import RecipientOffline

logger = logging.getLogger(__name__)


def user_channel(user_id: int) -> str:
    return f"user_{user_id}"


def room_channel(vepari_id: int, factory_id: int) -> str:
    return f"room_{vepari_id}_{factory_id}"


class Connection:
    """One live client socket bound to an authenticated user."""

    def __init__(self, websocket, user_id: int, email: str, role: str):
        self.sid = uuid.uuid4().hex
        self.websocket = websocket
        self.user_id = user_id
        self.email = email
        self.role = role
        # most recent join_room wins for message attribution
        self.room_id: Optional[int] = None
        self.room_channel: Optional[str] = None

    async def send(self, event: str, data: Dict[str, Any]):
        msg = json.dumps({"event": event, "data": data}, default=str)
        await self.websocket.send_text(msg)

    def __repr__(self):
        return f"<Connection {self.sid} user={self.user_id}>"


class SessionRegistry:
    """Process-wide map of channels to live connections.

    Built once by the application factory and handed to the chat relay and the
    notification service. Nothing here is persisted.
    """

    def __init__(self, send_timeout: float = Config.WS_SEND_TIMEOUT):
        self.send_timeout = send_timeout
        self.channels: Dict[str, Set[Connection]] = {}
        self.memberships: Dict[Connection, Set[str]] = {}

    def register(self, conn: Connection):
        self.memberships.setdefault(conn, set())
        self.join(conn, user_channel(conn.user_id))

    def join(self, conn: Connection, channel: str):
        self.channels.setdefault(channel, set()).add(conn)
        self.memberships.setdefault(conn, set()).add(channel)

    def channels_of(self, conn: Connection) -> Set[str]:
        return set(self.memberships.get(conn, set()))

    def unregister(self, conn: Connection):
        for channel in self.memberships.pop(conn, set()):
            members = self.channels.get(channel)
            if members is None:
                continue
            members.discard(conn)
            if not members:
                del self.channels[channel]

    def connections(self, channel: str) -> List[Connection]:
        return list(self.channels.get(channel, set()))

    def is_online(self, user_id: int) -> bool:
        return bool(self.channels.get(user_channel(user_id)))

    async def _deliver(self, conn: Connection, event: str, data: Dict[str, Any]) -> bool:
        try:
            await asyncio.wait_for(conn.send(event, data), timeout=self.send_timeout)
            return True
        except Exception as e:
            logger.warning("Dropping %r after failed '%s' send: %s", conn, event, e)
            self.unregister(conn)
            return False

    async def emit(self, channel: str, event: str, data: Dict[str, Any], skip: Optional[Connection] = None) -> int:
        """Send to every connection on the channel; returns the delivered count."""
        targets = [conn for conn in self.connections(channel) if conn is not skip]
        results = await asyncio.gather(*(self._deliver(conn, event, data) for conn in targets))
        return sum(1 for ok in results if ok)

    async def emit_to_user(self, user_id: int, event: str, data: Dict[str, Any]) -> int:
        channel = user_channel(user_id)
        if not self.channels.get(channel):
            raise RecipientOffline(f"User {user_id} is not connected")
        delivered = await self.emit(channel, event, data)
        if not delivered:
            raise RecipientOffline(f"User {user_id} is not connected")
        return delivered
