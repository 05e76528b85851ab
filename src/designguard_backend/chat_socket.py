"""Real-time chat relay over a FastAPI WebSocket.

Frames in both directions are JSON envelopes ``{"event": ..., "data": {...}}``.
A connection authenticates at handshake, joins its private ``user_<id>``
channel, and may then join chat rooms, send messages, and emit typing and
read-receipt signals. Each connection's frames are handled one at a time;
different connections interleave at database calls, which run in the thread
pool.
"""
import json
import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select

from .auth_helper import strip_bearer, verify_token
from .errors import (AuthenticationError, AuthorizationError, DesignGuardError, PersistenceError,
                     ValidationError)
from .logger import log_chat_event
from .marketplace import chat_flow
from .marketplace.database import Database, utcnow
from .marketplace.models import User
from .realtime import Connection, SessionRegistry, room_channel

logger = logging.getLogger(__name__)

router = APIRouter()

WS_4401_UNAUTHORIZED = 4401

FAILURE_MESSAGES = {
    "join_room": "Failed to join room",
    "send_message": "Failed to send message",
    "mark_messages_read": "Failed to mark messages as read",
}

# advisory signals: failures are logged, never reported back
ADVISORY_EVENTS = {"typing", "stop_typing", "chat_cleared"}


class ChatRelay:

    def __init__(self, database: Database, registry: SessionRegistry):
        self.database = database
        self.registry = registry
        self.handlers = {
            "join_room": self.on_join_room,
            "send_message": self.on_send_message,
            "typing": self.on_typing,
            "stop_typing": self.on_stop_typing,
            "chat_cleared": self.on_chat_cleared,
            "mark_messages_read": self.on_mark_messages_read,
        }

    # ------------------------- connection lifecycle -------------------------
    async def authenticate(self, websocket: WebSocket) -> Connection:
        token = websocket.query_params.get("token") or websocket.headers.get("authorization")
        if not strip_bearer(token):
            raise AuthenticationError("Authentication error: No token provided")
        try:
            claims = verify_token(token)
        except AuthenticationError:
            raise AuthenticationError("Authentication error: Invalid token")

        user = await run_in_threadpool(self._load_user, claims.user_id)
        if user is None:
            raise AuthenticationError("Authentication error: User not found")
        return Connection(websocket, user_id=user["id"], email=user["email"], role=user["role"])

    async def serve(self, websocket: WebSocket):
        try:
            conn = await self.authenticate(websocket)
        except AuthenticationError as e:
            logger.warning("Socket authentication failed: %s", e.message)
            await websocket.close(code=WS_4401_UNAUTHORIZED, reason=e.message)
            return
        except PersistenceError:
            await websocket.close(code=WS_4401_UNAUTHORIZED, reason="Authentication error")
            return

        await websocket.accept()
        self.registry.register(conn)
        log_chat_event("connected", conn.email, detail=f"{conn.role} sid={conn.sid}")

        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    break
                raw = frame.get("text")
                if raw is None and frame.get("bytes") is not None:
                    raw = frame["bytes"].decode("utf-8", errors="replace")
                event, data = self._decode(raw)
                if event is None:
                    await self._emit_error(conn, "Invalid payload format")
                    continue
                await self.dispatch(conn, event, data)
        except WebSocketDisconnect:
            pass
        finally:
            self.disconnect(conn)

    def disconnect(self, conn: Connection):
        self.registry.unregister(conn)
        log_chat_event("disconnected", conn.email, detail=f"sid={conn.sid}")

    @staticmethod
    def _decode(raw: Optional[str]) -> Tuple[Optional[str], Any]:
        try:
            envelope = json.loads(raw or "")
        except ValueError:
            return None, None
        if not isinstance(envelope, dict) or not isinstance(envelope.get("event"), str):
            return None, None
        return envelope["event"], envelope.get("data")

    # ------------------------- dispatch -------------------------
    async def dispatch(self, conn: Connection, event: str, data: Any):
        handler = self.handlers.get(event)
        if handler is None:
            logger.warning("Ignoring unknown event '%s' from %s", event, conn.email)
            return
        try:
            await handler(conn, data)
        except PersistenceError:
            await self._fail(conn, event, FAILURE_MESSAGES.get(event, "Server Error"))
        except DesignGuardError as e:
            await self._fail(conn, event, e.message)
        except Exception:
            logger.exception("Error handling '%s' for %s", event, conn.email)
            await self._fail(conn, event, FAILURE_MESSAGES.get(event, "Server Error"))

    async def _fail(self, conn: Connection, event: str, message: str):
        if event in ADVISORY_EVENTS:
            logger.info("Dropped '%s' from %s: %s", event, conn.email, message)
            return
        log_chat_event(f"{event}_failed", conn.email, conn.room_channel, message)
        await self._emit_error(conn, message)

    async def _emit_error(self, conn: Connection, message: str):
        try:
            await conn.send("error", {"message": message})
        except Exception as e:
            logger.warning("Could not deliver error to %r: %s", conn, e)

    # ------------------------- payload helpers -------------------------
    @staticmethod
    def _require_object(data: Any) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise ValidationError("Invalid payload format")
        return data

    @staticmethod
    def _as_id(value: Any) -> int:
        if isinstance(value, bool):
            raise ValidationError("Invalid identifier")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError("Invalid identifier")

    def _pair(self, data: Dict[str, Any], missing_message: str) -> Tuple[int, int]:
        vepari_id, factory_id = data.get("vepariId"), data.get("factoryId")
        if not vepari_id or not factory_id:
            raise ValidationError(missing_message)
        return self._as_id(vepari_id), self._as_id(factory_id)

    # ------------------------- handlers -------------------------
    async def on_join_room(self, conn: Connection, data: Any):
        data = self._require_object(data)
        vepari_id, factory_id = self._pair(data, "Missing vepariId or factoryId")
        if conn.user_id not in (vepari_id, factory_id):
            logger.warning("Unauthorized room access: user=%s pair=(%s, %s)", conn.user_id, vepari_id, factory_id)
            raise AuthorizationError("Unauthorized to join this room")

        room_id, canonical = await run_in_threadpool(self._resolve_room, vepari_id, factory_id)
        channel = room_channel(*canonical)
        self.registry.join(conn, channel)
        conn.room_id = room_id
        conn.room_channel = channel

        await conn.send("room_joined", {
            "roomName": channel,
            "roomId": room_id,
            "message": "Successfully joined chat room",
        })
        log_chat_event("join_room", conn.email, channel, f"room_id={room_id}")

    async def on_send_message(self, conn: Connection, data: Any):
        data = self._require_object(data)
        text = data.get("message")
        if not text or not data.get("vepariId") or not data.get("factoryId"):
            raise ValidationError("Missing required fields")
        if conn.room_id is None:
            raise ValidationError("Not in any room")
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Message cannot be empty")
        text = text.strip()

        stored = await run_in_threadpool(self._store_message, conn.room_id, conn.user_id, text)
        payload = {
            "id": stored["id"],
            "message": text,
            "senderId": conn.user_id,
            "senderEmail": conn.email,
            "senderRole": conn.role,
            "timestamp": stored["created_at"],
            "roomId": conn.room_id,
        }
        delivered = await self.registry.emit(conn.room_channel, "receive_message", payload)
        log_chat_event("send_message", conn.email, conn.room_channel, f"id={stored['id']} delivered={delivered}")

    async def on_typing(self, conn: Connection, data: Any):
        await self._typing_signal(conn, data, "user_typing")

    async def on_stop_typing(self, conn: Connection, data: Any):
        await self._typing_signal(conn, data, "user_stopped_typing")

    async def _typing_signal(self, conn: Connection, data: Any, event: str):
        data = self._require_object(data)
        vepari_id, factory_id = self._pair(data, "Missing vepariId or factoryId")
        joined = self.registry.channels_of(conn)
        channel = next(
            (c for c in (room_channel(vepari_id, factory_id), room_channel(factory_id, vepari_id)) if c in joined),
            None,
        )
        if channel is None:
            logger.info("Typing signal from %s for a room it has not joined", conn.email)
            return
        await self.registry.emit(channel, event, {
            "userId": conn.user_id,
            "userEmail": conn.email,
            "roomName": channel,
        }, skip=conn)

    async def on_chat_cleared(self, conn: Connection, data: Any):
        data = self._require_object(data)
        if not data.get("roomId"):
            raise ValidationError("Room ID required")
        room_id = self._as_id(data["roomId"])
        canonical = await run_in_threadpool(self._participant_pair, room_id, conn.user_id)
        channel = room_channel(*canonical)
        await self.registry.emit(channel, "chat_cleared", {
            "roomId": room_id,
            "clearedBy": conn.user_id,
            "clearedByEmail": conn.email,
            "timestamp": utcnow().isoformat(),
        })
        log_chat_event("chat_cleared", conn.email, channel)

    async def on_mark_messages_read(self, conn: Connection, data: Any):
        data = self._require_object(data)
        if not data.get("roomId"):
            raise ValidationError("Room ID required")
        room_id = self._as_id(data["roomId"])
        updated = await run_in_threadpool(self._mark_read, room_id, conn.user_id)
        await conn.send("messages_marked_read", {"roomId": room_id})
        log_chat_event("mark_messages_read", conn.email, detail=f"room_id={room_id} updated={updated}")

    # ------------------------- blocking persistence -------------------------
    def _load_user(self, user_id: int) -> Optional[Dict[str, Any]]:
        with self.database.session_scope() as db:
            user = db.scalar(select(User).where(User.id == user_id))
            if user is None:
                return None
            return {"id": user.id, "email": user.email, "role": user.role.value}

    def _resolve_room(self, vepari_id: int, factory_id: int):
        with self.database.session_scope() as db:
            room = chat_flow.resolve_room(db, vepari_id, factory_id)
            return room.id, (room.vepari_id, room.factory_id)

    def _store_message(self, room_id: int, sender_id: int, text: str) -> Dict[str, Any]:
        with self.database.session_scope() as db:
            message = chat_flow.save_message(db, room_id, sender_id, text)
            return {"id": message.id, "created_at": message.created_at.isoformat()}

    def _participant_pair(self, room_id: int, user_id: int) -> Tuple[int, int]:
        with self.database.session_scope() as db:
            room = chat_flow.get_room_for_participant(db, room_id, user_id)
            return room.vepari_id, room.factory_id

    def _mark_read(self, room_id: int, reader_id: int) -> int:
        with self.database.session_scope() as db:
            chat_flow.get_room_for_participant(db, room_id, reader_id)
            return chat_flow.mark_room_read(db, room_id, reader_id)


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket):
    relay: ChatRelay = websocket.app.state.relay
    await relay.serve(websocket)
