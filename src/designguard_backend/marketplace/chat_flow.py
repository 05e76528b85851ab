# marketplace/chat_flow.py
import logging
from typing import Any, Dict, List, Tuple

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from ..errors import AuthorizationError, ValidationError
from .chat_models import ChatRoom, Message
from .database import utcnow
from .models import User, UserRole
from .schemas import page_window, total_pages

logger = logging.getLogger(__name__)


def canonical_pair(db: Session, first_id: int, second_id: int) -> Tuple[int, int]:
    """Order two participant ids as (vepari_id, factory_id) using their roles."""
    if first_id == second_id:
        raise ValidationError("Invalid user IDs")
    users = db.scalars(select(User).where(User.id.in_([first_id, second_id]))).all()
    if len(users) != 2:
        raise ValidationError("Invalid user IDs")
    by_role = {u.role: u.id for u in users}
    if set(by_role) != {UserRole.vepari, UserRole.factory_owner}:
        raise ValidationError("Invalid user roles")
    return by_role[UserRole.vepari], by_role[UserRole.factory_owner]


def _upsert_statement(dialect: str, vepari_id: int, factory_id: int):
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        return None
    stmt = insert(ChatRoom).values(vepari_id=vepari_id, factory_id=factory_id, created_at=utcnow())
    return stmt.on_conflict_do_update(
        index_elements=[ChatRoom.vepari_id, ChatRoom.factory_id],
        set_={"last_message_at": utcnow()},
    )


def upsert_room(db: Session, vepari_id: int, factory_id: int) -> ChatRoom:
    """Insert the room for the pair, or refresh last_message_at if it exists."""
    stmt = _upsert_statement(db.get_bind().dialect.name, vepari_id, factory_id)
    if stmt is not None:
        db.execute(stmt)
    else:
        try:
            with db.begin_nested():
                db.add(ChatRoom(vepari_id=vepari_id, factory_id=factory_id))
        except IntegrityError:
            db.execute(
                update(ChatRoom)
                .where(ChatRoom.vepari_id == vepari_id, ChatRoom.factory_id == factory_id)
                .values(last_message_at=utcnow())
            )
    room = db.scalar(
        select(ChatRoom)
        .where(ChatRoom.vepari_id == vepari_id, ChatRoom.factory_id == factory_id)
        .execution_options(populate_existing=True)
    )
    return room


def resolve_room(db: Session, first_id: int, second_id: int) -> ChatRoom:
    vepari_id, factory_id = canonical_pair(db, first_id, second_id)
    return upsert_room(db, vepari_id, factory_id)


def get_room_for_participant(db: Session, room_id: int, user_id: int) -> ChatRoom:
    room = db.get(ChatRoom, room_id)
    if room is None or not room.has_participant(user_id):
        raise AuthorizationError("Access denied to this chat room")
    return room


def save_message(db: Session, room_id: int, sender_id: int, text: str) -> Message:
    """Insert the message and refresh the room preview in the caller's transaction."""
    message = Message(room_id=room_id, sender_id=sender_id, message_text=text)
    db.add(message)
    db.flush()
    db.execute(
        update(ChatRoom)
        .where(ChatRoom.id == room_id)
        .values(last_message=text, last_message_at=message.created_at)
    )
    return message


def mark_room_read(db: Session, room_id: int, reader_id: int) -> int:
    result = db.execute(
        update(Message)
        .where(Message.room_id == room_id, Message.sender_id != reader_id, Message.is_read.is_(False))
        .values(is_read=True)
    )
    return result.rowcount


def clear_history(db: Session, room_id: int) -> int:
    result = db.execute(delete(Message).where(Message.room_id == room_id))
    db.execute(
        update(ChatRoom).where(ChatRoom.id == room_id).values(last_message=None, last_message_at=utcnow())
    )
    return result.rowcount


def serialize_room(room: ChatRoom) -> Dict[str, Any]:
    return {
        "id": room.id,
        "vepari_id": room.vepari_id,
        "factory_id": room.factory_id,
        "last_message": room.last_message,
        "last_message_at": room.last_message_at,
        "created_at": room.created_at,
    }


def get_history(db: Session, room_id: int, page: int = 1, limit: int = 50) -> Dict[str, Any]:
    page, limit, offset = page_window(page, limit, max_limit=200)
    rows = db.execute(
        select(Message, User.email, User.role)
        .join(User, Message.sender_id == User.id)
        .where(Message.room_id == room_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
        .limit(limit)
        .offset(offset)
    ).all()
    total = db.scalar(select(func.count()).select_from(Message).where(Message.room_id == room_id))
    pages = total_pages(total, limit)
    return {
        "messages": [
            {
                "id": m.id,
                "message_text": m.message_text,
                "sender_id": m.sender_id,
                "is_read": m.is_read,
                "created_at": m.created_at,
                "sender_email": email,
                "sender_role": role.value,
            }
            for m, email, role in rows
        ],
        "pagination": {
            "currentPage": page,
            "totalPages": pages,
            "totalMessages": total,
            "hasMore": page < pages,
        },
    }


def list_rooms(db: Session, user_id: int, role: UserRole) -> List[Dict[str, Any]]:
    counterpart = aliased(User)
    if role is UserRole.vepari:
        own_column, other_column, prefix = ChatRoom.vepari_id, ChatRoom.factory_id, "factory"
    else:
        own_column, other_column, prefix = ChatRoom.factory_id, ChatRoom.vepari_id, "vepari"

    unread = (
        select(func.count(Message.id))
        .where(and_(Message.room_id == ChatRoom.id, Message.sender_id != user_id, Message.is_read.is_(False)))
        .correlate(ChatRoom)
        .scalar_subquery()
    )
    rows = db.execute(
        select(ChatRoom, counterpart.email, counterpart.full_name, unread.label("unread_count"))
        .join(counterpart, other_column == counterpart.id)
        .where(own_column == user_id)
        .order_by(ChatRoom.last_message_at.is_(None), ChatRoom.last_message_at.desc(), ChatRoom.created_at.desc())
    ).all()

    rooms = []
    for room, email, name, unread_count in rows:
        item = serialize_room(room)
        item[f"{prefix}_email"] = email
        item[f"{prefix}_name"] = name
        item["unread_count"] = int(unread_count or 0)
        rooms.append(item)
    return rooms

