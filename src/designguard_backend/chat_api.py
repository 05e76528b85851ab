import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .auth_helper import CurrentUser, get_current_user
from .deps import get_db
from .errors import AuthorizationError, ValidationError
from .marketplace import chat_flow
from .marketplace.schemas import ChatRoomReq, ClearChatReq

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.get("/history/{room_id}")
def get_chat_history(room_id: int, page: int = Query(1), limit: int = Query(50),
                     user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    """Messages of a room, oldest first."""
    room = chat_flow.get_room_for_participant(db, room_id, user.id)
    history = chat_flow.get_history(db, room.id, page, limit)
    history["roomInfo"] = chat_flow.serialize_room(room)
    return history


@router.get("/rooms")
def get_chat_rooms(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"rooms": chat_flow.list_rooms(db, user.id, user.role)}


@router.post("/room")
def get_or_create_room(req: ChatRoomReq, user: CurrentUser = Depends(get_current_user),
                       db: Session = Depends(get_db)):
    if user.id not in (req.vepariId, req.factoryId):
        raise AuthorizationError("Access denied")
    room = chat_flow.resolve_room(db, req.vepariId, req.factoryId)
    db.commit()
    return chat_flow.serialize_room(room)


@router.post("/clear")
def clear_chat(req: ClearChatReq, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    if not req.roomId:
        raise ValidationError("Room ID is required")
    room = chat_flow.get_room_for_participant(db, req.roomId, user.id)
    deleted = chat_flow.clear_history(db, room.id)
    db.commit()
    logger.info("User %s cleared %s messages in room %s", user.id, deleted, room.id)
    return {"success": True, "message": "Chat history cleared successfully", "deletedCount": deleted}
