"""Request-scoped dependencies resolved from the objects the app factory built."""
from fastapi import Request

from .marketplace.database import Database
from .realtime import SessionRegistry
from .services.email_service import EmailSender
from .services.media_store import MediaStore
from .services.notification_service import NotificationService


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request):
    yield from request.app.state.database.get_db()


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_notifier(request: Request) -> NotificationService:
    return request.app.state.notifier


def get_mailer(request: Request) -> EmailSender:
    return request.app.state.mailer


def get_media_store(request: Request) -> MediaStore:
    return request.app.state.media_store
