from .email_service import EmailSender
from .media_store import MediaStore
from .notification_service import NotificationService
