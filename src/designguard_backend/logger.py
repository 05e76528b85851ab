import logging
from typing import Optional

from .config import Config

LOG_FORMAT = '%(asctime)s | %(name)s | %(levelname)s | %(message)s'


#-- configure the root logger once: console always, file when LOG_FILE is set
def setup_logger(name: str = "designguard", log_file: Optional[str] = Config.LOG_FILE, level: str = Config.LOG_LEVEL):
    formatter = logging.Formatter(LOG_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)

    if not any(getattr(h, "_designguard", False) for h in root.handlers):
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        stream._designguard = True
        root.addHandler(stream)

        if log_file:
            handler = logging.FileHandler(log_file)
            handler.setFormatter(formatter)
            handler._designguard = True
            root.addHandler(handler)

    return logging.getLogger(name)


chat_logger = logging.getLogger("designguard.chat")


def log_chat_event(event: str, user_email: str, room: str = None, detail: str = None):
    # Optional parts
    room_str = f" | Room: {room}" if room else ""
    detail_str = f" | {detail}" if detail else ""

    message = f"{event} | {user_email}{room_str}{detail_str}"
    chat_logger.info(message)
