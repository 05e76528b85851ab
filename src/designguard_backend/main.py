# main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import access_api, auth_api, chat_api, chat_socket, design_api, notification_api, order_api, profile_api
from .chat_socket import ChatRelay
from .config import Config
from .errors import DesignGuardError
from .logger import setup_logger
from .marketplace.database import Database
from .realtime import SessionRegistry
from .services.email_service import EmailSender
from .services.media_store import MediaStore
from .services.notification_service import NotificationService

# ------------------------- Logging setup -------------------------
setup_logger()
logger = logging.getLogger(__name__)


def create_app(database: Optional[Database] = None, registry: Optional[SessionRegistry] = None,
               mailer: Optional[EmailSender] = None, media_store: Optional[MediaStore] = None) -> FastAPI:
    """Build the API with its own store, session registry and collaborators."""
    database = database or Database()
    registry = registry or SessionRegistry()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database.init_db()
        logger.info("DesignGuard API ready")
        yield
        database.dispose()

    app = FastAPI(title="DesignGuard API", version="1.0.0", lifespan=lifespan)
    app.state.database = database
    app.state.registry = registry
    app.state.notifier = NotificationService(registry)
    app.state.relay = ChatRelay(database, registry)
    app.state.mailer = mailer or EmailSender()
    app.state.media_store = media_store or MediaStore()

    # ------------------------- CORS -------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=Config.FRONTEND_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # ------------------------- Errors -------------------------
    @app.exception_handler(DesignGuardError)
    async def designguard_error(request: Request, exc: DesignGuardError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"success": False, "msg": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={
            "success": False,
            "msg": "Invalid request payload",
            "errors": jsonable_encoder(exc.errors()),
        })

    @app.exception_handler(SQLAlchemyError)
    async def database_error(request: Request, exc: SQLAlchemyError):
        logger.exception("Database error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"success": False, "msg": "Server Error"})

    # ------------------------- Routes -------------------------
    for module in (auth_api, design_api, access_api, order_api, profile_api, chat_api, notification_api,
                   chat_socket):
        app.include_router(module.router)

    @app.get("/", tags=["health"])
    def health():
        return {"status": "ok", "service": "designguard"}

    return app


app = create_app()


# ------------------------- Run locally -------------------------
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "designguard_backend.main:app",
        host=Config.HOST,
        port=Config.PORT,
        ws_ping_interval=Config.WS_PING_INTERVAL,
        ws_ping_timeout=Config.WS_PING_TIMEOUT,
    )
