import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    # ------------------------
    # Database
    # ------------------------
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./designguard.db")

    # ------------------------
    # Tokens
    # ------------------------
    JWT_SECRET = os.getenv("JWT_SECRET", "designguard-dev-secret")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_DAYS = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "7"))
    RESET_TOKEN_EXPIRE_MINUTES = int(os.getenv("RESET_TOKEN_EXPIRE_MINUTES", "60"))
    OTP_EXPIRE_MINUTES = int(os.getenv("OTP_EXPIRE_MINUTES", "10"))

    # ------------------------
    # Frontend
    # ------------------------
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
    FRONTEND_ORIGINS = [
        o.strip()
        for o in os.getenv(
            "FRONTEND_ORIGINS",
            "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if o.strip()
    ]

    # ------------------------
    # Email (Resend)
    # ------------------------
    RESEND_API_KEY = os.getenv("RESEND_API_KEY")
    EMAIL_FROM = os.getenv("EMAIL_FROM", "DesignGuard <no-reply@designguard.app>")

    # ------------------------
    # Media store (Cloudinary)
    # ------------------------
    CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
    CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
    CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")
    MEDIA_UPLOAD_TIMEOUT = float(os.getenv("MEDIA_UPLOAD_TIMEOUT", "15"))
    MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))

    # ------------------------
    # Marketplace rules
    # ------------------------
    DEFAULT_ACCESS_DAYS = int(os.getenv("DEFAULT_ACCESS_DAYS", "7"))

    # ------------------------
    # Realtime transport
    # ------------------------
    WS_PING_INTERVAL = float(os.getenv("WS_PING_INTERVAL", "25"))
    WS_PING_TIMEOUT = float(os.getenv("WS_PING_TIMEOUT", "60"))
    WS_SEND_TIMEOUT = float(os.getenv("WS_SEND_TIMEOUT", "10"))

    # ------------------------
    # Logging / server
    # ------------------------
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FILE = os.getenv("LOG_FILE")
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", "5000"))
