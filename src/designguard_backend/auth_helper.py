import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Header
from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError

from .config import Config
from .errors import AuthenticationError, AuthorizationError
from .marketplace.models import CAPABILITY_DENIED, Capability, UserRole

logger = logging.getLogger(__name__)

ACCESS_TOKEN = "access"
RESET_TOKEN = "password_reset"
OTP_LENGTH = 6


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    role: Optional[UserRole]


@dataclass
class CurrentUser:
    id: int
    role: UserRole
    email: Optional[str] = None

    def can(self, capability: Capability) -> bool:
        return self.role.can(capability)


# ------------------------- Passwords / OTP -------------------------
def hash_secret(value: str) -> str:
    return bcrypt.hashpw(value.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_secret(value: str, hashed: Optional[str]) -> bool:
    if not value or not hashed:
        return False
    try:
        return bcrypt.checkpw(value.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("check_secret: stored hash is malformed")
        return False


def generate_otp(length: int = OTP_LENGTH) -> str:
    return f"{secrets.randbelow(10 ** length):0{length}d}"


# ------------------------- Tokens -------------------------
def create_token(user_id: int, role: Optional[UserRole] = None, token_type: str = ACCESS_TOKEN,
                 expires_delta: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(days=Config.ACCESS_TOKEN_EXPIRE_DAYS)
    user = {"id": user_id}
    if role is not None:
        user["role"] = role.value
    payload = {"user": user, "typ": token_type, "iat": now, "exp": now + expires_delta}
    return jwt.encode(payload, Config.JWT_SECRET, algorithm=Config.JWT_ALGORITHM)


def create_reset_token(user_id: int) -> str:
    return create_token(user_id, token_type=RESET_TOKEN,
                        expires_delta=timedelta(minutes=Config.RESET_TOKEN_EXPIRE_MINUTES))


def strip_bearer(token: Optional[str]) -> Optional[str]:
    if token is None:
        return None
    token = token.strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    return token or None


def verify_token(token: Optional[str], expected_type: str = ACCESS_TOKEN) -> TokenClaims:
    """Check signature, expiry and token type; raise AuthenticationError otherwise."""
    token = strip_bearer(token)
    if not token:
        raise AuthenticationError("Authentication error: No token provided")
    try:
        payload = jwt.decode(token, Config.JWT_SECRET, algorithms=[Config.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError:
        raise AuthenticationError("Token is not valid")

    if payload.get("typ") != expected_type:
        raise AuthenticationError("Token is not valid")
    user = payload.get("user") or {}
    try:
        user_id = int(user["id"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError("Token is not valid")
    role = user.get("role")
    try:
        role = UserRole(role) if role else None
    except ValueError:
        raise AuthenticationError("Token is not valid")
    return TokenClaims(user_id=user_id, role=role)


# ------------------------- Request guards -------------------------
def get_current_user(authorization: Optional[str] = Header(default=None)) -> CurrentUser:
    """FastAPI dependency: resolve the bearer token of a REST request."""
    if not authorization:
        raise AuthenticationError("No token, authorization denied")
    claims = verify_token(authorization)
    if claims.role is None:
        raise AuthenticationError("Token is not valid")
    return CurrentUser(id=claims.user_id, role=claims.role)


def require_capability(user: CurrentUser, capability: Capability):
    if not user.can(capability):
        logger.info("User %s (%s) denied %s", user.id, user.role.value, capability.value)
        raise AuthorizationError(CAPABILITY_DENIED[capability])
