# marketplace/account_flow.py
import logging
from datetime import timedelta
from typing import Any, Dict, Tuple

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth_helper import RESET_TOKEN, check_secret, create_token, generate_otp, hash_secret, verify_token
from ..config import Config
from ..errors import (AuthenticationError, AuthorizationError, ConflictError, NotFoundError,
                      ValidationError)
from .database import utcnow
from .models import FactoryProfile, User, UserRole, VepariProfile
from .schemas import RegisterReq

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def find_user_by_email(db: Session, email: str) -> User:
    user = db.scalar(select(User).where(User.email == normalize_email(email)))
    if user is None:
        raise NotFoundError("User not found")
    return user


def _issue_otp(user: User) -> str:
    otp = generate_otp()
    user.otp_code = hash_secret(otp)
    user.otp_expires_at = utcnow() + timedelta(minutes=Config.OTP_EXPIRE_MINUTES)
    return otp


def register_user(db: Session, req: RegisterReq) -> Tuple[User, str]:
    """Create the user and its role profile in one transaction; returns (user, plain otp)."""
    email = normalize_email(req.email)
    mobile = (req.mobile_number or "").strip() or None

    clauses = [User.email == email]
    if mobile:
        clauses.append(User.mobile_number == mobile)
    if db.scalar(select(User.id).where(or_(*clauses))) is not None:
        raise ConflictError("User already exists.")

    user = User(
        full_name=req.full_name.strip(),
        email=email,
        password_hash=hash_secret(req.password),
        mobile_number=mobile,
        role=req.role,
        is_verified=False,
    )
    otp = _issue_otp(user)

    if req.role is UserRole.factory_owner:
        user.factory_profile = FactoryProfile(
            company_name=req.company_name,
            gst_number=req.gst_number,
            factory_address=req.factory_address,
            logo_url=req.logo_url,
        )
    else:
        user.vepari_profile = VepariProfile(
            vepari_brand_name=req.vepari_brand_name,
            city=req.city,
            vepari_gst_number=req.vepari_gst_number,
            logo_url=req.logo_url,
        )

    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("User already exists.")
    db.refresh(user)
    logger.info("Registered %s user %s", user.role.value, user.id)
    return user, otp


def verify_otp(db: Session, email: str, otp: str) -> User:
    user = find_user_by_email(db, email)
    if user.is_verified:
        raise ValidationError("User already verified")
    if not user.otp_code or not user.otp_expires_at or user.otp_expires_at < utcnow():
        raise ValidationError("OTP expired")
    if not check_secret(otp.strip(), user.otp_code):
        raise ValidationError("Invalid OTP")

    user.is_verified = True
    user.otp_code = None
    user.otp_expires_at = None
    db.commit()
    logger.info("User %s verified", user.id)
    return user


def resend_otp(db: Session, email: str) -> Tuple[User, str]:
    user = find_user_by_email(db, email)
    if user.is_verified:
        raise ValidationError("User already verified")
    otp = _issue_otp(user)
    db.commit()
    return user, otp


def user_summary(user: User) -> Dict[str, Any]:
    return {"id": user.id, "full_name": user.full_name, "email": user.email, "role": user.role.value}


def login(db: Session, email: str, password: str) -> Dict[str, Any]:
    user = db.scalar(select(User).where(User.email == normalize_email(email)))
    if user is None or not check_secret(password, user.password_hash):
        raise AuthenticationError("Invalid credentials")
    if not user.is_verified:
        raise AuthorizationError("Verify email first")
    logger.info("User %s logged in", user.id)
    return {"token": create_token(user.id, user.role), "user": user_summary(user)}


def reset_password(db: Session, token: str, new_password: str) -> User:
    try:
        claims = verify_token(token, expected_type=RESET_TOKEN)
    except AuthenticationError:
        raise ValidationError("Invalid or expired token")
    user = db.get(User, claims.user_id)
    if user is None:
        raise ValidationError("Invalid or expired token")
    user.password_hash = hash_secret(new_password)
    db.commit()
    logger.info("Password reset for user %s", user.id)
    return user
