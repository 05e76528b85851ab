import logging

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .auth_helper import create_reset_token
from .config import Config
from .deps import get_db, get_mailer
from .errors import UpstreamServiceError
from .marketplace import account_flow
from .marketplace.schemas import EmailReq, LoginReq, RegisterReq, ResetPasswordReq, VerifyOtpReq
from .services.email_service import EmailSender

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])


# ------------------------- Endpoints -------------------------
@router.post("/register")
def register(req: RegisterReq = Body(...), db: Session = Depends(get_db),
             mailer: EmailSender = Depends(get_mailer)):
    """Create an unverified account and email its OTP."""
    logger.info("Received %s registration", req.role.value)
    user, otp = account_flow.register_user(db, req)

    # the account exists even when the email cannot be sent
    try:
        mailer.send_otp(user.email, otp)
        email_sent = True
        message = "Registered successfully. OTP sent to email."
    except UpstreamServiceError as e:
        logger.warning("OTP email for user %s not sent: %s", user.id, e.message)
        email_sent = False
        message = "Registered successfully, but the verification email could not be sent. Please use resend OTP."

    return JSONResponse(status_code=201, content={
        "message": message,
        "userId": user.id,
        "emailSent": email_sent,
    })


@router.post("/verify-otp")
def verify_otp(req: VerifyOtpReq, db: Session = Depends(get_db)):
    account_flow.verify_otp(db, req.email, req.otp)
    return {"message": "Email verified successfully"}


@router.post("/resend-otp")
def resend_otp(req: EmailReq, db: Session = Depends(get_db), mailer: EmailSender = Depends(get_mailer)):
    user, otp = account_flow.resend_otp(db, req.email)
    mailer.send_otp(user.email, otp)
    return {"message": "OTP resent to email"}


@router.post("/login")
def login(req: LoginReq, db: Session = Depends(get_db)):
    """Exchange verified credentials for a bearer token."""
    return account_flow.login(db, req.email, req.password)


@router.post("/forgot-password")
def forgot_password(req: EmailReq, db: Session = Depends(get_db), mailer: EmailSender = Depends(get_mailer)):
    user = account_flow.find_user_by_email(db, req.email)
    link = f"{Config.FRONTEND_URL.rstrip('/')}/reset-password/{create_reset_token(user.id)}"
    mailer.send_password_reset(user.email, link)
    logger.info("Password reset link sent to user %s", user.id)
    return {"message": "Password reset link sent to email"}


@router.post("/reset-password")
def reset_password(req: ResetPasswordReq, db: Session = Depends(get_db)):
    account_flow.reset_password(db, req.token, req.newPassword)
    return {"message": "Password reset successful"}
