# marketplace/schemas.py
from datetime import datetime
from math import ceil
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ValidationError
from .models import UserRole


# ------------------------- Auth -------------------------
class RegisterReq(BaseModel):
    full_name: str = Field(..., min_length=2)
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=6)
    mobile_number: Optional[str] = None
    role: UserRole
    # factory_owner profile
    company_name: Optional[str] = None
    gst_number: Optional[str] = None
    factory_address: Optional[str] = None
    logo_url: Optional[str] = None
    # vepari profile
    vepari_brand_name: Optional[str] = None
    city: Optional[str] = None
    vepari_gst_number: Optional[str] = None


class VerifyOtpReq(BaseModel):
    email: str
    otp: str = Field(..., min_length=4, max_length=8)


class EmailReq(BaseModel):
    email: str


class LoginReq(BaseModel):
    email: str
    password: str


class ResetPasswordReq(BaseModel):
    token: str
    newPassword: str = Field(..., min_length=6)


# ------------------------- Access -------------------------
class AccessRequestReq(BaseModel):
    factory_id: int


class AccessRespondReq(BaseModel):
    status: str = Field(..., pattern="^(approved|rejected)$")
    durationDays: Optional[int] = Field(default=None, ge=1, le=365)


# ------------------------- Orders -------------------------
class PlaceOrderReq(BaseModel):
    designId: Optional[int] = None
    factoryId: Optional[int] = None
    quantity: Optional[int] = None
    printingNote: Optional[str] = None


class OrderStatusReq(BaseModel):
    status: str


# ------------------------- Profile -------------------------
class ProfileUpdateReq(BaseModel):
    full_name: Optional[str] = None
    mobile_number: Optional[str] = None
    bio: Optional[str] = None
    established_year: Optional[int] = None
    # vepari
    vepari_brand_name: Optional[str] = None
    city: Optional[str] = None
    vepari_gst_number: Optional[str] = None
    business_type: Optional[str] = None
    # factory_owner
    company_name: Optional[str] = None
    gst_number: Optional[str] = None
    factory_address: Optional[str] = None
    employee_count: Optional[int] = None


# ------------------------- Chat -------------------------
class ChatRoomReq(BaseModel):
    vepariId: int
    factoryId: int


class ClearChatReq(BaseModel):
    roomId: Optional[int] = None


# ------------------------- Responses -------------------------
class DesignOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    factory_id: int
    design_number: str
    image_url: str
    color_variants: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    type: str
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: Optional[datetime] = None


# ------------------------- Pagination -------------------------
def page_window(page: int, limit: int, max_limit: int = 100):
    """Return (page, limit, offset) or raise ValidationError."""
    if page < 1 or limit < 1 or limit > max_limit:
        raise ValidationError(
            f"Invalid pagination parameters. Page must be >= 1, limit must be 1-{max_limit}"
        )
    return page, limit, (page - 1) * limit


def total_pages(total: int, limit: int) -> int:
    return ceil(total / limit) if limit else 0
