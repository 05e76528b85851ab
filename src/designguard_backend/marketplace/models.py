# marketplace/models.py
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Enum, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from .database import Base, utcnow


class Capability(enum.Enum):
    publish_designs = "publish_designs"
    place_orders = "place_orders"
    update_order_status = "update_order_status"
    request_access = "request_access"
    review_access = "review_access"


class UserRole(enum.Enum):
    vepari = "vepari"
    factory_owner = "factory_owner"

    def can(self, capability: "Capability") -> bool:
        return self in ROLE_CAPABILITIES[capability]

    @property
    def label(self) -> str:
        return "Vepari" if self is UserRole.vepari else "Factory Owner"


ROLE_CAPABILITIES = {
    Capability.publish_designs: {UserRole.factory_owner},
    Capability.place_orders: {UserRole.vepari},
    Capability.update_order_status: {UserRole.factory_owner},
    Capability.request_access: {UserRole.vepari},
    Capability.review_access: {UserRole.factory_owner},
}

CAPABILITY_DENIED = {
    Capability.publish_designs: "Only factory owners can manage designs",
    Capability.place_orders: "Only veparis can place orders",
    Capability.update_order_status: "Only factory owners can update order status",
    Capability.request_access: "Only veparis can request design access",
    Capability.review_access: "Only factory owners can review access requests",
}


class AccessStatus(enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class OrderStatus(enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    mobile_number = Column(String(32), nullable=True, unique=True)
    role = Column(Enum(UserRole), nullable=False, index=True)
    is_verified = Column(Boolean, default=False, nullable=False)
    # bcrypt hash of the pending OTP, cleared on verification
    otp_code = Column(String(255), nullable=True)
    otp_expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    factory_profile = relationship("FactoryProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    vepari_profile = relationship("VepariProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")

    @property
    def profile(self):
        return self.vepari_profile if self.role is UserRole.vepari else self.factory_profile


class FactoryProfile(Base):
    __tablename__ = "factory_profiles"
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    company_name = Column(String(200), nullable=True)
    gst_number = Column(String(32), nullable=True)
    factory_address = Column(String(500), nullable=True)
    logo_url = Column(String(1024), nullable=True)
    bio = Column(Text, nullable=True)
    profile_picture_url = Column(String(1024), nullable=True)
    established_year = Column(Integer, nullable=True)
    employee_count = Column(Integer, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="factory_profile")


class VepariProfile(Base):
    __tablename__ = "vepari_profiles"
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    vepari_brand_name = Column(String(200), nullable=True)
    city = Column(String(120), nullable=True)
    vepari_gst_number = Column(String(32), nullable=True)
    logo_url = Column(String(1024), nullable=True)
    bio = Column(Text, nullable=True)
    profile_picture_url = Column(String(1024), nullable=True)
    business_type = Column(String(120), nullable=True)
    established_year = Column(Integer, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="vepari_profile")


class Design(Base):
    __tablename__ = "designs"
    __table_args__ = (UniqueConstraint("factory_id", "design_number", name="uq_design_number_per_factory"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    factory_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    design_number = Column(String(120), nullable=False)
    image_url = Column(String(1024), nullable=False)
    color_variants = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    factory = relationship("User")


class DesignAccessRequest(Base):
    __tablename__ = "design_access_requests"
    __table_args__ = (UniqueConstraint("vepari_id", "factory_id", name="uq_access_pair"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    vepari_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    factory_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Enum(AccessStatus), default=AccessStatus.pending, nullable=False)
    access_granted_at = Column(DateTime, nullable=True)
    access_expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    vepari = relationship("User", foreign_keys=[vepari_id])
    factory = relationship("User", foreign_keys=[factory_id])

    def is_active(self, now) -> bool:
        return self.status is AccessStatus.approved and (
            self.access_expires_at is None or self.access_expires_at > now
        )


class Order(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True, autoincrement=True)
    vepari_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    factory_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    design_id = Column(Integer, ForeignKey("designs.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    printing_note = Column(Text, nullable=True)
    status = Column(Enum(OrderStatus), default=OrderStatus.pending, nullable=False, index=True)
    order_date = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    vepari = relationship("User", foreign_keys=[vepari_id], lazy="joined")
    factory = relationship("User", foreign_keys=[factory_id], lazy="joined")
    design = relationship("Design", lazy="joined")
