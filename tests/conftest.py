"""
Shared fixtures for the DesignGuard test suite.

Every test gets its own SQLite file, session registry and recording fakes for
the email sender and media store, wired through ``create_app``.
"""

import asyncio
import itertools
import json
from datetime import timedelta
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from designguard_backend.auth_helper import create_token, hash_secret
from designguard_backend.errors import UpstreamServiceError
from designguard_backend.main import create_app
from designguard_backend.marketplace.database import Database, utcnow
from designguard_backend.marketplace.models import (
    AccessStatus,
    Design,
    DesignAccessRequest,
    FactoryProfile,
    User,
    UserRole,
    VepariProfile,
)
from designguard_backend.realtime import Connection, SessionRegistry


# ============================================================================
# Fakes
# ============================================================================


class RecordingMailer:
    """Stands in for EmailSender; keeps every message instead of sending it."""

    def __init__(self):
        self.sent: List[Dict[str, str]] = []
        self.fail = False

    def _record(self, kind: str, to: str, body: str, failure: str):
        if self.fail:
            raise UpstreamServiceError(failure)
        self.sent.append({"kind": kind, "to": to, "body": body})

    def send_otp(self, email: str, otp: str):
        self._record("otp", email, otp, "Failed to send verification email")

    def send_password_reset(self, email: str, link: str):
        self._record("reset", email, link, "Failed to send password reset email")

    def last(self, kind: str) -> Dict[str, str]:
        return [m for m in self.sent if m["kind"] == kind][-1]


class FakeMediaStore:
    def __init__(self):
        self.uploads: List[Dict[str, Any]] = []
        self.error: Optional[Exception] = None

    def upload(self, data: bytes, folder: str, public_id: str = None, transformation: str = None):
        if self.error is not None:
            raise self.error
        self.uploads.append({
            "size": len(data),
            "folder": folder,
            "public_id": public_id,
            "transformation": transformation,
        })
        n = len(self.uploads)
        return {"url": f"https://media.test/{folder}/{n}.png", "public_id": public_id or f"{folder}/{n}"}


class FakeWebSocket:
    """Captures frames written by a Connection."""

    def __init__(self, broken: bool = False, stall: float = 0):
        self.frames: List[Dict[str, Any]] = []
        self.broken = broken
        self.stall = stall

    async def send_text(self, text: str):
        if self.stall:
            await asyncio.sleep(self.stall)
        if self.broken:
            raise RuntimeError("socket closed")
        self.frames.append(json.loads(text))

    def events(self, name: str = None) -> List[Dict[str, Any]]:
        return [f for f in self.frames if name is None or f["event"] == name]

    def names(self) -> List[str]:
        return [f["event"] for f in self.frames]


# ============================================================================
# Application fixtures
# ============================================================================


@pytest.fixture
def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'designguard.db'}")
    db.init_db()
    yield db
    db.dispose()


@pytest.fixture
def registry():
    return SessionRegistry(send_timeout=2)


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def media():
    return FakeMediaStore()


@pytest.fixture
def app(database, registry, mailer, media):
    return create_app(database=database, registry=registry, mailer=mailer, media_store=media)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


# ============================================================================
# Data helpers
# ============================================================================

_emails = itertools.count(1)


@pytest.fixture
def make_user(database):
    """Insert a user (verified by default) and return id, email, token and headers."""

    def _make(role: str = "vepari", verified: bool = True, password: str = "secret123",
              full_name: str = None, email: str = None):
        role = UserRole(role)
        email = email or f"{role.value}{next(_emails)}@example.com"
        with database.session_scope() as db:
            user = User(
                full_name=full_name or f"{role.label} {email.split('@')[0]}",
                email=email,
                password_hash=hash_secret(password),
                role=role,
                is_verified=verified,
            )
            if role is UserRole.factory_owner:
                user.factory_profile = FactoryProfile(company_name=f"Mill of {email}")
            else:
                user.vepari_profile = VepariProfile(vepari_brand_name=f"Brand of {email}", city="Surat")
            db.add(user)
            db.flush()
            user_id = user.id
        token = create_token(user_id, role)
        return SimpleNamespace(
            id=user_id,
            email=email,
            role=role.value,
            password=password,
            token=token,
            headers={"Authorization": f"Bearer {token}"},
        )

    return _make


@pytest.fixture
def vepari(make_user):
    return make_user("vepari")


@pytest.fixture
def factory(make_user):
    return make_user("factory_owner")


@pytest.fixture
def grant_access(database):
    def _grant(vepari_id: int, factory_id: int, days: int = 7, status: str = "approved"):
        with database.session_scope() as db:
            now = utcnow()
            db.add(DesignAccessRequest(
                vepari_id=vepari_id,
                factory_id=factory_id,
                status=AccessStatus(status),
                access_granted_at=now,
                access_expires_at=now + timedelta(days=days),
            ))

    return _grant


@pytest.fixture
def make_design(database):
    def _make(factory_id: int, number: str = "D-100", colors: str = "red,blue") -> int:
        with database.session_scope() as db:
            design = Design(factory_id=factory_id, design_number=number,
                            image_url=f"https://media.test/{number}.png", color_variants=colors)
            db.add(design)
            db.flush()
            return design.id

    return _make


@pytest.fixture
def connect(registry):
    """Register a fake live connection for a user built by make_user."""

    def _connect(user, broken: bool = False, stall: float = 0) -> Connection:
        conn = Connection(FakeWebSocket(broken=broken, stall=stall),
                          user_id=user.id, email=user.email, role=user.role)
        registry.register(conn)
        return conn

    return _connect
