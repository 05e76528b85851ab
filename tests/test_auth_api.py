"""
Tests for registration, OTP verification, login and password reset.
"""

import pytest


def _register(client, **overrides):
    body = {
        "full_name": "Ravi Mills",
        "email": "ravi@example.com",
        "password": "secret123",
        "mobile_number": "9000000001",
        "role": "factory_owner",
        "company_name": "Ravi Textiles",
        "factory_address": "GIDC, Surat",
    }
    body.update(overrides)
    return client.post("/api/auth/register", json=body)


def _other_otp(otp: str) -> str:
    return str((int(otp) + 1) % 1000000).zfill(6)


class TestRegistration:

    def test_register_emails_otp_without_returning_it(self, client, mailer):
        r = _register(client)
        assert r.status_code == 201
        body = r.json()
        assert body["emailSent"] is True
        assert isinstance(body["userId"], int)

        otp = mailer.last("otp")["body"]
        assert mailer.last("otp")["to"] == "ravi@example.com"
        assert len(otp) == 6 and otp.isdigit()
        assert otp not in r.text

    def test_duplicate_email_conflicts(self, client):
        assert _register(client).status_code == 201
        r = _register(client, mobile_number="9000000002")
        assert r.status_code == 409
        assert r.json() == {"success": False, "msg": "User already exists."}

    def test_duplicate_mobile_conflicts(self, client):
        assert _register(client).status_code == 201
        r = _register(client, email="other@example.com")
        assert r.status_code == 409

    def test_email_failure_keeps_account(self, client, mailer):
        mailer.fail = True
        r = _register(client)
        assert r.status_code == 201
        assert r.json()["emailSent"] is False
        assert "resend" in r.json()["message"].lower()

        mailer.fail = False
        r = client.post("/api/auth/resend-otp", json={"email": "ravi@example.com"})
        assert r.status_code == 200
        assert mailer.last("otp")["to"] == "ravi@example.com"

    def test_invalid_role_rejected(self, client):
        r = _register(client, role="admin")
        assert r.status_code == 400
        assert r.json()["msg"] == "Invalid request payload"


class TestVerifyAndLogin:

    def test_full_flow(self, client, mailer):
        _register(client)
        otp = mailer.last("otp")["body"]

        r = client.post("/api/auth/login", json={"email": "ravi@example.com", "password": "secret123"})
        assert r.status_code == 403
        assert r.json()["msg"] == "Verify email first"

        r = client.post("/api/auth/verify-otp", json={"email": "ravi@example.com", "otp": _other_otp(otp)})
        assert r.status_code == 400
        assert r.json()["msg"] == "Invalid OTP"

        r = client.post("/api/auth/verify-otp", json={"email": "ravi@example.com", "otp": otp})
        assert r.status_code == 200

        r = client.post("/api/auth/verify-otp", json={"email": "ravi@example.com", "otp": otp})
        assert r.status_code == 400
        assert r.json()["msg"] == "User already verified"

        r = client.post("/api/auth/login", json={"email": "RAVI@example.com", "password": "secret123"})
        assert r.status_code == 200
        body = r.json()
        assert body["token"]
        assert body["user"]["role"] == "factory_owner"
        assert body["user"]["email"] == "ravi@example.com"

        r = client.get("/api/profile", headers={"Authorization": f"Bearer {body['token']}"})
        assert r.status_code == 200
        assert r.json()["data"]["company_name"] == "Ravi Textiles"

    def test_unknown_user_verify(self, client):
        r = client.post("/api/auth/verify-otp", json={"email": "ghost@example.com", "otp": "123456"})
        assert r.status_code == 404
        assert r.json()["msg"] == "User not found"

    def test_wrong_password(self, client, vepari):
        r = client.post("/api/auth/login", json={"email": vepari.email, "password": "nope-nope"})
        assert r.status_code == 401
        assert r.json()["msg"] == "Invalid credentials"


class TestPasswordReset:

    def test_reset_via_emailed_link(self, client, mailer, vepari):
        r = client.post("/api/auth/forgot-password", json={"email": vepari.email})
        assert r.status_code == 200
        link = mailer.last("reset")["body"]
        assert "/reset-password/" in link
        token = link.rsplit("/", 1)[1]

        r = client.post("/api/auth/reset-password", json={"token": token, "newPassword": "brand-new"})
        assert r.status_code == 200

        r = client.post("/api/auth/login", json={"email": vepari.email, "password": "brand-new"})
        assert r.status_code == 200

        # a reset token is not an access token
        r = client.get("/api/profile", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 401
        assert r.json()["msg"] == "Token is not valid"

    def test_garbage_token(self, client):
        r = client.post("/api/auth/reset-password", json={"token": "abc", "newPassword": "brand-new"})
        assert r.status_code == 400
        assert r.json()["msg"] == "Invalid or expired token"

    def test_access_token_cannot_reset(self, client, vepari):
        r = client.post("/api/auth/reset-password", json={"token": vepari.token, "newPassword": "brand-new"})
        assert r.status_code == 400

    def test_email_failure_is_502(self, client, mailer, vepari):
        mailer.fail = True
        r = client.post("/api/auth/forgot-password", json={"email": vepari.email})
        assert r.status_code == 502
        assert r.json()["msg"] == "Failed to send password reset email"


class TestGuards:

    def test_missing_token(self, client):
        r = client.get("/api/orders")
        assert r.status_code == 401
        assert r.json() == {"success": False, "msg": "No token, authorization denied"}

    @pytest.mark.parametrize("header", ["Bearer not-a-jwt", "garbage"])
    def test_bad_token(self, client, header):
        r = client.get("/api/orders", headers={"Authorization": header})
        assert r.status_code == 401
        assert r.json()["msg"] == "Token is not valid"

    def test_health(self, client):
        assert client.get("/").json() == {"status": "ok", "service": "designguard"}
