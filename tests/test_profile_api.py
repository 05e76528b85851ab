"""
Tests for the profile endpoints.
"""

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def test_get_own_profile(client, vepari):
    data = client.get("/api/profile", headers=vepari.headers).json()["data"]
    assert data["email"] == vepari.email
    assert data["role"] == "vepari"
    assert data["city"] == "Surat"
    assert "password_hash" not in data


def test_partial_update_keeps_other_fields(client, factory):
    r = client.put("/api/profile", json={"bio": "Since 1990", "employee_count": 40}, headers=factory.headers)
    assert r.status_code == 200

    data = client.get("/api/profile", headers=factory.headers).json()["data"]
    assert data["bio"] == "Since 1990"
    assert data["employee_count"] == 40
    assert data["company_name"].startswith("Mill of")


def test_fields_of_other_role_ignored(client, vepari):
    client.put("/api/profile", json={"company_name": "Not mine", "city": "Ahmedabad"}, headers=vepari.headers)
    data = client.get("/api/profile", headers=vepari.headers).json()["data"]
    assert data["city"] == "Ahmedabad"
    assert "company_name" not in data


def test_mobile_number_conflict(client, vepari, factory):
    assert client.put("/api/profile", json={"mobile_number": "9111111111"}, headers=vepari.headers).status_code == 200
    r = client.put("/api/profile", json={"mobile_number": "9111111111"}, headers=factory.headers)
    assert r.status_code == 409


def test_picture_upload(client, factory, media):
    r = client.post("/api/profile/picture", files={"profile_picture": ("me.png", PNG, "image/png")},
                    headers=factory.headers)
    assert r.status_code == 200
    url = r.json()["data"]["profile_picture_url"]

    upload = media.uploads[-1]
    assert upload["folder"] == "designguard/profile_pictures"
    assert upload["public_id"].startswith(f"profile_{factory.id}_")
    assert "g_face" in upload["transformation"]
    assert client.get("/api/profile", headers=factory.headers).json()["data"]["profile_picture_url"] == url


def test_picture_required(client, factory):
    r = client.post("/api/profile/picture", headers=factory.headers)
    assert r.status_code == 400
    assert r.json()["msg"] == "No image file provided"


def test_public_profile_hides_private_fields(client, vepari, factory):
    client.put("/api/profile", json={"gst_number": "24ABCDE1234F1Z5"}, headers=factory.headers)
    data = client.get(f"/api/profile/{factory.id}", headers=vepari.headers).json()["data"]
    assert data["company_name"].startswith("Mill of")
    assert "gst_number" not in data
    assert "email" not in data


def test_public_profile_missing_user(client, vepari):
    assert client.get("/api/profile/4242", headers=vepari.headers).status_code == 404
