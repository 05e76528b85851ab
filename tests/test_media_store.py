"""
Tests for the Cloudinary-backed media store.
"""

import cloudinary.uploader
import pytest
from cloudinary.exceptions import Error as CloudinaryError

from designguard_backend.errors import UpstreamServiceError
from designguard_backend.services.media_store import PROFILE_FOLDER, PROFILE_TRANSFORMATION, MediaStore


@pytest.fixture
def store():
    return MediaStore(cloud_name="demo", api_key="key", api_secret="secret", timeout=7)


def test_upload_passes_options_to_sdk(store, monkeypatch):
    calls = []

    def fake_upload(file, **options):
        calls.append((file.read(), options))
        return {"secure_url": "https://res.cloudinary.com/demo/p.png", "public_id": "profile_1_x"}

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)
    result = store.upload(b"img", PROFILE_FOLDER, public_id="profile_1_x", transformation=PROFILE_TRANSFORMATION)

    assert result == {"url": "https://res.cloudinary.com/demo/p.png", "public_id": "profile_1_x"}
    data, options = calls[0]
    assert data == b"img"
    assert options["folder"] == PROFILE_FOLDER
    assert options["transformation"] == PROFILE_TRANSFORMATION
    assert options["timeout"] == 7


def test_timeout_is_reported(store, monkeypatch):
    def fake_upload(file, **options):
        raise CloudinaryError("Unexpected error - ReadTimeoutError('Read timed out.')")

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)
    with pytest.raises(UpstreamServiceError, match="timed out"):
        store.upload(b"img", "designguard_designs")


def test_sdk_failure_is_reported(store, monkeypatch):
    def fake_upload(file, **options):
        raise CloudinaryError("Invalid image file")

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)
    with pytest.raises(UpstreamServiceError, match="Image upload failed"):
        store.upload(b"img", "designguard_designs")


def test_unconfigured_store_refuses(monkeypatch):
    monkeypatch.setattr(cloudinary.uploader, "upload", lambda *a, **k: pytest.fail("should not upload"))
    with pytest.raises(UpstreamServiceError, match="not configured"):
        MediaStore(cloud_name=None, api_key=None, api_secret=None).upload(b"img", "designguard_designs")
