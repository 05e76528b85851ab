# services/media_store.py
import io
import logging
from typing import Dict, Optional

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from ..config import Config
from ..errors import UpstreamServiceError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/pjpeg",
    "application/octet-stream",  # generic mobile uploads
}

DESIGN_FOLDER = "designguard_designs"
PROFILE_FOLDER = "designguard/profile_pictures"
PROFILE_TRANSFORMATION = "c_fill,g_face,h_400,w_400/q_auto,f_auto"


class MediaStore:
    """Image uploads to Cloudinary through the cloudinary SDK."""

    def __init__(self, cloud_name: Optional[str] = Config.CLOUDINARY_CLOUD_NAME,
                 api_key: Optional[str] = Config.CLOUDINARY_API_KEY,
                 api_secret: Optional[str] = Config.CLOUDINARY_API_SECRET,
                 timeout: float = Config.MEDIA_UPLOAD_TIMEOUT):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.timeout = timeout
        if self.configured:
            cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def upload(self, data: bytes, folder: str, public_id: Optional[str] = None,
               transformation: Optional[str] = None) -> Dict[str, str]:
        if not self.configured:
            raise UpstreamServiceError("Media store is not configured")

        options = {"folder": folder, "resource_type": "image", "timeout": self.timeout}
        if public_id:
            options["public_id"] = public_id
        if transformation:
            options["transformation"] = transformation

        try:
            body = cloudinary.uploader.upload(io.BytesIO(data), **options)
        except CloudinaryError as e:
            if "timed out" in str(e).lower() or "timeout" in str(e).lower():
                logger.error("Image upload timed out after %ss", self.timeout)
                raise UpstreamServiceError("Image upload timed out. Please try again.") from e
            logger.exception("Image upload failed: %s", e)
            raise UpstreamServiceError("Image upload failed") from e

        url = body.get("secure_url") or body.get("url")
        if not url:
            raise UpstreamServiceError("Image upload failed")
        logger.info("Uploaded image to %s", url)
        return {"url": url, "public_id": body.get("public_id")}
