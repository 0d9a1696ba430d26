"""
Hosted media storage (Cloudinary).

Uploaded files are first staged to a temporary local file, forwarded to the
provider, and the staged copy is removed afterwards.
"""

import logging
import os
import shutil
import tempfile
from typing import Dict

import cloudinary
import cloudinary.uploader
from fastapi import Request, UploadFile

from config import settings

logger = logging.getLogger(__name__)


class MediaStore:
    """Thin wrapper over the Cloudinary uploader."""

    def __init__(self, cloud_name=None, api_key=None, api_secret=None, tmp_dir=None):
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )
        self.tmp_dir = tmp_dir or tempfile.gettempdir()
        os.makedirs(self.tmp_dir, exist_ok=True)

    def stage(self, file: UploadFile) -> str:
        ext = os.path.splitext(file.filename or "")[1]
        fd, path = tempfile.mkstemp(suffix=ext, dir=self.tmp_dir)
        with os.fdopen(fd, "wb") as f:
            shutil.copyfileobj(file.file, f)
        return path

    def upload(self, file: UploadFile, resource_type: str = "image") -> Dict[str, str]:
        """Upload a file and return its ``url`` and provider ``asset_id``."""
        path = self.stage(file)
        try:
            result = cloudinary.uploader.upload(path, resource_type=resource_type)
        finally:
            os.remove(path)
        logger.info("Uploaded %s asset %s", resource_type, result["public_id"])
        return {"url": result["secure_url"], "asset_id": result["public_id"]}

    def destroy(self, asset_id: str, resource_type: str = "image") -> None:
        cloudinary.uploader.destroy(asset_id, resource_type=resource_type)
        logger.info("Destroyed %s asset %s", resource_type, asset_id)

    def discard(self, asset_id: str, resource_type: str = "image") -> None:
        """Destroy an asset, logging instead of raising on failure."""
        try:
            self.destroy(asset_id, resource_type=resource_type)
        except Exception:
            logger.exception("Could not destroy %s asset %s", resource_type, asset_id)


def build_media() -> MediaStore:
    """Media store from settings; built once at application startup."""
    if not settings.media_configured():
        logger.warning("Cloudinary credentials are not set; uploads will fail")
    return MediaStore(
        cloud_name=settings.cloud_name,
        api_key=settings.cloud_api_key,
        api_secret=settings.cloud_api_secret,
        tmp_dir=settings.upload_tmp_dir,
    )


def get_media(request: Request) -> MediaStore:
    """FastAPI dependency returning the shared media store."""
    return request.app.state.media
