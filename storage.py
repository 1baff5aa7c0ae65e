"""
Remote asset storage on Cloudinary.

Uploads and deletes are attempted once. A failed delete leaves the remote file
behind; callers decide whether that is fatal or only worth a log line.
"""
from typing import Any, BinaryIO, Dict, List, Optional, Tuple

import cloudinary
import cloudinary.uploader
import structlog
from cloudinary.exceptions import Error as CloudinaryError

from config import Settings, get_settings

logger = structlog.get_logger(__name__)


class AssetStoreError(Exception):
    """The asset host rejected or failed an upload/delete."""


class AssetStore:
    def __init__(self, settings: Settings):
        self.folder = settings.cloudinary_folder
        cloudinary.config(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            secure=True,
        )

    def upload(self, file: BinaryIO, resource_type: str = "auto") -> Dict[str, Any]:
        """Upload a file object. Returns ``{url, public_id, duration}``; duration is
        only meaningful for video uploads."""
        try:
            res = cloudinary.uploader.upload(
                file, resource_type=resource_type, folder=self.folder, use_filename=True,
            )
        except CloudinaryError as e:
            logger.error("Asset upload failed", error=str(e))
            raise AssetStoreError(str(e)) from e
        return {
            "url": res.get("secure_url") or res.get("url"),
            "public_id": res["public_id"],
            "duration": res.get("duration"),
        }

    def delete(self, public_id: Optional[str], resource_type: str = "image") -> str:
        """Delete one asset. An asset that is already gone counts as deleted."""
        if not public_id:
            return "skipped"
        try:
            res = cloudinary.uploader.destroy(public_id, resource_type=resource_type)
        except CloudinaryError as e:
            raise AssetStoreError(str(e)) from e
        result = res.get("result")
        if result not in ("ok", "not found"):
            raise AssetStoreError(f"Unexpected destroy result for {public_id}: {result}")
        logger.info("Asset deleted", public_id=public_id, resource_type=resource_type, result=result)
        return result


_store: Optional[AssetStore] = None


def get_asset_store() -> AssetStore:
    global _store
    if _store is None:
        _store = AssetStore(get_settings())
    return _store


def discard_uploads(assets: AssetStore, uploaded: List[Tuple[str, str]]) -> None:
    """Delete assets uploaded for a request that failed afterwards. Each
    ``(public_id, resource_type)`` is attempted; failures are only logged."""
    for public_id, resource_type in uploaded:
        try:
            assets.delete(public_id, resource_type)
        except AssetStoreError as e:
            logger.warning("Orphaned upload left on asset store", public_id=public_id, error=str(e))
