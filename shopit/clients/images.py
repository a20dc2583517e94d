import io
import logging
from dataclasses import dataclass
from typing import Iterable, Union

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from ..errors import UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    public_id: str
    url: str


class CloudinaryImageStore:
    """
    Uploads and deletions through the Cloudinary SDK.

    `data` may be raw bytes or a string Cloudinary understands (data URI or
    remote URL).
    """

    def __init__(self, cloud_name: str, api_key: str, api_secret: str):
        cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)

    def upload(self, folder: str, data: Union[bytes, str]) -> UploadResult:
        file = io.BytesIO(data) if isinstance(data, (bytes, bytearray)) else data
        try:
            body = cloudinary.uploader.upload(file, folder=folder)
        except cloudinary.exceptions.Error as e:
            raise UpstreamError(f"error uploading image: {e}") from e

        logger.info("Uploaded image %s to folder %s", body.get("public_id"), folder)
        return UploadResult(public_id=body["public_id"], url=body.get("secure_url") or body["url"])

    def destroy(self, public_id: str) -> str:
        try:
            body = cloudinary.uploader.destroy(public_id)
        except cloudinary.exceptions.Error as e:
            raise UpstreamError(f"error deleting image from cloud: {e}") from e
        return body.get("result", "")


def destroy_images(image_store, public_ids: Iterable[str]) -> None:
    """Deletes cloud assets whose rows are already gone; failures only leave orphans."""
    for public_id in public_ids:
        try:
            image_store.destroy(public_id)
        except UpstreamError as e:
            logger.warning("Could not delete image %s: %s", public_id, e.message)
