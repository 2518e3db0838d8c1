"""Image resizing and hosting via Cloudinary"""

import io
import time
from typing import Any, Dict, Optional, Sequence, Tuple

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from ..utils.config import ImageSettings
from ..utils.exceptions import ConfigError, UpstreamError, ValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)

USER_PHOTO_SIZE = (500, 500)
TOUR_IMAGE_SIZE = (2000, 1333)
MAX_TOUR_IMAGES = 3


def ensure_image(content_type: Optional[str]) -> None:
    """Reject uploads that are not images."""
    if not content_type or not content_type.startswith("image/"):
        raise ValidationError("Not an image! Please upload only images.")


class CloudinaryImageProcessor:
    """resize(data, public_id, width, height) -> hosted image URL"""

    def __init__(self, settings: ImageSettings):
        if not settings.is_configured:
            raise ConfigError("Cloudinary credentials are required for image uploads")
        self.settings = settings
        cloudinary.config(
            cloud_name=settings.cloud_name,
            api_key=settings.api_key,
            api_secret=settings.api_secret,
            secure=True,
        )

    def resize(self, data: bytes, public_id: str, width: int, height: int) -> str:
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(data),
                resource_type="image",
                public_id=public_id,
                folder=self.settings.folder,
                overwrite=True,
                invalidate=True,
                format="jpg",
                transformation=[{"width": width, "height": height, "crop": "fill", "quality": 90}],
            )
        except CloudinaryError as e:
            logger.error("Image upload failed", public_id=public_id, error=str(e))
            raise UpstreamError(f"Image processing failed: {str(e)}")
        url = result.get("secure_url") or result.get("url")
        if not url:
            raise UpstreamError("Image processing failed: no URL returned")
        logger.info("Image processed", public_id=public_id, width=width, height=height)
        return url


def process_tour_images(
    processor,
    tour_id: str,
    cover: Optional[Tuple[bytes, Optional[str]]] = None,
    images: Sequence[Tuple[bytes, Optional[str]]] = (),
) -> Dict[str, Any]:
    """Resize an uploaded cover and up to three gallery images; return the tour fields to set."""
    uploads = ([cover] if cover else []) + list(images)
    if not uploads:
        return {}
    for _, content_type in uploads:
        ensure_image(content_type)
    if len(images) > MAX_TOUR_IMAGES:
        raise ValidationError(f"A tour can have at most {MAX_TOUR_IMAGES} images")
    if processor is None:
        raise UpstreamError("Image uploads are not configured")

    width, height = TOUR_IMAGE_SIZE
    stamp = int(time.time() * 1000)
    changes: Dict[str, Any] = {}
    if cover:
        changes["imageCover"] = processor.resize(cover[0], f"tour-{tour_id}-{stamp}-cover", width, height)
    if images:
        changes["images"] = [
            processor.resize(data, f"tour-{tour_id}-{stamp}-{i + 1}", width, height)
            for i, (data, _) in enumerate(images)
        ]
    return changes
