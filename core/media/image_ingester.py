"""
Image ingestion for catalog products.

Downloads a product image, re-encodes it to WebP under the uploads
directory and registers the result as a media asset owned by the product.
"""

import logging
import mimetypes
import os
import re
from datetime import datetime
from io import BytesIO
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlparse

import requests
import sqlalchemy.exc
from PIL import Image, ImageOps, UnidentifiedImageError

from config.settings import get_settings
from core.database.operations import create_media_asset, find_media_asset, update_media_metadata
from core.exceptions import ImageIngestError

# Not every platform's mime table knows WebP
mimetypes.add_type("image/webp", ".webp")

WEBP_EXTENSION = ".webp"

# name -> (width, height, crop)
DERIVED_SIZES = {
    "thumbnail": (150, 150, True),
    "medium": (300, 300, False),
}

logger = logging.getLogger("media.ingester")


def webp_filename(image_url: str) -> str:
    """
    Derive the target file name for an image URL.

    Takes the last path segment and swaps its extension for .webp.
    Query strings and fragments are ignored.

    Args:
        image_url: Source image URL

    Returns:
        File name ending in .webp
    """
    name = os.path.basename(urlparse(image_url).path)
    if not name:
        return "image" + WEBP_EXTENSION
    renamed = re.sub(r"\.[^.]+$", WEBP_EXTENSION, name)
    if not renamed.endswith(WEBP_EXTENSION):
        renamed += WEBP_EXTENSION
    return renamed


def sanitize_file_name(filename: str) -> str:
    """
    Make a file name safe for use as an asset title.

    Removes characters that are awkward in paths and URLs, collapses
    whitespace and dashes, and trims leading/trailing punctuation.
    """
    name = re.sub(r"[?\[\]/\\=<>:;,'\"&$#*()|~`!{}%+\x00-\x1f]", "", filename)
    name = re.sub(r"[\s\-]+", "-", name)
    return name.strip(".-_")


def mime_type_for(filename: str) -> Optional[str]:
    return mimetypes.guess_type(filename)[0]


class ImageIngester:
    """Downloads, re-encodes and registers product images.

    No size cap or content-type check is applied to downloads; anything
    that Pillow cannot decode is rejected. An existing file with the same
    name in the target directory is overwritten.
    """

    def __init__(self, uploads_base_dir: Optional[str] = None, quality: Optional[int] = None,
                 session: Optional[requests.Session] = None, timeout: Optional[float] = None,
                 now: Callable[[], datetime] = datetime.now):
        settings = get_settings()
        self.uploads_base_dir = uploads_base_dir or settings.UPLOADS_BASE_DIR
        self.quality = quality if quality is not None else settings.WEBP_QUALITY
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": settings.LOOKUP_USER_AGENT})
        self.session = session
        self.now = now

    def upload_dir(self) -> str:
        """
        Resolve the directory new files are written to.

        Prefers the dated working directory <base>/<YYYY>/<MM>, creating it
        when missing, and falls back to the base directory if that fails.
        """
        now = self.now()
        path = os.path.join(self.uploads_base_dir, now.strftime("%Y"), now.strftime("%m"))
        try:
            os.makedirs(path, exist_ok=True)
            return path
        except OSError as e:
            logger.warning(f"Could not create upload directory {path}: {e}, using base directory")
            return self.uploads_base_dir

    def download(self, image_url: str) -> bytes:
        try:
            r = self.session.get(image_url, timeout=self.timeout)
            r.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise ImageIngestError(f"Download of {image_url} failed: {e}") from e
        return r.content

    def decode(self, data: bytes) -> Image.Image:
        try:
            image = Image.open(BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
            raise ImageIngestError(f"Could not decode image: {e}") from e
        return image

    def encode(self, image: Image.Image, path: str) -> None:
        if image.mode not in ("RGB", "RGBA"):
            has_alpha = image.mode in ("LA", "PA") or "transparency" in image.info
            image = image.convert("RGBA" if has_alpha else "RGB")
        try:
            image.save(path, format="WEBP", quality=self.quality)
        except (OSError, ValueError) as e:
            raise ImageIngestError(f"Could not write {path}: {e}") from e

    def generate_metadata(self, image: Image.Image, path: str) -> Dict[str, Any]:
        """
        Build attachment metadata and write the derived sizes next to the file.

        A derived size is only produced when the original is larger than it.
        """
        width, height = image.size
        stem = os.path.splitext(os.path.basename(path))[0]
        directory = os.path.dirname(path)

        metadata = {
            "width": width,
            "height": height,
            "file": os.path.relpath(path, self.uploads_base_dir),
            "sizes": {},
        }

        for size_name, (size_w, size_h, crop) in DERIVED_SIZES.items():
            if width <= size_w and height <= size_h:
                continue
            if crop:
                resized = ImageOps.fit(image, (size_w, size_h), Image.Resampling.LANCZOS)
            else:
                resized = image.copy()
                resized.thumbnail((size_w, size_h), Image.Resampling.LANCZOS)

            size_file = f"{stem}-{resized.width}x{resized.height}{WEBP_EXTENSION}"
            self.encode(resized, os.path.join(directory, size_file))
            metadata["sizes"][size_name] = {
                "file": size_file,
                "width": resized.width,
                "height": resized.height,
                "mime-type": mime_type_for(size_file),
            }

        return metadata

    def ingest(self, db, image_url: str, owner_product_id: int) -> Optional[int]:
        """
        Turn an image URL into a registered media asset.

        Args:
            db: Database session
            image_url: URL of the source image
            owner_product_id: Product that will own the asset

        Returns:
            The new asset id, or None when any step failed
        """
        filename = webp_filename(image_url)

        try:
            image = self.decode(self.download(image_url))
        except ImageIngestError as e:
            logger.warning(f"Skipping image for product {owner_product_id}: {e}")
            return None

        path = os.path.join(self.upload_dir(), filename)

        try:
            self.encode(image, path)
            metadata = self.generate_metadata(image, path)
        except ImageIngestError as e:
            logger.error(f"Image for product {owner_product_id} not stored: {e}")
            return None
        finally:
            image.close()

        try:
            # The file was overwritten in place, so an existing registration still points at it
            asset = find_media_asset(db, path, owner_product_id)
            if asset is None:
                asset = create_media_asset(
                    db,
                    file_path=path,
                    title=sanitize_file_name(filename),
                    mime_type=mime_type_for(filename),
                    parent_id=owner_product_id,
                )
            update_media_metadata(db, asset.id, metadata)
        except sqlalchemy.exc.SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Could not register {path} for product {owner_product_id}: {e}")
            return None

        logger.info(f"Stored {path} as media asset {asset.id} for product {owner_product_id}")
        return asset.id
