import logging
from typing import Optional

from core.database.operations import get_product
from core.media.image_ingester import ImageIngester

logger = logging.getLogger("updater.catalog")


def update_product(db, product_id: int, description: str, image_url: Optional[str] = None,
                   ingester: Optional[ImageIngester] = None) -> bool:
    """Apply a looked-up description and optional image to one product.

    The description is always written. When an image URL is given it is
    ingested and, if that works, becomes the product's primary image. A
    failed image leaves the previous image in place while the description
    change is still saved.

    Args:
        db: Database session
        product_id: Product to update
        description: New description text
        image_url: Optional source image URL
        ingester: ImageIngester to use, a default one is built when omitted

    Returns:
        False if the product does not exist, True otherwise
    """
    product = get_product(db, product_id)
    if not product:
        logger.warning("Product %s not found, nothing updated", product_id)
        return False

    attachment_id = None
    if image_url:
        ingester = ingester or ImageIngester()
        attachment_id = ingester.ingest(db, image_url, product_id)

    product.description = description
    if attachment_id:
        product.image_id = attachment_id

    db.commit()
    return True
