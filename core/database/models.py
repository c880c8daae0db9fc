# This file defines the catalog schema using SQLAlchemy's Object Relational Mapper (ORM)
# It holds the products being enriched, the media assets attached to them and the
# pending scheduled runs of the update job

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import relationship
from datetime import datetime

# Create a base class for all ORM models
Base = declarative_base()

PRODUCT_STATUS_PUBLISH = "publish"
ATTACHMENT_STATUS_INHERIT = "inherit"


class MediaAsset(Base):
    """A stored image registered with the catalog.

    Assets are created from downloaded and re-encoded images. The owning
    product is recorded in parent_id; a product points at its primary image
    through Product.image_id, so an asset can exist without being the
    primary image of its parent.
    """
    __tablename__ = "media_assets"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Owning product id, plain column without a foreign key constraint
    parent_id = Column(Integer, index=True, nullable=True)

    # Absolute or uploads-relative path of the encoded file
    file_path = Column(String(1024), nullable=False)

    title = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=True)
    status = Column(String(20), default=ATTACHMENT_STATUS_INHERIT, nullable=False)
    content = Column(Text, default="", nullable=False)

    # Width, height, file name and derived sizes
    attachment_metadata = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.now)


class Product(Base):
    """A catalog product whose description and image may be filled in.

    The SKU doubles as the barcode used for the external lookup. The
    updater only ever reads id/sku and writes description/image_id.
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, default="")

    # Indexed because candidate selection filters on it
    sku = Column(String(100), index=True, nullable=True)

    description = Column(Text, default="", nullable=False)

    # Primary image, absent when the product has none
    image_id = Column(Integer, ForeignKey("media_assets.id"), nullable=True, index=True)

    status = Column(String(20), default=PRODUCT_STATUS_PUBLISH, index=True, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    image = relationship("MediaAsset", foreign_keys=[image_id])


class ScheduledJob(Base):
    """A pending one-shot invocation of a named hook.

    run_at is a Unix timestamp in seconds. The scheduler keeps at most one
    row per hook.
    """
    __tablename__ = "scheduled_jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    hook = Column(String(100), index=True, nullable=False)
    run_at = Column(Integer, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
