# This file contains the database access layer that handles connections to the catalog
# and provides the reusable read/update operations the updater needs

from sqlalchemy import create_engine, text, or_, and_
from sqlalchemy.orm import sessionmaker
from typing import List, Optional, Generator, Dict, Any
import logging
import pymysql
import sqlalchemy.exc
from config.settings import get_settings
from .models import (
    Base,
    Product,
    MediaAsset,
    ScheduledJob,
    PRODUCT_STATUS_PUBLISH,
    ATTACHMENT_STATUS_INHERIT,
)

logger = logging.getLogger("catalog.database")

# Get application settings
settings = get_settings()

# Database Connection Setup
# The engine is created lazily by SQLAlchemy; no connection is opened until first use
engine = create_engine(settings.DATABASE_URL)

# Session Factory
# Sessions manage the unit of work, so related changes are committed or rolled back together
SessionLocal = sessionmaker(bind=engine)


def ensure_database_exists():
    """Ensure that the MySQL catalog database exists before attempting operations.

    Other backends (SQLite in development and tests) create their storage on
    first connect, so only MySQL URLs need the explicit CREATE DATABASE.
    """
    if not settings.DATABASE_URL.startswith("mysql"):
        return
    try:
        # Test if we can connect to the database
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return  # Database exists and connection works
    except sqlalchemy.exc.OperationalError as e:
        # This is the specific exception for connection problems including "Unknown database"
        if "Unknown database" not in str(e):
            logger.error("Database connection error: %s", e)
            raise
        try:
            create_db_connection = pymysql.connect(
                host=settings.DB_HOST,
                user=settings.DB_USER,
                password=settings.DB_PASS,
                port=int(settings.DB_PORT),
            )
        except pymysql.Error as conn_err:
            logger.error("Failed to connect to MySQL server: %s", conn_err)
            raise
        try:
            with create_db_connection.cursor() as cursor:
                cursor.execute(f"CREATE DATABASE IF NOT EXISTS {settings.DB_NAME}")
            logger.info("Created database '%s'", settings.DB_NAME)
        except pymysql.Error as db_err:
            logger.error("Failed to create database: %s", db_err)
            raise
        finally:
            create_db_connection.close()


def init_db(bind=None):
    """Create catalog tables if they don't exist.

    Args:
        bind: Optional engine to create the tables on, defaults to the
              module engine built from settings
    """
    if bind is None:
        ensure_database_exists()
        bind = engine
    Base.metadata.create_all(bind=bind)


def get_db() -> Generator:
    """Create and yield a database session.

    Used as a FastAPI dependency; the session is closed even if the request
    handler raises.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Products


def get_candidate_products(db, match: str = "any") -> List[Product]:
    """Return published products that may need a description or image.

    With match="any" a product qualifies when it has a non-empty SKU OR has
    no primary image. This reprocesses every product that carries a SKU on
    each run, including fully populated ones. match="all" narrows the
    selection to products with a SKU AND without an image.

    No ORDER BY is applied; candidates come back in whatever order the
    database yields them.
    """
    has_sku = and_(Product.sku.isnot(None), Product.sku != "")
    lacks_image = Product.image_id.is_(None)
    condition = and_(has_sku, lacks_image) if match == "all" else or_(has_sku, lacks_image)

    return db.query(Product)\
        .filter(Product.status == PRODUCT_STATUS_PUBLISH)\
        .filter(condition)\
        .all()


def get_product(db, product_id: int) -> Optional[Product]:
    """Load a product by id, or None when it no longer exists."""
    return db.query(Product).filter(Product.id == product_id).first()


def create_product(db, name: str, sku: Optional[str] = None, description: str = "",
                   status: str = PRODUCT_STATUS_PUBLISH, image_id: Optional[int] = None) -> Product:
    """Add a product to the catalog."""
    product = Product(
        name=name,
        sku=sku,
        description=description,
        status=status,
        image_id=image_id,
    )
    db.add(product)  # Stage the new object for insertion
    db.commit()
    db.refresh(product)  # Refresh to get the database-generated id
    return product


def list_products(db, limit: int = 100) -> List[Product]:
    """List products ordered by id."""
    return db.query(Product).order_by(Product.id).limit(limit).all()


# Media assets


def create_media_asset(db, file_path: str, title: str, mime_type: Optional[str],
                       parent_id: Optional[int]) -> MediaAsset:
    """Register an encoded image file as a media asset owned by parent_id."""
    asset = MediaAsset(
        file_path=file_path,
        title=title,
        mime_type=mime_type,
        parent_id=parent_id,
        status=ATTACHMENT_STATUS_INHERIT,
        content="",
    )
    db.add(asset)
    db.commit()
    db.refresh(asset)
    return asset


def update_media_metadata(db, asset_id: int, metadata: Dict[str, Any]) -> Optional[MediaAsset]:
    """Persist width/height/derived-size metadata for an asset."""
    asset = get_media_asset(db, asset_id)
    if not asset:
        return None
    asset.attachment_metadata = metadata
    db.commit()
    return asset


def get_media_asset(db, asset_id: int) -> Optional[MediaAsset]:
    return db.query(MediaAsset).filter(MediaAsset.id == asset_id).first()


def find_media_asset(db, file_path: str, parent_id: Optional[int]) -> Optional[MediaAsset]:
    """Find the asset already registered for a file and owner."""
    return db.query(MediaAsset)\
        .filter(MediaAsset.file_path == file_path)\
        .filter(MediaAsset.parent_id == parent_id)\
        .first()


# Scheduled jobs


def next_scheduled(db, hook: str) -> Optional[ScheduledJob]:
    """Return the earliest pending job for a hook, if any."""
    return db.query(ScheduledJob)\
        .filter(ScheduledJob.hook == hook)\
        .order_by(ScheduledJob.run_at)\
        .first()


def schedule_single_event(db, hook: str, run_at: int) -> ScheduledJob:
    """Add a one-shot job for hook at the given Unix timestamp."""
    job = ScheduledJob(hook=hook, run_at=int(run_at))
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def unschedule_events(db, hook: str) -> int:
    """Remove every pending job for hook and return how many were removed."""
    count = db.query(ScheduledJob)\
        .filter(ScheduledJob.hook == hook)\
        .delete(synchronize_session=False)
    db.commit()
    return count


def pop_due_events(db, hook: str, now: int) -> List[int]:
    """Remove the jobs for hook whose run_at has passed, returning their run_at times.

    Jobs are deleted before their callback runs, so a job that fails while
    running is not fired a second time.
    """
    due = db.query(ScheduledJob)\
        .filter(ScheduledJob.hook == hook)\
        .filter(ScheduledJob.run_at <= now)\
        .order_by(ScheduledJob.run_at)\
        .all()
    run_times = [job.run_at for job in due]
    for job in due:
        db.delete(job)
    db.commit()
    return run_times
