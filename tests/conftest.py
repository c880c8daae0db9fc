"""
Shared fixtures: a throwaway SQLite catalog, an update log in tmp_path,
and helpers for fake HTTP responses and generated images.
"""
import os
import tempfile

# Keep defaults away from MySQL and the project directory
_scratch = tempfile.mkdtemp(prefix="barcode-updater-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_scratch, 'default.db')}")
os.environ.setdefault("UPDATE_LOG_FILE", os.path.join(_scratch, "barcode_update_log.txt"))
os.environ.setdefault("UPLOADS_BASE_DIR", os.path.join(_scratch, "uploads"))

from io import BytesIO
from unittest.mock import Mock

import pytest
import requests
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from core.database.operations import init_db
from core.media.image_ingester import ImageIngester
from core.scheduling.scheduler import EventScheduler
from core.updater.update_log import UpdateLogger

FIXED_NOW = 1_700_000_000


def make_image_bytes(width=400, height=300, fmt="JPEG", color=(200, 30, 30)):
    """Encode a solid test image"""
    buf = BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format=fmt)
    return buf.getvalue()


def make_response(content=b"", text="", status_code=200):
    """Build a stand-in for requests.Response"""
    response = Mock()
    response.content = content
    response.text = text
    response.status_code = status_code
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} Error")
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture
def engine(tmp_path):
    # The API tests reach the database from the test client's worker threads
    engine = create_engine(
        f"sqlite:///{tmp_path / 'catalog.db'}", connect_args={"check_same_thread": False}
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def log_path(tmp_path):
    return str(tmp_path / "barcode_update_log.txt")


@pytest.fixture
def update_logger(log_path):
    logger = UpdateLogger(log_path, max_bytes=0)
    yield logger
    logger.close()


@pytest.fixture
def image_session():
    """HTTP session whose every GET returns a 400x300 JPEG"""
    session = Mock()
    session.get.return_value = make_response(content=make_image_bytes())
    return session


@pytest.fixture
def uploads_dir(tmp_path):
    return str(tmp_path / "uploads")


@pytest.fixture
def ingester(uploads_dir, image_session):
    return ImageIngester(uploads_base_dir=uploads_dir, quality=80, session=image_session)


@pytest.fixture
def scheduler(session_factory):
    return EventScheduler(session_factory, randint=lambda low, high: low, clock=lambda: FIXED_NOW)
