import os
from functools import lru_cache
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Directory that holds cli.py, the default home of the update log
PROJECT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


class Settings:
    """Application settings loaded from environment variables with defaults.

    Every value can be overridden through the environment or a .env file,
    which keeps deployment configuration out of the code while the defaults
    stay usable for local development.
    """

    # Project metadata
    PROJECT_NAME = "Barcode Auto Updater"
    PROJECT_VERSION = "1.1.0"

    # Catalog database settings
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "3306")
    DB_NAME = os.getenv("DB_NAME", "catalog")
    DB_USER = os.getenv("DB_USER", "user")
    DB_PASS = os.getenv("DB_PASSWORD", "password")
    DATABASE_URL_OVERRIDE = os.getenv("DATABASE_URL")

    # Barcode lookup site
    LOOKUP_BASE_URL = os.getenv("LOOKUP_BASE_URL", "https://www.barcodelookup.com")
    LOOKUP_USER_AGENT = os.getenv("LOOKUP_USER_AGENT", DEFAULT_USER_AGENT)
    LOOKUP_PARSER = os.getenv("LOOKUP_PARSER", "regex")
    REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "30"))

    # Media storage
    UPLOADS_BASE_DIR = os.getenv("UPLOADS_BASE_DIR", os.path.join(PROJECT_DIR, "uploads"))
    WEBP_QUALITY = int(os.getenv("WEBP_QUALITY", "80"))

    # Update log (0 bytes means the file is never rotated)
    UPDATE_LOG_FILE = os.getenv(
        "UPDATE_LOG_FILE", os.path.join(PROJECT_DIR, "barcode_update_log.txt")
    )
    UPDATE_LOG_MAX_BYTES = int(os.getenv("UPDATE_LOG_MAX_BYTES", "0"))
    UPDATE_LOG_BACKUP_COUNT = int(os.getenv("UPDATE_LOG_BACKUP_COUNT", "5"))

    # Pacing between lookups and between batch runs, in seconds
    REQUEST_DELAY_MIN = int(os.getenv("REQUEST_DELAY_MIN", "5"))
    REQUEST_DELAY_MAX = int(os.getenv("REQUEST_DELAY_MAX", "15"))
    RESCHEDULE_MIN = int(os.getenv("RESCHEDULE_MIN", "1800"))
    RESCHEDULE_MAX = int(os.getenv("RESCHEDULE_MAX", "3600"))

    # "any" selects products with a SKU OR without an image, "all" requires both
    CANDIDATE_MATCH = os.getenv("CANDIDATE_MATCH", "any")

    # Scheduler worker
    SCHEDULER_POLL_SECONDS = int(os.getenv("SCHEDULER_POLL_SECONDS", "30"))
    START_SCHEDULER = os.getenv("START_SCHEDULER", "false").lower() in ("1", "true", "yes")

    @property
    def DATABASE_URL(self) -> str:
        """Constructs a SQLAlchemy connection string, MySQL unless overridden."""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"mysql+pymysql://{self.DB_USER}:{self.DB_PASS}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


# For direct access in other modules
settings = get_settings()
