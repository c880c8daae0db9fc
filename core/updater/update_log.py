"""
Append-only log of per-product update outcomes.

Each processed product produces exactly one line:

    [YYYY-MM-DD HH:MM:SS] Product ID: <id>, Barcode: <sku>, Success: <Yes|No>, Message: <text>
"""

import logging
import logging.handlers
import os
from collections import deque
from typing import List, Optional

from config.settings import get_settings

LINE_FORMAT = "Product ID: %d, Barcode: %s, Success: %s, Message: %s"


class UpdateLogger:
    """Writes update outcomes to a plain text file through the logging module.

    The file is opened in append mode and created when missing. With
    max_bytes > 0 it is rotated, keeping backup_count old files.
    """

    def __init__(self, path: Optional[str] = None, max_bytes: Optional[int] = None,
                 backup_count: Optional[int] = None):
        settings = get_settings()
        self.path = os.path.abspath(path or settings.UPDATE_LOG_FILE)
        max_bytes = settings.UPDATE_LOG_MAX_BYTES if max_bytes is None else max_bytes
        backup_count = settings.UPDATE_LOG_BACKUP_COUNT if backup_count is None else backup_count

        # One logger per log file
        self.logger = logging.getLogger("updater.log." + self.path.replace(".", "_"))
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False

        if not self.logger.handlers:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            if max_bytes > 0:
                handler = logging.handlers.RotatingFileHandler(
                    self.path, mode="a", maxBytes=max_bytes,
                    backupCount=backup_count, encoding="utf-8",
                )
            else:
                handler = logging.FileHandler(self.path, mode="a", encoding="utf-8")
            handler.setFormatter(logging.Formatter(
                "[%(asctime)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            ))
            self.logger.addHandler(handler)

    def record(self, product_id: int, barcode: str, success: bool, message: str = "") -> None:
        self.logger.info(LINE_FORMAT, product_id, barcode, "Yes" if success else "No", message)

    def close(self) -> None:
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()


def tail(path: str, limit: int = 20) -> List[str]:
    """Return the last `limit` lines of an update log, oldest first."""
    if not os.path.exists(path):
        return []
    with open(path, "r", encoding="utf-8") as f:
        return [line.rstrip("\n") for line in deque(f, maxlen=limit)]
