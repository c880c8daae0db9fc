"""
The scheduled update run.

Selects candidate products, looks each SKU up, applies what was found,
records one log line per product, paces itself between lookups and finally
re-arms its own next run.
"""

import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import sqlalchemy.exc

from config.settings import get_settings
from core.database.operations import SessionLocal, get_candidate_products
from core.exceptions import LookupTransportError
from core.media.image_ingester import ImageIngester
from core.scheduling.scheduler import EventScheduler
from core.scrapers.base import BaseLookupClient
from core.scrapers.scraper_factory import ScraperFactory
from core.updater.catalog_updater import update_product
from core.updater.update_log import UpdateLogger

NOT_FOUND_MESSAGE = "Description or image not found."

# Shared by every runner in the process so manual and scheduled runs never overlap
_run_lock = threading.Lock()

logger = logging.getLogger("updater.batch")


@dataclass
class RunSummary:
    """Counters for one batch run."""
    processed: int = 0
    updated: int = 0
    failed: int = 0
    skipped_no_sku: int = 0
    next_run_at: Optional[int] = None
    skipped: bool = False


class BatchRunner:
    """Runs the scrape-update-reschedule loop.

    Lookups are strictly sequential. After every product that has a SKU
    the runner blocks for a random 5-15 seconds (configurable) so the lookup
    site sees spaced-out requests. A full run over N products therefore takes
    at least N times the minimum delay.
    """

    def __init__(self, session_factory=None, lookup_client: Optional[BaseLookupClient] = None,
                 ingester: Optional[ImageIngester] = None,
                 update_logger: Optional[UpdateLogger] = None,
                 scheduler: Optional[EventScheduler] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 randint: Callable[[int, int], int] = random.randint):
        settings = get_settings()
        self.session_factory = session_factory or SessionLocal
        self.lookup_client = lookup_client or ScraperFactory.create_client(settings.LOOKUP_PARSER)
        self.ingester = ingester or ImageIngester()
        self.update_logger = update_logger or UpdateLogger()
        self.scheduler = scheduler or EventScheduler(self.session_factory, randint=randint)
        self.sleep = sleep
        self.randint = randint
        self.delay_min = settings.REQUEST_DELAY_MIN
        self.delay_max = settings.REQUEST_DELAY_MAX
        self.candidate_match = settings.CANDIDATE_MATCH

    def run_once(self) -> RunSummary:
        """Process every candidate once, then schedule the next run.

        Returns immediately with summary.skipped set if another run is in
        progress in this process.
        """
        if not _run_lock.acquire(blocking=False):
            logger.warning("Update run already in progress, skipping")
            return RunSummary(skipped=True)
        try:
            return self._run()
        finally:
            _run_lock.release()

    def _run(self) -> RunSummary:
        summary = RunSummary()
        db = self.session_factory()
        try:
            # Plain tuples, so later commits and rollbacks cannot expire them
            candidates = [
                (product.id, product.sku)
                for product in get_candidate_products(db, match=self.candidate_match)
            ]
            logger.info(f"Found {len(candidates)} candidate products")

            for product_id, barcode in candidates:
                self.process_product(db, product_id, barcode, summary)
        finally:
            db.close()
            # Re-arm even when the run failed part way
            summary.next_run_at = self.scheduler.reschedule()

        logger.info(
            f"Run finished: {summary.processed} processed, {summary.updated} updated, "
            f"{summary.failed} failed, {summary.skipped_no_sku} without SKU"
        )
        return summary

    def process_product(self, db, product_id: int, barcode: Optional[str], summary: RunSummary):
        """Look up one product and apply the result."""
        if not barcode:
            # The SKU is the lookup key; nothing to do and nothing to log
            summary.skipped_no_sku += 1
            return

        summary.processed += 1
        try:
            result = self.lookup_client.lookup(barcode)
        except LookupTransportError as e:
            logger.warning(f"Lookup for product {product_id} failed: {e}")
            result = None

        if result is None or not result.found:
            self.update_logger.record(product_id, barcode, False, NOT_FOUND_MESSAGE)
            summary.failed += 1
        else:
            message = ""
            try:
                success = update_product(
                    db, product_id, result.description, result.image_url, self.ingester
                )
            except sqlalchemy.exc.SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Database error updating product {product_id}: {e}")
                success = False
                message = f"Database error: {e}"

            self.update_logger.record(product_id, barcode, success, message)
            if success:
                summary.updated += 1
            else:
                summary.failed += 1

        self.pause()

    def pause(self):
        """Block before the next lookup."""
        delay = self.randint(self.delay_min, self.delay_max)
        logger.debug(f"Sleeping {delay}s before next lookup")
        self.sleep(delay)


def create_runner(session_factory=None, **kwargs) -> BatchRunner:
    """Build a runner and bind it to its scheduler as the update hook callback."""
    session_factory = session_factory or SessionLocal
    scheduler = kwargs.pop("scheduler", None) or EventScheduler(
        session_factory, randint=kwargs.get("randint", random.randint)
    )
    runner = BatchRunner(session_factory=session_factory, scheduler=scheduler, **kwargs)
    scheduler.callback = runner.run_once
    return runner
