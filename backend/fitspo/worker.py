"""Background scan worker: claims queued posts and runs their outfit scan."""

from __future__ import annotations

import asyncio
import logging
import time

from collections.abc import Awaitable, Callable

from sqlalchemy.orm import Session

from fitspo.cache import claim_next_queued, record_scan_failure
from fitspo.db import SessionLocal, init_db
from fitspo.errors import PostNotFoundError, ScanError
from fitspo.logging_config import setup_logging
from fitspo.scan_client import ScanClient
from fitspo.scanner import OutfitScanner, ScanOutcome
from fitspo.settings import settings


logger = logging.getLogger(__name__)

ScanRunner = Callable[[str, str], Awaitable[ScanOutcome]]


async def run_scan(post_id: str, image_url: str) -> ScanOutcome:
    # One HTTP client per event loop; asyncio.run creates a fresh loop per job.
    client = ScanClient.from_settings(settings)
    try:
        scanner = OutfitScanner.from_settings(settings, client, SessionLocal)
        return await scanner.scan_post(post_id, image_url)
    finally:
        await client.aclose()


def process_next(session_factory: Callable[[], Session] = SessionLocal, scan: ScanRunner = run_scan) -> bool:
    """Run the oldest queued scan, if any. Returns False when the queue is empty."""
    with session_factory() as db:
        post = claim_next_queued(db)
        if not post:
            return False
        post_id, image_url = post.id, post.image_url

    logger.info("scan claimed post_id=%s", post_id)
    try:
        outcome = asyncio.run(scan(post_id, image_url))
    except (ScanError, PostNotFoundError) as e:
        # scan_post already recorded the failure on the post.
        logger.warning("scan failed post_id=%s: %s", post_id, e)
    except Exception as e:
        logger.exception("scan crashed post_id=%s", post_id)
        _mark_failed(session_factory, post_id, str(e) or type(e).__name__)
    else:
        logger.info("scan done post_id=%s status=%s items=%s", post_id, outcome.job.status, len(outcome.items))

    return True


def _mark_failed(session_factory: Callable[[], Session], post_id: str, message: str) -> None:
    try:
        with session_factory() as db:
            record_scan_failure(db, post_id, message)
    except Exception:
        logger.exception("could not record scan failure post_id=%s", post_id)


def main() -> None:
    setup_logging(settings.log_level)
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    init_db()
    logger.info("scan worker started functions=%s", settings.functions_base_url)

    while True:
        if not process_next():
            time.sleep(1)
            continue

        time.sleep(0.1)


if __name__ == "__main__":
    main()
