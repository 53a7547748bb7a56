"""Outfit scan workflow: submit, poll until terminal, normalize, cache."""

from __future__ import annotations

import asyncio
import logging

from collections.abc import Awaitable, Callable
from typing import NamedTuple

from sqlalchemy.orm import Session

from fitspo import cache
from fitspo.errors import PostNotFoundError, ScanCacheWriteError, ScanCancelledError, ScanError, ScanTimeoutError
from fitspo.normalizer import DEFAULT_SHOP_SEARCH_URL, normalize_job
from fitspo.scan_client import ScanClient
from fitspo.schemas import OutfitItem, ScanJob
from fitspo.settings import Settings


logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"


class ScanOutcome(NamedTuple):
    job: ScanJob
    items: list[OutfitItem]
    persisted: bool


class OutfitScanner:
    def __init__(
        self,
        client: ScanClient,
        session_factory: Callable[[], Session],
        *,
        poll_interval: float = 2.0,
        max_attempts: int = 15,
        shop_search_url: str = DEFAULT_SHOP_SEARCH_URL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.session_factory = session_factory
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.shop_search_url = shop_search_url
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: ScanClient,
        session_factory: Callable[[], Session],
    ) -> OutfitScanner:
        return cls(
            client,
            session_factory,
            poll_interval=settings.scan_poll_interval_seconds,
            max_attempts=settings.scan_max_attempts,
            shop_search_url=settings.shop_search_url,
        )

    async def wait_for_job(self, job: ScanJob, cancel: asyncio.Event | None = None) -> ScanJob:
        """Re-fetch ``job`` every ``poll_interval`` until it is terminal.

        At most ``max_attempts`` re-fetches are issued; a job still pending
        after the last one raises ``ScanTimeoutError``.
        """
        current = job
        attempts = 0
        while not current.is_terminal:
            if attempts >= self.max_attempts:
                logger.warning("scan timed out job_id=%s attempts=%s status=%s", current.id, attempts, current.status)
                raise ScanTimeoutError(current.id, attempts)

            _check_cancel(cancel)
            await self._sleep(self.poll_interval)
            _check_cancel(cancel)
            current = await self.client.fetch(current.id)
            attempts += 1
            logger.debug("scan poll job_id=%s attempt=%s status=%s", current.id, attempts, current.status)

        return current

    async def scan_post(self, post_id: str, image_url: str, cancel: asyncio.Event | None = None) -> ScanOutcome:
        """Run one full scan for a post and cache the normalized items.

        Submit and poll errors propagate; the post is marked failed first. A
        job ending in a terminal status other than ``succeeded`` is not an
        exception: previous cached results stay, and the outcome has no items
        and ``persisted=False``.
        """
        try:
            _check_cancel(cancel)
            job = await self.client.submit(post_id, image_url)
            job = await self.wait_for_job(job, cancel)
            items = normalize_job(job, self.shop_search_url)
            _check_cancel(cancel)
        except (ScanError, asyncio.CancelledError) as e:
            message = str(e) or type(e).__name__
            logger.warning("scan aborted post_id=%s: %s", post_id, message)
            await asyncio.to_thread(self._record_failure, post_id, message)
            raise

        if job.status != SUCCEEDED:
            logger.warning("scan job ended post_id=%s job_id=%s status=%s", post_id, job.id, job.status)
            await asyncio.to_thread(self._record_failure, post_id, f"remote scan job {job.status}")
            return ScanOutcome(job=job, items=[], persisted=False)

        try:
            await asyncio.to_thread(self._write_results, post_id, items)
        except (ScanCacheWriteError, PostNotFoundError) as e:
            # Release the claim so the scan can be triggered again.
            logger.warning("scan results not saved post_id=%s: %s", post_id, e)
            await asyncio.to_thread(self._record_failure, post_id, str(e))
            raise

        logger.info("scan finished post_id=%s job_id=%s status=%s items=%s", post_id, job.id, job.status, len(items))
        return ScanOutcome(job=job, items=items, persisted=True)

    def start_scan(self, post_id: str, image_url: str, cancel: asyncio.Event | None = None) -> asyncio.Task[ScanOutcome]:
        """Schedule ``scan_post`` on the running loop and hand back the task.

        The caller owns the task: await it, or keep a reference and inspect
        its exception later. Nothing is detached silently.
        """
        return asyncio.create_task(self.scan_post(post_id, image_url, cancel), name=f"outfit-scan-{post_id}")

    def _write_results(self, post_id: str, items: list[OutfitItem]) -> None:
        with self.session_factory() as db:
            cache.write_scan_results(db, post_id, items)

    def _record_failure(self, post_id: str, message: str) -> None:
        with self.session_factory() as db:
            cache.record_scan_failure(db, post_id, message)


def _check_cancel(cancel: asyncio.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise ScanCancelledError("scan cancelled")
