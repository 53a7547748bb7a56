"""Scan state and cached scan results stored on the post row."""

from __future__ import annotations

import logging

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fitspo.errors import PostNotFoundError, ScanCacheWriteError, ScanInProgressError
from fitspo.models import ACTIVE_SCAN_STATES, Post, ScanState
from fitspo.schemas import OutfitItem


logger = logging.getLogger(__name__)


def claim_scan(db: Session, post_id: str, state: ScanState = ScanState.queued) -> Post:
    """Mark a post as queued (or running) unless a scan is already active.

    The conditional update is the per-post lock: of two concurrent triggers,
    only one sees rowcount == 1.
    """
    now = datetime.utcnow()
    res = db.execute(
        update(Post)
        .where(Post.id == post_id)
        .where(Post.scan_state.not_in(ACTIVE_SCAN_STATES))
        .values(scan_state=state, scan_error=None, scan_updated_at=now)
    )
    if res.rowcount != 1:
        db.rollback()
        if db.get(Post, post_id) is None:
            raise PostNotFoundError(post_id)
        raise ScanInProgressError(post_id)

    db.commit()
    post = db.get(Post, post_id)
    db.refresh(post)
    return post


def claim_next_queued(db: Session) -> Post | None:
    post = (
        db.query(Post)
        .filter(Post.scan_state == ScanState.queued)
        .order_by(Post.scan_updated_at.asc())
        .first()
    )
    if not post:
        return None

    res = db.execute(
        update(Post)
        .where(Post.id == post.id)
        .where(Post.scan_state == ScanState.queued)
        .values(scan_state=ScanState.running, scan_updated_at=datetime.utcnow())
    )
    if res.rowcount != 1:
        db.rollback()
        return None

    db.commit()
    db.refresh(post)
    return post


def write_scan_results(db: Session, post_id: str, items: list[OutfitItem]) -> None:
    """Replace the post's cached scan results with ``items``."""
    post = db.get(Post, post_id)
    if post is None:
        raise PostNotFoundError(post_id)

    now = datetime.utcnow()
    post.scan_results = [item.to_cache() for item in items]
    post.scan_state = ScanState.succeeded
    post.scan_error = None
    post.scanned_at = now
    post.scan_updated_at = now

    try:
        db.add(post)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("scan cache write failed post_id=%s items=%s", post_id, len(items))
        raise ScanCacheWriteError(f"could not save scan results for post {post_id}") from e


def record_scan_failure(db: Session, post_id: str, message: str) -> None:
    """Leave any previous results in place and note why the scan ended."""
    post = db.get(Post, post_id)
    if post is None:
        return

    post.scan_state = ScanState.failed
    post.scan_error = message
    post.scan_updated_at = datetime.utcnow()
    db.add(post)
    db.commit()
