from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from fitspo.cache import claim_scan
from fitspo.deps import get_scanner
from fitspo.errors import (
    PostNotFoundError,
    ScanCacheWriteError,
    ScanInProgressError,
    ScanServiceError,
    ScanTimeoutError,
)
from fitspo.models import Post, ScanState
from fitspo.scanner import OutfitScanner
from fitspo.schemas import CachedItemOut, ScanOut
from fitspo.db import get_db


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/posts", tags=["scans"])


def _scan_to_out(post: Post) -> ScanOut:
    items = None
    if post.scan_results is not None:
        items = [CachedItemOut.model_validate(r) for r in post.scan_results]
    return ScanOut(
        post_id=post.id,
        scan_state=post.scan_state.value,
        scan_error=post.scan_error,
        scanned_at=post.scanned_at,
        items=items,
    )


@router.post("/{post_id}/scan", response_model=ScanOut)
async def trigger_scan(
    post_id: str,
    wait: bool = Query(False),
    db: Session = Depends(get_db),
    scanner: OutfitScanner = Depends(get_scanner),
):
    state = ScanState.running if wait else ScanState.queued
    try:
        post = claim_scan(db, post_id, state=state)
    except PostNotFoundError:
        raise HTTPException(status_code=404, detail="Post not found")
    except ScanInProgressError:
        raise HTTPException(status_code=409, detail="Scan already in progress for this post")

    if not wait:
        logger.info("scan queued post_id=%s", post_id)
        return JSONResponse(status_code=202, content=_scan_to_out(post).model_dump(mode="json", by_alias=True))

    try:
        await scanner.scan_post(post.id, post.image_url)
    except ScanTimeoutError:
        raise HTTPException(status_code=504, detail="scan timed out")
    except ScanServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except ScanCacheWriteError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except PostNotFoundError:
        # Deleted while the scan was running.
        raise HTTPException(status_code=404, detail="Post not found")

    db.expire_all()
    post = db.get(Post, post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return _scan_to_out(post)


@router.get("/{post_id}/scan", response_model=ScanOut)
def get_scan(post_id: str, db: Session = Depends(get_db)):
    post = db.get(Post, post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return _scan_to_out(post)
