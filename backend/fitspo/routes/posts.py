from __future__ import annotations

import logging
import uuid

from datetime import datetime
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from fitspo.cache import claim_scan
from fitspo.deps import current_user_id, get_image_store, optional_user_id
from fitspo.errors import ImageRejectedError
from fitspo.hashtags import extract_hashtags
from fitspo.models import Post, PostHashtag, PostLike, ScanState
from fitspo.schemas import FeedOut, PostCreateResponse, PostOut
from fitspo.settings import settings
from fitspo.storage import PostImageStore
from fitspo.db import get_db


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/posts", tags=["posts"])


def _post_to_out(post: Post, is_liked: bool) -> PostOut:
    return PostOut(
        id=post.id,
        user_id=post.user_id,
        created_at=post.created_at,
        image_url=post.image_url,
        caption=post.caption,
        hashtags=list(post.hashtags or []),
        likes=post.likes,
        is_liked=is_liked,
        image_width=post.image_width,
        image_height=post.image_height,
        latitude=post.latitude,
        longitude=post.longitude,
        scan_state=post.scan_state.value,
        has_scan_results=post.scan_results is not None,
    )


def _liked_post_ids(db: Session, user_id: str | None, post_ids: list[str]) -> set[str]:
    if not user_id or not post_ids:
        return set()
    rows = (
        db.query(PostLike.post_id)
        .filter(PostLike.user_id == user_id)
        .filter(PostLike.post_id.in_(post_ids))
        .all()
    )
    return {row[0] for row in rows}


def _get_post_or_404(db: Session, post_id: str) -> Post:
    post = db.get(Post, post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


def post_image_url(post_id: str) -> str:
    return f"{settings.public_base_url.rstrip('/')}/api/posts/{post_id}/image"


@router.post("", response_model=PostCreateResponse)
def create_post(
    file: UploadFile = File(...),
    caption: str = Form(""),
    latitude: float | None = Form(None),
    longitude: float | None = Form(None),
    scan: bool = Form(True),
    user_id: str = Depends(current_user_id),
    store: PostImageStore = Depends(get_image_store),
    db: Session = Depends(get_db),
):
    if latitude is not None and not (-90.0 <= latitude <= 90.0):
        raise HTTPException(status_code=422, detail="latitude must be between -90 and 90")
    if longitude is not None and not (-180.0 <= longitude <= 180.0):
        raise HTTPException(status_code=422, detail="longitude must be between -180 and 180")

    post_id = uuid.uuid4().hex
    try:
        image = store.store(file.file, post_id)
    except ImageRejectedError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    hashtags = extract_hashtags(caption)

    post = Post(
        id=post_id,
        user_id=user_id,
        created_at=datetime.utcnow(),
        image_path=str(image.path),
        image_url=post_image_url(post_id),
        content_type=image.content_type,
        image_width=image.width,
        image_height=image.height,
        caption=caption,
        hashtags=hashtags,
        tags=[PostHashtag(tag=t) for t in hashtags],
        likes=0,
        latitude=latitude,
        longitude=longitude,
        scan_state=ScanState.idle,
    )
    db.add(post)
    db.commit()
    db.refresh(post)

    # The post is visible before its scan runs; the worker fills in results.
    if scan:
        post = claim_scan(db, post.id)

    logger.info("post created post_id=%s user_id=%s scan=%s", post.id, user_id, scan)
    return PostCreateResponse(post=_post_to_out(post, is_liked=False))


@router.get("", response_model=FeedOut)
def list_posts(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    hashtag: str | None = Query(None),
    user_id: str | None = Depends(optional_user_id),
    db: Session = Depends(get_db),
):
    q = db.query(Post)
    if hashtag:
        tag = hashtag.lstrip("#").lower()
        q = q.join(PostHashtag, PostHashtag.post_id == Post.id).filter(PostHashtag.tag == tag)
    posts = q.order_by(Post.created_at.desc()).offset(offset).limit(limit).all()

    liked = _liked_post_ids(db, user_id, [p.id for p in posts])
    return FeedOut(
        posts=[_post_to_out(p, is_liked=p.id in liked) for p in posts],
        limit=limit,
        offset=offset,
    )


@router.get("/{post_id}", response_model=PostOut)
def get_post(post_id: str, user_id: str | None = Depends(optional_user_id), db: Session = Depends(get_db)):
    post = _get_post_or_404(db, post_id)
    return _post_to_out(post, is_liked=post.id in _liked_post_ids(db, user_id, [post.id]))


@router.get("/{post_id}/image")
def get_post_image(post_id: str, db: Session = Depends(get_db)):
    post = _get_post_or_404(db, post_id)
    path = Path(post.image_path)
    if not path.exists():
        raise HTTPException(status_code=404, detail="Image not found")
    return FileResponse(path, media_type=post.content_type)


@router.post("/{post_id}/like", response_model=PostOut)
def toggle_like(post_id: str, user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    post = _get_post_or_404(db, post_id)

    existing = (
        db.query(PostLike)
        .filter(PostLike.post_id == post_id)
        .filter(PostLike.user_id == user_id)
        .first()
    )
    if existing:
        db.delete(existing)
        post.likes = max(post.likes - 1, 0)
        is_liked = False
    else:
        db.add(PostLike(post_id=post_id, user_id=user_id))
        post.likes = post.likes + 1
        is_liked = True

    db.add(post)
    db.commit()
    db.refresh(post)
    return _post_to_out(post, is_liked=is_liked)


@router.delete("/{post_id}", status_code=204)
def delete_post(
    post_id: str,
    user_id: str = Depends(current_user_id),
    store: PostImageStore = Depends(get_image_store),
    db: Session = Depends(get_db),
):
    post = _get_post_or_404(db, post_id)
    if post.user_id != user_id:
        raise HTTPException(status_code=403, detail="Only the author can delete a post")

    image_path = post.image_path
    db.query(PostLike).filter(PostLike.post_id == post_id).delete()
    db.delete(post)
    db.commit()
    store.delete(image_path)
