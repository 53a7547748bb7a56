from __future__ import annotations

import logging

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from fitspo.deps import current_user_id
from fitspo.models import Follow, UserProfile
from fitspo.schemas import FollowCountsOut, FollowStatusOut, ProfileIn, ProfileOut, UserSearchOut
from fitspo.db import get_db


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


def _find_follow(db: Session, follower_id: str, followee_id: str) -> Follow | None:
    return (
        db.query(Follow)
        .filter(Follow.follower_id == follower_id)
        .filter(Follow.followee_id == followee_id)
        .first()
    )


@router.post("/{user_id}/follow", response_model=FollowStatusOut)
def follow(user_id: str, me: str = Depends(current_user_id), db: Session = Depends(get_db)):
    if user_id == me:
        raise HTTPException(status_code=422, detail="Cannot follow yourself")
    if not _find_follow(db, me, user_id):
        db.add(Follow(follower_id=me, followee_id=user_id))
        db.commit()
    return FollowStatusOut(user_id=user_id, following=True)


@router.delete("/{user_id}/follow", response_model=FollowStatusOut)
def unfollow(user_id: str, me: str = Depends(current_user_id), db: Session = Depends(get_db)):
    existing = _find_follow(db, me, user_id)
    if existing:
        db.delete(existing)
        db.commit()
    return FollowStatusOut(user_id=user_id, following=False)


@router.get("/{user_id}/follow", response_model=FollowStatusOut)
def is_following(user_id: str, me: str = Depends(current_user_id), db: Session = Depends(get_db)):
    return FollowStatusOut(user_id=user_id, following=_find_follow(db, me, user_id) is not None)


@router.get("/{user_id}/counts", response_model=FollowCountsOut)
def follow_counts(user_id: str, db: Session = Depends(get_db)):
    followers = db.query(Follow).filter(Follow.followee_id == user_id).count()
    following = db.query(Follow).filter(Follow.follower_id == user_id).count()
    return FollowCountsOut(user_id=user_id, followers=followers, following=following)


def _profile_to_out(profile: UserProfile) -> ProfileOut:
    return ProfileOut(
        user_id=profile.user_id,
        display_name=profile.display_name,
        username_lc=profile.username_lc,
        bio=profile.bio,
        avatar_url=profile.avatar_url,
        updated_at=profile.updated_at,
    )


@router.put("/me/profile", response_model=ProfileOut)
def put_profile(body: ProfileIn, me: str = Depends(current_user_id), db: Session = Depends(get_db)):
    """Create or overwrite the caller's profile."""
    profile = db.get(UserProfile, me)
    if profile is None:
        profile = UserProfile(user_id=me, created_at=datetime.utcnow())
        db.add(profile)

    profile.display_name = body.display_name
    profile.username_lc = body.username_lc if body.username_lc is not None else body.display_name.lower()
    profile.bio = body.bio
    profile.avatar_url = body.avatar_url
    profile.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(profile)

    logger.info("profile saved user_id=%s", me)
    return _profile_to_out(profile)


@router.get("/{user_id}/profile", response_model=ProfileOut)
def get_profile(user_id: str, db: Session = Depends(get_db)):
    profile = db.get(UserProfile, user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return _profile_to_out(profile)


@router.get("", response_model=UserSearchOut)
def search_users(
    search: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    # Prefix match on the lower-cased name.
    prefix = search.strip().lower()
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    profiles = (
        db.query(UserProfile)
        .filter(UserProfile.username_lc.like(f"{escaped}%", escape="\\"))
        .order_by(UserProfile.username_lc, UserProfile.user_id)
        .limit(limit)
        .all()
    )
    return UserSearchOut(users=[_profile_to_out(p) for p in profiles])
