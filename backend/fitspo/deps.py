from fastapi import Header, HTTPException, Request

from fitspo.scanner import OutfitScanner
from fitspo.storage import PostImageStore


def current_user_id(x_user_id: str | None = Header(None)) -> str:
    # Authentication lives in front of this service; it forwards the user id.
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


def optional_user_id(x_user_id: str | None = Header(None)) -> str | None:
    return x_user_id or None


def get_scanner(request: Request) -> OutfitScanner:
    return request.app.state.scanner


def get_image_store(request: Request) -> PostImageStore:
    return request.app.state.image_store
