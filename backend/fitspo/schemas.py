from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


PENDING_JOB_STATUSES = ("starting", "processing")


class ScanJobData(BaseModel):
    objects: list[dict[str, Any]] = Field(default_factory=list)


class ScanJobOutput(BaseModel):
    json_data: ScanJobData | None = None


class ScanJob(BaseModel):
    """Remote inference job as reported by the scan service."""

    id: str
    status: str
    output: ScanJobOutput | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status not in PENDING_JOB_STATUSES

    @property
    def raw_detections(self) -> list[dict[str, Any]]:
        if self.output is None or self.output.json_data is None:
            return []
        return self.output.json_data.objects


class ScanSubmitResponse(BaseModel):
    post_id: str = Field(alias="postId")
    replicate: ScanJob


class Detection(BaseModel):
    label: str
    confidence: float
    bbox: list[float]


class OutfitItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    label: str
    brand: str = ""
    shop_url: str = Field(alias="shopURL")

    def to_cache(self) -> dict[str, str]:
        return {"label": self.label, "brand": self.brand, "shopURL": self.shop_url}


class PostOut(BaseModel):
    id: str
    user_id: str
    created_at: datetime
    image_url: str
    caption: str
    hashtags: list[str]
    likes: int
    is_liked: bool

    image_width: int | None = None
    image_height: int | None = None
    latitude: float | None = None
    longitude: float | None = None

    scan_state: str
    has_scan_results: bool


class PostCreateResponse(BaseModel):
    post: PostOut


class FeedOut(BaseModel):
    posts: list[PostOut]
    limit: int
    offset: int


class CachedItemOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    label: str
    brand: str
    shop_url: str = Field(alias="shopURL")


class ScanOut(BaseModel):
    post_id: str
    scan_state: str
    scan_error: str | None = None
    scanned_at: datetime | None = None
    items: list[CachedItemOut] | None = None


class FollowStatusOut(BaseModel):
    user_id: str
    following: bool


class FollowCountsOut(BaseModel):
    user_id: str
    followers: int
    following: int


class ProfileIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    display_name: str = Field("", alias="displayName", max_length=255)
    bio: str = ""
    avatar_url: str = Field("", alias="avatarURL")
    # Derived from display_name when left out.
    username_lc: str | None = Field(None, max_length=255)


class ProfileOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str
    display_name: str = Field(alias="displayName")
    username_lc: str
    bio: str
    avatar_url: str = Field(alias="avatarURL")
    updated_at: datetime


class UserSearchOut(BaseModel):
    users: list[ProfileOut]


class ChatCreateIn(BaseModel):
    participants: list[str] = Field(min_length=1)


class ChatOut(BaseModel):
    id: str
    participants: list[str]
    last_message: str
    last_timestamp: datetime


class ChatListOut(BaseModel):
    chats: list[ChatOut]


class MessageIn(BaseModel):
    text: str = Field(min_length=1, max_length=4000)


class MessageOut(BaseModel):
    id: int
    chat_id: str
    sender_id: str
    text: str
    timestamp: datetime


class MessageListOut(BaseModel):
    messages: list[MessageOut]
