from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum
import uuid

from artisan_market.utils.clock import utcnow


class ModerationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SPAM = "spam"


class CommentAuthor(BaseModel):
    name: str = Field(min_length=1)
    email: str
    avatar: str = ""
    website: str = ""


class Comment(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    post_id: str
    author: CommentAuthor
    content: str = Field(min_length=1, max_length=2000)
    parent_id: Optional[str] = None
    status: ModerationStatus = ModerationStatus.PENDING
    likes: int = 0
    dislikes: int = 0
    reports: int = 0
    moderated_by: Optional[str] = None
    moderated_at: Optional[datetime] = None
    moderation_reason: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def to_dict(self):
        return self.model_dump(mode="json")
