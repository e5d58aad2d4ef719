from enum import Enum
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional

from artisan_market.api.dependencies import require_actor_id
from artisan_market.lifecycle import moderation
from artisan_market.models.comment import Comment
from artisan_market.store.database import get_db

router = APIRouter()


class ModerationAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    SPAM = "spam"


class CommentCreateRequest(BaseModel):
    author: Dict[str, Any]
    content: str
    parent_id: Optional[str] = None


class ModerationRequest(BaseModel):
    reason: str = ""


_ACTIONS = {
    ModerationAction.APPROVE: moderation.approve_comment,
    ModerationAction.REJECT: moderation.reject_comment,
    ModerationAction.SPAM: moderation.mark_comment_as_spam,
}


@router.post("/posts/{post_id}/comments", status_code=201, response_model=Comment)
def add_comment(post_id: str, request: CommentCreateRequest, db: Session = Depends(get_db)):
    return moderation.add_comment(db, post_id, request.author, request.content, parent_id=request.parent_id)


@router.get("/posts/{post_id}/comments", response_model=List[Comment])
def list_comments(post_id: str, limit: int = 50, skip: int = 0, include_replies: bool = True, db: Session = Depends(get_db)):
    return moderation.comments_for_post(db, post_id, limit=limit, skip=skip, include_replies=include_replies)


@router.get("/comments/moderation", response_model=List[Comment])
def moderation_queue(
    status: str = "pending",
    limit: int = 100,
    skip: int = 0,
    moderator_id: str = Depends(require_actor_id),
    db: Session = Depends(get_db),
):
    return moderation.comments_for_moderation(db, status=status, limit=limit, skip=skip)


@router.post("/comments/{comment_id}/{action}", response_model=Comment)
def moderate_comment(
    comment_id: str,
    action: ModerationAction,
    request: ModerationRequest,
    moderator_id: str = Depends(require_actor_id),
    db: Session = Depends(get_db),
):
    return _ACTIONS[action](db, comment_id, moderator_id, reason=request.reason)
