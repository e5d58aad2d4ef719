"""Blog comment moderation: pending -> approved | rejected | spam."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from artisan_market.errors import NotFoundError, ValidationError
from artisan_market.models.comment import Comment, ModerationStatus
from artisan_market.store.repository import BlogPostRepository, CommentRepository
from artisan_market.store.tables import CommentRecord
from artisan_market.utils.clock import utcnow

logger = logging.getLogger(__name__)


def add_comment(
    session: Session,
    post_id: str,
    author: Dict[str, Any],
    content: str,
    parent_id: Optional[str] = None,
) -> Comment:
    post = BlogPostRepository(session).get(post_id)
    if not post.is_visible:
        raise NotFoundError("Blog post", post_id)
    repository = CommentRepository(session)
    if parent_id is not None and repository.get(parent_id).post_id != post_id:
        raise ValidationError.single("parent_id", "Replies must belong to the same post")
    try:
        comment = Comment(post_id=post_id, author=author, content=content, parent_id=parent_id)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)
    repository.add(comment)
    session.commit()
    logger.info(f"Comment {comment.id} on post {post_id} awaiting moderation")
    return comment


def moderate(
    comment: Comment,
    status: ModerationStatus,
    moderator_id: str,
    reason: str = "",
    now: Optional[datetime] = None,
) -> Comment:
    comment.status = status
    comment.moderated_by = moderator_id
    comment.moderated_at = now or utcnow()
    comment.moderation_reason = reason or ""
    return comment


def _moderate_by_id(session, comment_id, status, moderator_id, reason, now) -> Comment:
    repository = CommentRepository(session)
    comment = repository.get(comment_id)
    moderate(comment, status, moderator_id, reason=reason, now=now)
    repository.save(comment)
    session.commit()
    logger.info(f"Comment {comment_id} marked {status.value} by {moderator_id}")
    return comment


def approve_comment(session: Session, comment_id: str, moderator_id: str, reason: str = "", now=None) -> Comment:
    return _moderate_by_id(session, comment_id, ModerationStatus.APPROVED, moderator_id, reason, now)


def reject_comment(session: Session, comment_id: str, moderator_id: str, reason: str = "", now=None) -> Comment:
    return _moderate_by_id(session, comment_id, ModerationStatus.REJECTED, moderator_id, reason, now)


def mark_comment_as_spam(session: Session, comment_id: str, moderator_id: str, reason: str = "", now=None) -> Comment:
    return _moderate_by_id(session, comment_id, ModerationStatus.SPAM, moderator_id, reason, now)


def comments_for_post(
    session: Session, post_id: str, limit: int = 50, skip: int = 0, include_replies: bool = True
) -> List[Comment]:
    criteria = [CommentRecord.post_id == post_id, CommentRecord.status == ModerationStatus.APPROVED.value]
    if not include_replies:
        criteria.append(CommentRecord.parent_id.is_(None))
    return CommentRepository(session).find(*criteria, offset=skip, limit=limit)


def comments_for_moderation(
    session: Session, status: str = "pending", limit: int = 100, skip: int = 0
) -> List[Comment]:
    try:
        status = ModerationStatus(status)
    except ValueError:
        raise ValidationError.single("status", f"'{status}' is not a valid moderation status")
    return CommentRepository(session).find(CommentRecord.status == status.value, offset=skip, limit=limit)
