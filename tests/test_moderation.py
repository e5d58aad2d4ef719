import pytest

from artisan_market.errors import NotFoundError, ValidationError
from artisan_market.lifecycle.approvals import set_approval, submit_for_approval
from artisan_market.lifecycle.moderation import (
    add_comment,
    approve_comment,
    comments_for_moderation,
    comments_for_post,
    mark_comment_as_spam,
    moderate,
    reject_comment,
)
from artisan_market.models.comment import Comment, ModerationStatus

from conftest import NOW

AUTHOR = {"name": "Meera", "email": "meera@example.com"}


@pytest.fixture
def published_post(db):
    post = submit_for_approval(db, "blog_post", {"title": "Block printing basics", "content": "..."})
    return set_approval(db, "blog_post", post.id, "approved", "admin-1", now=NOW)


def test_new_comments_wait_for_moderation(db, published_post):
    comment = add_comment(db, published_post.id, AUTHOR, "Lovely colours")
    assert comment.status == ModerationStatus.PENDING
    assert comments_for_post(db, published_post.id) == []
    assert [c.id for c in comments_for_moderation(db)] == [comment.id]


def test_only_approved_comments_are_shown(db, published_post):
    shown = add_comment(db, published_post.id, AUTHOR, "Lovely colours")
    rejected = add_comment(db, published_post.id, AUTHOR, "Rude remark")
    spam = add_comment(db, published_post.id, AUTHOR, "Cheap watches here")
    approve_comment(db, shown.id, "admin-1", now=NOW)
    reject_comment(db, rejected.id, "admin-1", reason="Abusive")
    mark_comment_as_spam(db, spam.id, "admin-1")

    assert [c.id for c in comments_for_post(db, published_post.id)] == [shown.id]
    assert [c.id for c in comments_for_moderation(db, status="spam")] == [spam.id]
    assert comments_for_moderation(db) == []


def test_moderation_stamps_moderator(db, published_post):
    comment = add_comment(db, published_post.id, AUTHOR, "Lovely colours")
    moderated = reject_comment(db, comment.id, "admin-1", reason="Off topic", now=NOW)
    assert (moderated.moderated_by, moderated.moderated_at, moderated.moderation_reason) == ("admin-1", NOW, "Off topic")


def test_moderate_can_revisit_a_decision():
    comment = Comment(post_id="post-1", author=AUTHOR, content="Hello")
    moderate(comment, ModerationStatus.SPAM, "admin-1", now=NOW)
    moderate(comment, ModerationStatus.APPROVED, "admin-2", now=NOW)
    assert comment.status == ModerationStatus.APPROVED
    assert comment.moderated_by == "admin-2"


def test_replies_can_be_hidden(db, published_post):
    parent = add_comment(db, published_post.id, AUTHOR, "Question about dyes")
    reply = add_comment(db, published_post.id, AUTHOR, "Natural indigo", parent_id=parent.id)
    approve_comment(db, parent.id, "admin-1")
    approve_comment(db, reply.id, "admin-1")

    assert {c.id for c in comments_for_post(db, published_post.id)} == {parent.id, reply.id}
    assert [c.id for c in comments_for_post(db, published_post.id, include_replies=False)] == [parent.id]


def test_reply_must_belong_to_same_post(db, published_post):
    other = submit_for_approval(db, "blog_post", {"title": "Another post"})
    set_approval(db, "blog_post", other.id, "approved", "admin-1")
    parent = add_comment(db, other.id, AUTHOR, "Elsewhere")
    with pytest.raises(ValidationError):
        add_comment(db, published_post.id, AUTHOR, "Reply", parent_id=parent.id)


def test_cannot_comment_on_unpublished_post(db):
    draft = submit_for_approval(db, "blog_post", {"title": "Draft"})
    with pytest.raises(NotFoundError):
        add_comment(db, draft.id, AUTHOR, "First!")


def test_empty_comment_is_rejected(db, published_post):
    with pytest.raises(ValidationError) as exc_info:
        add_comment(db, published_post.id, AUTHOR, "")
    assert exc_info.value.errors[0]["field"] == "content"


def test_unknown_moderation_status(db):
    with pytest.raises(ValidationError):
        comments_for_moderation(db, status="hidden")
