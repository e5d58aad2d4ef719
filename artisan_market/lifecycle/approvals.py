"""Approval gate for artisans, products and blog posts.

Decisions can be re-taken at any time (re-review). Rejecting keeps the last
approval stamp (``approved_by``/``approved_at``) as audit history and records
who rejected in ``rejected_by``/``rejected_at``.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from artisan_market.errors import ConflictError, NotFoundError, ValidationError
from artisan_market.models.approval import (
    ENTITY_MODELS,
    Approvable,
    ApprovalDecision,
    ApprovalStatus,
    Artisan,
    BlogPost,
    BlogStatus,
    EntityKind,
    PendingChanges,
    Product,
    slugify,
)
from artisan_market.store.repository import (
    APPROVAL_REPOSITORIES,
    BlogPostRepository,
    DocumentRepository,
    ProductRepository,
)
from artisan_market.utils.clock import utcnow

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 1000
MAX_PAGE_SIZE = 100

# Profile fields an approved artisan may still edit; edits are flagged for review
PROTECTED_ARTISAN_FIELDS = ("avatar", "email", "phone")
PROTECTED_LOGISTICS_FIELDS = ("pickup_address", "dispatch_time", "packaging_type")
OPEN_ARTISAN_FIELDS = ("name", "bio", "specialties", "location")


def coerce_kind(value: Union[str, EntityKind]) -> EntityKind:
    try:
        return EntityKind(value)
    except ValueError:
        raise ValidationError.single("kind", f"'{value}' is not an approvable entity kind")


def coerce_decision(value: Union[str, ApprovalDecision]) -> ApprovalDecision:
    try:
        return ApprovalDecision(value.lower() if isinstance(value, str) else value)
    except ValueError:
        raise ValidationError.single("decision", f"'{value}' is not a valid decision")


def repository_for(session: Session, kind: Union[str, EntityKind]) -> DocumentRepository:
    return APPROVAL_REPOSITORIES[coerce_kind(kind)](session)


def apply_decision(
    entity: Approvable,
    decision: Union[str, ApprovalDecision],
    moderator_id: str,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Approvable:
    """Pre-commit transformation shared by every approvable entity."""
    decision = coerce_decision(decision)
    now = now or utcnow()
    if notes and len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError.single("notes", f"Notes cannot exceed {MAX_NOTES_LENGTH} characters")

    if decision == ApprovalDecision.APPROVED:
        entity.approval_status = ApprovalStatus.APPROVED
        entity.approved_by = moderator_id
        entity.approved_at = now
        entity.approval_notes = notes or ""
        entity.rejection_reason = None
        if isinstance(entity, Product):
            entity.is_active = True
        if isinstance(entity, BlogPost):
            entity.is_active = True
            entity.status = BlogStatus.PUBLISHED
            if entity.published_at is None:
                entity.published_at = now
    else:
        if not notes or not notes.strip():
            raise ValidationError.single("notes", "A rejection reason is required")
        entity.approval_status = ApprovalStatus.REJECTED
        entity.rejection_reason = notes.strip()
        entity.rejected_by = moderator_id
        entity.rejected_at = now
        if isinstance(entity, Product):
            entity.is_active = False
        if isinstance(entity, BlogPost):
            entity.status = BlogStatus.DRAFT
    return entity


def set_approval(
    session: Session,
    kind: Union[str, EntityKind],
    entity_id: str,
    decision: Union[str, ApprovalDecision],
    moderator_id: str,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
    cascade: bool = True,
) -> Approvable:
    kind = coerce_kind(kind)
    now = now or utcnow()
    repository = repository_for(session, kind)
    entity = repository.get(entity_id)
    apply_decision(entity, decision, moderator_id, notes=notes, now=now)
    repository.save(entity)
    if kind == EntityKind.ARTISAN and cascade:
        counts = cascade_artisan_decision(session, entity, moderator_id, now=now)
        logger.info(
            f"Artisan {entity.id} {entity.approval_status.value}: "
            f"{counts['products']} products and {counts['blog_posts']} blog posts updated"
        )
    session.commit()
    logger.info(f"{kind.value} {entity_id} {entity.approval_status.value} by {moderator_id}")
    return entity


def cascade_artisan_decision(
    session: Session, artisan: Artisan, moderator_id: str, now: Optional[datetime] = None
) -> Dict[str, int]:
    """Carry an artisan decision over to their catalogue.

    Approval approves everything not yet approved; rejection only touches
    items still pending. Nothing is committed here.
    """
    now = now or utcnow()
    counts = {"products": 0, "blog_posts": 0}
    for key, repository in (("products", ProductRepository(session)), ("blog_posts", BlogPostRepository(session))):
        record_cls = repository.record_cls
        if artisan.approval_status == ApprovalStatus.APPROVED:
            criteria = (record_cls.artisan_id == artisan.id, record_cls.approval_status != ApprovalStatus.APPROVED.value)
            decision = ApprovalDecision.APPROVED
            notes = f"Auto-approved when artisan {artisan.name} was approved"
        else:
            criteria = (record_cls.artisan_id == artisan.id, record_cls.approval_status == ApprovalStatus.PENDING.value)
            decision = ApprovalDecision.REJECTED
            notes = f"Rejected because artisan {artisan.name} was rejected: {artisan.rejection_reason}"
        for entity in repository.find(*criteria):
            apply_decision(entity, decision, moderator_id, notes=notes[:MAX_NOTES_LENGTH], now=now)
            if isinstance(entity, BlogPost) and decision == ApprovalDecision.REJECTED:
                entity.published_at = None
            repository.save(entity)
            counts[key] += 1
    return counts


def prepare_blog_post(post: BlogPost) -> BlogPost:
    if not post.slug:
        post.slug = slugify(post.title)
    if not post.slug:
        raise ValidationError.single("slug", "A slug could not be derived from the title")
    return post


def submit_for_approval(session: Session, kind: Union[str, EntityKind], data: Dict[str, Any]) -> Approvable:
    """Create a new entity awaiting review."""
    kind = coerce_kind(kind)
    payload = dict(data)
    for field in ("approval_status", "approved_by", "approved_at", "rejected_by", "rejected_at", "pending_changes"):
        payload.pop(field, None)
    try:
        entity = ENTITY_MODELS[kind].model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)
    if isinstance(entity, BlogPost):
        prepare_blog_post(entity)
        entity.status = BlogStatus.DRAFT
        entity.published_at = None
    repository = repository_for(session, kind)
    repository.add(entity)
    session.commit()
    logger.info(f"{kind.value} {entity.id} submitted for approval")
    return entity


def record_pending_change(
    session: Session,
    artisan_id: str,
    changed_fields: Iterable[str],
    new_values: Dict[str, Any],
    now: Optional[datetime] = None,
) -> Artisan:
    """Flag edits for administrator review without touching ``approval_status``."""
    changed_fields = list(changed_fields)
    if not changed_fields:
        raise ValidationError.single("changed_fields", "At least one changed field is required")
    repository = repository_for(session, EntityKind.ARTISAN)
    artisan = repository.get(artisan_id)
    artisan.pending_changes = PendingChanges(
        has_changes=True,
        changed_at=now or utcnow(),
        changed_fields=changed_fields,
        changes=dict(new_values),
    )
    repository.save(artisan)
    session.commit()
    logger.info(f"Artisan {artisan_id} has pending changes to {', '.join(changed_fields)}")
    return artisan


def update_artisan_profile(
    session: Session, artisan_id: str, updates: Dict[str, Any], now: Optional[datetime] = None
) -> Artisan:
    """Apply profile edits; approved artisans get their protected edits flagged."""
    allowed = set(PROTECTED_ARTISAN_FIELDS) | set(OPEN_ARTISAN_FIELDS) | {"logistics"}
    unknown = sorted(set(updates) - allowed)
    if unknown:
        raise ValidationError([{"field": name, "message": "field cannot be edited"} for name in unknown])

    repository = repository_for(session, EntityKind.ARTISAN)
    artisan = repository.get(artisan_id)
    document = artisan.model_dump()
    changed_fields: List[str] = []
    changes: Dict[str, Any] = {}

    for name, value in updates.items():
        if name == "logistics":
            logistics = dict(document["logistics"])
            for key, item in (value or {}).items():
                if key not in PROTECTED_LOGISTICS_FIELDS:
                    raise ValidationError.single(f"logistics.{key}", "field cannot be edited")
                if logistics.get(key) != item:
                    logistics[key] = item
                    changed_fields.append(f"logistics.{key}")
                    changes[f"logistics.{key}"] = item
            document["logistics"] = logistics
            continue
        if name == "email" and isinstance(value, str):
            value = value.strip().lower()
        if document.get(name) != value and name in PROTECTED_ARTISAN_FIELDS:
            changed_fields.append(name)
            changes[name] = value
        document[name] = value

    try:
        updated = Artisan.model_validate(document)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)

    if changed_fields and updated.approval_status == ApprovalStatus.APPROVED:
        updated.pending_changes = PendingChanges(
            has_changes=True,
            changed_at=now or utcnow(),
            changed_fields=changed_fields,
            changes=changes,
        )
    repository.save(updated)
    session.commit()
    logger.info(f"Artisan {artisan_id} profile updated ({len(changed_fields)} protected fields changed)")
    return updated


def clear_pending_changes(
    session: Session, artisan_id: str, moderator_id: str, now: Optional[datetime] = None
) -> Artisan:
    """Administrator acknowledgement of an artisan's flagged edits."""
    repository = repository_for(session, EntityKind.ARTISAN)
    artisan = repository.get(artisan_id)
    if not artisan.pending_changes.has_changes:
        raise ConflictError("No changes to clear")
    artisan.pending_changes.has_changes = False
    artisan.pending_changes.reviewed_by = moderator_id
    artisan.pending_changes.reviewed_at = now or utcnow()
    repository.save(artisan)
    session.commit()
    logger.info(f"Pending changes for artisan {artisan_id} cleared by {moderator_id}")
    return artisan


def _paging(page: int, limit: int) -> int:
    errors = []
    if page < 1:
        errors.append({"field": "page", "message": "page must be at least 1"})
    if limit < 1 or limit > MAX_PAGE_SIZE:
        errors.append({"field": "limit", "message": f"limit must be between 1 and {MAX_PAGE_SIZE}"})
    if errors:
        raise ValidationError(errors)
    return (page - 1) * limit


def list_for_review(
    session: Session, kind: Union[str, EntityKind], status: str = "pending", page: int = 1, limit: int = 10
) -> List[Approvable]:
    offset = _paging(page, limit)
    repository = repository_for(session, kind)
    criteria = []
    if status != "all":
        try:
            criteria.append(repository.record_cls.approval_status == ApprovalStatus(status).value)
        except ValueError:
            raise ValidationError.single("status", f"'{status}' is not a valid approval status")
    return repository.find(*criteria, offset=offset, limit=limit)


def list_visible(
    session: Session, kind: Union[str, EntityKind], page: int = 1, limit: int = 10, artisan_id: Optional[str] = None
) -> List[Approvable]:
    """Public listing: approved and active entities only."""
    offset = _paging(page, limit)
    repository = repository_for(session, kind)
    record_cls = repository.record_cls
    criteria = [record_cls.approval_status == ApprovalStatus.APPROVED.value, record_cls.is_active.is_(True)]
    if artisan_id is not None and hasattr(record_cls, "artisan_id"):
        criteria.append(record_cls.artisan_id == artisan_id)
    return repository.find(*criteria, offset=offset, limit=limit)


def get_visible(session: Session, kind: Union[str, EntityKind], entity_id: str) -> Approvable:
    repository = repository_for(session, kind)
    entity = repository.get(entity_id)
    if not entity.is_visible:
        raise NotFoundError(repository.entity_name, entity_id)
    return entity
