from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
from enum import Enum
import re
import uuid

from artisan_market.utils.clock import utcnow


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class EntityKind(str, Enum):
    ARTISAN = "artisan"
    PRODUCT = "product"
    BLOG_POST = "blog_post"


class BlogStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class Approvable(BaseModel):
    """Fields shared by every entity gated behind an administrator decision."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    is_active: bool = True
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    approval_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_visible(self) -> bool:
        return self.approval_status == ApprovalStatus.APPROVED and self.is_active

    def to_dict(self) -> Dict:
        return self.model_dump(mode="json")


class Location(BaseModel):
    city: str
    state: str
    country: str = "India"


class Logistics(BaseModel):
    pickup_address: Optional[str] = None
    dispatch_time: Optional[str] = None
    packaging_type: Optional[str] = None


class PendingChanges(BaseModel):
    """Advisory flag for edits an approved artisan made to protected fields."""

    has_changes: bool = False
    changed_at: Optional[datetime] = None
    changed_fields: List[str] = Field(default_factory=list)
    changes: Dict[str, Any] = Field(default_factory=dict)
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None


class Artisan(Approvable):
    user_id: str
    name: str = Field(min_length=1, max_length=120)
    email: str
    phone: Optional[str] = None
    bio: str = Field(default="", max_length=1000)
    location: Optional[Location] = None
    avatar: str = ""
    specialties: List[str] = Field(default_factory=list)
    logistics: Logistics = Field(default_factory=Logistics)
    pending_changes: PendingChanges = Field(default_factory=PendingChanges)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError("invalid email address")
        return value


class Product(Approvable):
    artisan_id: str
    name: str = Field(min_length=1)
    description: str = ""
    price: float = Field(ge=0)
    stock: int = Field(default=0, ge=0)
    category: Optional[str] = None
    images: List[str] = Field(default_factory=list)


class BlogPost(Approvable):
    artisan_id: Optional[str] = None
    title: str = Field(min_length=1)
    slug: Optional[str] = None
    content: str = ""
    status: BlogStatus = BlogStatus.DRAFT
    published_at: Optional[datetime] = None

    @property
    def url(self) -> str:
        return f"/blog/{self.slug}"


def slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9\s-]", "", title.lower())
    slug = re.sub(r"\s+", "-", slug.strip())
    return re.sub(r"-+", "-", slug).strip("-")


ENTITY_MODELS = {
    EntityKind.ARTISAN: Artisan,
    EntityKind.PRODUCT: Product,
    EntityKind.BLOG_POST: BlogPost,
}


class ReviewRequest(BaseModel):
    """Input of an onboarding review run as a Temporal workflow."""

    kind: EntityKind
    entity_id: str
    submitted_by: Optional[str] = None
    summary: Optional[str] = None

    @property
    def workflow_id(self) -> str:
        return review_workflow_id(self.kind, self.entity_id)


class ReviewDecision(BaseModel):
    decision: ApprovalDecision
    moderator_id: str
    notes: Optional[str] = None


def review_workflow_id(kind, entity_id: str) -> str:
    return f"review-{EntityKind(kind).value}-{entity_id}"
