import logging
import re
from typing import Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from artisan_market.errors import ConflictError, NotFoundError
from artisan_market.models.approval import Artisan, BlogPost, EntityKind, Product
from artisan_market.models.comment import Comment
from artisan_market.models.order import Order
from artisan_market.store.tables import (
    ArtisanRecord,
    BlogPostRecord,
    CommentRecord,
    OrderRecord,
    ProductRecord,
)
from artisan_market.utils.clock import utcnow

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: \w+\.(\w+)")
_POSTGRES_UNIQUE = re.compile(r"Key \((\w+)\)=")


def _constraint_field(exc: IntegrityError) -> Optional[str]:
    message = str(exc.orig)
    for pattern in (_SQLITE_UNIQUE, _POSTGRES_UNIQUE):
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


class DocumentRepository(Generic[M]):
    """Stores pydantic documents in a table with a few indexed columns."""

    record_cls: Type = None
    model_cls: Type[M] = None
    entity_name = "Document"

    def __init__(self, session: Session):
        self.session = session

    def columns(self, model: M) -> Dict:
        return {}

    def get(self, entity_id: str) -> M:
        record = self.session.get(self.record_cls, entity_id)
        if record is None:
            raise NotFoundError(self.entity_name, entity_id)
        return self.model_cls.model_validate(record.document)

    def add(self, model: M) -> M:
        record = self.record_cls(id=model.id, document=model.model_dump(mode="json"), **self.columns(model))
        self.session.add(record)
        self._flush()
        return model

    def save(self, model: M) -> M:
        record = self.session.get(self.record_cls, model.id)
        if record is None:
            raise NotFoundError(self.entity_name, model.id)
        model.updated_at = utcnow()
        record.document = model.model_dump(mode="json")
        for name, value in self.columns(model).items():
            setattr(record, name, value)
        self._flush()
        return model

    def find(self, *criteria, order_by=None, offset: int = 0, limit: Optional[int] = None) -> List[M]:
        query = select(self.record_cls).where(*criteria)
        query = query.order_by(order_by if order_by is not None else self.record_cls.created_at.desc())
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        records = self.session.execute(query).scalars().all()
        return [self.model_cls.model_validate(record.document) for record in records]

    def count(self, *criteria) -> int:
        query = select(func.count()).select_from(self.record_cls).where(*criteria)
        return self.session.execute(query).scalar_one()

    def _flush(self):
        try:
            self.session.flush()
        except IntegrityError as exc:
            self.session.rollback()
            field = _constraint_field(exc)
            logger.warning(f"Unique constraint violation on {self.entity_name} ({field or 'unknown field'})")
            raise ConflictError(
                f"{self.entity_name} with this {field or 'key'} already exists", field=field
            ) from exc


class OrderRepository(DocumentRepository[Order]):
    record_cls = OrderRecord
    model_cls = Order
    entity_name = "Order"

    def columns(self, order: Order) -> Dict:
        return {
            "order_number": order.order_number,
            "user_id": order.user_id,
            "status": order.status.value,
            "payment_status": order.payment_status.value,
            "total": order.total,
            "created_at": order.created_at,
        }


class ArtisanRepository(DocumentRepository[Artisan]):
    record_cls = ArtisanRecord
    model_cls = Artisan
    entity_name = "Artisan"

    def columns(self, artisan: Artisan) -> Dict:
        return {
            "user_id": artisan.user_id,
            "email": artisan.email,
            "approval_status": artisan.approval_status.value,
            "is_active": artisan.is_active,
            "created_at": artisan.created_at,
        }


class ProductRepository(DocumentRepository[Product]):
    record_cls = ProductRecord
    model_cls = Product
    entity_name = "Product"

    def columns(self, product: Product) -> Dict:
        return {
            "artisan_id": product.artisan_id,
            "approval_status": product.approval_status.value,
            "is_active": product.is_active,
            "created_at": product.created_at,
        }


class BlogPostRepository(DocumentRepository[BlogPost]):
    record_cls = BlogPostRecord
    model_cls = BlogPost
    entity_name = "Blog post"

    def columns(self, post: BlogPost) -> Dict:
        return {
            "slug": post.slug,
            "artisan_id": post.artisan_id,
            "approval_status": post.approval_status.value,
            "is_active": post.is_active,
            "created_at": post.created_at,
        }


class CommentRepository(DocumentRepository[Comment]):
    record_cls = CommentRecord
    model_cls = Comment
    entity_name = "Comment"

    def columns(self, comment: Comment) -> Dict:
        return {
            "post_id": comment.post_id,
            "parent_id": comment.parent_id,
            "status": comment.status.value,
            "created_at": comment.created_at,
        }


APPROVAL_REPOSITORIES = {
    EntityKind.ARTISAN: ArtisanRepository,
    EntityKind.PRODUCT: ProductRepository,
    EntityKind.BLOG_POST: BlogPostRepository,
}
