from sqlalchemy import Boolean, Column, DateTime, Float, Integer, JSON, String

from artisan_market.store.database import Base

# Each collection keeps the full pydantic document in ``document`` and copies
# the fields it is queried or constrained on into real columns.


class OrderRecord(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)
    order_number = Column(String(32), unique=True, nullable=False)
    user_id = Column(String(64), index=True, nullable=False)
    status = Column(String(32), index=True, nullable=False)
    payment_status = Column(String(32), index=True, nullable=False)
    total = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), index=True, nullable=False)
    document = Column(JSON, nullable=False)


class OrderCounter(Base):
    """Per-year order sequence, incremented atomically."""

    __tablename__ = "order_counters"

    year = Column(Integer, primary_key=True, autoincrement=False)
    value = Column(Integer, nullable=False, default=0)


class ArtisanRecord(Base):
    __tablename__ = "artisans"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    approval_status = Column(String(16), index=True, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), index=True, nullable=False)
    document = Column(JSON, nullable=False)


class ProductRecord(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True)
    artisan_id = Column(String(36), index=True, nullable=False)
    approval_status = Column(String(16), index=True, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), index=True, nullable=False)
    document = Column(JSON, nullable=False)


class BlogPostRecord(Base):
    __tablename__ = "blog_posts"

    id = Column(String(36), primary_key=True)
    slug = Column(String(255), unique=True, nullable=False)
    artisan_id = Column(String(36), index=True)
    approval_status = Column(String(16), index=True, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), index=True, nullable=False)
    document = Column(JSON, nullable=False)


class CommentRecord(Base):
    __tablename__ = "comments"

    id = Column(String(36), primary_key=True)
    post_id = Column(String(36), index=True, nullable=False)
    parent_id = Column(String(36), index=True)
    status = Column(String(16), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), index=True, nullable=False)
    document = Column(JSON, nullable=False)
