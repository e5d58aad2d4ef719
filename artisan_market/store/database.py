from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from artisan_market import config


def build_engine(url: str | None = None):
    url = url or config.DATABASE_URL
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


# Create the SQLAlchemy engine.
engine = build_engine()

# Create a configured "Session" class for database interactions.
SessionLocal = sessionmaker(autoflush=False, bind=engine)

# Base class for declarative ORM models.
Base = declarative_base()


def init_db(bind=None):
    """Create the collection tables if they don't exist."""
    # Registers the tables on Base.metadata
    from artisan_market.store import tables  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_db():
    """FastAPI dependency to get a DB session for a single request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        # Ensure the session is always closed after the request is finished.
        db.close()


@contextmanager
def session_scope(factory=None):
    """Session for code running outside a request, e.g. Temporal activities."""
    db = (factory or SessionLocal)()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
