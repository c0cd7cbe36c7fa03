"""
Database engine, session management, and base model.

Every model inherits from Base. Every request gets a session
from get_db().
"""

from datetime import datetime, timezone

from sqlalchemy import create_engine, Enum as SAEnum
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from tenant_ledger.config import get_settings

settings = get_settings()

# pool_pre_ping=True tests connections before using them, which
# handles a database restart or a stale pooled connection.
_connect_args = (
    {"check_same_thread": False}
    if settings.DATABASE_URL.startswith("sqlite")
    else {}
)

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args,
)

# autocommit=False: callers own the transaction boundary, so a
# transaction and its entries are committed together or not at all.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


def get_db():
    """
    Provide a database session for a single request.

    The try/finally guarantees the session is closed even if
    the endpoint raises, so pooled connections are never leaked.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def db_enum(enum_cls, name: str) -> SAEnum:
    """
    Database enum that stores member values ("past_due"), not
    member names, so rows read the same as the JSON API.
    """
    return SAEnum(
        enum_cls,
        name=name,
        create_constraint=True,
        values_callable=lambda members: [m.value for m in members],
    )
