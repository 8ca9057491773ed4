# models.py
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import (
    create_engine,
    String,
    Integer,
    DateTime,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    sessionmaker,
)

logger = logging.getLogger(__name__)


# -----------------------------
# SQLAlchemy base
# -----------------------------
class Base(DeclarativeBase):
    pass


# -----------------------------
# Tables
# -----------------------------
class Subscriber(Base):
    """
    One email address from the landing page signup form.
    """
    __tablename__ = "subscribers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class DuplicateEmailError(ValueError):
    """The email address is already on the subscriber list."""
    pass


# -----------------------------
# Engine / Session factory
# -----------------------------
def make_engine(db_url: str, echo: bool = False):
    """
    Create SQLAlchemy engine.
    Note: SQLite path must exist (instance/ folder). We'll create it in setup steps.
    """
    return create_engine(db_url, echo=echo, future=True)


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


# -----------------------------
# Subscriber store
# -----------------------------
def create_subscriber(session, email: str) -> Subscriber:
    """
    Inserts a new subscriber and commits.
    Duplicates are detected by the unique constraint on email, not a prior lookup.
    """
    sub = Subscriber(email=email)
    session.add(sub)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise DuplicateEmailError(f"This email is already subscribed: {email}") from e
    logger.info("New subscriber id=%s", sub.id)
    return sub


def list_subscribers(session) -> list[Subscriber]:
    """All subscribers, newest first."""
    return list(
        session.execute(
            select(Subscriber).order_by(Subscriber.created_at.desc(), Subscriber.id.desc())
        ).scalars()
    )
