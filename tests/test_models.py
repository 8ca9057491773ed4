"""
Tests for the subscriber store without going through HTTP.
"""

from datetime import datetime

import pytest

from models import (
    Base, DuplicateEmailError, Subscriber, create_subscriber, list_subscribers,
    make_engine, make_session_factory,
)


@pytest.fixture
def session():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(engine)
    SessionLocal = make_session_factory(engine)
    with SessionLocal() as s:
        yield s


def test_create_and_list(session):
    a = create_subscriber(session, "a@example.com")
    b = create_subscriber(session, "b@example.com")
    assert a.id != b.id
    assert isinstance(a.created_at, datetime)
    assert [s.email for s in list_subscribers(session)] == ["b@example.com", "a@example.com"]


def test_duplicate_raises_and_session_stays_usable(session):
    create_subscriber(session, "a@example.com")
    with pytest.raises(DuplicateEmailError):
        create_subscriber(session, "a@example.com")
    create_subscriber(session, "c@example.com")
    assert len(list_subscribers(session)) == 2


def test_ordering_uses_created_at(session):
    session.add(Subscriber(email="old@example.com", created_at=datetime(2024, 1, 1)))
    session.add(Subscriber(email="new@example.com", created_at=datetime(2025, 1, 1)))
    session.commit()
    assert [s.email for s in list_subscribers(session)] == ["new@example.com", "old@example.com"]


def test_to_dict(session):
    sub = create_subscriber(session, "a@example.com")
    assert sub.to_dict()["email"] == "a@example.com"
    assert sub.to_dict()["createdAt"].startswith(str(sub.created_at.year))
