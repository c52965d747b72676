from __future__ import annotations

from typing import Iterator, List

import pytest
from sqlalchemy import event
from sqlmodel import Session

from telehealth.db.session import engine
from telehealth.services import StatusRegistry, UnknownStatusError


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def statements() -> Iterator[List[str]]:
    executed: List[str] = []

    def record(conn, cursor, statement, parameters, context, executemany) -> None:
        executed.append(statement)

    event.listen(engine, "before_cursor_execute", record)
    yield executed
    event.remove(engine, "before_cursor_execute", record)


def test_repeated_resolve_is_served_from_cache(session: Session, statements: List[str]) -> None:
    registry = StatusRegistry()

    first = registry.resolve(session, "PENDING")
    queries_after_first = len(statements)
    second = registry.resolve(session, "PENDING")

    assert first == second
    assert queries_after_first >= 1
    assert len(statements) == queries_after_first


def test_prime_loads_every_status(session: Session, statements: List[str]) -> None:
    registry = StatusRegistry()

    assert registry.prime(session) == 6
    queries_after_prime = len(statements)
    ids = registry.resolve_many(session, ["PENDING", "CONFIRMED", "CANCELLED", "NO_SHOW"])

    assert len(set(ids)) == 4
    assert len(statements) == queries_after_prime


def test_entries_expire_after_ttl(session: Session, statements: List[str]) -> None:
    clock = FakeClock()
    registry = StatusRegistry(ttl_seconds=60, clock=clock)

    registry.resolve(session, "CONFIRMED")
    loaded = len(statements)

    clock.now = 59.0
    registry.resolve(session, "CONFIRMED")
    assert len(statements) == loaded

    clock.now = 60.0
    registry.resolve(session, "CONFIRMED")
    assert len(statements) > loaded


def test_invalidate_forces_a_reread(session: Session, statements: List[str]) -> None:
    registry = StatusRegistry()
    registry.prime(session)

    registry.invalidate("CANCELLED")
    before = len(statements)
    registry.resolve(session, "PENDING")
    assert len(statements) == before
    registry.resolve(session, "CANCELLED")
    after_single = len(statements)
    assert after_single > before

    registry.invalidate()
    registry.resolve(session, "PENDING")
    assert len(statements) > after_single


def test_unknown_status_is_reported_and_not_cached(session: Session) -> None:
    registry = StatusRegistry()

    with pytest.raises(UnknownStatusError) as excinfo:
        registry.resolve(session, "ARCHIVED")

    assert excinfo.value.status_code == "ARCHIVED"
    assert excinfo.value.code == "UNKNOWN_STATUS"
    assert "ARCHIVED" in excinfo.value.message
    with pytest.raises(UnknownStatusError):
        registry.resolve(session, "ARCHIVED")
