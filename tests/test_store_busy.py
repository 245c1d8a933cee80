import sqlite3
from contextlib import contextmanager

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from couponhub.core.errors import ConflictError, InternalError, NotFoundError, StoreBusyError
from couponhub.db.guards import is_busy_error, store_guard
from couponhub.db.session import get_db


def _driver_error(message: str, kind=OperationalError):
    return kind("UPDATE coupons SET status=?", {}, sqlite3.OperationalError(message))


def _busy_count(operation: str) -> float:
    return REGISTRY.get_sample_value("couponhub_store_busy_total", {"operation": operation}) or 0.0


@pytest.mark.parametrize(
    ("message", "busy"),
    [
        ("database is locked", True),
        ("could not obtain lock on row in relation coupons", True),
        ("deadlock detected", True),
        ("no such table: coupons", False),
    ],
)
def test_is_busy_error(message, busy):
    assert is_busy_error(_driver_error(message)) is busy


def test_store_guard_turns_lock_contention_into_store_busy(db_session):
    before = _busy_count("coupons.redeem")
    with pytest.raises(StoreBusyError) as raised:
        with store_guard(db_session, operation="coupons.redeem", tenant_id="t1"):
            raise _driver_error("database is locked")
    assert raised.value.status_code == 503
    assert raised.value.code == "store_busy"
    assert _busy_count("coupons.redeem") == before + 1


def test_store_guard_hides_other_driver_faults(db_session):
    with pytest.raises(InternalError) as raised:
        with store_guard(db_session, operation="coupons.redeem", tenant_id="t1"):
            raise _driver_error("disk I/O error")
    assert raised.value.message == "Internal server error"


def test_store_guard_maps_integrity_errors(db_session):
    with pytest.raises(ConflictError, match="Campaign code already exists"):
        with store_guard(db_session, operation="campaign.create", tenant_id="t1", conflict_message="Campaign code already exists"):
            raise _driver_error("UNIQUE constraint failed", kind=IntegrityError)

    with pytest.raises(InternalError):
        with store_guard(db_session, operation="campaign.create", tenant_id="t1"):
            raise _driver_error("UNIQUE constraint failed", kind=IntegrityError)


def test_store_guard_discards_pending_rows_on_service_errors(db_session, tenant_ids):
    from couponhub.models.end_user import EndUser

    with pytest.raises(NotFoundError):
        with store_guard(db_session, operation="users.update", tenant_id=tenant_ids["alpha"]):
            db_session.add(EndUser(tenant_id=tenant_ids["alpha"], email="pending@example.com"))
            raise NotFoundError("User not found")
    db_session.commit()
    assert db_session.query(EndUser).filter(EndUser.email == "pending@example.com").count() == 0


@pytest.fixture()
def impatient_db(client, db_session):
    """Route requests through a session that gives up on a lock after 0.1s."""
    from couponhub.main import app

    engine = create_engine(
        db_session.get_bind().url,
        connect_args={"check_same_thread": False, "timeout": 0.1},
        poolclass=NullPool,
    )
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()

    def _override_get_db():
        try:
            yield session
        except Exception:
            session.rollback()
            raise

    app.dependency_overrides[get_db] = _override_get_db
    yield session
    session.close()
    engine.dispose()


@contextmanager
def exclusive_lock(db_session):
    db_session.commit()
    holder = sqlite3.connect(db_session.get_bind().url.database, timeout=5, isolation_level=None)
    holder.execute("BEGIN EXCLUSIVE")
    try:
        yield holder
    finally:
        holder.execute("ROLLBACK")
        holder.close()


def test_locked_database_on_read_paths_returns_store_busy(client, auth_headers, impatient_db, db_session):
    headers = auth_headers("admin-a")
    before = _busy_count("request")

    with exclusive_lock(db_session):
        for path in ("/api/admin/campaigns", "/t/alpha/api/admin/campaigns", "/api/admin/analytics/summary"):
            response = client.get(path, headers=headers)
            assert response.status_code == 503, path
            assert response.json() == {"error": "Database is busy, retry shortly", "code": "store_busy"}

    assert _busy_count("request") == before + 3


def test_reads_recover_once_the_lock_is_released(client, auth_headers, impatient_db, db_session):
    headers = auth_headers("admin-a")
    with exclusive_lock(db_session):
        assert client.get("/api/admin/campaigns", headers=headers).status_code == 503
    assert client.get("/api/admin/campaigns", headers=headers).status_code == 200
