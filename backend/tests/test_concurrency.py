from types import SimpleNamespace

import pytest

from shopstock.errors import ConflictError, InternalError
from shopstock.models import Shop
from shopstock.services import concurrency


def _fake_db(dialect):
    executed = []
    fake = SimpleNamespace(
        engine=SimpleNamespace(dialect=SimpleNamespace(name=dialect)),
        session=SimpleNamespace(execute=lambda stmt, params=None: executed.append((str(stmt), params))),
    )
    return fake, executed


def test_lock_keys_takes_sorted_advisory_locks_on_postgresql(monkeypatch):
    fake, executed = _fake_db("postgresql")
    monkeypatch.setattr(concurrency, "db", fake)

    concurrency.lock_keys("imei", ["B", "A", "B"])

    assert [params for _, params in executed] == [{"key": "imei:A"}, {"key": "imei:B"}]
    assert all("pg_advisory_xact_lock" in sql for sql, _ in executed)


def test_lock_keys_is_noop_elsewhere(monkeypatch):
    fake, executed = _fake_db("sqlite")
    monkeypatch.setattr(concurrency, "db", fake)
    concurrency.lock_keys("imei", ["A"])
    assert executed == []


def test_atomic_maps_integrity_error_to_conflict(db_session):
    with pytest.raises(ConflictError):
        with concurrency.atomic():
            db_session.add(Shop(name=None, shop_type="retail_shop", is_active=True))
            db_session.flush()
    assert db_session.query(Shop).count() == 0


def test_run_with_retry_gives_up_as_internal_error(app, db_session):
    from sqlalchemy.exc import OperationalError

    attempts = []

    def _op():
        attempts.append(1)
        raise OperationalError("UPDATE", {}, Exception("database is locked"))

    with pytest.raises(InternalError):
        concurrency.run_with_retry(_op, attempts=2, backoff_base=0)
    assert len(attempts) == 2
