import threading
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from costbook.core.config import settings
from costbook.models.product import Product
from costbook.models.stock import StockMovement
from costbook.models.user import User
from costbook.services import stock_ledger
from costbook.services.errors import InsufficientStockError, StockWriteConflictError
from costbook.services.product_service import create_product


def _seed(session_local, *, opening_stock="10") -> tuple[str, str]:
    db = session_local()
    try:
        user = User(email="ledger@example.com", full_name="Ledger", hashed_password="not-used")
        db.add(user)
        db.flush()
        product = create_product(
            db, user_id=user.id, name="Copper kettle", unit="pcs", opening_stock=Decimal(opening_stock)
        )
        db.commit()
        return user.id, product.id
    finally:
        db.close()


def _ledger_state(session_local, product_id: str) -> tuple[Decimal, int, int]:
    db = session_local()
    try:
        product = db.execute(select(Product).where(Product.id == product_id)).scalar_one()
        movements = db.execute(
            select(func.count(StockMovement.id)).where(StockMovement.product_id == product_id)
        ).scalar_one()
        return Decimal(str(product.current_stock)), product.stock_version, movements
    finally:
        db.close()


def test_swap_balance_rejects_stale_version(file_session_factory):
    _, product_id = _seed(file_session_factory)

    db = file_session_factory()
    try:
        assert stock_ledger._swap_balance(
            db, product_id=product_id, expected_version=0, new_balance=Decimal("5")
        )
        db.commit()
        assert not stock_ledger._swap_balance(
            db, product_id=product_id, expected_version=0, new_balance=Decimal("1")
        )
        db.rollback()
    finally:
        db.close()

    current, version, _ = _ledger_state(file_session_factory, product_id)
    assert current == Decimal("5")
    assert version == 1


def test_movement_retries_after_version_conflict(file_session_factory, monkeypatch):
    user_id, product_id = _seed(file_session_factory)
    real_swap = stock_ledger._swap_balance
    calls = []

    def flaky_swap(db, **kwargs):
        calls.append(kwargs["expected_version"])
        if len(calls) == 1:
            return False
        return real_swap(db, **kwargs)

    monkeypatch.setattr(stock_ledger, "_swap_balance", flaky_swap)

    db = file_session_factory()
    try:
        result = stock_ledger.record_movement(
            db, user_id=user_id, product_id=product_id, movement_type="OUT", quantity=Decimal("3")
        )
    finally:
        db.close()

    assert calls == [0, 0]
    assert result.previous_stock == Decimal("10")
    assert result.new_stock == Decimal("7")
    assert _ledger_state(file_session_factory, product_id) == (Decimal("7"), 1, 1)


def test_movement_gives_up_after_max_attempts(file_session_factory, monkeypatch):
    user_id, product_id = _seed(file_session_factory)
    calls = []

    def always_stale(db, **kwargs):
        calls.append(kwargs["expected_version"])
        return False

    monkeypatch.setattr(stock_ledger, "_swap_balance", always_stale)
    monkeypatch.setattr(settings, "stock_write_max_attempts", 2)

    db = file_session_factory()
    try:
        with pytest.raises(StockWriteConflictError) as exc_info:
            stock_ledger.record_movement(
                db, user_id=user_id, product_id=product_id, movement_type="IN", quantity=Decimal("1")
            )
    finally:
        db.close()

    assert exc_info.value.status_code == 409
    assert len(calls) == 2
    assert _ledger_state(file_session_factory, product_id) == (Decimal("10"), 0, 0)


def test_concurrent_out_movements_never_oversell(file_session_factory):
    user_id, product_id = _seed(file_session_factory)
    barrier = threading.Barrier(2)
    outcomes: list[object] = []
    lock = threading.Lock()

    def take_six():
        db = file_session_factory()
        try:
            barrier.wait(timeout=10)
            result = stock_ledger.record_movement(
                db, user_id=user_id, product_id=product_id, movement_type="OUT", quantity=Decimal("6")
            )
            outcome = result.new_stock
        except (InsufficientStockError, StockWriteConflictError) as exc:
            outcome = exc
        finally:
            db.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=take_six) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    successes = [item for item in outcomes if isinstance(item, Decimal)]
    failures = [item for item in outcomes if isinstance(item, Exception)]
    assert len(outcomes) == 2
    assert successes == [Decimal("4")]
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientStockError)

    assert _ledger_state(file_session_factory, product_id) == (Decimal("4"), 1, 1)

    db = file_session_factory()
    try:
        product = db.execute(select(Product).where(Product.id == product_id)).scalar_one()
        report = stock_ledger.reconcile_product(db, product)
        assert report.consistent is True
    finally:
        db.close()
