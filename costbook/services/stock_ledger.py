import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Iterable, Literal, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from costbook.core.config import settings
from costbook.core.id_utils import generate_uuid
from costbook.core.money import ZERO_QUANTITY, to_money, to_quantity
from costbook.core.observability import log_event
from costbook.models.product import Product
from costbook.models.sales import Sale
from costbook.models.stock import StockMovement
from costbook.services.errors import (
    DomainValidationError,
    InsufficientStockError,
    LedgerConsistencyError,
    NotFoundError,
    StockWriteConflictError,
)

logger = logging.getLogger("costbook.api.stock_ledger")

MovementType = Literal["IN", "OUT", "ADJUSTMENT"]
MOVEMENT_TYPES = ("IN", "OUT", "ADJUSTMENT")

T = TypeVar("T")


class _VersionConflict(Exception):
    """Another writer moved the product's stock_version since it was read."""


@dataclass(frozen=True)
class MovementResult:
    movement: StockMovement
    previous_stock: Decimal
    new_stock: Decimal

    @property
    def change(self) -> Decimal:
        return to_quantity(self.new_stock - self.previous_stock)


@dataclass(frozen=True)
class SaleResult:
    sale: Sale
    movement: StockMovement
    previous_stock: Decimal
    new_stock: Decimal


@dataclass(frozen=True)
class ReconcileReport:
    product_id: str
    opening_stock: Decimal
    current_stock: Decimal
    replayed_stock: Decimal
    movement_count: int
    stock_version: int
    consistent: bool


@dataclass(frozen=True)
class LowStockAlert:
    product_id: str
    name: str
    unit: str
    current_stock: Decimal
    sold_last_window: Decimal
    avg_daily_sales: Decimal
    suggested_production: int


@dataclass(frozen=True)
class StockSummary:
    total_products: int
    total_current_stock: Decimal
    total_opening_stock: Decimal
    low_stock_count: int
    out_of_stock_count: int
    low_stock_threshold: int


def next_balance(movement_type: str, current: Decimal, quantity: Decimal, *, product_id: str = "") -> Decimal:
    current = to_quantity(current)
    quantity = to_quantity(quantity)
    if movement_type == "IN":
        return to_quantity(current + quantity)
    if movement_type == "OUT":
        if quantity > current:
            raise InsufficientStockError(product_id=product_id, available=current, requested=quantity)
        return to_quantity(current - quantity)
    if movement_type == "ADJUSTMENT":
        return quantity
    raise DomainValidationError(f"Unknown movement type: {movement_type}")


def validate_movement_quantity(movement_type: str, quantity: Decimal) -> Decimal:
    if movement_type not in MOVEMENT_TYPES:
        raise DomainValidationError(f"Unknown movement type: {movement_type}")
    quantity = to_quantity(quantity)
    if movement_type == "ADJUSTMENT":
        if quantity < 0:
            raise DomainValidationError("Adjustment quantity cannot be negative")
    elif quantity <= 0:
        raise DomainValidationError("Quantity must be greater than zero")
    return quantity


def replay_balance(opening_stock: Decimal, movements: Iterable[StockMovement]) -> Decimal:
    balance = to_quantity(opening_stock)
    for movement in movements:
        if movement.movement_type == "IN":
            balance = to_quantity(balance + movement.quantity)
        elif movement.movement_type == "OUT":
            balance = to_quantity(balance - movement.quantity)
        elif movement.movement_type == "ADJUSTMENT":
            balance = to_quantity(movement.quantity)
        else:
            raise LedgerConsistencyError(f"Unknown movement type in ledger: {movement.movement_type}")
    return balance


def _lock_product(db: Session, *, user_id: str, product_id: str) -> Product:
    # FOR UPDATE serializes writers where the database supports row locks;
    # the versioned swap below covers the rest.
    product = db.execute(
        select(Product)
        .where(Product.id == product_id, Product.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not product:
        raise NotFoundError("Product not found")
    return product


def _swap_balance(db: Session, *, product_id: str, expected_version: int, new_balance: Decimal) -> bool:
    result = db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock_version == expected_version)
        .values(current_stock=new_balance, stock_version=expected_version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _apply_movement(
    db: Session,
    product: Product,
    *,
    user_id: str,
    movement_type: str,
    quantity: Decimal,
    reference: str | None,
    notes: str | None,
    sale_id: str | None = None,
) -> MovementResult:
    previous = to_quantity(product.current_stock)
    expected_version = product.stock_version
    new_balance = next_balance(movement_type, previous, quantity, product_id=product.id)

    if not _swap_balance(db, product_id=product.id, expected_version=expected_version, new_balance=new_balance):
        raise _VersionConflict(product.id)

    movement = StockMovement(
        id=generate_uuid(),
        product_id=product.id,
        movement_type=movement_type,
        quantity=quantity,
        balance_before=previous,
        balance_after=new_balance,
        ledger_sequence=expected_version + 1,
        reference=reference,
        notes=notes,
        sale_id=sale_id,
        created_by=user_id,
    )
    db.add(movement)
    return MovementResult(movement=movement, previous_stock=previous, new_stock=new_balance)


def _run_unit_of_work(db: Session, *, operation: str, product_id: str, work: Callable[[], T]) -> T:
    max_attempts = settings.stock_write_max_attempts
    for attempt in range(1, max_attempts + 1):
        try:
            result = work()
            db.commit()
        except _VersionConflict:
            db.rollback()
            log_event(
                logger,
                "stock.write_conflict",
                operation=operation,
                product_id=product_id,
                attempt=attempt,
                max_attempts=max_attempts,
            )
            continue
        except IntegrityError as exc:
            db.rollback()
            raise LedgerConsistencyError("Stock ledger write violated an integrity constraint") from exc
        except Exception:
            db.rollback()
            raise
        return result

    raise StockWriteConflictError(
        "Stock changed concurrently, please retry",
        details=[{"field": "product_id", "message": product_id, "type": "write_conflict"}],
    )


def record_movement(
    db: Session,
    *,
    user_id: str,
    product_id: str,
    movement_type: str,
    quantity: Decimal,
    reference: str | None = None,
    notes: str | None = None,
) -> MovementResult:
    quantity = validate_movement_quantity(movement_type, quantity)

    def work() -> MovementResult:
        product = _lock_product(db, user_id=user_id, product_id=product_id)
        return _apply_movement(
            db,
            product,
            user_id=user_id,
            movement_type=movement_type,
            quantity=quantity,
            reference=reference,
            notes=notes,
        )

    result = _run_unit_of_work(db, operation="movement", product_id=product_id, work=work)
    log_event(
        logger,
        "stock.movement",
        product_id=product_id,
        movement_id=result.movement.id,
        movement_type=movement_type,
        quantity=quantity,
        previous_stock=result.previous_stock,
        new_stock=result.new_stock,
    )
    return result


def record_sale(
    db: Session,
    *,
    user_id: str,
    product_id: str,
    quantity: Decimal,
    unit_price: Decimal,
    sale_date: date | None = None,
    customer_name: str | None = None,
    invoice_number: str | None = None,
    notes: str | None = None,
) -> SaleResult:
    """Persist a sale and its OUT movement as one unit: both rows and the new balance, or nothing."""
    quantity = to_quantity(quantity)
    if quantity <= 0:
        raise DomainValidationError("Quantity must be greater than zero")
    if unit_price < 0:
        raise DomainValidationError("unit_price cannot be negative")
    price = to_money(unit_price)
    sold_on = sale_date or datetime.now(timezone.utc).date()

    def work() -> SaleResult:
        product = _lock_product(db, user_id=user_id, product_id=product_id)
        if not product.is_active:
            raise DomainValidationError("Cannot sell an inactive product")

        sale = Sale(
            id=generate_uuid(),
            product_id=product.id,
            quantity=quantity,
            unit_price=price,
            total_amount=to_money(quantity * price),
            sale_date=sold_on,
            customer_name=customer_name,
            invoice_number=invoice_number,
            notes=notes,
            created_by=user_id,
        )
        db.add(sale)
        db.flush()
        moved = _apply_movement(
            db,
            product,
            user_id=user_id,
            movement_type="OUT",
            quantity=quantity,
            reference=invoice_number or "Sale",
            notes=notes or "Sale transaction",
            sale_id=sale.id,
        )
        return SaleResult(
            sale=sale,
            movement=moved.movement,
            previous_stock=moved.previous_stock,
            new_stock=moved.new_stock,
        )

    result = _run_unit_of_work(db, operation="sale", product_id=product_id, work=work)
    log_event(
        logger,
        "stock.sale",
        product_id=product_id,
        sale_id=result.sale.id,
        quantity=quantity,
        total_amount=result.sale.total_amount,
        new_stock=result.new_stock,
    )
    return result


def reconcile_product(db: Session, product: Product) -> ReconcileReport:
    movements = db.execute(
        select(StockMovement)
        .where(StockMovement.product_id == product.id)
        .order_by(StockMovement.ledger_sequence.asc())
    ).scalars().all()
    replayed = replay_balance(product.opening_stock, movements)
    current = to_quantity(product.current_stock)
    sequences_ok = [m.ledger_sequence for m in movements] == list(range(1, len(movements) + 1))
    consistent = replayed == current and sequences_ok and product.stock_version == len(movements)
    if not consistent:
        log_event(
            logger,
            "stock.reconcile_mismatch",
            product_id=product.id,
            current_stock=current,
            replayed_stock=replayed,
            stock_version=product.stock_version,
            movement_count=len(movements),
        )
    return ReconcileReport(
        product_id=product.id,
        opening_stock=to_quantity(product.opening_stock),
        current_stock=current,
        replayed_stock=replayed,
        movement_count=len(movements),
        stock_version=product.stock_version,
        consistent=consistent,
    )


def list_movements(
    db: Session,
    product: Product,
    *,
    movement_type: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[StockMovement], int]:
    conditions = [StockMovement.product_id == product.id]
    if movement_type:
        conditions.append(StockMovement.movement_type == movement_type)
    total = int(db.execute(select(func.count(StockMovement.id)).where(*conditions)).scalar_one())
    rows = db.execute(
        select(StockMovement)
        .where(*conditions)
        .order_by(StockMovement.ledger_sequence.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return list(rows), total


def list_sales(
    db: Session,
    product: Product,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Sale], int]:
    if start_date and end_date and end_date < start_date:
        raise DomainValidationError("end_date cannot be before start_date")
    conditions = [Sale.product_id == product.id]
    if start_date:
        conditions.append(Sale.sale_date >= start_date)
    if end_date:
        conditions.append(Sale.sale_date <= end_date)
    total = int(db.execute(select(func.count(Sale.id)).where(*conditions)).scalar_one())
    rows = db.execute(
        select(Sale)
        .where(*conditions)
        .order_by(Sale.sale_date.desc(), Sale.created_at.desc(), Sale.id.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return list(rows), total


def low_stock_alerts(
    db: Session,
    *,
    user_id: str,
    threshold: int | None = None,
    today: date | None = None,
) -> list[LowStockAlert]:
    limit_threshold = settings.low_stock_default_threshold if threshold is None else threshold
    today = today or datetime.now(timezone.utc).date()
    window_days = settings.low_stock_sales_window_days
    window_start = today - timedelta(days=window_days)

    sold = (
        select(Sale.product_id.label("product_id"), func.sum(Sale.quantity).label("qty"))
        .where(Sale.sale_date >= window_start, Sale.sale_date <= today)
        .group_by(Sale.product_id)
        .subquery()
    )
    rows = db.execute(
        select(Product, func.coalesce(sold.c.qty, 0))
        .outerjoin(sold, sold.c.product_id == Product.id)
        .where(
            Product.user_id == user_id,
            Product.is_active.is_(True),
            Product.current_stock <= limit_threshold,
        )
        .order_by(Product.current_stock.asc(), Product.name.asc())
    ).all()

    alerts: list[LowStockAlert] = []
    for product, sold_qty in rows:
        sold_qty = to_quantity(sold_qty)
        avg_daily = to_quantity(sold_qty / Decimal(window_days))
        current = to_quantity(product.current_stock)
        cover = avg_daily * settings.low_stock_cover_days - current
        alerts.append(
            LowStockAlert(
                product_id=product.id,
                name=product.name,
                unit=product.unit,
                current_stock=current,
                sold_last_window=sold_qty,
                avg_daily_sales=avg_daily,
                suggested_production=max(0, math.ceil(cover)),
            )
        )
    return alerts


def stock_summary(db: Session, *, user_id: str, threshold: int | None = None) -> StockSummary:
    limit_threshold = settings.low_stock_default_threshold if threshold is None else threshold
    active = [Product.user_id == user_id, Product.is_active.is_(True)]
    total_products, total_current, total_opening = db.execute(
        select(
            func.count(Product.id),
            func.coalesce(func.sum(Product.current_stock), 0),
            func.coalesce(func.sum(Product.opening_stock), 0),
        ).where(*active)
    ).one()
    low_count = db.execute(
        select(func.count(Product.id)).where(*active, Product.current_stock <= limit_threshold)
    ).scalar_one()
    out_count = db.execute(
        select(func.count(Product.id)).where(*active, Product.current_stock <= ZERO_QUANTITY)
    ).scalar_one()
    return StockSummary(
        total_products=int(total_products),
        total_current_stock=to_quantity(total_current),
        total_opening_stock=to_quantity(total_opening),
        low_stock_count=int(low_count),
        out_of_stock_count=int(out_count),
        low_stock_threshold=limit_threshold,
    )
