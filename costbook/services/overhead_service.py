import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from costbook.core.id_utils import generate_uuid
from costbook.core.money import ZERO_MONEY, percent_of, to_money
from costbook.core.observability import log_event
from costbook.models.overhead import OVERHEAD_CATEGORIES, RECURRING_FREQUENCIES, Overhead
from costbook.services.errors import DomainValidationError, NotFoundError

logger = logging.getLogger("costbook.api.overheads")

UPDATABLE_FIELDS = (
    "category",
    "subcategory",
    "description",
    "amount",
    "expense_date",
    "is_recurring",
    "recurring_frequency",
)


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    total_amount: Decimal
    count: int
    share_percent: Decimal


@dataclass(frozen=True)
class MonthlyTotal:
    month: str
    total_amount: Decimal
    count: int


@dataclass(frozen=True)
class OverheadSummary:
    total_amount: Decimal
    total_count: int
    by_category: list[CategoryTotal]
    monthly: list[MonthlyTotal]


def validate_date_range(start_date: date | None, end_date: date | None) -> None:
    if start_date and end_date and end_date < start_date:
        raise DomainValidationError("end_date cannot be before start_date")


def _check_rules(category: str, amount: Decimal, is_recurring: bool, frequency: str | None) -> str | None:
    if category not in OVERHEAD_CATEGORIES:
        raise DomainValidationError(f"category must be one of: {', '.join(OVERHEAD_CATEGORIES)}")
    if amount < 0:
        raise DomainValidationError("amount cannot be negative")
    if not is_recurring:
        return None
    if frequency is None:
        raise DomainValidationError("recurring_frequency is required for recurring overheads")
    if frequency not in RECURRING_FREQUENCIES:
        raise DomainValidationError(
            f"recurring_frequency must be one of: {', '.join(RECURRING_FREQUENCIES)}"
        )
    return frequency


def create_overhead(
    db: Session,
    *,
    user_id: str,
    category: str,
    description: str,
    amount: Decimal,
    expense_date: date,
    subcategory: str | None = None,
    is_recurring: bool = False,
    recurring_frequency: str | None = None,
) -> Overhead:
    frequency = _check_rules(category, amount, is_recurring, recurring_frequency)
    overhead = Overhead(
        id=generate_uuid(),
        user_id=user_id,
        category=category,
        subcategory=subcategory,
        description=description,
        amount=to_money(amount),
        expense_date=expense_date,
        is_recurring=is_recurring,
        recurring_frequency=frequency,
    )
    db.add(overhead)
    db.flush()
    log_event(logger, "overhead.create", overhead_id=overhead.id, category=category, amount=overhead.amount)
    return overhead


def get_overhead(db: Session, *, user_id: str, overhead_id: str) -> Overhead:
    overhead = db.execute(
        select(Overhead).where(Overhead.id == overhead_id, Overhead.user_id == user_id)
    ).scalar_one_or_none()
    if not overhead:
        raise NotFoundError("Overhead not found")
    return overhead


def update_overhead(db: Session, overhead: Overhead, changes: dict) -> Overhead:
    merged = {field: getattr(overhead, field) for field in UPDATABLE_FIELDS}
    for field, value in changes.items():
        if field not in UPDATABLE_FIELDS:
            raise DomainValidationError(f"{field} cannot be updated")
        if field in {"category", "description", "amount", "expense_date", "is_recurring"} and value is None:
            raise DomainValidationError(f"{field} cannot be null")
        merged[field] = value

    merged["recurring_frequency"] = _check_rules(
        merged["category"],
        Decimal(str(merged["amount"])),
        merged["is_recurring"],
        merged["recurring_frequency"],
    )
    merged["amount"] = to_money(merged["amount"])
    for field, value in merged.items():
        setattr(overhead, field, value)
    db.flush()
    log_event(logger, "overhead.update", overhead_id=overhead.id, fields=sorted(changes))
    return overhead


def delete_overhead(db: Session, overhead: Overhead) -> None:
    overhead_id = overhead.id
    db.delete(overhead)
    db.flush()
    log_event(logger, "overhead.delete", overhead_id=overhead_id)


def _filters(user_id: str, start_date: date | None, end_date: date | None, category: str | None) -> list:
    validate_date_range(start_date, end_date)
    conditions = [Overhead.user_id == user_id]
    if category:
        conditions.append(Overhead.category == category)
    if start_date:
        conditions.append(Overhead.expense_date >= start_date)
    if end_date:
        conditions.append(Overhead.expense_date <= end_date)
    return conditions


def list_overheads(
    db: Session,
    *,
    user_id: str,
    category: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Overhead], int]:
    conditions = _filters(user_id, start_date, end_date, category)
    total = int(db.execute(select(func.count(Overhead.id)).where(*conditions)).scalar_one())
    rows = db.execute(
        select(Overhead)
        .where(*conditions)
        .order_by(Overhead.expense_date.desc(), Overhead.created_at.desc(), Overhead.id.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return list(rows), total


def summarize_overheads(rows: Iterable[Overhead]) -> OverheadSummary:
    total = ZERO_MONEY
    count = 0
    category_totals: dict[str, Decimal] = defaultdict(lambda: ZERO_MONEY)
    category_counts: dict[str, int] = defaultdict(int)
    month_totals: dict[str, Decimal] = defaultdict(lambda: ZERO_MONEY)
    month_counts: dict[str, int] = defaultdict(int)

    for row in rows:
        amount = to_money(row.amount)
        month = row.expense_date.strftime("%Y-%m")
        total += amount
        count += 1
        category_totals[row.category] += amount
        category_counts[row.category] += 1
        month_totals[month] += amount
        month_counts[month] += 1

    by_category = [
        CategoryTotal(
            category=category,
            total_amount=to_money(amount),
            count=category_counts[category],
            share_percent=percent_of(amount, total),
        )
        for category, amount in category_totals.items()
    ]
    by_category.sort(key=lambda item: (-item.total_amount, item.category))
    monthly = [
        MonthlyTotal(month=month, total_amount=to_money(month_totals[month]), count=month_counts[month])
        for month in sorted(month_totals)
    ]
    return OverheadSummary(
        total_amount=to_money(total),
        total_count=count,
        by_category=by_category,
        monthly=monthly,
    )


def get_overhead_summary(
    db: Session,
    *,
    user_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
    category: str | None = None,
) -> OverheadSummary:
    conditions = _filters(user_id, start_date, end_date, category)
    rows = db.execute(select(Overhead).where(*conditions)).scalars().all()
    return summarize_overheads(rows)
