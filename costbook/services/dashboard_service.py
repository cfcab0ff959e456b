from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from costbook.core.config import settings
from costbook.core.money import ZERO_MONEY, percent_of, to_money, to_quantity
from costbook.models.overhead import Overhead
from costbook.models.product import Product
from costbook.models.sales import Sale
from costbook.services.cost_rollup import breakdowns_for_products
from costbook.services.report_service import compute_profitability

RECENT_ACTIVITY_LIMIT = 10
LOW_STOCK_PREVIEW_LIMIT = 5


def _month_key(value: date | datetime) -> str:
    return value.strftime("%Y-%m")


def _shift_month(month_start: date, months: int) -> date:
    index = month_start.year * 12 + (month_start.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def _recent_activities(db: Session, user_id: str) -> list[dict]:
    products = db.execute(
        select(Product.id, Product.name, Product.created_at)
        .where(Product.user_id == user_id)
        .order_by(Product.created_at.desc())
        .limit(RECENT_ACTIVITY_LIMIT)
    ).all()
    overheads = db.execute(
        select(Overhead.id, Overhead.description, Overhead.amount, Overhead.created_at)
        .where(Overhead.user_id == user_id)
        .order_by(Overhead.created_at.desc())
        .limit(RECENT_ACTIVITY_LIMIT)
    ).all()
    sales = db.execute(
        select(Sale.id, Product.name, Sale.total_amount, Sale.created_at)
        .join(Product, Product.id == Sale.product_id)
        .where(Product.user_id == user_id)
        .order_by(Sale.created_at.desc())
        .limit(RECENT_ACTIVITY_LIMIT)
    ).all()

    activities = [
        {"type": "product", "id": row_id, "description": f"Product created: {name}", "amount": None, "occurred_at": created_at}
        for row_id, name, created_at in products
    ]
    activities += [
        {"type": "overhead", "id": row_id, "description": description, "amount": float(to_money(amount)), "occurred_at": created_at}
        for row_id, description, amount, created_at in overheads
    ]
    activities += [
        {"type": "sale", "id": row_id, "description": f"Sale: {name}", "amount": float(to_money(amount)), "occurred_at": created_at}
        for row_id, name, amount, created_at in sales
    ]
    activities.sort(key=lambda item: item["occurred_at"], reverse=True)
    return activities[:RECENT_ACTIVITY_LIMIT]


def get_kpis(db: Session, user_id: str) -> dict:
    active_products = db.execute(
        select(Product).where(Product.user_id == user_id, Product.is_active.is_(True))
    ).scalars().all()
    breakdowns = breakdowns_for_products(db, active_products)
    total_product_cost = to_money(sum((b.total_product_cost for b in breakdowns.values()), ZERO_MONEY))
    total_net_cost = to_money(sum((b.net_cost for b in breakdowns.values()), ZERO_MONEY))

    overhead_total = db.execute(
        select(func.coalesce(func.sum(Overhead.amount), 0)).where(Overhead.user_id == user_id)
    ).scalar_one() or ZERO_MONEY
    overhead_total = to_money(overhead_total)

    profitability = compute_profitability(db, user_id=user_id)
    sales_total = profitability["total_sales"]
    sales_count = sum(item["sales_count"] for item in profitability["items"])
    net_profit = to_money(sales_total - profitability["total_cost_of_goods_sold"] - overhead_total)

    threshold = settings.low_stock_default_threshold
    low_stock = db.execute(
        select(Product.id, Product.name, Product.current_stock)
        .where(
            Product.user_id == user_id,
            Product.is_active.is_(True),
            Product.current_stock <= threshold,
        )
        .order_by(Product.current_stock.asc(), Product.name.asc())
        .limit(LOW_STOCK_PREVIEW_LIMIT)
    ).all()

    return {
        "total_products": len(active_products),
        "total_product_cost": float(total_product_cost),
        "total_net_cost": float(total_net_cost),
        "total_overheads": float(overhead_total),
        "total_sales": float(sales_total),
        "sales_count": int(sales_count),
        "quantity_sold": float(profitability["total_quantity_sold"]),
        "cost_of_goods_sold": float(profitability["total_cost_of_goods_sold"]),
        "net_profit": float(net_profit),
        "profit_margin_percent": float(percent_of(net_profit, sales_total)),
        "recent_activities": _recent_activities(db, user_id),
        "low_stock_alerts": [
            {"product_id": product_id, "name": name, "current_stock": float(to_quantity(stock))}
            for product_id, name, stock in low_stock
        ],
    }


def get_trends(db: Session, user_id: str, months: int, today: date | None = None) -> dict:
    today = today or datetime.now(timezone.utc).date()
    current_month = today.replace(day=1)
    first_month = _shift_month(current_month, -(months - 1))
    buckets = [_month_key(_shift_month(first_month, offset)) for offset in range(months)]

    sales_totals: dict[str, Decimal] = defaultdict(lambda: ZERO_MONEY)
    sales_counts: dict[str, int] = defaultdict(int)
    for sale_date, amount in db.execute(
        select(Sale.sale_date, Sale.total_amount)
        .join(Product, Product.id == Sale.product_id)
        .where(Product.user_id == user_id, Sale.sale_date >= first_month, Sale.sale_date <= today)
    ).all():
        sales_totals[_month_key(sale_date)] += to_money(amount)
        sales_counts[_month_key(sale_date)] += 1

    overhead_totals: dict[str, Decimal] = defaultdict(lambda: ZERO_MONEY)
    for expense_date, amount in db.execute(
        select(Overhead.expense_date, Overhead.amount).where(
            Overhead.user_id == user_id,
            Overhead.expense_date >= first_month,
            Overhead.expense_date <= today,
        )
    ).all():
        overhead_totals[_month_key(expense_date)] += to_money(amount)

    products_created: dict[str, int] = defaultdict(int)
    for (created_at,) in db.execute(
        select(Product.created_at).where(Product.user_id == user_id)
    ).all():
        if created_at is not None:
            products_created[_month_key(created_at)] += 1

    return {
        "months": months,
        "items": [
            {
                "month": month,
                "sales_total": float(to_money(sales_totals[month])),
                "sales_count": sales_counts[month],
                "overheads_total": float(to_money(overhead_totals[month])),
                "products_created": products_created[month],
            }
            for month in buckets
        ],
    }


def get_quick_stats(db: Session, user_id: str, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    today = now.date()
    month_start = today.replace(day=1)

    today_sales_total, today_sales_count = db.execute(
        select(func.coalesce(func.sum(Sale.total_amount), 0), func.count(Sale.id))
        .join(Product, Product.id == Sale.product_id)
        .where(Product.user_id == user_id, Sale.sale_date == today)
    ).one()
    month_overheads = db.execute(
        select(func.coalesce(func.sum(Overhead.amount), 0)).where(
            Overhead.user_id == user_id,
            Overhead.expense_date >= month_start,
            Overhead.expense_date <= today,
        )
    ).scalar_one()
    low_stock_count = db.execute(
        select(func.count(Product.id)).where(
            Product.user_id == user_id,
            Product.is_active.is_(True),
            Product.current_stock <= settings.low_stock_default_threshold,
        )
    ).scalar_one()
    new_products = db.execute(
        select(func.count(Product.id)).where(
            Product.user_id == user_id,
            Product.created_at >= now - timedelta(days=7),
        )
    ).scalar_one()

    return {
        "today_sales_total": float(to_money(today_sales_total or ZERO_MONEY)),
        "today_sales_count": int(today_sales_count),
        "month_overheads_total": float(to_money(month_overheads or ZERO_MONEY)),
        "low_stock_count": int(low_stock_count),
        "products_created_last_7_days": int(new_products),
    }
