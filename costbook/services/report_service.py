from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from costbook.core.money import ZERO_MONEY, ZERO_QUANTITY, percent_of, to_money, to_quantity
from costbook.models.product import Product
from costbook.models.sales import Sale
from costbook.services.cost_rollup import (
    CostBreakdown,
    breakdown_for_lines,
    breakdowns_for_products,
    load_cost_lines,
)
from costbook.services.overhead_service import (
    OverheadSummary,
    list_overheads,
    summarize_overheads,
    validate_date_range,
)


def _optional_money(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def breakdown_to_dict(breakdown: CostBreakdown) -> dict:
    return {
        "materials_total": float(breakdown.materials_total),
        "job_work_total": float(breakdown.job_work_total),
        "additional_costs_total": float(breakdown.additional_costs_total),
        "total_product_cost": float(breakdown.total_product_cost),
        "scrap_value": float(breakdown.scrap_value),
        "net_cost": float(breakdown.net_cost),
        "selling_price": _optional_money(breakdown.selling_price),
        "profit": _optional_money(breakdown.profit),
        "margin_percent": _optional_money(breakdown.margin_percent),
    }


def overhead_summary_to_dict(summary: OverheadSummary) -> dict:
    return {
        "total_amount": float(summary.total_amount),
        "total_count": summary.total_count,
        "by_category": [
            {
                "category": item.category,
                "total_amount": float(item.total_amount),
                "count": item.count,
                "share_percent": float(item.share_percent),
            }
            for item in summary.by_category
        ],
        "monthly": [
            {"month": item.month, "total_amount": float(item.total_amount), "count": item.count}
            for item in summary.monthly
        ],
    }


def product_cost_report(db: Session, product: Product) -> dict:
    lines = load_cost_lines(db, product.id)
    breakdown = breakdown_for_lines(product, lines)
    return {
        "product": {
            "id": product.id,
            "name": product.name,
            "description": product.description,
            "unit": product.unit,
            "current_stock": float(product.current_stock),
            "selling_price": _optional_money(product.selling_price),
            "target_margin_percent": _optional_money(product.target_margin_percent),
        },
        "materials": [
            {
                "id": line.id,
                "material_name": line.material_name,
                "quantity": float(line.quantity),
                "unit": line.unit,
                "unit_cost": float(line.unit_cost),
                "total_cost": float(line.total_cost),
            }
            for line in lines.materials
        ],
        "job_work": [
            {"id": line.id, "description": line.description, "cost": float(line.cost)}
            for line in lines.job_work
        ],
        "additional_costs": [
            {
                "id": line.id,
                "cost_type": line.cost_type,
                "description": line.description,
                "cost": float(line.cost),
            }
            for line in lines.additional_costs
        ],
        "breakdown": breakdown_to_dict(breakdown),
    }


def overheads_report(
    db: Session,
    *,
    user_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
    category: str | None = None,
) -> dict:
    validate_date_range(start_date, end_date)
    rows: list = []
    offset = 0
    page_size = 500
    while True:
        page, total = list_overheads(
            db,
            user_id=user_id,
            category=category,
            start_date=start_date,
            end_date=end_date,
            limit=page_size,
            offset=offset,
        )
        rows.extend(page)
        offset += len(page)
        if not page or offset >= total:
            break

    return {
        "start_date": start_date,
        "end_date": end_date,
        "category": category,
        "items": [
            {
                "id": row.id,
                "category": row.category,
                "subcategory": row.subcategory,
                "description": row.description,
                "amount": float(to_money(row.amount)),
                "expense_date": row.expense_date,
                "is_recurring": bool(row.is_recurring),
                "recurring_frequency": row.recurring_frequency,
            }
            for row in rows
        ],
        "summary": overhead_summary_to_dict(summarize_overheads(rows)),
    }


def compute_profitability(
    db: Session,
    *,
    user_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict:
    """Per-product sales against unit net cost. Values stay Decimal for callers that aggregate further."""
    validate_date_range(start_date, end_date)
    stmt = (
        select(
            Sale.product_id,
            func.coalesce(func.sum(Sale.quantity), 0),
            func.coalesce(func.sum(Sale.total_amount), 0),
            func.count(Sale.id),
        )
        .join(Product, Product.id == Sale.product_id)
        .where(Product.user_id == user_id)
        .group_by(Sale.product_id)
    )
    if start_date:
        stmt = stmt.where(Sale.sale_date >= start_date)
    if end_date:
        stmt = stmt.where(Sale.sale_date <= end_date)
    sales_rows = db.execute(stmt).all()

    product_ids = [row[0] for row in sales_rows]
    products = (
        db.execute(select(Product).where(Product.id.in_(product_ids))).scalars().all()
        if product_ids
        else []
    )
    products_by_id = {product.id: product for product in products}
    breakdowns = breakdowns_for_products(db, products)

    items = []
    total_sales = ZERO_MONEY
    total_cogs = ZERO_MONEY
    total_quantity = ZERO_QUANTITY
    for product_id, qty, amount, sale_count in sales_rows:
        product = products_by_id[product_id]
        quantity_sold = to_quantity(qty)
        sales_total = to_money(amount)
        unit_net_cost = breakdowns[product_id].net_cost
        cogs = to_money(unit_net_cost * quantity_sold)
        profit = to_money(sales_total - cogs)
        items.append(
            {
                "product_id": product_id,
                "product_name": product.name,
                "quantity_sold": quantity_sold,
                "sales_count": int(sale_count),
                "sales_total": sales_total,
                "average_unit_price": to_money(sales_total / quantity_sold) if quantity_sold > 0 else ZERO_MONEY,
                "unit_net_cost": unit_net_cost,
                "cost_of_goods_sold": cogs,
                "profit": profit,
                "margin_percent": percent_of(profit, sales_total),
            }
        )
        total_sales += sales_total
        total_cogs += cogs
        total_quantity += quantity_sold

    items.sort(key=lambda item: (-item["profit"], item["product_name"]))
    total_profit = to_money(total_sales - total_cogs)
    return {
        "items": items,
        "total_sales": to_money(total_sales),
        "total_cost_of_goods_sold": to_money(total_cogs),
        "total_quantity_sold": to_quantity(total_quantity),
        "total_profit": total_profit,
        "overall_margin_percent": percent_of(total_profit, total_sales),
    }


def profitability_report(
    db: Session,
    *,
    user_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict:
    data = compute_profitability(db, user_id=user_id, start_date=start_date, end_date=end_date)
    return {
        "start_date": start_date,
        "end_date": end_date,
        "items": [
            {key: (float(value) if isinstance(value, Decimal) else value) for key, value in item.items()}
            for item in data["items"]
        ],
        "total_sales": float(data["total_sales"]),
        "total_cost_of_goods_sold": float(data["total_cost_of_goods_sold"]),
        "total_quantity_sold": float(data["total_quantity_sold"]),
        "total_profit": float(data["total_profit"]),
        "overall_margin_percent": float(data["overall_margin_percent"]),
    }
