from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from costbook.core.money import ZERO_MONEY, percent_of, to_money
from costbook.models.cost_line import ProductAdditionalCost, ProductJobWork, ProductMaterial
from costbook.models.product import Product


@dataclass(frozen=True)
class CostBreakdown:
    materials_total: Decimal
    job_work_total: Decimal
    additional_costs_total: Decimal
    total_product_cost: Decimal
    scrap_value: Decimal
    net_cost: Decimal
    selling_price: Decimal | None = None
    profit: Decimal | None = None
    margin_percent: Decimal | None = None


@dataclass(frozen=True)
class ProductCostLines:
    materials: list[ProductMaterial]
    job_work: list[ProductJobWork]
    additional_costs: list[ProductAdditionalCost]


def _sum_money(values: Iterable[Decimal]) -> Decimal:
    total = ZERO_MONEY
    for value in values:
        total += to_money(value)
    return to_money(total)


def compute_breakdown(
    *,
    material_totals: Iterable[Decimal],
    job_work_costs: Iterable[Decimal],
    additional_costs: Iterable[Decimal],
    scrap_value: Decimal,
    selling_price: Decimal | None = None,
) -> CostBreakdown:
    """Roll cost lines up into totals, net cost and (optionally) profit and margin.

    Material lines contribute their stored ``total_cost``; nothing here
    re-derives it from quantity and unit cost. ``net_cost`` is left negative
    when scrap exceeds the gross cost.
    """
    materials_total = _sum_money(material_totals)
    job_work_total = _sum_money(job_work_costs)
    additional_costs_total = _sum_money(additional_costs)
    total_product_cost = to_money(materials_total + job_work_total + additional_costs_total)
    scrap = to_money(scrap_value)
    net_cost = to_money(total_product_cost - scrap)

    profit = None
    margin = None
    price = None
    if selling_price is not None:
        price = to_money(selling_price)
        profit = to_money(price - net_cost)
        margin = percent_of(profit, price)

    return CostBreakdown(
        materials_total=materials_total,
        job_work_total=job_work_total,
        additional_costs_total=additional_costs_total,
        total_product_cost=total_product_cost,
        scrap_value=scrap,
        net_cost=net_cost,
        selling_price=price,
        profit=profit,
        margin_percent=margin,
    )


def load_cost_lines(db: Session, product_id: str) -> ProductCostLines:
    materials = db.execute(
        select(ProductMaterial)
        .where(ProductMaterial.product_id == product_id)
        .order_by(ProductMaterial.created_at.asc(), ProductMaterial.id.asc())
    ).scalars().all()
    job_work = db.execute(
        select(ProductJobWork)
        .where(ProductJobWork.product_id == product_id)
        .order_by(ProductJobWork.created_at.asc(), ProductJobWork.id.asc())
    ).scalars().all()
    additional = db.execute(
        select(ProductAdditionalCost)
        .where(ProductAdditionalCost.product_id == product_id)
        .order_by(ProductAdditionalCost.created_at.asc(), ProductAdditionalCost.id.asc())
    ).scalars().all()
    return ProductCostLines(
        materials=list(materials),
        job_work=list(job_work),
        additional_costs=list(additional),
    )


def breakdown_for_lines(product: Product, lines: ProductCostLines) -> CostBreakdown:
    return compute_breakdown(
        material_totals=[line.total_cost for line in lines.materials],
        job_work_costs=[line.cost for line in lines.job_work],
        additional_costs=[line.cost for line in lines.additional_costs],
        scrap_value=product.scrap_value,
        selling_price=product.selling_price,
    )


def get_cost_breakdown(db: Session, product: Product) -> CostBreakdown:
    return breakdown_for_lines(product, load_cost_lines(db, product.id))


def breakdowns_for_products(db: Session, products: Iterable[Product]) -> dict[str, CostBreakdown]:
    """Batch rollup for many products with one query per cost-line table."""
    products = list(products)
    if not products:
        return {}
    product_ids = [product.id for product in products]

    def _line_values(column, product_column) -> dict[str, list[Decimal]]:
        # SQLite SUM is float arithmetic, so totals are summed as Decimal below.
        values: dict[str, list[Decimal]] = defaultdict(list)
        for product_id, value in db.execute(
            select(product_column, column).where(product_column.in_(product_ids))
        ).all():
            values[product_id].append(value)
        return values

    materials = _line_values(ProductMaterial.total_cost, ProductMaterial.product_id)
    job_work = _line_values(ProductJobWork.cost, ProductJobWork.product_id)
    additional = _line_values(ProductAdditionalCost.cost, ProductAdditionalCost.product_id)

    return {
        product.id: compute_breakdown(
            material_totals=materials.get(product.id, []),
            job_work_costs=job_work.get(product.id, []),
            additional_costs=additional.get(product.id, []),
            scrap_value=product.scrap_value,
            selling_price=product.selling_price,
        )
        for product in products
    }
