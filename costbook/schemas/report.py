from datetime import date
from typing import Optional

from pydantic import BaseModel

from costbook.schemas.overhead import OverheadSummaryOut
from costbook.schemas.product import CostBreakdownOut


class ReportProductHeaderOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    unit: str
    current_stock: float
    selling_price: float | None = None
    target_margin_percent: float | None = None


class ReportMaterialOut(BaseModel):
    id: str
    material_name: str
    quantity: float
    unit: str
    unit_cost: float
    total_cost: float


class ReportJobWorkOut(BaseModel):
    id: str
    description: str
    cost: float


class ReportAdditionalCostOut(BaseModel):
    id: str
    cost_type: str
    description: Optional[str] = None
    cost: float


class ProductCostReportOut(BaseModel):
    product: ReportProductHeaderOut
    materials: list[ReportMaterialOut]
    job_work: list[ReportJobWorkOut]
    additional_costs: list[ReportAdditionalCostOut]
    breakdown: CostBreakdownOut


class OverheadReportItemOut(BaseModel):
    id: str
    category: str
    subcategory: Optional[str] = None
    description: str
    amount: float
    expense_date: date
    is_recurring: bool
    recurring_frequency: Optional[str] = None


class OverheadReportOut(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    category: Optional[str] = None
    items: list[OverheadReportItemOut]
    summary: OverheadSummaryOut


class ProfitabilityItemOut(BaseModel):
    product_id: str
    product_name: str
    quantity_sold: float
    sales_count: int
    sales_total: float
    average_unit_price: float
    unit_net_cost: float
    cost_of_goods_sold: float
    profit: float
    margin_percent: float


class ProfitabilityReportOut(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    items: list[ProfitabilityItemOut]
    total_sales: float
    total_cost_of_goods_sold: float
    total_quantity_sold: float
    total_profit: float
    overall_margin_percent: float
