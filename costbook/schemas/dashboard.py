from datetime import datetime

from pydantic import BaseModel


class RecentActivityOut(BaseModel):
    type: str
    id: str
    description: str
    amount: float | None = None
    occurred_at: datetime | None = None


class LowStockPreviewOut(BaseModel):
    product_id: str
    name: str
    current_stock: float


class DashboardKpisOut(BaseModel):
    total_products: int
    total_product_cost: float
    total_net_cost: float
    total_overheads: float
    total_sales: float
    sales_count: int
    quantity_sold: float
    cost_of_goods_sold: float
    net_profit: float
    profit_margin_percent: float
    recent_activities: list[RecentActivityOut]
    low_stock_alerts: list[LowStockPreviewOut]


class DashboardTrendPointOut(BaseModel):
    month: str
    sales_total: float
    sales_count: int
    overheads_total: float
    products_created: int


class DashboardTrendsOut(BaseModel):
    months: int
    items: list[DashboardTrendPointOut]


class DashboardQuickStatsOut(BaseModel):
    today_sales_total: float
    today_sales_count: int
    month_overheads_total: float
    low_stock_count: int
    products_created_last_7_days: int
