from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from costbook.core.api_docs import error_responses
from costbook.core.config import settings
from costbook.core.deps import get_db
from costbook.core.security_current import get_current_user
from costbook.models.user import User
from costbook.schemas.dashboard import DashboardKpisOut, DashboardQuickStatsOut, DashboardTrendsOut
from costbook.services.dashboard_service import get_kpis, get_quick_stats, get_trends

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get(
    "/kpis",
    response_model=DashboardKpisOut,
    summary="Get KPI summary",
    responses={
        200: {
            "description": "Dashboard KPIs",
            "content": {
                "application/json": {
                    "example": {
                        "total_products": 3,
                        "total_product_cost": 450.0,
                        "total_net_cost": 420.0,
                        "total_overheads": 1200.0,
                        "total_sales": 2500.0,
                        "sales_count": 12,
                        "quantity_sold": 18.0,
                        "cost_of_goods_sold": 980.0,
                        "net_profit": 320.0,
                        "profit_margin_percent": 12.8,
                        "recent_activities": [],
                        "low_stock_alerts": [],
                    }
                }
            },
        },
        **error_responses(401, 500),
    },
)
def kpis(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return get_kpis(db, user.id)


@router.get(
    "/trends",
    response_model=DashboardTrendsOut,
    summary="Monthly sales, overhead and product trends",
    responses=error_responses(401, 422, 500),
)
def trends(
    months: int | None = Query(default=None, ge=1, le=36, description="Number of months, current month included"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return get_trends(db, user.id, months or settings.dashboard_trend_months_default)


@router.get(
    "/quick-stats",
    response_model=DashboardQuickStatsOut,
    summary="Today and this-month quick stats",
    responses=error_responses(401, 500),
)
def quick_stats(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return get_quick_stats(db, user.id)
