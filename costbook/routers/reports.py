from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from costbook.core.api_docs import error_responses
from costbook.core.deps import get_db
from costbook.core.security_current import get_current_user
from costbook.models.user import User
from costbook.schemas.overhead import OverheadCategory
from costbook.schemas.report import OverheadReportOut, ProductCostReportOut, ProfitabilityReportOut
from costbook.services.product_service import get_product
from costbook.services.report_service import overheads_report, product_cost_report, profitability_report

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get(
    "/product-cost/{product_id}",
    response_model=ProductCostReportOut,
    summary="Product cost sheet",
    responses=error_responses(401, 404, 500),
)
def product_cost(
    product_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = get_product(db, user_id=user.id, product_id=product_id)
    return product_cost_report(db, product)


@router.get(
    "/overheads",
    response_model=OverheadReportOut,
    summary="Overhead report",
    responses=error_responses(400, 401, 422, 500),
)
def overheads(
    category: OverheadCategory | None = Query(default=None),
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return overheads_report(
        db, user_id=user.id, start_date=start_date, end_date=end_date, category=category
    )


@router.get(
    "/profitability",
    response_model=ProfitabilityReportOut,
    summary="Profitability by product",
    description="Cost of goods sold uses each product's current net unit cost times the quantity sold.",
    responses=error_responses(400, 401, 422, 500),
)
def profitability(
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return profitability_report(db, user_id=user.id, start_date=start_date, end_date=end_date)
