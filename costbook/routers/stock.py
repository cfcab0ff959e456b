from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from costbook.core.api_docs import error_responses
from costbook.core.config import settings
from costbook.core.deps import get_db
from costbook.core.security_current import get_current_user
from costbook.models.sales import Sale
from costbook.models.stock import StockMovement
from costbook.models.user import User
from costbook.schemas.common import PaginationMeta
from costbook.schemas.stock import (
    LowStockAlertOut,
    LowStockListOut,
    MovementCreate,
    MovementCreateOut,
    MovementListOut,
    MovementOut,
    MovementType,
    ReconcileOut,
    SaleCreate,
    SaleCreateOut,
    SaleListOut,
    SaleOut,
    StockSummaryOut,
)
from costbook.services import stock_ledger
from costbook.services.product_service import get_product

router = APIRouter(prefix="/stock", tags=["stock"])


def _movement_out(row: StockMovement) -> MovementOut:
    return MovementOut(
        id=row.id,
        product_id=row.product_id,
        movement_type=row.movement_type,
        quantity=float(row.quantity),
        balance_before=float(row.balance_before),
        balance_after=float(row.balance_after),
        ledger_sequence=row.ledger_sequence,
        reference=row.reference,
        notes=row.notes,
        sale_id=row.sale_id,
        created_by=row.created_by,
        movement_date=row.movement_date,
    )


def _sale_out(row: Sale) -> SaleOut:
    return SaleOut(
        id=row.id,
        product_id=row.product_id,
        quantity=float(row.quantity),
        unit_price=float(row.unit_price),
        total_amount=float(row.total_amount),
        sale_date=row.sale_date,
        customer_name=row.customer_name,
        invoice_number=row.invoice_number,
        notes=row.notes,
        created_at=row.created_at,
    )


@router.post(
    "/movements",
    response_model=MovementCreateOut,
    summary="Record stock movement",
    description=(
        "IN adds and OUT removes the given quantity; ADJUSTMENT sets the balance to the "
        "counted quantity. OUT never takes the balance below zero."
    ),
    responses={
        200: {
            "description": "Movement recorded",
            "content": {
                "application/json": {
                    "example": {
                        "movement_id": "movement-id",
                        "product_id": "product-id",
                        "previous_stock": 10.0,
                        "new_stock": 30.0,
                        "change": 20.0,
                    }
                }
            },
        },
        **error_responses(400, 401, 404, 409, 422, 500),
    },
)
def record_movement(
    payload: MovementCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = stock_ledger.record_movement(
        db,
        user_id=user.id,
        product_id=payload.product_id,
        movement_type=payload.movement_type,
        quantity=payload.quantity,
        reference=payload.reference,
        notes=payload.notes,
    )
    return MovementCreateOut(
        movement_id=result.movement.id,
        product_id=payload.product_id,
        previous_stock=float(result.previous_stock),
        new_stock=float(result.new_stock),
        change=float(result.change),
    )


@router.get(
    "/movements/{product_id}",
    response_model=MovementListOut,
    summary="List stock movements for a product",
    responses=error_responses(401, 404, 422, 500),
)
def list_movements(
    product_id: str,
    movement_type: MovementType | None = Query(default=None, description="Optional movement type filter"),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = get_product(db, user_id=user.id, product_id=product_id)
    rows, total = stock_ledger.list_movements(
        db, product, movement_type=movement_type, limit=limit, offset=offset
    )
    items = [_movement_out(row) for row in rows]
    count = len(items)
    return MovementListOut(
        product_id=product.id,
        items=items,
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
    )


@router.post(
    "/sales",
    response_model=SaleCreateOut,
    summary="Record sale",
    description="Creates the sale, its OUT movement and the new stock balance together, or nothing.",
    responses={
        200: {
            "description": "Sale recorded",
            "content": {
                "application/json": {
                    "example": {
                        "sale_id": "sale-id",
                        "movement_id": "movement-id",
                        "product_id": "product-id",
                        "total_amount": 100.0,
                        "previous_stock": 10.0,
                        "new_stock": 6.0,
                        "change": -4.0,
                    }
                }
            },
        },
        **error_responses(400, 401, 404, 409, 422, 500),
    },
)
def record_sale(
    payload: SaleCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = stock_ledger.record_sale(
        db,
        user_id=user.id,
        product_id=payload.product_id,
        quantity=payload.quantity,
        unit_price=payload.unit_price,
        sale_date=payload.sale_date,
        customer_name=payload.customer_name,
        invoice_number=payload.invoice_number,
        notes=payload.notes,
    )
    return SaleCreateOut(
        sale_id=result.sale.id,
        movement_id=result.movement.id,
        product_id=payload.product_id,
        total_amount=float(result.sale.total_amount),
        previous_stock=float(result.previous_stock),
        new_stock=float(result.new_stock),
        change=float(result.new_stock - result.previous_stock),
    )


@router.get(
    "/sales/{product_id}",
    response_model=SaleListOut,
    summary="List sales for a product",
    responses=error_responses(400, 401, 404, 422, 500),
)
def list_sales(
    product_id: str,
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD)"),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = get_product(db, user_id=user.id, product_id=product_id)
    rows, total = stock_ledger.list_sales(
        db, product, start_date=start_date, end_date=end_date, limit=limit, offset=offset
    )
    items = [_sale_out(row) for row in rows]
    count = len(items)
    return SaleListOut(
        product_id=product.id,
        start_date=start_date,
        end_date=end_date,
        items=items,
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
    )


@router.get(
    "/reconcile/{product_id}",
    response_model=ReconcileOut,
    summary="Replay the stock ledger for a product",
    description="Replays every movement from the opening stock and compares it with the stored balance.",
    responses=error_responses(401, 404, 500),
)
def reconcile(
    product_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = get_product(db, user_id=user.id, product_id=product_id)
    report = stock_ledger.reconcile_product(db, product)
    return ReconcileOut(
        product_id=report.product_id,
        opening_stock=float(report.opening_stock),
        current_stock=float(report.current_stock),
        replayed_stock=float(report.replayed_stock),
        movement_count=report.movement_count,
        stock_version=report.stock_version,
        consistent=report.consistent,
    )


@router.get(
    "/alerts/low-stock",
    response_model=LowStockListOut,
    summary="List low-stock products",
    responses=error_responses(401, 422, 500),
)
def low_stock_alerts(
    threshold: int | None = Query(
        default=None,
        ge=0,
        description="Optional threshold override. Defaults to the configured low-stock threshold.",
    ),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    alerts = stock_ledger.low_stock_alerts(db, user_id=user.id, threshold=threshold)
    return LowStockListOut(
        threshold=settings.low_stock_default_threshold if threshold is None else threshold,
        window_days=settings.low_stock_sales_window_days,
        items=[
            LowStockAlertOut(
                product_id=alert.product_id,
                name=alert.name,
                unit=alert.unit,
                current_stock=float(alert.current_stock),
                sold_in_window=float(alert.sold_last_window),
                avg_daily_sales=float(alert.avg_daily_sales),
                suggested_production=alert.suggested_production,
            )
            for alert in alerts
        ],
    )


@router.get(
    "/summary",
    response_model=StockSummaryOut,
    summary="Stock summary",
    responses=error_responses(401, 422, 500),
)
def stock_summary(
    threshold: int | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    summary = stock_ledger.stock_summary(db, user_id=user.id, threshold=threshold)
    return StockSummaryOut(
        total_products=summary.total_products,
        total_current_stock=float(summary.total_current_stock),
        total_opening_stock=float(summary.total_opening_stock),
        low_stock_count=summary.low_stock_count,
        out_of_stock_count=summary.out_of_stock_count,
        low_stock_threshold=summary.low_stock_threshold,
    )
