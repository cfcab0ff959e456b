from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from costbook.core.api_docs import error_responses
from costbook.core.deps import get_db
from costbook.core.security_current import get_current_user
from costbook.models.overhead import Overhead
from costbook.models.user import User
from costbook.schemas.common import PaginationMeta
from costbook.schemas.overhead import (
    OverheadCategory,
    OverheadCreate,
    OverheadListOut,
    OverheadOut,
    OverheadSummaryWindowOut,
    OverheadUpdate,
)
from costbook.services import overhead_service
from costbook.services.report_service import overhead_summary_to_dict

router = APIRouter(prefix="/overheads", tags=["overheads"])


def _overhead_out(row: Overhead) -> OverheadOut:
    return OverheadOut(
        id=row.id,
        category=row.category,
        subcategory=row.subcategory,
        description=row.description,
        amount=float(row.amount),
        expense_date=row.expense_date,
        is_recurring=bool(row.is_recurring),
        recurring_frequency=row.recurring_frequency,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


@router.post(
    "",
    response_model=OverheadOut,
    summary="Create overhead",
    responses=error_responses(400, 401, 422, 500),
)
def create_overhead(
    payload: OverheadCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    overhead = overhead_service.create_overhead(db, user_id=user.id, **payload.model_dump())
    db.commit()
    db.refresh(overhead)
    return _overhead_out(overhead)


@router.get(
    "",
    response_model=OverheadListOut,
    summary="List overheads",
    responses=error_responses(400, 401, 422, 500),
)
def list_overheads(
    category: OverheadCategory | None = Query(default=None),
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD)"),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows, total = overhead_service.list_overheads(
        db,
        user_id=user.id,
        category=category,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    items = [_overhead_out(row) for row in rows]
    count = len(items)
    return OverheadListOut(
        start_date=start_date,
        end_date=end_date,
        category=category,
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
    "/summary",
    response_model=OverheadSummaryWindowOut,
    summary="Overhead totals by category and month",
    responses=error_responses(400, 401, 422, 500),
)
def overhead_summary(
    category: OverheadCategory | None = Query(default=None),
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    summary = overhead_service.get_overhead_summary(
        db, user_id=user.id, start_date=start_date, end_date=end_date, category=category
    )
    return OverheadSummaryWindowOut(
        start_date=start_date,
        end_date=end_date,
        category=category,
        **overhead_summary_to_dict(summary),
    )


@router.get(
    "/{overhead_id}",
    response_model=OverheadOut,
    summary="Get overhead",
    responses=error_responses(401, 404, 500),
)
def get_overhead(
    overhead_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return _overhead_out(overhead_service.get_overhead(db, user_id=user.id, overhead_id=overhead_id))


@router.patch(
    "/{overhead_id}",
    response_model=OverheadOut,
    summary="Update overhead",
    responses=error_responses(400, 401, 404, 422, 500),
)
def update_overhead(
    overhead_id: str,
    payload: OverheadUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    overhead = overhead_service.get_overhead(db, user_id=user.id, overhead_id=overhead_id)
    overhead_service.update_overhead(db, overhead, payload.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(overhead)
    return _overhead_out(overhead)


@router.delete(
    "/{overhead_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete overhead",
    responses=error_responses(401, 404, 500),
)
def delete_overhead(
    overhead_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    overhead = overhead_service.get_overhead(db, user_id=user.id, overhead_id=overhead_id)
    overhead_service.delete_overhead(db, overhead)
    db.commit()
    return None
