from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from costbook.core.api_docs import error_responses
from costbook.core.deps import get_db
from costbook.core.security_current import get_current_user
from costbook.models.cost_line import ProductAdditionalCost, ProductJobWork, ProductMaterial
from costbook.models.product import Product
from costbook.models.user import User
from costbook.schemas.common import PaginationMeta
from costbook.schemas.cost_line import (
    AdditionalCostCreate,
    AdditionalCostOut,
    AdditionalCostUpdate,
    JobWorkCreate,
    JobWorkOut,
    JobWorkUpdate,
    MaterialCreate,
    MaterialOut,
    MaterialUpdate,
)
from costbook.schemas.product import (
    CostBreakdownOut,
    ProductCreate,
    ProductDetailOut,
    ProductListOut,
    ProductOut,
    ProductUpdate,
)
from costbook.services import cost_line_service, product_service
from costbook.services.cost_rollup import breakdown_for_lines, get_cost_breakdown, load_cost_lines
from costbook.services.report_service import breakdown_to_dict

router = APIRouter(prefix="/products", tags=["products"])
MAX_PRODUCT_PAGE_SIZE = 500


def _optional_float(value) -> float | None:
    return float(value) if value is not None else None


def _product_out(product: Product) -> ProductOut:
    return ProductOut(
        id=product.id,
        name=product.name,
        description=product.description,
        unit=product.unit,
        scrap_value=float(product.scrap_value),
        opening_stock=float(product.opening_stock),
        current_stock=float(product.current_stock),
        selling_price=_optional_float(product.selling_price),
        target_margin_percent=_optional_float(product.target_margin_percent),
        is_active=bool(product.is_active),
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


def _material_out(line: ProductMaterial) -> MaterialOut:
    return MaterialOut(
        id=line.id,
        product_id=line.product_id,
        material_name=line.material_name,
        quantity=float(line.quantity),
        unit=line.unit,
        unit_cost=float(line.unit_cost),
        total_cost=float(line.total_cost),
        created_at=line.created_at,
    )


def _job_work_out(line: ProductJobWork) -> JobWorkOut:
    return JobWorkOut(
        id=line.id,
        product_id=line.product_id,
        description=line.description,
        cost=float(line.cost),
        created_at=line.created_at,
    )


def _additional_cost_out(line: ProductAdditionalCost) -> AdditionalCostOut:
    return AdditionalCostOut(
        id=line.id,
        product_id=line.product_id,
        cost_type=line.cost_type,
        description=line.description,
        cost=float(line.cost),
        created_at=line.created_at,
    )


def _detail_out(db: Session, product: Product) -> ProductDetailOut:
    lines = load_cost_lines(db, product.id)
    breakdown = breakdown_for_lines(product, lines)
    return ProductDetailOut(
        **_product_out(product).model_dump(),
        materials=[_material_out(line) for line in lines.materials],
        job_work=[_job_work_out(line) for line in lines.job_work],
        additional_costs=[_additional_cost_out(line) for line in lines.additional_costs],
        cost_breakdown=CostBreakdownOut(**breakdown_to_dict(breakdown)),
    )


@router.post(
    "",
    response_model=ProductDetailOut,
    summary="Create product",
    responses=error_responses(400, 401, 422, 500),
)
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = product_service.create_product(db, user_id=user.id, **payload.model_dump())
    db.commit()
    db.refresh(product)
    return _detail_out(db, product)


@router.get(
    "",
    response_model=ProductListOut,
    summary="List products",
    responses={
        200: {
            "description": "Paginated products",
            "content": {
                "application/json": {
                    "example": {
                        "items": [
                            {
                                "id": "product-id",
                                "name": "Teak side table",
                                "description": None,
                                "unit": "pcs",
                                "scrap_value": 10.0,
                                "opening_stock": 5.0,
                                "current_stock": 3.0,
                                "selling_price": 250.0,
                                "target_margin_percent": 35.0,
                                "is_active": True,
                            }
                        ],
                        "pagination": {
                            "total": 1,
                            "limit": 50,
                            "offset": 0,
                            "count": 1,
                            "has_next": False,
                        },
                    }
                }
            },
        },
        **error_responses(401, 422, 500),
    },
)
def list_products(
    search: str | None = Query(default=None, max_length=100, description="Match on name or description"),
    include_inactive: bool = Query(default=False, description="Include deactivated products"),
    limit: int = Query(default=50, ge=1, le=MAX_PRODUCT_PAGE_SIZE, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows, total = product_service.list_products(
        db,
        user_id=user.id,
        search=search,
        is_active=None if include_inactive else True,
        limit=limit,
        offset=offset,
    )
    items = [_product_out(row) for row in rows]
    count = len(items)
    return ProductListOut(
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
    "/{product_id}",
    response_model=ProductDetailOut,
    summary="Get product with cost lines and breakdown",
    responses=error_responses(401, 404, 422, 500),
)
def get_product(
    product_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = product_service.get_product(db, user_id=user.id, product_id=product_id)
    return _detail_out(db, product)


@router.patch(
    "/{product_id}",
    response_model=ProductDetailOut,
    summary="Update product",
    responses=error_responses(400, 401, 404, 422, 500),
)
def update_product(
    product_id: str,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = product_service.get_product(db, user_id=user.id, product_id=product_id)
    product_service.update_product(db, product, payload.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(product)
    return _detail_out(db, product)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Deactivate product",
    description="Products keep their ledger history, so deletion only deactivates them.",
    responses=error_responses(401, 404, 500),
)
def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = product_service.get_product(db, user_id=user.id, product_id=product_id)
    product_service.deactivate_product(db, product)
    db.commit()
    return None


@router.get(
    "/{product_id}/cost-breakdown",
    response_model=CostBreakdownOut,
    summary="Get product cost breakdown",
    responses=error_responses(401, 404, 500),
)
def get_product_cost_breakdown(
    product_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = product_service.get_product(db, user_id=user.id, product_id=product_id)
    return CostBreakdownOut(**breakdown_to_dict(get_cost_breakdown(db, product)))


@router.post(
    "/{product_id}/materials",
    response_model=MaterialOut,
    summary="Add material cost line",
    responses=error_responses(400, 401, 404, 422, 500),
)
def add_material(
    product_id: str,
    payload: MaterialCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = product_service.get_product(db, user_id=user.id, product_id=product_id)
    line = cost_line_service.add_cost_line(db, product, "material", payload.model_dump())
    db.commit()
    db.refresh(line)
    return _material_out(line)


@router.patch(
    "/{product_id}/materials/{line_id}",
    response_model=MaterialOut,
    summary="Update material cost line",
    description="Changing quantity or unit cost recomputes the line total.",
    responses=error_responses(400, 401, 404, 422, 500),
)
def update_material(
    product_id: str,
    line_id: str,
    payload: MaterialUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = product_service.get_product(db, user_id=user.id, product_id=product_id)
    line = cost_line_service.update_cost_line(
        db, product, "material", line_id, payload.model_dump(exclude_unset=True)
    )
    db.commit()
    db.refresh(line)
    return _material_out(line)


@router.delete(
    "/{product_id}/materials/{line_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete material cost line",
    responses=error_responses(401, 404, 500),
)
def delete_material(
    product_id: str,
    line_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = product_service.get_product(db, user_id=user.id, product_id=product_id)
    cost_line_service.delete_cost_line(db, product, "material", line_id)
    db.commit()
    return None


@router.post(
    "/{product_id}/job-work",
    response_model=JobWorkOut,
    summary="Add job-work cost line",
    responses=error_responses(400, 401, 404, 422, 500),
)
def add_job_work(
    product_id: str,
    payload: JobWorkCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = product_service.get_product(db, user_id=user.id, product_id=product_id)
    line = cost_line_service.add_cost_line(db, product, "job_work", payload.model_dump())
    db.commit()
    db.refresh(line)
    return _job_work_out(line)


@router.patch(
    "/{product_id}/job-work/{line_id}",
    response_model=JobWorkOut,
    summary="Update job-work cost line",
    responses=error_responses(400, 401, 404, 422, 500),
)
def update_job_work(
    product_id: str,
    line_id: str,
    payload: JobWorkUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = product_service.get_product(db, user_id=user.id, product_id=product_id)
    line = cost_line_service.update_cost_line(
        db, product, "job_work", line_id, payload.model_dump(exclude_unset=True)
    )
    db.commit()
    db.refresh(line)
    return _job_work_out(line)


@router.delete(
    "/{product_id}/job-work/{line_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete job-work cost line",
    responses=error_responses(401, 404, 500),
)
def delete_job_work(
    product_id: str,
    line_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = product_service.get_product(db, user_id=user.id, product_id=product_id)
    cost_line_service.delete_cost_line(db, product, "job_work", line_id)
    db.commit()
    return None


@router.post(
    "/{product_id}/additional-costs",
    response_model=AdditionalCostOut,
    summary="Add additional cost line",
    responses=error_responses(400, 401, 404, 422, 500),
)
def add_additional_cost(
    product_id: str,
    payload: AdditionalCostCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = product_service.get_product(db, user_id=user.id, product_id=product_id)
    line = cost_line_service.add_cost_line(db, product, "additional_cost", payload.model_dump())
    db.commit()
    db.refresh(line)
    return _additional_cost_out(line)


@router.patch(
    "/{product_id}/additional-costs/{line_id}",
    response_model=AdditionalCostOut,
    summary="Update additional cost line",
    responses=error_responses(400, 401, 404, 422, 500),
)
def update_additional_cost(
    product_id: str,
    line_id: str,
    payload: AdditionalCostUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = product_service.get_product(db, user_id=user.id, product_id=product_id)
    line = cost_line_service.update_cost_line(
        db, product, "additional_cost", line_id, payload.model_dump(exclude_unset=True)
    )
    db.commit()
    db.refresh(line)
    return _additional_cost_out(line)


@router.delete(
    "/{product_id}/additional-costs/{line_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete additional cost line",
    responses=error_responses(401, 404, 500),
)
def delete_additional_cost(
    product_id: str,
    line_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = product_service.get_product(db, user_id=user.id, product_id=product_id)
    cost_line_service.delete_cost_line(db, product, "additional_cost", line_id)
    db.commit()
    return None
