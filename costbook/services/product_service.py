import logging
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from costbook.core.id_utils import generate_uuid
from costbook.core.money import to_money, to_quantity
from costbook.core.observability import log_event
from costbook.models.product import Product
from costbook.services.errors import DomainValidationError, NotFoundError

logger = logging.getLogger("costbook.api.products")

UPDATABLE_FIELDS = (
    "name",
    "description",
    "unit",
    "scrap_value",
    "selling_price",
    "target_margin_percent",
    "is_active",
)


def get_product(db: Session, *, user_id: str, product_id: str) -> Product:
    product = db.execute(
        select(Product).where(Product.id == product_id, Product.user_id == user_id)
    ).scalar_one_or_none()
    if not product:
        raise NotFoundError("Product not found")
    return product


def create_product(
    db: Session,
    *,
    user_id: str,
    name: str,
    unit: str,
    description: str | None = None,
    scrap_value: Decimal = Decimal("0"),
    opening_stock: Decimal = Decimal("0"),
    selling_price: Decimal | None = None,
    target_margin_percent: Decimal | None = None,
) -> Product:
    if opening_stock < 0:
        raise DomainValidationError("opening_stock cannot be negative")
    opening = to_quantity(opening_stock)
    product = Product(
        id=generate_uuid(),
        user_id=user_id,
        name=name,
        description=description,
        unit=unit,
        scrap_value=to_money(scrap_value),
        opening_stock=opening,
        current_stock=opening,
        stock_version=0,
        selling_price=to_money(selling_price) if selling_price is not None else None,
        target_margin_percent=to_money(target_margin_percent) if target_margin_percent is not None else None,
        is_active=True,
    )
    db.add(product)
    db.flush()
    log_event(logger, "product.create", product_id=product.id, user_id=user_id, opening_stock=opening)
    return product


def update_product(db: Session, product: Product, changes: dict) -> Product:
    """Apply a partial update. Stock columns belong to the stock ledger and are never touched here."""
    for field, value in changes.items():
        if field not in UPDATABLE_FIELDS:
            raise DomainValidationError(f"{field} cannot be updated")
        if field in {"name", "unit", "scrap_value", "is_active"} and value is None:
            raise DomainValidationError(f"{field} cannot be null")
        if field in {"scrap_value", "selling_price", "target_margin_percent"} and value is not None:
            value = to_money(value)
        setattr(product, field, value)
    db.flush()
    log_event(logger, "product.update", product_id=product.id, fields=sorted(changes))
    return product


def deactivate_product(db: Session, product: Product) -> Product:
    product.is_active = False
    db.flush()
    log_event(logger, "product.deactivate", product_id=product.id)
    return product


def list_products(
    db: Session,
    *,
    user_id: str,
    search: str | None = None,
    is_active: bool | None = True,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Product], int]:
    conditions = [Product.user_id == user_id]
    if is_active is not None:
        conditions.append(Product.is_active.is_(is_active))
    if search:
        pattern = f"%{search.strip().lower()}%"
        conditions.append(
            or_(
                func.lower(Product.name).like(pattern),
                func.lower(func.coalesce(Product.description, "")).like(pattern),
            )
        )

    total = int(db.execute(select(func.count(Product.id)).where(*conditions)).scalar_one())
    rows = db.execute(
        select(Product)
        .where(*conditions)
        .order_by(Product.created_at.desc(), Product.id.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return list(rows), total
