import logging
from decimal import Decimal
from typing import Literal

from sqlalchemy import select
from sqlalchemy.orm import Session

from costbook.core.id_utils import generate_uuid
from costbook.core.money import to_money, to_quantity
from costbook.core.observability import log_event
from costbook.models.cost_line import ProductAdditionalCost, ProductJobWork, ProductMaterial
from costbook.models.product import Product
from costbook.services.errors import DomainValidationError, NotFoundError

logger = logging.getLogger("costbook.api.cost_lines")

CostLineKind = Literal["material", "job_work", "additional_cost"]

_MODELS = {
    "material": ProductMaterial,
    "job_work": ProductJobWork,
    "additional_cost": ProductAdditionalCost,
}

_FIELDS = {
    "material": {"material_name", "quantity", "unit", "unit_cost"},
    "job_work": {"description", "cost"},
    "additional_cost": {"cost_type", "description", "cost"},
}

_REQUIRED = {
    "material": {"material_name", "quantity", "unit", "unit_cost"},
    "job_work": {"description", "cost"},
    "additional_cost": {"cost_type", "cost"},
}


def material_total(quantity: Decimal, unit_cost: Decimal) -> Decimal:
    return to_money(to_quantity(quantity) * to_money(unit_cost))


def _normalize(kind: CostLineKind, values: dict) -> dict:
    unknown = set(values) - _FIELDS[kind]
    if unknown:
        raise DomainValidationError(f"Unknown fields for {kind}: {', '.join(sorted(unknown))}")

    cleaned = dict(values)
    for field in ("quantity", "unit_cost", "cost"):
        if field not in cleaned:
            continue
        value = cleaned[field]
        if value is None:
            raise DomainValidationError(f"{field} is required")
        if Decimal(str(value)) < 0:
            raise DomainValidationError(f"{field} cannot be negative")
        cleaned[field] = to_quantity(value) if field == "quantity" else to_money(value)
    return cleaned


def add_cost_line(db: Session, product: Product, kind: CostLineKind, values: dict):
    cleaned = _normalize(kind, values)
    missing = _REQUIRED[kind] - {key for key, value in cleaned.items() if value is not None}
    if missing:
        raise DomainValidationError(f"Missing fields for {kind}: {', '.join(sorted(missing))}")

    if kind == "material":
        cleaned["total_cost"] = material_total(cleaned["quantity"], cleaned["unit_cost"])

    line = _MODELS[kind](id=generate_uuid(), product_id=product.id, **cleaned)
    db.add(line)
    db.flush()
    log_event(logger, "cost_line.create", kind=kind, line_id=line.id, product_id=product.id)
    return line


def get_cost_line(db: Session, product: Product, kind: CostLineKind, line_id: str):
    model = _MODELS[kind]
    line = db.execute(
        select(model).where(model.id == line_id, model.product_id == product.id)
    ).scalar_one_or_none()
    if not line:
        raise NotFoundError("Cost line not found")
    return line


def update_cost_line(db: Session, product: Product, kind: CostLineKind, line_id: str, changes: dict):
    line = get_cost_line(db, product, kind, line_id)
    cleaned = _normalize(kind, changes)
    for field in _REQUIRED[kind]:
        if field in cleaned and cleaned[field] is None:
            raise DomainValidationError(f"{field} cannot be null")

    for field, value in cleaned.items():
        setattr(line, field, value)
    if kind == "material":
        line.total_cost = material_total(line.quantity, line.unit_cost)

    db.flush()
    log_event(logger, "cost_line.update", kind=kind, line_id=line.id, fields=sorted(cleaned))
    return line


def delete_cost_line(db: Session, product: Product, kind: CostLineKind, line_id: str) -> None:
    line = get_cost_line(db, product, kind, line_id)
    db.delete(line)
    db.flush()
    log_event(logger, "cost_line.delete", kind=kind, line_id=line_id, product_id=product.id)
