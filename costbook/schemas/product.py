from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from costbook.schemas.common import PaginationMeta
from costbook.schemas.cost_line import AdditionalCostOut, JobWorkOut, MaterialOut


def _clean_name(value: str) -> str:
    cleaned = value.strip()
    if len(cleaned) < 2:
        raise ValueError("name must be at least 2 characters")
    return cleaned


class ProductCreate(BaseModel):
    name: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    unit: str = Field(max_length=50)
    scrap_value: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    opening_stock: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=3)
    selling_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    target_margin_percent: Optional[Decimal] = Field(default=None, ge=0, le=100, max_digits=5, decimal_places=2)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _clean_name(value)

    @field_validator("unit")
    @classmethod
    def validate_unit(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("unit is required")
        return cleaned

    @field_validator("description")
    @classmethod
    def normalize_description(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Teak side table",
                "description": "Two-drawer side table",
                "unit": "pcs",
                "scrap_value": 10.0,
                "opening_stock": 5,
                "selling_price": 250.0,
                "target_margin_percent": 35,
            }
        }
    )


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    unit: Optional[str] = Field(default=None, max_length=50)
    scrap_value: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    selling_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    target_margin_percent: Optional[Decimal] = Field(default=None, ge=0, le=100, max_digits=5, decimal_places=2)
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _clean_name(value)

    @field_validator("unit")
    @classmethod
    def validate_unit(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("unit cannot be empty")
        return cleaned

    # Stock columns are owned by the ledger, so unknown keys such as
    # current_stock are rejected instead of silently dropped.
    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={"example": {"selling_price": 275.0, "target_margin_percent": 40}},
    )


class CostBreakdownOut(BaseModel):
    materials_total: float
    job_work_total: float
    additional_costs_total: float
    total_product_cost: float
    scrap_value: float
    net_cost: float
    selling_price: float | None = None
    profit: float | None = None
    margin_percent: float | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "materials_total": 100.0,
                "job_work_total": 30.0,
                "additional_costs_total": 20.0,
                "total_product_cost": 150.0,
                "scrap_value": 10.0,
                "net_cost": 140.0,
                "selling_price": 200.0,
                "profit": 60.0,
                "margin_percent": 30.0,
            }
        }
    )


class ProductOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    unit: str
    scrap_value: float
    opening_stock: float
    current_stock: float
    selling_price: float | None = None
    target_margin_percent: float | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProductDetailOut(ProductOut):
    materials: list[MaterialOut]
    job_work: list[JobWorkOut]
    additional_costs: list[AdditionalCostOut]
    cost_breakdown: CostBreakdownOut


class ProductListOut(BaseModel):
    items: list[ProductOut]
    pagination: PaginationMeta
