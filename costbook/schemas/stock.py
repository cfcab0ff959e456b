from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from costbook.schemas.common import PaginationMeta

MovementType = Literal["IN", "OUT", "ADJUSTMENT"]


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class MovementCreate(BaseModel):
    product_id: str
    movement_type: MovementType
    # Must be positive for IN/OUT; ADJUSTMENT takes the absolute counted balance.
    quantity: Decimal = Field(ge=0, max_digits=12, decimal_places=3)
    reference: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("reference", "notes")
    @classmethod
    def normalize_text(cls, value: Optional[str]) -> Optional[str]:
        return _optional_text(value)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "product_id": "product-id",
                "movement_type": "IN",
                "quantity": 20,
                "reference": "PRD-0042",
                "notes": "Production batch",
            }
        }
    )


class MovementOut(BaseModel):
    id: str
    product_id: str
    movement_type: MovementType
    quantity: float
    balance_before: float
    balance_after: float
    ledger_sequence: int
    reference: Optional[str] = None
    notes: Optional[str] = None
    sale_id: Optional[str] = None
    created_by: Optional[str] = None
    movement_date: datetime | None = None


class MovementCreateOut(BaseModel):
    movement_id: str
    product_id: str
    previous_stock: float
    new_stock: float
    change: float


class MovementListOut(BaseModel):
    product_id: str
    items: list[MovementOut]
    pagination: PaginationMeta


class SaleCreate(BaseModel):
    product_id: str
    quantity: Decimal = Field(gt=0, max_digits=12, decimal_places=3)
    unit_price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    sale_date: Optional[date] = None
    customer_name: Optional[str] = Field(default=None, max_length=255)
    invoice_number: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("customer_name", "invoice_number", "notes")
    @classmethod
    def normalize_text(cls, value: Optional[str]) -> Optional[str]:
        return _optional_text(value)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "product_id": "product-id",
                "quantity": 4,
                "unit_price": 25.0,
                "sale_date": "2026-10-01",
                "customer_name": "Walk-in",
                "invoice_number": "INV-1001",
            }
        }
    )


class SaleOut(BaseModel):
    id: str
    product_id: str
    quantity: float
    unit_price: float
    total_amount: float
    sale_date: date
    customer_name: Optional[str] = None
    invoice_number: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime | None = None


class SaleCreateOut(BaseModel):
    sale_id: str
    movement_id: str
    product_id: str
    total_amount: float
    previous_stock: float
    new_stock: float
    change: float


class SaleListOut(BaseModel):
    product_id: str
    start_date: date | None = None
    end_date: date | None = None
    items: list[SaleOut]
    pagination: PaginationMeta


class LowStockAlertOut(BaseModel):
    product_id: str
    name: str
    unit: str
    current_stock: float
    sold_in_window: float
    avg_daily_sales: float
    suggested_production: int


class LowStockListOut(BaseModel):
    threshold: int
    window_days: int
    items: list[LowStockAlertOut]


class StockSummaryOut(BaseModel):
    total_products: int
    total_current_stock: float
    total_opening_stock: float
    low_stock_count: int
    out_of_stock_count: int
    low_stock_threshold: int


class ReconcileOut(BaseModel):
    product_id: str
    opening_stock: float
    current_stock: float
    replayed_stock: float
    movement_count: int
    stock_version: int
    consistent: bool
