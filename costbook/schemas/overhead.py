from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from costbook.schemas.common import PaginationMeta

OverheadCategory = Literal["Fixed", "Variable", "Recurring", "One-time"]
RecurringFrequency = Literal["Monthly", "Quarterly", "Yearly"]


def _clean_description(value: str) -> str:
    cleaned = value.strip()
    if len(cleaned) < 2:
        raise ValueError("description must be at least 2 characters")
    return cleaned


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class OverheadCreate(BaseModel):
    category: OverheadCategory
    subcategory: Optional[str] = Field(default=None, max_length=100)
    description: str = Field(max_length=500)
    amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    expense_date: date
    is_recurring: bool = False
    recurring_frequency: Optional[RecurringFrequency] = None

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: str) -> str:
        return _clean_description(value)

    @field_validator("subcategory")
    @classmethod
    def normalize_subcategory(cls, value: Optional[str]) -> Optional[str]:
        return _optional_text(value)

    @model_validator(mode="after")
    def validate_recurring(self) -> "OverheadCreate":
        if self.is_recurring and self.recurring_frequency is None:
            raise ValueError("recurring_frequency is required when is_recurring is true")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "category": "Fixed",
                "subcategory": "Rent",
                "description": "Workshop rent",
                "amount": 1200.0,
                "expense_date": "2026-10-01",
                "is_recurring": True,
                "recurring_frequency": "Monthly",
            }
        }
    )


class OverheadUpdate(BaseModel):
    category: Optional[OverheadCategory] = None
    subcategory: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    expense_date: Optional[date] = None
    is_recurring: Optional[bool] = None
    recurring_frequency: Optional[RecurringFrequency] = None

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _clean_description(value)

    @field_validator("subcategory")
    @classmethod
    def normalize_subcategory(cls, value: Optional[str]) -> Optional[str]:
        return _optional_text(value)

    model_config = ConfigDict(extra="forbid", json_schema_extra={"example": {"amount": 1300.0}})


class OverheadOut(BaseModel):
    id: str
    category: OverheadCategory
    subcategory: Optional[str] = None
    description: str
    amount: float
    expense_date: date
    is_recurring: bool
    recurring_frequency: Optional[RecurringFrequency] = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OverheadListOut(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    category: Optional[OverheadCategory] = None
    items: list[OverheadOut]
    pagination: PaginationMeta


class OverheadCategoryTotalOut(BaseModel):
    category: str
    total_amount: float
    count: int
    share_percent: float


class OverheadMonthlyTotalOut(BaseModel):
    month: str
    total_amount: float
    count: int


class OverheadSummaryOut(BaseModel):
    total_amount: float
    total_count: int
    by_category: list[OverheadCategoryTotalOut]
    monthly: list[OverheadMonthlyTotalOut]

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "total_amount": 1500.0,
                "total_count": 3,
                "by_category": [
                    {"category": "Fixed", "total_amount": 1200.0, "count": 1, "share_percent": 80.0},
                    {"category": "Variable", "total_amount": 300.0, "count": 2, "share_percent": 20.0},
                ],
                "monthly": [{"month": "2026-10", "total_amount": 1500.0, "count": 3}],
            }
        }
    )


class OverheadSummaryWindowOut(OverheadSummaryOut):
    start_date: date | None = None
    end_date: date | None = None
    category: Optional[OverheadCategory] = None
