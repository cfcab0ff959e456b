from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _required_text(value: str, field: str, min_length: int = 1) -> str:
    cleaned = value.strip()
    if len(cleaned) < min_length:
        if min_length > 1:
            raise ValueError(f"{field} must be at least {min_length} characters")
        raise ValueError(f"{field} is required")
    return cleaned


class MaterialCreate(BaseModel):
    material_name: str = Field(max_length=255)
    quantity: Decimal = Field(ge=0, max_digits=12, decimal_places=3)
    unit: str = Field(max_length=50)
    unit_cost: Decimal = Field(ge=0, max_digits=12, decimal_places=2)

    @field_validator("material_name")
    @classmethod
    def validate_material_name(cls, value: str) -> str:
        return _required_text(value, "material_name", min_length=2)

    @field_validator("unit")
    @classmethod
    def validate_unit(cls, value: str) -> str:
        return _required_text(value, "unit")

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "material_name": "Teak plank",
                "quantity": 2.5,
                "unit": "m",
                "unit_cost": 40.0,
            }
        },
    )


class MaterialUpdate(BaseModel):
    material_name: Optional[str] = Field(default=None, max_length=255)
    quantity: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=3)
    unit: Optional[str] = Field(default=None, max_length=50)
    unit_cost: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)

    @field_validator("material_name")
    @classmethod
    def validate_material_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _required_text(value, "material_name", min_length=2)

    @field_validator("unit")
    @classmethod
    def validate_unit(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _required_text(value, "unit")

    model_config = ConfigDict(extra="forbid", json_schema_extra={"example": {"quantity": 3}})


class MaterialOut(BaseModel):
    id: str
    product_id: str
    material_name: str
    quantity: float
    unit: str
    unit_cost: float
    total_cost: float
    created_at: datetime | None = None


class JobWorkCreate(BaseModel):
    description: str = Field(max_length=500)
    cost: Decimal = Field(ge=0, max_digits=12, decimal_places=2)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: str) -> str:
        return _required_text(value, "description")

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={"example": {"description": "Polishing", "cost": 15.0}},
    )


class JobWorkUpdate(BaseModel):
    description: Optional[str] = Field(default=None, max_length=500)
    cost: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _required_text(value, "description")

    model_config = ConfigDict(extra="forbid")


class JobWorkOut(BaseModel):
    id: str
    product_id: str
    description: str
    cost: float
    created_at: datetime | None = None


class AdditionalCostCreate(BaseModel):
    cost_type: str = Field(max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    cost: Decimal = Field(ge=0, max_digits=12, decimal_places=2)

    @field_validator("cost_type")
    @classmethod
    def validate_cost_type(cls, value: str) -> str:
        return _required_text(value, "cost_type")

    @field_validator("description")
    @classmethod
    def normalize_description(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {"cost_type": "Transport", "description": "Delivery to shop", "cost": 5.0}
        },
    )


class AdditionalCostUpdate(BaseModel):
    cost_type: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    cost: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)

    @field_validator("cost_type")
    @classmethod
    def validate_cost_type(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _required_text(value, "cost_type")

    model_config = ConfigDict(extra="forbid")


class AdditionalCostOut(BaseModel):
    id: str
    product_id: str
    cost_type: str
    description: Optional[str] = None
    cost: float
    created_at: datetime | None = None
