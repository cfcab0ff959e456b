from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from typing import Optional

class RegisterIn(BaseModel):
    email: EmailStr
    full_name: str
    password: str

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("full_name is required")
        return cleaned

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < 8:
            raise ValueError("password must be at least 8 characters")
        return value

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "owner@example.com",
                "full_name": "Jane Owner",
                "password": "password123",
            }
        }
    )


class LoginIn(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("email is required")
        return cleaned

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "owner@example.com",
                "password": "password123",
            }
        }
    )


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserProfileOut(BaseModel):
    id: str
    email: EmailStr
    full_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "abc123",
                "email": "owner@example.com",
                "full_name": "Jane Owner",
                "created_at": "2026-02-01T12:00:00Z",
                "updated_at": "2026-02-01T12:00:00Z",
            }
        }
    )
