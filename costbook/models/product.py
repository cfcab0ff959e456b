from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from costbook.db.base import Base


class Product(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    unit: Mapped[str] = mapped_column(String(50), nullable=False)

    scrap_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    opening_stock: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=0, server_default="0")
    # Written only by the stock ledger, together with stock_version.
    current_stock: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=0, server_default="0")
    stock_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    selling_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    target_margin_percent: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("scrap_value >= 0", name="ck_products_scrap_value_non_negative"),
        CheckConstraint("opening_stock >= 0", name="ck_products_opening_stock_non_negative"),
        CheckConstraint("current_stock >= 0", name="ck_products_current_stock_non_negative"),
        Index("ix_products_user_created_at", "user_id", "created_at"),
        Index("ix_products_user_active_stock", "user_id", "is_active", "current_stock"),
    )
