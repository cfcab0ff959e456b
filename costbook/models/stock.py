from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from costbook.db.base import Base


class StockMovement(Base):
    """
    Append-only stock ledger. One row per balance change, numbered per product
    by ledger_sequence (the product's stock_version after the change).
    """
    __tablename__ = "stock_movements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.id"), index=True)

    movement_type: Mapped[str] = mapped_column(String(20), nullable=False)  # IN / OUT / ADJUSTMENT
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    balance_before: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    ledger_sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    sale_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("sales.id"), nullable=True, index=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)

    movement_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("product_id", "ledger_sequence", name="ux_stock_movements_product_sequence"),
        Index("ix_stock_movements_product_movement_date", "product_id", "movement_date"),
    )
