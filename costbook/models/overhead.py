from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, ForeignKey, Index, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from costbook.db.base import Base

OVERHEAD_CATEGORIES = ("Fixed", "Variable", "Recurring", "One-time")
RECURRING_FREQUENCIES = ("Monthly", "Quarterly", "Yearly")


class Overhead(Base):
    __tablename__ = "overheads"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)

    category: Mapped[str] = mapped_column(String(20), nullable=False)
    subcategory: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)  # Rent, Salary, Electricity...
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    recurring_frequency: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_overheads_amount_non_negative"),
        CheckConstraint(
            "category IN ('Fixed', 'Variable', 'Recurring', 'One-time')",
            name="ck_overheads_category",
        ),
        CheckConstraint(
            "recurring_frequency IS NULL OR recurring_frequency IN ('Monthly', 'Quarterly', 'Yearly')",
            name="ck_overheads_recurring_frequency",
        ),
        Index("ix_overheads_user_expense_date", "user_id", "expense_date"),
        Index("ix_overheads_user_category", "user_id", "category"),
    )
