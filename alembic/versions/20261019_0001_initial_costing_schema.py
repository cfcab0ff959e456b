"""initial costing, stock ledger and overhead schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index("ux_users_email_lower", "users", [sa.text("lower(email)")], unique=True)

    op.create_table(
        "products",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.Column("unit", sa.String(length=50), nullable=False),
        sa.Column("scrap_value", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("opening_stock", sa.Numeric(12, 3), server_default="0", nullable=False),
        sa.Column("current_stock", sa.Numeric(12, 3), server_default="0", nullable=False),
        sa.Column("stock_version", sa.Integer(), server_default="0", nullable=False),
        sa.Column("selling_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("target_margin_percent", sa.Numeric(5, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint("scrap_value >= 0", name="ck_products_scrap_value_non_negative"),
        sa.CheckConstraint("opening_stock >= 0", name="ck_products_opening_stock_non_negative"),
        sa.CheckConstraint("current_stock >= 0", name="ck_products_current_stock_non_negative"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_products_user_id"), "products", ["user_id"], unique=False)
    op.create_index("ix_products_user_created_at", "products", ["user_id", "created_at"], unique=False)
    op.create_index(
        "ix_products_user_active_stock", "products", ["user_id", "is_active", "current_stock"], unique=False
    )

    op.create_table(
        "product_materials",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("material_name", sa.String(length=255), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("unit", sa.String(length=50), nullable=False),
        sa.Column("unit_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint("quantity >= 0", name="ck_product_materials_quantity_non_negative"),
        sa.CheckConstraint("unit_cost >= 0", name="ck_product_materials_unit_cost_non_negative"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_product_materials_product_id"), "product_materials", ["product_id"], unique=False)

    op.create_table(
        "product_job_work",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint("cost >= 0", name="ck_product_job_work_cost_non_negative"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_product_job_work_product_id"), "product_job_work", ["product_id"], unique=False)

    op.create_table(
        "product_additional_costs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("cost_type", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint("cost >= 0", name="ck_product_additional_costs_cost_non_negative"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_product_additional_costs_product_id"), "product_additional_costs", ["product_id"], unique=False
    )

    op.create_table(
        "sales",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("sale_date", sa.Date(), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("invoice_number", sa.String(length=100), nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("created_by", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint("quantity > 0", name="ck_sales_quantity_positive"),
        sa.CheckConstraint("unit_price >= 0", name="ck_sales_unit_price_non_negative"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_sales_product_id"), "sales", ["product_id"], unique=False)
    op.create_index("ix_sales_product_sale_date", "sales", ["product_id", "sale_date"], unique=False)

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("movement_type", sa.String(length=20), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("balance_before", sa.Numeric(12, 3), nullable=False),
        sa.Column("balance_after", sa.Numeric(12, 3), nullable=False),
        sa.Column("ledger_sequence", sa.Integer(), nullable=False),
        sa.Column("reference", sa.String(length=100), nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("sale_id", sa.String(length=36), nullable=True),
        sa.Column("created_by", sa.String(length=36), nullable=True),
        sa.Column("movement_date", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_id", "ledger_sequence", name="ux_stock_movements_product_sequence"),
    )
    op.create_index(op.f("ix_stock_movements_product_id"), "stock_movements", ["product_id"], unique=False)
    op.create_index(op.f("ix_stock_movements_sale_id"), "stock_movements", ["sale_id"], unique=False)
    op.create_index(
        "ix_stock_movements_product_movement_date",
        "stock_movements",
        ["product_id", "movement_date"],
        unique=False,
    )

    op.create_table(
        "overheads",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("subcategory", sa.String(length=100), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("expense_date", sa.Date(), nullable=False),
        sa.Column("is_recurring", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("recurring_frequency", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint("amount >= 0", name="ck_overheads_amount_non_negative"),
        sa.CheckConstraint(
            "category IN ('Fixed', 'Variable', 'Recurring', 'One-time')",
            name="ck_overheads_category",
        ),
        sa.CheckConstraint(
            "recurring_frequency IS NULL OR recurring_frequency IN ('Monthly', 'Quarterly', 'Yearly')",
            name="ck_overheads_recurring_frequency",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_overheads_user_id"), "overheads", ["user_id"], unique=False)
    op.create_index("ix_overheads_user_expense_date", "overheads", ["user_id", "expense_date"], unique=False)
    op.create_index("ix_overheads_user_category", "overheads", ["user_id", "category"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_overheads_user_category", table_name="overheads")
    op.drop_index("ix_overheads_user_expense_date", table_name="overheads")
    op.drop_index(op.f("ix_overheads_user_id"), table_name="overheads")
    op.drop_table("overheads")

    op.drop_index("ix_stock_movements_product_movement_date", table_name="stock_movements")
    op.drop_index(op.f("ix_stock_movements_sale_id"), table_name="stock_movements")
    op.drop_index(op.f("ix_stock_movements_product_id"), table_name="stock_movements")
    op.drop_table("stock_movements")

    op.drop_index("ix_sales_product_sale_date", table_name="sales")
    op.drop_index(op.f("ix_sales_product_id"), table_name="sales")
    op.drop_table("sales")

    op.drop_index(op.f("ix_product_additional_costs_product_id"), table_name="product_additional_costs")
    op.drop_table("product_additional_costs")
    op.drop_index(op.f("ix_product_job_work_product_id"), table_name="product_job_work")
    op.drop_table("product_job_work")
    op.drop_index(op.f("ix_product_materials_product_id"), table_name="product_materials")
    op.drop_table("product_materials")

    op.drop_index("ix_products_user_active_stock", table_name="products")
    op.drop_index("ix_products_user_created_at", table_name="products")
    op.drop_index(op.f("ix_products_user_id"), table_name="products")
    op.drop_table("products")

    op.drop_index("ux_users_email_lower", table_name="users")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
