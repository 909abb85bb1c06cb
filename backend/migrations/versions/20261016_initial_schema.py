"""Initial stock engine schema

Revision ID: 20261016_initial
Revises:
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261016_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "shops",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("shop_type", sa.String(length=16), nullable=False, server_default="retail_shop"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_shops_shop_type", "shops", ["shop_type"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=64), nullable=False, unique=True),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="sales_person"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "user_shops",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("shop_id", sa.Integer(), sa.ForeignKey("shops.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "shop_id", name="uq_user_shops_user_shop"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_user_shops_user_id", "user_shops", ["user_id"])
    op.create_index("ix_user_shops_shop_id", "user_shops", ["shop_id"])

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "brands",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("brand_id", sa.Integer(), sa.ForeignKey("brands.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_category_id", "products", ["category_id"])
    op.create_index("ix_products_brand_id", "products", ["brand_id"])

    op.create_table(
        "variants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("variant_name", sa.String(length=300), nullable=False),
        sa.Column("color", sa.String(length=50), nullable=True),
        sa.Column("storage_size", sa.String(length=20), nullable=True),
        sa.Column("sku", sa.String(length=100), nullable=True),
        sa.Column("tracking_mode", sa.String(length=16), nullable=False, server_default="serialized"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_variants_product_id", "variants", ["product_id"])

    op.create_table(
        "vendors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "taxes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shop_id", sa.Integer(), sa.ForeignKey("shops.id"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("value_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_taxes_shop_id", "taxes", ["shop_id"])

    op.create_table(
        "reasons",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("text", sa.String(length=500), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_reasons_user_id", "reasons", ["user_id"])

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shop_id", sa.Integer(), sa.ForeignKey("shops.id"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("total_purchases_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_purchase_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_customers_shop_id", "customers", ["shop_id"])
    op.create_index("ix_customers_shop_active", "customers", ["shop_id", "is_active"])

    op.create_table(
        "stock_units",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("variant_id", sa.Integer(), sa.ForeignKey("variants.id"), nullable=False),
        sa.Column("shop_id", sa.Integer(), sa.ForeignKey("shops.id"), nullable=False),
        sa.Column("sale_item_id", sa.Integer(), nullable=True),
        sa.Column("primary_imei", sa.String(length=32), nullable=True),
        sa.Column("secondary_imei", sa.String(length=32), nullable=True),
        sa.Column("serial_number", sa.String(length=100), nullable=True),
        sa.Column("barcode", sa.String(length=100), nullable=True),
        sa.Column("purchase_price_cents", sa.Integer(), nullable=True),
        sa.Column("sale_price_cents", sa.Integer(), nullable=True),
        sa.Column("condition", sa.String(length=16), nullable=False, server_default="new"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("vendor_kind", sa.String(length=16), nullable=True),
        sa.Column("vendor_id", sa.Integer(), nullable=True),
        sa.Column("tax_id", sa.Integer(), sa.ForeignKey("taxes.id"), nullable=True),
        sa.Column("low_stock_threshold", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="in_stock"),
        sa.Column("is_sold", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_units_variant_id", "stock_units", ["variant_id"])
    op.create_index("ix_stock_units_shop_id", "stock_units", ["shop_id"])
    op.create_index("ix_stock_units_sale_item_id", "stock_units", ["sale_item_id"])
    op.create_index("ix_stock_units_serial_number", "stock_units", ["serial_number"])
    op.create_index("ix_stock_units_status", "stock_units", ["status"])
    op.create_index("ix_stock_units_is_active", "stock_units", ["is_active"])
    op.create_index("ix_stock_units_shop_status", "stock_units", ["shop_id", "status", "is_active"])
    op.create_index("ix_stock_units_shop_variant", "stock_units", ["shop_id", "variant_id"])

    # Identifier uniqueness among active units only
    active_unit = sa.text("is_active = 1")
    op.create_index(
        "uq_stock_units_primary_imei_active", "stock_units", ["primary_imei"],
        unique=True, sqlite_where=active_unit, postgresql_where=sa.text("is_active"),
    )
    op.create_index(
        "uq_stock_units_secondary_imei_active", "stock_units", ["secondary_imei"],
        unique=True, sqlite_where=active_unit, postgresql_where=sa.text("is_active"),
    )
    op.create_index(
        "uq_stock_units_shop_barcode_active", "stock_units", ["shop_id", "barcode"],
        unique=True, sqlite_where=active_unit, postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "garbage_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("stock_unit_id", sa.Integer(), sa.ForeignKey("stock_units.id"), nullable=False),
        sa.Column("reason_id", sa.Integer(), sa.ForeignKey("reasons.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_garbage_records_stock_unit_id", "garbage_records", ["stock_unit_id"])
    op.create_index("ix_garbage_records_reason_id", "garbage_records", ["reason_id"])
    op.create_index(
        "uq_garbage_records_unit_active", "garbage_records", ["stock_unit_id"],
        unique=True, sqlite_where=active_unit, postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shop_id", sa.Integer(), sa.ForeignKey("shops.id"), nullable=False),
        sa.Column("sales_person_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("payment_method", sa.String(length=32), nullable=False, server_default="cash"),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tax_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sales_shop_id", "sales", ["shop_id"])
    op.create_index("ix_sales_sales_person_id", "sales", ["sales_person_id"])
    op.create_index("ix_sales_customer_id", "sales", ["customer_id"])
    op.create_index("ix_sales_shop_created", "sales", ["shop_id", "created_at"])

    op.create_table(
        "sale_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id"), nullable=False),
        sa.Column("stock_unit_id", sa.Integer(), sa.ForeignKey("stock_units.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("line_total_cents", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("sale_id", "position", name="uq_sale_items_sale_position"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sale_items_sale_id", "sale_items", ["sale_id"])
    op.create_index("ix_sale_items_stock_unit_id", "sale_items", ["stock_unit_id"])

    op.create_table(
        "stock_transfers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("from_shop_id", sa.Integer(), sa.ForeignKey("shops.id"), nullable=False),
        sa.Column("to_shop_id", sa.Integer(), sa.ForeignKey("shops.id"), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="completed"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_transfers_from_shop_id", "stock_transfers", ["from_shop_id"])
    op.create_index("ix_stock_transfers_to_shop_id", "stock_transfers", ["to_shop_id"])

    op.create_table(
        "stock_transfer_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transfer_id", sa.Integer(), sa.ForeignKey("stock_transfers.id"), nullable=False),
        sa.Column("stock_unit_id", sa.Integer(), sa.ForeignKey("stock_units.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_transfer_items_transfer_id", "stock_transfer_items", ["transfer_id"])
    op.create_index("ix_stock_transfer_items_stock_unit_id", "stock_transfer_items", ["stock_unit_id"])


def downgrade():
    op.drop_table("stock_transfer_items")
    op.drop_table("stock_transfers")
    op.drop_table("sale_items")
    op.drop_table("sales")
    op.drop_table("garbage_records")
    op.drop_table("stock_units")
    op.drop_table("customers")
    op.drop_table("reasons")
    op.drop_table("taxes")
    op.drop_table("vendors")
    op.drop_table("variants")
    op.drop_table("products")
    op.drop_table("brands")
    op.drop_table("categories")
    op.drop_table("user_shops")
    op.drop_table("users")
    op.drop_table("shops")
