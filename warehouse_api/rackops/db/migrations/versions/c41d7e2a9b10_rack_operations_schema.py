"""Rack operations schema.

- profiles
- bom_master, partner_rack
- rack_inventory (unique part/location, non-negative qty)
- stock_adjustments
- transaction_log, stock_transactions, activity_log
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "c41d7e2a9b10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _int_pk() -> sa.Column:
    return sa.Column("id", sa.Integer(), nullable=False, autoincrement=True)


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("role", sa.Text(), nullable=False, server_default="operator"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_profiles"),
    )

    op.create_table(
        "bom_master",
        _int_pk(),
        sa.Column("parent_part", sa.Text(), nullable=False),
        sa.Column("child_part", sa.Text(), nullable=False),
        sa.Column("part_name", sa.Text(), nullable=False),
        sa.Column("model", sa.Text(), nullable=False),
        sa.Column("cyl", sa.Text(), nullable=True),
        sa.Column("unix_no", sa.Text(), nullable=False),
        sa.Column("qty_per_set", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("qty_bom", sa.Integer(), nullable=True),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("kanban_code", sa.Text(), nullable=True),
        sa.Column("sequence", sa.Integer(), nullable=True),
        sa.Column("label_code", sa.Text(), nullable=True),
        sa.Column("rack", sa.Text(), nullable=True),
        sa.Column("assy_line_no", sa.Text(), nullable=True),
        sa.Column("bom", sa.Text(), nullable=True),
        sa.Column("source", sa.Text(), nullable=True),
        sa.Column("safety_stock", sa.Integer(), nullable=True),
        sa.Column("created_by", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_bom_master"),
    )
    op.create_index("ix_bom_master_kanban_code_sequence", "bom_master", ["kanban_code", "sequence"])
    op.create_index("ix_bom_master_child_part_location", "bom_master", ["child_part", "location"])

    op.create_table(
        "partner_rack",
        _int_pk(),
        sa.Column("part_no", sa.Text(), nullable=False),
        sa.Column("part_name", sa.Text(), nullable=True),
        sa.Column("qty_per_box", sa.Integer(), nullable=True),
        sa.Column("part_type", sa.Text(), nullable=True),
        sa.Column("rack_location", sa.Text(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_partner_rack"),
    )
    op.create_index("ix_partner_rack_part_no", "partner_rack", ["part_no"])

    op.create_table(
        "rack_inventory",
        _int_pk(),
        sa.Column("part_no", sa.Text(), nullable=False),
        sa.Column("part_name", sa.Text(), nullable=False),
        sa.Column("rack_location", sa.Text(), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_capacity", sa.Integer(), nullable=True),
        sa.Column("last_supply", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_picking", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_rack_inventory"),
        sa.UniqueConstraint("part_no", "rack_location", name="uq_rack_inventory_part_location"),
        sa.CheckConstraint("qty >= 0", name="ck_rack_inventory_qty_non_negative"),
    )

    op.create_table(
        "stock_adjustments",
        _int_pk(),
        sa.Column("part_no", sa.Text(), nullable=False),
        sa.Column("part_name", sa.Text(), nullable=False),
        sa.Column("rack_location", sa.Text(), nullable=False),
        sa.Column("current_stock", sa.Integer(), nullable=False),
        sa.Column("adjust_qty", sa.Integer(), nullable=False),
        sa.Column("new_stock", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("adjusted_by", sa.Text(), nullable=True),
        sa.Column("adjusted_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_stock_adjustments"),
    )

    op.create_table(
        "transaction_log",
        _int_pk(),
        sa.Column("process_type", sa.Text(), nullable=False),
        sa.Column("part_no", sa.Text(), nullable=False),
        sa.Column("rack_location", sa.Text(), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_sec", sa.Integer(), nullable=True),
        sa.Column("is_error", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("user_id", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_transaction_log"),
    )

    op.create_table(
        "stock_transactions",
        _int_pk(),
        sa.Column("transaction_id", sa.Text(), nullable=False),
        sa.Column("transaction_type", sa.Text(), nullable=False),
        sa.Column("item_code", sa.Text(), nullable=False),
        sa.Column("item_name", sa.Text(), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("rack_location", sa.Text(), nullable=False),
        sa.Column("source_location", sa.Text(), nullable=True),
        sa.Column("document_ref", sa.Text(), nullable=True),
        sa.Column("user_id", sa.Text(), nullable=True),
        sa.Column("username", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_stock_transactions"),
        sa.UniqueConstraint("transaction_id", name="uq_stock_transactions_transaction_id"),
    )
    op.create_index("ix_stock_transactions_item_location", "stock_transactions", ["item_code", "rack_location"])

    op.create_table(
        "activity_log",
        _int_pk(),
        sa.Column("table_name", sa.Text(), nullable=False),
        sa.Column("action_type", sa.Text(), nullable=False),
        sa.Column("record_id", sa.Text(), nullable=True),
        sa.Column("user_id", sa.Text(), nullable=True),
        sa.Column("username", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("old_data", JSON_TYPE, nullable=True),
        sa.Column("new_data", JSON_TYPE, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_activity_log"),
    )


def downgrade() -> None:
    op.drop_table("activity_log")
    op.drop_index("ix_stock_transactions_item_location", table_name="stock_transactions")
    op.drop_table("stock_transactions")
    op.drop_table("transaction_log")
    op.drop_table("stock_adjustments")
    op.drop_table("rack_inventory")
    op.drop_index("ix_partner_rack_part_no", table_name="partner_rack")
    op.drop_table("partner_rack")
    op.drop_index("ix_bom_master_child_part_location", table_name="bom_master")
    op.drop_index("ix_bom_master_kanban_code_sequence", table_name="bom_master")
    op.drop_table("bom_master")
    op.drop_table("profiles")
