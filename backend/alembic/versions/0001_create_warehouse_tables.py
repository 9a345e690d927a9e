"""create warehouse tables (locations, units, dispatch)

Revision ID: 0001
Revises:
Create Date: 2026-10-16

"""
import json
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(JSONB(), "postgresql")

DEFAULT_LOCATION_LEVELS = [
    {"type": "building", "name": "Edificio"},
    {"type": "zone", "name": "Zona"},
    {"type": "rack", "name": "Rack"},
    {"type": "shelf", "name": "Estante"},
    {"type": "bin", "name": "Casilla"},
]


def upgrade() -> None:
    # locations (building > zone > rack > shelf > bin)
    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(100), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("locations.id", ondelete="CASCADE"), nullable=True),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("locked_by", sa.String(255), nullable=True),
        sa.Column("locked_by_user_id", sa.String(64), nullable=True),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("code", name="uq_locations_code"),
    )
    op.create_index("ix_locations_parent_id", "locations", ["parent_id"], unique=False)

    op.create_table(
        "item_locations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("item_id", sa.String(100), nullable=False),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("locations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("client_id", sa.String(100), nullable=True),
        sa.Column("updated_by", sa.String(255), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("item_id", "location_id", "client_id", name="uq_item_locations_item_location_client"),
    )
    op.create_index("ix_item_locations_item_id", "item_locations", ["item_id"], unique=False)

    op.create_table(
        "inventory_units",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("unit_code", sa.String(50), nullable=False),
        sa.Column("product_id", sa.String(100), nullable=False),
        sa.Column("human_readable_id", sa.String(255), nullable=True),
        sa.Column("document_id", sa.String(100), nullable=True),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("locations.id", ondelete="SET NULL"), nullable=True),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False, server_default="1"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(255), nullable=False),
        sa.UniqueConstraint("unit_code", name="uq_inventory_units_unit_code"),
    )
    op.create_index("ix_inventory_units_product_id", "inventory_units", ["product_id"], unique=False)

    # simple-mode stock: one quantity per (item, location)
    op.create_table(
        "inventory",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("item_id", sa.String(100), nullable=False),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("locations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.String(255), nullable=True),
        sa.UniqueConstraint("item_id", "location_id", name="uq_inventory_item_location"),
    )
    op.create_index("ix_inventory_item_id", "inventory", ["item_id"], unique=False)

    op.create_table(
        "movements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("item_id", sa.String(100), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("from_location_id", sa.Integer(), sa.ForeignKey("locations.id", ondelete="SET NULL"), nullable=True),
        sa.Column("to_location_id", sa.Integer(), sa.ForeignKey("locations.id", ondelete="SET NULL"), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
    )

    warehouse_config = op.create_table(
        "warehouse_config",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value", sa.Text(), nullable=True),
    )
    # seeded here so the unit counter row exists before the first claim
    op.bulk_insert(
        warehouse_config,
        [
            {"key": "unit_prefix", "value": "U"},
            {"key": "next_unit_number", "value": "1"},
            {"key": "location_levels", "value": json.dumps(DEFAULT_LOCATION_LEVELS)},
            {"key": "dispatch_notification_emails", "value": ""},
        ],
    )

    # dispatch_logs (append-only)
    op.create_table(
        "dispatch_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("document_id", sa.String(100), nullable=False),
        sa.Column("document_type", sa.String(20), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_by_user_id", sa.String(64), nullable=False),
        sa.Column("verified_by_user_name", sa.String(255), nullable=False),
        sa.Column("items", JSON_TYPE, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("vehicle_plate", sa.String(50), nullable=True),
        sa.Column("driver_name", sa.String(255), nullable=True),
    )
    op.create_index("ix_dispatch_logs_document_id", "dispatch_logs", ["document_id"], unique=False)

    op.create_table(
        "dispatch_containers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_by", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("locked_by", sa.String(255), nullable=True),
        sa.Column("locked_by_user_id", sa.String(64), nullable=True),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("name", name="uq_dispatch_containers_name"),
    )

    op.create_table(
        "dispatch_assignments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "container_id", sa.Integer(), sa.ForeignKey("dispatch_containers.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("document_id", sa.String(100), nullable=False),
        sa.Column("document_type", sa.String(20), nullable=False),
        sa.Column("document_date", sa.String(50), nullable=False),
        sa.Column("client_id", sa.String(100), nullable=False),
        sa.Column("client_name", sa.String(255), nullable=False),
        sa.Column("assigned_by", sa.String(255), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
    )
    op.create_index("ix_dispatch_assignments_container_id", "dispatch_assignments", ["container_id"], unique=False)
    op.create_index("ix_dispatch_assignments_document_id", "dispatch_assignments", ["document_id"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_dispatch_assignments_document_id", table_name="dispatch_assignments")
    op.drop_index("ix_dispatch_assignments_container_id", table_name="dispatch_assignments")
    op.drop_table("dispatch_assignments")
    op.drop_table("dispatch_containers")
    op.drop_index("ix_dispatch_logs_document_id", table_name="dispatch_logs")
    op.drop_table("dispatch_logs")
    op.drop_table("warehouse_config")
    op.drop_table("movements")
    op.drop_index("ix_inventory_item_id", table_name="inventory")
    op.drop_table("inventory")
    op.drop_index("ix_inventory_units_product_id", table_name="inventory_units")
    op.drop_table("inventory_units")
    op.drop_index("ix_item_locations_item_id", table_name="item_locations")
    op.drop_table("item_locations")
    op.drop_index("ix_locations_parent_id", table_name="locations")
    op.drop_table("locations")
