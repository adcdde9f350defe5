"""
Purchase requisitions and the equipment received through them.

Revision ID: 20261020_0002
Revises: 20261019_0001
Create Date: 2026-10-20
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261020_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "purchase_requisitions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("request_number", sa.String(30), nullable=False),
        sa.Column("requested_by_id", sa.Integer(), sa.ForeignKey("internal_users.id", name="fk_purchase_requisitions_requested_by_id_internal_users")),
        sa.Column("requester_name", sa.String(255), nullable=False),
        sa.Column("requester_department", sa.String(255)),
        sa.Column("requester_unit", sa.String(255)),
        sa.Column("item_type", sa.String(100), nullable=False),
        sa.Column("item_description", sa.Text(), nullable=False),
        sa.Column("specifications", sa.Text()),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="normal"),
        sa.Column("reason", sa.Text()),
        sa.Column("needed_by_date", sa.Date()),
        sa.Column("estimated_value", sa.Numeric(12, 2)),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("approved_by_id", sa.Integer(), sa.ForeignKey("internal_users.id", name="fk_purchase_requisitions_approved_by_id_internal_users")),
        sa.Column("approved_by_name", sa.String(255)),
        sa.Column("approval_date", sa.Date()),
        sa.Column("rejection_reason", sa.Text()),
        sa.Column("actual_value", sa.Numeric(12, 2)),
        sa.Column("supplier", sa.String(255)),
        sa.Column("purchase_date", sa.Date()),
        sa.Column("expected_delivery_date", sa.Date()),
        sa.Column("actual_delivery_date", sa.Date()),
        sa.Column("received_by_id", sa.Integer(), sa.ForeignKey("internal_users.id", name="fk_purchase_requisitions_received_by_id_internal_users")),
        sa.Column("received_by_name", sa.String(255)),
        sa.Column("received_date", sa.Date()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.UniqueConstraint("request_number", name="uq_purchase_requisitions_request_number"),
    )
    op.create_index("ix_purchase_requisitions_status", "purchase_requisitions", ["status"])

    op.create_table(
        "requisition_equipment",
        sa.Column("requisition_id", sa.Integer(), sa.ForeignKey("purchase_requisitions.id", name="fk_requisition_equipment_requisition_id_purchase_requisitions"), primary_key=True),
        sa.Column("equipment_id", sa.Integer(), sa.ForeignKey("inventory_equipment.id", name="fk_requisition_equipment_equipment_id_inventory_equipment"), primary_key=True),
    )


def downgrade():
    op.drop_table("requisition_equipment")
    op.drop_index("ix_purchase_requisitions_status", table_name="purchase_requisitions")
    op.drop_table("purchase_requisitions")
