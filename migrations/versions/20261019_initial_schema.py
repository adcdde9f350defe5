"""
Initial Portal TI schema: users, tickets, knowledge base and equipment inventory.

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    ]


def upgrade():
    op.create_table(
        "public_users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("department", sa.String(255)),
        sa.Column("unit", sa.String(255)),
        sa.Column("user_token", sa.String(64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_access", sa.DateTime()),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_public_users_email"),
        sa.UniqueConstraint("user_token", name="uq_public_users_user_token"),
    )

    op.create_table(
        "internal_users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="it_staff"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_internal_users_email"),
    )

    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("type", sa.String(50), nullable=False, server_default="support"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("public_users.id", name="fk_tickets_created_by_id_public_users"), nullable=False),
        sa.Column("assigned_to_id", sa.Integer(), sa.ForeignKey("internal_users.id", name="fk_tickets_assigned_to_id_internal_users")),
        sa.Column("resolved_at", sa.DateTime()),
        *_timestamps(),
    )
    op.create_index("ix_tickets_status", "tickets", ["status"])
    op.create_index("ix_tickets_created_at", "tickets", ["created_at"])
    op.create_index("ix_tickets_created_by_id", "tickets", ["created_by_id"])
    op.create_index("ix_tickets_assigned_to_id", "tickets", ["assigned_to_id"])

    op.create_table(
        "ticket_messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ticket_id", sa.Integer(), sa.ForeignKey("tickets.id", ondelete="CASCADE", name="fk_ticket_messages_ticket_id_tickets"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("author_type", sa.String(20), nullable=False),
        sa.Column("author_id", sa.Integer(), nullable=False),
        sa.Column("is_internal", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_ticket_messages_ticket_id", "ticket_messages", ["ticket_id"])

    op.create_table(
        "ticket_audit_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ticket_id", sa.Integer(), sa.ForeignKey("tickets.id", ondelete="CASCADE", name="fk_ticket_audit_log_ticket_id_tickets"), nullable=False),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("internal_users.id", name="fk_ticket_audit_log_actor_id_internal_users")),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("changes", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_ticket_audit_log_ticket_id", "ticket_audit_log", ["ticket_id"])

    op.create_table(
        "information_articles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("category", sa.String(100)),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("internal_users.id", name="fk_information_articles_created_by_id_internal_users")),
        sa.Column("views_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_information_articles_category", "information_articles", ["category"])

    op.create_table(
        "inventory_equipment",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("internal_code", sa.String(50), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("type", sa.String(100), nullable=False),
        sa.Column("brand", sa.String(100)),
        sa.Column("model", sa.String(100)),
        sa.Column("description", sa.Text()),
        sa.Column("serial_number", sa.String(100), nullable=False, server_default="S/N"),
        sa.Column("processor", sa.String(100)),
        sa.Column("memory_ram", sa.String(50)),
        sa.Column("storage", sa.String(50)),
        sa.Column("screen_size", sa.String(20)),
        sa.Column("operating_system", sa.String(100)),
        sa.Column("physical_condition", sa.String(50), nullable=False, server_default="good"),
        sa.Column("current_status", sa.String(20), nullable=False, server_default="in_stock"),
        sa.Column("current_location", sa.String(255)),
        sa.Column("current_unit", sa.String(255)),
        sa.Column("current_responsible_id", sa.String(100)),
        sa.Column("current_responsible_name", sa.String(255)),
        sa.Column("status_changed_at", sa.DateTime()),
        sa.Column("acquisition_date", sa.Date()),
        sa.Column("purchase_value", sa.Numeric(12, 2)),
        sa.Column("warranty_expiration", sa.Date()),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
        sa.UniqueConstraint("internal_code", name="uq_inventory_equipment_internal_code"),
    )
    op.create_index("ix_inventory_equipment_category", "inventory_equipment", ["category"])
    op.create_index("ix_inventory_equipment_current_status", "inventory_equipment", ["current_status"])
    op.create_index("ix_inventory_equipment_current_unit", "inventory_equipment", ["current_unit"])

    op.create_table(
        "responsibility_terms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("equipment_id", sa.Integer(), sa.ForeignKey("inventory_equipment.id", name="fk_responsibility_terms_equipment_id_inventory_equipment"), nullable=False),
        sa.Column("responsible_id", sa.String(100)),
        sa.Column("responsible_name", sa.String(255), nullable=False),
        sa.Column("responsible_cpf", sa.String(11), nullable=False),
        sa.Column("responsible_email", sa.String(255)),
        sa.Column("responsible_phone", sa.String(30)),
        sa.Column("responsible_position", sa.String(255)),
        sa.Column("responsible_department", sa.String(255)),
        sa.Column("responsible_unit", sa.String(255)),
        sa.Column("issued_date", sa.DateTime(), nullable=False),
        sa.Column("delivery_reason", sa.Text()),
        sa.Column("delivery_notes", sa.Text()),
        sa.Column("issued_by_id", sa.Integer(), sa.ForeignKey("internal_users.id", name="fk_responsibility_terms_issued_by_id_internal_users")),
        sa.Column("returned_date", sa.DateTime()),
        sa.Column("return_condition", sa.String(50)),
        sa.Column("return_checklist", sa.JSON()),
        sa.Column("return_problems", sa.Text()),
        sa.Column("return_destination", sa.String(50)),
        sa.Column("received_by_id", sa.Integer(), sa.ForeignKey("internal_users.id", name="fk_responsibility_terms_received_by_id_internal_users")),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
    )
    op.create_index("ix_responsibility_terms_equipment_id", "responsibility_terms", ["equipment_id"])
    op.create_index(
        "ux_responsibility_terms_active_equipment",
        "responsibility_terms",
        ["equipment_id"],
        unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "equipment_movements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("movement_number", sa.String(30), nullable=False),
        sa.Column("equipment_id", sa.Integer(), sa.ForeignKey("inventory_equipment.id", name="fk_equipment_movements_equipment_id_inventory_equipment"), nullable=False),
        sa.Column("term_id", sa.Integer(), sa.ForeignKey("responsibility_terms.id", name="fk_equipment_movements_term_id_responsibility_terms")),
        sa.Column("movement_type", sa.String(20), nullable=False),
        sa.Column("movement_date", sa.DateTime(), nullable=False),
        sa.Column("from_user_id", sa.String(100)),
        sa.Column("from_user_name", sa.String(255)),
        sa.Column("to_user_id", sa.String(100)),
        sa.Column("to_user_name", sa.String(255)),
        sa.Column("from_location", sa.String(255)),
        sa.Column("to_location", sa.String(255)),
        sa.Column("from_unit", sa.String(255)),
        sa.Column("to_unit", sa.String(255)),
        sa.Column("from_department", sa.String(255)),
        sa.Column("to_department", sa.String(255)),
        sa.Column("reason", sa.Text()),
        sa.Column("condition_before", sa.String(50)),
        sa.Column("condition_after", sa.String(50)),
        sa.Column("registered_by_id", sa.Integer(), sa.ForeignKey("internal_users.id", name="fk_equipment_movements_registered_by_id_internal_users")),
        sa.UniqueConstraint("movement_number", name="uq_equipment_movements_movement_number"),
    )
    op.create_index("ix_equipment_movements_equipment_id", "equipment_movements", ["equipment_id"])
    op.create_index("ix_equipment_movements_movement_date", "equipment_movements", ["movement_date"])


def downgrade():
    op.drop_table("equipment_movements")
    op.drop_index("ux_responsibility_terms_active_equipment", table_name="responsibility_terms")
    op.drop_table("responsibility_terms")
    op.drop_table("inventory_equipment")
    op.drop_table("information_articles")
    op.drop_table("ticket_audit_log")
    op.drop_table("ticket_messages")
    op.drop_table("tickets")
    op.drop_table("internal_users")
    op.drop_table("public_users")
