# app/db/models.py
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, JSON, Numeric, String, Table, Text, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.timeutils import utc_now
from app.db.base import Base


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, server_default=text("CURRENT_TIMESTAMP"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, onupdate=utc_now, server_default=text("CURRENT_TIMESTAMP"), nullable=False
    )


class PublicUser(Base, TimestampMixin):
    """Employee who opens tickets with an access token instead of a password."""

    __tablename__ = "public_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    department: Mapped[str | None] = mapped_column(String(255))
    unit: Mapped[str | None] = mapped_column(String(255))
    user_token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_access: Mapped[datetime | None] = mapped_column(DateTime)

    tickets = relationship("Ticket", back_populates="created_by")


class InternalUser(Base, TimestampMixin):
    __tablename__ = "internal_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="it_staff")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    assigned_tickets = relationship("Ticket", back_populates="assigned_to")


class Ticket(Base, TimestampMixin):
    __tablename__ = "tickets"
    __table_args__ = (
        Index("ix_tickets_status", "status"),
        Index("ix_tickets_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="support")
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")
    created_by_id: Mapped[int] = mapped_column(ForeignKey("public_users.id"), nullable=False, index=True)
    assigned_to_id: Mapped[int | None] = mapped_column(ForeignKey("internal_users.id"), index=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_by = relationship("PublicUser", back_populates="tickets")
    assigned_to = relationship("InternalUser", back_populates="assigned_tickets")
    messages = relationship(
        "TicketMessage", back_populates="ticket", order_by="TicketMessage.id", cascade="all, delete-orphan"
    )
    audit_logs = relationship(
        "TicketAuditLog", back_populates="ticket", order_by="TicketAuditLog.id", cascade="all, delete-orphan"
    )


class TicketMessage(Base):
    __tablename__ = "ticket_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    # public -> public_users.id, it_staff -> internal_users.id
    author_type: Mapped[str] = mapped_column(String(20), nullable=False)
    author_id: Mapped[int] = mapped_column(Integer, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, server_default=text("CURRENT_TIMESTAMP"), nullable=False
    )

    ticket = relationship("Ticket", back_populates="messages")


class TicketAuditLog(Base):
    __tablename__ = "ticket_audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    actor_id: Mapped[int | None] = mapped_column(ForeignKey("internal_users.id"))
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    changes: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, server_default=text("CURRENT_TIMESTAMP"), nullable=False
    )

    ticket = relationship("Ticket", back_populates="audit_logs")


class InformationArticle(Base, TimestampMixin):
    __tablename__ = "information_articles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("internal_users.id"))
    views_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class Equipment(Base, TimestampMixin):
    __tablename__ = "inventory_equipment"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    internal_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    category: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    brand: Mapped[str | None] = mapped_column(String(100))
    model: Mapped[str | None] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text)
    serial_number: Mapped[str] = mapped_column(String(100), nullable=False, default="S/N")

    # Notebook specs
    processor: Mapped[str | None] = mapped_column(String(100))
    memory_ram: Mapped[str | None] = mapped_column(String(50))
    storage: Mapped[str | None] = mapped_column(String(50))
    screen_size: Mapped[str | None] = mapped_column(String(20))
    operating_system: Mapped[str | None] = mapped_column(String(100))

    physical_condition: Mapped[str] = mapped_column(String(50), nullable=False, default="good")
    current_status: Mapped[str] = mapped_column(String(20), nullable=False, default="in_stock", index=True)
    current_location: Mapped[str | None] = mapped_column(String(255))
    current_unit: Mapped[str | None] = mapped_column(String(255), index=True)
    current_responsible_id: Mapped[str | None] = mapped_column(String(100))
    current_responsible_name: Mapped[str | None] = mapped_column(String(255))
    status_changed_at: Mapped[datetime | None] = mapped_column(DateTime, default=utc_now)

    acquisition_date: Mapped[date | None] = mapped_column(Date)
    purchase_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    warranty_expiration: Mapped[date | None] = mapped_column(Date)
    notes: Mapped[str | None] = mapped_column(Text)

    terms = relationship("ResponsibilityTerm", back_populates="equipment", order_by="ResponsibilityTerm.id")
    movements = relationship("EquipmentMovement", back_populates="equipment", order_by="EquipmentMovement.id")
    requisitions = relationship("PurchaseRequisition", secondary="requisition_equipment", back_populates="equipment")


class ResponsibilityTerm(Base):
    __tablename__ = "responsibility_terms"
    __table_args__ = (
        # At most one active term per equipment
        Index(
            "ux_responsibility_terms_active_equipment",
            "equipment_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    equipment_id: Mapped[int] = mapped_column(ForeignKey("inventory_equipment.id"), nullable=False, index=True)

    responsible_id: Mapped[str | None] = mapped_column(String(100))
    responsible_name: Mapped[str] = mapped_column(String(255), nullable=False)
    responsible_cpf: Mapped[str] = mapped_column(String(11), nullable=False)
    responsible_email: Mapped[str | None] = mapped_column(String(255))
    responsible_phone: Mapped[str | None] = mapped_column(String(30))
    responsible_position: Mapped[str | None] = mapped_column(String(255))
    responsible_department: Mapped[str | None] = mapped_column(String(255))
    responsible_unit: Mapped[str | None] = mapped_column(String(255))

    issued_date: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    delivery_reason: Mapped[str | None] = mapped_column(Text)
    delivery_notes: Mapped[str | None] = mapped_column(Text)
    issued_by_id: Mapped[int | None] = mapped_column(ForeignKey("internal_users.id"))

    returned_date: Mapped[datetime | None] = mapped_column(DateTime)
    return_condition: Mapped[str | None] = mapped_column(String(50))
    return_checklist: Mapped[dict | None] = mapped_column(JSON)
    return_problems: Mapped[str | None] = mapped_column(Text)
    return_destination: Mapped[str | None] = mapped_column(String(50))
    received_by_id: Mapped[int | None] = mapped_column(ForeignKey("internal_users.id"))

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    equipment = relationship("Equipment", back_populates="terms")


class EquipmentMovement(Base):
    """Custody audit trail. Rows are only ever inserted."""

    __tablename__ = "equipment_movements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    movement_number: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    equipment_id: Mapped[int] = mapped_column(ForeignKey("inventory_equipment.id"), nullable=False, index=True)
    term_id: Mapped[int | None] = mapped_column(ForeignKey("responsibility_terms.id"))
    movement_type: Mapped[str] = mapped_column(String(20), nullable=False)
    movement_date: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False, index=True)

    from_user_id: Mapped[str | None] = mapped_column(String(100))
    from_user_name: Mapped[str | None] = mapped_column(String(255))
    to_user_id: Mapped[str | None] = mapped_column(String(100))
    to_user_name: Mapped[str | None] = mapped_column(String(255))
    from_location: Mapped[str | None] = mapped_column(String(255))
    to_location: Mapped[str | None] = mapped_column(String(255))
    from_unit: Mapped[str | None] = mapped_column(String(255))
    to_unit: Mapped[str | None] = mapped_column(String(255))
    from_department: Mapped[str | None] = mapped_column(String(255))
    to_department: Mapped[str | None] = mapped_column(String(255))

    reason: Mapped[str | None] = mapped_column(Text)
    condition_before: Mapped[str | None] = mapped_column(String(50))
    condition_after: Mapped[str | None] = mapped_column(String(50))
    registered_by_id: Mapped[int | None] = mapped_column(ForeignKey("internal_users.id"))

    equipment = relationship("Equipment", back_populates="movements")


# Equipment items that arrived through a purchase requisition
requisition_equipment = Table(
    "requisition_equipment",
    Base.metadata,
    Column("requisition_id", ForeignKey("purchase_requisitions.id"), primary_key=True),
    Column("equipment_id", ForeignKey("inventory_equipment.id"), primary_key=True),
)


class PurchaseRequisition(Base, TimestampMixin):
    """Request to buy equipment: pending, then approved or rejected, purchased and received."""

    __tablename__ = "purchase_requisitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_number: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    requested_by_id: Mapped[int | None] = mapped_column(ForeignKey("internal_users.id"))
    requester_name: Mapped[str] = mapped_column(String(255), nullable=False)
    requester_department: Mapped[str | None] = mapped_column(String(255))
    requester_unit: Mapped[str | None] = mapped_column(String(255))

    item_type: Mapped[str] = mapped_column(String(100), nullable=False)
    item_description: Mapped[str] = mapped_column(Text, nullable=False)
    specifications: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="normal")
    reason: Mapped[str | None] = mapped_column(Text)
    needed_by_date: Mapped[date | None] = mapped_column(Date)
    estimated_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)

    approved_by_id: Mapped[int | None] = mapped_column(ForeignKey("internal_users.id"))
    approved_by_name: Mapped[str | None] = mapped_column(String(255))
    approval_date: Mapped[date | None] = mapped_column(Date)
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    actual_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    supplier: Mapped[str | None] = mapped_column(String(255))
    purchase_date: Mapped[date | None] = mapped_column(Date)
    expected_delivery_date: Mapped[date | None] = mapped_column(Date)
    actual_delivery_date: Mapped[date | None] = mapped_column(Date)

    received_by_id: Mapped[int | None] = mapped_column(ForeignKey("internal_users.id"))
    received_by_name: Mapped[str | None] = mapped_column(String(255))
    received_date: Mapped[date | None] = mapped_column(Date)
    notes: Mapped[str | None] = mapped_column(Text)

    equipment = relationship(
        "Equipment", secondary=requisition_equipment, back_populates="requisitions", order_by="Equipment.internal_code"
    )
